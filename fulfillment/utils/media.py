"""Media classification helpers for the upload pipeline.

Pure functions: identifier sanitizing, extension-based video detection,
MIME type resolution, size limits and archive metadata normalization.
"""

import re

from fulfillment.config import MAX_FILE_BYTES, MAX_VIDEO_BYTES

VIDEO_EXTENSIONS = frozenset({"mp4", "mov", "avi", "mkv", "webm", "m4v", "flv", "wmv"})

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")
_META_WHITESPACE = re.compile(r"[\r\n\t]+")

_MIME_TYPES = {
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mov": "video/quicktime",
    "m4v": "video/x-m4v",
    "mkv": "video/x-matroska",
    "avi": "video/x-msvideo",
    "wmv": "video/x-ms-wmv",
    "flv": "video/x-flv",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "pdf": "application/pdf",
    "zip": "application/zip",
    "vtt": "text/vtt",
    "srt": "application/x-subrip",
}

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def sanitize_identifier(value: str | None) -> str:
    """Replace every character outside [A-Za-z0-9_.-] with a dash.

    Example:
        >>> sanitize_identifier("my video (final).mp4")
        'my-video--final-.mp4'
    """
    return _UNSAFE_CHARS.sub("-", value or "")


def file_extension(filename: str) -> str:
    """Lower-cased extension without the dot, or "" when there is none."""
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def is_video_filename(filename: str) -> bool:
    return file_extension(filename) in VIDEO_EXTENSIONS


def mime_type_for(filename: str) -> str | None:
    """MIME type for a known extension, else None."""
    return _MIME_TYPES.get(file_extension(filename))


def max_size_for(filename: str) -> int:
    """Upload limit in bytes: 500 MiB for videos, 10 MiB for anything else."""
    return MAX_VIDEO_BYTES if is_video_filename(filename) else MAX_FILE_BYTES


def size_label(max_size: int) -> str:
    return f"{max_size // (1024 * 1024)}MB"


def resolve_content_type(filename: str, header_content_type: str | None = None) -> str:
    """Resolve the content type stored with an upload.

    Videos always use their extension's type (fallback video/mp4). Other files
    prefer an explicit request header, unless it is missing or the generic
    application/octet-stream, then the extension type.
    """
    if is_video_filename(filename):
        return mime_type_for(filename) or "video/mp4"

    header = (header_content_type or "").split(";")[0].strip().lower()
    if header and header != DEFAULT_CONTENT_TYPE:
        return header
    return mime_type_for(filename) or header or DEFAULT_CONTENT_TYPE


def normalize_archive_meta_value(value: object) -> str:
    """Collapse CR/LF/TAB runs to single spaces so values fit in an HTTP header."""
    if value is None:
        return ""
    return _META_WHITESPACE.sub(" ", str(value)).strip()
