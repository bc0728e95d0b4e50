"""Tests for media classification helpers."""

import pytest

from fulfillment.config import MAX_FILE_BYTES, MAX_VIDEO_BYTES
from fulfillment.utils.media import (
    file_extension,
    is_video_filename,
    max_size_for,
    normalize_archive_meta_value,
    resolve_content_type,
    sanitize_identifier,
    size_label,
)


class TestSanitizeIdentifier:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("my video (final).mp4", "my-video--final-.mp4"),
            ("delivery_A1B2_1700000000", "delivery_A1B2_1700000000"),
            ("../../etc/passwd", "..-..-etc-passwd"),
            ("café.png", "caf-.png"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_replaces_unsafe_characters(self, raw: str | None, expected: str) -> None:
        assert sanitize_identifier(raw) == expected


class TestVideoDetection:
    @pytest.mark.parametrize("name", ["a.mp4", "b.MOV", "c.avi", "d.mkv", "e.webm", "f.m4v", "g.flv", "h.wmv"])
    def test_video_extensions(self, name: str) -> None:
        assert is_video_filename(name) is True

    @pytest.mark.parametrize("name", ["a.png", "b.pdf", "c.mp4.zip", "noext", "mp4"])
    def test_non_video_names(self, name: str) -> None:
        assert is_video_filename(name) is False

    def test_file_extension_lowercases_last_suffix(self) -> None:
        assert file_extension("Clip.Final.MP4") == "mp4"
        assert file_extension("README") == ""


class TestSizeLimits:
    def test_video_limit_is_500_mib(self) -> None:
        assert max_size_for("clip.mp4") == MAX_VIDEO_BYTES == 524_288_000

    def test_file_limit_is_10_mib(self) -> None:
        assert max_size_for("brief.pdf") == MAX_FILE_BYTES == 10_485_760

    def test_size_label(self) -> None:
        assert size_label(MAX_VIDEO_BYTES) == "500MB"
        assert size_label(MAX_FILE_BYTES) == "10MB"


class TestResolveContentType:
    def test_video_uses_extension_type_even_with_header(self) -> None:
        assert resolve_content_type("clip.mov", "application/octet-stream") == "video/quicktime"
        assert resolve_content_type("clip.webm", "text/plain") == "video/webm"

    def test_file_prefers_explicit_header(self) -> None:
        assert resolve_content_type("notes.txt", "text/plain; charset=utf-8") == "text/plain"

    def test_file_ignores_octet_stream_header(self) -> None:
        assert resolve_content_type("logo.png", "application/octet-stream") == "image/png"

    def test_unknown_file_without_header(self) -> None:
        assert resolve_content_type("data.bin") == "application/octet-stream"


class TestNormalizeArchiveMetaValue:
    def test_collapses_line_breaks_and_tabs(self) -> None:
        assert normalize_archive_meta_value("Intro\r\n\tVideo\n") == "Intro Video"

    def test_none_becomes_empty(self) -> None:
        assert normalize_archive_meta_value(None) == ""
