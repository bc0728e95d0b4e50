"""Filesystem-backed ephemeral staging store.

Uploads land here before they are pushed to the permanent archive. Objects
are addressed by slash-separated keys (``temp/{item_id}/{filename}``) that map
onto paths under STAGING_ROOT. Content types and in-flight writes live under
a reserved `.staging/` directory that keys may not address, so no object name
can collide with them.

Security:
    Keys are resolved and verified to stay within the staging root, so a
    crafted key cannot escape it.

Architecture Pattern:
    Blocking file I/O runs in a worker thread (asyncio.to_thread) so a
    500MB write does not stall the event loop.

Usage:
    from fulfillment.clients.staging import FilesystemStagingStore

    store = FilesystemStagingStore(Path("/app/staging"))
    await store.put("temp/item1/video.mp4", data, "video/mp4")
    obj = await store.get("temp/item1/video.mp4")
"""

import asyncio
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import structlog

log = structlog.get_logger(__name__)

_RESERVED_DIR = ".staging"
_CONTENT_TYPE_SUFFIX = ".content-type"


@dataclass(frozen=True)
class StagedObject:
    """An object read back from the staging store."""

    key: str
    body: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.body)


class StagingStore(Protocol):
    """Minimal object-store interface used by the ingest gateway."""

    def location_for(self, key: str) -> str: ...

    async def put(self, key: str, data: bytes, content_type: str) -> None: ...

    async def get(self, key: str) -> StagedObject | None: ...


class FilesystemStagingStore:
    """Staging store keeping objects as files under a root directory.

    Attributes:
        root: Directory all keys resolve under.
    """

    def __init__(self, root: Path):
        self.root = root

    def _path_for(self, key: str) -> Path:
        """Map a key to a path, rejecting keys that escape the root.

        Raises:
            ValueError: If key is empty, absolute, reserved, or resolves outside root.
        """
        if not key or key.startswith("/"):
            raise ValueError(f"Invalid staging key: {key!r}")

        path = self.root / key
        resolved = path.resolve()
        root_resolved = self.root.resolve()
        if not resolved.is_relative_to(root_resolved) or resolved == root_resolved:
            raise ValueError(
                f"Path traversal detected: key {key!r} resolves outside staging root"
            )
        if resolved.is_relative_to(root_resolved / _RESERVED_DIR):
            raise ValueError(f"Reserved staging key: {key!r}")
        return path

    def location_for(self, key: str) -> str:
        """Opaque location string reported to clients (r2://-style URI)."""
        return f"r2://{key}"

    def _meta_path(self, key: str) -> Path:
        return self.root / _RESERVED_DIR / "meta" / (key + _CONTENT_TYPE_SUFFIX)

    def _write(self, key: str, path: Path, data: bytes, content_type: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_dir = self.root / _RESERVED_DIR / "tmp"
        tmp_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = tmp_dir / f"{uuid.uuid4().hex}.part"
        tmp_path.write_bytes(data)
        tmp_path.replace(path)
        meta_path = self._meta_path(key)
        meta_path.parent.mkdir(parents=True, exist_ok=True)
        meta_path.write_text(content_type)

    def _read(self, key: str, path: Path) -> StagedObject | None:
        if not path.is_file():
            return None
        body = path.read_bytes()
        type_path = self._meta_path(key)
        content_type = (
            type_path.read_text().strip() if type_path.is_file() else "application/octet-stream"
        )
        return StagedObject(key=key, body=body, content_type=content_type)

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        """Write (or overwrite) an object.

        Raises:
            ValueError: If the key is invalid.
            OSError: If the filesystem write fails.
        """
        path = self._path_for(key)
        await asyncio.to_thread(self._write, key, path, data, content_type)
        log.debug("staging_object_written", key=key, size_bytes=len(data))

    async def get(self, key: str) -> StagedObject | None:
        """Read an object back, or None when it does not exist."""
        path = self._path_for(key)
        return await asyncio.to_thread(self._read, key, path)
