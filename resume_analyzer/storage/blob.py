"""Blob storage for uploaded résumés and their rendered images."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional

from ..ids import utc_now_iso

logger = logging.getLogger(__name__)


@dataclass
class FileBlob:
    """Binary payload plus the name and media type it was submitted with."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class UploadedBlob:
    """Metadata returned for a stored blob."""

    path: str
    size: int
    mime_type: str
    uploaded_at: str


class BlobStore(ABC):
    """Storage contract: upload returns a stable path, or None on failure."""

    @abstractmethod
    async def upload(self, files: List[FileBlob]) -> Optional[UploadedBlob]:
        """Persist the given files and return metadata for the first one."""

    @abstractmethod
    async def read(self, path: str) -> Optional[FileBlob]:
        """Return a stored blob by path, or None if it does not exist."""


def _clean_filename(filename: str) -> str:
    name = PurePosixPath(filename.replace("\\", "/")).name.strip()
    return name or "upload.bin"


def _guess_mime(filename: str, declared: str) -> str:
    if declared and declared != "application/octet-stream":
        return declared
    return mimetypes.guess_type(filename)[0] or "application/octet-stream"


class LocalBlobStore(BlobStore):
    """Local-disk blob backend; each upload lands in its own directory."""

    def __init__(self, root_dir: Path) -> None:
        self.root_dir = root_dir.resolve()

    async def upload(self, files: List[FileBlob]) -> Optional[UploadedBlob]:
        if not files:
            return None

        def _write() -> List[UploadedBlob]:
            stored: List[UploadedBlob] = []
            for blob in files:
                name = _clean_filename(blob.filename)
                relative = f"{uuid.uuid4().hex}/{name}"
                target = self._resolve(relative)
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(blob.content)
                stored.append(
                    UploadedBlob(
                        path=relative,
                        size=target.stat().st_size,
                        mime_type=_guess_mime(name, blob.content_type),
                        uploaded_at=utc_now_iso(),
                    )
                )
            return stored

        try:
            stored = await asyncio.to_thread(_write)
        except (OSError, ValueError) as exc:
            logger.warning("blob_upload_failed root=%s error=%s", self.root_dir, exc)
            return None
        return stored[0]

    async def read(self, path: str) -> Optional[FileBlob]:
        try:
            target = self._resolve(path)
        except ValueError:
            return None

        def _read() -> Optional[FileBlob]:
            if not target.is_file():
                return None
            return FileBlob(
                filename=target.name,
                content=target.read_bytes(),
                content_type=mimetypes.guess_type(target.name)[0] or "application/octet-stream",
            )

        return await asyncio.to_thread(_read)

    def _resolve(self, relative_path: str) -> Path:
        candidate = relative_path.strip()
        if not candidate:
            raise ValueError("Blob path cannot be empty")

        requested = Path(candidate)
        if requested.is_absolute():
            raise ValueError("Absolute blob paths are not allowed")

        resolved = (self.root_dir / requested).resolve()
        try:
            resolved.relative_to(self.root_dir)
        except ValueError as exc:
            raise ValueError("Path escapes blob store root") from exc
        return resolved


class InMemoryBlobStore(BlobStore):
    """Process-local blob backend."""

    def __init__(self) -> None:
        self._blobs: Dict[str, FileBlob] = {}
        self._lock = asyncio.Lock()

    async def upload(self, files: List[FileBlob]) -> Optional[UploadedBlob]:
        if not files:
            return None
        stored: List[UploadedBlob] = []
        async with self._lock:
            for blob in files:
                name = _clean_filename(blob.filename)
                path = f"{uuid.uuid4().hex}/{name}"
                self._blobs[path] = FileBlob(filename=name, content=blob.content, content_type=blob.content_type)
                stored.append(
                    UploadedBlob(
                        path=path,
                        size=blob.size,
                        mime_type=_guess_mime(name, blob.content_type),
                        uploaded_at=utc_now_iso(),
                    )
                )
        return stored[0]

    async def read(self, path: str) -> Optional[FileBlob]:
        async with self._lock:
            return self._blobs.get(path)
