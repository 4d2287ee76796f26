"""Multipart upload reading with a hard size limit."""

from __future__ import annotations

from typing import Optional

from fastapi import UploadFile

from ....storage.blob import FileBlob
from ...errors import APIError

CHUNK_SIZE = 64 * 1024


async def read_upload_with_limit(file: UploadFile, max_bytes: int) -> bytes:
    """Read an upload stream, failing as soon as it grows past ``max_bytes``."""
    chunks: list[bytes] = []
    total = 0

    while True:
        chunk = await file.read(CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            raise APIError(
                422,
                "UPLOAD_TOO_LARGE",
                "Uploaded file exceeds size limit",
                {"max_upload_bytes": max_bytes, "filename": file.filename or ""},
            )
        chunks.append(chunk)

    return b"".join(chunks)


async def upload_to_blob(file: Optional[UploadFile], max_bytes: int) -> Optional[FileBlob]:
    """Buffer an optional form upload into a ``FileBlob`` keeping its declared media type."""
    if file is None or not file.filename:
        return None
    content = await read_upload_with_limit(file=file, max_bytes=max_bytes)
    return FileBlob(
        filename=file.filename,
        content=content,
        content_type=(file.content_type or "").split(";")[0].strip(),
    )
