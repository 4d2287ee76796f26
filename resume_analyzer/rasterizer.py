"""Render the first page of a PDF résumé to PNG for vision models."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional, Protocol

import fitz  # PyMuPDF

from .storage.blob import FileBlob

logger = logging.getLogger(__name__)


@dataclass
class ConversionResult:
    """Rendered image, or the reason there is none."""

    image: Optional[FileBlob] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.image is not None


class DocumentRasterizer(Protocol):
    async def convert(self, document: FileBlob) -> ConversionResult: ...


def image_filename(document_name: str) -> str:
    """``resume.pdf`` -> ``resume.png``."""
    stem = PurePosixPath(document_name).stem or "document"
    return f"{stem}.png"


class PdfRasterizer:
    """PyMuPDF renderer; page 1 at ``scale`` times its natural 72 DPI size."""

    def __init__(self, scale: float = 4.0) -> None:
        self.scale = scale

    async def convert(self, document: FileBlob) -> ConversionResult:
        return await asyncio.to_thread(self._render, document)

    def _render(self, document: FileBlob) -> ConversionResult:
        if not document.content:
            return ConversionResult(error="Document is empty")
        try:
            with fitz.open(stream=document.content, filetype="pdf") as pdf:
                if pdf.page_count == 0:
                    return ConversionResult(error="Document has no pages")
                page = pdf.load_page(0)
                pixmap = page.get_pixmap(matrix=fitz.Matrix(self.scale, self.scale))
                png_bytes = pixmap.tobytes("png")
        except (RuntimeError, ValueError) as exc:
            logger.warning("pdf_render_failed filename=%s error=%s", document.filename, exc)
            return ConversionResult(error=f"Failed to convert PDF: {exc}")

        return ConversionResult(
            image=FileBlob(
                filename=image_filename(document.filename),
                content=png_bytes,
                content_type="image/png",
            )
        )
