"""Global pytest fixtures: isolated env and recording fakes for pipeline collaborators."""

from __future__ import annotations

import os
from typing import List, Optional, Set, Tuple

import fitz  # PyMuPDF
import pytest

from resume_analyzer.providers.types import FeedbackMessage, FeedbackResponse, TextContent
from resume_analyzer.rasterizer import ConversionResult
from resume_analyzer.storage.blob import FileBlob, InMemoryBlobStore, UploadedBlob
from resume_analyzer.storage.kv import InMemoryKeyValueStore

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


@pytest.fixture(autouse=True)
def _isolate_runtime_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear local runtime env that can leak into tests on developer machines."""
    for key in list(os.environ):
        if key.startswith("RESUME_ANALYZER_"):
            monkeypatch.delenv(key, raising=False)


class RecordingBlobStore(InMemoryBlobStore):
    """In-memory blob store that logs uploads and can fail chosen calls (1-based)."""

    def __init__(self, call_log: List[str]) -> None:
        super().__init__()
        self.call_log = call_log
        self.uploads: List[List[FileBlob]] = []
        self.fail_calls: Set[int] = set()

    async def upload(self, files: List[FileBlob]) -> Optional[UploadedBlob]:
        self.uploads.append(list(files))
        self.call_log.append("blob.upload")
        if len(self.uploads) in self.fail_calls:
            return None
        return await super().upload(files)


class FakeRasterizer:
    def __init__(self, call_log: List[str]) -> None:
        self.call_log = call_log
        self.calls: List[FileBlob] = []
        self.error: Optional[str] = None

    async def convert(self, document: FileBlob) -> ConversionResult:
        self.calls.append(document)
        self.call_log.append("rasterizer.convert")
        if self.error:
            return ConversionResult(error=self.error)
        return ConversionResult(image=FileBlob("resume.png", PNG_BYTES, "image/png"))


class RecordingKeyValueStore(InMemoryKeyValueStore):
    """In-memory KV store that keeps every write and can fail chosen calls (1-based)."""

    def __init__(self, call_log: List[str]) -> None:
        super().__init__()
        self.call_log = call_log
        self.writes: List[Tuple[str, str]] = []
        self.fail_calls: Set[int] = set()
        self.raise_calls: Set[int] = set()

    async def set(self, key: str, value: str) -> bool:
        self.writes.append((key, value))
        self.call_log.append("kv.set")
        if len(self.writes) in self.raise_calls:
            raise ConnectionError("kv backend unreachable")
        if len(self.writes) in self.fail_calls:
            return False
        return await super().set(key, value)


class FakeFeedbackGenerator:
    def __init__(self, call_log: List[str]) -> None:
        self.call_log = call_log
        self.calls: List[Tuple[str, str]] = []
        self.response: Optional[FeedbackResponse] = text_feedback('{"overallScore": 80}')

    async def feedback(self, document_path: str, instructions: str) -> Optional[FeedbackResponse]:
        self.calls.append((document_path, instructions))
        self.call_log.append("feedback")
        return self.response


def text_feedback(text: str) -> FeedbackResponse:
    return FeedbackResponse(message=FeedbackMessage(content=TextContent(text=text)))


def make_pdf_bytes(text: str = "Jane Smith - Software Engineer") -> bytes:
    """Build a real one-page PDF in memory."""
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def call_log() -> List[str]:
    return []


@pytest.fixture
def blob_store(call_log: List[str]) -> RecordingBlobStore:
    return RecordingBlobStore(call_log)


@pytest.fixture
def rasterizer(call_log: List[str]) -> FakeRasterizer:
    return FakeRasterizer(call_log)


@pytest.fixture
def kv_store(call_log: List[str]) -> RecordingKeyValueStore:
    return RecordingKeyValueStore(call_log)


@pytest.fixture
def feedback_generator(call_log: List[str]) -> FakeFeedbackGenerator:
    return FakeFeedbackGenerator(call_log)


@pytest.fixture
def pdf_file() -> FileBlob:
    return FileBlob(filename="resume.pdf", content=b"%PDF-1.7 test resume", content_type="application/pdf")


@pytest.fixture
def real_pdf_bytes() -> bytes:
    return make_pdf_bytes()
