"""Feedback generator: stored document + instructions -> critique."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Optional, Protocol

from ..storage.blob import BlobStore
from .base import ChatProvider
from .types import DocumentInput, FeedbackResponse, GenerationConfig

logger = logging.getLogger(__name__)


class FeedbackGenerator(Protocol):
    async def feedback(self, document_path: str, instructions: str) -> Optional[FeedbackResponse]: ...


class DocumentFeedbackGenerator:
    """Reads a stored document and asks a chat provider to critique it.

    Returns None when the document is missing or the provider call fails, so
    callers see a single failure signal.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        provider: ChatProvider,
        config: Optional[GenerationConfig] = None,
    ) -> None:
        self.blob_store = blob_store
        self.provider = provider
        self.config = config or GenerationConfig(temperature=0.2)

    async def feedback(self, document_path: str, instructions: str) -> Optional[FeedbackResponse]:
        blob = await self.blob_store.read(document_path)
        if blob is None:
            logger.warning("feedback_document_missing path=%s", document_path)
            return None

        document = DocumentInput(data=blob.content, mime_type=blob.content_type, filename=blob.filename)
        start = perf_counter()
        try:
            response = await self.provider.generate_feedback(document, instructions, self.config)
        except Exception:
            logger.exception(
                "feedback_provider_failed path=%s model=%s",
                document_path,
                getattr(self.provider, "model", "-"),
            )
            return None

        logger.info(
            "feedback_generated path=%s model=%s duration_ms=%.2f total_tokens=%s",
            document_path,
            getattr(self.provider, "model", "-"),
            (perf_counter() - start) * 1000,
            (response.usage or {}).get("total_tokens", "-"),
        )
        return response
