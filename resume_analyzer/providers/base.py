"""Provider protocol definition."""

from __future__ import annotations

from typing import Protocol

from .types import DocumentInput, FeedbackResponse, GenerationConfig


class ChatProvider(Protocol):
    """Protocol for vision-capable provider implementations."""

    model: str

    async def generate_feedback(
        self,
        document: DocumentInput,
        instructions: str,
        config: GenerationConfig,
    ) -> FeedbackResponse: ...
