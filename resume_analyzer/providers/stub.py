"""Deterministic provider for local runs and contract tests."""

from __future__ import annotations

import json
from typing import Any, Dict

from .types import (
    DocumentInput,
    FeedbackMessage,
    FeedbackResponse,
    GenerationConfig,
    TextContent,
)

STUB_FEEDBACK: Dict[str, Any] = {
    "overallScore": 70,
    "ATS": {
        "score": 70,
        "tips": [
            {"type": "good", "tip": "Readable single-column layout"},
            {"type": "improve", "tip": "Mirror keywords from the job description"},
        ],
    },
    "toneAndStyle": {"score": 72, "tips": []},
    "content": {"score": 68, "tips": []},
    "structure": {"score": 75, "tips": []},
    "skills": {"score": 65, "tips": []},
}


class StubProvider:
    """Returns a fixed critique without calling any external service."""

    def __init__(self, model: str = "stub-model") -> None:
        self.model = model

    async def generate_feedback(
        self,
        document: DocumentInput,
        instructions: str,
        config: GenerationConfig,
    ) -> FeedbackResponse:
        _ = (document, instructions, config)
        return FeedbackResponse(
            message=FeedbackMessage(content=TextContent(text=json.dumps(STUB_FEEDBACK))),
        )
