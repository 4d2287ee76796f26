"""Gemini provider implementation."""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

from google import genai
from google.genai import types

from .types import (
    ContentPart,
    DocumentInput,
    FeedbackMessage,
    FeedbackResponse,
    GenerationConfig,
    PartsContent,
)


class GeminiProvider:
    """Google Gemini provider using google-genai SDK."""

    def __init__(
        self,
        api_key: str,
        model: str,
        api_base: str = "",
    ) -> None:
        self.model = model
        # google-genai does not expose a stable api_base option; keep for future use
        _ = api_base
        self.client = genai.Client(api_key=api_key)

    async def generate_feedback(
        self,
        document: DocumentInput,
        instructions: str,
        config: GenerationConfig,
    ) -> FeedbackResponse:
        contents = self._to_gemini_contents(document, instructions)

        response = await asyncio.to_thread(
            self.client.models.generate_content,
            model=self.model,
            contents=contents,
            config=types.GenerateContentConfig(
                system_instruction=config.system_prompt if config.system_prompt else None,
                max_output_tokens=config.max_tokens,
                temperature=config.temperature,
            ),
        )

        return self._from_gemini_response(response)

    def _to_gemini_contents(self, document: DocumentInput, instructions: str) -> List[types.Content]:
        return [
            types.Content(
                role="user",
                parts=[
                    types.Part.from_bytes(data=document.data, mime_type=document.mime_type),
                    types.Part.from_text(text=instructions),
                ],
            )
        ]

    def _from_gemini_response(self, response) -> FeedbackResponse:
        if not response.candidates:
            raise RuntimeError("Empty LLM response: no candidates")

        candidate = response.candidates[0]
        parts = candidate.content.parts if candidate.content else []
        content_parts = [ContentPart(text=part.text) for part in parts or [] if part.text]

        return FeedbackResponse(
            message=FeedbackMessage(content=PartsContent(parts=content_parts)),
            usage=self._usage_from_response(response),
            raw=response,
        )

    def _usage_from_response(self, response) -> Optional[Dict[str, int]]:
        metadata = getattr(response, "usage_metadata", None)
        if metadata is None:
            return None
        return {
            "prompt_tokens": int(getattr(metadata, "prompt_token_count", 0) or 0),
            "completion_tokens": int(getattr(metadata, "candidates_token_count", 0) or 0),
            "total_tokens": int(getattr(metadata, "total_token_count", 0) or 0),
        }
