"""OpenAI-compatible provider implementation."""

from __future__ import annotations

import base64
import re
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from .types import (
    ContentPart,
    CritiqueContent,
    DocumentInput,
    FeedbackMessage,
    FeedbackResponse,
    GenerationConfig,
    PartsContent,
    TextContent,
)


class OpenAICompatibleProvider:
    """Provider for OpenAI-compatible chat APIs."""

    def __init__(
        self,
        api_key: str,
        model: str,
        api_base: str = "",
    ) -> None:
        self.model = model
        self.api_base = api_base or ""
        self.client = AsyncOpenAI(api_key=api_key, base_url=api_base or None)
        self._forced_temperature: Optional[float] = None

    async def generate_feedback(
        self,
        document: DocumentInput,
        instructions: str,
        config: GenerationConfig,
    ) -> FeedbackResponse:
        messages = self._to_openai_messages(document, instructions, config.system_prompt)
        kwargs = self._build_chat_kwargs(messages=messages, config=config)
        completion = await self._create_with_temperature_retry(kwargs)
        return self._from_openai_completion(completion)

    def _build_chat_kwargs(
        self,
        messages: List[Dict[str, Any]],
        config: GenerationConfig,
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
        }
        if config.max_tokens and config.max_tokens > 0:
            kwargs["max_tokens"] = config.max_tokens
        normalized_temperature = self._normalize_temperature(config.temperature)
        if normalized_temperature is not None:
            kwargs["temperature"] = normalized_temperature

        extra_body = self._build_extra_body()
        if extra_body:
            kwargs["extra_body"] = extra_body
        return kwargs

    def _normalize_temperature(self, temperature: Optional[float]) -> Optional[float]:
        if self._forced_temperature is not None:
            return self._forced_temperature
        return temperature

    def _build_extra_body(self) -> Optional[Dict[str, Any]]:
        api_base_lower = self.api_base.lower()
        model_lower = (self.model or "").lower()

        # Moonshot Kimi K2/K2.5 answers with reasoning preambles unless thinking is off.
        if "moonshot.cn" in api_base_lower and model_lower.startswith("kimi-k2"):
            return {"thinking": {"type": "disabled"}}

        return None

    async def _create_with_temperature_retry(self, kwargs: Dict[str, Any]):
        try:
            return await self.client.chat.completions.create(**kwargs)
        except Exception as error:
            allowed = self._extract_allowed_temperature(error)
            current = kwargs.get("temperature")
            if allowed is None or current == allowed:
                raise

            retry_kwargs = dict(kwargs)
            retry_kwargs["temperature"] = allowed
            self._forced_temperature = allowed
            return await self.client.chat.completions.create(**retry_kwargs)

    def _extract_allowed_temperature(self, error: Exception) -> Optional[float]:
        message = str(error).lower()
        if "invalid temperature" not in message:
            return None

        # Example: "invalid temperature: only 0.6 is allowed for this model"
        match = re.search(r"only\s+([0-9]+(?:\.[0-9]+)?)\s+is allowed", message)
        if not match:
            return None
        return float(match.group(1))

    def _to_openai_messages(
        self,
        document: DocumentInput,
        instructions: str,
        system_prompt: str,
    ) -> List[Dict[str, Any]]:
        result: List[Dict[str, Any]] = []
        if system_prompt:
            result.append({"role": "system", "content": system_prompt})
        result.append(
            {
                "role": "user",
                "content": [
                    self._document_content_item(document),
                    {"type": "text", "text": instructions},
                ],
            }
        )
        return result

    def _document_content_item(self, document: DocumentInput) -> Dict[str, Any]:
        encoded = base64.b64encode(document.data).decode("ascii")
        data_url = f"data:{document.mime_type};base64,{encoded}"
        if document.mime_type.startswith("image/"):
            return {"type": "image_url", "image_url": {"url": data_url}}
        return {
            "type": "file",
            "file": {"filename": document.filename, "file_data": data_url},
        }

    def _from_openai_completion(self, completion) -> FeedbackResponse:
        if not completion.choices:
            raise RuntimeError("Empty LLM response: no choices")

        message = completion.choices[0].message
        content = self._normalize_message_content(getattr(message, "content", None))

        usage_data = getattr(completion, "usage", None)
        usage = None
        if usage_data:
            usage = {
                "prompt_tokens": int(getattr(usage_data, "prompt_tokens", 0) or 0),
                "completion_tokens": int(getattr(usage_data, "completion_tokens", 0) or 0),
                "total_tokens": int(getattr(usage_data, "total_tokens", 0) or 0),
            }

        return FeedbackResponse(
            message=FeedbackMessage(content=content),
            usage=usage,
            raw=completion,
        )

    def _normalize_message_content(self, content: Any) -> CritiqueContent:
        if content is None:
            return TextContent(text="")
        if isinstance(content, str):
            return TextContent(text=content)
        if isinstance(content, list):
            parts: List[ContentPart] = []
            for item in content:
                text = self._extract_text_from_content_item(item)
                if text:
                    parts.append(ContentPart(text=text))
            return PartsContent(parts=parts)
        return TextContent(text=str(content))

    def _extract_text_from_content_item(self, item: Any) -> str:
        if item is None:
            return ""
        if isinstance(item, str):
            return item
        if isinstance(item, dict):
            return str(item.get("text", "") or "")
        return str(getattr(item, "text", "") or "")
