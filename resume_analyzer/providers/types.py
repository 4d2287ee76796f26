"""Provider-agnostic document, config and feedback types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union


@dataclass
class DocumentInput:
    """Binary document handed to a vision-capable model."""

    data: bytes
    mime_type: str
    filename: str = "document"


@dataclass
class GenerationConfig:
    """Common generation settings passed to providers."""

    system_prompt: str = ""
    max_tokens: int = 4096
    temperature: Optional[float] = 0.7


@dataclass
class ContentPart:
    """One text part of a multi-part model reply."""

    text: str
    type: str = "text"


@dataclass
class TextContent:
    """Reply content delivered as a single string."""

    text: str
    kind: Literal["text"] = field(default="text", init=False)


@dataclass
class PartsContent:
    """Reply content delivered as a sequence of parts."""

    parts: List[ContentPart] = field(default_factory=list)
    kind: Literal["parts"] = field(default="parts", init=False)


CritiqueContent = Union[TextContent, PartsContent]


@dataclass
class FeedbackMessage:
    content: CritiqueContent
    role: str = "assistant"


@dataclass
class FeedbackResponse:
    """Normalized feedback reply from a provider."""

    message: FeedbackMessage
    usage: Optional[Dict[str, int]] = None
    raw: Any = None
