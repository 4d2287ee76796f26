"""Critique extraction and parsing."""

from __future__ import annotations

import json
from typing import Any, Dict

from .errors import CritiqueParseError
from .providers.types import CritiqueContent, PartsContent, TextContent


def extract_critique_text(content: CritiqueContent) -> str:
    """Return the critique text carried by either content variant.

    A string reply is used as-is; a multi-part reply contributes its first
    part's text. An empty part list yields an empty string.
    """
    if isinstance(content, TextContent):
        return content.text
    if isinstance(content, PartsContent):
        if not content.parts:
            return ""
        return content.parts[0].text or ""
    raise TypeError(f"Unsupported critique content: {type(content).__name__}")


def parse_critique(text: str) -> Dict[str, Any]:
    """Parse critique text into a JSON object."""
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CritiqueParseError(f"Critique is not valid JSON: {exc.msg}") from exc
    if not isinstance(parsed, dict):
        raise CritiqueParseError(f"Critique must be a JSON object, got {type(parsed).__name__}")
    return parsed
