"""Error taxonomy for the upload-and-analyze pipeline."""

from __future__ import annotations

from enum import Enum


class AnalysisErrorKind(Enum):
    VALIDATION = "validation"
    UPLOAD = "upload"
    CONVERSION = "conversion"
    STORE = "store"
    ANALYSIS = "analysis"
    PARSE = "parse"
    UNEXPECTED = "unexpected"


class AnalysisInProgressError(Exception):
    """Raised when an orchestrator is asked to start while a run is active."""


class CritiqueParseError(ValueError):
    """Critique text returned by the feedback generator is not a JSON object."""
