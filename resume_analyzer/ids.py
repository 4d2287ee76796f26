"""Identifier and timestamp helpers for analysis records."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone


def generate_id() -> str:
    """Return a random UUID4 string used as the record key suffix."""
    return str(uuid.uuid4())


def utc_now_iso() -> str:
    """Return current UTC time in ISO-8601 format."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")
