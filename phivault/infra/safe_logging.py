"""PHI-safe logging helpers."""

from __future__ import annotations

import hashlib
from typing import Iterable


def safe_log_text(text: str | None) -> str:
    """Return a PHI-safe representation of an arbitrary text blob.

    This function intentionally does NOT return raw text. It returns only a short
    hash and length so logs can correlate repeated inputs without storing PHI.
    """
    normalized = (text or "").strip()
    if not normalized:
        return "<empty>"
    digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:12]
    return f"<sha256={digest} len={len(normalized)}>"


def entity_type_counts(entity_types: Iterable[str | None]) -> dict[str, int]:
    """Count entity types for log payloads (types are not PHI, values are)."""
    counts: dict[str, int] = {}
    for entity_type in entity_types:
        key = entity_type or "UNKNOWN"
        counts[key] = counts.get(key, 0) + 1
    return counts


__all__ = ["safe_log_text", "entity_type_counts"]
