"""Overlap resolution for recognizer spans.

The recognizer may report several overlapping candidates for the same text
(e.g. PERSON and LOCATION for one token). Exactly one span per overlapping
cluster is kept.

Known limitation: each candidate is compared only against the most recently
accepted span, not against every span accepted so far. Three-way overlaps can
therefore resolve differently depending on input order. The output is always
non-overlapping. Replacing this with full interval scheduling is an open
question, see DESIGN.md.
"""

from __future__ import annotations

from typing import Iterable

from phivault.phi.ports import DetectionSpan


def _sort_key(span: DetectionSpan) -> tuple[int, int, float]:
    # start asc, then longer first, then higher score first
    return (span.start, -span.end, -span.score)


def should_replace(candidate: DetectionSpan, accepted: DetectionSpan) -> bool:
    """Return True when an overlapping *candidate* displaces the *accepted* span."""
    if candidate.score > accepted.score:
        return True
    return candidate.score == accepted.score and candidate.length > accepted.length


def resolve_overlaps(spans: Iterable[DetectionSpan]) -> list[DetectionSpan]:
    """Return a non-overlapping subset of *spans*, ordered by start offset."""
    ordered = sorted(spans, key=_sort_key)
    resolved: list[DetectionSpan] = []

    for current in ordered:
        if not resolved or current.start >= resolved[-1].end:
            resolved.append(current)
            continue
        if should_replace(current, resolved[-1]):
            resolved[-1] = current

    return resolved


__all__ = ["resolve_overlaps", "should_replace"]
