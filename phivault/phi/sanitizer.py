"""Substitute vaulted spans with vault reference tokens.

Sanitized text is built as a list of tagged segments (plain text or a vault
reference) and rendered to the ``phi:vault`` token grammar only when it leaves
the engine for persistence.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

from phivault.phi.ports import RetainedPhi
from phivault.phi.tokens import build_reference


@dataclass(frozen=True)
class TextSegment:
    text: str


@dataclass(frozen=True)
class VaultRefSegment:
    vault_id: str
    entity_type: str | None = None

    def render(self) -> str:
        return build_reference(self.vault_id, self.entity_type)


Segment = Union[TextSegment, VaultRefSegment]


def build_segments(
    text: str,
    retained: Sequence[RetainedPhi],
    vault_ids: Sequence[str],
) -> list[Segment]:
    """Split *text* into plain segments and references for each retained span.

    *retained* and *vault_ids* are paired by position; spans must not overlap.
    """
    if len(retained) != len(vault_ids):
        raise ValueError(
            f"Expected one vault id per retained span (got {len(vault_ids)} ids for {len(retained)} spans)"
        )

    pairs = sorted(zip(retained, vault_ids), key=lambda pair: pair[0].span.start)

    segments: list[Segment] = []
    cursor = 0
    for item, vault_id in pairs:
        start, end = item.span.start, item.span.end
        if start < cursor:
            raise ValueError("Retained spans overlap; resolve overlaps before sanitizing")
        if start > cursor:
            segments.append(TextSegment(text[cursor:start]))
        segments.append(VaultRefSegment(vault_id=vault_id, entity_type=item.phi_type))
        cursor = end
    if cursor < len(text):
        segments.append(TextSegment(text[cursor:]))
    return segments


def render_segments(segments: Sequence[Segment]) -> str:
    parts: list[str] = []
    for segment in segments:
        if isinstance(segment, VaultRefSegment):
            parts.append(segment.render())
        else:
            parts.append(segment.text)
    return "".join(parts)


def sanitize(text: str, retained: Sequence[RetainedPhi], vault_ids: Sequence[str]) -> str:
    """Return *text* with every retained span replaced by its vault reference token."""
    if not retained and not vault_ids:
        return text
    return render_segments(build_segments(text, retained, vault_ids))


__all__ = [
    "TextSegment",
    "VaultRefSegment",
    "Segment",
    "build_segments",
    "render_segments",
    "sanitize",
]
