"""Clinical false-positive filter applied after overlap resolution.

A single predicate (:meth:`DomainFilter.keep`) decides every span, and both the
values to vault and the spans to substitute are derived from one filtered
list, so the two can never drift apart. Applying the filter to its own output
returns the same output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from phivault.phi.ports import DetectionSpan, RetainedPhi
from phivault.phi.safety.protected_terms import (
    EXCLUDED_ENTITY_TYPES,
    FREQUENCY_TERMS,
    MEDICAL_TERMS,
    contains_term,
    only_frequency_tokens,
)

logger = logging.getLogger(__name__)

PERSON = "PERSON"
DATE_TIME = "DATE_TIME"


@dataclass(frozen=True)
class FilterVocabulary:
    """Immutable vocabularies injected into DomainFilter."""

    medical_terms: frozenset[str] = field(default=MEDICAL_TERMS)
    frequency_terms: frozenset[str] = field(default=FREQUENCY_TERMS)
    excluded_entity_types: frozenset[str] = field(default=EXCLUDED_ENTITY_TYPES)

    @classmethod
    def default(cls) -> "FilterVocabulary":
        return cls()

    def extended(
        self,
        *,
        medical_terms: Iterable[str] = (),
        frequency_terms: Iterable[str] = (),
        excluded_entity_types: Iterable[str] = (),
    ) -> "FilterVocabulary":
        """Return a new vocabulary with extra (lower-cased) terms merged in."""
        return FilterVocabulary(
            medical_terms=self.medical_terms | {t.lower() for t in medical_terms},
            frequency_terms=self.frequency_terms | {t.lower() for t in frequency_terms},
            excluded_entity_types=self.excluded_entity_types | set(excluded_entity_types),
        )


def matches_known_identifier(value: str, known_identifiers: Sequence[str]) -> bool:
    """Case-insensitive containment in either direction ("John" ~ "John Doe")."""
    normalized = value.lower()
    for identifier in known_identifiers:
        candidate = identifier.lower()
        if candidate and (candidate in normalized or normalized in candidate):
            return True
    return False


class DomainFilter:
    """Drop recognizer spans that are clinical vocabulary rather than identifiers."""

    def __init__(self, vocabulary: FilterVocabulary | None = None):
        self._vocabulary = vocabulary or FilterVocabulary.default()

    @property
    def vocabulary(self) -> FilterVocabulary:
        return self._vocabulary

    def drop_reason(
        self,
        entity_type: str,
        value: str,
        known_identifiers: Sequence[str] | None = None,
    ) -> str | None:
        """Return why a span would be dropped, or None if it is retained."""
        vocab = self._vocabulary
        if entity_type in vocab.excluded_entity_types:
            return "excluded_entity_type"
        if entity_type == PERSON and contains_term(value, vocab.medical_terms):
            return "medical_term"
        if entity_type == DATE_TIME and only_frequency_tokens(value, vocab.frequency_terms):
            return "dosage_frequency"
        if entity_type == PERSON and known_identifiers:
            identifiers = [i for i in known_identifiers if i]
            if identifiers and not matches_known_identifier(value, identifiers):
                return "not_known_identifier"
        return None

    def keep(
        self,
        entity_type: str,
        value: str,
        known_identifiers: Sequence[str] | None = None,
    ) -> bool:
        return self.drop_reason(entity_type, value, known_identifiers) is None

    def apply(
        self,
        text: str,
        spans: Sequence[DetectionSpan],
        *,
        field_path: str,
        known_identifiers: Sequence[str] | None = None,
    ) -> list[RetainedPhi]:
        """Filter *spans* over *text*, returning RetainedPhi in input order."""
        retained: list[RetainedPhi] = []
        for span in spans:
            value = text[span.start : span.end]
            reason = self.drop_reason(span.entity_type, value, known_identifiers)
            if reason is not None:
                logger.debug(
                    "Dropped recognizer span",
                    extra={"entity_type": span.entity_type, "reason": reason, "field_path": field_path},
                )
                continue
            retained.append(RetainedPhi(span=span, value=value, field_path=field_path))
        return retained

    def filter_phi(
        self,
        items: Sequence[RetainedPhi],
        known_identifiers: Sequence[str] | None = None,
    ) -> list[RetainedPhi]:
        """Re-filter already retained items (idempotent on apply() output)."""
        return [
            item for item in items if self.keep(item.phi_type, item.value, known_identifiers)
        ]


__all__ = ["FilterVocabulary", "DomainFilter", "matches_known_identifier", "PERSON", "DATE_TIME"]
