from phivault.phi.safety.domain_filter import (
    DomainFilter,
    FilterVocabulary,
    matches_known_identifier,
)
from phivault.phi.safety.protected_terms import (
    EXCLUDED_ENTITY_TYPES,
    FREQUENCY_TERMS,
    MEDICAL_TERMS,
    split_words,
)

__all__ = [
    "DomainFilter",
    "FilterVocabulary",
    "matches_known_identifier",
    "EXCLUDED_ENTITY_TYPES",
    "FREQUENCY_TERMS",
    "MEDICAL_TERMS",
    "split_words",
]
