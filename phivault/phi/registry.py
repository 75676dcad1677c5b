"""Per-resource PHI field definitions and dotted-path helpers.

Each record type declares which of its fields may carry PHI. ``substring``
fields are free text run through the recognizer pipeline; ``whole-field``
fields are identifiers vaulted in full, without the recognizer or the domain
filter, so a whole-field PERSON value is vaulted even when it is not among
the subject's known identifiers.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Literal, Mapping

Strategy = Literal["substring", "whole-field"]

_MISSING = object()


@dataclass(frozen=True)
class PHIFieldSpec:
    path: str
    strategy: Strategy = "substring"
    phi_type: str = "ID"  # whole-field only


def _notes(*extra: PHIFieldSpec) -> tuple[PHIFieldSpec, ...]:
    return (PHIFieldSpec("notes"),) + extra


RESOURCE_PHI_FIELDS: dict[str, tuple[PHIFieldSpec, ...]] = {
    "provider": _notes(),
    "visit": _notes(PHIFieldSpec("reason")),
    "prescription": _notes(PHIFieldSpec("instructions")),
    "lab": _notes(),
    "treatment": _notes(PHIFieldSpec("description")),
    "condition": _notes(),
    "allergy": _notes(),
    "immunization": _notes(),
    "vital_signs": _notes(),
    "procedure": _notes(PHIFieldSpec("description")),
    "imaging": _notes(PHIFieldSpec("findings")),
    "insurance": _notes(
        PHIFieldSpec("policy_number", "whole-field", "ID"),
        PHIFieldSpec("group_number", "whole-field", "ID"),
        PHIFieldSpec("subscriber_name", "whole-field", "PERSON"),
        PHIFieldSpec("phone", "whole-field", "PHONE_NUMBER"),
    ),
}


def get_phi_fields(resource_type: str) -> tuple[PHIFieldSpec, ...]:
    return RESOURCE_PHI_FIELDS.get(resource_type, ())


def get_path(record: Any, path: str, default: Any = None) -> Any:
    """Read a dotted path from nested mappings; *default* when any hop is missing."""
    node = record
    for part in path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return default
        node = node[part]
    return node


def set_path(record: dict[str, Any], path: str, value: Any) -> dict[str, Any]:
    """Return a copy of *record* with *path* set to *value*; *record* is not mutated."""
    updated = copy.deepcopy(record)
    parts = path.split(".")
    node = updated
    for part in parts[:-1]:
        child = node.get(part, _MISSING)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value
    return updated


__all__ = ["PHIFieldSpec", "RESOURCE_PHI_FIELDS", "Strategy", "get_phi_fields", "get_path", "set_path"]
