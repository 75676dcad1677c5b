"""Vault identifiers and the embedded vault reference token grammar.

Sanitized text carries references of the form ``phi:vault[:<TYPE>]:<id>``.
The id segment must match the store's id format exactly or tokens become
unparsable, so id generation and the token pattern live together here.
"""

from __future__ import annotations

import os
import re
import time
from dataclasses import dataclass

from phivault.common.exceptions import InvalidIdentifierError

TOKEN_PREFIX = "phi:vault"
VAULT_ID_LENGTH = 24

_VAULT_ID_RE = re.compile(r"^[0-9a-f]{24}$")
_ENTITY_TYPE_RE = re.compile(r"^[A-Z_]+$")
VAULT_TOKEN_RE = re.compile(r"phi:vault(?::([A-Z_]+))?:([0-9a-f]{24})")


@dataclass(frozen=True)
class VaultReference:
    """A parsed vault reference token."""

    vault_id: str
    entity_type: str | None = None

    def render(self) -> str:
        return build_reference(self.vault_id, self.entity_type)


def new_vault_id() -> str:
    """Return a fresh 24-hex id: 4-byte big-endian timestamp + 8 random bytes."""
    return int(time.time()).to_bytes(4, "big").hex() + os.urandom(8).hex()


def is_valid_vault_id(value: object) -> bool:
    return isinstance(value, str) and bool(_VAULT_ID_RE.match(value))


def require_vault_id(value: object, identifier_name: str) -> str:
    """Return *value* if it is a well-formed id, else raise InvalidIdentifierError."""
    if not is_valid_vault_id(value):
        raise InvalidIdentifierError(identifier_name, value)
    return value  # type: ignore[return-value]


def build_reference(vault_id: str, entity_type: str | None = None) -> str:
    """Render ``phi:vault:<TYPE>:<id>``, omitting the type when unknown or not token-safe."""
    if entity_type and _ENTITY_TYPE_RE.match(entity_type):
        return f"{TOKEN_PREFIX}:{entity_type}:{vault_id}"
    return f"{TOKEN_PREFIX}:{vault_id}"


def find_references(text: str) -> list[VaultReference]:
    """Return every vault reference embedded in *text*, in order of appearance."""
    return [
        VaultReference(vault_id=match.group(2), entity_type=match.group(1))
        for match in VAULT_TOKEN_RE.finditer(text)
    ]


def contains_reference(text: str) -> bool:
    return TOKEN_PREFIX in text and VAULT_TOKEN_RE.search(text) is not None


__all__ = [
    "TOKEN_PREFIX",
    "VAULT_ID_LENGTH",
    "VAULT_TOKEN_RE",
    "VaultReference",
    "new_vault_id",
    "is_valid_vault_id",
    "require_vault_id",
    "build_reference",
    "find_references",
    "contains_reference",
]
