"""Ports/interfaces and value types for PHI detection, vaulting, and encryption.

These are intentionally lightweight so PHIService can swap recognizers and
vault stores (SQL, in-memory) without touching the pipeline.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from typing import Any, Mapping, Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class DetectionSpan:
    """A candidate sensitive span reported by the entity recognizer.

    Offsets are half-open character positions into a single field's text.
    """

    start: int
    end: int
    entity_type: str
    score: float = 0.5

    @property
    def length(self) -> int:
        return self.end - self.start

    def is_within(self, text: str) -> bool:
        return 0 <= self.start < self.end <= len(text)


@dataclass(frozen=True)
class RetainedPhi:
    """A span that survived overlap resolution and domain filtering."""

    span: DetectionSpan
    value: str
    field_path: str

    @property
    def phi_type(self) -> str:
        return self.span.entity_type


@dataclass(frozen=True)
class NewVaultEntry:
    """An unstructured vault entry about to be appended (no id yet)."""

    subject_id: str
    owner_resource_type: str
    owner_resource_id: str
    field_path: str
    value: str
    phi_type: str | None = None


@dataclass(frozen=True)
class VaultEntry:
    """A persisted, append-only unstructured vault entry."""

    id: str
    subject_id: str
    owner_resource_type: str
    owner_resource_id: str
    field_path: str
    value: str
    phi_type: str | None
    created_at: datetime
    updated_at: datetime


@dataclass
class StructuredVaultEntry:
    """The one-per-subject vault record for structured identifying fields."""

    PAYLOAD_FIELDS = (
        "legal_name",
        "preferred_name",
        "full_dob",
        "birth_year",
        "sex",
        "contact",
        "address",
        "relationship_note",
    )

    id: str
    subject_id: str
    legal_name: dict[str, Any] | None = None
    preferred_name: str | None = None
    full_dob: str | None = None
    birth_year: int | None = None
    sex: str | None = None
    contact: dict[str, Any] | None = None
    address: dict[str, Any] | None = None
    relationship_note: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def payload(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.PAYLOAD_FIELDS}

    def known_identifiers(self) -> list[str]:
        """Name variants on file, used to scope PERSON redaction to this subject."""
        names: list[str] = []
        legal = self.legal_name or {}
        given = (legal.get("given") or "").strip()
        family = (legal.get("family") or "").strip()
        full = " ".join(part for part in (given, family) if part)
        for candidate in (full, given, family, (self.preferred_name or "").strip()):
            if candidate and candidate not in names:
                names.append(candidate)
        return names


@dataclass
class DeidentifiedProfile:
    """Generalized demographics derived from a structured vault entry."""

    age: int | None = None
    birth_year: int | None = None
    sex: str | None = None
    location: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass
class SanitizedField:
    """Result of vaulting and substituting one text field."""

    field_path: str
    text: str
    vault_ids: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.vault_ids)


@runtime_checkable
class EntityRecognizerPort(Protocol):
    """Abstraction for the external entity-recognition service."""

    async def analyze(self, text: str, language: str = "en") -> list[DetectionSpan]:
        """Return candidate spans for *text*; no ordering is guaranteed."""


@runtime_checkable
class PHIEncryptionPort(Protocol):
    """Abstraction for encrypting/decrypting vaulted PHI values at rest."""

    def encrypt(self, plaintext: str) -> tuple[bytes, str, int]:
        """Return ciphertext bytes, algorithm name, and key version."""

    def decrypt(self, ciphertext: bytes, algorithm: str, key_version: int) -> str:
        """Return decrypted plaintext from ciphertext and metadata."""


@runtime_checkable
class PHIVaultStorePort(Protocol):
    """Persistence collaborator owning both unstructured and structured vault data."""

    async def append_entries(self, entries: Sequence[NewVaultEntry]) -> list[str]:
        """Append entries and return generated ids in input order."""

    async def find_entry(self, entry: NewVaultEntry) -> VaultEntry | None:
        """Return an existing entry with identical owner, field, value, and type."""

    async def get_entry(self, vault_id: str) -> VaultEntry | None:
        """Point lookup of one unstructured entry."""

    async def get_entries_for_resources(self, resource_ids: Sequence[str]) -> list[VaultEntry]:
        """Batched lookup of unstructured entries by owner resource id."""

    async def get_structured(self, vault_id: str) -> StructuredVaultEntry | None:
        """Point lookup of a structured entry by its own id."""

    async def get_structured_many(self, vault_ids: Sequence[str]) -> dict[str, StructuredVaultEntry]:
        """Batched lookup of structured entries keyed by vault id."""

    async def get_structured_by_subject(self, subject_id: str) -> StructuredVaultEntry | None:
        """Point lookup of the structured entry belonging to a subject."""

    async def update_structured(self, vault_id: str, payload: Mapping[str, Any]) -> bool:
        """Overwrite the given payload fields; False when no entry has *vault_id*."""

    async def insert_structured(self, subject_id: str, payload: Mapping[str, Any]) -> str:
        """Insert a new structured entry and return its id."""


def structured_payload_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Keep only keys a StructuredVaultEntry can hold."""
    allowed = {f.name for f in fields(StructuredVaultEntry)} & set(StructuredVaultEntry.PAYLOAD_FIELDS)
    return {key: value for key, value in payload.items() if key in allowed}


__all__ = [
    "DetectionSpan",
    "RetainedPhi",
    "NewVaultEntry",
    "VaultEntry",
    "StructuredVaultEntry",
    "DeidentifiedProfile",
    "SanitizedField",
    "EntityRecognizerPort",
    "PHIEncryptionPort",
    "PHIVaultStorePort",
    "structured_payload_fields",
]
