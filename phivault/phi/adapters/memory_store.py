"""In-memory vault store for tests and local demos.

Implements the same PHIVaultStorePort contract as the SQL store, including
the unique-subject rule for structured entries. Values are held in plain
form in process memory; never point this at real PHI.
"""

from __future__ import annotations

import asyncio
import copy
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from phivault.common.exceptions import VaultWriteError
from phivault.phi.ports import (
    NewVaultEntry,
    PHIVaultStorePort,
    StructuredVaultEntry,
    VaultEntry,
    structured_payload_fields,
)
from phivault.phi.tokens import new_vault_id


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryPHIVaultStore(PHIVaultStorePort):
    def __init__(self) -> None:
        self.entries: dict[str, VaultEntry] = {}
        self.structured: dict[str, StructuredVaultEntry] = {}
        self._lock = asyncio.Lock()

    async def append_entries(self, entries: Sequence[NewVaultEntry]) -> list[str]:
        now = _now()
        ids: list[str] = []
        async with self._lock:
            for entry in entries:
                vault_id = new_vault_id()
                self.entries[vault_id] = VaultEntry(
                    id=vault_id,
                    subject_id=entry.subject_id,
                    owner_resource_type=entry.owner_resource_type,
                    owner_resource_id=entry.owner_resource_id,
                    field_path=entry.field_path,
                    value=entry.value,
                    phi_type=entry.phi_type,
                    created_at=now,
                    updated_at=now,
                )
                ids.append(vault_id)
        return ids

    async def find_entry(self, entry: NewVaultEntry) -> VaultEntry | None:
        for stored in self.entries.values():
            if (
                stored.subject_id == entry.subject_id
                and stored.owner_resource_id == entry.owner_resource_id
                and stored.field_path == entry.field_path
                and stored.value == entry.value
                and stored.phi_type == entry.phi_type
            ):
                return stored
        return None

    async def get_entry(self, vault_id: str) -> VaultEntry | None:
        return self.entries.get(vault_id)

    async def get_entries_for_resources(self, resource_ids: Sequence[str]) -> list[VaultEntry]:
        wanted = set(resource_ids)
        if not wanted:
            return []
        return [e for e in self.entries.values() if e.owner_resource_id in wanted]

    async def get_structured(self, vault_id: str) -> StructuredVaultEntry | None:
        entry = self.structured.get(vault_id)
        return copy.deepcopy(entry) if entry else None

    async def get_structured_many(self, vault_ids: Sequence[str]) -> dict[str, StructuredVaultEntry]:
        return {
            vault_id: copy.deepcopy(self.structured[vault_id])
            for vault_id in vault_ids
            if vault_id in self.structured
        }

    async def get_structured_by_subject(self, subject_id: str) -> StructuredVaultEntry | None:
        for entry in self.structured.values():
            if entry.subject_id == subject_id:
                return copy.deepcopy(entry)
        return None

    async def update_structured(self, vault_id: str, payload: Mapping[str, Any]) -> bool:
        async with self._lock:
            entry = self.structured.get(vault_id)
            if entry is None:
                return False
            for key, value in structured_payload_fields(payload).items():
                setattr(entry, key, copy.deepcopy(value))
            entry.updated_at = _now()
            return True

    async def insert_structured(self, subject_id: str, payload: Mapping[str, Any]) -> str:
        async with self._lock:
            if any(e.subject_id == subject_id for e in self.structured.values()):
                raise VaultWriteError("Structured PHI vault entry already exists for subject", operation="insert")
            now = _now()
            vault_id = new_vault_id()
            self.structured[vault_id] = StructuredVaultEntry(
                id=vault_id,
                subject_id=subject_id,
                created_at=now,
                updated_at=now,
                **copy.deepcopy(structured_payload_fields(payload)),
            )
            return vault_id


__all__ = ["MemoryPHIVaultStore"]
