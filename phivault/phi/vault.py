"""Vault writer: persist retained PHI and hand back stable reference ids.

The writer appends one unstructured entry per retained span. It does not
deduplicate by default, so re-sanitizing unchanged text on every update grows
the vault; ``dedupe_by_value`` reuses an identical existing entry instead.
"""

from __future__ import annotations

import logging
from typing import Sequence

from phivault.common.exceptions import VaultWriteError
from phivault.infra.safe_logging import entity_type_counts
from phivault.phi.ports import NewVaultEntry, PHIVaultStorePort, RetainedPhi
from phivault.phi.tokens import is_valid_vault_id, require_vault_id

logger = logging.getLogger(__name__)


def build_vault_entries(
    retained: Sequence[RetainedPhi],
    *,
    subject_id: str,
    owner_resource_type: str,
    owner_resource_id: str,
) -> list[NewVaultEntry]:
    """Attach owner metadata to retained PHI, validating owner references first."""
    require_vault_id(subject_id, "subject_id")
    require_vault_id(owner_resource_id, "owner_resource_id")
    return [
        NewVaultEntry(
            subject_id=subject_id,
            owner_resource_type=owner_resource_type,
            owner_resource_id=owner_resource_id,
            field_path=item.field_path,
            value=item.value,
            phi_type=item.phi_type,
        )
        for item in retained
    ]


class VaultWriter:
    """Append retained PHI to the vault store, preserving input order of ids."""

    def __init__(self, store: PHIVaultStorePort, *, dedupe_by_value: bool = False):
        self._store = store
        self._dedupe_by_value = dedupe_by_value

    async def write(self, entries: Sequence[NewVaultEntry]) -> list[str]:
        if not entries:
            return []

        try:
            if self._dedupe_by_value:
                ids = await self._write_deduped(entries)
            else:
                ids = await self._store.append_entries(list(entries))
        except VaultWriteError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Vault append failed",
                extra={"entry_count": len(entries), "error_type": type(exc).__name__},
            )
            raise VaultWriteError("Failed to append PHI vault entries", operation="append") from exc

        if len(ids) != len(entries) or not all(is_valid_vault_id(i) for i in ids):
            raise VaultWriteError(
                f"Vault store returned {len(ids)} ids for {len(entries)} entries",
                operation="append",
            )

        logger.info(
            "Vaulted PHI entries",
            extra={
                "entry_count": len(ids),
                "entity_types": entity_type_counts(e.phi_type for e in entries),
            },
        )
        return list(ids)

    async def _write_deduped(self, entries: Sequence[NewVaultEntry]) -> list[str]:
        ids: list[str | None] = []
        missing: list[NewVaultEntry] = []
        missing_positions: list[int] = []

        for position, entry in enumerate(entries):
            existing = await self._store.find_entry(entry)
            if existing is not None:
                ids.append(existing.id)
            else:
                ids.append(None)
                missing.append(entry)
                missing_positions.append(position)

        if missing:
            new_ids = await self._store.append_entries(missing)
            if len(new_ids) != len(missing):
                raise VaultWriteError(
                    f"Vault store returned {len(new_ids)} ids for {len(missing)} entries",
                    operation="append",
                )
            for position, new_id in zip(missing_positions, new_ids):
                ids[position] = new_id

        return [i for i in ids if i is not None]


__all__ = ["VaultWriter", "build_vault_entries"]
