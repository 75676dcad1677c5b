"""Structured PHI separation and the one-per-subject vault upsert.

A subject record may carry a nested identifying sub-object (``phi`` by
default). It is split off before the record is persisted and stored in the
structured vault; the subject keeps only the vault id as a weak reference.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from phivault.common.exceptions import VaultWriteError
from phivault.phi.ports import PHIVaultStorePort, structured_payload_fields
from phivault.phi.tokens import require_vault_id

logger = logging.getLogger(__name__)

DEFAULT_PHI_KEY = "phi"


@dataclass
class SeparationResult:
    sanitized: dict[str, Any]
    phi_payload: dict[str, Any] | None = None


def has_any_value(value: Any) -> bool:
    """Deep check for at least one meaningful value."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set)):
        return any(has_any_value(item) for item in value)
    if isinstance(value, Mapping):
        return any(has_any_value(item) for item in value.values())
    return True


def has_phi_payload(phi: Any) -> bool:
    return isinstance(phi, Mapping) and has_any_value(phi)


def separate_structured_phi(record: Mapping[str, Any], key: str = DEFAULT_PHI_KEY) -> SeparationResult:
    """Split *record* into its non-identifying remainder and the PHI sub-object.

    The PHI key is always removed from the remainder; the payload is returned
    only when it holds a real value somewhere.
    """
    if not isinstance(record, Mapping) or key not in record:
        return SeparationResult(sanitized=dict(record) if isinstance(record, Mapping) else record)

    sanitized = {k: v for k, v in record.items() if k != key}
    phi = record[key]
    if has_phi_payload(phi):
        return SeparationResult(sanitized=sanitized, phi_payload=dict(phi))
    return SeparationResult(sanitized=sanitized)


async def upsert_structured_phi(
    store: PHIVaultStorePort,
    subject_id: str,
    phi_payload: Mapping[str, Any],
    existing_vault_id: str | None = None,
) -> str:
    """Create or update the subject's structured vault entry and return its id.

    Order: known vault id, then lookup by subject, then insert. A known id
    that matches no entry falls through to the later steps, so the returned
    id always names a stored entry. Concurrent upserts for one subject rely on
    the store's unique subject constraint.
    """
    require_vault_id(subject_id, "subject_id")
    if existing_vault_id is not None:
        require_vault_id(existing_vault_id, "existing_vault_id")

    payload = structured_payload_fields(phi_payload)
    dropped = sorted(set(phi_payload) - set(payload))
    if dropped:
        logger.warning("Ignoring unsupported structured PHI keys", extra={"keys": dropped})

    try:
        vault_id, operation = None, None
        if existing_vault_id and await store.update_structured(existing_vault_id, payload):
            vault_id, operation = existing_vault_id, "update_by_id"
        elif existing_vault_id:
            logger.warning(
                "Stale structured PHI vault id; falling back to subject lookup",
                extra={"phi_vault_id": existing_vault_id},
            )

        if vault_id is None:
            existing = await store.get_structured_by_subject(subject_id)
            if existing is not None and await store.update_structured(existing.id, payload):
                vault_id, operation = existing.id, "update_by_subject"
            else:
                vault_id = await store.insert_structured(subject_id, payload)
                operation = "insert"
    except VaultWriteError:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.error("Structured PHI upsert failed", extra={"error_type": type(exc).__name__})
        raise VaultWriteError("Failed to upsert structured PHI vault entry", operation="upsert") from exc

    logger.info("Structured PHI vault upserted", extra={"operation": operation, "phi_vault_id": vault_id})
    return vault_id


__all__ = [
    "DEFAULT_PHI_KEY",
    "SeparationResult",
    "has_any_value",
    "has_phi_payload",
    "separate_structured_phi",
    "upsert_structured_phi",
]
