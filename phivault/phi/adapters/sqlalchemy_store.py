"""SQLAlchemy-backed vault store.

Values are encrypted through a PHIEncryptionPort before they reach the
database. Session work is blocking, so each call runs in the event loop's
executor; the structured table's unique ``subject_id`` is the only guard
against concurrent inserts for one subject.
"""

from __future__ import annotations

import asyncio
import functools
import hashlib
import json
import logging
from concurrent.futures import Executor
from typing import Any, Callable, Mapping, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from phivault.common.exceptions import VaultLookupError, VaultWriteError
from phivault.phi.models import PHIVaultEntryRow, StructuredPHIVaultRow
from phivault.phi.ports import (
    NewVaultEntry,
    PHIEncryptionPort,
    PHIVaultStorePort,
    StructuredVaultEntry,
    VaultEntry,
    structured_payload_fields,
)
from phivault.phi.tokens import new_vault_id

logger = logging.getLogger(__name__)

R = TypeVar("R")


def hash_value(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


class SqlAlchemyPHIVaultStore(PHIVaultStorePort):
    def __init__(
        self,
        session_factory: sessionmaker,
        encryption: PHIEncryptionPort,
        executor: Executor | None = None,
    ):
        self._session_factory = session_factory
        self._encryption = encryption
        self._executor = executor

    async def _run(self, fn: Callable[..., R], *args: Any) -> R:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(fn, *args))

    # -- row conversion ---------------------------------------------------

    def _to_entry(self, row: PHIVaultEntryRow) -> VaultEntry:
        return VaultEntry(
            id=row.id,
            subject_id=row.subject_id,
            owner_resource_type=row.owner_resource_type,
            owner_resource_id=row.owner_resource_id,
            field_path=row.field_path,
            value=self._encryption.decrypt(row.encrypted_value, row.encryption_algorithm, row.key_version),
            phi_type=row.phi_type,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _decrypt_payload(self, row: StructuredPHIVaultRow) -> dict[str, Any]:
        plaintext = self._encryption.decrypt(row.encrypted_payload, row.encryption_algorithm, row.key_version)
        return json.loads(plaintext)

    def _encrypt_payload(self, row: StructuredPHIVaultRow, payload: Mapping[str, Any]) -> None:
        ciphertext, algorithm, key_version = self._encryption.encrypt(json.dumps(dict(payload), default=str))
        row.encrypted_payload = ciphertext
        row.encryption_algorithm = algorithm
        row.key_version = key_version

    def _to_structured(self, row: StructuredPHIVaultRow) -> StructuredVaultEntry:
        return StructuredVaultEntry(
            id=row.id,
            subject_id=row.subject_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
            **structured_payload_fields(self._decrypt_payload(row)),
        )

    # -- unstructured entries ---------------------------------------------

    def _append_sync(self, entries: Sequence[NewVaultEntry]) -> list[str]:
        ids: list[str] = []
        with self._session_factory() as session:
            try:
                for entry in entries:
                    ciphertext, algorithm, key_version = self._encryption.encrypt(entry.value)
                    row = PHIVaultEntryRow(
                        id=new_vault_id(),
                        subject_id=entry.subject_id,
                        owner_resource_type=entry.owner_resource_type,
                        owner_resource_id=entry.owner_resource_id,
                        field_path=entry.field_path,
                        phi_type=entry.phi_type,
                        encrypted_value=ciphertext,
                        value_hash=hash_value(entry.value),
                        encryption_algorithm=algorithm,
                        key_version=key_version,
                    )
                    session.add(row)
                    ids.append(row.id)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise VaultWriteError("Failed to persist PHI vault entries", operation="append") from exc
        return ids

    async def append_entries(self, entries: Sequence[NewVaultEntry]) -> list[str]:
        if not entries:
            return []
        return await self._run(self._append_sync, list(entries))

    def _lookup(self, operation: str, fn: Callable[[Session], R]) -> R:
        with self._session_factory() as session:
            try:
                return fn(session)
            except SQLAlchemyError as exc:
                raise VaultLookupError("PHI vault lookup failed", operation=operation) from exc
            except ValueError as exc:
                # Undecryptable or corrupt row (wrong or retired key, bad JSON payload).
                raise VaultLookupError("PHI vault entry could not be decrypted", operation=operation) from exc

    async def find_entry(self, entry: NewVaultEntry) -> VaultEntry | None:
        def _query(session: Session) -> VaultEntry | None:
            stmt = (
                select(PHIVaultEntryRow)
                .where(
                    PHIVaultEntryRow.subject_id == entry.subject_id,
                    PHIVaultEntryRow.owner_resource_id == entry.owner_resource_id,
                    PHIVaultEntryRow.field_path == entry.field_path,
                    PHIVaultEntryRow.value_hash == hash_value(entry.value),
                    PHIVaultEntryRow.phi_type.is_(None)
                    if entry.phi_type is None
                    else PHIVaultEntryRow.phi_type == entry.phi_type,
                )
                .order_by(PHIVaultEntryRow.created_at)
                .limit(1)
            )
            row = session.scalars(stmt).first()
            return self._to_entry(row) if row is not None else None

        return await self._run(self._lookup, "find_entry", _query)

    async def get_entry(self, vault_id: str) -> VaultEntry | None:
        def _query(session: Session) -> VaultEntry | None:
            row = session.get(PHIVaultEntryRow, vault_id)
            return self._to_entry(row) if row is not None else None

        return await self._run(self._lookup, "get_entry", _query)

    async def get_entries_for_resources(self, resource_ids: Sequence[str]) -> list[VaultEntry]:
        wanted = list(dict.fromkeys(resource_ids))
        if not wanted:
            return []

        def _query(session: Session) -> list[VaultEntry]:
            stmt = select(PHIVaultEntryRow).where(PHIVaultEntryRow.owner_resource_id.in_(wanted))
            return [self._to_entry(row) for row in session.scalars(stmt)]

        return await self._run(self._lookup, "get_entries_for_resources", _query)

    # -- structured entries -----------------------------------------------

    async def get_structured(self, vault_id: str) -> StructuredVaultEntry | None:
        def _query(session: Session) -> StructuredVaultEntry | None:
            row = session.get(StructuredPHIVaultRow, vault_id)
            return self._to_structured(row) if row is not None else None

        return await self._run(self._lookup, "get_structured", _query)

    async def get_structured_many(self, vault_ids: Sequence[str]) -> dict[str, StructuredVaultEntry]:
        wanted = list(dict.fromkeys(vault_ids))
        if not wanted:
            return {}

        def _query(session: Session) -> dict[str, StructuredVaultEntry]:
            stmt = select(StructuredPHIVaultRow).where(StructuredPHIVaultRow.id.in_(wanted))
            return {row.id: self._to_structured(row) for row in session.scalars(stmt)}

        return await self._run(self._lookup, "get_structured_many", _query)

    async def get_structured_by_subject(self, subject_id: str) -> StructuredVaultEntry | None:
        def _query(session: Session) -> StructuredVaultEntry | None:
            stmt = select(StructuredPHIVaultRow).where(StructuredPHIVaultRow.subject_id == subject_id)
            row = session.scalars(stmt).first()
            return self._to_structured(row) if row is not None else None

        return await self._run(self._lookup, "get_structured_by_subject", _query)

    def _update_structured_sync(self, vault_id: str, payload: Mapping[str, Any]) -> bool:
        with self._session_factory() as session:
            try:
                row = session.get(StructuredPHIVaultRow, vault_id)
                if row is None:
                    logger.warning("Structured PHI vault entry not found for update", extra={"phi_vault_id": vault_id})
                    return False
                merged = self._decrypt_payload(row)
                merged.update(structured_payload_fields(payload))
                self._encrypt_payload(row, merged)
                session.commit()
            except (SQLAlchemyError, ValueError) as exc:
                session.rollback()
                raise VaultWriteError("Failed to update structured PHI vault entry", operation="update") from exc
        return True

    async def update_structured(self, vault_id: str, payload: Mapping[str, Any]) -> bool:
        return await self._run(self._update_structured_sync, vault_id, dict(payload))

    def _insert_structured_sync(self, subject_id: str, payload: Mapping[str, Any]) -> str:
        with self._session_factory() as session:
            row = StructuredPHIVaultRow(id=new_vault_id(), subject_id=subject_id)
            self._encrypt_payload(row, structured_payload_fields(payload))
            try:
                session.add(row)
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise VaultWriteError(
                    "Structured PHI vault entry already exists for subject", operation="insert"
                ) from exc
            except SQLAlchemyError as exc:
                session.rollback()
                raise VaultWriteError("Failed to insert structured PHI vault entry", operation="insert") from exc
            return row.id

    async def insert_structured(self, subject_id: str, payload: Mapping[str, Any]) -> str:
        return await self._run(self._insert_structured_sync, subject_id, dict(payload))


__all__ = ["SqlAlchemyPHIVaultStore", "hash_value"]
