"""PHIService orchestrates detection, vaulting, substitution, and de-identification.

Only this service and the vault store touch raw PHI; record storage outside
the vault receives sanitized text and a weak ``phi_vault_id`` reference.

Write path (per field, strictly sequential): recognizer -> overlap
resolution -> domain filter -> vault append -> token substitution. Separate
fields of one record run concurrently.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Mapping, Sequence

from phivault.common.exceptions import PHIVaultError
from phivault.phi.deidentify import compute_demographics, deidentify_record, deidentify_string
from phivault.phi.ports import (
    DeidentifiedProfile,
    EntityRecognizerPort,
    NewVaultEntry,
    PHIVaultStorePort,
    RetainedPhi,
    SanitizedField,
    StructuredVaultEntry,
    VaultEntry,
)
from phivault.phi.registry import PHIFieldSpec, get_path, get_phi_fields, set_path
from phivault.phi.resolver import resolve_overlaps
from phivault.phi.safety.domain_filter import DomainFilter
from phivault.phi.sanitizer import sanitize
from phivault.phi.structured import (
    DEFAULT_PHI_KEY,
    SeparationResult,
    separate_structured_phi,
    upsert_structured_phi,
)
from phivault.phi.tokens import VAULT_TOKEN_RE, build_reference, require_vault_id
from phivault.phi.vault import VaultWriter, build_vault_entries

logger = logging.getLogger(__name__)


async def _gather_cancel_on_error(jobs: Sequence[Awaitable[SanitizedField]]) -> list[SanitizedField]:
    """Run field jobs concurrently; the first failure cancels the others and is raised.

    Entries a sibling field appended before the cancellation stay in the vault
    (append-only), unreferenced by any stored record.
    """
    tasks = [asyncio.ensure_future(job) for job in jobs]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        raise
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
    for task in tasks:
        if task in done and not task.cancelled() and task.exception() is not None:
            raise task.exception()
    return [task.result() for task in tasks]


@dataclass
class SubjectPHIResult:
    """Outcome of storing a subject record's structured PHI."""

    sanitized: dict[str, Any]
    phi_vault_id: str | None = None
    deidentified_profile: DeidentifiedProfile | None = None


class PHIService:
    """Caller-facing PHI workflows for the record layer."""

    def __init__(
        self,
        recognizer: EntityRecognizerPort,
        store: PHIVaultStorePort,
        domain_filter: DomainFilter | None = None,
        *,
        language: str = "en",
        dedupe_vault_writes: bool = False,
        structured_phi_key: str = DEFAULT_PHI_KEY,
    ):
        self._recognizer = recognizer
        self._store = store
        self._filter = domain_filter or DomainFilter()
        self._writer = VaultWriter(store, dedupe_by_value=dedupe_vault_writes)
        self._language = language
        self._structured_phi_key = structured_phi_key

    @property
    def store(self) -> PHIVaultStorePort:
        return self._store

    # -- write path -------------------------------------------------------

    async def detect_and_filter(
        self,
        text: str,
        known_identifiers: Sequence[str] | None = None,
        *,
        field_path: str = "text",
    ) -> list[RetainedPhi]:
        """Scan *text* without vaulting: recognizer, overlap resolution, domain filter."""
        if not isinstance(text, str) or not text:
            return []
        spans = await self._recognizer.analyze(text, self._language)
        # Existing references (text sanitized on an earlier write) are never re-vaulted.
        token_ranges = [m.span() for m in VAULT_TOKEN_RE.finditer(text)]
        candidates = [
            span
            for span in spans
            if span.is_within(text)
            and not any(span.start < end and start < span.end for start, end in token_ranges)
        ]
        resolved = resolve_overlaps(candidates)
        return self._filter.apply(text, resolved, field_path=field_path, known_identifiers=known_identifiers)

    async def vault_and_sanitize_text(
        self,
        text: str,
        *,
        subject_id: str,
        owner_resource_type: str,
        owner_resource_id: str,
        field_path: str,
        known_identifiers: Sequence[str] | None = None,
    ) -> SanitizedField:
        """Vault the PHI found in one text field and return the tokenized text.

        Owner ids are validated before anything is detected or stored. If the
        vault append fails the error propagates and no substitution happens.
        """
        require_vault_id(subject_id, "subject_id")
        require_vault_id(owner_resource_id, "owner_resource_id")

        retained = await self.detect_and_filter(text, known_identifiers, field_path=field_path)
        if not retained:
            return SanitizedField(field_path=field_path, text=text)

        entries = build_vault_entries(
            retained,
            subject_id=subject_id,
            owner_resource_type=owner_resource_type,
            owner_resource_id=owner_resource_id,
        )
        vault_ids = await self._writer.write(entries)
        return SanitizedField(field_path=field_path, text=sanitize(text, retained, vault_ids), vault_ids=vault_ids)

    async def _vault_whole_field(
        self,
        value: str,
        spec: PHIFieldSpec,
        *,
        subject_id: str,
        owner_resource_type: str,
        owner_resource_id: str,
    ) -> SanitizedField:
        entry = NewVaultEntry(
            subject_id=subject_id,
            owner_resource_type=owner_resource_type,
            owner_resource_id=owner_resource_id,
            field_path=spec.path,
            value=value,
            phi_type=spec.phi_type,
        )
        (vault_id,) = await self._writer.write([entry])
        return SanitizedField(
            field_path=spec.path,
            text=build_reference(vault_id, spec.phi_type),
            vault_ids=[vault_id],
        )

    async def sanitize_record(
        self,
        resource_type: str,
        resource_id: str,
        subject_id: str,
        payload: Mapping[str, Any],
        known_identifiers: Sequence[str] | None = None,
        fields: Sequence[PHIFieldSpec] | None = None,
    ) -> dict[str, Any]:
        """Return a copy of *payload* with every PHI field vaulted and tokenized.

        Fields come from the resource registry unless *fields* is given.
        Non-string or empty values are skipped. Any vault failure aborts the
        whole record so the caller can reject the write.
        """
        require_vault_id(subject_id, "subject_id")
        require_vault_id(resource_id, "owner_resource_id")

        specs = tuple(fields) if fields is not None else get_phi_fields(resource_type)
        jobs = []
        for spec in specs:
            value = get_path(payload, spec.path)
            if not isinstance(value, str) or not value.strip():
                continue
            owner = {
                "subject_id": subject_id,
                "owner_resource_type": resource_type,
                "owner_resource_id": resource_id,
            }
            if spec.strategy == "whole-field":
                if VAULT_TOKEN_RE.fullmatch(value.strip()):
                    continue  # already vaulted on a previous write
                jobs.append(self._vault_whole_field(value, spec, **owner))
            else:
                jobs.append(
                    self.vault_and_sanitize_text(
                        value, field_path=spec.path, known_identifiers=known_identifiers, **owner
                    )
                )

        sanitized: dict[str, Any] = dict(payload)
        if not jobs:
            return sanitized

        results = await _gather_cancel_on_error(jobs)
        vaulted = 0
        for result in results:
            if result.changed:
                sanitized = set_path(sanitized, result.field_path, result.text)
                vaulted += len(result.vault_ids)

        logger.info(
            "Sanitized record",
            extra={
                "resource_type": resource_type,
                "fields_scanned": len(jobs),
                "entries_vaulted": vaulted,
            },
        )
        return sanitized

    # -- structured PHI ---------------------------------------------------

    def separate_structured_phi(self, record: Mapping[str, Any]) -> SeparationResult:
        return separate_structured_phi(record, key=self._structured_phi_key)

    async def upsert_structured_phi(
        self,
        subject_id: str,
        phi_payload: Mapping[str, Any],
        existing_vault_id: str | None = None,
    ) -> str:
        return await upsert_structured_phi(self._store, subject_id, phi_payload, existing_vault_id)

    async def store_subject_phi(
        self,
        subject_id: str,
        record: Mapping[str, Any],
        existing_vault_id: str | None = None,
    ) -> SubjectPHIResult:
        """Split a subject record, vault its PHI, and derive its generalized profile."""
        separation = self.separate_structured_phi(record)
        if separation.phi_payload is None:
            return SubjectPHIResult(sanitized=separation.sanitized, phi_vault_id=existing_vault_id)

        vault_id = await self.upsert_structured_phi(subject_id, separation.phi_payload, existing_vault_id)
        return SubjectPHIResult(
            sanitized=separation.sanitized,
            phi_vault_id=vault_id,
            deidentified_profile=compute_demographics(separation.phi_payload),
        )

    async def known_identifiers_for_subject(self, subject_id: str) -> list[str]:
        """Name variants on file for *subject_id* (empty when none are vaulted)."""
        try:
            entry = await self._store.get_structured_by_subject(subject_id)
        except PHIVaultError as exc:
            logger.warning("Known identifier lookup failed", extra={"error_type": type(exc).__name__})
            return []
        return entry.known_identifiers() if entry is not None else []

    # -- read path --------------------------------------------------------

    def deidentify(self, text: str, entries: Sequence[VaultEntry] | Mapping[str, VaultEntry]) -> str:
        return deidentify_string(text, entries)

    async def deidentify_record(self, record: Any, resource_ids: Sequence[str]) -> Any:
        """Fetch vault entries for *resource_ids* and de-identify every string in *record*.

        Lookup failures degrade to generic redaction instead of raising.
        """
        try:
            entries = await self._store.get_entries_for_resources(list(resource_ids))
        except PHIVaultError as exc:
            logger.warning(
                "Vault lookup failed; redacting all references generically",
                extra={"error_type": type(exc).__name__},
            )
            entries = []
        return deidentify_record(record, entries)

    def compute_demographics(
        self,
        entry: StructuredVaultEntry | Mapping[str, Any],
        today: dt.date | None = None,
    ) -> DeidentifiedProfile:
        return compute_demographics(entry, today=today)

    async def demographics_for_subject(
        self, phi_vault_id: str, today: dt.date | None = None
    ) -> DeidentifiedProfile | None:
        try:
            entry = await self._store.get_structured(phi_vault_id)
        except PHIVaultError as exc:
            logger.warning("Structured vault lookup failed", extra={"error_type": type(exc).__name__})
            return None
        return compute_demographics(entry, today=today) if entry is not None else None

    async def demographics_for_subjects(
        self, phi_vault_ids: Sequence[str], today: dt.date | None = None
    ) -> dict[str, DeidentifiedProfile]:
        try:
            entries = await self._store.get_structured_many(list(phi_vault_ids))
        except PHIVaultError as exc:
            logger.warning("Structured vault batch lookup failed", extra={"error_type": type(exc).__name__})
            return {}
        return {vault_id: compute_demographics(entry, today=today) for vault_id, entry in entries.items()}


__all__ = ["PHIService", "SubjectPHIResult"]
