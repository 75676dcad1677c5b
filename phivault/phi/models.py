"""PHI vault ORM models.

- Raw PHI lives only in these tables, encrypted (``encrypted_value`` /
  ``encrypted_payload``).
- Record tables outside the vault hold sanitized text with
  ``phi:vault`` references and, for subjects, a weak ``phi_vault_id`` pointer.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Index, Integer, LargeBinary, String

from phivault.phi.db import Base, VaultIdType, utcnow


class PHIVaultEntryRow(Base):
    """Append-only unstructured PHI value cut out of a record's text field."""

    __tablename__ = "phi_vault_entries"

    id = Column(VaultIdType, primary_key=True)
    subject_id = Column(VaultIdType, nullable=False, index=True)
    owner_resource_type = Column(String(100), nullable=False)
    owner_resource_id = Column(VaultIdType, nullable=False, index=True)
    field_path = Column(String(255), nullable=False)
    phi_type = Column(String(100), nullable=True)

    encrypted_value = Column(LargeBinary, nullable=False)
    value_hash = Column(String(64), nullable=False)
    encryption_algorithm = Column(String(50), default="FERNET")
    key_version = Column(Integer, default=1)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_phi_vault_entries_dedupe", "owner_resource_id", "field_path", "value_hash"),
    )


class StructuredPHIVaultRow(Base):
    """One-per-subject structured identifying fields (name, DOB, contact, address)."""

    __tablename__ = "structured_phi_vault"

    id = Column(VaultIdType, primary_key=True)
    subject_id = Column(VaultIdType, nullable=False, unique=True)

    encrypted_payload = Column(LargeBinary, nullable=False)
    encryption_algorithm = Column(String(50), default="FERNET")
    key_version = Column(Integer, default=1)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


__all__ = ["PHIVaultEntryRow", "StructuredPHIVaultRow"]
