"""Create phi_vault_entries and structured_phi_vault tables.

Both tables hold Fernet ciphertext only. ``structured_phi_vault.subject_id``
is unique so concurrent first writes for one subject cannot both insert.
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3f9a1c7d2e40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "phi_vault_entries",
        sa.Column("id", sa.String(length=24), nullable=False),
        sa.Column("subject_id", sa.String(length=24), nullable=False),
        sa.Column("owner_resource_type", sa.String(length=100), nullable=False),
        sa.Column("owner_resource_id", sa.String(length=24), nullable=False),
        sa.Column("field_path", sa.String(length=255), nullable=False),
        sa.Column("phi_type", sa.String(length=100), nullable=True),
        sa.Column("encrypted_value", sa.LargeBinary(), nullable=False),
        sa.Column("value_hash", sa.String(length=64), nullable=False),
        sa.Column("encryption_algorithm", sa.String(length=50), server_default="FERNET", nullable=True),
        sa.Column("key_version", sa.Integer(), server_default="1", nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_phi_vault_entries_subject_id", "phi_vault_entries", ["subject_id"])
    op.create_index("ix_phi_vault_entries_owner_resource_id", "phi_vault_entries", ["owner_resource_id"])
    op.create_index(
        "ix_phi_vault_entries_dedupe",
        "phi_vault_entries",
        ["owner_resource_id", "field_path", "value_hash"],
    )

    op.create_table(
        "structured_phi_vault",
        sa.Column("id", sa.String(length=24), nullable=False),
        sa.Column("subject_id", sa.String(length=24), nullable=False),
        sa.Column("encrypted_payload", sa.LargeBinary(), nullable=False),
        sa.Column("encryption_algorithm", sa.String(length=50), server_default="FERNET", nullable=True),
        sa.Column("key_version", sa.Integer(), server_default="1", nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("subject_id", name="uq_structured_phi_vault_subject_id"),
    )


def downgrade() -> None:
    op.drop_table("structured_phi_vault")
    op.drop_index("ix_phi_vault_entries_dedupe", table_name="phi_vault_entries")
    op.drop_index("ix_phi_vault_entries_owner_resource_id", table_name="phi_vault_entries")
    op.drop_index("ix_phi_vault_entries_subject_id", table_name="phi_vault_entries")
    op.drop_table("phi_vault_entries")
