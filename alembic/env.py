"""Migrations for phivault's two encrypted tables.

Targets ``phivault.phi.db.metadata`` (``phi_vault_entries`` and
``structured_phi_vault``). The URL resolves like ``PHISettings.database_url``:
``PHI_DATABASE_URL``, then ``DATABASE_URL``, then ``sqlalchemy.url`` from alembic.ini.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from phivault.phi.db import metadata as target_metadata
# Import models so metadata is populated
import phivault.phi.models  # noqa: F401


config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def get_url() -> str:
    default_url = config.get_main_option("sqlalchemy.url")
    return os.getenv("PHI_DATABASE_URL") or os.getenv("DATABASE_URL", default_url)


def run_migrations_offline() -> None:
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = get_url()

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
