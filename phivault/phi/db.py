"""SQLAlchemy base, shared column types, and session factory for vault tables.

ORM configuration is scoped to the PHI vault so the store can be pointed at a
dedicated database via ``PHI_DATABASE_URL``.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()
metadata = Base.metadata

# 24-hex ids (see phivault.phi.tokens); the token grammar depends on this width.
VaultIdType = String(24)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def engine_kwargs(url: str) -> dict:
    """Configure engine options for SQLite vs Postgres."""
    kwargs: dict = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        # In-memory SQLite needs StaticPool to share state across connections
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
    return kwargs


def create_vault_engine(url: str, *, create_tables: bool = False) -> Engine:
    engine = create_engine(url, **engine_kwargs(url))
    if create_tables:
        import phivault.phi.models  # noqa: F401

        metadata.create_all(engine)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


__all__ = [
    "Base",
    "metadata",
    "VaultIdType",
    "utcnow",
    "engine_kwargs",
    "create_vault_engine",
    "create_session_factory",
]
