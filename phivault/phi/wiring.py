"""Wiring for PHIService from environment settings.

Builds the SQL vault store (Fernet-encrypted), the Presidio recognizer client,
and the domain filter. Callers that already own a recognizer or store (tests,
demos) can pass them in directly.
"""

from __future__ import annotations

import logging

from phivault.config.settings import PHISettings, get_phi_settings
from phivault.observability.logging_config import configure_logging
from phivault.phi.adapters.fernet_encryption import FernetEncryptionAdapter
from phivault.phi.adapters.presidio_client import PresidioAnalyzerClient
from phivault.phi.adapters.sqlalchemy_store import SqlAlchemyPHIVaultStore
from phivault.phi.db import create_session_factory, create_vault_engine
from phivault.phi.ports import EntityRecognizerPort, PHIVaultStorePort
from phivault.phi.safety.domain_filter import DomainFilter, FilterVocabulary
from phivault.phi.service import PHIService

logger = logging.getLogger(__name__)


def build_vault_store(settings: PHISettings, *, create_tables: bool = False) -> SqlAlchemyPHIVaultStore:
    engine = create_vault_engine(settings.database_url, create_tables=create_tables)
    encryption = FernetEncryptionAdapter(settings.encryption_key, key_version=settings.encryption_key_version)
    return SqlAlchemyPHIVaultStore(create_session_factory(engine), encryption)


def build_phi_service(
    settings: PHISettings | None = None,
    *,
    recognizer: EntityRecognizerPort | None = None,
    store: PHIVaultStorePort | None = None,
    vocabulary: FilterVocabulary | None = None,
) -> PHIService:
    """Construct a PHIService with configured adapters (no raw PHI logging)."""
    settings = settings or get_phi_settings()
    configure_logging(settings.log_level, structured=settings.structured_logs)

    if settings.recognizer_failure_policy == "open":
        logger.warning(
            "Recognizer failure policy is fail-open: analyzer outages leave text unredacted",
            extra={"analyzer_url": settings.analyzer_url},
        )

    return PHIService(
        recognizer=recognizer if recognizer is not None else PresidioAnalyzerClient.from_settings(settings),
        store=store if store is not None else build_vault_store(settings),
        domain_filter=DomainFilter(vocabulary),
        language=settings.analyzer_language,
        dedupe_vault_writes=settings.dedupe_vault_writes,
        structured_phi_key=settings.structured_phi_key,
    )


__all__ = ["build_phi_service", "build_vault_store"]
