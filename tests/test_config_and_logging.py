"""Tests for settings, wiring, and structured logging."""

import json
import logging

import pytest
from cryptography.fernet import Fernet
from pydantic import ValidationError

from phivault.config.settings import PHISettings
from phivault.infra.safe_logging import entity_type_counts, safe_log_text
from phivault.observability.logging_config import StructuredFormatter, StructuredLogger
from phivault.phi.adapters.memory_store import MemoryPHIVaultStore
from phivault.phi.adapters.presidio_client import PresidioAnalyzerClient
from phivault.phi.adapters.recognizer_stub import StubRecognizer
from phivault.phi.adapters.sqlalchemy_store import SqlAlchemyPHIVaultStore
from phivault.phi.service import PHIService
from phivault.phi.wiring import build_phi_service, build_vault_store

ENV_VARS = (
    "PHI_ANALYZER_URL",
    "PRESIDIO_ANALYZER_URL",
    "PHI_DATABASE_URL",
    "DATABASE_URL",
    "PHI_ENCRYPTION_KEY",
    "PHI_RECOGNIZER_FAILURE_POLICY",
    "PHI_DEDUPE_VAULT_WRITES",
    "PHI_ANALYZER_SCORE_THRESHOLD",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestPHISettings:
    """Test environment-driven configuration."""

    def test_defaults(self, clean_env) -> None:
        settings = PHISettings()
        assert settings.analyzer_url == "http://localhost:5002"
        assert settings.recognizer_failure_policy == "open"
        assert settings.database_url == "sqlite:///./phi_vault.db"
        assert settings.dedupe_vault_writes is False
        assert settings.structured_phi_key == "phi"

    def test_legacy_env_names(self, clean_env) -> None:
        clean_env.setenv("PRESIDIO_ANALYZER_URL", "http://presidio:3000/")
        clean_env.setenv("DATABASE_URL", "postgresql://vault/db")
        settings = PHISettings()
        assert settings.analyzer_url == "http://presidio:3000"
        assert settings.database_url == "postgresql://vault/db"

    def test_prefixed_env(self, clean_env) -> None:
        clean_env.setenv("PHI_RECOGNIZER_FAILURE_POLICY", "closed")
        clean_env.setenv("PHI_DEDUPE_VAULT_WRITES", "true")
        settings = PHISettings()
        assert settings.recognizer_failure_policy == "closed"
        assert settings.dedupe_vault_writes is True

    def test_invalid_policy(self, clean_env) -> None:
        clean_env.setenv("PHI_RECOGNIZER_FAILURE_POLICY", "sometimes")
        with pytest.raises(ValidationError):
            PHISettings()

    def test_threshold_range(self, clean_env) -> None:
        clean_env.setenv("PHI_ANALYZER_SCORE_THRESHOLD", "1.5")
        with pytest.raises(ValidationError):
            PHISettings()


class TestWiring:
    """Test building the service from settings."""

    def test_build_phi_service(self, clean_env) -> None:
        settings = PHISettings(
            database_url="sqlite://",
            encryption_key=Fernet.generate_key().decode(),
            recognizer_failure_policy="closed",
        )
        service = build_phi_service(settings)
        assert isinstance(service, PHIService)
        assert isinstance(service.store, SqlAlchemyPHIVaultStore)

    def test_injected_collaborators(self, clean_env) -> None:
        store = MemoryPHIVaultStore()
        service = build_phi_service(PHISettings(), recognizer=StubRecognizer(), store=store)
        assert service.store is store

    def test_missing_key_fails(self, clean_env) -> None:
        with pytest.raises(RuntimeError):
            build_vault_store(PHISettings(database_url="sqlite://"))

    def test_recognizer_from_settings(self, clean_env) -> None:
        client = PresidioAnalyzerClient.from_settings(PHISettings(analyzer_url="http://a:1"))
        assert client.failure_policy == "open"


class TestSafeLogging:
    """Test PHI-safe log helpers."""

    def test_fingerprint_hides_text(self) -> None:
        rendered = safe_log_text("John Doe 555-123-4567")
        assert "John" not in rendered
        assert rendered.startswith("<sha256=") and "len=21" in rendered
        assert safe_log_text(None) == "<empty>"

    def test_entity_type_counts(self) -> None:
        assert entity_type_counts(["PERSON", "PERSON", None]) == {"PERSON": 2, "UNKNOWN": 1}


class TestStructuredFormatter:
    """Test JSON log output."""

    def test_extras_lifted(self) -> None:
        record = logging.LogRecord("phivault.test", logging.INFO, __file__, 1, "Vaulted", None, None)
        record.entry_count = 2
        payload = json.loads(StructuredFormatter().format(record))
        assert payload["message"] == "Vaulted"
        assert payload["level"] == "INFO"
        assert payload["entry_count"] == 2

    def test_adapter_merges_defaults(self, caplog) -> None:
        logger = StructuredLogger(logging.getLogger("phivault.test"), {"component": "vault"})
        with caplog.at_level(logging.INFO, logger="phivault.test"):
            logger.info("hello", extra={"entry_count": 1})
        record = caplog.records[-1]
        assert record.extra_fields == {"component": "vault", "entry_count": 1}
        payload = json.loads(StructuredFormatter().format(record))
        assert payload["component"] == "vault"
