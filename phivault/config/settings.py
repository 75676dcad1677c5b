"""Configuration settings using pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings


class PHISettings(BaseSettings):
    """Settings for PHI detection, vaulting, and the recognizer client.

    Legacy environment variables (``PRESIDIO_ANALYZER_URL``, ``DATABASE_URL``)
    are accepted alongside the ``PHI_`` prefixed names.
    """

    analyzer_url: str = Field(
        default="http://localhost:5002",
        validation_alias=AliasChoices("PHI_ANALYZER_URL", "PRESIDIO_ANALYZER_URL"),
    )
    analyzer_language: str = "en"
    analyzer_timeout_s: float = 10.0
    analyzer_score_threshold: Optional[float] = None

    # "open": recognizer outage means zero findings (nothing redacted).
    # "closed": recognizer outage rejects the write.
    recognizer_failure_policy: Literal["open", "closed"] = "open"

    database_url: str = Field(
        default="sqlite:///./phi_vault.db",
        validation_alias=AliasChoices("PHI_DATABASE_URL", "DATABASE_URL"),
    )
    encryption_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("PHI_ENCRYPTION_KEY"),
    )
    encryption_key_version: int = 1

    dedupe_vault_writes: bool = False
    structured_phi_key: str = "phi"

    log_level: str = "INFO"
    structured_logs: bool = True

    model_config = {"env_prefix": "PHI_", "extra": "ignore", "populate_by_name": True}

    @field_validator("analyzer_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("analyzer_score_threshold")
    @classmethod
    def _check_threshold(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and not 0.0 <= value <= 1.0:
            raise ValueError("analyzer_score_threshold must be within [0, 1]")
        return value


@lru_cache(maxsize=1)
def get_phi_settings() -> PHISettings:
    return PHISettings()


__all__ = ["PHISettings", "get_phi_settings"]
