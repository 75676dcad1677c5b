"""Shared fixtures for PHI vault tests."""

import pytest

from phivault.phi.adapters.memory_store import MemoryPHIVaultStore
from phivault.phi.adapters.recognizer_stub import StubFinding, StubRecognizer
from phivault.phi.service import PHIService
from phivault.phi.tokens import new_vault_id


@pytest.fixture
def subject_id() -> str:
    return new_vault_id()


@pytest.fixture
def resource_id() -> str:
    return new_vault_id()


@pytest.fixture
def memory_store() -> MemoryPHIVaultStore:
    return MemoryPHIVaultStore()


@pytest.fixture
def scenario_recognizer() -> StubRecognizer:
    """Recognizer output for "Contact John Doe at 555-123-4567 re: Tylenol refill."."""
    return StubRecognizer(
        [
            StubFinding("John Doe", "PERSON", 0.95),
            StubFinding("555-123-4567", "PHONE_NUMBER", 0.95),
            StubFinding("Tylenol", "PERSON", 0.6),
        ]
    )


@pytest.fixture
def service(scenario_recognizer: StubRecognizer, memory_store: MemoryPHIVaultStore) -> PHIService:
    return PHIService(scenario_recognizer, memory_store)
