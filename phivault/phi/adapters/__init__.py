"""Adapters for PHI ports."""

from phivault.phi.adapters.fernet_encryption import FernetEncryptionAdapter
from phivault.phi.adapters.memory_store import MemoryPHIVaultStore
from phivault.phi.adapters.presidio_client import PresidioAnalyzerClient
from phivault.phi.adapters.recognizer_stub import StubFinding, StubRecognizer
from phivault.phi.adapters.sqlalchemy_store import SqlAlchemyPHIVaultStore

__all__ = [
    "FernetEncryptionAdapter",
    "MemoryPHIVaultStore",
    "PresidioAnalyzerClient",
    "SqlAlchemyPHIVaultStore",
    "StubFinding",
    "StubRecognizer",
]
