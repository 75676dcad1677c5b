"""Exception hierarchy for the PHI vault engine."""

from __future__ import annotations


class PHIVaultError(Exception):
    """Base error for PHI detection, vaulting, and de-identification."""

    pass


class RecognizerUnavailableError(PHIVaultError):
    """Entity recognizer failed and the failure policy is fail-closed."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class InvalidIdentifierError(PHIVaultError):
    """A subject, owner, or vault identifier failed format validation."""

    def __init__(self, identifier_name: str, value: object):
        self.identifier_name = identifier_name
        # Only the type is kept; identifiers may be attacker-controlled.
        self.value_type = type(value).__name__
        super().__init__(f"Invalid {identifier_name}: expected 24-character hex id")


class VaultWriteError(PHIVaultError):
    """Vault store write failed; the corresponding substitution must not happen."""

    def __init__(self, message: str, operation: str | None = None):
        self.operation = operation
        super().__init__(message)


class VaultLookupError(PHIVaultError):
    """Vault store read failed."""

    def __init__(self, message: str, operation: str | None = None):
        self.operation = operation
        super().__init__(message)


__all__ = [
    "PHIVaultError",
    "RecognizerUnavailableError",
    "InvalidIdentifierError",
    "VaultWriteError",
    "VaultLookupError",
]
