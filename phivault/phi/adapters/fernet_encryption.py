"""Fernet encryption for vault values at rest, with versioned keys.

Each vault row records the key version it was written with. New writes use
the current key; rows written under a retired key stay readable as long as
that key is passed in ``retired_keys``. Never log keys or plaintext.
"""

from __future__ import annotations

import os
from typing import Mapping

from cryptography.fernet import Fernet, InvalidToken

from phivault.phi.ports import PHIEncryptionPort

ALGORITHM = "FERNET"

KeyMaterial = str | bytes


def _fernet(key: KeyMaterial) -> Fernet:
    return Fernet(key.encode("utf-8") if isinstance(key, str) else key)


class FernetEncryptionAdapter(PHIEncryptionPort):
    """Encrypt with the current key version; decrypt with whichever version wrote the row."""

    def __init__(
        self,
        key: KeyMaterial | None = None,
        key_version: int = 1,
        retired_keys: Mapping[int, KeyMaterial] | None = None,
    ):
        key = key or os.getenv("PHI_ENCRYPTION_KEY")
        if not key:
            raise RuntimeError("PHI_ENCRYPTION_KEY is not set")
        if retired_keys and key_version in retired_keys:
            raise ValueError(f"Key version {key_version} is both current and retired")

        self._key_version = key_version
        self._keys: dict[int, Fernet] = {v: _fernet(k) for v, k in (retired_keys or {}).items()}
        self._keys[key_version] = _fernet(key)

    @property
    def key_version(self) -> int:
        return self._key_version

    def encrypt(self, plaintext: str) -> tuple[bytes, str, int]:
        token = self._keys[self._key_version].encrypt(plaintext.encode("utf-8"))
        return token, ALGORITHM, self._key_version

    def decrypt(self, ciphertext: bytes, algorithm: str, key_version: int) -> str:
        if algorithm != ALGORITHM:
            raise ValueError(f"Unsupported algorithm: {algorithm}")
        fernet = self._keys.get(key_version)
        if fernet is None:
            raise ValueError(f"No key configured for key version {key_version}")
        try:
            return fernet.decrypt(ciphertext).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Failed to decrypt PHI vault data") from exc


__all__ = ["FernetEncryptionAdapter", "ALGORITHM"]
