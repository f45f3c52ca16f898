"""Security helpers: master key sources and keyset encryption for SecureStore.

This package provides:
- master keys held in the OS keyring, derived from a password (Argon2id),
  or supplied raw by the caller
- per-namespace keysets wrapped under the master key
- deterministic AES-SIV name encryption and AES-GCM value encryption
"""

from .master_key import (
    DEFAULT_MASTER_KEY_ALIAS,
    KeyScheme,
    MasterKey,
    RawKeySource,
    KeyringKeySource,
    PasswordKeySource,
)
from .keysets import PrefCipher, PrefKeyEncryptionScheme, PrefValueEncryptionScheme

__all__ = [
    "DEFAULT_MASTER_KEY_ALIAS",
    "KeyScheme",
    "MasterKey",
    "RawKeySource",
    "KeyringKeySource",
    "PasswordKeySource",
    "PrefCipher",
    "PrefKeyEncryptionScheme",
    "PrefValueEncryptionScheme",
]
