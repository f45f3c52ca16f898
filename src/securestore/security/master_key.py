"""Master key sources for the encrypted preferences backend.

The master key never encrypts preferences directly. It wraps the per-namespace
keysets (see :mod:`securestore.security.keysets`), so it can live wherever the
host allows:

- ``KeyringKeySource``: random key generated once and kept in the OS keyring
- ``PasswordKeySource``: Argon2id derivation from a password, with the salt,
  cost parameters and a MAC sentinel kept in a small JSON file
- ``RawKeySource``: caller-provided bytes (tests, external key managers)
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Optional

from argon2.low_level import Type, hash_secret_raw

from ..core.exceptions import KeyStoreError
from . import keystore

logger = logging.getLogger(__name__)

DEFAULT_MASTER_KEY_ALIAS = "_securestore_master_key_"
_SENTINEL_LABEL = b"securestore-master-key"


class KeyScheme(Enum):
    # Only one scheme exists; the value is the key size in bytes
    AES256_GCM = 32


class MasterKey:
    """Root key material plus the alias it was created under."""

    __slots__ = ("alias", "scheme", "_key")

    def __init__(self, key: bytes, alias: str = DEFAULT_MASTER_KEY_ALIAS, scheme: KeyScheme = KeyScheme.AES256_GCM):
        if len(key) != scheme.value:
            raise ValueError(f"{scheme.name} master key must be {scheme.value} bytes, got {len(key)}")
        self.alias = alias
        self.scheme = scheme
        self._key = bytes(key)

    @property
    def key_bytes(self) -> bytes:
        return self._key

    def __repr__(self):
        # never print key material
        return f"MasterKey(alias={self.alias!r}, scheme={self.scheme.name})"


class RawKeySource:
    def __init__(self, key: bytes, alias: str = DEFAULT_MASTER_KEY_ALIAS):
        self._key = key
        self.alias = alias

    def load(self, scheme: KeyScheme = KeyScheme.AES256_GCM) -> MasterKey:
        return MasterKey(self._key, alias=self.alias, scheme=scheme)


class KeyringKeySource:
    """Master key generated on first use and persisted in the OS keyring."""

    def __init__(self, service: str, alias: str = DEFAULT_MASTER_KEY_ALIAS, allow_insecure_backend: bool = False):
        self.service = service
        self.alias = alias
        self.allow_insecure_backend = allow_insecure_backend

    def load(self, scheme: KeyScheme = KeyScheme.AES256_GCM) -> MasterKey:
        key = keystore.load_key(self.service, self.alias)
        if key is not None:
            logger.debug("Loaded master key %s from keyring service %s", self.alias, self.service)
            return MasterKey(key, alias=self.alias, scheme=scheme)

        # Check keyring backend security heuristics before persisting. avoids storing keys in plaintext
        if not self.allow_insecure_backend:
            secure, msg = keystore.assess_keyring_backend()
            if not secure:
                raise KeyStoreError(
                    f"refusing to persist master key to OS keystore: {msg}; "
                    "pass allow_insecure_backend=True to override if you understand the risk"
                )

        key = os.urandom(scheme.value)
        keystore.save_key(self.service, self.alias, key)
        logger.info("Created master key %s in keyring service %s", self.alias, self.service)
        return MasterKey(key, alias=self.alias, scheme=scheme)


class PasswordKeySource:
    """
    Master key derived from a password using Argon2id.

    First use:
    - generate a random salt
    - derive the key, compute a MAC over a fixed label with it
    - persist salt, cost parameters and the MAC sentinel at ``params_path``

    Later uses re-derive from the stored salt/parameters and check the
    sentinel; a wrong password raises ``ValueError``.
    """

    def __init__(
        self,
        password: str | bytes,
        params_path: Path | str,
        alias: str = DEFAULT_MASTER_KEY_ALIAS,
        time_cost: int = 3,
        memory_cost: int = 65536,
        parallelism: int = 1,
    ):
        self._password = password.encode("utf-8") if isinstance(password, str) else password
        self.params_path = Path(params_path)
        self.alias = alias
        self.time_cost = time_cost
        self.memory_cost = memory_cost
        self.parallelism = parallelism

    def _derive(self, salt: bytes, time_cost: int, memory_cost: int, parallelism: int, key_len: int) -> bytes:
        return hash_secret_raw(
            secret=self._password,
            salt=salt,
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=key_len,
            type=Type.ID,
        )

    def _read_params(self) -> Optional[dict]:
        if not self.params_path.exists():
            return None
        with open(self.params_path, "r", encoding="utf-8") as f:
            return json.load(f)

    def load(self, scheme: KeyScheme = KeyScheme.AES256_GCM) -> MasterKey:
        meta = self._read_params()
        if meta is not None:
            try:
                salt = bytes.fromhex(meta["salt"])
                expected = bytes.fromhex(meta["sentinel"])
                time_cost = int(meta.get("time", 3))
                memory_cost = int(meta.get("memory", 65536))
                parallelism = int(meta.get("parallelism", 1))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise ValueError(f"Malformed key parameters in {self.params_path}: {e!r}") from e
            key = self._derive(salt, time_cost, memory_cost, parallelism, scheme.value)
            mac = hmac.new(key, _SENTINEL_LABEL, hashlib.sha256).digest()
            if not hmac.compare_digest(mac, expected):
                raise ValueError("Invalid master password for existing key material")
            return MasterKey(key, alias=self.alias, scheme=scheme)

        salt = os.urandom(16)
        key = self._derive(salt, self.time_cost, self.memory_cost, self.parallelism, scheme.value)
        meta = {
            "algo": "argon2id",
            "salt": salt.hex(),
            "time": self.time_cost,
            "memory": self.memory_cost,
            "parallelism": self.parallelism,
            "sentinel": hmac.new(key, _SENTINEL_LABEL, hashlib.sha256).hexdigest(),
        }
        self.params_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.params_path, "w", encoding="utf-8") as f:
            json.dump(meta, f)
        logger.info("Created password key parameters at %s", self.params_path)
        return MasterKey(key, alias=self.alias, scheme=scheme)
