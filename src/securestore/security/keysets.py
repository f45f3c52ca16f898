"""Keyset handling and per-entry encryption for encrypted preferences.

Each namespace owns two data keys:
- a 64-byte AES-256-SIV key that encrypts preference names deterministically,
  so an encrypted name can be looked up without decrypting the whole table
- a 32-byte AES-256-GCM key that encrypts values with a fresh nonce per write

Both are stored wrapped (RFC 3394 AES key wrap) under a KEK derived from the
master key with HKDF, so the database never holds a usable key.

Value blob layout: 12-byte nonce || GCM ciphertext. The cleartext name is
bound as associated data, which stops a value from being replayed under a
different name.
"""
import json
import os
from enum import Enum

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, AESSIV
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.keywrap import aes_key_unwrap, aes_key_wrap

from ..core.models import PrefValue

NONCE_SIZE = 12
# AES-SIV rejects empty plaintexts; every name is prefixed so "" stays valid
_NAME_PREFIX = b"k:"


class PrefKeyEncryptionScheme(Enum):
    AES256_SIV = 64


class PrefValueEncryptionScheme(Enum):
    AES256_GCM = 32


def _derive_kek(master_key: bytes, namespace: str) -> bytes:
    info = b"securestore-kek:" + namespace.encode("utf-8")
    hkdf = HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=info)
    return hkdf.derive(master_key)


def generate_keyset_key(size: int) -> bytes:
    return os.urandom(size)


def wrap_keyset(master_key: bytes, namespace: str, key: bytes) -> bytes:
    return aes_key_wrap(_derive_kek(master_key, namespace), key)


def unwrap_keyset(master_key: bytes, namespace: str, wrapped: bytes) -> bytes:
    # raises cryptography's InvalidUnwrap when the master key does not match
    return aes_key_unwrap(_derive_kek(master_key, namespace), wrapped)


class PrefCipher:
    """Encrypts preference names and values for one namespace."""

    def __init__(self, namespace: str, name_key: bytes, value_key: bytes):
        self.namespace = namespace
        self._ad = [namespace.encode("utf-8")]
        self._siv = AESSIV(name_key)
        self._gcm = AESGCM(value_key)

    def encrypt_name(self, name: str) -> bytes:
        return self._siv.encrypt(_NAME_PREFIX + name.encode("utf-8"), self._ad)

    def decrypt_name(self, blob: bytes) -> str:
        raw = self._siv.decrypt(blob, self._ad)
        return raw[len(_NAME_PREFIX):].decode("utf-8")

    def encrypt_value(self, name: str, value: PrefValue) -> bytes:
        raw = json.dumps(value.to_dict(), ensure_ascii=False).encode("utf-8")
        nonce = os.urandom(NONCE_SIZE)
        return nonce + self._gcm.encrypt(nonce, raw, name.encode("utf-8"))

    def decrypt_value(self, name: str, blob: bytes) -> PrefValue:
        if len(blob) < NONCE_SIZE:
            raise ValueError("Ciphertext too short to contain nonce")
        nonce, ct = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
        raw = self._gcm.decrypt(nonce, ct, name.encode("utf-8"))
        return PrefValue.from_dict(json.loads(raw.decode("utf-8")))
