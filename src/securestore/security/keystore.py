"""OS keystore integration using keyring for master-key storage.

This module provides a tiny wrapper around `keyring` to store and retrieve
binary keys (base64-encoded) under a service/account pair. The keyring is the
closest desktop analogue of a platform keystore; do not assume it provides
hardware-backed security on all platforms.
"""
import base64
import binascii
from typing import Optional

import keyring
from keyring.errors import PasswordDeleteError

from ..core.exceptions import KeyStoreError


def save_key(service: str, account: str, key_bytes: bytes) -> None:
    """Persist binary key_bytes in the OS keystore under (service, account).

    The key is base64-encoded before storage to keep it string-friendly.
    """
    secret = base64.b64encode(key_bytes).decode("ascii")
    keyring.set_password(service, account, secret)


def assess_keyring_backend() -> tuple[bool, str]:
    """Return (is_secure, message) describing the current keyring backend.

    Heuristics are used because the `keyring` package exposes different backends
    across platforms.
    """
    backend = keyring.get_keyring()
    name = backend.__class__.__name__
    priority = getattr(backend, "priority", None)

    insecure_indicators = ("Plaintext", "Uncrypted", "Simple", "File")
    if any(tok in name for tok in insecure_indicators):
        return False, f"insecure backend detected: {name}"

    if priority is not None and priority <= 0:
        return False, f"no suitable secure keyring backend available (priority={priority}, backend={name})"

    # treat known platform backends as acceptable
    if "Win" in name or "Keychain" in name or "SecretService" in name or "KWallet" in name:
        return True, f"backend looks acceptable: {name} (priority={priority})"

    return True, f"unknown backend '{name}', treat with caution (priority={priority})"


def load_key(service: str, account: str) -> Optional[bytes]:
    """Load a persisted key from the OS keystore; returns raw bytes or None.

    A stored secret that is not valid base64 raises KeyStoreError rather than
    looking absent, so a corrupted entry is never silently replaced.
    """
    secret = keyring.get_password(service, account)
    if secret is None:
        return None
    try:
        return base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError) as e:
        raise KeyStoreError(f"corrupted key material in keystore for {service}/{account}") from e


def delete_key(service: str, account: str) -> None:
    """Remove the key from the OS keystore; missing keys are ignored."""
    try:
        keyring.delete_password(service, account)
    except PasswordDeleteError:
        pass
