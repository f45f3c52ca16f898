"""Encrypted key-value backend used by SecureStore."""

from .encrypted_prefs import EncryptedPreferences, Editor

__all__ = ["EncryptedPreferences", "Editor"]
