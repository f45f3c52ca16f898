"""Small helper to build the SecureStore runtime context."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
import os

from .security.master_key import KeyringKeySource, PasswordKeySource, RawKeySource
from .store import DEFAULT_NAMESPACE, SecureStore

KeySource = Union[KeyringKeySource, PasswordKeySource, RawKeySource]

DEFAULT_DATA_DIR = Path.home() / ".securestore"
DEFAULT_KEYRING_SERVICE = "securestore"


@dataclass(frozen=True)
class PlatformContext:
    """Where the store keeps its files and where its master key comes from."""

    data_dir: Path
    key_source: KeySource

    def db_path(self, namespace: str) -> Path:
        return self.data_dir / f"{namespace}.db"


@dataclass
class AppContext:
    """Container for runtime objects shared across the application."""

    platform: PlatformContext
    store: SecureStore


def build_platform_context(
    data_dir: Optional[str | Path] = None,
    master_password: Optional[str] = None,
    keyring_service: Optional[str] = None,
    namespace: str = DEFAULT_NAMESPACE,
) -> PlatformContext:
    """
    Resolve configuration from arguments, then the environment.

    - ``SECURESTORE_DATA_DIR``: directory for ``<namespace>.db``
      (default ``~/.securestore``).
    - ``SECURESTORE_MASTER_PASSWORD``: when set, the master key is derived
      from this password with Argon2id and its parameters are kept in
      ``<namespace>.salt`` next to the database.
    - ``SECURESTORE_KEYRING_SERVICE``: keyring service used when no password
      is configured (default ``securestore``).
    """
    root = Path(data_dir or os.getenv("SECURESTORE_DATA_DIR") or DEFAULT_DATA_DIR).expanduser()

    password = master_password or os.getenv("SECURESTORE_MASTER_PASSWORD")
    if password:
        source: KeySource = PasswordKeySource(password, root / f"{namespace}.salt")
    else:
        service = keyring_service or os.getenv("SECURESTORE_KEYRING_SERVICE") or DEFAULT_KEYRING_SERVICE
        source = KeyringKeySource(service)

    return PlatformContext(data_dir=root, key_source=source)


def build_context(
    data_dir: Optional[str | Path] = None,
    master_password: Optional[str] = None,
    keyring_service: Optional[str] = None,
    namespace: str = DEFAULT_NAMESPACE,
) -> AppContext:
    """Build the platform context and an initialized store on top of it.

    Raises StoreInitializationError when the store cannot be opened.
    """
    platform = build_platform_context(data_dir, master_password, keyring_service, namespace)
    store = SecureStore(platform, namespace=namespace)
    store.initialize()
    return AppContext(platform=platform, store=store)
