"""Typed, encrypted settings table.

``SecureStore`` is a caller-owned handle around :class:`EncryptedPreferences`.
Build one at startup, call :meth:`SecureStore.initialize`, and hand the same
instance to whoever needs settings (see :mod:`securestore.context`).

Writes use apply semantics: the new value is visible to every reader of the
same handle as soon as the call returns, while the SQLite write is queued on
a background writer. Call :meth:`flush` to wait for durability.

Every mutating call holds a store-wide lock, so ``remove_by_prefix`` and
``clear`` see a consistent key set with respect to other writers using this
handle.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional, Set

from .core.exceptions import StoreInitializationError
from .core.models import PrefValue, ValueType
from .security.keysets import PrefKeyEncryptionScheme, PrefValueEncryptionScheme
from .security.master_key import KeyScheme
from .storage.encrypted_prefs import EncryptedPreferences

if TYPE_CHECKING:
    from .context import PlatformContext

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "secure_prefs"

_READABLE_AS = {
    ValueType.STRING: (ValueType.STRING,),
    ValueType.BOOLEAN: (ValueType.BOOLEAN,),
    ValueType.INT: (ValueType.INT,),
    ValueType.LONG: (ValueType.LONG, ValueType.INT),
    ValueType.FLOAT: (ValueType.FLOAT,),
    ValueType.STRING_SET: (ValueType.STRING_SET,),
}


class SecureStore:
    def __init__(self, context: "PlatformContext", namespace: str = DEFAULT_NAMESPACE):
        self.context = context
        self.namespace = namespace
        self._prefs: Optional[EncryptedPreferences] = None
        self._init_cause: Optional[Exception] = None
        self._init_lock = threading.Lock()
        self._edit_lock = threading.RLock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self._prefs is not None

    def initialize(self) -> None:
        """Create the master key and open the backend. Safe to call repeatedly.

        Concurrent first calls are serialized: exactly one opens the backend
        and the rest observe its result. A failure is remembered: every later
        call raises a new ``StoreInitializationError`` chained to the same
        cause.
        """
        if self._prefs is not None:
            return

        with self._init_lock:
            if self._prefs is not None:
                return
            if self._init_cause is not None:
                raise StoreInitializationError("Failed to initialize encrypted preferences") from self._init_cause

            try:
                master_key = self.context.key_source.load(KeyScheme.AES256_GCM)
                self._prefs = EncryptedPreferences.create(
                    self.context.db_path(self.namespace),
                    self.namespace,
                    master_key,
                    key_scheme=PrefKeyEncryptionScheme.AES256_SIV,
                    value_scheme=PrefValueEncryptionScheme.AES256_GCM,
                )
            except Exception as e:
                # any fault while opening leaves the store unusable
                logger.error("Failed to initialize encrypted preferences %s: %s", self.namespace, e)
                self._init_cause = e
                raise StoreInitializationError("Failed to initialize encrypted preferences") from e

            logger.debug("SecureStore %s initialized", self.namespace)

    def _require_prefs(self) -> EncryptedPreferences:
        if self._prefs is None:
            raise RuntimeError("SecureStore is not initialized; call initialize() first")
        return self._prefs

    def flush(self) -> None:
        """Block until queued writes reach disk; raises the first write failure."""
        self._require_prefs().flush()

    def close(self) -> None:
        with self._init_lock:
            prefs, self._prefs = self._prefs, None
        if prefs is not None:
            prefs.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _put(self, key: str, value: PrefValue) -> None:
        prefs = self._require_prefs()
        with self._edit_lock:
            prefs.edit().put(key, value).apply()

    def put_string(self, key: str, value: str) -> None:
        self._put(key, PrefValue.of_string(value))

    def put_boolean(self, key: str, value: bool) -> None:
        self._put(key, PrefValue.of_boolean(value))

    def put_int(self, key: str, value: int) -> None:
        self._put(key, PrefValue.of_int(value))

    def put_long(self, key: str, value: int) -> None:
        self._put(key, PrefValue.of_long(value))

    def put_float(self, key: str, value: float) -> None:
        self._put(key, PrefValue.of_float(value))

    def put_string_set(self, key: str, values: Iterable[str]) -> None:
        self._put(key, PrefValue.of_string_set(values))

    def remove(self, key: str) -> None:
        prefs = self._require_prefs()
        with self._edit_lock:
            prefs.edit().remove(key).apply()

    def remove_by_prefix(self, prefix: str) -> None:
        """Remove every key starting with ``prefix`` in one batched edit."""
        prefs = self._require_prefs()
        with self._edit_lock:
            editor = prefs.edit()
            for key in prefs.get_all():
                if key.startswith(prefix):
                    editor.remove(key)
            editor.apply()

    def clear(self) -> None:
        prefs = self._require_prefs()
        with self._edit_lock:
            prefs.edit().clear().apply()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _get(self, key: str, expected: ValueType, default: Any) -> Any:
        stored = self._require_prefs().get(key)
        if stored is None:
            return default
        if stored.type not in _READABLE_AS[expected]:
            logger.debug("Key %s holds %s, read as %s; returning default", key, stored.type.value, expected.value)
            return default
        return stored.value

    def get_string(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._get(key, ValueType.STRING, default)

    def get_boolean(self, key: str, default: bool = False) -> bool:
        return self._get(key, ValueType.BOOLEAN, default)

    def get_int(self, key: str, default: int = 0) -> int:
        return self._get(key, ValueType.INT, default)

    def get_long(self, key: str, default: int = 0) -> int:
        return self._get(key, ValueType.LONG, default)

    def get_float(self, key: str, default: float = 0.0) -> float:
        return self._get(key, ValueType.FLOAT, default)

    def get_string_set(self, key: str, default: Optional[Set[str]] = None) -> Optional[Set[str]]:
        value = self._get(key, ValueType.STRING_SET, None)
        # hand out a mutable copy; the stored set stays frozen
        return set(value) if value is not None else default

    def contains(self, key: str) -> bool:
        return self._require_prefs().contains(key)

    def get_all_values(self) -> Dict[str, PrefValue]:
        """Snapshot of every entry in its tagged form."""
        return self._require_prefs().get_all()

    def get_all(self) -> Dict[str, Any]:
        """Snapshot of every entry as plain Python values."""
        snapshot = {}
        for key, value in self.get_all_values().items():
            snapshot[key] = set(value.value) if value.type is ValueType.STRING_SET else value.value
        return snapshot
