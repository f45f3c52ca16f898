"""
Encrypted preferences backend.

Structure:
==============================
 - <data_dir>/<namespace>.db
      - keysets: wrapped AES-SIV name key and AES-GCM value key per namespace
      - prefs:   (namespace, encrypted name, encrypted value)
==============================
> Every entry is decrypted once when the backend is opened and kept in an
  in-memory table. Reads never touch SQLite.
> Edits are batched through an Editor. ``apply()`` updates the in-memory table
  before returning and queues the SQLite write on a single writer thread;
  ``commit()`` does the same and waits for the write.
> Faults while opening (keyring, unwrap, decrypt, SQLite) surface from
  :meth:`EncryptedPreferences.create`. After that, reads cannot fail and
  write failures are reported by ``commit()``/``flush()``.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..core.exceptions import StorageError
from ..core.models import PrefValue
from ..database.connection import DatabaseConnection
from ..security.keysets import (
    PrefCipher,
    PrefKeyEncryptionScheme,
    PrefValueEncryptionScheme,
    generate_keyset_key,
    unwrap_keyset,
    wrap_keyset,
)
from ..security.master_key import MasterKey

logger = logging.getLogger(__name__)


def _load_or_create_keyset(db: DatabaseConnection, namespace: str, purpose: str, scheme, master_key: MasterKey) -> bytes:
    """Return the unwrapped data key for (namespace, purpose), creating it on first use."""
    query = "SELECT scheme, wrapped_key FROM keysets WHERE namespace = ? AND purpose = ?"
    row = db.fetch_one(query, (namespace, purpose))
    if row is None:
        key = generate_keyset_key(scheme.value)
        wrapped = wrap_keyset(master_key.key_bytes, namespace, key)
        try:
            with db.get_transaction_context() as cur:
                # another process may have won the race; keep whichever row landed first
                cur.execute(
                    "INSERT OR IGNORE INTO keysets (namespace, purpose, scheme, master_key_alias, wrapped_key) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (namespace, purpose, scheme.name, master_key.alias, wrapped),
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to store {purpose} keyset: {e}") from e
        row = db.fetch_one(query, (namespace, purpose))

    if row["scheme"] != scheme.name:
        raise ValueError(f"{purpose} keyset for {namespace!r} uses {row['scheme']}, expected {scheme.name}")
    return unwrap_keyset(master_key.key_bytes, namespace, row["wrapped_key"])


class EncryptedPreferences:
    """Typed key-value table encrypted at rest, bound to one namespace."""

    def __init__(self, db: DatabaseConnection, namespace: str, cipher: PrefCipher):
        self._db = db
        self.namespace = namespace
        self._cipher = cipher
        self._lock = threading.RLock()
        self._values: Dict[str, PrefValue] = {}
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"securestore-{namespace}")
        self._pending: set[Future] = set()
        self._failure: Optional[BaseException] = None

    @classmethod
    def create(
        cls,
        db_path: Path | str,
        namespace: str,
        master_key: MasterKey,
        key_scheme: PrefKeyEncryptionScheme = PrefKeyEncryptionScheme.AES256_SIV,
        value_scheme: PrefValueEncryptionScheme = PrefValueEncryptionScheme.AES256_GCM,
    ) -> "EncryptedPreferences":
        """Open (or create) the backend and decrypt its current contents."""
        db = DatabaseConnection(db_path)
        db.initialize()
        try:
            name_key = _load_or_create_keyset(db, namespace, "name", key_scheme, master_key)
            value_key = _load_or_create_keyset(db, namespace, "value", value_scheme, master_key)
            prefs = cls(db, namespace, PrefCipher(namespace, name_key, value_key))
            prefs._load()
        except BaseException:
            db.close()
            raise
        logger.debug("Opened %s with %d entries", namespace, len(prefs._values))
        return prefs

    def _load(self) -> None:
        rows = self._db.fetch_all(
            "SELECT name_ct, value_ct FROM prefs WHERE namespace = ?", (self.namespace,)
        )
        for row in rows:
            name = self._cipher.decrypt_name(row["name_ct"])
            self._values[name] = self._cipher.decrypt_value(name, row["value_ct"])

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[PrefValue]:
        with self._lock:
            return self._values.get(key)

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._values

    def get_all(self) -> Dict[str, PrefValue]:
        with self._lock:
            return dict(self._values)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def edit(self) -> "Editor":
        return Editor(self)

    def _apply_edit(self, clear: bool, changes: Dict[str, Optional[PrefValue]], track: bool) -> Future:
        # encrypt everything first so a failing value leaves the table untouched
        ops: List[Tuple[bytes, Optional[bytes]]] = []
        for key, value in changes.items():
            name_ct = self._cipher.encrypt_name(key)
            ops.append((name_ct, None if value is None else self._cipher.encrypt_value(key, value)))

        with self._lock:
            if clear:
                self._values.clear()
            for key, value in changes.items():
                if value is None:
                    self._values.pop(key, None)
                else:
                    self._values[key] = value
            # submitted under the lock so the writer sees edits in apply order
            future = self._writer.submit(self._persist, clear, ops)
            self._pending.add(future)
            future.add_done_callback(self._on_written if track else self._forget)
        return future

    def _persist(self, clear: bool, ops: List[Tuple[bytes, Optional[bytes]]]) -> None:
        try:
            with self._db.get_transaction_context() as cur:
                if clear:
                    cur.execute("DELETE FROM prefs WHERE namespace = ?", (self.namespace,))
                for name_ct, value_ct in ops:
                    if value_ct is None:
                        cur.execute(
                            "DELETE FROM prefs WHERE namespace = ? AND name_ct = ?",
                            (self.namespace, name_ct),
                        )
                    else:
                        cur.execute(
                            "INSERT OR REPLACE INTO prefs (namespace, name_ct, value_ct) VALUES (?, ?, ?)",
                            (self.namespace, name_ct, value_ct),
                        )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to persist preferences for {self.namespace}: {e}") from e

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _on_written(self, future: Future) -> None:
        self._forget(future)
        error = future.exception()
        if error is not None:
            logger.error("Background write for %s failed: %s", self.namespace, error)
            with self._lock:
                if self._failure is None:
                    self._failure = error

    def flush(self) -> None:
        """Wait for queued writes; re-raise the first background failure, once."""
        with self._lock:
            pending = list(self._pending)
        wait(pending)
        with self._lock:
            error, self._failure = self._failure, None
        if error is not None:
            raise error

    def close(self) -> None:
        try:
            self.flush()
        finally:
            self._writer.shutdown(wait=True)
            self._db.close()


class Editor:
    """Batch of changes applied as one unit. ``clear()`` runs before the puts."""

    def __init__(self, prefs: EncryptedPreferences):
        self._prefs = prefs
        self._changes: Dict[str, Optional[PrefValue]] = {}
        self._clear = False

    def put(self, key: str, value: PrefValue) -> "Editor":
        self._changes[key] = value
        return self

    def remove(self, key: str) -> "Editor":
        self._changes[key] = None
        return self

    def clear(self) -> "Editor":
        self._clear = True
        return self

    def apply(self) -> None:
        """Make the edit visible now and persist it in the background."""
        self._prefs._apply_edit(self._clear, self._changes, track=True)

    def commit(self) -> bool:
        """Make the edit visible and persist it before returning."""
        self._prefs._apply_edit(self._clear, self._changes, track=False).result()
        return True
