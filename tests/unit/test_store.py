"""Unit tests for SecureStore."""

import json
import os
import threading

import pytest

from securestore.context import PlatformContext
from securestore.core.exceptions import KeyStoreError, StoreInitializationError
from securestore.core.models import PrefValue, ValueType
from securestore.security.master_key import MasterKey, PasswordKeySource, RawKeySource
from securestore.store import SecureStore


class CountingKeySource:
    """Key source that records how often it was asked for a key."""

    def __init__(self, key: bytes, error: Exception = None):
        self.key = key
        self.error = error
        self.calls = 0
        self._lock = threading.Lock()

    def load(self, scheme):
        with self._lock:
            self.calls += 1
        if self.error is not None:
            raise self.error
        return MasterKey(self.key, scheme=scheme)


# ==============================================================================
# Initialization
# ==============================================================================

def test_initialize_is_idempotent(tmp_path):
    source = CountingKeySource(os.urandom(32))
    store = SecureStore(PlatformContext(tmp_path, source))
    try:
        store.initialize()
        store.put_string("k", "v")
        store.initialize()

        assert source.calls == 1
        assert store.get_all() == {"k": "v"}
    finally:
        store.close()


def test_concurrent_initialize_runs_once(tmp_path):
    source = CountingKeySource(os.urandom(32))
    store = SecureStore(PlatformContext(tmp_path, source))
    barrier = threading.Barrier(8)
    errors = []

    def worker():
        barrier.wait()
        try:
            store.initialize()
        except Exception as e:  # collected for the assertion below
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    try:
        assert errors == []
        assert source.calls == 1
        assert store.initialized
    finally:
        store.close()


def test_initialize_failure_is_wrapped_and_sticky(tmp_path):
    cause = KeyStoreError("keyring locked")
    source = CountingKeySource(os.urandom(32), error=cause)
    store = SecureStore(PlatformContext(tmp_path, source))

    with pytest.raises(StoreInitializationError) as first:
        store.initialize()
    assert first.value.__cause__ is cause

    with pytest.raises(StoreInitializationError) as second:
        store.initialize()
    assert second.value.__cause__ is cause
    # a fresh error each time so tracebacks do not pile up on one instance
    assert second.value is not first.value
    assert source.calls == 1
    assert not store.initialized


def test_concurrent_callers_see_same_failure(tmp_path):
    source = CountingKeySource(os.urandom(32), error=OSError("no disk"))
    store = SecureStore(PlatformContext(tmp_path, source))
    barrier = threading.Barrier(4)
    errors = []

    def worker():
        barrier.wait()
        try:
            store.initialize()
        except StoreInitializationError as e:
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(errors) == 4
    assert all(e.__cause__ is errors[0].__cause__ for e in errors)
    assert source.calls == 1


def test_initialize_returns_on_fresh_directory(tmp_path):
    store = SecureStore(PlatformContext(tmp_path / "new", RawKeySource(os.urandom(32))))
    worker = threading.Thread(target=store.initialize, daemon=True)
    worker.start()
    worker.join(10)
    try:
        assert not worker.is_alive()
        assert store.initialized
    finally:
        if not worker.is_alive():
            store.close()


def test_unexpected_setup_fault_is_wrapped(tmp_path):
    cause = KeyError("salt")
    store = SecureStore(PlatformContext(tmp_path, CountingKeySource(os.urandom(32), error=cause)))

    with pytest.raises(StoreInitializationError) as excinfo:
        store.initialize()
    assert excinfo.value.__cause__ is cause
    assert not store.initialized


def test_corrupt_password_params_is_initialization_error(tmp_path):
    params = tmp_path / "secure_prefs.salt"
    params.write_text(json.dumps({"algo": "argon2id"}), encoding="utf-8")
    source = PasswordKeySource("pw", params, time_cost=1, memory_cost=8)
    store = SecureStore(PlatformContext(tmp_path, source))

    with pytest.raises(StoreInitializationError) as excinfo:
        store.initialize()
    assert isinstance(excinfo.value.__cause__, ValueError)
    assert "Malformed key parameters" in str(excinfo.value.__cause__)


def test_wrong_master_key_is_an_initialization_error(tmp_path):
    first = SecureStore(PlatformContext(tmp_path, RawKeySource(os.urandom(32))))
    first.initialize()
    first.put_string("k", "v")
    first.close()

    second = SecureStore(PlatformContext(tmp_path, RawKeySource(os.urandom(32))))
    with pytest.raises(StoreInitializationError):
        second.initialize()


def test_operations_before_initialize_raise(platform):
    store = SecureStore(platform)

    with pytest.raises(RuntimeError, match="not initialized"):
        store.put_string("k", "v")
    with pytest.raises(RuntimeError, match="not initialized"):
        store.get_string("k", "d")
    with pytest.raises(RuntimeError, match="not initialized"):
        store.remove_by_prefix("k")


# ==============================================================================
# Typed round trips and defaults
# ==============================================================================

@pytest.mark.parametrize(
    "put, get, value, default",
    [
        ("put_string", "get_string", "hello", "other"),
        ("put_string", "get_string", "", None),
        ("put_boolean", "get_boolean", True, False),
        ("put_boolean", "get_boolean", False, True),
        ("put_int", "get_int", -(2**31), 0),
        ("put_long", "get_long", 2**63 - 1, 0),
        ("put_float", "get_float", 3.25, 0.0),
        ("put_string_set", "get_string_set", {"a", "b"}, set()),
    ],
)
def test_round_trip(store, put, get, value, default):
    getattr(store, put)("key", value)
    assert getattr(store, get)("key", default) == value


@pytest.mark.parametrize(
    "get, default",
    [
        ("get_string", "fallback"),
        ("get_boolean", True),
        ("get_int", 17),
        ("get_long", 2**40),
        ("get_float", 1.5),
        ("get_string_set", {"x"}),
    ],
)
def test_missing_key_returns_default(store, get, default):
    assert getattr(store, get)("unset", default) == default


def test_mismatched_type_returns_default(store):
    store.put_string("k", "text")
    assert store.get_int("k", 5) == 5
    assert store.get_boolean("k", True) is True


def test_long_reader_accepts_int(store):
    store.put_int("k", 12)
    assert store.get_long("k", 0) == 12
    store.put_long("big", 2**40)
    assert store.get_int("big", -1) == -1


def test_overwrite_changes_type(store):
    store.put_string("k", "v")
    store.put_boolean("k", True)
    assert store.get_all_values()["k"] == PrefValue.of_boolean(True)


def test_unencodable_put_leaves_previous_value(store):
    with pytest.raises(UnicodeEncodeError):
        store.put_string("k", "\ud800")
    assert store.get_string("k", "default") == "default"

    store.put_string("k", "kept")
    with pytest.raises(UnicodeEncodeError):
        store.put_string("k", "\ud800")
    assert store.get_string("k", "default") == "kept"
    store.flush()
    assert store.get_all() == {"k": "kept"}


def test_string_set_is_returned_as_copy(store):
    store.put_string_set("s", ["a"])
    got = store.get_string_set("s")
    got.add("b")
    assert store.get_string_set("s") == {"a"}


def test_put_int_validates_range_and_type(store):
    with pytest.raises(ValueError):
        store.put_int("k", 2**31)
    with pytest.raises(TypeError):
        store.put_int("k", True)
    assert not store.contains("k")


# ==============================================================================
# Removal
# ==============================================================================

def test_remove_by_prefix(store):
    store.put_string("a.1", "x")
    store.put_string("a.2", "y")
    store.put_string("b.1", "z")

    store.remove_by_prefix("a.")

    assert store.get_all() == {"b.1": "z"}


def test_remove_by_prefix_without_matches_keeps_everything(store):
    store.put_string("a", "1")
    store.remove_by_prefix("zzz")
    assert store.get_all() == {"a": "1"}


def test_remove_single_and_missing(store):
    store.put_long("last_event_id", 10)
    store.remove("last_event_id")
    store.remove("never_set")
    assert store.get_long("last_event_id", 0) == 0


def test_clear_empties_store(store):
    store.put_string("a", "1")
    store.put_int("b", 2)
    store.put_string_set("c", {"x"})

    store.clear()

    assert store.get_all() == {}


# ==============================================================================
# Snapshots and persistence
# ==============================================================================

def test_get_all_unwraps_values(store):
    store.put_string("s", "v")
    store.put_string_set("set", {"a"})
    store.put_float("f", 0.5)

    snapshot = store.get_all()

    assert snapshot == {"s": "v", "set": {"a"}, "f": 0.5}
    assert isinstance(snapshot["set"], set)


def test_get_all_values_keeps_tags(store):
    store.put_int("i", 1)
    store.put_long("l", 1)

    values = store.get_all_values()

    assert values["i"].type is ValueType.INT
    assert values["l"].type is ValueType.LONG


def test_get_all_is_not_live(store):
    store.put_string("a", "1")
    snapshot = store.get_all()
    store.put_string("b", "2")
    assert "b" not in snapshot


def test_values_survive_reopen(platform):
    first = SecureStore(platform)
    first.initialize()
    first.put_string("auth_token", "abc")
    first.put_long("last_event_id", 99)
    first.remove_by_prefix("auth")
    first.close()

    second = SecureStore(platform)
    second.initialize()
    try:
        assert second.get_all() == {"last_event_id": 99}
    finally:
        second.close()


def test_concurrent_writers_and_prefix_removal(store):
    def writer(prefix):
        for i in range(50):
            store.put_int(f"{prefix}.{i}", i)

    threads = [threading.Thread(target=writer, args=(p,)) for p in ("a", "b", "c")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    store.remove_by_prefix("b.")
    store.flush()

    keys = set(store.get_all())
    assert len(keys) == 100
    assert not any(k.startswith("b.") for k in keys)


def test_concurrent_close_closes_once(platform):
    store = SecureStore(platform)
    store.initialize()
    barrier = threading.Barrier(4)
    errors = []

    def worker():
        barrier.wait()
        try:
            store.close()
        except Exception as e:  # collected for the assertion below
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert not store.initialized
