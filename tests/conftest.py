"""Shared fixtures for SecureStore tests."""

import os

import pytest

from securestore.context import PlatformContext
from securestore.security.master_key import RawKeySource
from securestore.store import SecureStore


@pytest.fixture
def master_key_bytes() -> bytes:
    return os.urandom(32)


@pytest.fixture
def platform(tmp_path, master_key_bytes) -> PlatformContext:
    return PlatformContext(data_dir=tmp_path / "data", key_source=RawKeySource(master_key_bytes))


@pytest.fixture
def store(platform):
    """An initialized store, closed (and flushed) after the test."""
    s = SecureStore(platform)
    s.initialize()
    yield s
    s.close()
