"""Shared fixtures for certcache tests."""

from unittest.mock import MagicMock

import pytest

from certcache.cache import StorageCache
from certcache.storage.memory import MemoryStore


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep config files and credentials out of the developer's home."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in (
        "CERTCACHE_ACCESS_KEY_ID",
        "CERTCACHE_SECRET_ACCESS_KEY",
        "CERTCACHE_BUCKET",
        "CERTCACHE_OWNER",
        "CERTCACHE_ENDPOINT_URL",
        "CERTCACHE_REGION",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def memory_store():
    """Empty in-memory backend."""
    return MemoryStore()


@pytest.fixture
def memory_bucket(memory_store):
    """Bucket named "certs" created under "acct-1"."""
    bucket = memory_store.bucket("certs")
    bucket.create("acct-1")
    return bucket


@pytest.fixture
def cache(memory_bucket):
    """StorageCache over the in-memory bucket."""
    return StorageCache(memory_bucket)


@pytest.fixture
def mock_bucket():
    """Bucket double for driving failure paths."""
    bucket = MagicMock()
    bucket.name = "certs"
    return bucket


@pytest.fixture
def s3_env(monkeypatch):
    """Set both credential environment variables."""
    monkeypatch.setenv("CERTCACHE_ACCESS_KEY_ID", "test-access-key")
    monkeypatch.setenv("CERTCACHE_SECRET_ACCESS_KEY", "test-secret-key")
