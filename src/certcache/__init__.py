"""certcache - ACME certificate cache in S3-compatible object storage.

This package provides:
- A bucket-backed cache with get/put/delete for certificate managers
- S3 and in-memory bucket backends
- The ``certcache`` CLI for inspecting and editing cache entries
"""

__version__ = "0.1.0"

from certcache.cache import (
    CacheResult,
    CertCache,
    Failure,
    Hit,
    Miss,
    StorageCache,
    init_from_config,
)
from certcache.errors import CacheMiss, CertCacheError, ObjectNotFoundError
from certcache.retry import RetryPolicy

__all__ = [
    "CacheMiss",
    "CacheResult",
    "CertCache",
    "CertCacheError",
    "Failure",
    "Hit",
    "Miss",
    "ObjectNotFoundError",
    "RetryPolicy",
    "StorageCache",
    "init_from_config",
]
