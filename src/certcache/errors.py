"""Exception types raised by certcache.

Backend exceptions that are not listed here (``botocore`` ``ClientError`` and
friends) are never wrapped; they reach the caller as raised by the backend.
"""

from typing import Optional


class CertCacheError(Exception):
    """Base class for certcache errors."""


class CacheMiss(CertCacheError):
    """No value is currently stored for the requested key.

    This is the expected "need to issue" signal, not a storage failure.
    """

    def __init__(self, key: str):
        super().__init__(f"cache miss: {key}")
        self.key = key


class ObjectNotFoundError(CertCacheError):
    """The bucket has no object with the given name."""

    def __init__(self, key: str):
        super().__init__(f"object not found: {key}")
        self.key = key


class BucketAlreadyOwnedError(CertCacheError):
    """The bucket already exists and belongs to the caller."""

    def __init__(self, bucket: str):
        super().__init__(f"bucket already owned by you: {bucket}")
        self.bucket = bucket


class BucketConflictError(CertCacheError):
    """The bucket name is taken by a different owner."""

    def __init__(self, bucket: str, owner: str):
        super().__init__(f"bucket {bucket} is owned by {owner}")
        self.bucket = bucket
        self.owner = owner


class BackendUnavailableError(CertCacheError):
    """The storage backend cannot be reached or no client could be built."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause
