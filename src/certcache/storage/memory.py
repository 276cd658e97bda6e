"""In-process bucket backend.

Mirrors the S3 backend's semantics closely enough to stand in for it in tests
and local development: commits are atomic per object, last write wins.
"""

import io
import threading
from typing import Dict

from certcache.errors import (
    BucketAlreadyOwnedError,
    BucketConflictError,
    ObjectNotFoundError,
)


class MemoryStore:
    """Shared state for any number of MemoryBucket handles."""

    def __init__(self):
        self.lock = threading.Lock()
        self.owners: Dict[str, str] = {}
        self.objects: Dict[str, Dict[str, bytes]] = {}

    def bucket(self, name: str) -> "MemoryBucket":
        return MemoryBucket(self, name)


class _MemoryWriter:
    def __init__(self, bucket: "MemoryBucket", key: str):
        self._bucket = bucket
        self._key = key
        self._buffer = io.BytesIO()
        self.closed = False

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ValueError(f"write to closed object writer: {self._key}")
        return self._buffer.write(data)

    def close(self) -> None:
        if self.closed:
            return
        self._bucket._commit(self._key, self._buffer.getvalue())
        self.closed = True


class MemoryBucket:
    """Bucket handle backed by a MemoryStore."""

    def __init__(self, store: MemoryStore, name: str):
        self._store = store
        self.name = name

    def _objects(self) -> Dict[str, bytes]:
        return self._store.objects.setdefault(self.name, {})

    def _commit(self, key: str, data: bytes) -> None:
        with self._store.lock:
            self._objects()[key] = data

    def open_reader(self, key: str) -> io.BytesIO:
        with self._store.lock:
            try:
                data = self._objects()[key]
            except KeyError:
                raise ObjectNotFoundError(key) from None
        return io.BytesIO(data)

    def open_writer(self, key: str) -> _MemoryWriter:
        return _MemoryWriter(self, key)

    def delete(self, key: str) -> None:
        with self._store.lock:
            try:
                del self._objects()[key]
            except KeyError:
                raise ObjectNotFoundError(key) from None

    def create(self, owner: str) -> None:
        with self._store.lock:
            current = self._store.owners.get(self.name)
            if current is None:
                self._store.owners[self.name] = owner
                self._store.objects.setdefault(self.name, {})
                return
        if current == owner:
            raise BucketAlreadyOwnedError(self.name)
        raise BucketConflictError(self.name, current)
