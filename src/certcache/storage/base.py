"""Backing-store contract consumed by the certificate cache."""

from typing import Protocol


class ObjectReader(Protocol):
    def read(self) -> bytes: ...

    def close(self) -> None: ...


class ObjectWriter(Protocol):
    """Create-or-overwrite stream for one object.

    Nothing is visible to readers until ``close()`` commits the payload.
    """

    def write(self, data: bytes) -> int: ...

    def close(self) -> None: ...


class Bucket(Protocol):
    """One named container of objects.

    Implementations raise ``ObjectNotFoundError`` from ``open_reader`` and
    ``delete`` when the object is absent, and ``BucketAlreadyOwnedError``
    from ``create`` when the caller already owns the bucket.
    """

    name: str

    def open_reader(self, key: str) -> ObjectReader: ...

    def open_writer(self, key: str) -> ObjectWriter: ...

    def delete(self, key: str) -> None: ...

    def create(self, owner: str) -> None: ...
