"""ACME certificate cache stored in an object-storage bucket.

``StorageCache`` replaces a directory-backed certificate cache with a bucket
that every replica of a service can share.  Keys are used verbatim as object
names and values are opaque bytes.

Every blocking backend call runs in the event loop's default executor, so
cancelling the awaiting task (or wrapping it in ``asyncio.wait_for``) is the
only timeout mechanism; the cache adds none of its own.
"""

import asyncio
import logging
import sys
from contextlib import closing
from dataclasses import dataclass
from typing import Callable, NoReturn, Optional, Protocol, Union

from certcache.config import CacheConfig
from certcache.errors import (
    BackendUnavailableError,
    BucketAlreadyOwnedError,
    CacheMiss,
    ObjectNotFoundError,
)
from certcache.retry import RetryPolicy
from certcache.storage.base import Bucket
from certcache.storage.s3 import S3Bucket

logger = logging.getLogger(__name__)

BucketFactory = Callable[[str], Bucket]


class CertCache(Protocol):
    """What a certificate manager needs from its cache."""

    async def get(self, key: str) -> bytes: ...

    async def put(self, key: str, data: bytes) -> None: ...

    async def delete(self, key: str) -> None: ...


@dataclass(frozen=True)
class Hit:
    data: bytes


@dataclass(frozen=True)
class Miss:
    key: str


@dataclass(frozen=True)
class Failure:
    key: str
    cause: Exception


CacheResult = Union[Hit, Miss, Failure]


def _fatal(msg: str, *args) -> NoReturn:
    logger.critical(msg, *args)
    sys.exit(1)


class StorageCache:
    """Certificate cache backed by one bucket.

    The bucket handle and retry policy are fixed at construction; instances
    hold no per-call state and can be shared across tasks freely.
    """

    __slots__ = ("_bucket", "_retry")

    def __init__(self, bucket: Bucket, retry: Optional[RetryPolicy] = None):
        """Wrap an existing bucket handle.

        Args:
            bucket: Backend holding the cache entries
            retry: Retry policy for get/put/delete (default: single attempt)
        """
        self._bucket = bucket
        self._retry = retry or RetryPolicy()

    @property
    def bucket(self) -> Bucket:
        return self._bucket

    @property
    def retry(self) -> RetryPolicy:
        return self._retry

    @classmethod
    def init(
        cls,
        bucket_name: str,
        owner: str,
        *,
        endpoint_url: str = "",
        region: str = "",
        retry: Optional[RetryPolicy] = None,
        bucket_factory: Optional[BucketFactory] = None,
    ) -> "StorageCache":
        """Connect to the backend and make sure the bucket exists.

        A client that cannot be built, or a backend that cannot be reached,
        ends the process with exit status 1.  Creating a bucket the caller
        already owns counts as success, so repeated calls are safe.

        Args:
            bucket_name: Bucket holding the cache entries
            owner: Account identity the bucket is created under
            endpoint_url: S3-compatible endpoint ("" for AWS)
            region: Bucket region ("" for the client default)
            retry: Retry policy for cache operations
            bucket_factory: Builds the bucket handle from its name, replacing
                the S3 client (endpoint_url and region are then ignored)

        Returns:
            StorageCache bound to the bucket

        Raises:
            Exception: Any bucket creation failure other than the two above,
                unchanged from the backend
        """
        try:
            if bucket_factory is None:
                bucket = S3Bucket.connect(bucket_name, endpoint_url=endpoint_url, region=region)
            else:
                bucket = bucket_factory(bucket_name)
        except (BackendUnavailableError, ValueError) as e:
            _fatal("Failed to create storage client: %s", e)

        cache = cls(bucket, retry=retry)

        try:
            bucket.create(owner)
        except BucketAlreadyOwnedError:
            logger.info("Certs bucket %s already exists", bucket_name)
        except BackendUnavailableError as e:
            _fatal("Storage backend unreachable while creating %s: %s", bucket_name, e)
        else:
            logger.info("Certs bucket %s created", bucket_name)

        return cache

    async def _call(self, name: str, key: str, func, *args):
        # func records what it was doing in stage[0] so the final failure is
        # logged once, after the retry policy gives up.
        stage = [""]
        loop = asyncio.get_event_loop()
        try:
            return await self._retry.run(
                name, lambda: loop.run_in_executor(None, func, stage, key, *args)
            )
        except CacheMiss:
            raise
        except Exception as e:
            logger.error(stage[0] + ": %s", key, e)
            raise

    async def get(self, key: str) -> bytes:
        """Fetch the value stored under *key*.

        Raises:
            CacheMiss: If nothing is stored under *key*
        """
        logger.info("Fetching %s from cache", key)
        return await self._call("get", key, self._read)

    async def put(self, key: str, data: bytes) -> None:
        """Store *data* under *key*, replacing any existing value.

        Any exception means the value is not guaranteed to be stored.
        """
        logger.info("Putting %s into cache", key)
        await self._call("put", key, self._write, data)

    async def delete(self, key: str) -> None:
        """Remove *key*; a missing key raises the bucket's ObjectNotFoundError."""
        logger.info("Deleting %s from cache", key)
        await self._call("delete", key, self._remove)

    async def lookup(self, key: str) -> CacheResult:
        """Like ``get``, but return Hit/Miss/Failure instead of raising."""
        try:
            data = await self.get(key)
        except CacheMiss:
            return Miss(key)
        except Exception as e:
            return Failure(key, e)
        return Hit(data)

    def _read(self, stage: list, key: str) -> bytes:
        stage[0] = "Fetching %s from cache"
        try:
            reader = self._bucket.open_reader(key)
        except ObjectNotFoundError as e:
            raise CacheMiss(key) from e

        stage[0] = "Reading %s from cache"
        with closing(reader):
            return reader.read()

    def _write(self, stage: list, key: str, data: bytes) -> None:
        stage[0] = "Opening %s in cache"
        writer = self._bucket.open_writer(key)

        # A failed write is not committed, so close is skipped
        stage[0] = "Writing %s to cache"
        writer.write(data)

        stage[0] = "Closing %s in cache"
        writer.close()

    def _remove(self, stage: list, key: str) -> None:
        stage[0] = "Deleting %s from cache"
        self._bucket.delete(key)


def init_from_config(
    config: CacheConfig,
    bucket_factory: Optional[BucketFactory] = None,
) -> StorageCache:
    """``StorageCache.init`` with every setting taken from *config*."""
    return StorageCache.init(
        config.bucket,
        config.owner,
        endpoint_url=config.endpoint_url,
        region=config.region,
        retry=retry_policy(config),
        bucket_factory=bucket_factory,
    )


def retry_policy(config: CacheConfig) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=config.max_attempts,
        base_delay=config.base_delay,
        max_delay=config.max_delay,
    )
