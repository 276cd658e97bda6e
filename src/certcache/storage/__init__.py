"""Bucket backends for the certificate cache."""

from .base import Bucket, ObjectReader, ObjectWriter
from .memory import MemoryBucket, MemoryStore
from .s3 import S3Bucket

__all__ = [
    "Bucket",
    "ObjectReader",
    "ObjectWriter",
    "MemoryBucket",
    "MemoryStore",
    "S3Bucket",
]
