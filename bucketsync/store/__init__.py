"""Object store backends."""

from .base import CompletedPart, ObjectStore, RemoteMeta
from .memory import MemoryObjectStore
from .s3 import S3ObjectStore, create_store

__all__ = [
    "CompletedPart",
    "MemoryObjectStore",
    "ObjectStore",
    "RemoteMeta",
    "S3ObjectStore",
    "create_store",
]
