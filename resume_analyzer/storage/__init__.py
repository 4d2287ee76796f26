"""Blob and key-value storage adapters."""

from .blob import BlobStore, FileBlob, InMemoryBlobStore, LocalBlobStore, UploadedBlob
from .kv import InMemoryKeyValueStore, KeyValueStore, SQLiteKeyValueStore

__all__ = [
    "BlobStore",
    "FileBlob",
    "InMemoryBlobStore",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "LocalBlobStore",
    "SQLiteKeyValueStore",
    "UploadedBlob",
]
