"""Persistence layer.

Provides the BlobStore contract with its aiosqlite implementation, and the
RecordStore that keeps one JSON DailyRecord per date on top of it.
"""

from tokenomics.storage.blob_store import BlobInfo, BlobPage, BlobStore, SQLiteBlobStore
from tokenomics.storage.records import RecordStore

__all__ = [
    "BlobInfo",
    "BlobPage",
    "BlobStore",
    "RecordStore",
    "SQLiteBlobStore",
]
