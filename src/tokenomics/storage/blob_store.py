"""Key-value blob storage with prefix listing.

BlobStore is the contract the indexer depends on: put/get/list/head over
string keys, plus a write-if-absent mode so two runs racing on the same
day cannot both create the record. SQLiteBlobStore implements it on top of
aiosqlite with WAL mode; every blob is also reachable at
``<public_base_url>/<key>`` through the API's blob route.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Self

import aiosqlite

from tokenomics.exceptions import StorageError
from tokenomics.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1
DEFAULT_PAGE_SIZE = 1000

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS blobs (
    key TEXT PRIMARY KEY,
    content TEXT NOT NULL,
    size INTEGER NOT NULL,
    uploaded_at TEXT NOT NULL
);
"""


@dataclass(frozen=True)
class BlobInfo:
    """Metadata for one stored blob."""

    key: str
    url: str
    size: int
    uploaded_at: str


@dataclass
class BlobPage:
    """One page of a prefix listing. ``cursor`` is None on the last page."""

    blobs: list[BlobInfo] = field(default_factory=list)
    cursor: str | None = None


class BlobStore(ABC):
    """Abstract blob store interface."""

    @abstractmethod
    async def put(self, key: str, content: str, *, overwrite: bool = True) -> str | None:
        """Store ``content`` under ``key`` and return its public URL.

        With overwrite=False the write only happens if the key is absent;
        None is returned when the key already existed.
        """
        ...

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the content stored under ``key``, or None if not found."""
        ...

    @abstractmethod
    async def list(
        self,
        prefix: str,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> BlobPage:
        """List blobs whose key starts with ``prefix``, ordered by key."""
        ...

    @abstractmethod
    async def head(self, key: str) -> BlobInfo | None:
        """Return metadata for ``key``, or None if not found."""
        ...


class SQLiteBlobStore(BlobStore):
    """Blob store backed by a single aiosqlite table.

    Usage:
        async with SQLiteBlobStore("data/blobs.db", "https://host/blobs") as store:
            url = await store.put("daily-data-2025-01-01.json", "{...}")
    """

    def __init__(self, db_path: str, public_base_url: str) -> None:
        self._db_path = db_path
        self._public_base_url = public_base_url.rstrip("/")
        self._connection: aiosqlite.Connection | None = None

    @property
    def db(self) -> aiosqlite.Connection:
        """Raw aiosqlite connection. Raises StorageError if not connected."""
        if self._connection is None:
            raise StorageError("Blob store not connected. Call connect() first.")
        return self._connection

    def url_for(self, key: str) -> str:
        return f"{self._public_base_url}/{key}"

    async def connect(self) -> None:
        """Open the connection, configure pragmas, and create the schema."""
        if self._db_path != ":memory:":
            db_dir = os.path.dirname(self._db_path)
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)
        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")

        await self._connection.executescript(_CREATE_TABLES_SQL)
        await self._connection.commit()
        await self._ensure_schema_version()

        logger.info("blob_store_connected", db_path=self._db_path)

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("blob_store_closed", db_path=self._db_path)

    async def _ensure_schema_version(self) -> None:
        cursor = await self.db.execute("SELECT version FROM schema_version LIMIT 1")
        if await cursor.fetchone() is None:
            await self.db.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            await self.db.commit()

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()

    # ──────────────────────────────────────────────
    # BlobStore
    # ──────────────────────────────────────────────

    async def put(self, key: str, content: str, *, overwrite: bool = True) -> str | None:
        uploaded_at = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        size = len(content.encode("utf-8"))
        if overwrite:
            sql = (
                "INSERT INTO blobs (key, content, size, uploaded_at) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET content = excluded.content, "
                "size = excluded.size, uploaded_at = excluded.uploaded_at"
            )
        else:
            sql = (
                "INSERT INTO blobs (key, content, size, uploaded_at) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(key) DO NOTHING"
            )

        try:
            cursor = await self.db.execute(sql, (key, content, size, uploaded_at))
            await self.db.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

        if cursor.rowcount == 0:
            logger.info("blob_exists_write_skipped", key=key)
            return None

        logger.debug("blob_written", key=key, size=size, overwrite=overwrite)
        return self.url_for(key)

    async def get(self, key: str) -> str | None:
        try:
            cursor = await self.db.execute("SELECT content FROM blobs WHERE key = ?", (key,))
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to read {key}: {e}") from e
        return None if row is None else row[0]

    async def list(
        self,
        prefix: str,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> BlobPage:
        page_size = limit or DEFAULT_PAGE_SIZE
        conditions = ["substr(key, 1, ?) = ?"]
        params: list = [len(prefix), prefix]
        if cursor is not None:
            conditions.append("key > ?")
            params.append(cursor)
        params.append(page_size + 1)

        try:
            rows_cursor = await self.db.execute(
                f"SELECT key, size, uploaded_at FROM blobs "
                f"WHERE {' AND '.join(conditions)} ORDER BY key ASC LIMIT ?",
                params,
            )
            rows = await rows_cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to list {prefix!r}: {e}") from e

        has_more = len(rows) > page_size
        rows = rows[:page_size]
        blobs = [
            BlobInfo(key=row[0], url=self.url_for(row[0]), size=row[1], uploaded_at=row[2])
            for row in rows
        ]
        return BlobPage(blobs=blobs, cursor=blobs[-1].key if has_more else None)

    async def head(self, key: str) -> BlobInfo | None:
        try:
            cursor = await self.db.execute(
                "SELECT key, size, uploaded_at FROM blobs WHERE key = ?", (key,)
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to stat {key}: {e}") from e
        if row is None:
            return None
        return BlobInfo(key=row[0], url=self.url_for(row[0]), size=row[1], uploaded_at=row[2])
