"""DailyRecord persistence on top of a BlobStore.

One pretty-printed JSON file per UTC date under ``<prefix>-<date>.json``.
Writes replace content in place, so a date never has more than one record.
All methods return FetchResult; StorageError from the blob store is turned
into a failure carrying its message.
"""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import replace

from tokenomics.exceptions import StorageError
from tokenomics.logging import get_logger
from tokenomics.models import DailyRecord, FetchResult, utc_now_iso
from tokenomics.storage.blob_store import BlobInfo, BlobStore

logger = get_logger(__name__)

_DATE_RE = re.compile(r"(\d{4}-\d{2}-\d{2})\.json$")


class RecordStore:
    """Typed read/write access to stored daily records.

    Usage:
        store = RecordStore(blob_store, "daily-data")
        result = await store.get_range(30)
    """

    def __init__(self, blob_store: BlobStore, file_prefix: str = "daily-data") -> None:
        self._blobs = blob_store
        self._prefix = file_prefix

    def key_for(self, date: str) -> str:
        return f"{self._prefix}-{date}.json"

    def date_from_key(self, key: str) -> str | None:
        """Date part of a record key, or None for keys that are not daily records."""
        name = key.rsplit("/", 1)[-1]
        if not name.startswith(f"{self._prefix}-"):
            return None
        match = _DATE_RE.search(name)
        return match.group(1) if match else None

    # ──────────────────────────────────────────────
    # Write
    # ──────────────────────────────────────────────

    async def store(
        self,
        record: DailyRecord,
        *,
        overwrite: bool = True,
    ) -> FetchResult[str | None]:
        """Persist ``record``; data is the public URL.

        With overwrite=False the write is conditional and data is None when a
        record for that date already existed.
        """
        if record.updated_at is None:
            record = replace(record, updated_at=utc_now_iso())

        key = self.key_for(record.date)
        content = json.dumps(record.to_dict(), indent=2)

        try:
            url = await self._blobs.put(key, content, overwrite=overwrite)
        except StorageError as e:
            logger.error("record_store_failed", date=record.date, error=str(e))
            return FetchResult.fail(str(e))

        logger.info(
            "record_stored",
            date=record.date,
            url=url,
            updated_at=record.updated_at,
            written=url is not None,
        )
        return FetchResult.ok(url)

    # ──────────────────────────────────────────────
    # Read
    # ──────────────────────────────────────────────

    async def find(self, date: str) -> DailyRecord | None:
        """Record for ``date`` or None when absent.

        Raises StorageError when the store fails or the stored JSON is malformed.
        """
        content = await self._blobs.get(self.key_for(date))
        if content is None:
            return None
        try:
            return DailyRecord.from_dict(json.loads(content))
        except (ValueError, KeyError, TypeError) as e:
            raise StorageError(f"Stored data for {date} is malformed: {e}") from e

    async def get(self, date: str) -> FetchResult[DailyRecord]:
        try:
            record = await self.find(date)
        except StorageError as e:
            logger.error("record_read_failed", date=date, error=str(e))
            return FetchResult.fail(str(e))

        if record is None:
            return FetchResult.fail(f"No data found for date: {date}")
        return FetchResult.ok(record)

    async def exists(self, date: str) -> bool:
        return await self._blobs.head(self.key_for(date)) is not None

    async def get_latest(self) -> FetchResult[DailyRecord]:
        result = await self.get_range(1)
        if not result.success:
            return FetchResult.fail(result.error or "Unknown retrieval error")
        if not result.data:
            return FetchResult.fail("No data found in storage")
        return FetchResult.ok(result.data[0])

    async def get_range(self, days: int | None) -> FetchResult[list[DailyRecord]]:
        """The ``days`` most recent records (all when None), newest first.

        An empty store is a success with an empty list.
        """
        logger.info("fetching_record_range", days=days if days is not None else "all")
        try:
            blobs = await self._list_all()
        except StorageError as e:
            logger.error("record_range_failed", days=days, error=str(e))
            return FetchResult.fail(str(e))

        dated = [(date, blob) for blob in blobs if (date := self.date_from_key(blob.key))]
        dated.sort(key=lambda item: item[0], reverse=True)
        if days is not None:
            dated = dated[:days]

        results = await asyncio.gather(*(self.get(date) for date, _ in dated))
        records: list[DailyRecord] = []
        for (date, blob), result in zip(dated, results):
            if not result.success or result.data is None:
                return FetchResult.fail(
                    f"Failed to fetch data from {blob.url}: {result.error}"
                )
            records.append(result.data)

        records.sort(key=lambda r: r.date, reverse=True)
        return FetchResult.ok(records)

    async def _list_all(self) -> list[BlobInfo]:
        """Walk every listing page for this prefix."""
        page = await self._blobs.list(self._prefix)
        blobs = list(page.blobs)
        while page.cursor:
            page = await self._blobs.list(self._prefix, cursor=page.cursor)
            blobs.extend(page.blobs)
        return blobs
