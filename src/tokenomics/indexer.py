"""Daily indexing run: fetch, validate, fall back if needed, store.

Each run walks one path through:

    EXISTS_CHECK -> FETCH -> VALIDATE -> STORE                     (stored)
                        \\           \\-> BUILD_FALLBACK -> STORE   (stored_fallback)
                         \\-> BUILD_FALLBACK -> STORE               (stored_fallback)

and ends in one of stored / stored_fallback / skipped / failed. A record
that already exists for today is left alone unless the caller passes
force=True. Without force the final write is write-if-absent, so a second
run racing this one cannot produce a duplicate or clobber the first write.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from tokenomics.exceptions import StorageError
from tokenomics.fallback import FallbackBuilder
from tokenomics.logging import bind_run_context, clear_run_context, get_logger
from tokenomics.models import (
    DailyRecord,
    IndexingOutcome,
    IndexingStatus,
    PartialRecord,
    previous_day,
    utc_today,
)
from tokenomics.sources.aggregator import SourceAggregator
from tokenomics.storage.records import RecordStore
from tokenomics.validation import DataValidator

logger = get_logger(__name__)


class DailyIndexer:
    """Sequences aggregator, validator, fallback builder and record store.

    Args:
        aggregator: Four-source fetch producing today's candidate record.
        validator: Absolute and day-over-day checks.
        fallback_builder: Backfills from yesterday's record.
        records: Record persistence.
        clock: Returns today's UTC date string; injectable for tests.
    """

    def __init__(
        self,
        aggregator: SourceAggregator,
        validator: DataValidator,
        fallback_builder: FallbackBuilder,
        records: RecordStore,
        clock: Callable[[], str] = utc_today,
    ) -> None:
        self._aggregator = aggregator
        self._validator = validator
        self._fallback = fallback_builder
        self._records = records
        self._clock = clock

    async def run(self, force: bool = False) -> IndexingOutcome:
        """Index today's data. ``force`` overwrites a record that already exists."""
        start = time.monotonic()
        date = self._clock()
        bind_run_context(date, force)
        logger.info("indexing_started")

        try:
            outcome = await self._run(date, force)
        except Exception as e:
            logger.error("indexing_unexpected_error", error=str(e), exc_info=True)
            outcome = IndexingOutcome(
                status=IndexingStatus.FAILED,
                date=date,
                message=f"Unexpected error: {e}",
                errors=[str(e)],
            )

        outcome.execution_time_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "indexing_finished",
            status=outcome.status.value,
            message=outcome.message,
            used_fallback=outcome.used_fallback,
            execution_time_ms=outcome.execution_time_ms,
        )
        clear_run_context()
        return outcome

    async def _run(self, date: str, force: bool) -> IndexingOutcome:
        existed = await self._record_exists(date)
        if existed and not force:
            logger.info("record_already_exists", note="pass force to overwrite")
            return IndexingOutcome(
                status=IndexingStatus.SKIPPED,
                date=date,
                message=f"Data already exists for {date}",
            )

        fetch = await self._aggregator.fetch_all()

        if not fetch.success or fetch.data is None:
            fetch_error = fetch.error or "Unknown fetch error"
            logger.warning("fetch_failed_trying_fallback", error=fetch_error)
            fallback = await self._fallback.build(date, PartialRecord())
            if not fallback.success or fallback.data is None:
                return IndexingOutcome(
                    status=IndexingStatus.FAILED,
                    date=date,
                    message=f"Data fetch failed and no fallback available: {fetch_error}",
                    errors=[fetch_error, fallback.error or "Unknown fallback error"],
                )
            return await self._store(
                fallback.data,
                force=force,
                status=IndexingStatus.STORED_FALLBACK,
                message="Data indexed using fallback values",
                warnings=["Used previous day data due to fetch failures"],
                errors=[fetch_error],
            )

        current = fetch.data
        previous = await self._load_previous(date)
        validation = self._validator.validate(current, previous)

        if not validation.is_valid:
            candidate = PartialRecord.from_record(current, drop=validation.invalid_fields)
            fallback = await self._fallback.build(date, candidate)
            if not fallback.success or fallback.data is None:
                return IndexingOutcome(
                    status=IndexingStatus.FAILED,
                    date=date,
                    message="Data validation failed and no fallback available",
                    warnings=validation.warnings or None,
                    errors=[*validation.errors, fallback.error or "Unknown fallback error"],
                )
            return await self._store(
                fallback.data,
                force=force,
                status=IndexingStatus.STORED_FALLBACK,
                message="Data indexed using fallback due to validation failures",
                warnings=validation.warnings or None,
                errors=validation.errors,
            )

        return await self._store(
            current,
            force=force,
            status=IndexingStatus.STORED,
            message="Data updated successfully" if existed else "Data indexed successfully",
            warnings=validation.warnings or None,
        )

    async def _store(
        self,
        record: DailyRecord,
        *,
        force: bool,
        status: IndexingStatus,
        message: str,
        warnings: list[str] | None = None,
        errors: list[str] | None = None,
    ) -> IndexingOutcome:
        used_fallback = status is IndexingStatus.STORED_FALLBACK
        result = await self._records.store(record, overwrite=force)

        if not result.success:
            storage_error = result.error or "Unknown storage error"
            label = "fallback data" if used_fallback else "data"
            return IndexingOutcome(
                status=IndexingStatus.FAILED,
                date=record.date,
                message=f"Failed to store {label}: {storage_error}",
                used_fallback=used_fallback,
                warnings=warnings,
                errors=[*(errors or []), storage_error],
            )

        if result.data is None:
            # Conditional write lost to a concurrent run that stored first
            return IndexingOutcome(
                status=IndexingStatus.SKIPPED,
                date=record.date,
                message=f"Data already exists for {record.date}",
            )

        return IndexingOutcome(
            status=status,
            date=record.date,
            message=message,
            used_fallback=used_fallback,
            warnings=warnings,
            errors=errors,
            url=result.data,
        )

    async def _record_exists(self, date: str) -> bool:
        try:
            return await self._records.exists(date)
        except StorageError as e:
            logger.warning("exists_check_failed", error=str(e))
            return False

    async def _load_previous(self, date: str) -> DailyRecord | None:
        """Yesterday's record for comparative validation, None if unavailable."""
        try:
            previous = await self._records.find(previous_day(date))
        except StorageError as e:
            logger.warning("previous_record_unavailable", error=str(e))
            return None
        if previous is None:
            logger.info("no_previous_record", note="comparative validation skipped")
        return previous
