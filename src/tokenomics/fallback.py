"""Substitute-record construction from the previous day's stored data.

Each raw field takes the candidate's value when present and yesterday's
value otherwise. USD values are always recomputed from the merged quantity
and price, never copied, so a partial fetch can't pair fresh raw figures
with stale derived ones. Only one day back is consulted.
"""

from tokenomics.exceptions import StorageError
from tokenomics.logging import get_logger
from tokenomics.models import (
    RAW_FIELDS,
    DailyRecord,
    FetchResult,
    PartialRecord,
    previous_day,
    usd_value,
)
from tokenomics.storage.records import RecordStore

logger = get_logger(__name__)


class FallbackBuilder:
    """Builds fallback records by field-level backfill.

    Args:
        records: Store used to load the record for ``date - 1``.
    """

    def __init__(self, records: RecordStore) -> None:
        self._records = records

    async def build(
        self,
        date: str,
        candidate: PartialRecord | None = None,
    ) -> FetchResult[DailyRecord]:
        candidate = candidate or PartialRecord()
        prev_date = previous_day(date)

        try:
            prev = await self._records.find(prev_date)
        except StorageError as e:
            logger.error("fallback_previous_read_failed", date=date, error=str(e))
            return FetchResult.fail(f"Could not load previous data for fallback: {e}")

        if prev is None:
            logger.warning("fallback_unavailable", date=date, previous_date=prev_date)
            return FetchResult.fail("No previous data available for fallback")

        merged = {
            name: value if (value := getattr(candidate, name)) is not None else getattr(prev, name)
            for name in RAW_FIELDS
        }

        record = DailyRecord(
            date=date,
            burned_supply=merged["burned_supply"],
            treasury_supply=merged["treasury_supply"],
            price_usd=merged["price_usd"],
            on_chain_liquidity_usd=merged["on_chain_liquidity_usd"],
            burned_supply_usd=usd_value(merged["burned_supply"], merged["price_usd"]),
            treasury_supply_usd=usd_value(merged["treasury_supply"], merged["price_usd"]),
        )

        logger.info(
            "fallback_record_built",
            date=date,
            previous_date=prev_date,
            kept_fields=candidate.present_fields(),
        )
        return FetchResult.ok(record, used_fallback=True)
