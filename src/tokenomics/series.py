"""Column-oriented time series built from stored daily records."""

from typing import Any

from tokenomics.exceptions import InvalidDaysError
from tokenomics.models import DailyRecord, TokenConfig, utc_today

DAYS_OPTIONS = ("30", "90", "180", "all")


def parse_days(value: str) -> int | None:
    """Map a range parameter to a day count; None means every stored day."""
    if value not in DAYS_OPTIONS:
        raise InvalidDaysError(
            f"Days parameter must be one of: {', '.join(DAYS_OPTIONS)}"
        )
    return None if value == "all" else int(value)


def build_tokenomics_response(
    records: list[DailyRecord],
    days_param: str,
    token: TokenConfig,
) -> dict[str, Any]:
    """Reshape per-day records (newest first) into one series per metric."""
    days = parse_days(days_param)
    latest = records[0] if records else None

    return {
        "data": {
            "burned_supply": [
                {"date": r.date, "amount": r.burned_supply, "value_usd": r.burned_supply_usd}
                for r in records
            ],
            "treasury_supply": [
                {"date": r.date, "amount": r.treasury_supply, "value_usd": r.treasury_supply_usd}
                for r in records
            ],
            "price_usd": [{"date": r.date, "value_usd": r.price_usd} for r in records],
            "on_chain_liquidity_usd": [
                {"date": r.date, "value_usd": r.on_chain_liquidity_usd} for r in records
            ],
        },
        "meta": {
            "token": token.to_dict(),
            "last_updated": latest.date if latest else utc_today(),
            "total_records": len(records),
            "days_requested": len(records) if days is None else days,
        },
    }
