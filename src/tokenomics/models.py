"""Shared data models for the tokenomics indexer.

Quantities read from the chain are integer strings and stay strings after
normalization: they are only ever divided with integer arithmetic, never
through float. Derived USD values are computed with Decimal and rounded to
cents before being stored as JSON numbers.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import date as date_type
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

_CENT = Decimal("0.01")

# Raw (non-derived) fields that may be backfilled from the previous day
RAW_FIELDS = ("burned_supply", "treasury_supply", "price_usd", "on_chain_liquidity_usd")


def utc_today() -> str:
    """Current UTC calendar date as YYYY-MM-DD."""
    return datetime.now(timezone.utc).date().isoformat()


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def previous_day(date: str) -> str:
    """Return the YYYY-MM-DD date one day before ``date``."""
    return (date_type.fromisoformat(date) - timedelta(days=1)).isoformat()


def round_cents(value: float | Decimal) -> float:
    """Round half-up to 2 decimal places."""
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def usd_value(quantity: str, price_usd: float) -> float:
    """quantity x price, rounded to cents.

    Both operands go through Decimal so a large normalized balance keeps all
    of its digits until the final rounding.
    """
    return round_cents(Decimal(quantity) * Decimal(str(price_usd)))


@dataclass(frozen=True)
class TokenConfig:
    """The tracked token: display symbol, on-chain denomination and precision."""

    symbol: str
    denom: str
    decimals: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DailyRecord:
    """One UTC day's snapshot, the unit of storage and of validation."""

    date: str
    burned_supply: str
    treasury_supply: str
    price_usd: float
    on_chain_liquidity_usd: float
    burned_supply_usd: float
    treasury_supply_usd: float
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if data["updated_at"] is None:
            del data["updated_at"]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DailyRecord:
        """Build a record from stored JSON, ignoring keys this version does not know."""
        return cls(
            date=data["date"],
            burned_supply=str(data["burned_supply"]),
            treasury_supply=str(data["treasury_supply"]),
            price_usd=float(data["price_usd"]),
            on_chain_liquidity_usd=float(data["on_chain_liquidity_usd"]),
            burned_supply_usd=float(data["burned_supply_usd"]),
            treasury_supply_usd=float(data["treasury_supply_usd"]),
            updated_at=data.get("updated_at"),
        )


@dataclass
class PartialRecord:
    """Candidate values handed to the fallback builder.

    None means "absent, take yesterday's value". A present zero is a real
    value and is kept.
    """

    burned_supply: str | None = None
    treasury_supply: str | None = None
    price_usd: float | None = None
    on_chain_liquidity_usd: float | None = None

    @classmethod
    def from_record(
        cls, record: DailyRecord, drop: frozenset[str] | set[str] = frozenset()
    ) -> PartialRecord:
        """Copy the raw fields of ``record``, leaving out those named in ``drop``."""
        values = {
            f.name: None if f.name in drop else getattr(record, f.name)
            for f in fields(cls)
        }
        return cls(**values)

    def present_fields(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]


@dataclass
class ValidationOutcome:
    """Result of one validation call. Warnings never affect validity."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    invalid_fields: frozenset[str] = frozenset()


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Success/failure envelope returned across component boundaries."""

    success: bool
    data: T | None = None
    error: str | None = None
    used_fallback: bool = False

    @classmethod
    def ok(cls, data: T, used_fallback: bool = False) -> FetchResult[T]:
        return cls(success=True, data=data, used_fallback=used_fallback)

    @classmethod
    def fail(cls, error: str) -> FetchResult[T]:
        return cls(success=False, error=error)


class IndexingStatus(str, Enum):
    """Terminal state of one indexing run."""

    STORED = "stored"
    STORED_FALLBACK = "stored_fallback"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class IndexingOutcome:
    """What an indexing run reports back to its caller."""

    status: IndexingStatus
    date: str
    message: str
    used_fallback: bool = False
    warnings: list[str] | None = None
    errors: list[str] | None = None
    execution_time_ms: int = 0
    url: str | None = None

    @property
    def success(self) -> bool:
        return self.status is not IndexingStatus.FAILED

    @property
    def http_status(self) -> int:
        return 200 if self.success else 500

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "success": self.success,
            "status": self.status.value,
            "date": self.date,
            "message": self.message,
            "executionTime": self.execution_time_ms,
        }
        if self.used_fallback:
            result["usedFallback"] = True
        if self.warnings:
            result["warnings"] = self.warnings
        if self.errors:
            result["errors"] = self.errors
        if self.url is not None:
            result["url"] = self.url
        return result
