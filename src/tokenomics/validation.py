"""Data-quality checks for a freshly fetched DailyRecord.

Two independent phases:
  1. Absolute bounds: price range, non-negative supplies and liquidity,
     derived USD values consistent with quantity x price.
  2. Comparative (only when yesterday's record is available): day-over-day
     percent change against configured thresholds.

Errors make the record invalid; warnings are informational only.
"""

from decimal import Decimal

from tokenomics.config import ValidationSettings
from tokenomics.logging import get_logger
from tokenomics.models import DailyRecord, ValidationOutcome

logger = get_logger(__name__)


def percent_change(old: float, new: float) -> float:
    """(new - old) / old * 100, with a zero baseline read as 0% or 100%."""
    if old == 0:
        return 0.0 if new == 0 else 100.0
    return (new - old) / old * 100


class DataValidator:
    """Classifies problems in a record as errors or warnings.

    Args:
        settings: Price bounds, change-rate limit and USD rounding tolerance.
    """

    def __init__(self, settings: ValidationSettings) -> None:
        self._settings = settings

    def validate(
        self,
        current: DailyRecord,
        previous: DailyRecord | None = None,
    ) -> ValidationOutcome:
        errors: list[str] = []
        warnings: list[str] = []
        invalid: set[str] = set()

        self._check_bounds(current, errors, invalid)
        if previous is not None:
            self._check_changes(current, previous, errors, warnings, invalid)

        outcome = ValidationOutcome(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            invalid_fields=frozenset(invalid),
        )

        if errors:
            logger.warning(
                "validation_failed",
                date=current.date,
                errors=errors,
                invalid_fields=sorted(invalid),
            )
        elif warnings:
            logger.info("validation_warnings", date=current.date, warnings=warnings)

        return outcome

    # ──────────────────────────────────────────────
    # Absolute bounds
    # ──────────────────────────────────────────────

    def _check_bounds(
        self,
        data: DailyRecord,
        errors: list[str],
        invalid: set[str],
    ) -> None:
        min_price = self._settings.min_price_usd
        max_price = self._settings.max_price_usd

        if data.price_usd < min_price:
            errors.append(f"Price too low: ${data.price_usd} (min: ${min_price})")
            invalid.add("price_usd")
        if data.price_usd > max_price:
            errors.append(f"Price too high: ${data.price_usd} (max: ${max_price})")
            invalid.add("price_usd")

        burned = Decimal(data.burned_supply)
        treasury = Decimal(data.treasury_supply)

        if burned < 0:
            errors.append(f"Burned supply cannot be negative: {data.burned_supply}")
            invalid.add("burned_supply")
        if treasury < 0:
            errors.append(f"Treasury supply cannot be negative: {data.treasury_supply}")
            invalid.add("treasury_supply")

        if data.on_chain_liquidity_usd < 0:
            errors.append(
                f"On-chain liquidity cannot be negative: ${data.on_chain_liquidity_usd}"
            )
            invalid.add("on_chain_liquidity_usd")

        price = Decimal(str(data.price_usd))
        self._check_usd_consistency(
            "Burned supply", float(burned * price), data.burned_supply_usd, errors
        )
        self._check_usd_consistency(
            "Treasury supply", float(treasury * price), data.treasury_supply_usd, errors
        )

    def _check_usd_consistency(
        self,
        label: str,
        expected: float,
        actual: float,
        errors: list[str],
    ) -> None:
        # A zero expectation has no meaningful relative difference
        if expected == 0:
            return
        difference_pct = abs(expected - actual) / abs(expected) * 100
        if difference_pct > self._settings.usd_tolerance_percent:
            errors.append(
                f"{label} USD value calculation mismatch: "
                f"expected {expected:.2f}, got {actual:.2f}"
            )

    # ──────────────────────────────────────────────
    # Day-over-day changes
    # ──────────────────────────────────────────────

    def _check_changes(
        self,
        current: DailyRecord,
        previous: DailyRecord,
        errors: list[str],
        warnings: list[str],
        invalid: set[str],
    ) -> None:
        limit = self._settings.max_daily_change_percent

        price_change = percent_change(previous.price_usd, current.price_usd)
        if abs(price_change) > limit:
            errors.append(f"Extreme price change: {price_change:.2f}% (max: ±{limit:g}%)")
            invalid.add("price_usd")
        elif abs(price_change) > limit / 2:
            warnings.append(f"Large price change: {price_change:.2f}%")

        burned_change = percent_change(
            float(previous.burned_supply), float(current.burned_supply)
        )
        if abs(burned_change) > limit:
            warnings.append(f"Large burned supply change: {burned_change:.2f}%")

        treasury_change = percent_change(
            float(previous.treasury_supply), float(current.treasury_supply)
        )
        if abs(treasury_change) > limit:
            warnings.append(f"Large treasury supply change: {treasury_change:.2f}%")

        liquidity_change = percent_change(
            previous.on_chain_liquidity_usd, current.on_chain_liquidity_usd
        )
        if abs(liquidity_change) > limit * 2:
            warnings.append(f"Large liquidity change: {liquidity_change:.2f}%")

        # The percent formula cannot tell a real crash from a missing price
        if current.price_usd == 0 and previous.price_usd > 0:
            errors.append("Price dropped to zero - likely data fetch error")
            invalid.add("price_usd")
