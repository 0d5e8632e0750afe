"""Concurrent four-source fetch producing one composite DailyRecord.

Sources:
- Neutron bank REST: balances of the burn and treasury wallets
- CoinGecko: spot price under market_data.current_price.usd
- Astroport: pool list, filtered to pools holding the token, summed liquidity

All four are started together and joined with asyncio.gather, so every
source is attempted even when another has already failed or raised. Any
failure fails the whole aggregate, and the error names each failed source.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from tokenomics.config import SourceSettings
from tokenomics.logging import get_logger
from tokenomics.models import (
    DailyRecord,
    FetchResult,
    TokenConfig,
    round_cents,
    usd_value,
    utc_now_iso,
    utc_today,
)
from tokenomics.sources.fetcher import RetryingFetcher

logger = get_logger(__name__)


def normalize_amount(amount: str, decimals: int) -> str:
    """Divide an integer chain amount by 10**decimals, truncating toward zero.

    Pure integer arithmetic: balances can exceed what a float represents exactly.
    """
    value = int(amount)
    divisor = 10**decimals
    quotient = abs(value) // divisor
    return str(-quotient if value < 0 else quotient)


class SourceAggregator:
    """Fetches today's raw figures and assembles them into a DailyRecord.

    Args:
        fetcher: Retrying HTTP fetcher shared by all four sources.
        token: The tracked token (denom for balance matching, symbol for pools).
        sources: Endpoint URLs, wallet addresses and identifiers.
        clock: Returns today's UTC date string; injectable for tests.
    """

    def __init__(
        self,
        fetcher: RetryingFetcher,
        token: TokenConfig,
        sources: SourceSettings,
        clock: Callable[[], str] = utc_today,
    ) -> None:
        self._fetcher = fetcher
        self._token = token
        self._sources = sources
        self._clock = clock

    # ──────────────────────────────────────────────
    # Individual sources
    # ──────────────────────────────────────────────

    async def fetch_wallet_balance(self, address: str) -> FetchResult[str]:
        """Normalized balance of the tracked token held by ``address``.

        A wallet that does not hold the token at all has a balance of "0".
        """
        url = f"{self._sources.neutron_rest}/cosmos/bank/v1beta1/balances/{address}"
        result = await self._fetcher.fetch(url)
        if not result.success:
            return FetchResult.fail(result.error or "Unknown error")

        balances = _get_list(result.data, "balances")
        if balances is None:
            return FetchResult.fail("Balance list not available")

        for balance in balances:
            if isinstance(balance, dict) and balance.get("denom") == self._token.denom:
                try:
                    return FetchResult.ok(
                        normalize_amount(str(balance["amount"]), self._token.decimals)
                    )
                except (KeyError, ValueError):
                    return FetchResult.fail(f"Invalid balance amount for {address}")

        logger.info("token_not_in_wallet", address=address, denom=self._token.denom)
        return FetchResult.ok("0")

    async def fetch_burned_supply(self) -> FetchResult[str]:
        return await self.fetch_wallet_balance(self._sources.burn_address)

    async def fetch_treasury_supply(self) -> FetchResult[str]:
        return await self.fetch_wallet_balance(self._sources.treasury_address)

    async def fetch_price(self) -> FetchResult[float]:
        """Spot USD price. A missing price field is a shape error and is not retried."""
        url = f"{self._sources.coingecko_base}/coins/{self._sources.coingecko_id}"
        result = await self._fetcher.fetch(url)
        if not result.success:
            return FetchResult.fail(result.error or "Price data not available")

        price = _dig(result.data, "market_data", "current_price", "usd")
        if isinstance(price, bool) or not isinstance(price, int | float):
            return FetchResult.fail("Price data not available")
        return FetchResult.ok(float(price))

    async def fetch_liquidity(self) -> FetchResult[float]:
        """Total USD liquidity across pools that contain the token."""
        url = f"{self._sources.astroport_pools}?chainId={self._sources.chain_id}"
        result = await self._fetcher.fetch(url)
        if not result.success:
            return FetchResult.fail(result.error or "Unknown error")
        if not isinstance(result.data, list):
            return FetchResult.fail("Pool list not available")

        total = 0.0
        matched = 0
        for index, pool in enumerate(result.data):
            if not isinstance(pool, dict) or not self._pool_holds_token(pool):
                continue
            value = pool.get("totalLiquidityUSD")
            if isinstance(value, bool) or not isinstance(value, int | float):
                pool_id = pool.get("poolAddress") or f"#{index}"
                return FetchResult.fail(f"Invalid liquidity value for pool {pool_id}")
            matched += 1
            total += float(value)

        logger.debug("liquidity_pools_matched", pools=matched, total_usd=total)
        return FetchResult.ok(total)

    def _pool_holds_token(self, pool: dict[str, Any]) -> bool:
        return any(
            isinstance(asset, dict)
            and (
                asset.get("denom") == self._token.denom
                or asset.get("symbol") == self._token.symbol
            )
            for asset in pool.get("assets") or []
        )

    # ──────────────────────────────────────────────
    # Aggregate
    # ──────────────────────────────────────────────

    async def fetch_all(self) -> FetchResult[DailyRecord]:
        date = self._clock()
        logger.info("fetching_all_sources", date=date)

        labels = ("Burned supply", "Treasury supply", "Price", "Liquidity")
        results = await asyncio.gather(
            self.fetch_burned_supply(),
            self.fetch_treasury_supply(),
            self.fetch_price(),
            self.fetch_liquidity(),
            return_exceptions=True,
        )

        settled: list[FetchResult[Any]] = []
        failures: list[str] = []
        for label, result in zip(labels, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(
                    "source_fetch_raised",
                    source=label,
                    error=str(result),
                    exc_info=result,
                )
                failures.append(f"{label}: {result}")
                settled.append(FetchResult.fail(str(result)))
            else:
                if not result.success:
                    failures.append(f"{label}: {result.error}")
                settled.append(result)

        if failures:
            logger.warning("source_aggregate_failed", date=date, failures=failures)
            return FetchResult.fail(f"Failed to fetch: {', '.join(failures)}")

        burned, treasury, price, liquidity = settled

        assert burned.data is not None and treasury.data is not None
        assert price.data is not None and liquidity.data is not None

        record = DailyRecord(
            date=date,
            burned_supply=burned.data,
            treasury_supply=treasury.data,
            price_usd=price.data,
            on_chain_liquidity_usd=round_cents(liquidity.data),
            burned_supply_usd=usd_value(burned.data, price.data),
            treasury_supply_usd=usd_value(treasury.data, price.data),
            updated_at=utc_now_iso(),
        )
        logger.info(
            "source_aggregate_complete",
            date=date,
            price_usd=record.price_usd,
            burned_supply=record.burned_supply,
            treasury_supply=record.treasury_supply,
            on_chain_liquidity_usd=record.on_chain_liquidity_usd,
        )
        return FetchResult.ok(record)


def _dig(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _get_list(data: Any, key: str) -> list | None:
    value = _dig(data, key)
    return value if isinstance(value, list) else None
