"""Shared test fixtures for the tokenomics indexer."""

from collections.abc import Callable

import pytest
import pytest_asyncio

from tokenomics.config import RetrySettings, SourceSettings, ValidationSettings
from tokenomics.models import DailyRecord, TokenConfig, usd_value
from tokenomics.storage.blob_store import SQLiteBlobStore
from tokenomics.storage.records import RecordStore

TOKEN = TokenConfig(
    symbol="MARS",
    denom="factory/neutron1testcreator/MARS",
    decimals=6,
)


@pytest.fixture
def token() -> TokenConfig:
    return TOKEN


@pytest.fixture
def source_settings() -> SourceSettings:
    return SourceSettings(
        neutron_rest="https://rest.test",
        coingecko_base="https://coingecko.test/api/v3",
        coingecko_id="mars-protocol",
        astroport_pools="https://astroport.test/api/pools",
        chain_id="neutron-1",
        burn_address="neutron1burn",
        treasury_address="neutron1treasury",
    )


@pytest.fixture
def retry_settings() -> RetrySettings:
    return RetrySettings(
        max_retries=3,
        retry_delay=1.0,
        backoff_multiplier=2.0,
        request_timeout=10.0,
    )


@pytest.fixture
def validation_settings() -> ValidationSettings:
    return ValidationSettings()


@pytest.fixture
def make_record() -> Callable[..., DailyRecord]:
    """Factory for consistent DailyRecords; USD values derive from quantity x price
    unless given explicitly."""

    def _make(
        date: str = "2025-01-02",
        burned_supply: str = "50000000",
        treasury_supply: str = "20000000",
        price_usd: float = 0.15,
        on_chain_liquidity_usd: float = 250000.0,
        burned_supply_usd: float | None = None,
        treasury_supply_usd: float | None = None,
        updated_at: str | None = "2025-01-02T00:05:00.000Z",
    ) -> DailyRecord:
        return DailyRecord(
            date=date,
            burned_supply=burned_supply,
            treasury_supply=treasury_supply,
            price_usd=price_usd,
            on_chain_liquidity_usd=on_chain_liquidity_usd,
            burned_supply_usd=(
                usd_value(burned_supply, price_usd)
                if burned_supply_usd is None
                else burned_supply_usd
            ),
            treasury_supply_usd=(
                usd_value(treasury_supply, price_usd)
                if treasury_supply_usd is None
                else treasury_supply_usd
            ),
            updated_at=updated_at,
        )

    return _make


@pytest_asyncio.fixture
async def blob_store(tmp_path):
    """Connected SQLiteBlobStore in a temporary directory."""
    async with SQLiteBlobStore(str(tmp_path / "blobs.db"), "https://blobs.test") as store:
        yield store


@pytest.fixture
def records(blob_store: SQLiteBlobStore) -> RecordStore:
    return RecordStore(blob_store, "daily-data")
