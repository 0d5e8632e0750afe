"""Tests for the per-metric series response."""

from unittest.mock import patch

import pytest

from tokenomics.exceptions import InvalidDaysError
from tokenomics.models import TokenConfig
from tokenomics.series import build_tokenomics_response, parse_days


class TestParseDays:
    @pytest.mark.parametrize("value,expected", [("30", 30), ("90", 90), ("180", 180), ("all", None)])
    def test_accepted(self, value: str, expected: int | None) -> None:
        assert parse_days(value) == expected

    @pytest.mark.parametrize("value", ["7", "365", "ALL", "", "30 "])
    def test_rejected(self, value: str) -> None:
        with pytest.raises(InvalidDaysError, match="must be one of: 30, 90, 180, all"):
            parse_days(value)


class TestResponse:
    def test_series_shape(self, make_record, token: TokenConfig) -> None:
        records = [
            make_record(date="2025-01-02", updated_at="2025-01-02T00:05:00.000Z"),
            make_record(date="2025-01-01", price_usd=0.14),
        ]

        body = build_tokenomics_response(records, "30", token)

        data = body["data"]
        assert data["burned_supply"] == [
            {"date": "2025-01-02", "amount": "50000000", "value_usd": 7500000.0},
            {"date": "2025-01-01", "amount": "50000000", "value_usd": 7000000.0},
        ]
        assert data["treasury_supply"][1] == {
            "date": "2025-01-01",
            "amount": "20000000",
            "value_usd": 2800000.0,
        }
        assert data["price_usd"] == [
            {"date": "2025-01-02", "value_usd": 0.15},
            {"date": "2025-01-01", "value_usd": 0.14},
        ]
        assert data["on_chain_liquidity_usd"][0] == {"date": "2025-01-02", "value_usd": 250000.0}

        meta = body["meta"]
        assert meta["token"] == {
            "symbol": "MARS",
            "denom": "factory/neutron1testcreator/MARS",
            "decimals": 6,
        }
        assert meta["last_updated"] == "2025-01-02"
        assert meta["total_records"] == 2
        assert meta["days_requested"] == 30

    def test_last_updated_is_newest_date(self, make_record, token: TokenConfig) -> None:
        records = [
            make_record(date="2025-01-03", updated_at="2025-01-04T09:00:00.000Z"),
            make_record(date="2025-01-02"),
        ]

        body = build_tokenomics_response(records, "90", token)

        assert body["meta"]["last_updated"] == "2025-01-03"

    def test_empty_records_report_today(self, token: TokenConfig) -> None:
        with patch("tokenomics.series.utc_today", return_value="2025-02-01"):
            body = build_tokenomics_response([], "30", token)

        assert body["meta"]["last_updated"] == "2025-02-01"
        assert body["meta"]["total_records"] == 0

    def test_all_reports_record_count(self, make_record, token: TokenConfig) -> None:
        records = [make_record(date=f"2025-01-0{d}") for d in (3, 2, 1)]

        body = build_tokenomics_response(records, "all", token)

        assert body["meta"]["days_requested"] == 3
        assert body["meta"]["total_records"] == 3

    def test_fewer_records_than_requested(self, make_record, token: TokenConfig) -> None:
        body = build_tokenomics_response([make_record()], "180", token)

        assert body["meta"]["days_requested"] == 180
        assert body["meta"]["total_records"] == 1
