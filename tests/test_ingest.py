from __future__ import annotations

import pytest

from futures_seats.ingest.records import (
    MARKET_KEY,
    CommodityResolver,
    RecordValidationError,
    merge_rank_lists,
    normalize_holding,
    normalize_market_record,
    validate_batch,
)

RESOLVER = CommodityResolver({"I": "Iron Ore", "IC": "CSI 500 Index", "RB": "Rebar"})


def _raw_market(ticker: str, **overrides) -> dict:
    raw = {
        "tradeDate": "2024-01-05",
        "ticker": ticker,
        "secShortName": f"name{ticker[-4:]}",
        "openPrice": 10,
        "highestPrice": 12,
        "lowestPrice": 9,
        "closePrice": 11,
        "settlePrice": 11.5,
        "turnoverVol": 500,
        "openInt": 1000,
    }
    raw.update(overrides)
    return raw


def test_resolver_matches_exact_prefix() -> None:
    assert RESOLVER.resolve("I2405") == ("I", "Iron Ore")
    assert RESOLVER.resolve("IC2406") == ("IC", "CSI 500 Index")
    assert RESOLVER.resolve("rb2410") == ("RB", "Rebar")


def test_resolver_unknown_code_falls_back_to_short_name() -> None:
    assert RESOLVER.resolve("ZC2405", "动力煤2405") == ("ZC", "动力煤")
    assert RESOLVER.resolve("ZC2405") == ("ZC", "ZC")
    assert not RESOLVER.is_known("ZC")
    assert RESOLVER.resolve("2405") == (None, "")


def test_normalize_market_record_aliases() -> None:
    record = normalize_market_record(_raw_market("IC2401", tradeDate="20240105"), RESOLVER)

    assert record["trade_date"] == "2024-01-05"
    assert record["contract_id"] == "IC2401"
    assert record["commodity_id"] == "IC"
    assert record["commodity_name"] == "CSI 500 Index"
    assert record["close"] == 11.0
    assert record["settle"] == 11.5
    assert record["volume"] == 500.0
    assert record["open_interest"] == 1000.0
    assert record["contract_unit"] == 1.0


def test_normalize_market_record_rejects_bad_open_interest() -> None:
    missing = _raw_market("RB2405")
    del missing["openInt"]
    with pytest.raises(RecordValidationError) as excinfo:
        normalize_market_record(missing, RESOLVER)
    assert excinfo.value.field == "open_interest"

    with pytest.raises(RecordValidationError) as excinfo:
        normalize_market_record(_raw_market("RB2405", openInt=-1), RESOLVER)
    assert excinfo.value.reason == "negative"

    with pytest.raises(RecordValidationError):
        normalize_market_record(_raw_market("RB2405", tradeDate="not a date"), RESOLVER)


def test_normalize_holding_requires_volumes() -> None:
    raw = {
        "trade_date": "2024-01-05",
        "contract_id": "RB2405",
        "seat_name": "S1",
        "long_vol": 10,
        "short_vol": 4,
        "long_chg": 1,
        "short_chg": -2,
    }
    holding = normalize_holding(raw, RESOLVER)
    assert holding["commodity_id"] == "RB"
    assert holding["short_chg"] == -2.0

    broken = dict(raw, long_vol="abc")
    with pytest.raises(RecordValidationError) as excinfo:
        normalize_holding(broken, RESOLVER)
    assert excinfo.value.field == "long_vol"


def test_validate_batch_last_write_wins_in_first_position() -> None:
    raws = [
        _raw_market("RB2405", closePrice=1),
        {"ticker": "RB2405"},
        _raw_market("RB2405", closePrice=2),
        _raw_market("RB2410"),
    ]
    accepted, rejected = validate_batch(
        raws, lambda raw: normalize_market_record(raw, RESOLVER), MARKET_KEY
    )

    assert [record["contract_id"] for record in accepted] == ["RB2405", "RB2410"]
    assert accepted[0]["close"] == 2.0
    assert len(rejected) == 1
    assert rejected[0]["index"] == 1
    assert rejected[0]["field"] == "trade_date"


def test_merge_rank_lists_combines_sides() -> None:
    long_ranks = [
        {"tradeDate": "2024-01-05", "ticker": "RB2405", "partyName": "S1", "vol": 100, "volChg": 5},
    ]
    short_ranks = [
        {"tradeDate": "2024-01-05", "ticker": "RB2405", "partyName": "S1", "vol": 40, "volChg": -2},
        {"tradeDate": "2024-01-05", "ticker": "RB2405", "partyName": "S2", "vol": 30, "volChg": 3},
    ]
    merged = merge_rank_lists(long_ranks, short_ranks)

    assert len(merged) == 2
    s1, s2 = merged
    assert (s1["seat_name"], s1["long_vol"], s1["short_vol"], s1["short_chg"]) == ("S1", 100.0, 40.0, -2.0)
    assert (s2["seat_name"], s2["long_vol"], s2["short_vol"]) == ("S2", 0.0, 30.0)

    holdings = [normalize_holding(row, RESOLVER) for row in merged]
    assert all(holding["commodity_id"] == "RB" for holding in holdings)
