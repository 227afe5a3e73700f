from __future__ import annotations

import csv
import gzip
import json
import sqlite3
from datetime import date

import pytest

from futures_seats.cache import ResultCache
from futures_seats.config import AppConfig, CompareCondition, ScreeningConfig
from futures_seats.db import store
from futures_seats.ingest.records import CommodityResolver
from futures_seats.pipeline.derive import derive_date, derive_dates
from futures_seats.pipeline.load import ingest_raw_files, load_raw_files
from futures_seats.pipeline.report import write_report
from futures_seats.pipeline.views import (
    distribution_view,
    holding_table_view,
    screening_view,
    seat_curve_view,
    seat_table_view,
)

D1 = "2024-01-04"
D2 = "2024-01-05"


def _setup_conn() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    store.init_db(conn)
    return conn


def _config(**extra) -> AppConfig:
    return AppConfig(commodities={"RB": "Rebar", "CU": "Copper"}, **extra)


def _market(trade_date: str, contract_id: str, open_interest: float, price: float) -> dict:
    return {
        "trade_date": trade_date,
        "contract_id": contract_id,
        "commodity_id": "RB",
        "commodity_name": "Rebar",
        "short_name": contract_id,
        "open": price,
        "high": price,
        "low": price,
        "close": price,
        "settle": price,
        "volume": 10.0,
        "open_interest": open_interest,
        "contract_unit": 1.0,
    }


def _holding(trade_date: str, contract_id: str, seat: str, long_vol: float, short_vol: float) -> dict:
    return {
        "trade_date": trade_date,
        "contract_id": contract_id,
        "seat_name": seat,
        "commodity_id": "RB",
        "long_vol": long_vol,
        "short_vol": short_vol,
        "long_chg": 1.0,
        "short_chg": 0.0,
    }


def _seed(conn: sqlite3.Connection) -> None:
    store.upsert_market_data(
        conn,
        [
            _market(D1, "RB2405", 100, 3000.0),
            _market(D1, "RB2410", 300, 3100.0),
            _market(D2, "RB2405", 100, 3010.0),
            _market(D2, "RB2410", 300, 3110.0),
        ],
    )
    holdings = []
    for trade_date in (D1, D2):
        holdings.extend(
            [
                _holding(trade_date, "RB2405", "S1", 10, 0),
                _holding(trade_date, "RB2410", "S1", 20, 5),
                _holding(trade_date, "RB2405", "S2", 0, 40),
            ]
        )
    store.upsert_holdings(conn, holdings)


def test_derive_date_builds_all_tables() -> None:
    conn = _setup_conn()
    _seed(conn)

    counts = derive_date(conn, D1, _config())

    assert counts == {
        "trade_date": D1,
        "weighted_contracts": 1,
        "seat_summaries": 2,
        "indicator_snapshots": 3,
        "seat_metrics": 12,
    }
    weighted = store.fetch_weighted_contracts(conn, "RB")
    assert weighted[0]["close"] == pytest.approx(3075.0)
    summaries = store.fetch_seat_summaries(conn, "RB", trade_date=D1)
    assert [(row["seat_name"], row["net_vol"]) for row in summaries] == [("S2", -40.0), ("S1", 25.0)]
    breadths = [row["breadth"] for row in store.fetch_indicator_snapshots(conn, "RB")]
    assert sorted(breadths) == ["10", "20", "all"]


def test_rederiving_a_date_replaces_rows() -> None:
    conn = _setup_conn()
    _seed(conn)
    config = _config()
    derive_date(conn, D1, config)

    store.upsert_holdings(conn, [_holding(D1, "RB2405", "S2", 0, 10)])
    derive_date(conn, D1, config)

    summaries = store.fetch_seat_summaries(conn, "RB", trade_date=D1)
    assert [(row["seat_name"], row["net_vol"]) for row in summaries] == [("S1", 25.0), ("S2", -10.0)]
    count = conn.execute("SELECT COUNT(*) FROM seat_metrics WHERE trade_date = ?", (D1,)).fetchone()[0]
    assert count == 12


def test_identical_rewrite_keeps_tied_seat_order() -> None:
    conn = _setup_conn()
    store.upsert_market_data(conn, [_market(D1, "RB2405", 100, 3000.0)])
    store.upsert_holdings(
        conn,
        [_holding(D1, "RB2405", "A", 30, 0), _holding(D1, "RB2405", "B", 0, 30)],
    )
    config = _config()
    derive_date(conn, D1, config)
    before = store.fetch_seat_summaries(conn, "RB", trade_date=D1)

    store.upsert_holdings(conn, [_holding(D1, "RB2405", "A", 30, 0)])
    derive_date(conn, D1, config)
    after = store.fetch_seat_summaries(conn, "RB", trade_date=D1)

    assert [row["seat_name"] for row in before] == ["A", "B"]
    assert after == before
    assert [row["seat_name"] for row in store.fetch_holdings(conn, D1)] == ["A", "B"]


def test_rewriting_an_earlier_date_refreshes_later_metrics() -> None:
    conn = _setup_conn()
    _seed(conn)
    config = _config()
    derive_dates(conn, [D1, D2], config)

    store.upsert_holdings(conn, [_holding(D1, "RB2405", "S2", 0, 10)])
    derive_dates(conn, [D1], config)

    table = {row["seat_name"]: row for row in seat_table_view(conn, "RB", D2)}
    # S2 moves from -10 at 3075 to -40 at 3085
    assert table["S2"]["profit_15"] == pytest.approx(-92650)
    assert table["S1"]["profit_15"] == pytest.approx(250)


def test_replace_rejects_rows_from_another_date() -> None:
    conn = _setup_conn()
    with pytest.raises(ValueError):
        store.replace_weighted_contracts(conn, D1, [{"trade_date": D2, "commodity_id": "RB"}])


def test_profit_across_dates() -> None:
    conn = _setup_conn()
    _seed(conn)
    derive_dates(conn, [D2, D1], _config())

    table = {row["seat_name"]: row for row in seat_table_view(conn, "RB", D2)}
    # settle moves 3075 -> 3085 with an unchanged net of 25
    assert table["S1"]["profit_15"] == pytest.approx(250)
    assert table["S2"]["profit_15"] == pytest.approx(-400)
    assert table["S1"]["trend_05"] == 0


def test_views_recompute_after_invalidation() -> None:
    conn = _setup_conn()
    _seed(conn)
    config = _config()
    cache = ResultCache()
    derive_date(conn, D1, config, cache)

    table = holding_table_view(conn, "RB", D1, cache)
    assert [row["seat_name"] for row in table] == ["S1", "S2"]
    assert table[1]["net_vol"] == -40.0
    table[1]["net_vol"] = 0.0
    assert holding_table_view(conn, "RB", D1, cache)[1]["net_vol"] == -40.0
    assert cache.hits == 1

    store.upsert_holdings(conn, [_holding(D1, "RB2405", "S2", 0, 10)])
    derive_date(conn, D1, config, cache)

    assert holding_table_view(conn, "RB", D1, cache)[1]["net_vol"] == -10.0


def test_distribution_and_curve_views() -> None:
    conn = _setup_conn()
    _seed(conn)
    config = _config()
    derive_dates(conn, [D1, D2], config)

    split = distribution_view(conn, "RB", D2, config)["long_short"]
    assert split["net_long"] == 25.0
    assert split["net_short"] == 40.0

    curve = seat_curve_view(conn, "RB", "S1", D2, config)
    assert [point["trade_date"] for point in curve["data"]] == [D1, D2]


def test_screening_view_uses_stored_history() -> None:
    conn = _setup_conn()
    _seed(conn)
    config = _config(
        screening=ScreeningConfig(
            real_compare=CompareCondition(enabled=True, long_breadth="all", short_breadth="all", operator="less"),
        )
    )
    derive_dates(conn, [D1, D2], config)

    results = screening_view(conn, config, as_of=D2)
    assert results == [
        {
            "commodity_id": "RB",
            "commodity_name": "Rebar",
            "match_conditions": ["real-compare"],
            "score": 15.0,
        }
    ]


def _write_json(path, payload) -> None:
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")


def _raw_dir(tmp_path):
    raw_dir = tmp_path / "raw"
    raw_dir.mkdir()
    _write_json(
        raw_dir / "market.json",
        {
            "data": [
                {"tradeDate": D2, "ticker": "RB2405", "closePrice": 3010, "settlePrice": 3010, "openInt": 100},
                {"tradeDate": D2, "ticker": "RB2410", "closePrice": 3110, "settlePrice": 3110, "openInt": 300},
                {"tradeDate": D2, "ticker": "ZC2405", "secShortName": "动力煤2405", "closePrice": 800, "openInt": 5},
                {"tradeDate": D2, "ticker": "RB2501"},
            ]
        },
    )
    _write_json(
        raw_dir / "long_ranks.json",
        [{"tradeDate": D2, "ticker": "RB2405", "partyName": "S1", "vol": 30, "volChg": 2}],
    )
    _write_json(
        raw_dir / "short_ranks.json",
        [
            {"tradeDate": D2, "ticker": "RB2405", "partyName": "S1", "vol": 5, "volChg": 0},
            {"tradeDate": D2, "ticker": "RB2405", "partyName": "S2", "vol": 40, "volChg": 4},
        ],
    )
    return raw_dir


def test_load_raw_files_reports_diagnostics(tmp_path) -> None:
    market, holdings, diagnostics = load_raw_files(_raw_dir(tmp_path), CommodityResolver(_config().commodities))

    assert len(market) == 3
    assert len(holdings) == 2
    assert diagnostics["market_records_read"] == 4
    assert diagnostics["rejected_records"] == 1
    assert diagnostics["rejection_reasons"] == {"open_interest:missing": 1}
    assert diagnostics["unknown_commodities"] == ["ZC"]
    assert market[2]["commodity_name"] == "动力煤"


def test_load_raw_files_reads_gzip_holdings(tmp_path) -> None:
    raw_dir = tmp_path / "raw"
    raw_dir.mkdir()
    payload = {
        "records": [
            {
                "tradeDate": D2,
                "ticker": "CU2405",
                "partyName": "S9",
                "longVol": 7,
                "shortVol": 2,
                "longChg": 1,
                "shortChg": 0,
            }
        ]
    }
    with gzip.open(raw_dir / "holdings.json.gz", "wt", encoding="utf-8") as handle:
        json.dump(payload, handle)
    market, holdings, diagnostics = load_raw_files(raw_dir, CommodityResolver(_config().commodities))

    assert market == []
    assert [(row["commodity_id"], row["seat_name"], row["long_vol"]) for row in holdings] == [("CU", "S9", 7.0)]
    assert diagnostics["unknown_commodities"] == []


def test_write_report_outputs(tmp_path) -> None:
    db_path = tmp_path / "seats.sqlite"
    out_dir = tmp_path / "out"
    config = _config(
        screening=ScreeningConfig(
            real_compare=CompareCondition(enabled=True, long_breadth="all", short_breadth="all", operator="less"),
        )
    )
    conn = store.get_connection(db_path)
    store.init_db(conn)
    trade_dates, diagnostics = ingest_raw_files(conn, _raw_dir(tmp_path), CommodityResolver(config.commodities))
    derive_dates(conn, trade_dates, config)
    store.insert_run_diagnostics(conn, "2024-01-06", diagnostics)
    conn.close()

    cache = ResultCache()
    write_report(date(2024, 1, 6), db_path, out_dir, config, cache)
    # screening plus one distribution per weighted commodity (RB, ZC)
    assert len(cache) == 3
    assert cache.hits == 0

    write_report(date(2024, 1, 6), db_path, out_dir, config, cache)
    assert cache.hits == 3

    with (out_dir / "screening_2024-01-06.csv").open(encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert [(row["rank"], row["commodity_id"], row["match_conditions"]) for row in rows] == [
        ("1", "RB", "real-compare")
    ]
    assert (out_dir / "indicators_2024-01-06.csv").exists()
    report = (out_dir / "report_2024-01-06.md").read_text(encoding="utf-8")
    assert f"Trade date: {D2}" in report
    assert "unknown_commodities: ZC" in report
    watchlist = json.loads((out_dir / "watchlist.json").read_text(encoding="utf-8"))
    assert watchlist[0]["commodity_id"] == "RB"
    assert watchlist[0]["score"] == 15.0
