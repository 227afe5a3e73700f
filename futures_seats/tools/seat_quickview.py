from __future__ import annotations

import argparse
from pathlib import Path

from futures_seats.config import load_config
from futures_seats.db import store
from futures_seats.pipeline.views import distribution_view, holding_table_view, seat_table_view
from futures_seats.scoring.weights import stable_sorted


def main() -> None:
    parser = argparse.ArgumentParser(description="Seat holdings and metrics for one commodity")
    parser.add_argument("commodity_id")
    parser.add_argument("--date", dest="trade_date", default=None)
    parser.add_argument("--limit", type=int, default=10)
    args = parser.parse_args()

    root = Path(__file__).resolve().parents[2]
    config = load_config(root / "config.yaml")
    conn = store.get_connection(root / config.run.db_path)

    commodity_id = args.commodity_id.upper()
    trade_date = args.trade_date or store.latest_trade_date(conn)
    if trade_date is None:
        print("No derived data found.")
        return

    holdings = holding_table_view(conn, commodity_id, trade_date)
    metrics = seat_table_view(conn, commodity_id, trade_date)
    split = distribution_view(conn, commodity_id, trade_date, config)
    conn.close()

    print(f"commodity: {commodity_id} trade_date: {trade_date}")
    long_short = split["long_short"]
    print(
        f"long_short: long={_fmt(long_short['net_long'], 0)} short={_fmt(long_short['net_short'], 0)} "
        f"long_ratio={_fmt(long_short['long_ratio'], 1)}%"
    )

    print("holdings:")
    for row in holdings[: args.limit]:
        print(
            f"- {row['seat_name']} long={_fmt(row['long_vol'], 0)} short={_fmt(row['short_vol'], 0)} "
            f"net={_fmt(row['net_vol'], 0)} ratio={_fmt(row['position_ratio'], 2)}%"
        )

    print("position distribution:")
    for item in split["position"]:
        print(f"- {item['name']} {_fmt(item['value'], 0)} ({_fmt(item['ratio'], 1)}%)")

    ranked = stable_sorted(
        metrics,
        key=lambda item: abs(item.get("profit_60") or 0.0),
        reverse=True,
        tie_breaker=lambda item: item["seat_name"],
    )
    print("seat metrics:")
    for row in ranked[: args.limit]:
        print(
            f"- {row['seat_name']} trend_05={_fmt(row.get('trend_05'), 0)} "
            f"trend_30={_fmt(row.get('trend_30'), 0)} profit_15={_fmt(row.get('profit_15'), 0)} "
            f"profit_60={_fmt(row.get('profit_60'), 0)} profit_120={_fmt(row.get('profit_120'), 0)}"
        )


def _fmt(value: float | None, digits: int) -> str:
    if value is None:
        return "n/a"
    return f"{value:.{digits}f}"


if __name__ == "__main__":
    main()
