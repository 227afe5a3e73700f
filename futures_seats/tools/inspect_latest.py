from __future__ import annotations

from pathlib import Path

from futures_seats.config import load_config
from futures_seats.db import store
from futures_seats.pipeline.views import screening_view


def main() -> None:
    root = Path(__file__).resolve().parents[2]
    config = load_config(root / "config.yaml")
    db_path = root / config.run.db_path

    conn = store.get_connection(db_path)
    row = conn.execute("SELECT run_date, status FROM runs ORDER BY run_date DESC LIMIT 1").fetchone()
    if not row:
        print("No runs found.")
        return
    run_date = row["run_date"]
    diagnostics = store.fetch_run_diagnostics(conn, run_date)
    trade_date = store.latest_trade_date(conn, until=run_date)
    if trade_date is None:
        print(f"latest_run_date: {run_date} status={row['status']} (no derived data)")
        return
    snapshots = [
        snapshot
        for snapshot in store.fetch_indicator_snapshots(conn, until=trade_date)
        if snapshot["trade_date"] == trade_date and snapshot["breadth"] == "all"
    ]
    results = screening_view(conn, config, as_of=trade_date)
    conn.close()

    print(f"latest_run_date: {run_date} status={row['status']}")
    print(f"trade_date: {trade_date}")
    print(f"market_records_accepted: {diagnostics.get('market_records_accepted', 0)}")
    print(f"holding_records_accepted: {diagnostics.get('holding_records_accepted', 0)}")
    print(f"rejected_records: {diagnostics.get('rejected_records', 0)}")
    print("indicators (breadth=all):")
    for snapshot in snapshots:
        print(
            f"- {snapshot['commodity_id']} real_diff={_fmt(snapshot.get('real_diff'), 0)} "
            f"net_diff={_fmt(snapshot.get('net_diff'), 0)} "
            f"add_long={_fmt(snapshot.get('add_long'), 0)} add_short={_fmt(snapshot.get('add_short'), 0)}"
        )
    print("screening:")
    for result in results[:10]:
        print(
            f"- {result['commodity_id']} {result['commodity_name']} score={_fmt(result['score'], 0)} "
            f"conditions={','.join(result['match_conditions'])}"
        )


def _fmt(value: float | None, digits: int) -> str:
    if value is None:
        return "n/a"
    return f"{value:.{digits}f}"


if __name__ == "__main__":
    main()
