from __future__ import annotations

import csv
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any

from futures_seats.analytics.indicators import SNAPSHOT_FIELDS
from futures_seats.cache import ResultCache
from futures_seats.config import AppConfig
from futures_seats.db import store
from futures_seats.pipeline.views import distribution_view, screening_view
from futures_seats.utils.io import ensure_dir


def write_report(
    run_date: date,
    db_path: Path,
    out_dir: Path,
    config: AppConfig,
    cache: ResultCache | None = None,
) -> None:
    logger = logging.getLogger(__name__)
    report_date = run_date.isoformat()
    conn = store.get_connection(db_path)
    diagnostics = store.fetch_run_diagnostics(conn, report_date)
    # raw files for a run date usually hold the previous session
    trade_date = store.latest_trade_date(conn, until=report_date) or report_date
    results = screening_view(conn, config, as_of=trade_date, cache=cache)
    snapshots = [
        snapshot
        for snapshot in store.fetch_indicator_snapshots(conn, until=trade_date)
        if snapshot["trade_date"] == trade_date
    ]
    weighted = [
        row
        for row in store.fetch_weighted_contracts(conn, until=trade_date)
        if row["trade_date"] == trade_date
    ]
    splits = {
        row["commodity_id"]: distribution_view(conn, row["commodity_id"], trade_date, config, cache)["long_short"]
        for row in weighted
    }
    conn.close()

    ensure_dir(out_dir)
    md_path = out_dir / f"report_{report_date}.md"
    screening_path = out_dir / f"screening_{report_date}.csv"
    indicators_path = out_dir / f"indicators_{report_date}.csv"
    watchlist_path = out_dir / "watchlist.json"

    screening_headers = ["rank", "commodity_id", "commodity_name", "score", "match_conditions"]
    with screening_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=screening_headers)
        writer.writeheader()
        for idx, result in enumerate(results, start=1):
            writer.writerow(
                {
                    "rank": idx,
                    "commodity_id": result["commodity_id"],
                    "commodity_name": result["commodity_name"],
                    "score": result["score"],
                    "match_conditions": "|".join(result["match_conditions"]),
                }
            )

    indicator_headers = ["commodity_id", "breadth", *SNAPSHOT_FIELDS]
    with indicators_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=indicator_headers, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(snapshots)

    logger.info(
        "Report %s trade_date=%s screening_matches=%d commodities=%d snapshots=%d",
        report_date,
        trade_date,
        len(results),
        len(weighted),
        len(snapshots),
    )

    with md_path.open("w", encoding="utf-8") as handle:
        handle.write(f"# Futures Seat Report ({report_date})\n\n")
        handle.write(f"Trade date: {trade_date}\n\n")
        handle.write("## Ingestion diagnostics\n\n")
        handle.write(
            f"- market_records_accepted: {diagnostics.get('market_records_accepted', 0)}\n"
            f"- holding_records_accepted: {diagnostics.get('holding_records_accepted', 0)}\n"
            f"- rejected_records: {diagnostics.get('rejected_records', 0)}\n"
            f"- weighted_contracts: {len(weighted)}\n"
        )
        unknown = diagnostics.get("unknown_commodities") or []
        if unknown:
            handle.write(f"- unknown_commodities: {', '.join(unknown)}\n")
        handle.write("\n## Screening\n\n")
        if not results:
            handle.write("No commodity matched the enabled conditions.\n")
        else:
            handle.write("| Rank | Commodity | Score | Conditions |\n")
            handle.write("| --- | --- | --- | --- |\n")
            for idx, result in enumerate(results[: config.report.top_results], start=1):
                handle.write(
                    f"| {idx} | {result['commodity_name']} ({result['commodity_id']}) "
                    f"| {result['score']:.0f} | {', '.join(result['match_conditions'])} |\n"
                )
        handle.write("\n## Long/short split\n\n")
        if not splits:
            handle.write("No seat data for this date.\n")
        else:
            handle.write("| Commodity | Net long | Net short | Long % |\n")
            handle.write("| --- | --- | --- | --- |\n")
            for commodity_id, split in sorted(splits.items()):
                handle.write(
                    f"| {commodity_id} | {split['net_long']:.0f} | {split['net_short']:.0f} "
                    f"| {split['long_ratio']:.1f} |\n"
                )

    watchlist: list[dict[str, Any]] = [
        {
            "commodity_id": result["commodity_id"],
            "commodity_name": result["commodity_name"],
            "score": result["score"],
            "match_conditions": result["match_conditions"],
        }
        for result in results[: config.report.top_results]
    ]
    with watchlist_path.open("w", encoding="utf-8") as handle:
        json.dump(watchlist, handle, ensure_ascii=False, indent=2)
