from __future__ import annotations

import logging
from pathlib import Path

from dateutil import parser as date_parser

from futures_seats.cache import ResultCache
from futures_seats.config import load_config
from futures_seats.db import store
from futures_seats.ingest.records import CommodityResolver
from futures_seats.pipeline.derive import derive_dates
from futures_seats.pipeline.load import ingest_raw_files
from futures_seats.pipeline.report import write_report
from futures_seats.utils.time import local_today

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    root = Path(__file__).resolve().parents[2]
    config = load_config(root / "config.yaml")

    if config.run.date_override:
        run_date = date_parser.isoparse(config.run.date_override).date()
    else:
        run_date = local_today(config.run.timezone)

    db_path = root / config.run.db_path
    raw_dir = root / config.run.raw_dir / run_date.isoformat()
    out_dir = root / config.run.out_dir
    resolver = CommodityResolver(config.commodities)
    cache = ResultCache(config.cache.ttl_s, config.cache.max_entries) if config.cache.enabled else None

    conn = store.get_connection(db_path)
    store.init_db(conn)
    store.ensure_run(conn, run_date.isoformat(), config.run.timezone, status="running")

    diagnostics: dict = {}
    try:
        logger.info("Ingesting raw files from %s", raw_dir)
        trade_dates, diagnostics = ingest_raw_files(conn, raw_dir, resolver, commit=False)
        conn.commit()

        logger.info("Deriving tables for %d trade dates", len(trade_dates))
        derived = derive_dates(conn, trade_dates, config, cache)
        diagnostics["derived"] = derived
        store.insert_run_diagnostics(conn, run_date.isoformat(), diagnostics)
    except Exception as exc:  # noqa: BLE001
        conn.rollback()
        store.update_run_status(conn, run_date.isoformat(), "failed", str(exc))
        raise

    try:
        logger.info("Writing reports")
        write_report(run_date, db_path, out_dir, config, cache)
        store.update_run_status(conn, run_date.isoformat(), "success")
    except Exception as exc:  # noqa: BLE001
        store.update_run_status(conn, run_date.isoformat(), "failed", str(exc))
        raise
    finally:
        logger.info(
            "Run summary market=%s holdings=%s rejected=%s derived_dates=%s outputs=%s",
            diagnostics.get("market_records_accepted", 0),
            diagnostics.get("holding_records_accepted", 0),
            diagnostics.get("rejected_records", 0),
            len(diagnostics.get("derived", [])),
            out_dir,
        )

    conn.close()


if __name__ == "__main__":
    main()
