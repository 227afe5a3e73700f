from __future__ import annotations

import logging
from functools import partial
from pathlib import Path
from typing import Any

from futures_seats.db import store
from futures_seats.ingest.records import (
    HOLDING_KEY,
    MARKET_KEY,
    CommodityResolver,
    merge_rank_lists,
    normalize_holding,
    normalize_market_record,
    validate_batch,
)
from futures_seats.utils.io import load_json_records

logger = logging.getLogger(__name__)


def find_raw_file(raw_dir: Path, stem: str) -> Path | None:
    for name in (f"{stem}.json.gz", f"{stem}.json"):
        path = raw_dir / name
        if path.exists():
            return path
    return None


def read_raw_payloads(raw_dir: Path) -> tuple[list[Any], list[Any]]:
    market_path = find_raw_file(raw_dir, "market")
    market_raw = load_json_records(market_path) if market_path else []

    holdings_path = find_raw_file(raw_dir, "holdings")
    holdings_raw: list[Any] = load_json_records(holdings_path) if holdings_path else []
    long_path = find_raw_file(raw_dir, "long_ranks")
    short_path = find_raw_file(raw_dir, "short_ranks")
    if long_path or short_path:
        long_ranks = [row for row in load_json_records(long_path) if isinstance(row, dict)] if long_path else []
        short_ranks = [row for row in load_json_records(short_path) if isinstance(row, dict)] if short_path else []
        holdings_raw.extend(merge_rank_lists(long_ranks, short_ranks))

    if market_path is None and holdings_path is None and not (long_path or short_path):
        logger.warning("No raw files found in %s", raw_dir)
    return market_raw, holdings_raw


def load_raw_files(
    raw_dir: Path,
    resolver: CommodityResolver,
) -> tuple[list[dict[str, Any]], list[dict[str, Any]], dict[str, Any]]:
    market_raw, holdings_raw = read_raw_payloads(raw_dir)
    market, market_rejected = validate_batch(
        market_raw, partial(normalize_market_record, resolver=resolver), MARKET_KEY
    )
    holdings, holdings_rejected = validate_batch(
        holdings_raw, partial(normalize_holding, resolver=resolver), HOLDING_KEY
    )

    unknown_commodities = sorted(
        {record["commodity_id"] for record in market + holdings if not resolver.is_known(record["commodity_id"])}
    )
    if unknown_commodities:
        logger.warning("Commodities missing from lookup table: %s", unknown_commodities)

    reasons: dict[str, int] = {}
    for rejection in market_rejected + holdings_rejected:
        reason = f"{rejection['field']}:{rejection['reason']}"
        reasons[reason] = reasons.get(reason, 0) + 1
    if reasons:
        logger.warning("Rejected raw records: %s", sorted(reasons.items(), key=lambda item: item[1], reverse=True))

    diagnostics = {
        "market_records_read": len(market_raw),
        "market_records_accepted": len(market),
        "holding_records_read": len(holdings_raw),
        "holding_records_accepted": len(holdings),
        "rejected_records": len(market_rejected) + len(holdings_rejected),
        "rejection_reasons": reasons,
        "unknown_commodities": unknown_commodities,
    }
    return market, holdings, diagnostics


def ingest_raw_files(
    conn,
    raw_dir: Path,
    resolver: CommodityResolver,
    commit: bool = True,
) -> tuple[list[str], dict[str, Any]]:
    market, holdings, diagnostics = load_raw_files(raw_dir, resolver)
    store.upsert_market_data(conn, market, commit=commit)
    store.upsert_holdings(conn, holdings, commit=commit)
    trade_dates = sorted({record["trade_date"] for record in market + holdings})
    logger.info(
        "Ingested market=%d holdings=%d rejected=%d dates=%s",
        len(market),
        len(holdings),
        diagnostics["rejected_records"],
        trade_dates,
    )
    return trade_dates, diagnostics
