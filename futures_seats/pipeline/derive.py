from __future__ import annotations

import logging
from typing import Any, Iterable

from futures_seats.analytics.indicators import batch_indicator_snapshots
from futures_seats.analytics.seats import batch_seat_summaries
from futures_seats.analytics.trend_profit import seat_metrics
from futures_seats.analytics.weighted import batch_weighted_contracts
from futures_seats.cache import ResultCache
from futures_seats.config import AppConfig
from futures_seats.db import store
from futures_seats.scoring.features import safe_float

logger = logging.getLogger(__name__)


def derive_date(
    conn,
    trade_date: str,
    config: AppConfig,
    cache: ResultCache | None = None,
) -> dict[str, Any]:
    """Rebuild every derived table for ``trade_date`` from the stored raw rows.

    All four tables are replaced inside one transaction, so a reader sees
    either the previous rows for the date or the new ones.
    """
    market = store.fetch_market_data(conn, trade_date)
    holdings = store.fetch_holdings(conn, trade_date)

    weighted = batch_weighted_contracts(market, trade_date, config.metrics.price_decimals)
    commodity_names = {record["commodity_id"]: record["commodity_name"] for record in market}
    summaries = batch_seat_summaries(holdings, trade_date, commodity_names)
    snapshots = batch_indicator_snapshots(summaries, config.indicators.breadths)

    try:
        store.replace_weighted_contracts(conn, trade_date, weighted, commit=False)
        store.replace_seat_summaries(conn, trade_date, summaries, commit=False)
        store.replace_indicator_snapshots(conn, trade_date, snapshots, commit=False)
        metrics = _seat_metrics_for_date(conn, trade_date, summaries, config)
        store.replace_seat_metrics(conn, trade_date, metrics, commit=False)
        conn.commit()
    except Exception:
        conn.rollback()
        raise

    if cache is not None:
        cache.invalidate_date(trade_date)

    counts = {
        "trade_date": trade_date,
        "weighted_contracts": len(weighted),
        "seat_summaries": len(summaries),
        "indicator_snapshots": len(snapshots),
        "seat_metrics": len(metrics),
    }
    logger.info(
        "Derived %s weighted=%d seats=%d snapshots=%d metrics=%d",
        trade_date,
        counts["weighted_contracts"],
        counts["seat_summaries"],
        counts["indicator_snapshots"],
        counts["seat_metrics"],
    )
    return counts


def derive_dates(
    conn,
    trade_dates: Iterable[str],
    config: AppConfig,
    cache: ResultCache | None = None,
) -> list[dict[str, Any]]:
    """Derive ``trade_dates`` in ascending order, then refresh later seat metrics.

    Trend and profit read every earlier date, so stored metrics for any later
    date are recomputed against the rewritten history.
    """
    dates = sorted(set(trade_dates))
    results = [derive_date(conn, trade_date, config, cache) for trade_date in dates]
    if dates:
        later = [day for day in store.derived_trade_dates(conn, after=dates[0]) if day not in dates]
        for trade_date in later:
            refresh_seat_metrics(conn, trade_date, config, cache)
        if later:
            logger.info("Refreshed seat metrics for %d later dates after %s", len(later), dates[0])
    return results


def refresh_seat_metrics(
    conn,
    trade_date: str,
    config: AppConfig,
    cache: ResultCache | None = None,
) -> int:
    summaries = store.fetch_seat_summaries(conn, None, trade_date=trade_date)
    try:
        metrics = _seat_metrics_for_date(conn, trade_date, summaries, config)
        store.replace_seat_metrics(conn, trade_date, metrics, commit=False)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    if cache is not None:
        cache.invalidate_date(trade_date)
    return len(metrics)


def _seat_metrics_for_date(
    conn,
    trade_date: str,
    summaries: list[dict[str, Any]],
    config: AppConfig,
) -> list[dict[str, Any]]:
    metrics: list[dict[str, Any]] = []
    for commodity_id in sorted({row["commodity_id"] for row in summaries}):
        history = store.fetch_seat_summaries(conn, commodity_id, until=trade_date)
        weighted_history = store.fetch_weighted_contracts(conn, commodity_id, until=trade_date)
        metrics.extend(
            seat_metrics(
                history,
                weighted_history,
                trade_date,
                contract_unit_for(weighted_history),
                trend_windows=config.metrics.trend_windows,
                profit_windows=config.metrics.profit_windows,
                profit_decimals=config.metrics.profit_decimals,
            )
        )
    return metrics


def contract_unit_for(weighted_history: list[dict[str, Any]]) -> float:
    for row in reversed(weighted_history):
        unit = safe_float(row.get("contract_unit"))
        if unit > 0:
            return unit
    return 1.0
