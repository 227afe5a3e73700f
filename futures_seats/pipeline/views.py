from __future__ import annotations

import copy
from typing import Any, Callable

from futures_seats.analytics.distribution import distribution, holding_table
from futures_seats.analytics.screening import screen
from futures_seats.analytics.trend_profit import seat_curve, seat_table
from futures_seats.cache import ResultCache
from futures_seats.config import AppConfig
from futures_seats.db import store


def distribution_view(
    conn,
    commodity_id: str,
    trade_date: str,
    config: AppConfig,
    cache: ResultCache | None = None,
) -> dict[str, Any]:
    settings = config.distribution

    def compute() -> dict[str, Any]:
        summaries = store.fetch_seat_summaries(conn, commodity_id, trade_date=trade_date)
        return distribution(
            summaries,
            trade_date,
            top_n=settings.top_n,
            min_ratio_pct=settings.min_ratio_pct,
            other_label=settings.other_label,
        )

    key = ("distribution", commodity_id, trade_date, settings.top_n, settings.min_ratio_pct)
    return _cached(cache, key, trade_date, compute)


def holding_table_view(
    conn,
    commodity_id: str,
    trade_date: str,
    cache: ResultCache | None = None,
) -> list[dict[str, Any]]:
    def compute() -> list[dict[str, Any]]:
        return holding_table(store.fetch_seat_summaries(conn, commodity_id, trade_date=trade_date))

    return _cached(cache, ("holding_table", commodity_id, trade_date), trade_date, compute)


def seat_table_view(
    conn,
    commodity_id: str,
    trade_date: str,
    cache: ResultCache | None = None,
) -> list[dict[str, Any]]:
    def compute() -> list[dict[str, Any]]:
        return seat_table(store.fetch_seat_metrics(conn, commodity_id, trade_date))

    return _cached(cache, ("seat_table", commodity_id, trade_date), trade_date, compute)


def seat_curve_view(
    conn,
    commodity_id: str,
    seat_name: str,
    trade_date: str,
    config: AppConfig,
    cache: ResultCache | None = None,
) -> dict[str, Any]:
    days = config.metrics.curve_days

    def compute() -> dict[str, Any]:
        history = store.fetch_seat_summaries(conn, commodity_id, until=trade_date)
        return seat_curve(history, seat_name, days)

    key = ("seat_curve", commodity_id, seat_name, trade_date, days)
    return _cached(cache, key, trade_date, compute)


def screening_view(
    conn,
    config: AppConfig,
    as_of: str | None = None,
    cache: ResultCache | None = None,
) -> list[dict[str, Any]]:
    def compute() -> list[dict[str, Any]]:
        weighted = store.fetch_weighted_contracts(conn, until=as_of)
        snapshots = store.fetch_indicator_snapshots(conn, until=as_of)
        return screen(weighted, snapshots, config.screening, as_of=as_of)

    key = ("screening", as_of, config.screening.model_dump_json())
    return _cached(cache, key, as_of, compute)


def _cached(
    cache: ResultCache | None,
    key: tuple[Any, ...],
    trade_date: str | None,
    compute: Callable[[], Any],
) -> Any:
    if cache is None:
        return compute()
    # callers get their own copy; the cached entry stays as computed
    return copy.deepcopy(cache.get_or_compute(key, compute, trade_date))
