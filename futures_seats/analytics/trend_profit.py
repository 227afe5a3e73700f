from __future__ import annotations

from collections import defaultdict
from typing import Any, Iterable, Sequence

from futures_seats.scoring.features import round_half_up, safe_float

TREND_WINDOWS = (5, 15, 30)
PROFIT_WINDOWS = (15, 60, 120)


def trend(net_positions: Sequence[float], window: int) -> float:
    """Largest distance between today's net position and the prior window's range."""
    if len(net_positions) < window + 1:
        return 0
    current = net_positions[-1]
    prior = net_positions[-window - 1 : -1]
    return max(abs(current - min(prior)), abs(current - max(prior)))


def profit(
    positions: Sequence[tuple[str, float, float]],
    contract_unit: float,
    window: int,
    decimals: int = 0,
) -> float:
    """Summed daily P&L over the last ``window`` observations.

    ``positions`` are ``(trade_date, net_vol, settle)`` in date order, already
    restricted to dates with a settlement price. ``window`` observations give
    ``window - 1`` daily terms.
    """
    if len(positions) < 2:
        return 0
    end = len(positions) - 1
    start = max(0, end - window + 1)
    total = 0.0
    for index in range(start + 1, end + 1):
        _, net_today, settle_today = positions[index]
        _, net_prev, settle_prev = positions[index - 1]
        total += (net_today * settle_today - net_prev * settle_prev) * contract_unit
    return round_half_up(total, decimals)


def seat_positions_with_prices(
    history: Iterable[dict[str, Any]],
    settle_by_date: dict[str, float],
) -> list[tuple[str, float, float]]:
    # unmatched dates are skipped, not zero-filled
    positions: list[tuple[str, float, float]] = []
    for row in sorted(history, key=lambda item: item["trade_date"]):
        settle = safe_float(settle_by_date.get(row["trade_date"]))
        if settle <= 0:
            continue
        positions.append((row["trade_date"], row["net_vol"], settle))
    return positions


def seat_histories(
    summaries: Iterable[dict[str, Any]],
    trade_date: str,
) -> dict[str, list[dict[str, Any]]]:
    histories: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for row in summaries:
        if row["trade_date"] <= trade_date:
            histories[row["seat_name"]].append(row)
    for rows in histories.values():
        rows.sort(key=lambda item: item["trade_date"])
    return histories


def seat_metrics(
    summaries: Iterable[dict[str, Any]],
    weighted: Iterable[dict[str, Any]],
    trade_date: str,
    contract_unit: float,
    trend_windows: Sequence[int] = TREND_WINDOWS,
    profit_windows: Sequence[int] = PROFIT_WINDOWS,
    profit_decimals: int = 0,
) -> list[dict[str, Any]]:
    """Trend and profit rows for every seat present on ``trade_date``.

    ``summaries`` and ``weighted`` hold the history of a single commodity. Only
    rows up to and including ``trade_date`` are used.
    """
    summary_rows = list(summaries)
    settle_by_date = {
        row["trade_date"]: row.get("settle")
        for row in weighted
        if row["trade_date"] <= trade_date
    }
    histories = seat_histories(summary_rows, trade_date)

    metrics: list[dict[str, Any]] = []
    for row in summary_rows:
        if row["trade_date"] != trade_date:
            continue
        seat_name = row["seat_name"]
        history = histories.get(seat_name, [])
        net_positions = [item["net_vol"] for item in history]
        positions = seat_positions_with_prices(history, settle_by_date)
        base = {
            "trade_date": trade_date,
            "commodity_id": row.get("commodity_id"),
            "seat_name": seat_name,
        }
        for window in trend_windows:
            metrics.append({**base, "metric": "trend", "window": window, "value": trend(net_positions, window)})
        for window in profit_windows:
            value = profit(positions, contract_unit, window, profit_decimals)
            metrics.append({**base, "metric": "profit", "window": window, "value": value})
    return metrics


def seat_table(metrics: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Pivot seat metric rows into one row per seat, e.g. ``trend_05`` and ``profit_60``."""
    table: dict[str, dict[str, Any]] = {}
    for metric in metrics:
        row = table.setdefault(metric["seat_name"], {"seat_name": metric["seat_name"]})
        row[f"{metric['metric']}_{metric['window']:02d}"] = metric["value"]
    return list(table.values())


def seat_curve(
    summaries: Iterable[dict[str, Any]],
    seat_name: str,
    days: int = 250,
) -> dict[str, Any]:
    history = sorted(
        (row for row in summaries if row["seat_name"] == seat_name),
        key=lambda item: item["trade_date"],
    )[-days:]
    return {
        "seat_name": seat_name,
        "data": [{"trade_date": row["trade_date"], "net_position": row["net_vol"]} for row in history],
    }
