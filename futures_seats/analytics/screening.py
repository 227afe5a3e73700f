from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Iterable, Sequence

from futures_seats.analytics.indicators import indicator_series
from futures_seats.scoring.features import breadth_label
from futures_seats.scoring.weights import stable_sorted, weighted_sum

logger = logging.getLogger(__name__)

COMPARE_CONDITIONS = (
    ("real_compare", "real-compare", "real_long", "real_short"),
    ("net_compare", "net-compare", "net_long", "net_short"),
)

EXTREME_CONDITIONS = (
    ("real_long_extreme", "real-long-extreme", "real_long"),
    ("real_short_extreme", "real-short-extreme", "real_short"),
    ("real_diff_extreme", "real-diff-extreme", "real_diff"),
    ("net_long_extreme", "net-long-extreme", "net_long"),
    ("net_short_extreme", "net-short-extreme", "net_short"),
    ("net_diff_extreme", "net-diff-extreme", "net_diff"),
)


def is_extreme(values: Sequence[float], days: int, kind: str) -> bool:
    """True when the latest value is the max (or min) of the last ``days`` values."""
    if days <= 0 or len(values) < days:
        return False
    recent = values[-days:]
    current = recent[-1]
    if kind in ("highest", "max"):
        return current == max(recent)
    return current == min(recent)


def check_price_condition(weighted_rows: Sequence[dict[str, Any]], condition) -> bool:
    closes = [row["close"] for row in sorted(weighted_rows, key=lambda item: item["trade_date"])]
    return is_extreme(closes, condition.days, condition.type)


def check_compare(
    snapshots: Sequence[dict[str, Any]],
    long_field: str,
    short_field: str,
    condition,
) -> bool:
    if not snapshots:
        return False
    latest_date = max(snapshot["trade_date"] for snapshot in snapshots)
    latest = {
        snapshot["breadth"]: snapshot
        for snapshot in snapshots
        if snapshot["trade_date"] == latest_date
    }
    long_value = latest.get(breadth_label(condition.long_breadth), {}).get(long_field) or 0.0
    short_value = latest.get(breadth_label(condition.short_breadth), {}).get(short_field) or 0.0
    if condition.operator == "greater":
        return long_value > short_value
    return long_value < short_value


def check_extreme(snapshots: Sequence[dict[str, Any]], field: str, condition) -> bool:
    values = [value for _, value in indicator_series(snapshots, field, condition.breadth)]
    return is_extreme(values, condition.days, condition.type)


def evaluate_commodity(
    weighted_rows: Sequence[dict[str, Any]],
    snapshots: Sequence[dict[str, Any]],
    config,
) -> list[str]:
    """Names of the enabled conditions one commodity satisfies, in evaluation order."""
    matched: list[str] = []
    price = config.price_condition
    if price.enabled and check_price_condition(weighted_rows, price):
        matched.append("price-condition")
    for attr, name, long_field, short_field in COMPARE_CONDITIONS:
        condition = getattr(config, attr)
        if condition.enabled and check_compare(snapshots, long_field, short_field, condition):
            matched.append(name)
    for attr, name, field in EXTREME_CONDITIONS:
        condition = getattr(config, attr)
        if condition.enabled and check_extreme(snapshots, field, condition):
            matched.append(name)
    return matched


def condition_weights(config) -> dict[str, float]:
    weights = {"price-condition": config.price_condition.weight}
    for attr, name, *_ in COMPARE_CONDITIONS + EXTREME_CONDITIONS:
        weights[name] = getattr(config, attr).weight
    return weights


def screen(
    weighted_history: Iterable[dict[str, Any]],
    snapshots: Iterable[dict[str, Any]],
    config,
    as_of: str | None = None,
) -> list[dict[str, Any]]:
    """Score every commodity against the enabled conditions.

    Each commodity is judged only on its own history. Commodities matching no
    condition are left out; the rest are ordered by score, highest first, with
    ties in commodity order.
    """
    weighted_by: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for row in weighted_history:
        if as_of is None or row["trade_date"] <= as_of:
            weighted_by[row["commodity_id"]].append(row)
    snapshots_by: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for snapshot in snapshots:
        if as_of is None or snapshot["trade_date"] <= as_of:
            snapshots_by[snapshot["commodity_id"]].append(snapshot)

    weights = condition_weights(config)
    results: list[dict[str, Any]] = []
    for commodity_id in sorted(weighted_by):
        weighted_rows = weighted_by[commodity_id]
        matched = evaluate_commodity(weighted_rows, snapshots_by.get(commodity_id, []), config)
        if not matched:
            continue
        latest = max(weighted_rows, key=lambda item: item["trade_date"])
        results.append(
            {
                "commodity_id": commodity_id,
                "commodity_name": latest.get("commodity_name") or commodity_id,
                "match_conditions": matched,
                "score": weighted_sum({name: 1.0 for name in matched}, weights),
            }
        )

    logger.info("Screening matched %d of %d commodities", len(results), len(weighted_by))
    return stable_sorted(results, key=lambda item: item["score"], reverse=True)
