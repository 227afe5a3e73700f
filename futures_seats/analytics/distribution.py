from __future__ import annotations

from typing import Any, Callable, Sequence

from futures_seats.scoring.weights import stable_sorted


def _ranked_slices(
    day_rows: Sequence[dict[str, Any]],
    magnitude: Callable[[dict[str, Any]], float],
    top_n: int,
    min_ratio_pct: float,
    other_label: str,
) -> list[dict[str, Any]]:
    ranked = stable_sorted(day_rows, key=magnitude, reverse=True)
    slices = [{"name": row["seat_name"], "value": magnitude(row), "ratio": 0.0} for row in ranked[:top_n]]
    other_total = sum(magnitude(row) for row in ranked[top_n:])
    if other_total > 0:
        slices.append({"name": other_label, "value": other_total, "ratio": 0.0})

    total = sum(item["value"] for item in slices)
    for item in slices:
        item["ratio"] = (item["value"] / total * 100) if total > 0 else 0.0
    # fragmented holdings can leave nothing above the threshold
    return [item for item in slices if item["ratio"] >= min_ratio_pct]


def position_distribution(
    day_rows: Sequence[dict[str, Any]],
    top_n: int = 10,
    min_ratio_pct: float = 1.0,
    other_label: str = "other",
) -> list[dict[str, Any]]:
    return _ranked_slices(day_rows, lambda row: abs(row["net_vol"]), top_n, min_ratio_pct, other_label)


def change_distribution(
    day_rows: Sequence[dict[str, Any]],
    top_n: int = 10,
    min_ratio_pct: float = 1.0,
    other_label: str = "other",
) -> list[dict[str, Any]]:
    changed = [row for row in day_rows if row["net_chg"] != 0]
    return _ranked_slices(changed, lambda row: abs(row["net_chg"]), top_n, min_ratio_pct, other_label)


def long_short_split(day_rows: Sequence[dict[str, Any]]) -> dict[str, float]:
    net_long = sum(row["net_vol"] for row in day_rows if row["net_vol"] > 0)
    net_short = abs(sum(row["net_vol"] for row in day_rows if row["net_vol"] < 0))
    total = net_long + net_short
    return {
        "net_long": net_long,
        "net_short": net_short,
        "long_ratio": (net_long / total * 100) if total > 0 else 50.0,
        "short_ratio": (net_short / total * 100) if total > 0 else 50.0,
    }


def distribution(
    summaries: Sequence[dict[str, Any]],
    trade_date: str,
    top_n: int = 10,
    min_ratio_pct: float = 1.0,
    other_label: str = "other",
) -> dict[str, Any]:
    day_rows = [row for row in summaries if row["trade_date"] == trade_date]
    return {
        "trade_date": trade_date,
        "position": position_distribution(day_rows, top_n, min_ratio_pct, other_label),
        "change": change_distribution(day_rows, top_n, min_ratio_pct, other_label),
        "long_short": long_short_split(day_rows),
    }


def holding_table(day_rows: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    total_long = sum(row["long_vol"] for row in day_rows)
    total_short = sum(row["short_vol"] for row in day_rows)
    total = max(total_long, total_short)
    ranked = stable_sorted(day_rows, key=lambda row: row["long_vol"], reverse=True)
    return [
        {
            "seat_name": row["seat_name"],
            "long_vol": row["long_vol"],
            "long_chg": row["long_chg"],
            "short_vol": row["short_vol"],
            "short_chg": row["short_chg"],
            "net_vol": row["net_vol"],
            "net_chg": row["net_chg"],
            "position_ratio": (abs(row["net_vol"]) / total * 100) if total > 0 else 0.0,
        }
        for row in ranked
    ]
