from __future__ import annotations

from collections import defaultdict
from typing import Any, Iterable, Sequence

from futures_seats.scoring.features import breadth_label, limit_for
from futures_seats.scoring.weights import stable_sorted

DEFAULT_BREADTHS: tuple[int | str, ...] = (10, 20, "all")

REAL_FIELDS = ("real_long", "real_short", "real_diff")
NET_FIELDS = ("net_long", "net_short", "net_diff")
FLOW_FIELDS = ("add_long", "add_short", "reduce_long", "reduce_short")
SNAPSHOT_FIELDS = REAL_FIELDS + NET_FIELDS + FLOW_FIELDS


def real_long_short(day_rows: Sequence[dict[str, Any]], breadth: int | str) -> dict[str, float]:
    """Real long/short for one day.

    Each seat enters the pool twice, once with its long volume and once with its
    short volume. The top entries by volume pick the seats; each picked seat then
    counts once with its net position.
    """
    pool: list[tuple[str, float]] = []
    for row in day_rows:
        pool.append((row["seat_name"], row["long_vol"]))
        pool.append((row["seat_name"], row["short_vol"]))
    ranked = stable_sorted(pool, key=lambda entry: entry[1], reverse=True)
    selected = ranked[: limit_for(breadth)]
    involved = {seat_name for seat_name, _ in selected}

    real_long = 0.0
    real_short = 0.0
    seen: set[str] = set()
    for row in day_rows:
        seat_name = row["seat_name"]
        if seat_name not in involved or seat_name in seen:
            continue
        seen.add(seat_name)
        net_vol = row["net_vol"]
        if net_vol > 0:
            real_long += net_vol
        elif net_vol < 0:
            real_short += abs(net_vol)
    return {"real_long": real_long, "real_short": real_short, "real_diff": real_long - real_short}


def top_seats_by_net(day_rows: Sequence[dict[str, Any]], breadth: int | str) -> list[dict[str, Any]]:
    ranked = stable_sorted(day_rows, key=lambda row: abs(row["net_vol"]), reverse=True)
    return ranked[: limit_for(breadth)]


def net_long_short(day_rows: Sequence[dict[str, Any]], breadth: int | str) -> dict[str, float]:
    selected = top_seats_by_net(day_rows, breadth)
    net_long = sum(row["net_vol"] for row in selected if row["net_vol"] > 0)
    net_short = abs(sum(row["net_vol"] for row in selected if row["net_vol"] < 0))
    return {"net_long": net_long, "net_short": net_short, "net_diff": net_long - net_short}


def flow_long_short(day_rows: Sequence[dict[str, Any]], breadth: int | str) -> dict[str, float]:
    # reduce_long is stored as a negative magnitude, reduce_short as the raw (negative) net sum
    add_long = 0.0
    add_short = 0.0
    reduce_long = 0.0
    reduce_short = 0.0
    for row in top_seats_by_net(day_rows, breadth):
        net_vol = row["net_vol"]
        net_chg = row["net_chg"]
        if net_vol > 0 and net_chg > 0:
            add_long += net_vol
        elif net_vol < 0 and net_chg < 0:
            add_short += abs(net_vol)
        elif net_vol > 0 and net_chg < 0:
            reduce_long -= net_vol
        elif net_vol < 0 and net_chg > 0:
            reduce_short += net_vol
    return {
        "add_long": add_long,
        "add_short": add_short,
        "reduce_long": reduce_long,
        "reduce_short": reduce_short,
    }


def group_by_date(summaries: Iterable[dict[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    grouped: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for row in summaries:
        grouped[row["trade_date"]].append(row)
    return grouped


def day_snapshot(
    day_rows: Sequence[dict[str, Any]],
    trade_date: str,
    commodity_id: str,
    breadth: int | str,
) -> dict[str, Any]:
    return {
        "trade_date": trade_date,
        "commodity_id": commodity_id,
        "breadth": breadth_label(breadth),
        **real_long_short(day_rows, breadth),
        **net_long_short(day_rows, breadth),
        **flow_long_short(day_rows, breadth),
    }


def indicator_snapshots(
    summaries: Iterable[dict[str, Any]],
    breadths: Sequence[int | str] = DEFAULT_BREADTHS,
) -> list[dict[str, Any]]:
    """Real, net and flow indicators for every date and breadth of one commodity.

    ``summaries`` are seat summary rows of a single commodity across any number
    of dates. The output is ordered by date, then by ``breadths`` order.
    """
    snapshots: list[dict[str, Any]] = []
    for trade_date, day_rows in sorted(group_by_date(summaries).items()):
        commodity_id = day_rows[0].get("commodity_id")
        for breadth in breadths:
            snapshots.append(day_snapshot(day_rows, trade_date, commodity_id, breadth))
    return snapshots


def batch_indicator_snapshots(
    summaries: Iterable[dict[str, Any]],
    breadths: Sequence[int | str] = DEFAULT_BREADTHS,
) -> list[dict[str, Any]]:
    by_commodity: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for row in summaries:
        by_commodity[row["commodity_id"]].append(row)
    snapshots: list[dict[str, Any]] = []
    for commodity_id in sorted(by_commodity):
        snapshots.extend(indicator_snapshots(by_commodity[commodity_id], breadths))
    return snapshots


def indicator_series(
    snapshots: Iterable[dict[str, Any]],
    field: str,
    breadth: int | str,
) -> list[tuple[str, float]]:
    label = breadth_label(breadth)
    series = [
        (snapshot["trade_date"], snapshot[field])
        for snapshot in snapshots
        if snapshot.get("breadth") == label
    ]
    return sorted(series, key=lambda item: item[0])
