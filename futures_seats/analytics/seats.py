from __future__ import annotations

import logging
from typing import Any, Iterable

from futures_seats.scoring.features import safe_float
from futures_seats.scoring.weights import stable_sorted

logger = logging.getLogger(__name__)

VOLUME_FIELDS = ("long_vol", "short_vol", "long_chg", "short_chg")


def aggregate_seat_positions(
    holdings: Iterable[dict[str, Any]],
    commodity_id: str,
    trade_date: str,
    commodity_name: str | None = None,
) -> list[dict[str, Any]]:
    """Sum one commodity's per-contract seat holdings into per-seat rows.

    Net fields are always recomputed from the summed sides. Rows are ordered by
    absolute net position, largest first; equal values keep the order in which
    seats first appear in ``holdings``.
    """
    aggregates: dict[str, dict[str, Any]] = {}
    for holding in holdings:
        if holding.get("trade_date") != trade_date or holding.get("commodity_id") != commodity_id:
            continue
        seat_name = holding["seat_name"]
        seat_state = aggregates.setdefault(
            seat_name,
            {
                "trade_date": trade_date,
                "commodity_id": commodity_id,
                "commodity_name": commodity_name or commodity_id,
                "seat_name": seat_name,
                "long_vol": 0.0,
                "short_vol": 0.0,
                "long_chg": 0.0,
                "short_chg": 0.0,
            },
        )
        for field in VOLUME_FIELDS:
            seat_state[field] += safe_float(holding.get(field))

    summaries = [
        {
            **seat_state,
            "net_vol": seat_state["long_vol"] - seat_state["short_vol"],
            "net_chg": seat_state["long_chg"] - seat_state["short_chg"],
        }
        for seat_state in aggregates.values()
    ]
    return stable_sorted(summaries, key=lambda item: abs(item["net_vol"]), reverse=True)


def batch_seat_summaries(
    holdings: Iterable[dict[str, Any]],
    trade_date: str,
    commodity_names: dict[str, str] | None = None,
) -> list[dict[str, Any]]:
    day_holdings = [holding for holding in holdings if holding.get("trade_date") == trade_date]
    commodity_ids = sorted({holding["commodity_id"] for holding in day_holdings if holding.get("commodity_id")})
    names = commodity_names or {}

    results: list[dict[str, Any]] = []
    for commodity_id in commodity_ids:
        try:
            summaries = aggregate_seat_positions(
                day_holdings, commodity_id, trade_date, names.get(commodity_id)
            )
        except (KeyError, TypeError) as exc:
            logger.warning("Skipping seat summaries for %s on %s: %s", commodity_id, trade_date, exc)
            continue
        results.extend(summaries)
    logger.info("Aggregated %d seat rows across %d commodities for %s", len(results), len(commodity_ids), trade_date)
    return results
