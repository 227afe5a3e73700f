from __future__ import annotations

import logging
from typing import Any, Iterable

from futures_seats.scoring.features import round_half_up, safe_float

logger = logging.getLogger(__name__)

PRICE_FIELDS = ("open", "high", "low", "close", "settle")


class NoQualifyingDataError(LookupError):
    """No contract with positive open interest exists for the commodity and date."""

    def __init__(self, commodity_id: str, trade_date: str, reason: str) -> None:
        super().__init__(f"{commodity_id} {trade_date}: {reason}")
        self.commodity_id = commodity_id
        self.trade_date = trade_date
        self.reason = reason


def qualifying_contracts(
    records: Iterable[dict[str, Any]],
    commodity_id: str,
    trade_date: str,
) -> list[dict[str, Any]]:
    return [
        record
        for record in records
        if record.get("trade_date") == trade_date
        and record.get("commodity_id") == commodity_id
        and safe_float(record.get("open_interest")) > 0
    ]


def contract_weights(contracts: list[dict[str, Any]]) -> list[float]:
    total_oi = sum(safe_float(contract.get("open_interest")) for contract in contracts)
    if total_oi <= 0:
        return []
    return [safe_float(contract.get("open_interest")) / total_oi for contract in contracts]


def weighted_contract(
    records: Iterable[dict[str, Any]],
    commodity_id: str,
    trade_date: str,
    price_decimals: int = 2,
) -> dict[str, Any]:
    """Open-interest weighted synthetic contract for one commodity and day.

    Prices are weighted by each contract's share of total open interest and
    rounded half-up; volume and open interest are plain sums. Raises
    ``NoQualifyingDataError`` instead of returning a zero-filled row.
    """
    contracts = qualifying_contracts(records, commodity_id, trade_date)
    if not contracts:
        raise NoQualifyingDataError(commodity_id, trade_date, "no contract with open interest")
    weights = contract_weights(contracts)
    if not weights:
        raise NoQualifyingDataError(commodity_id, trade_date, "total open interest is zero")

    prices = {field: 0.0 for field in PRICE_FIELDS}
    for contract, weight in zip(contracts, weights):
        for field in PRICE_FIELDS:
            prices[field] += safe_float(contract.get(field)) * weight

    first = contracts[0]
    return {
        "trade_date": trade_date,
        "commodity_id": commodity_id,
        "commodity_name": first.get("commodity_name") or commodity_id,
        **{field: round_half_up(value, price_decimals) for field, value in prices.items()},
        "volume": sum(safe_float(contract.get("volume")) for contract in contracts),
        "open_interest": sum(safe_float(contract.get("open_interest")) for contract in contracts),
        "contract_unit": safe_float(first.get("contract_unit"), 1.0),
    }


def batch_weighted_contracts(
    records: Iterable[dict[str, Any]],
    trade_date: str,
    price_decimals: int = 2,
) -> list[dict[str, Any]]:
    day_records = [record for record in records if record.get("trade_date") == trade_date]
    commodity_ids = sorted({record["commodity_id"] for record in day_records if record.get("commodity_id")})

    results: list[dict[str, Any]] = []
    for commodity_id in commodity_ids:
        try:
            results.append(weighted_contract(day_records, commodity_id, trade_date, price_decimals))
        except NoQualifyingDataError as exc:
            logger.warning("Skipping weighted contract %s: %s", commodity_id, exc.reason)
    logger.info("Weighted %d commodities for %s", len(results), trade_date)
    return results
