from __future__ import annotations

import re
from typing import Any, Callable, Iterable, Mapping

from futures_seats.scoring.features import safe_float, strip_digits
from futures_seats.utils.time import parse_trade_date

_ALPHA_PREFIX = re.compile(r"^[A-Za-z]+")

MARKET_KEY = ("trade_date", "contract_id")
HOLDING_KEY = ("trade_date", "contract_id", "seat_name")


class RecordValidationError(ValueError):
    """A raw record is missing a key field or carries an unusable value."""

    def __init__(self, field: str, reason: str, record: Any = None) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason
        self.record = record


class CommodityResolver:
    """Maps contract codes to commodities through an explicit table.

    The table is keyed by the contract's alphabetic prefix, matched exactly, so
    ``IC2406`` never resolves to ``I``.
    """

    def __init__(self, table: Mapping[str, str] | None = None) -> None:
        self.table = {code.upper(): name for code, name in (table or {}).items()}

    def commodity_id(self, contract_id: str) -> str | None:
        match = _ALPHA_PREFIX.match(contract_id.strip())
        if not match:
            return None
        return match.group(0).upper()

    def resolve(self, contract_id: str, short_name: str | None = None) -> tuple[str | None, str]:
        commodity_id = self.commodity_id(contract_id)
        if commodity_id is None:
            return None, ""
        if commodity_id in self.table:
            return commodity_id, self.table[commodity_id]
        # unknown code: short name minus its delivery month is only an approximation
        return commodity_id, strip_digits(short_name) or commodity_id

    def is_known(self, commodity_id: str) -> bool:
        return commodity_id.upper() in self.table


def normalize_market_record(raw: Any, resolver: CommodityResolver) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise RecordValidationError("record", "not a mapping", raw)
    trade_date = parse_trade_date(_first(raw, "trade_date", "tradeDate", "date"))
    if trade_date is None:
        raise RecordValidationError("trade_date", "missing or unparseable", raw)
    contract_id = _text(_first(raw, "contract_id", "contractId", "ticker", "contract"))
    if not contract_id:
        raise RecordValidationError("contract_id", "missing", raw)
    short_name = _text(_first(raw, "short_name", "secShortName", "name")) or contract_id
    commodity_id, commodity_name = resolver.resolve(contract_id, short_name)
    if commodity_id is None:
        raise RecordValidationError("contract_id", "no commodity prefix", raw)

    open_interest_raw = _first(raw, "open_interest", "openInterest", "openInt")
    open_interest = _number(open_interest_raw, "open_interest", raw)
    if open_interest < 0:
        raise RecordValidationError("open_interest", "negative", raw)

    return {
        "trade_date": trade_date,
        "contract_id": contract_id,
        "commodity_id": commodity_id,
        "commodity_name": commodity_name,
        "short_name": short_name,
        "open": safe_float(_first(raw, "open", "openPrice")),
        "high": safe_float(_first(raw, "high", "highestPrice")),
        "low": safe_float(_first(raw, "low", "lowestPrice")),
        "close": safe_float(_first(raw, "close", "closePrice")),
        "settle": safe_float(_first(raw, "settle", "settlePrice")),
        "volume": safe_float(_first(raw, "volume", "turnoverVol")),
        "open_interest": open_interest,
        "contract_unit": safe_float(_first(raw, "contract_unit", "contractUnit", "contMultNum"), 1.0),
    }


def normalize_holding(raw: Any, resolver: CommodityResolver) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise RecordValidationError("record", "not a mapping", raw)
    trade_date = parse_trade_date(_first(raw, "trade_date", "tradeDate", "date"))
    if trade_date is None:
        raise RecordValidationError("trade_date", "missing or unparseable", raw)
    contract_id = _text(_first(raw, "contract_id", "contractId", "ticker", "contract"))
    if not contract_id:
        raise RecordValidationError("contract_id", "missing", raw)
    seat_name = _text(_first(raw, "seat_name", "seatName", "partyName", "partyShortName"))
    if not seat_name:
        raise RecordValidationError("seat_name", "missing", raw)
    commodity_id, _ = resolver.resolve(contract_id, _text(_first(raw, "short_name", "secShortName")))
    if commodity_id is None:
        raise RecordValidationError("contract_id", "no commodity prefix", raw)

    return {
        "trade_date": trade_date,
        "contract_id": contract_id,
        "commodity_id": commodity_id,
        "seat_name": seat_name,
        "long_vol": _number(_first(raw, "long_vol", "longVol"), "long_vol", raw),
        "short_vol": _number(_first(raw, "short_vol", "shortVol"), "short_vol", raw),
        "long_chg": _number(_first(raw, "long_chg", "longChg"), "long_chg", raw),
        "short_chg": _number(_first(raw, "short_chg", "shortChg"), "short_chg", raw),
    }


def merge_rank_lists(
    long_ranks: Iterable[dict[str, Any]],
    short_ranks: Iterable[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Combine per-side member rankings into one raw holding per seat and contract.

    A seat that only appears on one side gets zero volume and change on the other.
    """
    merged: dict[tuple[Any, Any, Any], dict[str, Any]] = {}
    for side, rows in (("long", long_ranks), ("short", short_ranks)):
        for row in rows:
            key = (
                _first(row, "tradeDate", "trade_date"),
                _first(row, "ticker", "contract_id"),
                _first(row, "partyName", "seat_name"),
            )
            entry = merged.setdefault(
                key,
                {
                    "trade_date": key[0],
                    "contract_id": key[1],
                    "short_name": _first(row, "secShortName", "short_name"),
                    "seat_name": key[2],
                    "long_vol": 0.0,
                    "long_chg": 0.0,
                    "short_vol": 0.0,
                    "short_chg": 0.0,
                },
            )
            entry[f"{side}_vol"] = safe_float(_first(row, "vol", f"{side}_vol"))
            entry[f"{side}_chg"] = safe_float(_first(row, "volChg", f"{side}_chg"))
    return list(merged.values())


def validate_batch(
    raws: Iterable[Any],
    normalizer: Callable[[Any], dict[str, Any]],
    key_fields: tuple[str, ...],
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    accepted: dict[tuple[Any, ...], dict[str, Any]] = {}
    rejected: list[dict[str, Any]] = []
    for index, raw in enumerate(raws):
        try:
            record = normalizer(raw)
        except RecordValidationError as exc:
            rejected.append({"index": index, "field": exc.field, "reason": exc.reason, "raw": raw})
            continue
        key = tuple(record[field] for field in key_fields)
        # a rewrite of the same key replaces the earlier row in place
        accepted[key] = record
    return list(accepted.values()), rejected


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _number(value: Any, field: str, raw: Any) -> float:
    if value is None or isinstance(value, bool):
        raise RecordValidationError(field, "missing", raw)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise RecordValidationError(field, "not a number", raw) from None
