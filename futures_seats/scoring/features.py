from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

_DIGITS = re.compile(r"\d+")


def safe_float(value: Any, default: float = 0.0) -> float:
    try:
        if value is None:
            return default
        return float(value)
    except (TypeError, ValueError):
        return default


def round_half_up(value: float, decimals: int = 0) -> float:
    # float repr first, so 2.675 rounds like the printed value
    quantum = Decimal(1).scaleb(-decimals)
    rounded = Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP)
    return float(rounded)


def strip_digits(name: str | None) -> str:
    return _DIGITS.sub("", name or "").strip()


def limit_for(breadth: int | str) -> int | None:
    if breadth == "all":
        return None
    return int(breadth)


def breadth_label(breadth: int | str) -> str:
    return str(breadth)
