from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from dateutil import parser


def local_today(timezone: str) -> date:
    return datetime.now(ZoneInfo(timezone)).date()


def parse_trade_date(value: str | date | datetime | None) -> str | None:
    """Normalize ``2024-01-05``, ``20240105`` or an ISO timestamp to ``YYYY-MM-DD``."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        return parser.isoparse(str(value).strip()).date().isoformat()
    except (ValueError, TypeError):
        return None
