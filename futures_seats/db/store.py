from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from futures_seats.analytics.indicators import SNAPSHOT_FIELDS
from futures_seats.db.schema import SCHEMA_SQL

MARKET_COLUMNS = (
    "trade_date",
    "contract_id",
    "commodity_id",
    "commodity_name",
    "short_name",
    "open",
    "high",
    "low",
    "close",
    "settle",
    "volume",
    "open_interest",
    "contract_unit",
)
HOLDING_COLUMNS = (
    "trade_date",
    "contract_id",
    "seat_name",
    "commodity_id",
    "long_vol",
    "short_vol",
    "long_chg",
    "short_chg",
)
WEIGHTED_COLUMNS = (
    "trade_date",
    "commodity_id",
    "commodity_name",
    "open",
    "high",
    "low",
    "close",
    "settle",
    "volume",
    "open_interest",
    "contract_unit",
)
SNAPSHOT_COLUMNS = ("trade_date", "commodity_id", "breadth", *SNAPSHOT_FIELDS)


def get_connection(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    conn.executescript(SCHEMA_SQL)
    conn.commit()


def ensure_run(
    conn: sqlite3.Connection,
    run_date: str,
    timezone: str,
    status: str | None = None,
    commit: bool = True,
) -> None:
    conn.execute(
        """
        INSERT OR REPLACE INTO runs (run_date, timezone, created_at, status)
        VALUES (?, ?, ?, ?)
        """,
        (run_date, timezone, datetime.utcnow().isoformat(), status),
    )
    if commit:
        conn.commit()


def update_run_status(
    conn: sqlite3.Connection,
    run_date: str,
    status: str,
    error_message: str | None = None,
) -> None:
    conn.execute(
        """
        UPDATE runs
        SET status = ?, finished_at = ?, error_message = ?
        WHERE run_date = ?
        """,
        (status, datetime.utcnow().isoformat(), error_message, run_date),
    )
    conn.commit()


def upsert_market_data(
    conn: sqlite3.Connection,
    records: Iterable[dict[str, Any]],
    commit: bool = True,
) -> None:
    _upsert(conn, "market_data", MARKET_COLUMNS, ("trade_date", "contract_id"), records, commit)


def upsert_holdings(
    conn: sqlite3.Connection,
    records: Iterable[dict[str, Any]],
    commit: bool = True,
) -> None:
    _upsert(conn, "holding_raw", HOLDING_COLUMNS, ("trade_date", "contract_id", "seat_name"), records, commit)


def _upsert(
    conn: sqlite3.Connection,
    table: str,
    columns: tuple[str, ...],
    key: tuple[str, ...],
    records: Iterable[dict[str, Any]],
    commit: bool,
) -> None:
    # an in-place update keeps the rowid, and with it the ingestion order
    now = datetime.utcnow().isoformat()
    rows = [tuple(record.get(column) for column in columns) + (now,) for record in records]
    updates = ", ".join(f"{column} = excluded.{column}" for column in columns + ("updated_at",) if column not in key)
    conn.executemany(
        f"""
        INSERT INTO {table} ({", ".join(columns)}, updated_at)
        VALUES ({", ".join("?" for _ in columns)}, ?)
        ON CONFLICT ({", ".join(key)}) DO UPDATE SET {updates}
        """,
        rows,
    )
    if commit:
        conn.commit()


def fetch_market_data(conn: sqlite3.Connection, trade_date: str) -> list[dict[str, Any]]:
    rows = conn.execute(
        f"SELECT {', '.join(MARKET_COLUMNS)} FROM market_data WHERE trade_date = ? ORDER BY contract_id",
        (trade_date,),
    ).fetchall()
    return [dict(row) for row in rows]


def fetch_holdings(conn: sqlite3.Connection, trade_date: str) -> list[dict[str, Any]]:
    # rowid keeps ingestion order, which decides seat ties downstream
    rows = conn.execute(
        f"SELECT {', '.join(HOLDING_COLUMNS)} FROM holding_raw WHERE trade_date = ? ORDER BY rowid",
        (trade_date,),
    ).fetchall()
    return [dict(row) for row in rows]


def replace_weighted_contracts(
    conn: sqlite3.Connection,
    trade_date: str,
    rows: Iterable[dict[str, Any]],
    commit: bool = True,
) -> None:
    _replace_for_date(conn, "weighted_contracts", WEIGHTED_COLUMNS, trade_date, rows, commit)


def replace_seat_summaries(
    conn: sqlite3.Connection,
    trade_date: str,
    rows: Iterable[dict[str, Any]],
    commit: bool = True,
) -> None:
    positioned = []
    positions: dict[str, int] = {}
    for row in rows:
        position = positions.get(row["commodity_id"], 0)
        positions[row["commodity_id"]] = position + 1
        positioned.append({**row, "position": position})
    columns = (
        "trade_date",
        "commodity_id",
        "commodity_name",
        "seat_name",
        "position",
        "long_vol",
        "short_vol",
        "long_chg",
        "short_chg",
    )
    _replace_for_date(conn, "seat_summaries", columns, trade_date, positioned, commit)


def replace_indicator_snapshots(
    conn: sqlite3.Connection,
    trade_date: str,
    rows: Iterable[dict[str, Any]],
    commit: bool = True,
) -> None:
    _replace_for_date(conn, "indicator_snapshots", SNAPSHOT_COLUMNS, trade_date, rows, commit)


def replace_seat_metrics(
    conn: sqlite3.Connection,
    trade_date: str,
    rows: Iterable[dict[str, Any]],
    commit: bool = True,
) -> None:
    renamed = [{**row, "window_size": row["window"]} for row in rows]
    columns = ("trade_date", "commodity_id", "seat_name", "metric", "window_size", "value")
    _replace_for_date(conn, "seat_metrics", columns, trade_date, renamed, commit)


def _replace_for_date(
    conn: sqlite3.Connection,
    table: str,
    columns: tuple[str, ...],
    trade_date: str,
    rows: Iterable[dict[str, Any]],
    commit: bool,
) -> None:
    values = [tuple(row.get(column) for column in columns) for row in rows]
    if any(row[0] != trade_date for row in values):
        raise ValueError(f"{table} rows must all belong to {trade_date}")
    conn.execute(f"DELETE FROM {table} WHERE trade_date = ?", (trade_date,))
    conn.executemany(
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
        values,
    )
    if commit:
        conn.commit()


def fetch_weighted_contracts(
    conn: sqlite3.Connection,
    commodity_id: str | None = None,
    until: str | None = None,
) -> list[dict[str, Any]]:
    clauses, params = _filters(commodity_id, until)
    rows = conn.execute(
        f"SELECT {', '.join(WEIGHTED_COLUMNS)} FROM weighted_contracts {clauses} "
        "ORDER BY trade_date, commodity_id",
        params,
    ).fetchall()
    return [dict(row) for row in rows]


def fetch_seat_summaries(
    conn: sqlite3.Connection,
    commodity_id: str | None,
    trade_date: str | None = None,
    until: str | None = None,
) -> list[dict[str, Any]]:
    clauses, params = _filters(commodity_id, until)
    if trade_date is not None:
        clauses += " AND trade_date = ?"
        params.append(trade_date)
    rows = conn.execute(
        f"""
        SELECT trade_date, commodity_id, commodity_name, seat_name,
               long_vol, short_vol, long_chg, short_chg
        FROM seat_summaries {clauses}
        ORDER BY trade_date, commodity_id, position
        """,
        params,
    ).fetchall()
    summaries = []
    for row in rows:
        summary = dict(row)
        summary["net_vol"] = summary["long_vol"] - summary["short_vol"]
        summary["net_chg"] = summary["long_chg"] - summary["short_chg"]
        summaries.append(summary)
    return summaries


def fetch_indicator_snapshots(
    conn: sqlite3.Connection,
    commodity_id: str | None = None,
    until: str | None = None,
) -> list[dict[str, Any]]:
    clauses, params = _filters(commodity_id, until)
    rows = conn.execute(
        f"SELECT {', '.join(SNAPSHOT_COLUMNS)} FROM indicator_snapshots {clauses} "
        "ORDER BY trade_date, commodity_id, breadth",
        params,
    ).fetchall()
    return [dict(row) for row in rows]


def fetch_seat_metrics(
    conn: sqlite3.Connection,
    commodity_id: str,
    trade_date: str,
) -> list[dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT trade_date, commodity_id, seat_name, metric, window_size, value
        FROM seat_metrics
        WHERE commodity_id = ? AND trade_date = ?
        ORDER BY seat_name, metric, window_size
        """,
        (commodity_id, trade_date),
    ).fetchall()
    metrics = []
    for row in rows:
        metric = dict(row)
        metric["window"] = metric.pop("window_size")
        metrics.append(metric)
    return metrics


def derived_trade_dates(conn: sqlite3.Connection, after: str) -> list[str]:
    rows = conn.execute(
        "SELECT DISTINCT trade_date FROM seat_summaries WHERE trade_date > ? ORDER BY trade_date",
        (after,),
    ).fetchall()
    return [row["trade_date"] for row in rows]


def latest_trade_date(conn: sqlite3.Connection, until: str | None = None) -> str | None:
    clauses, params = _filters(None, until)
    row = conn.execute(f"SELECT MAX(trade_date) AS trade_date FROM weighted_contracts {clauses}", params).fetchone()
    return row["trade_date"] if row else None


def insert_run_diagnostics(
    conn: sqlite3.Connection,
    run_date: str,
    diagnostics: dict[str, Any],
    commit: bool = True,
) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO run_diagnostics (run_date, diagnostics_json) VALUES (?, ?)",
        (run_date, json.dumps(diagnostics, ensure_ascii=True)),
    )
    if commit:
        conn.commit()


def fetch_run_diagnostics(conn: sqlite3.Connection, run_date: str) -> dict[str, Any]:
    row = conn.execute(
        "SELECT diagnostics_json FROM run_diagnostics WHERE run_date = ?",
        (run_date,),
    ).fetchone()
    if row and row["diagnostics_json"]:
        return json.loads(row["diagnostics_json"])
    return {}


def _filters(commodity_id: str | None, until: str | None) -> tuple[str, list[Any]]:
    clauses = ["1 = 1"]
    params: list[Any] = []
    if commodity_id is not None:
        clauses.append("commodity_id = ?")
        params.append(commodity_id)
    if until is not None:
        clauses.append("trade_date <= ?")
        params.append(until)
    return "WHERE " + " AND ".join(clauses), params
