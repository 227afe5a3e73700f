SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS runs (
    run_date TEXT PRIMARY KEY,
    timezone TEXT NOT NULL,
    created_at TEXT NOT NULL,
    status TEXT,
    finished_at TEXT,
    error_message TEXT
);

CREATE TABLE IF NOT EXISTS market_data (
    trade_date TEXT NOT NULL,
    contract_id TEXT NOT NULL,
    commodity_id TEXT NOT NULL,
    commodity_name TEXT,
    short_name TEXT,
    open REAL,
    high REAL,
    low REAL,
    close REAL,
    settle REAL,
    volume REAL,
    open_interest REAL,
    contract_unit REAL,
    updated_at TEXT,
    PRIMARY KEY (trade_date, contract_id)
);

CREATE TABLE IF NOT EXISTS holding_raw (
    trade_date TEXT NOT NULL,
    contract_id TEXT NOT NULL,
    seat_name TEXT NOT NULL,
    commodity_id TEXT NOT NULL,
    long_vol REAL NOT NULL,
    short_vol REAL NOT NULL,
    long_chg REAL NOT NULL,
    short_chg REAL NOT NULL,
    updated_at TEXT,
    PRIMARY KEY (trade_date, contract_id, seat_name)
);

CREATE TABLE IF NOT EXISTS weighted_contracts (
    trade_date TEXT NOT NULL,
    commodity_id TEXT NOT NULL,
    commodity_name TEXT,
    open REAL,
    high REAL,
    low REAL,
    close REAL,
    settle REAL,
    volume REAL,
    open_interest REAL,
    contract_unit REAL,
    PRIMARY KEY (trade_date, commodity_id)
);

CREATE TABLE IF NOT EXISTS seat_summaries (
    trade_date TEXT NOT NULL,
    commodity_id TEXT NOT NULL,
    commodity_name TEXT,
    seat_name TEXT NOT NULL,
    position INTEGER NOT NULL,
    long_vol REAL NOT NULL,
    short_vol REAL NOT NULL,
    long_chg REAL NOT NULL,
    short_chg REAL NOT NULL,
    PRIMARY KEY (trade_date, commodity_id, seat_name)
);

CREATE TABLE IF NOT EXISTS indicator_snapshots (
    trade_date TEXT NOT NULL,
    commodity_id TEXT NOT NULL,
    breadth TEXT NOT NULL,
    real_long REAL,
    real_short REAL,
    real_diff REAL,
    net_long REAL,
    net_short REAL,
    net_diff REAL,
    add_long REAL,
    add_short REAL,
    reduce_long REAL,
    reduce_short REAL,
    PRIMARY KEY (trade_date, commodity_id, breadth)
);

CREATE TABLE IF NOT EXISTS seat_metrics (
    trade_date TEXT NOT NULL,
    commodity_id TEXT NOT NULL,
    seat_name TEXT NOT NULL,
    metric TEXT NOT NULL,
    window_size INTEGER NOT NULL,
    value REAL,
    PRIMARY KEY (trade_date, commodity_id, seat_name, metric, window_size)
);

CREATE TABLE IF NOT EXISTS run_diagnostics (
    run_date TEXT PRIMARY KEY,
    diagnostics_json TEXT
);

CREATE INDEX IF NOT EXISTS idx_market_data_commodity ON market_data (commodity_id, trade_date);
CREATE INDEX IF NOT EXISTS idx_holding_raw_commodity ON holding_raw (commodity_id, trade_date);
CREATE INDEX IF NOT EXISTS idx_seat_summaries_seat ON seat_summaries (commodity_id, seat_name, trade_date);
"""
