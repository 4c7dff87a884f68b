"""SQLite database connection management for scheme records."""
import os
import sqlite3
from flask import current_app, g

from app.services.config import get_data_dir

DB_FILENAME = 'schemes.sqlite'


def get_db_path() -> str:
    """Get the path to the SQLite database file."""
    data_dir = current_app.config.get('DATA_DIR') or get_data_dir()
    os.makedirs(data_dir, exist_ok=True)
    return os.path.join(data_dir, DB_FILENAME)


def get_db() -> sqlite3.Connection:
    """Get a database connection, creating one if needed for this request."""
    if 'db' not in g:
        g.db = sqlite3.connect(get_db_path())
        g.db.row_factory = sqlite3.Row
        g.db.execute('PRAGMA foreign_keys = ON')
    return g.db


def close_db(e=None):
    """Close the database connection at end of request."""
    db = g.pop('db', None)
    if db is not None:
        db.close()


def init_db():
    """Initialize the database with schema."""
    db = get_db()
    db.executescript(get_schema())
    db.commit()


def get_schema() -> str:
    """Return the database schema SQL."""
    return '''
-- Gold savings schemes. Totals are kept equal to the sums over transactions.
-- status: 'ongoing', 'matured', 'redeemed' or 'closed'
CREATE TABLE IF NOT EXISTS schemes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    scheme_name TEXT NOT NULL,
    investment_type TEXT NOT NULL,
    start_date TEXT NOT NULL,
    total_invested_amount REAL NOT NULL DEFAULT 0,
    total_accumulated_gold_grams REAL NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'ongoing',
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_schemes_status ON schemes(status);

-- Gold purchases made into a scheme (gold_purchased_grams = invested_amount / gold_rate)
CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    scheme_id INTEGER NOT NULL REFERENCES schemes(id) ON DELETE CASCADE,
    date TEXT NOT NULL,
    invested_amount REAL NOT NULL,
    gold_rate REAL NOT NULL,
    gold_purchased_grams REAL NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_transactions_scheme ON transactions(scheme_id, date);

-- Saved redemptions: input snapshot and full result, stored verbatim as JSON
CREATE TABLE IF NOT EXISTS redemptions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    scheme_id INTEGER NOT NULL UNIQUE REFERENCES schemes(id) ON DELETE CASCADE,
    redeemed_at TEXT NOT NULL,
    inputs_json TEXT NOT NULL,
    result_json TEXT NOT NULL,
    final_amount_to_pay REAL NOT NULL
);

-- Metadata table for tracking import/update status
CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
'''


def init_app(app):
    """Register database functions with Flask app and ensure database exists."""
    app.teardown_appcontext(close_db)

    # CREATE IF NOT EXISTS keeps this idempotent
    with app.app_context():
        init_db()
