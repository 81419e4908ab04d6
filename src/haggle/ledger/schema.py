"""SQLite schema for users, products, and the offer ledger.

Creates the database with WAL mode and foreign keys on.  All DDL is
idempotent (``IF NOT EXISTS``) so it runs on every startup.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path


def init_market_tables(conn: sqlite3.Connection) -> None:
    """Create the users, products and offers tables if they do not exist.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            nickname TEXT NOT NULL DEFAULT '',
            access_token TEXT NOT NULL,
            refresh_token TEXT,
            token_expires_at TEXT NOT NULL
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_users_token ON users (access_token)")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS products (
            id TEXT PRIMARY KEY,
            seller_id TEXT NOT NULL REFERENCES users (id),
            title TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            list_price TEXT NOT NULL,
            min_price TEXT,
            category TEXT NOT NULL DEFAULT '',
            condition TEXT NOT NULL DEFAULT '',
            status TEXT NOT NULL DEFAULT 'active',
            created_at TEXT NOT NULL
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_products_status ON products (status, created_at)"
    )

    # Offers keep their implicit rowid: it is the ledger's insertion order.
    conn.execute("""
        CREATE TABLE IF NOT EXISTS offers (
            id TEXT PRIMARY KEY,
            product_id TEXT NOT NULL REFERENCES products (id),
            buyer_id TEXT NOT NULL REFERENCES users (id),
            price TEXT NOT NULL,
            message TEXT,
            status TEXT NOT NULL,
            seller_decision TEXT,
            counter_price TEXT,
            in_reply_to_id TEXT REFERENCES offers (id),
            created_at TEXT NOT NULL
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_offers_product ON offers (product_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_offers_status ON offers (status)")

    conn.commit()


def init_market_db(db_path: Path | str) -> sqlite3.Connection:
    """Open (creating if needed) the marketplace database.

    The connection may be used from threads other than the one that opened
    it (FastAPI's test client runs the app on a worker thread).

    Args:
        db_path: Path to the SQLite file, or ``":memory:"``.

    Returns:
        An open sqlite3.Connection with ``sqlite3.Row`` rows.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    init_market_tables(conn)
    return conn


def close_market_db(conn: sqlite3.Connection) -> None:
    """Close the marketplace database connection."""
    conn.close()
