"""Persistence for the marketplace.

Provides the SQLite schema, the offer ledger, and the user/product store.
"""

from haggle.ledger.market import MARKET_SCAN_LIMIT, MarketStore
from haggle.ledger.schema import close_market_db, init_market_db, init_market_tables
from haggle.ledger.store import OfferLedger

__all__ = [
    "MARKET_SCAN_LIMIT",
    "MarketStore",
    "OfferLedger",
    "close_market_db",
    "init_market_db",
    "init_market_tables",
]
