"""MongoDB helpers.

Centralizes creation of Mongo clients and the index layout of the indexer's
collections.
"""

from __future__ import annotations

from typing import Any

import certifi
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

PAYEES = "payees"
MONTHS = "monthly_payroll"
RAW_EVENTS = "raw_events"
CHECKPOINTS = "checkpoints"


def get_client(uri: str, tls: bool = False) -> MongoClient[dict[str, Any]]:
    """Return a configured PyMongo MongoClient for the provided URI.

    Args:
        uri: MongoDB connection URI.
        tls: Connect over TLS using the certifi CA bundle.

    Returns:
        Configured MongoClient instance.
    """
    options: dict[str, Any] = {
        "serverSelectionTimeoutMS": 30000,
        "socketTimeoutMS": 30000,
        "connectTimeoutMS": 30000,
    }
    if tls:
        options.update(tls=True, tlsCAFile=certifi.where())
    return MongoClient(uri, **options)


def get_db(
    client: MongoClient[dict[str, Any]],
    db_name: str,
) -> Database[dict[str, Any]]:
    """Return the named Database instance from a MongoClient.

    Args:
        client: PyMongo MongoClient.
        db_name: Database name.

    Returns:
        A Database object.
    """
    return client[db_name]


def ensure_indexes(db: Database[dict[str, Any]]) -> None:
    """Create the secondary indexes used by dashboards and raw-log queries.

    Aggregates are keyed by `_id`, so only lookup fields need indexes here.
    """
    db[MONTHS].create_index([("month", ASCENDING)])
    db[PAYEES].create_index([("last_paid_at", ASCENDING)])
    db[RAW_EVENTS].create_index([("kind", ASCENDING), ("block_timestamp", ASCENDING)])
