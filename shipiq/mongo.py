"""MongoDB helpers for ShipIQ services."""

from __future__ import annotations

from typing import Any, Dict, Tuple

from pymongo import MongoClient
from pymongo.database import Database

_clients: Dict[Tuple[str, frozenset], MongoClient] = {}


def get_client(uri: str, **kwargs: Any) -> MongoClient:
    """
    Return a cached MongoClient keyed by URI and options.
    """
    key = (uri, frozenset(kwargs.items()))
    if key not in _clients:
        _clients[key] = MongoClient(uri, **kwargs)
    return _clients[key]


def get_database(uri: str, db_name: str, **kwargs: Any) -> Database:
    client = get_client(uri, **kwargs)
    return client[db_name]
