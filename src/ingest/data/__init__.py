"""Catalog persistence layer.

Provides SQLite database management, query parsing for the read surface,
and the typed asset/candle store.
"""

from ingest.data.database import CatalogDatabase
from ingest.data.query import Pagination, Search, parse_pagination, parse_search
from ingest.data.store import CatalogStore

__all__ = [
    "CatalogDatabase",
    "CatalogStore",
    "Pagination",
    "Search",
    "parse_pagination",
    "parse_search",
]
