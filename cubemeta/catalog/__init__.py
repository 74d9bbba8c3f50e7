"""Catalog store adapters: the tabular catalog the metastore is layered on."""

from .base import CatalogStore, CatalogTable, Column, Partition, TableKind, spec_key
from .filters import matches_filter, parse_filter
from .memory import MemoryCatalogStore
from .sql import SQLCatalogStore

__all__ = [
    "CatalogStore",
    "CatalogTable",
    "Column",
    "Partition",
    "TableKind",
    "spec_key",
    "parse_filter",
    "matches_filter",
    "MemoryCatalogStore",
    "SQLCatalogStore",
]
