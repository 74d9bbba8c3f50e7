"""Cube metastore client, its object cache and mutation reports."""

from .cache import ObjectCache
from .client import CubeMetastoreClient
from .report import MutationReport

__all__ = ["CubeMetastoreClient", "ObjectCache", "MutationReport"]
