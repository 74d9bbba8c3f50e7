"""
Write-through object cache.

Keyed by lowercase entity name, the cache holds the last fetched catalog
rows (already classified) and the typed cube, fact and dimension objects
built from them. Objects are copied on the way in and out, so the cached
state changes only through `put_*` and `evict`.
"""

from __future__ import annotations

from ..logging import get_logger
from ..metadata.base import AbstractCubeTable, ClassifiedTable

__all__ = ["ObjectCache"]


class ObjectCache:
    """Cache of catalog rows and typed entities.

    A disabled cache stores nothing and every lookup misses.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._tables: dict[str, ClassifiedTable] = {}
        self._entities: dict[str, AbstractCubeTable] = {}
        self.logger = get_logger()

    def __contains__(self, name: str) -> bool:
        name = name.lower()
        return name in self._tables or name in self._entities

    def __len__(self) -> int:
        return len(set(self._tables) | set(self._entities))

    def get_table(self, name: str) -> ClassifiedTable | None:
        cached = self._tables.get(name.lower())
        if cached is None:
            return None
        self.logger.debug(f"cache hit: table '{name}'")
        return ClassifiedTable(cached.table.model_copy(deep=True), cached.table_type)

    def put_table(self, table: ClassifiedTable) -> None:
        if self.enabled:
            self._tables[table.name] = ClassifiedTable(
                table.table.model_copy(deep=True), table.table_type
            )

    def get_entity(self, name: str) -> AbstractCubeTable | None:
        cached = self._entities.get(name.lower())
        if cached is None:
            return None
        self.logger.debug(f"cache hit: {cached.table_type.value.lower()} '{name}'")
        return cached.model_copy(deep=True)

    def put_entity(self, entity: AbstractCubeTable) -> None:
        if self.enabled:
            self._entities[entity.name] = entity.model_copy(deep=True)

    def evict(self, name: str) -> None:
        """Remove table and entity `name` from the cache."""
        name = name.lower()
        self._tables.pop(name, None)
        self._entities.pop(name, None)

    def clear(self) -> None:
        self._tables.clear()
        self._entities.clear()
