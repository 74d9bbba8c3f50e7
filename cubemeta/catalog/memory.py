"""In-process catalog store."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from ..errors import StoreError
from .base import CatalogStore, CatalogTable, Partition, spec_key
from .filters import matches_filter, parse_filter

__all__ = ["MemoryCatalogStore"]


class MemoryCatalogStore(CatalogStore):
    """Catalog store keeping tables and partitions in dictionaries.

    Objects are copied on the way in and out, so modifying a returned table
    does not change the stored one.
    """

    def __init__(self):
        self._tables: dict[str, CatalogTable] = {}
        self._partitions: dict[str, dict[str, Partition]] = {}

    def _table_partitions(self, table: str) -> dict[str, Partition]:
        try:
            return self._partitions[table.lower()]
        except KeyError:
            raise StoreError(f"Table '{table}' does not exist") from None

    def get_table(self, name: str) -> CatalogTable | None:
        table = self._tables.get(name.lower())
        return table.model_copy(deep=True) if table is not None else None

    def create_table(self, table: CatalogTable) -> None:
        if table.name in self._tables:
            raise StoreError(f"Table '{table.name}' already exists")
        self._tables[table.name] = table.model_copy(deep=True)
        self._partitions[table.name] = {}

    def alter_table(self, name: str, table: CatalogTable) -> None:
        name = name.lower()
        if name not in self._tables:
            raise StoreError(f"Table '{name}' does not exist")
        if table.name != name:
            raise StoreError(f"Renaming table '{name}' to '{table.name}' is not supported")
        self._tables[name] = table.model_copy(deep=True)

    def drop_table(self, name: str) -> None:
        name = name.lower()
        if name not in self._tables:
            raise StoreError(f"Table '{name}' does not exist")
        del self._tables[name]
        del self._partitions[name]

    def get_all_tables(self) -> list[str]:
        return list(self._tables)

    def get_partition(
        self, table: str, spec: Mapping[str, str], exact: bool = True
    ) -> Partition | None:
        partitions = self._table_partitions(table)
        if exact:
            partition = partitions.get(spec_key(spec))
            return partition.model_copy(deep=True) if partition else None

        for partition in partitions.values():
            if all(partition.spec.get(key) == value for key, value in spec.items()):
                return partition.model_copy(deep=True)
        return None

    def get_partitions_by_filter(self, table: str, filter: str) -> list[Partition]:
        terms = parse_filter(filter)
        return [
            partition.model_copy(deep=True)
            for partition in self._table_partitions(table).values()
            if matches_filter(partition.spec, terms)
        ]

    def get_num_partitions_by_filter(self, table: str, filter: str) -> int:
        terms = parse_filter(filter)
        return sum(
            1
            for partition in self._table_partitions(table).values()
            if matches_filter(partition.spec, terms)
        )

    def add_partitions(
        self,
        table: str,
        partitions: Iterable[Partition],
        drop_specs: Iterable[Mapping[str, str]] = (),
    ) -> None:
        existing = self._table_partitions(table)
        partitions = [p.model_copy(deep=True) for p in partitions]

        # Applied to a copy which replaces the partitions only when complete
        updated = dict(existing)
        for spec in drop_specs:
            updated.pop(spec_key(spec), None)
        for partition in partitions:
            if partition.table_name.lower() != table.lower():
                raise StoreError(
                    f"Partition of table '{partition.table_name}' added to '{table}'"
                )
            updated[partition.key] = partition

        self._partitions[table.lower()] = updated
