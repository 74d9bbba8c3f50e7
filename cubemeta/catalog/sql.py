"""
Catalog store backed by a relational database through SQLAlchemy.

Table definitions are kept as JSON documents in one table and partitions in
another, keyed by the canonical form of their partition spec. Partition
filters are evaluated on the partitions of a single table after they are
loaded.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from ..errors import StoreError
from .base import CatalogStore, CatalogTable, Partition, spec_key
from .filters import matches_filter, parse_filter

__all__ = ["SQLCatalogStore", "TABLES_TABLE", "PARTITIONS_TABLE"]

TABLES_TABLE = "cube_catalog_tables"
PARTITIONS_TABLE = "cube_catalog_partitions"


def _create_schema(metadata: sa.MetaData, schema: str | None):
    tables = sa.Table(
        TABLES_TABLE,
        metadata,
        sa.Column("name", sa.String(256), primary_key=True),
        sa.Column("definition", sa.JSON, nullable=False),
        schema=schema,
    )
    partitions = sa.Table(
        PARTITIONS_TABLE,
        metadata,
        sa.Column("table_name", sa.String(256), primary_key=True),
        sa.Column("spec_key", sa.String(1024), primary_key=True),
        sa.Column("spec", sa.JSON, nullable=False),
        sa.Column("parameters", sa.JSON, nullable=False),
        sa.Column("location", sa.String(1024), nullable=True),
        schema=schema,
    )
    return tables, partitions


class SQLCatalogStore(CatalogStore):
    """Catalog store persisting tables and partitions with SQLAlchemy.

    Args:
        engine: SQLAlchemy engine or database URL
        schema: Optional database schema of the catalog tables
        create: Create the catalog tables when they do not exist
    """

    def __init__(self, engine: Engine | str, schema: str | None = None, create: bool = True):
        if isinstance(engine, str):
            engine = sa.create_engine(engine)

        self.engine = engine
        self.metadata = sa.MetaData()
        self.tables, self.partitions = _create_schema(self.metadata, schema)

        if create:
            self.metadata.create_all(self.engine)

    def _load_table(self, conn, name: str) -> CatalogTable | None:
        row = conn.execute(
            sa.select(self.tables.c.definition).where(self.tables.c.name == name)
        ).first()
        if row is None:
            return None
        return CatalogTable.model_validate(row.definition)

    def _require_table(self, conn, name: str) -> None:
        exists = conn.execute(
            sa.select(self.tables.c.name).where(self.tables.c.name == name)
        ).first()
        if exists is None:
            raise StoreError(f"Table '{name}' does not exist")

    def _partition_from_row(self, table: str, row) -> Partition:
        return Partition(
            table_name=table,
            spec=row.spec,
            parameters=row.parameters,
            location=row.location,
        )

    def _table_partitions(self, conn, table: str) -> list[Partition]:
        self._require_table(conn, table)
        rows = conn.execute(
            sa.select(
                self.partitions.c.spec,
                self.partitions.c.parameters,
                self.partitions.c.location,
            )
            .where(self.partitions.c.table_name == table)
            .order_by(self.partitions.c.spec_key)
        )
        return [self._partition_from_row(table, row) for row in rows]

    def get_table(self, name: str) -> CatalogTable | None:
        with self.engine.connect() as conn:
            return self._load_table(conn, name.lower())

    def create_table(self, table: CatalogTable) -> None:
        with self.engine.begin() as conn:
            if self._load_table(conn, table.name) is not None:
                raise StoreError(f"Table '{table.name}' already exists")
            conn.execute(
                self.tables.insert().values(
                    name=table.name, definition=table.model_dump(mode="json")
                )
            )

    def alter_table(self, name: str, table: CatalogTable) -> None:
        name = name.lower()
        if table.name != name:
            raise StoreError(f"Renaming table '{name}' to '{table.name}' is not supported")

        with self.engine.begin() as conn:
            result = conn.execute(
                self.tables.update()
                .where(self.tables.c.name == name)
                .values(definition=table.model_dump(mode="json"))
            )
            if result.rowcount == 0:
                raise StoreError(f"Table '{name}' does not exist")

    def drop_table(self, name: str) -> None:
        name = name.lower()
        with self.engine.begin() as conn:
            self._require_table(conn, name)
            conn.execute(
                self.partitions.delete().where(self.partitions.c.table_name == name)
            )
            conn.execute(self.tables.delete().where(self.tables.c.name == name))

    def get_all_tables(self) -> list[str]:
        with self.engine.connect() as conn:
            rows = conn.execute(sa.select(self.tables.c.name).order_by(self.tables.c.name))
            return [row.name for row in rows]

    def get_partition(
        self, table: str, spec: Mapping[str, str], exact: bool = True
    ) -> Partition | None:
        table = table.lower()
        with self.engine.connect() as conn:
            if exact:
                self._require_table(conn, table)
                row = conn.execute(
                    sa.select(
                        self.partitions.c.spec,
                        self.partitions.c.parameters,
                        self.partitions.c.location,
                    ).where(
                        self.partitions.c.table_name == table,
                        self.partitions.c.spec_key == spec_key(spec),
                    )
                ).first()
                return self._partition_from_row(table, row) if row else None

            for partition in self._table_partitions(conn, table):
                if all(partition.spec.get(key) == value for key, value in spec.items()):
                    return partition
        return None

    def get_partitions_by_filter(self, table: str, filter: str) -> list[Partition]:
        terms = parse_filter(filter)
        with self.engine.connect() as conn:
            return [
                partition
                for partition in self._table_partitions(conn, table.lower())
                if matches_filter(partition.spec, terms)
            ]

    def get_num_partitions_by_filter(self, table: str, filter: str) -> int:
        return len(self.get_partitions_by_filter(table, filter))

    def add_partitions(
        self,
        table: str,
        partitions: Iterable[Partition],
        drop_specs: Iterable[Mapping[str, str]] = (),
    ) -> None:
        table = table.lower()
        # Later partitions with the same spec replace earlier ones
        by_key = {partition.key: partition for partition in partitions}

        with self.engine.begin() as conn:
            self._require_table(conn, table)

            keys = [spec_key(spec) for spec in drop_specs]
            for partition in by_key.values():
                if partition.table_name.lower() != table:
                    raise StoreError(
                        f"Partition of table '{partition.table_name}' added to '{table}'"
                    )
                keys.append(partition.key)

            if keys:
                conn.execute(
                    self.partitions.delete().where(
                        self.partitions.c.table_name == table,
                        self.partitions.c.spec_key.in_(keys),
                    )
                )

            for partition in by_key.values():
                conn.execute(
                    self.partitions.insert().values(
                        table_name=table,
                        spec_key=partition.key,
                        spec=partition.spec,
                        parameters=partition.parameters,
                        location=partition.location,
                    )
                )
