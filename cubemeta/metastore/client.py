"""
Cube metastore client.

`CubeMetastoreClient` creates, alters and drops cubes, fact tables and
dimension tables on top of a `CatalogStore`. It keeps every physical storage
table in line with the storages tracked on its fact or dimension, maintains
latest partition markers when partitions are added and keeps the object
cache in agreement with the catalog after every mutation.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import TypeVar

from ..catalog.base import CatalogStore, CatalogTable, Column, Partition
from ..config import MetastoreConfig
from ..errors import ArgumentError, NotFoundError, WrongEntityTypeError
from ..logging import create_logger, get_logger
from ..metadata.base import AbstractCubeTable, ClassifiedTable, CubeTableType, classify_table
from ..metadata.cube import Cube
from ..metadata.dimtable import DimensionTable
from ..metadata.fact import FactTable
from ..metadata.periods import UpdatePeriod
from ..storage.latest import compute_latest_info
from ..storage.naming import latest_part_filter, storage_prefix, storage_table_name
from ..storage.storage import Storage, StoragePartitionDesc, StorageTableDescriptor
from .cache import ObjectCache
from .report import MutationReport, catalog_call

__all__ = ["CubeMetastoreClient"]

T = TypeVar("T", bound=AbstractCubeTable)

ENTITY_CLASSES: dict[CubeTableType, type[AbstractCubeTable]] = {
    CubeTableType.CUBE: Cube,
    CubeTableType.FACT: FactTable,
    CubeTableType.DIMENSION: DimensionTable,
}


class CubeMetastoreClient:
    """
    Cube metastore operations on a catalog store.

    A client owns its configuration, the catalog store handle and the object
    cache; create one per catalog and pass it to whatever needs it.

    The client does no locking. It assumes a single writer: concurrent
    mutations of the same entity name, from threads or from other processes
    sharing the catalog, must be serialized by the caller.

    Readers return ``None`` (or ``False``) for entities that do not exist or
    are of another type. Mutators raise `NotFoundError` and
    `WrongEntityTypeError` instead, and report every failed catalog call as
    `CatalogOperationError` naming the failed step. Completed steps are not
    rolled back.
    """

    def __init__(self, store: CatalogStore, config: MetastoreConfig | None = None):
        self.store = store
        self.config = config or MetastoreConfig()

        if self.config.log or self.config.log_level:
            create_logger(self.config.log, self.config.log_level)
        self.logger = get_logger()

        self.cache = ObjectCache(enabled=self.config.enable_caching)

    @property
    def caching_enabled(self) -> bool:
        return self.cache.enabled

    # ========================================
    # Catalog rows
    # ========================================

    def _fetch_table(self, name: str) -> ClassifiedTable | None:
        """Read and classify table `name` from the store, bypassing the
        cache."""
        with catalog_call("get_table", name):
            table = self.store.get_table(name.lower())
        return classify_table(table) if table is not None else None

    def _fetch_row(self, name: str) -> CatalogTable:
        table = self._fetch_table(name)
        if table is None:
            raise NotFoundError(f"Table '{name}' does not exist", name=name, kind="table")
        return table.table

    def _classified(self, name: str) -> ClassifiedTable | None:
        cached = self.cache.get_table(name)
        if cached is not None:
            return cached

        table = self._fetch_table(name)
        if table is not None:
            self.cache.put_table(table)
        return table

    def find_table(self, name: str) -> CatalogTable | None:
        """Catalog row `name`, or ``None`` when there is no such table."""
        table = self._classified(name)
        return table.table if table is not None else None

    def get_table(self, name: str) -> CatalogTable:
        """
        Catalog row `name`.

        Raises:
            NotFoundError: If there is no such table
        """
        table = self.find_table(name)
        if table is None:
            raise NotFoundError(f"Table '{name}' does not exist", name=name, kind="table")
        return table

    def table_exists(self, name: str) -> bool:
        return self._classified(name) is not None

    def table_type(self, name: str) -> CubeTableType | None:
        table = self._classified(name)
        return table.table_type if table is not None else None

    def is_cube(self, name: str) -> bool:
        return self.table_type(name) is CubeTableType.CUBE

    def is_fact_table(self, name: str) -> bool:
        return self.table_type(name) is CubeTableType.FACT

    def is_dimension_table(self, name: str) -> bool:
        return self.table_type(name) is CubeTableType.DIMENSION

    def get_part_col_names(self, table_name: str) -> list[str]:
        return self.get_table(table_name).partition_column_names

    def part_col_exists(self, table_name: str, column: str) -> bool:
        return column.lower() in self.get_part_col_names(table_name)

    def _all_table_names(self) -> list[str]:
        with catalog_call("get_all_tables", "catalog"):
            return self.store.get_all_tables()

    # ========================================
    # Entities
    # ========================================

    def _load_entity(self, name: str, cls: type[T]) -> T | None:
        cached = self.cache.get_entity(name)
        if cached is not None:
            return cached if isinstance(cached, cls) else None

        table = self._classified(name)
        if table is None or table.table_type is not cls.table_type:
            return None

        entity = cls.from_catalog_table(table)
        self.cache.put_entity(entity)
        return entity

    def _require_entity(self, name: str, cls: type[T]) -> T:
        table = self._classified(name)
        if table is None:
            raise NotFoundError(
                f"{cls.table_type.value.capitalize()} '{name}' does not exist",
                name=name,
                kind=cls.table_type.value.lower(),
            )
        if table.table_type is not cls.table_type:
            raise WrongEntityTypeError(
                f"'{name}' is not a {cls.table_type.value.lower()} table "
                f"(classified as {table.table_type.value.lower()})",
                name=name,
                expected=cls.table_type.value,
                actual=table.table_type.value,
            )
        return self._load_entity(name, cls)

    def get_cube(self, name: str) -> Cube | None:
        """Cube `name`, or ``None`` if `name` is not a cube."""
        return self._load_entity(name, Cube)

    def get_fact_table(self, name: str) -> FactTable | None:
        """Fact table `name`, or ``None`` if `name` is not a fact table."""
        return self._load_entity(name, FactTable)

    def get_dimension_table(self, name: str) -> DimensionTable | None:
        """Dimension table `name`, or ``None`` if `name` is not a dimension
        table."""
        return self._load_entity(name, DimensionTable)

    def _all_entities(self, cls: type[T]) -> list[T]:
        result = []
        for name in self._all_table_names():
            entity = self._load_entity(name, cls)
            if entity is not None:
                result.append(entity)
        return result

    def get_all_cubes(self) -> list[Cube]:
        return self._all_entities(Cube)

    def get_all_facts(self) -> list[FactTable]:
        return self._all_entities(FactTable)

    def get_all_dimension_tables(self) -> list[DimensionTable]:
        return self._all_entities(DimensionTable)

    def get_all_fact_tables(self, cube: Cube | str) -> list[FactTable]:
        """Fact tables belonging to `cube`."""
        cube_name = (cube.name if isinstance(cube, Cube) else cube).lower()
        return [fact for fact in self.get_all_facts() if cube_name in fact.cube_names]

    # ========================================
    # Partitions
    # ========================================

    def get_partitions_by_filter(self, storage_table_name: str, filter: str) -> list[Partition]:
        table = self.get_table(storage_table_name)
        with catalog_call("get_partitions_by_filter", table.name):
            return self.store.get_partitions_by_filter(table.name, filter)

    def get_num_partitions_by_filter(self, storage_table_name: str, filter: str) -> int:
        table = self.get_table(storage_table_name)
        with catalog_call("get_num_partitions_by_filter", table.name):
            return self.store.get_num_partitions_by_filter(table.name, filter)

    def partition_exists_by_filter(self, storage_table_name: str, filter: str) -> bool:
        return bool(self.get_partitions_by_filter(storage_table_name, filter))

    def partition_exists(
        self,
        storage_table_name: str,
        update_period: UpdatePeriod,
        partition_timestamps: Mapping[str, datetime],
        non_time_part_spec: Mapping[str, str] | None = None,
    ) -> bool:
        """True when the storage table has a partition with the given time
        values, formatted with `update_period`. Partition columns missing
        from the spec match any value."""
        spec = {key.lower(): value for key, value in (non_time_part_spec or {}).items()}
        spec.update(
            {
                column.lower(): update_period.format_time(timestamp)
                for column, timestamp in partition_timestamps.items()
            }
        )
        table = self.get_table(storage_table_name)
        with catalog_call("get_partition", table.name):
            return self.store.get_partition(table.name, spec, exact=False) is not None

    def fact_partition_exists(
        self,
        fact_name: str,
        storage: Storage,
        update_period: UpdatePeriod,
        partition_timestamps: Mapping[str, datetime],
        non_time_part_spec: Mapping[str, str] | None = None,
    ) -> bool:
        return self.partition_exists(
            storage.storage_table_name(fact_name),
            update_period,
            partition_timestamps,
            non_time_part_spec,
        )

    def dim_partition_exists(
        self,
        dim_name: str,
        storage: Storage,
        partition_timestamps: Mapping[str, datetime],
    ) -> bool:
        """Partitions of dimension storage tables are formatted with the
        storage's snapshot dump period."""
        dim = self._require_entity(dim_name, DimensionTable)
        period = dim.dump_period(storage.name)
        if period is None:
            raise ArgumentError(
                f"Dimension table '{dim_name}' has no snapshot dumps on storage "
                f"'{storage.name}'"
            )
        return self.partition_exists(
            storage.storage_table_name(dim_name), period, partition_timestamps
        )

    def get_latest_partition(self, storage_table_name: str, column: str) -> Partition | None:
        """Latest marker partition of time partition `column`, or ``None``
        when the column has no marker yet."""
        parts = self.get_partitions_by_filter(storage_table_name, latest_part_filter(column))
        if not parts:
            return None
        if len(parts) > 1:
            self.logger.warning(
                f"table '{storage_table_name}' has {len(parts)} latest "
                f"partitions for column '{column}', using the first one"
            )
        return parts[0]

    def latest_partition_exists(self, fact_name: str, storage: Storage, column: str) -> bool:
        return self.partition_exists_by_filter(
            storage.storage_table_name(fact_name), latest_part_filter(column)
        )

    def add_partition(self, partition_desc: StoragePartitionDesc, storage: Storage) -> Partition:
        """
        Add a partition to the storage table of `partition_desc.cube_table_name`
        on `storage`, advancing the latest markers of its time partition
        columns where the new partition is not older than the marker.

        Returns:
            The written partition

        Raises:
            NotFoundError: If the storage table does not exist
            PartitionMarkerCorruptError: If a stored marker can not be parsed
        """
        table_name = storage.storage_table_name(partition_desc.cube_table_name)
        table = self.get_table(table_name)

        latest = compute_latest_info(
            table,
            partition_desc.time_part_spec,
            partition_desc.update_period,
            lambda column: self.get_latest_partition(table_name, column),
        )

        with catalog_call("add_partition", table_name):
            return storage.add_partition(self.store, partition_desc, latest)

    # ========================================
    # Mutation helpers
    # ========================================

    def _refresh(self, name: str) -> AbstractCubeTable | None:
        """Re-read table `name` from the store and replace its cache
        entries. Returns the typed entity, if the table is one."""
        self.cache.evict(name)
        table = self._fetch_table(name)
        if table is None:
            return None

        self.cache.put_table(table)
        cls = ENTITY_CLASSES.get(table.table_type)
        if cls is None:
            return None

        entity = cls.from_catalog_table(table)
        self.cache.put_entity(entity)
        return entity

    def _alter_row(self, row: CatalogTable, entity: AbstractCubeTable) -> bool:
        """Merge properties and columns of `entity` into catalog `row` and
        store it. Returns true if the columns changed."""
        parameters = {
            key: value for key, value in row.parameters.items() if not entity.owns_property(key)
        }
        parameters.update(entity.persisted_properties())

        altered = row.model_copy(deep=True)
        columns_changed = altered.columns != entity.columns
        altered.parameters = parameters
        if columns_changed:
            altered.columns = [col.model_copy() for col in entity.columns]

        self.store.alter_table(row.name, altered)
        return columns_changed

    def _alter_storage_columns(self, table_name: str, columns: list[Column]) -> None:
        self.cache.evict(table_name)
        table = self.store.get_table(table_name)
        if table is None:
            raise NotFoundError(
                f"Storage table '{table_name}' does not exist", name=table_name, kind="table"
            )
        table.columns = [col.model_copy() for col in columns]
        self.store.alter_table(table_name, table)

    def _drop_storage_table(self, table_name: str) -> None:
        """Drop a physical storage table. A table that is already gone is
        only reported, so that interrupted drops can be repeated."""
        self.cache.evict(table_name)
        if self.store.get_table(table_name) is None:
            self.logger.warning(f"storage table '{table_name}' does not exist, skipping drop")
            return
        self.store.drop_table(table_name)

    # ========================================
    # Create
    # ========================================

    def create_cube(
        self,
        cube: Cube | str,
        measures=None,
        dimensions=None,
        properties: dict[str, str] | None = None,
    ) -> MutationReport:
        """Create a cube, given either as a `Cube` or as a name with its
        measures, dimensions and properties."""
        if not isinstance(cube, Cube):
            cube = Cube(
                name=cube,
                measures=measures or [],
                dimensions=dimensions or [],
                properties=properties or {},
            )
        return self.create_cube_table(cube)

    def create_fact_table(
        self,
        cube_names: Iterable[str],
        fact_name: str,
        columns: list[Column],
        storage_update_periods: Mapping[str, Iterable[UpdatePeriod]],
        weight: float = 0.0,
        properties: dict[str, str] | None = None,
        storage_table_descs: Mapping[Storage, StorageTableDescriptor] | None = None,
    ) -> MutationReport:
        """Create a fact table of `cube_names` together with its storage
        tables. `storage_table_descs` must describe exactly the storages in
        `storage_update_periods`."""
        fact = FactTable(
            name=fact_name,
            cube_names=set(cube_names),
            columns=columns,
            storage_update_periods={
                storage: set(periods) for storage, periods in storage_update_periods.items()
            },
            weight=weight,
            properties=properties or {},
        )
        return self.create_cube_table(fact, storage_table_descs)

    def create_dimension_table(
        self,
        dim_name: str,
        columns: list[Column],
        weight: float = 0.0,
        dimension_references=None,
        snapshot_dump_periods=None,
        properties: dict[str, str] | None = None,
        storage_table_descs: Mapping[Storage, StorageTableDescriptor] | None = None,
    ) -> MutationReport:
        """Create a dimension table together with its storage tables.

        `snapshot_dump_periods` is either a mapping of storage names to dump
        periods or a set of storage names on which the dimension is kept
        without snapshots.
        """
        dim = DimensionTable(
            name=dim_name,
            columns=columns,
            weight=weight,
            dimension_references=dimension_references or {},
            snapshot_dump_periods=snapshot_dump_periods or {},
            properties=properties or {},
        )
        return self.create_cube_table(dim, storage_table_descs)

    def create_cube_table(
        self,
        table: AbstractCubeTable,
        storage_table_descs: Mapping[Storage, StorageTableDescriptor] | None = None,
    ) -> MutationReport:
        """
        Create the catalog row of a cube, fact or dimension table and one
        physical storage table per entry of `storage_table_descs`.

        Raises:
            ArgumentError: If the table exists or the storage descriptors do
                not match the tracked storages; nothing is written then
            CatalogOperationError: If a catalog call fails. The row and the
                storage tables created before the failure are kept.
        """
        storage_table_descs = storage_table_descs or {}
        tracked = getattr(table, "storages", set())
        described = {storage.name for storage in storage_table_descs}
        if described != tracked:
            raise ArgumentError(
                f"Storage tables of '{table.name}' are described for storages "
                f"{sorted(described)} but the table tracks {sorted(tracked)}"
            )

        if self._fetch_table(table.name) is not None:
            raise ArgumentError(f"Table '{table.name}' already exists")

        row = table.to_catalog_table()
        storage_tables = [
            storage.get_storage_table(row, desc) for storage, desc in storage_table_descs.items()
        ]

        report = MutationReport("create_cube_table", table.name)
        self.cache.evict(table.name)

        with report.step(f"create table '{row.name}'"):
            self.store.create_table(row)

        for storage_table in storage_tables:
            self.cache.evict(storage_table.name)
            with report.step(f"create storage table '{storage_table.name}'"):
                self.store.create_table(storage_table)

        report.entity = self._refresh(table.name)
        self.logger.info(
            f"created {table.table_type.value.lower()} '{table.name}' "
            f"with {len(storage_tables)} storage table(s)"
        )
        return report

    # ========================================
    # Storages
    # ========================================

    def add_storage(
        self,
        table: FactTable | DimensionTable,
        storage: Storage,
        periods,
        storage_table_desc: StorageTableDescriptor,
    ) -> MutationReport:
        """
        Add `storage` to a fact or dimension table and create its storage
        table.

        For a fact table `periods` is the set of update periods populated on
        the storage. For a dimension table it is the snapshot dump period,
        or ``None`` for a storage without snapshots.

        The new storage is applied to the definition currently in the
        catalog; only the name and type of `table` are used, so a stale
        object does not drop storages or columns added since it was read.
        Other attributes change through `alter_fact_table` and
        `alter_dimension_table`. The new state is in the returned report.
        """
        if not isinstance(table, (FactTable, DimensionTable)):
            raise ArgumentError(
                f"Storages can be added only to fact and dimension tables, not to '{table.name}'"
            )

        entity = self._require_entity(table.name, type(table))
        if storage.name in entity.storages:
            raise ArgumentError(f"'{table.name}' already has storage '{storage.name}'")

        if isinstance(entity, FactTable):
            entity.add_storage(storage.name, set(periods))
        else:
            entity.alter_snapshot_dump_period(storage.name, periods)

        report = MutationReport("add_storage", entity.name)
        self.cache.evict(entity.name)

        row = self._fetch_row(entity.name)
        storage_table = storage.get_storage_table(row, storage_table_desc)
        self.cache.evict(storage_table.name)

        with report.step(f"create storage table '{storage_table.name}'"):
            self.store.create_table(storage_table)
        with report.step(f"alter table '{entity.name}'"):
            self._alter_row(row, entity)

        report.entity = self._refresh(entity.name)
        self.logger.info(f"added storage '{storage.name}' to '{entity.name}'")
        return report

    def _drop_storage(self, operation: str, name: str, cls: type[T], storage: str) -> MutationReport:
        entity = self._require_entity(name, cls)
        storage = storage.lower()
        if storage not in entity.storages:
            raise NotFoundError(
                f"'{name}' has no storage '{storage}'", name=storage, kind="storage"
            )

        report = MutationReport(operation, entity.name)
        self.cache.evict(entity.name)
        entity.drop_storage(storage)

        table_name = storage_table_name(entity.name, storage_prefix(storage))
        with report.step(f"drop storage table '{table_name}'"):
            self._drop_storage_table(table_name)
        with report.step(f"alter table '{entity.name}'"):
            self._alter_row(self._fetch_row(entity.name), entity)

        report.entity = self._refresh(entity.name)
        self.logger.info(f"dropped storage '{storage}' from '{entity.name}'")
        return report

    def drop_storage_from_fact(self, fact_name: str, storage: str) -> MutationReport:
        """Drop the storage table of fact `fact_name` on `storage` and stop
        tracking the storage."""
        return self._drop_storage("drop_storage_from_fact", fact_name, FactTable, storage)

    def drop_storage_from_dimension(self, dim_name: str, storage: str) -> MutationReport:
        """Drop the storage table of dimension `dim_name` on `storage` and
        stop tracking the storage."""
        return self._drop_storage("drop_storage_from_dimension", dim_name, DimensionTable, storage)

    # ========================================
    # Alter
    # ========================================

    def alter_cube(self, cube_name: str, cube: Cube) -> MutationReport:
        """Replace definition of cube `cube_name` with `cube`."""
        self._require_entity(cube_name, Cube)
        if cube.name != cube_name.lower():
            raise ArgumentError(f"Can not rename cube '{cube_name}' to '{cube.name}'")

        report = MutationReport("alter_cube", cube.name)
        self.cache.evict(cube.name)
        with report.step(f"alter table '{cube.name}'"):
            self._alter_row(self._fetch_row(cube.name), cube)

        report.entity = self._refresh(cube.name)
        self.logger.info(f"altered cube '{cube.name}'")
        return report

    def _alter_storage_entity(
        self, operation: str, name: str, entity: FactTable | DimensionTable
    ) -> MutationReport:
        current = self._require_entity(name, type(entity))
        if entity.name != name.lower():
            raise ArgumentError(f"Can not rename '{name}' to '{entity.name}'")
        if entity.storages != current.storages:
            raise ArgumentError(
                f"Storages of '{name}' can not be changed by alter, "
                f"add or drop them one by one"
            )

        report = MutationReport(operation, entity.name)
        # Stays evicted if a step fails, the next read sees the completed steps
        self.cache.evict(entity.name)
        with report.step(f"alter table '{entity.name}'"):
            columns_changed = self._alter_row(self._fetch_row(entity.name), entity)

        if columns_changed:
            for storage in sorted(entity.storages):
                table_name = storage_table_name(entity.name, storage_prefix(storage))
                with report.step(f"alter storage table '{table_name}'"):
                    self._alter_storage_columns(table_name, entity.columns)

        report.entity = self._refresh(entity.name)

        self.logger.info(f"altered {entity.table_type.value.lower()} '{entity.name}'")
        return report

    def alter_fact_table(self, fact_name: str, fact: FactTable) -> MutationReport:
        """Replace definition of fact `fact_name` with `fact`. Changed
        columns are propagated to every storage table of the fact."""
        return self._alter_storage_entity("alter_fact_table", fact_name, fact)

    def alter_dimension_table(self, dim_name: str, dim: DimensionTable) -> MutationReport:
        """Replace definition of dimension table `dim_name` with `dim`.
        Changed columns are propagated to every storage table of the
        dimension."""
        return self._alter_storage_entity("alter_dimension_table", dim_name, dim)

    # ========================================
    # Drop
    # ========================================

    def drop_table(self, name: str) -> None:
        """Drop any catalog table `name`."""
        self.cache.evict(name)
        with catalog_call("drop_table", name):
            self.store.drop_table(name.lower())

    def drop_cube(self, cube_name: str) -> MutationReport:
        cube = self._require_entity(cube_name, Cube)
        report = MutationReport("drop_cube", cube.name)
        self.cache.evict(cube.name)
        with report.step(f"drop table '{cube.name}'"):
            self.store.drop_table(cube.name)
        self.logger.info(f"dropped cube '{cube.name}'")
        return report

    def _drop_storage_entity(
        self, operation: str, name: str, cls: type[T], cascade: bool
    ) -> MutationReport:
        entity = self._require_entity(name, cls)
        report = MutationReport(operation, entity.name)

        if cascade:
            for storage in sorted(entity.storages):
                with report.step(f"drop storage '{storage}'"):
                    self._drop_storage(operation, entity.name, cls, storage)
        elif entity.storages:
            self.logger.warning(
                f"dropping '{entity.name}' without cascade leaves its storage "
                f"tables on {', '.join(sorted(entity.storages))} orphaned"
            )

        self.cache.evict(entity.name)
        with report.step(f"drop table '{entity.name}'"):
            self.store.drop_table(entity.name)

        self.logger.info(f"dropped {cls.table_type.value.lower()} '{entity.name}'")
        return report

    def drop_fact(self, fact_name: str, cascade: bool = False) -> MutationReport:
        """Drop fact `fact_name`. With `cascade` all its storage tables are
        dropped first; otherwise they are left in the catalog."""
        return self._drop_storage_entity("drop_fact", fact_name, FactTable, cascade)

    def drop_dimension(self, dim_name: str, cascade: bool = False) -> MutationReport:
        """Drop dimension table `dim_name`. With `cascade` all its storage
        tables are dropped first; otherwise they are left in the catalog."""
        return self._drop_storage_entity("drop_dimension", dim_name, DimensionTable, cascade)
