"""
Storages: named physical materialization targets of facts and dimensions.

A storage turns a `StorageTableDescriptor` into the physical storage table
of a fact or dimension and writes partitions, together with their latest
partition markers, into such tables.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..catalog.base import CatalogStore, CatalogTable, Column, Partition, TableKind
from ..errors import ArgumentError
from ..logging import get_logger
from ..metadata.base import MetadataObject
from ..metadata.periods import UpdatePeriod, naive_utc
from .latest import LatestPartitionInfo
from .naming import (
    TIME_PART_COLUMNS_KEY,
    latest_part_filter,
    latest_part_spec,
    storage_prefix,
    storage_table_name,
)

__all__ = ["Storage", "StorageTableDescriptor", "StoragePartitionDesc"]


class StorageTableDescriptor(BaseModel):
    """Physical layout of a storage table, supplied when a storage is added
    to a fact or dimension table."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    partition_columns: list[Column] = Field(default_factory=list)
    time_partition_columns: list[str] = Field(default_factory=list)
    external: bool = False
    location: str | None = None
    input_format: str | None = None
    output_format: str | None = None
    serde: str | None = None
    serde_parameters: dict[str, str] = Field(default_factory=dict)
    table_parameters: dict[str, str] = Field(default_factory=dict)

    @field_validator("partition_columns", mode="before")
    @classmethod
    def validate_partition_columns(cls, v: Any) -> list[Any]:
        if not v:
            return []
        return [
            Column(name=col[0], type=col[1]) if isinstance(col, (tuple, list)) else col
            for col in v
        ]

    @field_validator("time_partition_columns", mode="before")
    @classmethod
    def validate_time_partition_columns(cls, v: Any) -> list[str]:
        if not v:
            return []
        if isinstance(v, str):
            v = v.split(",")
        return [str(col).strip().lower() for col in v]

    @model_validator(mode="after")
    def validate_time_columns_are_partitions(self):
        names = {col.name for col in self.partition_columns}
        unknown = [col for col in self.time_partition_columns if col not in names]
        if unknown:
            raise ValueError(
                f"Time partition columns {unknown} are not partition columns"
            )
        return self


class StoragePartitionDesc(BaseModel):
    """Description of a partition to be added to a storage table."""

    model_config = ConfigDict(extra="forbid")

    cube_table_name: str
    update_period: UpdatePeriod
    time_part_spec: dict[str, datetime] = Field(..., min_length=1)
    non_time_part_spec: dict[str, str] = Field(default_factory=dict)
    location: str | None = None
    parameters: dict[str, str] = Field(default_factory=dict)

    @field_validator("time_part_spec", "non_time_part_spec", mode="before")
    @classmethod
    def lowercase_columns(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {str(key).lower(): value for key, value in v.items()}
        return v

    @field_validator("time_part_spec")
    @classmethod
    def timestamps_in_utc(cls, v: dict[str, datetime]) -> dict[str, datetime]:
        return {column: naive_utc(timestamp) for column, timestamp in v.items()}

    @field_validator("update_period", mode="before")
    @classmethod
    def validate_update_period(cls, v: Any) -> Any:
        if isinstance(v, str) and not isinstance(v, UpdatePeriod):
            return UpdatePeriod.from_name(v)
        return v

    def time_partition_spec(self) -> dict[str, str]:
        """Time partition values formatted with the update period"""
        return {
            column: self.update_period.format_time(timestamp)
            for column, timestamp in self.time_part_spec.items()
        }

    def full_partition_spec(self) -> dict[str, str]:
        spec = dict(self.non_time_part_spec)
        spec.update(self.time_partition_spec())
        return spec


class Storage(MetadataObject):
    """Named storage. Physical table names on the storage are the entity
    names prefixed with `prefix`."""

    @field_validator("name")
    @classmethod
    def lowercase_name(cls, v: str) -> str:
        return v.lower()

    @property
    def prefix(self) -> str:
        return storage_prefix(self.name)

    def storage_table_name(self, entity_name: str) -> str:
        return storage_table_name(entity_name, self.prefix)

    def get_storage_table(
        self, parent: CatalogTable, descriptor: StorageTableDescriptor
    ) -> CatalogTable:
        """Physical storage table of the fact or dimension row `parent`,
        laid out as `descriptor` describes."""
        column_names = {col.name for col in parent.columns}
        clashing = [col.name for col in descriptor.partition_columns if col.name in column_names]
        if clashing:
            raise ArgumentError(
                f"Partition columns {clashing} of storage '{self.name}' clash "
                f"with columns of table '{parent.name}'"
            )

        parameters = dict(descriptor.table_parameters)
        if descriptor.time_partition_columns:
            parameters[TIME_PART_COLUMNS_KEY] = ",".join(descriptor.time_partition_columns)

        return CatalogTable(
            name=self.storage_table_name(parent.name),
            kind=TableKind.EXTERNAL if descriptor.external else TableKind.MANAGED,
            columns=[col.model_copy() for col in parent.columns],
            partition_columns=[col.model_copy() for col in descriptor.partition_columns],
            parameters=parameters,
            location=descriptor.location,
            input_format=descriptor.input_format,
            output_format=descriptor.output_format,
            serde=descriptor.serde,
            serde_parameters=dict(descriptor.serde_parameters),
        )

    def add_partition(
        self,
        store: CatalogStore,
        partition_desc: StoragePartitionDesc,
        latest_info: LatestPartitionInfo | None,
    ) -> Partition:
        """
        Write the partition described by `partition_desc` into its storage
        table. Columns in `latest_info` get their marker partition replaced
        in the same store call.

        Returns:
            The written partition
        """
        table_name = self.storage_table_name(partition_desc.cube_table_name)
        spec = partition_desc.full_partition_spec()
        partition = Partition(
            table_name=table_name,
            spec=spec,
            parameters=dict(partition_desc.parameters),
            location=partition_desc.location,
        )

        markers = []
        stale_specs = []
        for column, info in (latest_info.latest_parts.items() if latest_info else ()):
            stale_specs.extend(
                old.spec
                for old in store.get_partitions_by_filter(table_name, latest_part_filter(column))
            )
            markers.append(
                Partition(
                    table_name=table_name,
                    spec=latest_part_spec(spec, column),
                    parameters=dict(info.parameters),
                    location=partition_desc.location,
                )
            )

        store.add_partitions(table_name, [partition, *markers], drop_specs=stale_specs)
        get_logger().debug(
            f"added partition {partition.key} to '{table_name}' "
            f"(latest markers: {', '.join(latest_info.latest_parts) if latest_info else 'none'})"
        )
        return partition
