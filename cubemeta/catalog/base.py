"""
Generic catalog rows and the catalog store interface.

The metastore keeps all of its state in a tabular catalog: every cube, fact
and dimension is a `CatalogTable` row whose `parameters` hold the persisted
metadata, and every storage table is a partitioned `CatalogTable` of its own.
The catalog engine itself is external; `CatalogStore` lists the operations
the metastore consumes from it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from enum import Enum
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = [
    "Column",
    "TableKind",
    "CatalogTable",
    "Partition",
    "CatalogStore",
    "spec_key",
]


class Column(BaseModel):
    """Column of a catalog table."""

    model_config = ConfigDict(validate_assignment=True)

    name: str = Field(..., min_length=1)
    type: str = "string"
    comment: str | None = None

    @field_validator("name")
    @classmethod
    def lowercase_name(cls, v: str) -> str:
        return v.lower()

    def __str__(self) -> str:
        return f"{self.name} {self.type}"


class TableKind(str, Enum):
    """Physical kind of a catalog table."""

    MANAGED = "MANAGED_TABLE"
    EXTERNAL = "EXTERNAL_TABLE"


class CatalogTable(BaseModel):
    """A catalog row: table name, columns, partition columns, parameters and
    the physical storage description."""

    model_config = ConfigDict(validate_assignment=True)

    name: str = Field(..., min_length=1)
    kind: TableKind = TableKind.MANAGED
    columns: list[Column] = Field(default_factory=list)
    partition_columns: list[Column] = Field(default_factory=list)
    parameters: dict[str, str] = Field(default_factory=dict)

    location: str | None = None
    input_format: str | None = None
    output_format: str | None = None
    serde: str | None = None
    serde_parameters: dict[str, str] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def lowercase_name(cls, v: str) -> str:
        return v.lower()

    @property
    def partition_column_names(self) -> list[str]:
        return [col.name for col in self.partition_columns]


def spec_key(spec: Mapping[str, str]) -> str:
    """Canonical string form of a partition spec, independent of key order.
    Column names and values are percent escaped, so `=` and `/` inside a
    value do not clash with the separators."""
    return "/".join(
        f"{quote(key, safe='')}={quote(spec[key], safe='')}" for key in sorted(spec)
    )


class Partition(BaseModel):
    """Partition of a storage table."""

    model_config = ConfigDict(validate_assignment=True)

    table_name: str
    spec: dict[str, str]
    parameters: dict[str, str] = Field(default_factory=dict)
    location: str | None = None

    @property
    def key(self) -> str:
        return spec_key(self.spec)

    @property
    def values(self) -> list[str]:
        return [self.spec[key] for key in sorted(self.spec)]


class CatalogStore(ABC):
    """Interface to the catalog engine that persists tables and partitions.

    Implementations report absence by returning ``None`` from the getters and
    raise `StoreError` (or any other exception) on failure. The metastore
    client wraps every failure in `CatalogOperationError`. Table names are
    passed lowercase.
    """

    @abstractmethod
    def get_table(self, name: str) -> CatalogTable | None:
        """Return table `name` or ``None`` when it does not exist."""

    @abstractmethod
    def create_table(self, table: CatalogTable) -> None:
        """Create a new table. Fails when the table already exists."""

    @abstractmethod
    def alter_table(self, name: str, table: CatalogTable) -> None:
        """Replace definition of an existing table `name` with `table`."""

    @abstractmethod
    def drop_table(self, name: str) -> None:
        """Drop table `name` together with its partitions."""

    @abstractmethod
    def get_all_tables(self) -> list[str]:
        """Names of all tables in the catalog."""

    @abstractmethod
    def get_partition(
        self, table: str, spec: Mapping[str, str], exact: bool = True
    ) -> Partition | None:
        """Return partition of `table` with `spec`. With `exact` set to
        false, `spec` may name only a subset of the partition columns and the
        first matching partition is returned."""

    @abstractmethod
    def get_partitions_by_filter(self, table: str, filter: str) -> list[Partition]:
        """Partitions of `table` matching the filter expression."""

    @abstractmethod
    def get_num_partitions_by_filter(self, table: str, filter: str) -> int:
        """Number of partitions of `table` matching the filter expression."""

    @abstractmethod
    def add_partitions(
        self,
        table: str,
        partitions: Iterable[Partition],
        drop_specs: Iterable[Mapping[str, str]] = (),
    ) -> None:
        """Atomically drop partitions with `drop_specs` and add (or replace)
        `partitions` of `table`."""
