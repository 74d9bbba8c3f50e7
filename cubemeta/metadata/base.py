"""
Base classes of the cube metadata model.

Cubes, fact tables and dimension tables are all persisted as generic catalog
rows. `AbstractCubeTable` holds what they have in common (name, columns,
properties, weight) and the conversion to and from `CatalogTable` rows;
`classify_table` tags a fetched row once with its `CubeTableType`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..catalog.base import CatalogTable, Column
from ..errors import ArgumentError, MalformedMetadataError, WrongEntityTypeError

__all__ = [
    "MetadataObject",
    "Column",
    "CubeTableType",
    "ClassifiedTable",
    "classify_table",
    "AbstractCubeTable",
    "TABLE_TYPE_KEY",
]

TABLE_TYPE_KEY = "cube.table.type"


class MetadataObject(BaseModel):
    """
    Base class for all metastore metadata objects.

    Uses Pydantic for validation, serialization, and type safety.
    """

    model_config = ConfigDict(
        # Validate assignments for type safety
        validate_assignment=True,
        # Reject unknown fields, persisted metadata is read back strictly
        extra="forbid",
        # Populate by field name
        populate_by_name=True,
    )

    name: str = Field(..., description="Unique identifier")
    description: str | None = Field(None, description="Detailed description")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate that name is a non-empty string."""
        if not isinstance(v, str) or not v.strip():
            raise ValueError("name must be a non-empty string")
        return v

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"

    def to_dict(self, **options: Any) -> dict[str, Any]:
        """Convert to dictionary representation using Pydantic's model_dump."""
        return self.model_dump(exclude_none=True, **options)

    def __hash__(self) -> int:
        return hash((self.__class__.__name__, self.name))


class CubeTableType(str, Enum):
    """Classification of a catalog row by its ``cube.table.type`` property."""

    CUBE = "CUBE"
    FACT = "FACT"
    DIMENSION = "DIMENSION"
    OTHER = "OTHER"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class ClassifiedTable:
    """Catalog row fetched from the store together with its classification.

    The classification is computed once when the row is fetched and is not
    re-derived from the row's properties afterwards.
    """

    table: CatalogTable
    table_type: CubeTableType

    @property
    def name(self) -> str:
        return self.table.name


def classify_table(table: CatalogTable) -> ClassifiedTable:
    """Tag a catalog row with its `CubeTableType`. Rows without the type
    property, or with an unknown value, are `CubeTableType.OTHER`."""
    value = table.parameters.get(TABLE_TYPE_KEY)
    try:
        table_type = CubeTableType(value.upper()) if value else CubeTableType.OTHER
    except ValueError:
        table_type = CubeTableType.OTHER
    return ClassifiedTable(table=table, table_type=table_type)


class AbstractCubeTable(MetadataObject):
    """Common base of cubes, fact tables and dimension tables.

    `properties` are user properties persisted with the catalog row. The
    metadata specific to the concrete class is rendered on top of them by
    `persisted_properties()` and read back by `from_catalog_table()`.
    """

    table_type: ClassVar[CubeTableType]
    # Prefix of the property keys owned by the concrete class, formatted
    # with the table name
    property_prefix: ClassVar[str]

    columns: list[Column] = Field(default_factory=list)
    properties: dict[str, str] = Field(default_factory=dict)
    weight: float = 0.0

    @field_validator("name")
    @classmethod
    def lowercase_name(cls, v: str) -> str:
        return v.lower()

    @field_validator("columns", mode="before")
    @classmethod
    def validate_columns(cls, v: Any) -> list[Column]:
        """Accept Column objects, dictionaries and ``(name, type)`` pairs."""
        if not v:
            return []

        result = []
        for col in v:
            if isinstance(col, Column):
                result.append(col)
            elif isinstance(col, dict):
                result.append(Column.model_validate(col))
            elif isinstance(col, (tuple, list)) and len(col) in (2, 3):
                comment = col[2] if len(col) > 2 else None
                result.append(Column(name=col[0], type=col[1], comment=comment))
            else:
                raise ValueError(f"Invalid column specification: {col!r}")

        names = [col.name for col in result]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate columns: {', '.join(duplicates)}")
        return result

    # ========================================
    # Columns
    # ========================================

    @property
    def column_names(self) -> list[str]:
        return [col.name for col in self.columns]

    def column(self, name: str) -> Column | None:
        name = name.lower()
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def add_column(self, column: Column) -> None:
        """Add a new column or replace the column of the same name."""
        self.alter_column(column)

    def alter_column(self, column: Column) -> None:
        columns = list(self.columns)
        for i, col in enumerate(columns):
            if col.name == column.name:
                columns[i] = column
                break
        else:
            columns.append(column)
        self.columns = columns

    def remove_column(self, name: str) -> None:
        if self.column(name) is None:
            raise ArgumentError(f"Table '{self.name}' has no column '{name}'")
        self.columns = [col for col in self.columns if col.name != name.lower()]

    # ========================================
    # Persistence
    # ========================================

    @property
    def owned_prefix(self) -> str:
        return self.property_prefix.format(name=self.name)

    def owns_property(self, key: str) -> bool:
        """True for property keys rendered by `persisted_properties()`. Such
        keys are replaced, not merged, when the catalog row is altered."""
        return key == TABLE_TYPE_KEY or key.startswith(self.owned_prefix)

    def metadata_properties(self) -> dict[str, str]:
        """Properties describing the concrete class' metadata."""
        return {}

    def persisted_properties(self) -> dict[str, str]:
        """All properties stored with the catalog row."""
        props = {
            key: value
            for key, value in self.properties.items()
            if not self.owns_property(key)
        }
        props[TABLE_TYPE_KEY] = self.table_type.value
        props.update(self.metadata_properties())
        return props

    def to_catalog_table(self) -> CatalogTable:
        """Catalog row representing this table."""
        return CatalogTable(
            name=self.name,
            columns=[col.model_copy() for col in self.columns],
            parameters=self.persisted_properties(),
        )

    @classmethod
    def metadata_from_properties(cls, name: str, properties: dict[str, str]) -> dict[str, Any]:
        """Constructor arguments parsed from persisted properties. Raises
        `MalformedMetadataError` when required properties are missing."""
        return {}

    @classmethod
    def from_catalog_table(cls, table: CatalogTable | ClassifiedTable):
        """Create table object from a catalog row.

        Raises:
            WrongEntityTypeError: If the row is not of this class' type
            MalformedMetadataError: If required properties are missing or
                can not be parsed
        """
        if not isinstance(table, ClassifiedTable):
            table = classify_table(table)

        if table.table_type is not cls.table_type:
            raise WrongEntityTypeError(
                f"Table '{table.name}' is not a {cls.table_type.value.lower()} "
                f"table (classified as {table.table_type.value.lower()})",
                name=table.name,
                expected=cls.table_type.value,
                actual=table.table_type.value,
            )

        row = table.table
        prefix = cls.property_prefix.format(name=row.name)
        user_properties = {
            key: value
            for key, value in row.parameters.items()
            if key != TABLE_TYPE_KEY and not key.startswith(prefix)
        }
        try:
            args = cls.metadata_from_properties(row.name, row.parameters)
            return cls(
                name=row.name,
                columns=[col.model_copy() for col in row.columns],
                properties=user_properties,
                **args,
            )
        except ValueError as e:
            raise MalformedMetadataError(
                f"Invalid metadata of table '{row.name}': {e}", name=row.name
            ) from e
