"""
Cube dimensions and references between tables.

Cube dimensions only describe the schema of a cube; their data lives in
dimension tables. The variants are told apart by a ``kind`` discriminator.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_serializer, model_validator

from ..errors import ArgumentError
from .base import MetadataObject

__all__ = [
    "TableReference",
    "CubeDimension",
    "BaseDimension",
    "ReferencedDimension",
    "HierarchicalDimension",
    "InlineDimension",
    "AnyDimension",
    "dimension_list_adapter",
    "reference_map_adapter",
]


class TableReference(BaseModel):
    """Reference to a column of another table, ``dest_table.dest_column``."""

    model_config = ConfigDict(frozen=True)

    dest_table: str = Field(..., min_length=1)
    dest_column: str = Field(..., min_length=1)

    @model_validator(mode="before")
    @classmethod
    def parse_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return cls.parse_reference(data)
        return data

    @field_validator("dest_table", "dest_column")
    @classmethod
    def lowercase(cls, v: str) -> str:
        return v.lower()

    @staticmethod
    def parse_reference(reference: str) -> dict[str, str]:
        table, sep, column = reference.strip().rpartition(".")
        if not sep or not table or not column:
            raise ValueError(
                f"Invalid table reference '{reference}', expected 'table.column'"
            )
        return {"dest_table": table, "dest_column": column}

    @classmethod
    def from_string(cls, reference: str) -> TableReference:
        try:
            return cls(**cls.parse_reference(reference))
        except ValueError as e:
            raise ArgumentError(str(e)) from e

    @model_serializer
    def serialize(self) -> str:
        return str(self)

    def __str__(self) -> str:
        return f"{self.dest_table}.{self.dest_column}"


class CubeDimension(MetadataObject):
    """Common fields of cube dimensions."""

    @field_validator("name")
    @classmethod
    def lowercase_name(cls, v: str) -> str:
        return v.lower()


class BaseDimension(CubeDimension):
    """Dimension stored as a plain column of the fact table."""

    kind: Literal["base"] = "base"
    type: str = "string"


class ReferencedDimension(BaseDimension):
    """Dimension column referencing one or more dimension tables."""

    kind: Literal["referenced"] = "referenced"
    references: list[TableReference] = Field(..., min_length=1)

    @field_validator("references", mode="before")
    @classmethod
    def validate_references(cls, v: Any) -> list[Any]:
        if isinstance(v, (str, TableReference)):
            return [v]
        return v


class InlineDimension(BaseDimension):
    """Dimension with a fixed, enumerated set of values."""

    kind: Literal["inline"] = "inline"
    values: list[str] = Field(..., min_length=1)


LevelDimension = Annotated[BaseDimension | ReferencedDimension, Field(discriminator="kind")]


class HierarchicalDimension(CubeDimension):
    """Ordered hierarchy of dimensions, coarsest first."""

    kind: Literal["hierarchical"] = "hierarchical"
    hierarchy: list[LevelDimension] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_levels(self):
        names = [level.name for level in self.hierarchy]
        if len(names) != len(set(names)):
            raise ValueError(f"Hierarchy '{self.name}' has duplicate level names")
        return self

    @property
    def level_names(self) -> list[str]:
        return [level.name for level in self.hierarchy]


AnyDimension = Annotated[
    BaseDimension | ReferencedDimension | InlineDimension | HierarchicalDimension,
    Field(discriminator="kind"),
]

dimension_list_adapter = TypeAdapter(list[AnyDimension])

reference_map_adapter = TypeAdapter(dict[str, list[TableReference]])
