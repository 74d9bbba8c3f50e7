"""
Cube measures.

A measure is either a plain fact column (`ColumnMeasure`) or an arithmetic
expression over fact columns (`ExprMeasure`). Both are serialized with a
``kind`` discriminator so a cube's measure list round-trips through JSON.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from expressions import inspect_variables
from pydantic import Field, TypeAdapter, field_validator, model_validator

from .base import MetadataObject

__all__ = ["CubeMeasure", "ColumnMeasure", "ExprMeasure", "AnyMeasure", "measure_list_adapter"]


class CubeMeasure(MetadataObject):
    """Common fields of cube measures."""

    type: str = Field("double", description="Catalog type of the measure values")
    comment: str | None = None
    format: str | None = Field(None, description="Display format")
    aggregate: str | None = Field(None, description="Default aggregate function")
    unit: str | None = None
    start_time: datetime | None = Field(None, description="Measure available since")
    end_time: datetime | None = Field(None, description="Measure available until")
    cost: float | None = None

    @field_validator("name")
    @classmethod
    def lowercase_name(cls, v: str) -> str:
        return v.lower()

    @model_validator(mode="after")
    def validate_time_range(self):
        if self.start_time and self.end_time and self.start_time > self.end_time:
            raise ValueError(
                f"Measure '{self.name}' has start time after its end time"
            )
        return self


class ColumnMeasure(CubeMeasure):
    """Measure backed by a fact column of the same name."""

    kind: Literal["column"] = "column"


class ExprMeasure(CubeMeasure):
    """Measure computed from an arithmetic expression."""

    kind: Literal["expression"] = "expression"
    expr: str = Field(..., min_length=1, description="Arithmetic expression")

    @field_validator("expr")
    @classmethod
    def validate_expression(cls, v: str) -> str:
        """Validate that expression syntax is parseable."""
        try:
            inspect_variables(v)
        except Exception as e:
            raise ValueError(f"Invalid expression syntax: {e}")
        return v

    @property
    def dependencies(self) -> set[str]:
        """Set of columns the expression refers to"""
        return set(inspect_variables(self.expr))


AnyMeasure = Annotated[ColumnMeasure | ExprMeasure, Field(discriminator="kind")]

measure_list_adapter = TypeAdapter(list[AnyMeasure])
