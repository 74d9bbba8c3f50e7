"""
Cube: schema-only definition of measures and dimensions.

A cube has no physical storage of its own. It is persisted as a catalog row
whose properties hold the JSON serialized measure and dimension lists; fact
tables refer to it by name.
"""

from __future__ import annotations

import difflib
from typing import Any, ClassVar

from pydantic import Field, PrivateAttr, ValidationError, field_validator, model_validator

from ..common import required_property
from ..errors import ArgumentError, MalformedMetadataError, NotFoundError
from .base import AbstractCubeTable, CubeTableType
from .dimensions import AnyDimension, CubeDimension, dimension_list_adapter
from .measures import AnyMeasure, CubeMeasure, measure_list_adapter

__all__ = ["Cube", "measures_key", "dimensions_key"]


def measures_key(name: str) -> str:
    return f"cube.{name.lower()}.measures"


def dimensions_key(name: str) -> str:
    return f"cube.{name.lower()}.dimensions"


def _suggestion(name: str, available: list[str]) -> str:
    matches = difflib.get_close_matches(name, available, n=1)
    return f" Did you mean '{matches[0]}'?" if matches else ""


class Cube(AbstractCubeTable):
    """
    Cube definition: the measures that can be aggregated and the dimensions
    they can be sliced by.

    Measure and dimension names are unique within a cube. Lookups are
    case-insensitive.
    """

    table_type: ClassVar[CubeTableType] = CubeTableType.CUBE
    property_prefix: ClassVar[str] = "cube.{name}."

    measures: list[AnyMeasure] = Field(default_factory=list)
    dimensions: list[AnyDimension] = Field(default_factory=list)

    # Private dictionary storage for efficient lookups
    _measures: dict[str, CubeMeasure] = PrivateAttr(default_factory=dict)
    _dimensions: dict[str, CubeDimension] = PrivateAttr(default_factory=dict)

    @field_validator("measures", "dimensions", mode="before")
    @classmethod
    def accept_sets(cls, v: Any) -> Any:
        if isinstance(v, (set, frozenset, tuple)):
            return sorted(v, key=lambda obj: obj.name)
        return v

    @model_validator(mode="after")
    def index_measures_and_dimensions(self) -> Cube:
        """Populate lookup dictionaries and reject duplicate names"""
        self._measures.clear()
        self._dimensions.clear()

        for measure in self.measures:
            if measure.name in self._measures:
                raise ValueError(f"Duplicate measure '{measure.name}' in cube '{self.name}'")
            self._measures[measure.name] = measure

        for dim in self.dimensions:
            if dim.name in self._dimensions:
                raise ValueError(f"Duplicate dimension '{dim.name}' in cube '{self.name}'")
            self._dimensions[dim.name] = dim

        return self

    # ========================================
    # Lookups
    # ========================================

    @property
    def measure_names(self) -> list[str]:
        return list(self._measures)

    @property
    def dimension_names(self) -> list[str]:
        return list(self._dimensions)

    @property
    def all_field_names(self) -> set[str]:
        """Names of all measures and dimensions, including the levels of
        hierarchical dimensions"""
        names = set(self._measures) | set(self._dimensions)
        for dim in self.dimensions:
            names.update(getattr(dim, "level_names", []))
        return names

    def has_measure(self, name: str) -> bool:
        return name.lower() in self._measures

    def has_dimension(self, name: str) -> bool:
        return name.lower() in self._dimensions

    def measure(self, name: str) -> CubeMeasure:
        """
        Get measure by name.

        Raises:
            NotFoundError: If measure not found
        """
        try:
            return self._measures[name.lower()]
        except KeyError:
            raise NotFoundError(
                f"Cube '{self.name}' has no measure '{name}'."
                f"{_suggestion(name.lower(), self.measure_names)}",
                name=name,
                kind="measure",
            ) from None

    def dimension(self, name: str) -> CubeDimension:
        """
        Get dimension by name.

        Raises:
            NotFoundError: If dimension not found
        """
        try:
            return self._dimensions[name.lower()]
        except KeyError:
            raise NotFoundError(
                f"Cube '{self.name}' has no dimension '{name}'."
                f"{_suggestion(name.lower(), self.dimension_names)}",
                name=name,
                kind="dimension",
            ) from None

    # ========================================
    # Modification
    # ========================================

    def add_measure(self, measure: CubeMeasure) -> None:
        """Add a measure or replace the measure of the same name."""
        self.measures = [m for m in self.measures if m.name != measure.name] + [measure]

    def remove_measure(self, name: str) -> None:
        if not self.has_measure(name):
            raise ArgumentError(f"Cube '{self.name}' has no measure '{name}'")
        self.measures = [m for m in self.measures if m.name != name.lower()]

    def add_dimension(self, dimension: CubeDimension) -> None:
        """Add a dimension or replace the dimension of the same name."""
        self.dimensions = [
            d for d in self.dimensions if d.name != dimension.name
        ] + [dimension]

    def remove_dimension(self, name: str) -> None:
        if not self.has_dimension(name):
            raise ArgumentError(f"Cube '{self.name}' has no dimension '{name}'")
        self.dimensions = [d for d in self.dimensions if d.name != name.lower()]

    # ========================================
    # Persistence
    # ========================================

    def metadata_properties(self) -> dict[str, str]:
        return {
            measures_key(self.name): measure_list_adapter.dump_json(self.measures).decode(),
            dimensions_key(self.name): dimension_list_adapter.dump_json(
                self.dimensions
            ).decode(),
        }

    @classmethod
    def metadata_from_properties(cls, name: str, properties: dict[str, str]) -> dict[str, Any]:
        result = {}
        for field, key, adapter in (
            ("measures", measures_key(name), measure_list_adapter),
            ("dimensions", dimensions_key(name), dimension_list_adapter),
        ):
            value = required_property(properties, key, name)
            try:
                result[field] = adapter.validate_json(value)
            except ValidationError as e:
                raise MalformedMetadataError(
                    f"Property '{key}' of cube '{name}' can not be parsed: {e}",
                    name=name,
                    key=key,
                ) from e
        return result
