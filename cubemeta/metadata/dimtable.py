"""Dimension tables, optionally dumped periodically per storage."""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import Field, ValidationError, field_validator

from ..common import join_list, split_list
from ..errors import ArgumentError, MalformedMetadataError
from .base import AbstractCubeTable, CubeTableType
from .dimensions import TableReference, reference_map_adapter
from .periods import UpdatePeriod

__all__ = ["DimensionTable"]


def storages_key(name: str) -> str:
    return f"cube.dimensiontable.{name.lower()}.storages"


def dump_period_key(name: str, storage: str) -> str:
    return f"cube.dimensiontable.{name.lower()}.{storage.lower()}.dumpperiod"


def references_key(name: str) -> str:
    return f"cube.dimensiontable.{name.lower()}.references"


def weight_key(name: str) -> str:
    return f"cube.dimensiontable.{name.lower()}.weight"


class DimensionTable(AbstractCubeTable):
    """
    Table holding the data of a dimension.

    `snapshot_dump_periods` maps every storage the dimension is available on
    to the period of its full dumps there, or to ``None`` when the storage
    holds the dimension without snapshots. `dimension_references` maps
    columns to the columns of other tables they refer to.
    """

    table_type: ClassVar[CubeTableType] = CubeTableType.DIMENSION
    property_prefix: ClassVar[str] = "cube.dimensiontable.{name}."

    dimension_references: dict[str, list[TableReference]] = Field(default_factory=dict)
    snapshot_dump_periods: dict[str, UpdatePeriod | None] = Field(default_factory=dict)

    @field_validator("dimension_references", mode="before")
    @classmethod
    def validate_references(cls, v: Any) -> dict[str, list[Any]]:
        if not v:
            return {}
        result = {}
        for column, refs in v.items():
            if isinstance(refs, (str, TableReference)):
                refs = [refs]
            result[column.lower()] = list(refs)
        return result

    @field_validator("snapshot_dump_periods", mode="before")
    @classmethod
    def validate_dump_periods(cls, v: Any) -> dict[str, UpdatePeriod | None]:
        if not v:
            return {}
        if isinstance(v, (set, frozenset, list, tuple)):
            # Storages without dumps
            return {storage.lower(): None for storage in v}
        return {
            storage.lower(): (
                UpdatePeriod.from_name(period)
                if period is not None and not isinstance(period, UpdatePeriod)
                else period
            )
            for storage, period in v.items()
        }

    @property
    def storages(self) -> set[str]:
        return set(self.snapshot_dump_periods)

    @property
    def has_snapshots(self) -> bool:
        return any(period is not None for period in self.snapshot_dump_periods.values())

    def dump_period(self, storage: str) -> UpdatePeriod | None:
        try:
            return self.snapshot_dump_periods[storage.lower()]
        except KeyError:
            raise ArgumentError(
                f"Dimension table '{self.name}' is not available on storage '{storage}'"
            ) from None

    def alter_snapshot_dump_period(self, storage: str, period: UpdatePeriod | None) -> None:
        """Track `storage` with dump `period`, replacing the period of an
        already tracked storage."""
        periods = dict(self.snapshot_dump_periods)
        periods[storage.lower()] = period
        self.snapshot_dump_periods = periods

    def drop_storage(self, storage: str) -> None:
        periods = dict(self.snapshot_dump_periods)
        if storage.lower() not in periods:
            raise ArgumentError(f"Dimension table '{self.name}' has no storage '{storage}'")
        del periods[storage.lower()]
        self.snapshot_dump_periods = periods

    def alter_reference(self, column: str, references: list[TableReference]) -> None:
        refs = dict(self.dimension_references)
        refs[column.lower()] = list(references)
        self.dimension_references = refs

    def remove_reference(self, column: str) -> None:
        refs = dict(self.dimension_references)
        if refs.pop(column.lower(), None) is None:
            raise ArgumentError(
                f"Dimension table '{self.name}' has no reference on column '{column}'"
            )
        self.dimension_references = refs

    def alter_weight(self, weight: float) -> None:
        self.weight = weight

    def metadata_properties(self) -> dict[str, str]:
        props = {
            storages_key(self.name): join_list(self.snapshot_dump_periods),
            weight_key(self.name): str(self.weight),
        }
        if self.dimension_references:
            props[references_key(self.name)] = reference_map_adapter.dump_json(
                self.dimension_references
            ).decode()
        for storage, period in self.snapshot_dump_periods.items():
            if period is not None:
                props[dump_period_key(self.name, storage)] = period.value
        return props

    @classmethod
    def metadata_from_properties(cls, name: str, properties: dict[str, str]) -> dict[str, Any]:
        dump_periods = {
            storage: properties.get(dump_period_key(name, storage))
            for storage in split_list(properties.get(storages_key(name)))
        }
        result: dict[str, Any] = {"snapshot_dump_periods": dump_periods}

        key = references_key(name)
        if key in properties:
            try:
                result["dimension_references"] = reference_map_adapter.validate_json(
                    properties[key]
                )
            except ValidationError as e:
                raise MalformedMetadataError(
                    f"Property '{key}' of dimension table '{name}' can not be parsed: {e}",
                    name=name,
                    key=key,
                ) from e

        if weight_key(name) in properties:
            result["weight"] = properties[weight_key(name)]
        return result
