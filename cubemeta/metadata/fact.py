"""Fact tables: cube data materialized per storage and update period."""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import Field, field_validator

from ..common import join_list, required_property, split_list
from ..errors import ArgumentError, MalformedMetadataError
from .base import AbstractCubeTable, CubeTableType
from .periods import UpdatePeriod

__all__ = ["FactTable"]


def cube_names_key(name: str) -> str:
    return f"cube.fact.{name.lower()}.cubenames"


def storages_key(name: str) -> str:
    return f"cube.fact.{name.lower()}.storages"


def update_periods_key(name: str, storage: str) -> str:
    return f"cube.fact.{name.lower()}.{storage.lower()}.updateperiods"


def weight_key(name: str) -> str:
    return f"cube.fact.{name.lower()}.weight"


class FactTable(AbstractCubeTable):
    """
    Fact table of one or more cubes.

    `storage_update_periods` maps every storage the fact is materialized on
    to the update periods populated there. The keys of the map are exactly
    the storages that have a physical storage table.
    """

    table_type: ClassVar[CubeTableType] = CubeTableType.FACT
    property_prefix: ClassVar[str] = "cube.fact.{name}."

    cube_names: set[str] = Field(..., min_length=1)
    storage_update_periods: dict[str, set[UpdatePeriod]] = Field(default_factory=dict)

    @field_validator("cube_names", mode="before")
    @classmethod
    def validate_cube_names(cls, v: Any) -> set[str]:
        if isinstance(v, str):
            v = [v]
        return {str(name).lower() for name in v}

    @field_validator("storage_update_periods", mode="before")
    @classmethod
    def validate_storage_update_periods(cls, v: Any) -> dict[str, set[UpdatePeriod]]:
        if not v:
            return {}
        result = {}
        for storage, periods in v.items():
            if isinstance(periods, (str, UpdatePeriod)):
                periods = [periods]
            result[storage.lower()] = {
                p if isinstance(p, UpdatePeriod) else UpdatePeriod.from_name(p)
                for p in periods
            }
        return result

    @property
    def storages(self) -> set[str]:
        return set(self.storage_update_periods)

    def update_periods(self, storage: str) -> set[UpdatePeriod]:
        try:
            return set(self.storage_update_periods[storage.lower()])
        except KeyError:
            raise ArgumentError(
                f"Fact '{self.name}' is not available on storage '{storage}'"
            ) from None

    def add_storage(self, storage: str, update_periods) -> None:
        """Track `storage` with its update periods. Update periods of an
        already tracked storage are replaced."""
        periods = dict(self.storage_update_periods)
        periods[storage.lower()] = set(update_periods)
        self.storage_update_periods = periods

    def drop_storage(self, storage: str) -> None:
        periods = dict(self.storage_update_periods)
        if periods.pop(storage.lower(), None) is None:
            raise ArgumentError(f"Fact '{self.name}' has no storage '{storage}'")
        self.storage_update_periods = periods

    def add_update_period(self, storage: str, period: UpdatePeriod) -> None:
        self.add_storage(storage, self.update_periods(storage) | {period})

    def remove_update_period(self, storage: str, period: UpdatePeriod) -> None:
        periods = self.update_periods(storage)
        periods.discard(period)
        if not periods:
            raise ArgumentError(
                f"Can not remove the last update period of storage '{storage}' "
                f"from fact '{self.name}', drop the storage instead"
            )
        self.add_storage(storage, periods)

    def alter_weight(self, weight: float) -> None:
        self.weight = weight

    def metadata_properties(self) -> dict[str, str]:
        props = {
            cube_names_key(self.name): join_list(self.cube_names),
            storages_key(self.name): join_list(self.storage_update_periods),
            weight_key(self.name): str(self.weight),
        }
        for storage, periods in self.storage_update_periods.items():
            props[update_periods_key(self.name, storage)] = join_list(
                p.value for p in periods
            )
        return props

    @classmethod
    def metadata_from_properties(cls, name: str, properties: dict[str, str]) -> dict[str, Any]:
        cube_names = split_list(required_property(properties, cube_names_key(name), name))
        if not cube_names:
            raise MalformedMetadataError(
                f"Fact '{name}' does not belong to any cube",
                name=name,
                key=cube_names_key(name),
            )

        storage_periods = {}
        for storage in split_list(properties.get(storages_key(name))):
            key = update_periods_key(name, storage)
            storage_periods[storage] = split_list(required_property(properties, key, name))

        result: dict[str, Any] = {
            "cube_names": cube_names,
            "storage_update_periods": storage_periods,
        }
        if weight_key(name) in properties:
            result["weight"] = properties[weight_key(name)]
        return result
