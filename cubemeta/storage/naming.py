"""
Names derived from entities and storages.

Storage table names and the property keys of latest partition markers are
read back from persisted catalog metadata, so everything here is a pure
function of its arguments and must not change between releases.
"""

from __future__ import annotations

__all__ = [
    "STORAGE_SEPARATOR",
    "TIME_PART_COLUMNS_KEY",
    "LATEST_PARTITION_VALUE",
    "storage_prefix",
    "storage_table_name",
    "latest_part_timestamp_key",
    "latest_part_update_period_key",
    "latest_part_filter",
    "latest_part_spec",
]

STORAGE_SEPARATOR = "_"

# Storage table property listing its time partition columns, comma separated
TIME_PART_COLUMNS_KEY = "cube.storagetable.time.partcols"

STORAGE_TABLE_PREFIX = "cube.storagetable."
LATEST_PART_TIMESTAMP_SUFFIX = ".latest.part.timestamp"
LATEST_PART_UPDATE_PERIOD_SUFFIX = ".latest.part.updateperiod"

# Partition value of a time column in the partition holding its latest marker
LATEST_PARTITION_VALUE = "latest"


def storage_prefix(storage_name: str) -> str:
    """Prefix of physical table names on storage `storage_name`."""
    return f"{storage_name}{STORAGE_SEPARATOR}"


def storage_table_name(entity_name: str, prefix: str) -> str:
    """Name of the physical storage table of `entity_name` on the storage
    with `prefix`."""
    return f"{prefix}{entity_name}".lower()


def latest_part_timestamp_key(column: str) -> str:
    """Partition parameter holding the formatted timestamp of the latest
    partition of time partition `column`."""
    return f"{STORAGE_TABLE_PREFIX}{column.lower()}{LATEST_PART_TIMESTAMP_SUFFIX}"


def latest_part_update_period_key(column: str) -> str:
    """Partition parameter holding the name of the update period the latest
    marker timestamp of `column` is formatted with."""
    return f"{STORAGE_TABLE_PREFIX}{column.lower()}{LATEST_PART_UPDATE_PERIOD_SUFFIX}"


def latest_part_filter(column: str) -> str:
    """Partition filter matching the latest marker partition of `column`."""
    return f"{column.lower()}='{LATEST_PARTITION_VALUE}'"


def latest_part_spec(spec: dict[str, str], column: str) -> dict[str, str]:
    """Spec of the marker partition of `column` derived from the full spec
    of a newly written partition."""
    latest = dict(spec)
    latest[column.lower()] = LATEST_PARTITION_VALUE
    return latest
