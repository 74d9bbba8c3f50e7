"""Storages, storage table naming and latest partition markers."""

from .latest import (
    LatestPartColumnInfo,
    LatestPartitionInfo,
    compute_latest_info,
    marker_timestamp,
    time_part_columns,
)
from .naming import (
    LATEST_PARTITION_VALUE,
    TIME_PART_COLUMNS_KEY,
    latest_part_filter,
    latest_part_spec,
    latest_part_timestamp_key,
    latest_part_update_period_key,
    storage_prefix,
    storage_table_name,
)
from .storage import Storage, StoragePartitionDesc, StorageTableDescriptor

__all__ = [
    "LatestPartColumnInfo",
    "LatestPartitionInfo",
    "compute_latest_info",
    "marker_timestamp",
    "time_part_columns",
    "LATEST_PARTITION_VALUE",
    "TIME_PART_COLUMNS_KEY",
    "latest_part_filter",
    "latest_part_spec",
    "latest_part_timestamp_key",
    "latest_part_update_period_key",
    "storage_prefix",
    "storage_table_name",
    "Storage",
    "StoragePartitionDesc",
    "StorageTableDescriptor",
]
