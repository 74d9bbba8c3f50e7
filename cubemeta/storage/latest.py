"""
Latest partition markers.

Every time partition column of a storage table keeps a marker pointing at
the chronologically newest partition written for that column. The marker is
a partition of its own whose value for the column is ``latest`` and whose
parameters hold the timestamp and the update period of the newest data.

When a partition is added, the column's marker advances only if the new
partition's timestamp is not older than the stored one. Partitions may be
added out of order (backfills), so the comparison is on the timestamps and
never on the order of writes. Equal timestamps re-mark the column with the
new write.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from ..catalog.base import CatalogTable, Partition
from ..common import split_list
from ..errors import ArgumentError, PartitionMarkerCorruptError
from ..logging import get_logger
from ..metadata.periods import UpdatePeriod, naive_utc
from .naming import (
    TIME_PART_COLUMNS_KEY,
    latest_part_timestamp_key,
    latest_part_update_period_key,
)

__all__ = [
    "LatestPartColumnInfo",
    "LatestPartitionInfo",
    "time_part_columns",
    "marker_timestamp",
    "compute_latest_info",
]

LatestPartLookup = Callable[[str], Partition | None]


@dataclass(frozen=True, slots=True)
class LatestPartColumnInfo:
    """Parameters to stamp on the marker partition of a column."""

    parameters: dict[str, str]

    @classmethod
    def for_timestamp(
        cls, column: str, timestamp: datetime, update_period: UpdatePeriod
    ) -> LatestPartColumnInfo:
        return cls(
            parameters={
                latest_part_timestamp_key(column): update_period.format_time(timestamp),
                latest_part_update_period_key(column): update_period.value,
            }
        )


@dataclass(slots=True)
class LatestPartitionInfo:
    """Columns whose latest marker advances with a newly written partition."""

    latest_parts: dict[str, LatestPartColumnInfo] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.latest_parts)

    def __contains__(self, column: str) -> bool:
        return column in self.latest_parts


def time_part_columns(table: CatalogTable) -> list[str] | None:
    """Time partition columns declared on storage `table`, or ``None`` when
    the table does not declare any."""
    value = table.parameters.get(TIME_PART_COLUMNS_KEY)
    if value is None:
        return None
    return [col.lower() for col in split_list(value)]


def marker_timestamp(partition: Partition, column: str) -> datetime:
    """
    Timestamp stored in the latest marker partition of `column`, parsed with
    the update period recorded next to it.

    Raises:
        PartitionMarkerCorruptError: If the timestamp or the update period is
            missing or can not be parsed
    """
    value = partition.parameters.get(latest_part_timestamp_key(column))
    period_name = partition.parameters.get(latest_part_update_period_key(column))

    try:
        if value is None or period_name is None:
            raise ValueError("timestamp or update period is missing")
        period = UpdatePeriod.from_name(period_name)
        return period.parse_time(value)
    except ValueError as e:
        raise PartitionMarkerCorruptError(
            f"Latest partition marker of column '{column}' in table "
            f"'{partition.table_name}' is corrupt: {e}",
            table=partition.table_name,
            column=column,
            value=value,
            update_period=period_name,
        ) from e


def compute_latest_info(
    table: CatalogTable,
    partition_timestamps: Mapping[str, datetime],
    update_period: UpdatePeriod,
    lookup: LatestPartLookup,
) -> LatestPartitionInfo | None:
    """
    Decide which latest markers of storage `table` advance with a partition
    having `partition_timestamps`, written at `update_period`.

    Args:
        table: Storage table the partition is added to
        partition_timestamps: Timestamp of the new partition per time
            partition column
        update_period: Update period of the new partition
        lookup: Returns the current marker partition of a column, or
            ``None`` when the column has no marker yet

    Returns:
        Marker parameters of the columns that advance, or ``None`` when the
        table declares no time partition columns

    Raises:
        ArgumentError: If a declared time partition column has no timestamp
        PartitionMarkerCorruptError: If a stored marker can not be parsed
    """
    columns = time_part_columns(table)
    if columns is None:
        return None

    timestamps = {col.lower(): naive_utc(ts) for col, ts in partition_timestamps.items()}
    logger = get_logger()
    latest = LatestPartitionInfo()

    for column in columns:
        try:
            timestamp = timestamps[column]
        except KeyError:
            raise ArgumentError(
                f"Partition of table '{table.name}' has no timestamp for "
                f"time partition column '{column}'"
            ) from None

        marker = lookup(column)
        if marker is not None and marker_timestamp(marker, column) > timestamp:
            logger.debug(
                f"partition {column}={timestamp} of '{table.name}' is older "
                f"than the latest marker, marker is kept"
            )
            continue

        latest.latest_parts[column] = LatestPartColumnInfo.for_timestamp(
            column, timestamp, update_period
        )

    return latest
