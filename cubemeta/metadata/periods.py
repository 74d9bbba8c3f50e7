"""Update periods: time granularities of partitions and dimension dumps."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum

__all__ = ["UpdatePeriod", "naive_utc"]

_QUARTER_PATTERN = re.compile(r"^(?P<year>\d{4})-Q(?P<quarter>[1-4])$")

_TIME_FORMATS = {
    "SECONDLY": "%Y-%m-%d-%H-%M-%S",
    "MINUTELY": "%Y-%m-%d-%H-%M",
    "HOURLY": "%Y-%m-%d-%H",
    "DAILY": "%Y-%m-%d",
    "WEEKLY": "%G-W%V",
    "MONTHLY": "%Y-%m",
    "QUARTERLY": "%Y-Q{quarter}",
    "YEARLY": "%Y",
}


def naive_utc(timestamp: datetime) -> datetime:
    """Timezone aware `timestamp` converted to naive UTC. Naive timestamps
    are returned as they are."""
    if timestamp.tzinfo is None or timestamp.utcoffset() is None:
        return timestamp
    return timestamp.astimezone(timezone.utc).replace(tzinfo=None)


class UpdatePeriod(str, Enum):
    """Granularity at which partitions of a storage table are written.

    Every period has a canonical timestamp format used both to render
    partition values and to read back stored latest partition markers.
    """

    SECONDLY = "SECONDLY"
    MINUTELY = "MINUTELY"
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_name(cls, name: str) -> UpdatePeriod:
        """Period by case-insensitive name. Raises `ValueError` for unknown
        names."""
        try:
            return cls(str(name).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown update period '{name}'") from None

    @property
    def time_format(self) -> str:
        return _TIME_FORMATS[self.value]

    def format_time(self, timestamp: datetime) -> str:
        """Render `timestamp` as a partition value of this period."""
        timestamp = naive_utc(timestamp)
        if self is UpdatePeriod.QUARTERLY:
            quarter = (timestamp.month - 1) // 3 + 1
            return timestamp.strftime(self.time_format.format(quarter=quarter))
        return timestamp.strftime(self.time_format)

    def parse_time(self, value: str) -> datetime:
        """Parse a partition value of this period into the timestamp of the
        beginning of the period. Raises `ValueError` when `value` does not
        match the period format."""
        if self is UpdatePeriod.QUARTERLY:
            match = _QUARTER_PATTERN.match(value or "")
            if not match:
                raise ValueError(f"'{value}' does not match quarterly format")
            month = (int(match.group("quarter")) - 1) * 3 + 1
            return datetime(int(match.group("year")), month, 1)

        if self is UpdatePeriod.WEEKLY:
            return datetime.strptime(f"{value}-1", f"{self.time_format}-%u")

        return datetime.strptime(value, self.time_format)
