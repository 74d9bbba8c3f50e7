"""
Partition filter expressions.

Filters are conjunctions of comparisons between a partition column and a
quoted literal, for example ``ds='latest' and region<>'eu'``. Supported
operators are ``=``, ``!=`` and ``<>``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass

from ..errors import ArgumentError

__all__ = ["Comparison", "parse_filter", "matches_filter"]

AND_SEPARATOR = re.compile(r"\s+and\s+", re.IGNORECASE)
COMPARISON = re.compile(
    r"^\s*(?P<column>[A-Za-z_][\w.]*)\s*(?P<op>=|!=|<>)\s*'(?P<value>(?:[^']|'')*)'\s*$"
)


@dataclass(frozen=True, slots=True)
class Comparison:
    """Single ``column <op> 'value'`` term of a filter."""

    column: str
    value: str
    negated: bool = False

    def matches(self, spec: Mapping[str, str]) -> bool:
        if self.column not in spec:
            return False
        equal = spec[self.column] == self.value
        return not equal if self.negated else equal


def parse_filter(filter: str) -> list[Comparison]:
    """
    Parse filter expression into a list of comparisons, all of which must
    hold for a partition to match.

    Raises:
        ArgumentError: If the filter is empty or a term can not be parsed
    """
    if not filter or not filter.strip():
        raise ArgumentError("Partition filter should not be empty")

    terms = []
    for term in AND_SEPARATOR.split(filter.strip()):
        match = COMPARISON.match(term)
        if not match:
            raise ArgumentError(f"Invalid partition filter term '{term}' in '{filter}'")
        terms.append(
            Comparison(
                column=match.group("column").lower(),
                value=match.group("value").replace("''", "'"),
                negated=match.group("op") != "=",
            )
        )
    return terms


def matches_filter(spec: Mapping[str, str], terms: list[Comparison]) -> bool:
    """True when partition `spec` satisfies every term."""
    return all(term.matches(spec) for term in terms)
