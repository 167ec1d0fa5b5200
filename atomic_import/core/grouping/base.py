"""
Row grouping: fold flat rows into one Group per business key.

Each grouper declares how every header field aggregates across rows.
Subclasses supply the key, the header values of a row and the per-row
child handling.
"""

import math
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from atomic_import.core.models import Group, SourceRow

# Prefix for rows whose key normalizes to nothing; each gets its own group.
EMPTY_KEY_PREFIX = "__row_"


class AggregationRule(str, Enum):
    """How a header field combines across the rows of one group."""

    SET_ONCE = "set_once"              # first non-empty value is kept
    LAST_NON_EMPTY = "last_non_empty"  # later non-empty values overwrite
    SUM = "sum"                        # numeric accumulator


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def clean_text(value: Any) -> str | None:
    if is_empty(value):
        return None
    return str(value).strip()


def parse_int(value: Any) -> int | None:
    """
    Parse an integer cell. Whole-number floats ("2.0") are accepted.

    Returns None for empty or unparseable values.
    """
    if is_empty(value):
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    if math.isfinite(number) and number.is_integer():
        return int(number)
    return None


def parse_float(value: Any) -> float | None:
    """
    Parse a decimal cell.

    Returns None for empty values and NaN for unparseable ones, so a bad
    value still overwrites earlier rows and fails numeric validation.
    """
    if is_empty(value):
        return None
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, int | float):
        return float(value)
    try:
        return float(str(value).strip().replace(",", ""))
    except ValueError:
        return math.nan


class RowGrouper(ABC):
    """
    Partition rows into groups by normalized business key.

    Iteration order of the returned mapping is first-seen order.
    """

    entity_kind: str = ""
    header_rules: dict[str, AggregationRule] = {}

    def group(self, rows: Iterable[Mapping[str, Any] | SourceRow]) -> dict[str, Group]:
        """
        Group rows by business key.

        Args:
            rows: Raw row mappings (numbered from 1 in input order) or
                  pre-numbered SourceRow objects

        Returns:
            Ordered mapping of business key to Group
        """
        groups: dict[str, Group] = {}

        for index, raw in enumerate(rows, start=1):
            row = raw if isinstance(raw, SourceRow) else SourceRow(row_number=index, data=dict(raw))

            key = self.business_key(row)
            if not key:
                key = f"{EMPTY_KEY_PREFIX}{row.row_number}"

            group = groups.get(key)
            if group is None:
                group = Group(
                    entity_kind=self.entity_kind,
                    business_key=key,
                    header={field: None for field in self.header_rules},
                )
                groups[key] = group

            group.source_rows.append(row)
            self.fold_header(group, self.header_values(row))
            self.fold_row(group, row)

        return groups

    def fold_header(self, group: Group, values: Mapping[str, Any]) -> None:
        """Apply each field's aggregation rule to one row's header values."""
        for field, value in values.items():
            rule = self.header_rules.get(field, AggregationRule.LAST_NON_EMPTY)
            current = group.header.get(field)

            if rule == AggregationRule.SET_ONCE:
                if is_empty(current) and not is_empty(value):
                    group.header[field] = value
            elif rule == AggregationRule.LAST_NON_EMPTY:
                if not is_empty(value):
                    group.header[field] = value
            elif rule == AggregationRule.SUM:
                if value is not None:
                    group.header[field] = (current or 0) + value

    @abstractmethod
    def business_key(self, row: SourceRow) -> str:
        """Normalized key of the entity this row belongs to ("" if none)."""

    @abstractmethod
    def header_values(self, row: SourceRow) -> dict[str, Any]:
        """Parsed header field values contributed by one row."""

    def fold_row(self, group: Group, row: SourceRow) -> None:
        """Hook for child lines and per-row warnings. No-op by default."""
