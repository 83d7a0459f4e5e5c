"""Aggregation strategies applied to row partitions."""

from typing import Any, Mapping, Protocol, Sequence


class Aggregator(Protocol):
    """Collapses a partition of rows into one value for a field."""

    name: str

    def __call__(self, field_id: str, rows: Sequence[Mapping[str, Any]]) -> Any:
        ...


class Count:
    """
    Count aggregate.

    By default counts every row in the partition. With ``skip_nulls`` it
    counts only rows holding a value for the field.
    """

    name = "count"

    def __init__(self, skip_nulls: bool = False):
        self.skip_nulls = skip_nulls

    def __call__(self, field_id: str, rows: Sequence[Mapping[str, Any]]) -> int:
        if not self.skip_nulls:
            return len(rows)
        return sum(1 for row in rows if row.get(field_id) is not None)

    def __repr__(self) -> str:
        return f"Count(skip_nulls={self.skip_nulls})"
