"""Base classes for record store backends.

The job board owns no database. Everything is persisted in an external,
PostgREST-style row store; this module defines the small contract the service
layer needs from it. Backends raise `StoreError` for every failure so callers
have a single exception to handle at their operation boundary.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Literal, Optional, Sequence

from ..errors import ServiceError


Row = Dict[str, Any]
FilterOp = Literal["eq", "in", "is"]


class StoreError(ServiceError):
    """The record store rejected a read or write."""


class MalformedRowError(StoreError):
    """A stored row could not be parsed into a model."""


@dataclass(frozen=True)
class Filter:
    """A single column predicate.

    `eq` compares for equality, `in` tests membership in a sequence, and `is`
    only supports `None` (SQL `IS NULL`).
    """

    column: str
    op: FilterOp
    value: Any

    def matches(self, row: Row) -> bool:
        current = row.get(self.column)
        if self.op == "eq":
            return current is not None and current == self.value
        if self.op == "in":
            return current in tuple(self.value)
        if self.op == "is":
            return current is None if self.value is None else current is self.value
        raise ValueError(f"Unsupported filter op: {self.op}")


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, "in", tuple(values))


def is_null(column: str) -> Filter:
    return Filter(column, "is", None)


def eq_or_null(column: str, value: Any) -> Filter:
    """`eq` for a value, `is null` for None (SQL null semantics)."""
    return is_null(column) if value is None else eq(column, value)


class RecordStore(ABC):
    """Abstract row store used by every service in the package."""

    @abstractmethod
    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        """Return rows matching all filters."""
        raise NotImplementedError

    def select_one(self, table: str, filters: Sequence[Filter] = ()) -> Optional[Row]:
        """Return the first matching row, or None."""
        rows = self.select(table, filters, limit=1)
        return rows[0] if rows else None

    @abstractmethod
    def insert(self, table: str, record: Row) -> Row:
        """Insert one row and return it as stored."""
        raise NotImplementedError

    @abstractmethod
    def update(self, table: str, filters: Sequence[Filter], patch: Row) -> Row:
        """Patch exactly one matching row and return it; raise if none matched."""
        raise NotImplementedError

    @abstractmethod
    def upsert(self, table: str, records: List[Row], on_conflict: str) -> List[Row]:
        """Insert rows, merging into existing ones that share `on_conflict`."""
        raise NotImplementedError

    @abstractmethod
    def rpc(self, name: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Call a stored function and return its result."""
        raise NotImplementedError
