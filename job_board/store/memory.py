"""In-process record store.

Used for local development when no hosted store is configured, and by the test
suite. It mimics the parts of PostgREST behaviour the service relies on:
generated ids and timestamps, `created_at`/`updated_at` bookkeeping, single-row
updates, nulls-last ordering and upsert on a conflict column.
"""

from __future__ import annotations

import copy
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..errors import NO_ROWS_CODE
from .base import Filter, RecordStore, Row, StoreError


RpcHandler = Callable[[Dict[str, Any]], Any]


class InMemoryRecordStore(RecordStore):
    """Dict-of-lists store. Rows are deep-copied in and out."""

    def __init__(self, tables: Optional[Dict[str, List[Row]]] = None) -> None:
        self._tables: Dict[str, List[Row]] = {
            name: [copy.deepcopy(r) for r in rows] for name, rows in (tables or {}).items()
        }
        self._functions: Dict[str, RpcHandler] = {}

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def rows(self, table: str) -> List[Row]:
        """Snapshot of a table, for inspection in tests and scripts."""
        return [copy.deepcopy(r) for r in self._tables.get(table, [])]

    def register_function(self, name: str, handler: RpcHandler) -> None:
        self._functions[name] = handler

    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        matched = [r for r in self._tables.get(table, []) if all(f.matches(r) for f in filters)]

        if order_by:
            present = [r for r in matched if r.get(order_by) is not None]
            missing = [r for r in matched if r.get(order_by) is None]
            present.sort(key=lambda r: r[order_by], reverse=descending)
            matched = present + missing

        if limit is not None:
            matched = matched[: max(limit, 0)]
        return [copy.deepcopy(r) for r in matched]

    def insert(self, table: str, record: Row) -> Row:
        now = self._now()
        row = copy.deepcopy(record)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", now)
        row.setdefault("updated_at", now)
        if table.endswith("notifications"):
            row.setdefault("status", "unread")
            row.setdefault("read_at", None)
        self._tables.setdefault(table, []).append(row)
        return copy.deepcopy(row)

    def update(self, table: str, filters: Sequence[Filter], patch: Row) -> Row:
        matched = [r for r in self._tables.get(table, []) if all(f.matches(r) for f in filters)]
        if len(matched) != 1:
            raise StoreError(
                f"JSON object requested, multiple (or no) rows returned ({len(matched)} rows)",
                code=NO_ROWS_CODE,
            )
        row = matched[0]
        row.update(copy.deepcopy(patch))
        row["updated_at"] = self._now()
        return copy.deepcopy(row)

    def upsert(self, table: str, records: List[Row], on_conflict: str) -> List[Row]:
        out: List[Row] = []
        existing = self._tables.setdefault(table, [])
        for record in records:
            key = record.get(on_conflict)
            current = next((r for r in existing if r.get(on_conflict) == key), None)
            if current is None:
                out.append(self.insert(table, record))
            else:
                current.update(copy.deepcopy(record))
                current["updated_at"] = self._now()
                out.append(copy.deepcopy(current))
        return out

    def rpc(self, name: str, params: Optional[Dict[str, Any]] = None) -> Any:
        handler = self._functions.get(name)
        if handler is None:
            raise StoreError(f"Could not find the function public.{name}", code="PGRST202")
        return handler(params or {})
