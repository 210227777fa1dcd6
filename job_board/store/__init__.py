"""Record store backends."""

from .base import Filter, MalformedRowError, RecordStore, Row, StoreError, eq, eq_or_null, in_, is_null
from .memory import InMemoryRecordStore
from .postgrest import PostgrestRecordStore

__all__ = [
    "Filter",
    "InMemoryRecordStore",
    "MalformedRowError",
    "PostgrestRecordStore",
    "RecordStore",
    "Row",
    "StoreError",
    "eq",
    "eq_or_null",
    "in_",
    "is_null",
]
