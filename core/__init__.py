"""core/__init__.py"""
from core.column_store import ColumnMappingStore
from core.errors import (
    AlreadyInProgressError,
    LengthTruncatedWarning,
    MappingError,
    MappingFrozenError,
    MigrationStateError,
    ValidationError,
)
from core.index_store import IndexMappingStore
from core.reconciler import EditResult, ReconciliationEngine
from core.type_length_policy import LengthBound, TypeLengthPolicy, max_length_for

__all__ = [
    "ColumnMappingStore",
    "IndexMappingStore",
    "ReconciliationEngine",
    "EditResult",
    "LengthBound",
    "TypeLengthPolicy",
    "max_length_for",
    "MappingError",
    "ValidationError",
    "MappingFrozenError",
    "MigrationStateError",
    "AlreadyInProgressError",
    "LengthTruncatedWarning",
]
