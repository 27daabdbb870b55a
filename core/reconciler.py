"""
core/reconciler.py
------------------
Reconciliation engine: applies user edit intents to table mappings.

Design Decisions:
    * Each edit runs against a private copy of the table; the copy replaces
      the live mapping only after every primitive and the invariant checks
      succeeded, so an edit never partially applies.
    * Edits on the same table are serialised by a per-table lock. Different
      tables are edited independently.
    * Failures are reported as data (:class:`EditResult`), like the lossy
      conversion warnings of a migration plan; the caller decides how to
      present them.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Union

from config import CONFIG
from core.column_store import ColumnMappingStore
from core.errors import (
    LengthTruncatedWarning,
    MappingError,
    MappingFrozenError,
    NoPrimaryKeyError,
    PendingIndexColumnError,
    UnknownTableError,
    ValidationError,
)
from core.index_store import IndexMappingStore
from core.type_length_policy import DEFAULT_POLICY, TypeLengthPolicy
from logger import get_logger
from models.mapping import AddColumnContext, TableMapping

log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Edit intents
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RenameColumn:
    sp_id: str
    new_name: str


@dataclass(frozen=True)
class RetypeColumn:
    sp_id: str
    new_type: str


@dataclass(frozen=True)
class SetPrimaryKey:
    sp_id: str
    is_pk: bool


@dataclass(frozen=True)
class SetNotNull:
    sp_id: str
    flag: bool


@dataclass(frozen=True)
class SetMaxLength:
    sp_id: str
    length: Any


@dataclass(frozen=True)
class ReorderColumns:
    sp_ids: tuple[str, ...]


@dataclass(frozen=True)
class AddColumn:
    context: AddColumnContext
    sp_col_name: str
    sp_data_type: str
    sp_is_pk: bool = False
    sp_is_not_null: bool = False
    sp_col_max_length: Any = None


@dataclass(frozen=True)
class RemoveColumn:
    sp_id: str


@dataclass(frozen=True)
class AddIndexColumn:
    index_name: str
    sp_col_id: str
    desc: bool = False


@dataclass(frozen=True)
class RemoveIndexColumn:
    index_name: str
    sp_col_id: str | None = None
    src_col_id: str | None = None


@dataclass(frozen=True)
class ReorderIndex:
    index_name: str
    sp_col_ids: tuple[str, ...]


@dataclass(frozen=True)
class SetIndexDescending:
    index_name: str
    sp_col_id: str
    desc: bool


@dataclass(frozen=True)
class DropIndex:
    index_name: str


EditIntent = Union[
    RenameColumn, RetypeColumn, SetPrimaryKey, SetNotNull, SetMaxLength,
    ReorderColumns, AddColumn, RemoveColumn, AddIndexColumn, RemoveIndexColumn,
    ReorderIndex, SetIndexDescending, DropIndex,
]


@dataclass
class EditResult:
    """Outcome of one edit: the new snapshot, or the reason it was rejected."""
    table_id: str
    table: TableMapping | None = None
    warnings: list[LengthTruncatedWarning] = field(default_factory=list)
    error: MappingError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class ReconciliationEngine:
    """
    Holds the live table mappings and routes edits to the stores.

    Args:
        policy:                      Length policy used by retype/add.
        pending_index_blocks_commit: Whether an index entry still waiting
                                     for its target column blocks commit.
                                     Defaults to the configured value.

    Example::

        engine = ReconciliationEngine()
        engine.load(TableMapping.from_dict(payload))
        result = engine.apply("t1", RenameColumn("c2", "customer_name"))
        if not result.ok:
            show_error(result.error)
    """

    def __init__(
        self,
        policy: TypeLengthPolicy | None = None,
        pending_index_blocks_commit: bool | None = None,
    ) -> None:
        self._policy = policy or DEFAULT_POLICY
        if pending_index_blocks_commit is None:
            pending_index_blocks_commit = CONFIG.mapping.pending_index_blocks_commit
        self._pending_blocks_commit = pending_index_blocks_commit
        self._tables: dict[str, TableMapping] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self, table: TableMapping) -> TableMapping:
        """
        Accept a proposed mapping, replacing any earlier one for the table.

        Raises:
            ValidationError: The proposal violates a mapping invariant.
        """
        candidate = table.copy()
        ColumnMappingStore(candidate, self._policy).check_invariants()
        IndexMappingStore(candidate).check_invariants()
        with self._lock_for(candidate.table_id):
            replaced = candidate.table_id in self._tables
            self._tables[candidate.table_id] = candidate
        log.info(
            "%s mapping for table '%s' (%d column(s), %d index(es)).",
            "Replaced" if replaced else "Loaded",
            candidate.table_id, len(candidate.columns), len(candidate.indexes),
        )
        return candidate.copy()

    def load_payload(self, payload: dict[str, Any]) -> TableMapping:
        try:
            table = TableMapping.from_dict(payload)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        return self.load(table)

    def discard(self, table_id: str) -> bool:
        with self._registry_lock:
            lock = self._locks.get(table_id)
        if lock is None:
            return False
        with lock:
            removed = self._tables.pop(table_id, None) is not None
            with self._registry_lock:
                self._locks.pop(table_id, None)
        if removed:
            log.info("Discarded mapping for table '%s'.", table_id)
        return removed

    def table_ids(self) -> list[str]:
        return sorted(self._tables)

    def snapshot(self, table_id: str) -> TableMapping:
        with self._lock_for(table_id):
            return self._get(table_id).copy()

    def export(self, table_id: str) -> dict[str, Any]:
        """Payload handed to the DDL-generation consumer."""
        return self.snapshot(table_id).to_dict()

    def freeze(self, table_id: str) -> None:
        with self._lock_for(table_id):
            self._get(table_id).frozen = True
        log.info("Froze mapping for table '%s'.", table_id)

    def thaw(self, table_id: str) -> None:
        with self._lock_for(table_id):
            self._get(table_id).frozen = False
        log.info("Thawed mapping for table '%s'.", table_id)

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def apply(self, table_id: str, intent: EditIntent) -> EditResult:
        """
        Apply one edit intent to a table mapping.

        Returns:
            :class:`EditResult` with the updated snapshot and any warnings,
            or with ``error`` set and the live mapping unchanged.
        """
        try:
            with self._lock_for(table_id):
                live = self._get(table_id)
                if live.frozen:
                    raise MappingFrozenError(
                        f"Mapping for table '{table_id}' is committed for migration."
                    )
                working = live.copy()
                warnings = self._dispatch(working, intent)
                ColumnMappingStore(working, self._policy).check_invariants()
                IndexMappingStore(working).check_invariants()
                self._tables[table_id] = working
                snapshot = working.copy()
        except MappingError as exc:
            log.info("Rejected %s on table '%s': %s", type(intent).__name__, table_id, exc)
            return EditResult(table_id=table_id, error=exc)

        log.debug("Applied %s on table '%s'.", type(intent).__name__, table_id)
        return EditResult(table_id=table_id, table=snapshot, warnings=warnings)

    def check_ready_for_commit(self, table_id: str) -> None:
        """
        Raises:
            NoPrimaryKeyError: The table has no target primary key.
            PendingIndexColumnError: An index entry is unconfirmed and the
                                     pending-index policy blocks commit.
        """
        table = self.snapshot(table_id)
        columns = ColumnMappingStore(table, self._policy)
        if not columns.primary_keys():
            raise NoPrimaryKeyError(f"Table '{table_id}' has no primary key.")
        pending = IndexMappingStore(table).pending_entries()
        if pending and self._pending_blocks_commit:
            raise PendingIndexColumnError(
                f"Table '{table_id}' has unconfirmed index columns in: "
                f"{', '.join(sorted(pending))}."
            )
        if pending:
            log.warning("Table '%s' commits with pending index entries in %s.",
                        table_id, sorted(pending))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _dispatch(self, table: TableMapping, intent: EditIntent) -> list[LengthTruncatedWarning]:
        columns = ColumnMappingStore(table, self._policy)
        indexes = IndexMappingStore(table)
        warning = None

        if isinstance(intent, RenameColumn):
            columns.rename(intent.sp_id, intent.new_name)
            indexes.sync_column_name(intent.sp_id, intent.new_name)
        elif isinstance(intent, RetypeColumn):
            warning = columns.retype(intent.sp_id, intent.new_type)
        elif isinstance(intent, SetPrimaryKey):
            columns.set_primary_key(intent.sp_id, intent.is_pk)
        elif isinstance(intent, SetNotNull):
            columns.set_not_null(intent.sp_id, intent.flag)
        elif isinstance(intent, SetMaxLength):
            columns.set_max_length(intent.sp_id, intent.length)
        elif isinstance(intent, ReorderColumns):
            columns.reorder(list(intent.sp_ids))
        elif isinstance(intent, AddColumn):
            _, warning = columns.add_column(
                intent.context,
                intent.sp_col_name,
                intent.sp_data_type,
                sp_is_pk=intent.sp_is_pk,
                sp_is_not_null=intent.sp_is_not_null,
                sp_col_max_length=intent.sp_col_max_length,
            )
        elif isinstance(intent, RemoveColumn):
            columns.remove_column(intent.sp_id)
        elif isinstance(intent, AddIndexColumn):
            indexes.add_index_column(intent.index_name, intent.sp_col_id, intent.desc)
        elif isinstance(intent, RemoveIndexColumn):
            if intent.sp_col_id is None and intent.src_col_id is None:
                raise ValidationError("RemoveIndexColumn needs sp_col_id or src_col_id.")
            indexes.remove_index_column(intent.index_name, intent.sp_col_id, intent.src_col_id)
        elif isinstance(intent, ReorderIndex):
            indexes.reorder_index(intent.index_name, list(intent.sp_col_ids))
        elif isinstance(intent, SetIndexDescending):
            indexes.set_descending(intent.index_name, intent.sp_col_id, intent.desc)
        elif isinstance(intent, DropIndex):
            indexes.drop_index(intent.index_name)
        else:
            raise ValidationError(f"Unknown edit intent: {intent!r}")

        return [warning] if warning else []

    def _get(self, table_id: str) -> TableMapping:
        try:
            return self._tables[table_id]
        except KeyError:
            raise UnknownTableError(f"No mapping loaded for table '{table_id}'.") from None

    def _lock_for(self, table_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(table_id)
            if lock is None:
                lock = self._locks[table_id] = threading.Lock()
            return lock
