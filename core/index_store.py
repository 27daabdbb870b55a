"""
core/index_store.py
-------------------
Index definitions of one table, keyed by index name and ``sp_order``.

Index entries reference target columns by ``sp_col_id``; every reference is
checked against the table's column mappings when it is created.
"""
from __future__ import annotations

from core.errors import (
    DuplicateIndexColumnError,
    OrderMismatchError,
    UnknownColumnError,
    UnknownIndexError,
)
from logger import get_logger
from models.mapping import IndexMapping, TableMapping

log = get_logger(__name__)

_FIRST_INDEX_ORDER = 1


class IndexMappingStore:
    """Index registry of a single :class:`TableMapping`."""

    def __init__(self, table: TableMapping) -> None:
        self._table = table

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def names(self) -> list[str]:
        return sorted(self._table.indexes)

    def list(self, index_name: str) -> list[IndexMapping]:
        """Confirmed entries in ``sp_order``, followed by pending entries."""
        entries = self._entries(index_name)
        confirmed = sorted((e for e in entries if not e.is_pending), key=lambda e: e.sp_order)
        return confirmed + [e for e in entries if e.is_pending]

    def get(self, index_name: str, sp_order: int) -> IndexMapping:
        for entry in self._entries(index_name):
            if entry.sp_order == sp_order:
                return entry
        raise UnknownColumnError(f"Index '{index_name}' has no entry at position {sp_order}.")

    def references(self, sp_col_id: str) -> list[str]:
        """Names of the indexes that reference *sp_col_id*."""
        return sorted(
            name for name, entries in self._table.indexes.items()
            if any(e.sp_col_id == sp_col_id for e in entries)
        )

    def pending_entries(self) -> dict[str, list[IndexMapping]]:
        result = {}
        for name, entries in self._table.indexes.items():
            pending = [e for e in entries if e.is_pending]
            if pending:
                result[name] = pending
        return result

    def check_invariants(self) -> None:
        """
        Raises:
            UnknownColumnError: An entry references a missing target column.
            OrderMismatchError: Duplicate ``sp_order`` inside one index.
            DuplicateIndexColumnError: A column appears twice in one index.
        """
        for name, entries in self._table.indexes.items():
            orders: set[int] = set()
            cols: set[str] = set()
            for entry in entries:
                if entry.is_pending:
                    continue
                if self._table.find_column(entry.sp_col_id) is None:
                    raise UnknownColumnError(
                        f"Index '{name}' references unknown column '{entry.sp_col_id}'."
                    )
                if entry.sp_order is None or entry.sp_order in orders:
                    raise OrderMismatchError(
                        f"Index '{name}' has a missing or duplicate spOrder {entry.sp_order}."
                    )
                if entry.sp_col_id in cols:
                    raise DuplicateIndexColumnError(
                        f"Column '{entry.sp_col_id}' appears twice in index '{name}'."
                    )
                orders.add(entry.sp_order)
                cols.add(entry.sp_col_id)

    # ------------------------------------------------------------------
    # Mutation helpers
    # ------------------------------------------------------------------

    def add_index_column(self, index_name: str, sp_col_id: str, desc: bool = False) -> IndexMapping:
        """
        Append *sp_col_id* to *index_name*, creating the index if needed.

        Raises:
            UnknownColumnError: The column is not mapped on the target.
            DuplicateIndexColumnError: The column is already in the index.
        """
        col = self._table.find_column(sp_col_id)
        if col is None:
            raise UnknownColumnError(
                f"Column '{sp_col_id}' does not exist in table '{self._table.table_id}'."
            )
        entries = self._table.indexes.get(index_name, [])
        if any(e.sp_col_id == sp_col_id for e in entries):
            raise DuplicateIndexColumnError(
                f"Column '{sp_col_id}' is already part of index '{index_name}'."
            )
        orders = [e.sp_order for e in entries if e.sp_order is not None]
        entry = IndexMapping(
            src_col_id=col.src_id,
            sp_col_id=sp_col_id,
            src_col_name=col.src_col_name,
            sp_col_name=col.sp_col_name,
            sp_desc=desc,
            sp_order=(max(orders) + 1) if orders else _FIRST_INDEX_ORDER,
        )
        self._table.indexes.setdefault(index_name, []).append(entry)
        log.debug("Index %s: added %s at %d", index_name, sp_col_id, entry.sp_order)
        return entry

    def remove_index_column(
        self,
        index_name: str,
        sp_col_id: str | None = None,
        src_col_id: str | None = None,
    ) -> None:
        """
        Remove one entry from an index, by target column id or, for a
        pending entry, by source column id. Remaining positions are
        re-densified; an index left empty is dropped.
        """
        entries = self._entries(index_name)
        if sp_col_id is not None:
            match = [e for e in entries if e.sp_col_id == sp_col_id]
        elif src_col_id is not None:
            match = [e for e in entries if e.is_pending and e.src_col_id == src_col_id]
        else:
            raise ValueError("Either sp_col_id or src_col_id is required.")
        if not match:
            raise UnknownColumnError(
                f"Index '{index_name}' has no entry for column '{sp_col_id or src_col_id}'."
            )

        target = match[0]
        confirmed = [e for e in self.list(index_name) if not e.is_pending and e is not target]
        base = min((e.sp_order for e in entries if e.sp_order is not None),
                   default=_FIRST_INDEX_ORDER)
        entries.remove(target)
        for offset, entry in enumerate(confirmed):
            entry.sp_order = base + offset
        if not entries:
            del self._table.indexes[index_name]

    def reorder_index(self, index_name: str, sp_col_ids: list[str]) -> None:
        """
        Raises:
            OrderMismatchError: *sp_col_ids* is not a permutation of the
                                index's confirmed columns.
        """
        confirmed = [e for e in self.list(index_name) if not e.is_pending]
        current_ids = [e.sp_col_id for e in confirmed]
        if len(sp_col_ids) != len(current_ids) or set(sp_col_ids) != set(current_ids):
            raise OrderMismatchError(
                f"Requested order {sp_col_ids} is not a permutation of {current_ids}."
            )
        base = confirmed[0].sp_order if confirmed else _FIRST_INDEX_ORDER
        by_id = {e.sp_col_id: e for e in confirmed}
        for offset, col_id in enumerate(sp_col_ids):
            by_id[col_id].sp_order = base + offset

    def set_descending(self, index_name: str, sp_col_id: str, desc: bool) -> None:
        for entry in self._entries(index_name):
            if entry.sp_col_id == sp_col_id:
                entry.sp_desc = desc
                return
        raise UnknownColumnError(f"Index '{index_name}' has no entry for column '{sp_col_id}'.")

    def drop_index(self, index_name: str) -> None:
        self._entries(index_name)
        del self._table.indexes[index_name]

    def sync_column_name(self, sp_col_id: str, sp_col_name: str) -> None:
        """Keep the denormalised ``sp_col_name`` of index entries current."""
        for entries in self._table.indexes.values():
            for entry in entries:
                if entry.sp_col_id == sp_col_id:
                    entry.sp_col_name = sp_col_name

    def _entries(self, index_name: str) -> list[IndexMapping]:
        try:
            return self._table.indexes[index_name]
        except KeyError:
            raise UnknownIndexError(
                f"Table '{self._table.table_id}' has no index '{index_name}'."
            ) from None
