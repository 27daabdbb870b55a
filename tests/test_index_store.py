"""
tests/test_index_store.py
-------------------------
Unit tests for core/index_store.py.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import pytest

from core.errors import (
    DuplicateIndexColumnError,
    OrderMismatchError,
    UnknownColumnError,
    UnknownIndexError,
)
from core.index_store import IndexMappingStore
from models.mapping import IndexMapping, TableMapping


@pytest.fixture
def store(table: TableMapping) -> IndexMappingStore:
    return IndexMappingStore(table)


class TestAddIndexColumn:
    def test_creates_index(self, store: IndexMappingStore) -> None:
        entry = store.add_index_column("idx_name", "c2", desc=True)
        assert entry.sp_order == 1
        assert entry.src_col_id == "s2"
        assert entry.sp_col_name == "name"
        assert entry.sp_desc is True
        assert "idx_name" in store.names()

    def test_appends_to_existing(self, store: IndexMappingStore) -> None:
        store.add_index_column("idx_email", "c1")
        assert [(e.sp_col_id, e.sp_order) for e in store.list("idx_email")] == [
            ("c3", 1), ("c1", 2),
        ]

    def test_unknown_column(self, store: IndexMappingStore, table: TableMapping) -> None:
        with pytest.raises(UnknownColumnError):
            store.add_index_column("idx_x", "c99")
        assert "idx_x" not in table.indexes

    def test_unmapped_source_column_is_unknown(self, store: IndexMappingStore) -> None:
        with pytest.raises(UnknownColumnError):
            store.add_index_column("idx_x", "s4")

    def test_duplicate(self, store: IndexMappingStore) -> None:
        with pytest.raises(DuplicateIndexColumnError):
            store.add_index_column("idx_email", "c3")


class TestRemoveIndexColumn:
    def test_redensifies(self, store: IndexMappingStore) -> None:
        store.add_index_column("idx_email", "c1")
        store.add_index_column("idx_email", "c2")
        store.remove_index_column("idx_email", sp_col_id="c1")
        assert [(e.sp_col_id, e.sp_order) for e in store.list("idx_email")] == [
            ("c3", 1), ("c2", 2),
        ]

    def test_last_entry_drops_index(self, store: IndexMappingStore) -> None:
        store.remove_index_column("idx_email", sp_col_id="c3")
        assert store.names() == []
        assert store.references("c3") == []

    def test_pending_entry_by_source_id(self, store: IndexMappingStore, table: TableMapping) -> None:
        table.indexes["idx_email"].append(IndexMapping(src_col_id="s4", src_col_name="legacy_flag"))
        assert "idx_email" in store.pending_entries()
        store.remove_index_column("idx_email", src_col_id="s4")
        assert store.pending_entries() == {}

    def test_missing_entry(self, store: IndexMappingStore) -> None:
        with pytest.raises(UnknownColumnError):
            store.remove_index_column("idx_email", sp_col_id="c1")

    def test_unknown_index(self, store: IndexMappingStore) -> None:
        with pytest.raises(UnknownIndexError):
            store.remove_index_column("nope", sp_col_id="c1")


class TestReorderAndFlags:
    def test_reorder(self, store: IndexMappingStore) -> None:
        store.add_index_column("idx_email", "c1")
        store.reorder_index("idx_email", ["c1", "c3"])
        assert [(e.sp_col_id, e.sp_order) for e in store.list("idx_email")] == [
            ("c1", 1), ("c3", 2),
        ]

    def test_reorder_mismatch(self, store: IndexMappingStore) -> None:
        with pytest.raises(OrderMismatchError):
            store.reorder_index("idx_email", ["c3", "c1"])

    def test_set_descending(self, store: IndexMappingStore) -> None:
        store.set_descending("idx_email", "c3", True)
        assert store.get("idx_email", 1).sp_desc is True

    def test_drop_index(self, store: IndexMappingStore) -> None:
        store.drop_index("idx_email")
        with pytest.raises(UnknownIndexError):
            store.list("idx_email")

    def test_sync_column_name(self, store: IndexMappingStore) -> None:
        store.sync_column_name("c3", "mail")
        assert store.get("idx_email", 1).sp_col_name == "mail"


class TestInvariants:
    def test_proposal_is_consistent(self, store: IndexMappingStore) -> None:
        store.check_invariants()

    def test_dangling_reference(self, table: TableMapping) -> None:
        table.indexes["idx_email"][0].sp_col_id = "c42"
        with pytest.raises(UnknownColumnError):
            IndexMappingStore(table).check_invariants()

    def test_duplicate_order(self, table: TableMapping) -> None:
        table.indexes["idx_email"].append(IndexMapping(sp_col_id="c1", sp_order=1))
        with pytest.raises(OrderMismatchError):
            IndexMappingStore(table).check_invariants()

    def test_pending_entries_allowed(self, table: TableMapping) -> None:
        table.indexes["idx_email"].append(IndexMapping(src_col_id="s4"))
        IndexMappingStore(table).check_invariants()
