"""
tests/test_mapping_models.py
----------------------------
Unit tests for models/mapping.py.
Run with: python -m pytest tests/
"""
from __future__ import annotations

from pathlib import Path

import pytest

from models.mapping import (
    MAX_LENGTH,
    ColumnMapping,
    IndexMapping,
    TableMapping,
    format_length,
    load_table_mappings_from_file,
    parse_length,
    save_table_mappings_to_file,
)


class TestParseLength:
    @pytest.mark.parametrize("raw,expected", [
        (None, None),
        ("", None),
        (255, 255),
        ("255", 255),
        (" 10 ", 10),
        (100.0, 100),
        ("MAX", MAX_LENGTH),
        ("max", MAX_LENGTH),
    ])
    def test_normalises(self, raw, expected) -> None:
        assert parse_length(raw) == expected

    @pytest.mark.parametrize("raw", ["abc", "-1", 0, -5, 1.5, True, [10]])
    def test_rejects_garbage(self, raw) -> None:
        with pytest.raises(ValueError):
            parse_length(raw)

    def test_max_is_exported_as_text(self) -> None:
        assert format_length(MAX_LENGTH) == "MAX"
        assert format_length(42) == 42
        assert format_length(None) is None


class TestTableMappingPayload:
    def test_loose_fields_are_normalised(self, table: TableMapping) -> None:
        name = table.find_column("c2")
        email = table.find_column("c3")
        assert name.src_order == 2
        assert name.src_col_max_length == 50
        assert email.sp_order == 2
        assert email.sp_col_max_length == MAX_LENGTH
        assert table.indexes["idx_email"][0].src_desc is False

    @pytest.mark.parametrize("raw,expected", [
        ("false", False),
        ("true", True),
        (" TRUE ", True),
        (False, False),
        (None, False),
    ])
    def test_column_flags_from_text(self, raw, expected) -> None:
        col = ColumnMapping.from_dict({
            "spId": "c1", "srcIsPk": raw, "srcIsNotNull": raw,
            "spIsPk": raw, "spIsNotNull": raw,
        })
        assert (col.src_is_pk, col.src_is_not_null) == (expected, expected)
        assert (col.sp_is_pk, col.sp_is_not_null) == (expected, expected)

    def test_column_flag_garbage_rejected(self) -> None:
        with pytest.raises(ValueError):
            ColumnMapping.from_dict({"spId": "c1", "spIsPk": "maybe"})

    def test_unmapped_source_row(self, table: TableMapping) -> None:
        unmapped = table.unmapped_columns()
        assert [c.src_id for c in unmapped] == ["s4"]
        assert not unmapped[0].is_mapped
        assert unmapped[0].sp_order is None

    def test_mapped_columns_sorted_by_order(self, table: TableMapping) -> None:
        assert [c.sp_id for c in table.mapped_columns()] == ["c1", "c2", "c3"]

    def test_round_trip_is_identical(self, table: TableMapping) -> None:
        again = TableMapping.from_dict(table.to_dict())
        assert again == table
        assert again.to_dict() == table.to_dict()

    def test_missing_table_id_rejected(self) -> None:
        with pytest.raises(ValueError):
            TableMapping.from_dict({"columns": []})

    def test_pending_index_entry(self) -> None:
        entry = IndexMapping.from_dict({"srcColId": "s9", "spColId": "", "srcColName": "x"})
        assert entry.is_pending
        assert entry.sp_order is None

    def test_copy_is_deep(self, table: TableMapping) -> None:
        clone = table.copy()
        clone.find_column("c1").sp_col_name = "changed"
        assert table.find_column("c1").sp_col_name == "id"


class TestMappingFile:
    def test_save_and_reload(self, tmp_path: Path, table: TableMapping) -> None:
        path = tmp_path / "sub" / "mappings.json"
        save_table_mappings_to_file(path, {table.table_id: table})
        loaded = load_table_mappings_from_file(path)
        assert loaded == {"t1": table}

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert load_table_mappings_from_file(tmp_path / "nope.json") == {}

    def test_corrupt_file_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError):
            load_table_mappings_from_file(path)
