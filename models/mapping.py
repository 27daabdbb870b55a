"""
models/mapping.py
-----------------
Typed data models for per-table column and index mappings.

Design Decision:
    Using ``@dataclass`` instead of plain dicts gives one explicit shape for
    the mapping rows, while ``to_dict`` / ``from_dict`` keep the camelCase
    payload format exchanged with the schema-analysis producer and the DDL
    consumer. Loosely typed payload fields (lengths as "number or string",
    orders as numeric strings, descending flags as "true"/"false") are
    normalised once, here, at the boundary.
"""
from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# Spanner's marker for STRING(MAX) / BYTES(MAX).
MAX_LENGTH = 9223372036854775807
_MAX_TOKEN = "MAX"


def parse_length(raw: Any) -> int | None:
    """
    Normalise a payload length to ``int | None``.

    ``None`` and ``""`` mean "not applicable"; ``"MAX"`` (any case) maps to
    :data:`MAX_LENGTH`.

    Raises:
        ValueError: For negative, zero, fractional or non-numeric input.
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValueError(f"Invalid column length: {raw!r}")
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        if text.upper() == _MAX_TOKEN:
            return MAX_LENGTH
        if not text.isdigit():
            raise ValueError(f"Invalid column length: {raw!r}")
        value = int(text)
    elif isinstance(raw, float):
        if not raw.is_integer():
            raise ValueError(f"Invalid column length: {raw!r}")
        value = int(raw)
    elif isinstance(raw, int):
        value = raw
    else:
        raise ValueError(f"Invalid column length: {raw!r}")
    if value < 1:
        raise ValueError(f"Column length must be positive, got {value}")
    return value


def format_length(length: int | None) -> int | str | None:
    """Inverse of :func:`parse_length` for export."""
    if length == MAX_LENGTH:
        return _MAX_TOKEN
    return length


def parse_order(raw: Any) -> int | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        raise ValueError(f"Invalid order value: {raw!r}")
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid order value: {raw!r}") from exc


def parse_flag(raw: Any) -> bool | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.strip().lower() in ("true", "false"):
        return raw.strip().lower() == "true"
    raise ValueError(f"Invalid boolean flag: {raw!r}")


def _parse_id(raw: Any) -> str | None:
    if raw is None or raw == "":
        return None
    return str(raw)


@dataclass
class ColumnMapping:
    """
    One row per source column considered for migration.

    A row whose ``sp_id`` is ``None`` is a source column that is not mapped
    to the target (dropped, or not accepted yet). A row whose ``src_id`` is
    ``None`` is a target column added with no source counterpart.
    """
    src_id: str | None = None
    sp_id: str | None = None
    src_order: int | None = None
    src_col_name: str = ""
    src_data_type: str = ""
    src_is_pk: bool = False
    src_is_not_null: bool = False
    src_col_max_length: int | None = None
    sp_order: int | None = None
    sp_col_name: str = ""
    sp_data_type: str = ""
    sp_is_pk: bool = False
    sp_is_not_null: bool = False
    sp_col_max_length: int | None = None

    @property
    def is_mapped(self) -> bool:
        return self.sp_id is not None

    @property
    def has_source(self) -> bool:
        return self.src_id is not None

    def clear_target(self) -> None:
        """Detach the row from the target schema, keeping the source side."""
        self.sp_id = None
        self.sp_order = None
        self.sp_col_name = ""
        self.sp_data_type = ""
        self.sp_is_pk = False
        self.sp_is_not_null = False
        self.sp_col_max_length = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "srcId": self.src_id,
            "spId": self.sp_id,
            "srcOrder": self.src_order,
            "srcColName": self.src_col_name,
            "srcDataType": self.src_data_type,
            "srcIsPk": self.src_is_pk,
            "srcIsNotNull": self.src_is_not_null,
            "srcColMaxLength": format_length(self.src_col_max_length),
            "spOrder": self.sp_order,
            "spColName": self.sp_col_name,
            "spDataType": self.sp_data_type,
            "spIsPk": self.sp_is_pk,
            "spIsNotNull": self.sp_is_not_null,
            "spColMaxLength": format_length(self.sp_col_max_length),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ColumnMapping":
        return ColumnMapping(
            src_id=_parse_id(data.get("srcId")),
            sp_id=_parse_id(data.get("spId")),
            src_order=parse_order(data.get("srcOrder")),
            src_col_name=data.get("srcColName") or "",
            src_data_type=str(data.get("srcDataType") or ""),
            src_is_pk=bool(parse_flag(data.get("srcIsPk"))),
            src_is_not_null=bool(parse_flag(data.get("srcIsNotNull"))),
            src_col_max_length=parse_length(data.get("srcColMaxLength")),
            sp_order=parse_order(data.get("spOrder")),
            sp_col_name=data.get("spColName") or "",
            sp_data_type=str(data.get("spDataType") or ""),
            sp_is_pk=bool(parse_flag(data.get("spIsPk"))),
            sp_is_not_null=bool(parse_flag(data.get("spIsNotNull"))),
            sp_col_max_length=parse_length(data.get("spColMaxLength")),
        )


@dataclass
class IndexMapping:
    """
    One column entry of an index.

    ``sp_col_id`` is ``None`` while the referenced column is still pending
    target-side confirmation; such entries carry no ``sp_order``.
    """
    src_col_id: str | None = None
    sp_col_id: str | None = None
    src_col_name: str = ""
    sp_col_name: str | None = None
    src_desc: bool | None = None
    sp_desc: bool | None = None
    src_order: int | None = None
    sp_order: int | None = None

    @property
    def is_pending(self) -> bool:
        return self.sp_col_id is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "srcColId": self.src_col_id,
            "spColId": self.sp_col_id,
            "srcColName": self.src_col_name,
            "spColName": self.sp_col_name,
            "srcDesc": self.src_desc,
            "spDesc": self.sp_desc,
            "srcOrder": self.src_order,
            "spOrder": self.sp_order,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "IndexMapping":
        return IndexMapping(
            src_col_id=_parse_id(data.get("srcColId")),
            sp_col_id=_parse_id(data.get("spColId")),
            src_col_name=data.get("srcColName") or "",
            sp_col_name=data.get("spColName") or None,
            src_desc=parse_flag(data.get("srcDesc")),
            sp_desc=parse_flag(data.get("spDesc")),
            src_order=parse_order(data.get("srcOrder")),
            sp_order=parse_order(data.get("spOrder")),
        )


@dataclass(frozen=True)
class AddColumnContext:
    """Parameters of a single add-column operation."""
    dialect: str
    table_id: str


@dataclass
class TableMapping:
    """
    Complete column + index mapping of one table.

    Attributes:
        table_id:   Stable identity of the table.
        table_name: Display name of the table.
        dialect:    Target dialect the lengths and types are checked against.
        columns:    Column rows, mapped and unmapped.
        indexes:    ``{index_name: [IndexMapping, ...]}``.
        frozen:     Set once migration execution starts.
    """
    table_id: str
    table_name: str = ""
    dialect: str = "google_standard_sql"
    columns: list[ColumnMapping] = field(default_factory=list)
    indexes: dict[str, list[IndexMapping]] = field(default_factory=dict)
    frozen: bool = False

    def mapped_columns(self) -> list[ColumnMapping]:
        """Target columns ordered by ``sp_order``."""
        mapped = [c for c in self.columns if c.is_mapped]
        return sorted(mapped, key=lambda c: (c.sp_order is None, c.sp_order or 0))

    def unmapped_columns(self) -> list[ColumnMapping]:
        return [c for c in self.columns if not c.is_mapped]

    def find_column(self, sp_id: str) -> ColumnMapping | None:
        for col in self.columns:
            if col.sp_id is not None and col.sp_id == sp_id:
                return col
        return None

    def copy(self) -> "TableMapping":
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tableId": self.table_id,
            "tableName": self.table_name,
            "dialect": self.dialect,
            "frozen": self.frozen,
            "columns": [c.to_dict() for c in self.columns],
            "indexes": {
                name: [e.to_dict() for e in entries]
                for name, entries in self.indexes.items()
            },
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "TableMapping":
        if not data.get("tableId"):
            raise ValueError("Table mapping payload has no 'tableId'.")
        return TableMapping(
            table_id=str(data["tableId"]),
            table_name=data.get("tableName", ""),
            dialect=data.get("dialect") or "google_standard_sql",
            columns=[ColumnMapping.from_dict(c) for c in data.get("columns", [])],
            indexes={
                name: [IndexMapping.from_dict(e) for e in entries]
                for name, entries in (data.get("indexes") or {}).items()
            },
            frozen=bool(data.get("frozen", False)),
        )


def load_table_mappings_from_file(path: Path) -> dict[str, TableMapping]:
    """
    Load and deserialise all table mappings from a JSON file.

    Returns:
        A dict of ``{table_id: TableMapping}``.  Empty dict if file is absent.

    Raises:
        ValueError: If the file contains invalid JSON or malformed rows.
    """
    if not path.exists():
        return {}
    try:
        raw: dict = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in mapping file '{path}': {exc}") from exc

    result: dict[str, TableMapping] = {}
    for table_id, payload in raw.items():
        payload = dict(payload)
        payload.setdefault("tableId", table_id)
        result[table_id] = TableMapping.from_dict(payload)
    return result


def save_table_mappings_to_file(path: Path, tables: dict[str, TableMapping]) -> None:
    """Serialise all table mappings to JSON and write atomically (write-then-rename)."""
    raw = {table_id: t.to_dict() for table_id, t in tables.items()}
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(raw, indent=4), encoding="utf-8")
    tmp.replace(path)
