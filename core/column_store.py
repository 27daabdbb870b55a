"""
core/column_store.py
--------------------
In-memory column mapping state of one table, with invariant checks.

Every mutation validates first and only then touches the rows, so a
rejected edit leaves the table exactly as it was.

Invariants kept:
    * ``src_id`` and ``sp_id`` are unique within the table.
    * Target column names are unique (case-insensitively).
    * ``sp_order`` of the mapped columns is contiguous and gap-free.
    * At least one target primary-key column remains once one exists.
"""
from __future__ import annotations

import re
from typing import Any

from core.errors import (
    DuplicateIdError,
    DuplicateNameError,
    InvalidColumnError,
    InvalidLengthError,
    InvalidNameError,
    LengthTruncatedWarning,
    NoPrimaryKeyError,
    OrderMismatchError,
    ReferencedByIndexError,
    UnknownColumnError,
    UnsupportedTypeError,
)
from core.index_store import IndexMappingStore
from core.type_length_policy import DEFAULT_POLICY, TypeLengthPolicy, fit_length, normalize_dialect
from logger import get_logger
from models.mapping import AddColumnContext, ColumnMapping, TableMapping, parse_length

log = get_logger(__name__)

_IDENTIFIER_RE = re.compile(r"[A-Za-z][A-Za-z0-9_]{0,127}")


def _order_base(columns: list[ColumnMapping]) -> int:
    orders = [c.sp_order for c in columns if c.sp_order is not None]
    return min(orders) if orders else 0


class ColumnMappingStore:
    """
    Column mapping registry of a single :class:`TableMapping`.

    The store mutates the table it wraps; callers that need all-or-nothing
    semantics across several primitives work on a copy of the table.
    """

    def __init__(self, table: TableMapping, policy: TypeLengthPolicy | None = None) -> None:
        self._table = table
        self._policy = policy or DEFAULT_POLICY

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def list(self) -> list[ColumnMapping]:
        """Mapped target columns in ``sp_order``."""
        return self._table.mapped_columns()

    def unmapped(self) -> list[ColumnMapping]:
        return self._table.unmapped_columns()

    def get(self, sp_id: str) -> ColumnMapping:
        col = self._table.find_column(sp_id)
        if col is None:
            raise UnknownColumnError(
                f"Column '{sp_id}' does not exist in table '{self._table.table_id}'."
            )
        return col

    def primary_keys(self) -> list[ColumnMapping]:
        return [c for c in self.list() if c.sp_is_pk]

    def check_invariants(self) -> None:
        """
        Verify identity, naming and ordering invariants of a freshly
        imported table.

        Raises:
            DuplicateIdError, DuplicateNameError, OrderMismatchError
        """
        seen_src: set[str] = set()
        seen_sp: set[str] = set()
        seen_names: set[str] = set()
        for col in self._table.columns:
            if col.src_id is not None:
                if col.src_id in seen_src:
                    raise DuplicateIdError(f"Duplicate source column id '{col.src_id}'.")
                seen_src.add(col.src_id)
            if col.sp_id is None:
                continue
            if col.sp_id in seen_sp:
                raise DuplicateIdError(f"Duplicate target column id '{col.sp_id}'.")
            seen_sp.add(col.sp_id)
            folded = (col.sp_col_name or "").casefold()
            if folded in seen_names:
                raise DuplicateNameError(f"Duplicate target column name '{col.sp_col_name}'.")
            seen_names.add(folded)

        mapped = self._table.columns
        orders = sorted(c.sp_order for c in mapped if c.is_mapped and c.sp_order is not None)
        expected_count = sum(1 for c in mapped if c.is_mapped)
        if len(orders) != expected_count:
            raise OrderMismatchError("Every mapped column needs an spOrder.")
        if orders and orders != list(range(orders[0], orders[0] + len(orders))):
            raise OrderMismatchError(f"spOrder values are not contiguous: {orders}")

    # ------------------------------------------------------------------
    # Mutation helpers
    # ------------------------------------------------------------------

    def rename(self, sp_id: str, new_name: str) -> None:
        col = self.get(sp_id)
        self._check_name(new_name, exclude_sp_id=sp_id)
        log.debug("Rename %s: %s → %s", sp_id, col.sp_col_name, new_name)
        col.sp_col_name = new_name

    def retype(self, sp_id: str, new_type: str) -> LengthTruncatedWarning | None:
        """
        Change the target type, fitting the current length to the new bound.

        Returns:
            A :class:`LengthTruncatedWarning` if the length was clamped.

        Raises:
            UnsupportedTypeError: Unknown type for the table's dialect.
            IncompatibleTypeError: The new type admits no valid length.
        """
        col = self.get(sp_id)
        bound = self._policy.max_length_for(self._table.dialect, new_type)
        length, warning = fit_length(bound, col.sp_col_max_length, sp_id, new_type)
        col.sp_data_type = new_type
        col.sp_col_max_length = length
        if warning:
            log.warning("%s", warning)
        return warning

    def set_max_length(self, sp_id: str, length: Any) -> None:
        col = self.get(sp_id)
        try:
            parsed = parse_length(length)
        except ValueError as exc:
            raise InvalidLengthError(str(exc)) from exc
        bound = self._policy.max_length_for(self._table.dialect, col.sp_data_type)
        if not bound.admits(parsed):
            raise InvalidLengthError(
                f"Length {length!r} is not valid for column '{sp_id}' of type {col.sp_data_type}."
            )
        col.sp_col_max_length = parsed

    def set_primary_key(self, sp_id: str, is_pk: bool) -> None:
        col = self.get(sp_id)
        if not is_pk and col.sp_is_pk:
            others = [c for c in self.primary_keys() if c.sp_id != sp_id]
            if not others:
                raise NoPrimaryKeyError(
                    f"Column '{sp_id}' is the last primary key of table '{self._table.table_id}'."
                )
        col.sp_is_pk = is_pk

    def set_not_null(self, sp_id: str, flag: bool) -> None:
        self.get(sp_id).sp_is_not_null = flag

    def reorder(self, new_order: list[str]) -> None:
        """
        Reassign ``sp_order`` densely following *new_order*.

        Raises:
            OrderMismatchError: *new_order* is not a permutation of the
                                current target column ids.
        """
        current = self.list()
        current_ids = [c.sp_id for c in current]
        if len(new_order) != len(current_ids) or set(new_order) != set(current_ids):
            raise OrderMismatchError(
                f"Requested order {new_order} is not a permutation of {current_ids}."
            )
        base = _order_base(current)
        by_id = {c.sp_id: c for c in current}
        for offset, sp_id in enumerate(new_order):
            by_id[sp_id].sp_order = base + offset

    def add_column(
        self,
        context: AddColumnContext,
        sp_col_name: str,
        sp_data_type: str,
        sp_is_pk: bool = False,
        sp_is_not_null: bool = False,
        sp_col_max_length: Any = None,
    ) -> tuple[ColumnMapping, LengthTruncatedWarning | None]:
        """
        Append a new target column with no source counterpart.

        Raises:
            InvalidColumnError: Wrong table or dialect, or a type unknown to the dialect.
            InvalidNameError, DuplicateNameError, InvalidLengthError
        """
        if context.table_id != self._table.table_id:
            raise InvalidColumnError(
                f"Context targets table '{context.table_id}', not '{self._table.table_id}'."
            )
        if normalize_dialect(context.dialect) != normalize_dialect(self._table.dialect):
            raise InvalidColumnError(
                f"Context dialect '{context.dialect}' does not match table dialect "
                f"'{self._table.dialect}'."
            )
        try:
            bound = self._policy.max_length_for(context.dialect, sp_data_type)
        except UnsupportedTypeError as exc:
            raise InvalidColumnError(str(exc)) from exc
        self._check_name(sp_col_name)
        try:
            requested = parse_length(sp_col_max_length)
        except ValueError as exc:
            raise InvalidLengthError(str(exc)) from exc

        sp_id = self._next_id()
        length, warning = fit_length(bound, requested, sp_id, sp_data_type)
        current = self.list()
        order = (current[-1].sp_order + 1) if current else _order_base(current)
        col = ColumnMapping(
            sp_id=sp_id,
            sp_order=order,
            sp_col_name=sp_col_name,
            sp_data_type=sp_data_type,
            sp_is_pk=sp_is_pk,
            sp_is_not_null=sp_is_not_null,
            sp_col_max_length=length,
        )
        self._table.columns.append(col)
        log.debug("Added column %s (%s %s) to %s", sp_id, sp_col_name, sp_data_type,
                  self._table.table_id)
        return col, warning

    def remove_column(self, sp_id: str) -> None:
        """
        Remove a target column.

        A column that came from the source stays as an unmapped source row.

        Raises:
            ReferencedByIndexError: An index entry still references the column.
        """
        col = self.get(sp_id)
        referencing = IndexMappingStore(self._table).references(sp_id)
        if referencing:
            raise ReferencedByIndexError(sp_id, referencing)
        if col.sp_is_pk and len(self.primary_keys()) == 1:
            raise NoPrimaryKeyError(
                f"Column '{sp_id}' is the last primary key of table '{self._table.table_id}'."
            )

        remaining = [c for c in self.list() if c.sp_id != sp_id]
        base = _order_base(self.list())
        if col.has_source:
            col.clear_target()
        else:
            self._table.columns.remove(col)
        for offset, other in enumerate(remaining):
            other.sp_order = base + offset
        log.debug("Removed column %s from %s", sp_id, self._table.table_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_name(self, name: str, exclude_sp_id: str | None = None) -> None:
        if not isinstance(name, str) or not _IDENTIFIER_RE.fullmatch(name):
            raise InvalidNameError(f"'{name}' is not a valid column name.")
        folded = name.casefold()
        for col in self.list():
            if col.sp_id != exclude_sp_id and (col.sp_col_name or "").casefold() == folded:
                raise DuplicateNameError(
                    f"Column name '{name}' is already used by column '{col.sp_id}'."
                )

    def _next_id(self) -> str:
        used = {c.sp_id for c in self._table.columns if c.sp_id is not None}
        used.update(c.src_id for c in self._table.columns if c.src_id is not None)
        n = len(self._table.columns) + 1
        while f"c{n}" in used:
            n += 1
        return f"c{n}"
