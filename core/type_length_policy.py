"""
core/type_length_policy.py
--------------------------
Dialect-aware maximum-length rules for Spanner column types.

Each ``(dialect, spDataType)`` pair resolves to a :class:`LengthBound`:

    NOT_APPLICABLE – the type carries no length (INT64, BOOL, ...).
    UNBOUNDED      – a length is carried but has no numeric ceiling.
    ceiling        – a length between 1 and the ceiling; ``allows_max``
                     additionally admits the ``MAX`` marker.

Design Decision:
    The rules are data (frozensets + one table) and every lookup is a pure
    function, so the policy is deterministic and trivially testable. A
    stricter rule set can be injected by building a :class:`TypeLengthPolicy`
    with custom rules.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from core.errors import IncompatibleTypeError, LengthTruncatedWarning, UnsupportedTypeError
from models.mapping import MAX_LENGTH

GOOGLE_STANDARD_SQL = "google_standard_sql"
POSTGRESQL = "postgresql"

_DIALECT_ALIASES = {
    "google_standard_sql": GOOGLE_STANDARD_SQL,
    "googlesql": GOOGLE_STANDARD_SQL,
    "spanner": GOOGLE_STANDARD_SQL,
    "postgresql": POSTGRESQL,
    "postgres": POSTGRESQL,
    "pg": POSTGRESQL,
}

# Spanner limits: 10 MiB per cell; STRING counts characters (10 MiB / 4 bytes).
STRING_MAX_CHARS = 2621440
BYTES_MAX_LENGTH = 10485760


@dataclass(frozen=True)
class LengthBound:
    applicable: bool = True
    ceiling: int | None = None
    allows_max: bool = False

    @property
    def is_unbounded(self) -> bool:
        return self.applicable and self.ceiling is None

    def default_length(self) -> int | None:
        """Length given to a column that enters this type without one."""
        if not self.applicable:
            return None
        if self.allows_max or self.is_unbounded:
            return MAX_LENGTH
        if self.ceiling is not None and self.ceiling >= 1:
            return self.ceiling
        return None

    def admits(self, length: int | None) -> bool:
        if not self.applicable:
            return length is None
        if length is None or length < 1:
            return False
        if self.is_unbounded:
            return True
        if length == MAX_LENGTH:
            return self.allows_max
        return length <= self.ceiling


NOT_APPLICABLE = LengthBound(applicable=False)
UNBOUNDED = LengthBound()

_GSQL_UNSIZED = frozenset(
    {"INT64", "FLOAT32", "FLOAT64", "BOOL", "DATE", "TIMESTAMP", "NUMERIC", "JSON"}
)
_PG_UNSIZED = frozenset(
    {"INT8", "FLOAT4", "FLOAT8", "BOOL", "DATE", "TIMESTAMPTZ", "NUMERIC", "JSONB",
     "TEXT", "BYTEA"}
)

DEFAULT_RULES: dict[tuple[str, str], LengthBound] = {
    (GOOGLE_STANDARD_SQL, "STRING"): LengthBound(ceiling=STRING_MAX_CHARS, allows_max=True),
    (GOOGLE_STANDARD_SQL, "BYTES"): LengthBound(ceiling=BYTES_MAX_LENGTH, allows_max=True),
    (POSTGRESQL, "VARCHAR"): LengthBound(ceiling=STRING_MAX_CHARS, allows_max=True),
    **{(GOOGLE_STANDARD_SQL, t): NOT_APPLICABLE for t in _GSQL_UNSIZED},
    **{(POSTGRESQL, t): NOT_APPLICABLE for t in _PG_UNSIZED},
}


def normalize_dialect(dialect: str) -> str:
    key = (dialect or "").strip().lower()
    return _DIALECT_ALIASES.get(key, key)


def get_base_type(sp_data_type: str) -> str:
    """
    Extract the upper-cased base type keyword from a type string.

    Examples::

        get_base_type("string(255)")  →  "STRING"
        get_base_type("INT64")        →  "INT64"
        get_base_type("")             →  ""
    """
    text = (sp_data_type or "").strip()
    if not text:
        return ""
    return text.split("(")[0].split()[0].upper()


class TypeLengthPolicy:
    """Lookup table of :class:`LengthBound` per ``(dialect, type)``."""

    def __init__(self, rules: Mapping[tuple[str, str], LengthBound] | None = None) -> None:
        source = DEFAULT_RULES if rules is None else rules
        self._rules = {
            (normalize_dialect(d), get_base_type(t)): bound
            for (d, t), bound in source.items()
        }

    def max_length_for(self, dialect: str, sp_data_type: str) -> LengthBound:
        """
        Return the length bound of *sp_data_type* under *dialect*.

        Raises:
            UnsupportedTypeError: If the pair is unknown.
        """
        key = (normalize_dialect(dialect), get_base_type(sp_data_type))
        try:
            return self._rules[key]
        except KeyError:
            raise UnsupportedTypeError(
                f"Type '{sp_data_type}' is not supported for dialect '{dialect}'."
            ) from None

    def is_supported(self, dialect: str, sp_data_type: str) -> bool:
        key = (normalize_dialect(dialect), get_base_type(sp_data_type))
        return key in self._rules

    def supported_types(self, dialect: str) -> list[str]:
        d = normalize_dialect(dialect)
        return sorted(t for (rule_dialect, t) in self._rules if rule_dialect == d)


DEFAULT_POLICY = TypeLengthPolicy()


def max_length_for(dialect: str, sp_data_type: str) -> LengthBound:
    """Module-level shortcut over :data:`DEFAULT_POLICY`."""
    return DEFAULT_POLICY.max_length_for(dialect, sp_data_type)


def fit_length(
    bound: LengthBound,
    current: int | None,
    sp_id: str,
    sp_data_type: str,
) -> tuple[int | None, LengthTruncatedWarning | None]:
    """
    Fit an existing column length into *bound*.

    Returns:
        ``(length, warning)``; *warning* is set when the length was clamped.

    Raises:
        IncompatibleTypeError: If the type needs a length but admits none.
    """
    if not bound.applicable:
        return None, None
    if current is not None and bound.admits(current):
        return current, None

    if current is None:
        default = bound.default_length()
        if default is None:
            raise IncompatibleTypeError(
                f"Type {sp_data_type} admits no valid length for column '{sp_id}'."
            )
        return default, None

    if bound.ceiling is None or bound.ceiling < 1:
        raise IncompatibleTypeError(
            f"Type {sp_data_type} admits no valid length for column '{sp_id}'."
        )
    applied = bound.ceiling
    return applied, LengthTruncatedWarning(
        sp_id=sp_id, sp_data_type=sp_data_type, requested=current, applied=applied
    )
