"""
tests/test_type_length_policy.py
--------------------------------
Unit tests for core/type_length_policy.py.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import pytest

from core.errors import IncompatibleTypeError, UnsupportedTypeError
from core.type_length_policy import (
    NOT_APPLICABLE,
    STRING_MAX_CHARS,
    UNBOUNDED,
    LengthBound,
    TypeLengthPolicy,
    fit_length,
    get_base_type,
    max_length_for,
)
from models.mapping import MAX_LENGTH


class TestMaxLengthFor:
    def test_string_bound(self) -> None:
        bound = max_length_for("google_standard_sql", "STRING")
        assert bound.ceiling == STRING_MAX_CHARS
        assert bound.allows_max

    @pytest.mark.parametrize("type_", ["INT64", "BOOL", "TIMESTAMP", "json"])
    def test_unsized_types(self, type_: str) -> None:
        assert max_length_for("google_standard_sql", type_) is NOT_APPLICABLE

    def test_postgres_varchar(self) -> None:
        assert max_length_for("postgresql", "varchar").ceiling == STRING_MAX_CHARS

    def test_dialect_alias(self) -> None:
        assert max_length_for("PG", "VARCHAR") == max_length_for("postgresql", "VARCHAR")

    def test_type_with_length_suffix(self) -> None:
        assert max_length_for("google_standard_sql", "string(100)").allows_max

    @pytest.mark.parametrize("dialect,type_", [
        ("google_standard_sql", "VARCHAR"),
        ("postgresql", "STRING"),
        ("mysql", "INT"),
    ])
    def test_unknown_pair(self, dialect: str, type_: str) -> None:
        with pytest.raises(UnsupportedTypeError):
            max_length_for(dialect, type_)

    def test_deterministic(self) -> None:
        assert max_length_for("google_standard_sql", "BYTES") == max_length_for(
            "google_standard_sql", "BYTES"
        )


class TestCustomPolicy:
    def test_stricter_dialect(self) -> None:
        policy = TypeLengthPolicy({("strict", "STRING"): LengthBound(ceiling=100)})
        assert policy.max_length_for("strict", "STRING").ceiling == 100
        assert not policy.is_supported("google_standard_sql", "STRING")
        assert policy.supported_types("strict") == ["STRING"]


class TestLengthBound:
    def test_admits(self) -> None:
        bound = LengthBound(ceiling=100)
        assert bound.admits(100)
        assert not bound.admits(101)
        assert not bound.admits(None)
        assert not bound.admits(MAX_LENGTH)

    def test_unbounded_admits_anything_positive(self) -> None:
        assert UNBOUNDED.is_unbounded
        assert UNBOUNDED.admits(MAX_LENGTH)
        assert UNBOUNDED.admits(10 ** 9)

    def test_not_applicable_admits_only_none(self) -> None:
        assert NOT_APPLICABLE.admits(None)
        assert not NOT_APPLICABLE.admits(10)


class TestFitLength:
    def test_within_bound_unchanged(self) -> None:
        bound = max_length_for("google_standard_sql", "STRING")
        assert fit_length(bound, 5000, "c1", "STRING") == (5000, None)

    def test_clamps_with_warning(self) -> None:
        length, warning = fit_length(LengthBound(ceiling=100), 5000, "c1", "STRING")
        assert length == 100
        assert warning.requested == 5000
        assert warning.applied == 100

    def test_not_applicable_drops_length(self) -> None:
        assert fit_length(NOT_APPLICABLE, 50, "c1", "INT64") == (None, None)

    def test_missing_length_gets_default(self) -> None:
        bound = max_length_for("google_standard_sql", "STRING")
        assert fit_length(bound, None, "c1", "STRING") == (MAX_LENGTH, None)
        assert fit_length(LengthBound(ceiling=64), None, "c1", "X") == (64, None)

    def test_no_valid_length(self) -> None:
        with pytest.raises(IncompatibleTypeError):
            fit_length(LengthBound(ceiling=0), 10, "c1", "X")
        with pytest.raises(IncompatibleTypeError):
            fit_length(LengthBound(ceiling=0), None, "c1", "X")


def test_get_base_type() -> None:
    assert get_base_type("string(255)") == "STRING"
    assert get_base_type("") == ""
