"""
core/errors.py
--------------
Exception hierarchy and warning records for the schema-mapping core.

Every ``MappingError`` is recoverable: the rejected edit leaves the table
mapping untouched and the caller decides how to present the failure.
"""
from __future__ import annotations

from dataclasses import dataclass


class MappingError(Exception):
    """Base class for all schema-mapping failures."""


class ValidationError(MappingError):
    """An edit or payload would violate a mapping invariant."""


class DuplicateNameError(ValidationError):
    """A target column name is already used by another column of the table."""


class InvalidNameError(ValidationError):
    """A target column name is not a legal Spanner identifier."""


class NoPrimaryKeyError(ValidationError):
    """The table would be left without any target primary-key column."""


class OrderMismatchError(ValidationError):
    """A reorder request is not a permutation of the current identities."""


class ReferencedByIndexError(ValidationError):
    """A column is still referenced by an index entry."""

    def __init__(self, sp_id: str, index_names: list[str]) -> None:
        self.sp_id = sp_id
        self.index_names = index_names
        super().__init__(
            f"Column '{sp_id}' is referenced by index(es): {', '.join(index_names)}. "
            "Remove the index entries first."
        )


class UnknownColumnError(ValidationError):
    """A column id does not exist in the table's column mappings."""


class UnsupportedTypeError(ValidationError):
    """The (dialect, data type) pair is not known to the length policy."""


class InvalidColumnError(ValidationError):
    """A proposed new column cannot be added."""


class IncompatibleTypeError(ValidationError):
    """No valid length exists for the column under the new type."""


class InvalidLengthError(ValidationError):
    """A column length is malformed or outside the type's bound."""


class DuplicateIndexColumnError(ValidationError):
    """A column appears twice in the same index."""


class UnknownIndexError(ValidationError):
    """No index with the given name exists on the table."""


class PendingIndexColumnError(ValidationError):
    """An index entry still waits for target-side confirmation."""


class DuplicateIdError(ValidationError):
    """Two rows of a table share the same source or target identity."""


class MappingFrozenError(MappingError):
    """The table mapping was committed for migration and can no longer change."""


class UnknownTableError(MappingError, KeyError):
    """No mapping is loaded for the given table id."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class MigrationStateError(Exception):
    """Base class for migration-state guard failures."""


class AlreadyInProgressError(MigrationStateError):
    """A migration start was requested while another one is running."""


class FlagStoreError(MigrationStateError):
    """The durable flag store could not be read or updated."""


@dataclass(frozen=True)
class LengthTruncatedWarning:
    """
    Non-fatal outcome of an edit: a column length was clamped to the
    bound of its (new) data type.
    """
    sp_id: str
    sp_data_type: str
    requested: int
    applied: int

    def __str__(self) -> str:
        return (
            f"Length of column '{self.sp_id}' reduced from {self.requested} "
            f"to {self.applied} for type {self.sp_data_type}."
        )
