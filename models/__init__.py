"""models/__init__.py"""
from models.mapping import (
    MAX_LENGTH,
    AddColumnContext,
    ColumnMapping,
    IndexMapping,
    TableMapping,
    format_length,
    parse_length,
    load_table_mappings_from_file,
    save_table_mappings_to_file,
)
from models.target_config import EMPTY_TARGET_CONFIG, TargetConfig

__all__ = [
    "MAX_LENGTH",
    "AddColumnContext",
    "ColumnMapping",
    "IndexMapping",
    "TableMapping",
    "format_length",
    "parse_length",
    "load_table_mappings_from_file",
    "save_table_mappings_to_file",
    "EMPTY_TARGET_CONFIG",
    "TargetConfig",
]
