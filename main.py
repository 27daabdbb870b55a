#!/usr/bin/env python3
"""
Management script for the Schema Mapping Workbench.

Usage:
    python main.py [command] [options]
"""
from __future__ import annotations

import sys
from pathlib import Path

from config import CONFIG
from core.errors import MappingError, MigrationStateError
from core.reconciler import ReconciliationEngine
from logger import get_logger
from models.mapping import load_table_mappings_from_file
from shared.migration_guard import create_guard

log = get_logger(__name__)

USAGE = """
Schema Mapping Workbench - Management Script

Usage:
    python main.py [command] [options]

Commands:
    status            - Show whether a migration is in progress
    reset             - Clear the "migration in progress" flag
    validate [FILE]   - Check every table mapping in FILE
                        (default: MAPPING_FILE setting)

Examples:
    python main.py status
    python main.py validate table_mappings.json
"""


def cmd_status() -> int:
    guard = create_guard()
    state = guard.state
    print(f"Flag '{guard.flag_name}' ({CONFIG.guard.backend}): {state.value}")
    return 0


def cmd_reset() -> int:
    guard = create_guard()
    guard.reset()
    print(f"✓ Flag '{guard.flag_name}' cleared")
    return 0


def cmd_validate(path: Path) -> int:
    try:
        tables = load_table_mappings_from_file(path)
    except ValueError as exc:
        print(f"✗ {exc}")
        return 1
    if not tables:
        print(f"No table mappings found in '{path}'")
        return 1

    engine = ReconciliationEngine()
    failures = 0
    for table_id, table in sorted(tables.items()):
        try:
            engine.load(table)
            engine.check_ready_for_commit(table_id)
        except MappingError as exc:
            failures += 1
            print(f"✗ {table_id}: {exc}")
        else:
            print(f"✓ {table_id}: {len(table.mapped_columns())} column(s), "
                  f"{len(table.indexes)} index(es)")
    return 1 if failures else 0


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print(USAGE)
        return 0

    command = args[0].lower()
    try:
        if command == "status":
            return cmd_status()
        if command == "reset":
            return cmd_reset()
        if command == "validate":
            path = Path(args[1]) if len(args) > 1 else CONFIG.mapping.mapping_file
            return cmd_validate(path)
    except MigrationStateError as exc:
        log.error("Guard operation failed: %s", exc)
        print(f"✗ {exc}")
        return 1

    print(f"Unknown command: {command}")
    print("Run 'python main.py' for usage help")
    return 1


if __name__ == "__main__":
    sys.exit(main())
