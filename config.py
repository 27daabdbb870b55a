"""
config.py
---------
Centralised configuration management for the Schema Mapping Workbench.

Loads settings from environment variables (with .env file support via
python-dotenv). Provides typed settings as frozen dataclasses so
configuration is immutable at runtime.

Design Decision:
    Using a dataclass with class-level defaults means the workbench runs
    "out of the box" without any .env file, while still allowing
    environment-based overrides (e.g. pointing the migration guard at a
    shared Redis instead of the local flag directory).
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(dotenv_path=_env_path)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class MappingConfig:
    """Schema-mapping editor settings."""
    default_dialect: str = field(
        default_factory=lambda: os.getenv("TARGET_DIALECT", "google_standard_sql")
    )
    mapping_file: Path = field(
        default_factory=lambda: Path(os.getenv("MAPPING_FILE", "table_mappings.json"))
    )
    # An index entry whose target column is not confirmed yet blocks commit.
    pending_index_blocks_commit: bool = field(
        default_factory=lambda: _env_flag("PENDING_INDEX_BLOCKS_COMMIT", "true")
    )


@dataclass(frozen=True)
class GuardConfig:
    """Durable "migration in progress" flag settings."""
    backend: str = field(
        default_factory=lambda: os.getenv("GUARD_BACKEND", "file").lower()
    )
    flag_name: str = field(
        default_factory=lambda: os.getenv("MIGRATION_FLAG_NAME", "isMigrationInProgress")
    )
    flag_dir: Path = field(
        default_factory=lambda: Path(
            os.getenv("MIGRATION_FLAG_DIR", str(Path.home() / ".schema_mapper"))
        )
    )
    lock_timeout: float = field(
        default_factory=lambda: float(os.getenv("GUARD_LOCK_TIMEOUT", "5"))
    )
    redis_host: str = field(default_factory=lambda: os.getenv("REDIS_HOST", "localhost"))
    redis_port: int = field(default_factory=lambda: int(os.getenv("REDIS_PORT", "6379")))
    redis_db: int = field(default_factory=lambda: int(os.getenv("REDIS_DB", "0")))


@dataclass(frozen=True)
class BackendConfig:
    """Backend health-check settings."""
    url: str = field(
        default_factory=lambda: os.getenv("BACKEND_URL", "http://localhost:8080")
    )
    health_check_interval: float = field(
        default_factory=lambda: float(os.getenv("HEALTH_CHECK_INTERVAL", "5"))
    )
    health_check_timeout: float = field(
        default_factory=lambda: float(os.getenv("HEALTH_CHECK_TIMEOUT", "2"))
    )


@dataclass(frozen=True)
class LoggingConfig:
    log_level: str = field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper()
    )
    log_file: str | None = field(
        default_factory=lambda: os.getenv("LOG_FILE")  # None → log to stderr only
    )


@dataclass(frozen=True)
class AppConfig:
    """Root application configuration."""
    mapping: MappingConfig = field(default_factory=MappingConfig)
    guard: GuardConfig = field(default_factory=GuardConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    app_name: str = "Schema Mapping Workbench"
    app_version: str = "1.0.0"


def load_config() -> AppConfig:
    """
    Build and return the application configuration.

    Example::

        cfg = load_config()
        print(cfg.guard.backend)             # "file"
        print(cfg.mapping.default_dialect)   # "google_standard_sql"
    """
    return AppConfig()


# Module-level singleton used throughout the application
CONFIG: AppConfig = load_config()


def get_log_level() -> int:
    """Convert string log level from config to logging module constant."""
    level = getattr(logging, CONFIG.logging.log_level, None)
    if not isinstance(level, int):
        return logging.INFO
    return level
