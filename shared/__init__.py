"""shared/__init__.py"""
from shared.config_channel import ConfigChannel, Subscription
from shared.health_check import HealthCheckPoller
from shared.migration_guard import (
    FileFlagStore,
    GuardState,
    MigrationStateGuard,
    RedisFlagStore,
    create_guard,
)

__all__ = [
    "ConfigChannel",
    "Subscription",
    "HealthCheckPoller",
    "FileFlagStore",
    "RedisFlagStore",
    "GuardState",
    "MigrationStateGuard",
    "create_guard",
]
