"""
services/workspace.py
---------------------
Session-level glue between the mapping core and the shared services.

A workspace is what an interactive session (e.g. the home page) holds: it
follows the published target configuration, keeps the backend health poller
running, and starts a migration only when the guard allows it and every
table mapping is ready to commit.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from core.errors import MappingError
from core.reconciler import ReconciliationEngine
from logger import get_logger
from models.target_config import EMPTY_TARGET_CONFIG, TargetConfig
from shared.config_channel import ConfigChannel, Subscription
from shared.health_check import HealthCheckPoller
from shared.migration_guard import MigrationStateGuard

log = get_logger(__name__)

PREPARE_MIGRATION_ROUTE = "/prepare-migration"
IN_PROGRESS_MESSAGE = "Another migration already in progress"


@dataclass(frozen=True)
class WorkspaceStatus:
    """What the session should do right after opening."""
    migration_in_progress: bool
    redirect_to: str | None = None
    message: str | None = None


class MigrationWorkspace:
    """
    Args:
        engine:  Reconciliation engine holding the table mappings.
        guard:   Durable single-migration guard.
        channel: Target-configuration channel.
        poller:  Optional backend health poller, started on :meth:`open`.
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        guard: MigrationStateGuard,
        channel: ConfigChannel,
        poller: HealthCheckPoller | None = None,
    ) -> None:
        self.engine = engine
        self.guard = guard
        self.channel = channel
        self.poller = poller
        self.target_config: TargetConfig = EMPTY_TARGET_CONFIG
        self._subscription: Subscription | None = None

    def open(self) -> WorkspaceStatus:
        if self._subscription is None:
            self._subscription = self.channel.subscribe(self._on_config)
        if self.poller is not None:
            self.poller.start()

        if self.guard.is_in_progress():
            log.warning("%s; redirecting to %s.", IN_PROGRESS_MESSAGE, PREPARE_MIGRATION_ROUTE)
            return WorkspaceStatus(
                migration_in_progress=True,
                redirect_to=PREPARE_MIGRATION_ROUTE,
                message=IN_PROGRESS_MESSAGE,
            )
        return WorkspaceStatus(migration_in_progress=False)

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self.poller is not None:
            self.poller.stop()

    def start_migration(self) -> dict[str, dict[str, Any]]:
        """
        Commit every table mapping and mark a migration as in progress.

        Returns:
            ``{table_id: payload}`` for the DDL-generation consumer.

        Raises:
            ValidationError: A table is not ready to commit.
            AlreadyInProgressError: Another migration holds the guard.
        """
        table_ids = self.engine.table_ids()
        for table_id in table_ids:
            self.engine.check_ready_for_commit(table_id)

        self.guard.request_start()
        try:
            for table_id in table_ids:
                self.engine.freeze(table_id)
        except MappingError:
            log.error("Could not freeze table mappings; releasing the migration flag.")
            self.guard.cancel()
            for table_id in self.engine.table_ids():
                self.engine.thaw(table_id)
            raise
        log.info("Migration started for %d table(s) on %s/%s.", len(table_ids),
                 self.target_config.gcp_project_id, self.target_config.spanner_instance_id)
        return {table_id: self.engine.export(table_id) for table_id in table_ids}

    def complete_migration(self) -> bool:
        return self.guard.complete()

    def cancel_migration(self) -> bool:
        released = self.guard.cancel()
        for table_id in self.engine.table_ids():
            self.engine.thaw(table_id)
        return released

    def _on_config(self, config: TargetConfig) -> None:
        self.target_config = config
