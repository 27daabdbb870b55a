"""
shared/migration_guard.py
-------------------------
Durable "migration in progress" flag shared by every session on a host.

The guard is a two-state machine (``IDLE`` / ``IN_PROGRESS``) whose state
lives in a named flag outside the process. The flag value ``"true"`` means
in progress; an absent flag or any other value means idle.

Design Decisions:
    * The flag store exposes compare-and-set style operations only
      (``set_if_not`` / ``delete_if``), so "observe idle, then mark in
      progress" is always one atomic step and two sessions cannot both
      pass ``request_start``.
    * ``FileFlagStore`` serialises writers with ``flock`` on a lock file
      that is never removed, and writes values with write-then-rename.
    * ``RedisFlagStore`` runs each compare-and-set as a Lua script, which
      Redis executes atomically.
"""
from __future__ import annotations

import fcntl
import os
import re
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Iterator

import redis

from config import CONFIG, GuardConfig
from core.errors import AlreadyInProgressError, FlagStoreError
from logger import get_logger

log = get_logger(__name__)

IN_PROGRESS_VALUE = "true"

_FLAG_NAME_RE = re.compile(r"[A-Za-z0-9_.-]+")


class GuardState(str, Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"


# ---------------------------------------------------------------------------
# Flag stores
# ---------------------------------------------------------------------------

class FlagStore(ABC):
    """Named string flags with atomic conditional updates."""

    @abstractmethod
    def get(self, name: str) -> str | None:
        ...

    @abstractmethod
    def set_if_not(self, name: str, value: str) -> bool:
        """Set *name* to *value* unless it already holds *value*."""

    @abstractmethod
    def delete_if(self, name: str, value: str) -> bool:
        """Delete *name* if it currently holds *value*."""

    @abstractmethod
    def delete(self, name: str) -> None:
        ...


class FileFlagStore(FlagStore):
    """
    One file per flag inside *directory*.

    Writers serialise on an advisory ``flock`` held on a persistent
    ``<name>.lock`` file. The kernel drops the lock when its holder exits,
    so a crashed writer never leaves the flag locked.

    Args:
        directory:    Host-local directory shared by all sessions.
        lock_timeout: Seconds to wait for the writer lock.
    """

    def __init__(self, directory: Path | str, lock_timeout: float = 5.0) -> None:
        self._dir = Path(directory)
        self._lock_timeout = lock_timeout
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FlagStoreError(f"Cannot create flag directory '{self._dir}': {exc}") from exc

    def get(self, name: str) -> str | None:
        path = self._path(name)
        try:
            return path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise FlagStoreError(f"Cannot read flag '{path}': {exc}") from exc

    def set_if_not(self, name: str, value: str) -> bool:
        with self._locked(name):
            if self.get(name) == value:
                return False
            self._write(name, value)
            return True

    def delete_if(self, name: str, value: str) -> bool:
        with self._locked(name):
            if self.get(name) != value:
                return False
            self._path(name).unlink(missing_ok=True)
            return True

    def delete(self, name: str) -> None:
        with self._locked(name):
            self._path(name).unlink(missing_ok=True)

    def _path(self, name: str) -> Path:
        if not _FLAG_NAME_RE.fullmatch(name):
            raise ValueError(f"Invalid flag name: {name!r}")
        return self._dir / name

    def _write(self, name: str, value: str) -> None:
        path = self._path(name)
        tmp = self._dir / f"{name}.tmp"
        try:
            tmp.write_text(value, encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            raise FlagStoreError(f"Cannot write flag '{path}': {exc}") from exc

    @contextmanager
    def _locked(self, name: str) -> Iterator[None]:
        self._path(name)
        lock_path = self._dir / f"{name}.lock"
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_RDWR, 0o644)
        except OSError as exc:
            raise FlagStoreError(f"Cannot open flag lock '{lock_path}': {exc}") from exc
        try:
            deadline = time.monotonic() + self._lock_timeout
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise FlagStoreError(
                            f"Timed out waiting for flag lock '{lock_path}'."
                        ) from None
                    time.sleep(0.05)
            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)


_SET_IF_NOT_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return 0
end
redis.call('SET', KEYS[1], ARGV[1])
return 1
"""

_DELETE_IF_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    redis.call('DEL', KEYS[1])
    return 1
end
return 0
"""


class RedisFlagStore(FlagStore):
    """Flags kept as Redis string keys; shared by every host using the server."""

    def __init__(
        self,
        client: redis.Redis | None = None,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
    ) -> None:
        self._client = client or redis.Redis(
            host=host,
            port=port,
            db=db,
            decode_responses=True,
        )

    def get(self, name: str) -> str | None:
        try:
            return self._client.get(name)
        except redis.RedisError as exc:
            raise FlagStoreError(f"Cannot read flag '{name}': {exc}") from exc

    def set_if_not(self, name: str, value: str) -> bool:
        return self._eval(_SET_IF_NOT_SCRIPT, name, value)

    def delete_if(self, name: str, value: str) -> bool:
        return self._eval(_DELETE_IF_SCRIPT, name, value)

    def delete(self, name: str) -> None:
        try:
            self._client.delete(name)
        except redis.RedisError as exc:
            raise FlagStoreError(f"Cannot delete flag '{name}': {exc}") from exc

    def close(self) -> None:
        self._client.close()

    def _eval(self, script: str, name: str, value: str) -> bool:
        try:
            return bool(int(self._client.eval(script, 1, name, value)))
        except redis.RedisError as exc:
            raise FlagStoreError(f"Cannot update flag '{name}': {exc}") from exc


# ---------------------------------------------------------------------------
# Guard
# ---------------------------------------------------------------------------

class MigrationStateGuard:
    """
    Prevents two migrations from starting at the same time.

    Example::

        guard = create_guard()
        guard.request_start()        # raises AlreadyInProgressError if busy
        try:
            run_migration()
            guard.complete()
        except Exception:
            guard.cancel()
            raise
    """

    def __init__(self, store: FlagStore, flag_name: str | None = None) -> None:
        self._store = store
        self._flag_name = flag_name or CONFIG.guard.flag_name

    @property
    def flag_name(self) -> str:
        return self._flag_name

    @property
    def state(self) -> GuardState:
        if self._store.get(self._flag_name) == IN_PROGRESS_VALUE:
            return GuardState.IN_PROGRESS
        return GuardState.IDLE

    def is_in_progress(self) -> bool:
        return self.state is GuardState.IN_PROGRESS

    def request_start(self) -> None:
        """
        Transition ``IDLE → IN_PROGRESS``.

        Raises:
            AlreadyInProgressError: Another migration holds the flag; the
                                    flag is left untouched.
        """
        if not self._store.set_if_not(self._flag_name, IN_PROGRESS_VALUE):
            log.warning("Migration start rejected: '%s' is already set.", self._flag_name)
            raise AlreadyInProgressError("Another migration already in progress")
        log.info("Migration started; flag '%s' set.", self._flag_name)

    def complete(self) -> bool:
        """Transition ``IN_PROGRESS → IDLE`` after a finished migration."""
        return self._release("completed")

    def cancel(self) -> bool:
        """Transition ``IN_PROGRESS → IDLE`` after an aborted migration."""
        return self._release("cancelled")

    def reset(self) -> None:
        """Force ``IDLE`` regardless of the current value of the flag."""
        self._store.delete(self._flag_name)
        log.info("Migration flag '%s' reset.", self._flag_name)

    def _release(self, reason: str) -> bool:
        released = self._store.delete_if(self._flag_name, IN_PROGRESS_VALUE)
        if released:
            log.info("Migration %s; flag '%s' cleared.", reason, self._flag_name)
        else:
            log.debug("Migration %s but no migration was in progress.", reason)
        return released


def create_guard(cfg: GuardConfig | None = None) -> MigrationStateGuard:
    """Build a guard over the configured flag backend ("file" or "redis")."""
    cfg = cfg or CONFIG.guard
    if cfg.backend == "redis":
        store: FlagStore = RedisFlagStore(host=cfg.redis_host, port=cfg.redis_port, db=cfg.redis_db)
    elif cfg.backend == "file":
        store = FileFlagStore(cfg.flag_dir, lock_timeout=cfg.lock_timeout)
    else:
        raise ValueError(f"Unknown guard backend: {cfg.backend!r}")
    return MigrationStateGuard(store, flag_name=cfg.flag_name)
