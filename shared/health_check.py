"""
shared/health_check.py
----------------------
Background poller that watches whether the migration backend is reachable.

Runs in its own daemon thread and never touches the mapping core, so edit
processing is not blocked by a slow or unreachable backend.
"""
from __future__ import annotations

import threading
from typing import Callable

import requests

from config import CONFIG
from logger import get_logger

log = get_logger(__name__)

Probe = Callable[[], bool]
StatusCallback = Callable[[bool], None]


def http_probe(base_url: str, timeout: float) -> Probe:
    """Build a probe that GETs ``<base_url>/ping`` and expects HTTP 200."""
    url = base_url.rstrip("/") + "/ping"

    def probe() -> bool:
        try:
            response = requests.get(url, timeout=timeout)
        except requests.RequestException as exc:
            log.debug("Health probe %s failed: %s", url, exc)
            return False
        return response.status_code == 200

    return probe


class HealthCheckPoller:
    """
    Periodically runs *probe* until stopped.

    Args:
        probe:      Callable returning True when the backend is healthy.
                    Defaults to an HTTP probe of the configured backend URL.
        interval:   Seconds between probes.
        on_change:  Called with the new health value whenever it flips.
    """

    def __init__(
        self,
        probe: Probe | None = None,
        interval: float | None = None,
        on_change: StatusCallback | None = None,
    ) -> None:
        self._probe = probe or http_probe(
            CONFIG.backend.url, CONFIG.backend.health_check_timeout
        )
        self._interval = interval if interval is not None else CONFIG.backend.health_check_interval
        self._on_change = on_change
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.healthy: bool | None = None
        self.consecutive_failures = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="health-check", daemon=True)
        self._thread.start()
        log.info("Health check started (every %.1fs).", self._interval)

    def stop(self, timeout: float = 2.0) -> None:
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout=timeout)
        self._thread = None
        log.info("Health check stopped.")

    def check_once(self) -> bool:
        try:
            ok = bool(self._probe())
        except Exception as exc:
            log.warning("Health probe raised: %s", exc)
            ok = False

        self.consecutive_failures = 0 if ok else self.consecutive_failures + 1
        if ok != self.healthy:
            if not ok:
                log.warning("Backend unreachable.")
            elif self.healthy is False:
                log.info("Backend reachable again.")
            self.healthy = ok
            if self._on_change:
                self._on_change(ok)
        return ok

    def _run(self) -> None:
        while not self._stop.is_set():
            self.check_once()
            self._stop.wait(self._interval)
