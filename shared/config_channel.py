"""
shared/config_channel.py
------------------------
Single-slot broadcast channel for the active target-connection config.

A subscriber receives the current value immediately on subscription (the
empty configuration if nothing was published yet) and then every later
publication, in order.
"""
from __future__ import annotations

import threading
from typing import Callable

from logger import get_logger
from models.target_config import EMPTY_TARGET_CONFIG, TargetConfig

log = get_logger(__name__)

ConfigCallback = Callable[[TargetConfig], None]


class Subscription:
    """Handle returned by :meth:`ConfigChannel.subscribe`."""

    def __init__(self, channel: "ConfigChannel", callback: ConfigCallback) -> None:
        self._channel = channel
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._channel._remove(self)


class ConfigChannel:
    """
    Replay-latest broadcast of :class:`TargetConfig` values.

    Delivery happens under the channel lock, so a late subscriber can never
    observe an older value after a newer one.
    """

    def __init__(self, initial: TargetConfig | None = None) -> None:
        self._current = initial or EMPTY_TARGET_CONFIG
        self._subscribers: list[Subscription] = []
        self._lock = threading.RLock()

    @property
    def current(self) -> TargetConfig:
        with self._lock:
            return self._current

    def publish(self, config: TargetConfig | dict) -> None:
        if isinstance(config, dict):
            config = TargetConfig.model_validate(config)
        with self._lock:
            self._current = config
            subscribers = list(self._subscribers)
            log.debug("Publishing target config to %d subscriber(s).", len(subscribers))
            for sub in subscribers:
                self._deliver(sub, config)

    def subscribe(self, callback: ConfigCallback) -> Subscription:
        sub = Subscription(self, callback)
        with self._lock:
            self._subscribers.append(sub)
            self._deliver(sub, self._current)
        return sub

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscribers:
                self._subscribers.remove(sub)

    @staticmethod
    def _deliver(sub: Subscription, config: TargetConfig) -> None:
        if not sub.active:
            return
        try:
            sub.callback(config)
        except Exception:
            log.exception("Config subscriber %r failed.", sub.callback)
