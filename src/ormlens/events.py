"""Refresh notifications for Result Model observers."""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)

RefreshListener = Callable[[], None]


class RefreshEmitter:
    """Fan-out of zero-argument refresh callbacks.

    Listeners are called synchronously on the thread that fires. A failing
    listener is logged and does not stop the remaining ones.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: list[RefreshListener] = []

    def subscribe(self, listener: RefreshListener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def fire(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("Refresh listener %r failed", listener)

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)
