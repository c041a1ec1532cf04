"""Cooperative cancellation for analysis runs."""

import threading


class CancellationToken:
    """Set from any thread; polled by the engine between batches only."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
