"""Cooperative cancellation flag shared between a job and its controller."""

import threading


class CancellationToken:
    """Thread-safe boolean cell.

    The controller sets it from any thread (or from the event loop); the
    coordinator polls it at checkpoints only and never waits on it.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation.  Idempotent."""
        self._event.set()

    def clear(self) -> None:
        self._event.clear()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelled})"
