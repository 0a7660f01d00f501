"""
Cooperative cancellation for long-running queries.
"""

import threading

__all__ = ["CancellationToken"]


class CancellationToken:
    """
    A cancel flag shared between a caller and the work it started.

    Work polls ``cancelled`` at its checkpoints; blocking waits can use
    ``wait`` so that they wake as soon as the caller cancels.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return the flag."""
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"
