"""Cancellation and deadline propagation for blocking operations.

An :class:`OperationContext` is handed down from the CLI to every component
that may block (most importantly external command execution).  It carries a
cancellation flag and an optional deadline; derived contexts share the
parent's cancellation and never extend its deadline.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class OperationContext:
    """Cancellable execution context with an optional deadline."""

    def __init__(
        self,
        *,
        deadline: Optional[float] = None,
        parent: Optional["OperationContext"] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._event = threading.Event()
        self._parent = parent
        self._monotonic = monotonic
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self._deadline = deadline

    # ------------------------------------------------------------------
    @classmethod
    def background(cls) -> "OperationContext":
        """Return a context that is never cancelled and has no deadline."""

        return cls()

    def with_timeout(self, seconds: float) -> "OperationContext":
        """Derive a child context that expires after *seconds*."""

        return OperationContext(
            deadline=self._monotonic() + seconds,
            parent=self,
            monotonic=self._monotonic,
        )

    # ------------------------------------------------------------------
    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    @property
    def expired(self) -> bool:
        return self._deadline is not None and self._monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, ``None`` when unbounded."""

        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._monotonic())


__all__ = ["OperationContext"]
