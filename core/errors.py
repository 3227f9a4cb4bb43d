"""Helpers for reporting several failures as one exception."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence


class AggregateError(Exception):
    """An ordered collection of failures rendered as a single diagnostic."""

    def __init__(self, errors: Sequence[BaseException], message: Optional[str] = None) -> None:
        self.errors: List[BaseException] = list(errors)
        self.message = message
        super().__init__(self._render())

    def _render(self) -> str:
        lines = [str(error) or type(error).__name__ for error in self.errors]
        body = "\n".join(lines)
        if self.message:
            return f"{self.message}: {body}" if len(lines) <= 1 else f"{self.message}:\n{body}"
        return body


def join_errors(
    errors: Iterable[Optional[BaseException]], message: Optional[str] = None
) -> Optional[AggregateError]:
    """Combine *errors* (``None`` entries ignored) into an :class:`AggregateError`.

    Returns ``None`` when nothing failed so callers can write::

        joined = join_errors(failures)
        if joined is not None:
            raise joined
    """

    collected = [error for error in errors if error is not None]
    if not collected:
        return None
    return AggregateError(collected, message)


__all__ = ["AggregateError", "join_errors"]
