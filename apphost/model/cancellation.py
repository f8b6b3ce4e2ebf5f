"""
Cooperative cancellation for value resolution.

Resolution in apphost is single-threaded and cooperative. A caller that
wants to abandon a resolution hands a CancellationToken to it and later
calls cancel() on the owning source. Resolvers check the token at every
suspension point and raise asyncio.CancelledError, so a cancelled
resolution never produces a partial value.

Plain asyncio task cancellation works too; the token exists so the
signal can be passed explicitly through callback contexts.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable


class CancellationToken:
    """Read side of a cancellation signal."""

    def __init__(self, source: "CancellationTokenSource | None" = None):
        self._source = source

    @property
    def is_cancellation_requested(self) -> bool:
        return self._source is not None and self._source.is_cancelled

    def throw_if_cancellation_requested(self) -> None:
        """Raise asyncio.CancelledError if cancellation was requested."""
        if self.is_cancellation_requested:
            raise asyncio.CancelledError("Resolution was cancelled")

    def register(self, callback: Callable[[], None]) -> None:
        """Run callback on cancellation (immediately if already cancelled)."""
        if self._source is None:
            return
        self._source._register(callback)

    @classmethod
    def none(cls) -> "CancellationToken":
        """A token that can never be cancelled."""
        return cls()


class CancellationTokenSource:
    """
    Write side of a cancellation signal.

    Example:
        source = CancellationTokenSource()
        task = asyncio.create_task(expr.get_value(source.token))
        source.cancel()
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []
        self.token = CancellationToken(self)

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def _register(self, callback: Callable[[], None]) -> None:
        if self._cancelled:
            callback()
        else:
            self._callbacks.append(callback)


def ensure_token(cancellation: CancellationToken | None) -> CancellationToken:
    """Normalize an optional token."""
    return cancellation if cancellation is not None else CancellationToken.none()
