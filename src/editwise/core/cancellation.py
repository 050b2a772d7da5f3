"""Cooperative cancellation tokens.

A :class:`CancellationTokenSource` owns a token; consumers check the token
between round trips or register callbacks that fire once on cancellation.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Callable

from .errors import CancellationError

__all__ = ["CancellationToken", "CancellationTokenSource"]

LOGGER = logging.getLogger(__name__)

CancellationCallback = Callable[[], None]


class CancellationToken:
    """Read-only view of a cancellation request."""

    __slots__ = ("_cancelled", "_callbacks", "_lock")

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[CancellationCallback] = []
        self._lock = Lock()

    @classmethod
    def none(cls) -> "CancellationToken":
        """Return a token that is never cancelled."""

        return cls()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self, message: str = "Operation cancelled") -> None:
        if self._cancelled:
            raise CancellationError(message)

    def on_cancellation_requested(self, callback: CancellationCallback) -> Callable[[], None]:
        """Register ``callback``; returns a function removing the registration.

        When the token is already cancelled the callback runs immediately.
        """

        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)

                def _remove() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return _remove
        callback()
        return lambda: None

    def _cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception:
                LOGGER.exception("Cancellation callback %r failed", callback)


class CancellationTokenSource:
    """Creates and cancels a :class:`CancellationToken`."""

    __slots__ = ("_token",)

    def __init__(self) -> None:
        self._token = CancellationToken()

    @property
    def token(self) -> CancellationToken:
        return self._token

    def cancel(self) -> None:
        self._token._cancel()
