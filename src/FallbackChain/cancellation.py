"""Cooperative cancellation primitives shared by the fallback orchestrator and candidates.

The orchestrator never interrupts a running candidate. Instead every attempt
receives a :class:`CancellationToken` that is cancelled when the caller's
external token fires or when the attempt's timer expires; candidates are
expected to check the token (or await :meth:`CancellationToken.wait`) and stop
promptly. :func:`linked_token` derives such a per-attempt token from one or
more parents and releases the link when the attempt ends.
"""

from __future__ import annotations

import asyncio
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional

from .errors import OperationCancelledError

Listener = Callable[["CancellationToken"], None]


class CancellationToken:
    """Thread-safe cancellation token for cooperative task cancellation.

    Examples:
        >>> token = CancellationToken()
        >>> token.is_cancelled()
        False
        >>> token.cancel()
        >>> token.is_cancelled()
        True
        >>> type(token.reason).__name__
        'OperationCancelledError'
    """

    def __init__(self) -> None:
        """Initialize a new, uncancelled token."""
        self._is_cancelled = threading.Event()
        self._lock = threading.Lock()
        self._reason: Any = None
        self._listeners: List[Listener] = []

    def cancel(self, reason: Any = None) -> None:
        """Signal that cancellation has been requested.

        Only the first call has an effect. Listeners run synchronously on the
        calling thread, in registration order.

        Args:
            reason: Value describing why the work is no longer wanted. Defaults
                to an :class:`OperationCancelledError`.
        """
        with self._lock:
            if self._is_cancelled.is_set():
                return
            self._reason = reason if reason is not None else OperationCancelledError()
            self._is_cancelled.set()
            listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener(self)

    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested."""
        return self._is_cancelled.is_set()

    @property
    def reason(self) -> Any:
        """Cancellation reason, or ``None`` while the token is live."""
        return self._reason

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` to run once when the token is cancelled.

        A listener added to an already-cancelled token runs immediately.

        Returns:
            Callable removing the listener; safe to call more than once.
        """
        with self._lock:
            if not self._is_cancelled.is_set():
                self._listeners.append(listener)
                return lambda: self._remove_listener(listener)
        listener(self)
        return lambda: None

    def _remove_listener(self, listener: Listener) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                # already fired or removed
                pass

    def raise_if_cancelled(self) -> None:
        """Raise the cancellation reason if the token has been cancelled.

        Non-exception reasons are wrapped in :class:`OperationCancelledError`.
        """
        if not self._is_cancelled.is_set():
            return
        reason = self._reason
        if isinstance(reason, BaseException):
            raise reason
        raise OperationCancelledError(reason=reason)

    async def wait(self) -> Any:
        """Suspend until the token is cancelled and return the reason."""
        if self._is_cancelled.is_set():
            return self._reason
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()

        def _resolve(token: CancellationToken) -> None:
            if not future.done():
                future.set_result(token.reason)

        def _on_cancel(token: CancellationToken) -> None:
            loop.call_soon_threadsafe(_resolve, token)

        remove = self.add_listener(_on_cancel)
        try:
            return await future
        finally:
            remove()

    def __repr__(self) -> str:
        state = "cancelled" if self.is_cancelled() else "live"
        return f"<CancellationToken {state}>"


@contextmanager
def linked_token(*parents: Optional[CancellationToken]) -> Iterator[CancellationToken]:
    """Yield a fresh token that is cancelled whenever any parent is.

    The child adopts the parent's reason. Listener registrations on the
    parents are removed when the context exits, whatever the exit path.

    Examples:
        >>> parent = CancellationToken()
        >>> with linked_token(parent) as child:
        ...     parent.cancel("stop")
        ...     child.reason
        'stop'
    """
    child = CancellationToken()
    removers: List[Callable[[], None]] = []
    try:
        for parent in parents:
            if parent is None:
                continue
            removers.append(parent.add_listener(lambda token: child.cancel(token.reason)))
        yield child
    finally:
        for remove in removers:
            remove()


__all__ = ["CancellationToken", "linked_token"]
