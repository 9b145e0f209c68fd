"""Cooperative cancellation for network calls and download batches.

Network attempts are never interrupted mid-flight; instead the retry loop and
the download workers check a :class:`CancellationToken` before every attempt.
A per-attempt timeout bounds how long a cancelled operation can linger.
:class:`CancellationTokenGroup` broadcasts one cancellation to every worker of
a download batch.
"""

from __future__ import annotations

import threading
from typing import Optional

from .errors import OperationCancelled

__all__ = ["CancellationToken", "CancellationTokenGroup"]


class CancellationToken:
    """Thread-safe cancellation flag.

    Examples:
        >>> token = CancellationToken()
        >>> token.is_cancelled()
        False
        >>> token.cancel("shutting down")
        >>> token.is_cancelled()
        True
    """

    def __init__(self, parent: Optional["CancellationToken"] = None) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: Optional[str] = None
        self._parent = parent

    def cancel(self, reason: Optional[str] = None) -> None:
        """Signal that cancellation has been requested."""
        with self._lock:
            if self._reason is None:
                self._reason = reason
            self._event.set()

    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.is_cancelled()

    @property
    def reason(self) -> Optional[str]:
        if self._event.is_set():
            return self._reason
        if self._parent is not None:
            return self._parent.reason
        return None

    def raise_if_cancelled(self) -> None:
        """Raise :class:`OperationCancelled` when cancellation was requested."""
        if self.is_cancelled():
            raise OperationCancelled(self.reason or "Operation cancelled")


class CancellationTokenGroup:
    """Tokens that are cancelled together, e.g. all workers of one batch.

    Tokens created by the group inherit cancellation from ``parent`` when one
    is given, so cancelling the caller's token also stops the batch.
    """

    def __init__(self, parent: Optional[CancellationToken] = None) -> None:
        self._tokens: list[CancellationToken] = []
        self._lock = threading.Lock()
        self._cancelled: Optional[str] = None
        self._parent = parent

    def create_token(self) -> CancellationToken:
        token = CancellationToken(parent=self._parent)
        with self._lock:
            self._tokens.append(token)
            if self._cancelled is not None:
                token.cancel(self._cancelled)
        return token

    def cancel_all(self, reason: str = "Batch cancelled") -> None:
        with self._lock:
            self._cancelled = reason
            for token in self._tokens:
                token.cancel(reason)

    def is_any_cancelled(self) -> bool:
        with self._lock:
            return any(token.is_cancelled() for token in self._tokens)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)
