"""
Single-flight refresh coordination.

Any number of request handlers may discover an expired access token at the
same time. The first one to call RefreshCoordinator.refresh() performs the
network refresh; everyone arriving while it is in flight waits on the same
Future and observes the same outcome, success or failure. The shared Future is
cleared only after it has settled, so a caller arriving later starts a new
refresh instead of reusing a finished one.

A caller that passes the token it saw rejected (``stale``) gets the current
value back without a refresh when that token has already been replaced. The
comparison happens under the same lock that guards the in-flight Future, and
refresh_fn stores its result before the Future is cleared, so a late caller
always sees either the running refresh or its stored outcome.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _identity(value):
    return value


class RefreshCoordinator(Generic[T]):
    def __init__(
        self,
        refresh_fn: Callable[[], T],
        current_fn: Optional[Callable[[], Optional[T]]] = None,
        token_of: Callable[[T], Any] = _identity,
        wait_timeout: Optional[float] = None,
    ):
        self._refresh_fn = refresh_fn
        self._current_fn = current_fn
        self._token_of = token_of
        self._wait_timeout = wait_timeout
        self._lock = threading.Lock()
        self._inflight: Optional[Future] = None

    @property
    def in_flight(self) -> bool:
        with self._lock:
            return self._inflight is not None

    def _already_replaced(self, stale) -> Optional[T]:
        if stale is None or self._current_fn is None:
            return None
        current = self._current_fn()
        if current is None or self._token_of(current) == stale:
            return None
        return current

    def refresh(self, stale: Any = None) -> T:
        with self._lock:
            future = self._inflight
            if future is None:
                current = self._already_replaced(stale)
                if current is not None:
                    logger.debug("Token already replaced, skipping refresh")
                    return current
                future = Future()
                self._inflight = future
                owner = True
            else:
                owner = False

        if not owner:
            logger.debug("Refresh already in flight, waiting on it")
            return future.result(timeout=self._wait_timeout)

        try:
            result = self._refresh_fn()
        except Exception as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            if not future.done():
                future.set_exception(RuntimeError("refresh aborted"))
            with self._lock:
                self._inflight = None
