"""RefreshCoordinator — tells interested parties that upstream data changed.

One coordinator is owned by the process (the API module holds it).
Subscribers register a callback and get back an integer token used to
unsubscribe.  Callbacks may be plain functions or coroutines.
"""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Union

logger = logging.getLogger("straddlelab.refresh")

RefreshCallback = Callable[[], Union[None, Awaitable[None]]]


class RefreshCoordinator:
    """Observer registry for "data changed, recompute" signals."""

    def __init__(self) -> None:
        self._subscribers: dict[int, RefreshCallback] = {}
        self._next_token = 1
        self._refreshing = False
        self._lock = asyncio.Lock()

    # ── Public API ───────────────────────────────────────────────────────

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: RefreshCallback) -> int:
        """Register *callback*; returns the token for :meth:`unsubscribe`."""
        if not callable(callback):
            raise TypeError("refresh callback must be callable")
        token = self._next_token
        self._next_token += 1
        self._subscribers[token] = callback
        logger.debug("Subscriber %d registered", token)
        return token

    def unsubscribe(self, token: int) -> bool:
        """Remove a subscriber.  Returns ``False`` for an unknown token."""
        removed = self._subscribers.pop(token, None) is not None
        if removed:
            logger.debug("Subscriber %d removed", token)
        return removed

    async def trigger(self) -> bool:
        """Notify every subscriber, in subscription order.

        A trigger arriving while another is still running is dropped.

        Returns:
            ``True`` if this call ran the refresh, ``False`` if it was dropped.
        """
        if self._lock.locked():
            logger.debug("Refresh already in progress, trigger ignored")
            return False

        async with self._lock:
            self._refreshing = True
            try:
                # Snapshot so callbacks may (un)subscribe while we iterate.
                for token, callback in list(self._subscribers.items()):
                    try:
                        result = callback()
                        if inspect.isawaitable(result):
                            await result
                    except Exception:
                        logger.exception("Refresh subscriber %d failed", token)
            finally:
                self._refreshing = False
        logger.info("Refresh delivered to %d subscriber(s)", self.subscriber_count)
        return True
