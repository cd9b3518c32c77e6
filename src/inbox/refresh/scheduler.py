"""Periodic background refresh with per-domain single flight.

Each data domain (messages, conversations, events, numbers) has its own
lock: a refresh requested while another one for the same domain is still
outstanding waits for it to settle before issuing its own request.  The
repeating loop pauses while the console is hidden and ticks immediately
when it becomes visible again.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable, Mapping

import structlog

from inbox.domain.errors import InboxError
from inbox.domain.types import RefreshDomain

logger = structlog.get_logger()

RefreshHandler = Callable[[], Awaitable[object]]


class RefreshScheduler:
    """Drives refresh handlers from a repeating timer and explicit requests.

    Handlers run in the mapping's order on every tick.  A handler failure
    is logged and never stops the loop; the previous state stays in place
    until the next tick.
    """

    def __init__(
        self,
        handlers: Mapping[RefreshDomain, RefreshHandler],
        interval: float,
    ) -> None:
        """Initialize the scheduler.

        Args:
            handlers: Coroutine functions keyed by the domain they refresh.
            interval: Seconds between ticks while visible.
        """
        self._handlers = dict(handlers)
        self._interval = interval
        self._locks = {domain: asyncio.Lock() for domain in self._handlers}
        self._visible = asyncio.Event()
        self._visible.set()
        self._wake = asyncio.Event()
        self._stopped = False
        self._ticks = 0

    @property
    def visible(self) -> bool:
        """Return True while background refresh is allowed to run."""
        return self._visible.is_set()

    @property
    def ticks(self) -> int:
        """Return the number of completed timer ticks."""
        return self._ticks

    def in_flight(self, domain: RefreshDomain) -> bool:
        """Return True if a refresh for *domain* is outstanding."""
        return self._locks[domain].locked()

    async def refresh(self, domain: RefreshDomain) -> bool:
        """Run the handler for *domain*, after any outstanding one settles.

        Returns:
            ``True`` if the handler completed without a domain error.
        """
        lock = self._locks[domain]
        if lock.locked():
            logger.debug("refresh_waiting_for_in_flight", domain=domain.value)
        async with lock:
            try:
                await self._handlers[domain]()
            except InboxError as exc:
                logger.warning("refresh_failed", domain=domain.value, error=str(exc))
                return False
        return True

    async def tick(self) -> dict[RefreshDomain, bool]:
        """Refresh every domain once, in handler order.

        Stops early if the console is hidden part way through; domains not
        reached are left out of the result.
        """
        results: dict[RefreshDomain, bool] = {}
        for domain in self._handlers:
            if not self._visible.is_set():
                logger.debug("refresh_tick_interrupted", skipped_from=domain.value)
                break
            results[domain] = await self.refresh(domain)
        self._ticks += 1
        return results

    def set_visible(self, visible: bool) -> None:
        """Suspend or resume background refresh.

        Becoming visible skips the rest of the current wait so the next
        tick happens right away.
        """
        if visible:
            was_hidden = not self._visible.is_set()
            self._visible.set()
            if was_hidden:
                logger.debug("refresh_resumed")
                self._wake.set()
        else:
            logger.debug("refresh_suspended")
            self._visible.clear()

    def stop(self) -> None:
        """Ask :meth:`run` to return at its next wait point."""
        self._stopped = True
        self._wake.set()
        self._visible.set()

    async def run(self) -> None:
        """Tick until :meth:`stop` is called or the task is cancelled."""
        self._stopped = False
        while not self._stopped:
            await self._visible.wait()
            if self._stopped:
                break
            # A resume signal that arrives during the tick must survive it.
            self._wake.clear()
            await self.tick()
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
