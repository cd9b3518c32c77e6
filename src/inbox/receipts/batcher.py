"""Debounced batching of read receipts for visible messages.

Messages report visibility one at a time as they scroll into view.  Rather
than issuing one mark-read call per message, ids are collected and sent as
a single batch once no new readable message has appeared for ``delay``
seconds.  Pending ids belong to one (owner, counterparty) pair and are
discarded if that pair changes before the batch is sent.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from inbox.domain.errors import FlushConflictError, InboxError
from inbox.domain.models import MarkRead
from inbox.observability.metrics import READ_FLUSHES_DISCARDED, READ_RECEIPTS_FLUSHED

logger = structlog.get_logger()

DEFAULT_DELAY_SECONDS = 0.3

MarkReadSender = Callable[[MarkRead], Awaitable[None]]


class ReadReceiptBatcher:
    """Accumulates visible, readable message ids and flushes them in one batch.

    A single-shot timer is (re)started on every new readable id; it is
    replaced, never stacked.  Only one flush runs at a time.

    Must be used from within a running event loop.
    """

    def __init__(
        self,
        mark_read: MarkReadSender,
        on_flushed: MarkReadSender | None = None,
        delay: float = DEFAULT_DELAY_SECONDS,
    ) -> None:
        """Initialize the batcher.

        Args:
            mark_read: Coroutine function that sends a :class:`MarkRead`
                command to the Record Source.
            on_flushed: Coroutine function awaited after a successful send,
                typically a conversation-summary refresh.
            delay: Quiet period in seconds before pending ids are sent.
        """
        self._mark_read = mark_read
        self._on_flushed = on_flushed
        self._delay = delay
        self._owner: str | None = None
        self._counterparty: str | None = None
        # dict used as an insertion-ordered set
        self._pending: dict[str, None] = {}
        self._pending_context: tuple[str, str] | None = None
        self._timer: asyncio.Task[None] | None = None
        self._flush_lock = asyncio.Lock()

    @property
    def context(self) -> tuple[str | None, str | None]:
        """Return the (owner, counterparty) pair visibility events belong to."""
        return (self._owner, self._counterparty)

    @property
    def pending_ids(self) -> list[str]:
        """Return the ids waiting to be flushed, in arrival order."""
        return list(self._pending)

    @property
    def timer_active(self) -> bool:
        """Return True while a flush is scheduled but has not started."""
        return self._timer is not None and not self._timer.done()

    def set_context(self, owner: str | None, counterparty: str | None) -> None:
        """Bind visibility events to a new (owner, counterparty) pair.

        Any pending ids for the previous pair are discarded unflushed.
        """
        if (owner, counterparty) == (self._owner, self._counterparty):
            return
        if self._pending and self._pending_context is not None:
            conflict = FlushConflictError(self._pending_context, (owner, counterparty))
            logger.info(
                "read_batch_discarded",
                reason=str(conflict),
                discarded=len(self._pending),
            )
            READ_FLUSHES_DISCARDED.inc()
        self._cancel_timer()
        self._pending.clear()
        self._pending_context = None
        self._owner = owner
        self._counterparty = counterparty

    def on_visible(self, message_id: str, is_readable_candidate: bool) -> bool:
        """Record that *message_id* became visible.

        Args:
            message_id: The canonical message id.
            is_readable_candidate: Whether the message is inbound, addressed
                to the current pair, and unread.

        Returns:
            ``True`` if the id was queued for the next flush.
        """
        if not is_readable_candidate or not message_id:
            return False
        if not self._owner or not self._counterparty:
            return False
        if self._pending_context is None:
            self._pending_context = (self._owner, self._counterparty)
        self._pending[message_id] = None
        self._restart_timer()
        return True

    async def flush(self) -> MarkRead | None:
        """Send pending ids immediately.

        Returns:
            The command that was sent, or ``None`` if nothing was sent.
        """
        self._cancel_timer()
        return await self._flush()

    async def aclose(self) -> None:
        """Cancel the pending timer without flushing."""
        timer = self._timer
        self._cancel_timer()
        if timer is not None:
            try:
                await timer
            except asyncio.CancelledError:
                pass

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _restart_timer(self) -> None:
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._fire_after_delay())
        self._timer.add_done_callback(self._log_timer_failure)

    @staticmethod
    def _log_timer_failure(task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.exception("read_flush_task_failed", exc_info=exc)

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _fire_after_delay(self) -> None:
        await asyncio.sleep(self._delay)
        # Detach so a new visibility event cannot cancel an in-flight send.
        self._timer = None
        await self._flush()

    async def _flush(self) -> MarkRead | None:
        async with self._flush_lock:
            if not self._pending:
                return None
            try:
                command = self._take_batch()
            except FlushConflictError as exc:
                logger.info("read_batch_discarded", reason=str(exc))
                READ_FLUSHES_DISCARDED.inc()
                return None

            try:
                await self._mark_read(command)
            except InboxError as exc:
                # Not retried: the ids resurface on the next visibility pass.
                logger.warning(
                    "read_flush_failed",
                    owner=command.owner,
                    counterparty=command.counterparty,
                    count=len(command.message_ids),
                    error=str(exc),
                )
                return None

            READ_RECEIPTS_FLUSHED.inc(len(command.message_ids))
            logger.info(
                "read_batch_flushed",
                owner=command.owner,
                counterparty=command.counterparty,
                count=len(command.message_ids),
            )
            if self._on_flushed is not None:
                await self._on_flushed(command)
            return command

    def _take_batch(self) -> MarkRead:
        """Snapshot and clear the pending set.

        Raises:
            FlushConflictError: If the ids were gathered for a pair that is
                no longer current.
        """
        gathered_for = self._pending_context
        current = (self._owner, self._counterparty)
        ids = tuple(self._pending)
        self._pending.clear()
        self._pending_context = None
        if gathered_for is None or gathered_for != current:
            raise FlushConflictError(gathered_for or ("", ""), current)
        owner, counterparty = gathered_for
        return MarkRead(owner=owner, counterparty=counterparty, message_ids=ids)
