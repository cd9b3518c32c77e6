"""Console session wiring and application entry point.

``ConsoleSession`` owns one instance of each core component and the
currently projected state.  Data flows Record Source -> reconcile ->
project -> selection; visibility signals flow into the read-receipt
batcher, whose flushes trigger a conversation refresh.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Refresh scheduling** for messages, events, conversations and numbers
- **HTTP Record Source** with retries for transient failures
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

import structlog

from inbox.config import Settings, get_settings
from inbox.domain.errors import InboxError
from inbox.domain.models import (
    ConversationSummary,
    DeliveryEvent,
    MarkRead,
    PersistSelection,
    RawMessage,
    is_readable_candidate,
)
from inbox.domain.types import MessageFilter, RefreshDomain, ViewMode
from inbox.events.status import annotate
from inbox.observability.metrics import (
    DUPLICATES_COLLAPSED,
    REFRESH_FAILURES,
    STALE_REFRESHES_DISCARDED,
)
from inbox.receipts.batcher import ReadReceiptBatcher
from inbox.reconcile.engine import reconcile
from inbox.reconcile.summaries import summarize_conversations
from inbox.refresh.scheduler import RefreshScheduler
from inbox.selection.coordinator import SelectionCoordinator
from inbox.selection.rules import SelectionDecision
from inbox.source.base import RecordSource
from inbox.source.client import HttpRecordSource
from inbox.view.projector import project, project_conversations
from inbox.view.state import ViewState

logger = structlog.get_logger()


def configure_logging(production: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service="messaging-console")


class ConsoleSession:
    """One console's view of the Record Source.

    All state mutations happen on the event loop that drives the session.
    Refreshes capture the (owner, counterparty) pair before awaiting the
    source and drop their result if the pair changed in the meantime.
    Failures are reported through :attr:`status` and leave the previous
    state untouched.
    """

    def __init__(self, source: RecordSource, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self._source = source
        self._settings = settings
        self._merge_window = timedelta(milliseconds=settings.merge_window_ms)
        self._pending_persists: list[PersistSelection] = []

        self.selection = SelectionCoordinator(on_persist=self._pending_persists.append)
        self.view = ViewState()
        self.batcher = ReadReceiptBatcher(
            mark_read=self._send_mark_read,
            on_flushed=self._after_read_flush,
            delay=settings.read_debounce_ms / 1000,
        )
        self.scheduler = RefreshScheduler(
            {
                RefreshDomain.NUMBERS: self.refresh_numbers,
                RefreshDomain.CONVERSATIONS: self.refresh_conversations,
                RefreshDomain.MESSAGES: self.refresh_messages,
                RefreshDomain.EVENTS: self.refresh_events,
            },
            interval=settings.refresh_interval_seconds,
        )

        self.numbers: list[str] = []
        self.summaries: list[ConversationSummary] = []
        self.conversations: list[ConversationSummary] = []
        self.canonical_messages: list[RawMessage] = []
        self.events: list[DeliveryEvent] = []
        self.status = ""

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    @property
    def visible_messages(self) -> list[RawMessage]:
        """Canonical messages under the active message filter."""
        return project(self.canonical_messages, self.view.message_filter)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Load known numbers and select the configured or first owner."""
        if self._settings.default_owner:
            await self.select_owner(self._settings.default_owner)
        await self.scheduler.refresh(RefreshDomain.NUMBERS)

    async def select_owner(self, owner: str) -> None:
        """Switch owner identity and reload its conversations."""
        if not self.selection.select_owner(owner):
            return
        self.summaries = []
        self.conversations = []
        self._reset_conversation_state()
        await self.scheduler.refresh(RefreshDomain.CONVERSATIONS)

    async def select_conversation(self, counterparty: str) -> None:
        """Select a conversation from the list (explicit user click)."""
        previous = self.selection.conversation
        self.selection.select_conversation(counterparty)
        await self._after_selection_change(previous)

    async def start_conversation(self, counterparty: str) -> None:
        """Open a new conversation that may not have any messages yet."""
        previous = self.selection.conversation
        self.selection.start_conversation(counterparty)
        await self._after_selection_change(previous)

    def set_filter(self, message_filter: MessageFilter) -> None:
        """Activate a message filter (clears the multi-select)."""
        self.view.set_filter(message_filter)

    async def set_view_mode(self, view_mode: ViewMode) -> None:
        """Switch the conversation list's view mode."""
        self.view.set_view_mode(view_mode)
        previous = self.selection.conversation
        if self.view.demote_if_empty(self.summaries):
            self.selection.clear_conversation()
        self.conversations = project_conversations(self.summaries, self.view.view_mode)
        await self._after_selection_change(previous)

    def toggle_message_selection(self, message_id: str) -> bool:
        """Flip one message in the multi-select."""
        return self.view.toggle_message(message_id)

    def message_visible(self, message_id: str) -> bool:
        """Viewport callback: *message_id* scrolled into view.

        Returns:
            ``True`` if the message was queued to be marked read.
        """
        owner, counterparty = self.selection.context
        message = next((m for m in self.canonical_messages if m.id == message_id), None)
        readable = message is not None and is_readable_candidate(message, owner, counterparty)
        return self.batcher.on_visible(message_id, readable)

    def set_visible(self, visible: bool) -> None:
        """Foreground/background signal from the hosting context."""
        self.scheduler.set_visible(visible)

    async def aclose(self) -> None:
        """Stop background work owned by the session."""
        self.scheduler.stop()
        await self.batcher.aclose()

    # ------------------------------------------------------------------
    # Refreshes
    # ------------------------------------------------------------------

    async def refresh_numbers(self) -> bool:
        """Reload known owner identities; select the first if none is selected."""
        try:
            numbers = await self._source.fetch_numbers()
        except InboxError as exc:
            self._report_failure(RefreshDomain.NUMBERS, exc)
            return False
        self.numbers = numbers
        if self.selection.owner is None and numbers:
            await self.select_owner(numbers[0])
        return True

    async def refresh_conversations(self, force_restore: bool = False) -> SelectionDecision | None:
        """Reload conversation summaries and re-derive the selection."""
        owner = self.selection.owner
        if not owner:
            return None
        try:
            page = await self._source.fetch_conversations(owner)
        except InboxError as exc:
            self._report_failure(RefreshDomain.CONVERSATIONS, exc)
            return None
        if self.selection.owner != owner:
            self._discard_stale(RefreshDomain.CONVERSATIONS, owner=owner)
            return None

        summaries = [s for s in page.conversations if s.owner_number == owner]
        if not summaries and self.canonical_messages:
            summaries = summarize_conversations(self.canonical_messages, owner)

        previous = self.selection.conversation
        self.summaries = summaries
        if self.view.demote_if_empty(summaries):
            self.selection.clear_conversation()
        self.conversations = project_conversations(summaries, self.view.view_mode)
        decision = self.selection.apply_refresh(
            owner,
            self.conversations,
            suggested=page.selected_counterparty,
            force_restore=force_restore,
        )
        self.status = ""
        await self._after_selection_change(previous)
        return decision

    async def refresh_messages(self) -> bool:
        """Reload and reconcile the selected conversation's messages."""
        owner, counterparty = self.selection.context
        if not owner or not counterparty:
            self.canonical_messages = []
            return False
        try:
            raw = await self._source.fetch_messages(owner, counterparty)
        except InboxError as exc:
            self._report_failure(RefreshDomain.MESSAGES, exc)
            return False
        if self.selection.context != (owner, counterparty):
            self._discard_stale(RefreshDomain.MESSAGES, owner=owner, counterparty=counterparty)
            return False

        canonical = reconcile(raw, self._merge_window)
        collapsed = len(raw) - len(canonical)
        if collapsed:
            DUPLICATES_COLLAPSED.inc(collapsed)
            logger.debug("duplicates_collapsed", counterparty=counterparty, collapsed=collapsed)
        self.canonical_messages = canonical
        return True

    async def refresh_events(self) -> bool:
        """Reload delivery events and flag status transitions."""
        owner, counterparty = self.selection.context
        if not owner or not counterparty:
            self.events = []
            return False
        try:
            events = await self._source.fetch_events(owner, counterparty)
        except InboxError as exc:
            self._report_failure(RefreshDomain.EVENTS, exc)
            return False
        if self.selection.context != (owner, counterparty):
            self._discard_stale(RefreshDomain.EVENTS, owner=owner, counterparty=counterparty)
            return False
        self.events = annotate(events)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _after_selection_change(self, previous: str | None) -> None:
        await self._drain_persists()
        if self.selection.conversation == previous:
            return
        self._reset_conversation_state()
        await self._reload_conversation()

    async def _reload_conversation(self) -> None:
        await self.scheduler.refresh(RefreshDomain.MESSAGES)
        await self.scheduler.refresh(RefreshDomain.EVENTS)

    def _reset_conversation_state(self) -> None:
        self.canonical_messages = []
        self.events = []
        self.view.clear_selection()
        self.batcher.set_context(*self.selection.context)

    async def _drain_persists(self) -> None:
        while self._pending_persists:
            command = self._pending_persists.pop(0)
            try:
                await self._source.persist_selection(command)
            except InboxError as exc:
                logger.warning(
                    "persist_selection_failed",
                    owner=command.owner,
                    counterparty=command.counterparty,
                    error=str(exc),
                )
                self.status = f"Could not save selection: {exc}"

    async def _send_mark_read(self, command: MarkRead) -> None:
        try:
            await self._source.mark_read(command)
        except InboxError as exc:
            self.status = f"Could not mark messages read: {exc}"
            raise

    async def _after_read_flush(self, command: MarkRead) -> None:
        await self.scheduler.refresh(RefreshDomain.CONVERSATIONS)

    def _report_failure(self, domain: RefreshDomain, exc: InboxError) -> None:
        REFRESH_FAILURES.labels(domain=domain.value).inc()
        logger.warning("refresh_failed", domain=domain.value, error=str(exc))
        self.status = f"Refreshing {domain.value} failed: {exc}"

    def _discard_stale(self, domain: RefreshDomain, **context: str) -> None:
        STALE_REFRESHES_DISCARDED.labels(domain=domain.value).inc()
        logger.info("stale_refresh_discarded", domain=domain.value, **context)


async def main() -> None:
    """Run a console session against the configured Record Source.

    1. Load settings and configure logging
    2. Select the default (or first known) owner
    3. Refresh on a timer until cancelled
    """
    settings = get_settings()
    configure_logging(production=settings.production)
    logger.info("console_starting", record_source_url=settings.record_source_url)

    async with HttpRecordSource(
        settings.record_source_url,
        timeout=settings.request_timeout_seconds,
        attempts=settings.fetch_attempts,
    ) as source:
        session = ConsoleSession(source, settings)
        await session.start()
        try:
            await session.scheduler.run()
        finally:
            await session.aclose()


def run() -> None:
    """Console-script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("console_stopped")
