"""SelectionCoordinator: owner and conversation selection across refresh cycles."""

from __future__ import annotations

from collections.abc import Callable, Iterable

import structlog

from inbox.domain.models import ConversationSummary, PersistSelection
from inbox.selection.rules import (
    Pin,
    RefreshContext,
    SelectionDecision,
    SelectionKind,
    decide,
)

logger = structlog.get_logger()


class SelectionCoordinator:
    """Keeps the selected owner and conversation stable across refreshes.

    All mutations go through the transition methods below.  Whenever the
    (owner, counterparty) pair changes to a fully populated pair, one
    :class:`PersistSelection` command is handed to *on_persist*; the same
    pair is never persisted twice in a row.

    Usage::

        coordinator = SelectionCoordinator(on_persist=queue.append)
        coordinator.select_owner("+15550001111")
        coordinator.apply_refresh("+15550001111", summaries, suggested="+1555...")
        coordinator.select_conversation("+15552223333")   # user click
    """

    def __init__(
        self,
        on_persist: Callable[[PersistSelection], None] | None = None,
    ) -> None:
        self._on_persist = on_persist
        self._owner: str | None = None
        self._conversation: str | None = None
        self._pinned: Pin | None = None
        self._restore_pending = False
        self._last_persisted: tuple[str, str] | None = None
        self._last_decision: SelectionDecision | None = None

    @property
    def owner(self) -> str | None:
        """Return the selected owner identity."""
        return self._owner

    @property
    def conversation(self) -> str | None:
        """Return the selected counterparty."""
        return self._conversation

    @property
    def pinned(self) -> Pin | None:
        """Return the pinned manual selection, if any."""
        return self._pinned

    @property
    def restore_pending(self) -> bool:
        """Return True if the next refresh will be a forced restore."""
        return self._restore_pending

    @property
    def last_decision(self) -> SelectionDecision | None:
        """Return the decision made by the most recent refresh."""
        return self._last_decision

    @property
    def context(self) -> tuple[str | None, str | None]:
        """Return the current (owner, counterparty) pair."""
        return (self._owner, self._conversation)

    @property
    def kind(self) -> SelectionKind:
        """Classify the current selection."""
        if self._conversation is None:
            return SelectionKind.UNSELECTED
        pin = self._pinned
        if pin is not None and pin.owner == self._owner and pin.counterparty == self._conversation:
            return SelectionKind.PINNED_MANUAL
        return SelectionKind.AUTO_SELECTED

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def select_owner(self, owner: str) -> bool:
        """Switch to *owner*.

        Clears the pinned selection, the conversation, and the persisted
        marker.  The next refresh for the new owner is a forced restore.

        Returns:
            ``True`` if the owner actually changed.
        """
        if owner == self._owner:
            return False
        logger.info("owner_selected", previous=self._owner, owner=owner)
        self._owner = owner
        self._conversation = None
        self._pinned = None
        self._restore_pending = True
        self._last_persisted = None
        self._last_decision = None
        return True

    def select_conversation(self, counterparty: str) -> None:
        """Select *counterparty* by explicit user click.

        Clears any pinned selection.  Background refreshes keep this
        selection for as long as it stays in the list.
        """
        self._pinned = None
        self._restore_pending = False
        self._set_conversation(counterparty)

    def start_conversation(self, counterparty: str) -> None:
        """Pin *counterparty* as a user-started conversation.

        The pin survives refreshes even while the conversation has no
        summary row yet.

        Raises:
            ValueError: If no owner is selected.
        """
        if not self._owner:
            raise ValueError("Cannot start a conversation without an owner")
        self._pinned = Pin(owner=self._owner, counterparty=counterparty)
        self._restore_pending = False
        self._set_conversation(counterparty)

    def clear_conversation(self) -> None:
        """Drop the conversation selection (and any pin)."""
        self._pinned = None
        self._conversation = None

    def apply_refresh(
        self,
        owner: str,
        summaries: Iterable[ConversationSummary],
        suggested: str | None = None,
        force_restore: bool = False,
    ) -> SelectionDecision | None:
        """Re-derive the conversation selection from a summary refresh.

        Args:
            owner: The owner the refresh was issued for.
            summaries: The refreshed conversation list, in display order.
            suggested: The Record Source's suggested counterparty.
            force_restore: Allow server hints to replace the prior selection.

        Returns:
            The decision taken, or ``None`` if the refresh belongs to an
            owner that is no longer selected (its result is ignored).
        """
        if owner != self._owner:
            logger.info("stale_selection_refresh_ignored", owner=owner, current_owner=self._owner)
            return None

        ctx = RefreshContext(
            owner=owner,
            current=self._conversation,
            pinned=self._pinned,
            counterparties=tuple(s.counterparty for s in summaries),
            suggested=suggested,
            force_restore=force_restore or self._restore_pending,
        )
        decision = decide(ctx)
        self._restore_pending = False
        self._last_decision = decision
        if decision.counterparty != ctx.current:
            logger.debug(
                "conversation_reselected",
                owner=owner,
                previous=ctx.current,
                counterparty=decision.counterparty,
                rule=decision.rule.value,
            )
        self._set_conversation(decision.counterparty)
        return decision

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_conversation(self, counterparty: str | None) -> None:
        self._conversation = counterparty
        self._persist_if_changed()

    def _persist_if_changed(self) -> None:
        owner, counterparty = self._owner, self._conversation
        if not owner or not counterparty:
            return
        if self._last_persisted == (owner, counterparty):
            return
        self._last_persisted = (owner, counterparty)
        if self._on_persist is not None:
            self._on_persist(PersistSelection(owner=owner, counterparty=counterparty))
