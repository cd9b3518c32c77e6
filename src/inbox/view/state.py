"""Mutable view state: active message filter, view mode, and multi-select."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from inbox.domain.models import ConversationSummary
from inbox.domain.types import MessageFilter, ViewMode
from inbox.view.projector import project_conversations

logger = structlog.get_logger()


class ViewState:
    """Tracks which filter and view mode are active.

    Exactly one message filter is active at a time.  Switching filters
    clears the multi-select.  Entering the ``bookmarked`` view mode forces
    the ``bookmarked`` message filter; leaving it restores ``active``.
    """

    def __init__(
        self,
        message_filter: MessageFilter = MessageFilter.ACTIVE,
        view_mode: ViewMode = ViewMode.RECENT,
    ) -> None:
        self._filter = message_filter
        self._mode = view_mode
        self._selected: set[str] = set()

    @property
    def message_filter(self) -> MessageFilter:
        """Return the active message filter."""
        return self._filter

    @property
    def view_mode(self) -> ViewMode:
        """Return the active conversation view mode."""
        return self._mode

    @property
    def selected_message_ids(self) -> frozenset[str]:
        """Return the ids in the current multi-select."""
        return frozenset(self._selected)

    def set_filter(self, message_filter: MessageFilter) -> None:
        """Activate *message_filter* and clear the multi-select."""
        self._filter = message_filter
        self._selected.clear()

    def set_view_mode(self, view_mode: ViewMode) -> None:
        """Switch the conversation view mode, adjusting the message filter."""
        previous = self._mode
        self._mode = view_mode
        if view_mode == ViewMode.BOOKMARKED:
            self.set_filter(MessageFilter.BOOKMARKED)
        elif previous == ViewMode.BOOKMARKED:
            self.set_filter(MessageFilter.ACTIVE)

    def toggle_message(self, message_id: str) -> bool:
        """Flip *message_id* in the multi-select.

        Returns:
            ``True`` if the message is selected afterwards.
        """
        if message_id in self._selected:
            self._selected.discard(message_id)
            return False
        self._selected.add(message_id)
        return True

    def clear_selection(self) -> None:
        """Empty the multi-select."""
        self._selected.clear()

    def demote_if_empty(self, summaries: Iterable[ConversationSummary]) -> bool:
        """Fall back to ``recent`` when the active mode has nothing to show.

        Demotion only happens if some other mode's list is non-empty, so an
        owner without any conversations stays where it is.

        Returns:
            ``True`` if the view mode was changed.  The caller is expected to
            clear its conversation selection in that case.
        """
        if self._mode == ViewMode.RECENT:
            return False
        summaries = list(summaries)
        if project_conversations(summaries, self._mode):
            return False
        others = (mode for mode in ViewMode if mode != self._mode)
        if not any(project_conversations(summaries, mode) for mode in others):
            return False
        logger.info("view_mode_demoted", from_mode=self._mode.value, to_mode=ViewMode.RECENT.value)
        self.set_view_mode(ViewMode.RECENT)
        return True
