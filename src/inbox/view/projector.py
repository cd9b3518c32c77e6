"""Filtered projections of canonical messages and conversation summaries."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from inbox.domain.models import ConversationSummary, RawMessage
from inbox.domain.types import ConversationState, MessageFilter, MessageState, ViewMode

MESSAGE_FILTERS: dict[MessageFilter, Callable[[RawMessage], bool]] = {
    MessageFilter.ALL: lambda m: True,
    MessageFilter.ACTIVE: lambda m: m.state not in (MessageState.ARCHIVED, MessageState.DELETED),
    MessageFilter.BOOKMARKED: lambda m: m.is_favorite,
    MessageFilter.ARCHIVED: lambda m: m.state == MessageState.ARCHIVED,
    MessageFilter.DELETED: lambda m: m.state == MessageState.DELETED,
}

VIEW_MODE_FILTERS: dict[ViewMode, Callable[[ConversationSummary], bool]] = {
    ViewMode.RECENT: lambda s: s.state == ConversationState.ACTIVE,
    ViewMode.ARCHIVED: lambda s: s.state == ConversationState.ARCHIVED,
    ViewMode.BOOKMARKED: lambda s: s.bookmarked,
}


def project(
    canonical_messages: Iterable[RawMessage],
    message_filter: MessageFilter,
) -> list[RawMessage]:
    """Return the messages visible under *message_filter*, keeping their order."""
    keep = MESSAGE_FILTERS[message_filter]
    return [m for m in canonical_messages if keep(m)]


def project_conversations(
    summaries: Iterable[ConversationSummary],
    view_mode: ViewMode,
) -> list[ConversationSummary]:
    """Return the conversations displayed in *view_mode*.

    ``recent`` and ``bookmarked`` list bookmarked conversations first, then
    newest first.  ``archived`` is ordered by recency alone.
    """
    keep = VIEW_MODE_FILTERS[view_mode]
    displayed = sorted(
        (s for s in summaries if keep(s)),
        key=lambda s: s.last_message_at,
        reverse=True,
    )
    if view_mode != ViewMode.ARCHIVED:
        displayed.sort(key=lambda s: not s.bookmarked)
    return displayed
