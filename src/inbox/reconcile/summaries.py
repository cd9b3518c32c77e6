"""Derive conversation summaries from canonical messages.

Used when the Record Source has no summary rows for an owner that does have
messages, and by test fakes that only store messages.
"""

from __future__ import annotations

from collections.abc import Iterable

from inbox.domain.models import ConversationSummary, RawMessage
from inbox.domain.types import Direction, MessageState

NO_TEXT_PREVIEW = "(no text)"


def summarize_conversations(
    messages: Iterable[RawMessage],
    owner: str | None = None,
) -> list[ConversationSummary]:
    """Build one summary per (owner, counterparty) pair.

    Args:
        messages: Canonical (or raw) messages across any number of
            conversations.
        owner: When given, only conversations owned by this identity are
            returned.

    Returns:
        Summaries sorted by ``last_message_at`` descending.
    """
    latest: dict[tuple[str, str], RawMessage] = {}
    unread: dict[tuple[str, str], int] = {}

    for message in messages:
        owner_number = message.owner_number
        counterparty = message.counterparty
        if not owner_number or not counterparty:
            continue
        if owner is not None and owner_number != owner:
            continue

        key = (owner_number, counterparty)
        current = latest.get(key)
        if current is None or message.effective_time >= current.effective_time:
            latest[key] = message
        if message.direction == Direction.INBOUND and message.state == MessageState.UNREAD:
            unread[key] = unread.get(key, 0) + 1
        else:
            unread.setdefault(key, 0)

    summaries = [
        ConversationSummary(
            owner_number=owner_number,
            counterparty=counterparty,
            last_message_at=message.effective_time,
            last_message_text=message.text or NO_TEXT_PREVIEW,
            unread_count=unread[(owner_number, counterparty)],
        )
        for (owner_number, counterparty), message in latest.items()
    ]
    summaries.sort(key=lambda s: (s.last_message_at, s.counterparty), reverse=True)
    return summaries
