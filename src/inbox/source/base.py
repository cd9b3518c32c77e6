"""The Record Source boundary: where raw records come from and commands go."""

from __future__ import annotations

from typing import Protocol

from inbox.domain.models import (
    ConversationPage,
    DeliveryEvent,
    MarkRead,
    PersistSelection,
    RawMessage,
)


class RecordSource(Protocol):
    """Supplies raw snapshots and accepts commands from the console core.

    Every fetch returns an unordered, possibly duplicated,
    eventually-consistent snapshot.  Implementations raise
    :class:`~inbox.domain.errors.TransientFetchError` for retryable
    failures.
    """

    async def fetch_messages(self, owner: str, counterparty: str) -> list[RawMessage]:
        """Return the raw message rows of one conversation."""
        ...

    async def fetch_events(self, owner: str, counterparty: str) -> list[DeliveryEvent]:
        """Return the raw delivery events of one conversation."""
        ...

    async def fetch_conversations(self, owner: str) -> ConversationPage:
        """Return the conversation summaries of *owner* and a suggested selection."""
        ...

    async def fetch_numbers(self) -> list[str]:
        """Return the known owner identities, most recently used first."""
        ...

    async def persist_selection(self, command: PersistSelection) -> None:
        """Remember the selected (owner, counterparty) pair."""
        ...

    async def mark_read(self, command: MarkRead) -> None:
        """Mark a batch of messages read."""
        ...
