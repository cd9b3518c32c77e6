"""Shared pytest fixtures for the messaging console test suite."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from inbox.config import Settings
from inbox.domain.errors import TransientFetchError
from inbox.domain.models import (
    ConversationPage,
    ConversationSummary,
    DeliveryEvent,
    MarkRead,
    PersistSelection,
    RawMessage,
)
from inbox.domain.types import Direction

OWNER = "+15550000001"
ALICE = "+15551110000"
BOB = "+15552220000"
T0 = datetime(2026, 2, 10, 12, 0, tzinfo=UTC)


@pytest.fixture()
def anyio_backend() -> str:
    """Run anyio-marked tests on asyncio only."""
    return "asyncio"


@pytest.fixture()
def make_message() -> Callable[..., RawMessage]:
    """Factory for raw messages offset in milliseconds from ``T0``."""

    def _make(
        offset_ms: int = 0,
        *,
        id: str | None = None,
        provider_message_id: str | None = None,
        direction: Direction = Direction.INBOUND,
        from_number: str = ALICE,
        to_number: str = OWNER,
        text: str | None = "hello",
        **extra: Any,
    ) -> RawMessage:
        return RawMessage(
            id=id,
            provider_message_id=provider_message_id,
            direction=direction,
            from_number=from_number,
            to_number=to_number,
            text=text,
            created_at=T0 + timedelta(milliseconds=offset_ms),
            **extra,
        )

    return _make


@pytest.fixture()
def make_summary() -> Callable[..., ConversationSummary]:
    """Factory for conversation summaries offset in minutes from ``T0``."""

    def _make(counterparty: str, minutes: int = 0, **extra: Any) -> ConversationSummary:
        return ConversationSummary(
            owner_number=extra.pop("owner_number", OWNER),
            counterparty=counterparty,
            last_message_at=T0 + timedelta(minutes=minutes),
            last_message_text=extra.pop("last_message_text", "hi"),
            **extra,
        )

    return _make


class FakeRecordSource:
    """In-memory Record Source that records every command it receives.

    Operations listed in ``fail`` raise ``TransientFetchError``.  Operations
    with an entry in ``gates`` block until that event is set.
    """

    def __init__(self) -> None:
        self.messages: dict[tuple[str, str], list[RawMessage]] = {}
        self.events: dict[tuple[str, str], list[DeliveryEvent]] = {}
        self.pages: dict[str, ConversationPage] = {}
        self.numbers: list[str] = []
        self.persisted: list[PersistSelection] = []
        self.marked: list[MarkRead] = []
        self.fail: set[str] = set()
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[str] = []

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        gate = self.gates.get(operation)
        if gate is not None:
            await gate.wait()
        if operation in self.fail:
            raise TransientFetchError(operation, "simulated outage")

    async def fetch_messages(self, owner: str, counterparty: str) -> list[RawMessage]:
        await self._enter("fetch_messages")
        return list(self.messages.get((owner, counterparty), []))

    async def fetch_events(self, owner: str, counterparty: str) -> list[DeliveryEvent]:
        await self._enter("fetch_events")
        return list(self.events.get((owner, counterparty), []))

    async def fetch_conversations(self, owner: str) -> ConversationPage:
        await self._enter("fetch_conversations")
        return self.pages.get(owner, ConversationPage())

    async def fetch_numbers(self) -> list[str]:
        await self._enter("fetch_numbers")
        return list(self.numbers)

    async def persist_selection(self, command: PersistSelection) -> None:
        await self._enter("persist_selection")
        self.persisted.append(command)

    async def mark_read(self, command: MarkRead) -> None:
        await self._enter("mark_read")
        self.marked.append(command)


@pytest.fixture()
def fake_source() -> FakeRecordSource:
    """An empty in-memory Record Source."""
    return FakeRecordSource()


@pytest.fixture()
def fast_settings() -> Settings:
    """Settings with short timers so async tests finish quickly."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        read_debounce_ms=50,
        refresh_interval_seconds=0.05,
    )
