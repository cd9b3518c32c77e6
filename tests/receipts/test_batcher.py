"""Tests for the debounced read-receipt batcher."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest
import structlog.testing

from inbox.domain.errors import TransientFetchError
from inbox.domain.models import MarkRead
from inbox.receipts.batcher import DEFAULT_DELAY_SECONDS, ReadReceiptBatcher

OWNER = "+15550000001"
ALICE = "+15551110000"
BOB = "+15552220000"


class Recorder:
    """Collects sent commands and the loop time at which they were sent."""

    def __init__(self) -> None:
        self.sent: list[tuple[float, MarkRead]] = []
        self.flushed: list[MarkRead] = []
        self.fail = False
        self.gate: asyncio.Event | None = None

    async def mark_read(self, command: MarkRead) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise TransientFetchError("mark_read", "simulated outage")
        self.sent.append((asyncio.get_running_loop().time(), command))

    async def on_flushed(self, command: MarkRead) -> None:
        self.flushed.append(command)


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()


def _batcher(recorder: Recorder, delay: float = 0.05) -> ReadReceiptBatcher:
    batcher = ReadReceiptBatcher(
        mark_read=recorder.mark_read, on_flushed=recorder.on_flushed, delay=delay
    )
    batcher.set_context(OWNER, ALICE)
    return batcher


@pytest.mark.anyio()
async def test_three_quick_visibility_events_make_one_batch(recorder: Recorder) -> None:
    batcher = _batcher(recorder, delay=DEFAULT_DELAY_SECONDS)
    loop = asyncio.get_running_loop()

    batcher.on_visible("m1", True)
    await asyncio.sleep(0.04)
    batcher.on_visible("m2", True)
    await asyncio.sleep(0.04)
    batcher.on_visible("m3", True)
    last_call = loop.time()

    await asyncio.sleep(DEFAULT_DELAY_SECONDS + 0.2)

    assert len(recorder.sent) == 1
    sent_at, command = recorder.sent[0]
    assert command == MarkRead(owner=OWNER, counterparty=ALICE, message_ids=("m1", "m2", "m3"))
    assert sent_at - last_call >= DEFAULT_DELAY_SECONDS - 0.01
    assert batcher.pending_ids == []
    assert recorder.flushed == [command]


@pytest.mark.anyio()
async def test_non_readable_messages_are_ignored(recorder: Recorder) -> None:
    batcher = _batcher(recorder)
    assert batcher.on_visible("m1", False) is False
    assert batcher.timer_active is False
    await asyncio.sleep(0.1)
    assert recorder.sent == []


@pytest.mark.anyio()
async def test_duplicate_ids_are_sent_once(recorder: Recorder) -> None:
    batcher = _batcher(recorder)
    batcher.on_visible("m1", True)
    batcher.on_visible("m1", True)
    await asyncio.sleep(0.15)
    assert [c.message_ids for _, c in recorder.sent] == [("m1",)]


@pytest.mark.anyio()
async def test_context_change_discards_pending_ids(recorder: Recorder) -> None:
    batcher = _batcher(recorder)
    batcher.on_visible("m1", True)
    batcher.set_context(OWNER, BOB)
    assert batcher.pending_ids == []
    assert batcher.timer_active is False
    await asyncio.sleep(0.15)
    assert recorder.sent == []


@pytest.mark.anyio()
async def test_ids_after_context_change_go_to_new_pair(recorder: Recorder) -> None:
    batcher = _batcher(recorder)
    batcher.on_visible("m1", True)
    batcher.set_context(OWNER, BOB)
    batcher.on_visible("m2", True)
    await asyncio.sleep(0.15)
    assert [c for _, c in recorder.sent] == [
        MarkRead(owner=OWNER, counterparty=BOB, message_ids=("m2",))
    ]


@pytest.mark.anyio()
async def test_no_context_means_nothing_is_queued(recorder: Recorder) -> None:
    batcher = ReadReceiptBatcher(mark_read=recorder.mark_read, delay=0.01)
    assert batcher.on_visible("m1", True) is False
    batcher.set_context(OWNER, None)
    assert batcher.on_visible("m1", True) is False


@pytest.mark.anyio()
async def test_failed_flush_is_not_retried(recorder: Recorder) -> None:
    recorder.fail = True
    batcher = _batcher(recorder)
    batcher.on_visible("m1", True)
    await asyncio.sleep(0.15)
    assert recorder.sent == []
    assert recorder.flushed == []
    assert batcher.pending_ids == []
    assert batcher.timer_active is False


@pytest.mark.anyio()
async def test_only_one_flush_in_flight(recorder: Recorder) -> None:
    recorder.gate = asyncio.Event()
    batcher = _batcher(recorder, delay=0.01)
    batcher.on_visible("m1", True)
    await asyncio.sleep(0.05)  # first flush is now blocked on the gate
    batcher.on_visible("m2", True)
    await asyncio.sleep(0.05)  # second timer fired and waits for the first flush
    assert recorder.sent == []
    recorder.gate.set()
    await asyncio.sleep(0.05)
    assert [c.message_ids for _, c in recorder.sent] == [("m1",), ("m2",)]


@pytest.mark.anyio()
async def test_flush_now_sends_immediately(recorder: Recorder) -> None:
    batcher = _batcher(recorder, delay=10)
    batcher.on_visible("m1", True)
    command = await batcher.flush()
    assert command is not None
    assert command.message_ids == ("m1",)
    assert batcher.timer_active is False
    assert await batcher.flush() is None


@pytest.mark.anyio()
async def test_aclose_cancels_without_flushing(recorder: Recorder) -> None:
    batcher = _batcher(recorder, delay=0.05)
    batcher.on_visible("m1", True)
    await batcher.aclose()
    await asyncio.sleep(0.1)
    assert recorder.sent == []


@pytest.mark.anyio()
async def test_on_flushed_receives_sent_command() -> None:
    mark_read = AsyncMock()
    on_flushed = AsyncMock()
    batcher = ReadReceiptBatcher(mark_read=mark_read, on_flushed=on_flushed, delay=0.01)
    batcher.set_context(OWNER, ALICE)
    batcher.on_visible("m1", True)

    await asyncio.sleep(0.05)

    expected = MarkRead(owner=OWNER, counterparty=ALICE, message_ids=("m1",))
    mark_read.assert_awaited_once_with(expected)
    on_flushed.assert_awaited_once_with(expected)


@pytest.mark.anyio()
async def test_unexpected_flush_callback_error_is_logged() -> None:
    on_flushed = AsyncMock(side_effect=RuntimeError("refresh handler bug"))
    batcher = ReadReceiptBatcher(mark_read=AsyncMock(), on_flushed=on_flushed, delay=0.01)
    batcher.set_context(OWNER, ALICE)

    with structlog.testing.capture_logs() as logs:
        batcher.on_visible("m1", True)
        await asyncio.sleep(0.05)

    failures = [entry for entry in logs if entry["event"] == "read_flush_task_failed"]
    assert len(failures) == 1
    assert isinstance(failures[0]["exc_info"], RuntimeError)
