"""Tests for the HTTP Record Source, using an httpx mock transport."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from inbox.domain.errors import RecordSourceError, TransientFetchError
from inbox.domain.models import (
    ConversationSummary,
    DeliveryEvent,
    MarkRead,
    PersistSelection,
    RawMessage,
)
from inbox.domain.types import ConversationState, Direction, MessageState
from inbox.reconcile.engine import reconcile
from inbox.source.client import HttpRecordSource, parse_records

OWNER = "+15550000001"
ALICE = "+15551110000"

Handler = Callable[[httpx.Request], httpx.Response]


def _source(handler: Handler, attempts: int = 2) -> HttpRecordSource:
    client = httpx.AsyncClient(
        base_url="http://console.test", transport=httpx.MockTransport(handler)
    )
    return HttpRecordSource("http://console.test", attempts=attempts, retry_wait=0.001, client=client)


class TestFetches:
    @pytest.mark.anyio()
    async def test_fetch_messages_parses_wire_rows(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "messages": [
                        {
                            "id": "m1",
                            "telnyxMessageId": "tx-1",
                            "direction": "inbound",
                            "from": ALICE,
                            "to": OWNER,
                            "text": "hi",
                            "createdAt": "2026-02-10T12:00:00Z",
                        },
                        {
                            "id": "m2",
                            "direction": "outbound",
                            "from": OWNER,
                            "to": ALICE,
                            "text": "yo",
                            "createdAt": 1770724860000,
                            "readAt": "2026-02-10T12:02:00Z",
                        },
                    ]
                },
            )

        messages = await _source(handler).fetch_messages(OWNER, ALICE)

        assert seen[0].url.path == "/conversations/history"
        assert seen[0].url.params["owner"] == OWNER
        assert seen[0].url.params["counterparty"] == ALICE
        assert [m.id for m in messages] == ["m1", "m2"]
        assert messages[0].provider_message_id == "tx-1"
        assert messages[0].state == MessageState.UNREAD
        assert messages[1].direction == Direction.OUTBOUND
        assert messages[1].state == MessageState.READ

    @pytest.mark.anyio()
    async def test_fetch_conversations_reads_suggestion(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/conversations"
            return httpx.Response(
                200,
                json={
                    "conversations": [
                        {
                            "ownerNumber": OWNER,
                            "counterparty": ALICE,
                            "lastMessageAt": "2026-02-10T12:00:00Z",
                            "lastMessageText": None,
                            "unreadCount": 2,
                            "state": "ACTIVE",
                            "bookmarked": True,
                        }
                    ],
                    "selectedCounterparty": ALICE,
                },
            )

        page = await _source(handler).fetch_conversations(OWNER)

        assert page.selected_counterparty == ALICE
        assert len(page.conversations) == 1
        summary = page.conversations[0]
        assert summary.unread_count == 2
        assert summary.bookmarked is True
        assert summary.last_message_text == ""

    @pytest.mark.anyio()
    async def test_fetch_events_uses_events_route(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/messages/events"
            return httpx.Response(
                200,
                json={"events": [{"id": "e1", "status": "delivered", "relatedMessageRef": "m1"}]},
            )

        events = await _source(handler).fetch_events(OWNER, ALICE)
        assert events[0].message_id == "m1"
        assert events[0].message_key == "m1"

    @pytest.mark.anyio()
    async def test_fetch_numbers_accepts_objects_and_strings(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"numbers": [{"number": OWNER}, "+15550000002", OWNER, {"number": ""}]},
            )

        assert await _source(handler).fetch_numbers() == [OWNER, "+15550000002"]

    @pytest.mark.anyio()
    async def test_missing_keys_mean_empty(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={})

        source = _source(handler)
        assert await source.fetch_messages(OWNER, ALICE) == []
        page = await source.fetch_conversations(OWNER)
        assert page.conversations == []
        assert page.selected_counterparty is None


class TestCommands:
    @pytest.mark.anyio()
    async def test_mark_read_body(self) -> None:
        bodies: list[dict[str, object]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/conversations/mark-read"
            bodies.append(json.loads(request.content))
            return httpx.Response(204)

        await _source(handler).mark_read(
            MarkRead(owner=OWNER, counterparty=ALICE, message_ids=("m1", "m2"))
        )
        assert bodies == [{"owner": OWNER, "counterparty": ALICE, "ids": ["m1", "m2"]}]

    @pytest.mark.anyio()
    async def test_persist_selection_body(self) -> None:
        bodies: list[dict[str, object]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/conversations/selection"
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True})

        await _source(handler).persist_selection(PersistSelection(owner=OWNER, counterparty=ALICE))
        assert bodies == [{"owner": OWNER, "counterparty": ALICE}]


class TestFailures:
    @pytest.mark.anyio()
    async def test_server_errors_are_retried_then_raised(self) -> None:
        calls: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(503)

        with pytest.raises(TransientFetchError):
            await _source(handler, attempts=3).fetch_numbers()
        assert len(calls) == 3

    @pytest.mark.anyio()
    async def test_server_error_then_success(self) -> None:
        calls: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            if len(calls) == 1:
                return httpx.Response(500)
            return httpx.Response(200, json={"numbers": [OWNER]})

        assert await _source(handler).fetch_numbers() == [OWNER]

    @pytest.mark.anyio()
    async def test_client_errors_are_not_retried(self) -> None:
        calls: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(400, text="owner is required")

        with pytest.raises(RecordSourceError) as excinfo:
            await _source(handler, attempts=3).fetch_conversations("")
        assert excinfo.value.status_code == 400
        assert len(calls) == 1

    @pytest.mark.anyio()
    async def test_transport_errors_are_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransientFetchError, match="fetch_numbers"):
            await _source(handler).fetch_numbers()

    @pytest.mark.anyio()
    async def test_non_json_body_is_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        with pytest.raises(TransientFetchError):
            await _source(handler, attempts=1).fetch_numbers()

    @pytest.mark.anyio()
    async def test_owned_client_is_closed(self) -> None:
        source = HttpRecordSource("http://console.test")
        async with source:
            pass
        assert source._client.is_closed


def test_parse_records_keeps_messy_messages() -> None:
    items = [
        {"id": "m1", "direction": "inbound", "from": ALICE, "to": OWNER, "text": "hi",
         "createdAt": "2026-02-10T12:00:00Z"},
        {"id": "m2", "direction": "OUTBOUND", "from": OWNER, "to": ALICE, "text": "yo",
         "createdAt": "2026-02-10T12:01:00Z"},
        {"id": "m3", "direction": "sent", "from": ALICE, "to": OWNER, "text": 42,
         "createdAt": "2026-02-10T12:02:00Z"},
        "not an object",
    ]

    records = parse_records(RawMessage, items, "message")

    assert [r.id for r in reconcile(records)] == ["m1", "m2", "m3"]
    assert records[1].direction == Direction.OUTBOUND
    assert records[2].direction == Direction.INBOUND
    assert records[2].text == "42"


def test_parse_records_keeps_messy_summaries_and_events() -> None:
    summaries = parse_records(
        ConversationSummary,
        [{"ownerNumber": OWNER, "counterparty": ALICE, "state": "active", "unreadCount": "x"}],
        "conversation",
    )
    events = parse_records(
        DeliveryEvent,
        [{"status": "delivered", "relatedMessageRef": "m1", "createdAt": "2026-02-10T12:00:00Z"}],
        "event",
    )

    assert len(summaries) == 1
    assert summaries[0].state == ConversationState.ACTIVE
    assert summaries[0].unread_count == 0
    assert len(events) == 1
    assert events[0].id
    assert events[0].message_key == "m1"
