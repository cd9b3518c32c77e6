"""Tests for delivery-event status change detection."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from inbox.domain.models import DeliveryEvent
from inbox.events.status import annotate

T0 = datetime(2026, 2, 10, 12, 0, tzinfo=UTC)


def _event(
    event_id: str, seconds: int, status: str | None, provider_id: str | None = "p1"
) -> DeliveryEvent:
    return DeliveryEvent(
        id=event_id,
        status=status,
        provider_message_id=provider_id,
        created_at=T0 + timedelta(seconds=seconds),
    )


class TestAnnotate:
    def test_queued_queued_delivered(self) -> None:
        events = [_event("e1", 1, "queued"), _event("e2", 2, "queued"), _event("e3", 3, "delivered")]
        assert [e.status_changed for e in annotate(events)] == [False, False, True]

    def test_first_status_is_never_a_change(self) -> None:
        assert annotate([_event("e1", 1, "delivered")])[0].status_changed is False

    def test_input_order_does_not_matter(self) -> None:
        events = [_event("e3", 3, "delivered"), _event("e1", 1, "queued"), _event("e2", 2, "sent")]
        result = annotate(events)
        assert [e.id for e in result] == ["e1", "e2", "e3"]
        assert [e.status_changed for e in result] == [False, True, True]

    def test_null_status_is_skipped_and_not_remembered(self) -> None:
        events = [_event("e1", 1, "queued"), _event("e2", 2, None), _event("e3", 3, "sent")]
        assert [e.status_changed for e in annotate(events)] == [False, False, True]

    def test_messages_are_tracked_separately(self) -> None:
        events = [
            _event("e1", 1, "queued", provider_id="p1"),
            _event("e2", 2, "sent", provider_id="p2"),
            _event("e3", 3, "sent", provider_id="p1"),
        ]
        assert [e.status_changed for e in annotate(events)] == [False, False, True]

    def test_falls_back_to_message_id_then_event_id(self) -> None:
        a = DeliveryEvent(id="e1", status="queued", message_id="m1", created_at=T0)
        b = DeliveryEvent(
            id="e2", status="sent", message_id="m1", created_at=T0 + timedelta(seconds=1)
        )
        c = DeliveryEvent(id="e3", status="failed", created_at=T0 + timedelta(seconds=2))
        assert [e.status_changed for e in annotate([a, b, c])] == [False, True, False]

    def test_ties_break_on_event_id(self) -> None:
        events = [_event("b", 1, "sent"), _event("a", 1, "queued")]
        result = annotate(events)
        assert [e.id for e in result] == ["a", "b"]
        assert result[1].status_changed is True

    def test_inputs_are_not_mutated(self) -> None:
        events = [_event("e1", 1, "queued"), _event("e2", 2, "sent")]
        annotate(events)
        assert all(e.status_changed is False for e in events)

    def test_empty(self) -> None:
        assert annotate([]) == []
