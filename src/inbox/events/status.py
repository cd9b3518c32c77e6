"""Flag delivery events whose status differs from the previous one seen."""

from __future__ import annotations

from collections.abc import Iterable

from inbox.domain.models import DeliveryEvent


def annotate(events: Iterable[DeliveryEvent]) -> list[DeliveryEvent]:
    """Return *events* in time order with ``status_changed`` set.

    An event is flagged when it carries a status that differs from the last
    non-null status seen for the same message.  The first status observed
    for a message is never flagged.
    """
    ordered = sorted(events, key=lambda e: (e.effective_time, e.id))
    last_status: dict[str, str] = {}
    annotated: list[DeliveryEvent] = []
    for event in ordered:
        changed = False
        if event.status is not None:
            key = event.message_key
            previous = last_status.get(key)
            if previous != event.status:
                changed = previous is not None
                last_status[key] = event.status
        annotated.append(event.model_copy(update={"status_changed": changed}))
    return annotated
