"""Delivery-event processing."""

from inbox.events.status import annotate

__all__ = ["annotate"]
