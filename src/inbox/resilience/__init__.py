"""Resilience infrastructure for Record Source calls."""

from inbox.resilience.retry import resilient_fetch

__all__ = [
    "resilient_fetch",
]
