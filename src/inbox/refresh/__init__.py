"""Background refresh scheduling."""

from inbox.refresh.scheduler import RefreshHandler, RefreshScheduler

__all__ = [
    "RefreshHandler",
    "RefreshScheduler",
]
