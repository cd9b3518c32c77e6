"""Owner and conversation selection continuity across refresh cycles."""

from inbox.selection.coordinator import SelectionCoordinator
from inbox.selection.rules import (
    SELECTION_RULES,
    Pin,
    RefreshContext,
    SelectionDecision,
    SelectionKind,
    SelectionRule,
    decide,
)

__all__ = [
    "SELECTION_RULES",
    "Pin",
    "RefreshContext",
    "SelectionCoordinator",
    "SelectionDecision",
    "SelectionKind",
    "SelectionRule",
    "decide",
]
