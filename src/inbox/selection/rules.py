"""Decision table for which conversation stays selected after a refresh.

Rules are evaluated in order; the first one that yields a counterparty
wins.  Precedence: pinned > sticky prior > server-suggested > first listed
> keep-on-empty > unselected.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum


class SelectionRule(StrEnum):
    """The rule that produced a selection decision."""

    PINNED = "pinned"
    STICKY = "sticky"
    SUGGESTED = "suggested"
    FIRST = "first"
    KEEP_ON_EMPTY = "keep_on_empty"
    UNSELECTED = "unselected"


class SelectionKind(StrEnum):
    """Coarse selection state reported to the console."""

    UNSELECTED = "unselected"
    AUTO_SELECTED = "auto_selected"
    PINNED_MANUAL = "pinned_manual"


@dataclass(frozen=True)
class Pin:
    """A conversation started explicitly by the user, possibly still empty."""

    owner: str
    counterparty: str


@dataclass(frozen=True)
class RefreshContext:
    """Everything a selection rule may look at.

    Attributes:
        owner: The owner identity the refresh was issued for.
        current: The counterparty selected before the refresh.
        pinned: The pinned manual selection, if any.
        counterparties: Counterparties in the refreshed list, in display order.
        suggested: The Record Source's suggested counterparty.
        force_restore: Whether the refresh may override the prior selection.
    """

    owner: str
    current: str | None
    pinned: Pin | None
    counterparties: tuple[str, ...]
    suggested: str | None = None
    force_restore: bool = False


@dataclass(frozen=True)
class SelectionDecision:
    """Outcome of evaluating the decision table."""

    rule: SelectionRule
    counterparty: str | None


def _pinned(ctx: RefreshContext) -> str | None:
    pin = ctx.pinned
    if pin is None or pin.owner != ctx.owner:
        return None
    if not ctx.force_restore or ctx.current == pin.counterparty:
        return pin.counterparty
    return None


def _sticky(ctx: RefreshContext) -> str | None:
    if ctx.force_restore or not ctx.current:
        return None
    return ctx.current if ctx.current in ctx.counterparties else None


def _suggested(ctx: RefreshContext) -> str | None:
    if ctx.suggested and ctx.suggested in ctx.counterparties:
        return ctx.suggested
    return None


def _first(ctx: RefreshContext) -> str | None:
    return ctx.counterparties[0] if ctx.counterparties else None


def _keep_on_empty(ctx: RefreshContext) -> str | None:
    # A transient empty page should not make the selection flicker away.
    if not ctx.counterparties and ctx.current:
        return ctx.current
    return None


SELECTION_RULES: tuple[tuple[SelectionRule, Callable[[RefreshContext], str | None]], ...] = (
    (SelectionRule.PINNED, _pinned),
    (SelectionRule.STICKY, _sticky),
    (SelectionRule.SUGGESTED, _suggested),
    (SelectionRule.FIRST, _first),
    (SelectionRule.KEEP_ON_EMPTY, _keep_on_empty),
)


def decide(ctx: RefreshContext) -> SelectionDecision:
    """Evaluate :data:`SELECTION_RULES` against *ctx*.

    Returns:
        The first matching rule and its counterparty, or an
        ``UNSELECTED`` decision when no rule matches.
    """
    for rule, resolve in SELECTION_RULES:
        counterparty = resolve(ctx)
        if counterparty:
            return SelectionDecision(rule=rule, counterparty=counterparty)
    return SelectionDecision(rule=SelectionRule.UNSELECTED, counterparty=None)
