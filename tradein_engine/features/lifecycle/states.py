from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Optional, Set

from tradein_engine.core.errors import InvalidTransitionError, ValidationError


class TradeInStatus(str, Enum):
    PENDING = "pending"
    REVIEWING = "reviewing"
    OFFER_MADE = "offerMade"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    DEVICE_RECEIVED = "deviceReceived"
    INSPECTED = "inspected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


INITIAL_STATUS = TradeInStatus.PENDING

TERMINAL_STATUSES: FrozenSet[TradeInStatus] = frozenset(
    {TradeInStatus.COMPLETED, TradeInStatus.REJECTED, TradeInStatus.CANCELLED}
)

# A final price may only be written together with one of these targets.
FINAL_PRICE_STATUSES: FrozenSet[TradeInStatus] = frozenset({TradeInStatus.INSPECTED, TradeInStatus.COMPLETED})

# Statuses an inspection may be recorded from in strict mode.
INSPECTABLE_STATUSES: FrozenSet[TradeInStatus] = frozenset(
    {TradeInStatus.DEVICE_RECEIVED, TradeInStatus.INSPECTED}
)


class TransitionTable:
    """
    Directed graph of allowed (from, to) moves, used when strict transitions are on.

    Re-applying the current status is always accepted (operator retry); it
    appends another history entry.
    """

    ALLOWED: Dict[TradeInStatus, Set[TradeInStatus]] = {
        TradeInStatus.PENDING: {
            TradeInStatus.REVIEWING,
            TradeInStatus.OFFER_MADE,
            TradeInStatus.REJECTED,
            TradeInStatus.CANCELLED,
        },
        TradeInStatus.REVIEWING: {
            TradeInStatus.OFFER_MADE,
            TradeInStatus.REJECTED,
            TradeInStatus.CANCELLED,
        },
        TradeInStatus.OFFER_MADE: {
            TradeInStatus.ACCEPTED,
            TradeInStatus.REJECTED,
            TradeInStatus.CANCELLED,
        },
        TradeInStatus.ACCEPTED: {
            TradeInStatus.DEVICE_RECEIVED,
            TradeInStatus.CANCELLED,
        },
        TradeInStatus.DEVICE_RECEIVED: {
            TradeInStatus.INSPECTED,
            TradeInStatus.REJECTED,
            TradeInStatus.CANCELLED,
        },
        TradeInStatus.INSPECTED: {
            TradeInStatus.COMPLETED,
            TradeInStatus.REJECTED,
            TradeInStatus.CANCELLED,
        },
        # Terminal states (no transitions allowed)
        TradeInStatus.COMPLETED: set(),
        TradeInStatus.REJECTED: set(),
        TradeInStatus.CANCELLED: set(),
    }

    @classmethod
    def is_valid_transition(cls, current: TradeInStatus, target: TradeInStatus) -> bool:
        if current in TERMINAL_STATUSES:
            return False
        if current == target:
            return True
        return target in cls.ALLOWED.get(current, set())

    @classmethod
    def valid_targets(cls, current: TradeInStatus) -> Set[TradeInStatus]:
        return set(cls.ALLOWED.get(current, set()))


def is_terminal(status: Optional[TradeInStatus]) -> bool:
    return status in TERMINAL_STATUSES


def coerce_status(raw: object) -> TradeInStatus:
    if isinstance(raw, TradeInStatus):
        return raw
    try:
        return TradeInStatus(str(raw).strip())
    except ValueError as exc:
        raise ValidationError(
            code="unknown_status",
            message=f"Unknown trade-in status: {raw!r}",
            details={"status": raw, "allowed": [s.value for s in TradeInStatus]},
        ) from exc


def guard_transition(current: TradeInStatus, target: TradeInStatus, *, strict: bool) -> None:
    """
    Always: terminal statuses are final.
    Strict: the (current, target) edge must exist in TransitionTable.ALLOWED.
    """
    if is_terminal(current):
        raise InvalidTransitionError(
            code="terminal_status",
            message=f"Trade-in is already {current.value} and cannot change status",
            details={"from": current.value, "to": target.value},
        )

    if strict and not TransitionTable.is_valid_transition(current, target):
        raise InvalidTransitionError(
            code="transition_not_allowed",
            message=f"Cannot move trade-in from {current.value} to {target.value}",
            details={
                "from": current.value,
                "to": target.value,
                "allowed": sorted(s.value for s in TransitionTable.valid_targets(current)),
            },
        )
