"""
Trade-in lifecycle: validates a status change and describes it as a plan.

A TransitionPlan is everything the repository needs for one atomic write:

    filter : {"id": ..., "version": expected_version}
    update : {"$set": set_fields, "$push": {"history": history_entry}, "$inc": {"version": 1}}

Planning is pure (no I/O). The repository applies the plan with a
compare-and-swap on `version`, the service then hands `plan.event` to the
notification dispatcher.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from tradein_engine.core.errors import InvalidTransitionError, ValidationError
from tradein_engine.features.lifecycle.events import StatusChanged
from tradein_engine.features.lifecycle.states import (
    FINAL_PRICE_STATUSES,
    INITIAL_STATUS,
    INSPECTABLE_STATUSES,
    TradeInStatus,
    coerce_status,
    guard_transition,
)
from tradein_engine.features.pricing.engine import compute_final_price

CREATED_NOTE = "request created"
INSPECTION_NOTE = "inspection performed"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TransitionPlan:
    trade_in_id: str
    from_status: TradeInStatus
    to_status: TradeInStatus
    expected_version: int
    set_fields: Dict[str, Any]
    history_entry: Dict[str, Any]
    event: StatusChanged = field(compare=False)


def history_entry(
    status: TradeInStatus,
    *,
    timestamp: datetime,
    note: Optional[str] = None,
    updated_by: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "status": status.value,
        "timestamp": timestamp,
        "note": note,
        "updated_by": updated_by,
    }


def initial_lifecycle_fields(*, owner_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Fields a brand-new request starts with: pending, version 1, one history entry."""
    ts = now or _now_utc()
    return {
        "status": INITIAL_STATUS.value,
        "version": 1,
        "history": [history_entry(INITIAL_STATUS, timestamp=ts, note=CREATED_NOTE, updated_by=owner_id)],
    }


def creation_event(request: Mapping[str, Any]) -> StatusChanged:
    history = request.get("history") or []
    first = history[0] if history else {}
    return StatusChanged(
        trade_in_id=str(request.get("id")),
        owner_id=str(request.get("owner_id")),
        status=INITIAL_STATUS.value,
        previous_status=None,
        occurred_at=first.get("timestamp") or _now_utc(),
        updated_by=first.get("updated_by"),
        note=first.get("note"),
    )


def _current_status(request: Mapping[str, Any]) -> TradeInStatus:
    raw = request.get("status")
    try:
        return TradeInStatus(raw)
    except ValueError as exc:
        raise InvalidTransitionError(
            code="unknown_current_status",
            message=f"Trade-in has an unrecognised status {raw!r}",
            details={"id": request.get("id"), "status": raw},
        ) from exc


def _version(request: Mapping[str, Any]) -> int:
    v = request.get("version")
    return int(v) if isinstance(v, int) and not isinstance(v, bool) else 0


def plan_status_change(
    request: Mapping[str, Any],
    new_status: Any,
    *,
    final_price: Optional[float] = None,
    tracking_number: Optional[str] = None,
    note: Optional[str] = None,
    admin_notes: Optional[str] = None,
    updated_by: Optional[str] = None,
    strict: bool = False,
    now: Optional[datetime] = None,
) -> TransitionPlan:
    target = coerce_status(new_status)
    current = _current_status(request)
    guard_transition(current, target, strict=strict)

    if final_price is not None:
        if target not in FINAL_PRICE_STATUSES:
            raise ValidationError(
                code="final_price_not_allowed",
                message=f"A final price can only be set with status {sorted(s.value for s in FINAL_PRICE_STATUSES)}",
                details={"status": target.value, "final_price": final_price},
            )
        if final_price < 0:
            raise ValidationError(
                code="final_price_negative",
                message="Final price must not be negative",
                details={"final_price": final_price},
            )

    known_price = final_price if final_price is not None else request.get("final_price")
    if target == TradeInStatus.COMPLETED and known_price is None:
        raise ValidationError(
            code="final_price_required",
            message='A final price is required for status "completed"',
            details={"id": request.get("id")},
        )

    ts = now or _now_utc()
    set_fields: Dict[str, Any] = {"status": target.value, "updated_at": ts}
    if final_price is not None:
        set_fields["final_price"] = float(final_price)
    if tracking_number:
        set_fields["tracking_number"] = tracking_number
    if admin_notes:
        set_fields["admin_notes"] = admin_notes

    trade_in_id = str(request.get("id"))
    return TransitionPlan(
        trade_in_id=trade_in_id,
        from_status=current,
        to_status=target,
        expected_version=_version(request),
        set_fields=set_fields,
        history_entry=history_entry(target, timestamp=ts, note=note, updated_by=updated_by),
        event=StatusChanged(
            trade_in_id=trade_in_id,
            owner_id=str(request.get("owner_id")),
            status=target.value,
            previous_status=current.value,
            occurred_at=ts,
            updated_by=updated_by,
            note=note,
            final_price=set_fields.get("final_price", request.get("final_price")),
            tracking_number=set_fields.get("tracking_number", request.get("tracking_number")),
        ),
    )


def plan_inspection(
    request: Mapping[str, Any],
    report: Mapping[str, Any],
    *,
    updated_by: Optional[str] = None,
    strict: bool = False,
    now: Optional[datetime] = None,
) -> TransitionPlan:
    """
    Record a physical inspection: final price from the estimate + report,
    status -> inspected, fixed history note.
    """
    current = _current_status(request)
    target = TradeInStatus.INSPECTED
    guard_transition(current, target, strict=strict)

    if strict and current not in INSPECTABLE_STATUSES:
        raise InvalidTransitionError(
            code="inspection_not_allowed",
            message=f"Cannot record an inspection while trade-in is {current.value}",
            details={"from": current.value, "allowed": sorted(s.value for s in INSPECTABLE_STATUSES)},
        )

    final_price = compute_final_price(request.get("estimated_price"), report)

    ts = now or _now_utc()
    trade_in_id = str(request.get("id"))
    set_fields: Dict[str, Any] = {
        "status": target.value,
        "inspection_results": dict(report),
        "final_price": final_price,
        "updated_at": ts,
    }
    return TransitionPlan(
        trade_in_id=trade_in_id,
        from_status=current,
        to_status=target,
        expected_version=_version(request),
        set_fields=set_fields,
        history_entry=history_entry(target, timestamp=ts, note=INSPECTION_NOTE, updated_by=updated_by),
        event=StatusChanged(
            trade_in_id=trade_in_id,
            owner_id=str(request.get("owner_id")),
            status=target.value,
            previous_status=current.value,
            occurred_at=ts,
            updated_by=updated_by,
            note=report.get("notes"),
            final_price=final_price,
            tracking_number=request.get("tracking_number"),
        ),
    )


def apply_plan(request: Mapping[str, Any], plan: TransitionPlan) -> Dict[str, Any]:
    """In-memory equivalent of the repository's atomic update."""
    out = dict(request)
    out.update(plan.set_fields)
    out["history"] = list(request.get("history") or []) + [dict(plan.history_entry)]
    out["version"] = _version(request) + 1
    return out
