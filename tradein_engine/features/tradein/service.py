"""
Trade-in service: submission, owner/operator reads, status changes, inspection, listings.

Write path for every status change:
    load -> plan (lifecycle.machine) -> compare-and-swap write -> notify (best-effort)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from motor.motor_asyncio import AsyncIOMotorDatabase

from tradein_engine.core.config import config
from tradein_engine.core.errors import ConflictError, NotFoundError
from tradein_engine.features.lifecycle.machine import (
    TransitionPlan,
    creation_event,
    initial_lifecycle_fields,
    plan_inspection,
    plan_status_change,
)
from tradein_engine.features.lifecycle.states import TradeInStatus
from tradein_engine.features.notifications.dispatcher import NotificationDispatcher
from tradein_engine.features.pricing.engine import compute_initial_estimate
from tradein_engine.features.pricing.schemas import InspectionReport
from tradein_engine.features.tradein.query import (
    TradeInFilters,
    analytics_pipeline,
    analytics_range,
    build_match,
    page_window,
    parse_sort,
    stats_from_group,
    stats_pipeline,
    total_pages,
)
from tradein_engine.features.tradein.repo import TradeInRepo
from tradein_engine.features.tradein.schemas import (
    AnalyticsBucket,
    AnalyticsResponse,
    HistoryEntry,
    ImagesUpdate,
    Pagination,
    StatusUpdate,
    TradeInCreate,
    TradeInListResponse,
    TradeInRead,
    TradeInStats,
)

logger = logging.getLogger(__name__)

OWNER_CANCEL_NOTE = "cancelled by owner"


def _not_found(trade_in_id: str) -> NotFoundError:
    return NotFoundError(code="trade_in_not_found", message="Trade-in not found", details={"id": trade_in_id})


def _strict(strict: Optional[bool]) -> bool:
    return config.strict_transitions if strict is None else bool(strict)


async def _notify(dispatcher: Optional[NotificationDispatcher], plan_event, doc: Dict[str, Any]) -> None:
    if dispatcher is None:
        return
    # Committed already; the dispatcher logs and absorbs its own failures.
    await dispatcher.dispatch(plan_event, doc)


async def _commit(repo: TradeInRepo, plan: TransitionPlan) -> Dict[str, Any]:
    doc = await repo.apply_plan(plan)
    if doc is not None:
        return doc

    if not await repo.exists(plan.trade_in_id):
        raise _not_found(plan.trade_in_id)

    logger.info(
        "trade_in:stale_write id=%s expected_version=%s to=%s",
        plan.trade_in_id,
        plan.expected_version,
        plan.to_status.value,
    )
    raise ConflictError(
        code="trade_in_version_conflict",
        message="Trade-in was modified concurrently; reload and retry",
        details={"id": plan.trade_in_id, "expected_version": plan.expected_version},
    )


# ---------------------------------------------------------------------------
# Owner operations
# ---------------------------------------------------------------------------


async def create_trade_in(
    db: AsyncIOMotorDatabase,
    owner_id: str,
    data: TradeInCreate,
    *,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> TradeInRead:
    repo = TradeInRepo(db)

    specs = data.specifications.model_dump()
    estimated = compute_initial_estimate(data.device_type, data.brand, data.model, data.condition, specs)

    now = datetime.now(timezone.utc)
    doc: Dict[str, Any] = {
        "id": str(uuid4()),
        "owner_id": owner_id,
        "device_type": data.device_type.value,
        "brand": data.brand,
        "model": data.model,
        "condition": data.condition.value,
        "specifications": specs,
        "description": data.description,
        "estimated_price": estimated,
        "final_price": None,
        "images": list(data.images),
        "admin_notes": None,
        "tracking_number": None,
        "bank_details": data.bank_details.model_dump() if data.bank_details else None,
        "inspection_results": None,
        "created_at": now,
        "updated_at": now,
    }
    doc.update(initial_lifecycle_fields(owner_id=owner_id, now=now))

    logger.info(
        "create_trade_in:start owner_id=%s device_type=%s brand=%s estimated_price=%s",
        owner_id,
        doc["device_type"],
        doc["brand"],
        estimated,
    )
    doc = await repo.insert(doc)
    logger.info("create_trade_in:done id=%s", doc["id"])

    await _notify(dispatcher, creation_event(doc), doc)
    return TradeInRead(**doc)


async def get_owned_trade_in(db: AsyncIOMotorDatabase, owner_id: str, trade_in_id: str) -> TradeInRead:
    doc = await TradeInRepo(db).get_owned(trade_in_id, owner_id)
    if not doc:
        # Not-owned and missing look the same to the caller.
        raise _not_found(trade_in_id)
    return TradeInRead(**doc)


async def update_images(
    db: AsyncIOMotorDatabase,
    owner_id: str,
    trade_in_id: str,
    data: ImagesUpdate,
) -> TradeInRead:
    doc = await TradeInRepo(db).update_images(
        trade_in_id=trade_in_id,
        owner_id=owner_id,
        images=data.images,
        replace=data.replace,
    )
    if not doc:
        raise _not_found(trade_in_id)

    logger.info(
        "update_images id=%s mode=%s added=%s total=%s",
        trade_in_id,
        "replace" if data.replace else "append",
        len(data.images),
        len(doc.get("images") or []),
    )
    return TradeInRead(**doc)


async def cancel_by_owner(
    db: AsyncIOMotorDatabase,
    owner_id: str,
    trade_in_id: str,
    *,
    dispatcher: Optional[NotificationDispatcher] = None,
    strict: Optional[bool] = None,
) -> TradeInRead:
    repo = TradeInRepo(db)
    current = await repo.get_owned(trade_in_id, owner_id)
    if not current:
        raise _not_found(trade_in_id)

    plan = plan_status_change(
        current,
        TradeInStatus.CANCELLED,
        note=OWNER_CANCEL_NOTE,
        updated_by=owner_id,
        strict=_strict(strict),
    )
    doc = await _commit(repo, plan)
    logger.info("cancel_by_owner id=%s from=%s", trade_in_id, plan.from_status.value)

    await _notify(dispatcher, plan.event, doc)
    return TradeInRead(**doc)


async def list_owner_trade_ins(
    db: AsyncIOMotorDatabase,
    owner_id: str,
    filters: TradeInFilters,
    *,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> TradeInListResponse:
    return await _list(
        db,
        build_match(filters, owner_id=owner_id),
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )


async def owner_analytics(
    db: AsyncIOMotorDatabase,
    owner_id: str,
    period: str,
    *,
    now: Optional[datetime] = None,
) -> AnalyticsResponse:
    start, end = analytics_range(period, now)
    rows = await TradeInRepo(db).aggregate(analytics_pipeline(owner_id, period, start, end))
    return AnalyticsResponse(
        owner_id=owner_id,
        period=period,
        start=start,
        end=end,
        buckets=[
            AnalyticsBucket(
                period=str(r.get("_id")),
                count=int(r.get("count") or 0),
                estimated_total=float(r.get("estimated_total") or 0.0),
                final_total=float(r.get("final_total") or 0.0),
            )
            for r in rows
        ],
    )


# ---------------------------------------------------------------------------
# Operator operations
# ---------------------------------------------------------------------------


async def get_trade_in(db: AsyncIOMotorDatabase, trade_in_id: str) -> TradeInRead:
    doc = await TradeInRepo(db).get(trade_in_id)
    if not doc:
        raise _not_found(trade_in_id)
    return TradeInRead(**doc)


async def update_status(
    db: AsyncIOMotorDatabase,
    trade_in_id: str,
    data: StatusUpdate,
    *,
    operator: str,
    dispatcher: Optional[NotificationDispatcher] = None,
    strict: Optional[bool] = None,
) -> TradeInRead:
    repo = TradeInRepo(db)
    current = await repo.get(trade_in_id)
    if not current:
        raise _not_found(trade_in_id)

    if data.expected_version is not None and data.expected_version != current.get("version"):
        raise ConflictError(
            code="trade_in_version_conflict",
            message="Trade-in was modified since it was loaded; reload and retry",
            details={"id": trade_in_id, "expected_version": data.expected_version, "version": current.get("version")},
        )

    plan = plan_status_change(
        current,
        data.status,
        final_price=data.final_price,
        tracking_number=data.tracking_number,
        note=data.note,
        admin_notes=data.admin_notes,
        updated_by=operator,
        strict=_strict(strict),
    )
    doc = await _commit(repo, plan)
    logger.info(
        "update_status id=%s from=%s to=%s by=%s",
        trade_in_id,
        plan.from_status.value,
        plan.to_status.value,
        operator,
    )

    await _notify(dispatcher, plan.event, doc)
    return TradeInRead(**doc)


async def record_inspection(
    db: AsyncIOMotorDatabase,
    trade_in_id: str,
    report: InspectionReport,
    *,
    operator: str,
    dispatcher: Optional[NotificationDispatcher] = None,
    strict: Optional[bool] = None,
) -> TradeInRead:
    repo = TradeInRepo(db)
    current = await repo.get(trade_in_id)
    if not current:
        raise _not_found(trade_in_id)

    plan = plan_inspection(
        current,
        report.model_dump(mode="json"),
        updated_by=operator,
        strict=_strict(strict),
    )
    doc = await _commit(repo, plan)
    logger.info(
        "record_inspection id=%s estimated_price=%s final_price=%s by=%s",
        trade_in_id,
        current.get("estimated_price"),
        doc.get("final_price"),
        operator,
    )

    await _notify(dispatcher, plan.event, doc)
    return TradeInRead(**doc)


async def get_history(db: AsyncIOMotorDatabase, trade_in_id: str) -> List[HistoryEntry]:
    doc = await TradeInRepo(db).get_fields(trade_in_id, ["history"])
    if not doc:
        raise _not_found(trade_in_id)
    return [HistoryEntry(**h) for h in (doc.get("history") or [])]


async def get_images(db: AsyncIOMotorDatabase, trade_in_id: str) -> List[str]:
    doc = await TradeInRepo(db).get_fields(trade_in_id, ["images"])
    if not doc:
        raise _not_found(trade_in_id)
    return list(doc.get("images") or [])


async def list_all_trade_ins(
    db: AsyncIOMotorDatabase,
    filters: TradeInFilters,
    *,
    owner_id: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> TradeInListResponse:
    return await _list(
        db,
        build_match(filters, owner_id=owner_id),
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )


# ---------------------------------------------------------------------------
# Shared listing
# ---------------------------------------------------------------------------


async def _list(
    db: AsyncIOMotorDatabase,
    match: Dict[str, Any],
    *,
    sort_by: Optional[str],
    sort_order: Optional[str],
    page: int,
    limit: Optional[int],
) -> TradeInListResponse:
    repo = TradeInRepo(db)

    sort = parse_sort(sort_by, sort_order)
    page, limit, skip = page_window(
        page,
        limit if limit is not None else config.default_page_limit,
        max_limit=config.max_page_limit,
    )

    docs = await repo.find_page(match, sort=sort, skip=skip, limit=limit)
    total = await repo.count(match)
    rows = await repo.aggregate(stats_pipeline(match))
    stats = stats_from_group(rows[0] if rows else None)

    logger.debug("list_trade_ins total=%s page=%s limit=%s", total, page, limit)
    return TradeInListResponse(
        items=[TradeInRead(**d) for d in docs],
        pagination=Pagination(total=total, pages=total_pages(total, limit), page=page, limit=limit),
        stats=TradeInStats(**stats) if stats else None,
    )
