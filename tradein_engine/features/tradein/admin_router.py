"""
/admin/trade-in endpoints (operator-scoped; role verified upstream, see core/identity.py).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from tradein_engine.core.identity import require_operator
from tradein_engine.db.mongo import get_db
from tradein_engine.features.notifications.dispatcher import NotificationDispatcher, get_notification_dispatcher
from tradein_engine.features.pricing.schemas import InspectionReport
from tradein_engine.features.tradein.query import TradeInFilters
from tradein_engine.features.tradein.schemas import HistoryEntry, StatusUpdate, TradeInListResponse, TradeInRead
from tradein_engine.features.tradein.service import (
    get_history,
    get_images,
    get_trade_in,
    list_all_trade_ins,
    record_inspection,
    update_status,
)

router = APIRouter(prefix="/admin/trade-in", tags=["tradein:admin"])


@router.get("", response_model=TradeInListResponse)
async def list_trade_ins_endpoint(
    _operator: str = Depends(require_operator),
    db: AsyncIOMotorDatabase = Depends(get_db),
    status: str | None = Query(None),
    owner_id: str | None = Query(None, alias="userId"),
    device_type: str | None = Query(None, alias="deviceType"),
    brand: str | None = Query(None),
    search: str | None = Query(None, max_length=100),
    sort_by: str | None = Query(None, alias="sortBy"),
    sort_order: str | None = Query(None, alias="sortOrder"),
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
):
    filters = TradeInFilters(status=status, device_type=device_type, brand=brand, search=search)
    return await list_all_trade_ins(
        db,
        filters,
        owner_id=owner_id,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )


@router.get("/{trade_in_id}", response_model=TradeInRead)
async def get_trade_in_details_endpoint(
    trade_in_id: str,
    _operator: str = Depends(require_operator),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    # Full document: includes history and images.
    return await get_trade_in(db, trade_in_id)


@router.put("/{trade_in_id}/status", response_model=TradeInRead)
async def update_status_endpoint(
    trade_in_id: str,
    payload: StatusUpdate,
    operator: str = Depends(require_operator),
    db: AsyncIOMotorDatabase = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    return await update_status(db, trade_in_id, payload, operator=operator, dispatcher=dispatcher)


@router.put("/{trade_in_id}/inspection", response_model=TradeInRead)
async def record_inspection_endpoint(
    trade_in_id: str,
    payload: InspectionReport,
    operator: str = Depends(require_operator),
    db: AsyncIOMotorDatabase = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    return await record_inspection(db, trade_in_id, payload, operator=operator, dispatcher=dispatcher)


@router.get("/{trade_in_id}/history", response_model=list[HistoryEntry])
async def get_history_endpoint(
    trade_in_id: str,
    _operator: str = Depends(require_operator),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await get_history(db, trade_in_id)


@router.get("/{trade_in_id}/images", response_model=list[str])
async def get_images_endpoint(
    trade_in_id: str,
    _operator: str = Depends(require_operator),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await get_images(db, trade_in_id)
