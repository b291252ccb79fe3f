"""
/trade-in endpoints (owner-scoped, caller from X-User-Id):

- POST /trade-in                         submit a device, estimate computed server-side
- GET  /trade-in/my                      filtered + paginated list with stats
- GET  /trade-in/my/analytics            per-day / per-month totals
- GET  /trade-in/{id}                    one owned request
- PUT  /trade-in/{id}/upload-images      append (or replace) image URLs
- PUT  /trade-in/{id}/cancel             owner cancellation
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from tradein_engine.core.identity import get_current_user_id
from tradein_engine.db.mongo import get_db
from tradein_engine.features.notifications.dispatcher import NotificationDispatcher, get_notification_dispatcher
from tradein_engine.features.tradein.query import TradeInFilters
from tradein_engine.features.tradein.schemas import (
    AnalyticsResponse,
    ImagesUpdate,
    TradeInCreate,
    TradeInListResponse,
    TradeInRead,
)
from tradein_engine.features.tradein.service import (
    cancel_by_owner,
    create_trade_in,
    get_owned_trade_in,
    list_owner_trade_ins,
    owner_analytics,
    update_images,
)

router = APIRouter(prefix="/trade-in", tags=["tradein"])


@router.post("", response_model=TradeInRead, status_code=201)
async def create_trade_in_endpoint(
    payload: TradeInCreate,
    owner_id: str = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    return await create_trade_in(db, owner_id, payload, dispatcher=dispatcher)


@router.get("/my", response_model=TradeInListResponse)
async def list_my_trade_ins_endpoint(
    owner_id: str = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_db),
    status: str | None = Query(None),
    device_type: str | None = Query(None, alias="deviceType"),
    brand: str | None = Query(None),
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    min_price: float | None = Query(None, ge=0, alias="minPrice"),
    max_price: float | None = Query(None, ge=0, alias="maxPrice"),
    search: str | None = Query(None, max_length=100),
    sort_by: str | None = Query(None, alias="sortBy"),
    sort_order: str | None = Query(None, alias="sortOrder"),
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
):
    filters = TradeInFilters(
        status=status,
        device_type=device_type,
        brand=brand,
        start_date=start_date,
        end_date=end_date,
        min_price=min_price,
        max_price=max_price,
        search=search,
    )
    return await list_owner_trade_ins(
        db,
        owner_id,
        filters,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )


@router.get("/my/analytics", response_model=AnalyticsResponse)
async def my_analytics_endpoint(
    owner_id: str = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_db),
    period: str = Query("month"),
):
    return await owner_analytics(db, owner_id, period)


@router.get("/{trade_in_id}", response_model=TradeInRead)
async def get_trade_in_endpoint(
    trade_in_id: str,
    owner_id: str = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await get_owned_trade_in(db, owner_id, trade_in_id)


@router.put("/{trade_in_id}/upload-images", response_model=TradeInRead)
async def upload_images_endpoint(
    trade_in_id: str,
    payload: ImagesUpdate,
    owner_id: str = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await update_images(db, owner_id, trade_in_id, payload)


@router.put("/{trade_in_id}/cancel", response_model=TradeInRead)
async def cancel_trade_in_endpoint(
    trade_in_id: str,
    owner_id: str = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    return await cancel_by_owner(db, owner_id, trade_in_id, dispatcher=dispatcher)
