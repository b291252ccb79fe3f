"""
Mongo query/aggregation builders for trade-in listings.

Pure functions: they build filters, sort specs and pipelines, and shape the
raw aggregation output. The repo runs them.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pymongo import ASCENDING, DESCENDING

from tradein_engine.core.errors import ValidationError
from tradein_engine.features.lifecycle.states import coerce_status

DEFAULT_SORT: List[Tuple[str, int]] = [("created_at", DESCENDING)]

# Public sort key -> stored field. camelCase keys kept for older clients.
SORT_FIELDS: Dict[str, str] = {
    "created_at": "created_at",
    "createdAt": "created_at",
    "updated_at": "updated_at",
    "updatedAt": "updated_at",
    "estimated_price": "estimated_price",
    "estimatedPrice": "estimated_price",
    "final_price": "final_price",
    "finalPrice": "final_price",
    "status": "status",
    "brand": "brand",
    "model": "model",
    "device_type": "device_type",
    "deviceType": "device_type",
}

SEARCH_FIELDS = ("model", "brand", "device_type")

ANALYTICS_PERIODS = ("week", "month", "year")


@dataclass(frozen=True)
class TradeInFilters:
    status: Optional[str] = None
    device_type: Optional[str] = None
    brand: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    search: Optional[str] = None


def _as_utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def build_match(filters: TradeInFilters, *, owner_id: Optional[str] = None) -> Dict[str, Any]:
    q: Dict[str, Any] = {}
    if owner_id is not None:
        q["owner_id"] = owner_id

    if filters.status:
        q["status"] = coerce_status(filters.status).value
    if filters.device_type:
        q["device_type"] = filters.device_type.strip().lower()
    if filters.brand:
        q["brand"] = filters.brand

    if filters.start_date or filters.end_date:
        if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
            raise ValidationError(
                code="invalid_date_range",
                message="start_date must not be after end_date",
                details={"start_date": str(filters.start_date), "end_date": str(filters.end_date)},
            )
        created: Dict[str, Any] = {}
        if filters.start_date:
            created["$gte"] = _as_utc(filters.start_date)
        if filters.end_date:
            created["$lte"] = _as_utc(filters.end_date)
        q["created_at"] = created

    if filters.min_price is not None or filters.max_price is not None:
        price: Dict[str, Any] = {}
        if filters.min_price is not None:
            price["$gte"] = float(filters.min_price)
        if filters.max_price is not None:
            price["$lte"] = float(filters.max_price)
        q["estimated_price"] = price

    search = (filters.search or "").strip()
    if search:
        # Substring match: user input is escaped, not interpreted as a regex.
        pattern = re.escape(search)
        q["$or"] = [{f: {"$regex": pattern, "$options": "i"}} for f in SEARCH_FIELDS]

    return q


def parse_sort(sort_by: Optional[str], sort_order: Optional[str]) -> List[Tuple[str, int]]:
    if not sort_by:
        return list(DEFAULT_SORT)

    field = SORT_FIELDS.get(sort_by.strip())
    if field is None:
        raise ValidationError(
            code="invalid_sort_field",
            message=f"Cannot sort by {sort_by!r}",
            details={"sort_by": sort_by, "allowed": sorted(set(SORT_FIELDS.values()))},
        )

    order = (sort_order or "desc").strip().lower()
    if order not in {"asc", "desc"}:
        raise ValidationError(
            code="invalid_sort_order",
            message="sort_order must be 'asc' or 'desc'",
            details={"sort_order": sort_order},
        )
    return [(field, ASCENDING if order == "asc" else DESCENDING)]


def page_window(page: int, limit: int, *, max_limit: int) -> Tuple[int, int, int]:
    """Return (page, limit, skip) with page >= 1 and 1 <= limit <= max_limit."""
    page = max(1, int(page))
    limit = max(1, min(int(max_limit), int(limit)))
    return page, limit, (page - 1) * limit


def total_pages(total: int, limit: int) -> int:
    return int(math.ceil(total / limit)) if limit > 0 else 0


def stats_pipeline(match: Mapping[str, Any]) -> List[Dict[str, Any]]:
    return [
        {"$match": dict(match)},
        {
            "$group": {
                "_id": None,
                "total_estimated_value": {"$sum": "$estimated_price"},
                "total_final_value": {"$sum": {"$ifNull": ["$final_price", 0]}},
                "avg_estimated_value": {"$avg": "$estimated_price"},
                "total_trade_ins": {"$sum": 1},
                "device_types": {"$addToSet": "$device_type"},
                "brands": {"$addToSet": "$brand"},
                "statuses": {"$push": "$status"},
            }
        },
    ]


def stats_from_group(row: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Shape the single $group row; None (no matching requests) stays None."""
    if not row or not row.get("total_trade_ins"):
        return None

    statuses = [s for s in (row.get("statuses") or []) if isinstance(s, str)]
    return {
        "total_estimated_value": float(row.get("total_estimated_value") or 0.0),
        "avg_estimated_value": float(row.get("avg_estimated_value") or 0.0),
        "total_final_value": float(row.get("total_final_value") or 0.0),
        "total_trade_ins": int(row["total_trade_ins"]),
        "device_types": sorted(x for x in (row.get("device_types") or []) if isinstance(x, str)),
        "brands": sorted(x for x in (row.get("brands") or []) if isinstance(x, str)),
        "status_counts": dict(Counter(statuses)),
    }


def analytics_range(period: str, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    if period not in ANALYTICS_PERIODS:
        raise ValidationError(
            code="invalid_period",
            message=f"period must be one of {list(ANALYTICS_PERIODS)}",
            details={"period": period},
        )
    end = _as_utc(now or datetime.now(timezone.utc))
    if period == "week":
        start = end - timedelta(days=7)
    elif period == "month":
        # Same day last month, clamped to the month's length.
        year, month = (end.year, end.month - 1) if end.month > 1 else (end.year - 1, 12)
        start = end.replace(year=year, month=month, day=min(end.day, _days_in_month(year, month)))
    else:
        start = end.replace(year=end.year - 1, day=min(end.day, _days_in_month(end.year - 1, end.month)))
    return start, end


def _days_in_month(year: int, month: int) -> int:
    nxt = datetime(year + (month // 12), month % 12 + 1, 1)
    return (nxt - timedelta(days=1)).day


def analytics_pipeline(owner_id: str, period: str, start: datetime, end: datetime) -> List[Dict[str, Any]]:
    fmt = "%Y-%m-%d" if period == "week" else "%Y-%m"
    return [
        {"$match": {"owner_id": owner_id, "created_at": {"$gte": start, "$lte": end}}},
        {
            "$group": {
                "_id": {"$dateToString": {"format": fmt, "date": "$created_at"}},
                "count": {"$sum": 1},
                "estimated_total": {"$sum": "$estimated_price"},
                "final_total": {"$sum": {"$ifNull": ["$final_price", 0]}},
            }
        },
        {"$sort": {"_id": 1}},
    ]
