"""
Trade-in request API schemas.

Responses use the stored field names (snake_case). Request bodies take
camelCase (`finalPrice`, `trackingNumber`, `bankDetails.accountHolder`) and
also accept the snake_case names. Status values are the lifecycle enum values (e.g. "offerMade", "deviceReceived").
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from tradein_engine.features.lifecycle.states import TradeInStatus
from tradein_engine.features.pricing.schemas import REQUEST_MODEL_CONFIG, DeviceDescriptor, Money


class BankDetails(BaseModel):
    iban: str
    account_holder: str


class BankDetailsIn(BaseModel):
    model_config = REQUEST_MODEL_CONFIG

    iban: str
    account_holder: str


class TradeInCreate(DeviceDescriptor):
    """
    Submission payload. Any client-sent price fields are ignored (extra keys
    are dropped); the estimate is always computed server-side.
    """

    description: Optional[Annotated[str, Field(max_length=4000)]] = None
    images: List[str] = Field(default_factory=list)
    bank_details: Optional[BankDetailsIn] = None


class HistoryEntry(BaseModel):
    status: str
    timestamp: datetime
    note: Optional[str] = None
    updated_by: Optional[str] = None


class TradeInRead(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    id: str
    owner_id: str

    device_type: str
    brand: str
    model: str
    condition: str
    specifications: Dict[str, Any] = Field(default_factory=dict)
    description: Optional[str] = None

    estimated_price: float
    final_price: Optional[float] = None

    images: List[str] = Field(default_factory=list)
    status: str
    admin_notes: Optional[str] = None
    tracking_number: Optional[str] = None
    bank_details: Optional[BankDetails] = None
    inspection_results: Optional[Dict[str, Any]] = None

    history: List[HistoryEntry] = Field(default_factory=list)
    version: int = 0

    created_at: datetime
    updated_at: datetime


class ImagesUpdate(BaseModel):
    model_config = REQUEST_MODEL_CONFIG

    images: List[Annotated[str, Field(min_length=1, max_length=2048)]]
    replace: bool = False  # default: append to the existing list


class StatusUpdate(BaseModel):
    model_config = REQUEST_MODEL_CONFIG

    status: TradeInStatus
    final_price: Optional[Money] = None
    note: Optional[str] = None
    tracking_number: Optional[str] = None
    admin_notes: Optional[str] = None
    # Optional optimistic-concurrency check against TradeInRead.version.
    expected_version: Optional[int] = Field(default=None, ge=0)


class Pagination(BaseModel):
    total: int
    pages: int
    page: int
    limit: int


class TradeInStats(BaseModel):
    total_estimated_value: float
    avg_estimated_value: float
    total_final_value: float
    total_trade_ins: int
    device_types: List[str]
    brands: List[str]
    status_counts: Dict[str, int]


class TradeInListResponse(BaseModel):
    items: List[TradeInRead]
    pagination: Pagination
    # None when no request matches the filters.
    stats: Optional[TradeInStats] = None


class AnalyticsBucket(BaseModel):
    period: str
    count: int
    estimated_total: float
    final_total: float


class AnalyticsResponse(BaseModel):
    owner_id: str
    period: str
    start: datetime
    end: datetime
    buckets: List[AnalyticsBucket]
