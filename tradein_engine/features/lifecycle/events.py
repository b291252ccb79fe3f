from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class StatusChanged:
    """
    Emitted for every committed status change (creation included).

    The notification dispatcher consumes these after the write; delivery
    problems never feed back into the lifecycle.
    """

    trade_in_id: str
    owner_id: str
    status: str
    previous_status: Optional[str]
    occurred_at: datetime
    updated_by: Optional[str] = None
    note: Optional[str] = None
    final_price: Optional[float] = None
    tracking_number: Optional[str] = None
