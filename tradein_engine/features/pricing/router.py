from __future__ import annotations

from fastapi import APIRouter

from tradein_engine.core.config import config
from tradein_engine.features.pricing.engine import estimate_breakdown
from tradein_engine.features.pricing.schemas import DeviceDescriptor, EstimateBreakdownRead, EstimateResponse

router = APIRouter(prefix="/trade-in", tags=["tradein:pricing"])


@router.post("/estimate", response_model=EstimateResponse)
async def estimate_endpoint(payload: DeviceDescriptor):
    # Quote only: nothing is persisted.
    b = estimate_breakdown(
        payload.device_type,
        payload.brand,
        payload.model,
        payload.condition,
        payload.specifications.model_dump(),
    )
    return EstimateResponse(
        estimated_price=b.estimated_price,
        currency=config.currency,
        breakdown=EstimateBreakdownRead(
            base_price=b.base_price,
            condition_multiplier=b.condition_multiplier,
            storage_multiplier=b.storage_multiplier,
            ram_multiplier=b.ram_multiplier,
            accessories_multiplier=b.accessories_multiplier,
            specifications_multiplier=b.specifications_multiplier,
        ),
    )
