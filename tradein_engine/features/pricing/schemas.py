from __future__ import annotations

from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .types import DeviceCondition, DeviceType, normalize_condition

Money = Annotated[float, Field(ge=0.0)]

# Request bodies: camelCase on the wire ("deviceType", "functionalityTest"),
# snake_case names still accepted.
REQUEST_MODEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())

_SCALARS = (str, int, float)


def _scalar_to_str(v: Any) -> Optional[str]:
    if isinstance(v, bool) or not isinstance(v, _SCALARS):
        return None
    return v if isinstance(v, str) else str(v)


def as_str_list(v: Any) -> List[str]:
    """Single value -> one-item list, None -> [], non-scalar items are dropped."""
    if v is None:
        return []
    if not isinstance(v, (list, tuple)):
        v = [v]
    out = [_scalar_to_str(x) for x in v]
    return [x for x in out if x]


class DeviceSpecifications(BaseModel):
    """
    Best-effort input: known attributes are coerced rather than rejected, and
    anything else the client sends is kept as-is (extra="allow") and ignored
    by pricing.
    """

    model_config = ConfigDict(extra="allow")

    storage: Optional[str] = None
    ram: Optional[str] = None
    color: Optional[str] = None
    imei: Optional[str] = None
    accessories: List[str] = Field(default_factory=list)

    @field_validator("storage", "ram", "color", "imei", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        # "storage": 256 and numeric IMEIs are common from mobile clients.
        return _scalar_to_str(v)

    @field_validator("accessories", mode="before")
    @classmethod
    def _listify(cls, v: Any) -> List[str]:
        return as_str_list(v)


class DeviceDescriptor(BaseModel):
    model_config = REQUEST_MODEL_CONFIG

    device_type: DeviceType
    brand: Annotated[str, Field(min_length=1, max_length=64)]
    model: Annotated[str, Field(min_length=1, max_length=128)]
    condition: DeviceCondition
    specifications: DeviceSpecifications = Field(default_factory=DeviceSpecifications)

    @field_validator("device_type", mode="before")
    @classmethod
    def _lower_device_type(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("condition", mode="before")
    @classmethod
    def _normalize_condition(cls, v: Any) -> Any:
        return normalize_condition(v) if isinstance(v, str) else v

    @field_validator("brand", "model")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()


class EstimateBreakdownRead(BaseModel):
    base_price: float
    condition_multiplier: float
    storage_multiplier: float
    ram_multiplier: float
    accessories_multiplier: float
    specifications_multiplier: float


class EstimateResponse(BaseModel):
    estimated_price: float
    currency: str
    breakdown: EstimateBreakdownRead


class InspectionReport(BaseModel):
    model_config = REQUEST_MODEL_CONFIG

    condition: DeviceCondition
    functionality_test: Dict[str, bool] = Field(default_factory=dict)
    cosmetic: Dict[str, str] = Field(default_factory=dict)
    accessories: List[str] = Field(default_factory=list)
    notes: Optional[str] = None

    @field_validator("condition", mode="before")
    @classmethod
    def _normalize_condition(cls, v: Any) -> Any:
        return normalize_condition(v) if isinstance(v, str) else v

    @field_validator("accessories", mode="before")
    @classmethod
    def _listify(cls, v: Any) -> List[str]:
        return as_str_list(v)
