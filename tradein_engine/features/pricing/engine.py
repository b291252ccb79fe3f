"""
Trade-in pricing: pure functions, no I/O.

Two stages:

1) Initial estimate at submission (declared, unverified attributes):
     round(base_price * condition * storage_tier * ram_tier * accessories_factor)

2) Final price at inspection (physical check of the device):
     round(estimated * condition * functionality * cosmetic + 5 * accessories)

Nothing in here raises on bad input; unknown or malformed values fall back to
neutral multipliers so every syntactically valid descriptor yields a number.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Mapping, Optional

from .tables import (
    ACCESSORY_FACTOR_STEP,
    BASE_PRICES,
    CONDITION_MULTIPLIERS,
    COSMETIC_FLOOR,
    COSMETIC_LABEL_SCORES,
    COSMETIC_WEIGHT,
    FUNCTIONALITY_FLOOR,
    FUNCTIONALITY_WEIGHT,
    GLOBAL_DEFAULT_BASE_PRICE,
    INSPECTION_ACCESSORY_BONUS,
    RAM_TIERS,
    STORAGE_TIERS,
    UNKNOWN_CONDITION_MULTIPLIER,
)
from .types import PriceTier, normalize_condition

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

ONE = Decimal("1")


# ---------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------


def _key(v: Any) -> str:
    if isinstance(v, Enum):
        v = v.value
    return str(v or "").strip().lower()


def _to_float(v: Any) -> float | None:
    try:
        if v is None or isinstance(v, bool):
            return None
        return float(v)
    except (TypeError, ValueError):
        return None


def parse_leading_int(v: Any) -> Optional[int]:
    """
    Leading integer of a value: "256GB" -> 256, " 8 GB" -> 8, 512 -> 512.
    Non-numeric input ("abc", None, True) -> None.
    """
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, float):
        return int(v) if v == v else None  # NaN guard
    m = _LEADING_INT.match(str(v))
    if not m:
        return None
    return int(m.group(1))


def _count_items(v: Any) -> int:
    if isinstance(v, (list, tuple)):
        return len(v)
    return 0


def round_money(x: float) -> float:
    """Round half-up to a whole currency unit, never below zero."""
    try:
        d = Decimal(str(x)).quantize(ONE, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return 0.0
    if d < 0:
        return 0.0
    return float(d)


def _as_mapping(v: Any) -> Mapping[str, Any]:
    if isinstance(v, Mapping):
        return v
    dump = getattr(v, "model_dump", None)
    if callable(dump):
        return dump()
    return {}


# ---------------------------------------------------------------------
# Stage 1: initial estimate
# ---------------------------------------------------------------------


def base_price(device_type: Any, brand: Any, tier: PriceTier = PriceTier.BASE) -> float:
    """
    brand value for the device type, else device-type default, else global default.
    The premium tier is only used when asked for explicitly.
    """
    by_type = BASE_PRICES.get(_key(device_type))
    if not by_type:
        return GLOBAL_DEFAULT_BASE_PRICE

    entry = by_type.get(_key(brand))
    if isinstance(entry, Mapping):
        value = _to_float(entry.get(PriceTier(tier).value))
        if value:
            return value

    default = _to_float(by_type.get("default"))
    return default if default else GLOBAL_DEFAULT_BASE_PRICE


def condition_multiplier(condition: Any) -> float:
    return CONDITION_MULTIPLIERS.get(normalize_condition(condition) or "", UNKNOWN_CONDITION_MULTIPLIER)


def _tier_factor(value: Any, tiers) -> float:
    n = parse_leading_int(value)
    if n is None:
        return 1.0
    for min_gb, factor in tiers:
        if n >= min_gb:
            return factor
    return 1.0


def storage_multiplier(storage: Any) -> float:
    return _tier_factor(storage, STORAGE_TIERS)


def ram_multiplier(ram: Any) -> float:
    return _tier_factor(ram, RAM_TIERS)


def accessories_multiplier(accessories: Any) -> float:
    return 1.0 + ACCESSORY_FACTOR_STEP * _count_items(accessories)


def specifications_multiplier(specifications: Any) -> float:
    specs = _as_mapping(specifications)
    return (
        1.0
        * storage_multiplier(specs.get("storage"))
        * ram_multiplier(specs.get("ram"))
        * accessories_multiplier(specs.get("accessories"))
    )


@dataclass(frozen=True)
class EstimateBreakdown:
    base_price: float
    condition_multiplier: float
    storage_multiplier: float
    ram_multiplier: float
    accessories_multiplier: float
    specifications_multiplier: float
    estimated_price: float


def estimate_breakdown(
    device_type: Any,
    brand: Any,
    model: Any,
    condition: Any,
    specifications: Any = None,
) -> EstimateBreakdown:
    # model is accepted for future per-model tables; the current tables are per brand.
    specs = _as_mapping(specifications)

    base = base_price(device_type, brand)
    cond = condition_multiplier(condition)
    storage = storage_multiplier(specs.get("storage"))
    ram = ram_multiplier(specs.get("ram"))
    acc = accessories_multiplier(specs.get("accessories"))
    spec_mult = specifications_multiplier(specs)

    return EstimateBreakdown(
        base_price=base,
        condition_multiplier=cond,
        storage_multiplier=storage,
        ram_multiplier=ram,
        accessories_multiplier=acc,
        specifications_multiplier=spec_mult,
        estimated_price=round_money(base * cond * spec_mult),
    )


def compute_initial_estimate(
    device_type: Any,
    brand: Any,
    model: Any,
    condition: Any,
    specifications: Any = None,
) -> float:
    return estimate_breakdown(device_type, brand, model, condition, specifications).estimated_price


# ---------------------------------------------------------------------
# Stage 2: final price after inspection
# ---------------------------------------------------------------------


def functionality_multiplier(functionality_test: Any) -> float:
    checks = _as_mapping(functionality_test)
    total = len(checks)
    if total == 0:
        return 1.0
    passed = sum(1 for v in checks.values() if bool(v))
    return FUNCTIONALITY_FLOOR + FUNCTIONALITY_WEIGHT * passed / total


def cosmetic_multiplier(cosmetic: Any) -> float:
    areas = _as_mapping(cosmetic)
    total = len(areas)
    if total == 0:
        return 1.0
    # Exact label match; anything else scores 0 but still counts in the total.
    score = sum(COSMETIC_LABEL_SCORES.get(label, 0.0) if isinstance(label, str) else 0.0 for label in areas.values())
    return COSMETIC_FLOOR + COSMETIC_WEIGHT * score / total


def accessories_bonus(accessories: Any) -> float:
    return INSPECTION_ACCESSORY_BONUS * _count_items(accessories)


def compute_final_price(estimated_price: Any, inspection: Any) -> float:
    report = _as_mapping(inspection)
    estimated = _to_float(estimated_price) or 0.0

    multiplied = (
        estimated
        * condition_multiplier(report.get("condition"))
        * functionality_multiplier(report.get("functionality_test"))
        * cosmetic_multiplier(report.get("cosmetic"))
    )
    # The flat bonus is added after all multipliers.
    return round_money(multiplied + accessories_bonus(report.get("accessories")))
