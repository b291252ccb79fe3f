from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class DeviceType(str, Enum):
    SMARTPHONE = "smartphone"
    TABLET = "tablet"
    LAPTOP = "laptop"
    SMARTWATCH = "smartwatch"
    OTHER = "other"


class DeviceCondition(str, Enum):
    NEW = "new"
    LIKE_NEW = "like_new"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class PriceTier(str, Enum):
    BASE = "base"
    PREMIUM = "premium"


# Labels older clients send for the same grade.
_CONDITION_ALIASES = {
    "very_good": DeviceCondition.LIKE_NEW.value,
    "verygood": DeviceCondition.LIKE_NEW.value,
    "likenew": DeviceCondition.LIKE_NEW.value,
    "like-new": DeviceCondition.LIKE_NEW.value,
}


def normalize_condition(raw: Any) -> Optional[str]:
    """Lower-case + alias mapping. Unknown labels are returned as-is (pricing treats them as unknown)."""
    if raw is None:
        return None
    if isinstance(raw, Enum):
        raw = raw.value
    s = str(raw).strip().lower()
    if not s:
        return None
    return _CONDITION_ALIASES.get(s, s)
