from __future__ import annotations

from typing import Dict, List, Tuple, Union

# Base values per device type, per brand (lower-case keys).
# A brand entry carries a "base" and a "premium" value; only "base" is used
# unless a caller explicitly asks for the premium tier.
BasePriceEntry = Union[Dict[str, float], float]

BASE_PRICES: Dict[str, Dict[str, BasePriceEntry]] = {
    "smartphone": {
        "apple": {"base": 400.0, "premium": 800.0},
        "samsung": {"base": 300.0, "premium": 600.0},
        "default": 200.0,
    },
    "tablet": {
        "apple": {"base": 300.0, "premium": 600.0},
        "samsung": {"base": 200.0, "premium": 400.0},
        "default": 150.0,
    },
    "laptop": {
        "apple": {"base": 600.0, "premium": 1200.0},
        "default": 400.0,
    },
}

GLOBAL_DEFAULT_BASE_PRICE = 100.0

CONDITION_MULTIPLIERS: Dict[str, float] = {
    "new": 1.0,
    "like_new": 0.9,
    "good": 0.8,
    "fair": 0.6,
    "poor": 0.4,
}
UNKNOWN_CONDITION_MULTIPLIER = 0.5

# (min_gb, factor), checked top-down.
STORAGE_TIERS: List[Tuple[int, float]] = [(512, 1.3), (256, 1.2), (128, 1.1)]
RAM_TIERS: List[Tuple[int, float]] = [(16, 1.2), (8, 1.1)]

ACCESSORY_FACTOR_STEP = 0.05

# Inspection
FUNCTIONALITY_FLOOR = 0.4
FUNCTIONALITY_WEIGHT = 0.6

COSMETIC_FLOOR = 0.6
COSMETIC_WEIGHT = 0.4
COSMETIC_LABEL_SCORES: Dict[str, float] = {
    "perfect": 1.0,
    "good": 0.7,
    "fair": 0.4,
}

# Flat bonus per accessory found in the box at inspection (currency units).
INSPECTION_ACCESSORY_BONUS = 5.0
