# File: utils/math_utils.py
"""Math and estimation utilities for EcoEcho.

Pure Python math functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

Functions:
    - round_value: Consistent one-decimal rounding
    - to_non_negative: Coerce loosely typed JSON numbers
    - clamp: Bound a value to a range
    - normalize_weight: Correct server weights reported in grams
    - estimate_total_weight: Weight estimate from an item count
    - estimate_co2_saved: CO2 estimate from recyclable and category counts
    - trees_equivalent: CO2 expressed as trees absorbing it for a year
    - calculate_percentage: Progress percentage capped at 100
"""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any

# Module-level logger (no HA dependency)
_LOGGER = logging.getLogger(__name__)

# ==============================================================================
# Constants (local copies to avoid circular imports)
# These mirror const.py values but are defined locally for purity.
# ==============================================================================

DATA_FLOAT_PRECISION = 1
WEIGHT_MAX_KG_PER_ITEM = 10
GRAMS_PER_KILOGRAM = 1000
ESTIMATED_KG_PER_ITEM = 0.1
CO2_KG_PER_RECYCLABLE_ITEM = 0.5
CO2_CATEGORY_BONUS_KG = {"Plastic": 0.3, "Paper": 0.2}
CO2_KG_ABSORBED_PER_TREE = 20


# ==============================================================================
# Basic Arithmetic
# ==============================================================================


def round_value(value: float, precision: int = DATA_FLOAT_PRECISION) -> float:
    """Round a value to the configured precision.

    Examples:
        round_value(0.84) → 0.8
        round_value(12.0) → 12.0
    """
    return round(float(value), precision)


def to_non_negative(value: Any) -> float:
    """Coerce a loosely typed JSON value to a non-negative float.

    Missing, non-numeric and negative values all become 0.

    Examples:
        to_non_negative("12.5") → 12.5
        to_non_negative(None) → 0.0
        to_non_negative(-3) → 0.0
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number or number < 0:  # NaN or negative
        return 0.0
    return number


def clamp(value: float, min_val: float, max_val: float) -> float:
    """Clamp a value between minimum and maximum bounds."""
    return max(min_val, min(value, max_val))


# ==============================================================================
# Weight and Impact Estimation
# ==============================================================================


def normalize_weight(raw_weight: Any, item_count: Any) -> float:
    """Return a weight in kilograms, correcting values reported in grams.

    The legacy server field carries no unit. No single item realistically
    averages more than WEIGHT_MAX_KG_PER_ITEM kilograms, so anything above
    that per item is treated as grams.

    Examples:
        normalize_weight(800, 3) → 0.8  # grams
        normalize_weight(15, 3) → 15.0  # already kg
        normalize_weight(800, 0) → 800.0  # no items, heuristic skipped
        normalize_weight(-5, 3) → 0.0
    """
    weight = to_non_negative(raw_weight)
    count = to_non_negative(item_count)

    if count > 0 and weight > count * WEIGHT_MAX_KG_PER_ITEM:
        _LOGGER.debug(
            "Converting weight from %sg to %skg", weight, weight / GRAMS_PER_KILOGRAM
        )
        return round_value(weight / GRAMS_PER_KILOGRAM)
    return round_value(weight)


def estimate_total_weight(item_count: Any) -> float:
    """Estimate total weight assuming ESTIMATED_KG_PER_ITEM per item.

    Examples:
        estimate_total_weight(1) → 0.1
        estimate_total_weight(10) → 1.0
    """
    return round_value(to_non_negative(item_count) * ESTIMATED_KG_PER_ITEM)


def estimate_co2_saved(
    recyclable_count: Any, categories: Mapping[str, Any] | None = None
) -> float:
    """Estimate kilograms of CO2 saved by recycling.

    Base of CO2_KG_PER_RECYCLABLE_ITEM per recyclable item, plus a bonus per
    scanned item for categories with higher savings (plastic, paper).

    Examples:
        estimate_co2_saved(4) → 2.0
        estimate_co2_saved(4, {"Plastic": 2, "Paper": 1}) → 2.8
    """
    carbon_saved = to_non_negative(recyclable_count) * CO2_KG_PER_RECYCLABLE_ITEM
    if categories:
        for category, bonus in CO2_CATEGORY_BONUS_KG.items():
            carbon_saved += to_non_negative(categories.get(category)) * bonus
    return round_value(carbon_saved)


def trees_equivalent(co2_saved: Any) -> float:
    """Express CO2 (kg) as trees absorbing it over one year."""
    return round_value(to_non_negative(co2_saved) / CO2_KG_ABSORBED_PER_TREE)


# ==============================================================================
# Progress
# ==============================================================================


def calculate_percentage(current: float, target: float) -> float:
    """Calculate a progress percentage in the range [0, 100].

    Examples:
        calculate_percentage(5, 10) → 50.0
        calculate_percentage(15, 10) → 100.0
        calculate_percentage(5, 0) → 0.0  # Division by zero protection
    """
    if target <= 0:
        return 0.0
    return clamp((current / target) * 100, 0.0, 100.0)
