"""Persisted record builders.

This module is the SINGLE SOURCE OF TRUTH for:
- Field defaults of every persisted blob
- Upgrading legacy (schema_version 1, camelCase) blobs written by the
  original mobile client
- Converting collaborator payloads (server stats, classifier results)

## Build Functions
Each blob type has a `build_<blob>()` function that:
- Accepts a raw value read from storage (possibly None or legacy-shaped)
- Renames legacy keys and stamps the current schema version
- Coerces loosely typed fields and applies defaults
- Returns a complete dict ready for storage

Malformed optional fields never raise. They are replaced by defaults and
reported at debug level under the MalformedInputWarning category.

See Also:
- type_defs.py: TypedDict definitions for type safety
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, cast

from . import const
from .type_defs import (
    Identity,
    LedgerEntry,
    LocalAggregateStats,
    PointsLedger,
    ReconciledStats,
    ScanInput,
    ScanRecord,
    ServerUserStats,
    UserProgress,
)
from .utils.math_utils import clamp, to_non_negative

# ==============================================================================
# LEGACY KEY MAPS (schema_version 1 → 2)
# ==============================================================================

_LEGACY_SCAN_KEYS = {
    "itemName": const.DATA_SCAN_ITEM_NAME,
    "isRecyclable": const.DATA_SCAN_IS_RECYCLABLE,
    "ecoScore": const.DATA_SCAN_ECO_SCORE,
    "disposalMethod": const.DATA_SCAN_DISPOSAL_METHOD,
    "imageUri": const.DATA_SCAN_IMAGE_REF,
}

_LEGACY_STATS_KEYS = {
    "totalItemsScanned": const.DATA_STATS_TOTAL_ITEMS_SCANNED,
    "recyclableItemsCount": const.DATA_STATS_RECYCLABLE_ITEMS_COUNT,
    "totalEcoScore": const.DATA_STATS_TOTAL_ECO_SCORE,
    "averageEcoScore": const.DATA_STATS_AVERAGE_ECO_SCORE,
    "scansByCategory": const.DATA_STATS_SCANS_BY_CATEGORY,
    "scansByMaterial": const.DATA_STATS_SCANS_BY_MATERIAL,
    "lastUpdated": const.DATA_STATS_LAST_UPDATED,
}

_LEGACY_PROGRESS_KEYS = {
    "scanCount": const.DATA_PROGRESS_SCAN_COUNT,
    "recyclableCount": const.DATA_PROGRESS_RECYCLABLE_COUNT,
    "totalEcoScore": const.DATA_PROGRESS_TOTAL_ECO_SCORE,
    "categoriesScanned": const.DATA_PROGRESS_CATEGORIES_SCANNED,
    "dailyStreak": const.DATA_PROGRESS_DAILY_STREAK,
    "lastScanDate": const.DATA_PROGRESS_LAST_SCAN_DATE,
    "shareCount": const.DATA_PROGRESS_SHARE_COUNT,
    "unlockedAchievements": const.DATA_PROGRESS_UNLOCKED_ACHIEVEMENTS,
}

_LEGACY_LEDGER_KEYS = {
    "achievementId": const.DATA_LEDGER_ACHIEVEMENT_ID,
}

# Server payloads are camelCase on the wire regardless of schema version
_SERVER_STATS_KEYS = {
    const.API_FIELD_TOTAL_ITEMS: const.DATA_SERVER_TOTAL_ITEMS,
    const.API_FIELD_TOTAL_WEIGHT: const.DATA_SERVER_TOTAL_WEIGHT,
    const.API_FIELD_TOTAL_CARBON_SAVED: const.DATA_SERVER_TOTAL_CARBON_SAVED,
    const.API_FIELD_RECYCLABLE_ITEMS: const.DATA_SERVER_RECYCLABLE_ITEMS,
    const.API_FIELD_CATEGORY_BREAKDOWN: const.DATA_SERVER_CATEGORY_BREAKDOWN,
    const.API_FIELD_LAST_UPDATED: const.DATA_SERVER_LAST_UPDATED,
}

# Checked in order; first keyword hit wins
_MATERIAL_CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (const.CATEGORY_ORGANIC, ("food", "coffee", "tea_bag", "eggshell")),
    (const.CATEGORY_PLASTIC, ("plastic", "styrofoam")),
    (const.CATEGORY_PAPER, ("paper", "cardboard", "newspaper", "magazine")),
    (const.CATEGORY_GLASS, ("glass",)),
    (const.CATEGORY_METAL, ("aluminum", "metal", "steel", "aerosol")),
    (const.CATEGORY_ELECTRONIC, ("electronic", "battery", "device")),
)


# ==============================================================================
# WARNINGS
# ==============================================================================


class MalformedInputWarning(UserWarning):
    """Category for optional fields that were missing or invalid and defaulted.

    Never raised. Used to tag debug log lines so defaulting stays observable.
    """


def _report_defaulted(kind: str, fields: list[str]) -> None:
    """Log fields that fell back to defaults."""
    if fields:
        const.LOGGER.debug(
            "DEBUG: %s - %s defaulted fields: %s",
            MalformedInputWarning.__name__,
            kind,
            ", ".join(fields),
        )


# ==============================================================================
# HELPER FUNCTIONS FOR FIELD NORMALIZATION
# ==============================================================================


def _as_dict(raw: Any) -> dict[str, Any]:
    """Return a shallow copy of raw if it is a mapping, else an empty dict."""
    if isinstance(raw, Mapping):
        return dict(raw)
    return {}


def _upgrade_keys(data: dict[str, Any], key_map: Mapping[str, str]) -> dict[str, Any]:
    """Rename legacy keys in place. Existing new-style keys win."""
    for legacy_key, new_key in key_map.items():
        if legacy_key in data:
            value = data.pop(legacy_key)
            data.setdefault(new_key, value)
    return data


def _is_legacy(data: Mapping[str, Any]) -> bool:
    version = data.get(const.DATA_SCHEMA_VERSION, const.SCHEMA_VERSION_LEGACY)
    return not isinstance(version, int) or version < const.SCHEMA_VERSION_CURRENT


def _to_int(value: Any) -> int:
    return int(to_non_negative(value))


def _normalize_count_map(value: Any) -> dict[str, int]:
    """Normalize a key → count mapping, dropping non-string keys."""
    if not isinstance(value, Mapping):
        return {}
    return {str(key): _to_int(count) for key, count in value.items() if key}


def _normalize_str_list(value: Any) -> list[str]:
    """Normalize a list of strings, keeping first occurrence order."""
    if not isinstance(value, list):
        return []
    result: list[str] = []
    for item in value:
        if isinstance(item, str) and item and item not in result:
            result.append(item)
    return result


def normalize_category(value: Any) -> str:
    """Map a free-form category to the fixed enumeration.

    Matching is case-insensitive; anything unknown becomes "Other".
    """
    if isinstance(value, str):
        candidate = value.strip().lower()
        for category in const.SCAN_CATEGORIES:
            if category.lower() == candidate:
                return category
    return const.DEFAULT_CATEGORY


# ==============================================================================
# SCAN RECORDS
# ==============================================================================


def build_scan_record(
    scan_input: Mapping[str, Any] | None,
    *,
    scan_id: str,
    timestamp: str,
    image_ref: str | None = None,
) -> ScanRecord:
    """Build an immutable scan record from raw scan input.

    Args:
        scan_input: Raw scan result (item_name, category, is_recyclable,
            eco_score, confidence, disposal_method). Legacy camelCase keys are
            accepted.
        scan_id: Unique identifier assigned by the recorder
        timestamp: ISO timestamp assigned by the recorder
        image_ref: Optional local image reference

    Returns:
        Complete ScanRecord with defaults applied
    """
    data = _upgrade_keys(_as_dict(scan_input), _LEGACY_SCAN_KEYS)
    defaulted: list[str] = []

    item_name = data.get(const.DATA_SCAN_ITEM_NAME)
    if not isinstance(item_name, str) or not item_name.strip():
        defaulted.append(const.DATA_SCAN_ITEM_NAME)
        item_name = "Unknown Item"

    raw_category = data.get(const.DATA_SCAN_CATEGORY)
    category = normalize_category(raw_category)
    if category == const.DEFAULT_CATEGORY and raw_category != const.DEFAULT_CATEGORY:
        defaulted.append(const.DATA_SCAN_CATEGORY)

    is_recyclable = data.get(const.DATA_SCAN_IS_RECYCLABLE)
    if not isinstance(is_recyclable, bool):
        defaulted.append(const.DATA_SCAN_IS_RECYCLABLE)
        is_recyclable = False

    if const.DATA_SCAN_ECO_SCORE not in data:
        defaulted.append(const.DATA_SCAN_ECO_SCORE)
    eco_score = int(
        clamp(
            round(to_non_negative(data.get(const.DATA_SCAN_ECO_SCORE))),
            const.ECO_SCORE_MIN,
            const.ECO_SCORE_MAX,
        )
    )

    if const.DATA_SCAN_CONFIDENCE not in data:
        defaulted.append(const.DATA_SCAN_CONFIDENCE)
    confidence = clamp(to_non_negative(data.get(const.DATA_SCAN_CONFIDENCE)), 0.0, 1.0)

    disposal_method = data.get(const.DATA_SCAN_DISPOSAL_METHOD)
    if not isinstance(disposal_method, str) or not disposal_method:
        defaulted.append(const.DATA_SCAN_DISPOSAL_METHOD)
        disposal_method = const.DEFAULT_DISPOSAL_METHOD

    _report_defaulted("scan input", defaulted)

    return {
        const.DATA_SCHEMA_VERSION: const.SCHEMA_VERSION_CURRENT,
        const.DATA_SCAN_ID: scan_id,
        const.DATA_SCAN_TIMESTAMP: timestamp,
        const.DATA_SCAN_ITEM_NAME: item_name,
        const.DATA_SCAN_CATEGORY: category,
        const.DATA_SCAN_IS_RECYCLABLE: is_recyclable,
        const.DATA_SCAN_ECO_SCORE: eco_score,
        const.DATA_SCAN_CONFIDENCE: confidence,
        const.DATA_SCAN_DISPOSAL_METHOD: disposal_method,
        const.DATA_SCAN_IMAGE_REF: image_ref or None,
    }  # type: ignore[misc]


def load_scan_record(raw: Any) -> ScanRecord | None:
    """Upgrade a stored scan record. Records without an id are dropped."""
    data = _upgrade_keys(_as_dict(raw), _LEGACY_SCAN_KEYS)
    scan_id = data.get(const.DATA_SCAN_ID)
    if scan_id is None or scan_id == "":
        return None
    timestamp = data.get(const.DATA_SCAN_TIMESTAMP)
    return build_scan_record(
        data,
        scan_id=str(scan_id),
        timestamp=timestamp if isinstance(timestamp, str) else "",
        image_ref=data.get(const.DATA_SCAN_IMAGE_REF),
    )


def build_scan_history(raw: Any) -> list[ScanRecord]:
    """Upgrade a stored history list, dropping unusable entries."""
    if not isinstance(raw, list):
        return []
    history: list[ScanRecord] = []
    for item in raw:
        record = load_scan_record(item)
        if record is not None:
            history.append(record)
    return history


def map_classifier_category(ml_category: Any, material_name: Any) -> str:
    """Map a classifier category plus material name to a scan category.

    The material name is more specific than the model's coarse category, so
    it wins whenever one of the material keywords matches.

    Examples:
        map_classifier_category("recyclable", "plastic_bottle") → "Plastic"
        map_classifier_category("compostable", "banana_peel") → "Organic"
        map_classifier_category("Glass", "unknown") → "Glass"
    """
    category = ml_category.lower() if isinstance(ml_category, str) else ""
    material = material_name.lower() if isinstance(material_name, str) else ""

    if category == "compostable":
        return const.CATEGORY_ORGANIC
    for mapped_category, keywords in _MATERIAL_CATEGORY_KEYWORDS:
        if any(keyword in material for keyword in keywords):
            return mapped_category
    return normalize_category(ml_category)


def build_scan_input_from_classification(result: Mapping[str, Any]) -> ScanInput:
    """Convert a classifier response into raw scan input.

    The classifier reports confidence as a percentage (0-100) and uses its
    own field names; scan records store confidence as a fraction.
    """
    data = _as_dict(result)
    material = data.get(const.CLASSIFIER_FIELD_CLASS_NAME)
    category = map_classifier_category(
        data.get(const.CLASSIFIER_FIELD_CATEGORY), material
    )
    is_recyclable = data.get(const.CLASSIFIER_FIELD_RECYCLABLE) is True
    confidence = to_non_negative(data.get(const.CLASSIFIER_FIELD_CONFIDENCE)) / 100

    disposal = data.get(const.CLASSIFIER_FIELD_DISPOSAL_INSTRUCTIONS)
    if not isinstance(disposal, str) or not disposal:
        if category == const.CATEGORY_ORGANIC:
            disposal = const.DISPOSAL_COMPOSTED
        elif is_recyclable:
            disposal = const.DISPOSAL_RECYCLED
        else:
            disposal = const.DISPOSAL_LANDFILL

    return {
        "item_name": str(material or "").replace("_", " ").strip(),
        "category": category,
        "is_recyclable": is_recyclable,
        "eco_score": _to_int(data.get(const.CLASSIFIER_FIELD_ECO_SCORE)),
        "confidence": clamp(confidence, 0.0, 1.0),
        "disposal_method": disposal,
    }


# ==============================================================================
# LOCAL AGGREGATE STATS
# ==============================================================================


def build_local_stats(raw: Any = None) -> LocalAggregateStats:
    """Upgrade a stored aggregate or return an all-zero one.

    The average is always recomputed from the sum and the count so that the
    stored value can never drift from its invariant.
    """
    data = _as_dict(raw)
    if _is_legacy(data):
        _upgrade_keys(data, _LEGACY_STATS_KEYS)

    total_items = _to_int(data.get(const.DATA_STATS_TOTAL_ITEMS_SCANNED))
    total_eco_score = to_non_negative(data.get(const.DATA_STATS_TOTAL_ECO_SCORE))
    last_updated = data.get(const.DATA_STATS_LAST_UPDATED)

    return {
        const.DATA_SCHEMA_VERSION: const.SCHEMA_VERSION_CURRENT,
        const.DATA_STATS_TOTAL_ITEMS_SCANNED: total_items,
        const.DATA_STATS_RECYCLABLE_ITEMS_COUNT: _to_int(
            data.get(const.DATA_STATS_RECYCLABLE_ITEMS_COUNT)
        ),
        const.DATA_STATS_TOTAL_ECO_SCORE: total_eco_score,
        const.DATA_STATS_AVERAGE_ECO_SCORE: (
            total_eco_score / total_items if total_items > 0 else 0.0
        ),
        const.DATA_STATS_SCANS_BY_CATEGORY: _normalize_count_map(
            data.get(const.DATA_STATS_SCANS_BY_CATEGORY)
        ),
        const.DATA_STATS_SCANS_BY_MATERIAL: _normalize_count_map(
            data.get(const.DATA_STATS_SCANS_BY_MATERIAL)
        ),
        const.DATA_STATS_LAST_UPDATED: (
            last_updated if isinstance(last_updated, str) else None
        ),
    }  # type: ignore[misc]


# ==============================================================================
# SERVER / RECONCILED STATS
# ==============================================================================


def build_server_stats(raw: Any = None) -> ServerUserStats:
    """Normalize a server stats payload (camelCase wire format or snake_case)."""
    data = _upgrade_keys(_as_dict(raw), _SERVER_STATS_KEYS)
    stats: ServerUserStats = {
        "total_items": _to_int(data.get(const.DATA_SERVER_TOTAL_ITEMS)),
        "total_weight": to_non_negative(data.get(const.DATA_SERVER_TOTAL_WEIGHT)),
        "total_carbon_saved": to_non_negative(
            data.get(const.DATA_SERVER_TOTAL_CARBON_SAVED)
        ),
        "recyclable_items": _to_int(data.get(const.DATA_SERVER_RECYCLABLE_ITEMS)),
    }
    breakdown = _normalize_count_map(data.get(const.DATA_SERVER_CATEGORY_BREAKDOWN))
    if breakdown:
        stats["category_breakdown"] = breakdown
    last_updated = data.get(const.DATA_SERVER_LAST_UPDATED)
    if isinstance(last_updated, str):
        stats["last_updated"] = last_updated
    return stats


def build_reconciled_stats(raw: Any = None) -> ReconciledStats:
    """Upgrade cached reconciled ("user object") stats."""
    data = _upgrade_keys(_as_dict(raw), _SERVER_STATS_KEYS)
    last_updated = data.get(const.DATA_SERVER_LAST_UPDATED)
    return {
        const.DATA_SCHEMA_VERSION: const.SCHEMA_VERSION_CURRENT,
        const.DATA_SERVER_TOTAL_ITEMS: _to_int(data.get(const.DATA_SERVER_TOTAL_ITEMS)),
        const.DATA_SERVER_TOTAL_WEIGHT: to_non_negative(
            data.get(const.DATA_SERVER_TOTAL_WEIGHT)
        ),
        const.DATA_SERVER_TOTAL_CARBON_SAVED: to_non_negative(
            data.get(const.DATA_SERVER_TOTAL_CARBON_SAVED)
        ),
        const.DATA_SERVER_RECYCLABLE_ITEMS: _to_int(
            data.get(const.DATA_SERVER_RECYCLABLE_ITEMS)
        ),
        const.DATA_RECONCILED_TREES_EQUIVALENT: to_non_negative(
            data.get(const.DATA_RECONCILED_TREES_EQUIVALENT)
        ),
        const.DATA_SERVER_LAST_UPDATED: (
            last_updated if isinstance(last_updated, str) else ""
        ),
    }  # type: ignore[misc]


def reconciled_stats_to_api(stats: Mapping[str, Any]) -> dict[str, Any]:
    """Convert reconciled stats to the server's camelCase PUT body."""
    return {
        const.API_FIELD_TOTAL_ITEMS: stats.get(const.DATA_SERVER_TOTAL_ITEMS, 0),
        const.API_FIELD_TOTAL_WEIGHT: stats.get(const.DATA_SERVER_TOTAL_WEIGHT, 0),
        const.API_FIELD_TOTAL_CARBON_SAVED: stats.get(
            const.DATA_SERVER_TOTAL_CARBON_SAVED, 0
        ),
        const.API_FIELD_RECYCLABLE_ITEMS: stats.get(
            const.DATA_SERVER_RECYCLABLE_ITEMS, 0
        ),
        const.API_FIELD_LAST_UPDATED: stats.get(const.DATA_SERVER_LAST_UPDATED),
    }


# ==============================================================================
# GAMIFICATION
# ==============================================================================


def build_user_progress(raw: Any = None) -> UserProgress:
    """Upgrade stored progress or return freshly initialized progress."""
    data = _as_dict(raw)
    if _is_legacy(data):
        _upgrade_keys(data, _LEGACY_PROGRESS_KEYS)

    last_scan_date = data.get(const.DATA_PROGRESS_LAST_SCAN_DATE)
    return {
        const.DATA_SCHEMA_VERSION: const.SCHEMA_VERSION_CURRENT,
        const.DATA_PROGRESS_SCAN_COUNT: _to_int(data.get(const.DATA_PROGRESS_SCAN_COUNT)),
        const.DATA_PROGRESS_RECYCLABLE_COUNT: _to_int(
            data.get(const.DATA_PROGRESS_RECYCLABLE_COUNT)
        ),
        const.DATA_PROGRESS_TOTAL_ECO_SCORE: to_non_negative(
            data.get(const.DATA_PROGRESS_TOTAL_ECO_SCORE)
        ),
        const.DATA_PROGRESS_CATEGORIES_SCANNED: _normalize_str_list(
            data.get(const.DATA_PROGRESS_CATEGORIES_SCANNED)
        ),
        const.DATA_PROGRESS_DAILY_STREAK: _to_int(
            data.get(const.DATA_PROGRESS_DAILY_STREAK)
        ),
        const.DATA_PROGRESS_LAST_SCAN_DATE: (
            last_scan_date if isinstance(last_scan_date, str) else None
        ),
        const.DATA_PROGRESS_SHARE_COUNT: _to_int(
            data.get(const.DATA_PROGRESS_SHARE_COUNT)
        ),
        const.DATA_PROGRESS_UNLOCKED_ACHIEVEMENTS: _normalize_str_list(
            data.get(const.DATA_PROGRESS_UNLOCKED_ACHIEVEMENTS)
        ),
    }  # type: ignore[misc]


def build_points_ledger(raw: Any = None) -> PointsLedger:
    """Upgrade a stored points ledger or return an empty one."""
    data = _as_dict(raw)
    entries: list[LedgerEntry] = []
    raw_entries = data.get(const.DATA_POINTS_EARNED)
    if isinstance(raw_entries, list):
        for raw_entry in raw_entries:
            entry = _upgrade_keys(_as_dict(raw_entry), _LEGACY_LEDGER_KEYS)
            achievement_id = entry.get(const.DATA_LEDGER_ACHIEVEMENT_ID)
            if not isinstance(achievement_id, str) or not achievement_id:
                continue
            timestamp = entry.get(const.DATA_LEDGER_TIMESTAMP)
            entries.append(
                {
                    "points": _to_int(entry.get(const.DATA_LEDGER_POINTS)),
                    "achievement_id": achievement_id,
                    "timestamp": timestamp if isinstance(timestamp, str) else "",
                }
            )
    return {
        const.DATA_SCHEMA_VERSION: const.SCHEMA_VERSION_CURRENT,
        const.DATA_POINTS_TOTAL: _to_int(data.get(const.DATA_POINTS_TOTAL)),
        const.DATA_POINTS_EARNED: entries,
    }  # type: ignore[misc]


# ==============================================================================
# IDENTITY
# ==============================================================================


def build_identity(raw: Any) -> Identity | None:
    """Return the stored identity, or None when anonymous.

    The legacy client stored the whole server user object with an ``_id``.
    """
    data = _as_dict(raw)
    user_id = data.get(const.DATA_IDENTITY_USER_ID) or data.get("_id")
    if not isinstance(user_id, str) or not user_id:
        return None
    token = data.get(const.DATA_IDENTITY_TOKEN)
    return cast(
        "Identity",
        {
            const.DATA_IDENTITY_USER_ID: user_id,
            const.DATA_IDENTITY_TOKEN: token if isinstance(token, str) else None,
        },
    )
