"""Type definitions for EcoEcho data structures.

Persisted blobs are plain JSON dicts, so they are described with TypedDict for
static analysis only. Every blob read from storage goes through a
``data_builders.build_*`` function, which upgrades legacy shapes and fills
defaults; TypedDict does NOT enforce anything at runtime.

The achievement catalog is compiled into the program, so it uses a frozen
dataclass and a closed enum of metric kinds instead.

IMPORTANT: This file must NOT import from coordinator.py, managers or engines
to avoid circular dependencies. Only typing machinery lives here.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import NotRequired, TypedDict

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

UserId = str  # Server-side user identifier
ScanId = str  # Epoch milliseconds as string
AchievementId = str  # Catalog identifier, e.g. "first_scan"
ISODatetime = str  # ISO 8601 datetime string "2026-01-18T12:30:00+00:00"


# =============================================================================
# Scan history
# =============================================================================


class ScanInput(TypedDict, total=False):
    """Raw scan result as produced by the classifier or a service call."""

    item_name: str
    category: str
    is_recyclable: bool
    eco_score: int
    confidence: float
    disposal_method: str


class ScanRecord(TypedDict):
    """One immutable waste-item scan."""

    schema_version: int
    id: ScanId
    timestamp: ISODatetime
    item_name: str
    category: str
    is_recyclable: bool
    eco_score: int
    confidence: float
    disposal_method: str
    image_ref: str | None


class LocalAggregateStats(TypedDict):
    """Per-namespace aggregate derived from recorded scans."""

    schema_version: int
    total_items_scanned: int
    recyclable_items_count: int
    total_eco_score: float
    average_eco_score: float
    scans_by_category: dict[str, int]
    scans_by_material: dict[str, int]
    last_updated: ISODatetime | None


# =============================================================================
# Server and reconciled statistics
# =============================================================================


class ServerUserStats(TypedDict):
    """Server-reported statistics (weight unit is ambiguous)."""

    total_items: int
    total_weight: float
    total_carbon_saved: float
    recyclable_items: int
    category_breakdown: NotRequired[dict[str, int]]
    last_updated: NotRequired[ISODatetime | None]


class ReconciledStats(TypedDict):
    """Max-wins merge of every statistics source."""

    schema_version: int
    total_items: int
    total_weight: float  # kilograms
    total_carbon_saved: float  # kilograms CO2
    recyclable_items: int
    trees_equivalent: float
    last_updated: ISODatetime


# =============================================================================
# Gamification
# =============================================================================


class UserProgress(TypedDict):
    """Cumulative counters driving achievement evaluation."""

    schema_version: int
    scan_count: int
    recyclable_count: int
    total_eco_score: float
    categories_scanned: list[str]
    daily_streak: int
    last_scan_date: ISODatetime | None
    share_count: int
    unlocked_achievements: list[AchievementId]


class LedgerEntry(TypedDict):
    """One points award."""

    points: int
    achievement_id: AchievementId
    timestamp: ISODatetime


class PointsLedger(TypedDict):
    """Append-only record of awarded points."""

    schema_version: int
    total: int
    earned: list[LedgerEntry]


class Identity(TypedDict):
    """Signed-in user for this device."""

    user_id: UserId
    token: NotRequired[str | None]


class AchievementMetric(StrEnum):
    """Closed set of progress metrics an achievement can require."""

    SCAN_COUNT = "scan_count"
    RECYCLABLE_COUNT = "recyclable_count"
    AVERAGE_SCORE = "average_score"
    CATEGORY_DIVERSITY = "category_diversity"
    DAILY_STREAK = "daily_streak"
    SHARE_COUNT = "share_count"
    EARLY_SCAN_HOUR = "early_scan_hour"
    LATE_SCAN_HOUR = "late_scan_hour"


@dataclass(frozen=True)
class AchievementRequirement:
    """Single numeric requirement of an achievement."""

    metric: AchievementMetric
    threshold: float


@dataclass(frozen=True)
class AchievementDefinition:
    """Static catalog entry."""

    id: AchievementId
    title: str
    description: str
    icon: str
    points: int
    category: str
    requirement: AchievementRequirement

    def as_dict(self) -> dict[str, object]:
        """Return a JSON-serializable view for service responses and events."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "icon": self.icon,
            "points": self.points,
            "category": self.category,
            "requirement": {
                "metric": str(self.requirement.metric),
                "threshold": self.requirement.threshold,
            },
        }
