"""Gamification Engine - Pure logic for achievement progress and unlocking.

This engine provides stateless, pure Python functions for:
- Updating cumulative UserProgress counters from scans and shares
- Daily streak tracking (consecutive local calendar days)
- Achievement evaluation against the static catalog
- Progress percentages toward locked achievements

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions are static methods that operate on passed-in data.
The GamificationManager loads progress, calls the engine, and handles side
effects (ledger awards, storage, events).

Achievement states: Locked → Unlocked. Unlocking is terminal; an achievement
that is already in ``unlocked_achievements`` is never evaluated again.

Metric Types (AchievementMetric):
- scan_count, recyclable_count, share_count: cumulative counters
- average_score: total_eco_score / scan_count (0 with no scans)
- category_diversity: number of distinct categories scanned
- daily_streak: consecutive days with at least one scan
- early_scan_hour / late_scan_hour: local hour of the evaluating scan
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from .. import const
from ..data_builders import build_user_progress
from ..type_defs import (
    AchievementDefinition,
    AchievementMetric,
    AchievementRequirement,
)
from ..utils.dt_utils import dt_local_date, dt_now_local
from ..utils.math_utils import calculate_percentage

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..type_defs import ScanRecord, UserProgress


# =============================================================================
# ACHIEVEMENT CATALOG
# =============================================================================


def _achievement(
    achievement_id: str,
    title: str,
    description: str,
    icon: str,
    points: int,
    category: str,
    metric: AchievementMetric,
    threshold: float,
) -> AchievementDefinition:
    return AchievementDefinition(
        id=achievement_id,
        title=title,
        description=description,
        icon=icon,
        points=points,
        category=category,
        requirement=AchievementRequirement(metric=metric, threshold=threshold),
    )


# Catalog order is evaluation order and the order of newly-unlocked results
ACHIEVEMENTS: tuple[AchievementDefinition, ...] = (
    # Scanning milestones
    _achievement(
        "first_scan",
        "First Steps",
        "Complete your first waste scan",
        "camera-outline",
        50,
        const.ACHIEVEMENT_CATEGORY_MILESTONE,
        AchievementMetric.SCAN_COUNT,
        1,
    ),
    _achievement(
        "scan_veteran",
        "Scan Veteran",
        "Complete 10 waste scans",
        "star-outline",
        200,
        const.ACHIEVEMENT_CATEGORY_MILESTONE,
        AchievementMetric.SCAN_COUNT,
        10,
    ),
    _achievement(
        "scan_master",
        "Scan Master",
        "Complete 50 waste scans",
        "trophy-outline",
        500,
        const.ACHIEVEMENT_CATEGORY_MILESTONE,
        AchievementMetric.SCAN_COUNT,
        50,
    ),
    _achievement(
        "eco_champion",
        "Eco Champion",
        "Complete 100 waste scans",
        "crown-outline",
        1000,
        const.ACHIEVEMENT_CATEGORY_MILESTONE,
        AchievementMetric.SCAN_COUNT,
        100,
    ),
    # Recycling
    _achievement(
        "recycling_rookie",
        "Recycling Rookie",
        "Scan 5 recyclable items",
        "recycle",
        100,
        const.ACHIEVEMENT_CATEGORY_RECYCLING,
        AchievementMetric.RECYCLABLE_COUNT,
        5,
    ),
    _achievement(
        "recycling_hero",
        "Recycling Hero",
        "Scan 25 recyclable items",
        "leaf-outline",
        300,
        const.ACHIEVEMENT_CATEGORY_RECYCLING,
        AchievementMetric.RECYCLABLE_COUNT,
        25,
    ),
    _achievement(
        "green_guardian",
        "Green Guardian",
        "Scan 50 recyclable items",
        "earth",
        600,
        const.ACHIEVEMENT_CATEGORY_RECYCLING,
        AchievementMetric.RECYCLABLE_COUNT,
        50,
    ),
    # Eco score
    _achievement(
        "high_scorer",
        "High Scorer",
        "Achieve an average eco score of 70+",
        "trending-up",
        250,
        const.ACHIEVEMENT_CATEGORY_SCORE,
        AchievementMetric.AVERAGE_SCORE,
        70,
    ),
    _achievement(
        "eco_perfectionist",
        "Eco Perfectionist",
        "Achieve an average eco score of 85+",
        "medal-outline",
        400,
        const.ACHIEVEMENT_CATEGORY_SCORE,
        AchievementMetric.AVERAGE_SCORE,
        85,
    ),
    # Category diversity
    _achievement(
        "category_explorer",
        "Category Explorer",
        "Scan items from 4 different categories",
        "compass-outline",
        150,
        const.ACHIEVEMENT_CATEGORY_DIVERSITY,
        AchievementMetric.CATEGORY_DIVERSITY,
        4,
    ),
    _achievement(
        "waste_detective",
        "Waste Detective",
        "Scan items from all 7 waste categories",
        "magnify",
        350,
        const.ACHIEVEMENT_CATEGORY_DIVERSITY,
        AchievementMetric.CATEGORY_DIVERSITY,
        7,
    ),
    # Streaks
    _achievement(
        "weekly_warrior",
        "Weekly Warrior",
        "Scan items for 7 consecutive days",
        "calendar-check",
        200,
        const.ACHIEVEMENT_CATEGORY_STREAK,
        AchievementMetric.DAILY_STREAK,
        7,
    ),
    _achievement(
        "consistency_king",
        "Consistency King",
        "Scan items for 30 consecutive days",
        "calendar-star",
        800,
        const.ACHIEVEMENT_CATEGORY_STREAK,
        AchievementMetric.DAILY_STREAK,
        30,
    ),
    # Time of day
    _achievement(
        "early_bird",
        "Early Bird",
        "Scan an item before 8 AM",
        "weather-sunrise",
        75,
        const.ACHIEVEMENT_CATEGORY_SPECIAL,
        AchievementMetric.EARLY_SCAN_HOUR,
        8,
    ),
    _achievement(
        "night_owl",
        "Night Owl",
        "Scan an item after 10 PM",
        "weather-night",
        75,
        const.ACHIEVEMENT_CATEGORY_SPECIAL,
        AchievementMetric.LATE_SCAN_HOUR,
        22,
    ),
    # Social
    _achievement(
        "share_the_love",
        "Share the Love",
        "Share your first scan result",
        "share-variant",
        100,
        const.ACHIEVEMENT_CATEGORY_SOCIAL,
        AchievementMetric.SHARE_COUNT,
        1,
    ),
)

_ACHIEVEMENTS_BY_ID: dict[str, AchievementDefinition] = {
    achievement.id: achievement for achievement in ACHIEVEMENTS
}

_HOUR_METRICS = frozenset(
    {AchievementMetric.EARLY_SCAN_HOUR, AchievementMetric.LATE_SCAN_HOUR}
)


# =============================================================================
# TYPE ALIASES
# =============================================================================

# Handler function signature: (progress, now) -> current metric value
MetricHandler = Callable[["Mapping[str, Any]", datetime], float]


# =============================================================================
# GAMIFICATION ENGINE
# =============================================================================


class GamificationEngine:
    """Pure logic engine for achievement evaluation.

    All methods are static - no instance state. This enables easy unit testing
    without any Home Assistant mocking.

    Evaluation Flow:
        1. Manager loads UserProgress for the current namespace
        2. Engine applies the scan (counters, categories, streak)
        3. Engine evaluates every still-locked achievement in catalog order
        4. Manager handles side effects (ledger, storage, events)
    """

    # =========================================================================
    # METRIC HANDLER REGISTRY
    # =========================================================================

    # Maps AchievementMetric to handler function
    _METRIC_HANDLERS: dict[AchievementMetric, MetricHandler] = {}

    @classmethod
    def _register_handlers(cls) -> None:
        """Register one handler per AchievementMetric member."""
        if cls._METRIC_HANDLERS:
            return  # Already registered

        cls._METRIC_HANDLERS = {
            AchievementMetric.SCAN_COUNT: cls._metric_scan_count,
            AchievementMetric.RECYCLABLE_COUNT: cls._metric_recyclable_count,
            AchievementMetric.AVERAGE_SCORE: cls._metric_average_score,
            AchievementMetric.CATEGORY_DIVERSITY: cls._metric_category_diversity,
            AchievementMetric.DAILY_STREAK: cls._metric_daily_streak,
            AchievementMetric.SHARE_COUNT: cls._metric_share_count,
            AchievementMetric.EARLY_SCAN_HOUR: cls._metric_local_hour,
            AchievementMetric.LATE_SCAN_HOUR: cls._metric_local_hour,
        }

    @classmethod
    def registered_metrics(cls) -> frozenset[AchievementMetric]:
        """Return every metric with a registered handler."""
        cls._register_handlers()
        return frozenset(cls._METRIC_HANDLERS)

    # =========================================================================
    # METRIC HANDLERS
    # =========================================================================

    @staticmethod
    def _metric_scan_count(progress: Mapping[str, Any], now: datetime) -> float:
        return progress.get(const.DATA_PROGRESS_SCAN_COUNT, 0)

    @staticmethod
    def _metric_recyclable_count(progress: Mapping[str, Any], now: datetime) -> float:
        return progress.get(const.DATA_PROGRESS_RECYCLABLE_COUNT, 0)

    @staticmethod
    def _metric_average_score(progress: Mapping[str, Any], now: datetime) -> float:
        scan_count = progress.get(const.DATA_PROGRESS_SCAN_COUNT, 0)
        if scan_count <= 0:
            return 0.0
        return progress.get(const.DATA_PROGRESS_TOTAL_ECO_SCORE, 0) / scan_count

    @staticmethod
    def _metric_category_diversity(
        progress: Mapping[str, Any], now: datetime
    ) -> float:
        return len(progress.get(const.DATA_PROGRESS_CATEGORIES_SCANNED, []))

    @staticmethod
    def _metric_daily_streak(progress: Mapping[str, Any], now: datetime) -> float:
        return progress.get(const.DATA_PROGRESS_DAILY_STREAK, 0)

    @staticmethod
    def _metric_share_count(progress: Mapping[str, Any], now: datetime) -> float:
        return progress.get(const.DATA_PROGRESS_SHARE_COUNT, 0)

    @staticmethod
    def _metric_local_hour(progress: Mapping[str, Any], now: datetime) -> float:
        return now.hour

    # =========================================================================
    # PROGRESS UPDATES
    # =========================================================================

    @staticmethod
    def update_streak(progress: UserProgress, now: datetime) -> int:
        """Update and return the daily streak for a scan at ``now``.

        Streak logic:
        - No previous scan, or previous scan yesterday: increment
        - Previous scan today: no change (already counted)
        - Any other case (gap): reset to 1

        Mutates ``progress`` in place; ``last_scan_date`` is NOT touched here.
        """
        today = now.date()
        yesterday = today - timedelta(days=1)
        last_day = dt_local_date(
            progress[const.DATA_PROGRESS_LAST_SCAN_DATE], now.tzinfo  # type: ignore[arg-type]
        )
        current_streak = progress[const.DATA_PROGRESS_DAILY_STREAK]

        if last_day == today:
            new_streak = max(current_streak, 1)
        elif last_day is None or last_day == yesterday:
            new_streak = current_streak + 1
        else:
            new_streak = 1

        progress[const.DATA_PROGRESS_DAILY_STREAK] = new_streak
        return new_streak

    @classmethod
    def apply_scan(
        cls,
        progress: Mapping[str, Any] | None,
        record: ScanRecord,
        now: datetime | None = None,
    ) -> UserProgress:
        """Return progress with one scan counted.

        Args:
            progress: Stored progress (None or legacy shapes accepted)
            record: The scan just recorded
            now: Local aware datetime of the scan (default: now)
        """
        now = now or dt_now_local()
        updated = build_user_progress(progress)

        updated["scan_count"] += 1
        if record["is_recyclable"]:
            updated["recyclable_count"] += 1
        updated["total_eco_score"] += record["eco_score"]
        if record["category"] not in updated["categories_scanned"]:
            updated["categories_scanned"].append(record["category"])

        cls.update_streak(updated, now)
        updated["last_scan_date"] = now.isoformat()
        return updated

    @staticmethod
    def apply_share(progress: Mapping[str, Any] | None) -> UserProgress:
        """Return progress with one more share counted."""
        updated = build_user_progress(progress)
        updated["share_count"] += 1
        return updated

    # =========================================================================
    # EVALUATION
    # =========================================================================

    @classmethod
    def metric_value(
        cls,
        progress: Mapping[str, Any],
        metric: AchievementMetric,
        now: datetime | None = None,
    ) -> float:
        """Return the current value of a metric for progress."""
        cls._register_handlers()
        handler = cls._METRIC_HANDLERS[metric]
        return float(handler(progress, now or dt_now_local()))

    @classmethod
    def is_satisfied(
        cls,
        achievement: AchievementDefinition,
        progress: Mapping[str, Any],
        now: datetime | None = None,
    ) -> bool:
        """Check whether progress meets an achievement's requirement.

        Cumulative metrics compare with ``>=``. Early-scan compares the local
        hour with ``<`` and late-scan with ``>=``.
        """
        requirement = achievement.requirement
        value = cls.metric_value(progress, requirement.metric, now)
        if requirement.metric is AchievementMetric.EARLY_SCAN_HOUR:
            return value < requirement.threshold
        return value >= requirement.threshold

    @classmethod
    def evaluate_unlocks(
        cls,
        progress: UserProgress,
        now: datetime | None = None,
    ) -> list[AchievementDefinition]:
        """Unlock every newly satisfied achievement.

        Appends newly unlocked ids to ``progress["unlocked_achievements"]`` in
        place and returns their definitions in catalog order. Achievements
        already unlocked are skipped, so calling twice never returns the
        same achievement again.

        Args:
            progress: Progress to evaluate (mutated)
            now: Local aware datetime used for hour metrics
        """
        now = now or dt_now_local()
        unlocked = progress[const.DATA_PROGRESS_UNLOCKED_ACHIEVEMENTS]
        newly_unlocked: list[AchievementDefinition] = []

        for achievement in ACHIEVEMENTS:
            if achievement.id in unlocked:
                continue
            if cls.is_satisfied(achievement, progress, now):
                unlocked.append(achievement.id)
                newly_unlocked.append(achievement)

        return newly_unlocked

    @classmethod
    def progress_fraction(
        cls,
        progress: Mapping[str, Any],
        achievement_id: str,
        now: datetime | None = None,
    ) -> float:
        """Return percentage progress (0-100) toward an achievement.

        Computed from the metric's current value, so an unlocked achievement
        whose value has since dropped (a broken streak) reports less than 100.
        Hour-based achievements have no partial progress and always report 0.
        Unknown ids report 0.
        """
        achievement = _ACHIEVEMENTS_BY_ID.get(achievement_id)
        if achievement is None:
            return 0.0
        if achievement.requirement.metric in _HOUR_METRICS:
            return 0.0

        value = cls.metric_value(progress, achievement.requirement.metric, now)
        return calculate_percentage(value, achievement.requirement.threshold)

    # =========================================================================
    # CATALOG ACCESS
    # =========================================================================

    @staticmethod
    def get_achievement(achievement_id: str) -> AchievementDefinition | None:
        """Return the catalog entry for an id, or None."""
        return _ACHIEVEMENTS_BY_ID.get(achievement_id)

    @staticmethod
    def get_unlocked(progress: Mapping[str, Any]) -> list[AchievementDefinition]:
        """Return catalog entries for unlocked ids, ignoring unknown ids."""
        return [
            _ACHIEVEMENTS_BY_ID[achievement_id]
            for achievement_id in progress.get(
                const.DATA_PROGRESS_UNLOCKED_ACHIEVEMENTS, []
            )
            if achievement_id in _ACHIEVEMENTS_BY_ID
        ]

    @staticmethod
    def group_by_category() -> dict[str, list[AchievementDefinition]]:
        """Return the catalog grouped by category tag, catalog order kept."""
        grouped: dict[str, list[AchievementDefinition]] = {}
        for achievement in ACHIEVEMENTS:
            grouped.setdefault(achievement.category, []).append(achievement)
        return grouped
