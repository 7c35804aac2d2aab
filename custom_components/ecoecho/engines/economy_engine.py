"""Economy Engine - Pure logic for achievement points and levels.

This engine provides stateless, pure Python functions for:
- Ledger entry creation for unlocked achievements
- Awarding points into a PointsLedger (one award per achievement)
- Level and next-level calculations

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions are static methods that operate on passed-in data.
State management belongs in GamificationManager.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .. import const
from ..utils.dt_utils import dt_now_iso

if TYPE_CHECKING:
    from ..type_defs import AchievementDefinition, LedgerEntry, PointsLedger


class EconomyEngine:
    """Pure logic engine for point calculations and ledger operations.

    All methods are static - no instance state. This enables easy unit testing
    without any Home Assistant mocking.

    Levels are fixed-size bands of LEVEL_POINTS_STEP points:
        0-999 → level 1, 1000-1999 → level 2, ...
    """

    @staticmethod
    def create_ledger_entry(
        achievement: AchievementDefinition, timestamp: str | None = None
    ) -> LedgerEntry:
        """Create a ledger entry for an unlocked achievement.

        Args:
            achievement: The achievement being awarded
            timestamp: ISO timestamp (default: now, UTC)

        Returns:
            LedgerEntry dict
        """
        return {
            "points": achievement.points,
            "achievement_id": achievement.id,
            "timestamp": timestamp or dt_now_iso(),
        }

    @staticmethod
    def has_award(ledger: PointsLedger, achievement_id: str) -> bool:
        """Check whether the ledger already holds an award for an achievement."""
        return any(
            entry["achievement_id"] == achievement_id for entry in ledger["earned"]
        )

    @classmethod
    def award(
        cls,
        ledger: PointsLedger,
        achievement: AchievementDefinition,
        timestamp: str | None = None,
    ) -> LedgerEntry | None:
        """Append an award to the ledger in place.

        Returns:
            The new entry, or None if this achievement was already awarded
        """
        if cls.has_award(ledger, achievement.id):
            const.LOGGER.debug(
                "DEBUG: Achievement '%s' already awarded, skipping ledger entry",
                achievement.id,
            )
            return None

        entry = cls.create_ledger_entry(achievement, timestamp)
        ledger["earned"].append(entry)
        ledger["total"] += entry["points"]
        return entry

    @staticmethod
    def calculate_level(total_points: int) -> int:
        """Return the level for a points total.

        Examples:
            calculate_level(0) → 1
            calculate_level(999) → 1
            calculate_level(1000) → 2
        """
        return max(total_points, 0) // const.LEVEL_POINTS_STEP + 1

    @classmethod
    def next_level_points(cls, total_points: int) -> int:
        """Return the points still needed to reach the next level.

        Examples:
            next_level_points(250) → 750
            next_level_points(1000) → 1000
        """
        level = cls.calculate_level(total_points)
        return level * const.LEVEL_POINTS_STEP - max(total_points, 0)
