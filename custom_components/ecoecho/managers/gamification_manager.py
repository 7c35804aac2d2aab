"""Gamification Manager - Achievement progress, unlocks and points.

Loads UserProgress and the PointsLedger for the current namespace, lets the
GamificationEngine and EconomyEngine do the math, and handles side effects:
- Persisting progress and ledger
- Firing EVENT_ACHIEVEMENT_UNLOCKED on the Home Assistant bus per unlock

Nothing here is fatal. Unreadable progress is treated as fresh progress and
write failures are logged; the newly unlocked list is still returned.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from .. import const
from ..data_builders import build_points_ledger, build_user_progress
from ..engines.economy_engine import EconomyEngine
from ..engines.gamification_engine import GamificationEngine
from ..store import StorageError
from ..utils.dt_utils import dt_now_iso, dt_now_local, dt_parse, get_default_timezone
from .base_manager import BaseManager

if TYPE_CHECKING:
    from ..type_defs import (
        AchievementDefinition,
        PointsLedger,
        ScanRecord,
        UserProgress,
    )


class GamificationManager(BaseManager):
    """Manages achievement progress and the points ledger."""

    async def async_setup(self) -> None:
        """Make sure progress and ledger exist for the current namespace."""
        await self.async_initialize()

    # ────────────────────────────────────────────────────────────────
    # Storage helpers
    # ────────────────────────────────────────────────────────────────

    async def _async_load_progress(self) -> UserProgress:
        try:
            raw = await self.store.async_get(
                self.user_key(const.STORAGE_KEY_USER_PROGRESS)
            )
        except StorageError as err:
            const.LOGGER.warning(
                "WARNING: Unable to read achievement progress, starting fresh: %s",
                err,
            )
            raw = None
        return build_user_progress(raw)

    async def _async_load_ledger(self) -> PointsLedger:
        try:
            raw = await self.store.async_get(self.user_key(const.STORAGE_KEY_POINTS))
        except StorageError as err:
            const.LOGGER.warning("WARNING: Unable to read points ledger: %s", err)
            raw = None
        return build_points_ledger(raw)

    async def async_initialize(self) -> None:
        """Create all-zero progress and an empty ledger when absent."""
        progress_key = self.user_key(const.STORAGE_KEY_USER_PROGRESS)
        points_key = self.user_key(const.STORAGE_KEY_POINTS)
        try:
            if await self.store.async_get(progress_key) is None:
                await self.store.async_set(progress_key, build_user_progress())
            if await self.store.async_get(points_key) is None:
                await self.store.async_set(points_key, build_points_ledger())
        except StorageError as err:
            const.LOGGER.warning(
                "WARNING: Unable to initialize achievement storage: %s", err
            )

    async def _async_commit(
        self,
        progress: UserProgress,
        newly_unlocked: list[AchievementDefinition],
    ) -> None:
        """Persist progress, award points and announce unlocks."""
        ledger: PointsLedger | None = None
        if newly_unlocked:
            ledger = await self._async_load_ledger()
            timestamp = dt_now_iso()
            for achievement in newly_unlocked:
                EconomyEngine.award(ledger, achievement, timestamp)

        try:
            await self.store.async_set(
                self.user_key(const.STORAGE_KEY_USER_PROGRESS), progress
            )
            if ledger is not None:
                await self.store.async_set(
                    self.user_key(const.STORAGE_KEY_POINTS), ledger
                )
        except StorageError as err:
            const.LOGGER.error(
                "ERROR: Unable to save achievement progress: %s", err
            )

        for achievement in newly_unlocked:
            const.LOGGER.info(
                "INFO: Achievement unlocked: %s (+%s points)",
                achievement.id,
                achievement.points,
            )
            self.hass.bus.async_fire(
                const.EVENT_ACHIEVEMENT_UNLOCKED,
                {
                    **achievement.as_dict(),
                    const.ATTR_USER_ID: self.coordinator.user_id,
                },
            )

    # ────────────────────────────────────────────────────────────────
    # Progress updates
    # ────────────────────────────────────────────────────────────────

    async def async_record_scan_progress(
        self, record: ScanRecord, now: datetime | None = None
    ) -> list[AchievementDefinition]:
        """Count a scan and return achievements it unlocked (catalog order).

        Args:
            record: The scan just recorded
            now: Local time of the scan (default: the record's timestamp)
        """
        if now is None:
            scanned_at = dt_parse(record["timestamp"])
            now = (
                scanned_at.astimezone(get_default_timezone())
                if scanned_at is not None
                else dt_now_local()
            )

        progress = await self._async_load_progress()
        progress = GamificationEngine.apply_scan(progress, record, now)
        newly_unlocked = GamificationEngine.evaluate_unlocks(progress, now)

        await self._async_commit(progress, newly_unlocked)
        return newly_unlocked

    async def async_record_share(self) -> list[AchievementDefinition]:
        """Count a share and return achievements it unlocked."""
        progress = GamificationEngine.apply_share(await self._async_load_progress())
        newly_unlocked = GamificationEngine.evaluate_unlocks(progress, dt_now_local())
        await self._async_commit(progress, newly_unlocked)
        return newly_unlocked

    # ────────────────────────────────────────────────────────────────
    # Read-only views
    # ────────────────────────────────────────────────────────────────

    async def async_get_progress_fraction(self, achievement_id: str) -> float:
        """Return percentage progress (0-100) toward an achievement."""
        progress = await self._async_load_progress()
        return GamificationEngine.progress_fraction(progress, achievement_id)

    async def async_get_user_progress(self) -> dict[str, Any]:
        """Return progress, points total, level and points to next level."""
        progress = await self._async_load_progress()
        ledger = await self._async_load_ledger()
        total = ledger["total"]
        return {
            const.ATTR_PROGRESS: progress,
            const.ATTR_POINTS: total,
            const.ATTR_LEVEL: EconomyEngine.calculate_level(total),
            const.ATTR_NEXT_LEVEL_POINTS: EconomyEngine.next_level_points(total),
        }

    async def async_get_unlocked_achievements(self) -> list[AchievementDefinition]:
        """Return unlocked achievements as catalog entries."""
        return GamificationEngine.get_unlocked(await self._async_load_progress())

    def get_achievements_by_category(self) -> dict[str, list[AchievementDefinition]]:
        """Return the achievement catalog grouped by category tag."""
        return GamificationEngine.group_by_category()
