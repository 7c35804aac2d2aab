# File: coordinator.py
"""Coordinator for the EcoEcho integration.

Owns the injected store and API client, builds the managers, and exposes the
user-facing operations (record scan, share, refresh, login, logout). The
coordinator data is the latest ReconciledStats of the current namespace.

Recording a scan is the only operation whose failure reaches the caller;
achievement and reconciliation steps that follow it are enrichment and are
logged on failure.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any

from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from . import const
from .managers import (
    GamificationManager,
    HistoryManager,
    StatisticsManager,
    UserManager,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .api import EcoEchoApiClient
    from .store import EcoEchoStore
    from .type_defs import AchievementDefinition, ReconciledStats


class EcoEchoDataCoordinator(DataUpdateCoordinator["ReconciledStats"]):
    """Coordinator for EcoEcho integration."""

    config_entry: ConfigEntry

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: ConfigEntry,
        store: EcoEchoStore,
        api: EcoEchoApiClient,
    ) -> None:
        """Initialize the EcoEchoDataCoordinator."""
        update_interval_minutes = config_entry.options.get(
            const.CONF_UPDATE_INTERVAL, const.DEFAULT_UPDATE_INTERVAL
        )

        super().__init__(
            hass,
            const.LOGGER,
            config_entry=config_entry,
            name=f"{const.DOMAIN}{const.COORDINATOR_SUFFIX}",
            update_interval=timedelta(minutes=update_interval_minutes),
        )
        self.store = store
        self.api = api

        self.user_manager = UserManager(hass, self)
        self.history_manager = HistoryManager(hass, self)
        self.statistics_manager = StatisticsManager(hass, self)
        self.gamification_manager = GamificationManager(hass, self)

    async def async_setup_managers(self) -> None:
        """Set up managers. Identity first, everything else is namespaced by it."""
        await self.user_manager.async_setup()
        await self.history_manager.async_setup()
        await self.statistics_manager.async_setup()
        await self.gamification_manager.async_setup()

    @property
    def user_id(self) -> str | None:
        """Return the signed-in user id, or None when anonymous."""
        return self.user_manager.user_id

    async def _async_update_data(self) -> ReconciledStats:
        """Periodic refresh from the backend (throttled)."""
        try:
            return await self.statistics_manager.async_refresh_stats()
        except HomeAssistantError as err:
            raise UpdateFailed(f"Error updating EcoEcho data: {err}") from err

    # ────────────────────────────────────────────────────────────────
    # User-facing operations
    # ────────────────────────────────────────────────────────────────

    async def async_record_scan(
        self, scan_input: Mapping[str, Any], image_ref: str | None = None
    ) -> dict[str, Any]:
        """Record a scan, then update achievements and statistics.

        Raises:
            StorageError: The scan could not be saved
        """
        record = await self.history_manager.async_record_scan(scan_input, image_ref)

        newly_unlocked: list[AchievementDefinition] = []
        try:
            newly_unlocked = await self.gamification_manager.async_record_scan_progress(
                record
            )
        except Exception as err:  # pylint: disable=broad-exception-caught
            const.LOGGER.error(
                "ERROR: Achievement update failed for scan %s: %s", record["id"], err
            )

        stats: ReconciledStats | None = None
        try:
            stats = await self.statistics_manager.async_reconcile()
        except Exception as err:  # pylint: disable=broad-exception-caught
            const.LOGGER.error(
                "ERROR: Statistics reconciliation failed for scan %s: %s",
                record["id"],
                err,
            )
        if stats is not None:
            self.async_set_updated_data(stats)

        return {
            const.ATTR_SCAN: record,
            const.ATTR_NEWLY_UNLOCKED: newly_unlocked,
            const.ATTR_STATS: stats,
        }

    async def async_record_share(self) -> list[AchievementDefinition]:
        """Count a share of a scan result."""
        return await self.gamification_manager.async_record_share()

    async def async_refresh_stats(self, force: bool = False) -> ReconciledStats:
        """Refresh from the backend (throttled unless forced) and notify listeners."""
        stats = await self.statistics_manager.async_refresh_stats(force=force)
        self.async_set_updated_data(stats)
        return stats

    async def async_login(self, user_id: str, token: str | None = None) -> ReconciledStats:
        """Sign in, migrate anonymous data and reconcile with the backend.

        Raises:
            StorageError: The identity could not be saved
        """
        await self.user_manager.async_login(user_id, token)
        await self.gamification_manager.async_initialize()
        return await self.async_refresh_stats(force=True)

    async def async_logout(self) -> None:
        """Sign out and show the anonymous namespace's statistics."""
        await self.user_manager.async_logout()
        self.statistics_manager.reset_session()
        await self.async_refresh_stats(force=True)
