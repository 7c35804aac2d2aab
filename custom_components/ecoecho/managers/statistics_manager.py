"""Statistics Manager - Reconciliation with the backend and refresh throttling.

Responsibilities:
- Reconcile local aggregate, server stats and cached user-object stats
  (StatisticsEngine.reconcile) and always cache the result locally
- Best-effort push of reconciled stats to the backend (never raises)
- Throttle server refreshes to one per REFRESH_THROTTLE_SECONDS per session

Listens to:
- SIGNAL_SUFFIX_USER_CHANGED: a login/logout starts a new refresh session
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from homeassistant.core import callback

from .. import const
from ..api import NetworkError
from ..data_builders import build_reconciled_stats
from ..engines.statistics_engine import StatisticsEngine
from ..store import StorageError
from ..utils.dt_utils import dt_now_utc
from .base_manager import BaseManager

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import EcoEchoDataCoordinator
    from ..type_defs import ReconciledStats, ServerUserStats


@dataclass(frozen=True)
class PushResult:
    """Outcome of a best-effort push to the backend."""

    success: bool
    error: str | None = None


class StatisticsManager(BaseManager):
    """Reconciles statistics sources and keeps the backend in sync."""

    def __init__(
        self, hass: HomeAssistant, coordinator: EcoEchoDataCoordinator
    ) -> None:
        super().__init__(hass, coordinator)
        self._last_refresh: datetime | None = None
        self._last_reconciled: ReconciledStats | None = None

    async def async_setup(self) -> None:
        """Reset the refresh session whenever the signed-in user changes."""
        self.listen(const.SIGNAL_SUFFIX_USER_CHANGED, self._on_user_changed)

    @callback
    def _on_user_changed(self, payload: dict[str, Any]) -> None:
        const.LOGGER.debug(
            "DEBUG: User changed to %s, resetting refresh session",
            payload.get(const.ATTR_USER_ID) or const.ANONYMOUS_NAMESPACE,
        )
        self.reset_session()

    def reset_session(self) -> None:
        """Forget the throttle window and the last merged state."""
        self._last_refresh = None
        self._last_reconciled = None

    @property
    def last_reconciled(self) -> ReconciledStats | None:
        """Return the most recent reconciliation result of this session."""
        return self._last_reconciled

    async def _async_read(self, base_key: str) -> Any | None:
        try:
            return await self.store.async_get(self.user_key(base_key))
        except StorageError as err:
            const.LOGGER.warning(
                "WARNING: Unable to read %s for reconciliation: %s", base_key, err
            )
            return None

    async def async_get_cached_stats(self) -> ReconciledStats:
        """Return the cached user-object stats (all-zero when absent)."""
        return build_reconciled_stats(
            await self._async_read(const.STORAGE_KEY_USER_OBJECT_STATS)
        )

    async def async_reconcile(
        self, server_stats: ServerUserStats | None = None
    ) -> ReconciledStats:
        """Reconcile every source, cache the result, then push if signed in.

        Never raises: storage and network failures are logged. The returned
        stats are valid even when nothing could be persisted or pushed.
        """
        local_stats = await self._async_read(const.STORAGE_KEY_USER_STATS)
        cached_stats = await self._async_read(const.STORAGE_KEY_USER_OBJECT_STATS)

        reconciled = StatisticsEngine.reconcile(local_stats, server_stats, cached_stats)

        try:
            await self.store.async_set(
                self.user_key(const.STORAGE_KEY_USER_OBJECT_STATS), reconciled
            )
        except StorageError as err:
            const.LOGGER.warning(
                "WARNING: Unable to cache reconciled statistics: %s", err
            )

        self._last_reconciled = reconciled

        if self.coordinator.user_id:
            await self.async_push_reconciled(reconciled)

        return reconciled

    async def async_push_reconciled(self, stats: ReconciledStats) -> PushResult:
        """Push reconciled stats to the backend. Failures are returned, not raised."""
        if not self.coordinator.user_id:
            return PushResult(success=False, error="No user session")

        try:
            await self.api.async_put_user_stats(stats)
        except NetworkError as err:
            const.LOGGER.warning(
                "WARNING: Failed to push reconciled statistics: %s", err
            )
            return PushResult(success=False, error=str(err))

        const.LOGGER.debug(
            "DEBUG: Pushed reconciled statistics for user %s", self.coordinator.user_id
        )
        return PushResult(success=True)

    async def async_refresh_stats(self, force: bool = False) -> ReconciledStats:
        """Fetch server stats, reconcile and push.

        Calls within REFRESH_THROTTLE_SECONDS of the previous refresh return the
        last merged state without querying the server. A network failure falls
        back to reconciling local sources only.

        Args:
            force: Bypass the throttle (login)
        """
        now = dt_now_utc()
        if (
            not force
            and self._last_refresh is not None
            and self._last_reconciled is not None
            and now - self._last_refresh
            < timedelta(seconds=const.REFRESH_THROTTLE_SECONDS)
        ):
            const.LOGGER.debug(
                "DEBUG: Refresh throttled, last refresh at %s", self._last_refresh
            )
            return self._last_reconciled

        self._last_refresh = now

        server_stats: ServerUserStats | None = None
        if self.coordinator.user_id:
            try:
                server_stats = await self.api.async_get_user_stats()
            except NetworkError as err:
                const.LOGGER.warning(
                    "WARNING: Unable to fetch server statistics, using local data: %s",
                    err,
                )

        return await self.async_reconcile(server_stats)
