"""History Manager - Scan recording and the local aggregate.

Owns the two per-namespace blobs written on every scan:
- eco_echo_scan_history: newest-first list of ScanRecord, capped at 100
- eco_echo_user_stats: LocalAggregateStats derived from recorded scans

Recording a scan is the one operation whose storage failures must reach the
caller: StorageError propagates out of async_record_scan.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .. import const
from ..data_builders import build_local_stats, build_scan_history, build_scan_record
from ..engines.statistics_engine import StatisticsEngine
from ..store import StorageError, namespaced_key
from ..utils.dt_utils import dt_epoch_millis, dt_now_utc
from .base_manager import BaseManager

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..type_defs import LocalAggregateStats, ScanRecord


class HistoryManager(BaseManager):
    """Manages the scan history and local aggregate of the current namespace."""

    async def async_setup(self) -> None:
        """Nothing to subscribe to; blobs are read on demand."""
        const.LOGGER.debug("DEBUG: HistoryManager ready")

    async def async_record_scan(
        self, scan_input: Mapping[str, Any] | None, image_ref: str | None = None
    ) -> ScanRecord:
        """Record one scan and update the local aggregate.

        Both blobs are persisted before returning. If the aggregate cannot be
        written, the history write is rolled back so the two stay consistent.

        Raises:
            StorageError: The store could not be read or written
        """
        history_key = self.user_key(const.STORAGE_KEY_SCAN_HISTORY)
        stats_key = self.user_key(const.STORAGE_KEY_USER_STATS)

        stored_history = await self.store.async_get(history_key)
        history = build_scan_history(stored_history)
        stats = build_local_stats(await self.store.async_get(stats_key))

        now = dt_now_utc()
        record = build_scan_record(
            scan_input,
            scan_id=StatisticsEngine.next_scan_id(history, dt_epoch_millis(now)),
            timestamp=now.isoformat(),
            image_ref=image_ref,
        )

        new_history = StatisticsEngine.prepend_to_history(history, record)
        new_stats = StatisticsEngine.apply_scan(stats, record)

        await self.store.async_set(history_key, new_history)
        try:
            await self.store.async_set(stats_key, new_stats)
        except StorageError:
            if stored_history is None:
                await self.store.async_remove(history_key)
            else:
                await self.store.async_set(history_key, stored_history)
            raise

        const.LOGGER.debug(
            "DEBUG: Recorded scan %s (%s, recyclable=%s, score=%s) in %s",
            record["id"],
            record["category"],
            record["is_recyclable"],
            record["eco_score"],
            history_key,
        )
        return record

    async def async_get_scan_history(
        self, limit: int = const.DEFAULT_HISTORY_LIMIT
    ) -> list[ScanRecord]:
        """Return up to limit records, newest first. Empty on read failure."""
        try:
            raw = await self.store.async_get(
                self.user_key(const.STORAGE_KEY_SCAN_HISTORY)
            )
        except StorageError as err:
            const.LOGGER.warning("WARNING: Unable to read scan history: %s", err)
            return []
        return build_scan_history(raw)[: max(limit, 0)]

    async def async_get_user_statistics(self) -> LocalAggregateStats:
        """Return the local aggregate, all-zero when absent or unreadable."""
        try:
            raw = await self.store.async_get(self.user_key(const.STORAGE_KEY_USER_STATS))
        except StorageError as err:
            const.LOGGER.warning("WARNING: Unable to read local statistics: %s", err)
            raw = None
        return build_local_stats(raw)

    async def async_clear_user_data(self) -> None:
        """Remove history and aggregate of the current namespace.

        Raises:
            StorageError: The store could not be written
        """
        await self.store.async_remove(self.user_key(const.STORAGE_KEY_SCAN_HISTORY))
        await self.store.async_remove(self.user_key(const.STORAGE_KEY_USER_STATS))
        const.LOGGER.info(
            "INFO: Cleared scan history for %s",
            self.coordinator.user_id or const.ANONYMOUS_NAMESPACE,
        )

    async def async_debug_storage(self) -> dict[str, Any]:
        """Describe which EcoEcho blobs exist, for diagnostics."""
        keys = await self.store.async_list_keys()
        user_id = self.coordinator.user_id
        base_keys = (
            const.STORAGE_KEY_SCAN_HISTORY,
            const.STORAGE_KEY_USER_STATS,
            const.STORAGE_KEY_USER_PROGRESS,
            const.STORAGE_KEY_POINTS,
            const.STORAGE_KEY_USER_OBJECT_STATS,
        )
        return {
            "keys": keys,
            "user_id": user_id,
            "anonymous": {
                base_key: namespaced_key(base_key, None) in keys
                for base_key in base_keys
            },
            "user": {
                base_key: namespaced_key(base_key, user_id) in keys
                for base_key in base_keys
            }
            if user_id
            else {},
        }
