"""Statistics Engine - Local aggregates, reconciliation and namespace merges.

This engine centralizes every statistics calculation in EcoEcho:
- Folding a new scan into the local aggregate
- Maintaining the bounded, newest-first scan history
- Reconciling local, server and cached statistics into one view
- Merging an anonymous namespace into a user namespace on login

Two merge policies coexist on purpose:
    - reconcile(): sources are redundant views of the same scans, so every
      metric takes the maximum across sources (never lose recorded progress)
    - merge_*(): namespaces hold disjoint real scans, so counters are summed

Design Principles:
    - Stateless: No coordinator reference, operates on passed data structures
    - Pure: Inputs are never mutated, new dicts are returned
    - No Home Assistant imports
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from .. import const
from ..data_builders import (
    build_local_stats,
    build_points_ledger,
    build_reconciled_stats,
    build_server_stats,
    build_user_progress,
)
from ..utils.dt_utils import dt_now_iso, dt_parse
from ..utils.math_utils import (
    estimate_co2_saved,
    estimate_total_weight,
    normalize_weight,
    trees_equivalent,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ..type_defs import (
        LedgerEntry,
        LocalAggregateStats,
        PointsLedger,
        ReconciledStats,
        ScanRecord,
        ServerUserStats,
        UserProgress,
    )

_EPOCH = datetime.min.replace(tzinfo=UTC)


def _latest_timestamp(*values: Any) -> str | None:
    """Return whichever ISO timestamp is most recent, ignoring unparseable ones."""
    latest: str | None = None
    latest_dt = _EPOCH
    for value in values:
        parsed = dt_parse(value)
        if parsed is not None and (latest is None or parsed > latest_dt):
            latest, latest_dt = value, parsed
    return latest


def _sum_count_maps(*maps: Mapping[str, int]) -> dict[str, int]:
    result: dict[str, int] = {}
    for counts in maps:
        for key, count in counts.items():
            result[key] = result.get(key, 0) + count
    return result


def _union(*lists: Iterable[str]) -> list[str]:
    result: list[str] = []
    for items in lists:
        for item in items:
            if item not in result:
                result.append(item)
    return result


class StatisticsEngine:
    """Stateless engine for statistics aggregation and reconciliation.

    The engine does NOT persist data; the caller is responsible for persistence.

    Example:
        stats = StatisticsEngine.apply_scan(stats, record)
        history = StatisticsEngine.prepend_to_history(history, record)
        reconciled = StatisticsEngine.reconcile(stats, server_stats, cached)
    """

    # ────────────────────────────────────────────────────────────────
    # Scan Recording
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def apply_scan(
        stats: Mapping[str, Any] | None, record: ScanRecord
    ) -> LocalAggregateStats:
        """Return the aggregate with one more scan folded in.

        The average is recomputed from the running sum, so
        ``average_eco_score == total_eco_score / total_items_scanned`` holds
        after every call.
        """
        updated = build_local_stats(stats)
        total_items = updated["total_items_scanned"] + 1
        total_eco_score = updated["total_eco_score"] + record["eco_score"]

        by_category = dict(updated["scans_by_category"])
        by_category[record["category"]] = by_category.get(record["category"], 0) + 1

        updated["total_items_scanned"] = total_items
        if record["is_recyclable"]:
            updated["recyclable_items_count"] += 1
        updated["total_eco_score"] = total_eco_score
        updated["average_eco_score"] = total_eco_score / total_items
        updated["scans_by_category"] = by_category
        updated["last_updated"] = record["timestamp"] or dt_now_iso()
        return updated

    @staticmethod
    def prepend_to_history(
        history: list[ScanRecord],
        record: ScanRecord,
        limit: int = const.HISTORY_RETENTION_LIMIT,
    ) -> list[ScanRecord]:
        """Insert record at the head and drop the oldest beyond limit."""
        return [record, *history][:limit]

    @staticmethod
    def next_scan_id(history: list[ScanRecord], epoch_millis: int) -> str:
        """Return a scan id unique within history.

        Ids are epoch milliseconds; a collision (two scans in the same
        millisecond) bumps the value by one until it is free.
        """
        used = {record["id"] for record in history}
        candidate = epoch_millis
        while str(candidate) in used:
            candidate += 1
        return str(candidate)

    # ────────────────────────────────────────────────────────────────
    # Reconciliation (max-wins)
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def reconcile(
        local_aggregate: Mapping[str, Any] | None,
        server_stats: Mapping[str, Any] | None,
        user_object_stats: Mapping[str, Any] | None,
        now_iso: str | None = None,
    ) -> ReconciledStats:
        """Merge the three statistics sources into one authoritative view.

        Rules per metric:
        - total_items / recyclable_items: maximum across sources
        - total_weight: each source normalized with its own item count, then
          maximum; estimated from total_items when no source has a weight
        - total_carbon_saved: maximum across sources; estimated from
          recyclable items and category breakdown when none is reported
        - trees_equivalent: total_carbon_saved / 20

        Missing sources count as all-zero. The local aggregate has no
        weight or CO2 of its own, so it contributes estimates from its counts.

        Example:
            local 5 items, server 3 items / 800 (grams), cache empty
            → total_items 5, total_weight 0.8
        """
        local = build_local_stats(local_aggregate)
        server: ServerUserStats = build_server_stats(server_stats)
        cached = build_reconciled_stats(user_object_stats)

        local_items = local["total_items_scanned"]
        local_recyclable = local["recyclable_items_count"]

        total_items = max(local_items, server["total_items"], cached["total_items"])
        recyclable_items = max(
            local_recyclable, server["recyclable_items"], cached["recyclable_items"]
        )

        total_weight = max(
            estimate_total_weight(local_items),
            normalize_weight(server["total_weight"], server["total_items"]),
            normalize_weight(cached["total_weight"], cached["total_items"]),
        )
        if total_weight <= 0:
            total_weight = estimate_total_weight(total_items)

        categories = local["scans_by_category"] or server.get("category_breakdown")
        carbon_saved = max(
            estimate_co2_saved(local_recyclable, local["scans_by_category"]),
            server["total_carbon_saved"],
            cached["total_carbon_saved"],
        )
        if carbon_saved <= 0:
            carbon_saved = estimate_co2_saved(recyclable_items, categories)

        const.LOGGER.debug(
            "DEBUG: Reconciled stats - items: local=%s server=%s cached=%s → %s, "
            "weight → %skg, co2 → %skg",
            local_items,
            server["total_items"],
            cached["total_items"],
            total_items,
            total_weight,
            carbon_saved,
        )

        return {
            const.DATA_SCHEMA_VERSION: const.SCHEMA_VERSION_CURRENT,
            const.DATA_SERVER_TOTAL_ITEMS: total_items,
            const.DATA_SERVER_TOTAL_WEIGHT: total_weight,
            const.DATA_SERVER_TOTAL_CARBON_SAVED: carbon_saved,
            const.DATA_SERVER_RECYCLABLE_ITEMS: recyclable_items,
            const.DATA_RECONCILED_TREES_EQUIVALENT: trees_equivalent(carbon_saved),
            const.DATA_SERVER_LAST_UPDATED: now_iso or dt_now_iso(),
        }  # type: ignore[misc]

    # ────────────────────────────────────────────────────────────────
    # Namespace Merges (sum)
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def merge_local_stats(
        anonymous: Mapping[str, Any] | None, user: Mapping[str, Any] | None
    ) -> LocalAggregateStats:
        """Sum two aggregates that describe disjoint sets of scans.

        Example:
            4 anonymous scans + 2 user scans → 6 scans
        """
        anon_stats = build_local_stats(anonymous)
        user_stats = build_local_stats(user)

        total_items = (
            anon_stats["total_items_scanned"] + user_stats["total_items_scanned"]
        )
        total_eco_score = anon_stats["total_eco_score"] + user_stats["total_eco_score"]

        return {
            const.DATA_SCHEMA_VERSION: const.SCHEMA_VERSION_CURRENT,
            const.DATA_STATS_TOTAL_ITEMS_SCANNED: total_items,
            const.DATA_STATS_RECYCLABLE_ITEMS_COUNT: (
                anon_stats["recyclable_items_count"]
                + user_stats["recyclable_items_count"]
            ),
            const.DATA_STATS_TOTAL_ECO_SCORE: total_eco_score,
            const.DATA_STATS_AVERAGE_ECO_SCORE: (
                total_eco_score / total_items if total_items > 0 else 0.0
            ),
            const.DATA_STATS_SCANS_BY_CATEGORY: _sum_count_maps(
                user_stats["scans_by_category"], anon_stats["scans_by_category"]
            ),
            const.DATA_STATS_SCANS_BY_MATERIAL: _sum_count_maps(
                user_stats["scans_by_material"], anon_stats["scans_by_material"]
            ),
            const.DATA_STATS_LAST_UPDATED: _latest_timestamp(
                user_stats["last_updated"], anon_stats["last_updated"]
            ),
        }  # type: ignore[misc]

    @staticmethod
    def merge_histories(
        anonymous: list[ScanRecord],
        user: list[ScanRecord],
        limit: int = const.HISTORY_RETENTION_LIMIT,
    ) -> list[ScanRecord]:
        """Concatenate histories, drop duplicate ids, newest first, bounded."""
        seen: set[str] = set()
        merged: list[ScanRecord] = []
        for record in (*user, *anonymous):
            if record["id"] in seen:
                continue
            seen.add(record["id"])
            merged.append(record)

        merged.sort(
            key=lambda record: dt_parse(record["timestamp"]) or _EPOCH, reverse=True
        )
        return merged[:limit]

    @staticmethod
    def merge_user_progress(
        anonymous: Mapping[str, Any] | None, user: Mapping[str, Any] | None
    ) -> UserProgress:
        """Combine achievement progress from two namespaces.

        Counters are summed; categories and unlocked ids are unioned (user's
        order first). The streak belongs to whichever side scanned last.
        """
        anon_progress = build_user_progress(anonymous)
        user_progress = build_user_progress(user)

        latest_scan = _latest_timestamp(
            user_progress["last_scan_date"], anon_progress["last_scan_date"]
        )
        streak_source = (
            anon_progress
            if latest_scan is not None
            and latest_scan == anon_progress["last_scan_date"]
            and latest_scan != user_progress["last_scan_date"]
            else user_progress
        )

        return {
            const.DATA_SCHEMA_VERSION: const.SCHEMA_VERSION_CURRENT,
            const.DATA_PROGRESS_SCAN_COUNT: (
                anon_progress["scan_count"] + user_progress["scan_count"]
            ),
            const.DATA_PROGRESS_RECYCLABLE_COUNT: (
                anon_progress["recyclable_count"] + user_progress["recyclable_count"]
            ),
            const.DATA_PROGRESS_TOTAL_ECO_SCORE: (
                anon_progress["total_eco_score"] + user_progress["total_eco_score"]
            ),
            const.DATA_PROGRESS_CATEGORIES_SCANNED: _union(
                user_progress["categories_scanned"],
                anon_progress["categories_scanned"],
            ),
            const.DATA_PROGRESS_DAILY_STREAK: streak_source["daily_streak"],
            const.DATA_PROGRESS_LAST_SCAN_DATE: latest_scan,
            const.DATA_PROGRESS_SHARE_COUNT: (
                anon_progress["share_count"] + user_progress["share_count"]
            ),
            const.DATA_PROGRESS_UNLOCKED_ACHIEVEMENTS: _union(
                user_progress["unlocked_achievements"],
                anon_progress["unlocked_achievements"],
            ),
        }  # type: ignore[misc]

    @staticmethod
    def merge_points_ledgers(
        anonymous: Mapping[str, Any] | None, user: Mapping[str, Any] | None
    ) -> PointsLedger:
        """Combine two ledgers, keeping at most one award per achievement."""
        anon_ledger = build_points_ledger(anonymous)
        user_ledger = build_points_ledger(user)

        seen: set[str] = set()
        earned: list[LedgerEntry] = []
        for entry in (*user_ledger["earned"], *anon_ledger["earned"]):
            if entry["achievement_id"] in seen:
                continue
            seen.add(entry["achievement_id"])
            earned.append(entry)

        return {
            const.DATA_SCHEMA_VERSION: const.SCHEMA_VERSION_CURRENT,
            const.DATA_POINTS_TOTAL: sum(entry["points"] for entry in earned),
            const.DATA_POINTS_EARNED: earned,
        }  # type: ignore[misc]
