"""Tests for HistoryManager - scan recording and the local aggregate."""

from __future__ import annotations

import pytest

from custom_components.ecoecho import const
from custom_components.ecoecho.coordinator import EcoEchoDataCoordinator
from custom_components.ecoecho.store import StorageError
from tests.helpers import MemoryStore, scan_input

ANON_HISTORY = "anonymous_eco_echo_scan_history"
ANON_STATS = "anonymous_eco_echo_user_stats"


class TestRecordScan:
    """Tests for recording scans."""

    @pytest.mark.asyncio
    async def test_first_scan_updates_aggregate(
        self, coordinator: EcoEchoDataCoordinator, memory_store: MemoryStore
    ) -> None:
        """Test that one recyclable plastic scan with score 80 is aggregated."""
        manager = coordinator.history_manager

        record = await manager.async_record_scan(scan_input("Plastic", eco_score=80))
        stats = await manager.async_get_user_statistics()

        assert stats["total_items_scanned"] == 1
        assert stats["recyclable_items_count"] == 1
        assert stats["average_eco_score"] == 80
        assert stats["scans_by_category"] == {"Plastic": 1}
        assert memory_store.data[ANON_HISTORY][0]["id"] == record["id"]
        assert record["item_name"] == "plastic bottle"

    @pytest.mark.asyncio
    async def test_history_newest_first_and_bounded(
        self, coordinator: EcoEchoDataCoordinator
    ) -> None:
        """Test that 150 scans keep only the 100 most recent, newest first."""
        manager = coordinator.history_manager
        for index in range(150):
            await manager.async_record_scan(scan_input(item_name=f"item {index}"))

        history = await manager.async_get_scan_history(limit=100)
        stats = await manager.async_get_user_statistics()

        assert len(history) == 100
        assert history[0]["item_name"] == "item 149"
        assert history[-1]["item_name"] == "item 50"
        assert stats["total_items_scanned"] == 150
        assert len({record["id"] for record in history}) == 100

    @pytest.mark.asyncio
    async def test_average_invariant(self, coordinator: EcoEchoDataCoordinator) -> None:
        """Test that the stored average equals total score over count."""
        manager = coordinator.history_manager
        for score in (90, 45, 30, 75):
            await manager.async_record_scan(scan_input(eco_score=score))

        stats = await manager.async_get_user_statistics()

        assert stats["total_eco_score"] == 240
        assert stats["average_eco_score"] == pytest.approx(60.0)

    @pytest.mark.asyncio
    async def test_malformed_input_defaulted(
        self, coordinator: EcoEchoDataCoordinator
    ) -> None:
        """Test that a scan with missing fields is still recorded."""
        record = await coordinator.history_manager.async_record_scan({})

        assert record["item_name"] == "Unknown Item"
        assert record["category"] == const.CATEGORY_OTHER
        assert record["is_recyclable"] is False

    @pytest.mark.asyncio
    async def test_image_ref_stored(self, coordinator: EcoEchoDataCoordinator) -> None:
        """Test that an image reference is kept on the record."""
        record = await coordinator.history_manager.async_record_scan(
            scan_input(), image_ref="/local/scan.jpg"
        )

        assert record["image_ref"] == "/local/scan.jpg"


class TestRecordScanFailures:
    """Tests for storage failures while recording."""

    @pytest.mark.asyncio
    async def test_stats_write_failure_rolls_back_history(
        self, coordinator: EcoEchoDataCoordinator, memory_store: MemoryStore
    ) -> None:
        """Test that a failed aggregate write removes the new history entry."""
        manager = coordinator.history_manager
        await manager.async_record_scan(scan_input())
        memory_store.fail_writes_for.add(ANON_STATS)

        with pytest.raises(StorageError):
            await manager.async_record_scan(scan_input())

        assert len(memory_store.data[ANON_HISTORY]) == 1
        assert memory_store.data[ANON_STATS]["total_items_scanned"] == 1

    @pytest.mark.asyncio
    async def test_first_write_failure_leaves_no_history(
        self, coordinator: EcoEchoDataCoordinator, memory_store: MemoryStore
    ) -> None:
        """Test that a failed first scan leaves no history key behind."""
        memory_store.fail_writes_for.add(ANON_STATS)

        with pytest.raises(StorageError):
            await coordinator.history_manager.async_record_scan(scan_input())

        assert ANON_HISTORY not in memory_store.data

    @pytest.mark.asyncio
    async def test_history_write_failure_propagates(
        self, coordinator: EcoEchoDataCoordinator, memory_store: MemoryStore
    ) -> None:
        """Test that a failed history write raises and leaves stats untouched."""
        memory_store.fail_writes_for.add(ANON_HISTORY)

        with pytest.raises(StorageError):
            await coordinator.history_manager.async_record_scan(scan_input())

        assert ANON_STATS not in memory_store.data

    @pytest.mark.asyncio
    async def test_read_failure_propagates(
        self, coordinator: EcoEchoDataCoordinator, memory_store: MemoryStore
    ) -> None:
        """Test that an unreadable store fails the scan."""
        memory_store.fail_reads = True

        with pytest.raises(StorageError):
            await coordinator.history_manager.async_record_scan(scan_input())


class TestQueries:
    """Tests for reading and clearing history."""

    @pytest.mark.asyncio
    async def test_limit(self, coordinator: EcoEchoDataCoordinator) -> None:
        """Test that history queries honor the limit."""
        manager = coordinator.history_manager
        for _ in range(5):
            await manager.async_record_scan(scan_input())

        assert len(await manager.async_get_scan_history(limit=3)) == 3
        assert len(await manager.async_get_scan_history()) == 5

    @pytest.mark.asyncio
    async def test_read_failure_returns_defaults(
        self, coordinator: EcoEchoDataCoordinator, memory_store: MemoryStore
    ) -> None:
        """Test that queries degrade to empty results on read failure."""
        await coordinator.history_manager.async_record_scan(scan_input())
        memory_store.fail_reads = True

        assert await coordinator.history_manager.async_get_scan_history() == []
        stats = await coordinator.history_manager.async_get_user_statistics()
        assert stats["total_items_scanned"] == 0

    @pytest.mark.asyncio
    async def test_clear(
        self, coordinator: EcoEchoDataCoordinator, memory_store: MemoryStore
    ) -> None:
        """Test that clearing removes history and aggregate only."""
        manager = coordinator.history_manager
        await manager.async_record_scan(scan_input())

        await manager.async_clear_user_data()

        assert ANON_HISTORY not in memory_store.data
        assert ANON_STATS not in memory_store.data
        assert "anonymous_eco_echo_user_progress" in memory_store.data
        assert await manager.async_get_scan_history() == []

    @pytest.mark.asyncio
    async def test_debug_storage(self, coordinator: EcoEchoDataCoordinator) -> None:
        """Test that the storage report lists anonymous blobs."""
        await coordinator.history_manager.async_record_scan(scan_input())

        report = await coordinator.history_manager.async_debug_storage()

        assert report["user_id"] is None
        assert report["anonymous"][const.STORAGE_KEY_SCAN_HISTORY] is True
        assert report["anonymous"][const.STORAGE_KEY_USER_OBJECT_STATS] is False
        assert report["user"] == {}
        assert ANON_HISTORY in report["keys"]

    @pytest.mark.asyncio
    async def test_signed_in_user_namespace(
        self, coordinator: EcoEchoDataCoordinator, memory_store: MemoryStore
    ) -> None:
        """Test that scans land in the signed-in user's namespace."""
        await coordinator.async_login("u42", "token")

        await coordinator.history_manager.async_record_scan(scan_input())

        assert "eco_echo_scan_history_u42" in memory_store.data
        assert ANON_HISTORY not in memory_store.data
        report = await coordinator.history_manager.async_debug_storage()
        assert report["user"][const.STORAGE_KEY_SCAN_HISTORY] is True
