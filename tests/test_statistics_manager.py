"""Tests for StatisticsManager - reconciliation, push and refresh throttling."""

from __future__ import annotations

from datetime import timedelta

from freezegun import freeze_time
import pytest

from custom_components.ecoecho.coordinator import EcoEchoDataCoordinator
from custom_components.ecoecho.managers import PushResult
from tests.helpers import FakeApiClient, MemoryStore

ANON_CACHE = "anonymous_eco_echo_user_object_stats"
USER_STATS = "eco_echo_user_stats_u1"
USER_CACHE = "eco_echo_user_object_stats_u1"


async def sign_in(coordinator: EcoEchoDataCoordinator) -> None:
    """Sign in u1 without the coordinator's post-login refresh."""
    await coordinator.user_manager.async_login("u1", "token")
    coordinator.statistics_manager.reset_session()


class TestReconcile:
    """Tests for async_reconcile."""

    @pytest.mark.asyncio
    async def test_anonymous_reconcile_cached_not_pushed(
        self,
        coordinator: EcoEchoDataCoordinator,
        memory_store: MemoryStore,
        fake_api: FakeApiClient,
    ) -> None:
        """Test that anonymous results are cached locally and never pushed."""
        memory_store.data["anonymous_eco_echo_user_stats"] = {
            "schema_version": 2,
            "total_items_scanned": 2,
            "recyclable_items_count": 2,
        }

        stats = await coordinator.statistics_manager.async_reconcile()

        assert stats["total_items"] == 2
        assert memory_store.data[ANON_CACHE]["total_items"] == 2
        assert fake_api.put_calls == []
        assert coordinator.statistics_manager.last_reconciled == stats

    @pytest.mark.asyncio
    async def test_server_grams_normalized(
        self,
        coordinator: EcoEchoDataCoordinator,
        memory_store: MemoryStore,
        fake_api: FakeApiClient,
    ) -> None:
        """Test that local 5 items and server 3 items / 800 g merge to 5 / 0.8."""
        await sign_in(coordinator)
        memory_store.data[USER_STATS] = {"schema_version": 2, "total_items_scanned": 5}
        memory_store.data.pop(USER_CACHE, None)
        fake_api.server_stats = {"totalItems": 3, "totalWeight": 800}

        stats = await coordinator.statistics_manager.async_refresh_stats(force=True)

        assert stats["total_items"] == 5
        assert stats["total_weight"] == 0.8
        assert fake_api.put_calls[-1]["total_items"] == 5
        assert memory_store.data[USER_CACHE]["total_weight"] == 0.8

    @pytest.mark.asyncio
    async def test_cache_is_a_source(
        self,
        coordinator: EcoEchoDataCoordinator,
        memory_store: MemoryStore,
    ) -> None:
        """Test that previously reconciled totals never go down."""
        memory_store.data[ANON_CACHE] = {
            "total_items": 12,
            "total_weight": 1.2,
            "total_carbon_saved": 4.0,
            "recyclable_items": 8,
        }

        stats = await coordinator.statistics_manager.async_reconcile()

        assert stats["total_items"] == 12
        assert stats["total_carbon_saved"] == 4.0
        assert stats["trees_equivalent"] == 0.2

    @pytest.mark.asyncio
    async def test_cache_write_failure_still_returns(
        self,
        coordinator: EcoEchoDataCoordinator,
        memory_store: MemoryStore,
    ) -> None:
        """Test that a failed cache write is logged, not raised."""
        memory_store.fail_all_writes = True

        stats = await coordinator.statistics_manager.async_reconcile()

        assert stats["total_items"] == 0
        assert ANON_CACHE not in memory_store.data


class TestPush:
    """Tests for best-effort pushes."""

    @pytest.mark.asyncio
    async def test_push_without_user(self, coordinator: EcoEchoDataCoordinator) -> None:
        """Test that pushing without a session reports failure."""
        result = await coordinator.statistics_manager.async_push_reconciled(
            await coordinator.statistics_manager.async_get_cached_stats()
        )

        assert result == PushResult(success=False, error="No user session")

    @pytest.mark.asyncio
    async def test_push_failure_swallowed(
        self, coordinator: EcoEchoDataCoordinator, fake_api: FakeApiClient
    ) -> None:
        """Test that a network failure during push is returned, not raised."""
        await sign_in(coordinator)
        fake_api.fail = True

        stats = await coordinator.statistics_manager.async_reconcile()
        result = await coordinator.statistics_manager.async_push_reconciled(stats)

        assert result.success is False
        assert result.error == "backend unreachable"

    @pytest.mark.asyncio
    async def test_push_success(
        self, coordinator: EcoEchoDataCoordinator, fake_api: FakeApiClient
    ) -> None:
        """Test that a signed-in push succeeds."""
        await sign_in(coordinator)
        stats = await coordinator.statistics_manager.async_get_cached_stats()

        result = await coordinator.statistics_manager.async_push_reconciled(stats)

        assert result == PushResult(success=True)


class TestRefresh:
    """Tests for throttled refreshes."""

    @pytest.mark.asyncio
    async def test_refresh_throttled_within_window(
        self, coordinator: EcoEchoDataCoordinator, fake_api: FakeApiClient
    ) -> None:
        """Test that a second refresh within 10 seconds skips the server."""
        await sign_in(coordinator)
        manager = coordinator.statistics_manager

        with freeze_time("2025-01-15 12:00:00", tz_offset=0) as frozen:
            first = await manager.async_refresh_stats()
            frozen.tick(timedelta(seconds=5))
            second = await manager.async_refresh_stats()

            assert fake_api.get_calls == 1
            assert second == first

            frozen.tick(timedelta(seconds=6))
            await manager.async_refresh_stats()

        assert fake_api.get_calls == 2

    @pytest.mark.asyncio
    async def test_force_bypasses_throttle(
        self, coordinator: EcoEchoDataCoordinator, fake_api: FakeApiClient
    ) -> None:
        """Test that a forced refresh always queries the server."""
        await sign_in(coordinator)
        manager = coordinator.statistics_manager

        await manager.async_refresh_stats()
        await manager.async_refresh_stats(force=True)

        assert fake_api.get_calls == 2

    @pytest.mark.asyncio
    async def test_user_change_resets_session(
        self, coordinator: EcoEchoDataCoordinator, fake_api: FakeApiClient
    ) -> None:
        """Test that signing in again starts a new throttle window."""
        await sign_in(coordinator)
        manager = coordinator.statistics_manager
        await manager.async_refresh_stats()

        await coordinator.user_manager.async_login("u1", "token")

        assert manager.last_reconciled is None
        await manager.async_refresh_stats()
        assert fake_api.get_calls == 2

    @pytest.mark.asyncio
    async def test_anonymous_refresh_skips_server(
        self, coordinator: EcoEchoDataCoordinator, fake_api: FakeApiClient
    ) -> None:
        """Test that anonymous refreshes only reconcile local data."""
        await coordinator.statistics_manager.async_refresh_stats(force=True)

        assert fake_api.get_calls == 0
        assert fake_api.put_calls == []

    @pytest.mark.asyncio
    async def test_network_failure_falls_back_to_local(
        self,
        coordinator: EcoEchoDataCoordinator,
        memory_store: MemoryStore,
        fake_api: FakeApiClient,
    ) -> None:
        """Test that an unreachable backend still yields local statistics."""
        await sign_in(coordinator)
        memory_store.data[USER_STATS] = {"schema_version": 2, "total_items_scanned": 3}
        fake_api.fail = True

        stats = await coordinator.statistics_manager.async_refresh_stats(force=True)

        assert stats["total_items"] == 3
        assert fake_api.get_calls == 1
