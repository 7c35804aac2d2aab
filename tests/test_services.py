"""Tests for EcoEcho services, setup/unload and diagnostics."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock, patch

from freezegun import freeze_time
import pytest
import voluptuous as vol
from homeassistant.config_entries import ConfigEntryState
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.ecoecho import const
from custom_components.ecoecho.data_builders import build_server_stats
from custom_components.ecoecho.diagnostics import async_get_config_entry_diagnostics


@pytest.fixture
async def init_integration(
    hass: HomeAssistant, mock_config_entry: MockConfigEntry
) -> AsyncGenerator[dict[str, AsyncMock]]:
    """Set up EcoEcho with the backend client patched out."""
    get_stats = AsyncMock(return_value=build_server_stats({"totalItems": 0}))
    put_stats = AsyncMock(return_value=build_server_stats({}))
    with (
        patch(
            "custom_components.ecoecho.api.EcoEchoApiClient.async_get_user_stats",
            get_stats,
        ),
        patch(
            "custom_components.ecoecho.api.EcoEchoApiClient.async_put_user_stats",
            put_stats,
        ),
    ):
        mock_config_entry.add_to_hass(hass)
        assert await hass.config_entries.async_setup(mock_config_entry.entry_id)
        await hass.async_block_till_done()
        yield {"get": get_stats, "put": put_stats}


async def call(
    hass: HomeAssistant, service: str, data: dict[str, Any] | None = None, **kwargs: Any
) -> Any:
    return await hass.services.async_call(
        const.DOMAIN, service, data or {}, blocking=True, **kwargs
    )


class TestSetup:
    """Tests for entry setup and unload."""

    @pytest.mark.asyncio
    async def test_services_registered(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        init_integration: dict[str, AsyncMock],
    ) -> None:
        """Test that setup loads the entry and registers every service."""
        assert mock_config_entry.state is ConfigEntryState.LOADED
        for service in (
            const.SERVICE_RECORD_SCAN,
            const.SERVICE_RECORD_SHARE,
            const.SERVICE_REFRESH_STATS,
            const.SERVICE_LOGIN,
            const.SERVICE_LOGOUT,
            const.SERVICE_GET_PROGRESS,
            const.SERVICE_GET_ACHIEVEMENT_PROGRESS,
            const.SERVICE_GET_SCAN_HISTORY,
            const.SERVICE_CLEAR_HISTORY,
        ):
            assert hass.services.has_service(const.DOMAIN, service)

    @pytest.mark.asyncio
    async def test_unload_removes_services(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        init_integration: dict[str, AsyncMock],
    ) -> None:
        """Test that unloading the last entry removes the services."""
        assert await hass.config_entries.async_unload(mock_config_entry.entry_id)
        await hass.async_block_till_done()

        assert mock_config_entry.state is ConfigEntryState.NOT_LOADED
        assert not hass.services.has_service(const.DOMAIN, const.SERVICE_RECORD_SCAN)


class TestScanServices:
    """Tests for recording and querying scans."""

    @pytest.mark.asyncio
    async def test_record_scan_response(
        self, hass: HomeAssistant, init_integration: dict[str, AsyncMock]
    ) -> None:
        """Test that record_scan returns the record, unlocks and stats."""
        response = await call(
            hass,
            const.SERVICE_RECORD_SCAN,
            {
                "item_name": "plastic bottle",
                "category": "Plastic",
                "is_recyclable": True,
                "eco_score": 80,
            },
            return_response=True,
        )

        assert response["scan"]["category"] == "Plastic"
        assert response["newly_unlocked"][0]["id"] == "first_scan"
        assert response["stats"]["total_items"] == 1

    @pytest.mark.asyncio
    async def test_record_scan_rejects_out_of_range_score(
        self, hass: HomeAssistant, init_integration: dict[str, AsyncMock]
    ) -> None:
        """Test that the service schema rejects an eco score above 100."""
        with pytest.raises((vol.Invalid, HomeAssistantError)):
            await call(hass, const.SERVICE_RECORD_SCAN, {"eco_score": 150})

    @pytest.mark.asyncio
    async def test_history_and_clear(
        self, hass: HomeAssistant, init_integration: dict[str, AsyncMock]
    ) -> None:
        """Test that scan history is returned newest first and can be cleared."""
        await call(hass, const.SERVICE_RECORD_SCAN, {"item_name": "first"})
        await call(hass, const.SERVICE_RECORD_SCAN, {"item_name": "second"})

        response = await call(
            hass, const.SERVICE_GET_SCAN_HISTORY, {"limit": 5}, return_response=True
        )
        assert [item["item_name"] for item in response["history"]] == [
            "second",
            "first",
        ]

        await call(hass, const.SERVICE_CLEAR_HISTORY)

        response = await call(
            hass, const.SERVICE_GET_SCAN_HISTORY, return_response=True
        )
        assert response["history"] == []


class TestProgressServices:
    """Tests for achievement and points queries."""

    @pytest.mark.asyncio
    async def test_get_progress(
        self, hass: HomeAssistant, init_integration: dict[str, AsyncMock]
    ) -> None:
        """Test that progress, points, level and unlocked list are returned."""
        # Midday local time so no time-of-day achievement unlocks
        with freeze_time("2025-01-15 20:00:00", tz_offset=0):
            await call(hass, const.SERVICE_RECORD_SCAN, {"eco_score": 40})
            await call(hass, const.SERVICE_RECORD_SHARE)

        response = await call(hass, const.SERVICE_GET_PROGRESS, return_response=True)

        assert response["progress"]["scan_count"] == 1
        assert response["progress"]["share_count"] == 1
        assert response["points"] == 150
        assert response["level"] == 1
        assert [item["id"] for item in response["unlocked"]] == [
            "first_scan",
            "share_the_love",
        ]

    @pytest.mark.asyncio
    async def test_get_achievement_progress(
        self, hass: HomeAssistant, init_integration: dict[str, AsyncMock]
    ) -> None:
        """Test that percentage progress toward one achievement is returned."""
        await call(hass, const.SERVICE_RECORD_SCAN, {"eco_score": 40})

        response = await call(
            hass,
            const.SERVICE_GET_ACHIEVEMENT_PROGRESS,
            {"achievement_id": "scan_veteran"},
            return_response=True,
        )

        assert response == {"achievement_id": "scan_veteran", "progress": 10.0}


class TestSessionServices:
    """Tests for login, logout and refresh."""

    @pytest.mark.asyncio
    async def test_login_logout(
        self, hass: HomeAssistant, init_integration: dict[str, AsyncMock]
    ) -> None:
        """Test that login migrates scans, refreshes and pushes."""
        await call(hass, const.SERVICE_RECORD_SCAN, {"eco_score": 40})

        response = await call(
            hass,
            const.SERVICE_LOGIN,
            {"user_id": "u1", "token": "tok"},
            return_response=True,
        )

        assert response["user_id"] == "u1"
        assert response["stats"]["total_items"] == 1
        init_integration["get"].assert_awaited()
        init_integration["put"].assert_awaited()

        await call(hass, const.SERVICE_LOGOUT)

        response = await call(
            hass, const.SERVICE_REFRESH_STATS, {"force": True}, return_response=True
        )
        assert response["stats"]["total_items"] == 0


class TestDiagnostics:
    """Tests for config entry diagnostics."""

    @pytest.mark.asyncio
    async def test_diagnostics_redacts_token(
        self, hass: HomeAssistant, init_integration: dict[str, AsyncMock]
    ) -> None:
        """Test that diagnostics report storage state without secrets."""
        entry = MockConfigEntry(
            domain=const.DOMAIN,
            data={
                const.CONF_API_URL: "http://backend.test/api",
                const.CONF_API_TOKEN: "secret",
            },
            entry_id="test_entry_id",
        )
        await call(hass, const.SERVICE_RECORD_SCAN, {"eco_score": 40})

        diagnostics = await async_get_config_entry_diagnostics(hass, entry)

        assert diagnostics["entry"][const.CONF_API_TOKEN] == "**REDACTED**"
        assert diagnostics["storage"]["anonymous"][const.STORAGE_KEY_SCAN_HISTORY]
        assert diagnostics["local_statistics"]["total_items_scanned"] == 1
