"""Shared fixtures for EcoEcho tests."""

from __future__ import annotations

from typing import Any
from zoneinfo import ZoneInfo

import pytest
from homeassistant.core import HomeAssistant
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.ecoecho.const import (
    CONF_API_URL,
    CONF_UPDATE_INTERVAL,
    DEFAULT_UPDATE_INTERVAL,
    DOMAIN,
    ECOECHO_TITLE,
)
from custom_components.ecoecho.coordinator import EcoEchoDataCoordinator
from custom_components.ecoecho.utils import dt_utils
from tests.helpers import FakeApiClient, MemoryStore

# pylint: disable=invalid-name
pytest_plugins = "pytest_homeassistant_custom_component"
# pylint: enable=invalid-name

TEST_API_URL = "http://backend.test/api"


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(enable_custom_integrations: Any) -> Any:
    """Enable custom integrations in tests."""
    # pylint: disable=unused-argument
    yield


@pytest.fixture(autouse=True)
def utc_default_timezone() -> Any:
    """Evaluate calendar days and hours in UTC unless a test says otherwise."""
    previous = dt_utils.get_default_timezone()
    dt_utils.set_default_timezone(ZoneInfo("UTC"))
    yield
    dt_utils.set_default_timezone(previous)


@pytest.fixture
def mock_config_entry() -> MockConfigEntry:
    """Return a mock config entry."""
    return MockConfigEntry(
        domain=DOMAIN,
        title=ECOECHO_TITLE,
        data={CONF_API_URL: TEST_API_URL},
        options={CONF_UPDATE_INTERVAL: DEFAULT_UPDATE_INTERVAL},
        entry_id="test_entry_id",
    )


@pytest.fixture
def memory_store() -> MemoryStore:
    """Return an empty in-memory store."""
    return MemoryStore()


@pytest.fixture
def fake_api() -> FakeApiClient:
    """Return a backend client fake with no server stats."""
    return FakeApiClient()


@pytest.fixture
async def coordinator(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
    memory_store: MemoryStore,
    fake_api: FakeApiClient,
) -> EcoEchoDataCoordinator:
    """Return a coordinator with managers set up against the fakes."""
    mock_config_entry.add_to_hass(hass)
    coordinator = EcoEchoDataCoordinator(
        hass,
        mock_config_entry,
        memory_store,  # type: ignore[arg-type]
        fake_api,  # type: ignore[arg-type]
    )
    await coordinator.async_setup_managers()
    return coordinator
