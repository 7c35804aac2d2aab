# File: __init__.py
"""Initialization file for the EcoEcho integration.

Handles setting up the integration, including loading configuration entries,
initializing data storage, and preparing the coordinator for data handling.

Key Features:
- Config entry setup and unload support.
- Coordinator initialization for statistics reconciliation.
- Storage management for scan history, achievements and identity.
"""

from __future__ import annotations

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.util import dt as dt_util

from . import const
from .api import EcoEchoApiClient
from .coordinator import EcoEchoDataCoordinator
from .services import async_setup_services, async_unload_services
from .store import EcoEchoStore
from .utils import dt_utils


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up the integration from a config entry."""
    const.LOGGER.info("INFO: Starting setup for EcoEcho entry: %s", entry.entry_id)

    dt_utils.set_default_timezone(dt_util.get_default_time_zone())

    store = EcoEchoStore(hass, const.STORAGE_KEY)
    api = EcoEchoApiClient(
        hass,
        entry.data[const.CONF_API_URL],
        entry.data.get(const.CONF_API_TOKEN),
    )

    coordinator = EcoEchoDataCoordinator(hass, entry, store, api)
    await coordinator.async_setup_managers()
    await coordinator.async_config_entry_first_refresh()

    hass.data.setdefault(const.DOMAIN, {})[entry.entry_id] = {
        const.COORDINATOR: coordinator,
        const.STORE: store,
    }

    async_setup_services(hass)

    entry.async_on_unload(entry.add_update_listener(async_reload_entry))

    const.LOGGER.info("INFO: EcoEcho setup complete for entry: %s", entry.entry_id)
    return True


async def async_reload_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload the entry when options change."""
    await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    const.LOGGER.info("INFO: Unloading EcoEcho entry: %s", entry.entry_id)

    unload_ok = await hass.config_entries.async_unload_platforms(entry, const.PLATFORMS)

    if unload_ok:
        hass.data[const.DOMAIN].pop(entry.entry_id)

        if not hass.data[const.DOMAIN]:
            await async_unload_services(hass)

    return unload_ok


async def async_remove_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle removal of a config entry."""
    const.LOGGER.info("INFO: Removing EcoEcho entry: %s", entry.entry_id)

    await EcoEchoStore(hass, const.STORAGE_KEY).async_delete_storage()

    const.LOGGER.info("INFO: EcoEcho entry data cleared: %s", entry.entry_id)
