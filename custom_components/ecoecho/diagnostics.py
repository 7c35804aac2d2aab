"""Diagnostics support for EcoEcho integration.

Reports which storage blobs exist per namespace plus the current user's
aggregate and reconciled statistics. Tokens are redacted.
"""

from typing import Any

from homeassistant.components.diagnostics import async_redact_data
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from . import const
from .coordinator import EcoEchoDataCoordinator

TO_REDACT = {const.CONF_API_TOKEN, const.DATA_IDENTITY_TOKEN}


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: ConfigEntry
) -> dict[str, Any]:
    """Return diagnostics for a config entry."""
    coordinator: EcoEchoDataCoordinator = hass.data[const.DOMAIN][entry.entry_id][
        const.COORDINATOR
    ]

    return {
        "entry": async_redact_data(dict(entry.data), TO_REDACT),
        "storage": await coordinator.history_manager.async_debug_storage(),
        "local_statistics": await coordinator.history_manager.async_get_user_statistics(),
        "reconciled_statistics": coordinator.data,
    }
