# File: services.py
"""Defines custom services for the EcoEcho integration.

These services allow recording scans and shares, refreshing statistics,
signing in and out, and querying progress through scripts or automations.
Query services return their results as service responses.
"""

from __future__ import annotations

from typing import Any

import voluptuous as vol
from homeassistant.core import (
    HomeAssistant,
    ServiceCall,
    ServiceResponse,
    SupportsResponse,
)
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import config_validation as cv

from . import const
from .coordinator import EcoEchoDataCoordinator

# --- Service Schemas ---
RECORD_SCAN_SCHEMA = vol.Schema(
    {
        vol.Optional(const.FIELD_ITEM_NAME): cv.string,
        vol.Optional(const.FIELD_CATEGORY): cv.string,
        vol.Optional(const.FIELD_IS_RECYCLABLE): cv.boolean,
        vol.Optional(const.FIELD_ECO_SCORE): vol.All(
            vol.Coerce(int), vol.Range(min=const.ECO_SCORE_MIN, max=const.ECO_SCORE_MAX)
        ),
        vol.Optional(const.FIELD_CONFIDENCE): vol.All(
            vol.Coerce(float), vol.Range(min=0, max=1)
        ),
        vol.Optional(const.FIELD_DISPOSAL_METHOD): cv.string,
        vol.Optional(const.FIELD_IMAGE_REF): cv.string,
    }
)

RECORD_SHARE_SCHEMA = vol.Schema({})

REFRESH_STATS_SCHEMA = vol.Schema(
    {
        vol.Optional(const.FIELD_FORCE, default=False): cv.boolean,
    }
)

LOGIN_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_USER_ID): cv.string,
        vol.Optional(const.FIELD_TOKEN): cv.string,
    }
)

LOGOUT_SCHEMA = vol.Schema({})

GET_PROGRESS_SCHEMA = vol.Schema({})

GET_ACHIEVEMENT_PROGRESS_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_ACHIEVEMENT_ID): cv.string,
    }
)

GET_SCAN_HISTORY_SCHEMA = vol.Schema(
    {
        vol.Optional(const.FIELD_LIMIT, default=const.DEFAULT_HISTORY_LIMIT): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=const.HISTORY_RETENTION_LIMIT)
        ),
    }
)

CLEAR_HISTORY_SCHEMA = vol.Schema({})

_SCAN_FIELDS = (
    const.FIELD_ITEM_NAME,
    const.FIELD_CATEGORY,
    const.FIELD_IS_RECYCLABLE,
    const.FIELD_ECO_SCORE,
    const.FIELD_CONFIDENCE,
    const.FIELD_DISPOSAL_METHOD,
)


def _get_coordinator(hass: HomeAssistant) -> EcoEchoDataCoordinator:
    """Return the coordinator of the first loaded EcoEcho entry."""
    entries = hass.data.get(const.DOMAIN, {})
    for entry_data in entries.values():
        return entry_data[const.COORDINATOR]
    const.LOGGER.warning("WARNING: %s", const.MSG_NO_ENTRY_FOUND)
    raise HomeAssistantError(
        const.MSG_NO_ENTRY_FOUND,
        translation_domain=const.DOMAIN,
        translation_key=const.TRANS_KEY_ERROR_NO_ENTRY,
    )


def async_setup_services(hass: HomeAssistant) -> None:
    """Register EcoEcho services."""
    if hass.services.has_service(const.DOMAIN, const.SERVICE_RECORD_SCAN):
        return

    async def handle_record_scan(call: ServiceCall) -> ServiceResponse:
        """Handle recording a waste-item scan."""
        coordinator = _get_coordinator(hass)
        scan_input = {
            field: call.data[field] for field in _SCAN_FIELDS if field in call.data
        }
        result = await coordinator.async_record_scan(
            scan_input, call.data.get(const.FIELD_IMAGE_REF)
        )
        return {
            const.ATTR_SCAN: dict(result[const.ATTR_SCAN]),
            const.ATTR_NEWLY_UNLOCKED: [
                achievement.as_dict()
                for achievement in result[const.ATTR_NEWLY_UNLOCKED]
            ],
            const.ATTR_STATS: result[const.ATTR_STATS],
        }

    async def handle_record_share(call: ServiceCall) -> ServiceResponse:
        """Handle sharing a scan result."""
        coordinator = _get_coordinator(hass)
        newly_unlocked = await coordinator.async_record_share()
        return {
            const.ATTR_NEWLY_UNLOCKED: [
                achievement.as_dict() for achievement in newly_unlocked
            ],
        }

    async def handle_refresh_stats(call: ServiceCall) -> ServiceResponse:
        """Handle refreshing statistics from the backend."""
        coordinator = _get_coordinator(hass)
        stats = await coordinator.async_refresh_stats(force=call.data[const.FIELD_FORCE])
        return {const.ATTR_STATS: dict(stats)}

    async def handle_login(call: ServiceCall) -> ServiceResponse:
        """Handle signing in."""
        coordinator = _get_coordinator(hass)
        stats = await coordinator.async_login(
            call.data[const.FIELD_USER_ID], call.data.get(const.FIELD_TOKEN)
        )
        return {
            const.ATTR_USER_ID: coordinator.user_id,
            const.ATTR_STATS: dict(stats),
        }

    async def handle_logout(call: ServiceCall) -> None:
        """Handle signing out."""
        coordinator = _get_coordinator(hass)
        await coordinator.async_logout()

    async def handle_get_progress(call: ServiceCall) -> ServiceResponse:
        """Return progress, points, level and unlocked achievements."""
        coordinator = _get_coordinator(hass)
        manager = coordinator.gamification_manager
        progress: dict[str, Any] = await manager.async_get_user_progress()
        progress[const.ATTR_UNLOCKED] = [
            achievement.as_dict()
            for achievement in await manager.async_get_unlocked_achievements()
        ]
        return progress

    async def handle_get_achievement_progress(call: ServiceCall) -> ServiceResponse:
        """Return percentage progress toward one achievement."""
        coordinator = _get_coordinator(hass)
        achievement_id = call.data[const.FIELD_ACHIEVEMENT_ID]
        fraction = await coordinator.gamification_manager.async_get_progress_fraction(
            achievement_id
        )
        return {
            const.ATTR_ACHIEVEMENT_ID: achievement_id,
            const.ATTR_PROGRESS: fraction,
        }

    async def handle_get_scan_history(call: ServiceCall) -> ServiceResponse:
        """Return the most recent scans, newest first."""
        coordinator = _get_coordinator(hass)
        history = await coordinator.history_manager.async_get_scan_history(
            call.data[const.FIELD_LIMIT]
        )
        return {const.ATTR_HISTORY: [dict(record) for record in history]}

    async def handle_clear_history(call: ServiceCall) -> None:
        """Handle clearing the current user's scan history."""
        coordinator = _get_coordinator(hass)
        await coordinator.history_manager.async_clear_user_data()
        await coordinator.async_refresh_stats(force=True)

    # --- Register Services ---
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_RECORD_SCAN,
        handle_record_scan,
        schema=RECORD_SCAN_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_RECORD_SHARE,
        handle_record_share,
        schema=RECORD_SHARE_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_REFRESH_STATS,
        handle_refresh_stats,
        schema=REFRESH_STATS_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_LOGIN,
        handle_login,
        schema=LOGIN_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_LOGOUT,
        handle_logout,
        schema=LOGOUT_SCHEMA,
    )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_GET_PROGRESS,
        handle_get_progress,
        schema=GET_PROGRESS_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_GET_ACHIEVEMENT_PROGRESS,
        handle_get_achievement_progress,
        schema=GET_ACHIEVEMENT_PROGRESS_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_GET_SCAN_HISTORY,
        handle_get_scan_history,
        schema=GET_SCAN_HISTORY_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_CLEAR_HISTORY,
        handle_clear_history,
        schema=CLEAR_HISTORY_SCHEMA,
    )

    const.LOGGER.debug("DEBUG: EcoEcho services registered")


async def async_unload_services(hass: HomeAssistant) -> None:
    """Unregister EcoEcho services when unloading the integration."""
    services = [
        const.SERVICE_RECORD_SCAN,
        const.SERVICE_RECORD_SHARE,
        const.SERVICE_REFRESH_STATS,
        const.SERVICE_LOGIN,
        const.SERVICE_LOGOUT,
        const.SERVICE_GET_PROGRESS,
        const.SERVICE_GET_ACHIEVEMENT_PROGRESS,
        const.SERVICE_GET_SCAN_HISTORY,
        const.SERVICE_CLEAR_HISTORY,
    ]

    for service in services:
        if hass.services.has_service(const.DOMAIN, service):
            hass.services.async_remove(const.DOMAIN, service)

    const.LOGGER.debug("DEBUG: EcoEcho services unloaded")
