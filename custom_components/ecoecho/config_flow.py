# File: config_flow.py
"""Config flow for the EcoEcho integration.

A single step collects the backend URL and an optional default API token.
Only one EcoEcho entry may exist; it owns the device's local storage.
"""

from __future__ import annotations

from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.config_entries import ConfigFlowResult
from homeassistant.core import callback

from . import const
from .options_flow import EcoEchoOptionsFlowHandler


def build_user_schema(defaults: dict[str, Any] | None = None) -> vol.Schema:
    """Build the backend connection form."""
    defaults = defaults or {}
    return vol.Schema(
        {
            vol.Required(
                const.CONF_API_URL, default=defaults.get(const.CONF_API_URL, "")
            ): str,
            vol.Optional(
                const.CONF_API_TOKEN, default=defaults.get(const.CONF_API_TOKEN, "")
            ): str,
        }
    )


def validate_api_url(value: str) -> bool:
    """Return True if value is an absolute http(s) URL."""
    try:
        vol.Url()(value)
    except vol.Invalid:
        return False
    return value.startswith(("http://", "https://"))


class EcoEchoConfigFlow(config_entries.ConfigFlow, domain=const.DOMAIN):
    """Config Flow for EcoEcho."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Ask for the backend URL and optional token."""
        if any(self._async_current_entries()):
            return self.async_abort(reason=const.TRANS_KEY_ERROR_SINGLE_INSTANCE)

        errors: dict[str, str] = {}
        if user_input is not None:
            api_url = user_input[const.CONF_API_URL].strip().rstrip("/")
            if not validate_api_url(api_url):
                errors[const.CONF_API_URL] = const.TRANS_KEY_ERROR_INVALID_URL
            else:
                data = {const.CONF_API_URL: api_url}
                token = user_input.get(const.CONF_API_TOKEN, "").strip()
                if token:
                    data[const.CONF_API_TOKEN] = token
                const.LOGGER.debug("DEBUG: Creating EcoEcho entry for %s", api_url)
                return self.async_create_entry(title=const.ECOECHO_TITLE, data=data)

        return self.async_show_form(
            step_id=const.CONFIG_FLOW_STEP_USER,
            data_schema=build_user_schema(user_input),
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,
    ) -> EcoEchoOptionsFlowHandler:
        """Return the Options Flow."""
        return EcoEchoOptionsFlowHandler()
