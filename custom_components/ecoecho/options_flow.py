# File: options_flow.py
"""Options Flow for the EcoEcho integration.

Only the coordinator refresh interval is configurable. The entry reloads
when options change (see async_reload_entry in __init__.py).
"""

from __future__ import annotations

from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.config_entries import ConfigFlowResult

from . import const


class EcoEchoOptionsFlowHandler(config_entries.OptionsFlow):
    """Options Flow for the refresh interval."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Display and store general options."""
        if user_input is not None:
            const.LOGGER.debug(
                "DEBUG: Updating update interval to %s minutes",
                user_input[const.CONF_UPDATE_INTERVAL],
            )
            return self.async_create_entry(title="", data=user_input)

        current_interval = self.config_entry.options.get(
            const.CONF_UPDATE_INTERVAL, const.DEFAULT_UPDATE_INTERVAL
        )
        schema = vol.Schema(
            {
                vol.Required(
                    const.CONF_UPDATE_INTERVAL, default=current_interval
                ): vol.All(vol.Coerce(int), vol.Range(min=1, max=1440)),
            }
        )
        return self.async_show_form(
            step_id=const.OPTIONS_FLOW_STEP_INIT, data_schema=schema
        )
