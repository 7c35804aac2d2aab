# File: api.py
"""Client for the EcoEcho backend statistics API.

Only the two user-statistics endpoints are used:
- GET /stats/user: fetch server-side totals for the signed-in user
- PUT /stats/user: push reconciled totals (the server keeps the max per field)

All transport, HTTP status and payload-shape failures surface as NetworkError.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import aiohttp
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from . import const
from .data_builders import build_server_stats, reconciled_stats_to_api

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from .type_defs import ReconciledStats, ServerUserStats


class NetworkError(HomeAssistantError):
    """Raised when the backend cannot be reached or rejects a request."""


class EcoEchoApiClient:
    """Thin async wrapper around the backend statistics endpoints."""

    def __init__(
        self,
        hass: HomeAssistant,
        base_url: str,
        token: str | None = None,
        timeout: float = const.API_TIMEOUT_SECONDS,
    ) -> None:
        self.hass = hass
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout

    @property
    def base_url(self) -> str:
        """Return the configured backend URL."""
        return self._base_url

    @property
    def token(self) -> str | None:
        """Return the bearer token currently in use."""
        return self._token

    def set_token(self, token: str | None) -> None:
        """Replace the bearer token used for authenticated requests."""
        self._token = token

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _async_request(
        self,
        method: str,
        path: str,
        json_body: dict[str, Any] | None = None,
        allow_empty: bool = False,
    ) -> dict[str, Any] | None:
        """Send a request and return the ``data`` object of a success envelope.

        Any 2xx status is a success. With ``allow_empty``, a reply without a
        body (204) or without a ``data`` object returns None instead of raising.
        """
        session = async_get_clientsession(self.hass)
        url = f"{self._base_url}{path}"

        try:
            async with asyncio.timeout(self._timeout):
                async with session.request(
                    method, url, json=json_body, headers=self._headers()
                ) as response:
                    if not 200 <= response.status < 300:
                        raise NetworkError(
                            f"HTTP {response.status} from {method} {url}"
                        )
                    payload = await response.json(content_type=None)
        except TimeoutError as err:
            const.LOGGER.warning("WARNING: Timeout calling %s %s", method, url)
            raise NetworkError(f"Timeout calling {method} {url}") from err
        except aiohttp.ClientError as err:
            const.LOGGER.warning(
                "WARNING: Client error calling %s %s: %s", method, url, err
            )
            raise NetworkError(f"Client error calling {method} {url}: {err}") from err
        except ValueError as err:
            raise NetworkError(f"Invalid JSON from {method} {url}") from err

        if payload is None and allow_empty:
            return None
        if not isinstance(payload, dict) or not payload.get(const.API_FIELD_SUCCESS):
            raise NetworkError(f"Unsuccessful response from {method} {url}")

        data = payload.get(const.API_FIELD_DATA)
        if data is None and allow_empty:
            return None
        if not isinstance(data, dict):
            raise NetworkError(f"Unexpected response shape from {method} {url}")
        return data

    async def async_get_user_stats(self) -> ServerUserStats:
        """Fetch the signed-in user's server statistics."""
        data = await self._async_request("GET", const.API_PATH_USER_STATS)
        stats = build_server_stats(data)
        const.LOGGER.debug(
            "DEBUG: Fetched server stats: %s items, %s recyclable",
            stats["total_items"],
            stats["recyclable_items"],
        )
        return stats

    async def async_put_user_stats(
        self, stats: ReconciledStats
    ) -> ServerUserStats | None:
        """Push reconciled statistics.

        Returns what the server now stores, or None when it acknowledged the
        update without echoing the record.
        """
        data = await self._async_request(
            "PUT",
            const.API_PATH_USER_STATS,
            reconciled_stats_to_api(stats),
            allow_empty=True,
        )
        return build_server_stats(data) if data is not None else None
