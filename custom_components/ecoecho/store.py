# File: store.py
"""Handles persistent key-value storage for the EcoEcho integration.

Uses Home Assistant's Storage helper to keep every EcoEcho blob (scan history,
aggregates, progress, points, identity) in a single storage file. Blobs are
addressed by string keys; per-user blobs use ``namespaced_key``.

Unlike a fire-and-forget cache, writes that fail raise StorageError so the
caller can decide whether the operation as a whole failed.
"""

from __future__ import annotations

import asyncio
import copy
from typing import TYPE_CHECKING, Any

from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.storage import Store

from . import const

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant


class StorageError(HomeAssistantError):
    """Raised when the backing store cannot be read or written."""


def namespaced_key(base_key: str, user_id: str | None) -> str:
    """Return the storage key for a base key within a user namespace.

    Examples:
        namespaced_key("eco_echo_user_stats", "u42") → "eco_echo_user_stats_u42"
        namespaced_key("eco_echo_user_stats", None) → "anonymous_eco_echo_user_stats"
    """
    if not user_id:
        return f"{const.ANONYMOUS_NAMESPACE}_{base_key}"
    return f"{base_key}_{user_id}"


class EcoEchoStore:
    """Namespaced key-value store persisted through Home Assistant Storage.

    The whole key space is loaded lazily on first access and kept in memory.
    Values are deep-copied on the way in and out so callers never mutate the
    cache by accident.
    """

    def __init__(
        self, hass: HomeAssistant, storage_key: str = const.STORAGE_KEY
    ) -> None:
        """Initialize the store.

        Args:
            hass: Home Assistant core object.
            storage_key: Key to identify storage location (default: const.STORAGE_KEY).

        """
        self.hass = hass
        self._storage_key = storage_key
        self._store: Store[dict[str, Any]] = Store(
            hass, const.STORAGE_VERSION, storage_key
        )
        self._data: dict[str, Any] | None = None
        self._lock = asyncio.Lock()

    def get_storage_path(self) -> str:
        """Get the storage file path."""
        return self._store.path

    async def _async_ensure_loaded(self) -> dict[str, Any]:
        """Load the key space from disk once."""
        if self._data is not None:
            return self._data

        async with self._lock:
            if self._data is None:
                const.LOGGER.debug("DEBUG: EcoEchoStore: Loading data from storage")
                try:
                    existing_data = await self._store.async_load()
                except (OSError, HomeAssistantError) as err:
                    const.LOGGER.error(
                        "ERROR: Failed to load storage from %s: %s",
                        self._store.path,
                        err,
                    )
                    raise StorageError(f"Unable to load EcoEcho storage: {err}") from err

                if existing_data is None:
                    const.LOGGER.info(
                        "INFO: No existing storage found. Initializing new data"
                    )
                    self._data = {}
                else:
                    self._data = dict(existing_data)
                    const.LOGGER.debug(
                        "DEBUG: Loaded existing data from storage: %s keys",
                        len(self._data),
                    )
        return self._data

    async def _async_save(self, data: dict[str, Any]) -> None:
        try:
            await self._store.async_save(data)
        except OSError as err:
            const.LOGGER.error(
                "ERROR: Failed to save storage due to file system error: %s. "
                "Check disk space and file permissions for %s",
                err,
                self._store.path,
            )
            raise StorageError(f"Unable to write EcoEcho storage: {err}") from err
        except (TypeError, ValueError, HomeAssistantError) as err:
            const.LOGGER.error(
                "ERROR: Failed to save storage due to non-serializable data: %s",
                err,
            )
            raise StorageError(f"Unable to serialize EcoEcho storage: {err}") from err

    async def async_get(self, key: str) -> Any | None:
        """Return a copy of the value stored under key, or None."""
        data = await self._async_ensure_loaded()
        value = data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def async_set(self, key: str, value: Any) -> None:
        """Store value under key and persist.

        On failure the in-memory cache is rolled back and StorageError raised.
        """
        data = await self._async_ensure_loaded()
        previous = data.get(key)
        data[key] = copy.deepcopy(value)
        try:
            await self._async_save(data)
        except StorageError:
            if previous is None:
                data.pop(key, None)
            else:
                data[key] = previous
            raise
        const.LOGGER.debug("DEBUG: Stored key '%s'", key)

    async def async_remove(self, key: str) -> None:
        """Delete key if present and persist."""
        data = await self._async_ensure_loaded()
        if key not in data:
            return
        previous = data.pop(key)
        try:
            await self._async_save(data)
        except StorageError:
            data[key] = previous
            raise
        const.LOGGER.debug("DEBUG: Removed key '%s'", key)

    async def async_list_keys(self) -> list[str]:
        """Return every stored key."""
        data = await self._async_ensure_loaded()
        return sorted(data)

    async def async_delete_storage(self) -> None:
        """Remove the storage file entirely (integration removal)."""
        await self._store.async_remove()
        self._data = None
        const.LOGGER.info("INFO: EcoEcho storage file removed")
