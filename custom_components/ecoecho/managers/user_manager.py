"""User Manager - Identity and anonymous-to-user data migration.

The signed-in identity is stored un-namespaced under the ``user`` key. While
nobody is signed in, every per-user blob lives in the anonymous namespace.

On login the anonymous namespace is folded into the user's namespace:
- Stats and history: summed / concatenated (disjoint real scans)
- Progress and points ledger: summed, unioned, one award per achievement
Anonymous copies are then deleted even when the merge failed, so the same
scans can never be migrated twice.

Emits:
- SIGNAL_SUFFIX_USER_CHANGED: after login and logout
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .. import const
from ..data_builders import build_identity, build_scan_history
from ..engines.statistics_engine import StatisticsEngine
from ..store import StorageError, namespaced_key
from .base_manager import BaseManager

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import EcoEchoDataCoordinator
    from ..type_defs import Identity

_MIGRATED_KEYS = (
    const.STORAGE_KEY_SCAN_HISTORY,
    const.STORAGE_KEY_USER_STATS,
    const.STORAGE_KEY_USER_PROGRESS,
    const.STORAGE_KEY_POINTS,
)


class UserManager(BaseManager):
    """Tracks the signed-in user and migrates anonymous data on login."""

    def __init__(
        self, hass: HomeAssistant, coordinator: EcoEchoDataCoordinator
    ) -> None:
        super().__init__(hass, coordinator)
        self._identity: Identity | None = None
        self._default_token: str | None = None

    async def async_setup(self) -> None:
        """Load the stored identity and apply its token to the API client."""
        self._default_token = self.api.token
        try:
            raw = await self.store.async_get(const.STORAGE_KEY_IDENTITY)
        except StorageError as err:
            const.LOGGER.warning(
                "WARNING: Unable to read stored identity, continuing anonymously: %s",
                err,
            )
            raw = None

        self._identity = build_identity(raw)
        if self._identity is not None:
            self.api.set_token(self._identity.get("token") or self._default_token)
        const.LOGGER.debug(
            "DEBUG: Loaded identity: %s", self.user_id or const.ANONYMOUS_NAMESPACE
        )

    @property
    def user_id(self) -> str | None:
        """Return the signed-in user id, or None when anonymous."""
        return self._identity["user_id"] if self._identity else None

    @property
    def token(self) -> str | None:
        """Return the signed-in user's token, if any."""
        return self._identity.get("token") if self._identity else None

    async def async_login(self, user_id: str, token: str | None = None) -> None:
        """Persist identity and migrate anonymous data into the user namespace.

        Raises:
            StorageError: The identity could not be saved
        """
        identity: Identity = {"user_id": user_id, "token": token}
        await self.store.async_set(const.STORAGE_KEY_IDENTITY, identity)
        self._identity = identity
        self.api.set_token(token or self._default_token)

        await self.async_migrate_on_login(user_id)
        const.LOGGER.info("INFO: Signed in as %s", user_id)
        self.emit(const.SIGNAL_SUFFIX_USER_CHANGED, user_id=user_id)

    async def async_logout(self) -> None:
        """Forget the identity. Per-user data stays on the device."""
        previous = self.user_id
        try:
            await self.store.async_remove(const.STORAGE_KEY_IDENTITY)
        except StorageError as err:
            const.LOGGER.warning("WARNING: Unable to remove stored identity: %s", err)
        self._identity = None
        self.api.set_token(self._default_token)

        const.LOGGER.info("INFO: Signed out %s", previous)
        self.emit(const.SIGNAL_SUFFIX_USER_CHANGED, user_id=None)

    async def async_migrate_on_login(self, user_id: str) -> bool:
        """Fold the anonymous namespace into user_id's namespace.

        Returns:
            True if anonymous data was found and merged
        """
        anon_keys = {base: namespaced_key(base, None) for base in _MIGRATED_KEYS}
        user_keys = {base: namespaced_key(base, user_id) for base in _MIGRATED_KEYS}
        migrated = False

        try:
            anon = {base: await self.store.async_get(key) for base, key in anon_keys.items()}
            if all(value is None for value in anon.values()):
                const.LOGGER.debug("DEBUG: No anonymous data to migrate")
                return False

            user = {base: await self.store.async_get(key) for base, key in user_keys.items()}
            merged = self._merge_namespaces(anon, user)
            for base, value in merged.items():
                await self.store.async_set(user_keys[base], value)
            migrated = True

            const.LOGGER.info(
                "INFO: Migrated anonymous data to user %s (%s scans)",
                user_id,
                merged[const.STORAGE_KEY_USER_STATS]["total_items_scanned"],
            )
        except StorageError as err:
            const.LOGGER.error(
                "ERROR: Failed to migrate anonymous data to user %s: %s", user_id, err
            )
        finally:
            # The anonymous reconciled cache describes the scans just handed over
            for key in (
                *anon_keys.values(),
                namespaced_key(const.STORAGE_KEY_USER_OBJECT_STATS, None),
            ):
                try:
                    await self.store.async_remove(key)
                except StorageError as err:
                    const.LOGGER.warning(
                        "WARNING: Unable to remove anonymous key %s: %s", key, err
                    )

        return migrated

    @staticmethod
    def _merge_namespaces(
        anon: dict[str, Any], user: dict[str, Any]
    ) -> dict[str, Any]:
        """Merge every migrated blob of two namespaces."""
        return {
            const.STORAGE_KEY_SCAN_HISTORY: StatisticsEngine.merge_histories(
                build_scan_history(anon[const.STORAGE_KEY_SCAN_HISTORY]),
                build_scan_history(user[const.STORAGE_KEY_SCAN_HISTORY]),
            ),
            const.STORAGE_KEY_USER_STATS: StatisticsEngine.merge_local_stats(
                anon[const.STORAGE_KEY_USER_STATS], user[const.STORAGE_KEY_USER_STATS]
            ),
            const.STORAGE_KEY_USER_PROGRESS: StatisticsEngine.merge_user_progress(
                anon[const.STORAGE_KEY_USER_PROGRESS],
                user[const.STORAGE_KEY_USER_PROGRESS],
            ),
            const.STORAGE_KEY_POINTS: StatisticsEngine.merge_points_ledgers(
                anon[const.STORAGE_KEY_POINTS], user[const.STORAGE_KEY_POINTS]
            ),
        }
