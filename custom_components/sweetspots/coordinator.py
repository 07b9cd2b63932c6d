"""
DataUpdateCoordinator for the SweetSpots integration.

Responsibilities:
- Own the persisted state store, the spot store, the location and
  notification adapters and the single GeofenceManager for the lifetime of a
  config entry.
- Re-synchronize geofences every SYNC_INTERVAL seconds and on demand.
- Turn manager state changes into GeofenceSnapshot pushes for entities and
  in-app alerts and notification "open spot" taps into bus events.
"""
from __future__ import annotations

import logging
from datetime import timedelta

from homeassistant.core import Event, HomeAssistant, callback
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator

from .const import (
    DOMAIN,
    VERSION,
    SYNC_INTERVAL,
    DEFAULT_COOLDOWN_MINUTES,
    CONF_TRACKED_ENTITY,
    CONF_NOTIFY_SERVICE,
    CONF_COOLDOWN_MINUTES,
    KEY_GEOFENCING_ENABLED,
    EVENT_NEARBY_SPOT,
    EVENT_OPEN_SPOT,
    EVENT_MOBILE_APP_NOTIFICATION_ACTION,
    OPEN_SPOT_ACTION_PREFIX,
)
from .coordinator_data import GeofenceSnapshot
from .hass_platform import HassLocationPlatform, HassNotificationService
from .manager import GeofenceManager
from .models import GeofenceAlert, Spot
from .spot_store import SpotStore
from .storage import HassKeyValueStore

_LOGGER = logging.getLogger(__name__)


class SweetSpotsCoordinator(DataUpdateCoordinator[GeofenceSnapshot]):
    """
    Coordinator for the SweetSpots integration.

    The manager is created in async_initialize() once persisted state has been
    loaded; until then the snapshot is empty.
    """

    def __init__(self, hass: HomeAssistant, entry_data: dict) -> None:
        """Initialize the coordinator from config-entry data."""
        super().__init__(
            hass,
            _LOGGER,
            name=DOMAIN,
            update_interval=timedelta(seconds=SYNC_INTERVAL),
        )
        self._entry_data = entry_data
        guid = entry_data["guid"]

        self.state_store = HassKeyValueStore(hass, f"{DOMAIN}.{guid}.state")
        self.spot_store = SpotStore(hass, f"{DOMAIN}.{guid}.spots")
        self.notifier = HassNotificationService(hass, entry_data.get(CONF_NOTIFY_SERVICE))
        self.location_platform: HassLocationPlatform | None = None
        self.manager: GeofenceManager | None = None

        self._unsub_manager: list = []
        self._in_refresh = False

        self.data = GeofenceSnapshot()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    async def async_initialize(self) -> None:
        """Load persisted state and start the manager."""
        await self.state_store.async_load()
        await self.spot_store.async_load()

        self.location_platform = HassLocationPlatform(
            self.hass, self._entry_data[CONF_TRACKED_ENTITY], self.state_store
        )
        cooldown_minutes = self._entry_data.get(CONF_COOLDOWN_MINUTES, DEFAULT_COOLDOWN_MINUTES)
        self.manager = GeofenceManager(
            self.location_platform,
            self.notifier,
            self.state_store,
            cooldown=cooldown_minutes * 60,
        )
        await self.manager.async_start()
        await self.location_platform.async_start()

        self._unsub_manager = [
            self.manager.async_add_listener(self._handle_manager_update),
            self.manager.async_add_alert_listener(self._handle_geofence_alert),
            self.manager.async_add_navigation_listener(self._handle_open_spot),
            self.hass.bus.async_listen(EVENT_MOBILE_APP_NOTIFICATION_ACTION, self._handle_notification_action),
        ]
        self.data = self._build_snapshot()

    # ------------------------------------------------------------------
    # HA entry point
    # ------------------------------------------------------------------

    async def _async_update_data(self) -> GeofenceSnapshot:
        """Periodic re-synchronization; never fails, keeps what could be set up."""
        self._in_refresh = True
        try:
            self._synchronize()
        finally:
            self._in_refresh = False
        return self._build_snapshot()

    # ------------------------------------------------------------------
    # Public operations (entities and services)
    # ------------------------------------------------------------------

    @property
    def globally_enabled(self) -> bool:
        return bool(self.state_store.get(KEY_GEOFENCING_ENABLED, True))

    async def async_synchronize_now(self) -> None:
        """Manual synchronization trigger."""
        self._in_refresh = True
        try:
            self._synchronize()
        finally:
            self._in_refresh = False
        self.async_set_updated_data(self._build_snapshot())

    async def async_enable_geofencing(self) -> bool:
        """
        Turn on nearby-spot notifications.

        Returns False when the required grants are missing; the switch then
        stays off until the user tries again.
        """
        if self.manager is None:
            return False
        granted = await self.manager.async_setup_with_permissions(self.spot_store.spots, True)
        if granted:
            self.state_store.set(KEY_GEOFENCING_ENABLED, True)
        else:
            self.state_store.set(KEY_GEOFENCING_ENABLED, False)
            if self.manager.permissions.show_permission_alert:
                _LOGGER.warning(
                    "Location access for %s is denied; fix the tracker before enabling geofencing",
                    self._entry_data[CONF_TRACKED_ENTITY],
                )
        self.async_set_updated_data(self._build_snapshot())
        return granted

    async def async_disable_geofencing(self) -> None:
        self.state_store.set(KEY_GEOFENCING_ENABLED, False)
        await self.async_synchronize_now()

    async def async_save_spot(self, spot: Spot) -> Spot:
        saved = await self.spot_store.async_save_spot(spot)
        await self.async_synchronize_now()
        return saved

    async def async_delete_spot(self, spot_id: str) -> bool:
        deleted = await self.spot_store.async_delete_spot(spot_id)
        if deleted:
            await self.async_synchronize_now()
        return deleted

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _synchronize(self) -> None:
        if self.manager is None:
            return
        try:
            self.manager.synchronize(self.spot_store.spots, self.globally_enabled)
        except Exception:  # noqa: BLE001
            _LOGGER.exception("Geofence synchronization failed")

    def _build_snapshot(self) -> GeofenceSnapshot:
        spots = self.spot_store.spots
        if self.manager is None:
            return GeofenceSnapshot(globally_enabled=self.globally_enabled, spots=spots)
        return GeofenceSnapshot(
            globally_enabled=self.globally_enabled,
            authorization=self.manager.authorization,
            spots=spots,
            monitored=self.manager.monitored_spot_details,
            active_region_ids=frozenset(self.manager.active_region_ids),
            eligible_spot_ids=frozenset(s.id for s in spots if self.manager.is_spot_eligible(s)),
            reprioritization_suggested=self.manager.reprioritization_suggested,
            last_alert=self.manager.geofence_alert,
        )

    @callback
    def _handle_manager_update(self) -> None:
        if self._in_refresh:
            return
        self.async_set_updated_data(self._build_snapshot())

    @callback
    def _handle_geofence_alert(self, alert: GeofenceAlert) -> None:
        self.hass.bus.async_fire(
            EVENT_NEARBY_SPOT,
            {"spot_id": alert.spot_id, "title": alert.title, "body": alert.body},
        )
        self.async_set_updated_data(self._build_snapshot())

    @callback
    def _handle_notification_action(self, event: Event) -> None:
        action = event.data.get("action") or ""
        if self.manager is None or not action.startswith(OPEN_SPOT_ACTION_PREFIX):
            return
        spot_id = action[len(OPEN_SPOT_ACTION_PREFIX):]
        # Every loaded entry hears the event; only the owner of the spot reacts
        if self.spot_store.get_spot(spot_id) is None:
            return
        self.manager.geofence_notification_tapped(spot_id)

    @callback
    def _handle_open_spot(self, spot_id: str) -> None:
        self.hass.bus.async_fire(EVENT_OPEN_SPOT, {"spot_id": spot_id, "source": "geofence_notification"})

    # ------------------------------------------------------------------
    # Entity helper - device info dict
    # ------------------------------------------------------------------

    def get_device_info(self) -> dict:
        """Return the HA DeviceInfo dict shared by all entities of this entry."""
        return {
            "identifiers": {(DOMAIN, self._entry_data["guid"])},
            "name": self._entry_data.get("entry_name", "SweetSpots"),
            "manufacturer": "SweetSpots",
            "model": "Geofence manager",
            "sw_version": VERSION,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def async_shutdown(self) -> None:
        """Clean up all resources owned by this coordinator."""
        for unsub in self._unsub_manager:
            unsub()
        self._unsub_manager = []
        if self.location_platform is not None:
            await self.location_platform.async_stop()
        if self.manager is not None:
            await self.manager.async_shutdown()

    @property
    def entry_data(self):
        return self._entry_data
