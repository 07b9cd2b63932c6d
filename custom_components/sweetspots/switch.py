"""
Platform for the nearby-spot notification switch.
This module exposes the global on/off toggle for geofencing. Turning it on
asks for the location and notification grants geofencing needs; if they are
not granted the switch falls back to off.
"""
from __future__ import annotations

from homeassistant.components.switch import SwitchEntity, SwitchDeviceClass
from homeassistant.core import HomeAssistant
from homeassistant import config_entries
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from custom_components.sweetspots.coordinator import SweetSpotsCoordinator
import logging

_LOGGER = logging.getLogger(__name__)


class SweetSpotsGeofencingSwitch(CoordinatorEntity[SweetSpotsCoordinator], SwitchEntity):
    """
    Representation of the global "Nearby spot notifications" switch.
    Reads its state from the coordinator's GeofenceSnapshot.
    """

    def __init__(self, coordinator: SweetSpotsCoordinator) -> None:
        """Initialize the switch."""
        super().__init__(coordinator)
        guid = coordinator.entry_data["guid"]
        self._attr_unique_id = f"sweetspots_{guid}_geofencing_switch"
        self._attr_name = f"{coordinator.entry_data.get('entry_name', 'SweetSpots')} Nearby Spot Notifications"
        self._attr_icon = "mdi:map-marker-radius"

    @property
    def device_info(self) -> DeviceInfo | None:
        """Return the device info."""
        return self.coordinator.get_device_info()

    @property
    def device_class(self) -> SwitchDeviceClass | str | None:
        return SwitchDeviceClass.SWITCH

    @property
    def is_on(self) -> bool:
        """Return true if geofencing is globally enabled."""
        return self.coordinator.data.globally_enabled

    async def async_turn_on(self, **kwargs) -> None:
        """Turn the switch on."""
        granted = await self.coordinator.async_enable_geofencing()
        if not granted:
            _LOGGER.warning("Geofencing could not be enabled, location or notification access missing")
        self.async_write_ha_state()

    async def async_turn_off(self, **kwargs) -> None:
        """Turn the switch off."""
        await self.coordinator.async_disable_geofencing()
        self.async_write_ha_state()


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: config_entries.ConfigEntry,
    async_add_entities,
):
    """Add the geofencing switch for passed config_entry in HA."""
    _LOGGER.debug("Starting switch setup for SweetSpots integration")
    coordinator: SweetSpotsCoordinator = config_entry.runtime_data
    async_add_entities([SweetSpotsGeofencingSwitch(coordinator)])
