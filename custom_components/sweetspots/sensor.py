"""
Platform for SweetSpots summary sensors.
This module exposes how many geofences are active and which location access
the integration currently has.
"""
from __future__ import annotations

from typing import Any

from homeassistant.components.sensor import SensorEntity, SensorDeviceClass, SensorStateClass
from homeassistant.core import HomeAssistant
from homeassistant import config_entries
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from custom_components.sweetspots.const import MAX_MONITORED_REGIONS
from custom_components.sweetspots.coordinator import SweetSpotsCoordinator
from custom_components.sweetspots.models import AuthorizationState
import logging

_LOGGER = logging.getLogger(__name__)


class ActiveGeofencesSensor(CoordinatorEntity[SweetSpotsCoordinator], SensorEntity):
    """Number of regions currently monitored."""

    def __init__(self, coordinator: SweetSpotsCoordinator) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator)
        guid = coordinator.entry_data["guid"]
        self._attr_unique_id = f"sweetspots_{guid}_active_geofences"
        self._attr_name = f"{coordinator.entry_data.get('entry_name', 'SweetSpots')} Active Geofences"
        self._attr_icon = "mdi:map-marker-multiple"

    @property
    def device_info(self) -> DeviceInfo | None:
        """Return the device info."""
        return self.coordinator.get_device_info()

    @property
    def state_class(self) -> SensorStateClass | str | None:
        return SensorStateClass.MEASUREMENT

    @property
    def native_value(self) -> int:
        return len(self.coordinator.data.active_region_ids)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        data = self.coordinator.data
        return {
            "limit": MAX_MONITORED_REGIONS,
            "eligible_spots": len(data.eligible_spot_ids),
            "monitored_spots": sorted(data.monitored.values()),
            "reprioritization_suggested": data.reprioritization_suggested,
        }


class LocationAccessSensor(CoordinatorEntity[SweetSpotsCoordinator], SensorEntity):
    """Location authorization the geofence manager is working with."""

    def __init__(self, coordinator: SweetSpotsCoordinator) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator)
        guid = coordinator.entry_data["guid"]
        self._attr_unique_id = f"sweetspots_{guid}_location_access"
        self._attr_name = f"{coordinator.entry_data.get('entry_name', 'SweetSpots')} Location Access"
        self._attr_options = [state.value for state in AuthorizationState]

    @property
    def device_info(self) -> DeviceInfo | None:
        """Return the device info."""
        return self.coordinator.get_device_info()

    @property
    def device_class(self) -> SensorDeviceClass | str | None:
        return SensorDeviceClass.ENUM

    @property
    def native_value(self) -> str:
        return self.coordinator.data.authorization.value

    @property
    def icon(self) -> str | None:
        """Set the icon based on the access level."""
        authorization = self.coordinator.data.authorization
        if authorization is AuthorizationState.ALWAYS:
            return "mdi:crosshairs-gps"
        elif authorization is AuthorizationState.WHILE_IN_USE:
            return "mdi:crosshairs"
        else:
            return "mdi:crosshairs-off"


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: config_entries.ConfigEntry,
    async_add_entities,
):
    """Add sensors for passed config_entry in HA."""
    _LOGGER.debug("Starting sensor setup for SweetSpots integration")
    coordinator: SweetSpotsCoordinator = config_entry.runtime_data
    async_add_entities([ActiveGeofencesSensor(coordinator), LocationAccessSensor(coordinator)])
