"""
Platform for per-spot geofence binary sensors.
This module adds one "monitored" sensor per saved spot, telling whether a
region is currently being watched for it, and adds sensors for spots saved
later as they appear in the coordinator's snapshot.
"""
from __future__ import annotations

from typing import Any

from homeassistant.components.binary_sensor import BinarySensorEntity
from homeassistant.core import HomeAssistant, callback
from homeassistant import config_entries
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from custom_components.sweetspots.coordinator import SweetSpotsCoordinator
from custom_components.sweetspots.models import Spot
import logging

_LOGGER = logging.getLogger(__name__)


class SpotMonitoredSensor(CoordinatorEntity[SweetSpotsCoordinator], BinarySensorEntity):
    """
    Representation of the monitoring state of a single spot.
    On when the platform is monitoring a region for the spot.
    """

    def __init__(self, coordinator: SweetSpotsCoordinator, spot: Spot) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator)
        self._spot_id = spot.id
        guid = coordinator.entry_data["guid"]
        self._attr_unique_id = f"sweetspots_{guid}_{spot.id}_monitored"
        self._attr_name = f"{spot.name} Geofence"

    def _spot(self) -> Spot | None:
        for spot in self.coordinator.data.spots:
            if spot.id == self._spot_id:
                return spot
        return None

    @property
    def available(self) -> bool:
        return super().available and self._spot() is not None

    @property
    def icon(self) -> str | None:
        """Return the icon of the sensor."""
        if self.is_on:
            return "mdi:map-marker-radius"
        return "mdi:map-marker-off"

    @property
    def device_info(self) -> DeviceInfo | None:
        """Return the device info."""
        return self.coordinator.get_device_info()

    @property
    def is_on(self) -> bool | None:
        """Return if a region is monitored for this spot."""
        return self._spot_id in self.coordinator.data.active_region_ids

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        spot = self._spot()
        data = self.coordinator.data
        attributes: dict[str, Any] = {
            "spot_id": self._spot_id,
            "eligible": self._spot_id in data.eligible_spot_ids,
        }
        if spot is not None:
            attributes["radius"] = spot.notification_radius_meters
            attributes["wants_nearby_notification"] = spot.wants_nearby_notification
        return attributes


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: config_entries.ConfigEntry,
    async_add_entities,
):
    """Add spot sensors for passed config_entry in HA."""
    _LOGGER.debug("Starting binary sensor setup for SweetSpots integration")
    coordinator: SweetSpotsCoordinator = config_entry.runtime_data
    known_ids: set[str] = set()

    @callback
    def _async_add_new_spots() -> None:
        entities = []
        for spot in coordinator.data.spots:
            if spot.id and spot.id not in known_ids:
                known_ids.add(spot.id)
                entities.append(SpotMonitoredSensor(coordinator, spot))
        if entities:
            _LOGGER.debug("Adding %d spot sensors", len(entities))
            async_add_entities(entities)

    _async_add_new_spots()
    config_entry.async_on_unload(coordinator.async_add_listener(_async_add_new_spots))
