import logging

import voluptuous as vol

from homeassistant import config_entries, core
from homeassistant.const import EVENT_HOMEASSISTANT_STOP, Platform
from homeassistant.core import Event, HomeAssistant, ServiceCall, callback
from homeassistant.exceptions import ConfigEntryNotReady, HomeAssistantError
import homeassistant.helpers.config_validation as cv
from homeassistant.helpers.start import async_at_started

from .const import (
    DOMAIN,
    SERVICE_SYNCHRONIZE,
    SERVICE_SAVE_SPOT,
    SERVICE_DELETE_SPOT,
)
from .coordinator import SweetSpotsCoordinator
from .models import Spot

PLATFORMS: list[Platform] = [Platform.BINARY_SENSOR, Platform.SENSOR, Platform.SWITCH]
_LOGGER = logging.getLogger(__name__)

ATTR_CONFIG_ENTRY_ID = "config_entry_id"

SYNCHRONIZE_SCHEMA = vol.Schema({vol.Optional(ATTR_CONFIG_ENTRY_ID): cv.string})
SAVE_SPOT_SCHEMA = vol.Schema(
    {
        vol.Optional(ATTR_CONFIG_ENTRY_ID): cv.string,
        vol.Optional("id"): cv.string,
        vol.Required("name"): vol.All(cv.string, vol.Length(min=1)),
        vol.Required("latitude"): cv.latitude,
        vol.Required("longitude"): cv.longitude,
        vol.Optional("notification_radius_meters", default=200): vol.Coerce(float),
        vol.Optional("wants_nearby_notification", default=True): cv.boolean,
        vol.Optional("address", default=""): cv.string,
    }
)
DELETE_SPOT_SCHEMA = vol.Schema(
    {
        vol.Optional(ATTR_CONFIG_ENTRY_ID): cv.string,
        vol.Required("spot_id"): cv.string,
    }
)


async def async_setup(hass: core.HomeAssistant, config: dict) -> bool:
    """Set up the integration."""
    hass.data.setdefault(DOMAIN, {})
    return True


async def async_setup_entry(
    hass: core.HomeAssistant, entry: config_entries.ConfigEntry
) -> bool:
    """Set up platform from a ConfigEntry."""
    entry_data = {**entry.data, **entry.options}

    coordinator = SweetSpotsCoordinator(hass, entry_data)
    try:
        await coordinator.async_initialize()
    except HomeAssistantError as exc:
        raise ConfigEntryNotReady(f"Could not load SweetSpots state: {exc}") from exc

    await coordinator.async_config_entry_first_refresh()
    entry.runtime_data = coordinator
    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = coordinator

    _async_track_app_lifecycle(hass, entry, coordinator)

    _async_register_services(hass)

    entry.async_on_unload(
        entry.add_update_listener(_async_update_listener)
    )

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    return True


def _async_track_app_lifecycle(
    hass: HomeAssistant, entry: config_entries.ConfigEntry, coordinator: SweetSpotsCoordinator
) -> None:
    """Home Assistant itself is the foreground app for as long as it runs."""

    @callback
    def _async_started(_hass: HomeAssistant) -> None:
        coordinator.manager.app_will_enter_foreground()
        coordinator.manager.app_did_become_active()

    @callback
    def _async_stopping(_event: Event) -> None:
        coordinator.manager.app_did_enter_background()

    entry.async_on_unload(async_at_started(hass, _async_started))
    entry.async_on_unload(hass.bus.async_listen(EVENT_HOMEASSISTANT_STOP, _async_stopping))


def _coordinators_for_call(hass: HomeAssistant, call: ServiceCall) -> list[SweetSpotsCoordinator]:
    coordinators: dict[str, SweetSpotsCoordinator] = hass.data.get(DOMAIN, {})
    entry_id = call.data.get(ATTR_CONFIG_ENTRY_ID)
    if entry_id is None:
        return list(coordinators.values())
    if entry_id not in coordinators:
        raise HomeAssistantError(f"No loaded SweetSpots entry with id {entry_id}")
    return [coordinators[entry_id]]


def _async_register_services(hass: HomeAssistant) -> None:
    if hass.services.has_service(DOMAIN, SERVICE_SYNCHRONIZE):
        return

    async def _async_synchronize(call: ServiceCall) -> None:
        for coordinator in _coordinators_for_call(hass, call):
            await coordinator.async_synchronize_now()

    async def _async_save_spot(call: ServiceCall) -> None:
        fields = {k: v for k, v in call.data.items() if k != ATTR_CONFIG_ENTRY_ID}
        spot = Spot(
            id=fields.get("id"),
            name=fields["name"],
            latitude=fields["latitude"],
            longitude=fields["longitude"],
            notification_radius_meters=fields["notification_radius_meters"],
            wants_nearby_notification=fields["wants_nearby_notification"],
            address=fields["address"],
        )
        for coordinator in _coordinators_for_call(hass, call):
            saved = await coordinator.async_save_spot(spot)
            _LOGGER.debug("Saved spot %r as %s", saved.name, saved.id)

    async def _async_delete_spot(call: ServiceCall) -> None:
        for coordinator in _coordinators_for_call(hass, call):
            if not await coordinator.async_delete_spot(call.data["spot_id"]):
                _LOGGER.warning("Spot not found: %s", call.data["spot_id"])

    hass.services.async_register(DOMAIN, SERVICE_SYNCHRONIZE, _async_synchronize, schema=SYNCHRONIZE_SCHEMA)
    hass.services.async_register(DOMAIN, SERVICE_SAVE_SPOT, _async_save_spot, schema=SAVE_SPOT_SCHEMA)
    hass.services.async_register(DOMAIN, SERVICE_DELETE_SPOT, _async_delete_spot, schema=DELETE_SPOT_SCHEMA)


async def _async_update_listener(hass: HomeAssistant, config_entry):
    """Handle config options update."""
    # Reload the integration when the options change.
    await hass.config_entries.async_reload(config_entry.entry_id)


async def async_unload_entry(
    hass: core.HomeAssistant, entry: config_entries.ConfigEntry
) -> bool:
    """Unload a config entry."""
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        coordinator: SweetSpotsCoordinator = entry.runtime_data
        await coordinator.async_shutdown()
        coordinators = hass.data.get(DOMAIN, {})
        coordinators.pop(entry.entry_id, None)
        if not coordinators:
            for service in (SERVICE_SYNCHRONIZE, SERVICE_SAVE_SPOT, SERVICE_DELETE_SPOT):
                hass.services.async_remove(DOMAIN, service)
    return unload_ok
