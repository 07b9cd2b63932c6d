"""
Home Assistant implementations of the location and notification interfaces.

HassLocationPlatform follows a person or device_tracker entity and emulates
circular region monitoring on top of its GPS position: a region "fires" when
the entity moves from outside to inside it. Location authorization is derived
from what the entity can report, capped by the level the user granted through
the integration.

HassNotificationService delivers notifications as persistent notifications
and, when configured, through a notify service.
"""
from __future__ import annotations

import logging

from homeassistant.components import persistent_notification
from homeassistant.const import ATTR_LATITUDE, ATTR_LONGITUDE, STATE_UNAVAILABLE
from homeassistant.core import HomeAssistant, State, callback, Event
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.event import async_track_state_change_event

from .const import (
    MAX_MONITORED_REGIONS,
    KEY_GRANTED_LOCATION_ACCESS,
    OPEN_SPOT_ACTION_PREFIX,
    OPEN_SPOT_ACTION_TITLE,
)
from .geofence_utils import distance_between
from .interfaces import LocationPlatform, NotificationService, RegionMonitoringError
from .models import AuthorizationState, Coordinate, MonitoredRegion
from .storage import KeyValueStore

_LOGGER = logging.getLogger(__name__)

# Grant levels in increasing order of access
_GRANT_RANK: dict[AuthorizationState, int] = {
    AuthorizationState.UNDETERMINED: 0,
    AuthorizationState.WHILE_IN_USE: 1,
    AuthorizationState.ALWAYS: 2,
}


def state_coordinate(state: State | None) -> Coordinate | None:
    """Return the GPS position of an entity state, if it has one."""
    if state is None or state.state == STATE_UNAVAILABLE:
        return None
    lat = state.attributes.get(ATTR_LATITUDE)
    lon = state.attributes.get(ATTR_LONGITUDE)
    if lat is None or lon is None:
        return None
    try:
        return Coordinate(float(lat), float(lon))
    except (TypeError, ValueError):
        return None


def entity_capability(state: State | None) -> AuthorizationState:
    """Best access the tracked entity can support on its own."""
    if state is None:
        return AuthorizationState.RESTRICTED
    if state.state == STATE_UNAVAILABLE:
        return AuthorizationState.DENIED
    if state_coordinate(state) is None:
        # Zone/router based trackers can say "home" but cannot place the user in a region
        return AuthorizationState.WHILE_IN_USE
    return AuthorizationState.ALWAYS


class HassLocationPlatform(LocationPlatform):
    """Region monitoring on top of a tracked Home Assistant entity."""

    def __init__(
        self,
        hass: HomeAssistant,
        entity_id: str,
        store: KeyValueStore,
        max_regions: int = MAX_MONITORED_REGIONS,
    ) -> None:
        self.hass = hass
        self.entity_id = entity_id
        self._store = store
        self._max_regions = max_regions
        self._regions: dict[str, MonitoredRegion] = {}
        self._inside: set[str] = set()
        self._unsub = None

        granted = store.get(KEY_GRANTED_LOCATION_ACCESS, AuthorizationState.UNDETERMINED.value)
        try:
            self._granted = AuthorizationState(granted)
        except ValueError:
            self._granted = AuthorizationState.UNDETERMINED
        self._authorization = self._evaluate(hass.states.get(entity_id))

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    async def async_start(self) -> None:
        self._unsub = async_track_state_change_event(
            self.hass, [self.entity_id], self._async_state_changed
        )

    async def async_stop(self) -> None:
        if self._unsub is not None:
            self._unsub()
            self._unsub = None

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def authorization(self) -> AuthorizationState:
        return self._authorization

    def request_when_in_use_authorization(self) -> None:
        if self._granted is AuthorizationState.UNDETERMINED:
            self._grant(AuthorizationState.WHILE_IN_USE)

    def request_always_authorization(self) -> None:
        if self._granted is AuthorizationState.WHILE_IN_USE:
            self._grant(AuthorizationState.ALWAYS)

    def _grant(self, level: AuthorizationState) -> None:
        self._granted = level
        self._store.set(KEY_GRANTED_LOCATION_ACCESS, level.value)
        self._refresh_authorization(self.hass.states.get(self.entity_id))

    def _evaluate(self, state: State | None) -> AuthorizationState:
        capability = entity_capability(state)
        if capability in (AuthorizationState.DENIED, AuthorizationState.RESTRICTED):
            return capability
        if self._granted is AuthorizationState.UNDETERMINED:
            return AuthorizationState.UNDETERMINED
        return min(self._granted, capability, key=_GRANT_RANK.__getitem__)

    def _refresh_authorization(self, state: State | None) -> None:
        new_auth = self._evaluate(state)
        if new_auth is self._authorization:
            return
        self._authorization = new_auth
        if self.delegate is not None:
            self.delegate.on_authorization_changed(new_auth)

    # ------------------------------------------------------------------
    # Regions
    # ------------------------------------------------------------------

    def monitoring_available(self) -> bool:
        return self.hass.states.get(self.entity_id) is not None

    def start_monitoring(self, region: MonitoredRegion) -> None:
        if region.identifier not in self._regions and len(self._regions) >= self._max_regions:
            raise RegionMonitoringError(region.identifier, f"limit of {self._max_regions} regions reached")
        self._regions[region.identifier] = region
        # Starting inside a region does not count as entering it
        position = state_coordinate(self.hass.states.get(self.entity_id))
        if position is not None and self._contains(region, position):
            self._inside.add(region.identifier)
        else:
            self._inside.discard(region.identifier)

    def stop_monitoring(self, region_id: str) -> None:
        self._regions.pop(region_id, None)
        self._inside.discard(region_id)

    def monitored_regions(self) -> dict[str, MonitoredRegion]:
        return dict(self._regions)

    def request_location(self) -> None:
        position = state_coordinate(self.hass.states.get(self.entity_id))
        if position is not None and self.delegate is not None:
            self.delegate.on_location_updated(position)

    @staticmethod
    def _contains(region: MonitoredRegion, position: Coordinate) -> bool:
        return distance_between(region.center, position) <= region.radius_meters

    @callback
    def _async_state_changed(self, event: Event) -> None:
        new_state: State | None = event.data.get("new_state")
        self._refresh_authorization(new_state)

        position = state_coordinate(new_state)
        if position is None or self.delegate is None:
            return
        self.delegate.on_location_updated(position)

        for region_id, region in list(self._regions.items()):
            if self._contains(region, position):
                if region_id not in self._inside:
                    self._inside.add(region_id)
                    self.delegate.on_region_entered(region_id)
            else:
                self._inside.discard(region_id)


class HassNotificationService(NotificationService):
    """Persistent notification plus optional notify.<service> push."""

    def __init__(self, hass: HomeAssistant, notify_service: str | None = None) -> None:
        self.hass = hass
        self.notify_service = notify_service or None

    async def async_request_permission(self) -> bool:
        if self.notify_service is None:
            return True
        if not self.hass.services.has_service("notify", self.notify_service):
            _LOGGER.warning("Notify service notify.%s does not exist", self.notify_service)
            return False
        return True

    def schedule(self, identifier: str, title: str, body: str, data: dict | None = None) -> None:
        persistent_notification.async_create(self.hass, body, title=title, notification_id=identifier)
        if self.notify_service is not None:
            self.hass.async_create_task(self._async_push(identifier, title, body, data or {}))

    async def _async_push(self, identifier: str, title: str, body: str, data: dict) -> None:
        push_data = {"tag": identifier, **data}
        if data.get("spot_id"):
            push_data["actions"] = [
                {"action": f"{OPEN_SPOT_ACTION_PREFIX}{data['spot_id']}", "title": OPEN_SPOT_ACTION_TITLE}
            ]
        try:
            await self.hass.services.async_call(
                "notify",
                self.notify_service,
                {"title": title, "message": body, "data": push_data},
                blocking=True,
            )
        except HomeAssistantError as exc:
            _LOGGER.error("Failed to send notification %s via notify.%s: %s", identifier, self.notify_service, exc)
