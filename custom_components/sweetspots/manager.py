"""
GeofenceManager - keeps the platform's monitored regions in line with the
user's spots.

Responsibilities:
- Gate all monitoring on the ALWAYS location grant (PermissionGate).
- Pick the eligible spots and, above the platform ceiling, the nearest ones
  (geofence_utils).
- Reconcile the desired regions against the platform's active regions with
  the smallest set of start/stop calls, keeping the id → name bookkeeping map
  in step with what the platform actually accepted.
- Turn region-entry callbacks into throttled notifications (NotificationThrottle).
- React to app lifecycle transitions, authorization changes and location fixes.

Platform callbacks may arrive on any thread; every on_* entry point posts to
a CallbackMailbox so state is only ever touched from the owning loop.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Iterable

from .const import (
    MAX_MONITORED_REGIONS,
    NOTIFICATION_COOLDOWN,
    SIGNIFICANT_LOCATION_CHANGE,
    PERMISSION_UPGRADE_TIMEOUT,
    KEY_MONITORED_SPOT_DETAILS,
    NOTIFICATION_TITLE,
    NOTIFICATION_BODY,
    ALERT_TITLE,
    ALERT_BODY,
    NOTIFICATION_ID_PREFIX,
)
from .geofence_utils import distance_between, filter_eligible, is_eligible, prioritize
from .interfaces import LocationPlatform, NotificationService, RegionMonitoringError
from .mailbox import CallbackMailbox
from .models import (
    AppState,
    AuthorizationState,
    Coordinate,
    GeofenceAlert,
    MonitorableSpot,
    Spot,
)
from .permissions import PermissionGate
from .storage import KeyValueStore
from .throttle import NotificationThrottle

_LOGGER = logging.getLogger(__name__)


class GeofenceManager:
    """Geofence lifecycle manager for a single user."""

    def __init__(
        self,
        platform: LocationPlatform,
        notifier: NotificationService,
        store: KeyValueStore,
        *,
        max_regions: int = MAX_MONITORED_REGIONS,
        cooldown: float = NOTIFICATION_COOLDOWN,
        significant_change: float = SIGNIFICANT_LOCATION_CHANGE,
        permission_timeout: float = PERMISSION_UPGRADE_TIMEOUT,
        clock: Callable[[], float] = time.time,
        app_state: AppState = AppState.ACTIVE,
    ) -> None:
        self._platform = platform
        self._notifier = notifier
        self._store = store
        self._max_regions = max_regions
        self._significant_change = significant_change
        self._permission_timeout = permission_timeout

        self.permissions = PermissionGate(platform, on_regression=self.stop_all_geofences)
        self.throttle = NotificationThrottle(store, cooldown, clock)
        self._mailbox = CallbackMailbox()

        # region id → display name, as far as we know it is monitored
        self._monitored_spot_details: dict[str, str] = dict(store.get(KEY_MONITORED_SPOT_DETAILS) or {})

        self.user_location: Coordinate | None = None
        self.app_state: AppState = app_state
        self.geofence_alert: GeofenceAlert | None = None
        # Advisory only: set when the user moved far from where spots were last ranked
        self.reprioritization_suggested: bool = False
        self._last_prioritization_location: Coordinate | None = None

        self._synchronizing = False
        self._listeners: list[Callable[[], None]] = []
        self._alert_listeners: list[Callable[[GeofenceAlert], None]] = []
        self._navigation_listeners: list[Callable[[str], None]] = []

        platform.attach(self)

    # ------------------------------------------------------------------
    # Lifecycle of the manager itself
    # ------------------------------------------------------------------

    async def async_start(self) -> None:
        """Start the callback mailbox; must run on the owning loop."""
        await self._mailbox.async_start()

    async def async_drain(self) -> None:
        """Wait until every platform callback received so far has been handled."""
        await self._mailbox.async_join()

    async def async_shutdown(self) -> None:
        await self._mailbox.async_shutdown()
        self._listeners.clear()
        self._alert_listeners.clear()
        self._navigation_listeners.clear()

    # ------------------------------------------------------------------
    # Read model
    # ------------------------------------------------------------------

    @property
    def authorization(self) -> AuthorizationState:
        return self.permissions.authorization

    @property
    def monitored_spot_details(self) -> dict[str, str]:
        return dict(self._monitored_spot_details)

    @property
    def active_region_ids(self) -> set[str]:
        return self._platform.active_region_ids()

    @property
    def is_synchronizing(self) -> bool:
        return self._synchronizing

    def is_spot_monitored(self, spot_id: str) -> bool:
        return spot_id in self._platform.active_region_ids()

    @staticmethod
    def is_spot_eligible(spot: Spot) -> bool:
        return is_eligible(spot)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def async_add_listener(self, update_callback: Callable[[], None]) -> Callable[[], None]:
        """Call update_callback whenever the monitored set or authorization changes."""
        self._listeners.append(update_callback)

        def remove_listener() -> None:
            if update_callback in self._listeners:
                self._listeners.remove(update_callback)

        return remove_listener

    def async_add_alert_listener(self, alert_callback: Callable[[GeofenceAlert], None]) -> Callable[[], None]:
        """Receive in-app alerts for regions entered while the app is active."""
        self._alert_listeners.append(alert_callback)

        def remove_listener() -> None:
            if alert_callback in self._alert_listeners:
                self._alert_listeners.remove(alert_callback)

        return remove_listener

    def async_add_navigation_listener(self, navigate_callback: Callable[[str], None]) -> Callable[[], None]:
        """Receive the spot id whenever the user asks to open a spot from a notification."""
        self._navigation_listeners.append(navigate_callback)

        def remove_listener() -> None:
            if navigate_callback in self._navigation_listeners:
                self._navigation_listeners.remove(navigate_callback)

        return remove_listener

    def _notify_listeners(self) -> None:
        for update_callback in list(self._listeners):
            try:
                update_callback()
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Error in geofence state listener")

    def _publish_alert(self, alert: GeofenceAlert) -> None:
        for alert_callback in list(self._alert_listeners):
            try:
                alert_callback(alert)
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Error in geofence alert listener")

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def synchronize(
        self,
        spots: Iterable[Spot],
        globally_enabled: bool,
        authorization: AuthorizationState | None = None,
        user_location: Coordinate | None = None,
    ) -> bool:
        """
        Bring the platform's regions in line with spots.

        Returns False when the call was dropped because another
        synchronization is already running. Never raises for platform
        rejections; those leave fewer regions monitored than desired.
        """
        if self._synchronizing:
            _LOGGER.debug("Synchronization already in progress, skipping")
            return False

        self._synchronizing = True
        try:
            self._synchronize(
                list(spots),
                globally_enabled,
                authorization if authorization is not None else self.permissions.authorization,
                user_location if user_location is not None else self.user_location,
            )
        finally:
            self._synchronizing = False
        self._notify_listeners()
        return True

    def _synchronize(
        self,
        spots: list[Spot],
        globally_enabled: bool,
        authorization: AuthorizationState,
        user_location: Coordinate | None,
    ) -> None:
        _LOGGER.debug("Synchronizing geofences, enabled=%s, %d spots", globally_enabled, len(spots))

        if not globally_enabled:
            _LOGGER.debug("Geofencing disabled, stopping all geofences")
            self.stop_all_geofences()
            return

        if authorization is not AuthorizationState.ALWAYS:
            _LOGGER.debug("'Always' location access required for geofencing, have %s", authorization.value)
            if self._platform.active_region_ids():
                self.stop_all_geofences()
            return

        desired = self._desired_spots(filter_eligible(spots), user_location)
        desired_ids = {spot.id for spot in desired}
        current = self._platform.monitored_regions()

        for spot in desired:
            region = spot.to_region()
            if current.get(spot.id) == region:
                self._remember(spot.id, spot.display_name)
                continue
            if spot.id in current:
                self._stop_region(spot.id)
            self._start_region(spot)

        for region_id in set(current) - desired_ids:
            self._stop_region(region_id)

        # Entries whose region is neither wanted nor running (e.g. stale from a previous run)
        stale = set(self._monitored_spot_details) - desired_ids - self._platform.active_region_ids()
        if stale:
            for region_id in stale:
                del self._monitored_spot_details[region_id]
            self._save_details()

        _LOGGER.debug(
            "Geofence sync complete. Active: %d, Desired: %d",
            len(self._platform.active_region_ids()), len(desired_ids),
        )

    def _desired_spots(
        self, candidates: list[MonitorableSpot], user_location: Coordinate | None
    ) -> list[MonitorableSpot]:
        desired = prioritize(candidates, user_location, self._max_regions)
        if len(candidates) > self._max_regions and user_location is not None:
            self._last_prioritization_location = user_location
            self.reprioritization_suggested = False
            _LOGGER.debug("Prioritized %d spots by distance from the user", len(candidates))
        return desired

    def _start_region(self, spot: MonitorableSpot) -> None:
        if not self._platform.monitoring_available():
            _LOGGER.warning("Region monitoring is not available, cannot monitor %r", spot.display_name)
            return
        try:
            self._platform.start_monitoring(spot.to_region())
        except RegionMonitoringError as exc:
            _LOGGER.warning("Failed to start geofence for %r: %s", spot.display_name, exc)
            return
        self._remember(spot.id, spot.display_name)

    def _stop_region(self, region_id: str) -> None:
        try:
            self._platform.stop_monitoring(region_id)
        except RegionMonitoringError as exc:
            _LOGGER.warning("Failed to stop geofence %s: %s", region_id, exc)
            return
        self._forget(region_id)

    def stop_all_geofences(self) -> None:
        """
        Stop every monitored region and clear the bookkeeping map. The ledger is kept.

        Regions the platform refused to stop are still running, so their
        names stay in the map.
        """
        active = self._platform.active_region_ids()
        if not active and not self._monitored_spot_details:
            return

        failed: set[str] = set()
        for region_id in active:
            try:
                self._platform.stop_monitoring(region_id)
            except RegionMonitoringError as exc:
                _LOGGER.warning("Failed to stop geofence %s: %s", region_id, exc)
                failed.add(region_id)

        kept = {k: v for k, v in self._monitored_spot_details.items() if k in failed}
        if kept != self._monitored_spot_details:
            self._monitored_spot_details = kept
            self._save_details()

        _LOGGER.info("All geofences stopped")
        if not self._synchronizing:
            self._notify_listeners()

    def _remember(self, region_id: str, name: str) -> None:
        if self._monitored_spot_details.get(region_id) != name:
            self._monitored_spot_details[region_id] = name
            self._save_details()

    def _forget(self, region_id: str) -> None:
        if self._monitored_spot_details.pop(region_id, None) is not None:
            self._save_details()

    def _save_details(self) -> None:
        self._store.set(KEY_MONITORED_SPOT_DETAILS, self._monitored_spot_details)

    async def async_setup_with_permissions(self, spots: Iterable[Spot], globally_enabled: bool) -> bool:
        """
        Obtain the grants geofencing needs, then synchronize.

        Returns True only if monitoring could be set up. A False return means
        the caller's "enabled" toggle should go back off until the user acts
        again; nothing is retried automatically.
        """
        spots = list(spots)
        if not globally_enabled:
            _LOGGER.debug("Geofencing disabled globally")
            self.stop_all_geofences()
            return False

        if not self.permissions.is_always:
            _LOGGER.info("Requesting 'always' location access for geofencing")
            state = await self.permissions.async_request_upgrade_and_wait(True, self._permission_timeout)
            if state is not AuthorizationState.ALWAYS:
                _LOGGER.warning("'Always' location access required for geofencing, have %s", state.value)
                return False

        if not await self._notifier.async_request_permission():
            _LOGGER.warning("Notification permission required for geofencing alerts")
            return False

        self.synchronize(spots, True)
        return True

    # ------------------------------------------------------------------
    # App lifecycle (called from the owning loop)
    # ------------------------------------------------------------------

    def app_will_enter_foreground(self) -> None:
        self.app_state = AppState.INACTIVE
        self.throttle.prune()
        self.geofence_alert = None
        self._request_fresh_location()

    def app_did_become_active(self) -> None:
        self.app_state = AppState.ACTIVE
        self.throttle.prune()
        self.geofence_alert = None
        self._request_fresh_location()

    def app_did_enter_background(self) -> None:
        self.app_state = AppState.BACKGROUND
        _LOGGER.debug("App entered background, geofences remain active")

    def geofence_notification_tapped(self, spot_id: str) -> None:
        if not spot_id:
            return
        _LOGGER.debug("Geofence notification tapped for spot %s", spot_id)
        for navigate_callback in list(self._navigation_listeners):
            try:
                navigate_callback(spot_id)
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Error in geofence navigation listener")

    def _request_fresh_location(self) -> None:
        if self.permissions.authorization.allows_location:
            self._platform.request_location()

    # ------------------------------------------------------------------
    # Platform delegate (any thread)
    # ------------------------------------------------------------------

    def on_authorization_changed(self, state: AuthorizationState) -> None:
        self._mailbox.post(self._handle_authorization_changed, state)

    def on_location_updated(self, coordinate: Coordinate) -> None:
        self._mailbox.post(self._handle_location_updated, coordinate)

    def on_region_entered(self, region_id: str) -> None:
        self._mailbox.post(self._handle_region_entered, region_id)

    def on_monitoring_failed(self, region_id: str, error) -> None:
        self._mailbox.post(self._handle_monitoring_failed, region_id, error)

    # ------------------------------------------------------------------
    # Handlers (owning loop only)
    # ------------------------------------------------------------------

    def _handle_authorization_changed(self, state: AuthorizationState) -> None:
        changed = state is not self.permissions.authorization
        self.permissions.update(state)
        if changed:
            self._notify_listeners()

    def _handle_location_updated(self, coordinate: Coordinate) -> None:
        self.user_location = coordinate
        if self._last_prioritization_location is None:
            return
        moved = distance_between(self._last_prioritization_location, coordinate)
        if moved > self._significant_change and not self.reprioritization_suggested:
            _LOGGER.debug("User moved %.0fm since spots were last prioritized", moved)
            self.reprioritization_suggested = True
            self._notify_listeners()

    def _handle_region_entered(self, region_id: str) -> None:
        _LOGGER.debug("Entered region %s", region_id)
        spot_name = self._monitored_spot_details.get(region_id)
        if spot_name is None:
            _LOGGER.warning("No spot name found for region %s, dropping entry event", region_id)
            return

        if not self.throttle.should_fire(region_id):
            _LOGGER.debug("Skipping notification for %r, within cooldown period", spot_name)
            return

        self.throttle.record_fired(region_id)
        self._notifier.schedule(
            f"{NOTIFICATION_ID_PREFIX}{region_id}",
            NOTIFICATION_TITLE,
            NOTIFICATION_BODY.format(name=spot_name),
            {"spot_id": region_id, "geofence_event": "entered"},
        )

        if self.app_state is AppState.ACTIVE:
            self.geofence_alert = GeofenceAlert(
                spot_id=region_id,
                title=ALERT_TITLE,
                body=ALERT_BODY.format(name=spot_name),
            )
            self._publish_alert(self.geofence_alert)

    def _handle_monitoring_failed(self, region_id: str, error) -> None:
        _LOGGER.warning("Geofence monitoring failed for region %s: %s", region_id, error)
        self._forget(region_id)
        self._notify_listeners()
