"""
Interfaces consumed by the geofence manager.

The manager never talks to a location or notification subsystem directly;
it is handed implementations of these classes. The Home Assistant backed ones
live in hass_platform.py, tests use in-memory fakes.

A LocationPlatform reports back through the delegate passed to attach(). The
delegate (the GeofenceManager) exposes:

    on_authorization_changed(state: AuthorizationState)
    on_location_updated(coordinate: Coordinate)
    on_region_entered(region_id: str)
    on_monitoring_failed(region_id: str, error: Exception | str)

These may be called from any thread.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from .models import AuthorizationState, MonitoredRegion


class RegionMonitoringError(Exception):
    """Raised when the platform rejects starting or stopping a region."""

    def __init__(self, region_id: str, reason: str) -> None:
        self.region_id = region_id
        self.reason = reason
        super().__init__(f"Region {region_id}: {reason}")


class LocationPlatform(ABC):
    """Region-monitoring and location capability set."""

    delegate: Any = None

    def attach(self, delegate) -> None:
        """Route platform callbacks to delegate."""
        self.delegate = delegate

    @abstractmethod
    def authorization(self) -> AuthorizationState:
        """Current location authorization."""

    @abstractmethod
    def request_when_in_use_authorization(self) -> None:
        """Ask for the basic grant; the answer arrives via on_authorization_changed."""

    @abstractmethod
    def request_always_authorization(self) -> None:
        """Ask to upgrade to the background grant; the answer arrives via on_authorization_changed."""

    @abstractmethod
    def monitoring_available(self) -> bool:
        """Whether circular region monitoring is supported at all."""

    @abstractmethod
    def start_monitoring(self, region: MonitoredRegion) -> None:
        """Start monitoring region. Raises RegionMonitoringError on rejection."""

    @abstractmethod
    def stop_monitoring(self, region_id: str) -> None:
        """Stop monitoring the region with this identifier, if any."""

    @abstractmethod
    def monitored_regions(self) -> dict[str, MonitoredRegion]:
        """Regions the platform is actually monitoring, by identifier."""

    @abstractmethod
    def request_location(self) -> None:
        """Ask for a one-off location fix; delivered via on_location_updated."""

    def active_region_ids(self) -> set[str]:
        return set(self.monitored_regions())


class NotificationService(ABC):
    """Local notification delivery."""

    @abstractmethod
    async def async_request_permission(self) -> bool:
        """Ask for (or confirm) permission to deliver notifications."""

    @abstractmethod
    def schedule(self, identifier: str, title: str, body: str, data: dict | None = None) -> None:
        """
        Deliver a notification.

        Scheduling again with the same identifier replaces the pending one.
        """
