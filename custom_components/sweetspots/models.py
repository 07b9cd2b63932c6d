"""
Domain models for the SweetSpots integration.

This module contains pure data classes representing spots, regions and
authorization state. These classes have no dependencies on Home Assistant
internals or on the region-monitoring platform.
"""
from __future__ import annotations

import dataclasses
from enum import Enum


class AuthorizationState(str, Enum):
    """Location authorization as reported by the platform."""

    UNDETERMINED = "undetermined"
    DENIED = "denied"
    RESTRICTED = "restricted"
    WHILE_IN_USE = "while_in_use"
    ALWAYS = "always"

    @property
    def allows_location(self) -> bool:
        """True when the platform will hand out location fixes at all."""
        return self in (AuthorizationState.WHILE_IN_USE, AuthorizationState.ALWAYS)


class AppState(str, Enum):
    """Foreground state of the host application."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    BACKGROUND = "background"


@dataclasses.dataclass(frozen=True)
class Coordinate:
    """A WGS84 position in decimal degrees."""

    latitude: float
    longitude: float


@dataclasses.dataclass(frozen=True)
class Spot:
    """Representation of a single saved spot as delivered by the spot store."""

    id: str | None
    name: str
    latitude: float
    longitude: float
    notification_radius_meters: float = 200.0
    wants_nearby_notification: bool = False
    address: str = ""

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Spot":
        return cls(
            id=data.get("id"),
            name=data.get("name", ""),
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            notification_radius_meters=float(data.get("notification_radius_meters", 200.0)),
            wants_nearby_notification=bool(data.get("wants_nearby_notification", False)),
            address=data.get("address", ""),
        )


@dataclasses.dataclass(frozen=True)
class MonitorableSpot:
    """A spot that passed the eligibility filter and may get a region."""

    id: str
    coordinate: Coordinate
    radius_meters: float
    wants_notification: bool
    display_name: str

    @classmethod
    def from_spot(cls, spot: Spot) -> "MonitorableSpot":
        return cls(
            id=spot.id,
            coordinate=spot.coordinate,
            radius_meters=spot.notification_radius_meters,
            wants_notification=spot.wants_nearby_notification,
            display_name=spot.name,
        )

    def to_region(self) -> "MonitoredRegion":
        return MonitoredRegion(self.id, self.coordinate, self.radius_meters)


@dataclasses.dataclass(frozen=True)
class MonitoredRegion:
    """
    Circular region parameters handed to the platform.

    Regions are immutable once started; two equal regions need no restart.
    """

    identifier: str
    center: Coordinate
    radius_meters: float


@dataclasses.dataclass(frozen=True)
class GeofenceAlert:
    """In-app alert raised when a region is entered while the app is active."""

    spot_id: str
    title: str
    body: str
