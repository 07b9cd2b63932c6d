"""
Low-level utility functions for the geofence manager.

Responsibilities:
- Measure great-circle distance between two coordinates.
- Select the spots that are eligible for region monitoring.
- Rank and truncate candidates to the platform's monitoring ceiling.

No platform state is touched here; these functions are pure data primitives.
"""
from __future__ import annotations

import logging
import math
from typing import Iterable

from homeassistant.util.location import distance as _ha_distance

from .const import MAX_MONITORED_REGIONS, MIN_REGION_RADIUS, MAX_REGION_RADIUS
from .models import Coordinate, MonitorableSpot, Spot

_LOGGER = logging.getLogger(__name__)


def distance_between(a: Coordinate, b: Coordinate) -> float:
    """
    Return the distance in metres between two coordinates.

    Home Assistant's distance helper returns None when the iteration does not
    converge (near-antipodal points); those are treated as infinitely far.
    """
    meters = _ha_distance(a.latitude, a.longitude, b.latitude, b.longitude)
    if meters is None:
        return math.inf
    return meters


def is_valid_radius(radius: float) -> bool:
    return MIN_REGION_RADIUS <= radius <= MAX_REGION_RADIUS


def is_eligible(spot: Spot) -> bool:
    """Check whether a spot may be monitored."""
    return bool(spot.id) and spot.wants_nearby_notification and is_valid_radius(spot.notification_radius_meters)


def filter_eligible(spots: Iterable[Spot]) -> list[MonitorableSpot]:
    """Drop spots without a stable id, opted out, or with an out-of-bounds radius."""
    eligible = []
    for spot in spots:
        if not is_eligible(spot):
            _LOGGER.debug("Spot %r (%s) is not eligible for monitoring", spot.name, spot.id)
            continue
        eligible.append(MonitorableSpot.from_spot(spot))
    return eligible


def prioritize(
    candidates: list[MonitorableSpot],
    user_location: Coordinate | None,
    max_count: int = MAX_MONITORED_REGIONS,
) -> list[MonitorableSpot]:
    """
    Return at most max_count candidates.

    Under budget the input order is kept so reconciliation sees no churn.
    Over budget the nearest spots to user_location win; without a location the
    first max_count in the existing order are taken.
    """
    if len(candidates) <= max_count:
        return list(candidates)

    if user_location is None:
        _LOGGER.debug(
            "%d candidates exceed the ceiling of %d and no location is known, keeping input order",
            len(candidates), max_count,
        )
        return list(candidates[:max_count])

    # sorted() is stable, so equidistant spots keep their relative order
    ranked = sorted(candidates, key=lambda spot: distance_between(user_location, spot.coordinate))
    return ranked[:max_count]
