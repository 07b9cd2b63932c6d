"""
GeofenceSnapshot - immutable snapshot of geofence state shared with entities.

This is a pure data module with no HA or platform dependencies.
"""
from __future__ import annotations

import dataclasses

from .models import AuthorizationState, GeofenceAlert, Spot


@dataclasses.dataclass(frozen=True)
class GeofenceSnapshot:
    """
    Typed, copy-on-write snapshot of the geofence manager's state.

    Always replace via dataclasses.replace() - never mutate in place.
    """

    # Global "nearby spot notifications" switch
    globally_enabled: bool = True

    authorization: AuthorizationState = AuthorizationState.UNDETERMINED

    # All spots known to the spot store
    spots: list[Spot] = dataclasses.field(default_factory=list)

    # region id → display name (bookkeeping map)
    monitored: dict[str, str] = dataclasses.field(default_factory=dict)

    # Region ids the platform is actually monitoring
    active_region_ids: frozenset[str] = frozenset()

    # Spot ids that pass the eligibility filter
    eligible_spot_ids: frozenset[str] = frozenset()

    reprioritization_suggested: bool = False

    # Last in-app alert, cleared when the app becomes active again
    last_alert: GeofenceAlert | None = None
