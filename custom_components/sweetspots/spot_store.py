"""
SpotStore - the user's saved spots, persisted in Home Assistant storage.

The geofence manager only pulls snapshots from here; it never writes spots.
"""
from __future__ import annotations

import logging
import uuid

from homeassistant.core import HomeAssistant
from homeassistant.helpers.storage import Store

from .const import STORAGE_VERSION, STORAGE_KEY_SPOTS
from .models import Spot

_LOGGER = logging.getLogger(__name__)


class SpotStore:
    """Ordered collection of spots keyed by id."""

    def __init__(self, hass: HomeAssistant, key: str = STORAGE_KEY_SPOTS) -> None:
        self.hass = hass
        self._store: Store[dict] = Store(hass, STORAGE_VERSION, key)
        self._spots: dict[str, Spot] = {}

    async def async_load(self) -> None:
        data = await self._store.async_load() or {}
        spots: dict[str, Spot] = {}
        for raw in data.get("spots", []):
            try:
                spot = Spot.from_dict(raw)
            except (KeyError, TypeError, ValueError) as exc:
                _LOGGER.warning("Skipping malformed stored spot %s: %s", raw, exc)
                continue
            if spot.id:
                spots[spot.id] = spot
        self._spots = spots
        _LOGGER.debug("Loaded %d spots", len(spots))

    @property
    def spots(self) -> list[Spot]:
        """Snapshot of all spots in insertion order."""
        return list(self._spots.values())

    def get_spot(self, spot_id: str) -> Spot | None:
        return self._spots.get(spot_id)

    async def async_save_spot(self, spot: Spot) -> Spot:
        """Insert or replace spot; a spot without id gets a new one."""
        if not spot.id:
            spot = Spot(**{**spot.as_dict(), "id": uuid.uuid4().hex})
        self._spots[spot.id] = spot
        await self._async_save()
        return spot

    async def async_delete_spot(self, spot_id: str) -> bool:
        if self._spots.pop(spot_id, None) is None:
            return False
        await self._async_save()
        return True

    async def _async_save(self) -> None:
        await self._store.async_save({"spots": [spot.as_dict() for spot in self._spots.values()]})
