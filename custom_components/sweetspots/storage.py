"""
Key-value persistence for geofence bookkeeping.

The manager keeps two flat maps (region id → display name, spot id →
last-notified timestamp) plus a couple of scalar flags. They are read once at
start-up and written back on every mutation.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from homeassistant.core import HomeAssistant
from homeassistant.helpers.storage import Store

from .const import STORAGE_VERSION, STORAGE_KEY_STATE

_LOGGER = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Flat key-value storage. Every set() is flushed; there is no batching."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for key, or default."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store value under key and flush."""


class HassKeyValueStore(KeyValueStore):
    """KeyValueStore backed by a Home Assistant Store JSON file."""

    def __init__(self, hass: HomeAssistant, key: str = STORAGE_KEY_STATE) -> None:
        self.hass = hass
        self._store: Store[dict[str, Any]] = Store(hass, STORAGE_VERSION, key)
        self._data: dict[str, Any] = {}

    async def async_load(self) -> None:
        """Read the persisted file once; a missing or unreadable file starts empty."""
        try:
            data = await self._store.async_load()
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Failed to load persisted geofence state: %s", exc)
            data = None
        self._data = dict(data) if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        value = self._data.get(key, default)
        # Hand out copies so callers cannot mutate the persisted snapshot behind our back
        if isinstance(value, dict):
            return dict(value)
        return value

    def set(self, key: str, value: Any) -> None:
        self._data[key] = dict(value) if isinstance(value, dict) else value
        self.hass.async_create_task(self._async_flush(dict(self._data)))

    async def _async_flush(self, snapshot: dict[str, Any]) -> None:
        try:
            await self._store.async_save(snapshot)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Failed to persist geofence state: %s", exc)
