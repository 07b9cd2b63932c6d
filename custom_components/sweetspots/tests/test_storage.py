"""
Unit tests for the Store-backed persistence: HassKeyValueStore (storage.py)
and SpotStore (spot_store.py). The HA Store class is patched out.
"""

from __future__ import annotations

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from custom_components.sweetspots.spot_store import SpotStore
from custom_components.sweetspots.storage import HassKeyValueStore

from .test_common import make_hass, make_spot


def _mock_store(data=None) -> MagicMock:
    store = MagicMock()
    store.async_load = AsyncMock(return_value=data)
    store.async_save = AsyncMock()
    return store


# ---------------------------------------------------------------------------
# HassKeyValueStore
# ---------------------------------------------------------------------------

class TestHassKeyValueStore(unittest.IsolatedAsyncioTestCase):

    async def _make(self, data=None):
        backend = _mock_store(data)
        with patch("custom_components.sweetspots.storage.Store", return_value=backend):
            kv = HassKeyValueStore(make_hass(), "sweetspots.test.state")
        await kv.async_load()
        return kv, backend

    async def test_load_reads_persisted_values(self):
        kv, _ = await self._make({"geofencing_enabled": False})
        self.assertFalse(kv.get("geofencing_enabled", True))

    async def test_missing_file_starts_empty(self):
        kv, _ = await self._make(None)
        self.assertEqual(kv.get("anything", "default"), "default")

    async def test_load_failure_starts_empty_and_logs(self):
        backend = _mock_store()
        backend.async_load.side_effect = ValueError("corrupt")
        with patch("custom_components.sweetspots.storage.Store", return_value=backend):
            kv = HassKeyValueStore(make_hass(), "sweetspots.test.state")

        with self.assertLogs("custom_components.sweetspots.storage", level="ERROR"):
            await kv.async_load()

        self.assertIsNone(kv.get("monitored_spot_details"))

    async def test_set_flushes_snapshot(self):
        kv, backend = await self._make()

        kv.set("monitored_spot_details", {"a": "Bakery"})
        await asyncio.sleep(0)

        backend.async_save.assert_awaited_once_with({"monitored_spot_details": {"a": "Bakery"}})

    async def test_get_returns_copy_of_dicts(self):
        kv, _ = await self._make({"monitored_spot_details": {"a": "Bakery"}})

        details = kv.get("monitored_spot_details")
        details["b"] = "Cafe"

        self.assertEqual(kv.get("monitored_spot_details"), {"a": "Bakery"})

    async def test_set_copies_value(self):
        kv, _ = await self._make()
        details = {"a": "Bakery"}
        kv.set("monitored_spot_details", details)
        details["b"] = "Cafe"
        self.assertEqual(kv.get("monitored_spot_details"), {"a": "Bakery"})

    async def test_flush_failure_is_logged(self):
        kv, backend = await self._make()
        backend.async_save.side_effect = OSError("disk full")

        with self.assertLogs("custom_components.sweetspots.storage", level="ERROR"):
            kv.set("geofencing_enabled", True)
            await asyncio.sleep(0)
            await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# SpotStore
# ---------------------------------------------------------------------------

class TestSpotStore(unittest.IsolatedAsyncioTestCase):

    async def _make(self, data=None):
        backend = _mock_store(data)
        with patch("custom_components.sweetspots.spot_store.Store", return_value=backend):
            store = SpotStore(make_hass(), "sweetspots.test.spots")
        await store.async_load()
        return store, backend

    async def test_load_keeps_order(self):
        store, _ = await self._make({"spots": [make_spot("b").as_dict(), make_spot("a").as_dict()]})
        self.assertEqual([s.id for s in store.spots], ["b", "a"])

    async def test_malformed_entries_are_skipped(self):
        with self.assertLogs("custom_components.sweetspots.spot_store", level="WARNING"):
            store, _ = await self._make({"spots": [{"name": "no coordinates"}, make_spot("a").as_dict()]})
        self.assertEqual([s.id for s in store.spots], ["a"])

    async def test_entries_without_id_are_ignored(self):
        store, _ = await self._make({"spots": [make_spot(None).as_dict()]})
        self.assertEqual(store.spots, [])

    async def test_save_assigns_id_and_persists(self):
        store, backend = await self._make()

        saved = await store.async_save_spot(make_spot(None, name="Donuts"))

        self.assertTrue(saved.id)
        self.assertEqual(saved.name, "Donuts")
        self.assertIs(store.get_spot(saved.id), saved)
        backend.async_save.assert_awaited_once_with({"spots": [saved.as_dict()]})

    async def test_save_replaces_existing(self):
        store, _ = await self._make({"spots": [make_spot("a", name="Old").as_dict()]})

        await store.async_save_spot(make_spot("a", name="New"))

        self.assertEqual([s.name for s in store.spots], ["New"])

    async def test_delete(self):
        store, backend = await self._make({"spots": [make_spot("a").as_dict()]})

        self.assertTrue(await store.async_delete_spot("a"))
        self.assertFalse(await store.async_delete_spot("a"))
        self.assertEqual(store.spots, [])
        backend.async_save.assert_awaited_once_with({"spots": []})
