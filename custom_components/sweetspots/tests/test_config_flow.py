"""
Unit tests for config_flow.py - CustomFlow (initial setup) and OptionsFlowHandler (options editing).

Coverage:
- CustomFlow.async_step_user:
    * GET (no input) → returns FORM with step_id "user"
    * Valid full input → CREATE_ENTRY with correct title, all data fields, and a generated guid
    * Empty entry_name      → errors["base"] == "entry_name_required"
    * Empty tracked entity  → errors["base"] == "tracked_entity_required"
    * Malformed entity id   → errors["base"] == "invalid_entity_id"
    * notify.* service name → errors["base"] == "notify_service_without_domain"

- OptionsFlowHandler.async_step_init:
    * GET (no input) → returns FORM with step_id "init", defaults come from config_entry.data
    * Defaults from config_entry.options override config_entry.data
    * Valid user input → CREATE_ENTRY, preserves original guid, sets new field values
    * Validation errors are reported the same way as in the user step
"""

from __future__ import annotations

import unittest
import uuid
from typing import Any, Dict
from unittest.mock import MagicMock

from custom_components.sweetspots.config_flow import CONFIG_SCHEMA, CustomFlow, OptionsFlowHandler


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_mock_config_entry(data: Dict[str, Any], options: Dict[str, Any] | None = None) -> MagicMock:
    """Return a minimal mock ConfigEntry with .data and .options dicts."""
    entry = MagicMock()
    entry.data = dict(data)
    entry.options = dict(options) if options is not None else {}
    return entry


def _make_flow() -> CustomFlow:
    """Return a CustomFlow instance with a mocked hass."""
    flow = CustomFlow()
    flow.hass = MagicMock()
    flow.context = {"source": "user"}
    return flow


def _make_options_flow(data: Dict[str, Any], options: Dict[str, Any] | None = None) -> OptionsFlowHandler:
    """Return an OptionsFlowHandler instance with a mocked hass."""
    entry = _make_mock_config_entry(data, options)
    handler = OptionsFlowHandler(entry)
    handler.hass = MagicMock()
    return handler


def _schema_defaults(schema) -> Dict[str, Any]:
    return {
        str(key): key.default()
        for key in schema.schema
        if hasattr(key, "default") and callable(key.default)
    }


VALID_USER_INPUT = {
    "entry_name": "My SweetSpots",
    "tracked_entity_id": "person.alice",
    "notify_service": "mobile_app_alice_phone",
    "cooldown_minutes": 90,
}

VALID_ENTRY_DATA = {
    "guid": "existing-guid-1234",
    "entry_name": "Original Name",
    "tracked_entity_id": "person.alice",
    "notify_service": "",
    "cooldown_minutes": 120,
}

VALID_OPTIONS_INPUT = {
    "entry_name": "Updated Name",
    "tracked_entity_id": "device_tracker.alice_phone",
    "notify_service": "mobile_app_alice_phone",
    "cooldown_minutes": 30,
}


# ---------------------------------------------------------------------------
# CustomFlow - initial config
# ---------------------------------------------------------------------------

class TestCustomFlow(unittest.IsolatedAsyncioTestCase):
    """Tests for CustomFlow.async_step_user."""

    async def test_shows_form_on_get(self):
        """Calling without input must return a FORM with step_id 'user'."""
        flow = _make_flow()

        result = await flow.async_step_user(user_input=None)

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["step_id"], "user")
        self.assertEqual(result.get("errors", {}), {})

    async def test_valid_input_creates_entry(self):
        """Valid full input must create an entry with correct title and all data fields."""
        flow = _make_flow()

        result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT))

        self.assertEqual(result["type"], "create_entry")
        self.assertEqual(result["title"], VALID_USER_INPUT["entry_name"])
        data = result["data"]
        for key, value in VALID_USER_INPUT.items():
            self.assertEqual(data[key], value, key)

    async def test_creates_entry_with_valid_guid(self):
        """A fresh UUID must be generated and stored as 'guid' in entry data."""
        flow = _make_flow()

        result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT))

        generated_guid = result["data"]["guid"]
        parsed = uuid.UUID(generated_guid)
        self.assertEqual(str(parsed), generated_guid)

    async def test_empty_entry_name_returns_form_with_error(self):
        flow = _make_flow()

        result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT, entry_name=""))

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["errors"]["base"], "entry_name_required")

    async def test_empty_tracked_entity_returns_form_with_error(self):
        flow = _make_flow()

        result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT, tracked_entity_id=""))

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["errors"]["base"], "tracked_entity_required")

    async def test_malformed_entity_id_returns_form_with_error(self):
        flow = _make_flow()

        result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT, tracked_entity_id="alice"))

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["errors"]["base"], "invalid_entity_id")

    async def test_notify_service_with_domain_returns_form_with_error(self):
        flow = _make_flow()

        result = await flow.async_step_user(
            user_input=dict(VALID_USER_INPUT, notify_service="notify.mobile_app_alice_phone")
        )

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["errors"]["base"], "notify_service_without_domain")

    async def test_notify_service_is_optional(self):
        flow = _make_flow()

        result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT, notify_service=""))

        self.assertEqual(result["type"], "create_entry")


class TestConfigSchema(unittest.TestCase):

    def test_defaults(self):
        defaults = _schema_defaults(CONFIG_SCHEMA)
        self.assertEqual(defaults["cooldown_minutes"], 120)
        self.assertEqual(defaults["notify_service"], "")

    def test_cooldown_is_coerced_and_bounded(self):
        import voluptuous as vol

        validated = CONFIG_SCHEMA(dict(VALID_USER_INPUT, cooldown_minutes="45"))
        self.assertEqual(validated["cooldown_minutes"], 45)
        with self.assertRaises(vol.Invalid):
            CONFIG_SCHEMA(dict(VALID_USER_INPUT, cooldown_minutes=0))


# ---------------------------------------------------------------------------
# OptionsFlowHandler - options editing
# ---------------------------------------------------------------------------

class TestOptionsFlowHandler(unittest.IsolatedAsyncioTestCase):
    """Tests for OptionsFlowHandler.async_step_init."""

    async def test_shows_form_on_get(self):
        handler = _make_options_flow(VALID_ENTRY_DATA)

        result = await handler.async_step_init(user_input=None)

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["step_id"], "init")
        self.assertEqual(result.get("errors", {}), {})

    async def test_form_defaults_come_from_entry_data(self):
        handler = _make_options_flow(VALID_ENTRY_DATA, options={})

        result = await handler.async_step_init(user_input=None)

        defaults = _schema_defaults(result["data_schema"])
        for key in ("entry_name", "tracked_entity_id", "notify_service", "cooldown_minutes"):
            self.assertEqual(defaults[key], VALID_ENTRY_DATA[key], key)

    async def test_options_override_data_defaults(self):
        handler = _make_options_flow(VALID_ENTRY_DATA, options=dict(VALID_OPTIONS_INPUT))

        result = await handler.async_step_init(user_input=None)

        defaults = _schema_defaults(result["data_schema"])
        for key, value in VALID_OPTIONS_INPUT.items():
            self.assertEqual(defaults[key], value, key)

    async def test_valid_update_creates_entry(self):
        handler = _make_options_flow(VALID_ENTRY_DATA)

        result = await handler.async_step_init(user_input=dict(VALID_OPTIONS_INPUT))

        self.assertEqual(result["type"], "create_entry")
        for key, value in VALID_OPTIONS_INPUT.items():
            self.assertEqual(result["data"][key], value, key)

    async def test_valid_update_preserves_guid(self):
        handler = _make_options_flow(VALID_ENTRY_DATA)

        result = await handler.async_step_init(user_input=dict(VALID_OPTIONS_INPUT))

        self.assertEqual(result["data"]["guid"], VALID_ENTRY_DATA["guid"])

    async def test_valid_update_calls_async_update_entry(self):
        handler = _make_options_flow(VALID_ENTRY_DATA)

        await handler.async_step_init(user_input=dict(VALID_OPTIONS_INPUT))

        handler.hass.config_entries.async_update_entry.assert_called_once()
        call = handler.hass.config_entries.async_update_entry.call_args
        self.assertEqual(call.kwargs["data"]["guid"], VALID_ENTRY_DATA["guid"])
        self.assertEqual(call.kwargs["title"], VALID_OPTIONS_INPUT["entry_name"])

    async def test_invalid_entity_returns_form_with_error(self):
        handler = _make_options_flow(VALID_ENTRY_DATA)

        result = await handler.async_step_init(user_input=dict(VALID_OPTIONS_INPUT, tracked_entity_id="nope"))

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["errors"]["base"], "invalid_entity_id")
        handler.hass.config_entries.async_update_entry.assert_not_called()
