"""Config flow for SweetSpots nearby-spot notifications."""
from __future__ import annotations
import logging
import uuid
from typing import Any, Dict, Optional
import homeassistant.helpers.config_validation as cv
import voluptuous as vol

from homeassistant import config_entries
from homeassistant.core import callback

from .const import (
    DOMAIN,
    DEFAULT_COOLDOWN_MINUTES,
    CONF_ENTRY_NAME,
    CONF_TRACKED_ENTITY,
    CONF_NOTIFY_SERVICE,
    CONF_COOLDOWN_MINUTES,
)

cooldown_minutes = vol.All(vol.Coerce(int), vol.Range(min=1))

_LOGGER = logging.getLogger(__name__)
CONFIG_SCHEMA = vol.Schema(
            {
                vol.Required(CONF_ENTRY_NAME, default='My SweetSpots'): cv.string,
                vol.Required(CONF_TRACKED_ENTITY, default=''): cv.string,
                vol.Optional(CONF_NOTIFY_SERVICE, default=''): cv.string,
                vol.Required(CONF_COOLDOWN_MINUTES, default=DEFAULT_COOLDOWN_MINUTES): cooldown_minutes,
            }
        )


def _validate_input(user_input: Dict[str, Any]) -> Dict[str, str]:
    """Return an errors dict for the form; empty when the input is usable."""
    errors: Dict[str, str] = {}
    if not user_input.get(CONF_ENTRY_NAME):
        errors['base'] = 'entry_name_required'
    tracked = user_input.get(CONF_TRACKED_ENTITY)
    if not tracked:
        errors['base'] = 'tracked_entity_required'
    else:
        try:
            cv.entity_id(tracked)
        except vol.Invalid:
            errors['base'] = 'invalid_entity_id'
    notify_service = user_input.get(CONF_NOTIFY_SERVICE) or ''
    if notify_service.startswith('notify.'):
        errors['base'] = 'notify_service_without_domain'
    return errors


class CustomFlow(config_entries.ConfigFlow, domain=DOMAIN):
    data: Optional[Dict[str, Any]]

    async def async_step_user(self, user_input: Optional[Dict[str, Any]] = None):
        errors: Dict[str, str] = {}
        if user_input is not None:
            self.data = dict(user_input)
            errors = _validate_input(self.data)
            if not errors:
                # Create new guid for the entry
                self.data['guid'] = str(uuid.uuid4())
                return self.async_create_entry(title=f"{self.data[CONF_ENTRY_NAME]}", data=self.data)

        return self.async_show_form(step_id="user", data_schema=CONFIG_SCHEMA, errors=errors)

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        """Get the options flow for this handler."""
        return OptionsFlowHandler(config_entry)


class OptionsFlowHandler(config_entries.OptionsFlow):
    """Handles options flow for the component."""

    def __init__(self, config_entry: config_entries.ConfigEntry) -> None:
        self._entry = config_entry

    def _default(self, key: str, fallback: Any) -> Any:
        if key in self._entry.options:
            return self._entry.options[key]
        return self._entry.data.get(key, fallback)

    async def async_step_init(
        self, user_input: Dict[str, Any] = None
    ) -> Dict[str, Any]:
        errors: Dict[str, str] = {}

        if user_input is not None:
            errors = _validate_input(user_input)
            if not errors:
                new_data = {
                    'guid': self._entry.data['guid'],
                    CONF_ENTRY_NAME: user_input[CONF_ENTRY_NAME],
                    CONF_TRACKED_ENTITY: user_input[CONF_TRACKED_ENTITY],
                    CONF_NOTIFY_SERVICE: user_input.get(CONF_NOTIFY_SERVICE, ''),
                    CONF_COOLDOWN_MINUTES: user_input[CONF_COOLDOWN_MINUTES],
                }

                # Rename the entry in the UI
                self.hass.config_entries.async_update_entry(
                    self._entry,
                    data=new_data,
                    title=new_data[CONF_ENTRY_NAME],
                )

                return self.async_create_entry(title=f"{new_data[CONF_ENTRY_NAME]}", data=new_data)

        options_schema = vol.Schema(
            {
                vol.Required(CONF_ENTRY_NAME, default=self._default(CONF_ENTRY_NAME, '')): cv.string,
                vol.Required(CONF_TRACKED_ENTITY, default=self._default(CONF_TRACKED_ENTITY, '')): cv.string,
                vol.Optional(CONF_NOTIFY_SERVICE, default=self._default(CONF_NOTIFY_SERVICE, '')): cv.string,
                vol.Required(
                    CONF_COOLDOWN_MINUTES,
                    default=self._default(CONF_COOLDOWN_MINUTES, DEFAULT_COOLDOWN_MINUTES),
                ): cooldown_minutes,
            }
        )
        return self.async_show_form(step_id="init", data_schema=options_schema, errors=errors)
