"""
PermissionGate - location authorization tracking for the geofence manager.

Monitoring only ever runs with the ALWAYS grant. The gate mirrors the
platform's authorization, asks for upgrades only when a caller explicitly
wants one, and runs a teardown callback the moment ALWAYS is lost.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable

from .const import PERMISSION_UPGRADE_TIMEOUT
from .interfaces import LocationPlatform
from .models import AuthorizationState

_LOGGER = logging.getLogger(__name__)


class PermissionGate:
    """Observable snapshot of the platform's location authorization."""

    def __init__(
        self,
        platform: LocationPlatform,
        on_regression: Callable[[], None] | None = None,
    ) -> None:
        self._platform = platform
        self._on_regression = on_regression
        self._authorization: AuthorizationState = platform.authorization()
        self._waiters: list[asyncio.Future] = []
        # Set when the user has refused and only the system settings can help
        self.show_permission_alert: bool = False

    @property
    def authorization(self) -> AuthorizationState:
        return self._authorization

    def current_authorization(self) -> AuthorizationState:
        return self._authorization

    @property
    def is_always(self) -> bool:
        return self._authorization is AuthorizationState.ALWAYS

    def request_upgrade(self, want_always: bool) -> bool:
        """
        Ask the platform for more access. Returns True if a request was issued.

        The first request can only be for WHILE_IN_USE; ALWAYS has to be asked
        for separately once WHILE_IN_USE is granted.
        """
        state = self._authorization
        _LOGGER.debug("Requesting location authorization, current %s, want_always=%s", state.value, want_always)

        if state is AuthorizationState.UNDETERMINED:
            self._platform.request_when_in_use_authorization()
            return True
        if state is AuthorizationState.WHILE_IN_USE:
            if want_always:
                self._platform.request_always_authorization()
                return True
            return False
        if state in (AuthorizationState.DENIED, AuthorizationState.RESTRICTED):
            # No prompt is possible any more
            self.show_permission_alert = True
            return False
        return False

    async def async_request_upgrade_and_wait(
        self,
        want_always: bool,
        timeout: float = PERMISSION_UPGRADE_TIMEOUT,
    ) -> AuthorizationState:
        """
        Request an upgrade and wait for the platform's answer.

        Returns the authorization after the next change callback, or the
        unchanged authorization if none arrives within timeout.
        """
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            if self.request_upgrade(want_always):
                try:
                    await asyncio.wait_for(asyncio.shield(waiter), timeout)
                except asyncio.TimeoutError:
                    _LOGGER.debug("No authorization change within %.1fs", timeout)
        finally:
            self._waiters.remove(waiter)
        return self._authorization

    def update(self, new_state: AuthorizationState) -> bool:
        """
        Apply an authorization change from the platform.

        Returns True if this was a regression away from ALWAYS, in which case
        the teardown callback has already run.
        """
        old_state = self._authorization
        self._authorization = new_state
        if new_state.allows_location:
            self.show_permission_alert = False

        for waiter in self._waiters:
            if not waiter.done():
                waiter.set_result(new_state)

        if old_state != new_state:
            _LOGGER.info("Location authorization changed from %s to %s", old_state.value, new_state.value)

        regressed = old_state is AuthorizationState.ALWAYS and new_state is not AuthorizationState.ALWAYS
        if regressed:
            _LOGGER.warning("Lost 'always' location access, stopping all geofences")
            if self._on_regression is not None:
                self._on_regression()
        return regressed
