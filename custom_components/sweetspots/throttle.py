"""
NotificationThrottle - per-spot cooldown for proximity notifications.

Keeps a persisted ledger of spot id → wall-clock time of the last delivered
notification. The cooldown comparison alone decides whether a notification may
fire; pruning only keeps the ledger from growing.
"""
from __future__ import annotations

import logging
import time
from typing import Callable

from .const import NOTIFICATION_COOLDOWN, KEY_RECENT_NOTIFICATIONS
from .storage import KeyValueStore

_LOGGER = logging.getLogger(__name__)


class NotificationThrottle:
    """Suppresses repeat notifications for the same spot within the cooldown window."""

    def __init__(
        self,
        store: KeyValueStore,
        cooldown: float = NOTIFICATION_COOLDOWN,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._cooldown = cooldown
        self._clock = clock
        self._ledger: dict[str, float] = {
            spot_id: float(fired_at)
            for spot_id, fired_at in (store.get(KEY_RECENT_NOTIFICATIONS) or {}).items()
        }
        self.prune()

    @property
    def cooldown(self) -> float:
        return self._cooldown

    @property
    def ledger(self) -> dict[str, float]:
        return dict(self._ledger)

    def should_fire(self, spot_id: str) -> bool:
        """False while a previous notification for spot_id is younger than the cooldown."""
        fired_at = self._ledger.get(spot_id)
        if fired_at is None:
            return True
        return self._clock() - fired_at >= self._cooldown

    def record_fired(self, spot_id: str) -> None:
        """Record a delivered notification and flush the ledger."""
        self._drop_expired()
        self._ledger[spot_id] = self._clock()
        self._save()

    def prune(self) -> int:
        """Remove entries older than the cooldown; returns how many were dropped."""
        removed = self._drop_expired()
        if removed:
            _LOGGER.debug("Pruned %d expired notification records", removed)
            self._save()
        return removed

    def _drop_expired(self) -> int:
        cutoff = self._clock() - self._cooldown
        expired = [spot_id for spot_id, fired_at in self._ledger.items() if fired_at < cutoff]
        for spot_id in expired:
            del self._ledger[spot_id]
        return len(expired)

    def _save(self) -> None:
        self._store.set(KEY_RECENT_NOTIFICATIONS, self._ledger)
