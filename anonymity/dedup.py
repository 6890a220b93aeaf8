"""
Duplicate event guard.

Marks each (event_type, event_id) pair in the shared store so retried
client submissions are dropped instead of counted twice.
"""

import logging

from anonymity.config import Settings
from anonymity.metrics import duplicate_events_total
from anonymity.store import KeyValueStore

logger = logging.getLogger(__name__)

DEDUP_TTL_SECONDS = 60 * 60 * 24


def dedup_key(event_type: str, event_id: str) -> str:
    return f"dedup:{event_type}:{event_id}"


class DuplicateEventGuard:
    """
    Redis-backed event_id deduplication with TTL

    The marker is written with a single SET NX EX, so concurrent checks of
    the same event_id see exactly one first sighting.

    Kill switch: ``enabled=False`` (DEDUP_ENABLED) accepts every event
    without touching the store.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int = DEDUP_TTL_SECONDS,
        enabled: bool = True,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.enabled = enabled

        if not enabled:
            logger.warning("Event deduplication is DISABLED")

    @classmethod
    def from_settings(cls, store: KeyValueStore, settings: Settings) -> "DuplicateEventGuard":
        return cls(
            store=store,
            ttl_seconds=settings.DEDUP_TTL_SECONDS,
            enabled=settings.DEDUP_ENABLED,
        )

    async def check_duplicate(self, event_id: str, event_type: str) -> bool:
        """
        Check if event was already seen, marking it seen if not

        Args:
            event_id: Client event identifier
            event_type: Event family (track, error, web_vitals, ...)

        Returns:
            True if this is a duplicate, False if first sighting

        Raises:
            StoreUnavailableError: If the shared store is unreachable
        """
        if not self.enabled:
            return False

        key = dedup_key(event_type, event_id)
        if await self.store.set_if_absent(key, "1", self.ttl_seconds):
            return False

        duplicate_events_total.labels(event_type=event_type).inc()
        return True
