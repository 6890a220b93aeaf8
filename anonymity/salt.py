"""
Daily salt provisioning.

One random salt per UTC calendar day, stored in the shared store under
``salt:<day_index>`` with a 24h TTL. The salt is created lazily by the first
request of the day and disappears only through expiry.
"""

import logging
import secrets
import time
from typing import Callable, Optional

from anonymity.config import Settings
from anonymity.metrics import salt_cache_hits_total, salt_created_total, salt_race_lost_total
from anonymity.store import KeyValueStore

logger = logging.getLogger(__name__)

MS_PER_DAY = 24 * 60 * 60 * 1000
SALT_TTL_SECONDS = 24 * 60 * 60
SALT_BYTES = 32
SALT_KEY_PREFIX = "salt"


def day_index(now_ms: int) -> int:
    """Whole UTC days since the epoch for an epoch-milliseconds timestamp"""
    return int(now_ms) // MS_PER_DAY


def salt_key(day: int, prefix: str = SALT_KEY_PREFIX) -> str:
    return f"{prefix}:{day}"


class DailySaltProvisioner:
    """
    Returns the active salt for today, creating it if absent.

    Two write modes:

    - ``atomic_create=False``: GET, then SETEX on a miss. Two callers racing
      on the first request of a day may each generate a salt and both write;
      the store keeps the last write and each caller returns its own value.
    - ``atomic_create=True``: GET, then SET NX EX on a miss. The caller that
      loses the race re-reads and returns the stored salt, so every caller
      converges on a single value.

    Store failures propagate as StoreUnavailableError. No retries.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], float] = time.time,
        ttl_seconds: int = SALT_TTL_SECONDS,
        salt_bytes: int = SALT_BYTES,
        key_prefix: str = SALT_KEY_PREFIX,
        atomic_create: bool = False,
    ):
        self.store = store
        self.clock = clock
        self.ttl_seconds = ttl_seconds
        self.salt_bytes = salt_bytes
        self.key_prefix = key_prefix
        self.atomic_create = atomic_create

    @classmethod
    def from_settings(
        cls,
        store: KeyValueStore,
        settings: Settings,
        clock: Callable[[], float] = time.time,
    ) -> "DailySaltProvisioner":
        return cls(
            store=store,
            clock=clock,
            ttl_seconds=settings.SALT_TTL_SECONDS,
            salt_bytes=settings.SALT_BYTES,
            key_prefix=settings.SALT_KEY_PREFIX,
            atomic_create=settings.SALT_ATOMIC_CREATE,
        )

    def today(self) -> int:
        """Current day index"""
        return day_index(int(self.clock() * 1000))

    def current_key(self) -> str:
        return salt_key(self.today(), self.key_prefix)

    def _generate_salt(self) -> str:
        """Generate cryptographically secure random salt"""
        return secrets.token_hex(self.salt_bytes)

    async def get_daily_salt(self) -> str:
        """
        Get the salt for the current UTC day.

        Returns:
            Hex-encoded salt (64 characters with the default 32 bytes)

        Raises:
            StoreUnavailableError: If the shared store cannot be read or written
        """
        key = self.current_key()

        salt = await self.store.get(key)
        if salt:
            salt_cache_hits_total.inc()
            return salt

        candidate = self._generate_salt()

        if not self.atomic_create:
            await self.store.set_with_expiry(key, candidate, self.ttl_seconds)
            salt_created_total.inc()
            logger.info(f"Created daily salt {key}")
            return candidate

        if await self.store.set_if_absent(key, candidate, self.ttl_seconds):
            salt_created_total.inc()
            logger.info(f"Created daily salt {key}")
            return candidate

        salt_race_lost_total.inc()
        winner: Optional[str] = await self.store.get(key)
        if winner:
            return winner

        # Winner expired between SET NX and GET; only possible at the TTL edge
        logger.warning(f"Daily salt {key} vanished after conditional write; using local candidate")
        return candidate
