"""Daily-salted pseudonymization of anonymous visitor identifiers."""

from anonymity.exceptions import (
    AnonymityError,
    BatchTooLargeError,
    ConfigurationError,
    StoreUnavailableError,
)
from anonymity.hasher import AnonymousIdentity, salt_anonymous_id
from anonymity.salt import DailySaltProvisioner, day_index, salt_key
from anonymity.store import KeyValueStore, MemoryStore, RedisStore, build_store

__version__ = "0.1.0"

__all__ = [
    "AnonymityError",
    "AnonymousIdentity",
    "BatchTooLargeError",
    "ConfigurationError",
    "DailySaltProvisioner",
    "KeyValueStore",
    "MemoryStore",
    "RedisStore",
    "StoreUnavailableError",
    "build_store",
    "day_index",
    "salt_anonymous_id",
    "salt_key",
]
