"""
Unit tests for daily salt provisioning.

Tests:
- test_creates_salt_when_missing: first request of the day writes salt:<day> with 24h TTL
- test_reuses_existing_daily_salt: later requests the same day read without writing
- test_salt_expires_after_24h: store expiry removes the day's salt
- test_concurrent_first_requests_last_write_wins: documented race in default mode
- test_atomic_create_converges: SET NX mode yields one salt for all callers
"""

import asyncio
import re
from unittest.mock import AsyncMock

import pytest
from prometheus_client import REGISTRY

from anonymity.exceptions import StoreUnavailableError
from anonymity.salt import DailySaltProvisioner, day_index, salt_key
from anonymity.store import KeyValueStore, MemoryStore

DAY_SECONDS = 24 * 60 * 60
# 2026-10-18 12:00:00 UTC
NOON_EPOCH_SECONDS = 1_792_324_800.0

HEX_64 = re.compile(r"^[0-9a-f]{64}$")


class YieldingStore(MemoryStore):
    """MemoryStore that suspends after every read, like a network round trip"""

    async def get(self, key):
        value = await super().get(key)
        await asyncio.sleep(0)
        return value


def test_day_index_is_whole_utc_days():
    assert day_index(0) == 0
    assert day_index(86_400_000 - 1) == 0
    assert day_index(86_400_000) == 1
    assert day_index(int(NOON_EPOCH_SECONDS * 1000)) == 20744


def test_salt_key_format():
    assert salt_key(20744) == "salt:20744"
    assert salt_key(3, prefix="tenant-a:salt") == "tenant-a:salt:3"


class TestDailySaltProvisioner:

    @pytest.mark.asyncio
    async def test_creates_salt_when_missing(self, provisioner, memory_store):
        before = REGISTRY.get_sample_value("anonymity_salt_created_total") or 0.0

        salt = await provisioner.get_daily_salt()

        assert HEX_64.match(salt), "Salt must be 32 random bytes hex-encoded"
        assert await memory_store.get("salt:20744") == salt
        assert memory_store.ttl("salt:20744") == DAY_SECONDS
        assert REGISTRY.get_sample_value("anonymity_salt_created_total") == before + 1

    @pytest.mark.asyncio
    async def test_reuses_existing_daily_salt(self, provisioner):
        first = await provisioner.get_daily_salt()
        second = await provisioner.get_daily_salt()

        assert first == second

    @pytest.mark.asyncio
    async def test_existing_salt_is_not_rewritten(self, clock):
        store = AsyncMock(spec=KeyValueStore)
        store.get.return_value = "existing-salt-value"
        provisioner = DailySaltProvisioner(store=store, clock=clock)

        assert await provisioner.get_daily_salt() == "existing-salt-value"
        store.get.assert_awaited_once_with("salt:20744")
        store.set_with_expiry.assert_not_awaited()
        store.set_if_absent.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_writes_with_24h_ttl(self, clock):
        store = AsyncMock(spec=KeyValueStore)
        store.get.return_value = None
        provisioner = DailySaltProvisioner(store=store, clock=clock)

        salt = await provisioner.get_daily_salt()

        store.set_with_expiry.assert_awaited_once_with("salt:20744", salt, 86400)

    @pytest.mark.asyncio
    async def test_salts_for_different_days_are_independent(self, provisioner, clock):
        today = await provisioner.get_daily_salt()
        clock.advance(DAY_SECONDS)
        tomorrow = await provisioner.get_daily_salt()

        assert HEX_64.match(today)
        assert HEX_64.match(tomorrow)
        assert today != tomorrow

    @pytest.mark.asyncio
    async def test_salt_rotates_at_utc_midnight(self, provisioner, clock):
        clock.now = 20745 * DAY_SECONDS - 1  # 23:59:59 UTC
        before_midnight = await provisioner.get_daily_salt()
        clock.advance(1)
        after_midnight = await provisioner.get_daily_salt()

        assert before_midnight != after_midnight
        assert provisioner.current_key() == "salt:20745"

    @pytest.mark.asyncio
    async def test_salt_expires_after_24h(self, provisioner, memory_store, clock):
        await provisioner.get_daily_salt()
        key = provisioner.current_key()

        clock.advance(DAY_SECONDS - 1)
        assert await memory_store.get(key) is not None

        clock.advance(1)
        assert await memory_store.get(key) is None, "Salt must expire with the store TTL"

    @pytest.mark.asyncio
    async def test_read_failure_propagates(self, clock):
        store = AsyncMock(spec=KeyValueStore)
        store.get.side_effect = StoreUnavailableError("get", "salt:20744")
        provisioner = DailySaltProvisioner(store=store, clock=clock)

        with pytest.raises(StoreUnavailableError):
            await provisioner.get_daily_salt()
        store.set_with_expiry.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_write_failure_propagates_without_retry(self, clock):
        store = AsyncMock(spec=KeyValueStore)
        store.get.return_value = None
        store.set_with_expiry.side_effect = StoreUnavailableError("setex", "salt:20744")
        provisioner = DailySaltProvisioner(store=store, clock=clock)

        with pytest.raises(StoreUnavailableError):
            await provisioner.get_daily_salt()
        assert store.set_with_expiry.await_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_first_requests_last_write_wins(self, clock):
        """
        Two callers race on an empty store. Both miss, both generate, both write.
        The store keeps the second write; the first caller's salt is never
        reconciled. This is accepted behavior of the read-then-write mode:
        identifiers hashed with either value stay consistent for their request.
        """
        store = YieldingStore(clock=clock)
        provisioner = DailySaltProvisioner(store=store, clock=clock)

        first, second = await asyncio.gather(
            provisioner.get_daily_salt(),
            provisioner.get_daily_salt(),
        )

        assert first != second
        assert await store.get("salt:20744") == second
        assert await provisioner.get_daily_salt() == second

    @pytest.mark.asyncio
    async def test_atomic_create_converges(self, clock):
        store = YieldingStore(clock=clock)
        provisioner = DailySaltProvisioner(store=store, clock=clock, atomic_create=True)
        lost_before = REGISTRY.get_sample_value("anonymity_salt_race_lost_total") or 0.0

        first, second = await asyncio.gather(
            provisioner.get_daily_salt(),
            provisioner.get_daily_salt(),
        )

        assert first == second
        assert await store.get("salt:20744") == first
        assert REGISTRY.get_sample_value("anonymity_salt_race_lost_total") == lost_before + 1

    @pytest.mark.asyncio
    async def test_atomic_create_falls_back_to_candidate_if_winner_vanished(self, clock):
        store = AsyncMock(spec=KeyValueStore)
        store.get.return_value = None
        store.set_if_absent.return_value = False
        provisioner = DailySaltProvisioner(store=store, clock=clock, atomic_create=True)

        salt = await provisioner.get_daily_salt()

        assert HEX_64.match(salt)
        assert store.get.await_count == 2
        store.set_with_expiry.assert_not_awaited()

    def test_from_settings(self, memory_store, settings, clock):
        settings.SALT_KEY_PREFIX = "anon:salt"
        settings.SALT_BYTES = 16
        settings.SALT_ATOMIC_CREATE = True

        provisioner = DailySaltProvisioner.from_settings(memory_store, settings, clock=clock)

        assert provisioner.current_key() == "anon:salt:20744"
        assert provisioner.salt_bytes == 16
        assert provisioner.atomic_create is True
        assert provisioner.ttl_seconds == 86400

    @pytest.mark.asyncio
    async def test_custom_salt_size(self, memory_store, clock):
        provisioner = DailySaltProvisioner(store=memory_store, clock=clock, salt_bytes=16)

        assert len(await provisioner.get_daily_salt()) == 32
