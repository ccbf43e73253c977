"""Tests for drasbot.utils"""
import asyncio
import pytest
from datetime import timedelta

from drasbot.utils.datetime_helpers import now_utc
from drasbot.utils.locks import KeyedLock


class TestDatetimeHelpers:

    def test_now_utc_is_aware(self):
        assert now_utc().tzinfo is not None
        assert now_utc().utcoffset() == timedelta(0)


class TestKeyedLock:

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        order = []

        async def worker(name):
            async with locks.hold("user"):
                order.append(f"{name}-in")
                await asyncio.sleep(0)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert order == ["a-in", "a-out", "b-in", "b-out"]

    @pytest.mark.asyncio
    async def test_different_keys_do_not_wait(self):
        locks = KeyedLock()
        async with locks.hold("a"):
            await asyncio.wait_for(self._hold_briefly(locks, "b"), timeout=1)
            assert locks.locked("a")

    @staticmethod
    async def _hold_briefly(locks, key):
        async with locks.hold(key):
            pass

    @pytest.mark.asyncio
    async def test_unused_locks_are_dropped(self):
        locks = KeyedLock()
        async with locks.hold("a"):
            assert len(locks) == 1
        assert len(locks) == 0
        assert not locks.locked("a")

    @pytest.mark.asyncio
    async def test_lock_released_on_error(self):
        locks = KeyedLock()
        with pytest.raises(RuntimeError):
            async with locks.hold("a"):
                raise RuntimeError("boom")
        assert len(locks) == 0
