"""Unit tests for per-key asyncio locks."""

import asyncio

import pytest

from servicedesk.shared.infrastructure.locks import KeyedAsyncLock


class TestKeyedAsyncLock:

    @pytest.mark.asyncio
    async def test_same_key_is_exclusive(self):
        locks = KeyedAsyncLock()
        order = []

        async def worker(name):
            async with locks.hold("t-1"):
                order.append(f"{name}:in")
                await asyncio.sleep(0)
                order.append(f"{name}:out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a:in", "a:out", "b:in", "b:out"]

    @pytest.mark.asyncio
    async def test_different_keys_do_not_block(self):
        locks = KeyedAsyncLock()

        async with locks.hold("t-1"):
            assert locks.is_locked("t-1")
            async with locks.hold("t-2"):
                assert locks.is_locked("t-2")

    @pytest.mark.asyncio
    async def test_entries_are_released(self):
        locks = KeyedAsyncLock()

        async with locks.hold("t-1"):
            assert len(locks) == 1

        assert len(locks) == 0
        assert not locks.is_locked("t-1")

    @pytest.mark.asyncio
    async def test_entry_released_after_exception(self):
        locks = KeyedAsyncLock()

        with pytest.raises(RuntimeError):
            async with locks.hold("t-1"):
                raise RuntimeError("boom")

        assert len(locks) == 0
