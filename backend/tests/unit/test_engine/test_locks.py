"""Tests for KeyedLock"""
import asyncio

from docflow.engine.locks import KeyedLock


async def test_same_key_is_serialized():
    locks = KeyedLock()
    order = []

    async def worker(name):
        async with locks.hold(("blogs", "d1")):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))
    assert order == ["a-in", "a-out", "b-in", "b-out"]
    assert len(locks) == 0


async def test_different_keys_run_concurrently():
    locks = KeyedLock()
    inside = []

    async def worker(key):
        async with locks.hold(key):
            inside.append(key)
            await asyncio.sleep(0.01)
            assert len(inside) == 2

    await asyncio.gather(worker("d1"), worker("d2"))


async def test_lock_released_on_error():
    locks = KeyedLock()
    try:
        async with locks.hold("d1"):
            raise ValueError("boom")
    except ValueError:
        pass
    assert len(locks) == 0
