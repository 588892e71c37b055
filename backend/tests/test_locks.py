"""Tests for the per-key asyncio lock manager."""
import asyncio

import pytest

from crm_import.imports.locks import KeyLockManager


@pytest.mark.asyncio
async def test_same_key_is_serialized():
    locks = KeyLockManager()
    events = []

    async def worker(name: str):
        async with locks.acquire(("accounts", "acme")):
            events.append(f"{name}:in")
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            events.append(f"{name}:out")

    await asyncio.gather(worker("a"), worker("b"))
    assert events == ["a:in", "a:out", "b:in", "b:out"]


@pytest.mark.asyncio
async def test_different_keys_run_concurrently():
    locks = KeyLockManager()
    events = []

    async def worker(key: str):
        async with locks.acquire(key):
            events.append(f"{key}:in")
            await asyncio.sleep(0)
            events.append(f"{key}:out")

    await asyncio.gather(worker("acme"), worker("globex"))
    assert events[:2] == ["acme:in", "globex:in"]


@pytest.mark.asyncio
async def test_locks_released_after_use():
    locks = KeyLockManager()
    async with locks.acquire("acme"):
        assert len(locks) == 1
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_lock_released_when_body_raises():
    locks = KeyLockManager()
    with pytest.raises(RuntimeError):
        async with locks.acquire("acme"):
            raise RuntimeError("insert failed")
    assert len(locks) == 0
    async with locks.acquire("acme"):
        pass
