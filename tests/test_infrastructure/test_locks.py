"""Tests for the per-request KeyedLockRegistry."""

from __future__ import annotations

import asyncio

import pytest

from translation_marketplace.infrastructure.locks import KeyedLockRegistry


class TestKeyedLockRegistry:
    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self) -> None:
        locks = KeyedLockRegistry()
        trace: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold("request-1"):
                trace.append(f"{name}:enter")
                await asyncio.sleep(0.01)
                trace.append(f"{name}:exit")

        await asyncio.gather(worker("a"), worker("b"))

        assert trace == ["a:enter", "a:exit", "b:enter", "b:exit"]

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self) -> None:
        locks = KeyedLockRegistry()
        inside = asyncio.Event()

        async def holder() -> None:
            async with locks.hold("request-1"):
                await asyncio.wait_for(inside.wait(), timeout=1)

        async def other() -> None:
            async with locks.hold("request-2"):
                inside.set()

        await asyncio.gather(holder(), other())

    @pytest.mark.asyncio
    async def test_unused_locks_are_dropped(self) -> None:
        locks = KeyedLockRegistry()
        async with locks.hold("request-1"):
            assert len(locks) == 1
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_lock_released_on_error(self) -> None:
        locks = KeyedLockRegistry()
        with pytest.raises(RuntimeError):
            async with locks.hold("request-1"):
                raise RuntimeError("boom")

        async with locks.hold("request-1"):
            pass
        assert len(locks) == 0
