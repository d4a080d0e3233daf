import asyncio

import pytest
from entryslots.utils.cache import TtlCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_value_expires_after_ttl() -> None:
    clock = FakeClock()
    cache: TtlCache[str] = TtlCache(10, clock=clock)
    cache.set("v")

    clock.now = 110
    assert cache.get() == "v"
    clock.now = 110.5
    assert cache.get() is None


def test_invalidate_drops_value() -> None:
    cache: TtlCache[int] = TtlCache(10, clock=FakeClock())
    cache.set(1)
    cache.invalidate()
    assert cache.get() is None


@pytest.mark.asyncio
async def test_get_or_load_calls_loader_once() -> None:
    cache: TtlCache[list[int]] = TtlCache(10, clock=FakeClock())
    calls = 0

    async def loader() -> list[int]:
        nonlocal calls
        calls += 1
        return [1, 2]

    assert await cache.get_or_load(loader) == [1, 2]
    assert await cache.get_or_load(loader) == [1, 2]
    assert calls == 1


@pytest.mark.asyncio
async def test_invalidate_during_load_discards_loaded_value() -> None:
    cache: TtlCache[list[str]] = TtlCache(600, clock=FakeClock())
    gate = asyncio.Event()
    started = asyncio.Event()

    async def slow_loader() -> list[str]:
        started.set()
        await gate.wait()
        return ["stale"]

    async def fresh_loader() -> list[str]:
        return ["fresh"]

    pending = asyncio.create_task(cache.get_or_load(slow_loader))
    await started.wait()
    cache.invalidate()
    gate.set()

    assert await pending == ["stale"]
    assert cache.get() is None
    assert await cache.get_or_load(fresh_loader) == ["fresh"]
    assert cache.get() == ["fresh"]
