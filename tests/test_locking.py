"""Tests for ConcurrencySerializer."""

from __future__ import annotations

import asyncio

from haproxy_txn.locking import ConcurrencySerializer


async def test_exclusive_sections_do_not_interleave() -> None:
    serializer = ConcurrencySerializer()
    events: list[str] = []

    async def section(name: str) -> None:
        async with serializer:
            events.append(f"enter:{name}")
            await asyncio.sleep(0)
            events.append(f"exit:{name}")

    await asyncio.gather(section("a"), section("b"), section("c"))

    for i in range(0, len(events), 2):
        assert events[i].startswith("enter:")
        assert events[i + 1] == events[i].replace("enter:", "exit:")


async def test_released_on_exception() -> None:
    serializer = ConcurrencySerializer()

    try:
        async with serializer:
            assert serializer.locked
            raise RuntimeError("inside")
    except RuntimeError:
        pass

    assert not serializer.locked


async def test_instances_are_independent() -> None:
    first = ConcurrencySerializer("a")
    second = ConcurrencySerializer("b")

    async with first:
        async with second:
            assert first.locked and second.locked
