"""Test configuration for haproxy-txn."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from haproxy_txn import retry
from haproxy_txn.coordinator import TransactionCoordinator
from haproxy_txn.memory import FakeDataPlane
from haproxy_txn.retry import RetryPolicy

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from haproxy_txn.client import DataPlaneClient


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Replace the retry sleep with a recorder so tests never wait."""
    recorded: list[float] = []

    async def _fake_sleep(seconds: float) -> None:
        recorded.append(seconds)

    monkeypatch.setattr(retry, "_sleep", _fake_sleep)
    return recorded


@pytest.fixture
def fake() -> FakeDataPlane:
    return FakeDataPlane(version=7)


@pytest.fixture
async def client(fake: FakeDataPlane) -> AsyncIterator[DataPlaneClient]:
    async with fake.client() as c:
        yield c


@pytest.fixture
def coordinator(client: DataPlaneClient, sleeps: list[float]) -> TransactionCoordinator:
    del sleeps
    return TransactionCoordinator(
        client,
        create_policy=RetryPolicy(max_attempts=3, delay=2.0),
        commit_policy=RetryPolicy(max_attempts=3, delay=2.0),
        cycle_policy=RetryPolicy(max_attempts=5, delay=2.0),
    )
