"""Tests for DataPlaneUnitOfWork."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from haproxy_txn.exceptions import RetryExhaustedError, TransactionFailedError
from haproxy_txn.models import TransactionState
from haproxy_txn.unit_of_work import DataPlaneUnitOfWork

if TYPE_CHECKING:
    from haproxy_txn.client import DataPlaneClient
    from haproxy_txn.coordinator import TransactionCoordinator
    from haproxy_txn.memory import FakeDataPlane


SERVERS = "/services/haproxy/configuration/servers"


async def test_commit_on_clean_exit(
    coordinator: TransactionCoordinator, client: DataPlaneClient, fake: FakeDataPlane
) -> None:
    async with coordinator.session() as uow:
        await client.request(
            "POST",
            SERVERS,
            params={"backend": "api"},
            json={"name": "s1"},
            transaction_id=uow.transaction_id,
        )

    assert uow.state is TransactionState.COMMITTED
    assert uow.response is not None and uow.response.status_code == 202
    assert fake.committed == [uow.transaction_id]
    write = fake.calls_for("write")[0]
    assert write.params == {"backend": "api", "transaction_id": uow.transaction_id}


async def test_rollback_on_exception(
    coordinator: TransactionCoordinator, fake: FakeDataPlane
) -> None:
    with pytest.raises(ValueError, match="boom"):
        async with coordinator.session() as uow:
            raise ValueError("boom")

    assert uow.state is TransactionState.DELETED
    assert fake.deleted == [uow.transaction_id]
    assert fake.committed == []


async def test_failed_commit_rolls_back_and_reraises(
    coordinator: TransactionCoordinator, fake: FakeDataPlane
) -> None:
    fake.fail_next("commit", 500, "unknown failure")

    with pytest.raises(TransactionFailedError):
        async with coordinator.session() as uow:
            pass

    assert uow.state is TransactionState.DELETED
    assert fake.deleted == [uow.transaction_id]


async def test_bounded_commit_retries_same_transaction(
    coordinator: TransactionCoordinator, fake: FakeDataPlane, sleeps: list[float]
) -> None:
    fake.fail_next("commit", 400, "transaction does not exist")

    async with coordinator.session() as uow:
        pass

    assert fake.count("commit") == 2
    assert fake.committed == [uow.transaction_id]
    assert sleeps == [2.0]


async def test_outdated_commit_is_not_restarted(
    coordinator: TransactionCoordinator, fake: FakeDataPlane
) -> None:
    """The block cannot be replayed, so an outdated commit surfaces to the caller."""
    with pytest.raises(RetryExhaustedError):
        async with coordinator.session():
            fake.bump_version()

    assert fake.count("create") == 1
    assert fake.count("commit") == 3


async def test_unbounded_session(coordinator: TransactionCoordinator, fake: FakeDataPlane) -> None:
    fake.fail_next("commit", 409, "version mismatch")

    with pytest.raises(TransactionFailedError):
        async with coordinator.session(bounded_commit=False):
            pass

    assert fake.count("commit") == 1


async def test_commit_hooks_run_after_commit(
    coordinator: TransactionCoordinator, fake: FakeDataPlane
) -> None:
    seen: list[list[str]] = []

    async def hook() -> None:
        seen.append(list(fake.committed))

    async with coordinator.session() as uow:
        uow.on_commit(hook)
        assert seen == []

    assert seen == [[uow.transaction_id]]


async def test_commit_hooks_discarded_on_rollback(
    coordinator: TransactionCoordinator,
) -> None:
    called: list[bool] = []

    async def hook() -> None:
        called.append(True)

    with pytest.raises(RuntimeError):
        async with coordinator.session() as uow:
            uow.on_commit(hook)
            raise RuntimeError("abort")

    assert called == []


async def test_failing_hook_does_not_undo_commit(
    coordinator: TransactionCoordinator, fake: FakeDataPlane
) -> None:
    async def bad_hook() -> None:
        raise RuntimeError("hook failed")

    async with coordinator.session() as uow:
        uow.on_commit(bad_hook)

    assert fake.committed == [uow.transaction_id]


async def test_explicit_commit_is_idempotent(
    coordinator: TransactionCoordinator, fake: FakeDataPlane
) -> None:
    async with coordinator.session() as uow:
        first = await uow.commit()
        second = await uow.commit()
        assert first is second
        assert await uow.rollback() is False

    assert fake.count("commit") == 1


async def test_explicit_rollback_skips_commit(
    coordinator: TransactionCoordinator, fake: FakeDataPlane
) -> None:
    async with coordinator.session() as uow:
        assert await uow.rollback() is True

    assert fake.count("commit") == 0
    assert fake.deleted == [uow.transaction_id]


def test_transaction_before_begin(coordinator: TransactionCoordinator) -> None:
    uow = DataPlaneUnitOfWork(coordinator)
    with pytest.raises(RuntimeError, match="not begun"):
        _ = uow.transaction_id
