"""Tests for CommitCoordinator."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from haproxy_txn.classifier import RetryClass
from haproxy_txn.commit import CommitCoordinator
from haproxy_txn.exceptions import (
    APIError,
    RetryExhaustedError,
    TransactionFailedError,
    UnexpectedStatusError,
)
from haproxy_txn.retry import RetryPolicy

if TYPE_CHECKING:
    from haproxy_txn.client import DataPlaneClient
    from haproxy_txn.coordinator import TransactionCoordinator
    from haproxy_txn.memory import FakeDataPlane


@pytest.fixture
def committer(client: DataPlaneClient, sleeps: list[float]) -> CommitCoordinator:
    del sleeps
    return CommitCoordinator(client, policy=RetryPolicy(max_attempts=3, delay=2.0))


class TestCommitOnce:
    @pytest.mark.parametrize("status", [200, 202])
    async def test_success_codes(
        self,
        committer: CommitCoordinator,
        coordinator: TransactionCoordinator,
        fake: FakeDataPlane,
        status: int,
    ) -> None:
        transaction = await coordinator.begin()
        fake.respond_next("commit", httpx.Response(status, json={"id": transaction.id}))

        response = await committer.commit_once(transaction.id)
        assert response.status_code == status

    async def test_commit_advances_version(
        self,
        committer: CommitCoordinator,
        coordinator: TransactionCoordinator,
        fake: FakeDataPlane,
    ) -> None:
        transaction = await coordinator.begin()

        await committer.commit_once(transaction.id)

        assert fake.committed == [transaction.id]
        assert fake.version == 8

    async def test_structured_failure(
        self,
        committer: CommitCoordinator,
        coordinator: TransactionCoordinator,
        fake: FakeDataPlane,
    ) -> None:
        transaction = await coordinator.begin()
        fake.bump_version()

        with pytest.raises(APIError) as exc_info:
            await committer.commit_once(transaction.id)

        assert exc_info.value.code == 406
        assert "is outdated and cannot be committed" in exc_info.value.message

    async def test_non_2xx_without_json(
        self, committer: CommitCoordinator, fake: FakeDataPlane
    ) -> None:
        fake.fail_next("commit", 500, body="Internal Server Error")

        with pytest.raises(UnexpectedStatusError) as exc_info:
            await committer.commit_once("txn-9")
        assert exc_info.value.summary == "Transaction commit failed"

    async def test_201_is_not_a_commit_success(
        self, committer: CommitCoordinator, fake: FakeDataPlane
    ) -> None:
        fake.respond_next("commit", httpx.Response(201, json={}))

        with pytest.raises(UnexpectedStatusError):
            await committer.commit_once("txn-9")


class TestCommitWithBoundedRetry:
    async def test_retries_same_transaction(
        self,
        committer: CommitCoordinator,
        coordinator: TransactionCoordinator,
        fake: FakeDataPlane,
        sleeps: list[float],
    ) -> None:
        transaction = await coordinator.begin()
        fake.fail_next("commit", 400, "transaction does not exist", times=2)

        response = await committer.commit_with_bounded_retry(transaction.id)

        assert response.status_code == 202
        assert fake.count("commit") == 3
        assert {c.path for c in fake.calls_for("commit")} == {
            f"/services/haproxy/transactions/{transaction.id}"
        }
        assert sleeps == [2.0, 2.0]

    async def test_fatal_fails_immediately(
        self, committer: CommitCoordinator, fake: FakeDataPlane, sleeps: list[float]
    ) -> None:
        fake.fail_next("commit", 500, "unknown failure")

        with pytest.raises(TransactionFailedError) as exc_info:
            await committer.commit_with_bounded_retry("txn-1")

        err = exc_info.value
        assert err.phase == "commit"
        assert err.transaction_id == "txn-1"
        assert err.retry_class is RetryClass.FATAL
        assert isinstance(err.__cause__, APIError)
        assert fake.count("commit") == 1
        assert sleeps == []

    async def test_exhaustion(
        self, committer: CommitCoordinator, fake: FakeDataPlane, sleeps: list[float]
    ) -> None:
        fake.fail_next("commit", 409, "version mismatch", times=3)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await committer.commit_with_bounded_retry("txn-1")

        assert exc_info.value.attempts == 3
        assert exc_info.value.transaction_id == "txn-1"
        assert fake.count("commit") == 3
        assert len(sleeps) == 2

    async def test_policy_override(
        self, committer: CommitCoordinator, fake: FakeDataPlane
    ) -> None:
        fake.fail_next("commit", 409, "version mismatch", times=5)

        with pytest.raises(RetryExhaustedError):
            await committer.commit_with_bounded_retry(
                "txn-1", RetryPolicy(max_attempts=1, delay=0.0)
            )
        assert fake.count("commit") == 1
