"""TransactionCoordinator — drives begin -> mutate -> commit with whole-cycle retry."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from .classifier import ErrorClassifier, default_classifier
from .client import DataPlaneClient
from .commit import CommitCoordinator
from .exceptions import (
    HAProxyTxnError,
    RetryExhaustedError,
    TransactionFailedError,
)
from .factory import TransactionFactory
from .locking import ConcurrencySerializer
from .models import Transaction, TransactionState
from .retry import RetryPolicy
from .rollback import RollbackAgent
from .version import VersionOracle

if TYPE_CHECKING:
    import httpx

    from .config import DataPlaneConfig
    from .mutation import MutationFunction, MutationOutcome
    from .unit_of_work import DataPlaneUnitOfWork

logger = logging.getLogger("haproxy_txn.coordinator")


class CyclePhase(str, Enum):
    """States of one begin -> mutate -> commit cycle."""

    IDLE = "idle"
    VERSION_READ = "version_read"
    TRANSACTION_OPEN = "create"
    MUTATING = "mutate"
    COMMIT_ATTEMPT = "commit"
    COMMITTED = "committed"
    ABANDONED = "abandoned"
    FAILED = "failed"


@dataclass
class CommitResult:
    """Outcome of a successful :meth:`TransactionCoordinator.run`.

    ``history`` lists every transaction the run opened, in order, with its
    terminal state; only the last one is ``COMMITTED``.
    """

    transaction: Transaction
    attempts: int
    response: httpx.Response
    mutation_outcome: MutationOutcome | None = None
    history: list[tuple[Transaction, TransactionState]] = field(default_factory=list)


class TransactionCoordinator:
    """
    Runs mutation functions inside Data Plane API transactions.

    Owns one of each component and one :class:`ConcurrencySerializer`, so
    separate coordinators never block each other unless they are given the
    same serializer.

    Example:
        ```python
        async def add_backend(transaction_id: str) -> MutationOutcome:
            resp = await client.request(
                "POST",
                "/services/haproxy/configuration/backends",
                json={"name": "api"},
                transaction_id=transaction_id,
            )
            return outcome_from_response(resp)

        coordinator = TransactionCoordinator(client)
        result = await coordinator.run(add_backend)
        ```
    """

    def __init__(
        self,
        client: DataPlaneClient,
        *,
        serializer: ConcurrencySerializer | None = None,
        classifier: ErrorClassifier | None = None,
        create_policy: RetryPolicy | None = None,
        commit_policy: RetryPolicy | None = None,
        cycle_policy: RetryPolicy | None = None,
    ) -> None:
        self.client = client
        self.classifier = classifier or default_classifier
        self.serializer = serializer or ConcurrencySerializer()
        self.oracle = VersionOracle(client)
        self.factory = TransactionFactory(
            client, self.oracle, classifier=self.classifier, policy=create_policy
        )
        self.committer = CommitCoordinator(
            client, classifier=self.classifier, policy=commit_policy
        )
        self.rollback_agent = RollbackAgent(client)
        self.cycle_policy = cycle_policy or RetryPolicy.whole_cycle_default()

    @classmethod
    def from_config(cls, config: DataPlaneConfig, **kwargs: Any) -> TransactionCoordinator:
        """Build a coordinator with its own ``DataPlaneClient``.

        Keyword arguments meant for the client (``http_client``, ``hooks``,
        ``sanitizer``) are split off; the rest go to the coordinator.
        """
        client_kwargs = {
            k: kwargs.pop(k) for k in ("http_client", "hooks", "sanitizer") if k in kwargs
        }
        return cls(DataPlaneClient(config, **client_kwargs), **kwargs)

    # ── Primitives ───────────────────────────────────────────────────

    async def begin(self) -> Transaction:
        """Read the version and open a transaction, under the serializer.

        Raises:
            TransactionFailedError: Version read or creation failed.
            RetryExhaustedError: Version kept mismatching.
        """
        async with self.serializer:
            try:
                version = await self.oracle.get_current_version()
            except HAProxyTxnError as exc:
                raise TransactionFailedError(
                    CyclePhase.VERSION_READ.value,
                    exc,
                    retry_class=self.classifier.classify(exc),
                ) from exc

            try:
                return await self.factory.open_transaction(version)
            except RetryExhaustedError:
                raise
            except HAProxyTxnError as exc:
                raise TransactionFailedError(
                    CyclePhase.TRANSACTION_OPEN.value,
                    exc,
                    retry_class=self.classifier.classify(exc),
                ) from exc

    async def commit(
        self, transaction: Transaction | str, *, bounded: bool = True
    ) -> httpx.Response:
        """Commit an open transaction.

        With ``bounded`` (default) retryable errors retry the same id;
        otherwise a single attempt is made and failures are wrapped.
        """
        transaction_id = _transaction_id(transaction)
        if bounded:
            return await self.committer.commit_with_bounded_retry(transaction_id)
        try:
            return await self.committer.commit_once(transaction_id)
        except HAProxyTxnError as exc:
            raise TransactionFailedError(
                CyclePhase.COMMIT_ATTEMPT.value,
                exc,
                transaction_id=transaction_id,
                retry_class=self.classifier.classify(exc),
            ) from exc

    async def rollback(self, transaction: Transaction | str) -> bool:
        """Best-effort discard of an open transaction."""
        return await self.rollback_agent.rollback(_transaction_id(transaction))

    def session(self, *, bounded_commit: bool = True) -> DataPlaneUnitOfWork:
        """Unit of work: begin on enter, commit on clean exit, rollback on error."""
        from .unit_of_work import DataPlaneUnitOfWork

        return DataPlaneUnitOfWork(self, bounded_commit=bounded_commit)

    # ── Whole-cycle retry ────────────────────────────────────────────

    async def run(self, mutation: MutationFunction) -> CommitResult:
        """Run ``mutation`` in a transaction until it commits.

        Retryable mutation or commit failures abandon the transaction and
        restart from a fresh version read, up to ``cycle_policy``. A fatal
        failure returns after the attempt that hit it, without sleeping.

        Raises:
            TransactionFailedError: Fatal failure, with phase and transaction id.
            RetryExhaustedError: Still racing when the policy ran out.
        """
        policy = self.cycle_policy
        started = time.monotonic()
        history: list[tuple[Transaction, TransactionState]] = []
        attempt = 1

        while True:
            transaction = await self.begin()
            logger.debug(
                "Cycle %d: transaction %s open",
                attempt,
                transaction,
                extra={"transaction_id": transaction.id, "attempt": attempt},
            )

            phase = CyclePhase.MUTATING
            outcome, error, rolled_back = await self._mutate(transaction, mutation)
            if error is None:
                phase = CyclePhase.COMMIT_ATTEMPT
                try:
                    response = await self.committer.commit_once(transaction.id)
                except HAProxyTxnError as exc:
                    error = exc
                else:
                    history.append((transaction, TransactionState.COMMITTED))
                    logger.info(
                        "Transaction %s committed after %d cycle(s)",
                        transaction.id,
                        attempt,
                        extra={"transaction_id": transaction.id, "attempt": attempt},
                    )
                    return CommitResult(
                        transaction=transaction,
                        attempts=attempt,
                        response=response,
                        mutation_outcome=outcome,
                        history=history,
                    )
            else:
                state = (
                    TransactionState.DELETED if rolled_back else TransactionState.ABANDONED
                )
                history.append((transaction, state))

            retry_class = self.classifier.classify(error)
            if not retry_class.retryable:
                logger.error(
                    "Transaction %s failed during %s: %s",
                    transaction.id,
                    phase.value,
                    self.client.sanitizer.sanitize(str(error)),
                    extra={"transaction_id": transaction.id, "phase": phase.value},
                )
                raise TransactionFailedError(
                    phase.value,
                    error,
                    transaction_id=transaction.id,
                    retry_class=retry_class,
                ) from error

            if phase is CyclePhase.COMMIT_ATTEMPT:
                history.append((transaction, TransactionState.ABANDONED))
            if not policy.should_retry(attempt, started):
                raise RetryExhaustedError(
                    "transaction", attempt, error, transaction_id=transaction.id
                ) from error

            logger.warning(
                "Restarting transaction cycle after %s during %s of %s "
                "(attempt %d/%d)",
                retry_class.value,
                phase.value,
                transaction.id,
                attempt,
                policy.max_attempts,
                extra={
                    "transaction_id": transaction.id,
                    "attempt": attempt,
                    "retry_class": retry_class.value,
                    "phase": phase.value,
                },
            )
            await policy.wait_before_retry(attempt)
            attempt += 1

    async def _mutate(
        self, transaction: Transaction, mutation: MutationFunction
    ) -> tuple[MutationOutcome | None, BaseException | None, bool]:
        """Invoke the mutation; on failure roll back and hand back the error.

        The last item tells whether the rollback was acknowledged.
        """
        try:
            outcome = await mutation(transaction.id)
            if outcome is not None and not outcome.ok:
                error = outcome.to_error(transaction.id)
                if outcome.cause is not None and outcome.cause is not error:
                    raise error from outcome.cause
                raise error
        except asyncio.CancelledError:
            await asyncio.shield(self.rollback_agent.rollback(transaction.id))
            raise
        except Exception as exc:  # noqa: BLE001
            # Mutation functions are caller code and may raise anything.
            logger.info(
                "Mutation failed in transaction %s, rolling back",
                transaction.id,
                extra={"transaction_id": transaction.id},
            )
            rolled_back = await self.rollback_agent.rollback(transaction.id)
            return None, exc, rolled_back

        return outcome, None, False


def _transaction_id(transaction: Transaction | str) -> str:
    return transaction.id if isinstance(transaction, Transaction) else transaction
