"""DataPlaneUnitOfWork — begin/commit/rollback as an async context manager."""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING, Any

from .models import TransactionState

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import httpx

    from .coordinator import TransactionCoordinator
    from .models import Transaction

logger = logging.getLogger("haproxy_txn.uow")


class DataPlaneUnitOfWork:
    """
    A single transaction scoped to an ``async with`` block.

    Unlike :meth:`TransactionCoordinator.run` there is no whole-cycle
    restart: the block runs once. Use it when the writes cannot simply be
    replayed.

    CRITICAL ORDER on exit:
    1. Clean exit: commit, then fire ``on_commit`` hooks.
    2. Exception (in the block or from the commit): best-effort rollback,
       hooks discarded, exception re-raised.

    Example:
        ```python
        async with coordinator.session() as uow:
            await client.request(
                "POST", path, json=payload, transaction_id=uow.transaction_id
            )
            uow.on_commit(notify_reload)
        ```
    """

    def __init__(
        self, coordinator: TransactionCoordinator, *, bounded_commit: bool = True
    ) -> None:
        self._coordinator = coordinator
        self._bounded_commit = bounded_commit
        self._transaction: Transaction | None = None
        self.state: TransactionState | None = None
        self.response: httpx.Response | None = None
        self._on_commit_hooks: deque[Callable[[], Awaitable[Any]]] = deque()

    @property
    def transaction(self) -> Transaction:
        if self._transaction is None:
            raise RuntimeError("unit of work has not begun")
        return self._transaction

    @property
    def transaction_id(self) -> str:
        return self.transaction.id

    def on_commit(self, callback: Callable[[], Awaitable[Any]]) -> None:
        """Register an async callback to run after a successful commit."""
        self._on_commit_hooks.append(callback)

    async def trigger_commit_hooks(self) -> None:
        while self._on_commit_hooks:
            callback = self._on_commit_hooks.popleft()
            try:
                await callback()
            except Exception as exc:
                logger.error("Error in on_commit hook: %s", exc, exc_info=True)

    async def commit(self) -> httpx.Response | None:
        """Commit once; repeated calls after commit or rollback are no-ops."""
        if self.state is not TransactionState.CREATED:
            return self.response
        self.response = await self._coordinator.commit(
            self.transaction, bounded=self._bounded_commit
        )
        self.state = TransactionState.COMMITTED
        return self.response

    async def rollback(self) -> bool:
        if self.state is not TransactionState.CREATED:
            return False
        self.state = TransactionState.DELETED
        self._on_commit_hooks.clear()
        return await self._coordinator.rollback(self.transaction)

    async def __aenter__(self) -> DataPlaneUnitOfWork:
        self._transaction = await self._coordinator.begin()
        self.state = TransactionState.CREATED
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        if exc_type is None:
            try:
                await self.commit()
            except Exception:
                await self.rollback()
                raise
            await self.trigger_commit_hooks()
        else:
            await self.rollback()
