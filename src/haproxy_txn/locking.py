"""ConcurrencySerializer — guards "read version -> create transaction"."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

logger = logging.getLogger("haproxy_txn.locking")


class ConcurrencySerializer:
    """
    Async context manager around a single lock owned by one coordinator.

    Held only while a version is read and a transaction opened against it,
    so two callers never present the same base version at once. Mutation
    and commit run outside it; races there are caught by the remote
    version check.

    Share one instance between coordinators only if they must serialize
    against each other.

    Usage:
        ```python
        serializer = ConcurrencySerializer()

        async with serializer:
            version = await oracle.get_current_version()
            txn = await factory.create(version)
        ```
    """

    def __init__(self, name: str = "configuration") -> None:
        self.name = name
        self._lock = asyncio.Lock()

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    async def __aenter__(self) -> ConcurrencySerializer:
        start = time.monotonic()
        await self._lock.acquire()
        logger.debug(
            "Serializer %s acquired",
            self.name,
            extra={"waited_ms": (time.monotonic() - start) * 1000},
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self._lock.release()
        logger.debug("Serializer %s released", self.name)
