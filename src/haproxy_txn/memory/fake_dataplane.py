"""FakeDataPlane — in-memory Data Plane API for tests."""

from __future__ import annotations

import json
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Literal
from urllib.parse import parse_qs

import httpx

from ..client import DataPlaneClient, TRANSACTIONS_PATH, VERSION_PATH
from ..config import DataPlaneConfig

Operation = Literal["version", "create", "commit", "delete", "write"]
VersionShape = Literal["object", "int", "float", "string"]


@dataclass
class RecordedCall:
    """Record of a request for test assertions."""

    operation: str
    method: str
    path: str
    params: dict[str, str]
    body: Any = None


@dataclass
class FakeTransaction:
    id: str
    base_version: int
    status: str = "in_progress"
    staged: list[dict[str, Any]] = field(default_factory=list)


class FakeDataPlane:
    """
    Test double (Fake) of the four transaction endpoints plus scoped writes.

    Keeps a version counter and a transaction store, and enforces the same
    rules as the real service: creating against a stale version answers 409
    ``version mismatch``, committing a transaction opened on an older version
    answers 406 ``... is outdated and cannot be committed``, and unknown ids
    answer 400 ``transaction does not exist``.

    ``fail_next`` queues forced responses per operation; ``bump_version``
    simulates another writer.

    Usage:
        ```python
        fake = FakeDataPlane()
        fake.fail_next("create", 409, "version mismatch")
        async with fake.client() as client:
            coordinator = TransactionCoordinator(client)
            await coordinator.run(mutation)
        assert fake.count("version") == 2
        ```
    """

    def __init__(
        self,
        *,
        version: int = 1,
        api_version: str = "v3",
        version_shape: VersionShape = "object",
    ) -> None:
        self.version = version
        self.api_version = api_version
        self.version_shape = version_shape
        self.transactions: dict[str, FakeTransaction] = {}
        self.created: list[str] = []
        self.committed: list[str] = []
        self.deleted: list[str] = []
        self.calls: list[RecordedCall] = []
        self._forced: dict[str, deque[httpx.Response]] = {}
        self._sequence = 0
        self._counts: Counter[str] = Counter()

    # ── Scripting ────────────────────────────────────────────────────

    def fail_next(
        self,
        operation: Operation,
        status: int,
        message: str | None = None,
        *,
        code: int | None = None,
        body: str | None = None,
        times: int = 1,
    ) -> None:
        """Answer the next ``times`` calls of ``operation`` with an error.

        With ``message`` the body is ``{"code": ..., "message": ...}``;
        otherwise ``body`` is sent verbatim (default empty).
        """
        for _ in range(times):
            if message is not None:
                payload = {"code": code if code is not None else status, "message": message}
                response = httpx.Response(status, json=payload)
            else:
                response = httpx.Response(status, text=body or "")
            self._forced.setdefault(operation, deque()).append(response)

    def respond_next(self, operation: Operation, response: httpx.Response) -> None:
        self._forced.setdefault(operation, deque()).append(response)

    def bump_version(self, by: int = 1) -> None:
        """Advance the version as if another writer had committed."""
        self.version += by

    def count(self, operation: Operation) -> int:
        return self._counts[operation]

    def calls_for(self, operation: Operation) -> list[RecordedCall]:
        return [c for c in self.calls if c.operation == operation]

    # ── Wiring ───────────────────────────────────────────────────────

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(
        self, config: DataPlaneConfig | None = None, **kwargs: Any
    ) -> DataPlaneClient:
        config = config or DataPlaneConfig(
            "http://dataplane.test", "admin", "secret", api_version=self.api_version
        )
        return DataPlaneClient(config, transport=self.transport(), **kwargs)

    # ── Request handling ─────────────────────────────────────────────

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        prefix = f"/{self.api_version}"
        if path.startswith(prefix):
            path = path[len(prefix) :]
        params = {k: v[-1] for k, v in parse_qs(request.url.query.decode()).items()}
        body = json.loads(request.content) if request.content else None
        operation = self._operation_for(request.method, path)

        self._counts[operation] += 1
        self.calls.append(RecordedCall(operation, request.method, path, params, body))

        forced = self._forced.get(operation)
        if forced:
            return forced.popleft()

        if operation == "version":
            return self._get_version()
        if operation == "create":
            return self._create(params.get("version"))
        if operation == "commit":
            return self._commit(path.rsplit("/", 1)[-1])
        if operation == "delete":
            return self._delete(path.rsplit("/", 1)[-1])
        return self._write(request.method, path, params.get("transaction_id"), body)

    def _operation_for(self, method: str, path: str) -> str:
        if path == VERSION_PATH and method == "GET":
            return "version"
        if path == TRANSACTIONS_PATH and method == "POST":
            return "create"
        if path.startswith(f"{TRANSACTIONS_PATH}/"):
            if method == "PUT":
                return "commit"
            if method == "DELETE":
                return "delete"
        return "write"

    def _get_version(self) -> httpx.Response:
        shapes: dict[str, Any] = {
            "object": {"version": self.version},
            "int": self.version,
            "float": {"version": float(self.version)},
            "string": {"version": str(self.version)},
        }
        return httpx.Response(200, json=shapes[self.version_shape])

    def _create(self, version: str | None) -> httpx.Response:
        if version is None:
            return _error(400, "version or transaction not specified")
        if version != str(self.version):
            return _error(409, "version mismatch")
        self._sequence += 1
        txn = FakeTransaction(id=f"txn-{self._sequence}", base_version=self.version)
        self.transactions[txn.id] = txn
        self.created.append(txn.id)
        return httpx.Response(
            201, json={"id": txn.id, "_version": txn.base_version, "status": txn.status}
        )

    def _commit(self, transaction_id: str) -> httpx.Response:
        txn = self.transactions.get(transaction_id)
        if txn is None or txn.status != "in_progress":
            return _error(400, "transaction does not exist")
        if txn.base_version != self.version:
            txn.status = "outdated"
            return _error(
                406, f"transaction {transaction_id} is outdated and cannot be committed"
            )
        txn.status = "success"
        self.version += 1
        self.committed.append(transaction_id)
        return httpx.Response(202, json={"id": txn.id, "status": txn.status})

    def _delete(self, transaction_id: str) -> httpx.Response:
        txn = self.transactions.get(transaction_id)
        if txn is None or txn.status != "in_progress":
            return _error(404, "transaction does not exist")
        del self.transactions[transaction_id]
        self.deleted.append(transaction_id)
        return httpx.Response(204)

    def _write(
        self, method: str, path: str, transaction_id: str | None, body: Any
    ) -> httpx.Response:
        if transaction_id is None:
            return _error(400, "version or transaction not specified")
        txn = self.transactions.get(transaction_id)
        if txn is None or txn.status != "in_progress":
            return _error(400, "transaction does not exist")
        txn.staged.append({"method": method, "path": path, "body": body})
        return httpx.Response(202 if method != "POST" else 201, json=body or {})


def _error(status: int, message: str) -> httpx.Response:
    return httpx.Response(status, json={"code": status, "message": message})
