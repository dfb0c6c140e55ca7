"""DataPlaneClient — issues requests against the HAProxy Data Plane API."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

from .correlation import get_correlation_id
from .exceptions import TransportError
from .instrumentation import RequestAttributes, get_hook_registry
from .sanitization import default_sanitizer

if TYPE_CHECKING:
    from .config import DataPlaneConfig
    from .instrumentation import HookRegistry
    from .sanitization import ResponseSanitizer

logger = logging.getLogger("haproxy_txn.client")

SERVICE_PREFIX = "/services/haproxy"
VERSION_PATH = f"{SERVICE_PREFIX}/configuration/version"
TRANSACTIONS_PATH = f"{SERVICE_PREFIX}/transactions"


def transaction_path(transaction_id: str) -> str:
    return f"{TRANSACTIONS_PATH}/{transaction_id}"


class DataPlaneClient:
    """
    Thin async wrapper over ``httpx.AsyncClient``.

    Adds basic auth, JSON content type, ``User-Agent`` and correlation
    headers, routes every call through the instrumentation hooks and maps
    ``httpx`` failures to :class:`TransportError`. Status codes are left to
    the caller: the four transaction primitives each accept different ones.

    An injected ``http_client`` is never closed by this class; a
    ``transport`` is wrapped in a client that is.

    Usage:
        ```python
        config = DataPlaneConfig("http://lb:5555", "admin", "secret")
        async with DataPlaneClient(config) as client:
            resp = await client.request("GET", VERSION_PATH, area="version")
        ```
    """

    def __init__(
        self,
        config: DataPlaneConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        hooks: HookRegistry | None = None,
        sanitizer: ResponseSanitizer | None = None,
    ) -> None:
        self.config = config
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=config.timeout,
            verify=config.verify_ssl,
            transport=transport,
        )
        self._hooks = hooks
        self.sanitizer = sanitizer or default_sanitizer

    def url_for(self, path: str) -> str:
        return f"{self.config.api_root}{path}"

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.config.user_agent,
        }
        correlation_id = get_correlation_id()
        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        transaction_id: str | None = None,
        area: str = "request",
        phase: str | None = None,
    ) -> httpx.Response:
        """Send one request and return the raw response.

        ``transaction_id`` is added as the ``transaction_id`` query parameter,
        which is how mutation functions scope their writes to a transaction.
        ``phase`` is reported to instrumentation hooks; a request scoped to a
        transaction defaults to ``"mutate"``.

        Raises:
            TransportError: On network failure, timeout, or undecodable response.
        """
        query = dict(params or {})
        if transaction_id is not None:
            query["transaction_id"] = transaction_id
        url = self.url_for(path)
        if phase is None and transaction_id is not None:
            phase = "mutate"
        attributes = RequestAttributes(
            method=method,
            path=path,
            area=area,
            api_version=self.config.api_version,
            phase=phase,
            transaction_id=transaction_id,
            correlation_id=get_correlation_id(),
        )

        async def _send() -> httpx.Response:
            start = time.monotonic()
            try:
                kwargs: dict[str, Any] = {
                    "params": query or None,
                    "json": json,
                    "headers": self._headers(),
                }
                if self.config.auth is not None:
                    kwargs["auth"] = self.config.auth
                response = await self._http.request(method, url, **kwargs)
            except httpx.HTTPError as exc:
                logger.warning("%s %s failed: %s", method, path, exc)
                raise TransportError(f"{method} {path} failed: {exc}") from exc
            logger.debug(
                "%s %s -> %d",
                method,
                path,
                response.status_code,
                extra={
                    "status_code": response.status_code,
                    "duration_ms": (time.monotonic() - start) * 1000,
                },
            )
            return response

        hooks = self._hooks or get_hook_registry()
        result: httpx.Response = await hooks.wrap(attributes, _send)
        return result

    def loggable_body(self, response: httpx.Response) -> str:
        return self.sanitizer.sanitize(response.text)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> DataPlaneClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
