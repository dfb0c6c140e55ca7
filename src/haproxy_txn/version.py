"""VersionOracle — reads the current configuration version."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from .client import VERSION_PATH
from .exceptions import ParseError, UnexpectedStatusError
from .models import normalize_version

if TYPE_CHECKING:
    from .client import DataPlaneClient

logger = logging.getLogger("haproxy_txn.version")


class VersionOracle:
    """
    Reads the Data Plane API configuration version.

    No retry at this layer: a stale version is expected and meaningful to
    the caller, and a failing endpoint is not a concurrency race.
    """

    def __init__(self, client: DataPlaneClient) -> None:
        self._client = client

    async def get_current_version(self) -> str:
        """Return the current version as a decimal string.

        Raises:
            UnexpectedStatusError: The endpoint did not answer 200.
            ParseError: The body is neither an integer nor a version object.
            TransportError: Network failure.
        """
        response = await self._client.request(
            "GET", VERSION_PATH, area="version", phase="version_read"
        )

        if response.status_code != 200:
            body = self._client.loggable_body(response)
            logger.warning(
                "Configuration version request returned %d: %s",
                response.status_code,
                body,
            )
            raise UnexpectedStatusError(
                response.status_code, body, "failed to get configuration version"
            )

        try:
            raw = json.loads(response.text)
        except ValueError as exc:
            raise ParseError(
                f"configuration version body is not JSON: {exc}",
                self._client.loggable_body(response),
            ) from exc

        version = normalize_version(raw)
        logger.debug("Configuration version is %s", version, extra={"version": version})
        return version
