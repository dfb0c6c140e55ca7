"""Connection settings for the Data Plane API."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any

SUPPORTED_API_VERSIONS: frozenset[str] = frozenset({"v2", "v3"})


@dataclass(frozen=True)
class DataPlaneConfig:
    """Configuration for a Data Plane API endpoint.

    Attributes:
        base_url: Scheme and host of the Data Plane API, e.g. ``http://lb:5555``.
        username: Basic-auth user (optional).
        password: Basic-auth password (optional).
        api_version: URL prefix of the API generation, ``v2`` or ``v3``.
        timeout: Per-request timeout in seconds.
        verify_ssl: Verify TLS certificates when building the default client.
        user_agent: ``User-Agent`` header sent with every request.
    """

    base_url: str
    username: str | None = None
    password: str | None = None
    api_version: str = "v3"
    timeout: float = 30.0
    verify_ssl: bool = True
    user_agent: str = "haproxy-txn/0.1.0"

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("base_url must not be empty")
        if self.api_version not in SUPPORTED_API_VERSIONS:
            raise ValueError(
                f"api_version must be one of {sorted(SUPPORTED_API_VERSIONS)}, "
                f"got {self.api_version!r}"
            )
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @property
    def api_root(self) -> str:
        """Base URL including the API version prefix."""
        return f"{self.base_url}/{self.api_version}"

    @property
    def auth(self) -> tuple[str, str] | None:
        if self.username and self.password:
            return (self.username, self.password)
        return None

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> DataPlaneConfig:
        """Build a config from a plain mapping, ignoring unknown and empty keys."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known and v not in (None, "")}
        if "base_url" not in kwargs:
            kwargs["base_url"] = data.get("url") or ""
        return cls(**kwargs)
