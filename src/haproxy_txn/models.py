"""Wire models for Data Plane API response bodies."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .exceptions import APIError, HAProxyTxnError, ParseError, UnexpectedStatusError

if TYPE_CHECKING:
    import httpx


class ErrorBody(BaseModel):
    """``{"code": int, "message": str}`` error payload."""

    model_config = ConfigDict(extra="ignore")

    code: int | None = None
    message: str = ""


class TransactionBody(BaseModel):
    """Payload returned when a transaction is created."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    version: int | None = Field(default=None, alias="_version")
    status: str | None = None


class TransactionState(str, Enum):
    CREATED = "created"
    COMMITTED = "committed"
    DELETED = "deleted"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class Transaction:
    """A server-side staging area bound to the version it was opened against."""

    id: str
    base_version: str

    def __str__(self) -> str:
        return f"{self.id}@{self.base_version}"


def error_from_response(response: httpx.Response, summary: str) -> HAProxyTxnError:
    """Turn a non-success response into an :class:`APIError` when structured.

    Falls back to :class:`UnexpectedStatusError` when the body is not a JSON
    object carrying a non-empty ``message``. A missing ``code`` takes the
    HTTP status.
    """
    text = response.text
    try:
        body = ErrorBody.model_validate_json(text)
    except PydanticValidationError:
        return UnexpectedStatusError(response.status_code, text, summary)
    if not body.message:
        return UnexpectedStatusError(response.status_code, text, summary)
    code = body.code if body.code is not None else response.status_code
    return APIError(
        code, body.message, status_code=response.status_code, summary=summary
    )


def normalize_version(raw: Any) -> str:
    """Render any accepted version encoding as a decimal string.

    Accepts ``int``, integral ``float``, numeric ``str``, or an object with
    a ``version`` field holding one of those.
    """
    if isinstance(raw, dict):
        if "version" not in raw:
            raise ParseError("version object has no 'version' field", json.dumps(raw))
        raw = raw["version"]
        if isinstance(raw, dict):
            raise ParseError("nested version object is not supported", json.dumps(raw))

    # bool is an int subclass and never a valid version
    if isinstance(raw, bool) or raw is None:
        raise ParseError(f"unexpected version type: {type(raw).__name__}")
    if isinstance(raw, int):
        return str(raw)
    if isinstance(raw, float):
        if raw != raw or raw in (float("inf"), float("-inf")):
            raise ParseError(f"version is not a finite number: {raw}")
        return f"{raw:.0f}"
    if isinstance(raw, str):
        candidate = raw.strip()
        if not (candidate.isascii() and candidate.isdigit()):
            raise ParseError(f"version string is not a decimal number: {raw!r}")
        return str(int(candidate))
    raise ParseError(f"unexpected version type: {type(raw).__name__}")
