"""Response sanitization — keeps credentials out of logs and error messages."""

from __future__ import annotations

import re

_DEFAULT_SENSITIVE_FIELDS: frozenset[str] = frozenset(
    {"password", "token", "secret", "key", "auth"}
)

_INVALID_PASSWORD = re.compile(r'invalid password:\s*[^\s"]*')

_GENERIC_CREDENTIALS_MESSAGE = (
    "An error occurred. Please check your credentials, username, password, "
    "and endpoint. Sensitive details have been hidden for security."
)


class ResponseSanitizer:
    """
    Redacts secrets from raw Data Plane API response bodies.

    Bodies are free text (often, but not always, JSON), so redaction is
    pattern based: ``"<field>": "<value>"`` pairs for every sensitive field
    and ``invalid password: <value>`` fragments.
    """

    def __init__(self, *, sensitive_fields: set[str] | None = None) -> None:
        names = {f.lower() for f in (sensitive_fields or _DEFAULT_SENSITIVE_FIELDS)}
        self._field_patterns = [
            (name, re.compile(rf'"{re.escape(name)}":\s*"[^"]*"', re.IGNORECASE))
            for name in sorted(names)
        ]

    def sanitize(self, body: str) -> str:
        """Return a copy of ``body`` safe for logging."""
        if not body:
            return body
        for name, pattern in self._field_patterns:
            body = pattern.sub(f'"{name}": "***"', body)
        return _INVALID_PASSWORD.sub("invalid password: ***", body)


def safe_error_message(message: str) -> str:
    """Replace a user-facing error message that mentions credentials."""
    lowered = message.lower()
    if any(word in lowered for word in ("password", "authorization", "token")):
        return _GENERIC_CREDENTIALS_MESSAGE
    return message


# Default instance for convenience
default_sanitizer = ResponseSanitizer()


def sanitize_body(body: str) -> str:
    return default_sanitizer.sanitize(body)
