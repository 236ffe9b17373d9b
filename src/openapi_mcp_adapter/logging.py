"""Logging setup and redaction of credentials in logged arguments."""

from __future__ import annotations

import logging
import re
import sys
from typing import Any, Dict, Mapping


REDACTED = "***REDACTED***"

_SENSITIVE_KEYS = re.compile(
    r"(token|secret|api[_-]?key|password|authorization|cookie)", re.IGNORECASE
)


def configure_logging(level: str) -> None:
    # stdout carries the stdio transport
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stderr,
    )
    # per-request client chatter
    logging.getLogger("httpx").setLevel(logging.WARNING)


def redact_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of ``payload`` with credential-like keys masked at any depth."""
    return {
        key: REDACTED if _SENSITIVE_KEYS.search(str(key)) else _redact_value(value)
        for key, value in payload.items()
    }


def _redact_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return redact_payload(value)
    if isinstance(value, (list, tuple)):
        return [_redact_value(item) for item in value]
    if isinstance(value, str) and value.startswith("Bearer "):
        return REDACTED
    return value
