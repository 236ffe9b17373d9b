"""Error kinds raised by the adapter."""

from __future__ import annotations

from typing import Any, Iterable, List, Optional


class AdapterError(Exception):
    pass


class SchemaLoadError(AdapterError):
    """The OpenAPI document could not be fetched or parsed."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Failed to load OpenAPI schema from {source}: {reason}")
        self.source = source
        self.reason = reason


class ValidationError(AdapterError):
    """Resolved arguments do not satisfy a tool's parameter schema."""

    def __init__(self, message: str, fields: Optional[Iterable[str]] = None) -> None:
        self.fields: List[str] = list(fields or [])
        if self.fields:
            message = f"{message} (fields: {', '.join(self.fields)})"
        super().__init__(message)


class ToolNotFoundError(AdapterError):
    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool '{tool_name}' not found")
        self.tool_name = tool_name


class NetworkError(AdapterError):
    """The upstream API could not be reached."""


class UpstreamHTTPError(AdapterError):
    """The upstream API answered with a non-2xx status."""

    def __init__(self, status: int, status_text: str, data: Any = None) -> None:
        super().__init__(f"Upstream returned {status} {status_text}".rstrip())
        self.status = status
        self.status_text = status_text
        self.data = data
