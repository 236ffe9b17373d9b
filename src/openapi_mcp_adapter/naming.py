"""Deterministic tool names derived from path and verb."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Set

from .models import OperationDescriptor


logger = logging.getLogger(__name__)


def base_tool_name(operation: OperationDescriptor) -> Optional[str]:
    """Name from the verb/path-parameter table, or None when unclassified."""
    verb = operation.verb.upper()
    resource = operation.resource
    has_path_params = bool(operation.path_params)

    if verb == "GET" and not has_path_params:
        return f"search-{resource}"
    if verb == "POST" and not has_path_params:
        return f"create-{resource}"
    if verb == "GET":
        return f"read-{resource}"
    if verb == "POST":
        return f"update-{resource}"
    if verb == "PUT" and has_path_params:
        return f"update-{resource}-put"
    if verb == "PATCH" and has_path_params:
        return f"patch-{resource}"
    if verb == "DELETE":
        return f"delete-{resource}"
    return None


class ToolNameSynthesizer:
    """Hands out unique names; a name is never issued twice."""

    def __init__(self, reserved: Iterable[str] = ()) -> None:
        self._taken: Set[str] = set(reserved)

    def __contains__(self, name: str) -> bool:
        return name in self._taken

    def assign(self, operation: OperationDescriptor) -> Optional[str]:
        name = base_tool_name(operation)
        if name is None:
            logger.info(
                "Skipping unclassified operation %s %s", operation.verb, operation.path
            )
            return None

        if name in self._taken:
            name = f"{name}-{operation.verb.lower()}"
        if name in self._taken:
            logger.warning(
                "Dropping %s %s: tool name %s already registered",
                operation.verb,
                operation.path,
                name,
            )
            return None

        self._taken.add(name)
        return name
