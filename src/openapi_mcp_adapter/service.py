"""Tool call boundary: argument recovery, validation, execution, formatting."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

import yaml

from .arguments import ArgumentStore, InvocationContext, resolve_arguments
from .errors import AdapterError, NetworkError, UpstreamHTTPError
from .logging import redact_payload
from .models import ExecutionOutcome
from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)


def to_yaml(payload: Any) -> str:
    return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True, width=100)


def outcome_error(outcome: ExecutionOutcome) -> Optional[AdapterError]:
    if outcome.success:
        return None
    if outcome.is_network_error:
        return NetworkError(outcome.error or "Network Error")
    return UpstreamHTTPError(outcome.status or 0, outcome.status_text or "", outcome.data)


class ToolService:
    """
    Executes registered tools on behalf of a transport.

    Every failure of a single call (unknown tool, invalid arguments,
    network or upstream errors, unexpected exceptions) comes back as a
    result dict with ``isError`` set; nothing raises past ``call_tool``
    except cancellation.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        argument_store: Optional[ArgumentStore] = None,
        max_concurrency: int = 20,
        result_format: str = "yaml",
    ) -> None:
        self.registry = registry
        self.argument_store = argument_store
        self.result_format = result_format
        self.semaphore = asyncio.Semaphore(max_concurrency)

    def list_tools(self) -> List[Dict[str, Any]]:
        return self.registry.list_tools()

    async def call_tool(self, name: str, context: InvocationContext) -> Dict[str, Any]:
        async with self.semaphore:
            try:
                tool = self.registry.get(name)
                raw_args = resolve_arguments(replace(context, tool_name=name), self.argument_store)
                args = tool.schema.validate(raw_args).as_dict()
                logger.info("Executing tool=%s args=%s", name, redact_payload(args))
                result = await tool.handler(args)
            except AdapterError as exc:
                logger.warning("Tool %s rejected: %s", name, exc)
                return self._format_error(name, exc)
            except Exception as exc:
                logger.exception("Tool %s failed", name)
                return self._format_error(name, exc)

            return self._format_result(name, result)

    def serialize(self, payload: Any) -> str:
        if isinstance(payload, str):
            return payload
        if self.result_format == "json":
            return json.dumps(payload, indent=2, default=str)
        return to_yaml(payload)

    def _format_result(self, name: str, result: Any) -> Dict[str, Any]:
        if isinstance(result, ExecutionOutcome):
            error = outcome_error(result)
            if error is not None:
                logger.warning("Tool %s: %s", name, error)
            formatted: Dict[str, Any] = {
                "content": [{"type": "text", "text": self.serialize(result.to_payload())}]
            }
            if error is not None:
                formatted["isError"] = True
            return formatted
        return {"content": [{"type": "text", "text": self.serialize(result)}]}

    def _format_error(self, name: str, exc: Exception) -> Dict[str, Any]:
        return {
            "content": [{"type": "text", "text": f"{name} failed: {exc}"}],
            "isError": True,
        }
