"""Tool registry for the OpenAPI MCP Adapter."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping

from .errors import ToolNotFoundError
from .executors import JSON_CONTENT_TYPE, RequestExecutor, encode_body, resolve_bearer_token
from .introspection import build_introspection_tools
from .models import OBJECT, QUERY, OperationDescriptor, ParameterSpec, ToolDefinition
from .naming import ToolNameSynthesizer
from .openapi import extract_operations
from .validators import compile_operation_schema, compile_schema


logger = logging.getLogger(__name__)

EXECUTE_REQUEST = "execute-request"


class ToolRegistry:
    """Name to tool mapping, fixed once constructed."""

    def __init__(self, tools: Iterable[ToolDefinition]) -> None:
        entries: Dict[str, ToolDefinition] = {}
        for tool in tools:
            if tool.name in entries:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            entries[tool.name] = tool
        self._tools: Mapping[str, ToolDefinition] = MappingProxyType(entries)

    @classmethod
    def from_document(cls, document: Dict[str, Any], executor: RequestExecutor) -> "ToolRegistry":
        tools: List[ToolDefinition] = build_introspection_tools(document)
        tools.append(build_execute_request_tool(executor))

        synthesizer = ToolNameSynthesizer(reserved=(tool.name for tool in tools))
        operation_tools = build_operation_tools(extract_operations(document), executor, synthesizer)
        tools.extend(operation_tools)

        registry = cls(tools)
        logger.info(
            "Registered %s tools (%s generated from %s paths)",
            len(registry),
            len(operation_tools),
            len(document.get("paths") or {}),
        )
        return registry

    @property
    def tools(self) -> Mapping[str, ToolDefinition]:
        return self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(self._tools.values())

    def names(self) -> List[str]:
        return list(self._tools)

    def get(self, name: str) -> ToolDefinition:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def list_tools(self) -> List[Dict[str, Any]]:
        return [tool.describe() for tool in self._tools.values()]


def build_operation_tools(
    operations: Iterable[OperationDescriptor],
    executor: RequestExecutor,
    synthesizer: ToolNameSynthesizer,
) -> List[ToolDefinition]:
    tools: List[ToolDefinition] = []
    for operation in operations:
        name = synthesizer.assign(operation)
        if name is None:
            continue
        summary = operation.summary or operation.description or name.replace("-", " ")
        tools.append(
            ToolDefinition(
                name=name,
                description=f"{summary} (convenience wrapper for execute-request)",
                schema=compile_operation_schema(operation, model_name=name),
                handler=_operation_handler(executor, operation),
                operation=operation,
            )
        )
        if len(tools) % 20 == 0:
            logger.debug("Generated %s operation tools so far", len(tools))
    return tools


def _operation_handler(executor: RequestExecutor, operation: OperationDescriptor):  # type: ignore[no-untyped-def]
    async def handler(args: Dict[str, Any]) -> Any:
        return await executor.execute_operation(operation, args)

    return handler


def build_execute_request_tool(executor: RequestExecutor) -> ToolDefinition:
    specs = [
        ParameterSpec(
            name="path",
            kind=QUERY,
            required=True,
            description="API path (e.g., /asset_category or /asset_category/123)",
        ),
        ParameterSpec(
            name="method",
            kind=QUERY,
            required=True,
            description="HTTP method: GET, POST, PUT, PATCH, DELETE",
        ),
        ParameterSpec(
            name="params",
            kind=QUERY,
            value_type=OBJECT,
            description="Query parameters for GET requests",
        ),
        ParameterSpec(
            name="body",
            kind=QUERY,
            value_type=OBJECT,
            description="Body fields for POST/PUT/PATCH/DELETE requests",
        ),
        ParameterSpec(
            name="headers",
            kind=QUERY,
            value_type=OBJECT,
            description="Additional HTTP headers",
        ),
    ]

    async def handler(args: Dict[str, Any]) -> Any:
        method = args["method"].upper()
        headers = {str(k): str(v) for k, v in (args.get("headers") or {}).items()}
        content_type = next(
            (v for k, v in headers.items() if k.lower() == "content-type"), JSON_CONTENT_TYPE
        )
        authorization = args.get("Authorization") or next(
            (v for k, v in headers.items() if k.lower() == "authorization"), None
        )
        has_authorization = any(k.lower() == "authorization" for k in headers)
        token = resolve_bearer_token(
            args.get("bearerToken"),
            authorization,
            None if has_authorization else executor.fallback_token,
        )

        body = None
        if method != "GET" and args.get("body") is not None:
            body = encode_body(args["body"], content_type)

        return await executor.execute_request(
            args["path"],
            method,
            params=args.get("params") if method == "GET" else None,
            body=body,
            headers=headers,
            bearer_token=token,
            base_url=args.get("baseUrl"),
        )

    return ToolDefinition(
        name=EXECUTE_REQUEST,
        description=(
            "Execute any HTTP request to the API. Use this for exploring or custom requests."
        ),
        schema=compile_schema(EXECUTE_REQUEST, specs),
        handler=handler,
    )
