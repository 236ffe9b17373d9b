"""MCP server setup for the OpenAPI MCP Adapter."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.server.dependencies import get_context, get_http_request
from fastmcp.tools.tool import Tool, ToolResult
from mcp.types import TextContent
from pydantic import PrivateAttr

from .arguments import ArgumentStore, InvocationContext
from .config import DEFAULT_API_BASE_URL, Settings
from .executors import RequestExecutor
from .models import ToolDefinition
from .openapi import SchemaLoader, server_base_url
from .service import ToolService
from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

SESSION_HEADER = "mcp-session-id"


class AdapterTool(Tool):
    """fastmcp tool that routes calls through :class:`ToolService`."""

    _service: ToolService = PrivateAttr()

    @classmethod
    def from_definition(cls, definition: ToolDefinition, service: ToolService) -> "AdapterTool":
        tool = cls(
            name=definition.name,
            description=definition.description,
            parameters=definition.schema.json_schema(),
        )
        tool._service = service
        return tool

    async def run(self, arguments: Dict[str, Any]) -> ToolResult:
        context = InvocationContext(
            raw=arguments,
            request_id=_current_request_id(),
            tool_name=self.name,
            origin=_current_origin(),
        )
        result = await self._service.call_tool(self.name, context)
        text = "\n".join(block["text"] for block in result["content"])
        if result.get("isError"):
            raise ToolError(text)
        return ToolResult(content=[TextContent(type="text", text=text)])


class ArgumentCaptureMiddleware:
    """Records ``tools/call`` arguments from raw request bodies by JSON-RPC id."""

    def __init__(self, app: Any, store: ArgumentStore) -> None:
        self.app = app
        self.store = store

    async def __call__(self, scope: Dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] != "http" or scope.get("method") != "POST":
            await self.app(scope, receive, send)
            return

        origin = request_origin(_scope_headers(scope).get(SESSION_HEADER), scope.get("client"))
        chunks: List[bytes] = []

        async def capture() -> Dict[str, Any]:
            message = await receive()
            if message["type"] == "http.request":
                chunks.append(message.get("body", b""))
                if not message.get("more_body", False):
                    self.record(b"".join(chunks), origin)
            return message

        await self.app(scope, capture, send)

    def record(self, body: bytes, origin: Optional[str] = None) -> None:
        try:
            payload = json.loads(body)
        except ValueError:
            return
        messages = payload if isinstance(payload, list) else [payload]
        for message in messages:
            if not isinstance(message, dict) or message.get("method") != "tools/call":
                continue
            params = message.get("params")
            if message.get("id") is None or not isinstance(params, dict):
                continue
            arguments = params.get("arguments")
            self.store.record(
                message["id"],
                arguments if isinstance(arguments, dict) else {},
                tool_name=params.get("name"),
                origin=origin,
            )


def request_origin(session_id: Optional[str], client: Any) -> Optional[str]:
    """Session id when the client has one, else the peer address."""
    if session_id:
        return f"session:{session_id}"
    if client:
        host, port = client[0], client[1]
        return f"peer:{host}:{port}"
    return None


def _scope_headers(scope: Dict[str, Any]) -> Dict[str, str]:
    return {
        key.decode("latin-1").lower(): value.decode("latin-1")
        for key, value in scope.get("headers") or []
    }


def _current_request_id() -> Optional[str]:
    try:
        return get_context().request_id
    except (RuntimeError, ValueError, LookupError):
        return None


def _current_origin() -> Optional[str]:
    try:
        request = get_http_request()
    except RuntimeError:
        return None
    return request_origin(request.headers.get(SESSION_HEADER), request.client)


async def build_server(settings: Settings) -> Tuple[FastMCP, Optional[Any], ToolService]:
    loader = SchemaLoader(
        api_token=settings.api_token,
        timeout_seconds=settings.api_timeout_seconds,
        verify_ssl=settings.api_verify_ssl,
    )
    document = await loader.load(settings.openapi_schema_path)

    base_url = (
        settings.api_base_url
        or server_base_url(document, settings.openapi_schema_path)
        or DEFAULT_API_BASE_URL
    )
    logger.info("Using API base URL: %s", base_url)

    executor = RequestExecutor(
        base_url=base_url,
        fallback_token=settings.api_key,
        timeout_seconds=settings.api_timeout_seconds,
        verify_ssl=settings.api_verify_ssl,
    )
    registry = ToolRegistry.from_document(document, executor)
    argument_store = ArgumentStore(
        max_entries=settings.adapter_argument_cache_size,
        ttl_seconds=settings.adapter_argument_cache_seconds,
    )
    service = ToolService(
        registry,
        argument_store=argument_store,
        max_concurrency=settings.adapter_max_concurrency,
        result_format=settings.result_format(),
    )

    mcp = FastMCP(settings.service_name, instructions=_instructions(document))
    for definition in registry:
        mcp.add_tool(AdapterTool.from_definition(definition, service))
        logger.debug("Registered tool: %s", definition.name)

    app = _get_http_app(mcp, settings)
    if app:
        app.add_middleware(ArgumentCaptureMiddleware, store=argument_store)
        _attach_cors(app)
        _attach_healthcheck(app, registry)

    return mcp, app, service


def _attach_healthcheck(app, registry: ToolRegistry) -> None:  # type: ignore[no-untyped-def]
    async def healthcheck(_request):  # type: ignore[no-untyped-def]
        from starlette.responses import JSONResponse

        return JSONResponse({"status": "ok", "toolCount": len(registry)})

    app.add_route("/health", healthcheck, methods=["GET"])


def _instructions(document: Dict[str, Any]) -> str:
    title = (document.get("info") or {}).get("title") or "the API"
    return (
        f"Tools generated from the OpenAPI description of {title}. "
        "Use list-endpoints and get-endpoint to explore, the generated tools or "
        "execute-request to call the API."
    )


def _get_http_app(mcp: FastMCP, settings: Settings):  # type: ignore[no-untyped-def]
    transport = settings.adapter_transport.lower()
    if transport in {"http"}:
        return mcp.http_app(transport="http", stateless_http=True, json_response=True)
    if transport in {"streamable-http", "streamablehttp"}:
        return mcp.http_app(transport="streamable-http", stateless_http=True, json_response=True)
    if transport in {"sse"}:
        return mcp.http_app(transport="sse")
    return None


def _attach_cors(app) -> None:  # type: ignore[no-untyped-def]
    from starlette.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Cache-Control", "Accept"],
    )
