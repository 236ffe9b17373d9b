"""Tests for the tool registry"""

import json

import pytest

from openapi_mcp_adapter.errors import ToolNotFoundError
from openapi_mcp_adapter.tool_registry import EXECUTE_REQUEST, ToolRegistry


INTROSPECTION_TOOLS = {
    "list-endpoints",
    "get-endpoint",
    "get-request-body",
    "get-response-schema",
    "get-path-parameters",
    "list-components",
    "get-component",
    "list-security-schemes",
    "search-schema",
    "prompts-list",
    "debug-params",
}

OPERATION_TOOLS = {
    "search-user",
    "create-user",
    "read-user",
    "update-user",
    "update-user-put",
    "patch-user",
    "delete-user",
    "create-widget",
    "read-widget",
    "delete-widget",
    "delete-widget-delete",
    "read-order",
}


def test_registered_names(registry):
    assert set(registry.names()) == INTROSPECTION_TOOLS | {EXECUTE_REQUEST} | OPERATION_TOOLS
    assert len(registry) == len(INTROSPECTION_TOOLS) + 1 + len(OPERATION_TOOLS)


def test_collision_loser_is_dropped(registry):
    widget_deletes = [
        tool.operation.path
        for tool in registry
        if tool.operation is not None and tool.operation.verb == "DELETE"
        and tool.operation.resource == "widget"
    ]

    assert widget_deletes == ["/widget/{widgetId}/parts", "/widget/{widgetId}"]


def test_operation_tool_description(registry):
    tool = registry.get("search-user")

    assert tool.description == "Search users (convenience wrapper for execute-request)"
    assert tool.operation.path == "/user"


def test_unknown_tool(registry):
    with pytest.raises(ToolNotFoundError) as exc_info:
        registry.get("nope")

    assert "nope" in str(exc_info.value)


def test_mapping_is_read_only(registry):
    with pytest.raises(TypeError):
        registry.tools["extra"] = registry.get("search-user")


def test_duplicate_names_rejected(registry):
    tool = registry.get("search-user")

    with pytest.raises(ValueError):
        ToolRegistry([tool, tool])


def test_listing_is_idempotent(registry):
    first = registry.list_tools()
    second = registry.list_tools()

    assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)
    assert [entry["name"] for entry in first] == registry.names()


def test_listing_shape(registry):
    entry = next(item for item in registry.list_tools() if item["name"] == "read-order")

    assert entry["inputSchema"]["properties"]["orderId"]["type"] == "number"
    assert entry["inputSchema"]["required"] == ["orderId"]
    assert entry["inputSchema"]["additionalProperties"] is True


def test_empty_document_still_has_fixed_tools(executor):
    registry = ToolRegistry.from_document({"openapi": "3.0.0", "paths": {}}, executor)

    assert set(registry.names()) == INTROSPECTION_TOOLS | {EXECUTE_REQUEST}


class TestExecuteRequestTool:
    @pytest.mark.asyncio
    async def test_get_with_params(self, registry, upstream):
        tool = registry.get(EXECUTE_REQUEST)
        args = tool.schema.validate(
            {"path": "/user", "method": "get", "params": {"id": "1"}, "body": {"x": 1}}
        ).as_dict()

        outcome = await tool.handler(args)

        assert outcome.success is True
        assert upstream.last.method == "GET"
        assert str(upstream.last.url) == "https://api.example.com/v1/user?id=1"
        assert upstream.last.content == b""

    @pytest.mark.asyncio
    async def test_post_form_body(self, registry, upstream):
        tool = registry.get(EXECUTE_REQUEST)
        args = tool.schema.validate(
            {
                "path": "/widget",
                "method": "POST",
                "body": {"a": "1", "b": "2"},
                "headers": {"content-type": "application/x-www-form-urlencoded"},
                "params": {"ignored": "yes"},
            }
        ).as_dict()

        await tool.handler(args)

        assert upstream.last.content == b"a=1&b=2"
        assert "ignored" not in upstream.last.url.params

    @pytest.mark.asyncio
    async def test_bearer_token_and_base_url(self, registry, upstream):
        tool = registry.get(EXECUTE_REQUEST)
        args = tool.schema.validate(
            {
                "path": "/user/1",
                "method": "DELETE",
                "bearerToken": "tok",
                "baseUrl": "https://other.example.com",
            }
        ).as_dict()

        await tool.handler(args)

        assert str(upstream.last.url) == "https://other.example.com/user/1"
        assert upstream.last.headers["Authorization"] == "Bearer tok"

    def test_path_and_method_required(self, registry):
        schema = registry.get(EXECUTE_REQUEST).schema

        assert schema.required == ["path", "method"]
