"""
Shared fixtures for the OpenAPI MCP Adapter tests.

The sample document covers the shapes the adapter has to cope with:
query parameters with enum/default, OpenAPI 3 JSON bodies (inline and via
``$ref``), shared path-level parameters, name collisions and operations
that fall outside the naming table.
"""

import copy
from typing import Any, Dict, List, Optional

import httpx
import pytest

from openapi_mcp_adapter.executors import RequestExecutor
from openapi_mcp_adapter.tool_registry import ToolRegistry


BASE_URL = "https://api.example.com/v1"


SAMPLE_DOCUMENT: Dict[str, Any] = {
    "openapi": "3.0.3",
    "info": {"title": "Sample API", "version": "1.0.0"},
    "servers": [{"url": BASE_URL}],
    "paths": {
        "/user": {
            "get": {
                "summary": "Search users",
                "tags": ["users"],
                "parameters": [
                    {"name": "id", "in": "query", "required": True, "schema": {"type": "string"}},
                    {"name": "limit", "in": "query", "schema": {"type": "integer", "default": 10}},
                    {
                        "name": "status",
                        "in": "query",
                        "description": "Account status",
                        "schema": {"type": "string", "enum": ["active", "inactive"]},
                    },
                ],
            },
            "post": {
                "summary": "Create user",
                "requestBody": {
                    "content": {
                        "application/json": {"schema": {"$ref": "#/components/schemas/NewUser"}}
                    }
                },
            },
        },
        "/user/{id}": {
            "get": {"summary": "Read user"},
            "post": {"summary": "Update user"},
            "put": {"summary": "Replace user"},
            "patch": {"summary": "Patch user"},
            "delete": {"summary": "Delete user"},
        },
        "/widget": {
            "post": {
                "summary": "Create widget",
                "requestBody": {
                    "content": {
                        "application/json": {
                            "schema": {
                                "type": "object",
                                "required": ["a"],
                                "properties": {
                                    "a": {"type": "string"},
                                    "b": {"type": "string"},
                                },
                            }
                        }
                    }
                },
            }
        },
        "/widget/{widgetId}/parts": {
            "get": {"summary": "List widget parts"},
            "delete": {"summary": "Remove widget parts"},
        },
        "/widget/{widgetId}": {"delete": {"summary": "Delete widget"}},
        "/widget/{widgetId}/items": {"delete": {"summary": "Delete widget items"}},
        "/order/{orderId}": {
            "parameters": [
                {"name": "orderId", "in": "path", "required": True, "schema": {"type": "integer"}}
            ],
            "get": {"summary": "Read order"},
        },
        "/report": {"put": {"summary": "Replace report"}, "options": {"summary": "CORS"}},
    },
    "components": {
        "schemas": {
            "NewUser": {
                "type": "object",
                "description": "User to create",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string", "description": "Full name"},
                    "age": {"type": "integer"},
                },
            }
        },
        "securitySchemes": {
            "bearerAuth": {"type": "http", "scheme": "bearer", "description": "JWT bearer"},
            "apiKeyAuth": {"type": "apiKey", "in": "header", "name": "X-API-Key"},
        },
    },
}


class RecordingTransport:
    """Mock upstream: records every request and answers with a canned response."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.json_body: Any = {"ok": True}
        self.text_body: Any = None
        self.error: Optional[Exception] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.text_body is not None:
            return httpx.Response(self.status_code, text=self.text_body)
        return httpx.Response(self.status_code, json=self.json_body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def document() -> Dict[str, Any]:
    return copy.deepcopy(SAMPLE_DOCUMENT)


@pytest.fixture
def upstream() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def executor(upstream) -> RequestExecutor:
    return RequestExecutor(base_url=BASE_URL, transport=upstream.transport)


@pytest.fixture
def registry(document, executor) -> ToolRegistry:
    return ToolRegistry.from_document(document, executor)
