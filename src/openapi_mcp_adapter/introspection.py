"""Reflection tools that describe the loaded OpenAPI document."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import ValidationError
from .models import QUERY, ParameterSpec, ToolDefinition
from .openapi import resolve_ref
from .validators import compile_schema


ALL_METHODS = ("get", "post", "put", "delete", "patch", "options", "head")


def _string(name: str, description: str, required: bool = True, **kwargs: Any) -> ParameterSpec:
    return ParameterSpec(name=name, kind=QUERY, required=required, description=description, **kwargs)


_PATH = _string("path", "API path (e.g., /user, /asset_category)")
_METHOD = _string("method", "HTTP method (GET, POST, PUT, DELETE)")


# Paths and Components objects may carry ``x-`` extensions and ``$ref``
# entries; the helpers below only hand out resolved mappings.


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _path_items(document: Dict[str, Any]) -> Iterator[Tuple[str, Dict[str, Any]]]:
    for path, path_item in _mapping(document.get("paths")).items():
        path_item = resolve_ref(document, path_item)
        if isinstance(path_item, dict):
            yield path, path_item


def _path_item(document: Dict[str, Any], path: str) -> Optional[Dict[str, Any]]:
    path_item = resolve_ref(document, _mapping(document.get("paths")).get(path))
    return path_item if isinstance(path_item, dict) else None


def _operations(path_item: Dict[str, Any]) -> Iterator[Tuple[str, Dict[str, Any]]]:
    for method, operation in path_item.items():
        if str(method).lower() in ALL_METHODS and isinstance(operation, dict):
            yield str(method).lower(), operation


def _operation(document: Dict[str, Any], path: str, method: str) -> Optional[Dict[str, Any]]:
    path_item = _path_item(document, path) or {}
    if method.lower() not in ALL_METHODS:
        return None
    operation = path_item.get(method.lower())
    return operation if isinstance(operation, dict) else None


def _parameters(document: Dict[str, Any], values: Any) -> List[Dict[str, Any]]:
    if not isinstance(values, list):
        return []
    resolved = (resolve_ref(document, value) for value in values)
    return [parameter for parameter in resolved if isinstance(parameter, dict)]


def _components(document: Dict[str, Any]) -> Iterator[Tuple[str, Dict[str, Any]]]:
    for component_type, items in _mapping(document.get("components")).items():
        if isinstance(items, dict):
            yield component_type, items


def list_endpoints(document: Dict[str, Any]) -> Dict[str, Dict[str, str]]:
    path_map: Dict[str, Dict[str, str]] = {}
    for path, path_item in _path_items(document):
        path_map[path] = {
            method.upper(): operation.get("summary") or "No summary"
            for method, operation in _operations(path_item)
        }
    return path_map


def get_endpoint(document: Dict[str, Any], path: str, method: str) -> Any:
    if _path_item(document, path) is None:
        return f"Path {path} not found"
    operation = _operation(document, path, method)
    if not operation:
        return f"Method {method} not found for path {path}"
    endpoint = {
        "path": path,
        "method": method.upper(),
        "summary": operation.get("summary"),
        "description": operation.get("description"),
        "tags": operation.get("tags"),
        "parameters": operation.get("parameters"),
        "requestBody": operation.get("requestBody"),
        "responses": operation.get("responses"),
        "security": operation.get("security"),
        "deprecated": operation.get("deprecated"),
    }
    return {key: value for key, value in endpoint.items() if value is not None}


def get_request_body(document: Dict[str, Any], path: str, method: str) -> Any:
    operation = _operation(document, path, method)
    if not operation:
        return f"Operation {method} {path} not found"
    request_body = operation.get("requestBody")
    if not request_body:
        return f"No request body defined for {method} {path}"
    return request_body


def get_response_schema(
    document: Dict[str, Any], path: str, method: str, status_code: str = "200"
) -> Any:
    operation = _operation(document, path, method) or {}
    responses = _mapping(operation.get("responses"))
    response = responses.get(str(status_code)) or responses.get("default")
    if not response:
        return f"Response {status_code} not found for {method} {path}"
    return response


def get_path_parameters(document: Dict[str, Any], path: str, method: Optional[str] = None) -> Any:
    path_item = _path_item(document, path)
    if not path_item:
        return f"Path {path} not found"
    parameters = _parameters(document, path_item.get("parameters"))
    if method:
        operation = _operation(document, path, method) or {}
        parameters.extend(_parameters(document, operation.get("parameters")))
    if not parameters:
        return f"No parameters found for {method or 'all methods of'} {path}"
    return parameters


def list_components(document: Dict[str, Any]) -> Dict[str, List[str]]:
    return {component_type: list(items.keys()) for component_type, items in _components(document)}


def get_component(document: Dict[str, Any], component_type: str, name: str) -> Any:
    component = _mapping(_mapping(document.get("components")).get(component_type)).get(name)
    if not component:
        return f"Component {component_type}.{name} not found"
    return component


def list_security_schemes(document: Dict[str, Any]) -> Any:
    schemes = _mapping(_mapping(document.get("components")).get("securitySchemes"))
    result: Dict[str, Any] = {}
    for name, scheme in schemes.items():
        if not isinstance(scheme, dict):
            continue
        entry: Dict[str, Any] = {"type": scheme.get("type"), "description": scheme.get("description")}
        if scheme.get("type") == "oauth2":
            entry["flows"] = list(_mapping(scheme.get("flows")).keys())
        elif scheme.get("type") == "apiKey":
            entry["in"] = scheme.get("in")
            entry["name"] = scheme.get("name")
        elif scheme.get("type") == "http":
            entry["scheme"] = scheme.get("scheme")
        result[name] = entry
    if not result:
        return "No security schemes defined in this API"
    return result


def search_schema(document: Dict[str, Any], pattern: str) -> Any:
    try:
        regex = re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        raise ValidationError(f"Invalid search pattern: {exc}", ["pattern"]) from exc

    def matches(value: Any) -> bool:
        return bool(regex.search(str(value or "")))

    results: Dict[str, List[str]] = {
        "paths": [],
        "operations": [],
        "parameters": [],
        "components": [],
        "securitySchemes": [],
    }

    for path, path_item in _path_items(document):
        if matches(path):
            results["paths"].append(path)
        for method in ALL_METHODS:
            operation = path_item.get(method)
            if not isinstance(operation, dict):
                continue
            label = f"{method.upper()} {path}"
            tags = operation.get("tags") if isinstance(operation.get("tags"), list) else []
            if (
                matches(operation.get("summary"))
                or matches(operation.get("description"))
                or any(matches(tag) for tag in tags)
            ):
                results["operations"].append(label)
            for parameter in _parameters(document, operation.get("parameters")):
                if matches(parameter.get("name")) or matches(parameter.get("description")):
                    results["parameters"].append(f"{parameter.get('name')} ({label})")

    for component_type, items in _components(document):
        for name, component in items.items():
            description = component.get("description") if isinstance(component, dict) else None
            if matches(name) or matches(description):
                results["components"].append(f"{component_type}.{name}")

    schemes = _mapping(_mapping(document.get("components")).get("securitySchemes"))
    for name, scheme in schemes.items():
        if matches(name) or matches(_mapping(scheme).get("description")):
            results["securitySchemes"].append(name)

    pruned = {key: value for key, value in results.items() if value}
    if not pruned:
        return f'No matches found for "{pattern}"'
    return pruned


def suggest_prompts(document: Dict[str, Any]) -> Dict[str, Any]:
    prompts: List[Dict[str, Any]] = []
    for path, path_item in _path_items(document):
        for method, _ in _operations(path_item):
            label = f"{method.upper()} {path}"
            prompts.append(
                {
                    "name": label,
                    "description": f"Get details for {label}",
                    "tool": "get-endpoint",
                    "arguments": {"path": path, "method": method},
                    "example": f"What does {label} do?",
                }
            )
    prompts.append(
        {
            "name": "List all endpoints",
            "description": "Lists all API endpoints and methods",
            "tool": "list-endpoints",
            "arguments": {},
            "example": "What endpoints does this API have?",
        }
    )
    prompts.append(
        {
            "name": "List all components",
            "description": "List all OpenAPI schema components",
            "tool": "list-components",
            "arguments": {},
            "example": "Show all schema components",
        }
    )
    return {"prompts": prompts}


def build_introspection_tools(document: Dict[str, Any]) -> List[ToolDefinition]:
    """Reflection tools bound to ``document``."""

    async def _list_endpoints(args: Dict[str, Any]) -> Any:
        return list_endpoints(document)

    async def _get_endpoint(args: Dict[str, Any]) -> Any:
        return get_endpoint(document, args["path"], args["method"])

    async def _get_request_body(args: Dict[str, Any]) -> Any:
        return get_request_body(document, args["path"], args["method"])

    async def _get_response_schema(args: Dict[str, Any]) -> Any:
        return get_response_schema(document, args["path"], args["method"], args["statusCode"])

    async def _get_path_parameters(args: Dict[str, Any]) -> Any:
        return get_path_parameters(document, args["path"], args.get("method"))

    async def _list_components(args: Dict[str, Any]) -> Any:
        return list_components(document)

    async def _get_component(args: Dict[str, Any]) -> Any:
        component_type = args.get("type") or args.get("component_type")
        name = args.get("name") or args.get("component_name")
        if not component_type or not name:
            raise ValidationError("Component type and name are required", ["type", "name"])
        return get_component(document, component_type, name)

    async def _list_security_schemes(args: Dict[str, Any]) -> Any:
        return list_security_schemes(document)

    async def _search_schema(args: Dict[str, Any]) -> Any:
        return search_schema(document, args["pattern"])

    async def _prompts_list(args: Dict[str, Any]) -> Any:
        return suggest_prompts(document)

    async def _debug_params(args: Dict[str, Any]) -> Any:
        return f"Raw arguments received:\n{json.dumps(args, indent=2, default=str)}"

    definitions = [
        (
            "list-endpoints",
            "Lists all API paths and their HTTP methods with summaries, organized by path",
            [],
            _list_endpoints,
        ),
        (
            "get-endpoint",
            "Gets detailed information about a specific API endpoint",
            [_PATH, _METHOD],
            _get_endpoint,
        ),
        (
            "get-request-body",
            "Gets the request body schema for a specific endpoint",
            [_PATH, _METHOD],
            _get_request_body,
        ),
        (
            "get-response-schema",
            "Gets the response schema for a specific endpoint, method, and status code",
            [
                _PATH,
                _METHOD,
                _string(
                    "statusCode",
                    "HTTP status code (default: 200)",
                    default="200",
                    has_default=True,
                ),
            ],
            _get_response_schema,
        ),
        (
            "get-path-parameters",
            "Gets the parameters for a specific path",
            [
                _PATH,
                _string(
                    "method",
                    "HTTP method (optional - if not provided, shows all methods)",
                    required=False,
                ),
            ],
            _get_path_parameters,
        ),
        (
            "list-components",
            "Lists all schema components (schemas, parameters, responses, etc.)",
            [],
            _list_components,
        ),
        (
            "get-component",
            "Gets detailed definition for a specific component",
            [
                _string("type", "Component type (e.g., schemas, securitySchemes)", required=False),
                _string("name", "Component name (e.g., user, asset_category)", required=False),
            ],
            _get_component,
        ),
        (
            "list-security-schemes",
            "Lists all available security schemes",
            [],
            _list_security_schemes,
        ),
        (
            "search-schema",
            "Searches across paths, operations, and schemas",
            [_string("pattern", "Search pattern (case-insensitive regex)")],
            _search_schema,
        ),
        (
            "prompts-list",
            "Suggests useful prompts for this OpenAPI schema",
            [],
            _prompts_list,
        ),
        (
            "debug-params",
            "Debug what parameters are actually received",
            [],
            _debug_params,
        ),
    ]

    return [
        ToolDefinition(
            name=name,
            description=description,
            schema=compile_schema(name, specs),
            handler=handler,
        )
        for name, description, specs, handler in definitions
    ]
