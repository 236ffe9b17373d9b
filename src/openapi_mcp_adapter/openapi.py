"""OpenAPI document loader and operation extractor."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple
from urllib.parse import urljoin

import httpx
import yaml

from .errors import SchemaLoadError
from .models import (
    FORM,
    JSON_BODY,
    NUMBER,
    PATH,
    QUERY,
    STRING,
    OperationDescriptor,
    ParameterSpec,
)


logger = logging.getLogger(__name__)

HTTP_VERBS = ("get", "post", "put", "delete", "patch")
BODY_CONTENT_TYPES = ("application/x-www-form-urlencoded", "application/json")

_PATH_PARAM = re.compile(r"{([^}]+)}")
_MAX_REF_DEPTH = 32


def is_remote(source: str) -> bool:
    return source.startswith(("http://", "https://"))


class SchemaLoader:
    def __init__(
        self,
        api_token: Optional[str] = None,
        timeout_seconds: float = 30,
        verify_ssl: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_token = api_token
        self.timeout_seconds = timeout_seconds
        self.verify_ssl = verify_ssl
        self._transport = transport

    async def load(self, source: Optional[str]) -> Dict[str, Any]:
        if not source:
            raise SchemaLoadError("<unset>", "no schema path or URL configured")
        if is_remote(source):
            document = await self._load_remote(source)
        else:
            document = self._load_local(source)

        if not isinstance(document, dict):
            raise SchemaLoadError(source, "document is not a mapping")

        logger.info(
            "Loaded OpenAPI schema from %s (version=%s, paths=%s)",
            source,
            document.get("openapi") or document.get("swagger"),
            len(document.get("paths") or {}),
        )
        return document

    async def _load_remote(self, url: str) -> Any:
        headers: Dict[str, str] = {}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, verify=self.verify_ssl, transport=self._transport
            ) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise SchemaLoadError(url, str(exc) or type(exc).__name__) from exc

        if response.status_code != 200:
            logger.error("Schema fetch failed: %s %s body=%s", response.status_code, url, response.text)
            raise SchemaLoadError(url, f"HTTP {response.status_code} {response.reason_phrase}")

        content_type = response.headers.get("content-type", "")
        return _parse_text(url, response.text, prefer_yaml="yaml" in content_type)

    def _load_local(self, path: str) -> Any:
        try:
            text = Path(path).expanduser().resolve().read_text(encoding="utf-8")
        except OSError as exc:
            raise SchemaLoadError(path, str(exc)) from exc
        return _parse_text(path, text, prefer_yaml=True)


def _parse_text(source: str, text: str, prefer_yaml: bool) -> Any:
    try:
        if prefer_yaml:
            return yaml.safe_load(text)
        try:
            return json.loads(text)
        except ValueError:
            return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise SchemaLoadError(source, f"unparseable document: {exc}") from exc


def resolve_ref(document: Dict[str, Any], node: Any) -> Any:
    """Follow local ``$ref`` pointers until a concrete node is reached."""
    seen = 0
    while isinstance(node, dict) and isinstance(node.get("$ref"), str):
        ref = node["$ref"]
        if not ref.startswith("#/") or seen >= _MAX_REF_DEPTH:
            return node
        target: Any = document
        for part in ref[2:].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(target, dict) or part not in target:
                logger.debug("Unresolvable reference %s", ref)
                return node
            target = target[part]
        node = target
        seen += 1
    return node


def server_base_url(document: Dict[str, Any], source: Optional[str] = None) -> Optional[str]:
    """Base URL declared by the document: OpenAPI 3 servers, then Swagger 2 host."""
    servers = document.get("servers") or []
    if servers and isinstance(servers[0], dict) and servers[0].get("url"):
        server = servers[0]
        url = str(server["url"])
        for name, variable in (server.get("variables") or {}).items():
            if isinstance(variable, dict) and "default" in variable:
                url = url.replace(f"{{{name}}}", str(variable["default"]))
        if not is_remote(url) and source and is_remote(source):
            url = urljoin(source, url)
        return url

    host = document.get("host")
    if host:
        schemes = document.get("schemes") or ["https"]
        return f"{schemes[0]}://{host}{document.get('basePath') or ''}"
    return None


def iter_operations(document: Dict[str, Any]) -> Iterator[Tuple[str, str, Dict[str, Any], Dict[str, Any]]]:
    """Yield ``(path, verb, operation, path_item)`` for every recognized verb."""
    for path, path_item in (document.get("paths") or {}).items():
        path_item = resolve_ref(document, path_item)
        if not isinstance(path_item, dict):
            continue
        for method, operation in path_item.items():
            if method.lower() not in HTTP_VERBS or not isinstance(operation, dict):
                continue
            yield path, method.lower(), operation, path_item


def extract_operations(document: Dict[str, Any]) -> List[OperationDescriptor]:
    operations: List[OperationDescriptor] = []
    for path, verb, operation, path_item in iter_operations(document):
        operations.append(_extract_operation(document, path, verb, operation, path_item))
    return operations


def _extract_operation(
    document: Dict[str, Any],
    path: str,
    verb: str,
    operation: Dict[str, Any],
    path_item: Dict[str, Any],
) -> OperationDescriptor:
    parameters = [
        resolve_ref(document, parameter)
        for parameter in [*(path_item.get("parameters") or []), *(operation.get("parameters") or [])]
    ]
    parameters = [p for p in parameters if isinstance(p, dict) and p.get("name")]

    defined: set[str] = set()

    def claim(spec: ParameterSpec) -> bool:
        if spec.name in defined:
            return False
        defined.add(spec.name)
        return True

    declared_path = {p["name"]: p for p in parameters if p.get("in") == PATH}
    path_names = list(dict.fromkeys([*_PATH_PARAM.findall(path), *declared_path]))
    path_params = []
    for name in path_names:
        spec = _parameter_spec(
            document, declared_path.get(name, {"name": name}), PATH, f"Path parameter: {name}"
        )
        spec = replace(spec, required=True)
        if claim(spec):
            path_params.append(spec)

    query_params = [
        spec
        for spec in (
            _parameter_spec(document, p, QUERY, f"Query parameter: {p['name']}")
            for p in parameters
            if p.get("in") == "query"
        )
        if claim(spec)
    ]
    form_params = [
        spec
        for spec in (
            _parameter_spec(document, p, FORM, f"Form field: {p['name']}")
            for p in parameters
            if p.get("in") == "formData"
        )
        if claim(spec)
    ]

    body_properties = [
        spec for spec in _body_properties(document, operation, parameters) if claim(spec)
    ]

    return OperationDescriptor(
        path=path,
        verb=verb.upper(),
        path_params=tuple(path_params),
        query_params=tuple(query_params),
        form_params=tuple(form_params),
        body_properties=tuple(body_properties),
        description=operation.get("description") or "",
        summary=operation.get("summary") or "",
        operation_id=operation.get("operationId"),
    )


def _body_properties(
    document: Dict[str, Any], operation: Dict[str, Any], parameters: List[Dict[str, Any]]
) -> Iterator[ParameterSpec]:
    schemas: List[Any] = []
    request_body = resolve_ref(document, operation.get("requestBody")) or {}
    content = (request_body.get("content") or {}) if isinstance(request_body, dict) else {}
    for content_type in BODY_CONTENT_TYPES:
        media = content.get(content_type) or {}
        schemas.append(media.get("schema"))
    # Swagger 2 body parameter
    for parameter in parameters:
        if parameter.get("in") == "body":
            schemas.append(parameter.get("schema"))

    for schema in schemas:
        schema = resolve_ref(document, schema)
        if not isinstance(schema, dict):
            continue
        properties = schema.get("properties")
        if schema.get("type") != "object" or not isinstance(properties, dict):
            continue
        required_fields = set(schema.get("required") or [])
        for key, prop in properties.items():
            prop = resolve_ref(document, prop)
            if not isinstance(prop, dict):
                prop = {}
            yield _scalar_spec(
                key,
                JSON_BODY,
                prop,
                required=key in required_fields,
                description=prop.get("description") or f"Field: {key}",
            )


def _parameter_spec(
    document: Dict[str, Any], parameter: Dict[str, Any], kind: str, fallback_description: str
) -> ParameterSpec:
    schema = resolve_ref(document, parameter.get("schema"))
    if not isinstance(schema, dict):
        # Swagger 2 keeps type/enum/default on the parameter itself
        schema = parameter
    return _scalar_spec(
        parameter["name"],
        kind,
        schema,
        required=bool(parameter.get("required", False)),
        description=parameter.get("description") or fallback_description,
    )


def _scalar_spec(
    name: str, kind: str, schema: Dict[str, Any], required: bool, description: str
) -> ParameterSpec:
    declared = schema.get("type") or STRING
    if isinstance(declared, list):
        declared = next((item for item in declared if item != "null"), STRING)
    enum = schema.get("enum")
    enum_values = tuple(str(value) for value in enum) if isinstance(enum, list) and enum else None
    return ParameterSpec(
        name=name,
        kind=kind,
        value_type=NUMBER if declared in {"integer", "number"} else STRING,
        required=required,
        enum_values=enum_values,
        default=schema.get("default"),
        has_default="default" in schema,
        description=description,
    )
