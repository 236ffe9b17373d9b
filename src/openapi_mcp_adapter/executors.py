"""Assembles and dispatches HTTP requests for tool calls."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import quote, urlencode

import httpx

from .errors import NetworkError, ValidationError
from .logging import redact_payload
from .models import ExecutionOutcome, OperationDescriptor

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
BODY_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

# Arguments that steer the request instead of becoming parameters.
CONTROL_ARGUMENTS = ("headers", "params", "bearerToken", "Authorization", "baseUrl")


def resolve_bearer_token(
    bearer_token: Any = None,
    authorization: Any = None,
    fallback: Optional[str] = None,
) -> Optional[str]:
    if isinstance(bearer_token, str) and bearer_token:
        return bearer_token
    if isinstance(authorization, str) and authorization.startswith("Bearer "):
        token = authorization[len("Bearer "):].strip()
        if token:
            return token
    return fallback or None


def substitute_path(path: str, path_params: Tuple[str, ...], arguments: Mapping[str, Any]) -> str:
    for name in path_params:
        if arguments.get(name) is not None:
            value = quote(_scalar_text(arguments[name]), safe="!~*'()")
            path = path.replace(f"{{{name}}}", value)
    return path


def encode_body(body: Mapping[str, Any], content_type: str) -> Any:
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type == FORM_CONTENT_TYPE:
        return urlencode(
            {key: _form_value(value) for key, value in body.items() if value is not None}
        )
    if media_type == JSON_CONTENT_TYPE:
        return json.dumps(body)
    logger.warning("Unsupported Content-Type %s, sending body as-is", content_type)
    return body


class RequestExecutor:
    def __init__(
        self,
        base_url: str,
        fallback_token: Optional[str] = None,
        timeout_seconds: float = 30,
        verify_ssl: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.fallback_token = fallback_token
        self.timeout_seconds = timeout_seconds
        self.verify_ssl = verify_ssl
        self._transport = transport

    async def execute_operation(
        self, operation: OperationDescriptor, arguments: Dict[str, Any]
    ) -> ExecutionOutcome:
        """Run one synthesized operation tool with validated arguments."""
        control = {key: arguments.get(key) for key in CONTROL_ARGUMENTS}
        for key in ("headers", "params"):
            if control[key] is not None and not isinstance(control[key], Mapping):
                raise ValidationError(f"{key} must be an object", [key])
        path_names = operation.path_param_names
        rest = {
            key: value
            for key, value in arguments.items()
            if key not in CONTROL_ARGUMENTS and key not in path_names
        }

        actual_path = substitute_path(operation.path, path_names, arguments)
        headers = _merge_headers(control["headers"])
        method = operation.verb.upper()

        explicit_params = control["params"]
        if explicit_params is not None:
            params = explicit_params
        else:
            params = rest if method == "GET" else None

        body = None
        if method != "GET" and (rest or method != "DELETE"):
            body = encode_body(rest, headers.get("Content-Type", JSON_CONTENT_TYPE))

        token = resolve_bearer_token(
            control["bearerToken"],
            control["Authorization"] or headers.get("Authorization"),
            None if "Authorization" in headers else self.fallback_token,
        )
        return await self.execute_request(
            actual_path,
            method,
            params=params,
            body=body,
            headers=headers,
            bearer_token=token,
            base_url=control["baseUrl"],
        )

    async def execute_request(
        self,
        path: str,
        method: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        bearer_token: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> ExecutionOutcome:
        method = method.upper()
        url = f"{(base_url or self.base_url).rstrip('/')}{path}"
        final_headers = _merge_headers(headers)

        if bearer_token:
            final_headers["Authorization"] = f"Bearer {bearer_token}"
        else:
            logger.debug("No bearer token resolved for %s %s", method, url)

        query = _query_params(params)
        content: Optional[str] = None
        if body is not None and method in BODY_METHODS:
            if isinstance(body, bytes):
                content = body.decode()
            elif isinstance(body, str):
                content = body
            else:
                content = json.dumps(body)

        logger.info("%s %s", method, url)
        logger.debug(
            "Request headers=%s query=%s body=%s",
            redact_payload(dict(final_headers)),
            query,
            content,
        )

        try:
            response = await self._send(method, url, final_headers, query, content)
        except NetworkError as exc:
            logger.warning("Network error for %s %s: %s", method, url, exc)
            return ExecutionOutcome(
                success=False, status=0, status_text="Network Error", error=str(exc)
            )
        return normalize_response(response)

    async def _send(
        self,
        method: str,
        url: str,
        headers: httpx.Headers,
        query: Dict[str, str],
        content: Optional[str],
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, verify=self.verify_ssl, transport=self._transport
            ) as client:
                response = await client.request(
                    method, url, headers=headers, params=query or None, content=content
                )
                await response.aread()
                return response
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise NetworkError(str(exc) or type(exc).__name__) from exc


def normalize_response(response: httpx.Response) -> ExecutionOutcome:
    text = response.text
    try:
        data: Any = json.loads(text)
    except ValueError:
        data = text
    return ExecutionOutcome(
        success=response.is_success,
        status=response.status_code,
        status_text=response.reason_phrase,
        headers=dict(response.headers),
        data=data,
    )


def _merge_headers(extra: Optional[Mapping[str, Any]]) -> httpx.Headers:
    headers = httpx.Headers({"Content-Type": JSON_CONTENT_TYPE})
    for key, value in (extra or {}).items():
        if value is not None:
            headers[str(key)] = str(value)
    return headers


def _query_params(params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    query: Dict[str, str] = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        query[str(key)] = _form_value(value)
    return query


def _form_value(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return _scalar_text(value)


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
