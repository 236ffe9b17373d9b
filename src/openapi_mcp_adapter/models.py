"""Internal models for operations, tools and call outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from .validators import CompiledSchema


PATH = "path"
QUERY = "query"
FORM = "form"
JSON_BODY = "json_body"

STRING = "string"
NUMBER = "number"
OBJECT = "object"


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    kind: str
    value_type: str = STRING
    required: bool = False
    enum_values: Optional[Tuple[str, ...]] = None
    default: Any = None
    has_default: bool = False
    description: str = ""


@dataclass(frozen=True)
class OperationDescriptor:
    path: str
    verb: str
    path_params: Tuple[ParameterSpec, ...] = ()
    query_params: Tuple[ParameterSpec, ...] = ()
    form_params: Tuple[ParameterSpec, ...] = ()
    body_properties: Tuple[ParameterSpec, ...] = ()
    description: str = ""
    summary: str = ""
    operation_id: Optional[str] = None

    @property
    def parameters(self) -> Tuple[ParameterSpec, ...]:
        return self.path_params + self.query_params + self.form_params + self.body_properties

    @property
    def path_param_names(self) -> Tuple[str, ...]:
        return tuple(param.name for param in self.path_params)

    @property
    def resource(self) -> str:
        segments = self.path.split("/")
        return segments[1] if len(segments) > 1 else ""


ToolHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    schema: "CompiledSchema"
    handler: ToolHandler
    operation: Optional[OperationDescriptor] = None

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.schema.json_schema(),
        }


class ExecutionOutcome(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    status: Optional[int] = None
    status_text: Optional[str] = Field(default=None, alias="statusText")
    headers: Optional[Dict[str, str]] = None
    data: Any = None
    error: Optional[str] = None

    @property
    def is_network_error(self) -> bool:
        return not self.success and self.status == 0

    def to_payload(self) -> Dict[str, Any]:
        payload = self.model_dump(by_alias=True, exclude_none=True)
        if "data" not in payload and self.status:
            payload["data"] = self.data
        return payload
