"""Compiles operation parameters into open pydantic validators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Tuple, Type, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr, create_model

from .errors import ValidationError
from .models import NUMBER, OBJECT, OperationDescriptor, ParameterSpec


_OPEN_CONFIG = ConfigDict(extra="allow", populate_by_name=False)


@dataclass(frozen=True)
class ValidatedArguments:
    """Typed values for declared fields plus the open remainder."""

    known: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {**self.known, **self.extra}


class CompiledSchema:
    def __init__(self, model: Type[BaseModel], specs: Iterable[ParameterSpec]) -> None:
        self.model = model
        self.specs: Tuple[ParameterSpec, ...] = tuple(specs)
        # declared name -> synthetic model attribute
        self._attributes = {spec.name: _attribute_name(i) for i, spec in enumerate(self.specs)}

    @property
    def field_names(self) -> List[str]:
        return [spec.name for spec in self.specs]

    @property
    def required(self) -> List[str]:
        return [spec.name for spec in self.specs if spec.required and not spec.has_default]

    def validate(self, arguments: Any) -> ValidatedArguments:
        if not isinstance(arguments, Mapping):
            raise ValidationError(
                f"Tool arguments must be an object, got {type(arguments).__name__}"
            )
        try:
            instance = self.model.model_validate(dict(arguments))
        except pydantic.ValidationError as exc:
            fields = _error_fields(exc)
            details = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
                for error in exc.errors()
            )
            raise ValidationError(f"Invalid arguments: {details}", fields) from exc

        provided = instance.model_fields_set
        known: Dict[str, Any] = {}
        for spec in self.specs:
            attribute = self._attributes[spec.name]
            if attribute in provided or spec.has_default:
                known[spec.name] = getattr(instance, attribute)
        return ValidatedArguments(known=known, extra=dict(instance.model_extra or {}))

    def json_schema(self) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}
        for spec in self.specs:
            properties[spec.name] = _property_schema(spec)
        schema: Dict[str, Any] = {
            "type": "object",
            "properties": properties,
            "additionalProperties": True,
        }
        if self.required:
            schema["required"] = self.required
        return schema


def compile_schema(model_name: str, specs: Iterable[ParameterSpec]) -> CompiledSchema:
    specs = tuple(specs)
    fields: Dict[str, Tuple[Any, Any]] = {}
    for index, spec in enumerate(specs):
        fields[_attribute_name(index)] = _field_definition(spec)
    model = create_model(
        f"{_sanitize_name(model_name)}Input", __config__=_OPEN_CONFIG, **fields
    )
    return CompiledSchema(model, specs)


def compile_operation_schema(operation: OperationDescriptor, model_name: Optional[str] = None) -> CompiledSchema:
    name = model_name or operation.operation_id or f"{operation.verb}_{operation.path}"
    return compile_schema(name, operation.parameters)


def _field_definition(spec: ParameterSpec) -> Tuple[Any, Any]:
    field_type = _scalar_type(spec)
    description = spec.description or None
    if spec.has_default:
        return field_type, Field(default=spec.default, alias=spec.name, description=description)
    if spec.required:
        return field_type, Field(..., alias=spec.name, description=description)
    return Optional[field_type], Field(default=None, alias=spec.name, description=description)


def _scalar_type(spec: ParameterSpec) -> Any:
    if spec.enum_values:
        return Literal[spec.enum_values]  # type: ignore[valid-type]
    if spec.value_type == NUMBER:
        return Union[StrictInt, StrictFloat]
    if spec.value_type == OBJECT:
        return Dict[str, Any]
    return StrictStr


def _property_schema(spec: ParameterSpec) -> Dict[str, Any]:
    prop: Dict[str, Any] = {}
    if spec.enum_values:
        prop["type"] = "string"
        prop["enum"] = list(spec.enum_values)
    elif spec.value_type == NUMBER:
        prop["type"] = "number"
    elif spec.value_type == OBJECT:
        prop["type"] = "object"
    else:
        prop["type"] = "string"
    if spec.has_default:
        prop["default"] = spec.default
    if spec.description:
        prop["description"] = spec.description
    return prop


def _error_fields(exc: pydantic.ValidationError) -> List[str]:
    fields: List[str] = []
    for error in exc.errors():
        loc = error.get("loc") or ()
        if loc and str(loc[0]) not in fields:
            fields.append(str(loc[0]))
    return fields


def _attribute_name(index: int) -> str:
    return f"field_{index}"


def _sanitize_name(name: str) -> str:
    return "".join(ch if ch.isalnum() else "_" for ch in name)
