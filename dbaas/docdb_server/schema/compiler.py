"""
Schema compiler: descriptor properties -> validation engine.

The core depends on the validation engine only through the SchemaCompiler
protocol: `compile(descriptor) -> CompiledSchema`. The shipped
implementation turns descriptor properties into dynamic pydantic models.

Descriptor property syntax:
    "title": "string"                          shorthand type
    "age": {"type": "number", "min": 0}        constrained scalar
    "dob": {"type": "date"}                    ISO or YYYY/MM/DD strings, epoch numbers
    "tags": {"type": "array", "items": "string"}
    "parent": {"properties": {...}}            nested object
    "meta": {"type": "object"}                 free-form object

Supported constraints: required, default, min, max, minLength, maxLength, enum.
`unique` is accepted and ignored (indexing belongs to the store).

Invariants:
    - Unknown document fields are dropped on validation
    - Defaults are applied to fields absent from the input
    - Validation output is JSON-compatible (dates become ISO strings)
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Annotated, Any, Optional, Protocol, Union, runtime_checkable

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    create_model,
)
from pydantic_core import to_jsonable_python

from ..errors import DocumentValidationError
from .descriptor import SchemaDescriptor

logger = logging.getLogger(__name__)


def _coerce_date(value: Any) -> Any:
    """Accept date-only and slash-separated date strings."""
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip().replace("/", "-"))
        except ValueError:
            return value
    return value


DateValue = Annotated[datetime, BeforeValidator(_coerce_date)]

SCALAR_TYPES: dict[str, Any] = {
    "string": str,
    "number": Union[int, float],
    "integer": int,
    "boolean": bool,
    "date": DateValue,
    "any": Any,
    "mixed": Any,
}


@dataclass
class CompiledSchema:
    """Validation capability compiled from a descriptor.

    Attributes:
        name: Collection name the schema belongs to
        model: Dynamic pydantic model for whole documents
        field_names: Declared top-level field names
        defaults: Top-level defaults applied on validation
        path_types: Dotted path -> element type, used to cast filter values
    """

    name: str
    model: type[BaseModel]
    field_names: tuple[str, ...]
    defaults: dict[str, Any] = field(default_factory=dict)
    path_types: dict[str, Any] = field(default_factory=dict)
    _adapters: dict[str, TypeAdapter] = field(default_factory=dict, repr=False)

    def validate(self, document: dict[str, Any]) -> dict[str, Any]:
        """Validate a document and return its normalized form.

        Raises:
            DocumentValidationError: If the document breaks a constraint
        """
        try:
            instance = self.model.model_validate(document)
        except ValidationError as e:
            errors = [_format_error(err) for err in e.errors()]
            raise DocumentValidationError(
                f"Validation failed for {self.name}: {'; '.join(errors)}",
                collection=self.name,
                errors=errors,
            ) from e
        return _dump_model(instance)

    def cast_value(self, path: str, value: Any) -> Any:
        """Cast a filter value to the type declared at `path`.

        Undeclared paths pass the value through unchanged.

        Raises:
            DocumentValidationError: If the value cannot be cast
        """
        if path not in self.path_types:
            return value

        adapter = self._adapters.get(path)
        if adapter is None:
            adapter = TypeAdapter(self.path_types[path])
            self._adapters[path] = adapter

        try:
            return to_jsonable_python(adapter.validate_python(value))
        except ValidationError as e:
            errors = [_format_error(err, prefix=path) for err in e.errors()]
            raise DocumentValidationError(
                f"Cannot use {value!r} as a filter on '{path}'",
                collection=self.name,
                errors=errors,
            ) from e


@runtime_checkable
class SchemaCompiler(Protocol):
    """Protocol for schema validation engines."""

    @abstractmethod
    def compile(self, descriptor: SchemaDescriptor) -> CompiledSchema:
        """Compile a descriptor into a validation capability.

        Raises:
            SchemaConfigurationError: If the descriptor cannot be compiled
        """
        ...


class PydanticSchemaCompiler:
    """SchemaCompiler backed by dynamically created pydantic models.

    Example:
        >>> compiler = PydanticSchemaCompiler()
        >>> schema = compiler.compile(descriptor)
        >>> schema.validate({"name": "foo", "age": "3"})
        {'name': 'foo', 'age': 3}
    """

    def compile(self, descriptor: SchemaDescriptor) -> CompiledSchema:
        path_types: dict[str, Any] = {}
        model = self._build_model(
            _model_name(descriptor.name), descriptor.properties, "", path_types
        )

        defaults = {}
        for info in model.model_fields.values():
            if info.default is not None and not info.is_required():
                defaults[info.alias] = info.get_default(call_default_factory=True)

        return CompiledSchema(
            name=descriptor.name,
            model=model,
            field_names=tuple(descriptor.properties.keys()),
            defaults=defaults,
            path_types=path_types,
        )

    def _build_model(
        self,
        model_name: str,
        properties: dict[str, Any],
        prefix: str,
        path_types: dict[str, Any],
    ) -> type[BaseModel]:
        fields: dict[str, Any] = {}
        for index, (name, spec) in enumerate(properties.items()):
            path = f"{prefix}{name}"
            annotation, element = self._resolve(
                f"{model_name}_{_model_name(name)}", spec, path, path_types
            )
            if element is not None:
                path_types[path] = element

            constraint = spec if isinstance(spec, dict) else {}
            if constraint.get("required"):
                info = Field(..., alias=name)
            else:
                annotation = Optional[annotation]
                info = Field(default=constraint.get("default"), alias=name)
            fields[f"field_{index}"] = (annotation, info)

        return create_model(
            model_name,
            __config__=ConfigDict(extra="ignore", validate_default=True),
            **fields,
        )

    def _resolve(
        self,
        model_name: str,
        spec: Any,
        path: str,
        path_types: dict[str, Any],
    ) -> tuple[Any, Any]:
        """Resolve a property spec.

        Returns:
            Tuple of (field annotation, element type for filter casting)
        """
        if isinstance(spec, str):
            spec = {"type": spec}
        if not isinstance(spec, dict):
            return Any, None

        kind = spec.get("type")
        if kind is None:
            kind = "object" if "properties" in spec else "any"

        if kind == "object":
            if "properties" not in spec:
                return dict[str, Any], None
            nested = self._build_model(
                model_name, spec["properties"] or {}, f"{path}.", path_types
            )
            return nested, None

        if kind == "array":
            items = spec.get("items")
            if items is None:
                return list[Any], None
            item_annotation, item_element = self._resolve(
                f"{model_name}_item", items, path, path_types
            )
            annotation = _constrained(list[item_annotation], spec)
            if item_element is not None:
                return annotation, item_element
            return annotation, None

        if kind not in SCALAR_TYPES:
            logger.warning(f"Unknown property type '{kind}' at '{path}', accepting any value")
            return Any, None

        base = SCALAR_TYPES[kind]
        return _constrained(base, spec), base


def _constrained(base: Any, spec: dict[str, Any]) -> Any:
    """Attach min/max/length/enum checks to a type."""
    checks = []

    minimum, maximum = spec.get("min"), spec.get("max")
    if minimum is not None or maximum is not None:
        checks.append(AfterValidator(_range_check(minimum, maximum)))

    min_length, max_length = spec.get("minLength"), spec.get("maxLength")
    if min_length is not None or max_length is not None:
        checks.append(AfterValidator(_length_check(min_length, max_length)))

    allowed = spec.get("enum")
    if allowed:
        checks.append(AfterValidator(_enum_check(tuple(allowed))))

    if not checks:
        return base
    return Annotated[(base, *checks)]


def _range_check(minimum: Any, maximum: Any):
    def check(value: Any) -> Any:
        if not isinstance(value, (int, float)):
            return value
        if minimum is not None and value < minimum:
            raise ValueError(f"must be >= {minimum}")
        if maximum is not None and value > maximum:
            raise ValueError(f"must be <= {maximum}")
        return value

    return check


def _length_check(min_length: int | None, max_length: int | None):
    def check(value: Any) -> Any:
        if min_length is not None and len(value) < min_length:
            raise ValueError(f"length must be >= {min_length}")
        if max_length is not None and len(value) > max_length:
            raise ValueError(f"length must be <= {max_length}")
        return value

    return check


def _enum_check(allowed: tuple[Any, ...]):
    def check(value: Any) -> Any:
        if value not in allowed:
            raise ValueError(f"must be one of {list(allowed)}")
        return value

    return check


def _model_name(name: str) -> str:
    cleaned = "".join(c if c.isalnum() else "_" for c in name)
    return cleaned[:1].upper() + cleaned[1:] if cleaned else "Document"


def _format_error(error: dict[str, Any], prefix: str | None = None) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    if prefix:
        location = f"{prefix}.{location}" if location else prefix
    return f"{location}: {error.get('msg', 'invalid value')}" if location else error.get("msg", "")


def _dump_model(instance: BaseModel) -> dict[str, Any]:
    """Dump by alias, keeping defaults but not unset optional fields."""
    output: dict[str, Any] = {}
    for name, info in type(instance).model_fields.items():
        if name not in instance.model_fields_set and info.default is None:
            continue
        output[info.alias or name] = _dump_value(getattr(instance, name))
    return output


def _dump_value(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return _dump_model(value)
    if isinstance(value, list):
        return [_dump_value(item) for item in value]
    if isinstance(value, dict):
        return {key: _dump_value(item) for key, item in value.items()}
    return to_jsonable_python(value)
