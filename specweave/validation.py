"""
Schema validation.

The pipeline validates parameters, request bodies and (optionally) responses
through a pluggable ``SchemaValidator``. The default implementation wraps
``jsonschema`` (Draft 2020-12, the dialect of OpenAPI 3.1) and resolves local
``#/components/...`` references against the assembled document.

Coercion converts string input to the primitive types a schema asks for,
since path, query, header and cookie values always arrive as strings.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from jsonschema import Draft202012Validator

from .openapi.refs import resolve_reference, schema_types

_INTEGER = re.compile(r"^[+-]?\d+$")
_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


# ============================================================================
# Results
# ============================================================================

@dataclass(frozen=True)
class ValidationErrorDetail:
    """One schema violation."""
    path: str
    message: str
    keyword: str = ""

    def __str__(self) -> str:
        return f"value{self.path} {self.message}"


@dataclass
class ValidationResult:
    """
    Outcome of validating one value.

    ``value`` is the (possibly coerced) value and should be used in place of
    the input when ``valid`` is true.
    """
    valid: bool
    value: Any = None
    errors: List[ValidationErrorDetail] = field(default_factory=list)

    @property
    def message(self) -> str:
        return errors_to_message(self.errors)

    def __bool__(self) -> bool:
        return self.valid


def errors_to_message(errors: List[ValidationErrorDetail]) -> str:
    if not errors:
        return "No errors"
    return ", ".join(str(error) for error in errors)


# ============================================================================
# Validator interface
# ============================================================================

class SchemaValidator(ABC):
    """
    Pluggable schema validator.

    Implementations must be safe to call concurrently; the pipeline shares a
    single validator across every request.
    """

    @abstractmethod
    def validate(
        self,
        schema: Mapping[str, Any],
        value: Any,
        *,
        document: Optional[Mapping[str, Any]] = None,
        coerce: bool = False,
    ) -> ValidationResult:
        """Validate ``value`` against ``schema``."""

    def check_schema(self, schema: Mapping[str, Any]) -> None:
        """Raise if ``schema`` itself is malformed. Called at compile time."""


# ============================================================================
# Coercion
# ============================================================================

def _coerce_scalar(types: set, value: str) -> Any:
    if "string" in types:
        return value
    if "integer" in types and _INTEGER.match(value):
        return int(value)
    if "number" in types and _NUMBER.match(value):
        return int(value) if _INTEGER.match(value) else float(value)
    if "boolean" in types:
        if value == "true":
            return True
        if value == "false":
            return False
    if "null" in types and value == "":
        return None
    return value


def coerce_value(schema: Any, value: Any, document: Optional[Mapping[str, Any]] = None) -> Any:
    """
    Convert ``value`` towards the types ``schema`` declares.

    Only string-to-primitive conversions are attempted; anything that does not
    convert is returned unchanged for the validator to reject. Missing object
    properties with a ``default`` are filled in.
    """
    if document is not None:
        schema = resolve_reference(document, schema)
    if not isinstance(schema, Mapping):
        return value

    types = schema_types(schema)

    if isinstance(value, str):
        return _coerce_scalar(types, value) if types else value

    if isinstance(value, list):
        items = schema.get("items")
        if items is not None:
            return [coerce_value(items, item, document) for item in value]
        return value

    if isinstance(value, dict):
        properties = schema.get("properties") or {}
        result = dict(value)
        for name, prop_schema in properties.items():
            if name in result:
                result[name] = coerce_value(prop_schema, result[name], document)
            else:
                resolved = resolve_reference(document, prop_schema) if document is not None else prop_schema
                if isinstance(resolved, Mapping) and "default" in resolved:
                    result[name] = resolved["default"]
        return result

    return value


# ============================================================================
# jsonschema implementation
# ============================================================================

class JsonSchemaValidator(SchemaValidator):
    """
    ``jsonschema``-backed validator.

    Compiled validators are cached per (schema, document) pair; schemas are
    taken from the assembled document, which outlives the router.

    Example:
        ```python
        validator = JsonSchemaValidator()
        result = validator.validate({"type": "integer"}, "12", coerce=True)
        assert result.valid and result.value == 12
        ```
    """

    def __init__(self, *, format_checking: bool = True):
        self.format_checking = format_checking
        self._cache: Dict[Tuple[int, int], Tuple[Any, Any, Draft202012Validator]] = {}

    def check_schema(self, schema: Mapping[str, Any]) -> None:
        Draft202012Validator.check_schema(dict(schema))

    def _compile(self, schema: Mapping[str, Any], document: Optional[Mapping[str, Any]]) -> Draft202012Validator:
        key = (id(schema), id(document))
        cached = self._cache.get(key)
        if cached is not None and cached[0] is schema and cached[1] is document:
            return cached[2]

        root = dict(schema)
        if document is not None and "components" in document and "components" not in root:
            # Local refs ("#/components/...") resolve against the root schema.
            root["components"] = document["components"]

        format_checker = Draft202012Validator.FORMAT_CHECKER if self.format_checking else None
        compiled = Draft202012Validator(root, format_checker=format_checker)
        self._cache[key] = (schema, document, compiled)
        return compiled

    def validate(
        self,
        schema: Mapping[str, Any],
        value: Any,
        *,
        document: Optional[Mapping[str, Any]] = None,
        coerce: bool = False,
    ) -> ValidationResult:
        if coerce:
            value = coerce_value(schema, value, document)

        compiled = self._compile(schema, document)
        errors = sorted(compiled.iter_errors(value), key=lambda e: [str(p) for p in e.absolute_path])

        if not errors:
            return ValidationResult(True, value)

        details = [
            ValidationErrorDetail(
                path="".join(f"/{part}" for part in error.absolute_path),
                message=error.message,
                keyword=str(error.validator),
            )
            for error in errors
        ]
        return ValidationResult(False, value, details)
