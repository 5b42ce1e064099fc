"""
Parameter processing.

Reads path, query, header and cookie parameters declared on an operation,
undoes their OpenAPI serialization style, coerces and validates them, and
stores the result under ``openapi-parameter-{name}`` in the request data.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Tuple

from ..faults import BadRequest, NotFound, SpecResolutionFault, UnsupportedParameterFault
from ..openapi.refs import resolve_reference, schema_includes_any_type_except, schema_includes_type
from .context import MethodHandlerContext, RawValue, RequestContext

logger = logging.getLogger("specweave.pipeline")

DEFAULT_STYLES = {
    "path": "simple",
    "query": "form",
    "header": "simple",
    "cookie": "form",
}

ALLOWED_STYLES = {
    "path": {"simple", "label", "matrix"},
    "query": {"form", "spaceDelimited", "pipeDelimited", "deepObject"},
    "header": {"simple"},
    "cookie": {"form"},
}


# ============================================================================
# Serialization styles
# ============================================================================

def _wants_array(schema: Mapping[str, Any], parts: List[str]) -> bool:
    # Array schemas take a list; mixed schemas only when there is more than one part.
    return schema_includes_type(schema, "array") and (
        not schema_includes_any_type_except(schema, "array") or len(parts) > 1
    )


def _single(param: Mapping[str, Any], raw: RawValue) -> str:
    if isinstance(raw, list):
        if param["in"] == "path":
            raise SpecResolutionFault("Path parameters cannot accept array raw values.")
        raise BadRequest(f"Only one instance of the {param['in']} parameter {param['name']} is allowed.")
    return raw


def _split(param, schema, raw, separator):
    value = _single(param, raw)
    parts = value.split(separator)
    return parts if _wants_array(schema, parts) else value


def simple_style(param, schema, raw, explode):
    if explode and param["in"] != "path":
        # Repeated headers arrive as a list already.
        if not isinstance(raw, list) and schema_includes_type(schema, "array") and not schema_includes_any_type_except(schema, "array"):
            return [raw]
        if isinstance(raw, list):
            return raw
    if isinstance(raw, list):
        raw = ",".join(raw)
    return _split(param, schema, raw, ",")


def label_style(param, schema, raw, explode):
    value = _single(param, raw)
    if not value.startswith("."):
        raise NotFound(
            f'A possible route was found, but the path parameter "{param["name"]}" did not match '
            f'the expected "label" parameter serialization format.'
        )
    return _split(param, schema, value[1:], "." if explode else ",")


def matrix_style(param, schema, raw, explode):
    value = _single(param, raw)
    pattern = re.compile(f";{re.escape(param['name'])}=([^;]*)")
    matches = pattern.findall(value)
    if not matches:
        raise NotFound(
            f'A possible route was found, but the path parameter "{param["name"]}" did not match '
            f'the expected "matrix" parameter serialization format.'
        )

    if not explode:
        return _split(param, schema, matches[0], ",")

    if schema_includes_type(schema, "array") and (
        not schema_includes_any_type_except(schema, "array") or len(matches) > 1
    ):
        return [item for match in matches for item in match.split(",")]
    return matches[0]


def form_style(param, schema, raw, explode):
    if explode:
        if schema_includes_type(schema, "array"):
            if isinstance(raw, list):
                return raw
            if not schema_includes_any_type_except(schema, "array"):
                return [raw]
        return _single(param, raw)
    return _split(param, schema, raw, ",")


def _delimited(separator):
    def deserialize(param, schema, raw, explode):
        if explode:
            return raw if isinstance(raw, list) else [raw]
        return _single(param, raw).split(separator)
    return deserialize


def deep_object_style(param, schema, raw, explode):
    raise UnsupportedParameterFault(
        "Deep object parameters are not supported.", parameter=param["name"]
    )


STYLE_DESERIALIZERS: Dict[str, Callable[..., Any]] = {
    "simple": simple_style,
    "label": label_style,
    "matrix": matrix_style,
    "form": form_style,
    "spaceDelimited": _delimited(" "),
    "pipeDelimited": _delimited("|"),
    "deepObject": deep_object_style,
}


def parameter_style(param: Mapping[str, Any]) -> Tuple[str, bool]:
    """Effective (style, explode) of a parameter, with OpenAPI defaults."""
    style = param.get("style") or DEFAULT_STYLES.get(param["in"], "simple")
    explode = param.get("explode")
    if explode is None:
        explode = style == "form"
    return style, bool(explode)


def deserialize_parameter(param: Mapping[str, Any], schema: Mapping[str, Any], raw: RawValue) -> Any:
    style, explode = parameter_style(param)
    return STYLE_DESERIALIZERS[style](param, schema, raw, explode)


# ============================================================================
# Processor
# ============================================================================

class ParameterProcessor:
    """
    Compile-time checked parameter processor for one operation.

    Raises (at construction):
        UnsupportedParameterFault: For object or deepObject parameters
        SpecResolutionFault: For unresolvable schemas or invalid styles
    """

    def __init__(self, context: MethodHandlerContext, *, coerce_types: bool = True):
        self.context = context
        self.coerce_types = coerce_types
        self.entries: List[Tuple[Dict[str, Any], Dict[str, Any]]] = []

        for param in context.parameters:
            schema = self._compile(param)
            self.entries.append((param, schema))
        logger.debug("Compiled %d parameter(s) for %s", len(self.entries), context.label)

    def _compile(self, param: Mapping[str, Any]) -> Dict[str, Any]:
        location = param.get("in")
        if location not in DEFAULT_STYLES:
            raise SpecResolutionFault(
                f"Unsupported parameter location {location!r} for parameter {param.get('name')} "
                f"in operation {self.context.label}."
            )

        raw_schema = param.get("schema", {"type": "string"})
        schema = resolve_reference(self.context.document, raw_schema)
        if schema is None:
            raise SpecResolutionFault(
                f"Could not resolve parameter schema reference for {location} parameter "
                f"{param['name']} in operation {self.context.label}."
            )

        if schema_includes_type(schema, "object"):
            raise UnsupportedParameterFault(
                f"Object parameters are not supported ({location} parameter {param['name']} "
                f"in operation {self.context.label}).",
                parameter=param["name"],
            )

        style, _ = parameter_style(param)
        if style == "deepObject":
            raise UnsupportedParameterFault(
                f"Deep object parameters are not supported ({location} parameter {param['name']} "
                f"in operation {self.context.label}).",
                parameter=param["name"],
            )
        if style not in ALLOWED_STYLES[location]:
            raise SpecResolutionFault(
                f"Style {style!r} is not valid for {location} parameter {param['name']} "
                f"in operation {self.context.label}."
            )

        validator = self.context.validator
        if validator is not None:
            validator.check_schema(schema)
        return dict(schema)

    def _raw_value(self, ctx: RequestContext, param: Mapping[str, Any]) -> RawValue:
        location = param["in"]
        if location == "path":
            return ctx.get_path_param(param["name"])
        if location == "query":
            return ctx.get_query(param["name"])
        if location == "header":
            return ctx.get_header(param["name"])
        return ctx.get_cookie(param["name"])

    def process(self, ctx: RequestContext) -> None:
        for param, schema in self.entries:
            name = param["name"]
            location = param["in"]
            key = f"openapi-parameter-{name}"

            raw = self._raw_value(ctx, param)
            if raw is None:
                if location == "path":
                    raise NotFound()
                if param.get("required"):
                    raise BadRequest(f'{location.capitalize()} parameter "{name}" is required.')
                ctx.set_request_data(key, None)
                continue

            value = deserialize_parameter(param, schema, raw)

            validator = self.context.validator
            if validator is not None:
                result = validator.validate(
                    schema, value, document=self.context.document, coerce=self.coerce_types
                )
                if not result.valid:
                    if location == "path":
                        # An unparseable path segment means the route does not exist.
                        raise NotFound()
                    raise BadRequest(f'{location.capitalize()} parameter "{name}" is invalid: {result.message}.')
                value = result.value

            ctx.set_request_data(key, value)


def parameters_processor_factory(*, coerce_types: bool = True):
    """Request processor factory for parameters; ``None`` when there are none."""

    def factory(context: MethodHandlerContext):
        processor = ParameterProcessor(context, coerce_types=coerce_types)
        return processor.process if processor.entries else None

    return factory
