"""
Argument decorators.

Each decorator binds one positional handler argument to a value the
pipeline produces: a parameter, the request body, a security principal,
request data or the raw request/response. The argument is chosen by name
(``arg=``, defaulting to the parameter name) or by position (``index=``,
counted after ``self``).
"""

import inspect
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, TypeVar

from ..faults import DecoratorMisuseFault
from ..metadata import ArgumentBinding, BindingKind, pending_handler_metadata
from ..metadata.store import unwrap_member
from .decorators import Schema, _record_handler, expand_schema, handler_name

F = TypeVar('F', bound=Callable[..., Any])

_NON_IDENTIFIER = re.compile(r"\W")


def python_name(name: str) -> str:
    """``X-Request-Id`` -> ``X_Request_Id``."""
    return _NON_IDENTIFIER.sub("_", name)


def positional_names(func: Any) -> Optional[List[str]]:
    """
    Positional parameter names of a handler, without the receiver.

    ``None`` when the handler takes ``*args``.
    """
    skip = 0 if isinstance(func, staticmethod) else 1
    signature = inspect.signature(unwrap_member(func))
    names = []
    for param in list(signature.parameters.values())[skip:]:
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return None
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            names.append(param.name)
    return names


def resolve_argument_index(
    func: Any,
    decorator: str,
    arg: Optional[str] = None,
    index: Optional[int] = None,
    default: Optional[str] = None,
) -> int:
    """
    Position of the argument a decorator targets.

    Raises:
        DecoratorMisuseFault: If the argument cannot be identified
    """
    name = handler_name(func)
    if index is not None:
        if not isinstance(index, int) or index < 0:
            raise DecoratorMisuseFault(f"@{decorator} on {name}: index must be a non-negative integer.")
        return index

    target = arg or default
    if target is None:
        raise DecoratorMisuseFault(f"@{decorator} on {name}: pass arg= or index= to choose the argument.")

    names = positional_names(func)
    candidates = [target, python_name(target), python_name(target).lower()]
    for candidate in candidates:
        if names is not None and candidate in names:
            return names.index(candidate)

    raise DecoratorMisuseFault(
        f'@{decorator} on {name}: no positional argument named "{target}". Pass arg= or index=.',
        handler=name,
    )


def _bind(func: F, index: int, binding: ArgumentBinding, **declaration: Any) -> F:
    return _record_handler(func, {"args": {index: binding}, **declaration})


# ============================================================================
# Parameters
# ============================================================================

def _parameter(
    location: str,
    decorator_name: str,
    name: str,
    schema: Schema,
    required: bool,
    arg: Optional[str],
    index: Optional[int],
    extra: Mapping[str, Any],
) -> Callable[[F], F]:
    if not name:
        raise DecoratorMisuseFault(f"@{decorator_name} requires a parameter name.")

    parameter: Dict[str, Any] = {"name": name, "in": location}
    if required:
        parameter["required"] = True
    if schema is not None:
        parameter["schema"] = expand_schema(schema)
    parameter.update({key: value for key, value in extra.items() if value is not None})

    def decorator(func: F) -> F:
        position = resolve_argument_index(func, decorator_name, arg, index, default=name)
        return _bind(func, position, ArgumentBinding.parameter(name), parameters=(parameter,))

    return decorator


def path_param(
    name: str,
    schema: Schema = "string",
    *,
    arg: Optional[str] = None,
    index: Optional[int] = None,
    description: Optional[str] = None,
    style: Optional[str] = None,
    explode: Optional[bool] = None,
) -> Callable[[F], F]:
    """Bind a path parameter. Path parameters are always required."""
    extra = {"description": description, "style": style, "explode": explode}
    return _parameter("path", "path_param", name, schema, True, arg, index, extra)


def query_param(
    name: str,
    schema: Schema = "string",
    *,
    required: bool = False,
    arg: Optional[str] = None,
    index: Optional[int] = None,
    description: Optional[str] = None,
    style: Optional[str] = None,
    explode: Optional[bool] = None,
    deprecated: Optional[bool] = None,
) -> Callable[[F], F]:
    """
    Bind a query parameter.

    Array schemas collect repeated keys (``form`` style, exploded) unless
    another style is given.
    """
    extra = {"description": description, "style": style, "explode": explode, "deprecated": deprecated}
    return _parameter("query", "query_param", name, schema, required, arg, index, extra)


def required_query_param(name: str, schema: Schema = "string", **kwargs) -> Callable[[F], F]:
    return query_param(name, schema, required=True, **kwargs)


def header_param(
    name: str,
    schema: Schema = "string",
    *,
    required: bool = False,
    arg: Optional[str] = None,
    index: Optional[int] = None,
    description: Optional[str] = None,
) -> Callable[[F], F]:
    """Bind a request header; the default argument name replaces ``-`` with ``_``."""
    extra = {"description": description}
    return _parameter("header", "header_param", name, schema, required, arg, index, extra)


def required_header_param(name: str, schema: Schema = "string", **kwargs) -> Callable[[F], F]:
    return header_param(name, schema, required=True, **kwargs)


def cookie_param(
    name: str,
    schema: Schema = "string",
    *,
    required: bool = False,
    arg: Optional[str] = None,
    index: Optional[int] = None,
    description: Optional[str] = None,
) -> Callable[[F], F]:
    """Bind a cookie."""
    extra = {"description": description}
    return _parameter("cookie", "cookie_param", name, schema, required, arg, index, extra)


def required_cookie_param(name: str, schema: Schema = "string", **kwargs) -> Callable[[F], F]:
    return cookie_param(name, schema, required=True, **kwargs)


def bind_param(name: str, *, arg: Optional[str] = None, index: Optional[int] = None) -> Callable[[F], F]:
    """
    Bind a parameter declared elsewhere (a bound operation, a shared
    fragment, or the path item).
    """

    def decorator(func: F) -> F:
        position = resolve_argument_index(func, "bind_param", arg, index, default=name)
        return _bind(func, position, ArgumentBinding.parameter(name))

    return decorator


# ============================================================================
# Request body
# ============================================================================

def body(
    media_type: str = "application/json",
    schema: Schema = None,
    *,
    required: bool = False,
    description: Optional[str] = None,
    arg: Optional[str] = None,
    index: Optional[int] = None,
) -> Callable[[F], F]:
    """
    Declare a request body media type and bind the decoded body.

    The body is bound to ``arg``/``index``, or to a ``body`` argument when the
    handler has one. Several ``body`` decorators may declare alternative
    media types for the same argument.
    """
    media: Dict[str, Any] = {}
    if schema is not None:
        media["schema"] = expand_schema(schema)

    request_body: Dict[str, Any] = {"content": {media_type: media}}
    if required:
        request_body["required"] = True
    if description is not None:
        request_body["description"] = description

    def decorator(func: F) -> F:
        declaration: Dict[str, Any] = {"request_body": request_body}

        if arg is None and index is None:
            names = positional_names(func) or []
            position = names.index("body") if "body" in names else None
        else:
            position = resolve_argument_index(func, "body", arg, index)

        if position is not None:
            existing = pending_handler_metadata(func).args.get(position)
            if existing is None or existing.kind is not BindingKind.REQUEST_BODY:
                declaration["args"] = {position: ArgumentBinding.request_body()}

        return _record_handler(func, declaration)

    return decorator


def required_json_body(schema: Schema = None, **kwargs) -> Callable[[F], F]:
    return body("application/json", schema, required=True, **kwargs)


def optional_json_body(schema: Schema = None, **kwargs) -> Callable[[F], F]:
    return body("application/json", schema, required=False, **kwargs)


# ============================================================================
# Raw objects and request data
# ============================================================================

def request_arg(*, arg: Optional[str] = None, index: Optional[int] = None) -> Callable[[F], F]:
    """Bind the raw ``Request`` (defaults to a ``request`` argument)."""

    def decorator(func: F) -> F:
        position = resolve_argument_index(func, "request_arg", arg, index, default="request")
        return _bind(func, position, ArgumentBinding.request())

    return decorator


def response_arg(*, arg: Optional[str] = None, index: Optional[int] = None) -> Callable[[F], F]:
    """Bind the raw ``Response`` (defaults to a ``response`` argument)."""

    def decorator(func: F) -> F:
        position = resolve_argument_index(func, "response_arg", arg, index, default="response")
        return _bind(func, position, ArgumentBinding.response())

    return decorator


def bind_request_data(key: str, *, arg: Optional[str] = None, index: Optional[int] = None) -> Callable[[F], F]:
    """Bind a request data value stored by a request processor or middleware."""
    if not key:
        raise DecoratorMisuseFault("@bind_request_data requires a key.")

    def decorator(func: F) -> F:
        position = resolve_argument_index(func, "bind_request_data", arg, index, default=key)
        return _bind(func, position, ArgumentBinding.request_data(key))

    return decorator
