"""
Controller Decorators

Class and method decorators describing controllers and their operations.
Every decorator only records a declaration on the decorated object; nothing
is registered anywhere until a MetadataStore collects the class.
"""

from http import HTTPStatus
from typing import Any, Callable, Dict, List, Mapping, Optional, TypeVar, Union
import inspect

from ..faults import DecoratorMisuseFault
from ..metadata import (
    clone,
    pending_controller_metadata,
    pending_handler_metadata,
    record_controller_declaration,
    record_handler_declaration,
)
from ..metadata.store import unwrap_member


F = TypeVar('F', bound=Callable[..., Any])
T = TypeVar('T', bound=type)

Schema = Union[str, Mapping[str, Any], None]


def expand_schema(schema: Schema) -> Optional[Dict[str, Any]]:
    """``"integer"`` is shorthand for ``{"type": "integer"}``."""
    if schema is None:
        return None
    if isinstance(schema, str):
        return {"type": schema}
    return clone(dict(schema))


def handler_name(func: Any) -> str:
    return getattr(unwrap_member(func), "__name__", repr(func))


def _record_handler(func: F, update: Any) -> F:
    record_handler_declaration(unwrap_member(func), update)
    return func


# ============================================================================
# Controller decorators
# ============================================================================

def _set_controller_kind(cls: type, kind: str) -> None:
    current = pending_controller_metadata(cls).kind
    if current is not None and current != kind:
        raise DecoratorMisuseFault(
            f"Controller {cls.__name__} cannot be both a bound controller and a custom controller.",
            controller=cls.__name__,
        )


def controller(
    path: Union[str, type, None] = None,
    *,
    tags: Optional[List[str]] = None,
) -> Any:
    """
    Mark a class as a controller producing its own operations.

    Handler paths are joined onto ``path``; ``tags`` are added to every
    operation. May be used bare (``@controller``) or called.

    Example:
        @controller("/widgets", tags=["widgets"])
        class WidgetsController:
            @get("/{id}")
            @path_param("id", "integer")
            def get_widget(self, id):
                ...
    """
    if inspect.isclass(path):
        return controller()(path)

    def decorator(cls: T) -> T:
        if not inspect.isclass(cls):
            raise DecoratorMisuseFault("@controller can only be applied to classes.")
        _set_controller_kind(cls, "custom")
        record_controller_declaration(cls, {"kind": "custom", "path": path, "tags": tuple(tags or ())})
        return cls

    return decorator


def bound_controller(cls: Optional[type] = None) -> Any:
    """
    Mark a class as a bound controller.

    Its handlers attach to operations of a supplied document with
    ``bind_operation`` instead of declaring their own.
    """

    def decorator(cls: T) -> T:
        if not inspect.isclass(cls):
            raise DecoratorMisuseFault("@bound_controller can only be applied to classes.")
        _set_controller_kind(cls, "bound")
        record_controller_declaration(cls, {"kind": "bound"})
        return cls

    if cls is not None:
        return decorator(cls)
    return decorator


def openapi(fragment: Mapping[str, Any]) -> Callable[[T], T]:
    """Merge ``fragment`` into the document root, e.g. shared ``components``."""

    def decorator(cls: T) -> T:
        if not inspect.isclass(cls):
            raise DecoratorMisuseFault("@openapi can only be applied to controller classes.")
        record_controller_declaration(cls, {"openapi_fragment": clone(dict(fragment))})
        return cls

    return decorator


def openapi_operation(fragment: Mapping[str, Any]) -> Callable[[Any], Any]:
    """
    Merge ``fragment`` into operations.

    On a class it applies to every operation of the controller; on a method
    only to that handler's operation, on top of the controller's.
    """

    def decorator(target):
        if inspect.isclass(target):
            record_controller_declaration(target, {"operation_fragment": clone(dict(fragment))})
            return target
        return _record_handler(target, {"operation_fragment": clone(dict(fragment))})

    return decorator


def middleware(*entries: Any) -> Callable[[Any], Any]:
    """
    Attach handler middleware to a controller or a handler.

    Entries run in the order given, controller middleware before handler
    middleware. Each entry is either middleware ``(ctx, next)`` or a factory
    ``(context) -> middleware`` (see ``middleware_factory``).
    """
    for entry in entries:
        if not callable(entry):
            raise DecoratorMisuseFault(f"Middleware {entry!r} is not callable.")

    def decorator(target):
        if inspect.isclass(target):
            record_controller_declaration(target, {"middleware": tuple(entries)})
            return target
        return _record_handler(target, {"middleware": tuple(entries)})

    return decorator


# ============================================================================
# Method decorators
# ============================================================================

class RouteDecorator:
    """
    Base route decorator.

    Declares the HTTP method and path of a handler plus an optional
    operation fragment overlay.
    """

    method: str = ""

    def __init__(
        self,
        path: Optional[str] = None,
        *,
        summary: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[List[str]] = None,
        operation_id: Optional[str] = None,
        deprecated: bool = False,
        fragment: Optional[Mapping[str, Any]] = None,
    ):
        """
        Args:
            path: Path template joined onto the controller path (``/{id}``
                  or ``/:id``); defaults to the controller path itself
            summary: OpenAPI summary
            description: OpenAPI description
            tags: OpenAPI tags (extends controller tags)
            operation_id: Overrides the default ``Controller.method`` id
            deprecated: Mark as deprecated in OpenAPI
            fragment: Raw operation fragment merged under the above
        """
        self.path = path
        self.tags = tags or []

        operation: Dict[str, Any] = clone(dict(fragment or {}))
        if summary is not None:
            operation["summary"] = summary
        if description is not None:
            operation["description"] = description
        if operation_id is not None:
            operation["operationId"] = operation_id
        if deprecated:
            operation["deprecated"] = True
        self.operation = operation

    def __call__(self, func: F) -> F:
        name = handler_name(func)
        pending = pending_handler_metadata(func)
        if pending.method is not None:
            raise DecoratorMisuseFault(
                f"Method handler {name} cannot handle multiple http methods.",
                handler=name,
            )
        if pending.operation_id is not None:
            raise DecoratorMisuseFault(
                f"Method handler {name} cannot both be bound to an operation and have http methods specified.",
                handler=name,
            )

        return _record_handler(func, {
            "method": self.method,
            "path": self.path,
            "tags": tuple(self.tags),
            "operation_fragment": self.operation,
        })


class GET(RouteDecorator):
    """GET request decorator."""
    method = 'get'


class POST(RouteDecorator):
    """POST request decorator."""
    method = 'post'


class PUT(RouteDecorator):
    """PUT request decorator."""
    method = 'put'


class PATCH(RouteDecorator):
    """PATCH request decorator."""
    method = 'patch'


class DELETE(RouteDecorator):
    """DELETE request decorator."""
    method = 'delete'


class HEAD(RouteDecorator):
    """HEAD request decorator."""
    method = 'head'


class OPTIONS(RouteDecorator):
    """OPTIONS request decorator."""
    method = 'options'


class TRACE(RouteDecorator):
    """TRACE request decorator."""
    method = 'trace'


get = GET
post = POST
put = PUT
patch = PATCH
delete = DELETE
head = HEAD
options = OPTIONS
trace = TRACE

_ROUTE_DECORATORS = {cls.method: cls for cls in (GET, POST, PUT, PATCH, DELETE, HEAD, OPTIONS, TRACE)}


def route(method: str, path: Optional[str] = None, **kwargs) -> Callable[[F], F]:
    """
    Generic route decorator.

    Example:
        @route("GET", "/users")
        def get_users(self):
            ...
    """
    decorator_cls = _ROUTE_DECORATORS.get(method.lower())
    if decorator_cls is None:
        raise DecoratorMisuseFault(f"Unknown HTTP method {method!r}.")
    return decorator_cls(path, **kwargs)


def bind_operation(operation_id: str) -> Callable[[F], F]:
    """Bind a handler of a bound controller to an existing operation."""
    if not operation_id:
        raise DecoratorMisuseFault("Operation id cannot be empty.")

    def decorator(func: F) -> F:
        name = handler_name(func)
        pending = pending_handler_metadata(func)
        if pending.method is not None:
            raise DecoratorMisuseFault(
                f"Method handler {name} cannot both be bound to an operation and have http methods specified.",
                handler=name,
            )
        if pending.operation_id is not None and pending.operation_id != operation_id:
            raise DecoratorMisuseFault(
                f"Method handler {name} is already bound to operation {pending.operation_id}.",
                handler=name,
            )
        return _record_handler(func, {"operation_id": operation_id})

    return decorator


# ============================================================================
# Response decorators
# ============================================================================

def _status_key(status: Union[int, str]) -> str:
    return str(status)


def _default_description(status: Union[int, str]) -> str:
    try:
        return HTTPStatus(int(status)).phrase
    except ValueError:
        return "Default response" if str(status) == "default" else ""


def response(
    status: Union[int, str],
    content: Optional[Mapping[str, Any]] = None,
    response: Optional[Mapping[str, Any]] = None,
    *,
    description: Optional[str] = None,
) -> Callable[[F], F]:
    """
    Declare a response of the handler's operation.

    Args:
        status: Status code, or ``"default"``
        content: Media type map, ``{"application/json": {"schema": ...}}``
        response: Extra response object fields (headers, links, ...)
        description: Defaults to the status phrase
    """
    entry: Dict[str, Any] = clone(dict(response or {}))
    entry.setdefault("description", description if description is not None else _default_description(status))
    if content:
        entry["content"] = clone(dict(content))

    def decorator(func: F) -> F:
        return _record_handler(func, {"responses": {_status_key(status): entry}})

    return decorator


def json_response(
    status: Union[int, str],
    schema: Schema = None,
    *,
    description: Optional[str] = None,
) -> Callable[[F], F]:
    """Declare an ``application/json`` response with ``schema``."""
    media: Dict[str, Any] = {}
    if schema is not None:
        media["schema"] = expand_schema(schema)
    return response(status, {"application/json": media}, description=description)


def empty_response(status: Union[int, str], *, description: Optional[str] = None) -> Callable[[F], F]:
    """Declare a response without a body."""
    return response(status, description=description)
