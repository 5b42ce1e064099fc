"""
specweave - declarative HTTP APIs from decorated controllers.

Controllers describe their operations with decorators; the assembler merges
those declarations into an OpenAPI 3.1 document, and the router factory
compiles each operation into a request pipeline:

    parameters -> body -> security -> middleware -> handler -> response

Example:
    ```python
    from specweave import controller, get, path_param, json_response, create_router

    @controller("/widgets")
    class Widgets:
        @get("/{id}")
        @path_param("id", "integer")
        @json_response(200, {"type": "object"})
        def get_widget(self, id):
            return {"id": id}

    app = create_router([Widgets()], {"title": "Widgets", "version": "1.0.0"})
    ```
"""

__version__ = "0.1.0"

from .faults import (
    Fault,
    FaultDomain,
    Severity,
    AuthoringFault,
    HTTPFault,
    BadRequest,
    Unauthorized,
    Forbidden,
    NotFound,
    MethodNotAllowed,
    InternalServerError,
    http_fault,
)
from .metadata import MetadataStore
from .controller import (
    controller,
    bound_controller,
    openapi,
    openapi_operation,
    middleware,
    get,
    post,
    put,
    patch,
    delete,
    head,
    options,
    trace,
    route,
    bind_operation,
    response,
    json_response,
    empty_response,
    path_param,
    query_param,
    required_query_param,
    header_param,
    required_header_param,
    cookie_param,
    required_cookie_param,
    bind_param,
    body,
    required_json_body,
    optional_json_body,
    request_arg,
    response_arg,
    bind_request_data,
    authenticator,
    require_authentication,
    bind_security,
)
from .openapi import (
    SpecAssembler,
    AssembledSpec,
    create_openapi_from_controllers,
    addend_openapi_from_controllers,
    strip_extensions,
)
from .pipeline import (
    HandlerResult,
    MethodHandler,
    MethodHandlerContext,
    Next,
    RequestContext,
    middleware_factory,
    response_validation_middleware,
)
from .auth import HttpBasicCredentials
from .request import Request
from .response import Response
from .routing import Router, create_router, create_router_from_spec
from .validation import JsonSchemaValidator, SchemaValidator, ValidationResult
from .config import AssemblyConfig, ConfigLoader, RouterConfig, ServerConfig

__all__ = [
    "__version__",
    "Fault",
    "FaultDomain",
    "Severity",
    "AuthoringFault",
    "HTTPFault",
    "BadRequest",
    "Unauthorized",
    "Forbidden",
    "NotFound",
    "MethodNotAllowed",
    "InternalServerError",
    "http_fault",
    "MetadataStore",
    "controller",
    "bound_controller",
    "openapi",
    "openapi_operation",
    "middleware",
    "get",
    "post",
    "put",
    "patch",
    "delete",
    "head",
    "options",
    "trace",
    "route",
    "bind_operation",
    "response",
    "json_response",
    "empty_response",
    "path_param",
    "query_param",
    "required_query_param",
    "header_param",
    "required_header_param",
    "cookie_param",
    "required_cookie_param",
    "bind_param",
    "body",
    "required_json_body",
    "optional_json_body",
    "request_arg",
    "response_arg",
    "bind_request_data",
    "authenticator",
    "require_authentication",
    "bind_security",
    "SpecAssembler",
    "AssembledSpec",
    "create_openapi_from_controllers",
    "addend_openapi_from_controllers",
    "strip_extensions",
    "HandlerResult",
    "MethodHandler",
    "MethodHandlerContext",
    "Next",
    "RequestContext",
    "middleware_factory",
    "response_validation_middleware",
    "HttpBasicCredentials",
    "Request",
    "Response",
    "Router",
    "create_router",
    "create_router_from_spec",
    "JsonSchemaValidator",
    "SchemaValidator",
    "ValidationResult",
    "AssemblyConfig",
    "ConfigLoader",
    "RouterConfig",
    "ServerConfig",
]
