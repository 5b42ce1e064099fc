"""
Controller authoring - decorators recording controller, operation,
argument and security metadata.
"""

from .decorators import (
    RouteDecorator,
    GET,
    POST,
    PUT,
    PATCH,
    DELETE,
    HEAD,
    OPTIONS,
    TRACE,
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
    bound_controller,
    controller,
    empty_response,
    expand_schema,
    json_response,
    middleware,
    openapi,
    openapi_operation,
    response,
)
from .params import (
    bind_param,
    bind_request_data,
    body,
    cookie_param,
    header_param,
    optional_json_body,
    path_param,
    query_param,
    request_arg,
    required_cookie_param,
    required_header_param,
    required_json_body,
    required_query_param,
    response_arg,
)
from .security import authenticator, bind_security, require_authentication

__all__ = [
    "RouteDecorator",
    "GET",
    "POST",
    "PUT",
    "PATCH",
    "DELETE",
    "HEAD",
    "OPTIONS",
    "TRACE",
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
    "bound_controller",
    "controller",
    "empty_response",
    "expand_schema",
    "json_response",
    "middleware",
    "openapi",
    "openapi_operation",
    "response",
    "bind_param",
    "bind_request_data",
    "body",
    "cookie_param",
    "header_param",
    "optional_json_body",
    "path_param",
    "query_param",
    "request_arg",
    "required_cookie_param",
    "required_header_param",
    "required_json_body",
    "required_query_param",
    "response_arg",
    "authenticator",
    "bind_security",
    "require_authentication",
]
