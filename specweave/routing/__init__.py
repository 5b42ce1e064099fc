"""
Routing - ASGI router, router factory and error channel.
"""

from .errors import ErrorChannel
from .factory import (
    HandlerBuilder,
    create_router,
    create_router_from_spec,
    default_resolve_controller,
    default_resolve_handler,
    extension_handler_factory,
)
from .router import RouteMatch, Router

__all__ = [
    "ErrorChannel",
    "HandlerBuilder",
    "create_router",
    "create_router_from_spec",
    "default_resolve_controller",
    "default_resolve_handler",
    "extension_handler_factory",
    "RouteMatch",
    "Router",
]
