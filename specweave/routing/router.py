"""
Router - ASGI application dispatching requests to compiled MethodHandlers.

Two-tier lookup:
1. Static route hash map for paths with no parameters
2. Compiled regex list for templated paths, in registration order

A static path whose methods do not fit falls through to the templates. A
path that matches only with other methods is a 405 whose ``Allow`` header
lists the methods of every matching template; HEAD falls back to GET.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Pattern, Set, Tuple

from ..faults import MethodNotAllowed, NotFound, SpecResolutionFault
from ..openapi.paths import compile_path_pattern, is_static_path, normalize_path_template
from ..request import Request
from ..response import Response
from .errors import ErrorChannel

logger = logging.getLogger("specweave.routing")

Handler = Callable[[Request, Response], Awaitable[Any]]
ErrorHandler = Callable[..., Awaitable[None]]


@dataclass
class RouteMatch:
    """Result of a successful route match."""
    path: str
    method: str
    handler: Handler
    params: Dict[str, str]


@dataclass
class _DynamicRoute:
    path: str
    pattern: Pattern
    names: List[str]
    methods: Dict[str, Handler]


def _normalize(path: str) -> str:
    return path.rstrip("/") or "/"


class Router:
    """
    ASGI router over operation handlers.

    Routes are registered with ``add_route``; the router itself is the ASGI
    callable.
    """

    def __init__(
        self,
        *,
        error_handler: Optional[ErrorHandler] = None,
        max_body_size: int = 10_485_760,
    ):
        self.error_handler = error_handler or ErrorChannel()
        self.max_body_size = max_body_size

        self._static: Dict[str, Dict[str, Handler]] = {}
        self._dynamic: List[_DynamicRoute] = []
        self._dynamic_index: Dict[str, _DynamicRoute] = {}

        # Set by the router factory
        self.document: Optional[Dict[str, Any]] = None
        self.handlers: Dict[tuple, Handler] = {}
        self.spec: Any = None

    # ========================================================================
    # Registration
    # ========================================================================

    def add_route(self, path: str, method: str, handler: Handler) -> None:
        """
        Register ``handler`` for ``method`` on the ``path`` template.

        Raises:
            SpecResolutionFault: If the path and method are already routed
        """
        path = normalize_path_template(path)
        method = method.upper()

        if is_static_path(path):
            methods = self._static.setdefault(_normalize(path), {})
        else:
            route = self._dynamic_index.get(path)
            if route is None:
                pattern, names = compile_path_pattern(path)
                route = _DynamicRoute(path=path, pattern=pattern, names=names, methods={})
                self._dynamic.append(route)
                self._dynamic_index[path] = route
            methods = route.methods

        if method in methods:
            raise SpecResolutionFault(f"Route {method} {path} is already registered.", path=path, method=method)
        methods[method] = handler
        logger.debug("Routed %s %s", method, path)

    def routes(self) -> Iterator[Tuple[str, str, Handler]]:
        for path, methods in self._static.items():
            for method, handler in methods.items():
                yield path, method, handler
        for route in self._dynamic:
            for method, handler in route.methods.items():
                yield route.path, method, handler

    def __len__(self) -> int:
        return sum(1 for _ in self.routes())

    # ========================================================================
    # Matching
    # ========================================================================

    def _candidates(self, path: str) -> Iterator[Tuple[str, Dict[str, Handler], Dict[str, str]]]:
        """Every template matching ``path``, the static one first."""
        path = _normalize(path)
        methods = self._static.get(path)
        if methods is not None:
            yield path, methods, {}

        for route in self._dynamic:
            match = route.pattern.match(path)
            if match is None:
                continue
            params = {name: match.group(f"p{i}") for i, name in enumerate(route.names)}
            yield route.path, route.methods, params

    def match(self, path: str, method: str) -> RouteMatch:
        """
        Find the handler for a request.

        Raises:
            NotFound: No route for the path
            MethodNotAllowed: The path is routed, but not for this method
        """
        method = method.upper()
        allowed: Set[str] = set()
        found = False
        for template, methods, params in self._candidates(path):
            found = True
            handler = methods.get(method)
            if handler is None and method == "HEAD":
                handler = methods.get("GET")
            if handler is not None:
                return RouteMatch(path=template, method=method, handler=handler, params=params)
            allowed.update(methods)

        if not found:
            raise NotFound()
        if "GET" in allowed:
            allowed.add("HEAD")
        raise MethodNotAllowed(sorted(allowed))

    # ========================================================================
    # ASGI
    # ========================================================================

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)

    async def handle_http(self, scope: dict, receive: Callable, send: Callable) -> None:
        request = Request(scope, receive, max_body_size=self.max_body_size)
        response = Response(send, method=request.method, is_disconnected=request.is_disconnected)

        label = None
        try:
            route = self.match(request.path, request.method)
            request.path_params = route.params
            label = f"{route.method} {route.path}"
            await route.handler(request, response)
        except Exception as exc:
            await self.error_handler(exc, request, response, label)

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable) -> None:
        # Routing holds no resources; lifespan events are only acknowledged.
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                break

    def __repr__(self) -> str:
        return f"<Router routes={len(self)}>"
