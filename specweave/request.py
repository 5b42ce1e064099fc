"""
Request - ASGI request wrapper.

Provides:
- Method, path, query, header and cookie accessors over the ASGI scope
- Path parameters captured by the router
- Idempotent, size-limited body reading with JSON decoding
- A per-request ``state`` mapping for middleware
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional
from urllib.parse import parse_qsl

from ._datastructures import Headers, MultiDict, ParsedContentType, parse_cookie_header
from .faults import BadRequest, http_fault


class ClientDisconnect(Exception):
    """The client went away while the body was being read."""


class Request:
    """
    Request object handed to request processors, middleware and handlers.

    Body access is cached: ``body()`` and ``json()`` may be awaited any number
    of times and only the first call reads from the transport.
    """

    def __init__(
        self,
        scope: Mapping[str, Any],
        receive: Callable[[], Awaitable[dict]],
        *,
        path_params: Optional[Dict[str, str]] = None,
        max_body_size: int = 10_485_760,  # 10 MiB
    ):
        self.scope = scope
        self._receive = receive
        self.path_params: Dict[str, str] = dict(path_params or {})
        self.max_body_size = max_body_size
        self.state: Dict[str, Any] = {}

        self._body: Optional[bytes] = None
        self._json: Any = None
        self._json_loaded = False
        self._query_params: Optional[MultiDict] = None
        self._headers: Optional[Headers] = None
        self._cookies: Optional[Dict[str, str]] = None
        self._disconnected = False

    # ========================================================================
    # Basic Properties
    # ========================================================================

    @property
    def method(self) -> str:
        return self.scope.get("method", "GET").upper()

    @property
    def path(self) -> str:
        return self.scope.get("path", "/")

    @property
    def query_string(self) -> str:
        return self.scope.get("query_string", b"").decode("latin-1")

    @property
    def client(self) -> Optional[tuple]:
        return self.scope.get("client")

    # ========================================================================
    # Query / headers / cookies
    # ========================================================================

    @property
    def query_params(self) -> MultiDict:
        if self._query_params is None:
            self._query_params = MultiDict(parse_qsl(self.query_string, keep_blank_values=True))
        return self._query_params

    def query_param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.query_params.get(name, default)

    @property
    def headers(self) -> Headers:
        if self._headers is None:
            self._headers = Headers(raw=list(self.scope.get("headers", [])))
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name, default)

    @property
    def cookies(self) -> Mapping[str, str]:
        if self._cookies is None:
            self._cookies = parse_cookie_header(self.header("cookie"))
        return self._cookies

    def cookie(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.cookies.get(name, default)

    @property
    def content_type(self) -> Optional[str]:
        return self.header("content-type")

    @property
    def parsed_content_type(self) -> Optional[ParsedContentType]:
        return ParsedContentType.parse(self.content_type)

    # ========================================================================
    # Body
    # ========================================================================

    def is_disconnected(self) -> bool:
        return self._disconnected

    async def body(self) -> bytes:
        """
        Read the full request body.

        Raises:
            ClientDisconnect: If the client disconnects mid-body
            HTTPFault: 413 if the body exceeds ``max_body_size``
        """
        if self._body is not None:
            return self._body

        chunks = []
        total = 0
        while True:
            try:
                message = await self._receive()
            except asyncio.CancelledError:
                self._disconnected = True
                raise

            if message["type"] == "http.disconnect":
                self._disconnected = True
                raise ClientDisconnect("Client disconnected")

            chunk = message.get("body", b"")
            if chunk:
                total += len(chunk)
                if total > self.max_body_size:
                    raise http_fault(413, "Request body exceeds maximum size")
                chunks.append(chunk)

            if not message.get("more_body", False):
                break

        self._body = b"".join(chunks)
        return self._body

    async def text(self) -> str:
        """
        Decode the body with the Content-Type charset (UTF-8 by default).

        Raises:
            HTTPFault: 415 if the charset is unknown
        """
        parsed = self.parsed_content_type
        charset = (parsed.charset if parsed else None) or "utf-8"
        raw = await self.body()
        try:
            return raw.decode(charset, errors="replace")
        except LookupError:
            raise http_fault(415, f'Unsupported charset "{charset}".') from None

    async def json(self) -> Any:
        """
        Decode the body as JSON.

        An empty body decodes to ``None``.

        Raises:
            BadRequest: If the body is not valid JSON
        """
        if self._json_loaded:
            return self._json

        raw = await self.body()
        if not raw.strip():
            value = None
        else:
            try:
                value = json.loads(raw)
            except (ValueError, UnicodeDecodeError) as exc:
                raise BadRequest(f"Invalid JSON request body: {exc}") from exc

        self._json = value
        self._json_loaded = True
        return value

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path}>"
