"""
Shared test fixtures and helpers for the specweave test suite.
"""

from typing import Any, Dict, List, Optional

import httpx
import pytest

from specweave.metadata import MetadataStore
from specweave.pipeline import MethodHandlerContext, RequestContext
from specweave.request import Request
from specweave.response import Response
from specweave.validation import JsonSchemaValidator


# ============================================================================
# ASGI Helpers
# ============================================================================


def make_scope(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
) -> dict:
    """Build a minimal ASGI HTTP scope."""
    raw_headers = []
    for name, value in headers or []:
        raw_headers.append(
            (name.lower().encode("latin-1") if isinstance(name, str) else name,
             value.encode("latin-1") if isinstance(value, str) else value)
        )
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": query_string.encode("utf-8"),
        "headers": raw_headers,
        "scheme": "http",
        "server": ("127.0.0.1", 8000),
        "client": ("127.0.0.1", 12345),
        "root_path": "",
    }


def make_receive(body: bytes = b"", *, chunks: Optional[List[bytes]] = None):
    """Create an ASGI receive callable from body bytes or chunked list."""
    if chunks:
        messages = [
            {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
            for i, chunk in enumerate(chunks)
        ]
    else:
        messages = [{"type": "http.request", "body": body, "more_body": False}]

    idx = 0

    async def receive():
        nonlocal idx
        if idx < len(messages):
            msg = messages[idx]
            idx += 1
            return msg
        return {"type": "http.disconnect"}

    return receive


class SendCapture:
    """ASGI ``send`` that records messages."""

    def __init__(self):
        self.messages: List[Dict[str, Any]] = []

    async def __call__(self, message: Dict[str, Any]) -> None:
        self.messages.append(message)

    @property
    def start(self) -> Optional[Dict[str, Any]]:
        for message in self.messages:
            if message["type"] == "http.response.start":
                return message
        return None

    @property
    def status(self) -> Optional[int]:
        start = self.start
        return start["status"] if start else None

    @property
    def headers(self) -> Dict[str, str]:
        start = self.start or {"headers": []}
        return {name.decode("latin-1"): value.decode("latin-1") for name, value in start["headers"]}

    @property
    def body(self) -> bytes:
        return b"".join(m.get("body", b"") for m in self.messages if m["type"] == "http.response.body")

    @property
    def starts(self) -> int:
        return sum(1 for m in self.messages if m["type"] == "http.response.start")


def make_request(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    body: bytes = b"",
    path_params: Optional[Dict[str, str]] = None,
    **kwargs,
) -> Request:
    """Build a full Request object for testing."""
    scope = make_scope(method=method, path=path, query_string=query_string, headers=headers)
    return Request(scope, make_receive(body), path_params=path_params, **kwargs)


def make_response(method: str = "GET"):
    """Response plus the capture it writes to."""
    send = SendCapture()
    return Response(send, method=method), send


def client_for(app) -> httpx.AsyncClient:
    """httpx client talking to an ASGI app in-process."""
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


# ============================================================================
# Pipeline Helpers
# ============================================================================


def make_context(
    operation: Optional[Dict[str, Any]] = None,
    *,
    path: str = "/widgets",
    method: str = "get",
    components: Optional[Dict[str, Any]] = None,
    path_item: Optional[Dict[str, Any]] = None,
    handler=None,
    handler_args=(),
    controller: Any = None,
    validator: Any = "default",
) -> MethodHandlerContext:
    """MethodHandlerContext over a one-operation document."""
    item = dict(path_item or {})
    item[method] = operation if operation is not None else {"responses": {}}
    document = {
        "openapi": "3.1.0",
        "info": {"title": "Test API", "version": "1.0.0"},
        "paths": {path: item},
        "components": components or {},
    }
    return MethodHandlerContext(
        document,
        path,
        method,
        controller=controller,
        handler=handler or (lambda *args: None),
        handler_args=list(handler_args),
        validator=JsonSchemaValidator() if validator == "default" else validator,
    )


def make_request_context(context: MethodHandlerContext, method: Optional[str] = None, **request_kwargs):
    """RequestContext plus the capture its response writes to."""
    method = method or context.method.upper()
    request = make_request(method=method, **request_kwargs)
    response, send = make_response(method)
    return RequestContext(context, request, response), send


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def store():
    return MetadataStore()


@pytest.fixture
def info():
    return {"title": "Test API", "version": "1.0.0"}
