"""
Response - imperative ASGI response writer.

Handlers and middleware may write to the response directly (status,
headers, cookies, body); the dispatch middleware write structured results
through the same object. A response is written at most once.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from email.utils import formatdate
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from .faults import HeadersAlreadySentFault, InvalidHeaderFault

logger = logging.getLogger("specweave.server")

JSON_MEDIA_TYPE = "application/json"


def _json_default(o):
    if isinstance(o, datetime):
        return o.isoformat()
    if isinstance(o, (set, frozenset)):
        return list(o)
    raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")


def encode_json(value: Any) -> bytes:
    return json.dumps(value, default=_json_default, separators=(",", ":")).encode("utf-8")


def encode_body(body: Any, media_type: Optional[str] = None) -> Tuple[bytes, Optional[str]]:
    """
    Encode a response body without touching any response state.

    ``str`` bodies are UTF-8 encoded, ``dict``/``list`` bodies are JSON
    encoded; ``None`` is an empty body.

    Returns:
        Tuple of (payload, media type to use when none is set)
    """
    if isinstance(body, (dict, list)):
        return encode_json(body), media_type or JSON_MEDIA_TYPE
    if body is None:
        return b"", media_type
    if isinstance(body, bytes):
        return body, media_type
    if isinstance(body, str):
        return body.encode("utf-8"), media_type or "text/plain; charset=utf-8"
    return str(body).encode("utf-8"), media_type or "text/plain; charset=utf-8"


class Response:
    """
    Response handle bound to an ASGI ``send`` callable.

    ``headers_sent`` turns true once ``http.response.start`` went out. Writes
    after the client disconnected are dropped with a warning.
    """

    def __init__(
        self,
        send: Callable[[dict], Awaitable[None]],
        *,
        method: str = "GET",
        is_disconnected: Optional[Callable[[], bool]] = None,
    ):
        self._send = send
        self._method = method.upper()
        self._is_disconnected = is_disconnected
        self._headers: Dict[str, Union[str, List[str]]] = {}
        self.status_code = 200
        self.status_set = False
        self.headers_sent = False
        self.finished = False
        self.bytes_sent = 0

    # ========================================================================
    # Status & headers
    # ========================================================================

    def status(self, code: int) -> "Response":
        self.status_code = int(code)
        self.status_set = True
        return self

    @property
    def headers(self) -> Dict[str, Union[str, List[str]]]:
        return self._headers

    def get_header(self, name: str) -> Optional[Union[str, List[str]]]:
        return self._headers.get(name.lower())

    def set_header(self, name: str, value: str) -> None:
        self._ensure_not_sent()
        self._headers[name.lower()] = str(value)

    def add_header(self, name: str, value: str) -> None:
        self._ensure_not_sent()
        key = name.lower()
        existing = self._headers.get(key)
        if existing is None:
            self._headers[key] = str(value)
        elif isinstance(existing, list):
            existing.append(str(value))
        else:
            self._headers[key] = [existing, str(value)]

    def unset_header(self, name: str) -> None:
        self._headers.pop(name.lower(), None)

    def clear_headers(self) -> None:
        """Drop every pending header and cookie."""
        self._ensure_not_sent()
        self._headers.clear()

    def set_cookie(
        self,
        name: str,
        value: str,
        *,
        max_age: Optional[int] = None,
        expires: Optional[datetime] = None,
        path: str = "/",
        domain: Optional[str] = None,
        secure: bool = False,
        httponly: bool = False,
        samesite: Optional[str] = None,
    ) -> None:
        parts = [f"{name}={value}"]
        if max_age is not None:
            parts.append(f"Max-Age={max_age}")
        if expires is not None:
            parts.append(f"Expires={formatdate(expires.timestamp(), usegmt=True)}")
        parts.append(f"Path={path}")
        if domain:
            parts.append(f"Domain={domain}")
        if secure:
            parts.append("Secure")
        if httponly:
            parts.append("HttpOnly")
        if samesite:
            parts.append(f"SameSite={samesite}")
        self.add_header("set-cookie", "; ".join(parts))

    def _ensure_not_sent(self) -> None:
        if self.headers_sent:
            raise HeadersAlreadySentFault("Cannot modify a response whose headers were already sent.")

    # ========================================================================
    # Writing
    # ========================================================================

    async def send(self, body: Any = b"", *, media_type: Optional[str] = None) -> None:
        """Write the whole response. See ``encode_body`` for body handling."""
        payload, media_type = encode_body(body, media_type)

        if media_type and "content-type" not in self._headers:
            self._headers["content-type"] = media_type
        if payload and "content-type" not in self._headers:
            self._headers["content-type"] = "application/octet-stream"

        await self._write(payload)

    async def json(self, value: Any) -> None:
        payload = encode_json(value)
        if "content-type" not in self._headers:
            self._headers["content-type"] = JSON_MEDIA_TYPE
        await self._write(payload)

    async def end(self) -> None:
        await self._write(b"")

    async def _write(self, payload: bytes) -> None:
        if self.headers_sent:
            raise HeadersAlreadySentFault("The response has already been sent.")

        self._headers["content-length"] = str(len(payload))
        headers = self._encode_headers()
        self.headers_sent = True
        self.finished = True

        if self._is_disconnected is not None and self._is_disconnected():
            logger.warning("Client disconnected; dropping %d byte response", len(payload))
            return

        try:
            await self._send({"type": "http.response.start", "status": self.status_code, "headers": headers})
            await self._send({
                "type": "http.response.body",
                "body": b"" if self._method == "HEAD" else payload,
            })
        except OSError as exc:
            logger.warning("Write after client disconnect ignored: %s", exc)
            return

        self.bytes_sent = len(payload)

    def _encode_headers(self) -> List[Tuple[bytes, bytes]]:
        headers = []
        for name, value in self._headers.items():
            for item in value if isinstance(value, list) else [value]:
                try:
                    headers.append((name.encode("latin-1"), item.encode("latin-1")))
                except UnicodeEncodeError:
                    raise InvalidHeaderFault(name) from None
        return headers

    def __repr__(self) -> str:
        return f"<Response {self.status_code} sent={self.headers_sent}>"
