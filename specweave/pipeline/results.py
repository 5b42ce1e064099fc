"""
HandlerResult - buffered response description returned by handlers.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..faults import BodyAlreadySetFault
from ..response import JSON_MEDIA_TYPE, Response, encode_body, encode_json

_UNSET = object()


class _Builder:
    """Lets every builder method be called on the class or on an instance."""

    def __init__(self, name: str):
        self.name = name

    def __get__(self, instance, owner):
        method = getattr(owner, f"_{self.name}")
        if instance is None:
            return lambda *args, **kwargs: method(owner(), *args, **kwargs)
        return lambda *args, **kwargs: method(instance, *args, **kwargs)


class HandlerResult:
    """
    Status, headers, cookies and body to be applied to the response.

    Every builder is available as a static starting point or a chained call:

        ```python
        return HandlerResult.status(201).header("Location", "/widgets/1").json(widget)
        ```

    The result is applied exactly once by the result-object middleware.
    Setting a body twice raises ``BodyAlreadySetFault``.
    """

    body = _Builder("body")
    json = _Builder("json")
    status = _Builder("status")
    header = _Builder("header")
    cookie = _Builder("cookie")

    def __init__(self):
        self._body_raw: Any = _UNSET
        self._body_json: Any = _UNSET
        self._status_code: Optional[int] = None
        self._headers: Dict[str, str] = {}
        self._cookies: Dict[str, Dict[str, Any]] = {}

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    def _body(self, value: Any) -> "HandlerResult":
        self._ensure_body_not_set()
        self._body_raw = value
        return self

    def _json(self, value: Any) -> "HandlerResult":
        self._ensure_body_not_set()
        self._body_json = value
        if self.get_header("content-type") is None:
            self._headers["Content-Type"] = JSON_MEDIA_TYPE
        return self

    def _status(self, value: int) -> "HandlerResult":
        self._status_code = int(value)
        return self

    def _header(self, key: str, value: str) -> "HandlerResult":
        self._headers[key] = value
        return self

    def _cookie(self, key: str, value: str, **options: Any) -> "HandlerResult":
        self._cookies[key] = {"value": value, **options}
        return self

    def _ensure_body_not_set(self) -> None:
        if self.has_body:
            raise BodyAlreadySetFault()

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def status_code(self) -> Optional[int]:
        return self._status_code

    @status_code.setter
    def status_code(self, value: Optional[int]) -> None:
        self._status_code = value

    @property
    def has_body(self) -> bool:
        return self._body_raw is not _UNSET or self._body_json is not _UNSET

    @property
    def is_json(self) -> bool:
        return self._body_json is not _UNSET

    @property
    def body_value(self) -> Any:
        if self._body_json is not _UNSET:
            return self._body_json
        if self._body_raw is not _UNSET:
            return self._body_raw
        return None

    def get_header(self, key: str) -> Optional[str]:
        lowered = key.lower()
        for name, value in self._headers.items():
            if name.lower() == lowered:
                return value
        return None

    @property
    def headers(self) -> Dict[str, str]:
        return dict(self._headers)

    @property
    def cookies(self) -> Dict[str, Dict[str, Any]]:
        return {name: dict(data) for name, data in self._cookies.items()}

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    async def apply(self, response: Response) -> None:
        """
        Write this result to ``response``. Always finishes the response.

        The body is encoded before anything is copied to the response, so a
        body that cannot be encoded leaves the response untouched.
        """
        if self._body_json is not _UNSET:
            encoded = (encode_json(self._body_json), JSON_MEDIA_TYPE)
        elif self._body_raw is not _UNSET:
            encoded = encode_body(self._body_raw)
        else:
            encoded = None

        if self._status_code is not None:
            response.status(self._status_code)

        for key, value in self._headers.items():
            response.set_header(key, value)

        for key, data in self._cookies.items():
            options = {name: option for name, option in data.items() if name != "value"}
            response.set_cookie(key, data["value"], **options)

        if encoded is None:
            await response.end()
        else:
            payload, media_type = encoded
            await response.send(payload, media_type=media_type)

    def __repr__(self) -> str:
        return f"<HandlerResult status={self._status_code} body={'set' if self.has_body else 'unset'}>"
