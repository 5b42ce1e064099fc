"""
Pipeline contexts.

``OperationContext`` is the static view of one operation in an assembled
document. ``MethodHandlerContext`` adds the resolved controller, handler and
binding table; it is what middleware factories receive at compile time.
``RequestContext`` is created per request and carries the transport handles
and the request-data map that processors fill for the handler.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from ..faults import SpecResolutionFault
from ..metadata import ArgumentBinding
from ..openapi.refs import require_reference
from ..request import Request
from ..response import Response


class OperationContext:
    """Static information about a (path, method) pair."""

    def __init__(self, document: Mapping[str, Any], path: str, method: str):
        path_item = (document.get("paths") or {}).get(path)
        if path_item is None:
            raise SpecResolutionFault(f"Could not find path item for path {path}.", path=path)

        operation = path_item.get(method)
        if operation is None:
            raise SpecResolutionFault(
                f"Could not find operation {method} for path {path}.", path=path, method=method
            )

        self._document = document
        self._path = path
        self._method = method
        self._path_item = path_item
        self._operation = operation
        self._parameters: Optional[List[Dict[str, Any]]] = None

    @property
    def document(self) -> Mapping[str, Any]:
        return self._document

    @property
    def path(self) -> str:
        return self._path

    @property
    def method(self) -> str:
        return self._method

    @property
    def path_item(self) -> Mapping[str, Any]:
        return self._path_item

    @property
    def operation(self) -> Mapping[str, Any]:
        return self._operation

    @property
    def operation_id(self) -> Optional[str]:
        return self._operation.get("operationId")

    @property
    def label(self) -> str:
        """Human readable operation name for error messages."""
        if self.operation_id:
            return f'{self.operation_id} ({self._method.upper()} {self._path})'
        return f"{self._method.upper()} {self._path}"

    @property
    def security_schemes(self) -> Mapping[str, Any]:
        schemes = (self._document.get("components") or {}).get("securitySchemes") or {}
        return {
            name: require_reference(self._document, scheme, f"security scheme {name}")
            for name, scheme in schemes.items()
        }

    @property
    def security(self) -> List[Mapping[str, Any]]:
        """Operation security, falling back to the document default."""
        if "security" in self._operation:
            return list(self._operation["security"] or [])
        return list(self._document.get("security") or [])

    @property
    def parameters(self) -> List[Dict[str, Any]]:
        """
        Resolved parameters of the operation.

        Path-item parameters apply unless the operation redeclares the same
        (name, location) pair.
        """
        if self._parameters is None:
            merged: Dict[tuple, Dict[str, Any]] = {}
            sources = [*(self._path_item.get("parameters") or []), *(self._operation.get("parameters") or [])]
            for raw in sources:
                param = require_reference(self._document, raw, f"a parameter of operation {self.label}")
                merged[(param.get("name"), param.get("in"))] = param
            self._parameters = list(merged.values())
        return self._parameters

    @property
    def request_body(self) -> Optional[Mapping[str, Any]]:
        body = self._operation.get("requestBody")
        if body is None:
            return None
        return require_reference(self._document, body, f"the request body of operation {self.label}")

    @property
    def responses(self) -> Mapping[str, Any]:
        return self._operation.get("responses") or {}


class MethodHandlerContext(OperationContext):
    """
    Operation context bound to a controller and handler.

    Passed to middleware factories, which may precompute whatever they need
    from it once per operation.
    """

    def __init__(
        self,
        document: Mapping[str, Any],
        path: str,
        method: str,
        controller: Any,
        handler: Callable,
        handler_args: List[ArgumentBinding],
        validator: Any = None,
    ):
        super().__init__(document, path, method)
        self.controller = controller
        self.handler = handler
        self.handler_args = list(handler_args)
        self.validator = validator


RawValue = Union[str, List[str], None]


class RequestContext:
    """
    Per-request state shared by processors, middleware and the handler.

    Attribute access for the static parts (``path``, ``operation``,
    ``controller`` ...) is delegated to the ``MethodHandlerContext``.
    """

    def __init__(self, handler_context: MethodHandlerContext, request: Request, response: Response):
        self.handler_context = handler_context
        self.request = request
        self.response = response
        self._request_data: Dict[str, Any] = {}

    def __getattr__(self, name: str) -> Any:
        # Only called for attributes not found on the instance.
        if name.startswith("_") or name == "handler_context":
            raise AttributeError(name)
        return getattr(self.handler_context, name)

    # Shorthands matching common handler argument names
    @property
    def req(self) -> Request:
        return self.request

    @property
    def res(self) -> Response:
        return self.response

    # ------------------------------------------------------------------
    # Request data
    # ------------------------------------------------------------------

    def has_request_data(self, key: str) -> bool:
        return key in self._request_data

    def get_request_data(self, key: str, default: Any = None) -> Any:
        return self._request_data.get(key, default)

    def set_request_data(self, key: str, value: Any) -> None:
        self._request_data[key] = value

    @property
    def request_data(self) -> Mapping[str, Any]:
        return dict(self._request_data)

    # ------------------------------------------------------------------
    # Raw parameter access
    # ------------------------------------------------------------------

    def get_path_param(self, name: str) -> Optional[str]:
        return self.request.path_params.get(name)

    def get_query(self, name: str) -> RawValue:
        values = self.request.query_params.get_all(name)
        if not values:
            return None
        return values[0] if len(values) == 1 else values

    def get_header(self, name: str) -> RawValue:
        values = self.request.headers.get_all(name)
        if not values:
            return None
        return values[0] if len(values) == 1 else values

    def get_cookie(self, name: str) -> Optional[str]:
        return self.request.cookie(name)

    def __repr__(self) -> str:
        return f"<RequestContext {self.handler_context.label}>"
