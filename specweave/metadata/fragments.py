"""
Metadata fragments.

A fragment is an immutable, partial description attached either to a
controller class or to one handler method. Every field declares how it
combines with an earlier fragment for the same target:

- SCALAR: last registration wins (``None`` means "not specified")
- LIST: concatenated in registration order
- KEYED: merged key by key, deep-merging on collision
- BINDINGS: write-once per positional index
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


class MergeKind(str, Enum):
    """How a fragment field combines with an earlier value."""
    SCALAR = "scalar"
    LIST = "list"
    KEYED = "keyed"
    BINDINGS = "bindings"


def _scalar(default: Any = None):
    return field(default=default, metadata={"merge": MergeKind.SCALAR})


def _list():
    return field(default=(), metadata={"merge": MergeKind.LIST})


def _keyed():
    return field(default_factory=dict, metadata={"merge": MergeKind.KEYED})


def _bindings():
    return field(default_factory=dict, metadata={"merge": MergeKind.BINDINGS})


def merge_kind(f) -> MergeKind:
    return f.metadata["merge"]


class _Fragment:
    """Shared normalization for fragment dataclasses."""

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            kind = merge_kind(f)
            if kind is MergeKind.LIST:
                if value is None:
                    value = ()
                elif not isinstance(value, tuple):
                    value = tuple(value)
            elif kind in (MergeKind.KEYED, MergeKind.BINDINGS):
                value = dict(value or {})
            object.__setattr__(self, f.name, value)

    @classmethod
    def coerce(cls, value: Any):
        """Accept an instance or a plain mapping of field values."""
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            return cls(**value)
        raise TypeError(f"Expected {cls.__name__} or mapping, got {type(value).__name__}")


# ============================================================================
# Argument bindings
# ============================================================================

class BindingKind(str, Enum):
    """Where a handler argument gets its value from."""
    PARAMETER = "openapi-parameter"
    REQUEST_BODY = "request-body"
    REQUEST_RAW = "request-raw"
    RESPONSE_RAW = "response-raw"
    SECURITY = "openapi-security"
    REQUEST_DATA = "request-data"


@dataclass(frozen=True)
class ArgumentBinding:
    """
    Describes how one positional handler argument is produced.

    ``PARAMETER`` bindings cover path, query, header and cookie parameters as
    well as parameters declared elsewhere in the operation; the location comes
    from the parameter object in the assembled document.
    """
    kind: BindingKind
    parameter_name: Optional[str] = None
    scheme_name: Optional[str] = None
    request_data_key: Optional[str] = None

    @classmethod
    def parameter(cls, name: str) -> "ArgumentBinding":
        return cls(BindingKind.PARAMETER, parameter_name=name)

    @classmethod
    def request_body(cls) -> "ArgumentBinding":
        return cls(BindingKind.REQUEST_BODY)

    @classmethod
    def request(cls) -> "ArgumentBinding":
        return cls(BindingKind.REQUEST_RAW)

    @classmethod
    def response(cls) -> "ArgumentBinding":
        return cls(BindingKind.RESPONSE_RAW)

    @classmethod
    def security(cls, scheme_name: str) -> "ArgumentBinding":
        return cls(BindingKind.SECURITY, scheme_name=scheme_name)

    @classmethod
    def request_data(cls, key: str) -> "ArgumentBinding":
        return cls(BindingKind.REQUEST_DATA, request_data_key=key)

    @property
    def request_data_slot(self) -> Optional[str]:
        """Key under which the pipeline stores this argument's value."""
        if self.kind is BindingKind.PARAMETER:
            return f"openapi-parameter-{self.parameter_name}"
        if self.kind is BindingKind.REQUEST_BODY:
            return "openapi-body"
        if self.kind is BindingKind.SECURITY:
            return f"openapi-security-{self.scheme_name}"
        if self.kind is BindingKind.REQUEST_DATA:
            return self.request_data_key
        return None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind.value}
        if self.parameter_name is not None:
            data["parameterName"] = self.parameter_name
        if self.scheme_name is not None:
            data["schemeName"] = self.scheme_name
        if self.request_data_key is not None:
            data["requestDataKey"] = self.request_data_key
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ArgumentBinding":
        return cls(
            BindingKind(data["type"]),
            parameter_name=data.get("parameterName"),
            scheme_name=data.get("schemeName"),
            request_data_key=data.get("requestDataKey"),
        )


# ============================================================================
# Controller / handler fragments
# ============================================================================

@dataclass(frozen=True)
class AuthenticatorDeclaration:
    """Scheme name and OpenAPI security scheme object of an authenticator."""
    name: str
    scheme: Mapping[str, Any]


@dataclass(frozen=True)
class ControllerMetadata(_Fragment):
    """
    Controller-wide fragment.

    ``operation_fragment`` is merged into every operation of the controller;
    ``openapi_fragment`` is merged into the document itself.
    """
    kind: Optional[str] = _scalar()
    path: Optional[str] = _scalar()
    authenticator: Optional[AuthenticatorDeclaration] = _scalar()
    tags: Tuple[str, ...] = _list()
    security: Tuple[Mapping[str, Any], ...] = _list()
    middleware: Tuple[Any, ...] = _list()
    operation_fragment: Dict[str, Any] = _keyed()
    openapi_fragment: Dict[str, Any] = _keyed()

    @property
    def is_bound(self) -> bool:
        return self.kind == "bound"


@dataclass(frozen=True)
class HandlerMetadata(_Fragment):
    """
    Handler-specific fragment.

    A handler is either *custom* (it has ``method`` and ``path`` and produces
    its own operation) or *bound* (it has ``operation_id`` and attaches to an
    operation of an externally supplied document).
    """
    method: Optional[str] = _scalar()
    path: Optional[str] = _scalar()
    operation_id: Optional[str] = _scalar()
    tags: Tuple[str, ...] = _list()
    parameters: Tuple[Mapping[str, Any], ...] = _list()
    security: Tuple[Mapping[str, Any], ...] = _list()
    middleware: Tuple[Any, ...] = _list()
    request_body: Dict[str, Any] = _keyed()
    responses: Dict[str, Any] = _keyed()
    operation_fragment: Dict[str, Any] = _keyed()
    args: Dict[int, ArgumentBinding] = _bindings()

    @property
    def is_bound(self) -> bool:
        return self.operation_id is not None and self.method is None

    def binding_table(self):
        """Bindings ordered by positional index."""
        return [self.args[index] for index in sorted(self.args)]
