"""
Authentication core types.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Protocol, runtime_checkable

from ..faults import SpecResolutionFault
from ..openapi.extensions import AUTHENTICATOR_EXTENSION


@dataclass(frozen=True)
class HttpBasicCredentials:
    """Decoded ``Authorization: Basic ...`` credentials."""
    username: str
    password: str


@runtime_checkable
class Authenticator(Protocol):
    """
    Strategy behind a security scheme.

    ``authenticate`` receives the extracted credential (a string for apiKey
    and bearer schemes, ``HttpBasicCredentials`` for basic), the scopes the
    operation requires and the request context. It returns the principal,
    a falsy value to reject, or raises an HTTP fault to choose the status.
    May be sync or async.
    """

    def authenticate(self, value: Any, scopes: List[str], ctx: Any) -> Any:
        ...


@dataclass(frozen=True)
class AuthenticatorBinding:
    """A scheme name bound to the callable that authenticates it."""
    scheme_name: str
    scheme: Mapping[str, Any]
    authenticate: Callable[..., Any]


def bind_authenticator(
    scheme_name: str,
    scheme: Mapping[str, Any],
    resolve_controller: Optional[Callable[[Any], Any]] = None,
) -> AuthenticatorBinding:
    """
    Resolve the authenticator extension of ``scheme`` into a callable.

    Raises:
        SpecResolutionFault: If the scheme has no usable authenticator
    """
    extension = scheme.get(AUTHENTICATOR_EXTENSION)
    if not extension:
        raise SpecResolutionFault(
            f'Security scheme "{scheme_name}" does not have a security authenticator extension.',
            scheme=scheme_name,
        )

    controller = extension.get("controller")
    if resolve_controller is not None:
        controller = resolve_controller(controller)

    if inspect.isclass(controller):
        raise SpecResolutionFault(
            f'Authenticator for security scheme "{scheme_name}" is a class. Pass an instance, '
            f'or supply a resolve_controller option that instantiates it.',
            scheme=scheme_name,
        )

    handler = extension.get("handler", "authenticate")
    if isinstance(handler, str):
        handler = getattr(controller, handler, None)

    if not callable(handler):
        raise SpecResolutionFault(
            f'Authenticator for security scheme "{scheme_name}" could not be resolved to a function.',
            scheme=scheme_name,
        )

    return AuthenticatorBinding(scheme_name=scheme_name, scheme=scheme, authenticate=handler)
