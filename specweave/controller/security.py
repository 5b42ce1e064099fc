"""
Authenticator authoring and security requirements.
"""

import inspect
from typing import Any, Callable, Dict, List, Mapping, Optional, TypeVar, Union

from ..faults import AuthenticatorNameFault, DecoratorMisuseFault
from ..metadata import (
    ArgumentBinding,
    AuthenticatorDeclaration,
    clone,
    pending_controller_metadata,
    record_controller_declaration,
)
from .decorators import _record_handler
from .params import resolve_argument_index

F = TypeVar('F', bound=Callable[..., Any])
T = TypeVar('T', bound=type)

SchemeRef = Union[str, type]


def authenticator(name: str, scheme: Mapping[str, Any]) -> Callable[[T], T]:
    """
    Declare a class as the authenticator of security scheme ``name``.

    The class must define ``authenticate(value, scopes, ctx)``; the scheme
    object is published under ``components.securitySchemes[name]``.

    Example:
        @authenticator("apiKey", {"type": "apiKey", "in": "header", "name": "X-API-Key"})
        class ApiKeyAuthenticator:
            def authenticate(self, value, scopes, ctx):
                return lookup_user(value)
    """
    if not name:
        raise AuthenticatorNameFault()

    def decorator(cls: T) -> T:
        if not inspect.isclass(cls):
            raise DecoratorMisuseFault("@authenticator can only be applied to classes.")
        if not callable(getattr(cls, "authenticate", None)):
            raise DecoratorMisuseFault(
                f"Authenticator {cls.__name__} must define an authenticate method.",
                authenticator=cls.__name__,
            )
        declaration = AuthenticatorDeclaration(name=name, scheme=clone(dict(scheme)))
        record_controller_declaration(cls, {"authenticator": declaration})
        return cls

    return decorator


def scheme_name_of(scheme: SchemeRef) -> str:
    """
    Scheme name for a name or an authenticator class.

    Raises:
        DecoratorMisuseFault: If a class carries no authenticator declaration
    """
    if isinstance(scheme, str):
        if not scheme:
            raise DecoratorMisuseFault("Security scheme name cannot be empty.")
        return scheme

    cls = scheme if inspect.isclass(scheme) else type(scheme)
    declaration = None
    for klass in cls.__mro__:
        if klass is object:
            continue
        declaration = pending_controller_metadata(klass).authenticator
        if declaration is not None:
            break
    if declaration is None:
        raise DecoratorMisuseFault(
            f"{cls.__name__} is not an authenticator. Decorate it with @authenticator.",
            authenticator=cls.__name__,
        )
    return declaration.name


def require_authentication(
    scheme: Union[SchemeRef, Mapping[SchemeRef, List[str]]],
    scopes: Optional[List[str]] = None,
) -> Callable[[Any], Any]:
    """
    Add a security requirement to a controller or a handler.

    Each use adds one alternative; any alternative satisfies the operation.
    Pass a mapping to require several schemes together.
    """
    if isinstance(scheme, Mapping):
        requirement: Dict[str, List[str]] = {
            scheme_name_of(key): list(value or []) for key, value in scheme.items()
        }
    else:
        requirement = {scheme_name_of(scheme): list(scopes or [])}

    def decorator(target):
        if inspect.isclass(target):
            record_controller_declaration(target, {"security": (requirement,)})
            return target
        return _record_handler(target, {"security": (requirement,)})

    return decorator


def bind_security(
    scheme: SchemeRef,
    *,
    arg: Optional[str] = None,
    index: Optional[int] = None,
) -> Callable[[F], F]:
    """Bind the principal returned by ``scheme``'s authenticator."""
    name = scheme_name_of(scheme)

    def decorator(func: F) -> F:
        position = resolve_argument_index(func, "bind_security", arg, index)
        return _record_handler(func, {"args": {position: ArgumentBinding.security(name)}})

    return decorator
