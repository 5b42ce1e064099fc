"""
Security requirement processing.

Each security requirement alternative of an operation becomes a list of
requirement processors, one per scheme. Alternatives are tried in order;
the first alternative whose processors all accept wins and its principals
are stored under ``openapi-security-{scheme}`` in the request data.
"""

from __future__ import annotations

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..faults import HTTPFault, SpecResolutionFault, Unauthorized, UnknownSecuritySchemeFault
from ..pipeline.chain import call_maybe_async
from ..pipeline.context import MethodHandlerContext, RequestContext
from .core import AuthenticatorBinding, HttpBasicCredentials, bind_authenticator

logger = logging.getLogger("specweave.auth")

_REJECTED = object()


class SecurityRequirementProcessor(ABC):
    """Extracts one scheme's credential and calls its authenticator."""

    def __init__(self, binding: AuthenticatorBinding, scopes: List[str]):
        self.binding = binding
        self.scopes = list(scopes or [])

    @property
    def scheme_name(self) -> str:
        return self.binding.scheme_name

    @property
    def scheme(self) -> Mapping[str, Any]:
        return self.binding.scheme

    async def process(self, ctx: RequestContext) -> Any:
        """
        Return the principal, or ``_REJECTED``.

        A missing credential rejects without calling the authenticator; a
        malformed one raises ``Unauthorized``.
        """
        value = self.extract(ctx)
        if value is None:
            logger.debug("No credential for scheme %s on %s", self.scheme_name, ctx.label)
            return _REJECTED

        principal = await call_maybe_async(self.binding.authenticate, value, self.scopes, ctx)
        if not principal:
            logger.debug("Authenticator for %s rejected the credential on %s", self.scheme_name, ctx.label)
            return _REJECTED
        return principal

    @abstractmethod
    def extract(self, ctx: RequestContext) -> Any:
        """Pull the credential out of the request, or ``None`` if absent."""


class ApiKeyRequirementProcessor(SecurityRequirementProcessor):
    """apiKey schemes: a header, query parameter or cookie."""

    def __init__(self, binding: AuthenticatorBinding, scopes: List[str]):
        scheme = binding.scheme
        if not scheme.get("name"):
            raise SpecResolutionFault(
                f'API key security scheme "{binding.scheme_name}" does not have a name.'
            )
        if scheme.get("in") not in ("header", "query", "cookie"):
            raise SpecResolutionFault(
                f'API key security scheme "{binding.scheme_name}" has unknown location {scheme.get("in")!r}.'
            )
        super().__init__(binding, scopes)

    def extract(self, ctx: RequestContext) -> Any:
        name = self.scheme["name"]
        location = self.scheme["in"]
        if location == "header":
            value = ctx.get_header(name)
        elif location == "query":
            value = ctx.get_query(name)
        else:
            value = ctx.get_cookie(name)

        if isinstance(value, list):
            return None
        return value


class HttpRequirementProcessor(SecurityRequirementProcessor):
    """http schemes: ``basic`` and ``bearer`` Authorization headers."""

    def __init__(self, binding: AuthenticatorBinding, scopes: List[str]):
        scheme = (binding.scheme.get("scheme") or "").lower()
        if scheme not in ("basic", "bearer"):
            raise SpecResolutionFault(
                f'Unknown HTTP security scheme "{binding.scheme.get("scheme")}" for "{binding.scheme_name}".'
            )
        self.http_scheme = scheme
        super().__init__(binding, scopes)

    def extract(self, ctx: RequestContext) -> Any:
        value = ctx.get_header("authorization")
        if not value or isinstance(value, list):
            return None

        if self.http_scheme == "basic":
            if not value.startswith("Basic "):
                raise Unauthorized(f'Invalid HTTP basic authentication header "{value}".')
            try:
                decoded = base64.b64decode(value[6:], validate=True).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError):
                raise Unauthorized(f'Invalid HTTP basic authentication header "{value}".') from None
            username, sep, password = decoded.partition(":")
            if not sep:
                raise Unauthorized(f'Invalid HTTP basic authentication header "{value}".')
            return HttpBasicCredentials(username=username, password=password)

        if not value.startswith("Bearer "):
            raise Unauthorized(f'Invalid HTTP bearer authentication header "{value}".')
        return value[7:]


PROCESSOR_TYPES = {
    "apiKey": ApiKeyRequirementProcessor,
    "http": HttpRequirementProcessor,
}


class SecurityProcessor:
    """
    Security processor for one operation.

    Built once per operation; raises authoring faults for unknown schemes or
    scheme types.
    """

    def __init__(
        self,
        context: MethodHandlerContext,
        resolve_controller: Optional[Callable[[Any], Any]] = None,
    ):
        self.context = context
        schemes = context.security_schemes
        self.alternatives: List[List[SecurityRequirementProcessor]] = []

        for requirement in context.security:
            processors = []
            for scheme_name, scopes in requirement.items():
                scheme = schemes.get(scheme_name)
                if scheme is None:
                    raise UnknownSecuritySchemeFault(scheme_name, context.label)
                processor_type = PROCESSOR_TYPES.get(scheme.get("type"))
                if processor_type is None:
                    raise SpecResolutionFault(
                        f'Unknown security scheme type "{scheme.get("type")}" defined in {context.label}.'
                    )
                binding = bind_authenticator(scheme_name, scheme, resolve_controller)
                processors.append(processor_type(binding, scopes))
            self.alternatives.append(processors)

    async def _apply_alternative(self, ctx: RequestContext, processors: List[SecurityRequirementProcessor]):
        principals: Dict[str, Any] = {}
        for processor in processors:
            principal = await processor.process(ctx)
            if principal is _REJECTED:
                return None
            principals[processor.scheme_name] = principal
        return principals

    async def process(self, ctx: RequestContext) -> None:
        if not self.alternatives:
            return

        remembered: Optional[HTTPFault] = None
        for processors in self.alternatives:
            try:
                principals = await self._apply_alternative(ctx, processors)
            except HTTPFault as fault:
                # Keep trying other alternatives.
                remembered = fault
                continue

            if principals is None:
                continue

            for scheme_name, principal in principals.items():
                ctx.set_request_data(f"openapi-security-{scheme_name}", principal)
            return

        if len(self.alternatives) == 1 and remembered is not None:
            raise remembered
        raise Unauthorized()


def security_processor_factory(resolve_controller: Optional[Callable[[Any], Any]] = None):
    """Request processor factory for security; ``None`` for unsecured operations."""

    def factory(context: MethodHandlerContext):
        processor = SecurityProcessor(context, resolve_controller)
        return processor.process if processor.alternatives else None

    return factory
