"""
Specweave Faults - Domain-specific fault types.

Provides concrete fault classes for:
- CONFIG faults (configuration loading)
- REGISTRY faults (authoring mistakes caught at declaration/assembly time)
- HTTP faults (request-time errors carrying a status code)
- FLOW faults (pipeline postcondition violations)
"""

from typing import Any, Optional

from .core import Fault, FaultDomain, Severity


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigFault(Fault):
    """Base class for configuration faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.CONFIG,
            severity=Severity.FATAL,
            retryable=False,
            public=False,
            metadata=metadata,
        )


class ConfigInvalidFault(ConfigFault):
    """Configuration value is invalid."""

    def __init__(self, key: str, reason: str):
        super().__init__(
            code="CONFIG_INVALID",
            message=f"Configuration key '{key}' is invalid: {reason}",
            metadata={"key": key, "reason": reason},
        )


# ============================================================================
# REGISTRY Faults (authoring errors)
# ============================================================================

class AuthoringFault(Fault):
    """
    Base class for authoring faults.

    Raised while declarations are recorded, collected, assembled or compiled,
    always before any request is served. Never exposed to clients.
    """

    def __init__(
        self,
        code: str,
        message: str,
        *,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.REGISTRY,
            severity=Severity.FATAL,
            retryable=False,
            public=False,
            metadata=metadata,
        )


class DecoratorMisuseFault(AuthoringFault):
    """A decorator was applied to something it does not support."""

    def __init__(self, message: str, **metadata):
        super().__init__(code="DECORATOR_MISUSE", message=message, metadata=metadata)


class ArgumentReboundFault(AuthoringFault):
    """A handler argument position was bound twice."""

    def __init__(self, handler: str, index: int):
        super().__init__(
            code="ARGUMENT_REBOUND",
            message=f"Method handler {handler} cannot redefine the parameter type at index {index}.",
            metadata={"handler": handler, "index": index},
        )


class ArgumentUnboundFault(AuthoringFault):
    """A handler argument position has no binding."""

    def __init__(self, handler: str, index: int, name: Optional[str] = None):
        label = f" ({name})" if name else ""
        super().__init__(
            code="ARGUMENT_UNBOUND",
            message=f"Method handler {handler} has no binding for the parameter at index {index}{label}.",
            metadata={"handler": handler, "index": index, "name": name},
        )


class DuplicateOperationFault(AuthoringFault):
    """Two handlers resolve to the same (path, method)."""

    def __init__(self, path: str, method: str, existing: str, duplicate: str):
        super().__init__(
            code="DUPLICATE_OPERATION",
            message=(
                f"Operation {method.upper()} {path} is declared by both "
                f"{existing} and {duplicate}."
            ),
            metadata={"path": path, "method": method, "existing": existing, "duplicate": duplicate},
        )


class EmptyControllerFault(AuthoringFault):
    """A controller contributes nothing to the document."""

    def __init__(self, controller: str):
        super().__init__(
            code="EMPTY_CONTROLLER",
            message=(
                f"Controller {controller} does not have any handlers or contribute "
                f"to the specification."
            ),
            metadata={"controller": controller},
        )


class AuthenticatorNameFault(AuthoringFault):
    """An authenticator was declared without a name."""

    def __init__(self):
        super().__init__(
            code="AUTHENTICATOR_NAME_EMPTY",
            message="Authenticator name cannot be empty.",
        )


class SchemeConflictFault(AuthoringFault):
    """Two authenticators declare the same scheme name with different shapes."""

    def __init__(self, name: str):
        super().__init__(
            code="SECURITY_SCHEME_CONFLICT",
            message=f"Security scheme {name} is declared more than once with different definitions.",
            metadata={"scheme": name},
        )


class UnknownSecuritySchemeFault(AuthoringFault):
    """A security requirement names a scheme that is not registered."""

    def __init__(self, scheme: str, operation: str):
        super().__init__(
            code="UNKNOWN_SECURITY_SCHEME",
            message=f"Operation {operation} requires unknown security scheme {scheme}.",
            metadata={"scheme": scheme, "operation": operation},
        )


class SpecResolutionFault(AuthoringFault):
    """The document cannot be resolved into a routable operation."""

    def __init__(self, message: str, **metadata):
        super().__init__(code="SPEC_RESOLUTION", message=message, metadata=metadata)


class InvalidStatusCodeFault(AuthoringFault):
    """A response map uses a key that is neither 'default' nor a status code."""

    def __init__(self, status: str, operation: str):
        super().__init__(
            code="INVALID_STATUS_CODE",
            message=f'Invalid status code "{status}" in operation "{operation}".',
            metadata={"status": status, "operation": operation},
        )


class UnsupportedParameterFault(AuthoringFault):
    """A parameter declaration uses a shape the binder cannot deserialize."""

    def __init__(self, message: str, **metadata):
        super().__init__(code="UNSUPPORTED_PARAMETER", message=message, metadata=metadata)


# ============================================================================
# HTTP Faults (request-time)
# ============================================================================

class HTTPFault(Fault):
    """
    A fault that maps onto an HTTP status code.

    ``public`` controls whether the message may be shown to the client.
    """
    status: int = 500
    code = "HTTP_ERROR"
    message = "HTTP Error"
    domain = FaultDomain.IO
    public = True

    def __init__(self, message: Optional[str] = None, **metadata):
        super().__init__(
            code=self.code,
            message=message or self.message,
            metadata=metadata,
        )

    @property
    def expose(self) -> bool:
        return self.public


class BadRequest(HTTPFault):
    """Malformed or invalid request (400)."""
    status = 400
    code = "BAD_REQUEST"
    message = "Bad Request"


class Unauthorized(HTTPFault):
    """Missing or rejected credentials (401)."""
    status = 401
    code = "UNAUTHORIZED"
    message = "Unauthorized"
    domain = FaultDomain.SECURITY


class Forbidden(HTTPFault):
    """Authenticated but not permitted (403)."""
    status = 403
    code = "FORBIDDEN"
    message = "Forbidden"
    domain = FaultDomain.SECURITY


class NotFound(HTTPFault):
    """No such resource (404)."""
    status = 404
    code = "NOT_FOUND"
    message = "Not Found"
    domain = FaultDomain.ROUTING


class MethodNotAllowed(HTTPFault):
    """Path exists but not for this method (405)."""
    status = 405
    code = "METHOD_NOT_ALLOWED"
    message = "Method Not Allowed"
    domain = FaultDomain.ROUTING

    def __init__(self, allowed: Optional[list] = None, message: Optional[str] = None):
        super().__init__(message, allowed=list(allowed or []))
        self.allowed = list(allowed or [])


class InternalServerError(HTTPFault):
    """Server-side failure (500). Never exposed."""
    status = 500
    code = "INTERNAL_SERVER_ERROR"
    message = "Internal Server Error"
    domain = FaultDomain.FLOW
    severity = Severity.ERROR
    public = False


def http_fault(status: int, message: Optional[str] = None, *, public: Optional[bool] = None) -> HTTPFault:
    """Build an HTTPFault for an arbitrary status code."""
    for cls in (BadRequest, Unauthorized, Forbidden, NotFound, InternalServerError):
        if cls.status == status:
            fault = cls(message)
            break
    else:
        fault = HTTPFault(message or f"HTTP {status}")
        fault.code = f"HTTP_{status}"
        fault.status = status
        fault.public = status < 500
    if public is not None:
        fault.public = public
    return fault


# ============================================================================
# FLOW Faults (pipeline postconditions)
# ============================================================================

class PipelineFault(InternalServerError):
    """
    A pipeline postcondition was violated.

    These are programming errors in handlers or middleware and always surface
    as non-exposable 500s.
    """
    code = "PIPELINE_FAULT"


class UnhandledResultFault(PipelineFault):
    """A value reached the end of the chain without being dispatched."""
    code = "UNHANDLED_RESULT"


class ResponseNotSentFault(PipelineFault):
    """The chain finished without writing a response."""
    code = "RESPONSE_NOT_SENT"


class HeadersAlreadySentFault(PipelineFault):
    """A result was returned after the response was already written."""
    code = "HEADERS_ALREADY_SENT"


class BodyAlreadySetFault(PipelineFault):
    """A HandlerResult body was set twice."""
    code = "BODY_ALREADY_SET"
    message = "Body has already been set."


class InvalidHeaderFault(PipelineFault):
    """A response header value cannot be encoded as latin-1."""
    code = "INVALID_HEADER"

    def __init__(self, name: str):
        super().__init__(f'Response header "{name}" is not latin-1 encodable.', header=name)
