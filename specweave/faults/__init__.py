"""
Specweave Faults - structured fault handling.

Faults are typed error values with a stable code, a domain and an explicit
public/internal flag. Two families matter to the rest of the package:

- Authoring faults: programmer mistakes caught at declaration, assembly or
  compile time. They are never served to a client.
- HTTP faults: request-time errors carrying a status code. The router's
  error channel turns them into JSON error responses.
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
)

from .domains import (
    # Config
    ConfigFault,
    ConfigInvalidFault,
    # Authoring
    AuthoringFault,
    DecoratorMisuseFault,
    ArgumentReboundFault,
    ArgumentUnboundFault,
    DuplicateOperationFault,
    EmptyControllerFault,
    AuthenticatorNameFault,
    SchemeConflictFault,
    UnknownSecuritySchemeFault,
    SpecResolutionFault,
    InvalidStatusCodeFault,
    UnsupportedParameterFault,
    # HTTP
    HTTPFault,
    BadRequest,
    Unauthorized,
    Forbidden,
    NotFound,
    MethodNotAllowed,
    InternalServerError,
    http_fault,
    # Flow
    PipelineFault,
    UnhandledResultFault,
    ResponseNotSentFault,
    HeadersAlreadySentFault,
    BodyAlreadySetFault,
    InvalidHeaderFault,
)

__all__ = [
    "Fault",
    "FaultDomain",
    "Severity",
    "ConfigFault",
    "ConfigInvalidFault",
    "AuthoringFault",
    "DecoratorMisuseFault",
    "ArgumentReboundFault",
    "ArgumentUnboundFault",
    "DuplicateOperationFault",
    "EmptyControllerFault",
    "AuthenticatorNameFault",
    "SchemeConflictFault",
    "UnknownSecuritySchemeFault",
    "SpecResolutionFault",
    "InvalidStatusCodeFault",
    "UnsupportedParameterFault",
    "HTTPFault",
    "BadRequest",
    "Unauthorized",
    "Forbidden",
    "NotFound",
    "MethodNotAllowed",
    "InternalServerError",
    "http_fault",
    "PipelineFault",
    "UnhandledResultFault",
    "ResponseNotSentFault",
    "HeadersAlreadySentFault",
    "BodyAlreadySetFault",
    "InvalidHeaderFault",
]
