"""
Authentication - authenticator bindings and security requirement processing.

Authenticators are authored with ``specweave.controller.authenticator`` and
referenced by ``require_authentication``; at request time the security
processor extracts credentials and calls them.
"""

from .core import (
    Authenticator,
    AuthenticatorBinding,
    HttpBasicCredentials,
    bind_authenticator,
)
from .processors import (
    ApiKeyRequirementProcessor,
    HttpRequirementProcessor,
    SecurityProcessor,
    SecurityRequirementProcessor,
    security_processor_factory,
)

__all__ = [
    "Authenticator",
    "AuthenticatorBinding",
    "HttpBasicCredentials",
    "bind_authenticator",
    "ApiKeyRequirementProcessor",
    "HttpRequirementProcessor",
    "SecurityProcessor",
    "SecurityRequirementProcessor",
    "security_processor_factory",
]
