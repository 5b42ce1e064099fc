"""
Error channel - turns pipeline exceptions into JSON error responses.

HTTP faults keep their status; their message is only shown when the fault
is public. Everything else is a 500 logged with its traceback. Headers and
cookies set before the failure are not carried into the error response.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..faults import Fault, HTTPFault, MethodNotAllowed
from ..request import Request
from ..response import Response

logger = logging.getLogger("specweave.errors")


class ErrorChannel:
    """
    Default error channel of the router.

    Args:
        expose_internal_errors: Show messages of non-public faults and of
            unexpected exceptions. Only meant for development.
    """

    def __init__(self, expose_internal_errors: bool = False):
        self.expose_internal_errors = expose_internal_errors

    def error_body(self, exc: BaseException) -> Dict[str, Any]:
        if isinstance(exc, HTTPFault):
            error: Dict[str, Any] = {"code": exc.code, "status": exc.status}
            if exc.expose or self.expose_internal_errors:
                error["message"] = exc.message
        elif isinstance(exc, Fault):
            error = {"code": exc.code, "status": 500}
            if exc.public or self.expose_internal_errors:
                error["message"] = exc.message
        else:
            error = {"code": "INTERNAL_SERVER_ERROR", "status": 500}
            if self.expose_internal_errors:
                error["message"] = str(exc) or type(exc).__name__
        return {"error": error}

    def status_for(self, exc: BaseException) -> int:
        if isinstance(exc, HTTPFault):
            return exc.status
        return 500

    async def __call__(
        self,
        exc: BaseException,
        request: Request,
        response: Response,
        label: Optional[str] = None,
    ) -> None:
        status = self.status_for(exc)
        where = label or f"{request.method} {request.path}"

        if status >= 500:
            logger.error("Error handling %s: %s", where, exc, exc_info=exc)
        else:
            logger.debug("%s -> %d %s", where, status, exc)

        if response.headers_sent:
            # Nothing more can be written to this request.
            logger.warning("Error after response to %s was sent: %s", where, exc)
            return

        # Pending headers and cookies belong to the failed response.
        response.clear_headers()
        response.status(status)
        if isinstance(exc, MethodNotAllowed) and exc.allowed:
            response.set_header("allow", ", ".join(exc.allowed))
        await response.json(self.error_body(exc))
