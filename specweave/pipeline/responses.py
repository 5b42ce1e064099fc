"""
Response dispatch middleware.

Built-in links that sit at the outer end of every chain, outermost first:

1. ``fallback_middleware``: the chain must end with a written response and
   no leftover value
2. ``result_object_middleware``: applies a returned ``HandlerResult``
3. ``json_response_middleware``: wraps plain JSON values in a ``HandlerResult``
4. ``response_validation_middleware(...)``: optional outgoing body checks
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, Mapping, Optional

from ..faults import (
    HeadersAlreadySentFault,
    InternalServerError,
    InvalidStatusCodeFault,
    ResponseNotSentFault,
    SpecResolutionFault,
    UnhandledResultFault,
)
from ..openapi.refs import pick_content_type, resolve_reference
from ..response import JSON_MEDIA_TYPE
from .chain import middleware_factory
from .context import MethodHandlerContext, RequestContext
from .results import HandlerResult

logger = logging.getLogger("specweave.pipeline")

STATUS_KEY = re.compile(r"^[1-5]\d\d$")


def is_plain_json(value: Any) -> bool:
    """True for values made only of dict/list/str/int/float/bool/None (not None itself)."""
    if value is None:
        return False

    def check(item: Any) -> bool:
        if item is None or isinstance(item, (str, bool, int, float)):
            return True
        if isinstance(item, (list, tuple)):
            return all(check(element) for element in item)
        if isinstance(item, dict):
            return all(isinstance(key, str) and check(element) for key, element in item.items())
        return False

    return check(value)


def _response_type_fragment(ctx: RequestContext) -> str:
    content_type = ctx.response.get_header("content-type")
    return "your response" if content_type is None else f"response type {content_type}"


# ============================================================================
# Dispatch
# ============================================================================

async def fallback_middleware(ctx: RequestContext, next) -> None:
    result = await next()

    if result is not None:
        raise UnhandledResultFault(
            f"Operation {ctx.label} returned a result that was not handled by any middleware, "
            f"and was not sent back to the client. Are you missing a handler middleware for "
            f"{_response_type_fragment(ctx)}?"
        )

    if not ctx.response.headers_sent:
        raise ResponseNotSentFault(
            f"Operation {ctx.label} did not send a response for the handler result. Are you "
            f"missing a handler middleware for {_response_type_fragment(ctx)}?"
        )


async def result_object_middleware(ctx: RequestContext, next) -> Any:
    result = await next()

    if not isinstance(result, HandlerResult):
        return result

    if ctx.response.headers_sent:
        raise HeadersAlreadySentFault(
            f"Operation {ctx.label} handler returned a result but the request has already sent its headers."
        )

    await result.apply(ctx.response)
    return None


async def json_response_middleware(ctx: RequestContext, next) -> Any:
    result = await next()

    if result is None or isinstance(result, HandlerResult):
        return result

    if ctx.response.headers_sent:
        raise HeadersAlreadySentFault(
            f"Operation {ctx.label} handler returned a result but the request has already sent its headers."
        )

    if is_plain_json(result):
        content_type = ctx.response.get_header("content-type")
        if content_type:
            wrapped = HandlerResult.header("Content-Type", content_type).json(result)
        else:
            wrapped = HandlerResult.json(result)
        if not ctx.response.status_set:
            wrapped.status(200)
        return wrapped

    return result


# ============================================================================
# Response validation
# ============================================================================

def _compile_response_schemas(context: MethodHandlerContext) -> Dict[str, Dict[str, Optional[Mapping[str, Any]]]]:
    compiled: Dict[str, Dict[str, Optional[Mapping[str, Any]]]] = {}
    for status, response in context.responses.items():
        status = str(status)
        if status != "default" and not STATUS_KEY.match(status):
            raise InvalidStatusCodeFault(status, context.operation_id or context.label)

        response = resolve_reference(context.document, response)
        if response is None:
            raise SpecResolutionFault(
                f"Could not resolve response {status} of operation {context.label}."
            )

        content: Dict[str, Optional[Mapping[str, Any]]] = {}
        for media_type, media in (response.get("content") or {}).items():
            schema = (media or {}).get("schema")
            content[media_type] = resolve_reference(context.document, schema) if schema is not None else None
        compiled[status] = content
    return compiled


def response_validation_middleware(
    strict: bool = False,
    error_handler: Optional[Callable[[Exception], Any]] = None,
):
    """
    Build a factory validating outgoing bodies against the operation's responses.

    Args:
        strict: Treat an undeclared status code or content type as an error
        error_handler: Called with the error instead of failing the request;
            the original result is then sent unchanged unless it raises
    """

    @middleware_factory
    def factory(context: MethodHandlerContext):
        schemas = _compile_response_schemas(context)
        validator = context.validator

        async def response_validator(ctx: RequestContext, next) -> Any:
            result = await next()

            if isinstance(result, HandlerResult):
                status = result.status_code or ctx.response.status_code
                content_type = result.get_header("content-type")
                body = result.body_value
            elif is_plain_json(result):
                status = ctx.response.status_code if ctx.response.status_set else 200
                content_type = JSON_MEDIA_TYPE
                body = result
            else:
                return result

            try:
                content = schemas.get(str(status))
                if content is None:
                    content = schemas.get("default")
                if content is None:
                    if strict:
                        raise InternalServerError(
                            f"The operation {ctx.label} did not define a response for status code {status}."
                        )
                    return result

                entry = pick_content_type(content_type, {key: key for key in content})
                if entry is None:
                    if strict:
                        raise InternalServerError(
                            f"The operation {ctx.label} did not define a response for status code "
                            f"{status} content type {content_type}."
                        )
                    return result

                schema = content[entry]
                if schema is None or validator is None:
                    return result

                outcome = validator.validate(schema, body, document=context.document)
                if not outcome.valid:
                    raise InternalServerError(
                        f"The server returned an invalid response according to the OpenAPI schema: {outcome.message}"
                    )
            except InternalServerError as error:
                if error_handler is None:
                    raise
                logger.debug("Response validation failed for %s: %s", ctx.label, error)
                error_handler(error)
                return result

            return result

        return response_validator

    return factory
