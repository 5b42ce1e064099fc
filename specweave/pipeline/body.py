"""
Request body processing.

Picks the declared media type matching the request's Content-Type, decodes
the body (JSON for JSON media types), validates it and stores it under
``openapi-body`` in the request data.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from .._datastructures import ParsedContentType
from ..faults import BadRequest, SpecResolutionFault
from ..openapi.refs import pick_content_type, resolve_reference
from ..request import Request
from .context import MethodHandlerContext, RequestContext

BODY_KEY = "openapi-body"


async def decode_body(request: Request) -> Any:
    """Decode by media type: JSON, text, or raw bytes. Empty bodies are ``None``."""
    raw = await request.body()
    if not raw:
        return None
    parsed = ParsedContentType.parse(request.content_type)
    if parsed is None or parsed.is_json:
        return await request.json()
    if parsed.media_type.startswith("text/"):
        return await request.text()
    return raw


class BodyProcessor:
    """Body processor for one operation, with schemas resolved up front."""

    def __init__(self, context: MethodHandlerContext, *, coerce_types: bool = True):
        self.context = context
        self.coerce_types = coerce_types
        self.request_body = context.request_body
        self.schemas: Dict[str, Optional[Dict[str, Any]]] = {}

        if self.request_body is None:
            return

        for media_type, media in (self.request_body.get("content") or {}).items():
            schema = (media or {}).get("schema")
            if schema is None:
                self.schemas[media_type] = None
                continue
            resolved = resolve_reference(context.document, schema)
            if resolved is None:
                raise SpecResolutionFault(
                    f"Could not resolve requestBody schema reference for content type {media_type} "
                    f"in operation {context.label}."
                )
            if context.validator is not None:
                context.validator.check_schema(resolved)
            self.schemas[media_type] = dict(resolved)

    @property
    def required(self) -> bool:
        return bool(self.request_body and self.request_body.get("required"))

    async def process(self, ctx: RequestContext) -> None:
        request = ctx.request

        if self.request_body is None:
            ctx.set_request_data(BODY_KEY, await decode_body(request))
            return

        if not await request.body():
            if self.required:
                raise BadRequest("Request body is required.")
            ctx.set_request_data(BODY_KEY, None)
            return

        if not self.schemas:
            # No media types declared; nothing to check against.
            ctx.set_request_data(BODY_KEY, await decode_body(request))
            return

        content_type = request.content_type or ""
        media_type = pick_content_type(content_type, {key: key for key in self.schemas})
        if media_type is None:
            if not content_type:
                raise BadRequest("The Content-Type header is required.")
            raise BadRequest(
                f"Request body content type {content_type} is not supported. "
                f"Supported content types: {', '.join(self.schemas)}"
            )

        value = await decode_body(request)
        schema = self.schemas[media_type]
        if schema is not None and self.context.validator is not None:
            result = self.context.validator.validate(
                schema, value, document=self.context.document, coerce=self.coerce_types
            )
            if not result.valid:
                raise BadRequest(f"Invalid request body: {result.message}")
            value = result.value

        ctx.set_request_data(BODY_KEY, value)


def body_processor_factory(*, coerce_types: bool = True):
    """Request processor factory for the request body."""

    def factory(context: MethodHandlerContext):
        return BodyProcessor(context, coerce_types=coerce_types).process

    return factory
