"""
MethodHandler - the compiled pipeline of one operation.

Per request: request processors fill the request data (parameters, body,
security, plus any extra processors), then the middleware chain runs around
the handler call, whose positional arguments come from the binding table.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from ..faults import SpecResolutionFault, UnhandledResultFault
from ..metadata import ArgumentBinding, BindingKind
from ..request import Request
from ..response import Response
from .chain import MiddlewareChain, call_maybe_async, compile_middleware
from .context import MethodHandlerContext, RequestContext

logger = logging.getLogger("specweave.pipeline")

RequestProcessor = Callable[[RequestContext], Any]
RequestProcessorFactory = Callable[[MethodHandlerContext], Optional[RequestProcessor]]


def extract_argument(ctx: RequestContext, binding: ArgumentBinding) -> Any:
    """Value of one bound handler argument for this request."""
    if binding.kind is BindingKind.REQUEST_RAW:
        return ctx.request
    if binding.kind is BindingKind.RESPONSE_RAW:
        return ctx.response
    if binding.request_data_slot is None:
        raise SpecResolutionFault(
            f"Unknown handler argument type {binding.kind!r} for operation {ctx.label}."
        )
    # Processors already raised for required values that are missing.
    return ctx.get_request_data(binding.request_data_slot)


class MethodHandler:
    """
    Immutable per-operation pipeline.

    Built once by the router factory; ``handle`` is called per request with
    fresh transport handles.
    """

    def __init__(
        self,
        context: MethodHandlerContext,
        request_processors: Sequence[RequestProcessor] = (),
        middleware: Sequence[Any] = (),
    ):
        self.context = context
        self.request_processors = tuple(request_processors)
        self.chain = MiddlewareChain(compile_middleware(middleware, context), self._invoke)

    @classmethod
    def build(
        cls,
        context: MethodHandlerContext,
        processor_factories: Sequence[RequestProcessorFactory],
        middleware: Sequence[Any],
    ) -> "MethodHandler":
        processors = []
        for factory in processor_factories:
            processor = factory(context)
            if processor is not None:
                processors.append(processor)
        return cls(context, processors, middleware)

    @property
    def label(self) -> str:
        return self.context.label

    def extract_args(self, ctx: RequestContext) -> List[Any]:
        return [extract_argument(ctx, binding) for binding in self.context.handler_args]

    async def _invoke(self, ctx: RequestContext, args: Optional[Sequence[Any]]) -> Any:
        if args is None:
            args = self.extract_args(ctx)
        return await call_maybe_async(self.context.handler, *args)

    async def run(self, ctx: RequestContext) -> Any:
        for processor in self.request_processors:
            await call_maybe_async(processor, ctx)
        return await self.chain.run(ctx)

    async def handle(self, request: Request, response: Response) -> RequestContext:
        """
        Run the pipeline for one request.

        Raises:
            UnhandledResultFault: If a value escapes every middleware
        """
        ctx = RequestContext(self.context, request, response)
        result = await self.run(ctx)

        if result is not None:
            raise UnhandledResultFault(
                f"Handler returned a result of type {type(result).__name__} that was not consumed by "
                f"a handler middleware. Are you missing a handler middleware to handle the result type?"
            )

        logger.debug("Handled %s", self.label)
        return ctx

    def __call__(self, request: Request, response: Response) -> Awaitable[RequestContext]:
        return self.handle(request, response)

    def __repr__(self) -> str:
        return f"<MethodHandler {self.label}>"
