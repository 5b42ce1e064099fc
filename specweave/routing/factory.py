"""
Router factory - compiles a document into a Router of MethodHandlers.

Every operation of the document is offered to the handler factories in
order, with the extension-based factory last. The first factory returning a
MethodHandler wins; operations nobody handles are skipped.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..auth import security_processor_factory
from ..faults import SpecResolutionFault
from ..metadata import ArgumentBinding, MetadataStore
from ..openapi.assembler import REQUEST_METHODS, AssembledSpec, SpecAssembler
from ..openapi.extensions import read_method_extension
from ..pipeline import (
    MethodHandler,
    MethodHandlerContext,
    OperationContext,
    RequestProcessorFactory,
    body_processor_factory,
    fallback_middleware,
    json_response_middleware,
    parameters_processor_factory,
    response_validation_middleware,
    result_object_middleware,
)
from ..validation import JsonSchemaValidator, SchemaValidator
from .errors import ErrorChannel
from .router import Router

logger = logging.getLogger("specweave.routing")

ControllerResolver = Callable[[Any], Any]
HandlerResolver = Callable[[Any, Any], Any]
HandlerFactory = Callable[[OperationContext, "HandlerBuilder"], Optional[MethodHandler]]


def default_resolve_controller(controller: Any, context: OperationContext) -> Any:
    """
    Check that an operation's controller can receive method calls.

    Raises:
        SpecResolutionFault: If the controller is missing, a primitive or a class
    """
    where = f"{context.operation_id} ({context.method.upper()} {context.path})"
    if controller is None or isinstance(controller, (str, bytes, int, float, bool)):
        raise SpecResolutionFault(f"Controller for operation {where} is not an object.")
    if inspect.isclass(controller):
        raise SpecResolutionFault(
            f"Controller for operation {where} seems to be a class. Pass controller instances, "
            f"or supply a resolve_controller option that instantiates it."
        )
    return controller


def default_resolve_handler(controller: Any, handler: Any, context: OperationContext) -> Callable:
    """
    Resolve a handler name on ``controller`` to a bound method.

    Raises:
        SpecResolutionFault: If the result is not callable
    """
    if isinstance(handler, str):
        handler = getattr(controller, handler, None)
    if not callable(handler):
        raise SpecResolutionFault(
            f"Handler for operation {context.operation_id} ({context.method.upper()} {context.path}) "
            f"could not be resolved to a function."
        )
    return handler


class HandlerBuilder:
    """
    Builds MethodHandlers with the router-wide options applied.

    Handed to every handler factory so custom factories get the same
    request processors and dispatch middleware as extension-based handlers.
    """

    def __init__(
        self,
        *,
        resolve_controller: Optional[ControllerResolver] = None,
        resolve_handler: Optional[HandlerResolver] = None,
        handler_middleware: Sequence[Any] = (),
        request_processors: Sequence[RequestProcessorFactory] = (),
        ensure_responses_handled: bool = True,
        validate_responses: bool = False,
        strict_response_validation: bool = False,
        response_error_handler: Optional[Callable[[Exception], Any]] = None,
        validator: Optional[SchemaValidator] = None,
        coerce_types: bool = True,
    ):
        self._resolve_controller = resolve_controller
        self._resolve_handler = resolve_handler
        self.validator = validator if validator is not None else JsonSchemaValidator()

        self.processor_factories: List[RequestProcessorFactory] = [
            parameters_processor_factory(coerce_types=coerce_types),
            body_processor_factory(coerce_types=coerce_types),
            security_processor_factory(resolve_controller),
            *request_processors,
        ]

        dispatch: List[Any] = []
        if ensure_responses_handled:
            dispatch.append(fallback_middleware)
        dispatch += [result_object_middleware, json_response_middleware]
        if validate_responses:
            dispatch.append(
                response_validation_middleware(
                    strict=strict_response_validation,
                    error_handler=response_error_handler,
                )
            )
        self.dispatch_middleware = dispatch
        self.handler_middleware = list(handler_middleware)

    def resolve_controller(self, controller: Any, context: OperationContext) -> Any:
        if self._resolve_controller is not None:
            controller = self._resolve_controller(controller)
        return default_resolve_controller(controller, context)

    def resolve_handler(self, controller: Any, handler: Any, context: OperationContext) -> Callable:
        if self._resolve_handler is not None:
            handler = self._resolve_handler(controller, handler)
        return default_resolve_handler(controller, handler, context)

    def build(
        self,
        context: OperationContext,
        controller: Any,
        handler: Callable,
        handler_args: Sequence[ArgumentBinding] = (),
        handler_middleware: Sequence[Any] = (),
    ) -> MethodHandler:
        handler_context = MethodHandlerContext(
            context.document,
            context.path,
            context.method,
            controller,
            handler,
            list(handler_args),
            validator=self.validator,
        )
        middleware = [*self.dispatch_middleware, *self.handler_middleware, *handler_middleware]
        return MethodHandler.build(handler_context, self.processor_factories, middleware)


def extension_handler_factory(context: OperationContext, builder: HandlerBuilder) -> Optional[MethodHandler]:
    """Build a handler from the operation's method extension, if it has one."""
    extension = read_method_extension(context.operation, context.label)
    if extension is None:
        return None

    controller = builder.resolve_controller(extension["controller"], context)
    handler = builder.resolve_handler(controller, extension["handler"], context)
    return builder.build(
        context,
        controller,
        handler,
        extension["handlerArgs"],
        extension["handlerMiddleware"],
    )


def create_router_from_spec(
    document: Mapping[str, Any],
    *,
    handler_factories: Sequence[HandlerFactory] = (),
    error_handler: Optional[Callable[..., Any]] = None,
    expose_internal_errors: bool = False,
    max_body_size: int = 10_485_760,
    **options: Any,
) -> Router:
    """
    Create a Router serving every handled operation of ``document``.

    Args:
        document: OpenAPI document, usually carrying method extensions
        handler_factories: Tried in order before the extension factory
        error_handler: Replaces the default JSON error channel
        expose_internal_errors: Show internal error messages to clients
        max_body_size: Request body limit in bytes
        **options: HandlerBuilder options (resolve_controller,
            resolve_handler, handler_middleware, request_processors,
            ensure_responses_handled, validate_responses,
            strict_response_validation, response_error_handler, validator,
            coerce_types)

    Raises:
        AuthoringFault: If an operation cannot be compiled
    """
    builder = HandlerBuilder(**options)
    router = Router(
        error_handler=error_handler or ErrorChannel(expose_internal_errors),
        max_body_size=max_body_size,
    )
    factories = [*handler_factories, extension_handler_factory]
    handlers: Dict[tuple, MethodHandler] = {}

    for path, path_item in (document.get("paths") or {}).items():
        for method in REQUEST_METHODS:
            if not isinstance(path_item, Mapping) or method not in path_item:
                continue

            context = OperationContext(document, path, method)
            handler = None
            for factory in factories:
                handler = factory(context, builder)
                if handler is not None:
                    break

            if handler is None:
                logger.debug("No handler for %s, skipping", context.label)
                continue

            router.add_route(path, method, handler)
            handlers[(path, method)] = handler

    router.document = document
    router.handlers = handlers
    logger.debug("Created router with %d operation(s)", len(handlers))
    return router


def create_router(
    controllers: Sequence[Any],
    info: Optional[Mapping[str, Any]] = None,
    *,
    store: Optional[MetadataStore] = None,
    base_document: Optional[Mapping[str, Any]] = None,
    servers: Optional[Sequence[Mapping[str, Any]]] = None,
    ignore_empty_controllers: bool = False,
    security_merge: str = "replace",
    **options: Any,
) -> Router:
    """
    Assemble ``controllers`` into a document and route it.

    The assembled result is available as ``router.spec``.
    """
    assembler = SpecAssembler(
        store,
        ignore_empty_controllers=ignore_empty_controllers,
        security_merge=security_merge,
    )
    spec: AssembledSpec = assembler.assemble(
        controllers, info, servers=servers, base_document=base_document
    )
    router = create_router_from_spec(spec.document, **options)
    router.spec = spec
    return router
