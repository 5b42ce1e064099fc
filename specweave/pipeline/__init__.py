"""
Pipeline - per-operation request processing and response dispatch.
"""

from .body import BodyProcessor, body_processor_factory, decode_body
from .chain import (
    MiddlewareChain,
    Next,
    call_maybe_async,
    compile_middleware,
    is_middleware_factory,
    middleware_factory,
)
from .context import MethodHandlerContext, OperationContext, RequestContext
from .handler import MethodHandler, RequestProcessor, RequestProcessorFactory, extract_argument
from .parameters import ParameterProcessor, deserialize_parameter, parameter_style, parameters_processor_factory
from .responses import (
    fallback_middleware,
    is_plain_json,
    json_response_middleware,
    response_validation_middleware,
    result_object_middleware,
)
from .results import HandlerResult

__all__ = [
    "BodyProcessor",
    "body_processor_factory",
    "decode_body",
    "MiddlewareChain",
    "Next",
    "call_maybe_async",
    "compile_middleware",
    "is_middleware_factory",
    "middleware_factory",
    "MethodHandlerContext",
    "OperationContext",
    "RequestContext",
    "MethodHandler",
    "RequestProcessor",
    "RequestProcessorFactory",
    "extract_argument",
    "ParameterProcessor",
    "deserialize_parameter",
    "parameter_style",
    "parameters_processor_factory",
    "fallback_middleware",
    "is_plain_json",
    "json_response_middleware",
    "response_validation_middleware",
    "result_object_middleware",
    "HandlerResult",
]
