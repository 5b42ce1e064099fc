"""
Private OpenAPI extensions.

The assembler annotates operations and security schemes with keys under the
``x-specweave-`` prefix. They carry live Python objects (controllers,
handlers, middleware) and only matter to the router factory, so they are
stripped before a document is published.
"""

from typing import Any, Dict, List, Mapping, Optional

from ..faults import SpecResolutionFault
from ..metadata import ArgumentBinding

EXTENSION_PREFIX = "x-specweave-"

METHOD_EXTENSION = f"{EXTENSION_PREFIX}method"
AUTHENTICATOR_EXTENSION = f"{EXTENSION_PREFIX}authenticator"


def strip_extensions(value: Any) -> Any:
    """
    Return a copy of ``value`` without keys under the private prefix.

    Recurses through mappings and lists, preserves key order and never alters
    any other key or value. Idempotent.
    """
    if isinstance(value, Mapping):
        return {
            key: strip_extensions(item)
            for key, item in value.items()
            if not (isinstance(key, str) and key.startswith(EXTENSION_PREFIX))
        }
    if isinstance(value, list):
        return [strip_extensions(item) for item in value]
    return value


def has_extensions(value: Any) -> bool:
    if isinstance(value, Mapping):
        return any(
            (isinstance(key, str) and key.startswith(EXTENSION_PREFIX)) or has_extensions(item)
            for key, item in value.items()
        )
    if isinstance(value, list):
        return any(has_extensions(item) for item in value)
    return False


def method_extension(
    controller: Any,
    handler: Any,
    handler_args: List[ArgumentBinding],
    handler_middleware: List[Any],
) -> Dict[str, Any]:
    return {
        "controller": controller,
        "handler": handler,
        "handlerArgs": [binding.to_dict() for binding in handler_args],
        "handlerMiddleware": list(handler_middleware),
    }


def authenticator_extension(controller: Any, handler: str = "authenticate") -> Dict[str, Any]:
    return {"controller": controller, "handler": handler}


def read_method_extension(operation: Mapping[str, Any], label: str) -> Optional[Dict[str, Any]]:
    """
    Read and validate the method extension of an operation.

    Returns ``None`` when the operation has no extension.

    Raises:
        SpecResolutionFault: If the extension is malformed
    """
    data = operation.get(METHOD_EXTENSION)
    if data is None:
        return None

    problems = []
    if not isinstance(data, Mapping):
        problems.append("extension must be an object")
    else:
        if data.get("controller") is None:
            problems.append("'controller' is required")
        if data.get("handler") is None:
            problems.append("'handler' is required")
        if not isinstance(data.get("handlerArgs", []), list):
            problems.append("'handlerArgs' must be an array")
        if not isinstance(data.get("handlerMiddleware", []), list):
            problems.append("'handlerMiddleware' must be an array")

    if problems:
        raise SpecResolutionFault(
            f"Operation {label} has an invalid {METHOD_EXTENSION} extension: {'; '.join(problems)}",
            operation=label,
        )

    try:
        args = [ArgumentBinding.from_dict(arg) for arg in data.get("handlerArgs", [])]
    except (KeyError, ValueError) as exc:
        raise SpecResolutionFault(
            f"Operation {label} has an invalid {METHOD_EXTENSION} extension: bad handler argument ({exc})",
            operation=label,
        ) from exc

    return {
        "controller": data["controller"],
        "handler": data["handler"],
        "handlerArgs": args,
        "handlerMiddleware": list(data.get("handlerMiddleware", [])),
    }
