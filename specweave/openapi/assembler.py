"""
Specification assembler.

Walks controllers in order, merges their metadata fragments into a single
OpenAPI document and records a parallel index of compiled operations. Each
operation in the document carries a private method extension that the router
factory reads back to build pipelines.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..faults import (
    ArgumentUnboundFault,
    DecoratorMisuseFault,
    DuplicateOperationFault,
    EmptyControllerFault,
    SchemeConflictFault,
    SpecResolutionFault,
    UnknownSecuritySchemeFault,
)
from ..metadata import (
    ArgumentBinding,
    BindingKind,
    ControllerMetadata,
    HandlerMetadata,
    MetadataStore,
    clone,
    deep_merge,
    deep_merge_all,
    target_class,
)
from .extensions import (
    AUTHENTICATOR_EXTENSION,
    METHOD_EXTENSION,
    authenticator_extension,
    method_extension,
    strip_extensions,
)
from .paths import join_url_paths, normalize_path_template
from .refs import collect_schema_refs, resolve_pointer, resolve_reference

logger = logging.getLogger("specweave.openapi")

OPENAPI_VERSION = "3.1.0"

REQUEST_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

SECURITY_MERGE_STRATEGIES = ("replace", "merge")


# ============================================================================
# Results
# ============================================================================

@dataclass(frozen=True)
class CompiledOperation:
    """One (path, method) pair with everything the router needs."""
    path: str
    method: str
    operation_id: str
    controller: Any
    handler_name: str
    bindings: Tuple[ArgumentBinding, ...]
    middleware: Tuple[Any, ...]
    security: Tuple[Mapping[str, Any], ...] = ()

    @property
    def label(self) -> str:
        return f"{self.method.upper()} {self.path}"


@dataclass
class AssembledSpec:
    """
    Result of an assembly run.

    ``document`` still contains the private extensions; use ``public()`` for
    the publishable form.
    """
    document: Dict[str, Any]
    operations: Dict[Tuple[str, str], CompiledOperation] = field(default_factory=dict)

    def public(self) -> Dict[str, Any]:
        return strip_extensions(self.document)

    def get(self, path: str, method: str) -> Optional[CompiledOperation]:
        return self.operations.get((normalize_path_template(path), method.lower()))

    def __iter__(self):
        return iter(self.operations.values())

    def __len__(self) -> int:
        return len(self.operations)


# ============================================================================
# Helpers
# ============================================================================

def name_controller(controller: Any) -> str:
    return target_class(controller).__name__


def merge_security_requirements(
    controller_reqs: Sequence[Mapping[str, Any]],
    handler_reqs: Sequence[Mapping[str, Any]],
    strategy: str = "replace",
) -> List[Dict[str, List[str]]]:
    """
    Combine controller-level and handler-level security requirements.

    ``replace``: a scheme named by the handler overrides the scopes of the
    same scheme in every controller alternative; other schemes accumulate as
    additional alternatives.

    ``merge``: controller alternatives followed by handler alternatives.

    Duplicate alternatives are dropped, first occurrence wins.
    """
    if strategy not in SECURITY_MERGE_STRATEGIES:
        raise ValueError(f"Unknown security merge strategy {strategy!r}")

    def normalize(req: Mapping[str, Any]) -> Dict[str, List[str]]:
        return {name: list(scopes or []) for name, scopes in req.items()}

    result: List[Dict[str, List[str]]] = []

    def add(req: Dict[str, List[str]]) -> None:
        if req not in result:
            result.append(req)

    if strategy == "merge":
        for req in [*controller_reqs, *handler_reqs]:
            add(normalize(req))
        return result

    overrides: Dict[str, List[str]] = {}
    for req in handler_reqs:
        overrides.update(normalize(req))

    for req in controller_reqs:
        req = normalize(req)
        add({name: overrides.get(name, scopes) for name, scopes in req.items()})
    for req in handler_reqs:
        add(normalize(req))
    return result


def positional_parameters(controller: Any, handler_name: str) -> Optional[List[str]]:
    """
    Names of the handler's positional parameters, excluding ``self``/``cls``.

    Returns ``None`` when the handler accepts ``*args``.
    """
    cls = target_class(controller)
    try:
        member = inspect.getattr_static(cls, handler_name)
    except AttributeError:
        return []

    skip = 1
    if isinstance(member, staticmethod):
        func, skip = member.__func__, 0
    elif isinstance(member, classmethod):
        func = member.__func__
    else:
        func = member

    if not callable(func):
        return []

    names = []
    for param in list(inspect.signature(func).parameters.values())[skip:]:
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return None
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            names.append(param.name)
    return names


def find_operation_by_id(paths: Mapping[str, Any], operation_id: str):
    for path, path_item in paths.items():
        for method, operation in path_item.items():
            if method not in REQUEST_METHODS or not isinstance(operation, Mapping):
                continue
            if operation.get("operationId") == operation_id:
                return path, method, operation
    return None


def _dedupe(values: Iterable[Any]) -> List[Any]:
    result: List[Any] = []
    for value in values:
        if value not in result:
            result.append(value)
    return result


# ============================================================================
# Assembler
# ============================================================================

class SpecAssembler:
    """
    Merges controller and handler fragments into an OpenAPI document.

    Controllers contribute in two passes: first their controller-level
    fragments (document overlays, authenticator schemes), so that shared
    components exist before any operation references them; then their
    handlers, in controller order and handler definition order.

    Example:
        ```python
        assembler = SpecAssembler()
        result = assembler.assemble([WidgetsController()], info={"title": "Widgets", "version": "1.0.0"})
        document = result.public()
        ```
    """

    def __init__(
        self,
        store: Optional[MetadataStore] = None,
        *,
        ignore_empty_controllers: bool = False,
        security_merge: str = "replace",
    ):
        if security_merge not in SECURITY_MERGE_STRATEGIES:
            raise ValueError(f"Unknown security merge strategy {security_merge!r}")
        self.store = store or MetadataStore()
        self.ignore_empty_controllers = ignore_empty_controllers
        self.security_merge = security_merge
        self.logger = logger

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def assemble(
        self,
        controllers: Sequence[Any],
        info: Optional[Mapping[str, Any]] = None,
        *,
        servers: Optional[Sequence[Mapping[str, Any]]] = None,
        base_document: Optional[Mapping[str, Any]] = None,
    ) -> AssembledSpec:
        """
        Build a document from ``controllers``.

        Args:
            controllers: Controller instances (or classes, for spec-only builds)
            info: OpenAPI info object; ignored when ``base_document`` has one
            servers: Optional servers list
            base_document: Existing document to extend (copied, never mutated)

        Raises:
            AuthoringFault: On any conflicting or incomplete declaration
        """
        if base_document is not None:
            document = clone(base_document)
        else:
            document = {"openapi": OPENAPI_VERSION}

        document.setdefault("openapi", OPENAPI_VERSION)
        if info is not None and "info" not in document:
            document["info"] = clone(info)
        document.setdefault("info", {"title": "API", "version": "1.0.0"})
        if servers:
            document["servers"] = clone(list(servers))
        document.setdefault("paths", {})

        result = AssembledSpec(document=document)
        contributed: Dict[int, bool] = {}

        for controller in controllers:
            if self._add_controller_root(result, controller):
                contributed[id(controller)] = True

        for controller in controllers:
            if self._add_controller_methods(result, controller):
                contributed[id(controller)] = True

        if not self.ignore_empty_controllers:
            for controller in controllers:
                if id(controller) not in contributed:
                    raise EmptyControllerFault(name_controller(controller))

        components = result.document.setdefault("components", {})
        components.setdefault("schemas", {})
        components.setdefault("securitySchemes", {})

        self._check_security_references(result.document)
        self._check_local_references(result.document)

        self.logger.debug("Assembled %d operation(s)", len(result.operations))
        return result

    # ------------------------------------------------------------------
    # Controller level
    # ------------------------------------------------------------------

    def _add_controller_root(self, result: AssembledSpec, controller: Any) -> bool:
        metadata = self.store.get_controller_metadata(controller)
        if metadata is None:
            return False

        contributed = False
        if metadata.openapi_fragment:
            result.document = deep_merge(result.document, metadata.openapi_fragment)
            contributed = True

        if metadata.authenticator is not None:
            self._add_authenticator(result.document, controller, metadata)
            contributed = True

        return contributed

    def _add_authenticator(self, document: Dict[str, Any], controller: Any, metadata: ControllerMetadata) -> None:
        declaration = metadata.authenticator
        schemes = document.setdefault("components", {}).setdefault("securitySchemes", {})
        scheme = clone(declaration.scheme)

        existing = schemes.get(declaration.name)
        if existing is not None and strip_extensions(existing) != scheme:
            raise SchemeConflictFault(declaration.name)

        scheme[AUTHENTICATOR_EXTENSION] = authenticator_extension(controller)
        schemes[declaration.name] = scheme
        self.logger.debug(
            "Registered authenticator %s from %s", declaration.name, name_controller(controller)
        )

    # ------------------------------------------------------------------
    # Handler level
    # ------------------------------------------------------------------

    def _add_controller_methods(self, result: AssembledSpec, controller: Any) -> bool:
        controller_meta = self.store.get_controller_metadata(controller) or ControllerMetadata()
        contributed = False

        for name in self.store.handler_names(controller):
            handler_meta = self.store.get_handler_metadata(controller, name)
            if handler_meta is None:
                continue

            if handler_meta.operation_id is not None and handler_meta.method is not None:
                raise DecoratorMisuseFault(
                    f"Method handler {name} cannot both be bound to an operation "
                    f"and have http methods specified."
                )

            if handler_meta.is_bound:
                self._add_bound_method(result, controller, name, controller_meta, handler_meta)
            elif handler_meta.method is not None:
                if controller_meta.is_bound:
                    raise DecoratorMisuseFault(
                        f"Cannot extract OpenAPI spec for method {name} of controller "
                        f"{name_controller(controller)} because it is a bound controller "
                        f"and the method is not a bound controller method."
                    )
                self._add_custom_method(result, controller, name, controller_meta, handler_meta)
            else:
                raise DecoratorMisuseFault(
                    f"Method handler {name} of controller {name_controller(controller)} has "
                    f"handler metadata but no HTTP method or bound operation."
                )
            contributed = True

        return contributed

    def _add_custom_method(
        self,
        result: AssembledSpec,
        controller: Any,
        name: str,
        controller_meta: ControllerMetadata,
        handler_meta: HandlerMetadata,
    ) -> None:
        document = result.document
        method = handler_meta.method.lower()
        path = normalize_path_template(join_url_paths(controller_meta.path or "/", handler_meta.path or "/"))
        label = f"{name_controller(controller)}.{name}"

        existing = result.operations.get((path, method))
        if existing is not None:
            raise DuplicateOperationFault(
                path, method, f"{name_controller(existing.controller)}.{existing.handler_name}", label
            )
        existing_op = document["paths"].get(path, {}).get(method)
        if isinstance(existing_op, Mapping) and METHOD_EXTENSION in existing_op:
            raise DuplicateOperationFault(path, method, existing_op.get("operationId", "?"), label)

        shared = dict(controller_meta.operation_fragment)
        own = dict(handler_meta.operation_fragment)
        controller_security = [*controller_meta.security, *(shared.pop("security", None) or [])]
        handler_security = [*(own.pop("security", None) or []), *handler_meta.security]

        operation = deep_merge_all(
            {"operationId": label, "responses": {}},
            existing_op or {},
            shared,
            own,
        )

        tags = _dedupe([*controller_meta.tags, *operation.get("tags", []), *handler_meta.tags])
        if tags:
            operation["tags"] = tags
        if handler_meta.parameters:
            operation["parameters"] = [*operation.get("parameters", []), *clone(list(handler_meta.parameters))]
        if handler_meta.request_body:
            operation["requestBody"] = deep_merge(operation.get("requestBody", {}), handler_meta.request_body)
        if handler_meta.responses:
            operation["responses"] = deep_merge(operation["responses"], handler_meta.responses)

        security = merge_security_requirements(controller_security, handler_security, self.security_merge)
        if security:
            operation["security"] = security

        bindings = self._check_bindings(controller, name, handler_meta)
        self._check_parameter_bindings(document, operation, bindings, label)

        middleware = (*controller_meta.middleware, *handler_meta.middleware)
        operation[METHOD_EXTENSION] = method_extension(controller, name, list(bindings), list(middleware))

        document["paths"].setdefault(path, {})[method] = operation
        result.operations[(path, method)] = CompiledOperation(
            path=path,
            method=method,
            operation_id=operation["operationId"],
            controller=controller,
            handler_name=name,
            bindings=bindings,
            middleware=middleware,
            security=tuple(security),
        )
        self.logger.debug("Registered operation %s %s -> %s", method.upper(), path, label)

    def _add_bound_method(
        self,
        result: AssembledSpec,
        controller: Any,
        name: str,
        controller_meta: ControllerMetadata,
        handler_meta: HandlerMetadata,
    ) -> None:
        label = f"{name_controller(controller)}.{name}"
        found = find_operation_by_id(result.document["paths"], handler_meta.operation_id)
        if found is None:
            raise SpecResolutionFault(
                f"Controller {name_controller(controller)} method {name} is bound to operation "
                f"{handler_meta.operation_id} but that operation does not exist in the provided "
                f"OpenAPI specification.",
                operation_id=handler_meta.operation_id,
            )

        path, method, operation = found
        if METHOD_EXTENSION in operation:
            raise DuplicateOperationFault(path, method, str(operation[METHOD_EXTENSION]["handler"]), label)

        bindings = self._check_bindings(controller, name, handler_meta)
        self._check_parameter_bindings(
            result.document, dict(operation), bindings, handler_meta.operation_id, path=path
        )

        middleware = (*controller_meta.middleware, *handler_meta.middleware)
        operation[METHOD_EXTENSION] = method_extension(controller, name, list(bindings), list(middleware))

        result.operations[(path, method)] = CompiledOperation(
            path=path,
            method=method,
            operation_id=handler_meta.operation_id,
            controller=controller,
            handler_name=name,
            bindings=bindings,
            middleware=middleware,
            security=tuple(operation.get("security", result.document.get("security", [])) or ()),
        )
        self.logger.debug("Bound operation %s to %s", handler_meta.operation_id, label)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _check_bindings(self, controller: Any, name: str, handler_meta: HandlerMetadata) -> Tuple[ArgumentBinding, ...]:
        """Every positional parameter must be bound, and nothing beyond them."""
        params = positional_parameters(controller, name)
        args = handler_meta.args

        if params is not None:
            for index, param_name in enumerate(params):
                if index not in args:
                    raise ArgumentUnboundFault(name, index, param_name)
            extra = [index for index in args if index >= len(params)]
            if extra:
                raise DecoratorMisuseFault(
                    f"Method handler {name} binds argument index {min(extra)} but only "
                    f"declares {len(params)} positional parameter(s).",
                    handler=name,
                )
        else:
            for index in range(max(args, default=-1) + 1):
                if index not in args:
                    raise ArgumentUnboundFault(name, index)

        return tuple(args[index] for index in sorted(args))

    def _check_parameter_bindings(
        self,
        document: Mapping[str, Any],
        operation: Mapping[str, Any],
        bindings: Sequence[ArgumentBinding],
        label: str,
        path: Optional[str] = None,
    ) -> None:
        declared = set()
        candidates = list(operation.get("parameters", []) or [])
        if path is not None:
            candidates.extend(document["paths"].get(path, {}).get("parameters", []) or [])
        for param in candidates:
            resolved = resolve_reference(document, param)
            if isinstance(resolved, Mapping) and "name" in resolved:
                declared.add(resolved["name"])

        for binding in bindings:
            if binding.kind is BindingKind.PARAMETER and binding.parameter_name not in declared:
                raise SpecResolutionFault(
                    f"Operation {label} binds parameter {binding.parameter_name}, but the "
                    f"operation does not define such a parameter. Either the parameter does "
                    f"not exist or its reference failed to resolve.",
                    parameter=binding.parameter_name,
                )

    def _check_security_references(self, document: Mapping[str, Any]) -> None:
        schemes = document.get("components", {}).get("securitySchemes", {})
        for path, path_item in document.get("paths", {}).items():
            for method, operation in path_item.items():
                if method not in REQUEST_METHODS or not isinstance(operation, Mapping):
                    continue
                for requirement in operation.get("security", []) or []:
                    for scheme_name in requirement:
                        if scheme_name not in schemes:
                            raise UnknownSecuritySchemeFault(
                                scheme_name, operation.get("operationId", f"{method.upper()} {path}")
                            )

    def _check_local_references(self, document: Mapping[str, Any]) -> None:
        for ref in collect_schema_refs(strip_extensions(document)):
            if ref.startswith("#") and resolve_pointer(document, ref[1:]) is None:
                self.logger.warning("Unresolvable reference %s in assembled document", ref)


# ============================================================================
# Functional API
# ============================================================================

def create_openapi_from_controllers(
    info: Mapping[str, Any],
    controllers: Sequence[Any],
    *,
    store: Optional[MetadataStore] = None,
    ignore_empty_controllers: bool = False,
    security_merge: str = "replace",
    servers: Optional[Sequence[Mapping[str, Any]]] = None,
    strip: bool = False,
) -> Dict[str, Any]:
    """
    Create an OpenAPI document from a list of controllers.

    Returns the document with private extensions unless ``strip`` is set.
    """
    assembler = SpecAssembler(
        store,
        ignore_empty_controllers=ignore_empty_controllers,
        security_merge=security_merge,
    )
    result = assembler.assemble(controllers, info, servers=servers)
    return result.public() if strip else result.document


def addend_openapi_from_controllers(
    document: Mapping[str, Any],
    controllers: Sequence[Any],
    *,
    store: Optional[MetadataStore] = None,
    ignore_empty_controllers: bool = False,
    security_merge: str = "replace",
) -> Dict[str, Any]:
    """
    Return a copy of ``document`` extended by ``controllers``.

    Bound handlers attach to operations that already exist in ``document``.
    """
    assembler = SpecAssembler(
        store,
        ignore_empty_controllers=ignore_empty_controllers,
        security_merge=security_merge,
    )
    return assembler.assemble(controllers, base_document=document).document
