"""
MetadataStore - per-target accumulation of metadata fragments.

Decorators never write into a store directly. They record declarations on
the decorated class or function (see ``record_controller_declaration`` and
``record_handler_declaration``), and a store collects them the first time a
class is looked up. Each store therefore builds its own table, and two
stores never see each other's explicit merges.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, List, Optional, Set, Union

from .fragments import ControllerMetadata, HandlerMetadata
from .merge import merge_fragments

logger = logging.getLogger("specweave.store")

DECLARATIONS_ATTR = "__specweave_declarations__"

ControllerUpdate = Union[ControllerMetadata, Dict[str, Any], Callable[[ControllerMetadata], ControllerMetadata]]
HandlerUpdate = Union[HandlerMetadata, Dict[str, Any], Callable[[HandlerMetadata], HandlerMetadata]]


# ============================================================================
# Declaration recording (used by decorators)
# ============================================================================

def target_class(target: Any) -> type:
    """Return the class for a controller class or instance."""
    return target if inspect.isclass(target) else type(target)


def unwrap_member(member: Any) -> Any:
    """Return the underlying function for staticmethod/classmethod members."""
    if isinstance(member, (staticmethod, classmethod)):
        return member.__func__
    return member


def _apply(previous, update, fragment_type, owner: str):
    if callable(update):
        result = update(previous)
        if not isinstance(result, fragment_type):
            raise TypeError(
                f"Metadata updater for {owner} must return {fragment_type.__name__}, "
                f"got {type(result).__name__}"
            )
        return result
    return merge_fragments(previous, fragment_type.coerce(update), owner)


def record_controller_declaration(cls: type, update: ControllerUpdate) -> None:
    """Attach a controller-level declaration to ``cls``."""
    existing = list(cls.__dict__.get(DECLARATIONS_ATTR, ()))
    setattr(cls, DECLARATIONS_ATTR, existing + [update])


def record_handler_declaration(func: Callable, update: HandlerUpdate) -> None:
    """
    Attach a handler-level declaration to ``func``.

    Argument bindings are checked eagerly so that rebinding a position fails
    at decoration time.
    """
    existing = list(getattr(func, DECLARATIONS_ATTR, ()))
    candidate = existing + [update]
    # Folding raises ArgumentReboundFault on conflicts.
    fold_declarations(candidate, HandlerMetadata, getattr(func, "__name__", repr(func)))
    setattr(func, DECLARATIONS_ATTR, candidate)


def declarations_of(target: Any) -> List[Any]:
    if inspect.isclass(target):
        return list(target.__dict__.get(DECLARATIONS_ATTR, ()))
    return list(getattr(unwrap_member(target), DECLARATIONS_ATTR, ()))


def fold_declarations(declarations, fragment_type, owner: str):
    result = fragment_type()
    for update in declarations:
        result = _apply(result, update, fragment_type, owner)
    return result


def pending_controller_metadata(cls: type) -> ControllerMetadata:
    """Merged view of the declarations recorded on ``cls`` itself."""
    return fold_declarations(declarations_of(cls), ControllerMetadata, cls.__name__)


def pending_handler_metadata(func: Callable) -> HandlerMetadata:
    """Merged view of the declarations recorded on ``func``."""
    func = unwrap_member(func)
    return fold_declarations(declarations_of(func), HandlerMetadata, getattr(func, "__name__", "?"))


# ============================================================================
# MetadataStore
# ============================================================================

class MetadataStore:
    """
    Accumulates controller and handler fragments keyed by controller class.

    Fragments may be given directly (merged by field kind) or as an updater
    function of the previously accumulated value, whose return value replaces
    it. Scalar fields are last-write-wins, so registration order matters for
    them; list and keyed fields combine regardless of order.

    Example:
        ```python
        store = MetadataStore()
        store.merge_controller_metadata(Widgets, {"path": "/widgets"})
        store.merge_handler_metadata(Widgets, "list", {"method": "get", "path": "/"})
        meta = store.get_handler_metadata(Widgets, "list")
        ```
    """

    def __init__(self):
        self._controllers: Dict[type, ControllerMetadata] = {}
        self._handlers: Dict[type, Dict[str, HandlerMetadata]] = {}
        self._collected: Set[type] = set()

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------

    def merge_controller_metadata(self, target: Any, update: ControllerUpdate) -> ControllerMetadata:
        cls = target_class(target)
        self.collect(cls)
        previous = self._controllers.get(cls, ControllerMetadata())
        merged = _apply(previous, update, ControllerMetadata, cls.__name__)
        self._controllers[cls] = merged
        return merged

    def merge_handler_metadata(self, target: Any, handler_name: str, update: HandlerUpdate) -> HandlerMetadata:
        cls = target_class(target)
        self.collect(cls)
        handlers = self._handlers.setdefault(cls, {})
        previous = handlers.get(handler_name, HandlerMetadata())
        merged = _apply(previous, update, HandlerMetadata, handler_name)
        handlers[handler_name] = merged
        return merged

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_controller_metadata(self, target: Any) -> Optional[ControllerMetadata]:
        """Nearest controller fragment along the class MRO."""
        cls = target_class(target)
        for klass in cls.__mro__:
            if klass is object:
                continue
            self.collect(klass)
            if klass in self._controllers:
                return self._controllers[klass]
        return None

    def get_handler_metadata(self, target: Any, handler_name: str) -> Optional[HandlerMetadata]:
        """Nearest handler fragment for ``handler_name`` along the class MRO."""
        cls = target_class(target)
        for klass in cls.__mro__:
            if klass is object:
                continue
            self.collect(klass)
            handlers = self._handlers.get(klass, {})
            if handler_name in handlers:
                return handlers[handler_name]
        return None

    def handler_names(self, target: Any) -> List[str]:
        """
        Names of every handler with metadata, inherited ones included.

        Base-class handlers come first, in definition order.
        """
        cls = target_class(target)
        names: List[str] = []
        for klass in reversed(cls.__mro__):
            if klass is object:
                continue
            self.collect(klass)
            for name in self._handlers.get(klass, {}):
                if name not in names:
                    names.append(name)
        return names

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    def collect(self, target: Any) -> None:
        """
        Merge the declarations recorded on a class and its own members.

        Idempotent per class. Bases are collected lazily by the lookups, and a
        class is collected before any explicit merge so explicit fragments land
        on top of the decorator declarations.
        """
        cls = target_class(target)
        if cls in self._collected:
            return
        self._collected.add(cls)

        for update in declarations_of(cls):
            self.merge_controller_metadata(cls, update)

        for name, member in list(cls.__dict__.items()):
            func = unwrap_member(member)
            if not callable(func) or inspect.isclass(func):
                continue
            for update in getattr(func, DECLARATIONS_ATTR, ()):
                self.merge_handler_metadata(cls, name, update)

        logger.debug("Collected metadata for %s", cls.__name__)

    def is_collected(self, target: Any) -> bool:
        return target_class(target) in self._collected
