"""
Merge rules for metadata fragments and OpenAPI documents.
"""

from __future__ import annotations

from dataclasses import fields
from typing import Any, Mapping, TypeVar

from ..faults import ArgumentReboundFault
from .fragments import MergeKind, merge_kind

F = TypeVar("F")


def clone(value: Any) -> Any:
    """Copy nested dicts and lists, leaving every other value shared."""
    if isinstance(value, Mapping):
        return {key: clone(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [clone(item) for item in value]
    return value


def deep_merge(base: Any, incoming: Any) -> Any:
    """
    Merge ``incoming`` over ``base`` without mutating either.

    Mappings merge key by key, sequences concatenate, anything else is
    replaced by ``incoming``.
    """
    if isinstance(base, Mapping) and isinstance(incoming, Mapping):
        result = {key: clone(value) for key, value in base.items()}
        for key, value in incoming.items():
            if key in result:
                result[key] = deep_merge(result[key], value)
            else:
                result[key] = clone(value)
        return result

    if isinstance(base, (list, tuple)) and isinstance(incoming, (list, tuple)):
        return [*clone(base), *clone(incoming)]

    return clone(incoming)


def deep_merge_all(*values: Any) -> Any:
    result: Any = {}
    for value in values:
        if value is None:
            continue
        result = deep_merge(result, value)
    return result


def merge_fragments(existing: F, incoming: F, owner: str = "<unknown>") -> F:
    """
    Merge two fragments of the same type field by field.

    Args:
        existing: Previously accumulated fragment
        incoming: Newly registered fragment
        owner: Handler name reported when an argument position is rebound

    Raises:
        ArgumentReboundFault: If both fragments bind the same argument index
    """
    if type(existing) is not type(incoming):
        raise TypeError(
            f"Cannot merge {type(incoming).__name__} into {type(existing).__name__}"
        )

    values = {}
    for f in fields(existing):
        old = getattr(existing, f.name)
        new = getattr(incoming, f.name)
        kind = merge_kind(f)

        if kind is MergeKind.SCALAR:
            values[f.name] = old if new is None else new
        elif kind is MergeKind.LIST:
            values[f.name] = tuple(old) + tuple(new)
        elif kind is MergeKind.KEYED:
            values[f.name] = deep_merge(old, new)
        elif kind is MergeKind.BINDINGS:
            bindings = dict(old)
            for index, binding in new.items():
                if index in bindings:
                    raise ArgumentReboundFault(owner, index)
                bindings[index] = binding
            values[f.name] = bindings
        else:  # pragma: no cover
            raise TypeError(f"Unknown merge kind {kind!r} for field {f.name}")

    return type(existing)(**values)
