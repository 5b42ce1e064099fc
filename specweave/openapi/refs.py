"""
Reference resolution and schema helpers for assembled documents.
"""

from typing import Any, Dict, Mapping, Optional, TypeVar
from urllib.parse import unquote

from ..faults import SpecResolutionFault

T = TypeVar("T")

_MISSING = object()


def _decode_token(token: str) -> str:
    return unquote(token).replace("~1", "/").replace("~0", "~")


def resolve_pointer(document: Any, pointer: str) -> Any:
    """
    Evaluate a JSON pointer (without the leading ``#``) against ``document``.

    Returns ``None`` when any segment cannot be followed.
    """
    if pointer in ("", "/"):
        return document if pointer == "" else None
    if not pointer.startswith("/"):
        return None

    current = document
    for raw in pointer[1:].split("/"):
        token = _decode_token(raw)
        if isinstance(current, Mapping):
            current = current.get(token, _MISSING)
        elif isinstance(current, list):
            try:
                current = current[int(token)]
            except (ValueError, IndexError):
                current = _MISSING
        else:
            current = _MISSING
        if current is _MISSING:
            return None
    return current


def resolve_reference(spec: Mapping[str, Any], value: Any) -> Any:
    """
    Resolve a ``{"$ref": "#/..."}`` object against the document root.

    Non-reference values are returned unchanged. References are followed
    repeatedly so chains of references resolve to their target.

    Raises:
        SpecResolutionFault: For references outside the document
    """
    seen = set()
    while isinstance(value, Mapping) and "$ref" in value:
        ref = value["$ref"]
        if not isinstance(ref, str) or not ref.startswith("#"):
            raise SpecResolutionFault(
                f'Cannot resolve external reference "{ref}" in the OpenAPI schema.',
                ref=ref,
            )
        if ref in seen:
            raise SpecResolutionFault(f'Circular reference "{ref}" in the OpenAPI schema.', ref=ref)
        seen.add(ref)
        value = resolve_pointer(spec, ref[1:])
        if value is None:
            return None
    return value


def require_reference(spec: Mapping[str, Any], value: Any, what: str) -> Any:
    resolved = resolve_reference(spec, value)
    if resolved is None:
        raise SpecResolutionFault(f"Could not resolve reference for {what}.", what=what)
    return resolved


def pick_content_type(content_type: Optional[str], values: Mapping[str, T]) -> Optional[T]:
    """
    Pick the entry of ``values`` whose media-type pattern matches.

    Patterns may use ``*`` for either half. Exact matches win over wildcard
    matches; parameters after ``;`` are ignored.
    """
    if content_type:
        content_type = content_type.split(";", 1)[0].strip().lower()

    if not content_type:
        return values.get("*/*")

    wanted = content_type.split("/", 1)
    if len(wanted) != 2:
        wanted.append("")

    chosen: Optional[T] = None
    chosen_wildcards = 3
    for pattern, value in values.items():
        parts = pattern.split(";", 1)[0].strip().lower().split("/", 1)
        if len(parts) != 2:
            continue
        if parts[0] != "*" and parts[0] != wanted[0]:
            continue
        if parts[1] != "*" and parts[1] != wanted[1]:
            continue
        wildcards = (parts[0] == "*") + (parts[1] == "*")
        if wildcards < chosen_wildcards:
            chosen = value
            chosen_wildcards = wildcards
            if wildcards == 0:
                break
    return chosen


def schema_types(schema: Optional[Mapping[str, Any]]) -> set:
    """Set of JSON types a schema admits (empty when unconstrained)."""
    if not schema:
        return set()
    declared = schema.get("type")
    if isinstance(declared, str):
        return {declared}
    if isinstance(declared, (list, tuple)):
        return set(declared)
    types = set()
    for key in ("oneOf", "anyOf"):
        for sub in schema.get(key, ()) or ():
            if isinstance(sub, Mapping):
                types |= schema_types(sub)
    return types


def schema_includes_type(schema: Optional[Mapping[str, Any]], type_name: str) -> bool:
    return type_name in schema_types(schema)


def schema_includes_any_type_except(schema: Optional[Mapping[str, Any]], type_name: str) -> bool:
    types = schema_types(schema)
    if not types:
        return True
    return bool(types - {type_name})


def collect_schema_refs(value: Any, found: Optional[Dict[str, None]] = None) -> Dict[str, None]:
    """All ``$ref`` targets used anywhere under ``value``, in first-seen order."""
    if found is None:
        found = {}
    if isinstance(value, Mapping):
        ref = value.get("$ref")
        if isinstance(ref, str):
            found.setdefault(ref, None)
        for item in value.values():
            collect_schema_refs(item, found)
    elif isinstance(value, list):
        for item in value:
            collect_schema_refs(item, found)
    return found
