"""
Path template helpers.

Templates are accepted in colon form (``/widgets/:id``) or brace form
(``/widgets/{id}``) and always normalized to brace form.
"""

import re
from typing import List, Pattern, Tuple

_COLON_PARAM = re.compile(r"(?<=/):([^/{}]+)")
_BRACE_PARAM = re.compile(r"\{([^}/]+)\}")


def join_url_paths(*paths: str) -> str:
    """
    Join path segments with single slashes.

    Empty and ``None`` segments are ignored; the result always starts with
    ``/`` and never ends with one (except the root path).
    """
    parts = []
    for path in paths:
        if not path:
            continue
        stripped = path.strip("/")
        if stripped:
            parts.append(stripped)
    return "/" + "/".join(parts)


def normalize_path_template(path: str) -> str:
    """
    Rewrite colon-prefixed segments (``/:id``) to brace form (``/{id}``).

    Only a colon opening a segment starts a parameter; ``/items:batch``
    is left alone.
    """
    return _COLON_PARAM.sub(lambda m: "{" + m.group(1) + "}", path)


def path_parameter_names(path: str) -> List[str]:
    return _BRACE_PARAM.findall(normalize_path_template(path))


def is_static_path(path: str) -> bool:
    return not _BRACE_PARAM.search(normalize_path_template(path))


def compile_path_pattern(path: str) -> Tuple[Pattern, List[str]]:
    """
    Compile a brace-form template into a regex with named groups.

    Parameter captures stop at ``/``. Literal text is escaped.

    Returns:
        Tuple of (compiled pattern, parameter names in order)
    """
    path = normalize_path_template(path)
    names: List[str] = []
    pattern = "^"
    position = 0
    for match in _BRACE_PARAM.finditer(path):
        pattern += re.escape(path[position:match.start()])
        name = match.group(1)
        group = f"p{len(names)}"
        names.append(name)
        pattern += f"(?P<{group}>[^/]+)"
        position = match.end()
    pattern += re.escape(path[position:]) + "$"
    return re.compile(pattern), names
