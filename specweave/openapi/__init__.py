"""
OpenAPI - document assembly, private extensions and reference helpers.
"""

from .assembler import (
    OPENAPI_VERSION,
    AssembledSpec,
    CompiledOperation,
    SpecAssembler,
    addend_openapi_from_controllers,
    create_openapi_from_controllers,
    merge_security_requirements,
)
from .extensions import (
    AUTHENTICATOR_EXTENSION,
    EXTENSION_PREFIX,
    METHOD_EXTENSION,
    has_extensions,
    read_method_extension,
    strip_extensions,
)
from .paths import (
    compile_path_pattern,
    is_static_path,
    join_url_paths,
    normalize_path_template,
    path_parameter_names,
)
from .refs import (
    pick_content_type,
    require_reference,
    resolve_pointer,
    resolve_reference,
)

__all__ = [
    "OPENAPI_VERSION",
    "AssembledSpec",
    "CompiledOperation",
    "SpecAssembler",
    "addend_openapi_from_controllers",
    "create_openapi_from_controllers",
    "merge_security_requirements",
    "AUTHENTICATOR_EXTENSION",
    "EXTENSION_PREFIX",
    "METHOD_EXTENSION",
    "has_extensions",
    "read_method_extension",
    "strip_extensions",
    "compile_path_pattern",
    "is_static_path",
    "join_url_paths",
    "normalize_path_template",
    "path_parameter_names",
    "pick_content_type",
    "require_reference",
    "resolve_pointer",
    "resolve_reference",
]
