"""
Metadata - fragments, merge rules and the MetadataStore.
"""

from .fragments import (
    MergeKind,
    BindingKind,
    ArgumentBinding,
    AuthenticatorDeclaration,
    ControllerMetadata,
    HandlerMetadata,
)
from .merge import clone, deep_merge, deep_merge_all, merge_fragments
from .store import (
    MetadataStore,
    record_controller_declaration,
    record_handler_declaration,
    pending_controller_metadata,
    pending_handler_metadata,
    target_class,
)

__all__ = [
    "MergeKind",
    "BindingKind",
    "ArgumentBinding",
    "AuthenticatorDeclaration",
    "ControllerMetadata",
    "HandlerMetadata",
    "clone",
    "deep_merge",
    "deep_merge_all",
    "merge_fragments",
    "MetadataStore",
    "record_controller_declaration",
    "record_handler_declaration",
    "pending_controller_metadata",
    "pending_handler_metadata",
    "target_class",
]
