"""aumos-path-rbac — Hierarchical, path-based role permission evaluation.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import aumos_path_rbac as rbac
>>> rbac.__version__
'0.1.0'
>>> entries = [rbac.UserPermission("/orders", 1, frozenset({"READ"}))]
>>> rbac.has_permission(entries, "/orders/form/amount", "READ")
True
>>> rbac.has_permission([], "/orders", "READ")
False
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------
from aumos_path_rbac.models import (
    Action,
    ActionName,
    PermissionMatrixRow,
    PermissionMetadata,
    Resource,
    ResourceType,
    Role,
    WorkflowRestriction,
)
from aumos_path_rbac.exceptions import DatasetConfigError, MetadataParseError, RbacError

# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------
from aumos_path_rbac.permissions.compiler import (
    CompilationResult,
    UserPermission,
    compile_permissions,
)
from aumos_path_rbac.permissions.evaluator import (
    AccessDecision,
    check_permission,
    filter_resources_by_permission,
    get_resource_permissions,
    get_workflow_actions,
    get_workflow_restrictions,
    has_permission,
    is_action_restricted_in_workflow,
    is_resource_enabled,
    is_resource_visible,
)
from aumos_path_rbac.permissions.loader import DatasetLoader, PermissionDataset
from aumos_path_rbac.permissions.store import PermissionSnapshot, PermissionStore

# ---------------------------------------------------------------------------
# Navigation and configuration
# ---------------------------------------------------------------------------
from aumos_path_rbac.hierarchy import ResourceNode, build_resource_tree
from aumos_path_rbac.config import ConfigLoader, RbacConfig

__all__ = [
    "__version__",
    # Data model
    "Action",
    "ActionName",
    "PermissionMatrixRow",
    "PermissionMetadata",
    "Resource",
    "ResourceType",
    "Role",
    "WorkflowRestriction",
    # Errors
    "DatasetConfigError",
    "MetadataParseError",
    "RbacError",
    # Permissions
    "AccessDecision",
    "CompilationResult",
    "DatasetLoader",
    "PermissionDataset",
    "PermissionSnapshot",
    "PermissionStore",
    "UserPermission",
    "check_permission",
    "compile_permissions",
    "filter_resources_by_permission",
    "get_resource_permissions",
    "get_workflow_actions",
    "get_workflow_restrictions",
    "has_permission",
    "is_action_restricted_in_workflow",
    "is_resource_enabled",
    "is_resource_visible",
    # Navigation and configuration
    "ConfigLoader",
    "RbacConfig",
    "ResourceNode",
    "build_resource_tree",
]
