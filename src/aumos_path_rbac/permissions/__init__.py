"""Hierarchical path-based permission system.

Compiles a raw role/resource/action permission matrix into per-path user
permissions and evaluates access requests against them.

Example
-------
::

    from aumos_path_rbac.permissions import compile_permissions, has_permission

    result = compile_permissions(rows, resources, actions, active_role_id=2)
    allowed = has_permission(result.permissions, "/orders/form/amount", "UPDATE",
                             workflow_stage="draft")
"""
from __future__ import annotations

from aumos_path_rbac.permissions.compiler import (
    CompilationResult,
    UserPermission,
    compile_permissions,
    is_currently_valid,
)
from aumos_path_rbac.permissions.evaluator import (
    DEFAULT_WORKFLOW_ACTIONS,
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

__all__ = [
    # Compiler
    "CompilationResult",
    "UserPermission",
    "compile_permissions",
    "is_currently_valid",
    # Evaluator
    "DEFAULT_WORKFLOW_ACTIONS",
    "AccessDecision",
    "check_permission",
    "filter_resources_by_permission",
    "get_resource_permissions",
    "get_workflow_actions",
    "get_workflow_restrictions",
    "has_permission",
    "is_action_restricted_in_workflow",
    "is_resource_enabled",
    "is_resource_visible",
    # Loader
    "DatasetLoader",
    "PermissionDataset",
    # Store
    "PermissionSnapshot",
    "PermissionStore",
]
