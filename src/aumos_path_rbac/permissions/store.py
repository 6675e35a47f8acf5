"""Permission store — single writer of immutable permission snapshots.

The store owns the raw RBAC data (roles, resources, actions, permission
matrix), the active role and the ambient workflow stage.  Any change to
the role or the raw data recompiles the permission index into a new
:class:`PermissionSnapshot` and publishes it with a single assignment.
Readers take ``store.snapshot`` once and evaluate against it; they never
see a partially rebuilt index.

Thread-safety of writers is achieved with a threading.Lock.  Snapshots
themselves are immutable and need no locking.

Example
-------
::

    store = PermissionStore()
    store.load_dataset(dataset, role_id=2)
    snapshot = store.snapshot
    if snapshot.has_permission("/orders/form/amount", "UPDATE"):
        ...
    store.set_workflow_stage("approved")
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from aumos_path_rbac.exceptions import MetadataParseError
from aumos_path_rbac.models import Action, PermissionMatrixRow, Resource, Role
from aumos_path_rbac.permissions.compiler import (
    MetadataErrorPolicy,
    UserPermission,
    compile_permissions,
)
from aumos_path_rbac.permissions.evaluator import (
    DEFAULT_WORKFLOW_ACTIONS,
    AccessDecision,
    check_permission,
    get_workflow_actions,
)
from aumos_path_rbac.permissions.loader import PermissionDataset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermissionSnapshot:
    """Immutable view of the active role's compiled permissions.

    Attributes
    ----------
    role_id:
        The active role the snapshot was compiled for, or ``None``.
    workflow_stage:
        Ambient workflow stage used when a check gives no explicit stage.
    permissions:
        Compiled permission entries.
    errors:
        Metadata errors for resource groups that were dropped.
    compiled_at:
        UTC time the snapshot was built.
    """

    role_id: int | None = None
    workflow_stage: str | None = None
    permissions: tuple[UserPermission, ...] = ()
    errors: tuple[MetadataParseError, ...] = ()
    compiled_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def check(
        self, resource_path: str, action: str, workflow_stage: str | None = None
    ) -> AccessDecision:
        """Evaluate a request, falling back to the ambient workflow stage."""
        return check_permission(
            self.permissions,
            resource_path,
            action,
            workflow_stage,
            default_stage=self.workflow_stage,
        )

    def has_permission(
        self, resource_path: str, action: str, workflow_stage: str | None = None
    ) -> bool:
        return self.check(resource_path, action, workflow_stage).allowed

    def is_visible(self, resource_path: str, workflow_stage: str | None = None) -> bool:
        return self.has_permission(resource_path, "READ", workflow_stage)

    def is_enabled(
        self, resource_path: str, action: str, workflow_stage: str | None = None
    ) -> bool:
        return self.has_permission(resource_path, action, workflow_stage)

    def workflow_actions(
        self,
        resource_path: str,
        workflow_stage: str | None = None,
        candidates: Iterable[str] = DEFAULT_WORKFLOW_ACTIONS,
    ) -> list[str]:
        """Return the candidate actions permitted at the effective stage."""
        return get_workflow_actions(
            self.permissions,
            resource_path,
            workflow_stage or self.workflow_stage,
            candidates,
        )

    def permission_for(self, resource_path: str) -> UserPermission | None:
        """Return the exact entry for ``resource_path``, if compiled."""
        for permission in self.permissions:
            if permission.resource_path == resource_path:
                return permission
        return None


class PermissionStore:
    """Owns raw RBAC data and publishes compiled snapshots.

    Parameters
    ----------
    on_metadata_error:
        Passed to :func:`compile_permissions`.  ``"drop"`` (default) keeps
        the other resource groups when one has malformed metadata.  With
        ``"raise"`` a failing update leaves the previous snapshot published.
    default_workflow_stage:
        Initial ambient workflow stage.
    """

    def __init__(
        self,
        on_metadata_error: MetadataErrorPolicy = "drop",
        default_workflow_stage: str | None = None,
    ) -> None:
        self._on_metadata_error = on_metadata_error
        self._lock = threading.Lock()
        self._roles: tuple[Role, ...] = ()
        self._resources: tuple[Resource, ...] = ()
        self._actions: tuple[Action, ...] = ()
        self._rows: tuple[PermissionMatrixRow, ...] = ()
        self._role_id: int | None = None
        self._snapshot = PermissionSnapshot(workflow_stage=default_workflow_stage)

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> PermissionSnapshot:
        """The current immutable snapshot."""
        return self._snapshot

    @property
    def roles(self) -> tuple[Role, ...]:
        return self._roles

    @property
    def resources(self) -> tuple[Resource, ...]:
        return self._resources

    @property
    def actions(self) -> tuple[Action, ...]:
        return self._actions

    @property
    def active_role_id(self) -> int | None:
        return self._role_id

    def active_role(self) -> Role | None:
        """Return the active :class:`Role`, if it is in the catalog."""
        for role in self._roles:
            if role.id == self._role_id:
                return role
        return None

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def load_catalog(
        self,
        roles: Iterable[Role],
        resources: Iterable[Resource],
        actions: Iterable[Action],
    ) -> PermissionSnapshot:
        """Replace the role, resource and action lookup tables."""
        with self._lock:
            self._roles = tuple(roles)
            self._resources = tuple(resources)
            self._actions = tuple(actions)
            return self._recompile()

    def load_matrix(self, rows: Iterable[PermissionMatrixRow]) -> PermissionSnapshot:
        """Replace the raw permission matrix."""
        with self._lock:
            self._rows = tuple(rows)
            return self._recompile()

    def load_dataset(
        self, dataset: PermissionDataset, role_id: int | None = None
    ) -> PermissionSnapshot:
        """Replace all raw data at once and optionally select a role."""
        with self._lock:
            self._roles = dataset.roles
            self._resources = dataset.resources
            self._actions = dataset.actions
            self._rows = dataset.permission_matrix
            if role_id is not None:
                self._role_id = role_id
            return self._recompile()

    def set_active_role(self, role_id: int | None) -> PermissionSnapshot:
        """Select the active role.  ``None`` clears all permissions."""
        with self._lock:
            self._role_id = role_id
            return self._recompile()

    def set_workflow_stage(self, stage: str | None) -> PermissionSnapshot:
        """Change the ambient workflow stage without recompiling."""
        with self._lock:
            current = self._snapshot
            self._snapshot = PermissionSnapshot(
                role_id=current.role_id,
                workflow_stage=stage,
                permissions=current.permissions,
                errors=current.errors,
                compiled_at=current.compiled_at,
            )
            return self._snapshot

    def reset(self) -> PermissionSnapshot:
        """Drop all raw data, the active role and the workflow stage."""
        with self._lock:
            self._roles = ()
            self._resources = ()
            self._actions = ()
            self._rows = ()
            self._role_id = None
            self._snapshot = PermissionSnapshot()
            return self._snapshot

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _recompile(self) -> PermissionSnapshot:
        result = compile_permissions(
            self._rows,
            self._resources,
            self._actions,
            self._role_id,
            on_metadata_error=self._on_metadata_error,
        )
        snapshot = PermissionSnapshot(
            role_id=self._role_id,
            workflow_stage=self._snapshot.workflow_stage,
            permissions=result.permissions,
            errors=result.errors,
        )
        self._snapshot = snapshot
        logger.debug(
            "Published snapshot for role %s with %d entries",
            self._role_id,
            len(snapshot.permissions),
        )
        return snapshot
