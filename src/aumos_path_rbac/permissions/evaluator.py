"""Access evaluator — decide allow/deny against compiled user permissions.

The decision procedure, in strict order:

1. **Exact match.**  An entry whose path equals the requested path decides
   alone.  Override entries return plain action-set membership; other
   entries are first subject to workflow-stage filtering.
2. **Hierarchical fallback.**  Without an exact match, ancestors are tried
   from the most specific to the root.  The first ancestor that grants the
   action is selected, unless a more specific override entry lacks the
   action, in which case access is denied.  An override is more specific
   when its path starts with the literal *requested* path, or when it lies
   on the requested path strictly below the granting ancestor.  The
   selected ancestor is then subject to workflow-stage filtering.
3. **Workflow-stage filtering.**  If the entry's metadata holds a
   restriction for the effective stage, ``restricted_actions`` denies
   first, then ``allowed_actions`` (when present) denies anything outside
   it.  Filtering narrows; it never grants.

Anything else is denied.  Evaluation is pure and never raises for string
inputs, so it is safe to call from many readers at once.

Example
-------
::

    entries = [UserPermission(resource_path="/orders", resource_id=1,
                              actions=frozenset({"READ"}))]
    assert has_permission(entries, "/orders/form/amount", "READ")
    assert not has_permission(entries, "/orders/form/amount", "DELETE")
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from aumos_path_rbac.models import ActionName, WorkflowRestriction, split_path
from aumos_path_rbac.permissions.compiler import UserPermission

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_WORKFLOW_ACTIONS: tuple[str, ...] = (
    ActionName.CREATE.value,
    ActionName.READ.value,
    ActionName.UPDATE.value,
    ActionName.DELETE.value,
    ActionName.SUBMIT.value,
    ActionName.APPROVE.value,
)


# ---------------------------------------------------------------------------
# AccessDecision
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccessDecision:
    """Immutable result of a permission check.

    Attributes
    ----------
    allowed:
        Whether the action is permitted.
    reason:
        Human-readable explanation of the decision.
    resource_path:
        The resource path that was requested.
    action:
        The action that was checked.
    workflow_stage:
        The effective workflow stage, if any.
    matched_path:
        Path of the entry that decided the outcome, or ``None`` when the
        default deny was applied.
    """

    allowed: bool
    reason: str
    resource_path: str
    action: str
    workflow_stage: str | None = None
    matched_path: str | None = None

    def __bool__(self) -> bool:
        """Return True if the action is allowed."""
        return self.allowed


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _index(permissions: Iterable[UserPermission]) -> dict[str, UserPermission]:
    # First entry wins if a path was ever compiled twice.
    index: dict[str, UserPermission] = {}
    for permission in permissions:
        index.setdefault(permission.resource_path, permission)
    return index


def _stage_restriction(
    entry: UserPermission, stage: str | None
) -> WorkflowRestriction | None:
    if not stage or entry.metadata is None:
        return None
    return entry.metadata.restriction_for(stage)


def _ancestor_paths(resource_path: str) -> list[str]:
    """Return ancestor paths from the most specific to the root.

    The first element is the requested path itself in normalised form.
    """
    segments = split_path(resource_path)
    return [
        "/" + "/".join(segments[: depth + 1])
        for depth in range(len(segments) - 1, -1, -1)
    ]


def _blocking_override(
    permissions: Iterable[UserPermission],
    resource_path: str,
    ancestor_path: str,
    action: str,
) -> UserPermission | None:
    """Return an override entry lacking ``action`` that is more specific
    than the granting ancestor, if any.

    An override blocks when its path starts with the literal requested
    path, or when it sits on the request's own path strictly below
    ``ancestor_path``.
    """
    between = {
        path for path in _ancestor_paths(resource_path) if len(path) > len(ancestor_path)
    }
    for permission in permissions:
        if not permission.is_override or action in permission.actions:
            continue
        if permission.resource_path.startswith(resource_path):
            return permission
        if permission.resource_path in between:
            return permission
    return None


def _decide(
    allowed: bool,
    reason: str,
    resource_path: str,
    action: str,
    stage: str | None,
    matched_path: str | None,
) -> AccessDecision:
    logger.debug(
        "Permission %s: action=%s path=%s stage=%s matched=%s",
        "ALLOW" if allowed else "DENY",
        action,
        resource_path,
        stage,
        matched_path,
    )
    return AccessDecision(
        allowed=allowed,
        reason=reason,
        resource_path=resource_path,
        action=action,
        workflow_stage=stage,
        matched_path=matched_path,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def check_permission(
    permissions: Sequence[UserPermission],
    resource_path: str,
    action: str,
    workflow_stage: str | None = None,
    *,
    default_stage: str | None = None,
) -> AccessDecision:
    """Evaluate ``action`` on ``resource_path`` and explain the outcome.

    Parameters
    ----------
    permissions:
        Compiled permissions of the active role.
    resource_path:
        Slash-delimited path of the requested resource.
    action:
        Action name, e.g. ``"READ"``.
    workflow_stage:
        Explicit workflow stage.  Takes precedence over ``default_stage``.
    default_stage:
        Ambient workflow stage used when no explicit stage is given.

    Returns
    -------
    AccessDecision
    """
    stage = workflow_stage or default_stage
    index = _index(permissions)

    exact = index.get(resource_path)
    if exact is not None:
        if exact.is_override:
            return _decide(
                exact.allows(action),
                f"Override entry '{exact.resource_path}' "
                f"{'grants' if exact.allows(action) else 'does not grant'} {action}.",
                resource_path,
                action,
                stage,
                exact.resource_path,
            )
        restriction = _stage_restriction(exact, stage)
        if restriction is not None and restriction.denies(action):
            return _decide(
                False,
                f"{action} is restricted at workflow stage '{stage}'.",
                resource_path,
                action,
                stage,
                exact.resource_path,
            )
        return _decide(
            exact.allows(action),
            f"Exact entry '{exact.resource_path}' "
            f"{'grants' if exact.allows(action) else 'does not grant'} {action}.",
            resource_path,
            action,
            stage,
            exact.resource_path,
        )

    for ancestor_path in _ancestor_paths(resource_path):
        ancestor = index.get(ancestor_path)
        if ancestor is None or not ancestor.allows(action):
            continue

        blocker = _blocking_override(permissions, resource_path, ancestor_path, action)
        if blocker is not None:
            return _decide(
                False,
                f"Override entry '{blocker.resource_path}' blocks {action} "
                f"inherited from '{ancestor_path}'.",
                resource_path,
                action,
                stage,
                blocker.resource_path,
            )

        restriction = _stage_restriction(ancestor, stage)
        if restriction is not None and restriction.denies(action):
            return _decide(
                False,
                f"{action} inherited from '{ancestor_path}' is restricted at "
                f"workflow stage '{stage}'.",
                resource_path,
                action,
                stage,
                ancestor_path,
            )
        return _decide(
            True,
            f"{action} inherited from '{ancestor_path}'.",
            resource_path,
            action,
            stage,
            ancestor_path,
        )

    return _decide(
        False,
        f"No entry grants {action} on '{resource_path}' or its ancestors.",
        resource_path,
        action,
        stage,
        None,
    )


def has_permission(
    permissions: Sequence[UserPermission],
    resource_path: str,
    action: str,
    workflow_stage: str | None = None,
    *,
    default_stage: str | None = None,
) -> bool:
    """Return True if ``action`` is permitted on ``resource_path``.

    See :func:`check_permission` for the parameters.
    """
    return check_permission(
        permissions,
        resource_path,
        action,
        workflow_stage,
        default_stage=default_stage,
    ).allowed


def get_resource_permissions(
    permissions: Iterable[UserPermission], resource_path: str
) -> frozenset[str]:
    """Return the actions granted by the exact entry for ``resource_path``."""
    entry = _index(permissions).get(resource_path)
    return entry.actions if entry is not None else frozenset()


def is_resource_visible(
    permissions: Sequence[UserPermission],
    resource_path: str,
    workflow_stage: str | None = None,
) -> bool:
    """Return True if the resource may be shown (``READ`` is permitted)."""
    return has_permission(
        permissions, resource_path, ActionName.READ.value, workflow_stage
    )


def is_resource_enabled(
    permissions: Sequence[UserPermission],
    resource_path: str,
    action: str,
    workflow_stage: str | None = None,
) -> bool:
    """Return True if the resource may be interacted with for ``action``."""
    return has_permission(permissions, resource_path, action, workflow_stage)


def filter_resources_by_permission(
    items: Iterable[T],
    permissions: Sequence[UserPermission],
    action: str = ActionName.READ.value,
    workflow_stage: str | None = None,
    *,
    path_of: Callable[[T], str] = lambda item: item.path,  # type: ignore[attr-defined]
) -> list[T]:
    """Keep the items whose resource path permits ``action``.

    ``path_of`` extracts the path from an item; by default the item's
    ``path`` attribute is used, which suits :class:`~aumos_path_rbac.models.Resource`.
    """
    return [
        item
        for item in items
        if has_permission(permissions, path_of(item), action, workflow_stage)
    ]


def get_workflow_restrictions(
    permissions: Iterable[UserPermission],
    resource_path: str,
    workflow_stage: str,
) -> WorkflowRestriction | None:
    """Return the exact entry's restriction for ``workflow_stage``, if any."""
    entry = _index(permissions).get(resource_path)
    if entry is None:
        return None
    return _stage_restriction(entry, workflow_stage)


def is_action_restricted_in_workflow(
    permissions: Iterable[UserPermission],
    resource_path: str,
    action: str,
    workflow_stage: str | None = None,
) -> bool:
    """Return True if the exact entry's stage restriction blocks ``action``.

    Only the exact entry is consulted; inherited restrictions are applied
    by :func:`has_permission`.
    """
    if not workflow_stage:
        return False
    restriction = get_workflow_restrictions(permissions, resource_path, workflow_stage)
    return restriction is not None and restriction.denies(action)


def get_workflow_actions(
    permissions: Sequence[UserPermission],
    resource_path: str,
    workflow_stage: str | None = None,
    candidates: Iterable[str] = DEFAULT_WORKFLOW_ACTIONS,
) -> list[str]:
    """Return the candidate actions permitted on ``resource_path`` at a stage."""
    return [
        action
        for action in candidates
        if has_permission(permissions, resource_path, action, workflow_stage)
    ]
