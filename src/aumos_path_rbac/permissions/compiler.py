"""Permission compiler — raw permission matrix to per-resource user permissions.

The compiler takes the flat permission matrix (one row per role, resource
and action) together with the resource and action lookup tables, and
produces one :class:`UserPermission` per resource path the active role can
reach.  Inactive rows, rows outside their validity window, and rows that
reference unknown resources or actions contribute nothing.

Rows for the same resource are grouped.  The action set is the union of
every active, currently valid row in the group, while ``is_override``,
``metadata`` and the validity window are taken from the *first* valid row
only.  Callers must not assume those fields agree across rows.

The compiler never mutates its inputs or a previous result; every call
returns a fresh, immutable :class:`CompilationResult`.

Example
-------
::

    result = compile_permissions(rows, resources, actions, active_role_id=2)
    for permission in result:
        print(permission.resource_path, sorted(permission.actions))
    for error in result.errors:
        print("skipped:", error)
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

from aumos_path_rbac.exceptions import MetadataParseError
from aumos_path_rbac.models import (
    Action,
    PermissionMatrixRow,
    PermissionMetadata,
    Resource,
)

logger = logging.getLogger(__name__)

MetadataErrorPolicy = Literal["drop", "raise"]


# ---------------------------------------------------------------------------
# UserPermission
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UserPermission:
    """Compiled permissions of the active role on one resource path.

    Attributes
    ----------
    resource_path:
        The resource path this entry applies to.
    resource_id:
        Identifier of the underlying resource.
    actions:
        Action names granted on this path, before workflow filtering.
    is_override:
        When ``True`` an exact match on this entry is authoritative and
        bypasses workflow restrictions; during hierarchical lookup a
        matching override that lacks the action blocks inheritance.
    hierarchy_level:
        Depth of the resource in the path hierarchy.
    valid_from, valid_to:
        Validity window of the first valid row.
    metadata:
        Parsed metadata of the first valid row, or ``None``.
    """

    resource_path: str
    resource_id: int
    actions: frozenset[str] = field(default_factory=frozenset)
    is_override: bool = False
    hierarchy_level: int = 0
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    metadata: PermissionMetadata | None = None

    def allows(self, action: str) -> bool:
        """Return True if ``action`` is in the granted action set."""
        return action in self.actions


# ---------------------------------------------------------------------------
# CompilationResult
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompilationResult:
    """Immutable output of :func:`compile_permissions`.

    Iterating the result yields the compiled permissions.  ``errors`` holds
    one :class:`MetadataParseError` per resource group that was dropped
    because its metadata could not be parsed.
    """

    permissions: tuple[UserPermission, ...] = ()
    errors: tuple[MetadataParseError, ...] = ()

    @property
    def ok(self) -> bool:
        """Return True when no resource group was dropped."""
        return not self.errors

    def __iter__(self) -> Iterator[UserPermission]:
        return iter(self.permissions)

    def __len__(self) -> int:
        return len(self.permissions)


# ---------------------------------------------------------------------------
# Validity
# ---------------------------------------------------------------------------


def _as_utc(moment: datetime) -> datetime:
    # Naive timestamps are treated as UTC so they compare with aware ones.
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def is_currently_valid(row: PermissionMatrixRow, now: datetime | None = None) -> bool:
    """Return True if ``now`` falls inside the row's validity window.

    Both bounds are inclusive and either may be absent.
    """
    current = _as_utc(now or datetime.now(tz=timezone.utc))
    if row.valid_from is not None and _as_utc(row.valid_from) > current:
        return False
    if row.valid_to is not None and _as_utc(row.valid_to) < current:
        return False
    return True


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------


def compile_permissions(
    rows: Iterable[PermissionMatrixRow],
    resources: Iterable[Resource],
    actions: Iterable[Action],
    active_role_id: int | None,
    *,
    now: datetime | None = None,
    on_metadata_error: MetadataErrorPolicy = "drop",
) -> CompilationResult:
    """Compile the permission matrix for the active role.

    Parameters
    ----------
    rows:
        Raw permission-matrix rows for any number of roles.
    resources:
        Resource lookup table.
    actions:
        Action lookup table.
    active_role_id:
        The active role.  ``None`` yields an empty result.
    now:
        Reference time for validity windows.  Defaults to the current UTC
        time.
    on_metadata_error:
        ``"drop"`` (default) skips a resource group whose metadata cannot be
        parsed and records the error on the result.  ``"raise"`` aborts the
        whole compilation.

    Returns
    -------
    CompilationResult

    Raises
    ------
    MetadataParseError
        Only when ``on_metadata_error="raise"``.
    """
    if active_role_id is None:
        logger.debug("No active role; compiled permission set is empty")
        return CompilationResult()

    current = _as_utc(now or datetime.now(tz=timezone.utc))
    resource_map = {resource.id: resource for resource in resources}
    action_map = {action.id: action.name for action in actions}

    groups: dict[int, list[PermissionMatrixRow]] = {}
    for row in rows:
        if row.role_id != active_role_id or not row.is_active:
            continue
        groups.setdefault(row.resource_id, []).append(row)

    permissions: list[UserPermission] = []
    errors: list[MetadataParseError] = []

    for resource_id, group in groups.items():
        resource = resource_map.get(resource_id)
        if resource is None:
            logger.debug(
                "Skipping %d row(s) for unknown resource id %s", len(group), resource_id
            )
            continue

        valid_rows = [row for row in group if is_currently_valid(row, current)]
        if not valid_rows:
            continue

        first = valid_rows[0]
        try:
            metadata = PermissionMetadata.parse(
                first.metadata, resource_id=resource_id, permission_id=first.id
            )
        except MetadataParseError as exc:
            if on_metadata_error == "raise":
                raise
            logger.warning(
                "Dropping permissions for %s: %s", resource.path, exc
            )
            errors.append(exc)
            continue

        granted = frozenset(
            action_map[row.action_id] for row in valid_rows if row.action_id in action_map
        )
        permissions.append(
            UserPermission(
                resource_path=resource.path,
                resource_id=resource.id,
                actions=granted,
                is_override=bool(first.is_override),
                hierarchy_level=resource.depth,
                valid_from=first.valid_from,
                valid_to=first.valid_to,
                metadata=metadata,
            )
        )

    logger.info(
        "Compiled %d permission entries for role %s (%d dropped)",
        len(permissions),
        active_role_id,
        len(errors),
    )
    return CompilationResult(permissions=tuple(permissions), errors=tuple(errors))


def compile(  # noqa: A001
    rows: Iterable[PermissionMatrixRow],
    resources: Iterable[Resource],
    actions: Iterable[Action],
    active_role_id: int | None,
) -> tuple[UserPermission, ...]:
    """Return only the compiled permissions, dropping malformed groups."""
    return compile_permissions(rows, resources, actions, active_role_id).permissions
