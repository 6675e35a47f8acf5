"""RBAC data model — Pydantic v2 models for the raw permission matrix.

The raw representation is flat: roles, resources and actions are lookup
tables keyed by numeric id, and each permission-matrix row grants one
action on one resource to one role.  Rows may carry a validity window, an
override flag, and JSON metadata holding workflow-stage restrictions.

Every model accepts snake_case field names as well as the PascalCase (and
camelCase) names used by the upstream permission API, so payloads can be
validated as received.

Example
-------
>>> from aumos_path_rbac.models import PermissionMatrixRow, Resource
>>> Resource.model_validate(
...     {"ResourceId": 3, "ResourcePath": "/orders/form", "ResourceName": "Order form"}
... ).depth
2
>>> row = PermissionMatrixRow(id=1, role_id=2, resource_id=3, action_id=1)
>>> row.is_active
True
"""
from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from aumos_path_rbac.exceptions import MetadataParseError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ActionName(str, Enum):
    """Standard action names.  Callers may use any other uppercase string."""

    READ = "READ"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    EXECUTE = "EXECUTE"
    APPROVE = "APPROVE"
    SUBMIT = "SUBMIT"


class ResourceType(str, Enum):
    """Standard resource type tags."""

    PAGE = "PAGE"
    SECTION = "SECTION"
    COMPONENT = "COMPONENT"
    FIELD = "FIELD"
    BUTTON = "BUTTON"
    API = "API"


# ---------------------------------------------------------------------------
# Lookup tables
# ---------------------------------------------------------------------------


class Role(BaseModel):
    """A role that can be selected as the active role."""

    model_config = {"frozen": True}

    id: int = Field(validation_alias=AliasChoices("id", "RoleId", "roleId"))
    name: str = Field(validation_alias=AliasChoices("name", "RoleName", "roleName"))
    description: str | None = Field(
        default=None, validation_alias=AliasChoices("description", "Description")
    )


class Resource(BaseModel):
    """A UI or API resource identified by a unique slash-delimited path.

    Attributes
    ----------
    id:
        Numeric resource identifier referenced by permission rows.
    path:
        Unique hierarchical path, e.g. ``/orders/form/amount``.
    name:
        Display name.  Defaults to the path.
    type:
        Type tag (see :class:`ResourceType`); open-ended.
    depth:
        Hierarchy level.  Derived from the number of path segments when
        not supplied.
    parent_id:
        Optional parent resource id, used only to build navigation trees.
    """

    model_config = {"frozen": True}

    id: int = Field(validation_alias=AliasChoices("id", "ResourceId", "resourceId"))
    path: str = Field(
        validation_alias=AliasChoices("path", "ResourcePath", "resourcePath")
    )
    name: str = Field(
        default="",
        validate_default=True,
        validation_alias=AliasChoices("name", "ResourceName", "resourceName"),
    )
    type: str = Field(
        default=ResourceType.PAGE.value,
        validation_alias=AliasChoices("type", "ResourceType", "resourceType"),
    )
    depth: int = Field(
        default=None,  # type: ignore[assignment]
        validate_default=True,
        validation_alias=AliasChoices("depth", "HierarchyLevel", "hierarchyLevel"),
    )
    parent_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("parent_id", "ParentResourceId", "parentResourceId"),
    )

    @field_validator("name", mode="before")
    @classmethod
    def default_name_to_path(cls, value: Any, info: ValidationInfo) -> Any:
        if not value:
            return info.data.get("path", "")
        return value

    @field_validator("depth", mode="before")
    @classmethod
    def derive_depth(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return len(split_path(str(info.data.get("path", ""))))
        return value

    @property
    def segments(self) -> list[str]:
        """Return the non-empty path segments."""
        return split_path(self.path)


class Action(BaseModel):
    """An action that can be granted on a resource."""

    model_config = {"frozen": True}

    id: int = Field(validation_alias=AliasChoices("id", "ActionId", "actionId"))
    name: str = Field(validation_alias=AliasChoices("name", "Action", "action"))
    description: str | None = Field(
        default=None, validation_alias=AliasChoices("description", "Description")
    )


# ---------------------------------------------------------------------------
# Workflow metadata
# ---------------------------------------------------------------------------


class WorkflowRestriction(BaseModel):
    """Allow/deny lists applied to a resource at one workflow stage.

    ``restricted_actions`` always wins.  When ``allowed_actions`` is set,
    any action outside it is denied as well.  Restrictions can only
    narrow the granted action set, never widen it.
    """

    model_config = {"frozen": True}

    allowed_actions: tuple[str, ...] | None = Field(
        default=None, validation_alias=AliasChoices("allowed_actions", "allowedActions")
    )
    restricted_actions: tuple[str, ...] | None = Field(
        default=None,
        validation_alias=AliasChoices("restricted_actions", "restrictedActions"),
    )

    def denies(self, action: str) -> bool:
        """Return True if this restriction blocks ``action``."""
        if self.restricted_actions and action in self.restricted_actions:
            return True
        if self.allowed_actions is not None and action not in self.allowed_actions:
            return True
        return False


class PermissionMetadata(BaseModel):
    """Typed form of the JSON metadata carried by a permission row.

    Unknown top-level keys are kept (``extra="allow"``) but ignored by
    the evaluator.
    """

    model_config = {"frozen": True, "extra": "allow"}

    workflow_restrictions: dict[str, WorkflowRestriction] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("workflow_restrictions", "workflowRestrictions"),
    )

    def restriction_for(self, stage: str) -> WorkflowRestriction | None:
        """Return the restriction for ``stage``, or None when there is none."""
        return self.workflow_restrictions.get(stage)

    @classmethod
    def parse(
        cls,
        raw: object,
        resource_id: int | None = None,
        permission_id: int | None = None,
    ) -> PermissionMetadata | None:
        """Parse raw row metadata (JSON text or a mapping).

        Empty strings, ``None`` and a JSON ``null`` all mean "no metadata".

        Raises
        ------
        MetadataParseError
            If the text is not valid JSON, or the value is not an object
            matching the metadata schema.
        """
        if raw is None or raw == "":
            return None
        data: object = raw
        if isinstance(raw, str):
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise MetadataParseError(
                    f"Invalid metadata JSON: {exc}",
                    resource_id=resource_id,
                    permission_id=permission_id,
                    raw=raw,
                ) from exc
        if data is None:
            return None
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise MetadataParseError(
                f"Invalid metadata structure: {exc}",
                resource_id=resource_id,
                permission_id=permission_id,
                raw=raw,
            ) from exc


# ---------------------------------------------------------------------------
# Permission matrix
# ---------------------------------------------------------------------------


class PermissionMatrixRow(BaseModel):
    """One grant of an action on a resource to a role.

    ``metadata`` is kept in its raw form here, whatever its shape; it is
    parsed and validated by the compiler so that a malformed value surfaces
    as a :class:`MetadataParseError` for the affected resource group.
    """

    model_config = {"frozen": True}

    id: int = Field(
        validation_alias=AliasChoices("id", "PermissionId", "permissionId")
    )
    role_id: int = Field(validation_alias=AliasChoices("role_id", "RoleId", "roleId"))
    resource_id: int = Field(
        validation_alias=AliasChoices("resource_id", "ResourceId", "resourceId")
    )
    action_id: int = Field(
        validation_alias=AliasChoices("action_id", "ActionId", "actionId")
    )
    is_active: bool = Field(
        default=True, validation_alias=AliasChoices("is_active", "IsActive", "isActive")
    )
    valid_from: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("valid_from", "ValidFrom", "validFrom"),
    )
    valid_to: datetime | None = Field(
        default=None, validation_alias=AliasChoices("valid_to", "ValidTo", "validTo")
    )
    is_override: bool | None = Field(
        default=None,
        validation_alias=AliasChoices("is_override", "IsOverride", "isOverride"),
    )
    metadata: Any = Field(
        default=None, validation_alias=AliasChoices("metadata", "Metadata")
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def split_path(resource_path: str) -> list[str]:
    """Split a resource path into its non-empty slash-delimited segments."""
    return [segment for segment in resource_path.split("/") if segment]
