"""YAML/JSON dataset loader for the RBAC permission matrix.

DatasetLoader reads a static RBAC dataset (roles, resources, actions and
the permission matrix) and validates it into a :class:`PermissionDataset`.
JSON files are accepted as well, since JSON is valid YAML.

Schema
------
::

    version: "1.0"
    roles:
      - {id: 1, name: Admin}
      - {id: 2, name: Manager, description: Department manager}
    resources:
      - {id: 1, path: /orders, name: Orders, type: PAGE}
      - {id: 2, path: /orders/form, name: Order form, type: SECTION, parent_id: 1}
    actions:
      - {id: 1, name: READ}
      - {id: 2, name: UPDATE}
    permission_matrix:
      - id: 1
        role_id: 2
        resource_id: 1
        action_id: 1
        is_active: true
        metadata: '{"workflowRestrictions": {"approved": {"allowedActions": ["READ"]}}}'

``permission_matrix`` may also be a mapping keyed by role id whose values
are lists of rows.  The PascalCase field names of the upstream API
(``RoleId``, ``ResourcePath``, ``permissionMatrix`` ...) are accepted too.

Example
-------
::

    loader = DatasetLoader()
    dataset = loader.load("rbac_dataset.yaml")
    result = compile_permissions(
        dataset.permission_matrix, dataset.resources, dataset.actions, 2
    )
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import BaseModel, ValidationError

from aumos_path_rbac.exceptions import DatasetConfigError
from aumos_path_rbac.models import Action, PermissionMatrixRow, Resource, Role

logger = logging.getLogger(__name__)

_SUPPORTED_VERSIONS: frozenset[str] = frozenset(["1.0", "1"])

_SECTION_KEYS: dict[str, tuple[str, ...]] = {
    "roles": ("roles",),
    "resources": ("resources",),
    "actions": ("actions",),
    "permission_matrix": ("permission_matrix", "permissionMatrix"),
}


@dataclass(frozen=True)
class PermissionDataset:
    """Validated, immutable RBAC dataset."""

    roles: tuple[Role, ...] = ()
    resources: tuple[Resource, ...] = ()
    actions: tuple[Action, ...] = ()
    permission_matrix: tuple[PermissionMatrixRow, ...] = ()

    def role(self, role_id: int) -> Role | None:
        """Return the role with ``role_id``, or None."""
        for role in self.roles:
            if role.id == role_id:
                return role
        return None

    def rows_for_role(self, role_id: int) -> tuple[PermissionMatrixRow, ...]:
        """Return the matrix rows belonging to ``role_id``."""
        return tuple(row for row in self.permission_matrix if row.role_id == role_id)


class DatasetLoader:
    """Loads :class:`PermissionDataset` instances from YAML files or dicts.

    Parameters
    ----------
    strict:
        When ``True``, unknown top-level keys are treated as an error.
        Default ``False`` (unknown keys are silently ignored).
    """

    _KNOWN_TOP_KEYS: frozenset[str] = frozenset(
        ["version", "description", "metadata"]
        + [key for keys in _SECTION_KEYS.values() for key in keys]
    )

    def __init__(self, strict: bool = False) -> None:
        self._strict = strict

    def load(self, config_path: str | Path) -> PermissionDataset:
        """Load a dataset from a YAML or JSON file on disk.

        Raises
        ------
        DatasetConfigError
            If the file cannot be parsed or is structurally invalid.
        FileNotFoundError
            If the file does not exist.
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"RBAC dataset not found: {config_path}")

        try:
            with config_path.open("r", encoding="utf-8") as fh:
                raw: dict[str, object] = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise DatasetConfigError(
                f"Failed to parse YAML: {exc}", str(config_path)
            ) from exc

        return self._build_dataset(raw, config_path=str(config_path))

    def load_from_dict(
        self,
        config: dict[str, object],
        config_path: str | None = None,
    ) -> PermissionDataset:
        """Load a dataset from an already-parsed dictionary."""
        return self._build_dataset(config, config_path=config_path)

    def load_from_yaml_string(
        self,
        yaml_string: str,
        config_path: str | None = None,
    ) -> PermissionDataset:
        """Load a dataset from a YAML (or JSON) string."""
        try:
            raw: dict[str, object] = yaml.safe_load(yaml_string) or {}
        except yaml.YAMLError as exc:
            raise DatasetConfigError(
                f"Failed to parse YAML string: {exc}", config_path
            ) from exc
        return self._build_dataset(raw, config_path=config_path)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _build_dataset(
        self,
        raw: dict[str, object],
        config_path: str | None = None,
    ) -> PermissionDataset:
        """Validate and build a PermissionDataset from a raw dict."""
        if not isinstance(raw, dict):
            raise DatasetConfigError(
                "RBAC dataset must be a YAML mapping (dict).", config_path
            )

        version = str(raw.get("version", "1.0"))
        if version not in _SUPPORTED_VERSIONS:
            raise DatasetConfigError(
                f"Unsupported dataset version {version!r}. "
                f"Supported: {sorted(_SUPPORTED_VERSIONS)}.",
                config_path,
            )

        if self._strict:
            unknown_keys = set(raw.keys()) - self._KNOWN_TOP_KEYS
            if unknown_keys:
                raise DatasetConfigError(
                    f"Unknown top-level keys: {sorted(unknown_keys)}. "
                    f"Known keys: {sorted(self._KNOWN_TOP_KEYS)}.",
                    config_path,
                )

        roles = self._parse_section(raw, "roles", Role, config_path)
        resources = self._parse_section(raw, "resources", Resource, config_path)
        actions = self._parse_section(raw, "actions", Action, config_path)
        rows = self._parse_section(
            raw, "permission_matrix", PermissionMatrixRow, config_path
        )

        seen_paths: dict[str, int] = {}
        for resource in resources:
            if resource.path in seen_paths:
                raise DatasetConfigError(
                    f"Duplicate resource path {resource.path!r} "
                    f"(resources {seen_paths[resource.path]} and {resource.id}).",
                    config_path,
                )
            seen_paths[resource.path] = resource.id

        logger.info(
            "Loaded RBAC dataset from %s: %d roles, %d resources, %d actions, %d rows",
            config_path or "<dict>",
            len(roles),
            len(resources),
            len(actions),
            len(rows),
        )
        return PermissionDataset(
            roles=roles,  # type: ignore[arg-type]
            resources=resources,  # type: ignore[arg-type]
            actions=actions,  # type: ignore[arg-type]
            permission_matrix=rows,  # type: ignore[arg-type]
        )

    def _parse_section(
        self,
        raw: dict[str, object],
        section: str,
        model: type[BaseModel],
        config_path: str | None,
    ) -> tuple[BaseModel, ...]:
        value: object = []
        for key in _SECTION_KEYS[section]:
            if key in raw:
                value = raw[key]
                break
        if value is None:
            value = []

        if section == "permission_matrix" and isinstance(value, dict):
            # Rows grouped by role id, as served per role by the upstream API.
            grouped: list[object] = []
            for role_rows in value.values():
                if not isinstance(role_rows, list):
                    raise DatasetConfigError(
                        "Each 'permission_matrix' group must be a list of rows.",
                        config_path,
                    )
                grouped.extend(role_rows)
            value = grouped

        if not isinstance(value, list):
            raise DatasetConfigError(f"'{section}' must be a list.", config_path)

        items: list[BaseModel] = []
        for index, item in enumerate(value):
            try:
                items.append(model.model_validate(item))
            except ValidationError as exc:
                raise DatasetConfigError(
                    f"Error in {section} entry at index {index}: {exc}",
                    config_path,
                ) from exc
        return tuple(items)
