"""Exception hierarchy for aumos-path-rbac.

Dangling foreign keys, missing roles and unknown actions are *not* errors
in this package: they simply produce fewer permissions or a deny decision.
The exceptions here cover the cases where silently continuing would hide
a data problem from the caller.
"""
from __future__ import annotations


class RbacError(Exception):
    """Base class for all aumos-path-rbac errors."""


class MetadataParseError(RbacError, ValueError):
    """Raised when a permission row carries unparseable or invalid metadata.

    Dropping the metadata instead would drop its workflow restrictions and
    turn a data error into a false allow, so the affected resource group is
    either skipped (and the error reported) or compilation is aborted.

    Attributes
    ----------
    resource_id:
        The resource whose permission group could not be compiled.
    permission_id:
        The matrix row the metadata was read from.
    raw:
        The metadata value as received.
    """

    def __init__(
        self,
        message: str,
        resource_id: int | None = None,
        permission_id: int | None = None,
        raw: object = None,
    ) -> None:
        self.resource_id = resource_id
        self.permission_id = permission_id
        self.raw = raw
        location = []
        if resource_id is not None:
            location.append(f"resource={resource_id}")
        if permission_id is not None:
            location.append(f"permission={permission_id}")
        prefix = f"[{' '.join(location)}] " if location else ""
        super().__init__(f"{prefix}{message}")


class DatasetConfigError(RbacError, ValueError):
    """Raised when an RBAC dataset file is malformed or invalid.

    Attributes
    ----------
    config_path:
        The path to the dataset file that caused the error, if known.
    """

    def __init__(self, message: str, config_path: str | None = None) -> None:
        self.config_path = config_path
        prefix = f"[{config_path}] " if config_path else ""
        super().__init__(f"{prefix}{message}")
