"""RBAC configuration loader with Pydantic v2 validation.

Loads and validates an ``rbac.yaml`` file into a typed :class:`RbacConfig`
object.  Unknown keys are allowed to support future schema additions
without breakage.

Example
-------
>>> loader = ConfigLoader()
>>> config = loader.load_string("default_workflow_stage: draft")
>>> config.default_workflow_stage
'draft'
"""
from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator

from aumos_path_rbac.permissions.evaluator import DEFAULT_WORKFLOW_ACTIONS


class RbacConfig(BaseModel):
    """Top-level RBAC configuration schema.

    All fields are optional and fall back to sensible defaults.
    """

    model_config = {"extra": "allow"}

    version: str = Field(default="1")
    dataset_path: Path | None = Field(default=None)
    default_role_id: int | None = Field(default=None)
    default_workflow_stage: str | None = Field(default=None)
    on_metadata_error: Literal["drop", "raise"] = Field(default="drop")
    workflow_actions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_WORKFLOW_ACTIONS)
    )

    @field_validator("workflow_actions")
    @classmethod
    def normalise_actions(cls, values: list[str]) -> list[str]:
        normalised = [v.strip().upper() for v in values]
        for v in normalised:
            if not v:
                raise ValueError("workflow_actions must not contain empty names")
        return normalised


class ConfigLoader:
    """Loads and validates RBAC YAML configuration."""

    def load(self, config_path: Path) -> RbacConfig:
        """Load and validate an RBAC YAML file.

        Raises
        ------
        FileNotFoundError:
            When the config file does not exist.
        ValueError:
            When the YAML content fails Pydantic validation.
        """
        if not config_path.exists():
            raise FileNotFoundError(f"RBAC config not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as fh:
            raw: dict[str, object] = yaml.safe_load(fh) or {}

        return RbacConfig.model_validate(raw)

    def load_string(self, yaml_content: str) -> RbacConfig:
        """Load and validate a YAML string directly."""
        raw: dict[str, object] = yaml.safe_load(yaml_content) or {}
        return RbacConfig.model_validate(raw)

    def defaults(self) -> RbacConfig:
        """Return a default configuration with all defaults applied."""
        return RbacConfig()
