"""Test that the quickstart API works for aumos-path-rbac."""
from __future__ import annotations

from pathlib import Path

DEMO_DATASET = Path(__file__).resolve().parent.parent / "examples" / "demo_dataset.yaml"


def test_quickstart_import() -> None:
    import aumos_path_rbac as rbac

    assert rbac.__version__ == "0.1.0"


def test_quickstart_empty_store_denies() -> None:
    from aumos_path_rbac import PermissionStore

    store = PermissionStore()
    assert store.snapshot.has_permission("/orders", "READ") is False


def test_quickstart_compile_and_check() -> None:
    from aumos_path_rbac import (
        Action,
        PermissionMatrixRow,
        Resource,
        compile_permissions,
        has_permission,
    )

    result = compile_permissions(
        [PermissionMatrixRow(id=1, role_id=2, resource_id=1, action_id=1)],
        [Resource(id=1, path="/orders")],
        [Action(id=1, name="READ")],
        active_role_id=2,
    )
    assert result.ok
    assert has_permission(result.permissions, "/orders/form/amount", "READ") is True


def test_quickstart_demo_dataset_clerk() -> None:
    from aumos_path_rbac import DatasetLoader, PermissionStore

    dataset = DatasetLoader(strict=True).load(DEMO_DATASET)
    store = PermissionStore()
    snapshot = store.load_dataset(dataset, role_id=2)

    assert snapshot.has_permission("/orders/form/amount", "UPDATE") is True
    assert snapshot.has_permission("/orders/form/discount", "UPDATE") is False
    assert snapshot.has_permission("/orders/form/discount", "READ") is True
    assert snapshot.has_permission("/admin", "READ") is False

    approved = store.set_workflow_stage("approved")
    assert approved.workflow_actions("/orders/form/amount") == ["READ"]


def test_quickstart_demo_dataset_admin() -> None:
    from aumos_path_rbac import DatasetLoader, PermissionStore

    dataset = DatasetLoader().load(DEMO_DATASET)
    snapshot = PermissionStore().load_dataset(dataset, role_id=1)
    assert snapshot.is_visible("/admin") is True
    assert snapshot.is_enabled("/orders/list", "APPROVE") is True
