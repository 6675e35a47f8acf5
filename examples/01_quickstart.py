#!/usr/bin/env python3
"""Example: Quickstart — aumos-path-rbac

Minimal working example: load an RBAC dataset, select a role, and
evaluate access to nested resources at different workflow stages.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install aumos-path-rbac
"""
from __future__ import annotations

from pathlib import Path

import aumos_path_rbac as rbac

DATASET = Path(__file__).with_name("demo_dataset.yaml")


def main() -> None:
    print(f"aumos-path-rbac version: {rbac.__version__}")

    # Step 1: Load the dataset and select the Clerk role
    dataset = rbac.DatasetLoader().load(DATASET)
    store = rbac.PermissionStore()
    snapshot = store.load_dataset(dataset, role_id=2)
    print(f"Compiled {len(snapshot.permissions)} entries for {store.active_role().name}")

    # Step 2: Evaluate requests against the snapshot
    requests = [
        ("/orders/form/amount", "UPDATE"),
        ("/orders/form/discount", "UPDATE"),
        ("/orders/form/discount", "READ"),
        ("/admin", "READ"),
    ]
    print("\nNo workflow stage:")
    for path, action in requests:
        decision = snapshot.check(path, action)
        icon = "ALLOW" if decision else "DENY"
        print(f"  [{icon}] {action} {path}  ({decision.reason})")

    # Step 3: Move the order to the approved stage
    snapshot = store.set_workflow_stage("approved")
    print("\nStage 'approved':")
    for action in ("READ", "UPDATE", "SUBMIT"):
        icon = "ALLOW" if snapshot.has_permission("/orders/form/amount", action) else "DENY"
        print(f"  [{icon}] {action} /orders/form/amount")
    print(f"  Workflow actions: {snapshot.workflow_actions('/orders/form/amount')}")

    # Step 4: Filter a navigation tree by visibility
    visible = rbac.filter_resources_by_permission(
        dataset.resources, snapshot.permissions
    )
    print(f"\nVisible resources: {[resource.path for resource in visible]}")


if __name__ == "__main__":
    main()
