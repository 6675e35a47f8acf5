"""Tests for the access evaluator."""
from __future__ import annotations

import pytest

from aumos_path_rbac.models import PermissionMetadata, Resource, split_path
from aumos_path_rbac.permissions.compiler import UserPermission
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


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

def _entry(
    path: str,
    actions: list[str],
    is_override: bool = False,
    restrictions: dict[str, dict[str, list[str]]] | None = None,
) -> UserPermission:
    metadata = (
        PermissionMetadata.model_validate({"workflowRestrictions": restrictions})
        if restrictions is not None
        else None
    )
    return UserPermission(
        resource_path=path,
        resource_id=len(split_path(path)),
        actions=frozenset(actions),
        is_override=is_override,
        metadata=metadata,
    )


_DRAFT_RULES = {
    "draft": {"allowedActions": ["READ", "SUBMIT"], "restrictedActions": ["SUBMIT"]},
    "approved": {"allowedActions": ["READ"]},
}


@pytest.fixture()
def workflow_entry() -> list[UserPermission]:
    return [_entry("/orders/form", ["READ", "SUBMIT", "UPDATE"], restrictions=_DRAFT_RULES)]


# ---------------------------------------------------------------------------
# Default deny
# ---------------------------------------------------------------------------

class TestDefaultDeny:
    @pytest.mark.parametrize("path", ["/orders", "/orders/form/amount", "", "/"])
    @pytest.mark.parametrize("action", ["READ", "DELETE", "UNKNOWN"])
    def test_empty_permission_set_denies(self, path: str, action: str) -> None:
        assert has_permission([], path, action) is False

    def test_unknown_action_denied(self) -> None:
        entries = [_entry("/orders", ["READ"])]
        assert has_permission(entries, "/orders", "FROBNICATE") is False
        assert has_permission(entries, "/orders/form", "FROBNICATE") is False

    def test_unrelated_path_denied(self) -> None:
        entries = [_entry("/orders", ["READ"])]
        assert has_permission(entries, "/users", "READ") is False

    def test_empty_path_denied_without_exact_entry(self) -> None:
        entries = [_entry("/orders", ["READ"])]
        assert has_permission(entries, "", "READ") is False

    def test_empty_path_uses_exact_entry_when_present(self) -> None:
        entries = [_entry("", ["READ"])]
        assert has_permission(entries, "", "READ") is True

    def test_root_slash_has_no_segments(self) -> None:
        entries = [_entry("/orders", ["READ"])]
        assert has_permission(entries, "/", "READ") is False

    def test_action_match_is_case_sensitive(self) -> None:
        entries = [_entry("/orders", ["READ"])]
        assert has_permission(entries, "/orders", "read") is False


# ---------------------------------------------------------------------------
# Exact match
# ---------------------------------------------------------------------------

class TestExactMatch:
    def test_exact_entry_grants_action(self) -> None:
        entries = [_entry("/orders", ["READ", "UPDATE"])]
        assert has_permission(entries, "/orders", "UPDATE") is True

    def test_exact_entry_without_action_denies(self) -> None:
        entries = [_entry("/orders", ["READ"])]
        assert has_permission(entries, "/orders", "DELETE") is False

    def test_exact_match_takes_precedence_over_granting_ancestor(self) -> None:
        entries = [_entry("/orders", ["READ"]), _entry("/orders/form", ["UPDATE"])]
        assert has_permission(entries, "/orders/form", "READ") is False
        assert has_permission(entries, "/orders/form", "UPDATE") is True

    def test_exact_empty_action_set_blocks_inheritance(self) -> None:
        entries = [_entry("/orders", ["READ"]), _entry("/orders/form", [])]
        assert has_permission(entries, "/orders/form", "READ") is False


# ---------------------------------------------------------------------------
# Override
# ---------------------------------------------------------------------------

class TestOverride:
    def test_override_ignores_workflow_restrictions(self) -> None:
        entries = [
            _entry(
                "/a",
                ["READ"],
                is_override=True,
                restrictions={"draft": {"restrictedActions": ["READ"]}},
            )
        ]
        assert has_permission(entries, "/a", "READ", "draft") is True

    def test_override_ignores_allowed_actions_gate(self) -> None:
        entries = [
            _entry(
                "/a",
                ["READ", "UPDATE"],
                is_override=True,
                restrictions={"approved": {"allowedActions": ["READ"]}},
            )
        ]
        assert has_permission(entries, "/a", "UPDATE", "approved") is True

    def test_override_without_action_denies_despite_ancestor(self) -> None:
        entries = [_entry("/a", ["READ"]), _entry("/a/b", ["UPDATE"], is_override=True)]
        assert has_permission(entries, "/a/b", "READ") is False

    def test_override_decision_reports_matched_path(self) -> None:
        entries = [_entry("/a", ["READ"], is_override=True)]
        decision = check_permission(entries, "/a", "READ")
        assert decision.matched_path == "/a"
        assert "Override" in decision.reason


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------

class TestHierarchy:
    def test_ancestor_grant_is_inherited(self) -> None:
        entries = [_entry("/orders", ["READ"])]
        assert has_permission(entries, "/orders/form/amount", "READ") is True

    def test_ancestor_without_action_denies(self) -> None:
        entries = [_entry("/orders", ["READ"])]
        assert has_permission(entries, "/orders/form/amount", "UPDATE") is False

    def test_nearest_granting_ancestor_is_selected(self) -> None:
        entries = [_entry("/orders", ["READ"]), _entry("/orders/form", ["READ"])]
        decision = check_permission(entries, "/orders/form/amount", "READ")
        assert decision.allowed is True
        assert decision.matched_path == "/orders/form"

    def test_walk_skips_ancestor_lacking_action(self) -> None:
        entries = [_entry("/orders", ["READ"]), _entry("/orders/form", ["UPDATE"])]
        decision = check_permission(entries, "/orders/form/amount", "READ")
        assert decision.allowed is True
        assert decision.matched_path == "/orders"

    def test_sibling_prefix_is_not_an_ancestor(self) -> None:
        entries = [_entry("/order", ["READ"])]
        assert has_permission(entries, "/orders/form", "READ") is False

    def test_redundant_slashes_are_ignored(self) -> None:
        entries = [_entry("/orders", ["READ"])]
        assert has_permission(entries, "//orders//form/", "READ") is True


# ---------------------------------------------------------------------------
# Override-deny during inheritance
# ---------------------------------------------------------------------------

class TestOverrideDeny:
    def test_ancestor_override_blocks_inheritance(self) -> None:
        entries = [
            _entry("/orders", ["READ"]),
            _entry("/orders/form", [], is_override=True),
        ]
        assert has_permission(entries, "/orders/form/amount", "READ") is False

    def test_descendant_override_blocks_inheritance(self) -> None:
        entries = [
            _entry("/orders", ["READ"]),
            _entry("/orders/form/amount/currency", [], is_override=True),
        ]
        decision = check_permission(entries, "/orders/form/amount", "READ")
        assert decision.allowed is False
        assert decision.matched_path == "/orders/form/amount/currency"

    def test_prefix_check_is_literal_string_match(self) -> None:
        entries = [
            _entry("/orders", ["READ"]),
            _entry("/orders/form/amountX", [], is_override=True),
        ]
        assert has_permission(entries, "/orders/form/amount", "READ") is False

    def test_override_that_grants_action_does_not_block(self) -> None:
        entries = [
            _entry("/orders", ["READ"]),
            _entry("/orders/form", ["READ"], is_override=True),
        ]
        assert has_permission(entries, "/orders/form/amount", "READ") is True

    def test_non_override_entry_lacking_action_does_not_block(self) -> None:
        entries = [_entry("/orders", ["READ"]), _entry("/orders/form", [])]
        assert has_permission(entries, "/orders/form/amount", "READ") is True

    def test_unrelated_override_does_not_block(self) -> None:
        entries = [_entry("/orders", ["READ"]), _entry("/users", [], is_override=True)]
        assert has_permission(entries, "/orders/form/amount", "READ") is True

    def test_override_above_granting_ancestor_does_not_block(self) -> None:
        entries = [
            _entry("/a", [], is_override=True),
            _entry("/a/b", ["READ"]),
        ]
        decision = check_permission(entries, "/a/b/c", "READ")
        assert decision.allowed is True
        assert decision.matched_path == "/a/b"

    def test_override_on_granting_ancestor_itself_does_not_block(self) -> None:
        entries = [
            _entry("/orders", ["READ"]),
            _entry("/orders/form", ["UPDATE"], is_override=True),
            _entry("/orders/form/amount", ["READ"]),
        ]
        assert has_permission(entries, "/orders/form/amount/currency", "READ") is True

    def test_sibling_sharing_string_prefix_does_not_block(self) -> None:
        entries = [
            _entry("/orders", ["READ"]),
            _entry("/orders/form", [], is_override=True),
        ]
        assert has_permission(entries, "/orders/formatted/x", "READ") is True

    def test_override_between_ancestor_and_request_blocks(self) -> None:
        entries = [
            _entry("/a", ["READ"]),
            _entry("/a/b", [], is_override=True),
        ]
        decision = check_permission(entries, "/a/b/c/d", "READ")
        assert decision.allowed is False
        assert decision.matched_path == "/a/b"

    def test_override_deny_only_for_checked_action(self) -> None:
        entries = [
            _entry("/orders", ["READ", "UPDATE"]),
            _entry("/orders/form", ["UPDATE"], is_override=True),
        ]
        assert has_permission(entries, "/orders/form/amount", "READ") is False
        assert has_permission(entries, "/orders/form/amount", "UPDATE") is True


# ---------------------------------------------------------------------------
# Workflow stages
# ---------------------------------------------------------------------------

class TestWorkflowStages:
    def test_restricted_actions_win_over_allowed_actions(
        self, workflow_entry: list[UserPermission]
    ) -> None:
        assert has_permission(workflow_entry, "/orders/form", "SUBMIT", "draft") is False
        assert has_permission(workflow_entry, "/orders/form", "READ", "draft") is True

    def test_allowed_actions_gate(self, workflow_entry: list[UserPermission]) -> None:
        assert has_permission(workflow_entry, "/orders/form", "UPDATE", "approved") is False
        assert has_permission(workflow_entry, "/orders/form", "READ", "approved") is True

    def test_stage_without_restriction_is_unfiltered(
        self, workflow_entry: list[UserPermission]
    ) -> None:
        assert has_permission(workflow_entry, "/orders/form", "UPDATE", "submitted") is True

    def test_no_stage_is_unfiltered(self, workflow_entry: list[UserPermission]) -> None:
        assert has_permission(workflow_entry, "/orders/form", "SUBMIT") is True

    def test_allowed_actions_never_widen_grants(self) -> None:
        entries = [
            _entry("/a", ["READ"], restrictions={"draft": {"allowedActions": ["READ", "DELETE"]}})
        ]
        assert has_permission(entries, "/a", "DELETE", "draft") is False

    def test_default_stage_applies_when_no_explicit_stage(
        self, workflow_entry: list[UserPermission]
    ) -> None:
        assert (
            has_permission(workflow_entry, "/orders/form", "SUBMIT", default_stage="draft")
            is False
        )

    def test_explicit_stage_overrides_default_stage(
        self, workflow_entry: list[UserPermission]
    ) -> None:
        assert (
            has_permission(
                workflow_entry, "/orders/form", "SUBMIT", "submitted", default_stage="draft"
            )
            is True
        )

    def test_inherited_grant_is_filtered_by_ancestor_restrictions(
        self, workflow_entry: list[UserPermission]
    ) -> None:
        assert (
            has_permission(workflow_entry, "/orders/form/amount", "UPDATE", "approved")
            is False
        )
        assert (
            has_permission(workflow_entry, "/orders/form/amount", "READ", "approved")
            is True
        )

    def test_restricted_inheritance_does_not_continue_to_higher_ancestor(self) -> None:
        entries = [
            _entry("/orders", ["UPDATE"]),
            _entry(
                "/orders/form",
                ["UPDATE"],
                restrictions={"approved": {"restrictedActions": ["UPDATE"]}},
            ),
        ]
        decision = check_permission(entries, "/orders/form/amount", "UPDATE", "approved")
        assert decision.allowed is False
        assert decision.matched_path == "/orders/form"

    def test_decision_records_effective_stage(
        self, workflow_entry: list[UserPermission]
    ) -> None:
        decision = check_permission(
            workflow_entry, "/orders/form", "READ", default_stage="draft"
        )
        assert decision.workflow_stage == "draft"


# ---------------------------------------------------------------------------
# AccessDecision
# ---------------------------------------------------------------------------

class TestAccessDecision:
    def test_allowed_decision_is_truthy(self) -> None:
        decision = AccessDecision(allowed=True, reason="ok", resource_path="/a", action="READ")
        assert bool(decision) is True

    def test_denied_decision_is_falsy(self) -> None:
        decision = AccessDecision(allowed=False, reason="no", resource_path="/a", action="READ")
        assert bool(decision) is False

    def test_default_deny_has_no_matched_path(self) -> None:
        decision = check_permission([], "/a", "READ")
        assert decision.matched_path is None
        assert decision.allowed is False

    def test_frozen(self) -> None:
        decision = check_permission([], "/a", "READ")
        with pytest.raises((AttributeError, TypeError)):
            decision.allowed = True  # type: ignore[misc]

    def test_has_permission_matches_check_permission(
        self, workflow_entry: list[UserPermission]
    ) -> None:
        for action in DEFAULT_WORKFLOW_ACTIONS:
            assert has_permission(workflow_entry, "/orders/form/x", action, "draft") is bool(
                check_permission(workflow_entry, "/orders/form/x", action, "draft")
            )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestHelpers:
    def test_get_resource_permissions_exact_only(self) -> None:
        entries = [_entry("/orders", ["READ", "UPDATE"])]
        assert get_resource_permissions(entries, "/orders") == frozenset({"READ", "UPDATE"})
        assert get_resource_permissions(entries, "/orders/form") == frozenset()

    def test_is_resource_visible_checks_read(self) -> None:
        entries = [_entry("/orders", ["READ"]), _entry("/users", ["UPDATE"])]
        assert is_resource_visible(entries, "/orders/form") is True
        assert is_resource_visible(entries, "/users") is False

    def test_is_resource_visible_honours_stage(self) -> None:
        entries = [_entry("/a", ["READ"], restrictions={"locked": {"restrictedActions": ["READ"]}})]
        assert is_resource_visible(entries, "/a", "locked") is False

    def test_is_resource_enabled(self) -> None:
        entries = [_entry("/orders", ["READ", "UPDATE"])]
        assert is_resource_enabled(entries, "/orders/form/amount", "UPDATE") is True
        assert is_resource_enabled(entries, "/orders/form/amount", "DELETE") is False

    def test_filter_resources_by_permission(self) -> None:
        resources = [
            Resource(id=1, path="/orders"),
            Resource(id=2, path="/orders/form"),
            Resource(id=3, path="/users"),
        ]
        entries = [_entry("/orders", ["READ"])]
        visible = filter_resources_by_permission(resources, entries)
        assert [r.id for r in visible] == [1, 2]

    def test_filter_resources_with_custom_path_getter(self) -> None:
        items = [{"resourcePath": "/orders"}, {"resourcePath": "/users"}]
        entries = [_entry("/orders", ["UPDATE"])]
        kept = filter_resources_by_permission(
            items, entries, "UPDATE", path_of=lambda item: item["resourcePath"]
        )
        assert kept == [{"resourcePath": "/orders"}]

    def test_get_workflow_restrictions(self, workflow_entry: list[UserPermission]) -> None:
        restriction = get_workflow_restrictions(workflow_entry, "/orders/form", "approved")
        assert restriction is not None
        assert restriction.allowed_actions == ("READ",)
        assert get_workflow_restrictions(workflow_entry, "/orders/form", "archived") is None
        assert get_workflow_restrictions(workflow_entry, "/missing", "draft") is None

    def test_is_action_restricted_in_workflow(
        self, workflow_entry: list[UserPermission]
    ) -> None:
        assert is_action_restricted_in_workflow(workflow_entry, "/orders/form", "SUBMIT", "draft")
        assert is_action_restricted_in_workflow(workflow_entry, "/orders/form", "UPDATE", "approved")
        assert not is_action_restricted_in_workflow(workflow_entry, "/orders/form", "READ", "draft")
        assert not is_action_restricted_in_workflow(workflow_entry, "/orders/form", "SUBMIT")

    def test_get_workflow_actions(self, workflow_entry: list[UserPermission]) -> None:
        assert get_workflow_actions(workflow_entry, "/orders/form", "draft") == ["READ"]
        assert get_workflow_actions(workflow_entry, "/orders/form") == [
            "READ",
            "UPDATE",
            "SUBMIT",
        ]

    def test_get_workflow_actions_custom_candidates(self) -> None:
        entries = [_entry("/jobs", ["EXECUTE"])]
        assert get_workflow_actions(entries, "/jobs/nightly", candidates=["EXECUTE", "READ"]) == [
            "EXECUTE"
        ]
