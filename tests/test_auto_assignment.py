"""Auto-assignment policy table and its fallbacks."""

import pytest

from filingflow.services.auto_assignment import (
    AssignmentPolicy,
    policy_for,
    policy_roles,
    resolve_assignee,
)
from filingflow.services.stage_catalog import Stage

ROSTER = {"PARTNER": [12, 3], "MANAGER": [20], "STAFF": [31, 30]}


class TestPolicyTable:
    @pytest.mark.parametrize("stage, policy", [
        (Stage.PAPERWORK_CHASED, AssignmentPolicy.CHASE),
        (Stage.QUERIES_PENDING, AssignmentPolicy.PREPARATION),
        (Stage.DISCUSS_WITH_MANAGER, AssignmentPolicy.MANAGER_REVIEW),
        (Stage.SUBMISSION_APPROVED_PARTNER, AssignmentPolicy.PARTNER_REVIEW),
        (Stage.FILED, AssignmentPolicy.CLIENT_FACING),
        (Stage.REVIEWED_BY_MANAGER, AssignmentPolicy.KEEP),
        (Stage.WAITING_FOR_YEAR_END, AssignmentPolicy.KEEP),
    ])
    def test_policy_for(self, stage, policy):
        assert policy_for(stage) is policy

    def test_unknown_stage_keeps(self):
        assert policy_for("SOMETHING_ELSE") is AssignmentPolicy.KEEP


class TestResolveAssignee:
    def test_chase_picks_lowest_partner_id(self):
        assert resolve_assignee(Stage.PAPERWORK_CHASED, None, ROSTER) == 3

    def test_chase_replaces_current_assignee(self):
        assert resolve_assignee(Stage.PAPERWORK_PENDING_CHASE, 31, ROSTER) == 3

    def test_preparation_picks_staff(self):
        assert resolve_assignee(Stage.WORK_IN_PROGRESS, 3, ROSTER) == 30

    def test_manager_review(self):
        assert resolve_assignee(Stage.REVIEW_PENDING_MANAGER, 30, ROSTER) == 20

    def test_partner_review(self):
        assert resolve_assignee(Stage.REVIEW_BY_PARTNER, 20, ROSTER) == 3

    def test_empty_role_keeps_current(self):
        assert resolve_assignee(Stage.REVIEW_PENDING_MANAGER, 30, {"MANAGER": []}) == 30
        assert resolve_assignee(Stage.REVIEW_PENDING_MANAGER, None, {}) is None

    def test_client_facing_keeps_current(self):
        assert resolve_assignee(Stage.EMAILED_TO_CLIENT, 12, ROSTER) == 12

    def test_client_facing_falls_back_to_staff(self):
        assert resolve_assignee(Stage.FILED, None, ROSTER) == 30

    def test_client_facing_with_no_staff(self):
        assert resolve_assignee(Stage.SENT_TO_CLIENT, None, {"PARTNER": [3]}) is None

    def test_keep_policy(self):
        assert resolve_assignee(Stage.REVIEWED_BY_PARTNER, 31, ROSTER) == 31


class TestOverrides:
    def test_override_changes_role(self):
        assert resolve_assignee(Stage.PAPERWORK_CHASED, None, ROSTER, {"CHASE": "MANAGER"}) == 20

    def test_unknown_policy_ignored(self):
        roles = policy_roles({"NOT_A_POLICY": "MANAGER"})
        assert roles[AssignmentPolicy.CHASE] == "PARTNER"
