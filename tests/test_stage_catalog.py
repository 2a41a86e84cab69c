"""
Stage catalog lookups for both workflow families.

Covers ordering, milestone mapping, terminal detection, chase tagging,
stage parsing, navigation hints and skip detection.
"""

import pytest

from filingflow.core.exceptions import InvalidStage
from filingflow.services.stage_catalog import (
    ANNUAL_WORKFLOW,
    QUARTERLY_WORKFLOW,
    Family,
    Milestone,
    Stage,
    allowed_next_stages,
    check_stage_transition,
    is_chase_related,
    is_terminal,
    milestone_for,
    milestones_for,
    next_stage,
    order_index,
    parse_stage,
    stage_display_name,
    stages_for,
    terminal_stage,
    workflow_progress,
)


class TestOrdering:
    def test_quarterly_order(self):
        assert stages_for(Family.QUARTERLY) == [
            Stage.PAPERWORK_PENDING_CHASE, Stage.PAPERWORK_CHASED, Stage.PAPERWORK_RECEIVED,
            Stage.WORK_IN_PROGRESS, Stage.QUERIES_PENDING, Stage.REVIEW_PENDING_MANAGER,
            Stage.REVIEWED_BY_MANAGER, Stage.REVIEW_PENDING_PARTNER, Stage.REVIEWED_BY_PARTNER,
            Stage.EMAILED_TO_PARTNER, Stage.EMAILED_TO_CLIENT, Stage.CLIENT_APPROVED, Stage.FILED,
        ]

    def test_annual_order(self):
        assert stages_for("ANNUAL") == [
            Stage.WAITING_FOR_YEAR_END, Stage.PAPERWORK_PENDING_CHASE, Stage.PAPERWORK_CHASED,
            Stage.PAPERWORK_RECEIVED, Stage.WORK_IN_PROGRESS, Stage.DISCUSS_WITH_MANAGER,
            Stage.REVIEW_BY_PARTNER, Stage.REVIEW_DONE, Stage.SENT_TO_CLIENT,
            Stage.APPROVED_BY_CLIENT, Stage.SUBMISSION_APPROVED_PARTNER, Stage.FILED,
        ]

    def test_order_index_differs_by_family(self):
        assert order_index(Family.QUARTERLY, Stage.PAPERWORK_CHASED) == 1
        assert order_index(Family.ANNUAL, Stage.PAPERWORK_CHASED) == 2

    def test_accepts_string_names(self):
        assert order_index("QUARTERLY", "FILED") == 12


class TestMilestones:
    @pytest.mark.parametrize("stage, expected", [
        (Stage.PAPERWORK_PENDING_CHASE, None),
        (Stage.PAPERWORK_CHASED, Milestone.CHASE_STARTED),
        (Stage.QUERIES_PENDING, None),
        (Stage.REVIEWED_BY_MANAGER, Milestone.MANAGER_REVIEWED),
        (Stage.EMAILED_TO_CLIENT, Milestone.SENT_TO_CLIENT),
        (Stage.FILED, Milestone.FILED),
    ])
    def test_quarterly_mapping(self, stage, expected):
        assert milestone_for(Family.QUARTERLY, stage) == expected

    @pytest.mark.parametrize("stage, expected", [
        (Stage.WAITING_FOR_YEAR_END, None),
        (Stage.DISCUSS_WITH_MANAGER, Milestone.MANAGER_DISCUSSION),
        (Stage.REVIEW_DONE, Milestone.REVIEW_COMPLETED),
        (Stage.SUBMISSION_APPROVED_PARTNER, Milestone.PARTNER_APPROVED),
    ])
    def test_annual_mapping(self, stage, expected):
        assert milestone_for(Family.ANNUAL, stage) == expected

    def test_each_milestone_maps_to_one_stage_per_family(self):
        for wf in (QUARTERLY_WORKFLOW, ANNUAL_WORKFLOW):
            names = milestones_for(wf.family)
            assert len(names) == len(set(names))


class TestTerminal:
    def test_filed_is_terminal_in_both(self):
        assert terminal_stage(Family.QUARTERLY) is Stage.FILED
        assert terminal_stage(Family.ANNUAL) is Stage.FILED
        assert is_terminal("ANNUAL", "FILED")

    def test_client_approved_not_terminal(self):
        assert not is_terminal(Family.QUARTERLY, Stage.CLIENT_APPROVED)


class TestParsing:
    def test_unknown_literal(self):
        with pytest.raises(InvalidStage) as exc:
            parse_stage(Family.QUARTERLY, "NOT_A_STAGE")
        assert exc.value.details["stage"] == "NOT_A_STAGE"

    def test_stage_from_other_family(self):
        with pytest.raises(InvalidStage):
            parse_stage(Family.QUARTERLY, Stage.WAITING_FOR_YEAR_END)
        with pytest.raises(InvalidStage):
            milestone_for(Family.ANNUAL, Stage.REVIEWED_BY_MANAGER)

    def test_unknown_family(self):
        with pytest.raises(InvalidStage):
            stages_for("MONTHLY")


class TestChaseTagging:
    @pytest.mark.parametrize("stage", ["PAPERWORK_PENDING_CHASE", Stage.PAPERWORK_CHASED])
    def test_chase_stages(self, stage):
        assert is_chase_related(stage)

    @pytest.mark.parametrize("stage", [None, "WORK_IN_PROGRESS", "FILED", "BOGUS"])
    def test_other_stages(self, stage):
        assert not is_chase_related(stage)


class TestNavigation:
    def test_display_names_are_family_specific(self):
        assert stage_display_name("PAPERWORK_CHASED", Family.QUARTERLY) == "Paperwork Chased"
        assert stage_display_name("PAPERWORK_CHASED", Family.ANNUAL) == "Records Chased"

    def test_next_stage(self):
        assert next_stage(Family.QUARTERLY, Stage.CLIENT_APPROVED) is Stage.FILED
        assert next_stage(Family.QUARTERLY, Stage.FILED) is None

    def test_allowed_next_includes_rework_targets_behind(self):
        allowed = allowed_next_stages(Family.QUARTERLY, Stage.REVIEWED_BY_MANAGER)
        assert allowed == [
            Stage.REVIEW_PENDING_PARTNER,
            Stage.PAPERWORK_PENDING_CHASE,
            Stage.PAPERWORK_CHASED,
            Stage.PAPERWORK_RECEIVED,
            Stage.WORK_IN_PROGRESS,
        ]

    def test_allowed_next_at_start(self):
        assert allowed_next_stages(Family.ANNUAL, Stage.WAITING_FOR_YEAR_END) == [
            Stage.PAPERWORK_PENDING_CHASE,
        ]

    def test_allowed_next_from_filed_offers_only_rework(self):
        assert Stage.FILED not in allowed_next_stages(Family.ANNUAL, Stage.FILED)
        assert Stage.WORK_IN_PROGRESS in allowed_next_stages(Family.ANNUAL, Stage.FILED)

    def test_progress(self):
        assert workflow_progress(Family.QUARTERLY, Stage.PAPERWORK_PENDING_CHASE) == (1, 13, 8)
        assert workflow_progress(Family.ANNUAL, Stage.FILED) == (12, 12, 100)


class TestSkipDetection:
    def test_single_step_forward(self):
        check = check_stage_transition(Family.QUARTERLY, "PAPERWORK_CHASED", "PAPERWORK_RECEIVED")
        assert not check.is_skipping
        assert not check.is_backward

    def test_skip_lists_jumped_stages(self):
        check = check_stage_transition(Family.QUARTERLY, "WORK_IN_PROGRESS", "REVIEWED_BY_MANAGER")
        assert check.is_skipping
        assert check.skipped_stages == (Stage.QUERIES_PENDING, Stage.REVIEW_PENDING_MANAGER)

    def test_backward_is_not_a_skip(self):
        check = check_stage_transition(Family.ANNUAL, "FILED", "WORK_IN_PROGRESS")
        assert check.is_backward
        assert not check.is_skipping

    def test_same_stage(self):
        check = check_stage_transition(Family.ANNUAL, "REVIEW_DONE", "REVIEW_DONE")
        assert not check.is_skipping and not check.is_backward
