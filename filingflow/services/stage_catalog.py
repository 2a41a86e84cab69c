"""
FilingFlow — Stage Catalog.

Static, ordered stage definitions for the two workflow families:

    QUARTERLY  VAT-quarter filings
    ANNUAL     year-end accounts filings

Each family is a ``WorkflowDefinition`` holding an ordered tuple of
``StageDefinition`` rows. A stage maps to at most one ``Milestone``.
Order defines "forward" vs "backward" for undo detection; the last stage
of each family is terminal and marks the period completed.

Everything here is pure data + lookups; the only failure mode is
``InvalidStage`` for literals that are unknown or belong to the other
family.

Usage:
    from filingflow.services.stage_catalog import Family, Stage, milestone_for

    milestone_for(Family.QUARTERLY, Stage.PAPERWORK_CHASED)  # Milestone.CHASE_STARTED
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from filingflow.core.exceptions import InvalidStage


class Family(str, Enum):
    QUARTERLY = "QUARTERLY"
    ANNUAL = "ANNUAL"


class Stage(str, Enum):
    WAITING_FOR_YEAR_END = "WAITING_FOR_YEAR_END"
    PAPERWORK_PENDING_CHASE = "PAPERWORK_PENDING_CHASE"
    PAPERWORK_CHASED = "PAPERWORK_CHASED"
    PAPERWORK_RECEIVED = "PAPERWORK_RECEIVED"
    WORK_IN_PROGRESS = "WORK_IN_PROGRESS"
    QUERIES_PENDING = "QUERIES_PENDING"
    REVIEW_PENDING_MANAGER = "REVIEW_PENDING_MANAGER"
    REVIEWED_BY_MANAGER = "REVIEWED_BY_MANAGER"
    REVIEW_PENDING_PARTNER = "REVIEW_PENDING_PARTNER"
    REVIEWED_BY_PARTNER = "REVIEWED_BY_PARTNER"
    EMAILED_TO_PARTNER = "EMAILED_TO_PARTNER"
    EMAILED_TO_CLIENT = "EMAILED_TO_CLIENT"
    CLIENT_APPROVED = "CLIENT_APPROVED"
    DISCUSS_WITH_MANAGER = "DISCUSS_WITH_MANAGER"
    REVIEW_BY_PARTNER = "REVIEW_BY_PARTNER"
    REVIEW_DONE = "REVIEW_DONE"
    SENT_TO_CLIENT = "SENT_TO_CLIENT"
    APPROVED_BY_CLIENT = "APPROVED_BY_CLIENT"
    SUBMISSION_APPROVED_PARTNER = "SUBMISSION_APPROVED_PARTNER"
    FILED = "FILED"


class Milestone(str, Enum):
    CHASE_STARTED = "chase_started"
    PAPERWORK_RECEIVED = "paperwork_received"
    WORK_STARTED = "work_started"
    MANAGER_DISCUSSION = "manager_discussion"
    MANAGER_REVIEWED = "manager_reviewed"
    PARTNER_REVIEWED = "partner_reviewed"
    REVIEW_COMPLETED = "review_completed"
    SENT_TO_CLIENT = "sent_to_client"
    CLIENT_APPROVED = "client_approved"
    PARTNER_APPROVED = "partner_approved"
    FILED = "filed"


@dataclass(frozen=True)
class StageDefinition:
    stage: Stage
    milestone: Milestone | None
    display_name: str
    chase_related: bool = False


@dataclass(frozen=True)
class WorkflowDefinition:
    """One family's ordered stage list. The last entry is terminal."""

    family: Family
    stages: tuple[StageDefinition, ...]

    @property
    def terminal(self) -> Stage:
        return self.stages[-1].stage

    def index_of(self, stage: Stage) -> int:
        for idx, definition in enumerate(self.stages):
            if definition.stage is stage:
                return idx
        raise InvalidStage(stage, self.family)

    def definition(self, stage: Stage) -> StageDefinition:
        return self.stages[self.index_of(stage)]


# ═══════════════════════════════════════════════════════════════════════════
#  Stage orderings
# ═══════════════════════════════════════════════════════════════════════════

_S = StageDefinition

QUARTERLY_WORKFLOW = WorkflowDefinition(
    family=Family.QUARTERLY,
    stages=(
        _S(Stage.PAPERWORK_PENDING_CHASE, None, "Paperwork Pending Chase", chase_related=True),
        _S(Stage.PAPERWORK_CHASED, Milestone.CHASE_STARTED, "Paperwork Chased", chase_related=True),
        _S(Stage.PAPERWORK_RECEIVED, Milestone.PAPERWORK_RECEIVED, "Paperwork Received"),
        _S(Stage.WORK_IN_PROGRESS, Milestone.WORK_STARTED, "Work in Progress"),
        _S(Stage.QUERIES_PENDING, None, "Queries Pending"),
        _S(Stage.REVIEW_PENDING_MANAGER, None, "Pending Manager Review"),
        _S(Stage.REVIEWED_BY_MANAGER, Milestone.MANAGER_REVIEWED, "Reviewed by Manager"),
        _S(Stage.REVIEW_PENDING_PARTNER, None, "Pending Partner Review"),
        _S(Stage.REVIEWED_BY_PARTNER, Milestone.PARTNER_REVIEWED, "Reviewed by Partner"),
        _S(Stage.EMAILED_TO_PARTNER, None, "Emailed to Partner"),
        _S(Stage.EMAILED_TO_CLIENT, Milestone.SENT_TO_CLIENT, "Emailed to Client"),
        _S(Stage.CLIENT_APPROVED, Milestone.CLIENT_APPROVED, "Client Approved"),
        _S(Stage.FILED, Milestone.FILED, "Filed to HMRC"),
    ),
)

ANNUAL_WORKFLOW = WorkflowDefinition(
    family=Family.ANNUAL,
    stages=(
        _S(Stage.WAITING_FOR_YEAR_END, None, "Waiting for Year End"),
        _S(Stage.PAPERWORK_PENDING_CHASE, None, "Awaiting Records", chase_related=True),
        _S(Stage.PAPERWORK_CHASED, Milestone.CHASE_STARTED, "Records Chased", chase_related=True),
        _S(Stage.PAPERWORK_RECEIVED, Milestone.PAPERWORK_RECEIVED, "Records Received"),
        _S(Stage.WORK_IN_PROGRESS, Milestone.WORK_STARTED, "Work in Progress"),
        _S(Stage.DISCUSS_WITH_MANAGER, Milestone.MANAGER_DISCUSSION, "Manager Discussion"),
        _S(Stage.REVIEW_BY_PARTNER, Milestone.PARTNER_REVIEWED, "Partner Review"),
        _S(Stage.REVIEW_DONE, Milestone.REVIEW_COMPLETED, "Review Complete"),
        _S(Stage.SENT_TO_CLIENT, Milestone.SENT_TO_CLIENT, "Sent to Client"),
        _S(Stage.APPROVED_BY_CLIENT, Milestone.CLIENT_APPROVED, "Client Approved"),
        _S(Stage.SUBMISSION_APPROVED_PARTNER, Milestone.PARTNER_APPROVED, "Partner Approved"),
        _S(Stage.FILED, Milestone.FILED, "Filed to Companies House"),
    ),
)

WORKFLOWS = {
    Family.QUARTERLY: QUARTERLY_WORKFLOW,
    Family.ANNUAL: ANNUAL_WORKFLOW,
}

# Backward targets always offered for rework, when they lie before the current stage.
REWORK_STAGES = (
    Stage.PAPERWORK_PENDING_CHASE,
    Stage.PAPERWORK_CHASED,
    Stage.PAPERWORK_RECEIVED,
    Stage.WORK_IN_PROGRESS,
)


# ── Core lookups ─────────────────────────────────────────────────────────────


def workflow_for(family) -> WorkflowDefinition:
    try:
        return WORKFLOWS[Family(family)]
    except ValueError:
        raise InvalidStage(family) from None


def milestone_for(family, stage) -> Milestone | None:
    """Milestone recorded when a period enters *stage*, or None."""
    return workflow_for(family).definition(parse_stage(family, stage)).milestone


def order_index(family, stage) -> int:
    return workflow_for(family).index_of(parse_stage(family, stage))


def is_terminal(family, stage) -> bool:
    return parse_stage(family, stage) is workflow_for(family).terminal


def terminal_stage(family) -> Stage:
    return workflow_for(family).terminal


def stages_for(family) -> list[Stage]:
    return [d.stage for d in workflow_for(family).stages]


def milestones_for(family) -> list[Milestone]:
    return [d.milestone for d in workflow_for(family).stages if d.milestone is not None]


def is_chase_related(stage) -> bool:
    """Chase tagging is identical in both families."""
    if stage is None:
        return False
    try:
        stage = Stage(stage)
    except ValueError:
        return False
    return any(
        d.chase_related for wf in WORKFLOWS.values() for d in wf.stages if d.stage is stage
    )


def parse_stage(family, value) -> Stage:
    """
    Coerce *value* (Stage member or its name) into a Stage of *family*.

    Raises InvalidStage for unknown literals and for stages that exist
    only in the other family.
    """
    wf = workflow_for(family)
    try:
        stage = Stage(value)
    except ValueError:
        raise InvalidStage(value, wf.family) from None
    wf.index_of(stage)
    return stage


def stage_display_name(stage, family=None) -> str:
    stage = Stage(stage)
    families = [workflow_for(family)] if family is not None else WORKFLOWS.values()
    for wf in families:
        for d in wf.stages:
            if d.stage is stage:
                return d.display_name
    return stage.value.replace("_", " ").title()


# ── Navigation helpers ───────────────────────────────────────────────────────


def next_stage(family, stage) -> Stage | None:
    wf = workflow_for(family)
    idx = wf.index_of(parse_stage(family, stage))
    if idx + 1 < len(wf.stages):
        return wf.stages[idx + 1].stage
    return None


def allowed_next_stages(family, stage) -> list[Stage]:
    """The natural next stage plus any rework target behind the current one."""
    wf = workflow_for(family)
    current = parse_stage(family, stage)
    current_idx = wf.index_of(current)

    allowed = []
    nxt = next_stage(family, current)
    if nxt is not None:
        allowed.append(nxt)
    for target in REWORK_STAGES:
        try:
            target_idx = wf.index_of(target)
        except InvalidStage:
            continue
        if target_idx < current_idx and target not in allowed:
            allowed.append(target)
    return allowed


@dataclass(frozen=True)
class StageCheck:
    is_skipping: bool
    skipped_stages: tuple[Stage, ...]
    is_backward: bool


def check_stage_transition(family, from_stage, to_stage) -> StageCheck:
    """
    Advisory skip detection.

    Moving more than one step forward reports the stages jumped over.
    The engine itself never rejects a skip; callers decide.
    """
    wf = workflow_for(family)
    to_idx = wf.index_of(parse_stage(family, to_stage))
    if from_stage is None:
        return StageCheck(is_skipping=False, skipped_stages=(), is_backward=False)
    from_idx = wf.index_of(parse_stage(family, from_stage))

    if to_idx < from_idx:
        return StageCheck(is_skipping=False, skipped_stages=(), is_backward=True)
    skipped = tuple(d.stage for d in wf.stages[from_idx + 1:to_idx])
    return StageCheck(is_skipping=bool(skipped), skipped_stages=skipped, is_backward=False)


def workflow_progress(family, stage) -> tuple[int, int, int]:
    """Return (position, total, percent) where position is 1-based."""
    wf = workflow_for(family)
    position = wf.index_of(parse_stage(family, stage)) + 1
    total = len(wf.stages)
    return position, total, round(position * 100 / total)
