"""
FilingFlow — Auto-Assignment Resolver.

Picks a default assignee for a stage when the caller did not name one.
Each stage carries an ``AssignmentPolicy``; each policy maps to a team
role. "First" means the lowest user id among active users of that role,
so the choice is deterministic.

The policy → role table can be overridden through the
``WORKFLOW_ASSIGNMENT_ROLES`` config key, e.g. ``{"CHASE": "MANAGER"}``.
Missing roster members never raise; the current assignee is kept.
"""

from __future__ import annotations

import logging
from enum import Enum

from filingflow.services.stage_catalog import Stage

logger = logging.getLogger(__name__)


class AssignmentPolicy(str, Enum):
    CHASE = "CHASE"
    PREPARATION = "PREPARATION"
    MANAGER_REVIEW = "MANAGER_REVIEW"
    PARTNER_REVIEW = "PARTNER_REVIEW"
    CLIENT_FACING = "CLIENT_FACING"
    KEEP = "KEEP"


STAGE_POLICIES = {
    Stage.PAPERWORK_PENDING_CHASE: AssignmentPolicy.CHASE,
    Stage.PAPERWORK_CHASED: AssignmentPolicy.CHASE,

    Stage.PAPERWORK_RECEIVED: AssignmentPolicy.PREPARATION,
    Stage.WORK_IN_PROGRESS: AssignmentPolicy.PREPARATION,
    Stage.QUERIES_PENDING: AssignmentPolicy.PREPARATION,

    Stage.REVIEW_PENDING_MANAGER: AssignmentPolicy.MANAGER_REVIEW,
    Stage.DISCUSS_WITH_MANAGER: AssignmentPolicy.MANAGER_REVIEW,

    Stage.REVIEW_PENDING_PARTNER: AssignmentPolicy.PARTNER_REVIEW,
    Stage.EMAILED_TO_PARTNER: AssignmentPolicy.PARTNER_REVIEW,
    Stage.REVIEW_BY_PARTNER: AssignmentPolicy.PARTNER_REVIEW,
    Stage.SUBMISSION_APPROVED_PARTNER: AssignmentPolicy.PARTNER_REVIEW,

    Stage.EMAILED_TO_CLIENT: AssignmentPolicy.CLIENT_FACING,
    Stage.CLIENT_APPROVED: AssignmentPolicy.CLIENT_FACING,
    Stage.SENT_TO_CLIENT: AssignmentPolicy.CLIENT_FACING,
    Stage.APPROVED_BY_CLIENT: AssignmentPolicy.CLIENT_FACING,
    Stage.FILED: AssignmentPolicy.CLIENT_FACING,
}

DEFAULT_POLICY_ROLES = {
    AssignmentPolicy.CHASE: "PARTNER",
    AssignmentPolicy.PREPARATION: "STAFF",
    AssignmentPolicy.MANAGER_REVIEW: "MANAGER",
    AssignmentPolicy.PARTNER_REVIEW: "PARTNER",
    AssignmentPolicy.CLIENT_FACING: "STAFF",   # fallback only
}


def policy_for(stage) -> AssignmentPolicy:
    try:
        return STAGE_POLICIES.get(Stage(stage), AssignmentPolicy.KEEP)
    except ValueError:
        return AssignmentPolicy.KEEP


def policy_roles(overrides: dict | None = None) -> dict:
    """Default policy → role table with config overrides applied."""
    roles = dict(DEFAULT_POLICY_ROLES)
    for key, role in (overrides or {}).items():
        try:
            roles[AssignmentPolicy(key)] = role
        except ValueError:
            logger.warning("Ignoring unknown assignment policy in config: %s", key)
    return roles


def _first(roster_by_role: dict, role: str) -> int | None:
    ids = roster_by_role.get(role) or []
    return min(ids) if ids else None


def resolve_assignee(stage, current_assignee_id, roster_by_role: dict,
                     role_overrides: dict | None = None):
    """
    Default assignee for *stage*.

    Args:
        stage: Target stage.
        current_assignee_id: Assignee before the transition (may be None).
        roster_by_role: ``{"PARTNER": [ids...], ...}`` of active users.
        role_overrides: Optional ``WORKFLOW_ASSIGNMENT_ROLES`` mapping.

    Returns:
        A user id or None. Never raises.
    """
    policy = policy_for(stage)
    if policy is AssignmentPolicy.KEEP:
        return current_assignee_id

    role = policy_roles(role_overrides).get(policy)

    if policy is AssignmentPolicy.CLIENT_FACING:
        if current_assignee_id is not None:
            return current_assignee_id
        return _first(roster_by_role, role)

    # Chase, preparation and review policies pick the role holder even when
    # someone is already assigned.
    picked = _first(roster_by_role, role)
    return picked if picked is not None else current_assignee_id
