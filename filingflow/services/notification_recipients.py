"""
FilingFlow — Notification Recipient Resolver.

Turns a NotificationEnvelope into the deduplicated list of people to tell.
Resolution order, each step only adding users not already present:

    1. active managers and partners            reason "oversight"
    2. the client's assigned user              reason "assigned user"
       (skipped when they are the acting user)
    3. the client's chase team, when the       reason "chase team"
       from- or to-stage is chase-related
    4. the period assignee after the move,     reason "workflow assignee"
       when not the client's assigned user

Read-only: the resolver queries the repository and returns a list. It
never sends anything.
"""

from __future__ import annotations

from dataclasses import dataclass

from filingflow.models.team import OVERSIGHT_ROLES
from filingflow.services.stage_catalog import is_chase_related
from filingflow.services.workflow_repository import WorkflowRepository

REASON_OVERSIGHT = "oversight"
REASON_ASSIGNED_USER = "assigned user"
REASON_CHASE_TEAM = "chase team"
REASON_WORKFLOW_ASSIGNEE = "workflow assignee"


@dataclass(frozen=True)
class Recipient:
    user_id: int
    name: str
    email: str
    role: str
    reason: str


def _recipient(user, reason) -> Recipient:
    return Recipient(
        user_id=user.id,
        name=user.full_name,
        email=user.email,
        role=user.role,
        reason=reason,
    )


def resolve_recipients(envelope, repository: WorkflowRepository | None = None) -> list[Recipient]:
    repo = repository or WorkflowRepository()
    recipients: dict[int, Recipient] = {}

    def add(user, reason):
        if user is not None and user.id not in recipients:
            recipients[user.id] = _recipient(user, reason)

    # 1. Oversight
    by_role = repo.load_active_users_by_role(OVERSIGHT_ROLES)
    oversight = sorted((u for users in by_role.values() for u in users), key=lambda u: u.id)
    for user in oversight:
        add(user, REASON_OVERSIGHT)

    client = repo.load_client(envelope.client_id)
    client_assignee_id = client.assigned_user_id if client else None

    # 2. Client's general assignee
    if client_assignee_id is not None and client_assignee_id != envelope.acting_user.id:
        add(repo.load_user(client_assignee_id), REASON_ASSIGNED_USER)

    # 3. Chase team
    if client and (is_chase_related(envelope.from_stage) or is_chase_related(envelope.to_stage)):
        for user in repo.load_users(client.chase_team_user_ids or []):
            add(user, REASON_CHASE_TEAM)

    # 4. Period assignee recorded on the envelope
    period_assignee_id = envelope.period_assignee_id
    if period_assignee_id is not None and period_assignee_id != client_assignee_id:
        add(repo.load_user(period_assignee_id), REASON_WORKFLOW_ASSIGNEE)

    return list(recipients.values())
