"""
FilingFlow — Workflow Transition Engine.

Orchestrates a single transition request against one WorkflowPeriod:

    validate → compute milestone delta → resolve assignee
      → enforce single-active-assignment → append history → commit

All validation failures (NoOpRequest, PeriodNotFound, InvalidStage,
AlreadyCompleted, AssigneeNotFound) are raised before anything is written.
The whole transition is committed once; any exception rolls the session
back and propagates unchanged. Storage errors are never retried here.

The acting user and the clock are passed in explicitly so milestone
timestamps and attribution are deterministic under test.

Notification delivery is not performed here. The result carries a
``NotificationEnvelope`` which the caller hands to the dispatcher after
the commit.

Usage:
    from filingflow.services.workflow_engine import WorkflowTransitionEngine, ActingUser

    engine = WorkflowTransitionEngine()
    result = engine.transition(
        period.id,
        acting_user=ActingUser(id=1, name="Pat Partner", email="pat@example.com", role="PARTNER"),
        now=datetime.now(timezone.utc),
        requested_stage="PAPERWORK_CHASED",
    )
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from filingflow.core.exceptions import AlreadyCompleted, AssigneeNotFound, NoOpRequest, PeriodNotFound
from filingflow.models.audit import write_audit
from filingflow.models.team import USER_ROLES
from filingflow.models.workflow import WorkflowHistoryEntry, WorkflowMilestone, WorkflowPeriod
from filingflow.services import milestones as milestone_resolver
from filingflow.services.auto_assignment import resolve_assignee
from filingflow.services.stage_catalog import Family, Milestone, Stage, is_terminal, parse_stage
from filingflow.services.workflow_repository import WorkflowRepository

logger = logging.getLogger(__name__)


class _NotProvided:
    """Sentinel: no assignee requested (distinct from an explicit None)."""

    def __repr__(self):
        return "NOT_PROVIDED"

    def __bool__(self):
        return False


NOT_PROVIDED = _NotProvided()


# ═══════════════════════════════════════════════════════════════════════════
#  Value types
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ActingUser:
    id: int
    name: str
    email: str | None = None
    role: str | None = None

    @classmethod
    def from_user(cls, user) -> "ActingUser":
        return cls(id=user.id, name=user.full_name, email=user.email, role=user.role)


@dataclass(frozen=True)
class AssignmentDelta:
    old_user_id: int | None
    old_user_name: str | None
    new_user_id: int | None
    new_user_name: str | None


@dataclass(frozen=True)
class NotificationEnvelope:
    """Before/after summary of one committed transition."""

    client_id: int
    client_name: str
    client_code: str
    family: Family
    period_id: int
    period_label: str
    from_stage: Stage | None
    to_stage: Stage
    acting_user: ActingUser
    assignment: AssignmentDelta | None = None
    period_assignee_id: int | None = None
    note: str | None = None
    reopened: bool = False

    @property
    def stage_changed(self) -> bool:
        return self.from_stage is not self.to_stage


@dataclass
class TransitionResult:
    period: WorkflowPeriod
    history_entry: WorkflowHistoryEntry | None
    milestones_touched: list[Milestone] = field(default_factory=list)
    previous_stage: Stage | None = None
    previous_assignee_id: int | None = None
    stage_changed: bool = False
    assignee_changed: bool = False
    reopened: bool = False
    envelope: NotificationEnvelope | None = None


# ═══════════════════════════════════════════════════════════════════════════
#  Engine
# ═══════════════════════════════════════════════════════════════════════════


class WorkflowTransitionEngine:
    """
    Single-transition unit of work.

    Args:
        repository: Storage collaborator; defaults to one bound to ``db.session``.
        timezone_name: Zone whose calendar days count for elapsed-day figures.
        assignment_roles: Optional policy → role overrides for auto-assignment.
    """

    def __init__(self, repository: WorkflowRepository | None = None, *,
                 timezone_name: str = "Europe/London", assignment_roles: dict | None = None):
        self.repository = repository or WorkflowRepository()
        self.tz = ZoneInfo(timezone_name)
        self.assignment_roles = assignment_roles or {}

    @classmethod
    def from_config(cls, config) -> "WorkflowTransitionEngine":
        return cls(
            timezone_name=config.get("WORKFLOW_TIMEZONE", "Europe/London"),
            assignment_roles=config.get("WORKFLOW_ASSIGNMENT_ROLES") or {},
        )

    def transition(self, period_id: int, *, acting_user: ActingUser, now: datetime,
                   requested_stage=None, requested_assignee_id=NOT_PROVIDED,
                   comment: str | None = None) -> TransitionResult:
        session = self.repository.session
        try:
            result = self._apply(
                period_id,
                acting_user=acting_user,
                now=now,
                requested_stage=requested_stage,
                requested_assignee_id=requested_assignee_id,
                comment=comment,
            )
            session.commit()
        except Exception:
            session.rollback()
            raise

        period = result.period
        logger.info(
            "Workflow transition committed: period=%s stage_changed=%s assignee_changed=%s",
            period.id, result.stage_changed, result.assignee_changed,
            extra={
                "client_id": period.client_id,
                "period_id": period.id,
                "family": period.family,
                "from_stage": result.previous_stage.value if result.previous_stage else None,
                "to_stage": period.current_stage,
                "user_id": acting_user.id,
                "event_type": "workflow.transition",
            },
        )
        return result

    # ── Internals ────────────────────────────────────────────────────────

    def _apply(self, period_id, *, acting_user, now, requested_stage,
               requested_assignee_id, comment) -> TransitionResult:
        assignee_requested = requested_assignee_id is not NOT_PROVIDED
        if requested_stage is None and not assignee_requested:
            raise NoOpRequest()

        repo = self.repository
        period = repo.load_period(period_id, for_update=True)
        if period is None:
            raise PeriodNotFound(period_id)

        family = Family(period.family)
        current = parse_stage(family, period.current_stage)
        target = parse_stage(family, requested_stage) if requested_stage is not None else current

        was_completed = bool(period.is_completed) or is_terminal(family, current)
        if was_completed and (requested_stage is None or is_terminal(family, target)):
            raise AlreadyCompleted(period.id, current)

        if assignee_requested and requested_assignee_id is not None:
            if repo.load_user(requested_assignee_id) is None:
                raise AssigneeNotFound(requested_assignee_id)

        # ── Validation done; mutations start here ────────────────────────
        stage_changed = target is not current
        reopened = was_completed and stage_changed

        touched: list[Milestone] = []
        if stage_changed:
            delta = milestone_resolver.resolve(family, current, target, acting_user, now)
            self._apply_milestones(period, delta)
            touched = delta.touched

        previous_assignee_id = period.assigned_user_id
        if assignee_requested:
            new_assignee_id = requested_assignee_id
        elif stage_changed:
            new_assignee_id = self._auto_assign(target, previous_assignee_id)
        else:
            new_assignee_id = previous_assignee_id
        assignee_changed = new_assignee_id != previous_assignee_id

        period.current_stage = target.value
        period.is_completed = is_terminal(family, target)
        period.assigned_user_id = new_assignee_id
        repo.save_period(period)

        if assignee_changed:
            cleared = repo.bulk_unassign_future_periods(
                period.client_id, period.family, period.period_end, period.id,
            )
            if cleared:
                logger.debug("Unassigned %d future period(s) for client=%s family=%s",
                             cleared, period.client_id, period.family)

        entry = None
        if stage_changed:
            entry = repo.append_history(WorkflowHistoryEntry(
                period_id=period.id,
                from_stage=current.value,
                to_stage=target.value,
                changed_at=now,
                days_in_previous_stage=self._elapsed_days(period.id, now),
                user_id=acting_user.id,
                user_name=acting_user.name,
                user_email=acting_user.email,
                user_role=acting_user.role,
                notes=comment,
            ))

        self._write_activity(period, acting_user, now, current, target,
                             stage_changed, reopened, previous_assignee_id,
                             new_assignee_id, assignee_changed, comment)

        envelope = None
        if stage_changed or assignee_changed:
            envelope = self._build_envelope(
                period, acting_user, current, target, comment, reopened,
                previous_assignee_id, new_assignee_id, assignee_changed,
            )

        return TransitionResult(
            period=period,
            history_entry=entry,
            milestones_touched=touched,
            previous_stage=current,
            previous_assignee_id=previous_assignee_id,
            stage_changed=stage_changed,
            assignee_changed=assignee_changed,
            reopened=reopened,
            envelope=envelope,
        )

    @staticmethod
    def _apply_milestones(period: WorkflowPeriod, delta) -> None:
        existing = period.milestone_map()
        for milestone in delta.clears:
            row = existing.get(milestone.value)
            if row is not None:
                period.milestones.remove(row)
        for milestone, stamp in delta.sets.items():
            row = existing.get(milestone.value)
            if row is None:
                row = WorkflowMilestone(milestone=milestone.value)
                period.milestones.append(row)
            row.reached_at = stamp.at
            row.by_user_id = stamp.user_id
            row.by_user_name = stamp.user_name

    def _auto_assign(self, stage: Stage, current_assignee_id):
        roster = self.repository.load_active_users_by_role(USER_ROLES)
        roster_ids = {role: [u.id for u in users] for role, users in roster.items()}
        return resolve_assignee(stage, current_assignee_id, roster_ids, self.assignment_roles)

    def _local_date(self, value: datetime):
        # SQLite hands back naive datetimes; they were stored as UTC.
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(self.tz).date()

    def _elapsed_days(self, period_id: int, now: datetime) -> int:
        latest = self.repository.load_latest_history(period_id)
        if latest is None:
            return 0
        return max(0, (self._local_date(now) - self._local_date(latest.changed_at)).days)

    def _write_activity(self, period, acting_user, now, current, target, stage_changed,
                        reopened, old_assignee, new_assignee, assignee_changed, comment):
        records = []
        if stage_changed:
            action = "workflow.filing_undone" if reopened else "workflow.stage_changed"
            records.append((action, {
                "stage": {"old": current.value, "new": target.value},
                "notes": comment,
            }))
        if assignee_changed:
            action = "workflow.assigned" if new_assignee is not None else "workflow.unassigned"
            records.append((action, {"assigned_user_id": {"old": old_assignee, "new": new_assignee}}))

        session = self.repository.session
        for action, diff in records:
            try:
                with session.begin_nested():
                    write_audit(
                        entity_type="workflow_period",
                        entity_id=period.id,
                        action=action,
                        actor=acting_user.name or "system",
                        actor_user_id=acting_user.id,
                        client_id=period.client_id,
                        diff=diff,
                        timestamp=now,
                    )
            except Exception:
                logger.warning("Audit write failed for %s on period %s", action, period.id,
                               exc_info=True)

    def _build_envelope(self, period, acting_user, current, target, comment, reopened,
                        old_assignee_id, new_assignee_id, assignee_changed) -> NotificationEnvelope:
        client = self.repository.load_client(period.client_id)
        assignment = None
        if assignee_changed:
            names = {u.id: u.full_name for u in self.repository.load_users([old_assignee_id, new_assignee_id])}
            assignment = AssignmentDelta(
                old_user_id=old_assignee_id,
                old_user_name=names.get(old_assignee_id),
                new_user_id=new_assignee_id,
                new_user_name=names.get(new_assignee_id),
            )
        return NotificationEnvelope(
            client_id=period.client_id,
            client_name=client.company_name if client else "",
            client_code=client.code if client else "",
            family=Family(period.family),
            period_id=period.id,
            period_label=period.label,
            from_stage=current,
            to_stage=target,
            acting_user=acting_user,
            assignment=assignment,
            period_assignee_id=new_assignee_id,
            note=comment,
            reopened=reopened,
        )
