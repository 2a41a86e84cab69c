"""
FilingFlow — Workflow Service.

Request-level orchestration used by the blueprint: runs the transition
engine with the configured timezone and assignment table, then hands the
committed envelope to the notification dispatcher. Read helpers for the
period detail and history endpoints live here too.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import current_app

from filingflow.core.exceptions import PeriodNotFound
from filingflow.services import stage_catalog
from filingflow.services.notification_dispatch import NotificationDispatcher
from filingflow.services.workflow_engine import (
    NOT_PROVIDED,
    ActingUser,
    TransitionResult,
    WorkflowTransitionEngine,
)
from filingflow.services.workflow_repository import WorkflowRepository

logger = logging.getLogger(__name__)


def transition_period(period_id: int, *, acting_user: ActingUser, stage=None,
                      assigned_user_id=NOT_PROVIDED, notes: str | None = None,
                      now: datetime | None = None) -> TransitionResult:
    """Apply one transition and queue its notifications once committed."""
    engine = WorkflowTransitionEngine.from_config(current_app.config)
    result = engine.transition(
        period_id,
        acting_user=acting_user,
        now=now or datetime.now(timezone.utc),
        requested_stage=stage,
        requested_assignee_id=assigned_user_id,
        comment=notes,
    )
    NotificationDispatcher.submit(result.envelope)
    return result


def check_skip(period_id: int, stage):
    """Advisory skip check for a requested stage. Raises PeriodNotFound / InvalidStage."""
    period = WorkflowRepository().load_period(period_id)
    if period is None:
        raise PeriodNotFound(period_id)
    check = stage_catalog.check_stage_transition(period.family, period.current_stage, stage)
    return period, check


def serialize_period(period) -> dict:
    """Period payload with navigation hints for the UI."""
    data = period.to_dict()
    family = period.family
    position, total, percent = stage_catalog.workflow_progress(family, period.current_stage)
    data["current_stage_name"] = stage_catalog.stage_display_name(period.current_stage, family)
    data["next_stage"] = _value(stage_catalog.next_stage(family, period.current_stage))
    data["allowed_next_stages"] = [
        s.value for s in stage_catalog.allowed_next_stages(family, period.current_stage)
    ]
    data["progress"] = {"position": position, "total": total, "percent": percent}
    return data


def get_period(period_id: int):
    period = WorkflowRepository().load_period(period_id)
    if period is None:
        raise PeriodNotFound(period_id)
    return period


def list_history(period_id: int):
    repo = WorkflowRepository()
    if repo.load_period(period_id) is None:
        raise PeriodNotFound(period_id)
    return repo.list_history(period_id)


def list_client_periods(client_id: int, family: str | None = None):
    return WorkflowRepository().list_periods_for_client(client_id, family)


def _value(stage):
    return stage.value if stage is not None else None
