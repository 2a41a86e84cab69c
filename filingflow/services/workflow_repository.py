"""
FilingFlow — Workflow storage collaborator.

Thin SQLAlchemy-backed repository used by the transition engine and the
notification recipient resolver. Nothing here commits; the caller owns
the unit of work.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import select, update

from filingflow.models import db
from filingflow.models.client import Client
from filingflow.models.team import User
from filingflow.models.workflow import WorkflowHistoryEntry, WorkflowPeriod


class WorkflowRepository:
    """Storage operations over the current ``db.session``."""

    def __init__(self, session=None):
        self.session = session or db.session

    # ── Periods ──────────────────────────────────────────────────────────

    def load_period(self, period_id: int, *, for_update: bool = False) -> WorkflowPeriod | None:
        stmt = select(WorkflowPeriod).where(WorkflowPeriod.id == period_id)
        if for_update:
            # Ignored by SQLite; row lock on PostgreSQL.
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def save_period(self, period: WorkflowPeriod) -> WorkflowPeriod:
        self.session.add(period)
        self.session.flush()
        return period

    def list_periods_for_client(self, client_id: int, family: str | None = None) -> list[WorkflowPeriod]:
        stmt = select(WorkflowPeriod).where(WorkflowPeriod.client_id == client_id)
        if family:
            stmt = stmt.where(WorkflowPeriod.family == family)
        stmt = stmt.order_by(WorkflowPeriod.period_end)
        return list(self.session.execute(stmt).scalars())

    def bulk_unassign_future_periods(self, client_id: int, family: str,
                                     after_date: date, excluding_id: int) -> int:
        """
        Clear the assignee of every later period of the same client and family.

        One set-based UPDATE; returns the number of rows matched.
        """
        stmt = (
            update(WorkflowPeriod)
            .where(
                WorkflowPeriod.client_id == client_id,
                WorkflowPeriod.family == family,
                WorkflowPeriod.period_end > after_date,
                WorkflowPeriod.id != excluding_id,
                WorkflowPeriod.assigned_user_id.is_not(None),
            )
            .values(assigned_user_id=None)
            .execution_options(synchronize_session="fetch")
        )
        return self.session.execute(stmt).rowcount

    # ── History ──────────────────────────────────────────────────────────

    def load_latest_history(self, period_id: int) -> WorkflowHistoryEntry | None:
        stmt = (
            select(WorkflowHistoryEntry)
            .where(WorkflowHistoryEntry.period_id == period_id)
            .order_by(WorkflowHistoryEntry.changed_at.desc(), WorkflowHistoryEntry.id.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_history(self, period_id: int) -> list[WorkflowHistoryEntry]:
        stmt = (
            select(WorkflowHistoryEntry)
            .where(WorkflowHistoryEntry.period_id == period_id)
            .order_by(WorkflowHistoryEntry.changed_at.desc(), WorkflowHistoryEntry.id.desc())
        )
        return list(self.session.execute(stmt).scalars())

    def append_history(self, entry: WorkflowHistoryEntry) -> WorkflowHistoryEntry:
        self.session.add(entry)
        self.session.flush()
        return entry

    # ── Team & clients ───────────────────────────────────────────────────

    def load_active_users_by_role(self, roles) -> dict[str, list[User]]:
        """Active users grouped by role, each list ordered by id."""
        stmt = (
            select(User)
            .where(User.role.in_(list(roles)), User.status == "active")
            .order_by(User.id)
        )
        grouped: dict[str, list[User]] = {role: [] for role in roles}
        for user in self.session.execute(stmt).scalars():
            grouped.setdefault(user.role, []).append(user)
        return grouped

    def load_client(self, client_id: int) -> Client | None:
        return self.session.get(Client, client_id)

    def load_user(self, user_id: int) -> User | None:
        return self.session.get(User, user_id)

    def load_users(self, user_ids) -> list[User]:
        ids = [uid for uid in user_ids if uid is not None]
        if not ids:
            return []
        stmt = select(User).where(User.id.in_(ids)).order_by(User.id)
        return list(self.session.execute(stmt).scalars())
