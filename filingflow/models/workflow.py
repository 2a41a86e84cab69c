"""
FilingFlow — Filing Workflow Tracker
Workflow domain model.

Models:
    - WorkflowPeriod: one filing obligation (a VAT quarter or an accounting year)
    - WorkflowMilestone: timestamp + attribution for a milestone reached on a period
    - WorkflowHistoryEntry: append-only record of one stage transition

Periods are only ever mutated through
``filingflow.services.workflow_engine.WorkflowTransitionEngine``.
"""

from datetime import datetime, timezone

from filingflow.models import db


# ── Constants ────────────────────────────────────────────────────────────────

WORKFLOW_FAMILIES = {"QUARTERLY", "ANNUAL"}


class WorkflowPeriod(db.Model):
    """
    One filing obligation instance for one client.

    Invariant: ``is_completed`` is True iff ``current_stage`` is the
    family's terminal stage.
    """

    __tablename__ = "workflow_periods"
    __table_args__ = (
        db.UniqueConstraint("client_id", "family", "period_end", name="uq_period_client_family_end"),
        db.Index("ix_period_client_family_end", "client_id", "family", "period_end"),
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(
        db.Integer, db.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False,
    )
    family = db.Column(db.String(20), nullable=False, comment="QUARTERLY | ANNUAL")
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)
    filing_due_date = db.Column(db.Date, nullable=True)

    current_stage = db.Column(db.String(40), nullable=False)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    assigned_user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    client = db.relationship("Client", back_populates="periods")
    assigned_user = db.relationship("User", foreign_keys=[assigned_user_id])
    milestones = db.relationship(
        "WorkflowMilestone", back_populates="period", cascade="all, delete-orphan",
        order_by="WorkflowMilestone.reached_at",
    )
    history = db.relationship(
        "WorkflowHistoryEntry", back_populates="period", lazy="dynamic",
        cascade="all, delete-orphan", order_by="WorkflowHistoryEntry.changed_at.desc()",
    )

    @property
    def label(self) -> str:
        """Human label, e.g. 'Quarter ending 31 Mar 2026'."""
        prefix = "Quarter ending" if self.family == "QUARTERLY" else "Year ending"
        return f"{prefix} {self.period_end.strftime('%d %b %Y')}"

    def milestone_map(self) -> dict:
        return {m.milestone: m for m in self.milestones}

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "family": self.family,
            "label": self.label,
            "period_start": self.period_start.isoformat() if self.period_start else None,
            "period_end": self.period_end.isoformat() if self.period_end else None,
            "filing_due_date": self.filing_due_date.isoformat() if self.filing_due_date else None,
            "current_stage": self.current_stage,
            "is_completed": self.is_completed,
            "assigned_user_id": self.assigned_user_id,
            "milestones": {m.milestone: m.to_dict() for m in self.milestones},
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<WorkflowPeriod {self.id}: client={self.client_id} {self.family} {self.current_stage}>"


class WorkflowMilestone(db.Model):
    """
    A milestone reached on a period.

    A "set" upserts the row for (period, milestone); a "clear" deletes it.
    """

    __tablename__ = "workflow_milestones"
    __table_args__ = (
        db.UniqueConstraint("period_id", "milestone", name="uq_milestone_period_name"),
    )

    id = db.Column(db.Integer, primary_key=True)
    period_id = db.Column(
        db.Integer, db.ForeignKey("workflow_periods.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    milestone = db.Column(db.String(40), nullable=False)
    reached_at = db.Column(db.DateTime(timezone=True), nullable=False)
    by_user_id = db.Column(db.Integer, nullable=True)
    by_user_name = db.Column(db.String(200), nullable=True)

    period = db.relationship("WorkflowPeriod", back_populates="milestones")

    def to_dict(self):
        return {
            "reached_at": self.reached_at.isoformat() if self.reached_at else None,
            "by_user_id": self.by_user_id,
            "by_user_name": self.by_user_name,
        }

    def __repr__(self):
        return f"<WorkflowMilestone {self.period_id}:{self.milestone}>"


class WorkflowHistoryEntry(db.Model):
    """Immutable audit record of one stage transition."""

    __tablename__ = "workflow_history"
    __table_args__ = (
        db.Index("ix_history_period_changed", "period_id", "changed_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    period_id = db.Column(
        db.Integer, db.ForeignKey("workflow_periods.id", ondelete="CASCADE"), nullable=False,
    )
    from_stage = db.Column(db.String(40), nullable=True)
    to_stage = db.Column(db.String(40), nullable=False)
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False)
    days_in_previous_stage = db.Column(db.Integer, nullable=True)

    # Acting user snapshot, kept even if the user is later removed
    user_id = db.Column(db.Integer, nullable=True)
    user_name = db.Column(db.String(200), nullable=True)
    user_email = db.Column(db.String(200), nullable=True)
    user_role = db.Column(db.String(20), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    period = db.relationship("WorkflowPeriod", back_populates="history")

    def to_dict(self):
        return {
            "id": self.id,
            "period_id": self.period_id,
            "from_stage": self.from_stage,
            "to_stage": self.to_stage,
            "changed_at": self.changed_at.isoformat() if self.changed_at else None,
            "days_in_previous_stage": self.days_in_previous_stage,
            "user": {
                "id": self.user_id,
                "name": self.user_name,
                "email": self.user_email,
                "role": self.user_role,
            },
            "notes": self.notes,
        }

    def __repr__(self):
        return f"<WorkflowHistoryEntry {self.id}: {self.from_stage} → {self.to_stage}>"
