"""
FilingFlow — Filing Workflow Tracker
Activity log for workflow periods.

Rows are append-only. The transition engine writes one row per action in
the same unit of work as the change itself.
"""

from datetime import datetime, timezone

from filingflow.models import db

AUDIT_ACTIONS = (
    "workflow.stage_changed",
    "workflow.filing_undone",
    "workflow.assigned",
    "workflow.unassigned",
)


class AuditLog(db.Model):
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_client_time", "client_id", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, nullable=True)
    entity_type = db.Column(db.String(30), nullable=False)
    entity_id = db.Column(db.String(36), nullable=False)
    action = db.Column(db.String(60), nullable=False, index=True)

    # Display name is copied so the row still reads after the user is removed.
    actor = db.Column(db.String(200), nullable=False, default="system")
    actor_user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )

    # {"field": {"old": ..., "new": ...}, ...}
    diff = db.Column(db.JSON, nullable=False, default=dict)
    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "actor": self.actor,
            "actor_user_id": self.actor_user_id,
            "diff": self.diff or {},
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} {self.entity_type}/{self.entity_id}>"


def write_audit(*, entity_type: str, entity_id, action: str, actor: str = "system",
                actor_user_id: int | None = None, client_id: int | None = None,
                diff: dict | None = None, timestamp: datetime | None = None) -> AuditLog:
    """Add one audit row and flush; the caller commits."""
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action: {action}")
    log = AuditLog(
        client_id=client_id,
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        actor=actor,
        actor_user_id=actor_user_id,
        diff=diff or {},
        timestamp=timestamp or datetime.now(timezone.utc),
    )
    db.session.add(log)
    db.session.flush()
    return log
