"""
FilingFlow — Filing Workflow Tracker
Team domain model.

Models:
    - User: practice team member (partner, manager or staff)
"""

from datetime import datetime, timezone

from filingflow.models import db


# ── Constants ────────────────────────────────────────────────────────────────

USER_ROLES = ("PARTNER", "MANAGER", "STAFF")

# Roles that receive every workflow notification and may move stages.
OVERSIGHT_ROLES = ("MANAGER", "PARTNER")


class User(db.Model):
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_status", "role", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), nullable=False, unique=True)
    full_name = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="STAFF",
                     comment="PARTNER | MANAGER | STAFF")
    status = db.Column(db.String(20), default="active")  # active, inactive, suspended
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.email} ({self.role})>"
