"""
FilingFlow — Filing Workflow Tracker
Client domain model.

Models:
    - Client: a company whose filings the practice prepares
"""

from datetime import datetime, timezone

from filingflow.models import db


class Client(db.Model):
    """
    A client of the practice.

    ``assigned_user_id`` is the client's general point of contact;
    ``chase_team_user_ids`` lists the users who chase outstanding paperwork.
    Individual filing periods carry their own assignee (see WorkflowPeriod).
    """

    __tablename__ = "clients"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(30), nullable=False, unique=True)
    company_name = db.Column(db.String(300), nullable=False)
    assigned_user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    chase_team_user_ids = db.Column(db.JSON, nullable=False, default=list,
                                    comment="User ids of the paperwork chase team")
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    assigned_user = db.relationship("User", foreign_keys=[assigned_user_id])
    periods = db.relationship(
        "WorkflowPeriod", back_populates="client", lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "company_name": self.company_name,
            "assigned_user_id": self.assigned_user_id,
            "chase_team_user_ids": list(self.chase_team_user_ids or []),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Client {self.id}: {self.code}>"
