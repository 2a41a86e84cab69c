"""
FilingFlow — Notification Service.

Central service for creating and querying in-app notifications.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import func, select, update

from filingflow.models import db
from filingflow.models.notification import NOTIFICATION_CATEGORIES, Notification


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, recipient_user_id, title, message="", category="system",
               reason=None, client_id=None, period_id=None, commit=True):
        """
        Create a single notification record.

        Returns:
            The created Notification instance (committed unless ``commit=False``).
        """
        if category not in NOTIFICATION_CATEGORIES:
            raise ValueError(f"Unknown notification category: {category}")
        notif = Notification(
            recipient_user_id=recipient_user_id,
            title=title,
            message=message,
            category=category,
            reason=reason,
            client_id=client_id,
            period_id=period_id,
        )
        db.session.add(notif)
        if commit:
            db.session.commit()
        else:
            db.session.flush()
        return notif

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_recipient(user_id, unread_only=False, limit=50, offset=0):
        """
        Retrieve notifications for a user, newest first.
        """
        q = Notification.query.filter_by(recipient_user_id=user_id)
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset).limit(limit).all()
        )
        return items, total

    @staticmethod
    def unread_count(user_id):
        """Return count of unread notifications."""
        stmt = select(func.count(Notification.id)).where(
            Notification.recipient_user_id == user_id,
            Notification.is_read.is_(False),
        )
        return db.session.execute(stmt).scalar_one()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id, user_id=None):
        """Mark a single notification as read. Returns None if not found or not owned."""
        notif = db.session.get(Notification, notification_id)
        if notif is None or (user_id is not None and notif.recipient_user_id != user_id):
            return None
        notif.mark_read()
        db.session.commit()
        return notif

    @staticmethod
    def mark_all_read(user_id):
        """Mark all notifications for a user as read."""
        now = datetime.now(timezone.utc)
        stmt = (
            update(Notification)
            .where(Notification.recipient_user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=now)
            .execution_options(synchronize_session="fetch")
        )
        count = db.session.execute(stmt).rowcount
        db.session.commit()
        return count
