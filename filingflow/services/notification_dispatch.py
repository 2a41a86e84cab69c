"""
FilingFlow — Notification Dispatcher.

Fire-and-forget fan-out for committed workflow transitions. Callers hand
over a ``NotificationEnvelope`` after the transition has committed; the
dispatcher resolves recipients and writes in-app notifications and
emails.

Modes (``WORKFLOW_NOTIFICATION_MODE``):
    thread  a daemon worker drains an in-process queue inside an app context
    sync    delivery runs inline in the caller's app context (tests, scripts)

In both modes delivery failures are logged and never reach the caller.
"""

from __future__ import annotations

import logging
import queue
import threading

from flask import Flask

from filingflow.models import db
from filingflow.services.email_service import EmailService
from filingflow.services.notification import NotificationService
from filingflow.services.notification_recipients import resolve_recipients
from filingflow.services.stage_catalog import stage_display_name
from filingflow.services.workflow_repository import WorkflowRepository

logger = logging.getLogger(__name__)

_FAMILY_LABELS = {"QUARTERLY": "VAT return", "ANNUAL": "Annual accounts"}


# ═══════════════════════════════════════════════════════════════════════════
#  Delivery
# ═══════════════════════════════════════════════════════════════════════════


def _context(envelope, reason: str) -> dict:
    assignment_line = ""
    if envelope.assignment is not None:
        new_name = envelope.assignment.new_user_name or "nobody"
        assignment_line = f"Assigned to: {new_name}"
    return {
        "client_name": envelope.client_name,
        "client_code": envelope.client_code,
        "family_label": _FAMILY_LABELS.get(envelope.family.value, envelope.family.value),
        "period_label": envelope.period_label,
        "from_stage_label": stage_display_name(envelope.from_stage, envelope.family)
        if envelope.from_stage else "",
        "to_stage_label": stage_display_name(envelope.to_stage, envelope.family),
        "acting_user_name": envelope.acting_user.name,
        "assignment_line": assignment_line,
        "note": envelope.note or "",
        "reason": reason,
    }


def deliver_envelope(envelope, repository: WorkflowRepository | None = None) -> int:
    """
    Write notifications and emails for one envelope.

    Returns the number of in-app notifications created. Commits once.
    """
    repo = repository or WorkflowRepository()
    created = 0

    if envelope.stage_changed:
        for recipient in resolve_recipients(envelope, repo):
            ctx = _context(envelope, recipient.reason)
            verb = "reopened" if envelope.reopened else "moved"
            notif = NotificationService.create(
                recipient_user_id=recipient.user_id,
                title=f"{envelope.client_name}: {ctx['to_stage_label']}",
                message=(
                    f"{envelope.acting_user.name} {verb} {envelope.period_label} "
                    f"from {ctx['from_stage_label']} to {ctx['to_stage_label']}."
                ),
                category="workflow",
                reason=recipient.reason,
                client_id=envelope.client_id,
                period_id=envelope.period_id,
                commit=False,
            )
            created += 1
            if recipient.email:
                EmailService.send_from_template(
                    to_email=recipient.email,
                    to_name=recipient.name,
                    template_name="workflow_stage_changed",
                    context=ctx,
                    category="workflow",
                    notification_id=notif.id,
                    period_id=envelope.period_id,
                )

    assignment = envelope.assignment
    if assignment is not None and assignment.new_user_id is not None:
        assignee = repo.load_user(assignment.new_user_id)
        if assignee is not None:
            ctx = _context(envelope, "assignment")
            notif = NotificationService.create(
                recipient_user_id=assignee.id,
                title=f"{envelope.client_name}: assigned to you",
                message=f"{envelope.acting_user.name} assigned {envelope.period_label} to you.",
                category="assignment",
                reason="assignment",
                client_id=envelope.client_id,
                period_id=envelope.period_id,
                commit=False,
            )
            created += 1
            EmailService.send_from_template(
                to_email=assignee.email,
                to_name=assignee.full_name,
                template_name="workflow_assignment",
                context=ctx,
                category="assignment",
                notification_id=notif.id,
                period_id=envelope.period_id,
            )

    db.session.commit()
    return created


# ═══════════════════════════════════════════════════════════════════════════
#  Dispatcher
# ═══════════════════════════════════════════════════════════════════════════


class NotificationDispatcher:
    """
    Task queue for notification fan-out.

    Envelopes are delivered in submission order by a single worker thread.
    """

    _app: Flask | None = None
    _mode: str = "thread"
    _queue: "queue.Queue | None" = None
    _thread: threading.Thread | None = None
    _lock = threading.Lock()

    @classmethod
    def init_app(cls, app: Flask) -> None:
        cls._app = app
        cls._mode = app.config.get("WORKFLOW_NOTIFICATION_MODE", "thread")
        app.extensions["notification_dispatcher"] = cls
        logger.info("NotificationDispatcher initialized (mode=%s)", cls._mode)

    @classmethod
    def submit(cls, envelope) -> None:
        """Queue *envelope* for delivery. Never raises."""
        if envelope is None:
            return
        if cls._mode == "sync":
            cls._deliver_safely(envelope)
            return
        try:
            cls._ensure_worker()
            cls._queue.put(envelope)
        except Exception:
            logger.exception("Failed to queue notification for period %s", envelope.period_id)

    @classmethod
    def join(cls) -> None:
        """Block until every queued envelope has been processed."""
        if cls._queue is not None:
            cls._queue.join()

    @classmethod
    def _ensure_worker(cls) -> None:
        with cls._lock:
            if cls._thread is not None and cls._thread.is_alive():
                return
            if cls._app is None:
                raise RuntimeError("NotificationDispatcher not initialized")
            cls._queue = cls._queue or queue.Queue()
            cls._thread = threading.Thread(
                target=cls._worker_loop, name="notification-dispatch", daemon=True,
            )
            cls._thread.start()

    @classmethod
    def _worker_loop(cls) -> None:
        while True:
            envelope = cls._queue.get()
            try:
                with cls._app.app_context():
                    cls._deliver_safely(envelope)
            finally:
                cls._queue.task_done()

    @staticmethod
    def _deliver_safely(envelope) -> None:
        try:
            count = deliver_envelope(envelope)
            logger.debug("Delivered %d notification(s) for period %s", count, envelope.period_id)
        except Exception:
            db.session.rollback()
            logger.exception(
                "Notification delivery failed for period %s",
                envelope.period_id,
                extra={
                    "client_id": envelope.client_id,
                    "period_id": envelope.period_id,
                    "event_type": "workflow.notification_failed",
                },
            )
