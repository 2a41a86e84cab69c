"""
FilingFlow — Email Service.

Workflow emails rendered from two templates. Every attempt leaves an
``EmailLog`` row; with no ``MAIL_SERVER`` configured nothing is sent and
the row is marked sent straight away (development and tests).

Relevant config:
    MAIL_SERVER, MAIL_PORT, MAIL_USE_TLS, MAIL_USERNAME, MAIL_PASSWORD,
    MAIL_DEFAULT_SENDER
"""

from __future__ import annotations

import logging
import smtplib
from datetime import datetime, timezone
from email.message import EmailMessage
from typing import Any

from flask import current_app

from filingflow.models import db
from filingflow.models.notification import EmailLog

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Templates
# ═══════════════════════════════════════════════════════════════════════════

_FRAME = """
<div style="font-family: Arial, sans-serif; max-width: 560px;">
  <h3 style="margin: 0 0 4px;">{client_name} ({client_code})</h3>
  <p style="margin: 0 0 16px; color: #64748b; font-size: 13px;">{family_label}, {period_label}</p>
  {body}
  <p style="margin-top: 24px; color: #94a3b8; font-size: 12px;">Sent to you as: {reason}</p>
</div>
"""

_TEMPLATES: dict[str, dict[str, str]] = {
    "workflow_stage_changed": {
        "subject": "[FilingFlow] {client_name}: {from_stage_label} → {to_stage_label}",
        "text": (
            "{acting_user_name} moved {period_label} for {client_name} "
            "from {from_stage_label} to {to_stage_label}.\n{assignment_line}\n{note}"
        ),
        "html": _FRAME.replace("{body}", (
            "<p><strong>{acting_user_name}</strong> moved this filing from "
            "<strong>{from_stage_label}</strong> to <strong>{to_stage_label}</strong>.</p>"
            "<p>{assignment_line}</p><p>{note}</p>"
        )),
    },
    "workflow_assignment": {
        "subject": "[FilingFlow] {client_name}: assigned to you",
        "text": (
            "{acting_user_name} assigned {period_label} for {client_name} to you.\n"
            "Current stage: {to_stage_label}"
        ),
        "html": _FRAME.replace("{body}", (
            "<p><strong>{acting_user_name}</strong> assigned this filing to you.</p>"
            "<p>Current stage: <strong>{to_stage_label}</strong></p>"
        )),
    },
}


class _Blank(dict):
    def __missing__(self, key):
        return ""


def render(template_name: str, context: dict[str, Any]) -> dict[str, str] | None:
    """Return ``{"subject", "text", "html"}`` for *template_name*, or None if unknown."""
    template = _TEMPLATES.get(template_name)
    if template is None:
        return None
    values = _Blank(context)
    return {part: source.format_map(values) for part, source in template.items()}


# ═══════════════════════════════════════════════════════════════════════════
#  Sending
# ═══════════════════════════════════════════════════════════════════════════


class EmailService:
    """Send workflow emails and record them in ``EmailLog``. Never commits."""

    @staticmethod
    def is_configured() -> bool:
        return bool(current_app.config.get("MAIL_SERVER"))

    @classmethod
    def send_from_template(cls, *, to_email: str, to_name: str | None = None,
                           template_name: str, context: dict[str, Any],
                           category: str = "workflow", notification_id: int | None = None,
                           period_id: int | None = None) -> EmailLog | None:
        rendered = render(template_name, context)
        if rendered is None:
            logger.warning("Unknown email template %s", template_name)
            return None

        log = EmailLog(
            recipient_email=to_email,
            recipient_name=to_name,
            subject=rendered["subject"],
            template_name=template_name,
            category=category,
            status="queued",
            notification_id=notification_id,
            period_id=period_id,
        )
        db.session.add(log)
        db.session.flush()

        if not cls.is_configured():
            logger.info("Email not sent (no MAIL_SERVER): to=%s template=%s", to_email, template_name)
            cls._mark_sent(log)
            return log

        try:
            cls._deliver(cls._compose(to_email, to_name, rendered))
        except (smtplib.SMTPException, OSError) as exc:
            log.status = "failed"
            log.error_message = str(exc)[:1000]
            logger.error("Email to %s failed: %s", to_email, exc)
        else:
            cls._mark_sent(log)
        return log

    @staticmethod
    def _mark_sent(log: EmailLog) -> None:
        log.status = "sent"
        log.sent_at = datetime.now(timezone.utc)

    @staticmethod
    def _compose(to_email: str, to_name: str | None, rendered: dict[str, str]) -> EmailMessage:
        cfg = current_app.config
        msg = EmailMessage()
        msg["Subject"] = rendered["subject"]
        msg["From"] = cfg.get("MAIL_DEFAULT_SENDER") or f"noreply@{cfg.get('MAIL_SERVER')}"
        msg["To"] = f"{to_name} <{to_email}>" if to_name else to_email
        msg.set_content(rendered["text"])
        msg.add_alternative(rendered["html"], subtype="html")
        return msg

    @staticmethod
    def _deliver(msg: EmailMessage) -> None:
        cfg = current_app.config
        with smtplib.SMTP(cfg["MAIL_SERVER"], cfg.get("MAIL_PORT", 587), timeout=30) as smtp:
            if cfg.get("MAIL_USE_TLS", True):
                smtp.starttls()
            if cfg.get("MAIL_USERNAME") and cfg.get("MAIL_PASSWORD"):
                smtp.login(cfg["MAIL_USERNAME"], cfg["MAIL_PASSWORD"])
            smtp.send_message(msg)
