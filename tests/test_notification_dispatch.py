"""
Notification fan-out after committed transitions.

The testing config runs the dispatcher in ``sync`` mode, so deliveries are
visible as soon as ``transition_period`` returns.
"""

import logging

from sqlalchemy import select

from filingflow.models import db
from filingflow.models.notification import EmailLog, Notification
from filingflow.models.workflow import WorkflowPeriod
from filingflow.services import notification_dispatch
from filingflow.services.notification import NotificationService
from filingflow.services.notification_dispatch import NotificationDispatcher
from filingflow.services.workflow_service import transition_period


def _notifications(**filters):
    stmt = select(Notification).filter_by(**filters).order_by(Notification.id)
    return list(db.session.execute(stmt).scalars())


class TestDelivery:
    def test_stage_change_notifies_each_recipient(self, make_period, team, acting_partner):
        period = make_period("PAPERWORK_PENDING_CHASE")

        transition_period(period.id, acting_user=acting_partner, stage="PAPERWORK_CHASED")

        workflow = _notifications(category="workflow", period_id=period.id)
        by_user = {n.recipient_user_id: n.reason for n in workflow}
        assert by_user == {
            team.partner.id: "oversight",
            team.partner2.id: "oversight",
            team.manager.id: "oversight",
            team.staff.id: "assigned user",
            team.staff2.id: "chase team",
        }
        assert workflow[0].title == "Acme Widgets Ltd: Paperwork Chased"

        emails = db.session.execute(
            select(EmailLog).where(EmailLog.template_name == "workflow_stage_changed")
        ).scalars().all()
        assert {e.recipient_email for e in emails} == {
            "pat@practice.test", "paz@practice.test", "morgan@practice.test",
            "sam@practice.test", "sky@practice.test",
        }
        assert all(e.status == "sent" for e in emails)  # log-only mode

    def test_assignment_notifies_new_assignee(self, make_period, team, acting_partner):
        period = make_period("PAPERWORK_PENDING_CHASE")

        transition_period(period.id, acting_user=acting_partner, stage="PAPERWORK_CHASED")

        assignment = _notifications(category="assignment")
        assert [n.recipient_user_id for n in assignment] == [team.partner.id]

    def test_assignment_only_change_skips_stage_fanout(self, make_period, team, acting_partner):
        period = make_period("WORK_IN_PROGRESS")

        transition_period(period.id, acting_user=acting_partner, assigned_user_id=team.staff2.id)

        assert _notifications(category="workflow") == []
        assert [n.recipient_user_id for n in _notifications(category="assignment")] == [team.staff2.id]

    def test_unassign_sends_no_assignment_notice(self, make_period, team, acting_partner):
        period = make_period("WORK_IN_PROGRESS", assigned_user_id=team.staff2.id)

        transition_period(period.id, acting_user=acting_partner, assigned_user_id=None)

        assert _notifications() == []

    def test_noop_transition_sends_nothing(self, make_period, acting_partner):
        period = make_period("WORK_IN_PROGRESS")
        transition_period(period.id, acting_user=acting_partner, stage="WORK_IN_PROGRESS")
        assert _notifications() == []


class TestFailureIsolation:
    def test_delivery_failure_does_not_affect_transition(self, make_period, acting_partner,
                                                         monkeypatch, caplog):
        period = make_period("PAPERWORK_PENDING_CHASE")

        def _explode(*args, **kwargs):
            raise RuntimeError("mail relay down")

        monkeypatch.setattr(notification_dispatch, "resolve_recipients", _explode)

        with caplog.at_level(logging.ERROR, logger="filingflow.services.notification_dispatch"):
            result = transition_period(period.id, acting_user=acting_partner, stage="PAPERWORK_CHASED")

        assert result.stage_changed
        assert db.session.get(WorkflowPeriod, period.id).current_stage == "PAPERWORK_CHASED"
        assert _notifications(category="workflow") == []
        assert "Notification delivery failed" in caplog.text

    def test_submit_none_is_ignored(self):
        NotificationDispatcher.submit(None)


class TestThreadMode:
    def test_worker_delivers_in_background(self, app, monkeypatch):
        delivered = []
        monkeypatch.setattr(notification_dispatch, "deliver_envelope",
                            lambda envelope: delivered.append(envelope) or 0)
        monkeypatch.setattr(NotificationDispatcher, "_mode", "thread")

        marker = type("Envelope", (), {"period_id": 1, "client_id": 1})()
        NotificationDispatcher.submit(marker)
        NotificationDispatcher.join()

        assert delivered == [marker]


class TestNotificationService:
    def test_list_unread_and_mark(self, team):
        first = NotificationService.create(recipient_user_id=team.staff.id, title="One")
        NotificationService.create(recipient_user_id=team.staff.id, title="Two")
        NotificationService.create(recipient_user_id=team.manager.id, title="Other")

        items, total = NotificationService.list_for_recipient(team.staff.id)
        assert total == 2
        assert [n.title for n in items] == ["Two", "One"]
        assert NotificationService.unread_count(team.staff.id) == 2

        NotificationService.mark_read(first.id, user_id=team.staff.id)
        assert NotificationService.unread_count(team.staff.id) == 1
        unread, _ = NotificationService.list_for_recipient(team.staff.id, unread_only=True)
        assert [n.title for n in unread] == ["Two"]

        assert NotificationService.mark_all_read(team.staff.id) == 1
        assert NotificationService.unread_count(team.staff.id) == 0
        assert NotificationService.unread_count(team.manager.id) == 1

    def test_mark_read_rejects_other_users_notification(self, team):
        notif = NotificationService.create(recipient_user_id=team.staff.id, title="Private")
        assert NotificationService.mark_read(notif.id, user_id=team.manager.id) is None
