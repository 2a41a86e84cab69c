"""
Shared pytest fixtures for the FilingFlow test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - team: Pre-created practice team (partners, manager, staff)
    - acme: Pre-created Client with a general assignee and chase team
    - make_period: Factory for WorkflowPeriod rows at any stage
"""

from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from filingflow import create_app
from filingflow.models import db as _db
from filingflow.models.client import Client
from filingflow.models.team import User
from filingflow.models.workflow import WorkflowMilestone, WorkflowPeriod
from filingflow.services.workflow_engine import ActingUser


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Domain fixtures ──────────────────────────────────────────────────────


def _user(name, email, role, status="active") -> User:
    u = User(full_name=name, email=email, role=role, status=status)
    _db.session.add(u)
    _db.session.flush()
    return u


@pytest.fixture()
def team():
    """
    Practice team. Creation order fixes ids:

        1 retired partner (inactive)   2 partner    3 second partner
        4 manager                      5 staff      6 second staff
    """
    retired = _user("Rita Retired", "rita@practice.test", "PARTNER", status="inactive")
    partner = _user("Pat Partner", "pat@practice.test", "PARTNER")
    partner2 = _user("Paz Partner", "paz@practice.test", "PARTNER")
    manager = _user("Morgan Manager", "morgan@practice.test", "MANAGER")
    staff = _user("Sam Staff", "sam@practice.test", "STAFF")
    staff2 = _user("Sky Staff", "sky@practice.test", "STAFF")
    _db.session.commit()
    return SimpleNamespace(
        retired=retired, partner=partner, partner2=partner2,
        manager=manager, staff=staff, staff2=staff2,
    )


@pytest.fixture()
def acme(team):
    """Client whose general assignee is Sam and whose chase team is Sky."""
    c = Client(
        code="ACME",
        company_name="Acme Widgets Ltd",
        assigned_user_id=team.staff.id,
        chase_team_user_ids=[team.staff2.id],
    )
    _db.session.add(c)
    _db.session.commit()
    return c


@pytest.fixture()
def make_period(acme):
    """Factory: create a WorkflowPeriod at an arbitrary stage (bypasses the engine)."""

    def _make(stage="PAPERWORK_PENDING_CHASE", family="QUARTERLY", *,
              period_end=date(2026, 3, 31), client_id=None, assigned_user_id=None,
              milestones=None):
        start_month = 1 if family == "QUARTERLY" else 4
        period = WorkflowPeriod(
            client_id=client_id or acme.id,
            family=family,
            period_start=date(period_end.year - (0 if family == "QUARTERLY" else 1),
                              start_month, 1),
            period_end=period_end,
            filing_due_date=date(period_end.year, 5, 7),
            current_stage=stage,
            is_completed=stage == "FILED",
            assigned_user_id=assigned_user_id,
        )
        _db.session.add(period)
        _db.session.flush()
        for name, reached_at in (milestones or {}).items():
            _db.session.add(WorkflowMilestone(
                period_id=period.id, milestone=name, reached_at=reached_at,
                by_user_id=None, by_user_name="Seeder",
            ))
        _db.session.commit()
        return period

    return _make


@pytest.fixture()
def acting_partner(team):
    return ActingUser.from_user(team.partner)


# ── Helpers ──────────────────────────────────────────────────────────────


def as_utc(value: datetime) -> datetime:
    """SQLite returns naive datetimes; they were written as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@pytest.fixture()
def utc():
    return as_utc
