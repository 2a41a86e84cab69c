"""
FilingFlow — Filing Workflow Tracker
Per-environment settings, selected by ``create_app(config_name)`` or the
``APP_ENV`` environment variable.
"""

import json
import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))


def _database_url(var: str, fallback: str | None) -> str | None:
    # Hosting platforms still hand out postgres://, which SQLAlchemy 2 rejects.
    raw = os.getenv(var, "")
    if not raw:
        return fallback
    return raw.replace("postgres://", "postgresql://", 1)


def _env_flag(var: str, default: str = "false") -> bool:
    return os.getenv(var, default).strip().lower() in ("1", "true", "yes")


def _assignment_roles() -> dict:
    """``WORKFLOW_ASSIGNMENT_ROLES`` as a JSON object, e.g. ``{"CHASE": "MANAGER"}``."""
    raw = os.getenv("WORKFLOW_ASSIGNMENT_ROLES", "").strip()
    return json.loads(raw) if raw else {}


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True, "pool_recycle": 300}

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # No MAIL_SERVER means emails are logged, not sent.
    MAIL_SERVER = os.getenv("MAIL_SERVER")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = _env_flag("MAIL_USE_TLS", "true")
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "notifications@filingflow.local")

    # Calendar used when counting days spent in a stage.
    WORKFLOW_TIMEZONE = os.getenv("WORKFLOW_TIMEZONE", "Europe/London")
    # "thread" or "sync"
    WORKFLOW_NOTIFICATION_MODE = os.getenv("WORKFLOW_NOTIFICATION_MODE", "thread")
    WORKFLOW_ASSIGNMENT_ROLES = _assignment_roles()


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(
        "DATABASE_URL", f"sqlite:///{os.path.join(basedir, 'instance', 'filingflow_dev.db')}",
    )


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = _database_url("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ENGINE_OPTIONS = {}
    WORKFLOW_NOTIFICATION_MODE = "sync"
    WORKFLOW_ASSIGNMENT_ROLES = {}


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = _database_url("DATABASE_URL", None)
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "connect_args": {"options": "-c statement_timeout=30000"},
    }

    def __init__(self):
        missing = [name for name, value in (
            ("DATABASE_URL", self.SQLALCHEMY_DATABASE_URI),
            ("SECRET_KEY", os.getenv("SECRET_KEY")),
        ) if not value]
        if missing:
            raise RuntimeError(f"Production requires: {', '.join(missing)}")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
