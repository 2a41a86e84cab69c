"""
FilingFlow — Filing Workflow Tracker
Flask application factory.

    from filingflow import create_app
    app = create_app("testing")
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_migrate import Migrate
from sqlalchemy import event
from sqlalchemy.engine import Engine

from filingflow.config import config
from filingflow.middleware.logging_config import configure_logging
from filingflow.models import db

logger = logging.getLogger(__name__)

migrate = Migrate()


@event.listens_for(Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, connection_record):
    # SQLite leaves FK checks off per connection.
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _register_models():
    # Imported for their side effect on db.metadata.
    from filingflow.models import audit, client, notification, team, workflow  # noqa: F401


def _register_blueprints(app):
    from filingflow.blueprints.notification_bp import notification_bp
    from filingflow.blueprints.workflow_bp import workflow_bp

    app.register_blueprint(workflow_bp)
    app.register_blueprint(notification_bp)


def _register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(500)
    def server_error(e):
        logger.error("Unhandled server error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500


def create_app(config_name=None):
    """
    Build the Flask app for *config_name* ("development", "testing" or
    "production"; ``APP_ENV`` when omitted).
    """
    config_name = config_name or os.getenv("APP_ENV", "development")
    settings = config[config_name]

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(settings() if config_name == "production" else settings)

    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    origins = [o.strip() for o in app.config.get("CORS_ORIGINS", "*").split(",") if o.strip()]
    if origins and origins != ["*"]:
        CORS(app, origins=origins)
    else:
        CORS(app)

    _register_models()
    os.makedirs(app.instance_path, exist_ok=True)
    with app.app_context():
        db.create_all()

    from filingflow.services.notification_dispatch import NotificationDispatcher
    NotificationDispatcher.init_app(app)

    _register_blueprints(app)
    _register_error_handlers(app)

    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "FilingFlow"}

    logger.debug("FilingFlow app created (config=%s)", config_name)
    return app
