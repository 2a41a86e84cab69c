"""
FilingFlow — Filing Workflow Tracker
SQLAlchemy extension handle shared by every model module.

Models live in per-domain modules (team, client, workflow, notification,
audit) and are imported by the app factory so ``db.create_all()`` and
Flask-Migrate see every table.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
