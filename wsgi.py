"""
WSGI / Flask-Migrate entry point for FilingFlow.

Usage:
    gunicorn wsgi:app
    flask --app wsgi db migrate -m "description"
    flask --app wsgi db upgrade
"""

from filingflow import create_app

app = create_app()
