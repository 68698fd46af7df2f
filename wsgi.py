"""
WSGI entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi build-scaffold spec.json scaffold.zip
"""

from platform_factory import create_app

app = create_app()
