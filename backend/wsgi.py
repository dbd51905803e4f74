"""
wsgi.py — Entry point for gunicorn and the flask CLI.

    gunicorn backend.wsgi:app
    flask --app backend.wsgi run
    flask --app backend.wsgi create-admin --email ... --name ...
"""

import os

from backend.app import create_app

app = create_app(os.getenv("FLASK_ENV", "development"))
