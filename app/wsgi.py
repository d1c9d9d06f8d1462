"""Gunicorn entry point: ``gunicorn app.wsgi:app``."""
import logging
import os

from app.studiorent import create_app

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()
