"""Liveness endpoint."""

from flask import Flask

RUNNING_TEXT = "Automatex Notifier is running!"


def create_app() -> Flask:
    app = Flask(__name__)

    @app.get("/")
    def index():
        return RUNNING_TEXT

    return app
