# Overview: Flask extension instances for the order store database and its migrations.

from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()


def get_repository():
    """The app's SqlOrderRepository, created in create_app()."""
    return current_app.extensions["orderboard"]["repository"]


def get_notifier():
    return current_app.extensions["orderboard"]["notifier"]
