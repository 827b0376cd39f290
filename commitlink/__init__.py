# commitlink/__init__.py
import logging
from flask import Flask
from .config import Config
from .extensions import db, migrate


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(level=str(app.config.get("LOG_LEVEL") or "INFO").upper())

    # Initialize database
    db.init_app(app)
    migrate.init_app(app, db)

    # Register models (so SQLAlchemy knows about them)
    from . import models  # noqa: F401

    from .app import bp as main_bp
    from .settings import bp as settings_bp
    app.register_blueprint(main_bp)
    app.register_blueprint(settings_bp)

    return app
