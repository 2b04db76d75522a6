import os
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

# Load .env before the config classes read the environment
load_dotenv(Path(__file__).parent.parent / '.env')

from awayline.config import config  # noqa: E402
from awayline.extensions import db, migrate  # noqa: E402


def create_app(config_name=None):
    """Flask application factory"""
    config_name = config_name or os.getenv('FLASK_ENV', 'default')
    if config_name not in config:
        config_name = 'default'

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    from awayline.utils.logging import setup_logging
    setup_logging(app)

    db_url = app.config.get('SQLALCHEMY_DATABASE_URI')
    if db_url:
        # Hide credentials for logging
        safe_url = db_url.split('@')[1] if '@' in db_url else db_url
        app.logger.info(f"Database URL configured: ...@{safe_url}")
    else:
        app.logger.error("DATABASE_URL not set")

    _init_extensions(app)
    _register_blueprints(app)
    _register_cli(app)

    app.logger.info(f"Awayline gateway startup complete ({config_name})")
    return app


def _init_extensions(app):
    """Initialize Flask extensions"""
    # Register models with the metadata before migrate inspects it
    from awayline import models  # noqa: F401
    from awayline.celery_app import celery_init_app

    db.init_app(app)
    migrate.init_app(app, db)
    CORS(app, origins=app.config.get('CORS_ORIGINS', ["*"]))
    celery_init_app(app)


def _register_blueprints(app):
    """Register application blueprints and error handlers"""
    from awayline.api import register_blueprints
    from awayline.utils.error_handlers import register_error_handlers

    register_blueprints(app)
    register_error_handlers(app)


def _register_cli(app):
    from awayline.cli import numbers_cli
    app.cli.add_command(numbers_cli)
