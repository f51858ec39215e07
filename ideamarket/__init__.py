# ideamarket/__init__.py

import logging
import os

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from config import config

db = SQLAlchemy()

def create_app(config_name='dev'):
    # Select the configuration object
    app_config = config.get(config_name, config['dev'])

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(app_config)

    _configure_logging(app)

    instance_path = app.instance_path
    if not os.path.exists(instance_path):
        try:
            os.makedirs(instance_path)
        except OSError as e:
            # Another worker may have created it first
            if not os.path.isdir(instance_path):
                raise e

    db.init_app(app)

    with app.app_context():
        # Importing models here prevents circular import errors
        from . import models
        db.create_all()

    from .errors import register_error_handlers
    register_error_handlers(app)

    from .auth import auth as auth_blueprint
    app.register_blueprint(auth_blueprint, url_prefix='/auth')

    from .main import main as main_blueprint
    app.register_blueprint(main_blueprint, url_prefix='/api')

    from .admin import admin as admin_blueprint
    app.register_blueprint(admin_blueprint, url_prefix='/api/admin')

    from .logs import logs as logs_blueprint
    app.register_blueprint(logs_blueprint, url_prefix='/api/logs')

    from .payments import payments as payments_blueprint
    app.register_blueprint(payments_blueprint, url_prefix='/payments')

    from .cli import register_commands
    register_commands(app)

    app.logger.info("ideamarket started with %s config", config_name)
    return app


def _configure_logging(app):
    level = logging.getLevelName(str(app.config.get('LOG_LEVEL', 'INFO')).upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger(__name__).setLevel(level)
    app.logger.setLevel(level)
