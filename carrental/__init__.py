# coding: utf8
from logging import DEBUG

import click
from flask import Flask
from flask_cors import CORS
from werkzeug.exceptions import default_exceptions

from carrental.errors.handler import api_error_handler
from carrental.extensions import db, make_celery


def create_app(config_app):
    app = Flask(__name__)
    app.config.from_object(config_app)

    CORS(app, resources={r"/*": {"origins": app.config["CORS_SCHEME"]}})
    __init_app(app)
    __config_logging(app)
    __register_blueprint(app)
    __config_error_handlers(app)
    __register_commands(app)

    @app.route("/", methods=["GET"])
    def index():
        return {"message": "Vehicle rental API"}

    return app


def __config_logging(app):
    app.logger.setLevel(DEBUG)
    app.logger.info("Start flask...")


def __register_blueprint(app):
    from carrental.api import bp as api_bp

    app.register_blueprint(api_bp)


def __init_app(app):
    # models must be imported before create_all
    from carrental.models import order, payment, payment_logs, vehicle  # noqa: F401

    db.init_app(app)

    celery = make_celery(app)
    app.extensions["celery"] = celery

    app.logger.info("Initial app...")


def __config_error_handlers(app):
    for exp in default_exceptions:
        app.register_error_handler(exp, api_error_handler)
    app.register_error_handler(Exception, api_error_handler)


def __register_commands(app):
    @app.cli.command("init-db")
    @click.option("--drop", is_flag=True, help="Drop existing tables first.")
    def init_db(drop):
        """Create the database tables."""
        if drop:
            db.drop_all()
        db.create_all()
        click.echo("Database initialized")
