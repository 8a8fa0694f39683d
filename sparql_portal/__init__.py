"""
SPARQL Portal - Application Factory
"""
import logging
import os

import click
from flask import Flask, request

from sparql_portal.backend.identity import identity
from sparql_portal.errors import PortalError
from sparql_portal.extensions import db, babel
from sparql_portal.routes import register_blueprints
from config.settings import config


def get_locale():
    """Determine the best locale for the user."""
    lang = request.cookies.get('babel_translation')
    if lang:
        return lang
    return request.accept_languages.best_match(['en', 'es'])


def create_app(config_name=None):
    """Application Factory."""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config.get(config_name, config['default']))

    level = app.config['LOG_LEVEL']
    logging.getLogger('sparql_portal').setLevel(level)
    app.logger.setLevel(level)

    # Initialize extensions
    db.init_app(app)
    babel.init_app(app, locale_selector=get_locale)
    identity.init_app(app)

    # Context processor for templates
    @app.context_processor
    def inject_conf_var():
        return dict(get_locale=get_locale)

    # Register blueprints
    register_blueprints(app)

    # CLI Commands
    register_cli_commands(app)

    return app


def register_cli_commands(app):
    """Register CLI commands."""

    @app.cli.command("init-db")
    def init_db_command():
        """Creates database tables."""
        db.create_all()
        click.echo("Initialized the database.")

    @app.cli.command("create-admin")
    @click.argument("email")
    @click.argument("password")
    @click.option("--name", default=None, help="Full name of the admin.")
    def create_admin_command(email, password, name):
        """Creates an approved admin account."""
        from sparql_portal.backend.store import TableStore
        from sparql_portal.services.registrations import create_admin_account
        try:
            profile = create_admin_account(identity.client(), TableStore(), email, password, name)
        except PortalError as exc:
            raise click.ClickException(exc.message)
        click.echo(f"Admin {profile['email']} created.")

    @app.cli.command("check-registrations")
    def check_registrations_command():
        """Reports registration requests and profiles that disagree."""
        from sparql_portal.backend.store import TableStore
        from sparql_portal.services.registrations import find_inconsistencies
        accounts = identity.list_users()
        if accounts.error:
            raise click.ClickException(accounts.error.message)
        problems = find_inconsistencies(TableStore(), accounts.data)
        for problem in problems:
            click.echo(f"{problem.kind}: user={problem.user_id} request={problem.request_id} ({problem.detail})")
        if problems:
            raise SystemExit(1)
        click.echo("Registrations are consistent.")
