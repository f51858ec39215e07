# ideamarket/cli.py

import click

from . import db
from .engine.ideas import mark_overdue
from .models import Profile


def register_commands(app):

    @app.cli.command('init-db')
    def init_db_command():
        """Creates the database tables."""
        db.create_all()
        click.echo('Initialized the database.')

    @app.cli.command('create-admin')
    @click.argument('email')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option('--name', 'display_name', default='Administrator')
    def create_admin_command(email, password, display_name):
        """Creates an admin profile, or promotes an existing one."""
        profile = Profile.query.filter_by(email=email.lower()).first()
        if profile is None:
            profile = Profile(email=email.lower(), display_name=display_name)
            db.session.add(profile)
        profile.role = 'admin'
        profile.set_password(password)
        db.session.commit()
        click.echo(f'Admin {profile.email} is ready.')

    @app.cli.command('mark-overdue')
    def mark_overdue_command():
        """Marks published ideas past their deadline as overdue."""
        changed = mark_overdue(db.session)
        click.echo(f'{changed} idea(s) marked overdue.')
