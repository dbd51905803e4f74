"""
cli.py — Admin account commands for the `flask` CLI.

    flask --app backend.wsgi create-admin --email a@x.com --name Admin --password ...
    flask --app backend.wsgi promote-admin --email a@x.com

Signup only ever creates customers; these commands are the only way to
obtain an admin account.
"""

from __future__ import annotations

import click
from flask import Flask
from flask.cli import with_appcontext
from sqlalchemy import select

from backend.app.auth_settings import get_auth_settings
from backend.app.extensions import db
from backend.app.models.user import Role, User
from backend.app.services.auth_service import hash_password


def _find_user(email: str) -> User | None:
    return db.session.execute(
        select(User).where(User.email == email.strip().lower())
    ).scalar_one_or_none()


@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--name", required=True)
@click.option("--password", required=True, prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_admin(email: str, name: str, password: str) -> None:
    """Create a new admin account."""
    if len(password) < 6:
        raise click.BadParameter("must be at least 6 characters.", param_hint="--password")
    if _find_user(email) is not None:
        raise click.ClickException(f"A user with email {email} already exists.")

    user = User(
        name=name.strip(),
        email=email.strip().lower(),
        password_hash=hash_password(password, get_auth_settings().bcrypt_rounds),
        role=Role.ADMIN,
    )
    db.session.add(user)
    db.session.commit()
    click.echo(f"Admin created: {user.id} {user.email}")


@click.command("promote-admin")
@click.option("--email", required=True)
@with_appcontext
def promote_admin(email: str) -> None:
    """Give an existing account the admin role."""
    user = _find_user(email)
    if user is None:
        raise click.ClickException(f"No user with email {email}.")
    user.role = Role.ADMIN
    db.session.commit()
    click.echo(f"User {user.id} {user.email} is now an admin")


def register_cli(app: Flask) -> None:
    app.cli.add_command(create_admin)
    app.cli.add_command(promote_admin)
