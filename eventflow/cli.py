import click
from flask import current_app
from flask.cli import with_appcontext

from eventflow.constants import Role
from eventflow.extensions import db
from eventflow.models import User

DEFAULT_USERS = [
    ('admin', 'Admin User', Role.ADMIN),
    ('sales', 'Sales User', Role.SALES),
    ('ops', 'Ops User', Role.OPS),
    ('finance', 'Finance User', Role.FINANCE),
]


def seed_users(password=None):
    """Creates the default account for each role. Existing accounts are left alone."""
    password = password or current_app.config['SEED_USER_PASSWORD']
    domain = current_app.config['SEED_USER_DOMAIN']
    created = []
    for local_part, name, role in DEFAULT_USERS:
        email = f"{local_part}@{domain}"
        if User.query.filter_by(email=email).first():
            continue
        user = User(name=name, email=email, role=role)
        user.set_password(password)
        db.session.add(user)
        created.append(email)
    db.session.commit()
    return created


@click.command('seed-users')
@click.option('--password', default=None, help='Password for new accounts.')
@with_appcontext
def seed_users_command(password):
    """Create the default Admin, Sales, Ops and Finance accounts."""
    created = seed_users(password)
    for email in created:
        click.echo(f"Created {email}")
    if not created:
        click.echo("All default users already exist.")
