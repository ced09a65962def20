# Overview: Flask CLI command groups for bootstrap, credits and consignment operations.

# backend/eventpay/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (development; use `flask db upgrade` for migrations).
#
# Users and sessions:
# - python -m flask users create --username admin --email admin@eventpay.local --role admin
# - python -m flask users list
# - python -m flask users issue-token --username admin
#   Print a new bearer token (shown once).
#
# Credits:
# - python -m flask credits add --organizer-id 2 --amount 500 --as-user admin
#
# Consignment:
# - python -m flask consignment list --as-user admin
# - python -m flask consignment settle --event-id 7 --as-user organizer [--notes "..."]

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import EngineError
from .models import User
from .models.accounts import VALID_ROLES
from .services import credit_service, session_service, settlement_service


def _resolve_user(username: str) -> User:
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        raise click.ClickException(f"User '{username}' not found")
    return user


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice(VALID_ROLES), default='organizer', show_default=True, help='Role')
@click.option('--payment-account-id', default=None, help='Processor account id (CREDIT_CARD prerequisite)')
@with_appcontext
def create_user_cli(username, email, role, payment_account_id):
    """Create a user. A payment account id marks processor onboarding complete."""
    if db.session.query(User).filter_by(username=username).first():
        raise click.ClickException(f"User '{username}' already exists")

    user = User(
        username=username,
        email=email,
        role=role,
        is_active=True,
        payment_account_id=payment_account_id,
        payment_setup_complete=bool(payment_account_id),
    )
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user: {username} ({email}) with role '{role}' (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.username:<20} {user.role:<10} {status}")


@users_group.command('issue-token')
@click.option('--username', required=True, help='Username')
@with_appcontext
def issue_token(username):
    """Create a session and print its bearer token."""
    user = _resolve_user(username)
    try:
        session, token = session_service.create_session(user.id)
    except EngineError as e:
        raise click.ClickException(e.message)
    click.echo(token)
    click.echo(f"Expires at {session.expires_at.isoformat()}Z", err=True)


@click.group('credits')
def credits_group():
    """Organizer prepaid credit commands."""


@credits_group.command('add')
@click.option('--organizer-id', type=int, required=True, help='Organizer user ID')
@click.option('--amount', type=int, required=True, help='Credits to grant')
@click.option('--as-user', 'as_user', required=True, help='Admin username performing the grant')
@with_appcontext
def add_credits_cli(organizer_id, amount, as_user):
    actor = _resolve_user(as_user)
    try:
        account = credit_service.add_credits(organizer_id, amount, actor=actor)
    except EngineError as e:
        raise click.ClickException(e.message)
    click.echo(
        f"PASS Organizer {organizer_id}: {account.credits_remaining} remaining "
        f"({account.credits_used} used of {account.credits_total})"
    )


@click.group('consignment')
def consignment_group():
    """Consignment settlement commands."""


@consignment_group.command('list')
@click.option('--as-user', 'as_user', required=True, help='Username (admins see every event)')
@with_appcontext
def list_consignments(as_user):
    caller = _resolve_user(as_user)
    try:
        rows = settlement_service.list_consignment_events(caller=caller)
    except EngineError as e:
        raise click.ClickException(e.message)

    if not rows:
        click.echo("No consignment events")
        return
    for row in rows:
        state = "SETTLED" if row["settled"] else "OPEN"
        click.echo(
            f"{row['event_id']:>4}  {row['event_name']:<30} {state:<8} "
            f"floated={row['floated_tickets']} sold={row['sold_tickets']} "
            f"revenue={row['total_revenue_cents']} fees={row['total_platform_fee_cents']} "
            f"settlement={row['settlement_amount_cents']}"
        )


@consignment_group.command('settle')
@click.option('--event-id', type=int, required=True, help='Event ID')
@click.option('--as-user', 'as_user', required=True, help='Organizer or admin username')
@click.option('--notes', default=None, help='Settlement notes')
@with_appcontext
def settle_consignment(event_id, as_user, notes):
    caller = _resolve_user(as_user)
    try:
        snapshot = settlement_service.settle(event_id, caller=caller, notes=notes)
    except EngineError as e:
        raise click.ClickException(f"{e.code}: {e.message}")
    click.echo(
        f"PASS Settled event {event_id}: amount={snapshot.settlement_amount_cents} "
        f"sold={snapshot.sold_tickets} revenue={snapshot.total_revenue_cents} "
        f"fees={snapshot.total_platform_fee_cents}"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(credits_group)
    app.cli.add_command(consignment_group)
