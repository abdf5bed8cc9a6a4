# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/kiosco/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "kiosco:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask db upgrade
#   Apply migrations.
# - python -m flask system init [--business-name "Kiosco Club"]
#   Idempotent bootstrap: business configuration row plus default admin and cashier users.
#
# User inspection/bootstrap:
# - python -m flask users list
# - python -m flask users create --username ana --password "Secret123" --role cashier --full-name "Ana"
#
# Shift inspection:
# - python -m flask shifts list [--status OPEN] [--limit 20]

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Shift, User
from .models.auth import ROLES
from .pos.money import money_str
from .services import settings_service
from .services.auth_service import PasswordValidationError, create_user


DEFAULT_PASSWORD = "Password123"

DEFAULT_USERS = [
    ("admin", "Administrador", "admin"),
    ("cajero", "Cajero", "cashier"),
]


@click.group("system")
def system_group():
    """System bootstrap commands."""


@system_group.command("init")
@click.option("--business-name", default=None, help="Business display name")
@with_appcontext
def init_system(business_name):
    """
    Initialize the kiosk: configuration row and default users.

    Creates:
    - Configuration with the business name (DEFAULT_BUSINESS_NAME if omitted)
    - Users: admin (admin), cajero (cashier), password "Password123"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing kiosk...")

    name = business_name or current_app.config["DEFAULT_BUSINESS_NAME"]
    settings_service.set_business_name(name)
    click.echo(f"PASS Business name: {name}")

    for username, full_name, role in DEFAULT_USERS:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        create_user(username=username, password=DEFAULT_PASSWORD, role=role, full_name=full_name)
        click.echo(f"PASS Created user: {username} with role '{role}'")

    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    for username, _, _ in DEFAULT_USERS:
        click.echo(f"   {username:<8} / {DEFAULT_PASSWORD}")


@click.group("users")
def users_group():
    """Operator accounts."""


@users_group.command("list")
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.username.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<10} {'Active':<7} {'Name'}")
    for user in users:
        click.echo(
            f"{user.id:<5} {user.username:<20} {user.role:<10} "
            f"{'yes' if user.is_active else 'no':<7} {user.full_name or ''}"
        )


@users_group.command("create")
@click.option("--username", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--role", type=click.Choice(list(ROLES)), default="cashier", show_default=True)
@click.option("--full-name", default=None)
@with_appcontext
def create_user_cli(username, password, role, full_name):
    """Create an operator."""
    try:
        user = create_user(username=username, password=password, role=role, full_name=full_name)
    except (PasswordValidationError, ValueError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user {user.username} (ID: {user.id}) with role '{user.role}'")


@click.group("shifts")
def shifts_group():
    """Cash-drawer shifts."""


@shifts_group.command("list")
@click.option("--status", type=click.Choice(["OPEN", "CLOSED"]), help="Filter by status")
@click.option("--limit", type=int, default=20, help="Max shifts to show")
@with_appcontext
def list_shifts(status, limit):
    """
    List recent shifts with their reconciliation.

    Example:
        flask shifts list
        flask shifts list --status CLOSED --limit 5
    """
    query = db.session.query(Shift)
    if status:
        query = query.filter_by(status=status)
    shifts = query.order_by(Shift.start_date.desc(), Shift.id.desc()).limit(limit).all()

    if not shifts:
        click.echo("No shifts found.")
        return

    click.echo(
        f"{'ID':<5} {'User':<15} {'Status':<8} {'Opened':<20} "
        f"{'Opening':>10} {'Expected':>10} {'Counted':>10} {'Result'}"
    )
    for shift in shifts:
        click.echo(
            f"{shift.id:<5} {shift.user_name[:15]:<15} {shift.status:<8} "
            f"{shift.start_date:%Y-%m-%d %H:%M:%S}  "
            f"{money_str(shift.opening_cash):>10} {money_str(shift.expected_cash) or '-':>10} "
            f"{money_str(shift.closing_cash) or '-':>10} {shift.reconciliation_status or '-'}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(shifts_group)
