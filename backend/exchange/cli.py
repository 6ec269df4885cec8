# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/exchange/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
#   List all accounts with role and active status.
# - python -m flask users create --email admin@exchange.local --password "Password123!" --role admin
#   Create an account (prompts if options are omitted).
#
# Points:
# - python -m flask points charge --admin-email admin@exchange.local --user-id 2 --amount 500
#   Top up a user's points balance.
# - python -m flask points verify [--user-id 2]
#   Replay the ledger and compare it with stored balances.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import ExchangeError
from .models import PointsAccount, User
from .models.users import USER_ROLES
from .money import format_amount
from .services import points_service
from .services.auth_service import create_user


@click.group('system')
def system_group():
    """System maintenance commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask users create' to add an admin.")


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(USER_ROLES), default='user', show_default=True)
@click.option('--company', 'company_name', default=None, help='Company name')
@click.option('--phone', 'phone_number', default=None)
@click.option('--address', default=None)
@click.option('--business-number', default=None)
@with_appcontext
def create_user_command(email, password, role, company_name, phone_number, address, business_number):
    """Create an account."""
    try:
        user = create_user(
            email,
            password,
            role=role,
            company_name=company_name,
            phone_number=phone_number,
            address=address,
            business_number=business_number,
        )
    except ExchangeError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created user {user.email} (ID: {user.id}, role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles and point balances."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Email':<32} {'Role':<7} {'Company':<28} {'Active':<8} {'Points'}")
    click.echo("="*100)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        balance = format_amount(points_service.get_balance(user.id))
        click.echo(
            f"{user.id:<5} {user.email:<32} {user.role:<7} {(user.company_name or '-'):<28} {active_str:<8} {balance}"
        )

    click.echo("="*100 + "\n")


@click.group('points')
def points_group():
    """Points ledger administration."""


@points_group.command('charge')
@click.option('--admin-email', required=True, help='Admin account performing the charge')
@click.option('--user-id', type=int, required=True)
@click.option('--amount', required=True, help='Points to add, e.g. 500 or 12.50')
@click.option('--description', default=None)
@with_appcontext
def charge_points(admin_email, user_id, amount, description):
    """Top up a user's points balance."""
    admin = db.session.query(User).filter_by(email=admin_email.strip().lower()).first()
    if not admin:
        raise click.ClickException(f"No user with email {admin_email}")

    try:
        movement = points_service.charge(user_id, amount, admin.id, description=description)
    except ExchangeError as e:
        raise click.ClickException(e.message)

    click.echo(
        f"PASS Charged {format_amount(movement.transaction.amount)} points to user {user_id}: "
        f"{format_amount(movement.balance_before)} -> {format_amount(movement.balance_after)}"
    )


@points_group.command('verify')
@click.option('--user-id', type=int, default=None, help='Verify a single user (default: all accounts)')
@with_appcontext
def verify_points(user_id):
    """Replay the ledger and compare it with stored balances."""
    if user_id:
        user_ids = [user_id]
    else:
        user_ids = [row.user_id for row in db.session.query(PointsAccount.user_id).order_by(PointsAccount.user_id)]

    failures = 0
    for uid in user_ids:
        problems = points_service.verify_account(uid)
        if problems:
            failures += 1
            click.echo(f"FAIL user {uid}:")
            for problem in problems:
                click.echo(f"  - {problem}")
        else:
            click.echo(f"PASS user {uid}: {format_amount(points_service.get_balance(uid))}")

    if failures:
        raise click.ClickException(f"{failures} account(s) failed verification")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(points_group)
