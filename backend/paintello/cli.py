# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/paintello/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default admin/manager/operator users.
# - python -m flask system seed
#   Load the sample materials and products (existing codes are skipped).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username jo --email jo@paintello.local --password "Password123" --role operator
#
# Materials:
# - python -m flask materials low-stock
#   Print materials below their minimum threshold.
# - python -m flask materials reconcile [--fix]
#   Compare stored stock with the movement ledger; --fix appends adjusting movements.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 30
# - python -m flask maintenance cleanup-security-events --retention-days 90

import click
from flask.cli import with_appcontext

from .errors import PaintelloError
from .extensions import db
from .models import ROLES, User
from .quantities import quantity_json
from .seed import DEFAULT_USERS, seed_catalog
from .services import maintenance_service, material_service, session_service
from .services.auth_service import create_user


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables and the default users.

    Users: admin / manager / operator (see seed.DEFAULT_USERS for passwords).
    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing Paintello...")
    db.create_all()

    for username, email, role, password, full_name in DEFAULT_USERS:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            create_user(username, email, password, role=role, full_name=full_name)
        except PaintelloError as e:
            db.session.rollback()
            click.echo(f"FAIL Failed to create user '{username}': {e}")
            continue
        click.echo(f"PASS Created user: {username} ({email}) with role '{role}'")

    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    for username, email, _, password, _ in DEFAULT_USERS:
        click.echo(f"   {username:<9} -> {email:<26} / {password}")
    click.echo("")


@system_group.command('seed')
@with_appcontext
def seed_system():
    """Load the sample materials and products."""
    admin = db.session.query(User).filter_by(role="admin").order_by(User.id).first()
    try:
        materials, products = seed_catalog(created_by=admin)
    except PaintelloError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Seeded {materials} materials and {products} products")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    try:
        user = create_user(username, email, password, role=role)
    except PaintelloError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Active':<8} {'Role'}")
    click.echo("="*80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {active_str:<8} {user.role}")
    click.echo("="*80 + "\n")


@click.group('materials')
def materials_group():
    """Material stock inspection and repair."""


@materials_group.command('low-stock')
@with_appcontext
def low_stock_cli():
    materials = material_service.list_low_stock()
    if not materials:
        click.echo("No materials below threshold.")
        return

    click.echo(f"{'Code':<20} {'Name':<30} {'Stock':>10} {'Min':>10} Unit")
    for m in materials:
        click.echo(f"{m.material_code:<20} {m.name[:30]:<30} {quantity_json(m.current_stock):>10g} {quantity_json(m.min_threshold):>10g} {m.unit}")


@materials_group.command('reconcile')
@click.option('--fix', is_flag=True, help='Append adjusting movements for mismatches')
@with_appcontext
def reconcile_cli(fix):
    """Compare current_stock with the sum of recorded movements."""
    mismatches = material_service.reconcile_stock(fix=fix)
    if not mismatches:
        click.echo("PASS Stock matches the movement ledger for every material.")
        return

    for row in mismatches:
        click.echo(
            f"{'FIXED' if fix else 'MISMATCH'} {row['materialCode']}: stock={row['currentStock']:g} "
            f"ledger={row['ledgerTotal']:g} diff={row['difference']:g}"
        )
    if not fix:
        click.echo("Run again with --fix to append adjusting movements.")


@click.group('maintenance')
def maintenance_group():
    """Retention cleanup."""


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    deleted = session_service.cleanup_expired_sessions(older_than_days=older_than_days)
    click.echo(f"PASS Deleted {deleted} expired or revoked sessions")


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"PASS Deleted {deleted} security events older than {retention_days} days")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(materials_group)
    app.cli.add_command(maintenance_group)
