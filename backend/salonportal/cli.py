# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/salonportal/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-email admin@har1.local]
#   Idempotent bootstrap: creates tables and the first admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--role stylist]
#   List users with role, association and active status.
# - python -m flask users create --email ola@example.no --password "Password123!" --role salon_owner --salon-id 1
#   Create a user (prompts if options are omitted).
#
# Tariffs:
# - python -m flask tariffs copy-year 2025 2026 --adjustment-pct 4.5 [--replace]
#   Copy every bracket to a new year with a percentage raise.
#
# Bonus:
# - python -m flask bonus calculate --supplier-id 3 --period 2026-04
#   Recalculate loyalty bonus for one supplier and month.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete expired and revoked session tokens.
# - python -m flask maintenance cleanup-security-events --retention-days 90
#   Delete security events older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .permissions import ALL_ROLES
from .services.auth_service import create_user, PasswordValidationError
from .services import bonus_service, permission_service, session_service, tariff_service
from .validation import ConflictError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@har1.local', show_default=True, help='Email of the first admin')
@click.option('--admin-password', default='Password123!', help='Password of the first admin')
@with_appcontext
def init_system(admin_email, admin_password):
    """
    Initialize the portal: tables and a first admin account.

    Safe to re-run; an existing admin is left untouched.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing salon portal...")
    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(User).filter(User.role == "admin").first()
    if existing:
        click.echo(f"WARN  Admin '{existing.email}' already exists, skipping...")
        return

    try:
        user = create_user(admin_email, admin_password, "admin", name="Administrator")
    except (PasswordValidationError, ValueError) as e:
        click.echo(f"FAIL Could not create admin: {e}")
        return

    click.echo(f"PASS Created admin: {user.email}")
    click.echo("\nSECURITY WARNING: change the admin password before going live.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm dropping all data')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        return
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--role', type=click.Choice(list(ALL_ROLES)), help='Only this role')
@with_appcontext
def list_users_cli(role):
    """List users with role, association and active status."""
    query = db.session.query(User)
    if role:
        query = query.filter(User.role == role)
    users = query.order_by(User.email.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<35} {'Role':<22} {'Assoc':<16} {'Active'}")
    click.echo("="*90)
    for user in users:
        if user.salon_id:
            assoc = f"salon:{user.salon_id}"
        elif user.district_id:
            assoc = f"district:{user.district_id}"
        elif user.supplier_id:
            assoc = f"supplier:{user.supplier_id}"
        else:
            assoc = "-"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<35} {user.role:<22} {assoc:<16} {active_str}")
    click.echo("="*90 + "\n")


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address (login)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ALL_ROLES)), prompt=True, help='Role')
@click.option('--name', help='Display name')
@click.option('--salon-id', type=int, help='Salon for salon roles')
@click.option('--district-id', type=int, help='District for district managers')
@click.option('--supplier-id', type=int, help='Supplier for supplier roles')
@with_appcontext
def create_user_cli(email, password, role, name, salon_id, district_id, supplier_id):
    """
    Create a new user.

    Salon roles need --salon-id, district_manager needs --district-id and
    supplier roles need --supplier-id.
    """
    try:
        user = create_user(
            email,
            password,
            role,
            name=name,
            salon_id=salon_id,
            district_id=district_id,
            supplier_id=supplier_id,
        )
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        return
    except (ConflictError, ValueError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created user {user.email} (ID: {user.id}) with role '{user.role}'")


# =============================================================================
# TARIFF COMMANDS
# =============================================================================

@click.group('tariffs')
def tariffs_group():
    """Wage tariff commands."""


@tariffs_group.command('copy-year')
@click.argument('source_year', type=int)
@click.argument('target_year', type=int)
@click.option('--adjustment-pct', type=float, default=0.0, show_default=True, help='Raise in percent')
@click.option('--replace', is_flag=True, help='Overwrite brackets already in the target year')
@with_appcontext
def copy_year_cli(source_year, target_year, adjustment_pct, replace):
    """Copy a tariff year with a percentage adjustment."""
    try:
        rows = tariff_service.copy_year(source_year, target_year, adjustment_pct, replace=replace)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Copied {len(rows)} brackets from {source_year} to {target_year} ({adjustment_pct:+.2f}%)")


# =============================================================================
# BONUS COMMANDS
# =============================================================================

@click.group('bonus')
def bonus_group():
    """Bonus calculation commands."""


@bonus_group.command('calculate')
@click.option('--supplier-id', type=int, required=True, help='Supplier ID')
@click.option('--period', required=True, help='Month as YYYY-MM')
@with_appcontext
def calculate_cli(supplier_id, period):
    """Recalculate loyalty bonus for one supplier and period."""
    try:
        run = bonus_service.calculate_period(supplier_id, period)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return
    summary = run.to_dict()
    click.echo(f"PASS {len(run.calculations)} calculations for supplier {supplier_id} {period}")
    if summary["skipped_frozen_salon_ids"]:
        click.echo(f"WARN  Skipped approved/paid salons: {summary['skipped_frozen_salon_ids']}")
    if summary["missing_rules"]:
        click.echo(f"WARN  No rule matched: {summary['missing_rules']}")


# =============================================================================
# MAINTENANCE COMMANDS
# =============================================================================

@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired and revoked session tokens."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} expired sessions.")


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """Delete security events older than the retention window."""
    deleted = permission_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(tariffs_group)
    app.cli.add_command(bonus_group)
    app.cli.add_command(maintenance_group)
