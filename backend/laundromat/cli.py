# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/laundromat/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask system seed [--password "Laundry123!"]
#   Idempotent: default admin/staff/driver users, service catalog and business settings.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all staff users with role and active status.
# - python -m flask users create --username maria --name "Maria" --password "Laundry123!" --role staff
#   Create a user (prompts if options are omitted).
#
# Maintenance:
# - python -m flask maintenance purge-expired
#   Delete expired/revoked sessions and expired password reset codes.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import VALID_ROLES, ROLE_ADMIN, ROLE_STAFF, ROLE_DRIVER
from .services.auth_service import create_user, PasswordValidationError
from .services import catalog_service
from .services import maintenance_service
from .services import settings_service
from .validation import ValidationError, ConflictError


DEFAULT_SEED_PASSWORD = "Laundry123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables from the model metadata."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('seed')
@click.option('--password', default=DEFAULT_SEED_PASSWORD, show_default=True,
              help='Password for the default users')
@with_appcontext
def seed(password):
    """
    Seed default users, the service catalog and business settings.

    Creates:
    - Users: admin (admin), staff (staff), driver (driver)
    - Service catalog (only when no services exist)
    - Business settings that are missing (tax_rate, address, hours)

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Seeding laundromat data...")

    click.echo("\nUSERS Creating default users...")
    default_users = [
        ("admin", "Admin", ROLE_ADMIN),
        ("staff", "Staff", ROLE_STAFF),
        ("driver", "Driver", ROLE_DRIVER),
    ]

    for username, name, role in default_users:
        existing = db.session.query(User).filter_by(username=username).first()
        if existing:
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            create_user(username=username, name=name, password=password, role=role)
            click.echo(f"PASS Created user: {username} with role '{role}'")
        except PasswordValidationError as e:
            click.echo(f"FAIL Password validation failed for '{username}': {str(e)}")
            return
        except (ValidationError, ConflictError) as e:
            click.echo(f"FAIL Failed to create user '{username}': {str(e)}")

    created = catalog_service.seed_services()
    click.echo(f"\nPASS Seeded {created} services" if created else "\nWARN  Service catalog not empty, skipping...")

    created = settings_service.seed_defaults()
    click.echo(f"PASS Seeded {created} settings")

    click.echo("\nDONE Seed complete.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("This will delete ALL data. Continue?", abort=True)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset. Run 'python -m flask system seed' to add default data.")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--name', prompt=True, help='Display name stamped onto orders')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, name, password, role):
    """
    Create a new staff user.

    Password must be 8+ characters with at least one letter and one digit.
    """
    try:
        user = create_user(username=username, name=name, password=password, role=role)
        click.echo(f"PASS Created user: {user.username} ({user.name}) with role '{user.role}'")
        click.echo("SECURITY Password securely hashed with bcrypt")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, at least one letter and one digit")
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Name':<30} {'Role':<8} {'Active'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.name:<30} {user.role:<8} {active_str}")

    click.echo("="*80 + "\n")


# =============================================================================
# MAINTENANCE
# =============================================================================

@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('purge-expired')
@with_appcontext
def purge_expired_cli():
    """Delete expired sessions, password reset codes and old login attempts."""
    deleted = maintenance_service.purge_expired()
    click.echo(
        f"Deleted {deleted['sessions']} sessions, {deleted['reset_codes']} reset codes "
        f"and {deleted['login_attempts']} login attempts."
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
