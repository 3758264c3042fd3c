# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/marketplace/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to marketplace (PowerShell: $env:FLASK_APP="marketplace").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create tables (development databases) and seed the vendor/root roles.
#
# User inspection / role changes:
# - python -m flask users list
#   List all users with role, phone and vendor profile.
# - python -m flask users set-role ana@example.com root
#   Manually elevate (or demote) a user. Session resolution never changes roles.
#
# Maintenance:
# - python -m flask maintenance cleanup-share-links [--dry-run]
#   Delete catalog share links whose week has ended.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Role, ROLE_NAMES
from .services import user_service
from .services.identity_service import ensure_roles
from .services.share_service import cleanup_expired_links
from .validation import NotFoundError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the marketplace database.

    Creates missing tables (use `flask db upgrade` for managed databases)
    and seeds the enumerated roles. Idempotent.
    """
    click.echo("START Initializing marketplace...")

    db.create_all()
    click.echo("PASS Tables ready")

    ensure_roles()
    roles = db.session.query(Role).order_by(Role.id).all()
    click.echo(f"PASS Roles: {', '.join(r.name for r in roles)}")

    click.echo("\nDONE Marketplace initialized.")
    click.echo("Users are created on first sign-in; promote an admin with:")
    click.echo("   flask users set-role <email> root")


@click.group('users')
def users_group():
    """User inspection and role management."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = user_service.list_users()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<6} {'EMAIL':<36} {'ROLE':<8} {'PHONE':<16} VENDOR")
    click.echo("-" * 90)
    for user in users:
        profile = user.vendor_profile
        click.echo(
            f"{user.id:<6} {user.email:<36} {user.role_name or '-':<8} "
            f"{user.phone or '-':<16} {profile.slug if profile else '-'}"
        )


@users_group.command('set-role')
@click.argument('email')
@click.argument('role', type=click.Choice(ROLE_NAMES))
@with_appcontext
def set_role(email, role):
    """Change the role of the user with EMAIL."""
    ensure_roles()
    user = user_service.find_user_by_email(email)
    if user is None:
        raise click.ClickException(f"No user with email {email}")

    try:
        user_service.set_role(user, role)
    except (NotFoundError, ValidationError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS {user.email} is now '{role}'")


@click.group('maintenance')
def maintenance_group():
    """Data housekeeping."""


@maintenance_group.command('cleanup-share-links')
@click.option('--dry-run', is_flag=True, help='Only count expired links')
@with_appcontext
def cleanup_share_links(dry_run):
    """Delete catalog share links whose week has ended."""
    count = cleanup_expired_links(dry_run=dry_run)
    if dry_run:
        click.echo(f"DRY RUN {count} expired share link(s) would be deleted")
    else:
        click.echo(f"PASS Deleted {count} expired share link(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
