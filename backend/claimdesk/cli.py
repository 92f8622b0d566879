# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/claimdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init --email admin@example.com --name "Administrator"
#   Create tables if missing and seed the first admin (prompts for password).
#   Idempotent: an existing account with that email is left alone.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list [--role worker] [--status active]
# - python -m flask users create --name "Jane Doe" --email jane@example.com --department Finance --role accountant
# - python -m flask users set-status HFA-W-1001 inactive
#
# Claims:
# - python -m flask claims list [--status pending] [--limit 20]
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete expired or revoked sessions older than 30 days.

import click
from flask.cli import with_appcontext

from .errors import ClaimdeskError
from .extensions import db
from .models import Claim, User
from .permissions import Role
from .services import audit_service, identity_service, session_service
from .services.audit_service import SYSTEM_ACTOR


ROLE_CHOICES = [r.value for r in Role]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--email', prompt=True, help='Admin email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@click.option('--name', default='Administrator', show_default=True, help='Admin display name')
@click.option('--department', default='Administration', show_default=True, help='Admin department')
@with_appcontext
def init_system(email, password, name, department):
    """
    Create tables and seed the first admin account.

    This is the only way an admin comes into existence without another
    admin: there are no built-in credentials in the login path. The seed
    is recorded in the audit log as a system action.
    """
    click.echo("START Initializing claimdesk...")

    db.create_all()
    click.echo("PASS Tables ready")

    try:
        user, created = identity_service.seed_admin(
            email=email, password=password, name=name, department=department,
        )
    except ClaimdeskError as e:
        click.echo(f"FAIL Could not create admin: {e.message}")
        raise SystemExit(1)

    if not created:
        click.echo(f"PASS Admin already exists: {user.email} ({user.employee_id})")
        return

    audit_service.record(
        "create",
        actor=SYSTEM_ACTOR,
        entity_type="user",
        entity_id=user.id,
        details=f"Seeded admin {user.employee_id} ({user.email})",
    )
    click.echo(f"PASS Created admin: {user.email} ({user.employee_id})")
    click.echo("SECURITY Password securely hashed with bcrypt")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to seed an admin.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--department', prompt=True, help='Department')
@click.option('--role', type=click.Choice(ROLE_CHOICES), default='worker', show_default=True, help='Role')
@click.option('--employee-id', default=None, help='Employee id (auto-assigned when omitted)')
@with_appcontext
def create_user_cli(name, email, password, department, role, employee_id):
    """Create a user. Password must be at least 6 characters."""
    try:
        user = identity_service.create_user(
            name=name,
            email=email,
            password=password,
            department=department,
            role=role,
            employee_id=employee_id,
        )
    except ClaimdeskError as e:
        db.session.rollback()
        click.echo(f"FAIL Failed to create user: {e.message}")
        raise SystemExit(1)

    audit_service.record(
        "create",
        actor=SYSTEM_ACTOR,
        entity_type="user",
        entity_id=user.id,
        details=f"Created user {user.employee_id} ({user.role}) from CLI",
    )
    click.echo(f"PASS Created user: {user.email} ({user.employee_id}) with role '{user.role}'")


@users_group.command('list')
@click.option('--role', type=click.Choice(ROLE_CHOICES), help='Filter by role')
@click.option('--status', type=click.Choice(['active', 'inactive', 'suspended']), help='Filter by status')
@with_appcontext
def list_users(role, status):
    """List users."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)
    if status:
        query = query.filter_by(status=status)

    users = query.order_by(User.employee_id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Employee ID':<14} {'Name':<24} {'Email':<32} {'Role':<14} {'Status'}")
    click.echo("="*100)
    for user in users:
        click.echo(
            f"{user.id:<5} {user.employee_id:<14} {user.name[:23]:<24} "
            f"{user.email[:31]:<32} {user.role:<14} {user.status}"
        )
    click.echo("="*100 + "\n")


@users_group.command('set-status')
@click.argument('handle')
@click.argument('status', type=click.Choice(['active', 'inactive', 'suspended']))
@with_appcontext
def set_user_status_cli(handle, status):
    """Set a user's status by employee id or email. Non-active revokes sessions."""
    user = identity_service.find_by_login_handle(handle)
    if not user:
        click.echo(f"FAIL User '{handle}' not found")
        raise SystemExit(1)

    previous = user.status
    identity_service.set_status(user, status)
    revoked = 0
    if status != "active":
        revoked = session_service.revoke_all_user_sessions(user.id, reason=f"Account {status}")

    audit_service.record(
        "update",
        actor=SYSTEM_ACTOR,
        entity_type="user",
        entity_id=user.id,
        details=f"User {user.employee_id} status {previous} -> {status} from CLI",
    )
    click.echo(f"PASS {user.employee_id}: {previous} -> {status} ({revoked} sessions revoked)")


@click.group('claims')
def claims_group():
    """Claim inspection commands."""


@claims_group.command('list')
@click.option('--status', help='Filter by status')
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def list_claims_cli(status, limit):
    """List the most recent claims."""
    query = db.session.query(Claim)
    if status:
        query = query.filter_by(status=status)
    claims = query.order_by(Claim.created_at.desc(), Claim.id.desc()).limit(limit).all()

    if not claims:
        click.echo("No claims found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'Claim':<14} {'Employee':<14} {'Date':<12} {'Category':<18} {'Amount':>12} {'Status'}")
    click.echo("="*100)
    for claim in claims:
        amount = f"{claim.amount} {claim.currency}"
        click.echo(
            f"{claim.claim_number:<14} {claim.employee_id:<14} {claim.expense_date.isoformat():<12} "
            f"{claim.category:<18} {amount:>12} {claim.status}"
        )
    click.echo("="*100 + "\n")


@click.group('maintenance')
def maintenance_group():
    """Data retention and cleanup commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired or revoked sessions older than 30 days."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} sessions")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(claims_group)
    app.cli.add_command(maintenance_group)
