# Overview: Flask CLI command groups for bootstrap, tenants and booking inspection.

# backend/appointly/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use "flask db upgrade" for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenant management (MULTI-TENANT):
# - python -m flask tenants list
#   List all tenants.
# - python -m flask tenants create --name "Lotus Salon" --code "LOTUS" --timezone "Asia/Taipei"
#   Create a new tenant.
#
# Booking inspection:
# - python -m flask bookings list --tenant-id 1 [--status CONFIRMED] [--date 2099-12-13]
#   List bookings of one tenant.

import click
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from flask.cli import with_appcontext

from .extensions import db
from .errors import BookingEngineError
from .models import Tenant, Staff
from .services import booking_service
from .validation import coerce_date
from .time_utils import fmt_clock


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (idempotent)."""
    db.create_all()
    click.echo("PASS Database tables ready.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask tenants create' to add a tenant.")


@click.group('tenants')
def tenants_group():
    """Tenant management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants():
    """List all tenants."""
    tenants = db.session.query(Tenant).order_by(Tenant.id.asc()).all()

    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Timezone':<20} {'Staff'}")
    click.echo("="*80)

    for tenant in tenants:
        staff_count = db.session.query(Staff).filter_by(tenant_id=tenant.id).count()
        active_str = "Yes" if tenant.is_active else "No"

        click.echo(f"{tenant.id:<5} {tenant.name:<30} {tenant.code or '-':<15} {active_str:<8} {tenant.timezone:<20} {staff_count}")

    click.echo("="*80 + "\n")


@tenants_group.command('create')
@click.option('--name', required=True, help='Tenant name')
@click.option('--code', required=True, help='Short code (unique)')
@click.option('--timezone', 'tz_name', default='UTC', show_default=True, help='IANA timezone for booking times')
@with_appcontext
def create_tenant_cli(name, code, tz_name):
    """Create a new tenant."""
    code = code.strip().upper()
    existing = db.session.query(Tenant).filter_by(code=code).first()
    if existing:
        click.echo(f"FAIL Tenant with code '{code}' already exists")
        return

    if tz_name != "UTC":
        try:
            ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            click.echo(f"FAIL Unknown timezone '{tz_name}'")
            return

    tenant = Tenant(name=name, code=code, timezone=tz_name, is_active=True)
    db.session.add(tenant)
    db.session.commit()

    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, Code: {tenant.code})")


@click.group('bookings')
def bookings_group():
    """Booking inspection commands."""


@bookings_group.command('list')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--status', help='PENDING_CONFIRMATION, CONFIRMED, COMPLETED, CANCELLED, NO_SHOW')
@click.option('--date', 'day', help='Booking date (YYYY-MM-DD)')
@with_appcontext
def list_bookings_cli(tenant_id, status, day):
    """List bookings of one tenant."""
    try:
        bookings = booking_service.list_bookings(
            tenant_id,
            status=status,
            day=coerce_date("date", day) if day else None,
        )
    except BookingEngineError as e:
        click.echo(f"FAIL {e.message}")
        return

    if not bookings:
        click.echo("No bookings found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<6} {'Date':<12} {'Time':<13} {'Status':<22} {'Staff':<20} {'Customer'}")
    click.echo("="*80)

    for b in bookings:
        times = f"{fmt_clock(b.start_time)}-{fmt_clock(b.end_time)}"
        staff_name = b.staff.effective_name if b.staff else '-'
        customer_name = b.customer.name if b.customer else '-'
        click.echo(f"{b.id:<6} {b.booking_date.isoformat():<12} {times:<13} {b.external_status:<22} {staff_name:<20} {customer_name}")

    click.echo("="*80 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(bookings_group)
