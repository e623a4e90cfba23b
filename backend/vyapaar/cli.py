# Overview: Flask CLI command groups for bootstrap, owner accounts and quick analytics.

# backend/vyapaar/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent). Use "flask db upgrade" for migrations.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Owner accounts:
# - python -m flask owners create --email owner@shop.test --password "Password123!" --business "My Shop"
#   Create an owner account, optionally with a business profile.
# - python -m flask owners list
#   List owners with document counts.
#
# Analytics:
# - python -m flask analytics summary --email owner@shop.test
#   Print revenue, monthly revenue, top customers and top items for an owner.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Document
from .services.auth_service import create_user, normalize_email, AccountExistsError, PasswordValidationError
from .services import analytics_service
from .services.profile_service import owner_zone, upsert_profile
from .money import from_cents
from .time_utils import utcnow


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
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

    click.echo("PASS Database reset complete.")


@click.group('owners')
def owners_group():
    """Owner account commands."""


@owners_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--business', default=None, help='Business name for the profile')
@click.option('--timezone', 'tz_name', default=None, help='IANA timezone, e.g. Asia/Kolkata')
@with_appcontext
def create_owner_cli(email, password, business, tz_name):
    """
    Create an owner account.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter, one lowercase letter and one digit
    - At least one special character
    """
    try:
        user = create_user(email, password)
        if business:
            upsert_profile(user.id, {"name": business, "timezone": tz_name})
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    except AccountExistsError as e:
        click.echo(f"FAIL {str(e)}")
        return
    except ValueError as e:
        click.echo(f"FAIL Failed to create owner: {str(e)}")
        return

    click.echo(f"PASS Created owner: {user.email} (ID: {user.id})")
    click.echo("SECURITY Password securely hashed with bcrypt")


@owners_group.command('list')
@with_appcontext
def list_owners():
    """List all owners."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No owners found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Email':<35} {'Active':<8} {'Business':<20} {'Docs'}")
    click.echo("="*80)

    for user in users:
        doc_count = db.session.query(Document).filter_by(owner_id=user.id).count()
        business = user.profile.name if user.profile else "-"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<35} {active_str:<8} {business:<20} {doc_count}")

    click.echo("="*80 + "\n")


@click.group('analytics')
def analytics_group():
    """Revenue analytics commands."""


@analytics_group.command('summary')
@click.option('--email', required=True, help='Owner email')
@click.option('--top', 'top_n', default=3, show_default=True, help='Rows in the top lists')
@with_appcontext
def summary_cli(email, top_n):
    """Print the dashboard summary for one owner."""
    user = db.session.query(User).filter_by(email=normalize_email(email)).first()
    if not user:
        click.echo(f"FAIL Owner {email} not found")
        return

    documents = [d.to_dict() for d in db.session.query(Document).filter_by(owner_id=user.id).all()]
    summary = analytics_service.dashboard_summary(documents, now=utcnow(), tz=owner_zone(user.id), top_n=top_n)

    click.echo(f"Total revenue:    {from_cents(summary['total_revenue_cents'])} ({summary['total_documents']} documents)")
    click.echo(f"This month:       {from_cents(summary['monthly_revenue_cents'])} ({summary['monthly_documents']} documents)")
    click.echo(f"Today:            {from_cents(summary['today_revenue_cents'])}")

    click.echo("\nTop customers:")
    for row in summary["top_customers"]:
        click.echo(f"  {row['name']:<30} {from_cents(row['total_spend_cents']):>12}  ({row['document_count']})")

    click.echo("\nTop items:")
    for row in summary["top_products"]:
        click.echo(f"  {row['name']:<30} {from_cents(row['revenue_cents']):>12}  x{row['quantity_sold']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(owners_group)
    app.cli.add_command(analytics_group)
