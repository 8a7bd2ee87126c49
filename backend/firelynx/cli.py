# Overview: Flask CLI command groups for bootstrap, inspection, and back-office numbering fixes.

# backend/firelynx/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent). Prefer `flask db upgrade` outside dev.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Projects / users:
# - python -m flask projects create --title "Villa Fit-out" --client-name "Al Noor"
# - python -m flask projects list
# - python -m flask users create --name "Sara" --email sara@example.com --role manager
#
# Document numbering:
# - python -m flask numbers show [--year 2026]
#   Print the per-year counters without incrementing them.
# - python -m flask numbers next invoice [--year 2026]
#   Burn and print the next number for a kind (manual back-office fixes only).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Project, User
from .services import sequence_service
from .validation import DocumentError
from .time_utils import current_year


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema is in place")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the document counters.
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete")


@click.group('projects')
def projects_group():
    """Project bootstrap commands."""


@projects_group.command('create')
@click.option('--title', prompt=True, help='Project title')
@click.option('--client-name', default=None, help='Client name')
@with_appcontext
def create_project_cli(title, client_name):
    """Create a project that documents can be raised against."""
    project = Project(title=title.strip(), client_name=(client_name or "").strip() or None)
    db.session.add(project)
    db.session.commit()
    click.echo(f"PASS Created project: {project.title} (ID: {project.id})")


@projects_group.command('list')
@with_appcontext
def list_projects_cli():
    """List all projects."""
    projects = db.session.query(Project).order_by(Project.id).all()
    if not projects:
        click.echo("No projects found")
        return
    for project in projects:
        click.echo(f"{project.id:>5}  {project.status:<10}  {project.title}")


@click.group('users')
def users_group():
    """User bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice(['admin', 'manager', 'designer', 'client']), default='manager', help='Role')
@with_appcontext
def create_user_cli(name, email, role):
    """Create a user (staff member or client contact)."""
    email = email.strip().lower()
    if db.session.query(User).filter_by(email=email).first():
        click.echo(f"FAIL A user with email {email} already exists")
        raise SystemExit(1)

    user = User(name=name.strip(), email=email, role=role)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user: {user.name} <{user.email}> as {role} (ID: {user.id})")


@click.group('numbers')
def numbers_group():
    """Document number inspection and repair."""


@numbers_group.command('show')
@click.option('--year', type=int, default=None, help='Calendar year (defaults to all years)')
@with_appcontext
def show_numbers(year):
    """Print the counters without incrementing them."""
    rows = [sequence_service.current_counters(year)] if year else sequence_service.list_counters()
    rows = [row for row in rows if row]
    if not rows:
        click.echo("No documents numbered yet")
        return

    click.echo(f"{'YEAR':<6}{'INV':>8}{'VR':>8}{'TK':>8}{'AP':>8}")
    for row in rows:
        click.echo(
            f"{row['year']:<6}{row['invoice_counter']:>8}{row['variation_counter']:>8}"
            f"{row['ticket_counter']:>8}{row['approval_counter']:>8}"
        )


@numbers_group.command('next')
@click.argument('kind', type=click.Choice(sorted(sequence_service.DOCUMENT_KINDS)))
@click.option('--year', type=int, default=None, help='Calendar year (defaults to the current UTC year)')
@with_appcontext
def next_number_cli(kind, year):
    """
    Allocate and print the next number for KIND.

    The number is consumed even though no document is created. Use only to
    skip a number that was issued outside the system.
    """
    try:
        number = sequence_service.allocate_document_number(kind, year or current_year())
        db.session.commit()
    except DocumentError as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Allocated {number}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(projects_group)
    app.cli.add_command(users_group)
    app.cli.add_command(numbers_group)
