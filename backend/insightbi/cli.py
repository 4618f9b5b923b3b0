# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/insightbi/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--company "Company Name"]
#   Idempotent bootstrap: missing tables, default company and default users.
# - python -m flask system seed-demo [--company-slug acme] [--products 50] [--months 12] [--seed 7]
#   Fill a company with simulated data (new demo company when no slug is given).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Company management (MULTI-TENANT):
# - python -m flask companies list [--all]
#   List companies (inactive ones with --all).
# - python -m flask companies create --name "Acme SpA" [--slug acme]
#   Create a new company (tenant).
# - python -m flask companies stats acme
#   Usage counters for one company.
#
# User inspection/bootstrap:
# - python -m flask users list [--company-slug acme]
#   List users with role and active status.
# - python -m flask users create --company-slug acme --username admin --email admin@acme.cl --password "Password123!" --role company_admin
#   Create a user (prompts if options are omitted).
#
# Maintenance:
# - python -m flask maintenance refresh-statuses
#   Recompute collection and receivable aging for every company.
# - python -m flask maintenance sync-alerts
#   Rebuild stored stock alerts for every company.
# - python -m flask maintenance cleanup-sessions --retention-days 30
#   Delete session rows that expired before the retention window.

import click
from datetime import timedelta
from flask.cli import with_appcontext

from .extensions import db
from .models import Company, User
from .permissions import ROLES
from .services import analytics_service, collections_service, company_service, session_service
from .services.auth_service import create_user, PasswordValidationError
from .validation import ConflictError, ValidationError


DEFAULT_PASSWORD = "Password123!"


def _company_by_slug(slug):
    company = company_service.get_company_by_slug(slug)
    if company is None:
        raise click.ClickException(f"Company '{slug}' not found")
    return company


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--company', 'company_name', default='InsightBI Demo', help='Company name')
@with_appcontext
def init_system(company_name):
    """
    Initialize the system: default company and default users.

    Creates (skipping whatever already exists):
    - Missing tables
    - Default company (first company in the database, or a new one)
    - Users: superadmin (super_admin), admin (company_admin), analyst, viewer
    - All passwords default to: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing InsightBI...")
    db.create_all()

    company = db.session.query(Company).order_by(Company.id.asc()).first()
    if company is None:
        company = company_service.create_company(
            name=company_name, subscription="enterprise", max_users=50, max_storage_mb=10000,
        )
        click.echo(f"PASS Created default company: {company.name} (ID: {company.id}, Slug: {company.slug})")
    else:
        click.echo(f"PASS Using existing company: {company.name} (ID: {company.id})")

    click.echo("\nUSERS Creating default users...")
    domain = f"{company.slug}.local"
    default_users = [
        ("superadmin", "super_admin"),
        ("admin", "company_admin"),
        ("analyst", "analyst"),
        ("viewer", "viewer"),
    ]

    for username, role in default_users:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            create_user(
                username=username,
                email=f"{username}@{domain}",
                password=DEFAULT_PASSWORD,
                company_id=company.id,
                role=role,
            )
            click.echo(f"PASS Created user: {username} with role '{role}'")
        except (PasswordValidationError, ValueError) as e:
            db.session.rollback()
            click.echo(f"FAIL Failed to create user '{username}': {e}")

    click.echo("\n" + "=" * 60)
    click.echo("DONE InsightBI initialized")
    click.echo("=" * 60)
    click.echo(f"\nCompany: {company.name} (slug: {company.slug})")
    click.echo(f"\nDefault password for every user: {DEFAULT_PASSWORD} (CHANGE IN PRODUCTION!)")


@system_group.command('seed-demo')
@click.option('--company-slug', default=None, help='Existing company to fill; a new demo company otherwise')
@click.option('--products', type=int, default=50, show_default=True)
@click.option('--months', type=int, default=12, show_default=True)
@click.option('--seed', type=int, default=None, help='Random seed for reproducible data')
@with_appcontext
def seed_demo(company_slug, products, months, seed):
    """Generate simulated products, sales, collections and receivables."""
    from .services import mock_data_service

    if company_slug:
        company = _company_by_slug(company_slug)
        try:
            result = mock_data_service.generate_test_data(
                company.id, products=products, months=months, seed=seed,
            )
        except ValidationError as e:
            raise click.ClickException(str(e))
    else:
        company = company_service.create_demo_company(seed=seed)
        result = mock_data_service.data_statistics(company.id)

    click.echo(f"PASS Simulated data for {company.name} (slug: {company.slug})")
    for key, value in result.items():
        if isinstance(value, (int, str)):
            click.echo(f"  {key}: {value}")


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


@click.group('companies')
def companies_group():
    """Company (tenant) management."""


@companies_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive companies')
@with_appcontext
def list_companies_cli(include_inactive):
    companies = company_service.list_companies(include_inactive=include_inactive)
    if not companies:
        click.echo("No companies found.")
        return
    for c in companies:
        status = "active" if c["is_active"] else "inactive"
        click.echo(f"{c['id']:>4}  {c['slug']:<30} {c['name']:<30} {c['subscription']:<12} {status}")


@companies_group.command('create')
@click.option('--name', required=True, help='Company name')
@click.option('--slug', default=None, help='URL slug (derived from name when omitted)')
@click.option('--subscription', type=click.Choice(list(company_service.SUBSCRIPTIONS)), default='trial')
@with_appcontext
def create_company_cli(name, slug, subscription):
    try:
        company = company_service.create_company(name=name, slug=slug, subscription=subscription)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created company {company.name} (ID: {company.id}, Slug: {company.slug})")


@companies_group.command('stats')
@click.argument('slug')
@with_appcontext
def company_stats_cli(slug):
    company = _company_by_slug(slug)
    for key, value in company_service.get_company_stats(company.id).items():
        click.echo(f"{key}: {value}")


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('list')
@click.option('--company-slug', default=None, help='Only users of this company')
@with_appcontext
def list_users_cli(company_slug):
    query = db.session.query(User).order_by(User.company_id.asc(), User.username.asc())
    if company_slug:
        query = query.filter(User.company_id == _company_by_slug(company_slug).id)
    users = query.all()
    if not users:
        click.echo("No users found.")
        return
    for u in users:
        status = "active" if u.is_active else "inactive"
        click.echo(f"{u.id:>4}  {u.username:<20} {u.email:<35} {u.role:<14} company={u.company_id} {status}")


@users_group.command('create')
@click.option('--company-slug', prompt=True, help='Company slug')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@click.option('--full-name', default=None)
@with_appcontext
def create_user_cli(company_slug, username, email, password, role, full_name):
    company = _company_by_slug(company_slug)
    try:
        user = create_user(
            username=username,
            email=email,
            password=password,
            company_id=company.id,
            role=role,
            full_name=full_name,
        )
    except (PasswordValidationError, ValueError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user {user.username} (ID: {user.id}) in {company.slug} with role '{role}'")


@click.group('maintenance')
def maintenance_group():
    """Periodic maintenance tasks."""


@maintenance_group.command('refresh-statuses')
@with_appcontext
def refresh_statuses_cli():
    total = 0
    for company in db.session.query(Company).filter(Company.is_active.is_(True)).all():
        total += collections_service.refresh_collection_statuses(company_id=company.id)
        total += collections_service.refresh_receivables(company_id=company.id)
    click.echo(f"PASS Refreshed {total} collections and receivables")


@maintenance_group.command('sync-alerts')
@with_appcontext
def sync_alerts_cli():
    for company in db.session.query(Company).filter(Company.is_active.is_(True)).all():
        result = analytics_service.sync_stock_alerts(company.id)
        click.echo(f"{company.slug}: {result}")


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    deleted = session_service.purge_expired_sessions(older_than=timedelta(days=retention_days))
    click.echo(f"PASS Deleted {deleted} expired sessions")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(companies_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
