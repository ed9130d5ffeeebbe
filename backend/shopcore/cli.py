# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/shopcore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--org "Demo Store"] [--slug demo]
#   Idempotent bootstrap: creates tables, a demo org, an admin user and a stocked product.
#
# Organization management (MULTI-TENANT):
# - python -m flask orgs list
# - python -m flask orgs create --name "Acme Corp" --slug acme [--plan pro]
#
# Users and access:
# - python -m flask users create --email admin@example.com --password "Password123!"
# - python -m flask users add-member --email admin@example.com --org-id 1 --role admin
# - python -m flask users grant-platform-admin --email admin@example.com
#
# Inventory:
# - python -m flask inventory audit [--org-id 1]
#   Replay the movement log and report variants whose stock counter disagrees.
#
# Maintenance:
# - python -m flask maintenance abandon-carts [--hours 72]
# - python -m flask maintenance cleanup-security-events --retention-days 90

import click
from flask.cli import with_appcontext

from .errors import CommerceError
from .extensions import db
from .models import Organization, OrganizationMember, Product, User
from .services import auth_service, catalog_service, maintenance_service, stock_service, tenant_service


DEFAULT_PASSWORD = "Password123!"


def _user_by_email(email: str) -> User | None:
    return db.session.query(User).filter_by(email=email.strip().lower()).first()


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Demo Store', help='Organization name')
@click.option('--slug', default='demo', help='Organization slug (storefront URL)')
@with_appcontext
def init_system(org_name, slug):
    """
    Initialize a demo tenant: organization, admin user and one stocked product.

    Default admin: admin@shopcore.local / Password123!
    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing shopcore...")
    db.create_all()

    org = db.session.query(Organization).filter_by(slug=slug).first()
    if not org:
        org = tenant_service.create_organization(name=org_name, slug=slug)
        click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, slug: {org.slug})")
    else:
        click.echo(f"PASS Using existing organization: {org.name} (ID: {org.id})")

    admin = _user_by_email("admin@shopcore.local")
    if not admin:
        admin = auth_service.create_user("admin@shopcore.local", DEFAULT_PASSWORD, name="Admin")
        click.echo(f"PASS Created user: {admin.email}")
    auth_service.add_member(admin.id, org.id, "admin")

    if not db.session.query(Product).filter_by(org_id=org.id).first():
        product = catalog_service.create_product(
            actor_user_id=admin.id,
            org_id=org.id,
            name="Classic Tee",
            price_cents=2500,
            status="active",
        )
        for sku, name, stock in (("TEE-S", "Small", 10), ("TEE-M", "Medium", 10), ("TEE-L", "Large", 5)):
            catalog_service.create_variant(
                actor_user_id=admin.id,
                product_id=product.id,
                sku=sku,
                name=name,
                stock_quantity=stock,
            )
        click.echo(f"PASS Created product: {product.name} with 3 variants")

    click.echo("\n" + "=" * 60)
    click.echo("DONE shopcore initialized")
    click.echo("=" * 60)
    click.echo(f"Storefront: /api/store/{org.slug}")
    click.echo(f"Admin login: admin@shopcore.local / {DEFAULT_PASSWORD} (CHANGE IN PRODUCTION!)")


# =============================================================================
# ORGANIZATION MANAGEMENT COMMANDS (MULTI-TENANT)
# =============================================================================

@click.group('orgs')
def orgs_group():
    """Organization (tenant) management commands."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    """List all organizations."""
    orgs = db.session.query(Organization).order_by(Organization.id).all()
    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Slug':<20} {'Plan':<12} {'Active':<8} {'Members'}")
    click.echo("=" * 80)
    for org in orgs:
        member_count = db.session.query(OrganizationMember).filter_by(org_id=org.id).count()
        active_str = "Yes" if org.is_active else "No"
        click.echo(f"{org.id:<5} {org.name:<30} {org.slug:<20} {org.plan:<12} {active_str:<8} {member_count}")
    click.echo("=" * 80 + "\n")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--slug', required=True, help='Storefront slug (unique)')
@click.option('--plan', type=click.Choice(['free', 'pro', 'enterprise']), default='free', show_default=True)
@with_appcontext
def create_org_cli(name, slug, plan):
    """Create a new organization (tenant)."""
    try:
        org = tenant_service.create_organization(name=name, slug=slug, plan=plan)
    except CommerceError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, slug: {org.slug})")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User and membership commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', default=None, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(email, name, password):
    """Create a user account."""
    try:
        user = auth_service.create_user(email, password, name=name)
    except CommerceError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created user: {user.email} (ID: {user.id})")


@users_group.command('add-member')
@click.option('--email', required=True, help='User email')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--role', type=click.Choice(['admin', 'manager', 'staff']), required=True)
@with_appcontext
def add_member_cli(email, org_id, role):
    """Grant a user a role in an organization."""
    user = _user_by_email(email)
    if not user:
        click.echo(f"FAIL User '{email}' not found")
        return
    if not db.session.get(Organization, org_id):
        click.echo(f"FAIL Organization ID {org_id} not found")
        return
    auth_service.add_member(user.id, org_id, role)
    click.echo(f"PASS {user.email} is now {role} of organization {org_id}")


@users_group.command('grant-platform-admin')
@click.option('--email', required=True, help='User email')
@with_appcontext
def grant_platform_admin_cli(email):
    """Make a user a cross-organization platform admin."""
    user = _user_by_email(email)
    if not user:
        click.echo(f"FAIL User '{email}' not found")
        return
    auth_service.grant_platform_admin(user.id)
    click.echo(f"PASS {user.email} is now a platform admin")


# =============================================================================
# INVENTORY COMMANDS
# =============================================================================

@click.group('inventory')
def inventory_group():
    """Inventory ledger commands."""


@inventory_group.command('audit')
@click.option('--org-id', type=int, default=None, help='Limit to one organization')
@with_appcontext
def audit_inventory_cli(org_id):
    """Check every variant's stock against its movement log."""
    mismatches = stock_service.audit_stock(org_id)
    if not mismatches:
        click.echo("PASS Stock counters match the movement log.")
        return

    click.echo(f"FAIL {len(mismatches)} variant(s) disagree with the movement log:")
    for row in mismatches:
        click.echo(
            f"  variant {row['variant_id']} ({row['sku']}): stock={row['stock_quantity']} "
            f"replayed={row['replayed_quantity']} diff={row['difference']:+d}"
        )
    raise SystemExit(1)


# =============================================================================
# MAINTENANCE COMMANDS
# =============================================================================

@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('abandon-carts')
@click.option('--hours', type=int, default=None, help='Idle hours before a cart is abandoned (default: config)')
@with_appcontext
def abandon_carts_cli(hours):
    """Mark stale active carts as abandoned."""
    count = maintenance_service.abandon_stale_carts(older_than_hours=hours)
    click.echo(f"Abandoned {count} stale carts.")


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)  # Multi-tenant organization management
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(maintenance_group)
