"""
Pytest fixtures for shopcore backend tests.

Provides test database setup, two isolated tenants with users of every
role, a small stocked catalog per tenant, and a test client.
"""

import pytest

from shopcore import create_app
from shopcore.extensions import db
from shopcore.models import Organization, User, OrganizationMember, PlatformAdmin
from shopcore.services import catalog_service
from shopcore.services.auth_service import hash_password


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test (schema is kept)."""
    with app.app_context():
        db.session.rollback()
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


def _make_user(session, email: str, org: Organization | None = None, role: str | None = None) -> User:
    # bcrypt cost 4 in tests (production default is 12)
    user = User(email=email, name=email.split("@")[0], password_hash=hash_password(TEST_PASSWORD, rounds=4))
    session.add(user)
    session.commit()
    if org is not None and role is not None:
        session.add(OrganizationMember(org_id=org.id, user_id=user.id, role=role))
        session.commit()
    return user


# =============================================================================
# TENANTS AND USERS
# =============================================================================

@pytest.fixture(scope='function')
def org_a(db_session):
    """Organization A (first tenant)."""
    org = Organization(name="Acme Outfitters", slug="acme", plan="pro", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Organization B (second tenant)."""
    org = Organization(name="Beta Supply", slug="beta", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def admin_a(db_session, org_a):
    return _make_user(db_session, "admin@acme.test", org_a, "admin")


@pytest.fixture(scope='function')
def manager_a(db_session, org_a):
    return _make_user(db_session, "manager@acme.test", org_a, "manager")


@pytest.fixture(scope='function')
def staff_a(db_session, org_a):
    return _make_user(db_session, "staff@acme.test", org_a, "staff")


@pytest.fixture(scope='function')
def admin_b(db_session, org_b):
    return _make_user(db_session, "admin@beta.test", org_b, "admin")


@pytest.fixture(scope='function')
def outsider(db_session):
    """User with no membership anywhere."""
    return _make_user(db_session, "outsider@nowhere.test")


@pytest.fixture(scope='function')
def platform_admin(db_session):
    user = _make_user(db_session, "root@platform.test")
    db_session.add(PlatformAdmin(user_id=user.id))
    db_session.commit()
    return user


# =============================================================================
# CATALOG
# =============================================================================

@pytest.fixture(scope='function')
def product_a(db_session, org_a, admin_a):
    """Active product in Org A priced at $10.00."""
    return catalog_service.create_product(
        actor_user_id=admin_a.id,
        org_id=org_a.id,
        name="Trail Tee",
        price_cents=1000,
        status="active",
    )


@pytest.fixture(scope='function')
def variant_a(db_session, product_a, admin_a):
    """Default variant, no price override (uses $10.00), 10 in stock."""
    return catalog_service.create_variant(
        actor_user_id=admin_a.id,
        product_id=product_a.id,
        sku="tee-red",
        name="Red",
        stock_quantity=10,
    )


@pytest.fixture(scope='function')
def variant_a2(db_session, product_a, admin_a, variant_a):
    """Second variant with a $15.00 override and 3 in stock."""
    return catalog_service.create_variant(
        actor_user_id=admin_a.id,
        product_id=product_a.id,
        sku="TEE-BLUE",
        name="Blue",
        price_cents=1500,
        stock_quantity=3,
    )


@pytest.fixture(scope='function')
def product_b(db_session, org_b, admin_b):
    return catalog_service.create_product(
        actor_user_id=admin_b.id,
        org_id=org_b.id,
        name="Beta Mug",
        price_cents=800,
        status="active",
    )


@pytest.fixture(scope='function')
def variant_b(db_session, product_b, admin_b):
    return catalog_service.create_variant(
        actor_user_id=admin_b.id,
        product_id=product_b.id,
        sku="MUG-1",
        name="Standard",
        stock_quantity=20,
    )


@pytest.fixture
def customer_info():
    return {
        "name": "Dana Shopper",
        "email": "Dana@Example.com",
        "address": "1 Main St",
        "phone": "555-0100",
    }


def get_auth_token(client, email: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
