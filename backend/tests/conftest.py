"""
Pytest fixtures for back-office backend tests.

Provides test database setup, tenant fixtures, role-bearing users, catalog
items, login helpers and the test client.
"""

import pytest
from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import Organization, User, InventoryItem
from backoffice.services.auth_service import hash_password, create_default_roles, assign_role
from backoffice.services import permission_service


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Acme Corp", code="ACME", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Beta Inc", code="BETA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


def _setup_roles(org_id: int) -> None:
    create_default_roles(org_id)
    permission_service.initialize_permissions()
    permission_service.assign_default_role_permissions()


@pytest.fixture(scope='function')
def setup_roles(db_session, org_a):
    """Setup default roles and permissions for Organization A."""
    _setup_roles(org_a.id)


def make_user(db_session, org, username: str, role_name: str) -> User:
    """Create a user with one role. Low bcrypt cost keeps the suite fast."""
    _setup_roles(org.id)
    user = User(
        org_id=org.id,
        username=username,
        email=f"{username}@{(org.code or 'org').lower()}.test",
        password_hash=hash_password(TEST_PASSWORD, rounds=4),
    )
    db_session.add(user)
    db_session.commit()
    assign_role(user.id, role_name)
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, org_a, setup_roles):
    return make_user(db_session, org_a, "admin_a", "admin")


@pytest.fixture(scope='function')
def manager_user(db_session, org_a, setup_roles):
    return make_user(db_session, org_a, "manager_a", "manager")


@pytest.fixture(scope='function')
def cashier_user(db_session, org_a, setup_roles):
    return make_user(db_session, org_a, "cashier_a", "cashier")


def make_item(db_session, org, *, sku="SKU-001", name="Widget", cost_price_cents=1000,
              unit_price_cents=2500, current_stock=10) -> InventoryItem:
    item = InventoryItem(
        org_id=org.id,
        sku=sku,
        name=name,
        cost_price_cents=cost_price_cents,
        unit_price_cents=unit_price_cents,
        current_stock=current_stock,
    )
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def item_a(db_session, org_a):
    """Widget in Organization A: cost 10.00, 10 on hand."""
    return make_item(db_session, org_a)


def get_auth_token(client, username: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.username))


@pytest.fixture(scope='function')
def manager_headers(client, manager_user):
    return auth_headers(get_auth_token(client, manager_user.username))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_user):
    return auth_headers(get_auth_token(client, cashier_user.username))
