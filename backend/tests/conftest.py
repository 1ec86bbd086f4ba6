"""
Pytest fixtures for salon portal backend tests.

Provides an in-memory database, the test client, tenant fixtures
(districts, chains, salons, suppliers), users per role and a recorder for
hosted function calls.
"""

import pytest

from salonportal import create_app
from salonportal.extensions import db
from salonportal.integrations import functions
from salonportal.models import Chain, District, Salon, Supplier, SupplierBrand, SupplierSalonLink
from salonportal.services.auth_service import create_user


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'FUNCTIONS_BASE_URL': '',
        'PORTAL_BASE_URL': 'https://portal.test',
        'HUBSPOT_CLIENT_ID': 'client-id',
        'HUBSPOT_CLIENT_SECRET': 'client-secret',
        'HUBSPOT_REDIRECT_URI': 'https://portal.test/hubspot/callback',
        'HUBSPOT_API_BASE_URL': 'https://api.hubapi.test',
        'HUBSPOT_RETRY_DELAY': 0,
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
        app.config['HUBSPOT_TRANSPORT'] = None


class CallLog(list):
    """(function name, body) tuples in call order, plus canned responses per function."""

    def __init__(self):
        super().__init__()
        self.responses = {}

    def names(self):
        return [name for name, _ in self]

    def bodies(self, name):
        return [body for called, body in self if called == name]


@pytest.fixture(scope='function')
def function_calls(monkeypatch):
    """Record hosted function invocations instead of sending them."""
    calls = CallLog()

    def fake_invoke(name, body, client=None):
        calls.append((name, body))
        response = calls.responses.get(name, {"ok": True})
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(functions, "invoke", fake_invoke)
    return calls


# =============================================================================
# TENANTS
# =============================================================================


@pytest.fixture(scope='function')
def district_north(db_session):
    district = District(name="Nord")
    db_session.add(district)
    db_session.commit()
    return district


@pytest.fixture(scope='function')
def district_south(db_session):
    district = District(name="Sør")
    db_session.add(district)
    db_session.commit()
    return district


@pytest.fixture(scope='function')
def chain(db_session):
    chain = Chain(name="Klipp Kjeden", org_number="911111111")
    db_session.add(chain)
    db_session.commit()
    return chain


@pytest.fixture(scope='function')
def salon_a(db_session, district_north, chain):
    """Salon A: district Nord, in the chain."""
    salon = Salon(
        name="Salong A",
        org_number="923456789",
        member_number="M-100",
        district_id=district_north.id,
        chain_id=chain.id,
    )
    db_session.add(salon)
    db_session.commit()
    return salon


@pytest.fixture(scope='function')
def salon_b(db_session, district_south):
    """Salon B: district Sør, no chain."""
    salon = Salon(
        name="Salong B",
        org_number="987654321",
        member_number="M-200",
        district_id=district_south.id,
    )
    db_session.add(salon)
    db_session.commit()
    return salon


@pytest.fixture(scope='function')
def supplier(db_session):
    """Supplier reporting per-period amounts, with two brands."""
    supplier = Supplier(name="Hårprodukter AS", org_number="955555555")
    db_session.add(supplier)
    db_session.flush()
    db_session.add_all([
        SupplierBrand(supplier_id=supplier.id, name="Wella"),
        SupplierBrand(supplier_id=supplier.id, name="Redken"),
    ])
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def cumulative_supplier(db_session):
    """Supplier reporting running year-to-date totals."""
    supplier = Supplier(name="Kumulativ AS", org_number="966666666", cumulative_reporting=True)
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def supplier_link_a(db_session, supplier, salon_a):
    link = SupplierSalonLink(supplier_id=supplier.id, salon_id=salon_a.id)
    db_session.add(link)
    db_session.commit()
    return link


# =============================================================================
# USERS
# =============================================================================


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory: make_user("stylist", salon_id=...)."""
    counter = {"n": 0}

    def _make(role, **association):
        counter["n"] += 1
        return create_user(
            f"{role}{counter['n']}@portal.test",
            PASSWORD,
            role,
            name=f"{role.title()} {counter['n']}",
            **association,
        )

    return _make


@pytest.fixture(scope='function')
def admin_user(make_user):
    return make_user("admin")


@pytest.fixture(scope='function')
def district_manager(make_user, district_north):
    return make_user("district_manager", district_id=district_north.id)


@pytest.fixture(scope='function')
def salon_owner_a(make_user, salon_a):
    return make_user("salon_owner", salon_id=salon_a.id)


@pytest.fixture(scope='function')
def stylist_a(make_user, salon_a):
    return make_user("stylist", salon_id=salon_a.id)


@pytest.fixture(scope='function')
def supplier_admin(make_user, supplier):
    return make_user("supplier_admin", supplier_id=supplier.id)


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
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


@pytest.fixture(scope='function')
def login(client):
    """login(user) -> Authorization headers for that user."""
    def _login(user):
        token = get_auth_token(client, user.email)
        assert token, f"login failed for {user.email}"
        return auth_headers(token)
    return _login


@pytest.fixture(scope='function')
def admin_headers(login, admin_user):
    return login(admin_user)
