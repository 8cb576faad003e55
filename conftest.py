import pytest

from authorization import RoleAddressPolicy
from blockchain import BlockchainConfig, MockBlockchainService
from constants import ROLE_ADDRESSES, UserRole
from main import create_app
from models import db
from storage import LedgerStore, StorageAdapter

MANUFACTURER = ROLE_ADDRESSES[UserRole.MANUFACTURER]
DISTRIBUTOR = ROLE_ADDRESSES[UserRole.DISTRIBUTOR]
PHARMACY = ROLE_ADDRESSES[UserRole.PHARMACY]

NO_DELAY = BlockchainConfig(min_delay=0, max_delay=0, read_min_delay=0, read_max_delay=0)


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "JWT_SECRET_KEY": "test-secret-key-that-is-long-enough-for-hs256",
        "LEDGER_MIN_DELAY_MS": 0,
        "LEDGER_MAX_DELAY_MS": 0,
        "LEDGER_READ_MIN_DELAY_MS": 0,
        "LEDGER_READ_MAX_DELAY_MS": 0,
    })
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return LedgerStore(StorageAdapter(app))


@pytest.fixture
def service(store):
    return MockBlockchainService(store, config=NO_DELAY)


@pytest.fixture
def short_address_service(store):
    """Service whose designated manufacturer is ``0xM``."""
    policy = RoleAddressPolicy({UserRole.MANUFACTURER: "0xM"})
    return MockBlockchainService(store, policy=policy, config=NO_DELAY)


def login(client, role, address=None):
    body = {"role": role}
    if address:
        body["address"] = address
    response = client.post("/login", json=body)
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.get_json()['access_token']}"}
