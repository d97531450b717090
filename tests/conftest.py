import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from config.settings import Settings
from core.use_cases.account_use_cases import register_account
from infrastructure.db.sqlite import SQLiteAccountRepository, SQLitePaymentRepository, connect, init_db
from infrastructure.payments.stub_gateway import StubPaymentGateway
from main import create_app

PASSWORD = "abcdef"
PHONE = "1234567890"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DB_PATH=str(tmp_path / "billing.db"),
        LOG_LEVEL="WARNING",
        GATEWAY_MODE="stub",
        GATEWAY_KEY_ID="key_test",
        GATEWAY_KEY_SECRET="test-key-secret",
        GATEWAY_WEBHOOK_SECRET="test-webhook-secret",
        PUBLIC_BASE_URL="http://api.test",
        APP_URL="http://app.test",
    )


@pytest.fixture
def db_path(settings) -> str:
    init_db(settings.DB_PATH)
    return settings.DB_PATH


@pytest.fixture
def conn(db_path):
    conn = connect(db_path)
    yield conn
    conn.close()


@pytest.fixture
def accounts(conn) -> SQLiteAccountRepository:
    return SQLiteAccountRepository(conn)


@pytest.fixture
def payments(conn) -> SQLitePaymentRepository:
    return SQLitePaymentRepository(conn)


@pytest.fixture
def gateway(settings) -> StubPaymentGateway:
    return StubPaymentGateway(
        key_secret=settings.GATEWAY_KEY_SECRET,
        webhook_secret=settings.GATEWAY_WEBHOOK_SECRET,
    )


@pytest.fixture
def app(settings, gateway):
    return create_app(settings, gateway=gateway)


@pytest.fixture
def client(app, db_path):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_account(accounts):
    def _make(email: str, password: str = PASSWORD, phone: str = PHONE, name: str = None):
        return register_account(accounts, email=email, password=password, name=name, phone=phone)
    return _make


def signup(client, email: str, password: str = PASSWORD, phone: str = PHONE) -> dict:
    response = client.post("/accounts", json={
        "action": "signup", "email": email, "password": password, "name": "Test", "phone": phone,
    })
    assert response.status_code == 201, response.text
    return response.json()["account"]


def login(client, email: str, password: str = PASSWORD) -> str:
    response = client.post("/accounts", json={"action": "login", "email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
