from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import create_access_token, hash_password, token_claims
from config import Settings, get_settings
from database import PRODUCTS, USERS, get_db
from main import app
from payments import get_payment_gateway


class FakeGateway:
    configured = True

    def __init__(self):
        self.amounts = []

    def create_payment_intent(self, amount, currency=None):
        self.amounts.append(amount)
        return f"pi_{amount}_secret_test"


@pytest.fixture
def settings():
    return Settings(access_token_secret="test-access-secret", refresh_token_secret="test-refresh-secret")


@pytest.fixture
def db():
    return mongomock.MongoClient().drapegear_test


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(db, settings, gateway):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(email="user@x.com", password="secret", role="user", name="Test User"):
        doc = {
            "name": name,
            "email": email,
            "password": hash_password(password),
            "role": role,
            "createdAt": datetime.now(timezone.utc),
        }
        db[USERS].insert_one(doc)
        return doc
    return _make


@pytest.fixture
def auth_headers(settings):
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(token_claims(user), settings)}"}
    return _headers


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@x.com", role="admin", name="Admin")


@pytest.fixture
def user_headers(user, auth_headers):
    return auth_headers(user)


@pytest.fixture
def admin_headers(admin, auth_headers):
    return auth_headers(admin)


@pytest.fixture
def seed_products(db):
    def _seed(*products):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        ids = []
        for i, p in enumerate(products):
            doc = {
                "name": f"Product {i}",
                "collection": "summer",
                "category": "shirt",
                "availability": True,
                "price": 10.0,
                "sale_price": 10.0,
                "createdAt": base + timedelta(days=i),
            }
            doc.update(p)
            ids.append(str(db[PRODUCTS].insert_one(doc).inserted_id))
        return ids
    return _seed
