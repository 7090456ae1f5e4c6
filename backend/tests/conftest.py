import os
from datetime import datetime, timedelta, timezone

# Engine is built from settings at import time; keep tests off postgres
os.environ.setdefault("DATABASE_URL", "sqlite://")

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.client.api import SellerApiClient
from app.core.database import Base
from app.core.deps import get_db
from app.core.security import create_access_token
from app.main import app
from app.services.credentials import credential_issuer

SELLER_ID = "seller-1"
OTHER_SELLER_ID = "seller-2"
ADMIN_ID = "admin-1"


def listing_fields(**overrides) -> dict:
    fields = {
        "name": "Pixel 8 Pro 256GB",
        "description": "Barely used, comes with the original box and charger.",
        "price": "150000.00",
        "stock": 3,
        "primary_category": "Mobile Phones",
        "sub_category": "Android",
        "image_url_1": "https://img.example.com/pixel-front.jpg",
        "image_url_2": "",
        "ai_enabled": True,
    }
    fields.update(overrides)
    return fields


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_credentials():
    yield
    for product_id in list(credential_issuer._credentials):
        credential_issuer.discard(product_id)


def _auth(subject: str, role: str) -> dict:
    token = create_access_token(subject, extra_claims={"role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def seller_headers():
    return _auth(SELLER_ID, "seller")


@pytest.fixture
def other_seller_headers():
    return _auth(OTHER_SELLER_ID, "seller")


@pytest.fixture
def admin_headers():
    return _auth(ADMIN_ID, "admin")


@pytest_asyncio.fixture
async def seller_api(client):
    """Seller client wired straight into the app (same DB as `client`)."""
    token = create_access_token(SELLER_ID, extra_claims={"role": "seller"})
    api = SellerApiClient(token, base_url="http://testserver", transport=httpx.ASGITransport(app=app))
    try:
        yield api
    finally:
        await api.aclose()
