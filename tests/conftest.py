"""
Shared test fixtures — SQLite test database, test client, sample pricebook.
"""

import os
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Point the app at the test database before importing app modules
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["APP_ENV"] = "test"

from foamquote.database import Base, get_db
from foamquote.main import app


TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


# Fixed ids so tests can reference entities across the payload
EPE_ID = "11111111-1111-4111-8111-111111111111"
XLPE_ID = "22222222-2222-4222-8222-222222222222"
PU_ID = "33333333-3333-4333-8333-333333333333"
CAVITY_ID = "44444444-4444-4444-8444-444444444444"
RULE_CI_ID = "55555555-5555-4555-8555-555555555555"
RULE_FLAT_ID = "66666666-6666-4666-8666-666666666666"
RULE_TIERED_ID = "77777777-7777-4777-8777-777777777777"
PRODUCT_ID = "88888888-8888-4888-8888-888888888888"
MISSING_ID = "99999999-9999-4999-8999-999999999999"


def sample_pricebook_payload(**overrides) -> dict:
    """A complete, valid raw pricebook."""
    payload = {
        "name": "Default Foam Price Book",
        "version": "1.0.0",
        "currency": "USD",
        "created_at": "2026-01-15T12:00:00Z",
        "tables": {
            "materials": [
                {"id": EPE_ID, "name": "EPE Foam 2.0", "density_lb_ft3": 2.0,
                 "supplier_code": "EPE-20", "color": "white", "price_per_ci": "0.05"},
                {"id": XLPE_ID, "name": "XLPE", "density_lb_ft3": 1.8, "color": "black"},
                {"id": PU_ID, "name": "PU Ester 1.7", "density_lb_ft3": 1.7, "color": "charcoal"},
            ],
            "cavities": [
                {"id": CAVITY_ID, "shape": "rect", "dims": {"x": 4, "y": 5, "z": 2}, "volume_ci": 40},
            ],
            "price_rules": [
                {"id": RULE_CI_ID, "applies_to": "material", "metric": "per_cu_in", "formula": "0.05"},
                {"id": RULE_FLAT_ID, "applies_to": "product", "metric": "flat", "formula": 12.5},
                {"id": RULE_TIERED_ID, "applies_to": "product", "metric": "tiered",
                 "formula": {"tiers": [
                     {"min_qty": 0, "metric": "flat", "amount": "25.00"},
                     {"min_qty": 10, "metric": "flat", "amount": "200.00"},
                 ]}},
            ],
            "products": [
                {"id": PRODUCT_ID, "sku": "FOAM-BLK-VALVE", "description": "Valve case insert",
                 "dims": {"x": 12, "y": 8, "z": 2}, "volume_ci": 192,
                 "material_ref": EPE_ID, "rule_ref": RULE_CI_ID},
            ],
        },
    }
    payload.update(overrides)
    return payload


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def db():
    """Direct database session for test setup/assertions."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def pricebook_payload():
    return sample_pricebook_payload()


@pytest.fixture
def pricebook(pricebook_payload):
    from foamquote.pricebook import validate_pricebook
    return validate_pricebook(pricebook_payload)


@pytest.fixture
def loaded_client(client, pricebook_payload):
    """Test client with the sample pricebook already imported."""
    resp = client.post("/api/pricebook/import", json=pricebook_payload)
    assert resp.status_code == 200
    return client
