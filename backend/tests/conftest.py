"""Pytest fixtures — SQLite database, API client and a fake payment gateway."""
import os
import uuid
from datetime import date, timedelta
from typing import Any, Optional

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from marketplace.database import Base, get_db
from marketplace.errors import GatewayUnavailable
from marketplace.main import app
from marketplace.services.payment_gateway import GatewayVerification, get_payment_gateway

# Import all models so they register with Base.metadata
from marketplace.models.supplier import Supplier                        # noqa: F401
from marketplace.models.offering import Offering                        # noqa: F401
from marketplace.models.brief import EventBrief                         # noqa: F401
from marketplace.models.proposal import Proposal, ProposalLine          # noqa: F401
from marketplace.models.order_group import OrderGroup                   # noqa: F401
from marketplace.models.order import Order, OrderItem                   # noqa: F401
from marketplace.models.order_status_change import OrderStatusChange    # noqa: F401
from marketplace.models.payment import Payment, PaymentReconciliation   # noqa: F401

SQLITE_URL = "sqlite:///./test.db"


class FakeGateway:
    """In-memory PaymentGateway: tests register what ``verify`` should answer."""

    def __init__(self):
        self.verifications: dict[str, GatewayVerification] = {}
        self.initialized: list[dict[str, Any]] = []
        self.verify_calls: list[str] = []
        self.unavailable = False

    def succeed(self, reference: str, group_id: str, amount: int) -> None:
        self.verifications[reference] = GatewayVerification(
            reference=reference, success=True, amount=amount, group_id=group_id, status="success",
        )

    def fail(self, reference: str, group_id: str, amount: int = 0) -> None:
        self.verifications[reference] = GatewayVerification(
            reference=reference, success=False, amount=amount, group_id=group_id, status="failed",
        )

    def initialize(self, reference, email, amount, currency, metadata, callback_url=None):
        self.initialized.append({
            "reference": reference, "email": email, "amount": amount,
            "currency": currency, "metadata": metadata, "callback_url": callback_url,
        })
        return {
            "authorization_url": f"https://checkout.example/{reference}",
            "access_code": "access-" + reference[-6:],
            "reference": reference,
        }

    def verify(self, reference: str) -> Optional[GatewayVerification]:
        self.verify_calls.append(reference)
        if self.unavailable:
            raise GatewayUnavailable()
        return self.verifications.get(reference)


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine):
    """Yield a database session bound to the test engine."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def gateway():
    return FakeGateway()


@pytest.fixture(scope="function")
def client(db_engine, gateway):
    """FastAPI TestClient with the database and payment gateway overridden."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def _override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers: seed the catalog and drive the flow through the API
# ---------------------------------------------------------------------------
def create_test_supplier(client: TestClient, name: str = "Dakar Events", verified: bool = True) -> dict:
    """Helper — POST /api/suppliers and return response JSON."""
    resp = client.post("/api/suppliers", json={"display_name": name, "is_verified": verified})
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_test_offering(
    client: TestClient,
    supplier_id: str,
    name: str = "Chaises dorées",
    category: str = "mobilier",
    price_per_day: int = 10000,
    verified: bool = True,
    quantity_available: int = 10,
    is_active: bool = True,
) -> dict:
    """Helper — POST /api/offerings and return response JSON."""
    resp = client.post("/api/offerings", json={
        "supplier_id": supplier_id,
        "name": name,
        "category": category,
        "price_per_day": price_per_day,
        "is_verified": verified,
        "quantity_available": quantity_available,
        "is_active": is_active,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_test_proposal(
    client: TestClient,
    client_id: str,
    services_needed: list,
    budget_max: int = 500000,
    **brief: Any,
) -> dict:
    """Helper — POST /api/proposals and return response JSON."""
    payload = {
        "client_id": client_id,
        "event_type": "mariage",
        "budget_max": budget_max,
        "guest_count": 150,
        "event_date": (date.today() + timedelta(days=30)).isoformat(),
        "event_location": "Dakar",
        "services_needed": services_needed,
    }
    payload.update(brief)
    resp = client.post("/api/proposals/", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


def two_supplier_proposal(client: TestClient, client_id: str) -> dict:
    """Scenario fixture: decoration 20000 from one supplier, sonorisation 35000 from another."""
    deco = create_test_supplier(client, name="Déco Prestige")
    sono = create_test_supplier(client, name="Sono Sénégal")
    create_test_offering(client, deco["supplier_id"], name="Arche florale", category="decoration", price_per_day=20000)
    create_test_offering(client, sono["supplier_id"], name="Pack sono 2kW", category="sonorisation", price_per_day=35000)
    return create_test_proposal(client, client_id, ["decoration", "sonorisation"], budget_max=100000)


def confirm_proposal(client: TestClient, proposal_id: str, client_id: str, token: Optional[str] = None):
    """Helper — POST /api/proposals/{id}/confirm and return the raw response."""
    return client.post(f"/api/proposals/{proposal_id}/confirm", json={
        "client_id": client_id,
        "idempotency_token": token or str(uuid.uuid4()),
    })
