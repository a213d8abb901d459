import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import storefront_checkout.db as db
from storefront_checkout.checkout.errors import SubmissionError
from storefront_checkout.checkout.models import CartLine
from storefront_checkout.main import app
from storefront_checkout.models import Base
from storefront_checkout.payment_client import PaymentSession
from storefront_checkout.routes.checkout import get_payment_client
from storefront_checkout.services.checkout_cache import CHECKOUT_CACHE


PAYMENT_URL = "https://pay.maisuchi.ca/session/cs_test_123"


class FakePaymentClient:
    """Stands in for PaymentSessionClient; records every payload it gets.

    Set `error` to make create_session raise it instead.
    """

    def __init__(self, url=PAYMENT_URL, order_id="order-123"):
        self.url = url
        self.order_id = order_id
        self.error = None
        self.payloads = []

    def create_session(self, payload):
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        return PaymentSession(url=self.url, order_id=self.order_id)


@pytest.fixture
def payment_client():
    return FakePaymentClient()


@pytest.fixture
def failing_payment_client():
    client = FakePaymentClient()
    client.error = SubmissionError("Card processor unavailable", status_code=500)
    return client


@pytest.fixture
def db_session():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def cart():
    """The two-roll cart used throughout: subtotal 20.00."""
    return [CartLine(id="roll-a", name="Roll A", unit_price=10.00, quantity=2)]


@pytest.fixture
def pickup_form():
    return {
        "first_name": "Marie",
        "email": "marie@maisuchi.ca",
        "phone": "819-821-1234",
        "delivery_method": "pickup",
    }


@pytest.fixture
def sherbrooke_delivery_form():
    return {
        "first_name": "Marie",
        "email": "marie@maisuchi.ca",
        "phone": "819-821-1234",
        "delivery_method": "delivery",
        "address": "2500 Boulevard de l'Universite",
        "city": "Sherbrooke",
        "area": "Fleurimont",
        "zip_code": "J1K 2R1",
    }


@pytest.fixture
def engine():
    """In-memory SQLite engine; StaticPool so all connections share one DB."""
    return create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def client(payment_client, engine, session_factory):
    """Shared FastAPI TestClient using an in-memory SQLite DB.

    The payment-session service is replaced by the payment_client fixture.
    """
    original_engine = db.engine
    original_session_local = db.SessionLocal

    TestingSessionLocal = session_factory

    # Patch the db module used by the app
    db.engine = engine
    db.SessionLocal = TestingSessionLocal

    Base.metadata.create_all(bind=engine)

    # Override FastAPI dependencies
    def override_get_db():
        db_sess = TestingSessionLocal()
        try:
            yield db_sess
        finally:
            db_sess.close()

    app.dependency_overrides[db.get_db] = override_get_db
    app.dependency_overrides[get_payment_client] = lambda: payment_client

    CHECKOUT_CACHE.clear()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    CHECKOUT_CACHE.clear()

    db.engine = original_engine
    db.SessionLocal = original_session_local
