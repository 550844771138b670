"""
Pytest configuration and shared fixtures for backend tests.

WHAT: Centralized test configuration with markers and a throwaway database
WHY: Enable test organization, filtering, and shared test utilities
HOW: Point settings at a test SQLite file before importing the app, then
     create/drop tables around every test
"""

import os

# Must be set before haggle.core.config is imported
os.environ["DATABASE_URL"] = "sqlite:///./data/test_haggle.db"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_123"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["STRIPE_API_BASE"] = "https://api.stripe.test/v1"
os.environ["PAYMENT_RETRY_DELAY"] = "0"
os.environ["PUBLIC_BASE_URL"] = "http://localhost:3000"
os.environ["LOG_FILE"] = "./data/logs/test_app.log"

import pytest

from haggle.core.database import Base, engine, init_db
from haggle.payments.provider_factory import reset_payment_provider
from haggle.services.listings import ListingService
from haggle.services.offer_engine import OfferEngine
from haggle.services.payment_reconciler import PaymentReconciler

from tests.fixtures.mock_payments import MockPaymentProvider

WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (isolated component tests)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (multiple components)"
    )


@pytest.fixture(autouse=True)
def reset_provider_singleton():
    """
    Reset payment provider singleton before each test.

    WHAT: Clear provider cache between tests
    WHY: Prevent test pollution and ensure clean state
    HOW: Call reset_payment_provider() before and after each test
    """
    reset_payment_provider()
    yield
    reset_payment_provider()


@pytest.fixture(autouse=True)
def database():
    """Fresh tables for every test."""
    Base.metadata.drop_all(bind=engine)
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def mock_provider():
    return MockPaymentProvider(webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def reconciler(mock_provider):
    return PaymentReconciler(mock_provider)


@pytest.fixture
def offer_engine():
    return OfferEngine()


@pytest.fixture
def make_listing():
    """Factory creating active listings owned by `seller-1` by default."""
    service = ListingService()

    def _make(price="100.00", seller_id="seller-1", title="Vintage Camera", category="electronics"):
        return service.create_listing(
            seller_id=seller_id,
            title=title,
            price=price,
            description="Test listing",
            category=category,
        )

    return _make
