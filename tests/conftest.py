"""Shared test fixtures."""
import pytest
from fastapi.testclient import TestClient

from doctors_portal.api.dependencies import get_portal
from doctors_portal.api.models import BookingRequest, TreatmentOptionIn
from doctors_portal.auth import CredentialIssuer
from doctors_portal.catalog import OptionCatalog
from doctors_portal.database import Storage
from doctors_portal.ledger import BookingLedger
from doctors_portal.payments import PaymentIntentGateway
from doctors_portal.portal import Portal

TEST_SECRET = "test-signing-secret"


@pytest.fixture(autouse=True)
def setup_env(monkeypatch):
    """Set up environment variables for tests."""
    monkeypatch.setenv("ACCESS_TOKEN", TEST_SECRET)
    monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)
    yield


@pytest.fixture
def storage():
    """Storage over a fresh in-memory database."""
    storage = Storage("sqlite:///:memory:")
    storage.init_database()
    yield storage
    storage.dispose()


@pytest.fixture
def catalog(storage) -> OptionCatalog:
    return OptionCatalog(storage)


@pytest.fixture
def ledger(storage) -> BookingLedger:
    return BookingLedger(storage)


@pytest.fixture
def cleaning(catalog):
    """Treatment 'Cleaning' with two slots."""
    return catalog.add_option(
        TreatmentOptionIn(name="Cleaning", price=45.0, slots=["9am", "10am"])
    )


@pytest.fixture
def whitening(catalog):
    """Treatment 'Whitening' with three slots."""
    return catalog.add_option(
        TreatmentOptionIn(name="Whitening", price=120.0, slots=["9am", "11am", "2pm"])
    )


@pytest.fixture
def make_request():
    """Build a BookingRequest with sensible defaults."""
    def _create(**overrides) -> BookingRequest:
        fields = {
            "email": "a@x.com",
            "treatment": "Cleaning",
            "appointment_date": "2024-01-01",
            "time_slot": "9am",
        }
        fields.update(overrides)
        return BookingRequest(**fields)
    return _create


@pytest.fixture
def portal(storage) -> Portal:
    """Portal bound to the in-memory storage with a dummy Stripe key."""
    return Portal(
        storage=storage,
        credentials=CredentialIssuer(TEST_SECRET),
        payment_gateway=PaymentIntentGateway(api_key="sk_test_dummy"),
    )


@pytest.fixture
def client(portal):
    """FastAPI test client wired to the test portal."""
    from doctors_portal.api_server import app

    app.dependency_overrides[get_portal] = lambda: portal
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(portal):
    """Bearer headers for an email."""
    def _headers(email: str) -> dict:
        return {"Authorization": f"Bearer {portal.credentials.issue(email)}"}
    return _headers


@pytest.fixture
def admin(portal):
    """An existing admin user."""
    return portal.users.grant_admin("admin@clinic.com", "Clinic Admin")
