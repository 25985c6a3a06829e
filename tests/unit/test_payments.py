"""Test payment intents and payment recording."""
from types import SimpleNamespace

import pytest
import stripe
from sqlalchemy import func, select

from doctors_portal.api.database_models import Payment
from doctors_portal.api.models import PaymentIn
from doctors_portal.circuit_breaker import CircuitBreaker
from doctors_portal.errors import ForbiddenError, NotFoundError
from doctors_portal.payments import (
    AlreadyPaidError,
    PaymentIntentGateway,
    PaymentProviderError,
    PaymentRecorder,
    to_minor_units,
)


@pytest.fixture
def recorder(storage):
    return PaymentRecorder(storage)


@pytest.fixture
def booking_id(ledger, cleaning):
    return ledger.insert(
        email="a@x.com",
        treatment_id=cleaning.id,
        treatment_name=cleaning.name,
        appointment_date="2024-01-01",
        time_slot="9am",
        price=45.0,
    )


def payment_count(storage) -> int:
    with storage.session() as db:
        return db.scalar(select(func.count(Payment.id)))


class TestPaymentRecorder:
    """Recording a payment flips the booking to paid in the same transaction."""

    def test_record_marks_booking_paid(self, recorder, ledger, booking_id, storage):
        result = recorder.record(
            PaymentIn(booking_id=booking_id, email="a@x.com", price=45.0, transaction_id="pi_123")
        )

        assert result.payment_id.startswith("pay-")
        assert result.booking_id == booking_id
        booking = ledger.get(booking_id)
        assert booking.paid is True
        assert booking.transaction_id == "pi_123"
        assert booking.paid_at is not None
        assert payment_count(storage) == 1

    def test_missing_booking_is_not_found_and_writes_nothing(self, recorder, storage, cleaning):
        with pytest.raises(NotFoundError):
            recorder.record(
                PaymentIn(booking_id="bk-missing", email="a@x.com", price=45.0, transaction_id="pi_1")
            )

        assert payment_count(storage) == 0

    def test_payer_must_own_the_booking(self, recorder, ledger, booking_id, storage):
        with pytest.raises(ForbiddenError):
            recorder.record(
                PaymentIn(booking_id=booking_id, email="b@x.com", price=45.0, transaction_id="pi_1")
            )

        assert ledger.get(booking_id).paid is False
        assert payment_count(storage) == 0

    def test_paid_booking_is_not_paid_twice(self, recorder, ledger, booking_id, storage):
        recorder.record(
            PaymentIn(booking_id=booking_id, email="a@x.com", price=45.0, transaction_id="pi_first")
        )

        with pytest.raises(AlreadyPaidError):
            recorder.record(
                PaymentIn(booking_id=booking_id, email="A@X.com", price=45.0, transaction_id="pi_second")
            )

        assert ledger.get(booking_id).transaction_id == "pi_first"
        assert payment_count(storage) == 1


class TestPaymentIntentGateway:
    """Stripe payment intents behind a circuit breaker."""

    def test_amount_converted_to_cents(self):
        assert to_minor_units(45.0) == 4500
        assert to_minor_units(19.99) == 1999

    def test_create_intent_returns_client_secret(self, monkeypatch):
        captured = {}

        def fake_create(**kwargs):
            captured.update(kwargs)
            return SimpleNamespace(client_secret="pi_1_secret_abc")

        monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
        gateway = PaymentIntentGateway(api_key="sk_test_dummy", currency="usd")

        assert gateway.create_intent(45.0) == "pi_1_secret_abc"
        assert captured["amount"] == 4500
        assert captured["currency"] == "usd"
        assert captured["payment_method_types"] == ["card"]

    def test_unconfigured_gateway_fails(self):
        gateway = PaymentIntentGateway(api_key=None)

        with pytest.raises(PaymentProviderError):
            gateway.create_intent(10.0)

    def test_provider_error_is_wrapped(self, monkeypatch):
        def failing_create(**kwargs):
            raise stripe.StripeError("card network down")

        monkeypatch.setattr(stripe.PaymentIntent, "create", failing_create)
        gateway = PaymentIntentGateway(api_key="sk_test_dummy")

        with pytest.raises(PaymentProviderError):
            gateway.create_intent(10.0)

    def test_breaker_opens_after_repeated_failures(self, monkeypatch):
        calls = []

        def failing_create(**kwargs):
            calls.append(kwargs)
            raise stripe.StripeError("down")

        monkeypatch.setattr(stripe.PaymentIntent, "create", failing_create)
        gateway = PaymentIntentGateway(
            api_key="sk_test_dummy",
            breaker=CircuitBreaker(failure_threshold=2, timeout=60),
        )

        for _ in range(3):
            with pytest.raises(PaymentProviderError):
                gateway.create_intent(10.0)

        # Third attempt failed fast without reaching the provider
        assert len(calls) == 2
        assert gateway.breaker.state == "open"
