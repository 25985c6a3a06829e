"""Payment intents (Stripe) and payment recording against bookings."""
from typing import Optional

import stripe

from doctors_portal.api.database_models import Booking, Payment, utc_now
from doctors_portal.api.models import PaymentIn, PaymentRecorded, normalize_email
from doctors_portal.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from doctors_portal.database import Storage
from doctors_portal.errors import ForbiddenError, NotFoundError
from doctors_portal.logging_config import get_logger

logger = get_logger(__name__)


class PaymentProviderError(Exception):
    """Raised when the payment provider is unreachable or refuses the request."""
    pass


class AlreadyPaidError(Exception):
    """Raised when a payment is recorded against a booking that is already paid."""
    pass


def to_minor_units(price: float) -> int:
    """Convert a price in major units to cents."""
    return int(round(price * 100))


class PaymentIntentGateway:
    """
    Creates Stripe payment intents.

    Pattern: provider calls go through a circuit breaker so an outage
    fails fast instead of tying up request threads.
    """

    def __init__(
        self,
        api_key: Optional[str],
        currency: str = "usd",
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.api_key = api_key
        self.currency = currency
        self.breaker = breaker or CircuitBreaker(name="stripe", failure_threshold=5, timeout=60)

    def _create(self, amount: int):
        return stripe.PaymentIntent.create(
            amount=amount,
            currency=self.currency,
            payment_method_types=["card"],
            api_key=self.api_key,
        )

    def create_intent(self, price: float) -> str:
        """
        Create a payment intent for ``price``.

        Returns:
            The intent's client secret

        Raises:
            PaymentProviderError: Not configured, provider error, or breaker open
        """
        if not self.api_key:
            raise PaymentProviderError("Payment provider is not configured")

        amount = to_minor_units(price)
        try:
            intent = self.breaker.call(self._create, amount)
        except CircuitBreakerOpen as e:
            raise PaymentProviderError(str(e)) from e
        except stripe.StripeError as e:
            logger.error("payment_intent_failed", amount=amount, error=str(e))
            raise PaymentProviderError("Payment provider request failed") from e

        logger.info("payment_intent_created", amount=amount, currency=self.currency)
        return intent.client_secret


class PaymentRecorder:
    """Records payments and flips the booking to paid in one transaction."""

    def __init__(self, storage: Storage):
        self.storage = storage

    def record(self, payment: PaymentIn) -> PaymentRecorded:
        """
        Store the payment and mark its booking as paid.

        Raises:
            NotFoundError: If the booking does not exist
            ForbiddenError: If the booking belongs to another patient
            AlreadyPaidError: If the booking is already paid

        Nothing is written when any of these is raised.
        """
        payer = normalize_email(str(payment.email))
        with self.storage.session() as db:
            booking = db.get(Booking, payment.booking_id, with_for_update=True)
            if booking is None:
                raise NotFoundError("Booking", payment.booking_id)
            if booking.email != payer:
                raise ForbiddenError("forbidden access")
            if booking.paid:
                raise AlreadyPaidError(f"Booking {booking.id} is already paid")

            record = Payment(
                booking_id=booking.id,
                email=payer,
                price=payment.price,
                transaction_id=payment.transaction_id,
            )
            db.add(record)

            booking.paid = True
            booking.transaction_id = payment.transaction_id
            booking.paid_at = utc_now()
            db.commit()
            payment_id = record.id

        logger.info(
            "payment_recorded",
            payment_id=payment_id,
            booking_id=payment.booking_id,
            transaction_id=payment.transaction_id,
        )
        return PaymentRecorded(payment_id=payment_id, booking_id=payment.booking_id)
