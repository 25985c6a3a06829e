"""Wires the portal services around one Storage."""
from doctors_portal.admission import BookingAdmissionController
from doctors_portal.auth import CredentialIssuer
from doctors_portal.availability import AvailabilityResolver
from doctors_portal.catalog import OptionCatalog
from doctors_portal.config import Settings
from doctors_portal.database import Storage, get_storage
from doctors_portal.doctors import DoctorRoster
from doctors_portal.ledger import BookingLedger
from doctors_portal.payments import PaymentIntentGateway, PaymentRecorder
from doctors_portal.users import UserDirectory


class Portal:
    """Service container handed to request handlers."""

    def __init__(
        self,
        storage: Storage,
        credentials: CredentialIssuer,
        payment_gateway: PaymentIntentGateway,
    ):
        self.storage = storage
        self.credentials = credentials
        self.payment_gateway = payment_gateway

        self.catalog = OptionCatalog(storage)
        self.ledger = BookingLedger(storage)
        self.availability = AvailabilityResolver(storage)
        self.admission = BookingAdmissionController(self.catalog, self.ledger)
        self.users = UserDirectory(storage)
        self.doctors = DoctorRoster(storage)
        self.payments = PaymentRecorder(storage)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Portal":
        storage = get_storage(settings.database_url, timeout=settings.storage_timeout_seconds)
        return cls(
            storage=storage,
            credentials=CredentialIssuer(
                settings.access_token_secret,
                ttl_hours=settings.access_token_ttl_hours,
            ),
            payment_gateway=PaymentIntentGateway(
                settings.stripe_secret_key,
                currency=settings.payment_currency,
            ),
        )
