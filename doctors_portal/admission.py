"""Booking admission: one booking per (patient, date, treatment).

The count query is the fast path that produces the friendly message. The
composite unique constraint on the bookings table is the authoritative
gate: when two submissions for the same key race past the count, the
second insert fails atomically and gets the same rejection.
"""
from doctors_portal.api.models import BookingDecision, BookingRequest
from doctors_portal.catalog import CatalogEntry, OptionCatalog
from doctors_portal.errors import NotFoundError
from doctors_portal.ledger import BookingLedger, DuplicateBookingError
from doctors_portal.logging_config import get_logger

logger = get_logger(__name__)


class InvalidBookingError(Exception):
    """Raised when a booking request is inconsistent with the catalog."""
    pass


def conflict_reason(appointment_date: str) -> str:
    return f"You already have a booking on {appointment_date}"


class BookingAdmissionController:
    """Validates and admits booking requests."""

    def __init__(self, catalog: OptionCatalog, ledger: BookingLedger):
        self.catalog = catalog
        self.ledger = ledger

    def resolve_treatment(self, treatment_id: str = None, treatment_name: str = None) -> CatalogEntry:
        """
        Resolve a treatment reference to its canonical catalog entry.

        The id wins when present; a name supplied alongside it must match.

        Raises:
            InvalidBookingError: If neither is given, or id and name disagree
            NotFoundError: If the referenced treatment does not exist
        """
        if treatment_id:
            option = self.catalog.get_option(treatment_id)
            if option is None:
                raise NotFoundError("Treatment", treatment_id)
            if treatment_name and treatment_name != option.name:
                raise InvalidBookingError(
                    f"Treatment {treatment_name!r} does not match treatment id {treatment_id}"
                )
            return option

        if treatment_name:
            option = self.catalog.find_by_name(treatment_name)
            if option is None:
                raise NotFoundError("Treatment", treatment_name)
            return option

        raise InvalidBookingError("treatmentId or treatment is required")

    def submit(self, request: BookingRequest) -> BookingDecision:
        """
        Admit a booking or reject it as a duplicate.

        Args:
            request: Validated booking request

        Returns:
            BookingDecision: accepted with the new id, or rejected with a reason

        Raises:
            InvalidBookingError: Inconsistent treatment reference or unknown slot
            NotFoundError: Unknown treatment
        """
        option = self.resolve_treatment(request.treatment_id, request.treatment)

        if request.time_slot not in option.slots:
            raise InvalidBookingError(
                f"Slot {request.time_slot!r} is not offered for {option.name}"
            )

        email = str(request.email)
        if self.ledger.count_matching(email, request.appointment_date, option.id):
            return self._reject(email, option, request.appointment_date, raced=False)

        try:
            booking_id = self.ledger.insert(
                email=email,
                treatment_id=option.id,
                treatment_name=option.name,
                appointment_date=request.appointment_date,
                time_slot=request.time_slot,
                patient_name=request.patient_name,
                phone=request.phone,
                price=request.price if request.price is not None else option.price,
            )
        except DuplicateBookingError:
            return self._reject(email, option, request.appointment_date, raced=True)

        logger.info(
            "booking_admitted",
            booking_id=booking_id,
            treatment=option.name,
            appointment_date=request.appointment_date,
            time_slot=request.time_slot,
        )
        return BookingDecision(accepted=True, booking_id=booking_id)

    def _reject(self, email: str, option: CatalogEntry, appointment_date: str, raced: bool) -> BookingDecision:
        logger.info(
            "booking_rejected",
            email=email,
            treatment=option.name,
            appointment_date=appointment_date,
            raced=raced,
        )
        return BookingDecision(accepted=False, reason=conflict_reason(appointment_date))
