"""Booking ledger: query and command primitives over stored bookings."""
from typing import List

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from doctors_portal.api.database_models import BOOKING_KEY_COLUMNS, BOOKING_KEY_CONSTRAINT, Booking
from doctors_portal.api.models import BookingOut, normalize_email
from doctors_portal.database import Storage, retry_reads
from doctors_portal.errors import NotFoundError


class DuplicateBookingError(Exception):
    """Raised when the (email, date, treatment) unique constraint rejects an insert."""
    pass


def violates_booking_key(error: IntegrityError) -> bool:
    """True only when an insert hit the (email, date, treatment) unique key."""
    constraint_name = getattr(getattr(error.orig, "diag", None), "constraint_name", None)
    if constraint_name:
        return constraint_name == BOOKING_KEY_CONSTRAINT
    # SQLite names the columns, not the constraint
    columns = ", ".join(f"bookings.{column}" for column in BOOKING_KEY_COLUMNS)
    return f"UNIQUE constraint failed: {columns}" in str(error.orig)


class BookingLedger:
    """
    Accepted bookings.

    Rows are inserted by the admission controller and only ever updated by
    payment recording; nothing here deletes a booking.
    """

    def __init__(self, storage: Storage):
        self.storage = storage

    @retry_reads
    def bookings_for(self, email: str) -> List[BookingOut]:
        """All bookings of one patient, oldest first."""
        email = normalize_email(email)
        with self.storage.session() as db:
            bookings = db.scalars(
                select(Booking)
                .where(Booking.email == email)
                .order_by(Booking.created_at)
            ).all()
            return [BookingOut.model_validate(booking) for booking in bookings]

    @retry_reads
    def get(self, booking_id: str) -> BookingOut:
        """
        Fetch one booking.

        Raises:
            NotFoundError: If no booking has this id
        """
        with self.storage.session() as db:
            booking = db.get(Booking, booking_id)
            if booking is None:
                raise NotFoundError("Booking", booking_id)
            return BookingOut.model_validate(booking)

    @retry_reads
    def count_matching(self, email: str, appointment_date: str, treatment_id: str) -> int:
        """Number of bookings for this (patient, date, treatment) key."""
        email = normalize_email(email)
        with self.storage.session() as db:
            return db.scalar(
                select(func.count(Booking.id)).where(
                    Booking.email == email,
                    Booking.appointment_date == appointment_date,
                    Booking.treatment_id == treatment_id,
                )
            )

    def insert(
        self,
        *,
        email: str,
        treatment_id: str,
        treatment_name: str,
        appointment_date: str,
        time_slot: str,
        patient_name: str = None,
        phone: str = None,
        price: float = None,
    ) -> str:
        """
        Persist an unpaid booking.

        Returns:
            New booking id

        Raises:
            DuplicateBookingError: If the key is already taken
            IntegrityError: Any other constraint failure (e.g. unknown treatment id)
        """
        email = normalize_email(email)
        with self.storage.session() as db:
            booking = Booking(
                email=email,
                treatment_id=treatment_id,
                treatment_name=treatment_name,
                appointment_date=appointment_date,
                time_slot=time_slot,
                patient_name=patient_name,
                phone=phone,
                price=price,
                paid=False,
            )
            db.add(booking)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                if not violates_booking_key(e):
                    raise
                raise DuplicateBookingError(
                    f"Booking for {email} on {appointment_date} already exists"
                ) from e
            return booking.id
