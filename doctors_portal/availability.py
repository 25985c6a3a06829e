"""Slot availability per treatment for a given date.

Two strategies that must always agree:
- resolve(): fetch options and the day's bookings, subtract in Python
- resolve_in_storage(): one relational query (LEFT JOIN + NOT EXISTS),
  rows only regrouped in Python

A slot is open unless some booking on that date for a treatment with the
same name claims it (set membership, not multiset subtraction).
"""
from collections import defaultdict
from typing import Dict, List, Optional, Set

from sqlalchemy import and_, select

from doctors_portal.api.database_models import Booking, TreatmentOption, TreatmentSlot
from doctors_portal.api.models import TreatmentAvailability
from doctors_portal.database import Storage, retry_reads


class AvailabilityResolver:
    """Computes remaining slots per treatment. Read-only."""

    def __init__(self, storage: Storage):
        self.storage = storage

    @retry_reads
    def resolve(self, date: Optional[str]) -> List[TreatmentAvailability]:
        """
        Remaining slots per treatment, joined in application code.

        Args:
            date: Appointment date, used only as an equality key. None or
                  empty matches no booking, so every slot is open.

        Returns:
            Options in catalog order, slots in catalog order
        """
        with self.storage.session() as db:
            options = db.scalars(
                select(TreatmentOption).order_by(TreatmentOption.position)
            ).all()

            booked_rows = []
            if date:
                booked_rows = db.execute(
                    select(Booking.treatment_name, Booking.time_slot).where(
                        Booking.appointment_date == date
                    )
                ).all()

            booked: Dict[str, Set[str]] = defaultdict(set)
            for treatment_name, time_slot in booked_rows:
                booked[treatment_name].add(time_slot)

            return [
                TreatmentAvailability(
                    id=option.id,
                    name=option.name,
                    price=option.price,
                    slots=[
                        slot for slot in option.slot_labels
                        if slot not in booked[option.name]
                    ],
                )
                for option in options
            ]

    @retry_reads
    def resolve_in_storage(self, date: Optional[str]) -> List[TreatmentAvailability]:
        """
        Remaining slots per treatment, joined by the database.

        Every option appears exactly once; an option whose slots are all
        taken yields a single row with a NULL label and an empty list.
        """
        slot_join = TreatmentSlot.option_id == TreatmentOption.id
        if date:
            slot_taken = (
                select(Booking.id)
                .where(
                    Booking.treatment_name == TreatmentOption.name,
                    Booking.appointment_date == date,
                    Booking.time_slot == TreatmentSlot.label,
                )
                .correlate(TreatmentOption, TreatmentSlot)
                .exists()
            )
            slot_join = and_(slot_join, ~slot_taken)

        stmt = (
            select(
                TreatmentOption.id,
                TreatmentOption.name,
                TreatmentOption.price,
                TreatmentSlot.label,
            )
            .select_from(TreatmentOption)
            .outerjoin(TreatmentSlot, slot_join)
            .order_by(TreatmentOption.position, TreatmentSlot.position)
        )

        with self.storage.session() as db:
            rows = db.execute(stmt).all()

        grouped: Dict[str, TreatmentAvailability] = {}
        for option_id, name, price, label in rows:
            entry = grouped.get(option_id)
            if entry is None:
                entry = TreatmentAvailability(id=option_id, name=name, price=price, slots=[])
                grouped[option_id] = entry
            if label is not None:
                entry.slots.append(label)

        return list(grouped.values())
