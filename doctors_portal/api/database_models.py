"""SQLAlchemy database models for the portal."""
import uuid
from datetime import datetime, UTC
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utc_now():
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def new_id(prefix: str) -> str:
    """Generate a prefixed identifier, e.g. ``bk-3f2a...``."""
    return f"{prefix}-{uuid.uuid4().hex}"


class TreatmentOption(Base):
    """Catalog entry for a bookable treatment."""
    __tablename__ = "appointment_options"

    id = Column(String(64), primary_key=True, default=lambda: new_id("opt"))
    name = Column(String(200), nullable=False, unique=True, index=True)
    price = Column(Float, nullable=False, default=0.0)
    # Catalog order
    position = Column(Integer, nullable=False, index=True)

    slots = relationship(
        "TreatmentSlot",
        order_by="TreatmentSlot.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def slot_labels(self):
        return [slot.label for slot in self.slots]

    def __repr__(self):
        return f"<TreatmentOption(id={self.id}, name={self.name})>"


class TreatmentSlot(Base):
    """One advertised time slot of a treatment, in catalog order."""
    __tablename__ = "appointment_slots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    option_id = Column(
        String(64),
        ForeignKey("appointment_options.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False)
    label = Column(String(100), nullable=False)

    def __repr__(self):
        return f"<TreatmentSlot(option_id={self.option_id}, label={self.label})>"


# One booking per patient, date and treatment
BOOKING_KEY_CONSTRAINT = "uq_booking_patient_date_treatment"
BOOKING_KEY_COLUMNS = ("email", "appointment_date", "treatment_id")


class Booking(Base):
    """Accepted booking. At most one per (email, date, treatment)."""
    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint(*BOOKING_KEY_COLUMNS, name=BOOKING_KEY_CONSTRAINT),
        Index("ix_bookings_date_treatment_name", "appointment_date", "treatment_name"),
    )

    id = Column(String(64), primary_key=True, default=lambda: new_id("bk"))
    treatment_id = Column(
        String(64), ForeignKey("appointment_options.id"), nullable=False
    )
    # Denormalized from TreatmentOption.name, kept in sync by the catalog
    treatment_name = Column(String(200), nullable=False)
    email = Column(String(320), nullable=False, index=True)
    patient_name = Column(String(200), nullable=True)
    phone = Column(String(50), nullable=True)
    appointment_date = Column(String(50), nullable=False)
    time_slot = Column(String(100), nullable=False)
    price = Column(Float, nullable=True)
    paid = Column(Boolean, default=False, nullable=False)
    transaction_id = Column(String(255), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    def __repr__(self):
        return (
            f"<Booking(id={self.id}, email={self.email}, "
            f"date={self.appointment_date}, slot={self.time_slot})>"
        )


class User(Base):
    """Portal user. Role is ``patient`` or ``admin``."""
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=lambda: new_id("usr"))
    email = Column(String(320), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=True)
    role = Column(String(20), nullable=False, default="patient")
    created_at = Column(DateTime, default=utc_now, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


class Doctor(Base):
    """Doctor roster entry (admin managed)."""
    __tablename__ = "doctors"

    id = Column(String(64), primary_key=True, default=lambda: new_id("doc"))
    name = Column(String(200), nullable=False)
    email = Column(String(320), nullable=False, unique=True)
    specialty = Column(String(200), nullable=False)
    image = Column(String(1000), nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    def __repr__(self):
        return f"<Doctor(id={self.id}, email={self.email})>"


class Payment(Base):
    """Payment recorded against a booking."""
    __tablename__ = "payments"

    id = Column(String(64), primary_key=True, default=lambda: new_id("pay"))
    booking_id = Column(String(64), ForeignKey("bookings.id"), nullable=False, index=True)
    email = Column(String(320), nullable=False)
    price = Column(Float, nullable=False)
    transaction_id = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    def __repr__(self):
        return f"<Payment(id={self.id}, booking_id={self.booking_id})>"
