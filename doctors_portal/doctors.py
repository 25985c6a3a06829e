"""Doctor roster (admin managed)."""
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from doctors_portal.api.database_models import Doctor
from doctors_portal.api.models import DeletionResult, DoctorIn, DoctorOut
from doctors_portal.database import Storage, retry_reads
from doctors_portal.errors import NotFoundError
from doctors_portal.logging_config import get_logger

logger = get_logger(__name__)


class DuplicateDoctorError(Exception):
    """Raised when a doctor with the same email is already on the roster."""
    pass


class DoctorRoster:
    """CRUD over the doctors table."""

    def __init__(self, storage: Storage):
        self.storage = storage

    @retry_reads
    def list_doctors(self) -> List[DoctorOut]:
        with self.storage.session() as db:
            doctors = db.scalars(select(Doctor).order_by(Doctor.created_at)).all()
            return [DoctorOut.model_validate(doctor) for doctor in doctors]

    def add(self, payload: DoctorIn) -> DoctorOut:
        """
        Raises:
            DuplicateDoctorError: If the email is already used
        """
        with self.storage.session() as db:
            doctor = Doctor(
                name=payload.name,
                email=str(payload.email),
                specialty=payload.specialty,
                image=payload.image,
            )
            db.add(doctor)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise DuplicateDoctorError(f"Doctor {payload.email} already exists") from e
            result = DoctorOut.model_validate(doctor)

        logger.info("doctor_added", doctor_id=result.id, specialty=result.specialty)
        return result

    def remove(self, doctor_id: str) -> DeletionResult:
        """
        Raises:
            NotFoundError: If no doctor has this id
        """
        with self.storage.session() as db:
            doctor = db.get(Doctor, doctor_id)
            if doctor is None:
                raise NotFoundError("Doctor", doctor_id)
            db.delete(doctor)
            db.commit()

        logger.info("doctor_removed", doctor_id=doctor_id)
        return DeletionResult(id=doctor_id)
