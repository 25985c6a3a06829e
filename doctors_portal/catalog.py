"""Treatment option catalog.

Options are created and edited by admin tooling only; the booking flow
never mutates them.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, select, update

from doctors_portal.api.database_models import Booking, TreatmentOption, TreatmentSlot
from doctors_portal.api.models import TreatmentOptionIn
from doctors_portal.database import Storage, retry_reads
from doctors_portal.errors import NotFoundError
from doctors_portal.logging_config import get_logger

logger = get_logger(__name__)


class DuplicateTreatmentError(Exception):
    """Raised when a treatment name is already in the catalog."""
    pass


@dataclass(frozen=True)
class CatalogEntry:
    """Read-only view of a catalog option."""
    id: str
    name: str
    price: float
    slots: Tuple[str, ...]


def _to_entry(option: TreatmentOption) -> CatalogEntry:
    return CatalogEntry(
        id=option.id,
        name=option.name,
        price=option.price,
        slots=tuple(option.slot_labels),
    )


def _build_slots(labels: Iterable[str]) -> List[TreatmentSlot]:
    return [
        TreatmentSlot(position=index, label=label)
        for index, label in enumerate(labels)
    ]


class OptionCatalog:
    """Reads and maintains treatment options in catalog order."""

    def __init__(self, storage: Storage):
        self.storage = storage

    @retry_reads
    def list_options(self) -> List[CatalogEntry]:
        """All options, in catalog order."""
        with self.storage.session() as db:
            options = db.scalars(
                select(TreatmentOption).order_by(TreatmentOption.position)
            ).all()
            return [_to_entry(option) for option in options]

    @retry_reads
    def get_option(self, option_id: str) -> Optional[CatalogEntry]:
        with self.storage.session() as db:
            option = db.get(TreatmentOption, option_id)
            return _to_entry(option) if option else None

    @retry_reads
    def find_by_name(self, name: str) -> Optional[CatalogEntry]:
        with self.storage.session() as db:
            option = db.scalars(
                select(TreatmentOption).where(TreatmentOption.name == name)
            ).first()
            return _to_entry(option) if option else None

    def add_option(self, payload: TreatmentOptionIn) -> CatalogEntry:
        """
        Append an option to the end of the catalog.

        Raises:
            DuplicateTreatmentError: If the name is taken
        """
        with self.storage.session() as db:
            exists = db.scalars(
                select(TreatmentOption.id).where(TreatmentOption.name == payload.name)
            ).first()
            if exists:
                raise DuplicateTreatmentError(f"Treatment {payload.name} already exists")

            last_position = db.scalar(select(func.max(TreatmentOption.position)))
            option = TreatmentOption(
                name=payload.name,
                price=payload.price,
                position=0 if last_position is None else last_position + 1,
                slots=_build_slots(payload.slots),
            )
            db.add(option)
            db.commit()
            entry = _to_entry(option)

        logger.info("treatment_added", option_id=entry.id, name=entry.name)
        return entry

    def update_option(self, option_id: str, payload: TreatmentOptionIn) -> CatalogEntry:
        """
        Replace an option's name, price and slots.

        A rename is copied onto existing bookings in the same transaction so
        the denormalized booking name keeps matching the catalog.

        Raises:
            NotFoundError: If the option does not exist
            DuplicateTreatmentError: If renaming onto another option's name
        """
        with self.storage.session() as db:
            option = db.get(TreatmentOption, option_id)
            if option is None:
                raise NotFoundError("Treatment", option_id)

            if payload.name != option.name:
                clash = db.scalars(
                    select(TreatmentOption.id).where(TreatmentOption.name == payload.name)
                ).first()
                if clash:
                    raise DuplicateTreatmentError(f"Treatment {payload.name} already exists")
                db.execute(
                    update(Booking)
                    .where(Booking.treatment_id == option_id)
                    .values(treatment_name=payload.name)
                )

            option.name = payload.name
            option.price = payload.price
            option.slots = _build_slots(payload.slots)
            db.commit()
            entry = _to_entry(option)

        logger.info("treatment_updated", option_id=entry.id, name=entry.name)
        return entry

    def seed(self, catalog: Iterable[dict]) -> int:
        """
        Insert catalog entries whose names are not present yet.

        Returns:
            Number of options added
        """
        added = 0
        known = {entry.name for entry in self.list_options()}
        for raw in catalog:
            payload = TreatmentOptionIn(**raw)
            if payload.name in known:
                continue
            self.add_option(payload)
            known.add(payload.name)
            added += 1
        return added
