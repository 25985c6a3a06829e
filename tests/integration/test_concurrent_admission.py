"""Identical booking submissions racing each other admit exactly one."""
from concurrent.futures import ThreadPoolExecutor

import pytest

from doctors_portal.admission import BookingAdmissionController
from doctors_portal.api.models import BookingRequest, TreatmentOptionIn
from doctors_portal.catalog import OptionCatalog
from doctors_portal.database import Storage
from doctors_portal.ledger import BookingLedger


@pytest.fixture
def file_storage(tmp_path):
    """File-backed SQLite so every thread gets its own connection."""
    storage = Storage(f"sqlite:///{tmp_path / 'race.db'}", timeout=30)
    storage.init_database()
    yield storage
    storage.dispose()


def test_racing_duplicates_admit_one(file_storage):
    catalog = OptionCatalog(file_storage)
    ledger = BookingLedger(file_storage)
    cleaning = catalog.add_option(
        TreatmentOptionIn(name="Cleaning", price=45.0, slots=["9am", "10am"])
    )
    controller = BookingAdmissionController(catalog, ledger)
    request = BookingRequest(
        email="a@x.com",
        treatment="Cleaning",
        appointment_date="2024-01-01",
        time_slot="9am",
    )

    with ThreadPoolExecutor(max_workers=8) as pool:
        decisions = list(pool.map(lambda _: controller.submit(request), range(16)))

    accepted = [d for d in decisions if d.accepted]
    rejected = [d for d in decisions if not d.accepted]
    assert len(accepted) == 1
    assert {d.reason for d in rejected} == {"You already have a booking on 2024-01-01"}
    assert ledger.count_matching("a@x.com", "2024-01-01", cleaning.id) == 1
