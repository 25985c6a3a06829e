"""Tests for the treatment option catalog."""
import pytest

from doctors_portal.api.models import TreatmentOptionIn
from doctors_portal.catalog import DuplicateTreatmentError
from doctors_portal.config import DEFAULT_CATALOG
from doctors_portal.errors import NotFoundError


def test_options_listed_in_insertion_order(catalog, cleaning, whitening):
    assert [entry.name for entry in catalog.list_options()] == ["Cleaning", "Whitening"]


def test_lookup_by_id_and_name(catalog, cleaning):
    assert catalog.get_option(cleaning.id) == cleaning
    assert catalog.find_by_name("Cleaning") == cleaning
    assert catalog.get_option("opt-missing") is None
    assert catalog.find_by_name("Root Canal") is None


def test_slot_order_kept(catalog):
    entry = catalog.add_option(TreatmentOptionIn(name="X-Ray", price=30.0, slots=["3pm", "1pm", "2pm"]))

    assert catalog.get_option(entry.id).slots == ("3pm", "1pm", "2pm")


def test_duplicate_name_refused(catalog, cleaning):
    with pytest.raises(DuplicateTreatmentError):
        catalog.add_option(TreatmentOptionIn(name="Cleaning", price=1.0, slots=["9am"]))


def test_update_replaces_price_and_slots(catalog, cleaning):
    updated = catalog.update_option(
        cleaning.id, TreatmentOptionIn(name="Cleaning", price=50.0, slots=["8am"])
    )

    assert updated.price == 50.0
    assert catalog.get_option(cleaning.id).slots == ("8am",)


def test_rename_carries_over_to_bookings(catalog, ledger, cleaning):
    """Existing bookings follow a rename so availability keeps matching."""
    booking_id = ledger.insert(
        email="a@x.com",
        treatment_id=cleaning.id,
        treatment_name=cleaning.name,
        appointment_date="2024-01-01",
        time_slot="9am",
    )

    catalog.update_option(
        cleaning.id, TreatmentOptionIn(name="Deep Cleaning", price=45.0, slots=["9am", "10am"])
    )

    assert ledger.get(booking_id).treatment_name == "Deep Cleaning"


def test_rename_onto_existing_name_refused(catalog, cleaning, whitening):
    with pytest.raises(DuplicateTreatmentError):
        catalog.update_option(
            cleaning.id, TreatmentOptionIn(name="Whitening", price=45.0, slots=["9am"])
        )


def test_update_unknown_option(catalog):
    with pytest.raises(NotFoundError):
        catalog.update_option("opt-missing", TreatmentOptionIn(name="X", price=1.0, slots=["9am"]))


def test_seed_is_idempotent(catalog):
    assert catalog.seed(DEFAULT_CATALOG) == len(DEFAULT_CATALOG)
    assert catalog.seed(DEFAULT_CATALOG) == 0

    names = [entry.name for entry in catalog.list_options()]
    assert names == [raw["name"] for raw in DEFAULT_CATALOG]
