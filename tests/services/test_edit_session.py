"""
Tests for DeliveryEditSession.

Covers:
- Requesting quantities (accepted, rejected, removal)
- Lot toggling with the configured size columns
- Edit mode: re-seeding and edit credit
- Display projections (rows, review, date groups)
"""

from datetime import date
from decimal import Decimal

import pytest

from coldstore_config import ColdStoreConfig
from coldstore_engines.grouping import LocationFilters, SortOrder
from coldstore_engines.validation import QuantityError
from coldstore_kernel.domain.lots import Delivery, DeliveryAllocation, Location
from coldstore_kernel.exceptions import LotNotFoundError
from coldstore_services.edit_session import DeliveryEditSession
from tests.conftest import bag, lot


@pytest.fixture
def session(split_lot, plain_lot, config) -> DeliveryEditSession:
    return DeliveryEditSession.new([split_lot, plain_lot], config)


@pytest.fixture
def stored_delivery(split_lot) -> Delivery:
    """A delivery that already took 6 Ration from L1 (current is now 4)."""
    return Delivery(
        delivery_id="D1",
        sequence_number=21,
        delivery_date=date(2026, 3, 1),
        allocations=(
            DeliveryAllocation(
                "L1", "Ration", Decimal("6"),
                location=Location("C1", "F2", "R1"),
                lot_reference_number=12,
            ),
        ),
        lot_snapshots=(split_lot,),
    )


class TestRequest:
    """Tests for request()."""

    def test_accepted_request_is_stored(self, session):
        check = session.request("L1::Seed::0", "12")
        assert check.ok
        assert check.value == Decimal("12")
        assert session.ledger.get("L1::Seed::0") == Decimal("12")

    def test_over_limit_rejected_and_ledger_unchanged(self, session):
        session.request("L1::Seed::0", "5")
        check = session.request("L1::Seed::0", "21")
        assert check.error is QuantityError.EXCEEDS_AVAILABLE
        assert check.max_allowed == Decimal("20")
        assert session.ledger.get("L1::Seed::0") == Decimal("5")

    def test_not_a_number(self, session):
        assert session.request("L1::Seed::0", "lots").error is QuantityError.NOT_A_NUMBER

    @pytest.mark.parametrize("raw", ["", "  ", None, "0", 0])
    def test_blank_or_zero_removes(self, session, raw):
        session.request("L1::Seed::0", "5")
        check = session.request("L1::Seed::0", raw)
        assert check.ok
        assert check.value == Decimal("0")
        assert session.ledger.is_empty

    def test_fraction_of_a_whole_bag_rejected(self, session):
        check = session.request("L1::Seed::0", "0.4")
        assert check.error is QuantityError.NOT_POSITIVE
        assert session.ledger.is_empty

    @pytest.mark.parametrize("key", ["nonsense", "L9::Seed::0"])
    def test_unknown_slot(self, session, key):
        check = session.request(key, "1")
        assert check.error is QuantityError.UNKNOWN_SLOT
        assert check.message == "Unknown allocation slot"

    def test_earlier_ledger_not_mutated(self, session):
        before = session.ledger
        session.request("L1::Seed::0", "3")
        assert before.is_empty
        assert session.ledger is not before

    def test_quick_remove(self, session):
        session.request("L2::Goli::0", "2")
        session.quick_remove("L2::Goli::0")
        assert session.ledger.is_empty
        assert session.total_quantity == Decimal("0")


class TestToggleLot:

    def test_select_uses_configured_columns(self, session):
        assert session.toggle_lot("L2") is True
        assert session.ledger.as_dict() == {
            "L2::Seed::0": Decimal("15"),
            "L2::Goli::0": Decimal("8"),
        }

    def test_explicit_sizes(self, session):
        session.toggle_lot("L1", sizes=["Seed"])
        assert session.total_quantity == Decimal("50")

    def test_toggle_twice_deselects(self, session):
        session.toggle_lot("L1")
        assert session.is_lot_selected("L1")
        assert session.toggle_lot("L1") is False
        assert not session.is_lot_selected("L1")

    def test_partially_selected_lot_is_cleared(self, session):
        session.request("L1::Seed::1", "1")
        assert session.toggle_lot("L1") is False
        assert session.ledger.is_empty

    def test_unknown_lot(self, session):
        with pytest.raises(LotNotFoundError):
            session.toggle_lot("nope")

    def test_default_config_takes_every_size(self, split_lot):
        session = DeliveryEditSession.new([split_lot])
        session.toggle_lot("L1")
        assert len(session.ledger) == 3


class TestEditMode:
    """Re-opening a stored delivery."""

    def test_seeded_from_delivery(self, stored_delivery, split_lot, config):
        session = DeliveryEditSession.for_delivery(stored_delivery, [split_lot], config)
        assert session.is_editing
        assert session.ledger.as_dict() == {"L1::Ration::0": Decimal("6")}

    def test_credit_extends_available(self, stored_delivery, split_lot, config):
        session = DeliveryEditSession.for_delivery(stored_delivery, [split_lot], config)
        assert session.credit_for("L1::Ration::0") == Decimal("6")
        assert session.available("L1::Ration::0") == Decimal("10")
        assert session.request("L1::Ration::0", "10").ok
        check = session.request("L1::Ration::0", "11")
        assert check.error is QuantityError.EXCEEDS_AVAILABLE
        assert check.max_allowed == Decimal("10")

    def test_no_credit_on_other_slots(self, stored_delivery, split_lot, config):
        session = DeliveryEditSession.for_delivery(stored_delivery, [split_lot], config)
        assert session.available("L1::Seed::0") == Decimal("20")

    def test_reselecting_lot_includes_credit(self, stored_delivery, split_lot, config):
        session = DeliveryEditSession.for_delivery(stored_delivery, [split_lot], config)
        session.toggle_lot("L1")
        session.toggle_lot("L1", sizes=["Ration"])
        assert session.ledger.as_dict() == {"L1::Ration::0": Decimal("10")}

    def test_rows_fall_back_to_snapshot(self, stored_delivery, config):
        """A lot no longer offered still shows through its snapshot."""
        session = DeliveryEditSession.for_delivery(stored_delivery, [], config)
        (row,) = session.rows()
        assert row.lot_reference_number == 12
        assert row.location == "C1 · F2 · R1"


class TestProjections:

    def test_rows_follow_column_order(self, session):
        session.request("L1::Seed::1", "2")
        session.request("L1::Ration::0", "1")
        assert [r.size for r in session.rows()] == ["Ration", "Seed"]

    def test_review_groups_by_lot(self, session):
        session.request("L1::Seed::0", "2")
        session.request("L1::Seed::1", "3")
        session.request("L2::Goli::0", "1")
        review = session.review()
        assert [g.lot_reference_number for g in review] == [7, 12]
        assert review[1].total_quantity == Decimal("5")

    def test_filter_options(self, session):
        assert session.varieties() == ["Chipsona", "Jyoti"]
        assert session.location_values().chambers == ("C1", "C2", "C3")

    def test_visible_groups(self, session):
        groups = session.visible_groups(variety="Jyoti")
        assert [l.lot_id for g in groups for l in g.lots] == ["L1"]
        groups = session.visible_groups(filters=LocationFilters(chamber="C3"))
        assert [l.lot_id for g in groups for l in g.lots] == ["L2"]

    def test_default_sort_order_from_config(self):
        same_day = [lot("A", 7, bag("Seed", 1)), lot("B", 12, bag("Seed", 1))]
        session = DeliveryEditSession.new(
            same_day, ColdStoreConfig(default_sort_order=SortOrder.DESC),
        )
        (group,) = session.visible_groups()
        assert [l.reference_number for l in group.lots] == [12, 7]
