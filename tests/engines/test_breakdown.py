"""
Tests for drilling an aggregate cell down to its contributing lots.
"""

from decimal import Decimal

import pytest

from coldstore_engines.breakdown import BreakdownSelector, resolve_breakdown
from coldstore_engines.stock_summary import StockMode, aggregate_stock
from tests.conftest import bag, lot

SIZES = ("Ration", "Seed", "Goli")


@pytest.fixture
def stock(split_lot, plain_lot, transfer_lot):
    return [split_lot, plain_lot, transfer_lot]


class TestSelectorFromClick:
    """Mapping table clicks onto selectors."""

    def test_plain_cell(self):
        assert BreakdownSelector.from_cell_click("Jyoti", "Seed") == BreakdownSelector.cell("Jyoti", "Seed")

    def test_row_total_column(self):
        assert BreakdownSelector.from_cell_click("Jyoti", "total") == BreakdownSelector.row_total("Jyoti")

    def test_variety_label_column(self):
        assert BreakdownSelector.from_cell_click("Jyoti", "variety").size is None

    def test_totals_row_cell(self):
        selector = BreakdownSelector.from_cell_click("Total", "Seed")
        assert selector == BreakdownSelector.column_total("Seed")
        assert selector.variety is None

    def test_grand_total(self):
        assert BreakdownSelector.from_cell_click("Total", "total") == BreakdownSelector.grand_total()

    def test_is_total_flag(self):
        assert BreakdownSelector.from_cell_click("Jyoti", "Goli", is_total=True).variety is None


class TestResolveBreakdown:

    def test_cell_entries_sorted_by_reference(self, stock):
        result = resolve_breakdown(stock, BreakdownSelector.column_total("Seed"))
        assert [e.lot_reference_number for e in result.entries] == [7, 12, 12]
        assert result.total == Decimal("65")

    def test_entry_carries_location_label(self, split_lot):
        result = resolve_breakdown([split_lot], BreakdownSelector.cell("Jyoti", "Ration"))
        (entry,) = result.entries
        assert entry.location == "C1 · F2 · R1"
        assert entry.quantity == Decimal("4")

    def test_empty_location_label(self):
        result = resolve_breakdown([lot("X", 1, bag("Seed", 2))], BreakdownSelector.grand_total())
        assert result.entries[0].location == "—"

    def test_zero_contributions_omitted(self, plain_lot):
        result = resolve_breakdown([plain_lot], BreakdownSelector.grand_total(), StockMode.OUTGOING)
        assert result.is_empty
        assert result.total == Decimal("0")

    def test_transfers_excluded(self, transfer_lot):
        assert len(resolve_breakdown([transfer_lot], BreakdownSelector.grand_total())) == 0

    def test_sizes_restrict_entries(self, plain_lot):
        result = resolve_breakdown([plain_lot], BreakdownSelector.grand_total(), sizes=("Seed",))
        assert result.total == Decimal("15")

    def test_custom_separator(self, split_lot):
        result = resolve_breakdown(
            [split_lot], BreakdownSelector.cell("Jyoti", "Ration"), location_separator="/",
        )
        assert result.entries[0].location == "C1/F2/R1"


class TestCompleteness:
    """Every breakdown total matches the summary figure it explains."""

    @pytest.mark.parametrize("mode", list(StockMode))
    def test_matches_summary(self, stock, mode):
        summary = aggregate_stock(stock, SIZES, mode)
        for variety in summary.varieties:
            for size in SIZES:
                cell = resolve_breakdown(stock, BreakdownSelector.cell(variety, size), mode, SIZES)
                assert cell.total == summary.cell(variety, size)
            row = resolve_breakdown(stock, BreakdownSelector.row_total(variety), mode, SIZES)
            assert row.total == summary.row_for(variety).total
        for size in SIZES:
            column = resolve_breakdown(stock, BreakdownSelector.column_total(size), mode, SIZES)
            assert column.total == summary.column_totals[size]
        grand = resolve_breakdown(stock, BreakdownSelector.grand_total(), mode, SIZES)
        assert grand.total == summary.grand_total


class TestSentinelSelectors:
    """Selectors built from raw table labels behave like the named constructors."""

    def test_totals_labels_normalised(self):
        selector = BreakdownSelector(variety="Total", size="total", is_total=True)
        assert selector == BreakdownSelector.grand_total()

    def test_total_label_implies_totals_row(self):
        assert BreakdownSelector(variety="Total", size="Seed") == BreakdownSelector.column_total("Seed")

    @pytest.mark.parametrize("mode", list(StockMode))
    def test_literal_grand_total_matches_aggregate(self, stock, mode):
        result = resolve_breakdown(
            stock, BreakdownSelector(variety="Total", size="total", is_total=True), mode, SIZES,
        )
        assert result.total == aggregate_stock(stock, SIZES, mode).grand_total
        assert result.entries
