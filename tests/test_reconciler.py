"""
Tests for the reconciliation engine.

These tests verify totals recomputation, exact comparisons after
rounding and the text report.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from invoice_recon.reconciler import (
    calculate_amount,
    calculate_quantity,
    check_record,
    format_report_text,
    reconcile,
    round_money,
)
from invoice_recon.schemas import InvoiceRecord, LineItem


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def supplier_invoice() -> InvoiceRecord:
    """A supplier invoice whose declared totals match its items."""
    return InvoiceRecord(
        invoice_number="M04 ADR0301",
        invoice_date="3/18/25",
        buyer="Gulf Auto Parts FZE",
        seller="Ningbo Brake Systems",
        items=[
            LineItem(sku="A", description="Brake pads", quantity=5, unit_price=2, total=10),
            LineItem(sku="B", description="Brake disc", quantity=5, unit_price=3.5, total=17.5),
        ],
        total_quantity=10,
        total_amount=27.5,
    )


@pytest.fixture
def client_invoice() -> InvoiceRecord:
    """A client invoice with the same quantities and amounts."""
    return InvoiceRecord(
        invoice_number="GAP 2025 014",
        invoice_date="2025-03-20",
        buyer="Dubai Motors LLC",
        seller="Gulf Auto Parts FZE",
        items=[
            LineItem(sku="B", description="Brake disc", quantity=5, unit_price=3.5, total=17.5),
            LineItem(sku="A", description="Brake pads", quantity=5, unit_price=2, total=10),
        ],
        total_quantity=10,
        total_amount=27.5,
    )


# ============================================================================
# Rounding and Totals
# ============================================================================

class TestRoundMoney:
    """Tests for half-up currency rounding."""

    def test_rounds_half_up(self):
        assert round_money(2.675) == Decimal("2.68")
        assert round_money(0.125) == Decimal("0.13")

    def test_none_is_zero(self):
        assert round_money(None) == Decimal("0.00")

    def test_integer(self):
        assert round_money(10) == Decimal("10.00")


class TestCalculatedTotals:
    """Tests for totals recomputed from line items."""

    def test_rounding_applies_to_sum_not_items(self):
        record = InvoiceRecord(items=[
            LineItem(sku="X", quantity=2, unit_price=10.005),
            LineItem(sku="Y", quantity=1, unit_price=5),
        ])
        assert calculate_amount(record) == Decimal("25.01")

    def test_float_drift_does_not_break_equality(self):
        record = InvoiceRecord(
            items=[
                LineItem(sku="X", quantity=1, unit_price=0.1),
                LineItem(sku="Y", quantity=1, unit_price=0.2),
            ],
            total_amount=0.3,
        )
        assert check_record(record).amount_check is True

    def test_quantity_sum(self, supplier_invoice):
        assert calculate_quantity(supplier_invoice) == Decimal(10)

    def test_empty_items(self):
        record = InvoiceRecord()
        assert calculate_quantity(record) == 0
        assert calculate_amount(record) == Decimal("0.00")


class TestCheckRecord:
    """Tests for per-record checks."""

    def test_matching_record_passes(self, supplier_invoice):
        totals = check_record(supplier_invoice)
        assert totals.quantity_check is True
        assert totals.amount_check is True
        assert totals.calculated_amount == 27.5

    def test_declared_amount_rounded_before_compare(self, supplier_invoice):
        supplier_invoice.total_amount = 27.499
        assert check_record(supplier_invoice).amount_check is True

    def test_one_cent_drift_is_a_mismatch(self, supplier_invoice):
        supplier_invoice.total_amount = 27.51
        assert check_record(supplier_invoice).amount_check is False

    def test_quantity_mismatch(self, supplier_invoice):
        supplier_invoice.total_quantity = 11
        totals = check_record(supplier_invoice)
        assert totals.quantity_check is False
        assert totals.amount_check is True


# ============================================================================
# Reconciliation
# ============================================================================

class TestReconcile:
    """Tests for the supplier/client reconciliation."""

    def test_all_checks_pass(self, supplier_invoice, client_invoice):
        report = reconcile(supplier_invoice, client_invoice)
        assert report.all_passed is True
        assert report.quantity_match.passed is True
        assert report.amount_match.passed is True

    def test_end_to_end_single_item(self):
        supplier = InvoiceRecord(
            items=[LineItem(sku="A", quantity=5, unit_price=2, total=10)],
            total_quantity=5,
            total_amount=10,
        )
        report = reconcile(supplier, supplier)
        assert report.supplier.quantity_check is True
        assert report.supplier.amount_check is True
        assert report.client.quantity_check is True
        assert report.client.amount_check is True

    def test_cross_quantity_has_no_tolerance(self, supplier_invoice, client_invoice):
        client_invoice.items[0].quantity = 5.001
        report = reconcile(supplier_invoice, client_invoice)
        assert report.quantity_match.passed is False
        assert report.quantity_match.supplier_value == 10
        assert report.quantity_match.client_value == pytest.approx(10.001)

    def test_every_check_runs_when_others_fail(self, supplier_invoice, client_invoice):
        supplier_invoice.total_quantity = 99
        supplier_invoice.total_amount = 1
        client_invoice.items.pop()
        report = reconcile(supplier_invoice, client_invoice)

        assert report.supplier.quantity_check is False
        assert report.supplier.amount_check is False
        # client declared 10 / 27.5 but now only holds 5 x 3.5
        assert report.client.quantity_check is False
        assert report.client.amount_check is False
        assert report.quantity_match.passed is False
        assert report.amount_match.passed is False
        assert report.all_passed is False

    def test_non_finite_totals_cannot_reach_reconcile(self):
        with pytest.raises(ValidationError):
            InvoiceRecord(total_amount=float("inf"))
        with pytest.raises(ValidationError):
            LineItem(sku="A", quantity=float("nan"))

    def test_cross_amount_compares_calculated_values(self, supplier_invoice, client_invoice):
        # Declared totals differ, calculated ones agree
        client_invoice.total_amount = 999
        report = reconcile(supplier_invoice, client_invoice)
        assert report.amount_match.passed is True
        assert report.client.amount_check is False


class TestFormatReportText:
    """Tests for the human-readable report."""

    def test_contains_all_sections(self, supplier_invoice, client_invoice):
        text = format_report_text(reconcile(supplier_invoice, client_invoice))
        assert "Supplier Invoice:" in text
        assert "Client Invoice:" in text
        assert "Between invoices:" in text
        assert "27.50 vs 27.50 [OK]" in text
        assert "10 vs 10 [MATCH]" in text

    def test_marks_mismatches(self, supplier_invoice, client_invoice):
        supplier_invoice.total_quantity = 12
        text = format_report_text(reconcile(supplier_invoice, client_invoice))
        assert "10 vs 12 [MISMATCH]" in text
