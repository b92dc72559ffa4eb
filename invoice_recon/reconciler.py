"""
Reconciliation of declared invoice totals against their line items.

For each invoice the engine recomputes the total quantity and the total
amount from the items and compares them with the header totals. It then
compares the recomputed totals of the supplier invoice with those of the
client invoice.

Comparisons are exact. Amounts are rounded half-up to two decimals before
they are compared; sums are built from Decimal values so float
representation never decides a match.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from .config import logger
from .schemas import InvoiceRecord, ReconciliationReport, RecordTotals, TotalsCheck

CENT = Decimal("0.01")

Number = Union[int, float, Decimal, None]


def to_decimal(value: Number) -> Decimal:
    """Exact decimal form of a number, using its shortest string representation."""
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Number) -> Decimal:
    """Round a currency amount to two decimals, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_quantity(record: InvoiceRecord) -> Decimal:
    return sum((to_decimal(item.quantity) for item in record.items), Decimal(0))


def calculate_amount(record: InvoiceRecord) -> Decimal:
    """Rounded sum of quantity x unit_price; rounding applies to the sum only."""
    total = sum(
        (to_decimal(item.quantity) * to_decimal(item.unit_price) for item in record.items),
        Decimal(0),
    )
    return round_money(total)


def check_record(record: InvoiceRecord) -> RecordTotals:
    """Compare one invoice's recomputed totals with its declared totals."""
    calculated_quantity = calculate_quantity(record)
    calculated_amount = calculate_amount(record)
    declared_quantity = to_decimal(record.total_quantity)
    declared_amount = round_money(record.total_amount)

    return RecordTotals(
        calculated_quantity=float(calculated_quantity),
        declared_quantity=float(declared_quantity),
        calculated_amount=float(calculated_amount),
        declared_amount=float(declared_amount),
        quantity_check=calculated_quantity == declared_quantity,
        amount_check=calculated_amount == declared_amount,
    )


def reconcile(supplier: InvoiceRecord, client: InvoiceRecord) -> ReconciliationReport:
    """
    Run all six totals checks for a supplier/client invoice pair.

    Every check runs regardless of earlier results. A mismatch is reported,
    never raised.
    """
    supplier_quantity = calculate_quantity(supplier)
    client_quantity = calculate_quantity(client)
    supplier_amount = calculate_amount(supplier)
    client_amount = calculate_amount(client)

    report = ReconciliationReport(
        supplier=check_record(supplier),
        client=check_record(client),
        quantity_match=TotalsCheck(
            supplier_value=float(supplier_quantity),
            client_value=float(client_quantity),
            passed=supplier_quantity == client_quantity,
        ),
        amount_match=TotalsCheck(
            supplier_value=float(supplier_amount),
            client_value=float(client_amount),
            passed=supplier_amount == client_amount,
        ),
    )

    logger.info(
        f"Reconciled {supplier.invoice_number or '<supplier>'} against "
        f"{client.invoice_number or '<client>'}: "
        f"{'all checks passed' if report.all_passed else 'mismatches found'}"
    )
    return report


# ============================================================================
# Text Report
# ============================================================================

def _fmt(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"


def _status(passed: bool, ok: str = "OK", failed: str = "MISMATCH") -> str:
    return f"[{ok}]" if passed else f"[{failed}]"


def format_report_text(report: ReconciliationReport) -> str:
    """
    Format a ReconciliationReport as the text message sent to the user.

    Args:
        report: ReconciliationReport to format

    Returns:
        Multi-line string
    """
    lines = [
        "=" * 50,
        "RECONCILIATION RESULTS",
        "=" * 50,
    ]

    for title, totals in (("Supplier Invoice:", report.supplier), ("Client Invoice:", report.client)):
        lines.extend([
            title,
            "-" * 40,
            f"  Total Amount:   {_fmt(totals.calculated_amount)} vs "
            f"{_fmt(totals.declared_amount)} {_status(totals.amount_check)}",
            f"  Total Quantity: {_fmt(totals.calculated_quantity)} vs "
            f"{_fmt(totals.declared_quantity)} {_status(totals.quantity_check)}",
            "",
        ])

    lines.extend([
        "Between invoices:",
        "-" * 40,
        f"  Total Quantity: {_fmt(report.quantity_match.supplier_value)} vs "
        f"{_fmt(report.quantity_match.client_value)} "
        f"{_status(report.quantity_match.passed, 'MATCH')}",
        f"  Total Amount:   {_fmt(report.amount_match.supplier_value)} vs "
        f"{_fmt(report.amount_match.client_value)} "
        f"{_status(report.amount_match.passed, 'MATCH')}",
        "=" * 50,
    ])

    return "\n".join(lines)
