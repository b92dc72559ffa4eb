"""
Pydantic models for extracted invoices, reconciliation results and
generated artifacts.

This module defines the core data structures used throughout the service:
- InvoiceRecord and LineItem, the canonical shape every extraction produces
- RecordTotals, TotalsCheck and ReconciliationReport for the totals checks
- GeneratedArtifact for the spreadsheets handed back to the transport
- Request/response models for the HTTP API
"""

from typing import Optional

from pydantic import BaseModel, Field

from .config import ArtifactKind, ExtractionMode


class LineItem(BaseModel):
    """
    A single line of an invoice's item table.

    Attributes:
        sku: Article / part number, the key used to match items across invoices
        description: Raw description, possibly mixing Latin and Cyrillic text
        quantity: Number of units
        unit_price: Price per unit
        total: Line total as extracted, or quantity x unit_price when absent
    """
    sku: str = Field("", description="Article or part number")
    description: str = Field("", description="Raw item description")
    quantity: float = Field(0, allow_inf_nan=False, ge=0, description="Number of units")
    unit_price: float = Field(0, allow_inf_nan=False, ge=0, description="Price per unit")
    total: float = Field(0, allow_inf_nan=False, description="Line total")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "sku": "BP10212",
                    "description": "Brake pads Тормозные колодки",
                    "quantity": 40,
                    "unit_price": 3.15,
                    "total": 126.00,
                }
            ]
        }
    }


class InvoiceRecord(BaseModel):
    """
    Canonical invoice extracted from a spreadsheet.

    `total_quantity` and `total_amount` are the header-level claims made by
    the document; they are not trusted until reconciled against the items.
    """
    invoice_number: str = Field("", description="Invoice number as printed")
    invoice_date: str = Field("", description="Invoice date, free-form, not normalized")
    buyer: str = Field("", description="Party the invoice is issued to")
    seller: str = Field("", description="Party issuing the invoice")
    payment_term: Optional[str] = Field(None, description="Payment terms")
    packing: Optional[str] = Field(None, description="Packing details")
    contract: Optional[str] = Field(None, description="Contract reference")
    items: list[LineItem] = Field(default_factory=list, description="Item table rows")
    total_quantity: float = Field(0, allow_inf_nan=False, description="Declared total quantity")
    total_amount: float = Field(0, allow_inf_nan=False, description="Declared total amount")

    @property
    def folder(self) -> str:
        """Invoice number with spaces replaced by underscores."""
        return self.invoice_number.replace(" ", "_")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "invoice_number": "M04 ADR0301",
                    "invoice_date": "3/18/25",
                    "buyer": "Gulf Auto Parts FZE",
                    "seller": "Ningbo Brake Systems Co., Ltd",
                    "payment_term": "T/T 30 days",
                    "packing": "Cartons",
                    "contract": "2B20082024",
                    "items": [
                        {
                            "sku": "BP10212",
                            "description": "Brake pads Тормозные колодки",
                            "quantity": 40,
                            "unit_price": 3.15,
                            "total": 126.00,
                        }
                    ],
                    "total_quantity": 40,
                    "total_amount": 126.00,
                }
            ]
        }
    }


# ============================================================================
# Reconciliation
# ============================================================================

class RecordTotals(BaseModel):
    """Calculated vs declared totals for one invoice."""
    calculated_quantity: float
    declared_quantity: float
    calculated_amount: float
    declared_amount: float
    quantity_check: bool = Field(..., description="Sum of item quantities equals declared total")
    amount_check: bool = Field(..., description="Rounded sum of item amounts equals declared total")


class TotalsCheck(BaseModel):
    """A single cross-invoice comparison."""
    supplier_value: float
    client_value: float
    passed: bool


class ReconciliationReport(BaseModel):
    """
    Result of reconciling a supplier invoice against a client invoice.

    All six checks are always present; a failing check never hides the
    others.
    """
    supplier: RecordTotals
    client: RecordTotals
    quantity_match: TotalsCheck
    amount_match: TotalsCheck

    @property
    def all_passed(self) -> bool:
        return all([
            self.supplier.quantity_check,
            self.supplier.amount_check,
            self.client.quantity_check,
            self.client.amount_check,
            self.quantity_match.passed,
            self.amount_match.passed,
        ])


# ============================================================================
# Generated Output
# ============================================================================

class GeneratedArtifact(BaseModel):
    """One generated spreadsheet ready to hand to the user."""
    kind: ArtifactKind
    filename: str
    content: bytes = Field(repr=False)
    row_count: int = Field(..., ge=0)


# ============================================================================
# API Request/Response Models
# ============================================================================

class ReconcileRequest(BaseModel):
    """Request body for the /reconcile endpoint."""
    supplier: InvoiceRecord
    client: InvoiceRecord


class ReconcileResponse(BaseModel):
    """Response for the /reconcile endpoint."""
    report: ReconciliationReport
    all_passed: bool
    report_text: str


class ExtractResponse(BaseModel):
    """Response for the /extract endpoint."""
    filename: str
    mode: ExtractionMode
    record: InvoiceRecord


class ArtifactInfo(BaseModel):
    kind: ArtifactKind
    filename: str
    row_count: int


class SessionResponse(BaseModel):
    """Current state of a reconciliation session."""
    session_id: str
    stage: str
    message: str
    supplier: Optional[InvoiceRecord] = None
    client: Optional[InvoiceRecord] = None
    report: Optional[ReconciliationReport] = None
    report_text: Optional[str] = None
    artifacts: list[ArtifactInfo] = Field(default_factory=list)
    failed_stage: Optional[str] = None
    error: Optional[str] = None
