"""
Invoice Extraction & Reconciliation Service

A Python service that extracts line items from supplier and client invoice
spreadsheets with a language model, reconciles their totals and generates
the Items, Inv and Sales Invoice templates for 1C import.
"""

__version__ = "0.1.0"
__author__ = "Invoice Reconciliation Team"

from .schemas import InvoiceRecord, LineItem, ReconciliationReport
from .extractor import extract_invoice, extract_invoice_from_bytes
from .flattener import flatten
from .mappers import ITEMS_SCHEMA, INV_SCHEMA, SALES_INVOICE_SCHEMA
from .normalizers import normalize_date, normalize_description
from .reconciler import reconcile, format_report_text
from .pipeline import process_session

__all__ = [
    "InvoiceRecord",
    "LineItem",
    "ReconciliationReport",
    "extract_invoice",
    "extract_invoice_from_bytes",
    "flatten",
    "ITEMS_SCHEMA",
    "INV_SCHEMA",
    "SALES_INVOICE_SCHEMA",
    "normalize_date",
    "normalize_description",
    "reconcile",
    "format_report_text",
    "process_session",
]
