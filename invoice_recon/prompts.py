"""
Prompt templates for invoice extraction and date normalization.
"""

from .config import SKU_COLUMN_LABELS

INVOICE_JSON_SCHEMA = """{
  "invoice_number": string,
  "invoice_date": string,
  "buyer": string,
  "seller": string,
  "payment_term": string,
  "packing": string,
  "items": [
    {
      "sku": string,
      "description": string,
      "quantity": number,
      "unit_price": number,
      "total": number
    }
  ],
  "total_quantity": number,
  "total_amount": number
}"""

SUPPLIER_JSON_SCHEMA = """{
  "invoice_number": string,     // from the Invoice No. field
  "invoice_date": string,       // from the Date field
  "contract": string,           // from the Contract field, if present
  "buyer": string,              // who the invoice is issued to
  "seller": string,             // who issued the invoice
  "items": [
    {
      "sku": string,            // article / part number
      "description": string,    // full description, English + Russian if both present
      "quantity": number,
      "unit_price": number,     // FCA or FOB price per unit, USD
      "total": number           // line total, USD
    }
  ],
  "total_quantity": number,
  "total_amount": number
}"""


def build_generic_prompt(table_text: str) -> str:
    """Prompt for any commercial invoice laid out as a table."""
    return f"""You are an expert in the structure of commercial invoices.
Answer only with valid JSON following this schema:
{INVOICE_JSON_SCHEMA}

Here is the tabular invoice data:
{table_text}
"""


def build_supplier_prompt(table_text: str) -> str:
    """Prompt with SKU-column, description, number and date heuristics."""
    labels = ", ".join(f'"{label}"' for label in SKU_COLUMN_LABELS)
    return f"""You extract structured data from supplier commercial invoices.

Your task:
1. Find the column holding the unique article number of each item (SKU).
   It is usually labelled {labels} or something similar.
2. Build JSON following this schema:

{SUPPLIER_JSON_SCHEMA}

Instructions:
- Pick "sku" by meaning: the column may be called "Fenox No.", "Part No." and so on.
- If the description is split across several columns, join them
  (for example: "Brake pads Тормозные колодки барабанные").
- Remove currency symbols ($, €, ₽), spaces and thousand separators from numbers.
- If the document contains several dates, use the one that comes right after
  the invoice number (Invoice No.), not the first or the last one. Example:
  Invoice No.   M04 ADR0301
  Date:         3/18/25
  Contract:     2B20082024
  Date:         8/20/24
  Here invoice_date = 3/18/25
- Return only valid JSON, no comments or explanations.

Here is the table:
{table_text}
"""


def build_date_prompt(raw_date: str) -> str:
    """Few-shot prompt converting a free-form date to DD/MM/YYYY."""
    return f"""You are a date converter. Convert the input date string to the format DD/MM/YYYY.

Examples:
- "DEC.10TH, 2024" -> "10/12/2024"
- "Jan 3, 2023" -> "03/01/2023"
- "2024/07/01" -> "01/07/2024"
- "10 August 2025" -> "10/08/2025"

Rules:
- Keep leading zeros on days and months: 3 -> 03, 7 -> 07
- The month must be a number
- Return only the date, without explanations

Date:
{raw_date}
"""
