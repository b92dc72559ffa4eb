"""
Configuration constants and enums for the Invoice Reconciliation Service.
"""

import logging
import os
from enum import Enum
from typing import Final, Optional

from dotenv import load_dotenv

load_dotenv()


# ============================================================================
# Enums
# ============================================================================

class ExtractionMode(str, Enum):
    """Prompt variant used to extract an invoice."""
    GENERIC = "generic"
    SUPPLIER = "supplier"


class ArtifactKind(str, Enum):
    """The three spreadsheets generated for 1C import."""
    ITEMS = "items"
    INV = "inv"
    SALES_INVOICE = "sales_invoice"


class PipelineStage(str, Enum):
    """Stages of a reconciliation session, used in error reports."""
    FLATTEN = "flatten"
    EXTRACT_SUPPLIER = "extract_supplier"
    EXTRACT_CLIENT = "extract_client"
    RECONCILE = "reconcile"
    MAP_ITEMS = "map_items"
    MAP_INV = "map_inv"
    MAP_SALES_INVOICE = "map_sales_invoice"


# ============================================================================
# Model Client
# ============================================================================

OPENAI_MODEL: Final[str] = os.getenv("OPENAI_MODEL", "gpt-4o")
OPENAI_TEMPERATURE: Final[float] = float(os.getenv("OPENAI_TEMPERATURE", "0.3"))
OPENAI_BASE_URL: Final[Optional[str]] = os.getenv("OPENAI_BASE_URL") or None

# Supplier files go through the generic prompt, client files through the
# SKU-aware one.
SUPPLIER_EXTRACTION_MODE: Final[ExtractionMode] = ExtractionMode(
    os.getenv("SUPPLIER_EXTRACTION_MODE", ExtractionMode.GENERIC.value)
)
CLIENT_EXTRACTION_MODE: Final[ExtractionMode] = ExtractionMode(
    os.getenv("CLIENT_EXTRACTION_MODE", ExtractionMode.SUPPLIER.value)
)

# "json" (array of arrays) or "tsv" (tab-joined lines)
FLATTEN_STYLE: Final[str] = os.getenv("FLATTEN_STYLE", "json")

# ============================================================================
# Extraction Hints
# ============================================================================

# Header labels that usually mark the SKU column in supplier invoices
SKU_COLUMN_LABELS: Final[list[str]] = [
    "Part No",
    "Fenox No",
    "Item No",
    "Article",
    "Код",
    "Артикул",
]

# ============================================================================
# Date Formats
# ============================================================================

# Output format for every date written to the 1C spreadsheets
OUTPUT_DATE_FORMAT: Final[str] = "%d/%m/%Y"

# Input patterns tried by the Sales Invoice date formatter, in order
SALES_INVOICE_DATE_FORMATS: Final[list[str]] = [
    "%Y-%m-%d",      # 2024-01-15
    "%d.%m.%Y",      # 15.01.2024
    "%d-%m-%Y",      # 15-01-2024
    "%d/%m/%Y",      # 15/01/2024
    "%b.%d, %Y",     # DEC.10, 2024 (ordinal suffix stripped first)
    "%B.%d, %Y",     # December.10, 2024
]

# ============================================================================
# Output Schemas
# ============================================================================

DOCUMENT_CURRENCY: Final[str] = "USD"
COUNTRY_OF_ORIGIN: Final[str] = "CHINA"
ITEM_TYPE: Final[str] = "Inventory Item"
EMIRATE: Final[str] = "Dubai"
INCLUSIVE_OF_VAT: Final[str] = "No"
VAT_RATE_LABEL: Final[str] = "Out of Scope"
INVENTORY_GL_ACCOUNT: Final[str] = "Goods"

OUTPUT_FILENAMES: Final[dict[ArtifactKind, str]] = {
    ArtifactKind.ITEMS: "Items (заполнение для 1С) [{folder}].xlsx",
    ArtifactKind.INV: "Inv (заполнение для 1С) [{folder}].xlsx",
    ArtifactKind.SALES_INVOICE: "Sales Invoice (заполнение для 1С) [{folder}].xlsx",
}

SHEET_TITLE: Final[str] = "Sheet1"

# ============================================================================
# Session / API Configuration
# ============================================================================

SESSION_TTL_SECONDS: Final[int] = int(os.getenv("SESSION_TTL_SECONDS", "3600"))

ALLOWED_EXTENSIONS: Final[tuple[str, ...]] = (".xlsx", ".xls")

API_HOST: Final[str] = os.getenv("API_HOST", "0.0.0.0")
API_PORT: Final[int] = int(os.getenv("API_PORT", "8000"))
MAX_UPLOAD_SIZE_MB: Final[int] = int(os.getenv("MAX_UPLOAD_SIZE_MB", "10"))

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO")

def setup_logging() -> logging.Logger:
    """Configure and return the application logger."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("invoice_recon")


logger = setup_logging()
