"""
Projection of a reconciled supplier/client invoice pair into the three 1C
import templates (Items, Inv and Sales Invoice).

Each template is a TabularSchema: an ordered list of columns, each with a
header, a width and a value function `(item, context) -> cell`, plus the
item list the rows are built from. Header order is part of the template;
the 1C import reads columns by position.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from openpyxl.utils.exceptions import IllegalCharacterError

from .config import (
    COUNTRY_OF_ORIGIN,
    DOCUMENT_CURRENCY,
    EMIRATE,
    INCLUSIVE_OF_VAT,
    INVENTORY_GL_ACCOUNT,
    ITEM_TYPE,
    OUTPUT_FILENAMES,
    VAT_RATE_LABEL,
    ArtifactKind,
    PipelineStage,
    logger,
)
from .exceptions import MappingError
from .normalizers import format_date, normalize_description
from .reconciler import round_money, to_decimal
from .schemas import GeneratedArtifact, InvoiceRecord, LineItem
from .spreadsheet import ColumnSpec, write_rows


@dataclass(frozen=True)
class MappingContext:
    """
    Everything a value function may read besides the current item.

    Attributes:
        supplier: Supplier invoice record
        client: Client invoice record
        supplier_date: Supplier invoice date after model normalization
    """
    supplier: InvoiceRecord
    client: InvoiceRecord
    supplier_date: str = ""

    @property
    def folder(self) -> str:
        return self.client.folder

    def supplier_item(self, sku: str) -> Optional[LineItem]:
        """First supplier item with exactly this SKU, if any."""
        return next((item for item in self.supplier.items if item.sku == sku), None)


ValueFn = Callable[[LineItem, MappingContext], Any]


@dataclass(frozen=True)
class SchemaColumn:
    header: str
    width: float
    value: ValueFn
    text_format: bool = False

    @property
    def spec(self) -> ColumnSpec:
        return ColumnSpec(self.header, self.width, self.text_format)


@dataclass(frozen=True)
class TabularSchema:
    """One output template: which items become rows and how each column is filled."""
    kind: ArtifactKind
    stage: PipelineStage
    source: Callable[[MappingContext], list[LineItem]]
    columns: tuple[SchemaColumn, ...]

    @property
    def headers(self) -> list[str]:
        return [column.header for column in self.columns]

    @property
    def column_specs(self) -> list[ColumnSpec]:
        return [column.spec for column in self.columns]

    def filename(self, folder: str) -> str:
        return OUTPUT_FILENAMES[self.kind].format(folder=folder)

    def project(self, context: MappingContext) -> list[dict[str, Any]]:
        """
        Build one row dict per source item.

        Raises:
            MappingError: If any value cannot be computed for an item
        """
        rows = []
        for item in self.source(context):
            try:
                rows.append({column.header: column.value(item, context) for column in self.columns})
            except (TypeError, ValueError, ArithmeticError) as e:
                raise MappingError(
                    f"Cannot build {self.kind.value} row for item {item.sku!r}: {e}",
                    stage=self.stage.value,
                    payload=dict(item),
                ) from e
        return rows

    def render(self, context: MappingContext) -> GeneratedArtifact:
        """Project the context and write the rows to an .xlsx artifact."""
        rows = self.project(context)
        try:
            content = write_rows(rows, self.column_specs)
        except (IllegalCharacterError, TypeError, ValueError) as e:
            raise MappingError(
                f"Cannot write {self.kind.value} file: {e}",
                stage=self.stage.value,
                payload=rows,
            ) from e
        logger.info(f"Generated {self.kind.value} file with {len(rows)} rows")
        return GeneratedArtifact(
            kind=self.kind,
            filename=self.filename(context.folder),
            content=content,
            row_count=len(rows),
        )


# ============================================================================
# Value Helpers
# ============================================================================

def const(value: Any) -> ValueFn:
    """Column that always holds the same value."""
    return lambda item, context: value


def number_cell(value: Any) -> Any:
    """Numeric cell; empty when the value is missing or zero."""
    if not value:
        return ""
    number = float(value)
    return int(number) if number.is_integer() else number


def line_amount(item: LineItem) -> str:
    """quantity x unit_price rounded half-up, as text with two decimals."""
    if not item.quantity or not item.unit_price:
        return ""
    amount = round_money(to_decimal(item.quantity) * to_decimal(item.unit_price))
    return f"{amount:.2f}"


def sales_content(item: LineItem, context: MappingContext) -> str:
    """Description from the matching supplier item, else the client's own."""
    supplier_item = context.supplier_item(item.sku)
    source = supplier_item if supplier_item is not None else item
    return normalize_description(source.description)


def _supplier_items(context: MappingContext) -> list[LineItem]:
    return context.supplier.items


def _client_items(context: MappingContext) -> list[LineItem]:
    return context.client.items


# ============================================================================
# Templates
# ============================================================================

ITEMS_SCHEMA = TabularSchema(
    kind=ArtifactKind.ITEMS,
    stage=PipelineStage.MAP_ITEMS,
    source=_supplier_items,
    columns=(
        SchemaColumn("item name", 40, lambda item, ctx: item.description),
        SchemaColumn("folder", 30, lambda item, ctx: ctx.folder),
        SchemaColumn("sku", 20, lambda item, ctx: item.sku),
        SchemaColumn("uom", 10, const("")),
        SchemaColumn("Item Type", 20, const(ITEM_TYPE)),
        SchemaColumn("Barcode", 20, const("")),
        SchemaColumn("Item Category", 30, lambda item, ctx: ctx.folder),
        SchemaColumn("Brand", 20, const("")),
        SchemaColumn("Country of Origin", 20, const(COUNTRY_OF_ORIGIN)),
        SchemaColumn("HS Code", 15, const("")),
        SchemaColumn("Customs Duty Rate", 20, const("")),
        SchemaColumn("Net Weight", 15, const("")),
        SchemaColumn("Use Serial Numbers?", 20, const("")),
        SchemaColumn("Use Batches?", 20, const("")),
        SchemaColumn("Use Characteristics?", 20, const("")),
    ),
)

INV_SCHEMA = TabularSchema(
    kind=ArtifactKind.INV,
    stage=PipelineStage.MAP_INV,
    source=_supplier_items,
    columns=(
        SchemaColumn("Date", 15, lambda item, ctx: ctx.supplier_date, text_format=True),
        SchemaColumn("Invoice Number", 20, lambda item, ctx: ctx.supplier.invoice_number, text_format=True),
        SchemaColumn("Supplier Name", 30, lambda item, ctx: ctx.supplier.seller),
        SchemaColumn("Warehouse", 15, const("")),
        SchemaColumn("Item", 20, lambda item, ctx: item.sku),
        SchemaColumn("Content", 40, lambda item, ctx: normalize_description(item.description)),
        SchemaColumn("Document Currency", 10, const(DOCUMENT_CURRENCY)),
        SchemaColumn("Quantity", 10, lambda item, ctx: number_cell(item.quantity)),
        SchemaColumn("UOM", 10, const("")),
        SchemaColumn("Price", 10, lambda item, ctx: number_cell(item.unit_price)),
        SchemaColumn("Inclusive of VAT", 15, const(INCLUSIVE_OF_VAT)),
        SchemaColumn("VAT, %", 15, const(VAT_RATE_LABEL)),
        SchemaColumn("VAT Amount", 15, const(0)),
        SchemaColumn("Total Amount", 15, lambda item, ctx: line_amount(item)),
        SchemaColumn("Import", 10, const("")),
        SchemaColumn("Inventory.GLAccount_GL", 20, const(INVENTORY_GL_ACCOUNT)),
    ),
)

SALES_INVOICE_SCHEMA = TabularSchema(
    kind=ArtifactKind.SALES_INVOICE,
    stage=PipelineStage.MAP_SALES_INVOICE,
    source=_client_items,
    columns=(
        SchemaColumn("Date", 15, lambda item, ctx: format_date(ctx.client.invoice_date), text_format=True),
        SchemaColumn("Invoice Number", 20, lambda item, ctx: ctx.client.invoice_number, text_format=True),
        # Taken from the supplier invoice's buyer, not the client invoice's
        SchemaColumn("Customer Name", 30, lambda item, ctx: ctx.supplier.buyer),
        SchemaColumn("Emirate", 15, const(EMIRATE)),
        SchemaColumn("Warehouse", 15, const("")),
        SchemaColumn("Item", 20, lambda item, ctx: item.sku),
        SchemaColumn("Content", 40, sales_content),
        SchemaColumn("Document Currency", 10, const(DOCUMENT_CURRENCY)),
        SchemaColumn("Quantity", 10, lambda item, ctx: number_cell(item.quantity)),
        SchemaColumn("UOM", 10, const("")),
        SchemaColumn("Price", 10, lambda item, ctx: number_cell(item.unit_price)),
        SchemaColumn("Inclusive of VAT", 15, const(INCLUSIVE_OF_VAT)),
        SchemaColumn("VAT, %", 15, const(VAT_RATE_LABEL)),
        SchemaColumn("VAT Amount", 15, const(0)),
        SchemaColumn("Total Amount", 15, lambda item, ctx: line_amount(item)),
    ),
)

# Generation order used by the pipeline
SCHEMAS: tuple[TabularSchema, ...] = (ITEMS_SCHEMA, INV_SCHEMA, SALES_INVOICE_SCHEMA)


def get_schema(kind: ArtifactKind) -> TabularSchema:
    kind = ArtifactKind(kind)
    return next(schema for schema in SCHEMAS if schema.kind == kind)


# ============================================================================
# Convenience Projections
# ============================================================================

def map_items(supplier: InvoiceRecord, client: InvoiceRecord) -> list[dict[str, Any]]:
    return ITEMS_SCHEMA.project(MappingContext(supplier, client))


def map_inv(
    supplier: InvoiceRecord,
    client: InvoiceRecord,
    supplier_date: str,
) -> list[dict[str, Any]]:
    """Inv rows; supplier_date is the already-normalized supplier invoice date."""
    return INV_SCHEMA.project(MappingContext(supplier, client, supplier_date))


def map_sales_invoice(supplier: InvoiceRecord, client: InvoiceRecord) -> list[dict[str, Any]]:
    return SALES_INVOICE_SCHEMA.project(MappingContext(supplier, client))
