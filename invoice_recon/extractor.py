"""
Model-backed extraction of invoice records from flattened spreadsheets.

This module provides functionality to:
- Render the generic or supplier-specific extraction prompt
- Call the language model once per invoice (no internal retries)
- Parse the JSON reply, tolerating markdown code fences
- Normalize the reply against the InvoiceRecord shape so callers never see
  missing keys
"""

import json
import math
import re
from typing import Any, Optional

from pydantic import ValidationError

from .config import FLATTEN_STYLE, ExtractionMode, PipelineStage, logger
from .exceptions import EmptySheetError, ExtractionError, ModelCallError, SchemaParseError
from .flattener import flatten
from .llm import ModelClient
from .prompts import build_generic_prompt, build_supplier_prompt
from .schemas import InvoiceRecord, LineItem
from .spreadsheet import load_grid

REQUIRED_TEXT_FIELDS = ("invoice_number", "invoice_date", "buyer", "seller")
OPTIONAL_TEXT_FIELDS = ("payment_term", "packing", "contract")
TOTAL_FIELDS = ("total_quantity", "total_amount")


# ============================================================================
# Value Parsing
# ============================================================================

def parse_number(value) -> Optional[float]:
    """
    Parse a numeric value from various formats.

    Handles currency symbols, spaces and both separator conventions:
    - US/UK format: 1,234.56 (comma = thousand separator, period = decimal)
    - European format: 1.234,56 (period = thousand separator, comma = decimal)
    A lone comma followed by exactly three digits ("1,234") is read as a
    thousand separator.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)

    value_str = str(value).strip()
    if not value_str:
        return None

    # Remove currency symbols and whitespace (including non-breaking spaces)
    value_str = re.sub(r'[\$€£₹¥₽\s ]', '', value_str)

    if ',' in value_str:
        comma_pos = value_str.rfind(',')
        period_pos = value_str.rfind('.')

        if period_pos > comma_pos:
            # "1,234.56" -> "1234.56"
            value_str = value_str.replace(',', '')
        elif period_pos == -1 and re.fullmatch(r'-?\d{1,3}(,\d{3})+', value_str):
            # "1,234" / "12,345,678"
            value_str = value_str.replace(',', '')
        else:
            # "1.234,56" -> "1234.56", "257,04" -> "257.04"
            value_str = value_str.replace('.', '').replace(',', '.')

    try:
        return float(value_str)
    except ValueError:
        return None


def strip_code_fences(text: str) -> str:
    """Remove ```json ... ``` wrappers some models put around JSON."""
    content = text.strip()
    if "```" in content:
        content = re.sub(r"```(?:json)?\s*", "", content).replace("```", "").strip()
    return content


def parse_model_json(raw_response: str, stage: Optional[str] = None) -> dict:
    """
    Parse a model reply into a JSON object.

    Raises:
        SchemaParseError: If the reply is not JSON or not a JSON object
    """
    content = strip_code_fences(raw_response or "")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise SchemaParseError(
            f"Model response is not valid JSON: {e}",
            stage=stage,
            raw_response=raw_response,
        ) from e

    if not isinstance(data, dict):
        raise SchemaParseError(
            f"Expected a JSON object, got {type(data).__name__}",
            stage=stage,
            raw_response=raw_response,
        )
    return data


# ============================================================================
# Normalization
# ============================================================================

def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    text = _text(value)
    return text or None


def _number(value: Any, field: str, raw_response: str, stage: Optional[str]) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0.0
    number = parse_number(value)
    if number is None or not math.isfinite(number):
        raise SchemaParseError(
            f"Field '{field}' is not a finite number: {value!r}",
            stage=stage,
            raw_response=raw_response,
        )
    return number


def normalize_item(
    data: Any,
    index: int,
    raw_response: str = "",
    stage: Optional[str] = None,
) -> LineItem:
    """Build a LineItem from one entry of the model's items list."""
    if not isinstance(data, dict):
        raise SchemaParseError(
            f"items[{index}] is not an object",
            stage=stage,
            raw_response=raw_response,
        )

    quantity = _number(data.get("quantity"), f"items[{index}].quantity", raw_response, stage)
    unit_price = _number(data.get("unit_price"), f"items[{index}].unit_price", raw_response, stage)

    if data.get("total") in (None, ""):
        total = round(quantity * unit_price, 2)
    else:
        total = _number(data.get("total"), f"items[{index}].total", raw_response, stage)

    return LineItem(
        sku=_text(data.get("sku")),
        description=_text(data.get("description")),
        quantity=quantity,
        unit_price=unit_price,
        total=total,
    )


def normalize_record(
    data: dict,
    raw_response: str = "",
    stage: Optional[str] = None,
) -> InvoiceRecord:
    """
    Coerce a parsed model reply into an InvoiceRecord.

    Missing strings become "", missing numbers 0, missing items an empty
    list and missing optional fields None.

    Raises:
        SchemaParseError: If a present value has the wrong shape
    """
    items_data = data.get("items")
    if items_data is None:
        items_data = []
    if not isinstance(items_data, list):
        raise SchemaParseError(
            "Field 'items' is not a list",
            stage=stage,
            raw_response=raw_response,
        )

    fields: dict[str, Any] = {}
    for name in REQUIRED_TEXT_FIELDS:
        fields[name] = _text(data.get(name))
    for name in OPTIONAL_TEXT_FIELDS:
        fields[name] = _optional_text(data.get(name))
    for name in TOTAL_FIELDS:
        fields[name] = _number(data.get(name), name, raw_response, stage)

    try:
        fields["items"] = [
            normalize_item(item, i, raw_response, stage) for i, item in enumerate(items_data)
        ]
        return InvoiceRecord(**fields)
    except ValidationError as e:
        raise SchemaParseError(
            f"Model response does not match the invoice schema: {e}",
            stage=stage,
            raw_response=raw_response,
        ) from e


# ============================================================================
# Main Extraction Functions
# ============================================================================

def build_prompt(table_text: str, mode: ExtractionMode) -> str:
    if mode == ExtractionMode.SUPPLIER:
        return build_supplier_prompt(table_text)
    return build_generic_prompt(table_text)


def extract_invoice(
    flattened_text: str,
    mode: ExtractionMode,
    client: ModelClient,
    stage: Optional[str] = None,
) -> InvoiceRecord:
    """
    Extract an InvoiceRecord from flattened spreadsheet text.

    Args:
        flattened_text: Output of flattener.flatten
        mode: Prompt variant to use
        client: Model client
        stage: Pipeline stage name attached to any error

    Returns:
        A fully populated InvoiceRecord

    Raises:
        ExtractionError: If the model call fails
        SchemaParseError: If the reply cannot be parsed into a record
    """
    mode = ExtractionMode(mode)
    stage = stage or f"extract_{mode.value}"
    prompt = build_prompt(flattened_text, mode)

    logger.info(f"Extracting invoice ({mode.value} prompt, {len(flattened_text)} chars)")
    try:
        raw_response = client.complete(prompt)
    except ModelCallError as e:
        raise ExtractionError(str(e), stage=stage) from e

    data = parse_model_json(raw_response, stage)
    record = normalize_record(data, raw_response, stage)

    logger.info(
        f"Extracted invoice {record.invoice_number or '<no number>'} "
        f"with {len(record.items)} items"
    )
    return record


def extract_invoice_from_bytes(
    content: bytes,
    mode: ExtractionMode,
    client: ModelClient,
    filename: Optional[str] = None,
    style: str = FLATTEN_STYLE,
    stage: Optional[str] = None,
) -> InvoiceRecord:
    """
    Load a workbook, flatten its first sheet and extract the invoice.

    Raises:
        EmptySheetError: If the workbook has no readable data
        ExtractionError: If extraction fails
    """
    try:
        text = flatten(load_grid(content, filename), style)
    except EmptySheetError as e:
        e.stage = e.stage or PipelineStage.FLATTEN.value
        raise
    return extract_invoice(text, mode, client, stage)
