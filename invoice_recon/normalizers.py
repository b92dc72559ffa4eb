"""
Normalization of item descriptions and invoice dates for the 1C templates.
"""

import re
from datetime import datetime
from typing import Optional

from .config import OUTPUT_DATE_FORMAT, SALES_INVOICE_DATE_FORMATS, logger
from .exceptions import ModelCallError
from .llm import ModelClient
from .prompts import build_date_prompt

_NON_LATIN = re.compile(r"[^a-zA-Z\s]")
_WHITESPACE = re.compile(r"\s+")
_ORDINAL_SUFFIX = re.compile(r"(?<=\d)(st|nd|rd|th)\b", re.IGNORECASE)
_OUTPUT_DATE = re.compile(r"^\d{2}/\d{2}/\d{4}$")


def normalize_description(raw: Optional[str]) -> str:
    """
    Keep only the Latin part of a description and sentence-case it.

    "Тормозные Brake Pads 123" -> "Brake pads"
    """
    latin_only = _NON_LATIN.sub("", raw or "")
    collapsed = _WHITESPACE.sub(" ", latin_only).strip()
    if not collapsed:
        return ""
    return collapsed[0].upper() + collapsed[1:].lower()


def is_output_date(value: str) -> bool:
    """True if value is a real calendar date written exactly as DD/MM/YYYY."""
    if not _OUTPUT_DATE.match(value):
        return False
    try:
        datetime.strptime(value, OUTPUT_DATE_FORMAT)
    except ValueError:
        return False
    return True


def format_date(raw_date: Optional[str], formats: Optional[list[str]] = None) -> str:
    """
    Reformat a date to DD/MM/YYYY by trying known input patterns in order.

    Ordinal suffixes ("10TH") are dropped before matching. If no pattern
    matches, the raw string is returned unchanged.
    """
    if raw_date is None:
        return ""
    candidate = _ORDINAL_SUFFIX.sub("", raw_date.strip())

    for fmt in formats or SALES_INVOICE_DATE_FORMATS:
        try:
            return datetime.strptime(candidate, fmt).strftime(OUTPUT_DATE_FORMAT)
        except ValueError:
            continue

    return raw_date


def normalize_date(raw_date: Optional[str], client: ModelClient) -> str:
    """
    Ask the model to rewrite a free-form date as DD/MM/YYYY.

    Best effort: if the model reply is not exactly a valid DD/MM/YYYY date,
    or the call fails, the trimmed input is returned unchanged and no
    exception is raised.
    """
    trimmed = (raw_date or "").strip()
    if not trimmed:
        return ""

    try:
        response = client.complete(build_date_prompt(trimmed))
    except ModelCallError as e:
        logger.warning(f"Date normalization failed for {trimmed!r}: {e}")
        return trimmed

    candidate = (response or "").strip().strip('"\'`').strip()
    if is_output_date(candidate):
        return candidate

    logger.warning(f"Model returned unusable date {candidate!r} for {trimmed!r}")
    return trimmed
