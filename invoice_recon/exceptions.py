"""
Exception taxonomy for the reconciliation pipeline.

Every error raised by a pipeline stage carries the stage name so the
transport can tell the user which step failed before they retry the
session from the beginning.
"""

from typing import Any, Optional


class InvoiceReconError(Exception):
    """Base class for all service errors."""

    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.stage = stage


class EmptySheetError(InvoiceReconError):
    """The workbook has no readable sheet or the grid holds no data."""


class ExtractionError(InvoiceReconError):
    """The model call failed or its output could not be turned into a record."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        raw_response: Optional[str] = None,
    ) -> None:
        super().__init__(message, stage)
        self.raw_response = raw_response


class SchemaParseError(ExtractionError):
    """The model responded, but not with JSON matching the invoice shape."""


class MappingError(InvoiceReconError):
    """A record could not be projected into one of the output schemas."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message, stage)
        self.payload = payload


class ModelCallError(InvoiceReconError):
    """The language model request itself failed."""


class ModelConfigurationError(InvoiceReconError):
    """No model client can be built (e.g. OPENAI_API_KEY is not set)."""
