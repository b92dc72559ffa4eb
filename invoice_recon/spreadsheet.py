"""
Spreadsheet I/O for invoice workbooks and generated 1C templates.

Reading turns the first worksheet of an .xlsx workbook into a plain grid
(list of rows of cell values). Writing takes row dicts plus an ordered
column spec and returns the bytes of a new workbook.
"""

from dataclasses import dataclass
from io import BytesIO
from typing import Any, Iterable, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

from .config import SHEET_TITLE, logger
from .exceptions import EmptySheetError

Grid = list[list[Any]]

TEXT_NUMBER_FORMAT = "@"


@dataclass(frozen=True)
class ColumnSpec:
    """Header, width and formatting of one output column."""
    header: str
    width: float
    text_format: bool = False


def load_grid(content: bytes, filename: Optional[str] = None) -> Grid:
    """
    Read the first worksheet of a workbook into a row-major grid.

    Args:
        content: Raw workbook bytes
        filename: Original filename, used for logging only

    Returns:
        List of rows, each a list of cell values (None for empty cells)

    Raises:
        EmptySheetError: If the bytes are not a readable workbook or it has no sheet
    """
    name = filename or "workbook"
    try:
        workbook = load_workbook(BytesIO(content), data_only=True, read_only=True)
    except Exception as e:
        raise EmptySheetError(f"Could not read {name}: {e}") from e

    try:
        if not workbook.sheetnames:
            raise EmptySheetError(f"{name} contains no worksheets")
        worksheet = workbook[workbook.sheetnames[0]]
        grid = [list(row) for row in worksheet.iter_rows(values_only=True)]
    finally:
        workbook.close()

    logger.debug(f"Loaded {len(grid)} rows from {name}")
    return grid


def write_rows(rows: Iterable[dict[str, Any]], columns: list[ColumnSpec]) -> bytes:
    """
    Write rows to a new single-sheet workbook.

    The header row is bold and centered; columns flagged as text get the
    "@" number format so values like dates and invoice numbers stay strings.

    Args:
        rows: Row dicts keyed by column header
        columns: Ordered column spec; header order is the output order

    Returns:
        Workbook bytes (.xlsx)
    """
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = SHEET_TITLE

    worksheet.append([column.header for column in columns])
    for row in rows:
        worksheet.append([row.get(column.header, "") for column in columns])

    for index, column in enumerate(columns, start=1):
        letter = get_column_letter(index)
        worksheet.column_dimensions[letter].width = column.width
        if column.text_format:
            for (cell,) in worksheet.iter_rows(min_col=index, max_col=index, min_row=2):
                cell.number_format = TEXT_NUMBER_FORMAT

    for cell in worksheet[1]:
        cell.font = Font(bold=True)
        cell.alignment = Alignment(vertical="center", horizontal="center")

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
