"""
Flatten a spreadsheet grid into text a language model can read.

Empty-row policy (both styles): rows whose cells are all None or
whitespace-only strings are dropped. Everything else keeps its original row
and column order, and empty cells stay in place so columns never shift.
"""

import json
from datetime import date, datetime, time
from typing import Any

from .config import logger
from .exceptions import EmptySheetError
from .spreadsheet import Grid

FLATTEN_STYLES = ("json", "tsv")


def is_empty_cell(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def _cell_value(value: Any) -> Any:
    """Convert a cell into a JSON-safe value."""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, str):
        return value.strip()
    return value


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(_cell_value(value))


def populated_rows(grid: Grid) -> list[list[Any]]:
    """Return the rows of a grid that hold at least one non-empty cell."""
    return [list(row) for row in grid if row and not all(is_empty_cell(c) for c in row)]


def flatten(grid: Grid, style: str = "json") -> str:
    """
    Serialize a grid for prompting.

    Args:
        grid: Row-major cells, as returned by spreadsheet.load_grid
        style: "json" for one JSON array of arrays, "tsv" for one
            tab-joined line per row

    Returns:
        The flattened text

    Raises:
        EmptySheetError: If the grid has no populated rows
        ValueError: If style is not supported
    """
    if style not in FLATTEN_STYLES:
        raise ValueError(f"Unknown flatten style: {style!r}. Use one of {FLATTEN_STYLES}")

    rows = populated_rows(grid or [])
    if not rows:
        raise EmptySheetError("Sheet contains no data")

    logger.debug(f"Flattening {len(rows)} populated rows as {style}")

    if style == "json":
        data = [[_cell_value(cell) for cell in row] for row in rows]
        return json.dumps(data, ensure_ascii=False, indent=2, default=str)

    return "\n".join("\t".join(_cell_text(cell) for cell in row) for row in rows)
