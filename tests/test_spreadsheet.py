"""
Tests for workbook reading and writing.
"""

from io import BytesIO

import pytest
from openpyxl import Workbook, load_workbook

from invoice_recon.exceptions import EmptySheetError
from invoice_recon.spreadsheet import ColumnSpec, load_grid, write_rows


def make_workbook(rows: list[list], extra_sheet: bool = False) -> bytes:
    workbook = Workbook()
    worksheet = workbook.active
    for row in rows:
        worksheet.append(row)
    if extra_sheet:
        workbook.create_sheet("Other").append(["ignored"])
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestLoadGrid:
    """Tests for reading the first worksheet."""

    def test_reads_rows_in_order(self):
        content = make_workbook([["Invoice No.", "A-1"], ["Part No", "Qty"], ["X1", 4]])
        grid = load_grid(content)
        assert grid == [["Invoice No.", "A-1"], ["Part No", "Qty"], ["X1", 4]]

    def test_only_first_sheet(self):
        content = make_workbook([["first"]], extra_sheet=True)
        assert load_grid(content) == [["first"]]

    def test_unreadable_bytes(self):
        with pytest.raises(EmptySheetError):
            load_grid(b"not a workbook", "broken.xlsx")


class TestWriteRows:
    """Tests for writing generated templates."""

    @pytest.fixture
    def columns(self) -> list[ColumnSpec]:
        return [
            ColumnSpec("Date", 15, text_format=True),
            ColumnSpec("Item", 20),
            ColumnSpec("Quantity", 10),
        ]

    def test_header_order_and_values(self, columns):
        rows = [{"Item": "X1", "Date": "18/03/2025", "Quantity": 4}]
        sheet = load_workbook(BytesIO(write_rows(rows, columns))).active

        assert [c.value for c in sheet[1]] == ["Date", "Item", "Quantity"]
        assert [c.value for c in sheet[2]] == ["18/03/2025", "X1", 4]

    def test_header_style_and_widths(self, columns):
        sheet = load_workbook(BytesIO(write_rows([], columns))).active

        assert sheet["A1"].font.bold is True
        assert sheet["A1"].alignment.horizontal == "center"
        assert sheet.column_dimensions["A"].width == 15
        assert sheet.column_dimensions["B"].width == 20

    def test_text_columns_use_text_format(self, columns):
        rows = [{"Date": "18/03/2025", "Item": "X1", "Quantity": 4}]
        sheet = load_workbook(BytesIO(write_rows(rows, columns))).active

        assert sheet["A2"].number_format == "@"
        assert sheet["C2"].number_format != "@"

    def test_missing_keys_written_empty(self, columns):
        sheet = load_workbook(BytesIO(write_rows([{"Item": "X1"}], columns))).active
        assert sheet["A2"].value in (None, "")
        assert sheet["B2"].value == "X1"
