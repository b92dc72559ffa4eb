"""
Tests for the command-line interface.
"""

import json
from io import BytesIO
from unittest.mock import MagicMock, patch

import pytest
from openpyxl import Workbook
from typer.testing import CliRunner

from invoice_recon.cli import app

runner = CliRunner()

INVOICE = {
    "invoice_number": "M04 ADR0301",
    "items": [{"sku": "A", "quantity": 5, "unit_price": 2, "total": 10}],
    "total_quantity": 5,
    "total_amount": 10,
}


def workbook_bytes(rows: list[list]) -> bytes:
    workbook = Workbook()
    for row in rows:
        workbook.active.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def invoice_files(tmp_path):
    supplier = tmp_path / "supplier.json"
    client = tmp_path / "client.json"
    supplier.write_text(json.dumps(INVOICE), encoding="utf-8")
    client.write_text(json.dumps(dict(INVOICE, total_amount=12)), encoding="utf-8")
    return supplier, client


class TestReconcileCommand:

    def test_prints_report(self, invoice_files):
        supplier, client = invoice_files
        result = runner.invoke(app, ["reconcile", "-s", str(supplier), "-c", str(client)])
        assert result.exit_code == 0
        assert "RECONCILIATION RESULTS" in result.output
        assert "10 vs 12 [MISMATCH]" in result.output

    def test_fail_on_mismatch(self, invoice_files):
        supplier, client = invoice_files
        result = runner.invoke(
            app, ["reconcile", "-s", str(supplier), "-c", str(client), "--fail-on-mismatch"]
        )
        assert result.exit_code == 1

    def test_saves_report(self, invoice_files, tmp_path):
        supplier, client = invoice_files
        report = tmp_path / "report.json"
        result = runner.invoke(
            app, ["reconcile", "-s", str(supplier), "-c", str(client), "-r", str(report)]
        )
        assert result.exit_code == 0
        data = json.loads(report.read_text(encoding="utf-8"))
        assert data["client"]["amount_check"] is False
        assert data["amount_match"]["passed"] is True

    def test_invalid_json(self, tmp_path, invoice_files):
        broken = tmp_path / "broken.json"
        broken.write_text("{not json", encoding="utf-8")
        result = runner.invoke(app, ["reconcile", "-s", str(broken), "-c", str(invoice_files[1])])
        assert result.exit_code == 1


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


class TestFullRunCommand:

    @pytest.fixture
    def spreadsheets(self, tmp_path):
        supplier = tmp_path / "supplier.xlsx"
        client = tmp_path / "client.xlsx"
        supplier.write_bytes(workbook_bytes([["Invoice No.", "M04 ADR0301"]]))
        client.write_bytes(workbook_bytes([["Invoice", "GAP 2025 014"]]))
        return supplier, client

    @staticmethod
    def model_replying(supplier_reply: str) -> MagicMock:
        def answer(prompt: str) -> str:
            if "date converter" in prompt:
                return "18/03/2025"
            if "supplier commercial invoices" in prompt:
                return json.dumps(dict(INVOICE, invoice_number="GAP 2025 014"))
            return supplier_reply

        model = MagicMock()
        model.complete.side_effect = answer
        return model

    def invoke(self, model, supplier, client, out_dir, *extra):
        with patch("invoice_recon.cli.get_model_client", return_value=model):
            return runner.invoke(
                app,
                ["full-run", "-s", str(supplier), "-c", str(client), "-d", str(out_dir), *extra],
            )

    def test_writes_templates(self, spreadsheets, tmp_path):
        out_dir = tmp_path / "out"
        result = self.invoke(self.model_replying(json.dumps(INVOICE)), *spreadsheets, out_dir)

        assert result.exit_code == 0
        assert "RECONCILIATION RESULTS" in result.output
        names = sorted(p.name for p in out_dir.glob("*.xlsx"))
        assert names == [
            "Inv (заполнение для 1С) [GAP_2025_014].xlsx",
            "Items (заполнение для 1С) [GAP_2025_014].xlsx",
            "Sales Invoice (заполнение для 1С) [GAP_2025_014].xlsx",
        ]
        assert not (out_dir / "supplier_invoice.json").exists()

    def test_save_extracted(self, spreadsheets, tmp_path):
        out_dir = tmp_path / "out"
        result = self.invoke(
            self.model_replying(json.dumps(INVOICE)), *spreadsheets, out_dir, "--save-extracted"
        )

        assert result.exit_code == 0
        saved = json.loads((out_dir / "client_invoice.json").read_text(encoding="utf-8"))
        assert saved["invoice_number"] == "GAP 2025 014"
        assert (out_dir / "supplier_invoice.json").exists()

    def test_failure_prints_partial_report_and_keeps_extracted(self, spreadsheets, tmp_path):
        out_dir = tmp_path / "out"
        items = [dict(INVOICE["items"][0], description="Brake\x0bpads")]
        model = self.model_replying(json.dumps(dict(INVOICE, items=items)))

        result = self.invoke(model, *spreadsheets, out_dir, "--save-extracted")

        assert result.exit_code == 1
        assert "RECONCILIATION RESULTS" in result.output
        assert list(out_dir.glob("*.xlsx")) == []
        assert (out_dir / "supplier_invoice.json").exists()
        assert (out_dir / "client_invoice.json").exists()

    def test_extraction_failure_writes_nothing(self, spreadsheets, tmp_path):
        out_dir = tmp_path / "out"
        result = self.invoke(self.model_replying("not json"), *spreadsheets, out_dir, "--save-extracted")

        assert result.exit_code == 1
        assert "RECONCILIATION RESULTS" not in result.output
        assert list(out_dir.iterdir()) == []
