"""
Command-line interface for the Invoice Reconciliation Service.

Provides four commands:
- extract: Extract one invoice spreadsheet to JSON
- reconcile: Reconcile two extracted invoice JSON files
- full-run: Extract both invoices, reconcile them and write the 1C templates
- version: Show version information
"""

import json
from pathlib import Path
from typing import Optional

import typer

from .config import FLATTEN_STYLE, ExtractionMode, logger
from .exceptions import InvoiceReconError
from .extractor import extract_invoice_from_bytes
from .llm import get_model_client
from .pipeline import process_session
from .reconciler import format_report_text, reconcile
from .schemas import InvoiceRecord
from .session import SessionContext, UploadedFile

# Create Typer app
app = typer.Typer(
    name="invoice-recon",
    help="Invoice Extraction & Reconciliation Service CLI",
    add_completion=False,
)


def _load_record(path: Path) -> InvoiceRecord:
    with open(path, 'r', encoding='utf-8') as f:
        return InvoiceRecord.model_validate(json.load(f))


@app.command()
def extract(
    file: Path = typer.Option(
        ...,
        "--file",
        "-f",
        help="Invoice spreadsheet (.xlsx)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    mode: ExtractionMode = typer.Option(
        ExtractionMode.GENERIC,
        "--mode",
        "-m",
        help="Prompt variant: generic or supplier",
    ),
    output: Path = typer.Option(
        "extracted_invoice.json",
        "--output",
        "-o",
        help="Output JSON file path",
    ),
    style: str = typer.Option(
        FLATTEN_STYLE,
        "--style",
        help="Flatten style sent to the model: json or tsv",
    ),
) -> None:
    """
    Extract one invoice spreadsheet to JSON.

    Reads the first worksheet, asks the model for the invoice structure and
    writes the normalized record.
    """
    typer.echo(f"Extracting invoice from: {file}")

    try:
        record = extract_invoice_from_bytes(
            file.read_bytes(), mode, get_model_client(), filename=file.name, style=style
        )
    except InvoiceReconError as e:
        typer.echo(f"Error during extraction ({e.stage}): {e}", err=True)
        raw_response = getattr(e, "raw_response", None)
        if raw_response:
            typer.echo(f"Raw model response:\n{raw_response}", err=True)
        raise typer.Exit(code=1)

    with open(output, 'w', encoding='utf-8') as f:
        json.dump(record.model_dump(mode='json'), f, indent=2, ensure_ascii=False)

    typer.echo(f"\n[OK] Extracted invoice {record.invoice_number} "
               f"({len(record.items)} items) to: {output}")


@app.command("reconcile")
def reconcile_cmd(
    supplier: Path = typer.Option(
        ...,
        "--supplier",
        "-s",
        help="Extracted supplier invoice JSON",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    client: Path = typer.Option(
        ...,
        "--client",
        "-c",
        help="Extracted client invoice JSON",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    report: Optional[Path] = typer.Option(
        None,
        "--report",
        "-r",
        help="Also save the report as JSON to this path",
    ),
    fail_on_mismatch: bool = typer.Option(
        False,
        "--fail-on-mismatch",
        help="Exit with non-zero status if any check fails",
    ),
) -> None:
    """
    Reconcile two extracted invoices.

    Recomputes totals from the line items, compares them with the declared
    totals and with each other, and prints the report.
    """
    try:
        supplier_record = _load_record(supplier)
        client_record = _load_record(client)
    except (json.JSONDecodeError, ValueError) as e:
        typer.echo(f"Error: Invalid invoice JSON: {e}", err=True)
        raise typer.Exit(code=1)

    result = reconcile(supplier_record, client_record)
    typer.echo(format_report_text(result))

    if report:
        with open(report, 'w', encoding='utf-8') as f:
            json.dump(result.model_dump(), f, indent=2)
        typer.echo(f"\n[OK] Reconciliation report saved to: {report}")

    if fail_on_mismatch and not result.all_passed:
        raise typer.Exit(code=1)


@app.command("full-run")
def full_run(
    supplier: Path = typer.Option(
        ...,
        "--supplier",
        "-s",
        help="Supplier invoice spreadsheet",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    client: Path = typer.Option(
        ...,
        "--client",
        "-c",
        help="Client invoice spreadsheet",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output_dir: Path = typer.Option(
        Path("."),
        "--output-dir",
        "-d",
        help="Directory for the generated files",
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
    save_extracted: bool = typer.Option(
        False,
        "--save-extracted",
        help="Also save both extracted invoices as JSON",
    ),
) -> None:
    """
    Extract, reconcile and generate the 1C templates in one step.

    Files already generated are kept even if a later template fails.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    session = SessionContext(session_id="cli")
    session.attach(UploadedFile(supplier.name, supplier.read_bytes()))
    session.attach(UploadedFile(client.name, client.read_bytes()))

    def write_artifact(artifact) -> None:
        path = output_dir / artifact.filename
        path.write_bytes(artifact.content)
        typer.echo(f"      Wrote {artifact.filename} ({artifact.row_count} rows)")

    typer.echo("Running extraction, reconciliation and template generation")
    try:
        process_session(session, get_model_client(), on_artifact=write_artifact)
    except InvoiceReconError as e:
        typer.echo(f"Error at stage {e.stage}: {e}", err=True)
        if session.report is not None:
            typer.echo("\n" + format_report_text(session.report))
        logger.exception("Full run failed")
        raise typer.Exit(code=1)
    finally:
        if save_extracted:
            for name, record in (("supplier", session.supplier), ("client", session.client)):
                if record is not None:
                    path = output_dir / f"{name}_invoice.json"
                    path.write_text(
                        json.dumps(record.model_dump(mode='json'), indent=2, ensure_ascii=False),
                        encoding='utf-8',
                    )
                    typer.echo(f"      Saved extracted {name} invoice to: {path}")

    typer.echo("\n" + format_report_text(session.report))
    typer.echo(f"\n[OK] Generated {len(session.artifacts)} file(s) in: {output_dir}")


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__
    typer.echo(f"Invoice Reconciliation Service v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
