"""
Command-line interface for the e-invoice compliance engine.

Provides four commands:
- convert: Convert raw invoice JSON into an e-invoice document
- validate: Validate raw invoice JSON against a profile and write a report
- formats: List the supported output formats
- version: Show the engine version
"""

import json
from pathlib import Path
from typing import Optional

import typer

from .config import logger
from .errors import EInvoiceError
from .generators import get_available_formats, parse_format
from .mapper import to_canonical_invoice
from .pipeline import format_result_text, format_summary_text, validate_batch
from .schemas import ValidationReport
from .service import convert as convert_invoice
from .service import profile_for_format


# Create Typer app
app = typer.Typer(
    name="einvoice",
    help="EU e-invoice conversion and compliance CLI",
    add_completion=False,
)


def _load_records(input_file: Path) -> list[dict]:
    """Read one record or a list of records from a JSON file."""
    with open(input_file, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        data = [data]
    return [record for record in data if isinstance(record, dict)]


def _output_file_name(file_name: str, index: int, invoice_number: Optional[str], used: set[str]) -> str:
    """Prefix the record index when the number is missing or the name is taken."""
    if not (invoice_number or "").strip() or file_name in used:
        file_name = f"{index:03d}_{file_name}"
    used.add(file_name)
    return file_name


@app.command()
def convert(
    input_file: Path = typer.Option(
        ...,
        "--input",
        "-i",
        help="Input JSON file with one or more raw invoice records",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output_format: str = typer.Option(
        "xrechnung-cii",
        "--format",
        "-f",
        help="Target format (see the 'formats' command)",
    ),
    output_dir: Path = typer.Option(
        "out",
        "--output",
        "-o",
        help="Directory for the generated documents",
        file_okay=False,
        dir_okay=True,
    ),
    report: Optional[Path] = typer.Option(
        None,
        "--report",
        "-r",
        help="Also write a JSON report with validation results",
    ),
    fail_on_invalid: bool = typer.Option(
        False,
        "--fail-on-invalid",
        help="Exit with non-zero status if any document is invalid",
    ),
) -> None:
    """
    Convert raw invoice records into the target e-invoice format.

    Runs mapping, validation and generation for every record and writes
    each document into the output directory.
    """
    typer.echo(f"Converting invoices from: {input_file} -> {output_format}")

    try:
        records = _load_records(input_file)
        if not records:
            typer.echo("No invoices found in input file.", err=True)
            raise typer.Exit(code=1)

        output_dir.mkdir(parents=True, exist_ok=True)
        invalid = 0
        entries = []
        used_names: set[str] = set()
        for index, record in enumerate(records, start=1):
            result = convert_invoice(record, output_format)
            generation = result.generation
            number = result.invoice.invoice_number or "(no number)"
            file_name = _output_file_name(generation.file_name, index, result.invoice.invoice_number, used_names)

            if generation.validation_status == "invalid":
                invalid += 1
            if generation.pdf_content is not None:
                (output_dir / file_name).write_bytes(generation.pdf_content)
            elif generation.xml_content:
                (output_dir / file_name).write_text(generation.xml_content, encoding="utf-8")

            typer.echo(f"  - {number} | {generation.validation_status} | {file_name}")
            for message in generation.validation_errors[:5]:
                typer.echo(f"      {message}")

            entries.append({
                "invoice_number": result.invoice.invoice_number,
                "file_name": file_name,
                "file_size": generation.file_size,
                "validation_status": generation.validation_status,
                "validation_errors": generation.validation_errors,
                "validation_warnings": generation.validation_warnings,
                "validation": result.validation.model_dump(mode="json"),
            })

        if report:
            with open(report, "w", encoding="utf-8") as f:
                json.dump({"format": output_format, "documents": entries}, f, indent=2)
            typer.echo(f"\n[OK] Conversion report saved to: {report}")

        typer.echo(f"\n[OK] {len(records) - invalid}/{len(records)} document(s) valid, written to: {output_dir}")

        if fail_on_invalid and invalid > 0:
            raise typer.Exit(code=1)

    except json.JSONDecodeError as e:
        typer.echo(f"Error: Invalid JSON in input file: {e}", err=True)
        raise typer.Exit(code=1)
    except EInvoiceError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


@app.command()
def validate(
    input_file: Path = typer.Option(
        ...,
        "--input",
        "-i",
        help="Input JSON file with one or more raw invoice records",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output_format: str = typer.Option(
        "xrechnung-cii",
        "--format",
        "-f",
        help="Target format whose profile is enforced",
    ),
    report: Path = typer.Option(
        "validation_report.json",
        "--report",
        "-r",
        help="Output validation report JSON file path",
    ),
    fail_on_invalid: bool = typer.Option(
        False,
        "--fail-on-invalid",
        help="Exit with non-zero status if any invoices are invalid",
    ),
) -> None:
    """
    Validate raw invoice records against the profile of a target format.

    Writes a report with per-invoice results and summary statistics.
    """
    typer.echo(f"Validating invoices from: {input_file}")

    try:
        fmt = parse_format(output_format)
        records = _load_records(input_file)
        if not records:
            typer.echo("No invoices found in input file.", err=True)
            raise typer.Exit(code=1)

        invoices = [to_canonical_invoice(record, fmt) for record in records]
        results, summary = validate_batch(invoices, profile_for_format(fmt))

        validation_report = ValidationReport(summary=summary, per_invoice_results=results)
        with open(report, "w", encoding="utf-8") as f:
            json.dump(validation_report.model_dump(mode="json"), f, indent=2)

        typer.echo("\n" + format_summary_text(summary))
        typer.echo(f"\n[OK] Validation report saved to: {report}")

        invalid = [(inv, r) for inv, r in zip(invoices, results) if not r.valid]
        if invalid:
            typer.echo("\nInvalid Invoices:")
            for inv, r in invalid[:5]:
                typer.echo(f"  {inv.invoice_number or '(no number)'}:")
                typer.echo(format_result_text(r, limit=10))
            if len(invalid) > 5:
                typer.echo(f"  ... and {len(invalid) - 5} more invalid invoices")

        if fail_on_invalid and summary.invalid_invoices > 0:
            raise typer.Exit(code=1)

    except json.JSONDecodeError as e:
        typer.echo(f"Error: Invalid JSON in input file: {e}", err=True)
        raise typer.Exit(code=1)
    except EInvoiceError as e:
        typer.echo(f"Error: {e}", err=True)
        logger.error(f"Validation failed: {e}")
        raise typer.Exit(code=1)


@app.command()
def formats() -> None:
    """List supported output formats."""
    for info in get_available_formats():
        flag = " (deprecated)" if info.deprecated else ""
        typer.echo(
            f"  {info.format_id:<16} {info.format_name:<36} "
            f"v{info.version}  spec {info.spec_version} ({info.spec_date}){flag}"
        )


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__
    typer.echo(f"einvoice-engine v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
