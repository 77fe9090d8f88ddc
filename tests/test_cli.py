"""
Tests for the command-line interface.
"""

import json

import pytest
from typer.testing import CliRunner

from einvoice_engine import __version__
from einvoice_engine.cli import app


runner = CliRunner()


@pytest.fixture
def input_file(tmp_path, german_record):
    path = tmp_path / "invoices.json"
    invalid = dict(german_record, invoiceNumber="RE-2024-0043", currency="USD")
    path.write_text(json.dumps([german_record, invalid]), encoding="utf-8")
    return path


# ============================================================================
# convert
# ============================================================================

class TestConvertCommand:
    def test_writes_documents(self, tmp_path, input_file):
        out = tmp_path / "out"
        result = runner.invoke(app, ["convert", "-i", str(input_file), "-f", "xrechnung-cii", "-o", str(out)])
        assert result.exit_code == 0
        assert (out / "RE-2024-0042_xrechnung.xml").exists()
        assert (out / "RE-2024-0043_xrechnung.xml").exists()
        assert "1/2 document(s) valid" in result.output

    def test_records_without_number_do_not_overwrite(self, tmp_path, german_record):
        first = dict(german_record)
        del first["invoiceNumber"]
        second = dict(first, lineItems=[dict(german_record["lineItems"][0], description="Zweite Position")])
        duplicate = dict(german_record)
        path = tmp_path / "invoices.json"
        path.write_text(json.dumps([first, second, german_record, duplicate]), encoding="utf-8")
        out = tmp_path / "out"

        result = runner.invoke(app, ["convert", "-i", str(path), "-o", str(out)])
        assert result.exit_code == 0
        names = sorted(p.name for p in out.iterdir())
        assert names == [
            "001_invoice_xrechnung.xml",
            "002_invoice_xrechnung.xml",
            "004_RE-2024-0042_xrechnung.xml",
            "RE-2024-0042_xrechnung.xml",
        ]
        assert "Zweite Position" in (out / "002_invoice_xrechnung.xml").read_text(encoding="utf-8")

    def test_fail_on_invalid(self, tmp_path, input_file):
        result = runner.invoke(app, [
            "convert", "-i", str(input_file), "-o", str(tmp_path / "out"), "--fail-on-invalid",
        ])
        assert result.exit_code == 1

    def test_report(self, tmp_path, input_file):
        report = tmp_path / "report.json"
        runner.invoke(app, ["convert", "-i", str(input_file), "-o", str(tmp_path / "out"), "-r", str(report)])
        data = json.loads(report.read_text(encoding="utf-8"))
        assert data["format"] == "xrechnung-cii"
        assert [d["validation_status"] for d in data["documents"]] == ["valid", "invalid"]

    def test_single_record_pdf(self, tmp_path, german_record):
        path = tmp_path / "one.json"
        path.write_text(json.dumps(german_record), encoding="utf-8")
        out = tmp_path / "out"
        result = runner.invoke(app, ["convert", "-i", str(path), "-f", "facturx-en16931", "-o", str(out)])
        assert result.exit_code == 0
        assert (out / "RE-2024-0042_facturx.pdf").read_bytes().startswith(b"%PDF")

    def test_unknown_format(self, tmp_path, input_file):
        result = runner.invoke(app, ["convert", "-i", str(input_file), "-f", "nope", "-o", str(tmp_path / "out")])
        assert result.exit_code == 1
        assert "Unsupported output format" in result.output

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        result = runner.invoke(app, ["convert", "-i", str(path), "-o", str(tmp_path / "out")])
        assert result.exit_code == 1


# ============================================================================
# validate
# ============================================================================

class TestValidateCommand:
    def test_writes_report(self, tmp_path, input_file):
        report = tmp_path / "validation.json"
        result = runner.invoke(app, ["validate", "-i", str(input_file), "-r", str(report)])
        assert result.exit_code == 0
        assert "VALIDATION SUMMARY (xrechnung-cii)" in result.output
        assert "RE-2024-0043" in result.output

        data = json.loads(report.read_text(encoding="utf-8"))
        assert data["summary"]["total_invoices"] == 2
        assert data["summary"]["invalid_invoices"] == 1
        assert data["summary"]["error_counts"] == {"BR-DE-18": 1}
        assert len(data["per_invoice_results"]) == 2

    def test_fail_on_invalid(self, tmp_path, input_file):
        result = runner.invoke(app, [
            "validate", "-i", str(input_file), "-r", str(tmp_path / "r.json"), "--fail-on-invalid",
        ])
        assert result.exit_code == 1

    def test_other_profile(self, tmp_path, german_record):
        path = tmp_path / "one.json"
        path.write_text(json.dumps(german_record), encoding="utf-8")
        report = tmp_path / "r.json"
        result = runner.invoke(app, ["validate", "-i", str(path), "-f", "peppol-bis", "-r", str(report)])
        assert result.exit_code == 0
        data = json.loads(report.read_text(encoding="utf-8"))
        assert data["summary"]["profile"] == "peppol-bis"
        assert "PEPPOL-EN16931-R020-SCHEME" in data["summary"]["error_counts"]


# ============================================================================
# formats / version
# ============================================================================

class TestInfoCommands:
    def test_formats(self):
        result = runner.invoke(app, ["formats"])
        assert result.exit_code == 0
        for format_id in ("xrechnung-cii", "peppol-bis", "facturx-basic", "fatturapa", "ksef", "cius-ro"):
            assert format_id in result.output

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert f"einvoice-engine v{__version__}" in result.output
