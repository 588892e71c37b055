"""Tests for scripts/import_file.py paths that need no database."""
import importlib.util
import json
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "import_file.py"


@pytest.fixture(scope="module")
def cli():
    spec = importlib.util.spec_from_file_location("import_file", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_template_printed(cli, capsys):
    assert cli.main(["--schema", "clients", "--template"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("# Client Accounts:")
    assert "name,legal_name,industry,industry_group,billing_address,payment_terms" in out


def test_dry_run_prints_result(cli, capsys, tmp_path):
    path = tmp_path / "clients.csv"
    path.write_bytes(b"name\nAcme\n\n")
    assert cli.main([str(path), "--schema", "clients", "--dry-run"]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["success"] is True
    assert result["summary"]["valid_rows"] == 1


def test_dry_run_with_row_errors_exits_1(cli, capsys, tmp_path):
    path = tmp_path / "users.csv"
    path.write_bytes(b"name,email\nJane,not-an-email\n")
    assert cli.main([str(path), "--schema", "users", "--dry-run"]) == 1
    result = json.loads(capsys.readouterr().out)
    assert result["errors"][0]["message"] == "Invalid email format"


def test_unknown_schema_exits_2(cli, capsys, tmp_path):
    path = tmp_path / "x.csv"
    path.write_bytes(b"name\nAcme\n")
    assert cli.main([str(path), "--schema", "vendors", "--dry-run"]) == 2
    assert "Unknown schema: vendors" in capsys.readouterr().err


def test_missing_file_exits_2(cli, capsys, tmp_path):
    assert cli.main([str(tmp_path / "nope.csv"), "--schema", "clients", "--dry-run"]) == 2
    assert "Cannot read" in capsys.readouterr().err


def test_preview_prints_first_rows(cli, capsys, tmp_path):
    path = tmp_path / "clients.csv"
    path.write_bytes(b"company_name,industry\nAcme,Retail\nGlobex,Energy\nInitech,Software\n")
    assert cli.main([str(path), "--schema", "clients", "--preview", "2"]) == 0
    preview = json.loads(capsys.readouterr().out)
    assert preview["rows"] == [
        {"company_name": "Acme", "industry": "Retail"},
        {"company_name": "Globex", "industry": "Energy"},
    ]
    assert preview["total_rows"] == 3
    assert preview["missing_columns"] == []


def test_dry_run_reports_missing_columns(cli, capsys, tmp_path):
    path = tmp_path / "projects.csv"
    path.write_bytes(b"name,notes\nWebsite Redesign,rush\n")
    assert cli.main([str(path), "--schema", "projects", "--dry-run"]) == 1
    result = json.loads(capsys.readouterr().out)
    assert result["errors"][0]["message"] == "Missing required columns: client_name"
