"""Tests for the odata-schema command line interface."""

import json
from pathlib import Path

import pytest

from odata_schema_cache.schema_cli import main

NORTHWIND_FILE = str(
    Path(__file__).resolve().parent / "fixtures" / "metadata" / "northwind_v4.xml"
)


def test_inspect_lists_entity_sets(capsys):
    assert main(["inspect", "--file", NORTHWIND_FILE]) == 0

    out = capsys.readouterr().out
    assert "Types namespace: NorthwindModel" in out
    assert "Entity sets (3):" in out
    assert "  ○ Products" in out
    assert "  ○ NorthwindModel.GeoAddress" in out


def test_inspect_json(capsys):
    assert main(["inspect", "--file", NORTHWIND_FILE, "--json"]) == 0

    summary = json.loads(capsys.readouterr().out)
    assert summary["containers_namespace"] == "ODataWebExperimental.Northwind.Model"
    assert summary["entity_sets"] == ["Categories", "Products", "Customers"]


def test_find_derived_entity_set(capsys):
    assert main(["find", "Products/ClearanceProduct", "--file", NORTHWIND_FILE]) == 0
    assert "✓ Products/ClearanceProduct -> NorthwindModel.ClearanceProduct" in capsys.readouterr().out


def test_find_missing_entity_set(capsys):
    assert main(["find", "Suppliers", "--file", NORTHWIND_FILE]) == 1
    assert "✗ Entity set not found: Suppliers" in capsys.readouterr().out


def test_find_invalid_path(capsys):
    assert main(["find", "/Products", "--file", NORTHWIND_FILE]) == 1
    assert "✗ Invalid entity set path" in capsys.readouterr().out


def test_missing_file(capsys, tmp_path):
    assert main(["inspect", "--file", str(tmp_path / "missing.xml")]) == 1
    assert "✗ Failed to load schema" in capsys.readouterr().out


def test_unparseable_file(capsys, tmp_path):
    path = tmp_path / "broken.xml"
    path.write_text("<broken", encoding="utf-8")

    assert main(["inspect", "--file", str(path)]) == 1
    assert "✗ Failed to load schema" in capsys.readouterr().out


def test_source_is_required():
    with pytest.raises(SystemExit):
        main(["inspect"])


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "odata-schema" in capsys.readouterr().out
