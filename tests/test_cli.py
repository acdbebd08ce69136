# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for the contractgen command line."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from contractgen.cli import app
from contractgen.cli.shared import split_csv


def test_analyze_prints_project_json(shop_root: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["analyze", str(shop_root), "--no-cache", "--no-emoji"])

    assert result.exit_code == 0, result.output
    document = json.loads(result.stdout)
    assert document["module_path"] == "shop"
    assert [contract["name"] for contract in document["contracts"]] == ["Catalog"]


def test_analyze_writes_output_file(shop_root: Path, tmp_path: Path) -> None:
    runner = CliRunner()
    target = tmp_path / "out" / "project.json"

    result = runner.invoke(app, ["analyze", str(shop_root), "-o", str(target), "--no-cache"])

    assert result.exit_code == 0, result.output
    assert json.loads(target.read_text(encoding="utf-8"))["version"] == "1.2.0"


def test_client_renders_package(shop_root: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["client", str(shop_root), "-o", "gen/shop_client", "--no-cache", "--no-docs"])

    assert result.exit_code == 0, result.output
    package = shop_root / "gen" / "shop_client"
    assert (package / "catalog.py").is_file()
    assert (package / "metrics.py").is_file()
    assert not (package / "README.md").exists()


def test_client_without_metrics(shop_root: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["client", str(shop_root), "-o", "plain", "--no-metrics", "--no-cache"])

    assert result.exit_code == 0, result.output
    assert not (shop_root / "plain" / "metrics.py").exists()
    assert (shop_root / "plain" / "README.md").is_file()


def test_client_without_contracts_exits_with_code_two(shop_root: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["client", str(shop_root), "-c", "Helper", "--no-cache"])

    assert result.exit_code == 2
    assert not (shop_root / "client").exists()


def test_invalid_configuration_fails(write_tree) -> None:
    root = write_tree({"pyproject.toml": "[tool.contractgen]\nbogus = 1\n"})
    runner = CliRunner()

    result = runner.invoke(app, ["analyze", str(root)])

    assert result.exit_code == 1


def test_split_csv() -> None:
    assert split_csv(" Catalog, ,Files ") == ["Catalog", "Files"]
    assert split_csv(None) == []
