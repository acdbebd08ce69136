# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for configuration and manifest loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from contractgen.config import ConfigError, config_from_mapping, load_config
from contractgen.manifest import import_name, load_manifest


def test_load_config_reads_tool_table(write_tree) -> None:
    root = write_tree(
        {
            "pyproject.toml": """
            [project]
            name = "Acme-API"
            version = "0.3.1"
            dependencies = ["httpx>=0.27", "not a requirement ???"]

            [tool.contractgen]
            contracts-dir = "acme_api/contracts"
            excluded-dirs = ["legacy"]

            [tool.contractgen.client]
            output-dir = "build/client"
            metrics = false
            """
        }
    )

    config = load_config(root)

    assert config.module == "acme_api"
    assert config.version == "0.3.1"
    assert config.contracts_dir == Path("acme_api/contracts")
    assert config.excluded_dirs == ["legacy"]
    assert config.client.output_dir == Path("build/client")
    assert config.client.metrics is False
    assert config.client.docs is True
    assert config.resolved(root, config.client.output_dir) == root / "build" / "client"
    assert [req.name for req in load_manifest(root).requirements] == ["httpx"]


def test_explicit_module_wins_over_project_name(write_tree) -> None:
    root = write_tree(
        {
            "pyproject.toml": """
            [project]
            name = "acme"
            version = "1.0"

            [tool.contractgen]
            module = "acme.core"
            version = "2.0"
            """
        }
    )

    config = load_config(root)

    assert config.module == "acme.core"
    assert config.version == "2.0"


def test_missing_manifest_yields_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert config.module == ""
    assert config.contracts_dir == Path("contracts")
    assert config.jobs >= 1


def test_broken_manifest_is_treated_as_missing(write_tree) -> None:
    root = write_tree({"pyproject.toml": "[project\nname ="})

    assert load_manifest(root).name == ""


@pytest.mark.parametrize("table", [{"unknown-key": 1}, {"jobs": 0}, {"client": {"metrics": "sometimes"}}])
def test_invalid_tables_raise_config_error(table: dict[str, object]) -> None:
    with pytest.raises(ConfigError, match=r"invalid \[tool.contractgen\] configuration"):
        config_from_mapping(table)


def test_import_name_normalises_distribution() -> None:
    assert import_name("My.Package_Name") == "my_package_name"
