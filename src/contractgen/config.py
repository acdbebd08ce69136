# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration models and helpers for contractgen runs."""

from __future__ import annotations

import math
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .manifest import Manifest, load_manifest

DEFAULT_CONTRACTS_DIR: Final[str] = "contracts"
DEFAULT_CLIENT_DIR: Final[str] = "client"
DEFAULT_CACHE_DIR: Final[str] = ".contractgen-cache"


class ConfigError(Exception):
    """Raised when configuration input is invalid."""


def default_parallel_jobs() -> int:
    """Return 75% of available CPU cores (minimum of 1)."""
    cores = os.cpu_count() or 1
    proposed = max(1, math.floor(cores * 0.75))
    return proposed


class ClientConfig(BaseModel):
    """Settings of the client generator."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    output_dir: Path = Field(default_factory=lambda: Path(DEFAULT_CLIENT_DIR))
    contracts: list[str] = Field(default_factory=list)
    metrics: bool = True
    docs: bool = True


class ContractgenConfig(BaseModel):
    """Top-level configuration read from ``[tool.contractgen]``."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    module: str = ""
    version: str = ""
    contracts_dir: Path = Field(default_factory=lambda: Path(DEFAULT_CONTRACTS_DIR))
    excluded_dirs: list[str] = Field(default_factory=list)
    stdlib_root: Path | None = None
    site_packages: list[Path] | None = None
    jobs: int = Field(default_factory=default_parallel_jobs, ge=1)
    cache_enabled: bool = True
    cache_dir: Path = Field(default_factory=lambda: Path(DEFAULT_CACHE_DIR))
    client: ClientConfig = Field(default_factory=ClientConfig)

    def resolved(self, root: Path, path: Path) -> Path:
        """Return ``path`` anchored at ``root`` when it is relative."""

        return path if path.is_absolute() else root / path


def config_from_mapping(data: Mapping[str, Any]) -> ContractgenConfig:
    """Validate a ``[tool.contractgen]`` table.

    Raises:
        ConfigError: If the table does not match the configuration schema.
    """

    normalised = {key.replace("-", "_"): value for key, value in data.items()}
    client = normalised.get("client")
    if isinstance(client, Mapping):
        normalised["client"] = {key.replace("-", "_"): value for key, value in client.items()}
    try:
        return ContractgenConfig.model_validate(normalised)
    except ValidationError as exc:
        raise ConfigError(f"invalid [tool.contractgen] configuration: {exc}") from exc


def load_config(root: Path, manifest: Manifest | None = None) -> ContractgenConfig:
    """Load the configuration of the project at ``root``.

    The module path and version default to the manifest's ``[project]``
    values when the tool table does not set them.
    """

    manifest = manifest if manifest is not None else load_manifest(root)
    config = config_from_mapping(manifest.tool)
    if not config.module:
        config.module = manifest.module_path
    if not config.version:
        config.version = manifest.version
    return config


__all__ = [
    "ClientConfig",
    "ConfigError",
    "ContractgenConfig",
    "DEFAULT_CACHE_DIR",
    "DEFAULT_CLIENT_DIR",
    "DEFAULT_CONTRACTS_DIR",
    "config_from_mapping",
    "default_parallel_jobs",
    "load_config",
]
