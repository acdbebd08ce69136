# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Read the module manifest (``pyproject.toml``) of an analysed project."""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

LOGGER = logging.getLogger(__name__)

PYPROJECT_FILENAME: Final[str] = "pyproject.toml"
TOOL_SECTION: Final[str] = "contractgen"


@dataclass(frozen=True, slots=True)
class Manifest:
    """Subset of ``pyproject.toml`` the analyzer relies on."""

    root: Path
    name: str = ""
    version: str = ""
    requirements: tuple[Requirement, ...] = ()
    tool: Mapping[str, Any] = field(default_factory=dict)

    @property
    def module_path(self) -> str:
        """Return the import path of the project's top-level package."""

        configured = self.tool.get("module")
        if isinstance(configured, str) and configured:
            return configured
        return import_name(self.name) if self.name else ""


def import_name(distribution: str) -> str:
    """Return the conventional import name for a distribution name."""

    return canonicalize_name(distribution).replace("-", "_")


def load_manifest(root: Path) -> Manifest:
    """Load the manifest found at ``root``.

    A missing or unreadable ``pyproject.toml`` yields an empty manifest so
    that bare source trees can still be analysed with explicit settings.
    """

    path = root / PYPROJECT_FILENAME
    if not path.is_file():
        return Manifest(root=root)
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        LOGGER.debug("failed to read %s: %s", path, exc)
        return Manifest(root=root)
    project = data.get("project", {})
    tool = data.get("tool", {}).get(TOOL_SECTION, {})
    return Manifest(
        root=root,
        name=str(project.get("name", "")),
        version=str(project.get("version", "")),
        requirements=tuple(_parse_requirements(project.get("dependencies", []))),
        tool=tool if isinstance(tool, Mapping) else {},
    )


def _parse_requirements(entries: list[str]) -> list[Requirement]:
    requirements: list[Requirement] = []
    for entry in entries:
        try:
            requirements.append(Requirement(entry))
        except InvalidRequirement:
            LOGGER.debug("skipping invalid requirement %r", entry)
    return requirements


__all__ = ["Manifest", "import_name", "load_manifest"]
