# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Load the static modules copied into every generated client."""

from __future__ import annotations

from functools import cache
from importlib import resources
from pathlib import Path
from string import Template
from typing import Final

from ..annotations import DEFAULT_PACKAGE_JSON
from .source import write_text

TEMPLATE_PACKAGE: Final[str] = "contractgen.renderer"
TEMPLATE_DIR: Final[str] = "templates"
TEMPLATE_SUFFIX: Final[str] = ".tmpl"


@cache
def load_template(name: str) -> Template:
    """Return the template ``name`` (relative to the template directory)."""

    resource = resources.files(TEMPLATE_PACKAGE).joinpath(TEMPLATE_DIR, *f"{name}{TEMPLATE_SUFFIX}".split("/"))
    return Template(resource.read_text(encoding="utf-8"))


def json_import(package_json: str) -> str:
    """Return the import binding the ``json`` name to ``package_json``."""

    if not package_json or package_json == DEFAULT_PACKAGE_JSON:
        return "import json"
    return f"import {package_json} as json"


def render_template(name: str, **values: str) -> str:
    """Substitute ``values`` into template ``name``.

    Placeholders without a value are left in place; templates only use
    ``${...}`` for the values the renderer passes.
    """

    return load_template(name).safe_substitute(values)


def write_template(path: Path, name: str, **values: str) -> None:
    """Render template ``name`` into ``path``.

    Raises:
        GenerateWriteError: If the file cannot be written.
    """

    write_text(path, render_template(name, **values))


__all__ = ["json_import", "load_template", "render_template", "write_template"]
