# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Discover the Python modules of a project tree."""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .loader.files import is_test_file

ALWAYS_EXCLUDE_DIRS: Final[frozenset[str]] = frozenset(
    {
        ".git",
        ".venv",
        "venv",
        "vendor",
        "site-packages",
        "node_modules",
        "__pycache__",
        ".mypy_cache",
        ".pytest_cache",
        ".tox",
        "dist",
        "build",
        ".contractgen-cache",
    }
)
SOURCE_SUFFIX: Final[str] = ".py"


@dataclass(frozen=True, slots=True)
class WalkContext:
    """Parameters required to walk the project tree."""

    base: Path
    root: Path
    excludes: frozenset[Path]
    include_tests: bool


def resolve_excludes(root: Path, entries: Iterable[str | Path]) -> frozenset[Path]:
    """Resolve user supplied exclusion entries against ``root``."""

    resolved = set()
    for entry in entries:
        candidate = Path(entry)
        resolved.add((candidate if candidate.is_absolute() else root / candidate).resolve())
    return frozenset(resolved)


def iter_source_files(
    root: Path,
    *,
    base: Path | None = None,
    excludes: Iterable[str | Path] = (),
    include_tests: bool = False,
) -> Iterator[Path]:
    """Yield the Python source files below ``base`` (default: ``root``) in sorted order.

    Dot directories, vendored environments, excluded paths and (unless
    ``include_tests`` is set) test modules are skipped.
    """

    root = root.resolve()
    context = WalkContext(
        base=(base or root).resolve(),
        root=root,
        excludes=resolve_excludes(root, excludes),
        include_tests=include_tests,
    )
    yield from _walk(context)


def _walk(context: WalkContext) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(context.base):
        current = Path(dirpath)
        if _should_skip_directory(current, context):
            dirnames[:] = []
            continue
        dirnames[:] = sorted(name for name in dirnames if not _should_skip_directory(current / name, context))
        for filename in sorted(filenames):
            if not filename.endswith(SOURCE_SUFFIX):
                continue
            candidate = current / filename
            if any(candidate.is_relative_to(ex) for ex in context.excludes):
                continue
            if not context.include_tests and _is_test(candidate, context.root):
                continue
            yield candidate


def _should_skip_directory(path: Path, context: WalkContext) -> bool:
    if path != context.base and (path.name in ALWAYS_EXCLUDE_DIRS or path.name.startswith(".")):
        return True
    return any(path.is_relative_to(ex) for ex in context.excludes)


def _is_test(candidate: Path, root: Path) -> bool:
    try:
        relative = candidate.relative_to(root)
    except ValueError:
        relative = Path(candidate.name)
    return is_test_file(relative)


__all__ = ["ALWAYS_EXCLUDE_DIRS", "WalkContext", "iter_source_files", "resolve_excludes"]
