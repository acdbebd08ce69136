# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Source file parsing shared by the loader and the analyzer."""

from __future__ import annotations

import ast
import io
import logging
import tokenize
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from ..errors import LoadParseError

LOGGER = logging.getLogger(__name__)

GENERATED_MARKER: Final[str] = "DO NOT EDIT"
TEST_DIR_NAMES: Final[frozenset[str]] = frozenset({"tests", "test", "testing"})


@dataclass(eq=False, slots=True)
class ParsedFile:
    """A parsed module together with its comments.

    Attributes:
        path: Absolute path of the file.
        tree: Parsed module.
        source: Decoded source text.
        comments: Comment text keyed by 1-based line number.
        standalone: Line numbers holding nothing but a comment.
    """

    path: Path
    tree: ast.Module
    source: str
    comments: dict[int, str] = field(default_factory=dict)
    standalone: frozenset[int] = frozenset()

    @property
    def docstring(self) -> str | None:
        return ast.get_docstring(self.tree)

    @property
    def is_package_init(self) -> bool:
        return self.path.stem == "__init__"

    @property
    def is_generated(self) -> bool:
        return is_generated_source(self.source)

    def comment_block_above(self, lineno: int, *, floor: int = 0) -> list[str]:
        """Return the standalone comment lines directly above ``lineno``."""

        lines: list[str] = []
        current = lineno - 1
        while current > floor and current in self.standalone:
            lines.append(self.comments[current])
            current -= 1
        lines.reverse()
        return lines


def parse_file(path: Path) -> ParsedFile:
    """Read and parse ``path``.

    Raises:
        LoadParseError: If the file cannot be read or is not valid Python.
    """

    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise LoadParseError(str(path), str(exc)) from exc
    return parse_source(source, path)


def parse_source(source: str, path: Path) -> ParsedFile:
    """Parse ``source`` as if it had been read from ``path``."""

    try:
        tree = ast.parse(source, filename=str(path), type_comments=False)
    except (SyntaxError, ValueError) as exc:
        raise LoadParseError(str(path), str(exc)) from exc
    comments, standalone = collect_comments(source, path)
    return ParsedFile(path=path, tree=tree, source=source, comments=comments, standalone=frozenset(standalone))


def collect_comments(source: str, path: Path | None = None) -> tuple[dict[int, str], set[int]]:
    """Return comments keyed by line and the set of comment-only lines."""

    comments: dict[int, str] = {}
    standalone: set[int] = set()
    try:
        for token in tokenize.generate_tokens(io.StringIO(source).readline):
            if token.type != tokenize.COMMENT:
                continue
            line, column = token.start
            comments[line] = token.string
            if not token.line[:column].strip():
                standalone.add(line)
    except (tokenize.TokenError, SyntaxError) as exc:
        LOGGER.debug("comment scan of %s stopped early: %s", path, exc)
    return comments, standalone


def is_generated_source(source: str) -> bool:
    """Return ``True`` when the module header marks generated code."""

    head = source[:1024]
    return GENERATED_MARKER in head


def is_test_file(path: Path) -> bool:
    """Return ``True`` for pytest modules and files under test directories.

    ``path`` should be relative to the project root so that directories above
    the project never count.
    """

    name = path.name
    if name == "conftest.py" or name.startswith("test_") or name.endswith("_test.py"):
        return True
    return any(part in TEST_DIR_NAMES for part in path.parent.parts)


__all__ = [
    "GENERATED_MARKER",
    "ParsedFile",
    "collect_comments",
    "is_generated_source",
    "is_test_file",
    "parse_file",
    "parse_source",
]
