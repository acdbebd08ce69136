# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Buffered Markdown builder with a deferred table of contents.

Headers are recorded as they are written so that a table of contents
placed near the top of the document can list headers that follow it. The
table is materialised when :meth:`Markdown.render` is called.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Final

from ..errors import ContractgenError
from .source import write_text

TOC_BEGIN: Final[str] = "<!-- BEGIN_TOC -->"
TOC_END: Final[str] = "<!-- END_TOC -->"
MIN_DEPTH: Final[int] = 1
MAX_DEPTH: Final[int] = 6

_ANCHOR_DROP: Final[re.Pattern[str]] = re.compile(r"[^a-z0-9\-]")


class MarkdownError(ContractgenError):
    """Raised when the document structure is invalid."""


class ColumnMismatchError(MarkdownError):
    """Raised when a table row does not have as many cells as the header."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"number of columns in the record ({actual}) doesn't match the header ({expected})")
        self.expected = expected
        self.actual = actual


class Align(Enum):
    """Column alignment of a table."""

    DEFAULT = "---------"
    LEFT = ":--------"
    CENTER = ":-------:"
    RIGHT = "--------:"


@dataclass(slots=True)
class Table:
    """Header, rows and optional per-column alignment of a Markdown table."""

    header: Sequence[str]
    rows: Sequence[Sequence[str]] = field(default_factory=list)
    alignment: Sequence[Align] = field(default_factory=list)

    def validate(self) -> None:
        """Raise :class:`ColumnMismatchError` when a row is misshapen."""

        for row in self.rows:
            if len(row) != len(self.header):
                raise ColumnMismatchError(len(self.header), len(row))


def anchor(text: str) -> str:
    """Return the GitHub-style anchor of a header titled ``text``."""

    return _ANCHOR_DROP.sub("", text.replace(" ", "-").lower())


def link(text: str, url: str) -> str:
    return f"[{text}]({url})"


def bold(text: str) -> str:
    return f"**{text}**"


def italic(text: str) -> str:
    return f"*{text}*"


def code(text: str) -> str:
    return f"`{text}`"


def _check_depth(name: str, depth: int) -> None:
    if depth < MIN_DEPTH or depth > MAX_DEPTH:
        raise MarkdownError(f"invalid {name}: {depth} is out of range ({MIN_DEPTH}..{MAX_DEPTH})")


class Markdown:
    """Accumulate Markdown blocks and render them as one document."""

    def __init__(self) -> None:
        self._body: list[str] = []
        self._headers: list[tuple[int, str]] = []
        self._toc_range: tuple[int, int] | None = None

    def plain(self, text: str) -> Markdown:
        self._body.append(text)
        return self

    def line_feed(self) -> Markdown:
        self._body.append("")
        return self

    def header(self, level: int, text: str) -> Markdown:
        """Append a level ``level`` header and record it for the table of contents.

        Raises:
            MarkdownError: If ``level`` is outside 1..6.
        """

        _check_depth("header level", level)
        self._headers.append((level, text))
        self._body.append(f"{'#' * level} {text}")
        return self

    def h1(self, text: str) -> Markdown:
        return self.header(1, text)

    def h2(self, text: str) -> Markdown:
        return self.header(2, text)

    def h3(self, text: str) -> Markdown:
        return self.header(3, text)

    def h4(self, text: str) -> Markdown:
        return self.header(4, text)

    def h5(self, text: str) -> Markdown:
        return self.header(5, text)

    def h6(self, text: str) -> Markdown:
        return self.header(6, text)

    def table_of_contents(self, max_depth: int, min_depth: int = MIN_DEPTH) -> Markdown:
        """Reserve the table of contents at the current position.

        Raises:
            MarkdownError: If a table was already placed, a depth is outside
                1..6, or ``min_depth`` exceeds ``max_depth``.
        """

        if self._toc_range is not None:
            raise MarkdownError("table of contents has already been generated")
        _check_depth("min depth", min_depth)
        _check_depth("max depth", max_depth)
        if min_depth > max_depth:
            raise MarkdownError(f"min depth ({min_depth}) cannot be greater than max depth ({max_depth})")
        self._toc_range = (min_depth, max_depth)
        self._body.extend([TOC_BEGIN, TOC_END, ""])
        return self

    def details(self, summary: str, text: str) -> Markdown:
        self._body.append(f"<details><summary>{summary}</summary>\n{text}\n</details>")
        return self

    def bullet_list(self, items: Iterable[str]) -> Markdown:
        self._body.extend(f"- {item}" for item in items)
        return self

    def ordered_list(self, items: Iterable[str]) -> Markdown:
        self._body.extend(f"{index}. {item}" for index, item in enumerate(items, start=1))
        return self

    def blockquote(self, text: str) -> Markdown:
        self._body.extend(f"> {row}" for row in text.split("\n"))
        return self

    def code_block(self, lang: str, text: str) -> Markdown:
        self._body.append(f"```{lang}\n{text}\n```")
        return self

    def horizontal_rule(self) -> Markdown:
        self._body.append("---")
        return self

    def table(self, table: Table) -> Markdown:
        """Append ``table``.

        Raises:
            ColumnMismatchError: If a row and the header differ in width.
        """

        table.validate()
        if not table.header:
            return self
        align = list(table.alignment) + [Align.DEFAULT] * (len(table.header) - len(table.alignment))
        rows = ["| " + " | ".join(table.header) + " |", "|" + "|".join(item.value for item in align) + "|"]
        rows.extend("| " + " | ".join(row) + " |" for row in table.rows)
        self._body.append("\n".join(rows))
        return self

    def render(self) -> str:
        """Return the document with its table of contents filled in."""

        content = "\n".join(self._body)
        if self._toc_range is None:
            return content
        toc = self._toc_lines()
        if toc:
            placeholder = f"{TOC_BEGIN}\n{TOC_END}"
            content = content.replace(placeholder, "\n".join([TOC_BEGIN, *toc, TOC_END]), 1)
        return content

    def save(self, path: Path) -> None:
        write_text(path, self.render() + "\n")

    def _toc_lines(self) -> list[str]:
        assert self._toc_range is not None
        low, high = self._toc_range
        return [
            f"{'  ' * (level - low)}- [{text}](#{anchor(text)})"
            for level, text in self._headers
            if low <= level <= high
        ]


__all__ = [
    "Align",
    "ColumnMismatchError",
    "Markdown",
    "MarkdownError",
    "Table",
    "anchor",
    "bold",
    "code",
    "italic",
    "link",
]
