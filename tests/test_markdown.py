# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for the Markdown document builder."""

from __future__ import annotations

from pathlib import Path

import pytest

from contractgen.renderer.markdown import (
    TOC_BEGIN,
    TOC_END,
    Align,
    ColumnMismatchError,
    Markdown,
    MarkdownError,
    Table,
    anchor,
    code,
    link,
)


def test_table_of_contents_lists_headers_written_after_it() -> None:
    md = Markdown()
    md.h1("Manual").table_of_contents(3, 2)
    md.h2("Client Options").h3("Batch calls").h4("Too deep")

    rendered = md.render()

    toc = rendered.split(TOC_BEGIN, 1)[1].split(TOC_END, 1)[0]
    assert "- [Client Options](#client-options)" in toc
    assert "  - [Batch calls](#batch-calls)" in toc
    assert "Manual" not in toc
    assert "Too deep" not in toc
    assert rendered.startswith("# Manual\n")


def test_second_table_of_contents_is_rejected() -> None:
    md = Markdown().table_of_contents(2)

    with pytest.raises(MarkdownError, match="table of contents has already been generated"):
        md.table_of_contents(2)


@pytest.mark.parametrize("level", [0, 7])
def test_header_level_out_of_range(level: int) -> None:
    with pytest.raises(MarkdownError, match="out of range"):
        Markdown().header(level, "x")


def test_table_rows_must_match_header() -> None:
    table = Table(["Name", "Type"], [["id", "int", "extra"]])

    with pytest.raises(ColumnMismatchError) as excinfo:
        Markdown().table(table)

    assert excinfo.value.expected == 2
    assert excinfo.value.actual == 3


def test_table_renders_alignment_row() -> None:
    md = Markdown().table(Table(["Code", "Error"], [["404", "NotFound"]], [Align.RIGHT]))

    assert md.render().splitlines() == [
        "| Code | Error |",
        "|--------:|---------|",
        "| 404 | NotFound |",
    ]


def test_blocks_and_inline_helpers(tmp_path: Path) -> None:
    md = Markdown()
    md.bullet_list(["one", "two"]).ordered_list(["first"]).blockquote("careful\nreally")
    md.code_block("python", "print(1)").horizontal_rule().details("More", "hidden")
    path = tmp_path / "out" / "README.md"

    md.save(path)

    text = path.read_text(encoding="utf-8")
    assert "- one\n- two\n1. first\n> careful\n> really" in text
    assert "```python\nprint(1)\n```" in text
    assert "<details><summary>More</summary>\nhidden\n</details>" in text
    assert text.endswith("\n")
    assert anchor("Catalog.get_item (v2)") == "cataloggetitem-v2"
    assert link(code("x"), "#x") == "[`x`](#x)"
