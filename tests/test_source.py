# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for the generated-module writer and identifier helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from contractgen.errors import GenerateWriteError
from contractgen.renderer.naming import to_camel, to_lower_camel, to_snake
from contractgen.renderer.source import DO_NOT_EDIT, SourceFile, write_text


@pytest.mark.parametrize(
    ("text", "expected"),
    [("get_user", "GetUser"), ("Get", "Get"), ("item2go", "Item2Go"), ("new-name", "NewName")],
)
def test_to_camel(text: str, expected: str) -> None:
    assert to_camel(text) == expected


def test_to_lower_camel_and_snake() -> None:
    assert to_lower_camel("GetItem") == "getItem"
    assert to_lower_camel("ID") == "ID"
    assert to_snake("UserService") == "user_service"
    assert to_snake("HTTPServer") == "http_server"
    assert to_snake("get-item") == "get_item"


def test_render_groups_imports_and_body() -> None:
    src = SourceFile("Example module.")
    src.import_from(".types", "Model")
    src.import_from("pydantic", "Field")
    src.import_from("typing", "Any")
    src.import_module("uuid")
    src.import_for_typing(".client", "Client")
    with src.block("class Example(Model):"):
        src.docstring_block("Example.\n\nMore text.")
        src.blank()
        src.line("value: Any = Field(default=None)")

    text = src.render()

    assert text.startswith(f'{DO_NOT_EDIT}\n"""Example module."""\n\nfrom __future__ import annotations\n\n')
    assert "import uuid\nfrom typing import TYPE_CHECKING, Any\n\nfrom pydantic import Field\n\nfrom .types import Model\n" in text
    assert "if TYPE_CHECKING:\n    from .client import Client\n" in text
    assert '    """Example.\n\n    More text.\n    """\n' in text
    assert text.endswith("    value: Any = Field(default=None)\n")


def test_blank_does_not_stack() -> None:
    src = SourceFile("x")
    src.line("a = 1")
    src.blank(2)
    src.blank(2)
    src.line("b = 2")

    assert src.body() == "a = 1\n\n\nb = 2"


def test_write_text_wraps_os_errors(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("", encoding="utf-8")

    with pytest.raises(GenerateWriteError):
        write_text(blocker / "child.py", "x = 1\n")
