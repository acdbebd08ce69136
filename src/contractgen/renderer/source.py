# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Line-oriented writer for generated Python modules."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Final

from ..errors import GenerateWriteError

DO_NOT_EDIT: Final[str] = "# Code generated by contractgen. DO NOT EDIT."
INDENT: Final[str] = "    "
THIRD_PARTY_ROOTS: Final[frozenset[str]] = frozenset({"httpx", "opentelemetry", "pydantic"})


def _name_key(name: str) -> tuple[int, str]:
    if name.isupper():
        return 0, name
    return (1 if name[:1].isupper() else 2), name


def _import_group(module: str) -> int:
    if module.startswith("."):
        return 2
    root = module.split(".", 1)[0]
    if root in sys.stdlib_module_names and root not in THIRD_PARTY_ROOTS:
        return 0
    return 1


class SourceFile:
    """Accumulate the body and imports of one generated module.

    Imports are registered while the body is written and rendered, grouped
    and sorted, above it. The module always enables postponed evaluation of
    annotations so emitted classes may reference each other in any order.
    """

    def __init__(self, docstring: str) -> None:
        self.docstring = docstring
        self._modules: set[str] = set()
        self._names: dict[str, set[str]] = {}
        self._type_checking: dict[str, set[str]] = {}
        self._lines: list[str] = []
        self._depth = 0

    def import_module(self, module: str) -> str:
        """Register ``import module`` and return the module name for qualification."""

        self._modules.add(module)
        return module

    def import_from(self, module: str, *names: str) -> None:
        """Register ``from module import names``."""

        self._names.setdefault(module, set()).update(names)

    def import_for_typing(self, module: str, *names: str) -> None:
        """Register an import needed only by annotations."""

        self.import_from("typing", "TYPE_CHECKING")
        self._type_checking.setdefault(module, set()).update(names)

    def line(self, text: str = "") -> SourceFile:
        """Append ``text`` at the current indentation."""

        self._lines.append(f"{INDENT * self._depth}{text}" if text else "")
        return self

    def lines(self, *texts: str) -> SourceFile:
        for text in texts:
            self.line(text)
        return self

    def docstring_block(self, text: str) -> None:
        """Append a triple-quoted docstring for ``text``."""

        body = text.strip().replace('"""', '\\"\\"\\"')
        if "\n" not in body:
            self.line(f'"""{body}"""')
            return
        first, _, rest = body.partition("\n")
        self.line(f'"""{first}')
        for row in rest.splitlines():
            self.line(row.rstrip())
        self.line('"""')

    def comment(self, text: str) -> None:
        for row in text.splitlines() or [""]:
            self.line(f"# {row}".rstrip())

    @contextmanager
    def block(self, header: str) -> Iterator[None]:
        """Write ``header`` and indent every line written inside the block."""

        self.line(header)
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1

    def blank(self, count: int = 1) -> None:
        """Append ``count`` blank lines without stacking past ``count``."""

        trailing = 0
        for text in reversed(self._lines):
            if text:
                break
            trailing += 1
        self._lines.extend([""] * max(0, count - trailing))

    def render(self) -> str:
        """Return the complete module text."""

        out = [DO_NOT_EDIT, f'"""{self.docstring}"""', "", "from __future__ import annotations"]
        imports = self._render_imports()
        if imports:
            out.append("")
            out.extend(imports)
        body = list(self._lines)
        while body and not body[0]:
            body.pop(0)
        while body and not body[-1]:
            body.pop()
        if body:
            out.extend(["", ""])
            out.extend(body)
        return "\n".join(out) + "\n"

    def body(self) -> str:
        """Return the written lines without the header and imports."""

        return "\n".join(self._lines).strip("\n")

    def save(self, path: Path) -> None:
        """Write the module to ``path``.

        Raises:
            GenerateWriteError: If the file cannot be written.
        """

        write_text(path, self.render())

    def _render_imports(self) -> list[str]:
        groups: dict[int, list[str]] = {0: [], 1: [], 2: []}
        for module in sorted(self._modules):
            groups[_import_group(module)].append(f"import {module}")
        for module in sorted(self._names, key=lambda item: (item.startswith("."), item)):
            names = ", ".join(sorted(self._names[module], key=_name_key))
            groups[_import_group(module)].append(f"from {module} import {names}")
        out: list[str] = []
        for index in (0, 1, 2):
            entries = sorted(groups[index], key=lambda item: (item.startswith("from "), item.split(" ", 2)[1]))
            if not entries:
                continue
            if out:
                out.append("")
            out.extend(entries)
        if self._type_checking:
            if out:
                out.append("")
            out.append("if TYPE_CHECKING:")
            for module in sorted(self._type_checking):
                names = ", ".join(sorted(self._type_checking[module], key=_name_key))
                out.append(f"{INDENT}from {module} import {names}")
        return out


def write_text(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` creating parent directories.

    Raises:
        GenerateWriteError: If the directory or file cannot be written.
    """

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise GenerateWriteError(str(path), str(exc)) from exc


__all__ = ["DO_NOT_EDIT", "SourceFile", "write_text"]
