# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Python client generation for analyzed projects."""

from __future__ import annotations

from .markdown import ColumnMismatchError, Markdown, MarkdownError, Table
from .renderer import ClientRenderer, select_contracts
from .source import SourceFile
from .types import TypeRenderer

__all__ = [
    "ClientRenderer",
    "ColumnMismatchError",
    "Markdown",
    "MarkdownError",
    "SourceFile",
    "Table",
    "TypeRenderer",
    "select_contracts",
]
