# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Parse, bind and cache the modules the analyzer inspects."""

from __future__ import annotations

from .checker import Package, TypeEvaluator
from .files import ParsedFile, is_generated_source, is_test_file, parse_file
from .importer import LazyImporter
from .loader import PackageInfo, PackageLoader

__all__ = [
    "LazyImporter",
    "Package",
    "PackageInfo",
    "PackageLoader",
    "ParsedFile",
    "TypeEvaluator",
    "is_generated_source",
    "is_test_file",
    "parse_file",
]
