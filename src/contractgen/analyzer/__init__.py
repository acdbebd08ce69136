# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Project analysis: contracts, implementations, errors and type expansion."""

from __future__ import annotations

from .analyzer import AnalysisOptions, ProjectAnalyzer
from .collector import ContractCollector
from .converter import TypeConverter
from .detector import InterfaceDetector
from .errors import ErrorAnalyzer
from .expansion import TypeExpander
from .implementations import ImplementationMatcher
from .services import ServiceFinder

__all__ = [
    "AnalysisOptions",
    "ContractCollector",
    "ErrorAnalyzer",
    "ImplementationMatcher",
    "InterfaceDetector",
    "ProjectAnalyzer",
    "ServiceFinder",
    "TypeConverter",
    "TypeExpander",
]
