# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Contract-driven client generator for annotated Python protocols."""

from __future__ import annotations

__version__ = "0.4.0"

__all__ = ["__version__"]
