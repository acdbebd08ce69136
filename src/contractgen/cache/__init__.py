# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Caching helpers for contractgen."""

from __future__ import annotations

from .project_cache import ProjectCache

__all__ = ["ProjectCache"]
