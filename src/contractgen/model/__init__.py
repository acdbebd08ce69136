# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Project model entities."""

from __future__ import annotations

from .kinds import (
    ANONYMOUS_INTERFACE_MARKER,
    BASIC_KINDS,
    BUILTIN_TYPE_IDS,
    SIGNED_INT_KINDS,
    ChanDirection,
    Kind,
    is_builtin,
    make_type_id,
    split_type_id,
)
from .project import (
    Contract,
    ErrorInfo,
    ErrorTypeReference,
    Function,
    GitInfo,
    HandlerInfo,
    Implementation,
    ImplementationMethod,
    Method,
    Project,
    Service,
    StructField,
    Type,
    TypeRef,
    Variable,
)

__all__ = [
    "ANONYMOUS_INTERFACE_MARKER",
    "BASIC_KINDS",
    "BUILTIN_TYPE_IDS",
    "ChanDirection",
    "Contract",
    "ErrorInfo",
    "ErrorTypeReference",
    "Function",
    "GitInfo",
    "HandlerInfo",
    "Implementation",
    "ImplementationMethod",
    "Kind",
    "Method",
    "Project",
    "SIGNED_INT_KINDS",
    "Service",
    "StructField",
    "Type",
    "TypeRef",
    "Variable",
    "is_builtin",
    "make_type_id",
    "split_type_id",
]
