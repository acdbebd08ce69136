# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Closed set of type kinds and the built-in TypeIDs derived from them."""

from __future__ import annotations

from enum import Enum
from typing import Final


class Kind(str, Enum):
    """Enumerate the kinds a :class:`~contractgen.model.project.Type` may take."""

    STRING = "string"
    INT = "int"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    UINT = "uint"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    BOOL = "bool"
    BYTE = "byte"
    RUNE = "rune"
    ERROR = "error"
    ANY = "any"
    ARRAY = "array"
    MAP = "map"
    CHAN = "chan"
    STRUCT = "struct"
    INTERFACE = "interface"
    FUNCTION = "function"
    ALIAS = "alias"


class ChanDirection(str, Enum):
    """Direction of a channel-like stream."""

    SEND = "send"
    RECV = "recv"
    BOTH = "both"


BASIC_KINDS: Final[frozenset[Kind]] = frozenset(
    {
        Kind.STRING,
        Kind.INT,
        Kind.INT8,
        Kind.INT16,
        Kind.INT32,
        Kind.INT64,
        Kind.UINT,
        Kind.UINT8,
        Kind.UINT16,
        Kind.UINT32,
        Kind.UINT64,
        Kind.FLOAT32,
        Kind.FLOAT64,
        Kind.BOOL,
        Kind.BYTE,
        Kind.RUNE,
        Kind.ERROR,
        Kind.ANY,
    }
)

SIGNED_INT_KINDS: Final[frozenset[Kind]] = frozenset({Kind.INT, Kind.INT8, Kind.INT16, Kind.INT32, Kind.INT64})

BUILTIN_TYPE_IDS: Final[frozenset[str]] = frozenset(kind.value for kind in BASIC_KINDS)

ANONYMOUS_INTERFACE_MARKER: Final[str] = ":interface:anonymous"


def is_builtin(type_id: str) -> bool:
    """Return ``True`` when ``type_id`` names a built-in basic kind."""

    return type_id in BUILTIN_TYPE_IDS


def split_type_id(type_id: str) -> tuple[str, str]:
    """Split a TypeID into ``(module_path, type_name)``.

    Built-in TypeIDs yield an empty module path.
    """

    module, sep, name = type_id.rpartition(":")
    if not sep:
        return "", type_id
    return module, name


def make_type_id(pkg_path: str, name: str) -> str:
    """Return the TypeID for ``name`` declared in ``pkg_path``."""

    if not pkg_path:
        return name
    return f"{pkg_path}:{name}"


__all__ = [
    "ANONYMOUS_INTERFACE_MARKER",
    "BASIC_KINDS",
    "BUILTIN_TYPE_IDS",
    "ChanDirection",
    "Kind",
    "SIGNED_INT_KINDS",
    "is_builtin",
    "make_type_id",
    "split_type_id",
]
