# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Exception hierarchy shared by the analyzer, loader and renderer."""

from __future__ import annotations


class ContractgenError(Exception):
    """Base class for failures surfaced by contractgen."""


class ResolverNotFoundError(ContractgenError):
    """Raised when a module path cannot be mapped to a source file."""

    def __init__(self, pkg_path: str, *, searched: tuple[str, ...] = ()) -> None:
        """Record the module path and the locations that were searched.

        Args:
            pkg_path: Dotted module path that could not be located.
            searched: Directories consulted while resolving ``pkg_path``.
        """

        detail = f" (searched: {', '.join(searched)})" if searched else ""
        super().__init__(f"module {pkg_path!r} not found{detail}")
        self.pkg_path = pkg_path
        self.searched = searched


class LoadParseError(ContractgenError):
    """Raised when a single source file cannot be read or parsed."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"failed to parse {path}: {reason}")
        self.path = path
        self.reason = reason


class LoadTypeCheckError(ContractgenError):
    """Raised when a module produced no usable scope."""

    def __init__(self, pkg_path: str, reason: str) -> None:
        super().__init__(f"failed to check module {pkg_path!r}: {reason}")
        self.pkg_path = pkg_path
        self.reason = reason


class TypeMissingError(ContractgenError):
    """Raised when a TypeID is absent from the registry after a reload."""

    def __init__(self, type_id: str, *, chain: tuple[str, ...] = ()) -> None:
        via = f" via {' -> '.join(chain)}" if chain else ""
        super().__init__(f"type {type_id!r} could not be loaded{via}")
        self.type_id = type_id
        self.chain = chain


class InvalidTypeRefError(ContractgenError):
    """Raised when a type reference in the project document is malformed."""

    def __init__(self, type_id: str, reason: str) -> None:
        super().__init__(f"invalid reference to {type_id!r}: {reason}")
        self.type_id = type_id
        self.reason = reason


class GenerateWriteError(ContractgenError):
    """Raised when a generated file cannot be written."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"failed to write {path}: {reason}")
        self.path = path
        self.reason = reason


__all__ = [
    "ContractgenError",
    "GenerateWriteError",
    "InvalidTypeRefError",
    "LoadParseError",
    "LoadTypeCheckError",
    "ResolverNotFoundError",
    "TypeMissingError",
]
