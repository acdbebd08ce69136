# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Collect and classify the errors each contract method may produce."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Final

from ..errors import LoadTypeCheckError, ResolverNotFoundError, TypeMissingError
from ..loader import PackageLoader
from ..loader.typesys import Basic, Named, under, unalias
from ..model import SIGNED_INT_KINDS, Contract, ErrorInfo, ErrorTypeReference, Method, Project, make_type_id
from .implementations import find_error_types

if TYPE_CHECKING:
    from .expansion import TypeExpander

LOGGER = logging.getLogger(__name__)

MIN_ERROR_CODE: Final[int] = 400
MAX_ERROR_CODE: Final[int] = 599
SKIP_VALUE: Final[str] = "skip"
CODE_METHOD: Final[str] = "code"

HTTP_STATUS_TEXT: Final[dict[int, str]] = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}


def status_text(code: int) -> str:
    """Return the reason phrase for ``code`` (``"HTTP <code>"`` when unknown)."""

    return HTTP_STATUS_TEXT.get(code, f"HTTP {code}")


def errors_from_annotations(annotations: dict[str, str]) -> list[ErrorInfo]:
    """Return the errors declared as ``@<code> module:Type`` tags.

    Codes outside 400-599, ``skip`` values and malformed references are
    ignored.
    """

    found = []
    for key, value in annotations.items():
        key = key.strip()
        value = value.strip()
        if not key.isdigit():
            continue
        code = int(key)
        if code < MIN_ERROR_CODE or code > MAX_ERROR_CODE:
            continue
        if not value or value == SKIP_VALUE:
            continue
        tokens = value.split(":")
        if len(tokens) != 2 or not all(tokens):
            continue
        pkg_path, type_name = tokens
        found.append(
            ErrorInfo(
                pkg_path=pkg_path,
                type_name=type_name,
                full_name=f"{pkg_path}.{type_name}",
                http_code=code,
                http_code_text=status_text(code),
                type_id=make_type_id(pkg_path, type_name),
            )
        )
    return found


class ErrorAnalyzer:
    """Attach :class:`ErrorInfo` entries to every contract method."""

    def __init__(self, project: Project, loader: PackageLoader, expander: TypeExpander | None = None) -> None:
        self.project = project
        self.loader = loader
        self.expander = expander
        self._lock = threading.Lock()
        self._is_error: dict[str, bool] = {}

    def analyze(self) -> None:
        for contract in self.project.contracts:
            for method in contract.methods:
                method.errors = self.method_errors(contract, method)
                for info in method.errors:
                    self._ensure_loaded(contract, method, info)

    def method_errors(self, contract: Contract, method: Method) -> list[ErrorInfo]:
        """Merge implementation, handler and annotation errors of ``method``.

        Implementation and handler entries dedupe on ``(module, type)``;
        annotation entries also key on their HTTP code and win over the
        others.
        """

        merged: dict[str, ErrorInfo] = {}
        for info in self.from_implementations(contract, method):
            merged[f"{info.pkg_path}:{info.type_name}"] = info
        for info in self.from_handler(method):
            merged.setdefault(f"{info.pkg_path}:{info.type_name}", info)
        for info in errors_from_annotations(method.annotations):
            merged[f"{info.pkg_path}:{info.type_name}:{info.http_code}"] = info
        return list(merged.values())

    def from_implementations(self, contract: Contract, method: Method) -> list[ErrorInfo]:
        found: dict[str, ErrorInfo] = {}
        for implementation in contract.implementations:
            implemented = implementation.methods_map.get(method.name)
            if implemented is None:
                continue
            for reference in implemented.error_types:
                key = f"{reference.pkg_path}:{reference.type_name}"
                if key not in found and self.is_error_type(reference.pkg_path, reference.type_name):
                    found[key] = _error_info(reference)
        return list(found.values())

    def from_handler(self, method: Method) -> list[ErrorInfo]:
        handler = method.handler
        if handler is None:
            return []
        try:
            info = self.loader.cached(handler.pkg_path) or self.loader.load_lazy(handler.pkg_path)
        except (ResolverNotFoundError, LoadTypeCheckError) as exc:
            LOGGER.debug("handler package %s not loaded for %s: %s", handler.pkg_path, handler.name, exc)
            return []
        func = info.package.function(handler.name)
        if func is None or func.node is None:
            LOGGER.debug("handler %s:%s not found", handler.pkg_path, handler.name)
            return []
        found: dict[str, ErrorInfo] = {}
        for reference in find_error_types(info.package, func.node.body):
            key = f"{reference.pkg_path}:{reference.type_name}"
            if key not in found and self.is_error_type(reference.pkg_path, reference.type_name):
                found[key] = _error_info(reference)
        return list(found.values())

    def is_error_type(self, pkg_path: str, type_name: str) -> bool:
        """Return ``True`` for exception classes with a signed-integer ``code``."""

        key = make_type_id(pkg_path, type_name)
        with self._lock:
            cached = self._is_error.get(key)
        if cached is not None:
            return cached
        result = self._classify(pkg_path, type_name)
        with self._lock:
            self._is_error[key] = result
        return result

    def _classify(self, pkg_path: str, type_name: str) -> bool:
        obj = self.loader.load_for_error_type(pkg_path, type_name)
        if obj is None:
            return False
        named = unalias(obj.type)
        if not isinstance(named, Named) or not named.is_exception:
            return False
        code = named.methods().get(CODE_METHOD)
        if code is None:
            return False
        results = code.signature.results
        if results is None or len(results) != 1:
            return False
        kind = under(results[0].type)
        return isinstance(kind, Basic) and kind.kind in SIGNED_INT_KINDS

    def _ensure_loaded(self, contract: Contract, method: Method, info: ErrorInfo) -> None:
        if self.expander is None:
            return
        type_id = info.type_id or make_type_id(info.pkg_path, info.type_name)
        try:
            self.expander.ensure_type_loaded(type_id)
        except (TypeMissingError, ResolverNotFoundError) as exc:
            LOGGER.debug("error type of %s.%s not found, skipping: %s", contract.name, method.name, exc)


def _error_info(reference: ErrorTypeReference) -> ErrorInfo:
    return ErrorInfo(
        pkg_path=reference.pkg_path,
        type_name=reference.type_name,
        full_name=reference.full_name,
        type_id=make_type_id(reference.pkg_path, reference.type_name),
    )


__all__ = ["ErrorAnalyzer", "HTTP_STATUS_TEXT", "errors_from_annotations", "status_text"]
