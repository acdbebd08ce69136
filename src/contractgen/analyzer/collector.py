# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Collect annotated contracts from the contracts directory."""

from __future__ import annotations

import logging
from collections.abc import Collection
from pathlib import Path
from typing import Final

from ..annotations import TAG_HANDLER, TAG_HTTP_RESPONSE, parse_docstring
from ..errors import LoadTypeCheckError, ResolverNotFoundError
from ..loader import PackageInfo, PackageLoader
from ..loader.typesys import ClassFlavor, Func, Interface, Named, TypeName
from ..model import Contract, HandlerInfo, Kind, Method, Project, Variable
from .converter import TypeConverter

LOGGER = logging.getLogger(__name__)

CONTEXT_SUFFIX: Final[str] = ":Context"


def is_context(variable: Variable) -> bool:
    """Return ``True`` when ``variable`` carries the request context."""

    return variable.type_id.endswith(CONTEXT_SUFFIX) and not variable.is_container()


def is_error_result(variable: Variable) -> bool:
    return variable.type_id == Kind.ERROR.value and not variable.is_container()


class ContractCollector:
    """Turn annotated interfaces into :class:`Contract` entries."""

    def __init__(self, project: Project, loader: PackageLoader, converter: TypeConverter, root: Path) -> None:
        self.project = project
        self.loader = loader
        self.converter = converter
        self.root = root.resolve()

    def collect(self, contracts_dir: Path, only: Collection[str] = ()) -> list[Contract]:
        """Collect contracts declared in the modules of ``contracts_dir``.

        Args:
            contracts_dir: Directory whose ``*.py`` modules declare contracts.
            only: Contract names or ids to keep; everything when empty.

        Returns:
            list[Contract]: Contracts in file and declaration order.
        """

        directory = contracts_dir if contracts_dir.is_absolute() else self.root / contracts_dir
        contracts: dict[str, Contract] = {}
        for path in sorted(directory.glob("*.py")):
            info = self._load(path)
            if info is None:
                continue
            self._project_annotations(info)
            for obj in info.package.classes():
                contract = self.contract(obj, path)
                if contract is None or contract.id in contracts:
                    continue
                if only and contract.name not in only and contract.id not in only:
                    continue
                contracts[contract.id] = contract
        return list(contracts.values())

    def contract(self, obj: TypeName, path: Path) -> Contract | None:
        """Return the contract declared by ``obj`` or ``None`` when unannotated."""

        named = obj.type
        if not isinstance(named, Named) or named.flavor != ClassFlavor.INTERFACE:
            return None
        docs, annotations = parse_docstring(named.definition().docstring)
        if not annotations:
            return None
        contract = Contract(
            id=obj.type_id,
            name=obj.name,
            pkg_path=obj.pkg_path,
            file_path=self._relative(path),
            docs=docs,
            annotations=annotations,
        )
        underlying = named.underlying
        if isinstance(underlying, Interface):
            for func in underlying.methods:
                if func.name.startswith("_"):
                    continue
                contract.methods.append(self.method(contract.id, func))
        LOGGER.debug("contract %s with %d method(s)", contract.id, len(contract.methods))
        return contract

    def method(self, contract_id: str, func: Func) -> Method:
        """Convert one interface method into a contract :class:`Method`."""

        docs, annotations = parse_docstring(func.docstring)
        args, results = self.converter.signature_variables(func.signature)
        if args and is_context(args[0]):
            args = args[1:]
        if results and is_error_result(results[-1]):
            results = results[:-1]
        _name_results(results)
        return Method(
            name=func.name,
            contract_id=contract_id,
            args=args,
            results=results,
            docs=docs,
            annotations=annotations,
            handler=handler_info(annotations),
        )

    def _load(self, path: Path) -> PackageInfo | None:
        pkg_path = self.loader.resolver.module_path_for_file(path)
        if pkg_path is None:
            LOGGER.debug("%s is outside the source roots; skipping", path)
            return None
        try:
            return self.loader.load_lazy(pkg_path)
        except (ResolverNotFoundError, LoadTypeCheckError) as exc:
            LOGGER.debug("package %s not loaded, skipping %s: %s", pkg_path, path, exc)
            return None

    def _project_annotations(self, info: PackageInfo) -> None:
        if self.project.annotations:
            return
        docstring = info.package.docstring
        if docstring:
            _, annotations = parse_docstring(docstring)
            self.project.annotations = self.project.annotations.merge(annotations)

    def _relative(self, path: Path) -> str:
        try:
            return path.resolve().relative_to(self.root).as_posix()
        except ValueError:
            return path.as_posix()


def _name_results(results: list[Variable]) -> None:
    if len(results) == 1:
        if not results[0].name:
            results[0].name = "result"
        return
    for index, result in enumerate(results, start=1):
        if not result.name:
            result.name = f"result{index}"


def handler_info(annotations: dict[str, str]) -> HandlerInfo | None:
    """Return the handler named by ``@handler`` (or ``@http-response``)."""

    value = annotations.get(TAG_HANDLER)
    if value is None:
        value = annotations.get(TAG_HTTP_RESPONSE)
    if value is None:
        return None
    parts = value.split(":")
    if len(parts) != 2 or not all(parts):
        return None
    return HandlerInfo(pkg_path=parts[0], name=parts[1])


__all__ = ["CONTEXT_SUFFIX", "ContractCollector", "handler_info", "is_context", "is_error_result"]
