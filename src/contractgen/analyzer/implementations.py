# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Match concrete classes against contracts across the module tree."""

from __future__ import annotations

import ast
import builtins
import logging
import threading
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from ..discovery import iter_source_files
from ..errors import LoadTypeCheckError, ResolverNotFoundError
from ..loader import Package, PackageInfo, PackageLoader, ParsedFile
from ..loader.typesys import ClassFlavor, Func, Interface, Named, TypeName, unalias
from ..model import Contract, ErrorTypeReference, Implementation, ImplementationMethod, Project
from .detector import signatures_compatible

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ClassIndex:
    """Cheap per-class method-name index built from syntax alone."""

    name: str
    methods: set[str]
    open_bases: bool = False

    def may_implement(self, method_names: set[str]) -> bool:
        if method_names <= self.methods:
            return True
        return self.open_bases and bool(method_names & self.methods)


@dataclass(slots=True)
class ModuleIndex:
    """A module of the tree with its class index."""

    pkg_path: str
    parsed: ParsedFile
    classes: list[ClassIndex] = field(default_factory=list)


def index_classes(tree: ast.Module) -> list[ClassIndex]:
    """Return the module-level classes with their own and local inherited methods.

    Classes with bases defined elsewhere are marked ``open_bases``: the
    methods they inherit cannot be known without loading the module.
    """

    nodes = {stmt.name: stmt for stmt in tree.body if isinstance(stmt, ast.ClassDef)}
    indexes = []
    for name, node in nodes.items():
        methods: set[str] = set()
        open_bases = _collect_methods(node, nodes, methods, set())
        indexes.append(ClassIndex(name, methods, open_bases))
    return indexes


def _collect_methods(node: ast.ClassDef, nodes: dict[str, ast.ClassDef], methods: set[str], seen: set[str]) -> bool:
    seen.add(node.name)
    methods.update(stmt.name for stmt in node.body if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)))
    open_bases = False
    for base in node.bases:
        target = base.value if isinstance(base, ast.Subscript) else base
        if isinstance(target, ast.Name) and target.id in nodes:
            if target.id not in seen:
                open_bases |= _collect_methods(nodes[target.id], nodes, methods, seen)
        elif not (isinstance(target, ast.Name) and target.id == "object"):
            open_bases = True
    return open_bases


def find_error_types(package: Package, body: Iterable[ast.stmt]) -> list[ErrorTypeReference]:
    """Return the classes a function body raises or instantiates.

    Candidates are the targets of ``raise T``, ``raise T(...)``, and calls
    ``T(...)`` / ``mod.T(...)`` whose name starts with an upper-case letter.
    Names that do not resolve to a class outside ``builtins`` are dropped.
    """

    found: dict[str, ErrorTypeReference] = {}
    for stmt in body:
        for child in ast.walk(stmt):
            candidate: ast.expr | None = None
            if isinstance(child, ast.Raise) and isinstance(child.exc, (ast.Name, ast.Attribute)):
                candidate = child.exc
            elif isinstance(child, ast.Call) and isinstance(child.func, (ast.Name, ast.Attribute)):
                candidate = child.func
            if candidate is None or not _type_like(candidate):
                continue
            reference = _reference(package, candidate)
            if reference is not None:
                found.setdefault(f"{reference.pkg_path}:{reference.type_name}", reference)
    return list(found.values())


def _type_like(expr: ast.expr) -> bool:
    name = expr.id if isinstance(expr, ast.Name) else expr.attr if isinstance(expr, ast.Attribute) else ""
    if not name or not name[0].isupper():
        return False
    return not (isinstance(expr, ast.Name) and hasattr(builtins, name))


def _reference(package: Package, expr: ast.expr) -> ErrorTypeReference | None:
    symbol = package.evaluator.symbol(expr)
    if not isinstance(symbol, TypeName) or symbol.pkg_path == "builtins":
        return None
    return ErrorTypeReference(
        pkg_path=symbol.pkg_path,
        type_name=symbol.name,
        full_name=f"{symbol.pkg_path}.{symbol.name}",
    )


class ImplementationMatcher:
    """Attach :class:`Implementation` entries to every contract."""

    def __init__(
        self,
        project: Project,
        loader: PackageLoader,
        root: Path,
        *,
        jobs: int = 1,
    ) -> None:
        self.project = project
        self.loader = loader
        self.root = root.resolve()
        self.jobs = max(1, jobs)
        self._lock = threading.Lock()
        self._judgments: dict[tuple[str, str, str, str], bool] = {}
        self._contract_types: dict[str, Named | None] = {}
        self._method_names: dict[str, set[str]] = {}

    def find(self) -> None:
        """Walk the tree and record every implementation found."""

        contracts = self.project.contracts
        for contract in contracts:
            contract.implementations = []
        if not contracts:
            return
        self._method_names = {contract.id: {method.name for method in contract.methods} for contract in contracts}
        modules = self.index_modules()
        LOGGER.debug("matching %d contract(s) against %d module(s)", len(contracts), len(modules))
        with ThreadPoolExecutor(max_workers=self.jobs) as pool:
            results = list(pool.map(self._match_module, modules))
        by_id = {contract.id: contract for contract in contracts}
        for matches in results:
            for contract_id, implementation in matches:
                by_id[contract_id].implementations.append(implementation)

    def index_modules(self) -> list[ModuleIndex]:
        """Parse and index the non-generated modules of the tree."""

        modules = []
        for path in iter_source_files(self.root, excludes=self.project.excluded_dirs):
            parsed = self.loader.parse_file(path)
            if parsed is None or parsed.is_generated:
                continue
            pkg_path = self.loader.resolver.module_path_for_file(path)
            if pkg_path is None:
                continue
            modules.append(ModuleIndex(pkg_path, parsed, index_classes(parsed.tree)))
        return modules

    def _match_module(self, module: ModuleIndex) -> list[tuple[str, Implementation]]:
        matches: list[tuple[str, Implementation]] = []
        info: PackageInfo | None = None
        loaded = False
        for index in module.classes:
            for contract in self.project.contracts:
                names = self._method_names[contract.id]
                if not names or not index.may_implement(names):
                    continue
                if not loaded:
                    info = self._load(module)
                    loaded = True
                if info is None:
                    return matches
                implementation = self._implementation(info, index.name, contract)
                if implementation is not None:
                    matches.append((contract.id, implementation))
        return matches

    def _load(self, module: ModuleIndex) -> PackageInfo | None:
        cached = self.loader.cached(module.pkg_path)
        if cached is not None:
            return cached
        try:
            return self.loader.load_from_files(module.pkg_path, [module.parsed])
        except LoadTypeCheckError as exc:
            LOGGER.debug("loading %s from files failed: %s", module.pkg_path, exc)
        try:
            return self.loader.load_lazy(module.pkg_path)
        except (ResolverNotFoundError, LoadTypeCheckError) as exc:
            LOGGER.debug("skipping %s: %s", module.pkg_path, exc)
            return None

    def _implementation(self, info: PackageInfo, class_name: str, contract: Contract) -> Implementation | None:
        obj = info.package.scope.get(class_name)
        if not isinstance(obj, TypeName):
            return None
        named = unalias(obj.type)
        if not isinstance(named, Named) or named.flavor in (ClassFlavor.INTERFACE, ClassFlavor.OPAQUE):
            return None
        if not self.implements(info.pkg_path, named, contract):
            return None
        methods = named.methods()
        implementation = Implementation(pkg_path=info.pkg_path, struct_name=class_name)
        for method in contract.methods:
            func = methods.get(method.name)
            if func is None:
                continue
            implementation.methods_map[method.name] = ImplementationMethod(
                name=method.name,
                file_path=self._relative(func.file_path),
                error_types=self._error_types(func),
            )
        if not implementation.methods_map:
            return None
        LOGGER.debug("%s implements %s", implementation.struct_id, contract.id)
        return implementation

    def implements(self, pkg_path: str, named: Named, contract: Contract) -> bool:
        """Return the memoized structural judgment for ``named`` against ``contract``."""

        key = (pkg_path, named.name, contract.pkg_path, contract.name)
        with self._lock:
            cached = self._judgments.get(key)
        if cached is not None:
            return cached
        result = self._satisfies(named, contract)
        with self._lock:
            self._judgments[key] = result
        return result

    def _satisfies(self, named: Named, contract: Contract) -> bool:
        interface = self._contract_interface(contract)
        if interface is None:
            return False
        expected = interface.all_methods()
        actual = named.methods()
        for name, func in expected.items():
            found = actual.get(name)
            if found is None:
                return False
            if not signatures_compatible(func.signature, found.signature):
                LOGGER.debug("%s.%s does not match %s", named.type_id, name, contract.id)
                return False
        return True

    def _contract_interface(self, contract: Contract) -> Interface | None:
        with self._lock:
            if contract.id in self._contract_types:
                named = self._contract_types[contract.id]
                return named.underlying if named is not None else None
        obj = self.loader.lookup_type(contract.pkg_path, contract.name)
        named = unalias(obj.type) if obj is not None else None
        if not isinstance(named, Named) or not isinstance(named.underlying, Interface):
            LOGGER.debug("contract interface %s not found", contract.id)
            named = None
        with self._lock:
            self._contract_types[contract.id] = named
        return named.underlying if named is not None else None

    def _error_types(self, func: Func) -> list[ErrorTypeReference]:
        if func.node is None:
            return []
        info = self.loader.cached(func.pkg_path)
        if info is None:
            return []
        return find_error_types(info.package, func.node.body)

    def _relative(self, file_path: str) -> str:
        if not file_path:
            return ""
        path = Path(file_path)
        try:
            return path.resolve().relative_to(self.root).as_posix()
        except ValueError:
            return path.as_posix()


__all__ = [
    "ClassIndex",
    "ImplementationMatcher",
    "ModuleIndex",
    "find_error_types",
    "index_classes",
]
