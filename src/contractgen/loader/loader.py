# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""On-demand module loading with a write-once cache.

Every strategy parses the module, binds its scope and caches the result
before materializing the imports the strategy requires. Binding evaluates
nothing, so a module enters the cache before any import it names is
followed and import cycles terminate on the cached entry.
"""

from __future__ import annotations

import ast
import builtins
import logging
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from ..errors import LoadParseError, LoadTypeCheckError, ResolverNotFoundError
from ..resolver import PackageResolver
from .checker import (
    OPAQUE_MODULES,
    ImportBinding,
    Package,
    ScopeBuilder,
    referenced_names,
    required_modules,
    stub_package,
)
from .files import ParsedFile, parse_file
from .importer import LazyImporter
from .typesys import ClassFlavor, Named, NamedDefinition, Struct, TypeName, opaque_definition, unalias

LOGGER = logging.getLogger(__name__)

VERSION_CONSTANT: Final[str] = "VersionASTg"
ERROR_METHODS: Final[tuple[str, ...]] = ("__str__", "code")
NEVER_MATERIALIZED: Final[frozenset[str]] = OPAQUE_MODULES | {
    "__future__",
    "builtins",
    "collections",
    "typing",
    "typing_extensions",
}


@dataclass(eq=False)
class PackageInfo:
    """A loaded module.

    Attributes:
        pkg_path: Dotted module path.
        package_name: Last segment of ``pkg_path``.
        directory: Directory holding the module's source.
        files: Parsed source files.
        package: Bound scope.
        imports: Import alias map as written in the source.
    """

    pkg_path: str
    package_name: str
    directory: Path | None
    files: list[ParsedFile]
    package: Package
    imports: dict[str, str] = field(default_factory=dict)


class _Pending:
    """Cache marker for a module that is being bound."""

    __slots__ = ("done", "info", "owner")

    def __init__(self) -> None:
        self.owner = threading.get_ident()
        self.done = threading.Event()
        self.info: PackageInfo | None = None


class PackageLoader:
    """Load modules on demand for the analyzer.

    Strategies differ only in which imports are materialized after binding:

    * :meth:`load_lazy` materializes the local imports public declarations
      depend on;
    * :meth:`load_from_files` does the same from files parsed by the caller;
    * :meth:`load_minimal` also materializes an explicit set of modules;
    * :meth:`load_for_type` and :meth:`load_for_error_type` force the imports
      one declaration needs and retry once after invalidating the entry.
    """

    def __init__(self, resolver: PackageResolver) -> None:
        self.resolver = resolver
        self.importer = LazyImporter(self)
        self._lock = threading.RLock()
        self._cache: dict[str, PackageInfo | _Pending] = {}
        self._versions: dict[str, bool] = {}
        self._opaque: dict[str, TypeName] = {}

    # -- strategies ----------------------------------------------------------------

    def load_lazy(self, pkg_path: str) -> PackageInfo:
        """Load ``pkg_path`` stubbing every import nothing public needs.

        Raises:
            ResolverNotFoundError: If the module cannot be located.
            LoadTypeCheckError: If no file of the module could be parsed.
        """

        info = self._load(pkg_path)
        self._materialize(info, required_modules(info.package))
        return info

    def load_from_files(self, pkg_path: str, files: Sequence[ParsedFile]) -> PackageInfo:
        """Load ``pkg_path`` from files the caller already parsed."""

        info = self._load(pkg_path, files=files)
        self._materialize(info, required_modules(info.package))
        return info

    def load_minimal(self, pkg_path: str, imports: Iterable[str]) -> PackageInfo:
        """Load ``pkg_path`` materializing ``imports`` in addition to its needs."""

        info = self._load(pkg_path)
        forced = set(imports)
        self._materialize(info, required_modules(info.package) | forced, forced=forced)
        return info

    def load_for_type(self, pkg_path: str, type_name: str) -> TypeName | None:
        """Return the declaration of ``type_name`` with its imports materialized.

        When the symbol is missing after the first load, the cache entry is
        invalidated and the module is loaded once more.
        """

        return self._load_declaration(pkg_path, type_name, error_methods=False)

    def load_for_error_type(self, pkg_path: str, type_name: str) -> TypeName | None:
        """Like :meth:`load_for_type`, also forcing the error methods' imports."""

        return self._load_declaration(pkg_path, type_name, error_methods=True)

    # -- queries -------------------------------------------------------------------

    def cached(self, pkg_path: str) -> PackageInfo | None:
        """Return the completed cache entry for ``pkg_path`` without loading."""

        with self._lock:
            entry = self._cache.get(pkg_path)
        return entry if isinstance(entry, PackageInfo) else None

    def lookup_type(self, pkg_path: str, name: str) -> TypeName | None:
        """Return the declaration ``name`` of ``pkg_path`` following re-exports."""

        try:
            info = self.load_lazy(pkg_path)
        except (ResolverNotFoundError, LoadTypeCheckError) as exc:
            LOGGER.debug("cannot look up %s:%s: %s", pkg_path, name, exc)
            return None
        found = info.package.lookup(name)
        if found is None:
            return None
        found = info.package.evaluator.follow(found)
        return found if isinstance(found, TypeName) else None

    def loaded_packages(self) -> list[PackageInfo]:
        """Return every completed cache entry in load order."""

        with self._lock:
            return [entry for entry in self._cache.values() if isinstance(entry, PackageInfo)]

    def has_version_constant(self, pkg_path: str) -> bool:
        """Return ``True`` when ``pkg_path`` defines the generated version constant."""

        with self._lock:
            if pkg_path in self._versions:
                return self._versions[pkg_path]
        try:
            found = self._load(pkg_path).package.has_value(VERSION_CONSTANT)
        except (ResolverNotFoundError, LoadTypeCheckError):
            found = False
        with self._lock:
            self._versions[pkg_path] = found
        return found

    def invalidate(self, pkg_path: str) -> None:
        """Drop the cache entries for ``pkg_path``."""

        with self._lock:
            entry = self._cache.get(pkg_path)
            if isinstance(entry, PackageInfo):
                del self._cache[pkg_path]
            self._versions.pop(pkg_path, None)
        self.resolver.invalidate(pkg_path)

    def parse_file(self, path: Path) -> ParsedFile | None:
        """Parse ``path``, logging and skipping files that fail."""

        try:
            return parse_file(path)
        except LoadParseError as exc:
            LOGGER.debug("skipping %s: %s", path, exc)
            return None

    def opaque(self, module: str, name: str) -> TypeName:
        """Return the shared declaration for a type whose source is not loaded."""

        key = f"{module}.{name}"
        with self._lock:
            found = self._opaque.get(key)
            if found is None:
                found = TypeName(name, module)
                found.type = Named(found, opaque_definition)
                self._opaque[key] = found
            return found

    def builtin(self, name: str) -> TypeName | None:
        """Return the declaration of builtin class ``name``."""

        value = getattr(builtins, name, None)
        if not isinstance(value, type):
            return None
        key = f"builtins.{name}"
        with self._lock:
            found = self._opaque.get(key)
            if found is None:
                found = TypeName(name, "builtins")
                definition = NamedDefinition(
                    underlying=Struct([]),
                    flavor=ClassFlavor.OPAQUE,
                    is_exception=issubclass(value, BaseException),
                )
                found.type = Named(found, lambda: definition)
                self._opaque[key] = found
            return found

    # -- internals -----------------------------------------------------------------

    def _load(self, pkg_path: str, *, files: Sequence[ParsedFile] | None = None) -> PackageInfo:
        while True:
            with self._lock:
                entry = self._cache.get(pkg_path)
                if isinstance(entry, PackageInfo):
                    return entry
                if entry is None:
                    pending = _Pending()
                    self._cache[pkg_path] = pending
                    break
                if entry.owner == threading.get_ident():
                    LOGGER.debug("import cycle through %s; using a stub", pkg_path)
                    return self._stub_info(pkg_path)
            entry.done.wait()
            if entry.info is not None:
                return entry.info

        info: PackageInfo | None = None
        try:
            info = self._build(pkg_path, files)
        finally:
            with self._lock:
                if info is not None:
                    self._cache[pkg_path] = info
                else:
                    self._cache.pop(pkg_path, None)
            pending.info = info
            pending.done.set()
        return info

    def _build(self, pkg_path: str, files: Sequence[ParsedFile] | None) -> PackageInfo:
        directory: Path | None = None
        if files is None:
            path = self.resolver.resolve(pkg_path)
            directory = path.parent
            parsed = self.parse_file(path)
            files = [parsed] if parsed is not None else []
        elif files:
            directory = files[0].path.parent
        if not files:
            raise LoadTypeCheckError(pkg_path, "no parseable source file")
        package = Package(path=pkg_path, importer=self.importer)
        builder = ScopeBuilder(package)
        for parsed in files:
            builder.bind(parsed)
        if package.soft_errors:
            LOGGER.debug("%s bound with %d problem(s)", pkg_path, len(package.soft_errors))
        return PackageInfo(
            pkg_path=pkg_path,
            package_name=package.name,
            directory=directory,
            files=list(files),
            package=package,
            imports=dict(package.imports),
        )

    def _stub_info(self, pkg_path: str) -> PackageInfo:
        return PackageInfo(
            pkg_path=pkg_path,
            package_name=pkg_path.rpartition(".")[2],
            directory=None,
            files=[],
            package=stub_package(pkg_path, self.importer),
        )

    def _materialize(self, info: PackageInfo, modules: Iterable[str], *, forced: Iterable[str] = ()) -> None:
        forced = set(forced)
        for module in sorted(set(modules)):
            if module == info.pkg_path:
                continue
            if module.split(".", 1)[0] in NEVER_MATERIALIZED:
                continue
            if module not in forced and not self.resolver.is_local(module):
                continue
            try:
                self._load(module)
            except (ResolverNotFoundError, LoadTypeCheckError) as exc:
                LOGGER.debug("import %s of %s stays a stub: %s", module, info.pkg_path, exc)

    def _load_declaration(self, pkg_path: str, type_name: str, *, error_methods: bool) -> TypeName | None:
        for attempt in range(2):
            try:
                info = self._load(pkg_path)
            except (ResolverNotFoundError, LoadTypeCheckError) as exc:
                LOGGER.debug("cannot load %s for %s: %s", pkg_path, type_name, exc)
                return None
            found = info.package.lookup(type_name)
            if isinstance(found, ImportBinding):
                found = info.package.evaluator.follow(found)
            if isinstance(found, TypeName):
                self._force_declaration(info, found, error_methods=error_methods)
                return found
            if attempt == 0:
                LOGGER.debug("%s not in scope of %s; retrying", type_name, pkg_path)
                self.invalidate(pkg_path)
        return None

    def _force_declaration(self, info: PackageInfo, obj: TypeName, *, error_methods: bool) -> None:
        node = obj.node
        if not isinstance(node, ast.ClassDef) or obj.pkg_path != info.pkg_path:
            return
        nodes: list[ast.AST] = [*node.bases, *(stmt.annotation for stmt in node.body if isinstance(stmt, ast.AnnAssign))]
        if error_methods:
            for stmt in node.body:
                if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)) and stmt.name in ERROR_METHODS:
                    if stmt.returns is not None:
                        nodes.append(stmt.returns)
        modules = required_modules(info.package, referenced_names(nodes))
        self._materialize(info, modules, forced=modules)
        named = unalias(obj.type)
        if error_methods and isinstance(named, Named):
            methods = named.methods()
            for name in ERROR_METHODS:
                if name in methods:
                    LOGGER.debug("%s.%s resolves to %s", obj.type_id, name, methods[name].signature.type_string())


__all__ = ["ERROR_METHODS", "PackageInfo", "PackageLoader", "VERSION_CONSTANT"]
