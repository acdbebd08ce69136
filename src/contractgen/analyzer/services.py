# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Find the runnable modules that serve contracts."""

from __future__ import annotations

import ast
import logging
from pathlib import Path

from ..discovery import iter_source_files
from ..loader import PackageLoader, ParsedFile
from ..model import Project, Service

LOGGER = logging.getLogger(__name__)


def has_main_guard(tree: ast.Module) -> bool:
    """Return ``True`` when the module has an ``if __name__ == "__main__":`` block."""

    for stmt in tree.body:
        if not isinstance(stmt, ast.If):
            continue
        test = stmt.test
        if not isinstance(test, ast.Compare) or len(test.ops) != 1 or not isinstance(test.ops[0], ast.Eq):
            continue
        operands = [test.left, *test.comparators]
        names = [operand.id for operand in operands if isinstance(operand, ast.Name)]
        values = [operand.value for operand in operands if isinstance(operand, ast.Constant)]
        if names == ["__name__"] and values == ["__main__"]:
            return True
    return False


def imported_modules(tree: ast.Module, pkg_path: str, *, is_package: bool = False) -> set[str]:
    """Return the absolute module paths imported anywhere in ``tree``.

    ``from pkg import name`` contributes both ``pkg`` and ``pkg.name`` since
    ``name`` may be a submodule.
    """

    package = pkg_path if is_package else pkg_path.rpartition(".")[0]
    found: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            found.update(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom):
            base = _absolute(node, package)
            if not base:
                continue
            found.add(base)
            found.update(f"{base}.{alias.name}" for alias in node.names if alias.name != "*")
    return found


def _absolute(node: ast.ImportFrom, package: str) -> str:
    if not node.level:
        return node.module or ""
    parts = package.split(".") if package else []
    if node.level > 1:
        parts = parts[: len(parts) - (node.level - 1)]
    if node.module:
        parts.append(node.module)
    return ".".join(parts)


class ServiceFinder:
    """Attach :class:`Service` entries for ``__main__`` modules using contracts."""

    def __init__(self, project: Project, loader: PackageLoader, root: Path) -> None:
        self.project = project
        self.loader = loader
        self.root = root.resolve()

    def find(self) -> list[Service]:
        by_module: dict[str, list[str]] = {}
        for contract in self.project.contracts:
            by_module.setdefault(contract.pkg_path, []).append(contract.id)
        services: list[Service] = []
        if not by_module:
            self.project.services = services
            return services
        for path in iter_source_files(self.root, excludes=self.project.excluded_dirs):
            parsed = self.loader.parse_file(path)
            if parsed is None or parsed.is_generated or not has_main_guard(parsed.tree):
                continue
            service = self._service(path, parsed, by_module)
            if service is not None:
                services.append(service)
        self.project.services = services
        return services

    def _service(self, path: Path, parsed: ParsedFile, by_module: dict[str, list[str]]) -> Service | None:
        pkg_path = self.loader.resolver.module_path_for_file(path) or path.stem
        imported = imported_modules(parsed.tree, pkg_path, is_package=parsed.is_package_init)
        contract_ids = [
            contract_id for module, ids in by_module.items() if module in imported for contract_id in ids
        ]
        if not contract_ids:
            return None
        name = path.parent.name if path.stem in ("__main__", "main") else path.stem
        LOGGER.debug("service %s serves %s", name, ", ".join(contract_ids))
        return Service(
            name=name,
            pkg_path=pkg_path,
            main_path=path.resolve().relative_to(self.root).as_posix(),
            contract_ids=contract_ids,
        )


__all__ = ["ServiceFinder", "has_main_guard", "imported_modules"]
