# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Map dotted module paths to source files on disk.

Resolution order:

1. module-local: the project's own package (``src/`` or flat layout), then
   sibling top-level packages next to it;
2. the standard library source root;
3. the module cache: site-packages roots, consulting the manifest
   requirements' ``.dist-info`` metadata to map distributions to import names.
"""

from __future__ import annotations

import logging
import site
import sysconfig
import threading
from collections.abc import Iterable, Sequence
from functools import lru_cache
from pathlib import Path
from typing import Final

from packaging.requirements import Requirement
from packaging.utils import canonicalize_name
from packaging.version import InvalidVersion, Version

from .errors import ResolverNotFoundError

LOGGER = logging.getLogger(__name__)

SOURCE_SUFFIXES: Final[tuple[str, ...]] = (".py", ".pyi")
LOCAL_SOURCE_DIRS: Final[tuple[str, ...]] = ("src", "")


@lru_cache(maxsize=1)
def default_stdlib_root() -> Path | None:
    """Return the interpreter's standard-library source directory."""

    stdlib = sysconfig.get_paths().get("stdlib")
    return Path(stdlib) if stdlib else None


@lru_cache(maxsize=1)
def default_site_packages() -> tuple[Path, ...]:
    """Return the primary and fallback site-packages roots."""

    roots: list[Path] = []
    purelib = sysconfig.get_paths().get("purelib")
    if purelib:
        roots.append(Path(purelib))
    platlib = sysconfig.get_paths().get("platlib")
    if platlib and Path(platlib) not in roots:
        roots.append(Path(platlib))
    user_site = site.getusersitepackages()
    if user_site and Path(user_site) not in roots:
        roots.append(Path(user_site))
    return tuple(roots)


def escape_distribution(name: str) -> str:
    """Return ``name`` escaped the way ``.dist-info`` directories spell it."""

    return canonicalize_name(name).replace("-", "_")


def module_candidate(base: Path, dotted: str) -> Path | None:
    """Return the source file for ``dotted`` below ``base`` when present.

    Packages resolve to their ``__init__`` file; stub files are used only when
    no ``.py`` source exists.
    """

    target = base.joinpath(*dotted.split(".")) if dotted else base
    for suffix in SOURCE_SUFFIXES:
        init = target / f"__init__{suffix}"
        if init.is_file():
            return init
        module = target.with_name(target.name + suffix) if dotted else None
        if module is not None and module.is_file():
            return module
    return None


class PackageResolver:
    """Resolve module paths for one project root."""

    def __init__(
        self,
        root: Path,
        module_path: str,
        *,
        stdlib_root: Path | None = None,
        site_packages: Sequence[Path] | None = None,
        requirements: Iterable[Requirement] = (),
    ) -> None:
        """Create a resolver for ``root``.

        Args:
            root: Project root directory.
            module_path: Dotted import path of the project's package.
            stdlib_root: Standard-library source root; discovered when omitted.
            site_packages: Module-cache roots; discovered when omitted.
            requirements: Manifest requirements used to locate distributions.
        """

        self.root = root.resolve()
        self.module_path = module_path
        self.stdlib_root = stdlib_root if stdlib_root is not None else default_stdlib_root()
        self.site_packages = tuple(site_packages) if site_packages is not None else default_site_packages()
        self.requirements = tuple(requirements)
        self._lock = threading.RLock()
        self._resolve_cache: dict[str, Path] = {}
        self._module_root_cache: dict[str, Path | None] = {}
        self._distribution_roots: dict[str, Path] | None = None
        self._module_dir: Path | None = None
        self._module_dir_checked = False

    @property
    def module_dir(self) -> Path | None:
        """Return the directory holding the project's top-level package."""

        with self._lock:
            if not self._module_dir_checked:
                self._module_dir = self._find_module_dir()
                self._module_dir_checked = True
            return self._module_dir

    def source_roots(self) -> tuple[Path, ...]:
        """Return the directories local top-level packages live in."""

        roots = []
        for name in LOCAL_SOURCE_DIRS:
            candidate = self.root / name if name else self.root
            if candidate.is_dir():
                roots.append(candidate)
        return tuple(roots)

    def is_local(self, pkg_path: str) -> bool:
        """Return ``True`` when ``pkg_path`` belongs to the project."""

        if not self.module_path:
            return False
        return pkg_path == self.module_path or pkg_path.startswith(self.module_path + ".")

    def resolve(self, pkg_path: str) -> Path:
        """Return the source file for ``pkg_path``.

        Raises:
            ResolverNotFoundError: If no resolution step locates the module.
        """

        with self._lock:
            cached = self._resolve_cache.get(pkg_path)
        if cached is not None:
            return cached
        found = self._resolve_uncached(pkg_path)
        if found is None:
            raise ResolverNotFoundError(pkg_path, searched=tuple(str(path) for path in self._searched_roots()))
        with self._lock:
            self._resolve_cache[pkg_path] = found
        return found

    def try_resolve(self, pkg_path: str) -> Path | None:
        """Return the source file for ``pkg_path`` or ``None``."""

        try:
            return self.resolve(pkg_path)
        except ResolverNotFoundError:
            return None

    def module_path_for_file(self, path: Path) -> str | None:
        """Return the dotted module path for a local source file."""

        resolved = path.resolve()
        for base in self.source_roots():
            try:
                relative = resolved.relative_to(base)
            except ValueError:
                continue
            if base == self.root and relative.parts and relative.parts[0] in LOCAL_SOURCE_DIRS[:1]:
                continue
            parts = list(relative.with_suffix("").parts)
            if parts and parts[-1] == "__init__":
                parts.pop()
            if parts:
                return ".".join(parts)
        return None

    def module_root(self, pkg_path: str) -> Path | None:
        """Return the module-cache root containing ``pkg_path``.

        The path is shortened on ``.`` boundaries until a prefix is found in
        a distribution listed by the manifest or in any site-packages root.
        """

        with self._lock:
            if pkg_path in self._module_root_cache:
                return self._module_root_cache[pkg_path]
        found: Path | None = None
        parts = pkg_path.split(".")
        distributions = self._distributions()
        for length in range(len(parts), 0, -1):
            prefix = ".".join(parts[:length])
            if length == 1 and prefix in distributions:
                found = distributions[prefix]
                break
            for base in self.site_packages:
                if module_candidate(base, prefix) is not None:
                    found = base
                    break
            if found is not None:
                break
        with self._lock:
            self._module_root_cache[pkg_path] = found
        return found

    def invalidate(self, pkg_path: str) -> None:
        """Drop cached resolutions for ``pkg_path``."""

        with self._lock:
            self._resolve_cache.pop(pkg_path, None)
            self._module_root_cache.pop(pkg_path, None)

    def _resolve_uncached(self, pkg_path: str) -> Path | None:
        local = self._resolve_local(pkg_path)
        if local is not None:
            return local
        if self.stdlib_root is not None:
            found = module_candidate(self.stdlib_root, pkg_path)
            if found is not None:
                return found
        root = self.module_root(pkg_path)
        if root is not None:
            return module_candidate(root, pkg_path)
        return None

    def _resolve_local(self, pkg_path: str) -> Path | None:
        module_dir = self.module_dir
        if module_dir is not None and self.is_local(pkg_path):
            rest = pkg_path[len(self.module_path) :].lstrip(".")
            found = module_candidate(module_dir, rest)
            if found is not None:
                return found
        for base in self.source_roots():
            found = module_candidate(base, pkg_path)
            if found is not None:
                return found
        return None

    def _find_module_dir(self) -> Path | None:
        if not self.module_path:
            return None
        for base in self.source_roots():
            candidate = base.joinpath(*self.module_path.split("."))
            if candidate.is_dir():
                return candidate
        return None

    def _distributions(self) -> dict[str, Path]:
        with self._lock:
            if self._distribution_roots is not None:
                return self._distribution_roots
        mapping: dict[str, Path] = {}
        for requirement in self.requirements:
            escaped = escape_distribution(requirement.name)
            for base in self.site_packages:
                dist_info = _latest_dist_info(base, escaped)
                if dist_info is None:
                    continue
                for top_level in _top_level_names(dist_info, escaped):
                    mapping.setdefault(top_level, base)
                break
        with self._lock:
            self._distribution_roots = mapping
        return mapping

    def _searched_roots(self) -> list[Path]:
        searched = list(self.source_roots())
        if self.stdlib_root is not None:
            searched.append(self.stdlib_root)
        searched.extend(self.site_packages)
        return searched


def _latest_dist_info(base: Path, escaped: str) -> Path | None:
    if not base.is_dir():
        return None
    matches = []
    for entry in base.glob("*.dist-info"):
        name, _, _ = entry.name.partition("-")
        if escape_distribution(name) == escaped:
            matches.append(entry)
    if not matches:
        return None
    return max(matches, key=_dist_version)


def _dist_version(dist_info: Path) -> Version:
    _, _, version = dist_info.name.removesuffix(".dist-info").partition("-")
    try:
        return Version(version)
    except InvalidVersion:
        return Version("0")


def _top_level_names(dist_info: Path, fallback: str) -> list[str]:
    top_level = dist_info / "top_level.txt"
    if top_level.is_file():
        names = [line.strip() for line in top_level.read_text(encoding="utf-8").splitlines() if line.strip()]
        if names:
            return names
    record = dist_info / "RECORD"
    if record.is_file():
        names = []
        for line in record.read_text(encoding="utf-8").splitlines():
            first = line.split(",", 1)[0].split("/", 1)[0]
            if first.endswith(".py"):
                first = first[:-3]
            if first and ".dist-info" not in first and first not in names and first.isidentifier():
                names.append(first)
        if names:
            return names
    return [fallback]


__all__ = [
    "PackageResolver",
    "default_site_packages",
    "default_stdlib_root",
    "escape_distribution",
    "module_candidate",
]
