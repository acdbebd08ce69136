# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Importer handed to bound packages so they can follow their imports."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

from ..errors import LoadTypeCheckError, ResolverNotFoundError
from .checker import Package, stub_package
from .typesys import TypeName

if TYPE_CHECKING:
    from .loader import PackageLoader

LOGGER = logging.getLogger(__name__)

BUILTINS_MODULE: Final[str] = "builtins"


class LazyImporter:
    """Resolve imports through a :class:`PackageLoader`.

    ``builtins`` is never loaded; its classes are served by the loader's
    builtin registry. Imports that are not required come back as stubs until
    a lookup needs their members.
    """

    def __init__(self, loader: PackageLoader) -> None:
        self._loader = loader
        self._builtins = stub_package(BUILTINS_MODULE, self)

    def import_module(self, path: str, *, required: bool = False) -> Package:
        """Return the package for ``path``; a stub unless ``required``."""

        if path == BUILTINS_MODULE:
            return self._builtins
        if not required:
            cached = self._loader.cached(path)
            return cached.package if cached is not None else stub_package(path, self)
        found = self.module(path)
        return found if found is not None else stub_package(path, self)

    def module(self, path: str) -> Package | None:
        if path == BUILTINS_MODULE:
            return None
        try:
            return self._loader.load_lazy(path).package
        except (ResolverNotFoundError, LoadTypeCheckError) as exc:
            LOGGER.debug("import of %s not materialized: %s", path, exc)
            return None

    def exists(self, path: str) -> bool:
        return self._loader.resolver.try_resolve(path) is not None

    def opaque(self, module: str, name: str) -> TypeName:
        return self._loader.opaque(module, name)

    def builtin(self, name: str) -> TypeName | None:
        return self._loader.builtin(name)


__all__ = ["BUILTINS_MODULE", "LazyImporter"]
