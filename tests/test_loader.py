# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for on-demand module loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from contractgen.errors import LoadTypeCheckError, ResolverNotFoundError
from contractgen.loader import PackageLoader, parse_file
from contractgen.resolver import PackageResolver

ACME_FILES = {
    "acme/__init__.py": "",
    "acme/types.py": '''
    class Item:
        name: str
    ''',
    "acme/codes.py": '''
    from typing import NewType

    Code = NewType("Code", int)
    ''',
    "acme/helpers.py": '''
    def slug(text: str) -> str:
        return text.lower()
    ''',
    "acme/api.py": '''
    import acme.helpers
    from acme.types import Item


    class Api:
        def get(self, name: str) -> Item: ...
    ''',
    "acme/errors.py": '''
    from acme.codes import Code


    class NotFound(Exception):
        def code(self) -> Code:
            return Code(404)
    ''',
}


@pytest.fixture
def loader(write_tree, tmp_path: Path) -> PackageLoader:
    root = write_tree(ACME_FILES)
    resolver = PackageResolver(root, "acme", stdlib_root=tmp_path / "no-stdlib", site_packages=())
    return PackageLoader(resolver)


def test_load_lazy_materializes_only_needed_local_imports(loader: PackageLoader) -> None:
    info = loader.load_lazy("acme.api")

    assert info.package_name == "api"
    assert info.imports["Item"] == "acme.types.Item"
    assert loader.cached("acme.types") is not None
    assert loader.cached("acme.helpers") is None
    assert loader.load_lazy("acme.api") is info


def test_load_minimal_forces_extra_imports(loader: PackageLoader) -> None:
    loader.load_minimal("acme.api", ["acme.helpers"])

    assert loader.cached("acme.helpers") is not None


def test_load_from_files_uses_caller_parsed_sources(loader: PackageLoader) -> None:
    path = loader.resolver.resolve("acme.types")

    info = loader.load_from_files("acme.types", [parse_file(path)])

    assert info.directory == path.parent
    assert [obj.name for obj in info.package.classes()] == ["Item"]


def test_lazy_importer_hands_out_stubs_until_required(loader: PackageLoader) -> None:
    importer = loader.importer

    stub = importer.import_module("acme.helpers")
    assert stub.is_stub
    assert loader.cached("acme.helpers") is None

    loaded = importer.import_module("acme.helpers", required=True)
    assert not loaded.is_stub
    assert loaded.function("slug") is not None
    assert importer.import_module("acme.helpers") is loaded
    assert importer.import_module("builtins").is_stub
    assert importer.import_module("nowhere.at.all", required=True).is_stub
    assert importer.exists("acme.types")
    assert not importer.exists("acme.nothing")


def test_load_for_type_reloads_when_symbol_is_missing(loader: PackageLoader, tmp_path: Path) -> None:
    loader.load_lazy("acme.types")
    source = "class Item:\n    name: str\n\n\nclass Extra:\n    pass\n"
    (tmp_path / "acme" / "types.py").write_text(source, encoding="utf-8")

    found = loader.load_for_type("acme.types", "Extra")

    assert found is not None
    assert found.type_id == "acme.types:Extra"
    assert loader.load_for_type("acme.types", "Missing") is None
    assert loader.load_for_type("acme.nothing", "Item") is None


def test_load_for_error_type_follows_error_method_imports(loader: PackageLoader) -> None:
    assert loader.load_for_type("acme.errors", "NotFound") is not None
    assert loader.cached("acme.codes") is None

    found = loader.load_for_error_type("acme.errors", "NotFound")

    assert found is not None
    assert loader.cached("acme.codes") is not None


def test_failed_load_is_not_cached(loader: PackageLoader, tmp_path: Path) -> None:
    broken = tmp_path / "acme" / "broken.py"
    broken.write_text("class Broken(:\n", encoding="utf-8")

    with pytest.raises(LoadTypeCheckError):
        loader.load_lazy("acme.broken")
    assert loader.cached("acme.broken") is None
    assert "acme.broken" not in {info.pkg_path for info in loader.loaded_packages()}

    broken.write_text("class Broken:\n    pass\n", encoding="utf-8")
    assert loader.load_lazy("acme.broken").package.lookup("Broken") is not None


def test_missing_module_raises_resolver_error(loader: PackageLoader) -> None:
    with pytest.raises(ResolverNotFoundError):
        loader.load_lazy("acme.nothing")
    assert loader.cached("acme.nothing") is None


def test_version_constant_detection(loader: PackageLoader, tmp_path: Path) -> None:
    (tmp_path / "acme" / "version.py").write_text('VersionASTg = "1.0.0"\n', encoding="utf-8")

    assert loader.has_version_constant("acme.version")
    assert not loader.has_version_constant("acme.types")
    assert not loader.has_version_constant("acme.nothing")
