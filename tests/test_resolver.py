# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for mapping module paths to source files."""

from __future__ import annotations

from pathlib import Path

import pytest
from packaging.requirements import Requirement

from contractgen.errors import ResolverNotFoundError
from contractgen.resolver import PackageResolver, escape_distribution, module_candidate


def _touch(path: Path, content: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def env(tmp_path: Path) -> Path:
    """Return a fake interpreter prefix with a stdlib and two site roots."""

    base = tmp_path / "env"
    _touch(base / "stdlib" / "json" / "__init__.py")
    _touch(base / "stdlib" / "string.py")
    _touch(base / "site_a" / "PIL" / "__init__.py")
    _touch(base / "site_a" / "yaml" / "__init__.py")
    _touch(base / "site_b" / "PIL" / "__init__.py")
    _touch(base / "site_b" / "PIL" / "Image.py")
    _touch(base / "site_b" / "Pillow-9.0.dist-info" / "top_level.txt", "OldPIL\n")
    _touch(base / "site_b" / "Pillow-10.1.dist-info" / "top_level.txt", "PIL\n")
    _touch(base / "site_b" / "yaml" / "__init__.py")
    _touch(
        base / "site_b" / "PyYAML-6.0.dist-info" / "RECORD",
        "yaml/__init__.py,sha256=abc,12\nPyYAML-6.0.dist-info/METADATA,,\n_yaml/__init__.py,,\n",
    )
    return base


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "proj"
    _touch(root / "src" / "acme" / "__init__.py")
    _touch(root / "src" / "acme" / "api.py")
    _touch(root / "src" / "acme" / "stubs.pyi")
    _touch(root / "tools" / "__init__.py")
    return root


def _resolver(project: Path, env: Path, requirements: tuple[str, ...] = ()) -> PackageResolver:
    return PackageResolver(
        project,
        "acme",
        stdlib_root=env / "stdlib",
        site_packages=[env / "site_a", env / "site_b"],
        requirements=[Requirement(text) for text in requirements],
    )


def test_local_modules_resolve_in_src_layout(project: Path, env: Path) -> None:
    resolver = _resolver(project, env)

    assert resolver.module_dir == (project / "src" / "acme").resolve()
    assert resolver.resolve("acme") == resolver.root / "src" / "acme" / "__init__.py"
    assert resolver.resolve("acme.api") == resolver.root / "src" / "acme" / "api.py"
    assert resolver.resolve("acme.stubs").suffix == ".pyi"
    assert resolver.resolve("tools") == resolver.root / "tools" / "__init__.py"
    assert resolver.is_local("acme.api")
    assert not resolver.is_local("acmex")


def test_stdlib_is_searched_after_local_sources(project: Path, env: Path) -> None:
    resolver = _resolver(project, env)

    assert resolver.resolve("json") == env / "stdlib" / "json" / "__init__.py"
    assert resolver.resolve("string") == env / "stdlib" / "string.py"


def test_site_packages_are_searched_in_order(project: Path, env: Path) -> None:
    resolver = _resolver(project, env)

    assert resolver.module_root("PIL") == env / "site_a"
    assert resolver.resolve("PIL.Image") == env / "site_b" / "PIL" / "Image.py"


def test_manifest_requirements_pick_their_distribution_root(project: Path, env: Path) -> None:
    resolver = _resolver(project, env, ("pillow>=10", "PyYAML"))

    assert resolver.module_root("PIL") == env / "site_b"
    assert resolver.resolve("PIL") == env / "site_b" / "PIL" / "__init__.py"
    assert resolver.module_root("yaml") == env / "site_b"


def test_unknown_module_raises_with_search_roots(project: Path, env: Path) -> None:
    resolver = _resolver(project, env)

    with pytest.raises(ResolverNotFoundError) as excinfo:
        resolver.resolve("nowhere.to.be.found")

    assert excinfo.value.pkg_path == "nowhere.to.be.found"
    assert str(env / "stdlib") in excinfo.value.searched
    assert resolver.try_resolve("nowhere") is None


def test_invalidate_drops_cached_resolution(project: Path, env: Path) -> None:
    resolver = _resolver(project, env)
    api = resolver.resolve("acme.api")

    api.unlink()

    assert resolver.resolve("acme.api") == api
    resolver.invalidate("acme.api")
    assert resolver.try_resolve("acme.api") is None


def test_module_path_for_file(project: Path, env: Path) -> None:
    resolver = _resolver(project, env)

    assert resolver.module_path_for_file(project / "src" / "acme" / "api.py") == "acme.api"
    assert resolver.module_path_for_file(project / "src" / "acme" / "__init__.py") == "acme"
    assert resolver.module_path_for_file(env / "stdlib" / "string.py") is None


def test_flat_layout_without_module_path(tmp_path: Path, env: Path) -> None:
    _touch(tmp_path / "flat" / "pkg" / "core.py")
    resolver = PackageResolver(tmp_path / "flat", "", stdlib_root=env / "stdlib", site_packages=())

    assert resolver.module_dir is None
    assert not resolver.is_local("pkg")
    assert resolver.resolve("pkg.core") == resolver.root / "pkg" / "core.py"


def test_module_candidate_and_distribution_escaping(env: Path) -> None:
    assert module_candidate(env / "stdlib", "json") == env / "stdlib" / "json" / "__init__.py"
    assert module_candidate(env / "stdlib", "missing") is None
    assert escape_distribution("Foo.Bar-baz") == "foo_bar_baz"
