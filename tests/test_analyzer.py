# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""End-to-end analysis of a small annotated project."""

from __future__ import annotations

from pathlib import Path

import pytest

from contractgen.analyzer import AnalysisOptions, ProjectAnalyzer
from contractgen.analyzer.collector import handler_info
from contractgen.analyzer.detector import InterfaceDetector
from contractgen.analyzer.errors import errors_from_annotations, status_text
from contractgen.loader import PackageLoader
from contractgen.model import Kind, Project, Type
from contractgen.resolver import PackageResolver


@pytest.fixture
def shop(shop_root: Path) -> Project:
    return ProjectAnalyzer(shop_root).analyze(AnalysisOptions(use_cache=False))


def test_only_annotated_protocols_become_contracts(shop: Project) -> None:
    assert [contract.name for contract in shop.contracts] == ["Catalog"]
    catalog = shop.contracts[0]
    assert catalog.id == "shop.contracts.catalog:Catalog"
    assert catalog.file_path == "shop/contracts/catalog.py"
    assert catalog.docs == ["Catalog of items."]
    assert set(catalog.annotations) == {"jsonRPC-server", "metrics"}


def test_project_metadata_comes_from_manifest(shop: Project) -> None:
    assert shop.module_path == "shop"
    assert shop.version == "1.2.0"
    assert shop.contracts_dir == "shop/contracts"
    assert shop.marker


def test_context_argument_is_dropped(shop: Project) -> None:
    get = shop.contracts[0].method("get")

    assert get is not None
    assert [arg.name for arg in get.args] == ["item_id"]
    assert get.args[0].type_id == "shop.types:UserID"


def test_results_are_named(shop: Project) -> None:
    catalog = shop.contracts[0]
    get, search = catalog.method("get"), catalog.method("search")

    assert get is not None and search is not None
    assert [result.name for result in get.results] == ["result"]
    assert [result.name for result in search.results] == ["items", "total"]
    items = search.results[0]
    assert items.is_slice
    assert items.type_id == "shop.types:Item"
    tags = search.args[-1]
    assert tags.name == "tags"
    assert tags.is_ellipsis


def test_annotated_errors_are_attached(shop: Project) -> None:
    get = shop.contracts[0].method("get")

    assert get is not None
    assert [(error.type_id, error.http_code, error.http_code_text) for error in get.errors] == [
        ("shop.types:NotFound", 404, "Not Found")
    ]


def test_reachable_types_are_registered(shop: Project) -> None:
    user_id = shop.get_type("shop.types:UserID")
    item = shop.get_type("shop.types:Item")
    color = shop.get_type("shop.types:Color")

    assert user_id is not None and user_id.kind == Kind.ALIAS
    assert user_id.underlying_kind == Kind.INT
    assert color is not None and color.kind == Kind.ALIAS
    assert color.underlying_kind == Kind.STRING
    assert item is not None and item.kind == Kind.STRUCT
    assert item.docs == ["A catalog item."]
    names = [field.name for field in item.struct_fields]
    assert names == ["", "name", "price", "tags", "color", "children"]
    assert item.struct_fields[0].type_id == "shop.types:Base"
    assert item.struct_fields[2].tag("json") == ["price", "omitempty"]


def test_contract_filter_keeps_named_contracts(shop_root: Path) -> None:
    analyzer = ProjectAnalyzer(shop_root)

    project = analyzer.analyze(AnalysisOptions(contracts=("Missing",), use_cache=False))

    assert project.contracts == []


def test_analysis_is_cached_by_marker(shop_root: Path) -> None:
    analyzer = ProjectAnalyzer(shop_root)

    first = analyzer.analyze()
    cached = analyzer.cache.load(first.project_id, first.marker)

    assert cached is not None
    assert [contract.name for contract in cached.contracts] == ["Catalog"]
    assert analyzer.analyze().marker == first.marker


def test_errors_from_annotations_filters_codes() -> None:
    found = errors_from_annotations(
        {"404": "pkg.errors:NotFound", "302": "pkg:Redirect", "500": "skip", "409": "broken", "503": "pkg:Busy"}
    )

    assert [(info.http_code, info.full_name) for info in found] == [(404, "pkg.errors.NotFound"), (503, "pkg.Busy")]
    assert status_text(418) == "HTTP 418"


def test_handler_info_parses_reference() -> None:
    handler = handler_info({"handler": "shop.handlers:download"})

    assert handler is not None
    assert (handler.pkg_path, handler.name) == ("shop.handlers", "download")
    assert handler_info({"handler": "nocolon"}) is None
    assert handler_info({}) is None


def test_recursive_struct_has_one_entry(shop: Project) -> None:
    item = shop.get_type("shop.types:Item")

    assert item is not None
    children = item.struct_fields[-1]
    assert children.type_id == "shop.types:Item"
    assert children.is_slice
    assert sum(1 for type_id in shop.types if type_id == "shop.types:Item") == 1


def test_implementations_are_matched(shop_root: Path, write_tree) -> None:
    write_tree(
        {
            "shop/service.py": '''
            from typing import Annotated

            from shop.contracts.catalog import Context
            from shop.types import Item, NotFound, UserID


            class CatalogService:
                def get(self, ctx: Context, item_id: UserID) -> Item:
                    raise NotFound()

                def search(
                    self, ctx: Context, query: str, *tags: str
                ) -> tuple[Annotated[list[Item], "items"], Annotated[int, "total"]]:
                    return [], 0


            class Partial:
                def get(self, ctx: Context, item_id: UserID) -> Item:
                    raise NotFound()
            ''',
        }
    )

    project = ProjectAnalyzer(shop_root).analyze(AnalysisOptions(use_cache=False))

    catalog = project.contracts[0]
    assert [impl.struct_name for impl in catalog.implementations] == ["CatalogService"]
    implementation = catalog.implementations[0]
    assert implementation.pkg_path == "shop.service"
    assert implementation.methods_map["get"].file_path == "shop/service.py"
    get = catalog.method("get")
    assert get is not None
    assert {error.type_id for error in get.errors} == {"shop.types:NotFound"}
    assert 404 in {error.http_code for error in get.errors}


GRAPH_FILES = {
    "pyproject.toml": """
    [project]
    name = "graph"
    version = "0.1.0"

    [tool.contractgen]
    contracts-dir = "graph/contracts"
    """,
    "graph/__init__.py": "",
    "graph/types.py": '''
    from __future__ import annotations

    from dataclasses import dataclass
    from typing import Protocol


    class Weighted(Protocol):
        def weight(self) -> int: ...


    @dataclass
    class A:
        b: B | None = None


    @dataclass
    class B:
        a: A | None = None


    @dataclass
    class Leaf:
        value: int = 0

        def weight(self) -> int:
            return self.value


    class Gone(Exception):
        @property
        def code(self) -> int:
            return 410
    ''',
    "graph/handlers.py": '''
    from graph.types import Gone


    def download(name: str) -> bytes:
        if not name:
            raise Gone()
        return b""
    ''',
    "graph/contracts/__init__.py": "",
    "graph/contracts/walker.py": '''
    from typing import Protocol

    from graph.types import A, Leaf


    class Walker(Protocol):
        """Walk the graph.

        @jsonRPC-server
        """

        def start(self, root: A) -> list[Leaf | None]:
            """Begin a walk.

            @handler graph.handlers:download
            """
    ''',
}


@pytest.fixture
def graph_root(write_tree) -> Path:
    return write_tree(GRAPH_FILES)


@pytest.fixture
def graph(graph_root: Path) -> Project:
    return ProjectAnalyzer(graph_root).analyze(AnalysisOptions(use_cache=False))


def test_mutually_recursive_types_have_one_entry_each(graph: Project) -> None:
    a_type = graph.get_type("graph.types:A")
    b_type = graph.get_type("graph.types:B")

    assert a_type is not None and b_type is not None
    assert sorted(type_id for type_id in graph.types if type_id.split(":")[-1] in {"A", "B"}) == [
        "graph.types:A",
        "graph.types:B",
    ]
    assert (a_type.struct_fields[0].type_id, a_type.struct_fields[0].pointer_count) == ("graph.types:B", 1)
    assert (b_type.struct_fields[0].type_id, b_type.struct_fields[0].pointer_count) == ("graph.types:A", 1)


def test_list_of_optionals_counts_element_pointers(graph: Project) -> None:
    start = graph.contracts[0].method("start")

    assert start is not None
    result = start.results[0]
    assert (result.name, result.type_id) == ("result", "graph.types:Leaf")
    assert (result.is_slice, result.element_pointers) == (True, 1)
    assert result.pointer_count == 0
    assert graph.get_type("graph.types:Leaf") is not None


def test_handler_body_contributes_errors(graph: Project) -> None:
    start = graph.contracts[0].method("start")

    assert start is not None
    assert start.handler is not None
    assert [(error.type_id, error.http_code) for error in start.errors] == [("graph.types:Gone", 0)]
    assert graph.get_type("graph.types:Gone") is not None


def test_interface_detection_is_stable_across_runs(graph_root: Path, graph: Project) -> None:
    leaf = graph.get_type("graph.types:Leaf")
    assert leaf is not None
    assert "graph.types:Weighted" in leaf.implements_interfaces

    again = ProjectAnalyzer(graph_root).analyze(AnalysisOptions(use_cache=False))

    for type_id, found in graph.types.items():
        assert again.types[type_id].implements_interfaces == found.implements_interfaces


def test_repeated_enrichment_does_not_duplicate_interfaces(graph_root: Path) -> None:
    resolver = PackageResolver(graph_root, "graph", site_packages=())
    loader = PackageLoader(resolver)
    detector = InterfaceDetector(loader, eager_modules=())
    leaf = loader.load_for_type("graph.types", "Leaf")
    assert leaf is not None
    created = Type(kind=Kind.STRUCT, type_name="Leaf", import_pkg_path="graph.types", pkg_name="types")

    detector.enrich(created, leaf.type)
    first = list(created.implements_interfaces)
    detector.enrich(created, leaf.type)

    assert "graph.types:Weighted" in first
    assert created.implements_interfaces == first
    assert len(set(first)) == len(first)
