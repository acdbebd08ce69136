# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from contractgen.analyzer.detector import ERROR_CAPABILITY
from contractgen.annotations import DocTags
from contractgen.model import Contract, ErrorInfo, Kind, Method, Project, StructField, Type, Variable

ProjectWriter = Callable[[dict[str, str]], Path]


@pytest.fixture
def write_tree(tmp_path: Path) -> ProjectWriter:
    """Return a helper writing ``{relative path: source}`` under ``tmp_path``."""

    def write(files: dict[str, str]) -> Path:
        for relative, content in files.items():
            target = tmp_path / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(textwrap.dedent(content).lstrip(), encoding="utf-8")
        return tmp_path

    return write


SHOP_PYPROJECT = """
[project]
name = "shop"
version = "1.2.0"

[tool.contractgen]
contracts-dir = "shop/contracts"
"""

SHOP_TYPES = '''
from dataclasses import dataclass, field
from enum import Enum
from typing import NewType

UserID = NewType("UserID", int)


class Color(str, Enum):
    RED = "red"
    BLUE = "blue"


@dataclass
class Base:
    id: int


@dataclass
class Item(Base):
    """A catalog item."""

    name: str
    price: float = field(default=0.0, metadata={"json": "price,omitempty"})
    tags: list[str] = field(default_factory=list)
    color: Color | None = None
    children: list["Item"] = field(default_factory=list)


class NotFound(Exception):
    """Item does not exist."""

    @property
    def code(self) -> int:
        return 404
'''

SHOP_CONTRACTS = '''
"""Shop contracts."""

from typing import Annotated, Protocol

from shop.types import Item, UserID


class Context(Protocol):
    def deadline(self) -> float: ...


class Catalog(Protocol):
    """Catalog of items.

    @jsonRPC-server
    @metrics
    """

    def get(self, ctx: Context, item_id: UserID) -> Item:
        """Return one item.

        @404 shop.types:NotFound
        """

    def search(self, ctx: Context, query: str, *tags: str) -> tuple[Annotated[list[Item], "items"], Annotated[int, "total"]]:
        """Search items."""


class Helper(Protocol):
    def unrelated(self) -> None: ...
'''


@pytest.fixture
def shop_root(write_tree: ProjectWriter) -> Path:
    """Return a small annotated project on disk."""

    return write_tree(
        {
            "pyproject.toml": SHOP_PYPROJECT,
            "shop/__init__.py": "",
            "shop/types.py": SHOP_TYPES,
            "shop/contracts/__init__.py": "",
            "shop/contracts/catalog.py": SHOP_CONTRACTS,
        }
    )


def _var(name: str, type_id: str, **kwargs: object) -> Variable:
    return Variable(name=name, type_id=type_id, **kwargs)


def build_store_project() -> Project:
    """Return a hand-built project with one JSON-RPC and one HTTP contract."""

    item = Type(
        kind=Kind.STRUCT,
        type_name="Item",
        import_pkg_path="store.types",
        pkg_name="types",
        docs=["A catalog item."],
        struct_fields=[
            StructField(name="name", type_id="string", tags={"json": ["name"]}),
            StructField(name="price", type_id="float64", tags={"json": ["price", "omitempty"]}),
            StructField(name="tags", type_id="string", is_slice=True),
        ],
    )
    item_id = Type(
        kind=Kind.ALIAS,
        type_name="ItemID",
        import_pkg_path="store.types",
        pkg_name="types",
        underlying_kind=Kind.INT64,
        underlying_type_id="int64",
    )
    not_found = Type(
        kind=Kind.STRUCT,
        type_name="NotFound",
        import_pkg_path="store.errors",
        pkg_name="errors",
        docs=["Item does not exist."],
        implements_interfaces=[ERROR_CAPABILITY],
    )
    project = Project(
        version="1.2.0",
        module_path="store",
        types={found.type_id: found for found in (item, item_id, not_found)},
    )
    not_found_info = ErrorInfo(
        pkg_path="store.errors",
        type_name="NotFound",
        full_name="store.errors.NotFound",
        http_code=404,
        http_code_text="Not Found",
        type_id="store.errors:NotFound",
    )
    context = _var("ctx", "context:Context")
    catalog = Contract(
        id="store.contracts:Catalog",
        name="Catalog",
        pkg_path="store.contracts",
        file_path="store/contracts.py",
        docs=["Catalog of items."],
        annotations=DocTags({"jsonRPC-server": "", "metrics": ""}),
        methods=[
            Method(
                name="Get",
                contract_id="store.contracts:Catalog",
                args=[context, _var("item_id", "store.types:ItemID")],
                results=[_var("item", "store.types:Item")],
                docs=["Return one item."],
                errors=[not_found_info],
            ),
            Method(
                name="Count",
                contract_id="store.contracts:Catalog",
                args=[context],
                results=[_var("total", "int")],
            ),
        ],
    )
    files = Contract(
        id="store.contracts:Files",
        name="Files",
        pkg_path="store.contracts",
        file_path="store/contracts.py",
        annotations=DocTags({"http-server": "", "http-prefix": "/api/v1"}),
        methods=[
            Method(
                name="Rename",
                contract_id="store.contracts:Files",
                args=[context, _var("name", "string"), _var("new_name", "string"), _var("force", "bool", pointer_count=1)],
                results=[_var("ok", "bool")],
                annotations=DocTags(
                    {
                        "http-method": "put",
                        "http-path": "/files/:name",
                        "http-args": "force|force",
                        "tag:new_name:json": "newName",
                    }
                ),
            ),
            Method(
                name="Fetch",
                contract_id="store.contracts:Files",
                args=[context, _var("name", "string")],
                results=[_var("data", "typing:BinaryIO"), _var("content_type", "string")],
                annotations=DocTags({"http-method": "GET", "http-path": "/files/:name"}),
            ),
            Method(
                name="Upload",
                contract_id="store.contracts:Files",
                args=[context, _var("name", "string"), _var("file", "typing:BinaryIO")],
                results=[_var("size", "int")],
                annotations=DocTags(
                    {"http-path": "/upload/:name", "http-multipart": "", "http-success": "201", "enableInlineSingle": ""}
                ),
            ),
            Method(
                name="UploadPair",
                contract_id="store.contracts:Files",
                args=[
                    context,
                    _var("name", "string"),
                    _var("first", "typing:BinaryIO"),
                    _var("second", "typing:BinaryIO"),
                ],
                results=[_var("size", "int")],
                annotations=DocTags(
                    {
                        "http-path": "/pair/:name",
                        "http-part-name": "first|doc,second|thumb",
                        "http-part-content": "first|text/plain,second|image/png",
                        "enableInlineSingle": "",
                    }
                ),
            ),
            Method(
                name="Bundle",
                contract_id="store.contracts:Files",
                args=[context, _var("name", "string")],
                results=[_var("main", "typing:BinaryIO"), _var("thumb", "typing:BinaryIO")],
                annotations=DocTags({"http-method": "GET", "http-path": "/bundle/:name"}),
            ),
            Method(
                name="GetUser",
                contract_id="store.contracts:Files",
                args=[
                    context,
                    _var("user_id", "string"),
                    _var("q", "string"),
                    _var("auth", "string"),
                    _var("trace", "string", pointer_count=1),
                ],
                results=[_var("user", "store.types:Item")],
                annotations=DocTags(
                    {
                        "http-method": "GET",
                        "http-path": "/users/:user_id",
                        "http-args": "q|search",
                        "http-headers": "auth|Authorization,trace|X-Trace",
                    }
                ),
            ),
        ],
    )
    project.contracts = [catalog, files]
    return project


@pytest.fixture
def store_project() -> Project:
    return build_store_project()


@pytest.fixture(scope="session")
def store_project_builder() -> Callable[[], Project]:
    """Return the store project factory for fixtures wider than a function."""

    return build_store_project
