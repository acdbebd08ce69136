# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for the client package renderer."""

from __future__ import annotations

import ast
from pathlib import Path

import pytest

from contractgen.annotations import DocTags
from contractgen.errors import InvalidTypeRefError
from contractgen.model import Project, TypeRef
from contractgen.renderer import ClientRenderer, select_contracts
from contractgen.renderer.helpers import BodyMode, http_path, http_plan, is_http, is_jsonrpc, part_content, part_name
from contractgen.renderer.service import url_expr
from contractgen.renderer.source import DO_NOT_EDIT, SourceFile
from contractgen.renderer.types import TypeRenderer

EXPECTED_FILES = {
    "__init__.py",
    "batch.py",
    "catalog.py",
    "catalog_exchange.py",
    "client.py",
    "content.py",
    "errors.py",
    "files.py",
    "files_exchange.py",
    "jsonrpc/__init__.py",
    "jsonrpc/client.py",
    "jsonrpc/curl.py",
    "jsonrpc/envelope.py",
    "jsonrpc/options.py",
    "metrics.py",
    "options.py",
    "types.py",
    "version.py",
    "README.md",
}


@pytest.fixture
def rendered(tmp_path: Path, store_project: Project) -> Path:
    output = tmp_path / "storeclient"
    ClientRenderer(store_project, output).render()
    return output


def test_render_writes_every_module(rendered: Path) -> None:
    written = {path.relative_to(rendered).as_posix() for path in rendered.rglob("*") if path.is_file()}

    assert written == EXPECTED_FILES
    for path in rendered.rglob("*.py"):
        text = path.read_text(encoding="utf-8")
        assert text.startswith(DO_NOT_EDIT)
        ast.parse(text, filename=str(path))


def test_render_returns_written_paths(tmp_path: Path, store_project: Project) -> None:
    output = tmp_path / "storeclient"

    paths = ClientRenderer(store_project, output, docs=False).render()

    assert output / "client.py" in paths
    assert not (output / "README.md").exists()
    assert all(path.is_file() for path in paths)


def test_types_module_declares_models(rendered: Path) -> None:
    text = (rendered / "types.py").read_text(encoding="utf-8")

    assert "class Model(BaseModel):" in text
    assert "ItemID: TypeAlias = int" in text
    assert "class Item(Model):" in text
    assert "omit_empty: ClassVar[frozenset[str]] = frozenset({'price'})" in text
    assert "tags: list[str] = Field(default_factory=list)" in text
    assert "Item.model_rebuild()" in text
    assert "NotFound" not in text


def test_errors_module_registers_typed_errors(rendered: Path) -> None:
    text = (rendered / "errors.py").read_text(encoding="utf-8")

    assert "class NotFound(RPCErrorException):" in text
    assert '"""Item does not exist."""' in text
    assert "http_code: ClassVar[int] = 404" in text
    assert "ERRORS_BY_CODE: Final[dict[int, type[RPCErrorException]]] = {\n    404: NotFound,\n}" in text
    assert '"NotFound",' in text


def test_exchange_module_uses_json_tags(rendered: Path) -> None:
    text = (rendered / "files_exchange.py").read_text(encoding="utf-8")

    assert "class RequestFilesRename(Model):" in text
    assert "new_name: str = Field(\"\", alias='newName')" in text
    assert "force: bool | None = None" in text
    assert "class ResponseFilesFetch(Model):" in text
    catalog = (rendered / "catalog_exchange.py").read_text(encoding="utf-8")
    assert "class RequestCatalogCount(Model):\n    # Formal exchange type, please do not delete.\n    pass\n" in catalog


def test_service_modules_pick_transport(rendered: Path) -> None:
    catalog = (rendered / "catalog.py").read_text(encoding="utf-8")
    files = (rendered / "files.py").read_text(encoding="utf-8")

    assert "class ClientCatalog:" in catalog
    assert 'jsonrpc.RequestRPC(method="catalog.get", params=_request)' in catalog
    assert "def req_get(self, callback: Callable[..., Any], item_id: ItemID) -> RequestRPC:" in catalog
    assert 'async with self.client.track("catalog", "get"):' in catalog
    assert "class ClientFiles:" in files
    assert 'self.client.http.build_request(\'PUT\', self.client.url(f"/api/v1/files/{_content.path_segment(name)}")' in files
    assert "_parts = await _content.MultipartParts.read(_response)" in files
    assert "await self.client.round_trip(_http_request, 201)" in files
    assert "self.client.track" not in files


def test_options_module_enables_metrics(rendered: Path) -> None:
    text = (rendered / "options.py").read_text(encoding="utf-8")

    assert "def with_metrics(meter_provider: MeterProvider | None = None) -> Option:" in text
    assert "from .metrics import Metrics" in text
    assert 'METER_NAME = "storeclient"' in (rendered / "metrics.py").read_text(encoding="utf-8")


def test_metrics_skipped_without_annotation(tmp_path: Path, store_project: Project) -> None:
    store_project.contracts[0].annotations = DocTags({"jsonRPC-server": ""})
    output = tmp_path / "plain"

    ClientRenderer(store_project, output).render()

    assert not (output / "metrics.py").exists()
    assert "with_metrics" not in (output / "options.py").read_text(encoding="utf-8")


def test_client_module_exposes_contract_accessors(rendered: Path) -> None:
    text = (rendered / "client.py").read_text(encoding="utf-8")

    assert "from .catalog import ClientCatalog" in text
    assert "    def catalog(self) -> ClientCatalog:\n        return ClientCatalog(self)\n" in text
    assert "    def files(self) -> ClientFiles:\n        return ClientFiles(self)\n" in text
    assert 'VersionASTg = "1.2.0"' in (rendered / "version.py").read_text(encoding="utf-8")


def test_package_json_swaps_json_module(tmp_path: Path, store_project: Project) -> None:
    store_project.annotations = DocTags({"packageJSON": "orjson"})
    output = tmp_path / "fast"

    ClientRenderer(store_project, output, docs=False).render()

    assert "import orjson as json" in (output / "jsonrpc" / "envelope.py").read_text(encoding="utf-8")
    assert "import orjson as json" in (output / "content.py").read_text(encoding="utf-8")


def test_readme_documents_contracts(rendered: Path) -> None:
    text = (rendered / "README.md").read_text(encoding="utf-8")

    assert text.startswith("# store API client\n")
    assert "<!-- BEGIN_TOC -->" in text
    assert "### Catalog" in text
    assert "#### Catalog.get" in text
    assert "async def get(item_id: ItemID) -> Item" in text
    assert "| 404 | `NotFound` | Not Found |" in text
    assert "## Batch" in text
    assert "## Metrics" in text
    assert "HTTP `PUT /api/v1/files/:name`" in text


def test_select_contracts_filters_by_name_or_id(store_project: Project) -> None:
    assert [contract.name for contract in select_contracts(store_project)] == ["Catalog", "Files"]
    assert [contract.name for contract in select_contracts(store_project, ["Files"])] == ["Files"]
    assert [contract.name for contract in select_contracts(store_project, ["store.contracts:Catalog"])] == ["Catalog"]


def test_unserved_contracts_are_skipped(store_project: Project) -> None:
    store_project.contracts[1].annotations = DocTags()

    assert [contract.name for contract in select_contracts(store_project)] == ["Catalog"]


def test_http_plan_routes_arguments(store_project: Project) -> None:
    files = store_project.contracts[1]
    rename, fetch, upload = files.methods[:3]

    plan = http_plan(store_project, files, rename)

    assert plan.path == "/api/v1/files/:name"
    assert plan.path_args == ["name"]
    assert plan.query == {"force": "force"}
    assert [arg.name for arg in plan.body_args] == ["new_name"]
    assert plan.mode == BodyMode.ENCODED
    assert http_plan(store_project, files, fetch).mode == BodyMode.NONE
    assert http_plan(store_project, files, upload).mode == BodyMode.MULTIPART
    assert url_expr(plan) == 'f"/api/v1/files/{_content.path_segment(name)}"'


def test_http_plan_maps_headers_and_parts(store_project: Project) -> None:
    files = store_project.contracts[1]
    upload_pair, bundle, get_user = files.methods[3:]

    plan = http_plan(store_project, files, get_user)

    assert plan.path_args == ["user_id"]
    assert plan.query == {"q": "search"}
    assert plan.headers == {"auth": "Authorization", "trace": "X-Trace"}
    assert plan.body_args == []
    assert plan.mode == BodyMode.NONE
    pair = http_plan(store_project, files, upload_pair)
    assert pair.mode == BodyMode.MULTIPART
    assert [(part_name(upload_pair, arg), part_content(upload_pair, arg)) for arg in pair.stream_args] == [
        ("doc", "text/plain"),
        ("thumb", "image/png"),
    ]
    assert [part_name(bundle, result) for result in bundle.results] == ["main", "thumb"]
    assert part_content(bundle, bundle.results[0]) == "application/octet-stream"


def test_http_path_defaults_to_lower_camel_method(store_project: Project) -> None:
    files = store_project.contracts[1]
    method = files.methods[0].model_copy(update={"annotations": DocTags(), "name": "ListAll"})

    assert http_path(store_project, files, method) == "/api/v1/listAll"


def test_http_prefix_falls_back_to_project(store_project: Project) -> None:
    files = store_project.contracts[1]
    files.annotations = DocTags({"http-server": ""})
    store_project.annotations = DocTags({"http-prefix": "/v2/"})

    assert http_path(store_project, files, files.methods[0]) == "/v2/files/:name"

    files.annotations = DocTags({"http-server": "", "http-prefix": "/api"})
    assert http_path(store_project, files, files.methods[0]) == "/api/files/:name"


def test_method_level_http_override(store_project: Project) -> None:
    catalog = store_project.contracts[0]
    catalog.annotations = DocTags({"jsonRPC-server": "", "http-server": ""})
    method = catalog.methods[1]
    method.annotations = DocTags({"http": ""})

    assert is_http(store_project, catalog, method)
    assert not is_jsonrpc(store_project, catalog, method)
    assert is_jsonrpc(store_project, catalog, catalog.methods[0])


def test_type_collection_skips_errors_and_externals(store_project: Project) -> None:
    renderer = TypeRenderer(store_project, store_project.contracts)

    assert renderer.collect() == ["store.types:ItemID", "store.types:Item"]
    assert renderer.names == {"store.types:ItemID": "ItemID", "store.types:Item": "Item"}


def test_struct_fields_keep_declaration_order(tmp_path: Path, store_project: Project) -> None:
    item = store_project.types["store.types:Item"]
    item.struct_fields = list(reversed(item.struct_fields))
    output = tmp_path / "ordered"

    ClientRenderer(store_project, output, docs=False).render()

    text = (output / "types.py").read_text(encoding="utf-8")
    body = text[text.index("class Item(Model):") :]
    assert body.index("tags:") < body.index("price:") < body.index("name:")


def test_half_described_map_is_rejected(store_project: Project) -> None:
    renderer = TypeRenderer(store_project, store_project.contracts)
    src = SourceFile("scratch")

    with pytest.raises(InvalidTypeRefError, match="map needs both key and value types"):
        renderer.ref_expr(TypeRef(type_id="store.types:Index", map_key=TypeRef(type_id="string")), src)
    expr = renderer.ref_expr(
        TypeRef(type_id="", map_key=TypeRef(type_id="string"), map_value=TypeRef(type_id="int", pointer_count=1)), src
    )
    assert expr == "dict[str, int | None]"
