# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Import a rendered client package and drive it against a mock transport."""

from __future__ import annotations

import asyncio
import importlib
import io
import json
import sys
from collections.abc import Callable, Iterator
from contextvars import ContextVar
from types import ModuleType, SimpleNamespace
from typing import Any

import httpx
import pytest

from contractgen.model import Project
from contractgen.renderer import ClientRenderer

PACKAGE = "store_client_e2e"

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(scope="module")
def pkg(
    tmp_path_factory: pytest.TempPathFactory, store_project_builder: Callable[[], Project]
) -> Iterator[SimpleNamespace]:
    root = tmp_path_factory.mktemp("generated")
    ClientRenderer(store_project_builder(), root / PACKAGE).render()
    sys.path.insert(0, str(root))
    try:
        yield SimpleNamespace(
            root=importlib.import_module(PACKAGE),
            errors=importlib.import_module(f"{PACKAGE}.errors"),
            options=importlib.import_module(f"{PACKAGE}.options"),
            batch=importlib.import_module(f"{PACKAGE}.batch"),
            content=importlib.import_module(f"{PACKAGE}.content"),
        )
    finally:
        sys.path.remove(str(root))
        for name in [name for name in sys.modules if name == PACKAGE or name.startswith(f"{PACKAGE}.")]:
            del sys.modules[name]


def _client(pkg: SimpleNamespace, handler: Handler, *opts: Any) -> Any:
    return pkg.root.Client("http://store.test", pkg.options.transport(httpx.MockTransport(handler)), *opts)


def _rpc_result(request: httpx.Request, result: Any) -> httpx.Response:
    payload = json.loads(request.content)
    return httpx.Response(200, json={"id": payload["id"], "jsonrpc": "2.0", "result": result})


def _run(coro: Any) -> Any:
    return asyncio.run(coro)


def test_package_exports(pkg: SimpleNamespace) -> None:
    module: ModuleType = pkg.root

    assert {"Client", "ClientCatalog", "ClientFiles", "RPCErrorException", "options"} <= set(module.__all__)
    assert module.VersionASTg == "1.2.0"


def test_jsonrpc_call_returns_model(pkg: SimpleNamespace) -> None:
    seen: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        assert request.headers["X-Client-Id"].endswith("astg_py_1.2.0")
        return _rpc_result(request, {"item": {"name": "lamp", "price": 9.5, "tags": ["home"]}})

    async def scenario() -> Any:
        async with _client(pkg, handler) as client:
            return await client.catalog().get(7)

    item = _run(scenario())

    assert item.name == "lamp"
    assert item.price == 9.5
    assert item.tags == ["home"]
    assert seen[0]["method"] == "catalog.get"
    assert seen[0]["params"] == {"item_id": 7}


def test_jsonrpc_error_maps_to_typed_exception(pkg: SimpleNamespace) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        error = {"code": 404, "message": "no such item"}
        return httpx.Response(200, json={"id": payload["id"], "jsonrpc": "2.0", "error": error})

    async def scenario() -> None:
        async with _client(pkg, handler) as client:
            await client.catalog().get(1)

    with pytest.raises(pkg.errors.NotFound) as excinfo:
        _run(scenario())

    assert excinfo.value.code == 404
    assert str(excinfo.value) == "no such item"


def test_jsonrpc_non_200_raises_http_error(pkg: SimpleNamespace) -> None:
    async def scenario() -> None:
        async with _client(pkg, lambda request: httpx.Response(502, text="bad gateway")) as client:
            await client.catalog().count()

    with pytest.raises(pkg.errors.HTTPError) as excinfo:
        _run(scenario())

    assert excinfo.value.status_code == 502


def test_context_headers_are_forwarded(pkg: SimpleNamespace) -> None:
    request_id: ContextVar[str] = ContextVar("X-Request-Id")
    headers: list[str | None] = []

    def handler(request: httpx.Request) -> httpx.Response:
        headers.append(request.headers.get("X-Request-Id"))
        return _rpc_result(request, {"total": 3})

    async def scenario() -> int:
        request_id.set("abc-123")
        async with _client(pkg, handler, pkg.options.headers(request_id)) as client:
            return await client.catalog().count()

    assert _run(scenario()) == 3
    assert headers == ["abc-123"]


def test_batch_dispatches_results_and_missing_responses(pkg: SimpleNamespace) -> None:
    outcomes: dict[str, tuple[Any, Any]] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        first = json.loads(request.content)[0]
        return httpx.Response(200, json=[{"id": first["id"], "jsonrpc": "2.0", "result": {"total": 12}}])

    async def scenario() -> None:
        async with _client(pkg, handler) as client:
            catalog = client.catalog()
            await client.batch(
                catalog.req_count(lambda total, error: outcomes.__setitem__("count", (total, error))),
                catalog.req_get(lambda item, error: outcomes.__setitem__("get", (item, error)), 5),
            )

    _run(scenario())

    assert outcomes["count"] == (12, None)
    item, error = outcomes["get"]
    assert item is None
    assert isinstance(error, pkg.batch.MissingResponseError)


def test_http_put_routes_path_query_and_body(pkg: SimpleNamespace) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"ok": True})

    async def scenario() -> tuple[bool, bool]:
        async with _client(pkg, handler) as client:
            files = client.files()
            return await files.rename("a b", "c", True), await files.rename("d", "e", None)

    assert _run(scenario()) == (True, True)
    forced, plain = requests
    assert forced.method == "PUT"
    assert forced.url.path == "/api/v1/files/a b"
    assert forced.url.params["force"] == "true"
    assert json.loads(forced.content) == {"newName": "c"}
    assert forced.headers["Content-Type"] == "application/json"
    assert "force" not in plain.url.params


def test_http_stream_result(pkg: SimpleNamespace) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        return httpx.Response(200, content=b"hello world", headers={"Content-Type": "text/plain"})

    async def scenario() -> tuple[bytes, str]:
        async with _client(pkg, handler) as client:
            body, content_type = await client.files().fetch("notes.txt")
            async with body:
                return await body.read(), content_type

    assert _run(scenario()) == (b"hello world", "text/plain")


def test_http_multipart_upload(pkg: SimpleNamespace) -> None:
    uploads: list[bytes] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/upload/report"
        assert request.headers["Content-Type"].startswith("multipart/form-data")
        uploads.append(request.content)
        return httpx.Response(201, json=42)

    async def scenario() -> int:
        async with _client(pkg, handler) as client:
            return await client.files().upload("report", b"payload-bytes")

    assert _run(scenario()) == 42
    assert b'name="file"' in uploads[0]
    assert b"payload-bytes" in uploads[0]


def test_http_error_body_is_decoded(pkg: SimpleNamespace) -> None:
    async def scenario() -> None:
        async with _client(pkg, lambda request: httpx.Response(404, json={"message": "gone"})) as client:
            await client.files().fetch("missing")

    with pytest.raises(pkg.errors.NotFound) as excinfo:
        _run(scenario())

    assert excinfo.value.code == 404


def test_http_error_without_body(pkg: SimpleNamespace) -> None:
    async def scenario() -> None:
        async with _client(pkg, lambda request: httpx.Response(500)) as client:
            await client.files().rename("a", "b", None)

    with pytest.raises(pkg.errors.HTTPError) as excinfo:
        _run(scenario())

    assert excinfo.value.status_code == 500


def test_default_error_decoder_falls_back(pkg: SimpleNamespace) -> None:
    decode = pkg.errors.default_error_decoder

    unknown = decode(b'{"code": 418, "message": "teapot"}', 418)
    assert type(unknown) is pkg.errors.RPCErrorException
    assert unknown.code == 418
    assert isinstance(decode(b"not json", 500), ValueError)
    assert decode(b'"oops"', 503).code == 503


def test_http_multipart_pair_uses_part_names_and_content_types(pkg: SimpleNamespace) -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/api/v1/pair/report"
        captured.append(request)
        return httpx.Response(200, json=2)

    async def scenario() -> int:
        async with _client(pkg, handler) as client:
            return await client.files().upload_pair("report", b"doc-body", io.BytesIO(b"thumb-bytes"))

    assert _run(scenario()) == 2
    request = captured[0]
    echoed = httpx.Response(200, content=request.content, headers={"Content-Type": request.headers["Content-Type"]})

    async def parts() -> list[tuple[str, str, bytes]]:
        found = await pkg.content.MultipartParts.read(echoed)
        readers = await found.readers(echoed, ["doc", "thumb", "first"])
        assert readers[2] is None
        return [(reader.name, reader.content_type, await reader.read()) for reader in readers[:2]]

    assert _run(parts()) == [("doc", "text/plain", b"doc-body"), ("thumb", "image/png", b"thumb-bytes")]


MULTIPART_BODY = (
    b"--XYZ\r\n"
    b'Content-Disposition: form-data; name="main"\r\n'
    b"Content-Type: text/plain\r\n\r\n"
    b"hello\r\n"
    b"--XYZ\r\n"
    b'Content-Disposition: form-data; name="thumb"\r\n'
    b"Content-Type: image/png\r\n\r\n"
    b"PNGDATA\r\n"
    b"--XYZ--\r\n"
)


def test_http_multipart_response_returns_part_readers(pkg: SimpleNamespace) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/bundle/pics"
        return httpx.Response(
            200, content=MULTIPART_BODY, headers={"Content-Type": "multipart/form-data; boundary=XYZ"}
        )

    async def scenario() -> list[tuple[str, bytes]]:
        async with _client(pkg, handler) as client:
            main, thumb = await client.files().bundle("pics")
            out = []
            for reader in (main, thumb):
                async with reader:
                    out.append((reader.content_type, await reader.read()))
            return out

    assert _run(scenario()) == [("text/plain", b"hello"), ("image/png", b"PNGDATA")]


class _TrackedResponse:
    def __init__(self) -> None:
        self.closed = 0

    async def aclose(self) -> None:
        self.closed += 1


def test_multipart_readers_share_one_closer(pkg: SimpleNamespace) -> None:
    parts = pkg.content.MultipartParts({"main": ("text/plain", b"1"), "thumb": ("image/png", b"2")})
    response = _TrackedResponse()

    async def scenario() -> tuple[int, int, int]:
        main, thumb, missing = await parts.readers(response, ["main", "thumb", "extra"])
        assert missing is None
        await main.aclose()
        await main.aclose()
        after_first = response.closed
        assert await thumb.read(1) == b"2"
        await thumb.aclose()
        after_last = response.closed
        await thumb.aclose()
        return after_first, after_last, response.closed

    assert _run(scenario()) == (0, 1, 1)


def test_multipart_response_without_known_parts_is_released(pkg: SimpleNamespace) -> None:
    parts = pkg.content.MultipartParts({"other": ("text/plain", b"x")})
    response = _TrackedResponse()

    readers = _run(parts.readers(response, ["main", "thumb"]))

    assert readers == [None, None]
    assert response.closed == 1


def test_http_headers_query_and_path_are_mapped(pkg: SimpleNamespace) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"user": {"name": "ada", "tags": []}})

    async def scenario() -> tuple[Any, Any]:
        async with _client(pkg, handler) as client:
            files = client.files()
            return (
                await files.get_user("u 1", "lamps", "Bearer t0k", "trace-9"),
                await files.get_user("u2", "", "Bearer x", None),
            )

    user, _ = _run(scenario())

    assert user.name == "ada"
    traced, plain = requests
    assert traced.method == "GET"
    assert traced.url.path == "/api/v1/users/u 1"
    assert traced.url.params["search"] == "lamps"
    assert traced.headers["Authorization"] == "Bearer t0k"
    assert traced.headers["X-Trace"] == "trace-9"
    assert traced.headers["Accept"] == "application/json"
    assert traced.content == b""
    assert plain.headers["Authorization"] == "Bearer x"
    assert "X-Trace" not in plain.headers
    assert plain.url.params["search"] == ""
