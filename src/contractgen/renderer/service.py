# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Emit the client class of one contract.

Each method is dispatched through JSON-RPC or plain HTTP depending on the
contract's server annotations and the method-level ``@http`` override.
JSON-RPC methods also get a ``req_*`` builder used by ``Client.batch``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Final

from ..annotations import http_method
from ..model import Contract, Method, Project, Variable
from .helpers import (
    KIND_MIMES,
    OCTET_STREAM,
    BodyMode,
    HTTPPlan,
    args_without_context,
    client_class_name,
    content_kind,
    http_plan,
    is_http,
    is_inline_single,
    is_jsonrpc,
    is_multipart_response,
    is_stream,
    jsonrpc_method_name,
    method_label,
    part_content,
    part_name,
    py_method_name,
    request_content_type,
    request_name,
    response_content_type,
    response_name,
    service_label,
    stream_results,
    success_code,
)
from .naming import to_snake
from .source import SourceFile
from .types import TypeRenderer, field_name

LOGGER = logging.getLogger(__name__)

CONTENT: Final[str] = "_content"
STREAM_ARG: Final[str] = "BinaryIO | bytes"
STREAM_RESULT: Final[str] = f"{CONTENT}.StreamBody"
PART_RESULT: Final[str] = f"{CONTENT}.PartReader | None"
STRING_TYPE_ID: Final[str] = "string"


def _f_string_literal(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("{", "{{").replace("}", "}}")


def url_expr(plan: HTTPPlan) -> str:
    """Return the source expression of the URL path with its arguments filled in."""

    segments: list[str] = []
    dynamic = False
    for segment in plan.path.split("/"):
        name = segment[1:].strip() if segment.startswith(":") else ""
        if name and name in plan.path_args:
            segments.append(f"{{{CONTENT}.path_segment({name})}}")
            dynamic = True
        else:
            segments.append(_f_string_literal(segment))
    path = "/".join(segments)
    if not dynamic:
        return repr(plan.path)
    return f'f"{path}"'


class ServiceRenderer:
    """Write ``<contract>.py`` holding ``Client<Contract>``."""

    def __init__(self, project: Project, contract: Contract, types: TypeRenderer, *, metrics: bool = False) -> None:
        self.project = project
        self.contract = contract
        self.types = types
        self.metrics = metrics
        self.exchange_module = f".{to_snake(contract.name)}_exchange"

    def render(self) -> SourceFile:
        src = SourceFile(f"Client of the {self.contract.name} contract.")
        src.import_for_typing(".client", "Client")
        with src.block(f"class {client_class_name(self.contract)}:"):
            docs = "\n".join(self.contract.docs) or f"Calls the methods of {self.contract.name}."
            src.docstring_block(docs)
            src.blank()
            with src.block("def __init__(self, client: Client) -> None:"):
                src.line("self.client = client")
            for method in self.contract.methods:
                if is_jsonrpc(self.project, self.contract, method):
                    self._jsonrpc_method(src, method)
                    self._request_builder(src, method)
                elif is_http(self.project, self.contract, method):
                    self._http_method(src, method)
                else:
                    LOGGER.debug("method %s.%s has no transport, skipped", self.contract.name, method.name)
        return src

    # -- signatures -----------------------------------------------------------------

    def _params(self, src: SourceFile, method: Method) -> list[str]:
        params: list[str] = []
        for arg in args_without_context(method):
            if arg.is_ellipsis:
                params.append(f"*{arg.name}: {self.types.element_expr(arg, src)}")
            elif is_stream(self.project, arg):
                src.import_from("typing", "BinaryIO")
                params.append(f"{arg.name}: {STREAM_ARG}")
            else:
                params.append(f"{arg.name}: {self.types.ref_expr(arg, src)}")
        return params

    def _result_exprs(self, src: SourceFile, method: Method) -> list[str]:
        multipart = is_multipart_response(self.project, self.contract, method)
        exprs = []
        for result in method.results:
            if is_stream(self.project, result):
                src.import_from(".", f"content as {CONTENT}")
                exprs.append(PART_RESULT if multipart else STREAM_RESULT)
            else:
                exprs.append(self.types.ref_expr(result, src))
        return exprs

    def _returns(self, src: SourceFile, method: Method) -> str:
        exprs = self._result_exprs(src, method)
        if not exprs:
            return "None"
        return exprs[0] if len(exprs) == 1 else f"tuple[{', '.join(exprs)}]"

    def _def(self, name: str, params: list[str], returns: str, *, is_async: bool) -> str:
        prefix = "async def" if is_async else "def"
        return f"{prefix} {name}({', '.join(['self', *params])}) -> {returns}:"

    @contextmanager
    def _tracked(self, src: SourceFile, method: Method) -> Iterator[None]:
        if not self.metrics:
            yield
            return
        with src.block(f'async with self.client.track("{service_label(self.contract)}", "{method_label(method)}"):'):
            yield

    def _request_values(self, variables: list[Variable]) -> str:
        values = []
        for variable in variables:
            value = f"list({variable.name})" if variable.is_ellipsis else variable.name
            values.append(f"{field_name(variable.name)}={value}")
        return ", ".join(values)

    def _exchange(self, src: SourceFile, method: Method) -> tuple[str, str]:
        request, response = request_name(self.contract, method), response_name(self.contract, method)
        src.import_from(self.exchange_module, request, response)
        return request, response

    def _return_fields(self, src: SourceFile, method: Method, target: str) -> None:
        if not method.results:
            return
        src.line(f"return {', '.join(f'{target}.{field_name(result.name)}' for result in method.results)}")

    def _validate(self, method: Method, response: str, payload: str) -> str:
        if is_inline_single(self.project, self.contract, method):
            return f"{response}.model_validate({{{method.results[0].name!r}: {payload}}})"
        return f"{response}.model_validate({payload} or {{}})"

    # -- JSON-RPC -------------------------------------------------------------------

    def _jsonrpc_call(self, method: Method, request: str) -> str:
        return f'jsonrpc.RequestRPC(method="{jsonrpc_method_name(self.contract, method)}", params={request})'

    def _jsonrpc_method(self, src: SourceFile, method: Method) -> None:
        src.import_from(".", "jsonrpc")
        request, response = self._exchange(src, method)
        args = [arg for arg in args_without_context(method) if not is_stream(self.project, arg)]
        header = self._def(py_method_name(method), self._params(src, method), self._returns(src, method), is_async=True)
        src.blank()
        with src.block(header):
            if method.docs:
                src.docstring_block("\n".join(method.docs))
            with self._tracked(src, method):
                src.line(f"_request = {request}({self._request_values(args)})")
                src.line(f"_response = await self.client.rpc.call({self._jsonrpc_call(method, '_request')})")
                with src.block("if _response.error is not None:"):
                    src.line("raise self.client.decode_error(_response.error.raw())")
                if method.results:
                    src.line(f"_out = {self._validate(method, response, '_response.result')}")
                    self._return_fields(src, method, "_out")

    def _request_builder(self, src: SourceFile, method: Method) -> None:
        request, response = self._exchange(src, method)
        src.import_from("collections.abc", "Callable")
        src.import_from("typing", "Any")
        src.import_from(".batch", "RequestRPC")
        args = [arg for arg in args_without_context(method) if not is_stream(self.project, arg)]
        params = ["callback: Callable[..., Any]", *self._params(src, method)]
        name = f"req_{py_method_name(method)}"
        src.blank()
        with src.block(self._def(name, params, "RequestRPC", is_async=False)):
            src.docstring_block(
                f"Build a batch request for :meth:`{py_method_name(method)}`.\n\n"
                "``callback`` receives the results followed by the error."
            )
            src.line(f"_request = {request}({self._request_values(args)})")
            src.blank()
            with src.block("def _handler(error: Exception | None, response: jsonrpc.ResponseRPC | None) -> Any:"):
                if not method.results:
                    src.line("return callback(error)")
                else:
                    src.import_from("pydantic", "ValidationError")
                    with src.block("if error is None and response is not None:"):
                        with src.block("try:"):
                            src.line(f"_out = {self._validate(method, response, 'response.result')}")
                        with src.block("except ValidationError as exc:"):
                            src.line("error = exc")
                        with src.block("else:"):
                            values = ", ".join(f"_out.{field_name(result.name)}" for result in method.results)
                            src.line(f"return callback({values}, None)")
                    nones = ", ".join("None" for _ in method.results)
                    src.line(f"return callback({nones}, error)")
            src.blank()
            src.line(f"return RequestRPC({self._jsonrpc_call(method, '_request')}, _handler)")

    # -- HTTP -----------------------------------------------------------------------

    def _http_method(self, src: SourceFile, method: Method) -> None:
        src.import_from(".", f"content as {CONTENT}")
        plan = http_plan(self.project, self.contract, method)
        header = self._def(py_method_name(method), self._params(src, method), self._returns(src, method), is_async=True)
        src.blank()
        with src.block(header):
            if method.docs:
                src.docstring_block("\n".join(method.docs))
            with self._tracked(src, method):
                self._http_query(src, method, plan)
                self._http_headers(src, method, plan)
                body_kwargs = self._http_body(src, method, plan)
                self._http_send(src, method, plan, body_kwargs)

    def _arg(self, method: Method, name: str) -> Variable | None:
        return next((arg for arg in args_without_context(method) if arg.name == name), None)

    def _assign(self, src: SourceFile, variable: Variable, target: str, value: str) -> None:
        if variable.pointer_count:
            with src.block(f"if {variable.name} is not None:"):
                src.line(f"{target} = {value}")
        else:
            src.line(f"{target} = {value}")

    def _http_query(self, src: SourceFile, method: Method, plan: HTTPPlan) -> None:
        if not plan.query:
            return
        src.import_from("typing", "Any")
        src.line("_params: dict[str, Any] = {}")
        for arg_name, param in sorted(plan.query.items()):
            variable = self._arg(method, arg_name)
            if variable is None:
                continue
            if variable.is_slice or variable.array_len:
                value = f"[{CONTENT}.to_string(item) for item in {variable.name}]"
            else:
                value = f"{CONTENT}.to_string({variable.name})"
            self._assign(src, variable, f"_params[{param!r}]", value)

    def _http_headers(self, src: SourceFile, method: Method, plan: HTTPPlan) -> None:
        src.line("_headers: dict[str, str] = {}")
        if plan.mode in (BodyMode.NONE, BodyMode.ENCODED):
            src.line('_headers["Accept"] = "application/json"')
        for arg_name, header in sorted(plan.headers.items()):
            variable = self._arg(method, arg_name)
            if variable is not None:
                self._assign(src, variable, f"_headers[{header!r}]", f"{CONTENT}.to_string({variable.name})")
        if not plan.cookies:
            return
        src.import_from("typing", "Any")
        src.line("_cookies: dict[str, Any] = {}")
        for arg_name, cookie in sorted(plan.cookies.items()):
            variable = self._arg(method, arg_name)
            if variable is not None:
                self._assign(src, variable, f"_cookies[{cookie!r}]", variable.name)
        with src.block("if _cookies:"):
            src.line(f'_headers["Cookie"] = {CONTENT}.cookie_header(_cookies)')

    def _http_body(self, src: SourceFile, method: Method, plan: HTTPPlan) -> list[str]:
        if plan.mode == BodyMode.ENCODED:
            request, _ = self._exchange(src, method)
            mime = request_content_type(self.project, self.contract, method)
            kind = content_kind(mime)
            fields = ", ".join(repr(field_name(arg.name)) for arg in plan.body_args)
            src.line(f"_request = {request}({self._request_values(plan.body_args)})")
            src.line(
                f"_body = {CONTENT}.encode_body({CONTENT}.{kind.name}, "
                f'_request.model_dump(mode="json", by_alias=True, include={{{fields}}}))'
            )
            src.line(f'_headers["Content-Type"] = {(mime or KIND_MIMES[kind])!r}')
            return ["content=_body"]
        if plan.mode == BodyMode.STREAM:
            stream = plan.stream_args[0]
            mime = request_content_type(self.project, self.contract, method, OCTET_STREAM)
            src.line(f"_body = {CONTENT}.iter_reader({stream.name})")
            src.line(f'_headers["Content-Type"] = {mime!r}')
            return ["content=_body"]
        if plan.mode == BodyMode.MULTIPART:
            src.line("_files = [")
            for stream in plan.stream_args:
                part = part_name(method, stream)
                src.line(
                    f"    ({part!r}, ({part!r}, {CONTENT}.part_payload({stream.name}), "
                    f"{part_content(method, stream)!r})),"
                )
            src.line("]")
            kwargs = ["files=_files"]
            if plan.body_args:
                src.line("_data: dict[str, str] = {}")
                for arg in plan.body_args:
                    self._assign(src, arg, f"_data[{arg.name!r}]", f"{CONTENT}.to_string({arg.name})")
                kwargs.append("data=_data")
            return kwargs
        return []

    def _http_send(self, src: SourceFile, method: Method, plan: HTTPPlan, body_kwargs: list[str]) -> None:
        results = stream_results(self.project, method)
        streamed = bool(results)
        kwargs = [f"self.client.url({url_expr(plan)})"]
        if plan.query:
            kwargs.append("params=_params")
        kwargs.extend(["headers=_headers", *body_kwargs])
        verb = http_method(self.project, self.contract, method)
        src.line(f"_http_request = self.client.http.build_request({verb!r}, {', '.join(kwargs)})")
        code = success_code(self.project, self.contract, method)
        call = f"await self.client.round_trip(_http_request, {code}{', stream=True' if streamed else ''})"
        if not method.results:
            src.line(call)
            return
        src.line(f"_response = {call}")
        if is_multipart_response(self.project, self.contract, method):
            names = [part_name(method, result) for result in results]
            src.line(f"_parts = await {CONTENT}.MultipartParts.read(_response)")
            src.line(f"_readers = await _parts.readers(_response, {names!r})")
            streams = [result.name for result in results]
            values = []
            for result in method.results:
                if result.name in streams:
                    values.append(f"_readers[{streams.index(result.name)}]")
                else:
                    values.append(self._header_result(result))
            src.line(f"return {', '.join(values)}")
            return
        if streamed:
            values = []
            for result in method.results:
                values.append(
                    f"{CONTENT}.StreamBody(_response)" if is_stream(self.project, result) else self._header_result(result)
                )
            src.line(f"return {', '.join(values)}")
            return
        _, response = self._exchange(src, method)
        kind = content_kind(response_content_type(self.project, self.contract, method))
        payload = f"{CONTENT}.decode_body({CONTENT}.{kind.name}, _response.content)"
        src.line(f"_out = {self._validate(method, response, payload)}")
        self._return_fields(src, method, "_out")

    def _header_result(self, result: Variable) -> str:
        if result.type_id == STRING_TYPE_ID and not result.is_container():
            return '_response.headers.get("Content-Type", "")'
        return "None"


__all__ = ["ServiceRenderer", "url_expr"]
