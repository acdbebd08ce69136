# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Write the Markdown manual shipped with a generated client."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

from ..annotations import http_method
from ..model import Contract, ErrorInfo, Kind, Method, Project, TypeRef, Variable
from .helpers import (
    args_without_context,
    client_class_name,
    contract_module,
    http_path,
    is_http,
    is_jsonrpc,
    is_stream,
    jsonrpc_method_name,
    py_method_name,
    success_code,
)
from .markdown import Markdown, Table, anchor, code, link
from .source import SourceFile
from .types import TypeRenderer, field_name

TOC_DEPTH: Final[int] = 3
NO_DESCRIPTION: Final[str] = "-"

OPTIONS: Final[tuple[tuple[str, str], ...]] = (
    ("decode_error(decoder)", "Replace the decoder turning error payloads into exceptions."),
    ("name(value)", "Override the client name sent in `X-Client-Id` and metric labels."),
    ("headers(*context_vars)", "Forward context variables as request headers."),
    ("config_tls(ssl_context)", "Use a custom TLS configuration for the owned HTTP client."),
    ("log_request()", "Log every request as a curl command at debug level."),
    ("log_on_error()", "Log failed requests at error level."),
    ("client_http(http)", "Use an existing `httpx.AsyncClient`."),
    ("transport(value)", "Set the transport of the owned `httpx.AsyncClient`."),
    ("before_request(hook)", "Call `hook(request)` before each request is sent."),
    ("after_request(hook)", "Call `hook(response)` after each response is received."),
)


def sorted_errors(errors: Sequence[ErrorInfo]) -> list[ErrorInfo]:
    """Return ``errors`` with coded entries first, ordered by code then name."""

    return sorted(errors, key=lambda error: (error.http_code == 0, error.http_code, error.full_name))


def _text(lines: Sequence[str]) -> str:
    return " ".join(line.strip() for line in lines if line.strip()) or NO_DESCRIPTION


class ReadmeRenderer:
    """Build the manual of a generated client."""

    def __init__(
        self,
        project: Project,
        contracts: Sequence[Contract],
        types: TypeRenderer,
        *,
        package: str,
        metrics: bool,
    ) -> None:
        self.project = project
        self.contracts = list(contracts)
        self.types = types
        self.package = package
        self.metrics = metrics
        self._scratch = SourceFile("")

    def render(self) -> Markdown:
        md = Markdown()
        md.h1(f"{self.project.module_path or self.package} API client").line_feed()
        md.plain(f"Generated Python client for the contracts of `{self.project.module_path}`.").line_feed()
        md.h2("Contents").line_feed()
        md.table_of_contents(TOC_DEPTH, 2)
        self._client(md)
        self._options(md)
        self._contracts(md)
        self._errors(md)
        self._shared_types(md)
        if any(is_jsonrpc(self.project, contract, method) for contract in self.contracts for method in contract.methods):
            self._batch(md)
        self._error_handling(md)
        self._logging(md)
        if self.metrics:
            self._metrics(md)
        return md

    # -- sections -------------------------------------------------------------------

    def _client(self, md: Markdown) -> None:
        md.h2("Client").line_feed()
        md.plain("The client is asynchronous and built on `httpx` and `pydantic`. Every contract is reached")
        md.plain("through an accessor of `Client`; close the client when done.").line_feed()
        example = [f"from {self.package} import Client", "", "", "async def main() -> None:"]
        example.append('    async with Client("http://localhost:9000") as client:')
        for contract in self.contracts[:1]:
            example.append(f"        service = client.{contract_module(contract)}()")
        md.code_block("python", "\n".join(example)).line_feed()

    def _options(self, md: Markdown) -> None:
        md.h2("Options").line_feed()
        md.plain(f"Options are functions of `{self.package}.options` passed after the endpoint.").line_feed()
        rows = [[code(name), text] for name, text in OPTIONS]
        if self.metrics:
            rows.append([code("with_metrics(meter_provider=None)"), "Record call metrics with OpenTelemetry."])
        md.table(Table(["Option", "Description"], rows)).line_feed()

    def _contracts(self, md: Markdown) -> None:
        md.h2("Contracts").line_feed()
        for contract in self.contracts:
            md.h3(contract.name).line_feed()
            if contract.docs:
                md.plain(_text(contract.docs)).line_feed()
            md.plain(f"Accessor: {code(f'client.{contract_module(contract)}()')} returns {code(client_class_name(contract))}.")
            md.line_feed()
            rows = [[link(code(py_method_name(method)), f"#{anchor(self._method_title(contract, method))}"), self._transport(contract, method), _text(method.docs[:1])] for method in contract.methods]
            md.table(Table(["Method", "Transport", "Description"], rows)).line_feed()
            for method in contract.methods:
                self._method(md, contract, method)

    def _method_title(self, contract: Contract, method: Method) -> str:
        return f"{contract.name}.{py_method_name(method)}"

    def _transport(self, contract: Contract, method: Method) -> str:
        if is_jsonrpc(self.project, contract, method):
            return f"JSON-RPC {code(jsonrpc_method_name(contract, method))}"
        if is_http(self.project, contract, method):
            return f"HTTP {code(http_method(self.project, contract, method) + ' ' + http_path(self.project, contract, method))}"
        return NO_DESCRIPTION

    def _method(self, md: Markdown, contract: Contract, method: Method) -> None:
        md.h4(self._method_title(contract, method)).line_feed()
        if method.docs:
            md.plain("\n".join(method.docs)).line_feed()
        md.code_block("python", self._signature(method)).line_feed()
        args = args_without_context(method)
        if args:
            md.table(Table(["Parameter", "Type", "Description"], [self._variable_row(arg) for arg in args])).line_feed()
        if method.results:
            md.table(Table(["Result", "Type", "Description"], [self._variable_row(result) for result in method.results]))
            md.line_feed()
        if is_http(self.project, contract, method) and not is_jsonrpc(self.project, contract, method):
            md.plain(f"Success status: {code(str(success_code(self.project, contract, method)))}.").line_feed()
        if method.errors:
            rows = [self._error_row(error) for error in sorted_errors(method.errors)]
            md.table(Table(["Code", "Error", "Description"], rows)).line_feed()

    def _errors(self, md: Markdown) -> None:
        errors: dict[str, ErrorInfo] = {}
        for contract in self.contracts:
            for method in contract.methods:
                for error in method.errors:
                    errors.setdefault(error.type_id or error.full_name, error)
        if not errors:
            return
        md.h2("Errors").line_feed()
        md.plain(f"Errors with an HTTP code are raised as typed subclasses of {code('RPCErrorException')}.").line_feed()
        md.table(Table(["Code", "Error", "Description"], [self._error_row(error) for error in sorted_errors(list(errors.values()))]))
        md.line_feed()

    def _shared_types(self, md: Markdown) -> None:
        if not self.types.type_ids:
            return
        md.h2("Shared types").line_feed()
        for type_id in self.types.type_ids:
            found = self.project.types[type_id]
            md.h3(self.types.names[type_id]).line_feed()
            if found.docs:
                md.plain(_text(found.docs)).line_feed()
            if found.kind == Kind.STRUCT:
                rows = [
                    [
                        code(field_name(member.name)),
                        code((member.tag("json") or [member.name])[0]),
                        self._type_cell(member),
                        _text(member.docs),
                    ]
                    for member in sorted(found.struct_fields, key=lambda item: item.name)
                    if member.name
                ]
                bases = [self.types.names[member.type_id] for member in found.struct_fields if not member.name and member.type_id in self.types.names]
                if bases:
                    md.plain("Extends " + ", ".join(link(code(base), f"#{anchor(base)}") for base in bases) + ".").line_feed()
                if rows:
                    md.table(Table(["Field", "JSON", "Type", "Description"], rows)).line_feed()
            elif found.kind == Kind.INTERFACE:
                methods = [code(function.name) for function in found.interface_methods]
                md.plain("Interface with methods: " + (", ".join(methods) or NO_DESCRIPTION) + ".").line_feed()
            else:
                md.code_block("python", self.types.alias_declaration(found)).line_feed()

    def _batch(self, md: Markdown) -> None:
        md.h2("Batch").line_feed()
        md.plain("JSON-RPC methods have a `req_*` builder. Builders take a callback receiving the results")
        md.plain("followed by the error; `Client.batch` sends them in one request. A request without a")
        md.plain("response in the batch gets `MissingResponseError`.").line_feed()
        example = ["def on_result(*values):", "    print(values)", "", "await client.batch("]
        for contract in self.contracts:
            for method in contract.methods:
                if is_jsonrpc(self.project, contract, method):
                    args = ", ".join(arg.name for arg in args_without_context(method) if not arg.is_ellipsis)
                    call = f"on_result, {args}" if args else "on_result"
                    example.append(f"    client.{contract_module(contract)}().req_{py_method_name(method)}({call}),")
                    break
        example.append(")")
        md.code_block("python", "\n".join(example)).line_feed()

    def _error_handling(self, md: Markdown) -> None:
        md.h2("Error handling").line_feed()
        md.bullet_list(
            [
                f"{code('RPCErrorException')}: error returned by the server; {code('code')}, {code('message')} and {code('data')} are attributes.",
                f"{code('HTTPError')}: unexpected HTTP status without an error body.",
                f"{code('ProtocolError')}: malformed or mismatched JSON-RPC response.",
                f"{code('httpx.HTTPError')}: transport failure.",
            ]
        ).line_feed()
        md.plain(f"Install a custom decoder with {code('options.decode_error(decoder)')}; it receives the payload and the HTTP status.")
        md.line_feed()

    def _logging(self, md: Markdown) -> None:
        md.h2("Logging").line_feed()
        md.plain(f"The client logs through the standard {code('logging')} module under the {code(self.package)} logger.")
        md.plain(f"{code('log_request()')} logs every request as a curl command at debug level and")
        md.plain(f"{code('log_on_error()')} logs failures at error level.").line_feed()
        md.blockquote("Logged requests include headers and bodies, which may hold credentials.").line_feed()

    def _metrics(self, md: Markdown) -> None:
        md.h2("Metrics").line_feed()
        md.plain(f"With {code('options.with_metrics()')} every call of a contract annotated with {code('@metrics')} is recorded:").line_feed()
        md.table(
            Table(
                ["Instrument", "Kind", "Labels"],
                [
                    [code("client_requests_count"), "counter", "service, method, success, errCode, client"],
                    [code("client_requests_all_count"), "counter", "service, method, client"],
                    [code("client_requests_latency_seconds"), "histogram", "service, method, success, errCode, client"],
                    [code("client_versions_count"), "up-down counter", "part, version, hostname, client"],
                ],
            )
        ).line_feed()

    # -- cells ----------------------------------------------------------------------

    def _signature(self, method: Method) -> str:
        params = []
        for arg in args_without_context(method):
            if arg.is_ellipsis:
                params.append(f"*{arg.name}: {self.types.element_expr(arg, self._scratch)}")
            elif is_stream(self.project, arg):
                params.append(f"{arg.name}: BinaryIO | bytes")
            else:
                params.append(f"{arg.name}: {self.types.ref_expr(arg, self._scratch)}")
        results = [
            "StreamBody" if is_stream(self.project, result) else self.types.ref_expr(result, self._scratch)
            for result in method.results
        ]
        returns = "None" if not results else results[0] if len(results) == 1 else f"tuple[{', '.join(results)}]"
        return f"async def {py_method_name(method)}({', '.join(params)}) -> {returns}"

    def _type_cell(self, ref: TypeRef) -> str:
        text = code(self.types.ref_expr(ref, self._scratch))
        target = ref.map_value.type_id if ref.map_value is not None else ref.type_id
        if target in self.types.names:
            return link(text, f"#{anchor(self.types.names[target])}")
        return text

    def _variable_row(self, variable: Variable) -> list[str]:
        if is_stream(self.project, variable):
            return [code(variable.name), code("stream"), _text(variable.docs)]
        return [code(variable.name), self._type_cell(variable), _text(variable.docs)]

    def _error_row(self, error: ErrorInfo) -> list[str]:
        label = str(error.http_code) if error.http_code else NO_DESCRIPTION
        return [label, code(error.type_name), error.http_code_text or NO_DESCRIPTION]


__all__ = ["ReadmeRenderer", "sorted_errors"]
