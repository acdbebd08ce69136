# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Predicates and lookups shared by the client emitters.

Everything here reads the project model and the scoped annotations; nothing
emits code. Emitters call these helpers so that the transport choice, body
mode and naming rules are decided in one place.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from enum import Enum
from typing import Final

from ..analyzer.collector import is_context
from ..annotations import (
    DEFAULT_HTTP_SUCCESS,
    TAG_ENABLE_INLINE_SINGLE,
    TAG_HTTP_ARGS,
    TAG_HTTP_COOKIES,
    TAG_HTTP_HEADERS,
    TAG_HTTP_MULTIPART,
    TAG_HTTP_PART_CONTENT,
    TAG_HTTP_PART_NAME,
    TAG_HTTP_PATH,
    TAG_HTTP_PREFIX,
    TAG_HTTP_SUCCESS,
    TAG_METHOD_HTTP,
    TAG_METRICS,
    TAG_REQUEST_CONTENT_TYPE,
    TAG_RESPONSE_CONTENT_TYPE,
    TAG_SERVER_HTTP,
    TAG_SERVER_JSON_RPC,
    annotation_int,
    annotation_is_set,
    annotation_value,
    pair_value,
    parse_pairs,
)
from ..model import Contract, Method, Project, Variable
from .naming import to_camel, to_lower_camel, to_snake

OCTET_STREAM: Final[str] = "application/octet-stream"

STREAM_TYPE_IDS: Final[frozenset[str]] = frozenset(
    {
        "typing:BinaryIO",
        "typing:IO",
        "typing:TextIO",
        "io:BytesIO",
        "io:BufferedReader",
        "io:IOBase",
        "io:RawIOBase",
        "io:BufferedIOBase",
    }
)
STREAM_CAPABILITIES: Final[frozenset[str]] = frozenset({"typing:IO", "typing:BinaryIO", "io:IOBase"})


class ContentKind(str, Enum):
    """Body codecs understood by the generated client."""

    JSON = "json"
    FORM = "form"
    XML = "xml"
    MSGPACK = "msgpack"
    CBOR = "cbor"
    YAML = "yaml"


MIME_KINDS: Final[dict[str, ContentKind]] = {
    "application/json": ContentKind.JSON,
    "application/x-www-form-urlencoded": ContentKind.FORM,
    "application/xml": ContentKind.XML,
    "text/xml": ContentKind.XML,
    "application/msgpack": ContentKind.MSGPACK,
    "application/x-msgpack": ContentKind.MSGPACK,
    "application/cbor": ContentKind.CBOR,
    "application/yaml": ContentKind.YAML,
    "application/x-yaml": ContentKind.YAML,
    "text/yaml": ContentKind.YAML,
}

KIND_MIMES: Final[dict[ContentKind, str]] = {
    ContentKind.JSON: "application/json",
    ContentKind.FORM: "application/x-www-form-urlencoded",
    ContentKind.XML: "application/xml",
    ContentKind.MSGPACK: "application/msgpack",
    ContentKind.CBOR: "application/cbor",
    ContentKind.YAML: "application/x-yaml",
}


def content_kind(mime: str) -> ContentKind:
    """Return the codec for ``mime``; unknown or empty values map to JSON."""

    return MIME_KINDS.get(mime.split(";", 1)[0].strip().lower(), ContentKind.JSON)


class BodyMode(str, Enum):
    """How the request body of an HTTP method is produced."""

    NONE = "none"
    ENCODED = "encoded"
    STREAM = "stream"
    MULTIPART = "multipart"


@dataclass(slots=True)
class HTTPPlan:
    """Where every argument of an HTTP method travels.

    Attributes:
        path: Full URL path with ``:name`` placeholders.
        path_args: Arguments substituted into the path.
        query: Argument name to query parameter name.
        headers: Argument name to header name.
        cookies: Argument name to cookie name.
        body_args: Arguments encoded into the request model.
        stream_args: Arguments streamed as the body or as multipart parts.
        mode: Body mode of the request.
    """

    path: str
    path_args: list[str] = field(default_factory=list)
    query: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    cookies: dict[str, str] = field(default_factory=dict)
    body_args: list[Variable] = field(default_factory=list)
    stream_args: list[Variable] = field(default_factory=list)
    mode: BodyMode = BodyMode.NONE


def args_without_context(method: Method) -> list[Variable]:
    """Return the arguments of ``method`` without a leading context."""

    if method.args and is_context(method.args[0]):
        return list(method.args[1:])
    return list(method.args)


def is_jsonrpc_contract(project: Project, contract: Contract) -> bool:
    return annotation_is_set(project, contract, None, None, TAG_SERVER_JSON_RPC)


def is_http_contract(project: Project, contract: Contract) -> bool:
    return annotation_is_set(project, contract, None, None, TAG_SERVER_HTTP)


def is_served(project: Project, contract: Contract) -> bool:
    """Return ``True`` when ``contract`` exposes at least one transport."""

    return is_jsonrpc_contract(project, contract) or is_http_contract(project, contract)


def is_jsonrpc(project: Project, contract: Contract, method: Method) -> bool:
    """Return ``True`` when ``method`` is called through JSON-RPC."""

    return is_jsonrpc_contract(project, contract) and not method.annotations.is_set(TAG_METHOD_HTTP)


def is_http(project: Project, contract: Contract, method: Method) -> bool:
    """Return ``True`` when ``method`` is called through plain HTTP.

    A JSON-RPC contract may move single methods to HTTP with ``@http``.
    """

    if not is_http_contract(project, contract):
        return False
    return not is_jsonrpc_contract(project, contract) or method.annotations.is_set(TAG_METHOD_HTTP)


def has_metrics(project: Project, contract: Contract) -> bool:
    return annotation_is_set(project, contract, None, None, TAG_METRICS)


def jsonrpc_method_name(contract: Contract, method: Method) -> str:
    return f"{contract.name.lower()}.{method.name.lower()}"


def exchange_name(prefix: str, contract: Contract, method: Method) -> str:
    """Return ``Request<Contract><Method>`` style exchange model names."""

    return f"{prefix}{contract.name}{to_camel(method.name)}"


def request_name(contract: Contract, method: Method) -> str:
    return exchange_name("Request", contract, method)


def response_name(contract: Contract, method: Method) -> str:
    return exchange_name("Response", contract, method)


def client_class_name(contract: Contract) -> str:
    return f"Client{contract.name}"


def contract_module(contract: Contract) -> str:
    return to_snake(contract.name)


def service_label(contract: Contract) -> str:
    return to_lower_camel(contract.name)


def method_label(method: Method) -> str:
    return to_lower_camel(method.name)


def py_method_name(method: Method) -> str:
    return to_snake(method.name)


def is_stream(project: Project, variable: Variable) -> bool:
    """Return ``True`` when ``variable`` is a byte stream (reader) value."""

    if variable.is_container() or variable.is_ellipsis:
        return False
    if variable.type_id in STREAM_TYPE_IDS:
        return True
    found = project.get_type(variable.type_id)
    return found is not None and any(found.implements(capability) for capability in STREAM_CAPABILITIES)


def stream_args(project: Project, method: Method) -> list[Variable]:
    return [arg for arg in args_without_context(method) if is_stream(project, arg)]


def stream_results(project: Project, method: Method) -> list[Variable]:
    return [result for result in method.results if is_stream(project, result)]


def is_inline_single(project: Project, contract: Contract, method: Method) -> bool:
    return len(method.results) == 1 and annotation_is_set(project, contract, method, None, TAG_ENABLE_INLINE_SINGLE)


def request_content_type(project: Project, contract: Contract, method: Method, default: str = "") -> str:
    return annotation_value(project, contract, method, None, TAG_REQUEST_CONTENT_TYPE, default)


def response_content_type(project: Project, contract: Contract, method: Method) -> str:
    return annotation_value(project, contract, method, None, TAG_RESPONSE_CONTENT_TYPE)


def success_code(project: Project, contract: Contract, method: Method) -> int:
    return annotation_int(project, contract, method, None, TAG_HTTP_SUCCESS, DEFAULT_HTTP_SUCCESS)


def http_path(project: Project, contract: Contract, method: Method) -> str:
    """Return the URL path joined from ``http-prefix`` and ``http-path``."""

    prefix = annotation_value(project, contract, None, None, TAG_HTTP_PREFIX)
    path = annotation_value(project, contract, method, None, TAG_HTTP_PATH, to_lower_camel(method.name))
    joined = posixpath.join("/", prefix.strip("/"), path.lstrip("/"))
    return posixpath.normpath(joined) if joined != "/" else joined


def path_params(path: str) -> list[str]:
    """Return the ``:name`` placeholders of ``path`` in order."""

    return [segment[1:].strip() for segment in path.split("/") if segment.startswith(":") and len(segment) > 1]


def is_multipart_request(project: Project, contract: Contract, method: Method) -> bool:
    if annotation_is_set(project, contract, method, None, TAG_HTTP_MULTIPART):
        return bool(stream_args(project, method))
    return len(stream_args(project, method)) > 1


def is_multipart_response(project: Project, contract: Contract, method: Method) -> bool:
    if annotation_is_set(project, contract, method, None, TAG_HTTP_MULTIPART):
        return bool(stream_results(project, method))
    return len(stream_results(project, method)) > 1


def part_name(method: Method, variable: Variable) -> str:
    """Return the multipart part name of ``variable``.

    The variable's own ``@http-part-name`` wins, then the method's
    ``name|part`` pair list, then the variable name.
    """

    own = variable.annotations.value(TAG_HTTP_PART_NAME)
    if own:
        return own
    return pair_value(method.annotations.value(TAG_HTTP_PART_NAME), variable.name) or variable.name


def part_content(method: Method, variable: Variable) -> str:
    own = variable.annotations.value(TAG_HTTP_PART_CONTENT)
    if own:
        return own
    return pair_value(method.annotations.value(TAG_HTTP_PART_CONTENT), variable.name) or OCTET_STREAM


def http_plan(project: Project, contract: Contract, method: Method) -> HTTPPlan:
    """Decide where each argument of ``method`` goes in the HTTP request."""

    args = args_without_context(method)
    names = {arg.name for arg in args}
    plan = HTTPPlan(path=http_path(project, contract, method))
    plan.path_args = [name for name in path_params(plan.path) if name in names]
    plan.headers = {
        arg: header
        for arg, header in parse_pairs(annotation_value(project, contract, method, None, TAG_HTTP_HEADERS)).items()
        if arg.lstrip("!") in names
    }
    plan.cookies = {
        arg: cookie
        for arg, cookie in parse_pairs(annotation_value(project, contract, method, None, TAG_HTTP_COOKIES)).items()
        if arg.lstrip("!") in names
    }
    routed = set(plan.path_args) | {arg.lstrip("!") for arg in (*plan.headers, *plan.cookies)}
    plan.query = {
        arg.lstrip("!"): param
        for arg, param in parse_pairs(annotation_value(project, contract, method, None, TAG_HTTP_ARGS)).items()
        if arg.lstrip("!") in names and arg.lstrip("!") not in routed
    }
    routed |= set(plan.query)
    plan.headers = {arg.lstrip("!"): header for arg, header in plan.headers.items()}
    plan.cookies = {arg.lstrip("!"): cookie for arg, cookie in plan.cookies.items()}
    for arg in args:
        if is_stream(project, arg):
            plan.stream_args.append(arg)
        elif arg.name not in routed:
            plan.body_args.append(arg)
    if is_multipart_request(project, contract, method):
        plan.mode = BodyMode.MULTIPART
    elif plan.stream_args:
        plan.mode = BodyMode.STREAM
    elif plan.body_args:
        plan.mode = BodyMode.ENCODED
    return plan


__all__ = [
    "BodyMode",
    "ContentKind",
    "HTTPPlan",
    "KIND_MIMES",
    "OCTET_STREAM",
    "STREAM_TYPE_IDS",
    "args_without_context",
    "client_class_name",
    "content_kind",
    "contract_module",
    "exchange_name",
    "has_metrics",
    "http_path",
    "http_plan",
    "is_http",
    "is_http_contract",
    "is_inline_single",
    "is_jsonrpc",
    "is_jsonrpc_contract",
    "is_multipart_request",
    "is_multipart_response",
    "is_served",
    "is_stream",
    "jsonrpc_method_name",
    "method_label",
    "part_content",
    "part_name",
    "path_params",
    "py_method_name",
    "request_content_type",
    "request_name",
    "response_content_type",
    "response_name",
    "service_label",
    "stream_args",
    "stream_results",
    "success_code",
]
