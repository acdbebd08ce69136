# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Docstring annotation parsing and scoped lookup.

Annotations are ``@tag value`` lines embedded in module, class, method and
parameter comments. Lookups walk from the narrowest scope outwards:
variable, method, contract and finally project.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Final, Protocol

from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema

TAG_SERVER_JSON_RPC: Final[str] = "jsonRPC-server"
TAG_SERVER_HTTP: Final[str] = "http-server"
TAG_METHOD_HTTP: Final[str] = "http"
TAG_HTTP_METHOD: Final[str] = "http-method"
TAG_HTTP_PREFIX: Final[str] = "http-prefix"
TAG_HTTP_PATH: Final[str] = "http-path"
TAG_HTTP_SUCCESS: Final[str] = "http-success"
TAG_HTTP_ARGS: Final[str] = "http-args"
TAG_HTTP_HEADERS: Final[str] = "http-headers"
TAG_HTTP_COOKIES: Final[str] = "http-cookies"
TAG_REQUEST_CONTENT_TYPE: Final[str] = "requestContentType"
TAG_RESPONSE_CONTENT_TYPE: Final[str] = "responseContentType"
TAG_HTTP_MULTIPART: Final[str] = "http-multipart"
TAG_HTTP_PART_NAME: Final[str] = "http-part-name"
TAG_HTTP_PART_CONTENT: Final[str] = "http-part-content"
TAG_ENABLE_INLINE_SINGLE: Final[str] = "enableInlineSingle"
TAG_HANDLER: Final[str] = "handler"
TAG_HTTP_RESPONSE: Final[str] = "http-response"
TAG_OMITEMPTY_ALL: Final[str] = "tagOmitemptyAll"
TAG_FIELD_PREFIX: Final[str] = "tag:"
TAG_METRICS: Final[str] = "metrics"
TAG_PACKAGE_JSON: Final[str] = "packageJSON"
TAG_DEFAULT_ERROR: Final[str] = "defaultError"
TAG_SUMMARY: Final[str] = "summary"
TAG_DESC: Final[str] = "desc"
TAG_DEPRECATED: Final[str] = "deprecated"
TAG_EXCLUDE: Final[str] = "exclude"
TAG_PARAM_TAGS: Final[str] = "tags"
TAG_REQUIRED: Final[str] = "required"
TAG_TYPE: Final[str] = "type"
TAG_EXAMPLE: Final[str] = "example"
TAG_LOG: Final[str] = "log"

DEFAULT_HTTP_METHOD: Final[str] = "POST"
DEFAULT_HTTP_SUCCESS: Final[int] = 200
DEFAULT_PACKAGE_JSON: Final[str] = "json"

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"true", "1", "yes", "on"})
_FALSE_VALUES: Final[frozenset[str]] = frozenset({"false", "0", "no", "off"})


class DocTags(dict[str, str]):
    """Mapping from tag name to value with typed accessors."""

    def is_set(self, tag: str) -> bool:
        """Return ``True`` when ``tag`` is present, even with an empty value."""

        return tag in self

    def value(self, tag: str, default: str = "") -> str:
        """Return the non-empty value for ``tag`` or ``default``."""

        found = self.get(tag, "")
        return found if found else default

    def value_int(self, tag: str, default: int = 0) -> int:
        """Return ``tag`` parsed as an integer, failing open to ``default``."""

        raw = self.get(tag, "").strip()
        if not raw:
            return default
        try:
            return int(raw)
        except ValueError:
            return default

    def value_bool(self, tag: str, default: bool = False) -> bool:
        """Return ``tag`` parsed as a boolean.

        A tag present without a value counts as ``True``; unparsable values
        fall back to ``default``.
        """

        if tag not in self:
            return default
        raw = self[tag].strip().lower()
        if not raw or raw in _TRUE_VALUES:
            return True
        if raw in _FALSE_VALUES:
            return False
        return default

    def merge(self, other: DocTags | dict[str, str]) -> DocTags:
        """Return a copy where values from ``other`` override this mapping."""

        merged = DocTags(self)
        merged.update(other)
        return merged

    def sub(self, prefix: str) -> DocTags:
        """Return tags starting with ``prefix`` with the prefix removed."""

        return DocTags({key[len(prefix) :]: value for key, value in self.items() if key.startswith(prefix)})

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: GetCoreSchemaHandler) -> core_schema.CoreSchema:
        return core_schema.no_info_after_validator_function(cls, handler(dict[str, str]))


class HasAnnotations(Protocol):
    """Any model entity carrying annotations."""

    annotations: DocTags


def parse_tags(lines: Iterable[str]) -> tuple[list[str], DocTags]:
    """Split comment lines into documentation and annotation tags.

    Args:
        lines: Raw docstring or comment lines (``#`` prefixes already removed).

    Returns:
        tuple[list[str], DocTags]: Documentation lines in order and the parsed
        tags. Later duplicates override earlier ones.
    """

    docs: list[str] = []
    tags = DocTags()
    for raw in lines:
        line = raw.strip()
        if not line.startswith("@"):
            docs.append(raw.rstrip())
            continue
        body = line[1:]
        if not body or body[0].isspace():
            continue
        parts = body.split(None, 1)
        tags[parts[0]] = parts[1].strip() if len(parts) > 1 else ""
    while docs and not docs[0].strip():
        docs.pop(0)
    while docs and not docs[-1].strip():
        docs.pop()
    return docs, tags


def parse_docstring(text: str | None) -> tuple[list[str], DocTags]:
    """Parse a docstring into documentation lines and tags."""

    if not text:
        return [], DocTags()
    return parse_tags(_dedent_lines(text.splitlines()))


def parse_comment_block(comments: Iterable[str]) -> tuple[list[str], DocTags]:
    """Parse ``#`` comment lines into documentation lines and tags."""

    stripped = []
    for comment in comments:
        text = comment.strip()
        if text.startswith("#"):
            text = text[1:]
        stripped.append(text.strip())
    return parse_tags(stripped)


def parse_pairs(value: str) -> dict[str, str]:
    """Parse ``left|right`` pairs separated by commas.

    Malformed pairs are skipped.
    """

    pairs: dict[str, str] = {}
    for pair in value.split(","):
        tokens = pair.strip().split("|")
        if len(tokens) != 2:
            continue
        left, right = tokens[0].strip(), tokens[1].strip()
        if left and right:
            pairs[left] = right
    return pairs


def pair_value(value: str, key: str) -> str:
    """Return the right-hand side of the pair whose left side is ``key``."""

    return parse_pairs(value).get(key, "")


def annotation_value(
    project: HasAnnotations | None,
    contract: HasAnnotations | None,
    method: HasAnnotations | None,
    variable: HasAnnotations | None,
    tag: str,
    default: str = "",
) -> str:
    """Return the first non-empty value for ``tag`` walking scopes outwards."""

    for scope in (variable, method, contract):
        if scope is not None:
            found = scope.annotations.get(tag, "")
            if found:
                return found
    if project is not None:
        return project.annotations.value(tag, default)
    return default


def annotation_is_set(
    project: HasAnnotations | None,
    contract: HasAnnotations | None,
    method: HasAnnotations | None,
    variable: HasAnnotations | None,
    tag: str,
) -> bool:
    """Return ``True`` when any scope defines ``tag``."""

    return any(scope is not None and tag in scope.annotations for scope in (variable, method, contract, project))


def annotation_int(
    project: HasAnnotations | None,
    contract: HasAnnotations | None,
    method: HasAnnotations | None,
    variable: HasAnnotations | None,
    tag: str,
    default: int = 0,
) -> int:
    """Return ``tag`` as an integer from the narrowest scope with a value."""

    for scope in (variable, method, contract, project):
        if scope is not None and scope.annotations.value(tag):
            return scope.annotations.value_int(tag, default)
    return default


def annotation_bool(
    project: HasAnnotations | None,
    contract: HasAnnotations | None,
    method: HasAnnotations | None,
    variable: HasAnnotations | None,
    tag: str,
    default: bool = False,
) -> bool:
    """Return ``tag`` as a boolean from the narrowest scope that sets it.

    A bare flag reads as ``true``, so it is a value and stops the walk.
    """

    for scope in (variable, method, contract, project):
        if scope is not None and scope.annotations.is_set(tag):
            return scope.annotations.value_bool(tag, default)
    return default


def http_method(project: HasAnnotations | None, contract: HasAnnotations | None, method: HasAnnotations | None) -> str:
    """Return the HTTP verb for ``method``, defaulting to ``POST``."""

    return annotation_value(project, contract, method, None, TAG_HTTP_METHOD, DEFAULT_HTTP_METHOD).upper()


def _dedent_lines(lines: list[str]) -> list[str]:
    if not lines:
        return []
    first, rest = lines[0], lines[1:]
    indents = [len(line) - len(line.lstrip()) for line in rest if line.strip()]
    margin = min(indents) if indents else 0
    return [first.strip(), *(line[margin:] for line in rest)]


__all__ = [
    "DEFAULT_HTTP_METHOD",
    "DEFAULT_HTTP_SUCCESS",
    "DEFAULT_PACKAGE_JSON",
    "DocTags",
    "annotation_bool",
    "annotation_int",
    "annotation_is_set",
    "annotation_value",
    "http_method",
    "pair_value",
    "parse_comment_block",
    "parse_docstring",
    "parse_pairs",
    "parse_tags",
]
