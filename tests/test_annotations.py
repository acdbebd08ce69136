# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for docstring annotation parsing and scoped lookup."""

from __future__ import annotations

from dataclasses import dataclass, field

from contractgen.annotations import (
    DocTags,
    annotation_bool,
    annotation_int,
    annotation_is_set,
    annotation_value,
    http_method,
    pair_value,
    parse_comment_block,
    parse_docstring,
    parse_pairs,
    parse_tags,
)


@dataclass
class Scope:
    annotations: DocTags = field(default_factory=DocTags)


def test_parse_tags_splits_docs_and_tags() -> None:
    docs, tags = parse_tags(["Fetch a file.", "", "@http-method GET", "@metrics", "@ ignored", "Trailing line."])

    assert docs == ["Fetch a file.", "", "Trailing line."]
    assert tags == {"http-method": "GET", "metrics": ""}


def test_parse_tags_later_duplicates_win() -> None:
    _, tags = parse_tags(["@http-path /a", "@http-path /b"])

    assert tags.value("http-path") == "/b"


def test_parse_docstring_dedents_continuation_lines() -> None:
    docs, tags = parse_docstring(
        """Catalog of items.

        @jsonRPC-server
        @http-prefix /api
        """
    )

    assert docs == ["Catalog of items."]
    assert tags == {"jsonRPC-server": "", "http-prefix": "/api"}


def test_parse_docstring_handles_missing_text() -> None:
    assert parse_docstring(None) == ([], DocTags())


def test_parse_comment_block_strips_hash_prefix() -> None:
    docs, tags = parse_comment_block(["# identifier of the item", "# @http-part-name upload"])

    assert docs == ["identifier of the item"]
    assert tags == {"http-part-name": "upload"}


def test_doc_tags_typed_accessors_fail_open() -> None:
    tags = DocTags({"http-success": "201", "bad": "x", "flag": "", "off": "no", "odd": "maybe"})

    assert tags.value_int("http-success") == 201
    assert tags.value_int("bad", 7) == 7
    assert tags.value_bool("flag") is True
    assert tags.value_bool("off", True) is False
    assert tags.value_bool("odd", True) is True
    assert tags.value_bool("missing") is False


def test_doc_tags_sub_and_merge() -> None:
    tags = DocTags({"tag:name:json": "title", "tag:name:xml": "t", "other": "1"})

    assert tags.sub("tag:name:") == {"json": "title", "xml": "t"}
    assert tags.merge({"other": "2"}).value("other") == "2"
    assert tags.value("other") == "1"


def test_annotation_lookup_walks_scopes_outwards() -> None:
    project = Scope(DocTags({"http-method": "get", "http-success": "204"}))
    contract = Scope(DocTags({"http-prefix": "/api"}))
    method = Scope(DocTags({"http-method": "put"}))
    variable = Scope()

    assert annotation_value(project, contract, method, variable, "http-method") == "put"
    assert annotation_value(project, contract, None, None, "http-method") == "get"
    assert annotation_value(project, contract, method, variable, "missing", "fallback") == "fallback"
    assert annotation_int(project, contract, method, variable, "http-success", 200) == 204
    assert annotation_is_set(project, contract, method, variable, "http-prefix")
    assert not annotation_is_set(None, None, method, None, "http-prefix")
    assert http_method(project, contract, method) == "PUT"
    assert http_method(None, None, None) == "POST"


def test_annotation_empty_value_falls_through_but_counts_as_set() -> None:
    contract = Scope(DocTags({"http-path": "/contract"}))
    method = Scope(DocTags({"http-path": ""}))

    assert annotation_value(None, contract, method, None, "http-path") == "/contract"
    assert annotation_bool(None, contract, method, None, "http-path") is True


def test_annotation_int_skips_empty_narrow_scopes() -> None:
    project = Scope(DocTags({"http-success": "202"}))
    contract = Scope(DocTags({"http-success": "201"}))
    method = Scope(DocTags({"http-success": ""}))

    assert annotation_int(project, contract, method, None, "http-success", 200) == 201
    assert annotation_int(project, Scope(), method, Scope(DocTags({"http-success": ""})), "http-success", 200) == 202
    assert annotation_int(None, None, method, None, "http-success", 200) == 200


def test_annotation_bool_bare_flag_overrides_wider_scopes() -> None:
    contract = Scope(DocTags({"enableInlineSingle": "false"}))
    method = Scope(DocTags({"enableInlineSingle": ""}))

    assert annotation_bool(None, contract, method, None, "enableInlineSingle") is True
    assert annotation_bool(None, contract, Scope(), None, "enableInlineSingle") is False
    assert annotation_bool(Scope(DocTags({"enableInlineSingle": "yes"})), None, None, None, "enableInlineSingle")


def test_parse_pairs_skips_malformed_entries() -> None:
    pairs = parse_pairs("id|X-Id, !token|X-Token, broken, a|b|c, |empty")

    assert pairs == {"id": "X-Id", "!token": "X-Token"}
    assert pair_value("file|upload", "file") == "upload"
    assert pair_value("file|upload", "other") == ""
