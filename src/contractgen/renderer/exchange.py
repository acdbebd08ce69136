# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Emit the request and response models exchanged by each contract method."""

from __future__ import annotations

from typing import Final

from ..annotations import TAG_FIELD_PREFIX, TAG_OMITEMPTY_ALL, annotation_is_set
from ..model import Contract, Method, Project, Variable
from .helpers import args_without_context, is_stream, request_name, response_name
from .source import SourceFile
from .types import OMIT_EMPTY, FieldSpec, TypeRenderer, write_fields

FORMAL_EXCHANGE: Final[str] = "Formal exchange type, please do not delete."
TAG_KEY: Final[str] = "tag"
JSON_KEY: Final[str] = "json"


def field_tags(method: Method, variable: Variable) -> dict[str, str]:
    """Return the extra struct tags declared for ``variable`` on ``method``.

    ``@tag:<var>:<name> value`` sets one tag; ``@tag:<var>:tag json:x|xml:y``
    sets several at once.
    """

    prefix = f"{TAG_FIELD_PREFIX}{variable.name}:"
    tags: dict[str, str] = {}
    for key, value in method.annotations.sub(prefix).items():
        if key == TAG_KEY:
            for pair in value.split("|"):
                name, sep, tag_value = pair.partition(":")
                if sep and name.strip():
                    tags[name.strip()] = tag_value.strip()
            continue
        tags[key] = value
    return tags


class ExchangeRenderer:
    """Write ``<contract>_exchange.py`` for one contract."""

    def __init__(self, project: Project, contract: Contract, types: TypeRenderer) -> None:
        self.project = project
        self.contract = contract
        self.types = types

    def render(self) -> SourceFile:
        src = SourceFile(f"Request and response models of {self.contract.name}.")
        src.import_from(".types", "Model")
        for method in self.contract.methods:
            args = [arg for arg in args_without_context(method) if not is_stream(self.project, arg)]
            results = [result for result in method.results if not is_stream(self.project, result)]
            self._model(src, request_name(self.contract, method), method, args)
            self._model(src, response_name(self.contract, method), method, results)
        return src

    def _model(self, src: SourceFile, name: str, method: Method, variables: list[Variable]) -> None:
        omit_all = annotation_is_set(self.project, self.contract, method, None, TAG_OMITEMPTY_ALL)
        specs: list[FieldSpec] = []
        for variable in sorted(variables, key=lambda item: item.name):
            tags = field_tags(method, variable)
            json_tag = tags.pop(JSON_KEY, "")
            json_name, _, options = json_tag.partition(",")
            ref = variable.ref()
            specs.append(
                self.types.field_spec(
                    src,
                    variable.name,
                    ref,
                    json_name=json_name.strip() if json_name.strip() not in ("", "-") else "",
                    omit_empty=omit_all or OMIT_EMPTY in options.split(","),
                    extra_tags=tags,
                    docs=variable.docs,
                )
            )
        src.blank(2)
        with src.block(f"class {name}(Model):"):
            write_fields(src, specs, empty_comment=FORMAL_EXCHANGE)


__all__ = ["ExchangeRenderer", "FORMAL_EXCHANGE", "field_tags"]
