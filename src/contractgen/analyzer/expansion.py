# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Persist every type reachable from the contract signatures."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from ..errors import ResolverNotFoundError, TypeMissingError
from ..loader import PackageLoader
from ..loader.loader import NEVER_MATERIALIZED
from ..loader.typesys import (
    Alias,
    Array,
    Chan,
    Interface,
    Map,
    Named,
    Pointer,
    Signature,
    Slice,
    Struct,
    Tuple,
    TypeNode,
    unalias,
)
from ..model import Contract, Project, is_builtin, split_type_id
from .converter import TypeConverter, candidate_type_id

LOGGER = logging.getLogger(__name__)


class TypeExpander:
    """Walk contract signatures and register each reachable named type."""

    def __init__(self, project: Project, loader: PackageLoader, converter: TypeConverter) -> None:
        self.project = project
        self.loader = loader
        self.converter = converter
        self._seen: set[int] = set()

    def expand(self) -> None:
        """Expand the arguments, results and errors of every contract."""

        for contract in self.project.contracts:
            for node in self._roots(contract):
                self.walk(node)

    def ensure_type_loaded(self, type_id: str, *, chain: tuple[str, ...] = ()) -> TypeNode | None:
        """Make sure ``type_id`` is registered and return its typed node.

        Types of modules that are never materialized are registered as opaque
        structs. Aliases carry the request on to their base.

        Raises:
            TypeMissingError: If the declaration cannot be found after one
                invalidate-and-retry cycle.
        """

        if not type_id or is_builtin(type_id):
            return None
        pkg_path, name = split_type_id(type_id)
        if not pkg_path:
            raise TypeMissingError(type_id, chain=chain)
        if pkg_path.split(".", 1)[0] in NEVER_MATERIALIZED:
            node = self._never_materialized(pkg_path, name)
            if node is not None and candidate_type_id(node) == type_id:
                self.converter.convert(node)
            return node
        obj = self.loader.load_for_type(pkg_path, name)
        if obj is None:
            raise TypeMissingError(type_id, chain=chain)
        node = obj.type
        self.converter.convert(node)
        registered = candidate_type_id(node)
        if registered and not is_builtin(registered) and registered not in self.project.types:
            raise TypeMissingError(type_id, chain=chain)
        if isinstance(node, Alias):
            base = unalias(node)
            base_id = candidate_type_id(base)
            if base_id and base_id != type_id and base_id not in self.project.types:
                self.ensure_type_loaded(base_id, chain=(*chain, type_id))
        return node

    def walk(self, node: TypeNode) -> None:
        """Depth-first walk of ``node`` persisting each named type found."""

        stack = [node]
        while stack:
            current = stack.pop()
            if id(current) in self._seen:
                continue
            self._seen.add(id(current))
            if isinstance(current, (Named, Alias)):
                self.converter.convert(current)
            stack.extend(reversed(list(_edges(current))))

    def _roots(self, contract: Contract) -> Iterator[TypeNode]:
        obj = self.loader.lookup_type(contract.pkg_path, contract.name)
        named = unalias(obj.type) if obj is not None else None
        if isinstance(named, Named) and isinstance(named.underlying, Interface):
            methods = named.underlying.all_methods()
            for method in contract.methods:
                func = methods.get(method.name)
                if func is None:
                    continue
                signature = func.signature
                for param in signature.params:
                    yield param.type
                for result in signature.results or []:
                    yield result.type
        else:
            LOGGER.debug("contract %s not found for expansion", contract.id)
        for method in contract.methods:
            for error in method.errors:
                try:
                    node = self.ensure_type_loaded(error.type_id, chain=(contract.id, method.name))
                except (TypeMissingError, ResolverNotFoundError) as exc:
                    LOGGER.debug("skipping error type %s: %s", error.type_id, exc)
                    continue
                if node is not None:
                    yield node

    def _never_materialized(self, pkg_path: str, name: str) -> TypeNode | None:
        if pkg_path == "builtins":
            obj = self.loader.builtin(name)
        else:
            obj = self.loader.opaque(pkg_path, name)
        return obj.type if obj is not None else None


def _edges(node: TypeNode) -> Iterator[TypeNode]:
    if isinstance(node, (Pointer, Slice, Array, Chan)):
        yield node.elem
    elif isinstance(node, Map):
        yield node.key
        yield node.value
    elif isinstance(node, Signature):
        for param in node.params:
            yield param.type
        for result in node.results or []:
            yield result.type
    elif isinstance(node, Named):
        if not isinstance(node.underlying, Interface):
            yield node.underlying
        if node.newtype_base is not None:
            yield node.newtype_base
    elif isinstance(node, Alias):
        yield node.rhs
    elif isinstance(node, Struct):
        for member in node.fields:
            yield member.type
    elif isinstance(node, Tuple):
        yield from node.elems


__all__ = ["TypeExpander"]
