# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Structural interface detection for named types."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Final

from ..errors import LoadTypeCheckError, ResolverNotFoundError
from ..loader.loader import PackageLoader
from ..loader.typesys import (
    INVALID,
    ClassFlavor,
    Func,
    Interface,
    Named,
    Param,
    ParamKind,
    Signature,
    Struct,
    TypeNode,
    unalias,
)
from ..model import Kind, Type

LOGGER = logging.getLogger(__name__)

EAGER_STDLIB_MODULES: Final[tuple[str, ...]] = ("typing", "_collections_abc", "contextlib", "os", "numbers")
ERROR_CAPABILITY: Final[str] = "builtins:BaseException"
JSON_MARSHALER: Final[str] = "json:Marshaler"
PYDANTIC_SCHEMA_PROVIDER: Final[str] = "pydantic:SchemaProvider"
JSON_CAPABILITIES: Final[frozenset[str]] = frozenset({JSON_MARSHALER, PYDANTIC_SCHEMA_PROVIDER})

_WILDCARDS: Final[frozenset[str]] = frozenset({INVALID.type_string(), Kind.ANY.value})


@dataclass(slots=True)
class Capability:
    """An interface candidate: a method set or a custom predicate."""

    type_id: str
    methods: Mapping[str, Func | None] = field(default_factory=dict)
    predicate: Callable[[Named], bool] | None = None

    def satisfied_by(self, named: Named) -> bool:
        if self.predicate is not None:
            return self.predicate(named)
        if not self.methods:
            return False
        available = named.methods()
        fields = _field_names(named)
        for name, expected in self.methods.items():
            actual = available.get(name)
            if actual is None:
                if expected is not None and expected.is_property and name in fields:
                    continue
                return False
            if expected is None or expected.is_property or actual.is_property:
                continue
            if not signatures_compatible(expected.signature, actual.signature):
                return False
        return True


SYNTHETIC_CAPABILITIES: Final[tuple[Capability, ...]] = (
    Capability(ERROR_CAPABILITY, predicate=lambda named: named.is_exception),
    Capability(JSON_MARSHALER, {"__json__": None}),
    Capability(PYDANTIC_SCHEMA_PROVIDER, {"__get_pydantic_core_schema__": None}),
)


def _field_names(named: Named) -> set[str]:
    underlying = named.underlying
    if isinstance(underlying, Struct):
        return {member.name for member in underlying.fields}
    return set()


def _positional(signature: Signature) -> list[Param]:
    return [param for param in signature.params if param.kind == ParamKind.POSITIONAL]


def types_compatible(expected: TypeNode, actual: TypeNode) -> bool:
    """Compare two nodes textually; untyped and ``any`` positions match anything."""

    left = expected.type_string()
    right = actual.type_string()
    if left in _WILDCARDS or right in _WILDCARDS:
        return True
    return left == right


def signatures_compatible(expected: Signature, actual: Signature) -> bool:
    """Return ``True`` when ``actual`` can stand in for ``expected``.

    Every positional parameter of ``expected`` must be accepted by ``actual``
    and every parameter ``actual`` requires must be supplied by ``expected``.
    Result lists are compared slot by slot when both are annotated.
    """

    wanted = _positional(expected)
    offered = _positional(actual)
    required = [param for param in offered if not param.has_default]
    if len(required) > len(wanted):
        return False
    if len(wanted) > len(offered) and not actual.variadic:
        return False
    for left, right in zip(wanted, offered):
        if not types_compatible(left.type, right.type):
            return False
    if expected.results is None or actual.results is None:
        return True
    if len(expected.results) != len(actual.results):
        return False
    return all(types_compatible(left.type, right.type) for left, right in zip(expected.results, actual.results))


class InterfaceDetector:
    """Attach the interfaces each named type satisfies.

    The candidate universe grows with the loader: interfaces of every
    completed module are harvested the next time a type is enriched.
    """

    def __init__(self, loader: PackageLoader, *, eager_modules: Iterable[str] = EAGER_STDLIB_MODULES) -> None:
        self.loader = loader
        self._eager_modules = tuple(eager_modules)
        self._lock = threading.RLock()
        self._eager_loaded = False
        self._harvested: set[str] = set()
        self._capabilities: dict[str, Capability] = {cap.type_id: cap for cap in SYNTHETIC_CAPABILITIES}
        self._judgments: dict[tuple[str, str], bool] = {}

    def enrich(self, created: Type, node: TypeNode) -> None:
        """Record every interface ``node`` satisfies on ``created``."""

        named = unalias(node)
        if not isinstance(named, Named) or named.pkg_path == "builtins":
            return
        for interface_id in self.interfaces_of(named):
            created.add_interface(interface_id)

    def interfaces_of(self, named: Named) -> list[str]:
        """Return the sorted TypeIDs of the interfaces ``named`` satisfies."""

        found = []
        for capability in self.universe():
            if capability.type_id == named.type_id:
                continue
            key = (named.type_id, capability.type_id)
            with self._lock:
                cached = self._judgments.get(key)
            if cached is None:
                cached = capability.satisfied_by(named)
                with self._lock:
                    self._judgments[key] = cached
            if cached:
                found.append(capability.type_id)
        return sorted(found)

    def implements(self, named: Named, interface_id: str) -> bool:
        return interface_id in self.interfaces_of(named)

    def universe(self) -> list[Capability]:
        """Return the candidate interfaces known so far."""

        self._load_eager()
        for info in self.loader.loaded_packages():
            with self._lock:
                if info.pkg_path in self._harvested:
                    continue
                self._harvested.add(info.pkg_path)
            for obj in info.package.classes():
                named = obj.type
                if not isinstance(named, Named) or named.flavor != ClassFlavor.INTERFACE:
                    continue
                underlying = named.underlying
                if not isinstance(underlying, Interface):
                    continue
                methods = underlying.all_methods()
                if not methods:
                    continue
                with self._lock:
                    self._capabilities.setdefault(named.type_id, Capability(named.type_id, methods))
        with self._lock:
            return list(self._capabilities.values())

    def _load_eager(self) -> None:
        with self._lock:
            if self._eager_loaded:
                return
            self._eager_loaded = True
        for module in self._eager_modules:
            try:
                self.loader.load_lazy(module)
            except (ResolverNotFoundError, LoadTypeCheckError) as exc:
                LOGGER.debug("standard interfaces of %s unavailable: %s", module, exc)


__all__ = [
    "Capability",
    "EAGER_STDLIB_MODULES",
    "ERROR_CAPABILITY",
    "InterfaceDetector",
    "JSON_CAPABILITIES",
    "JSON_MARSHALER",
    "PYDANTIC_SCHEMA_PROVIDER",
    "signatures_compatible",
    "types_compatible",
]
