# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Typed nodes produced by the checker.

The node set is deliberately small: every Python annotation is folded into
one of these shapes before the converter maps it onto the project's closed
kind set. Named types resolve their definition on first use.
"""

from __future__ import annotations

import ast
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Final

from ..model.kinds import ChanDirection, Kind, make_type_id

# Guards lazy definitions; re-entrant for recursive class graphs.
_DEFINITION_LOCK: Final = threading.RLock()


class TypeNode:
    """Base class of every typed node."""

    def type_string(self) -> str:
        """Return a canonical textual form used for signature comparison."""

        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.type_string()}>"


class Invalid(TypeNode):
    """A node that could not be typed; acts as a wildcard in comparisons."""

    def type_string(self) -> str:
        return "invalid"


class NoneNode(TypeNode):
    """The ``None`` annotation; only meaningful inside unions."""

    def type_string(self) -> str:
        return "None"


INVALID: Final[Invalid] = Invalid()
NONE: Final[NoneNode] = NoneNode()


@dataclass(eq=False, repr=False)
class Basic(TypeNode):
    """A built-in scalar kind."""

    kind: Kind

    def type_string(self) -> str:
        return self.kind.value


@dataclass(eq=False, repr=False)
class Pointer(TypeNode):
    """An optional reference to ``elem`` (``T | None``)."""

    elem: TypeNode

    def type_string(self) -> str:
        return f"*{self.elem.type_string()}"


@dataclass(eq=False, repr=False)
class Slice(TypeNode):
    """A variable-length homogeneous sequence."""

    elem: TypeNode

    def type_string(self) -> str:
        return f"[]{self.elem.type_string()}"


@dataclass(eq=False, repr=False)
class Array(TypeNode):
    """A fixed-length homogeneous tuple."""

    elem: TypeNode
    length: int

    def type_string(self) -> str:
        return f"[{self.length}]{self.elem.type_string()}"


@dataclass(eq=False, repr=False)
class Map(TypeNode):
    """A mapping from ``key`` to ``value``."""

    key: TypeNode
    value: TypeNode

    def type_string(self) -> str:
        return f"map[{self.key.type_string()}]{self.value.type_string()}"


@dataclass(eq=False, repr=False)
class Chan(TypeNode):
    """A stream of ``elem`` values (iterators, async iterators, queues)."""

    elem: TypeNode
    direction: ChanDirection

    def type_string(self) -> str:
        prefix = {ChanDirection.SEND: "chan<-", ChanDirection.RECV: "<-chan", ChanDirection.BOTH: "chan"}
        return f"{prefix[self.direction]} {self.elem.type_string()}"


@dataclass(eq=False, repr=False)
class Tuple(TypeNode):
    """A heterogeneous tuple; only appears in multi-value results."""

    elems: list[TypeNode]

    def type_string(self) -> str:
        return "(" + ", ".join(elem.type_string() for elem in self.elems) + ")"


class ParamKind:
    """Parameter kinds of a :class:`Param`."""

    POSITIONAL: Final[str] = "positional"
    KEYWORD: Final[str] = "keyword"
    VAR_POSITIONAL: Final[str] = "var_positional"
    VAR_KEYWORD: Final[str] = "var_keyword"


@dataclass(eq=False)
class Param:
    """A parameter or named result of a :class:`Signature`."""

    name: str
    type: TypeNode
    kind: str = ParamKind.POSITIONAL
    has_default: bool = False
    comments: list[str] = field(default_factory=list)


@dataclass(eq=False, repr=False)
class Signature(TypeNode):
    """A callable signature; ``results`` is ``None`` when unannotated."""

    params: list[Param]
    results: list[Param] | None
    is_async: bool = False

    @property
    def variadic(self) -> bool:
        return any(param.kind == ParamKind.VAR_POSITIONAL for param in self.params)

    def type_string(self) -> str:
        params = ", ".join(_param_string(param) for param in self.params)
        if self.results is None:
            return f"func({params})"
        results = ", ".join(result.type.type_string() for result in self.results)
        return f"func({params}) ({results})"


def _param_string(param: Param) -> str:
    prefix = {ParamKind.VAR_POSITIONAL: "...", ParamKind.VAR_KEYWORD: "**"}.get(param.kind, "")
    return f"{prefix}{param.type.type_string()}"


@dataclass(eq=False)
class StructMember:
    """A field of a :class:`Struct`; ``embedded`` marks a struct base."""

    name: str
    type: TypeNode
    embedded: bool = False
    tags: dict[str, list[str]] = field(default_factory=dict)
    docs: list[str] = field(default_factory=list)


@dataclass(eq=False, repr=False)
class Struct(TypeNode):
    """Record shape: dataclasses, models, typed dicts and plain classes."""

    fields: list[StructMember]

    def type_string(self) -> str:
        return "struct{" + "; ".join(f"{member.name} {member.type.type_string()}" for member in self.fields) + "}"


@dataclass(eq=False, repr=False)
class Interface(TypeNode):
    """Protocol shape: explicit methods plus embedded interfaces."""

    methods: list[Func]
    embedded: list[TypeNode]
    anonymous: bool = False

    def all_methods(self) -> dict[str, Func]:
        """Return explicit and embedded methods keyed by name."""

        collected: dict[str, Func] = {}
        seen: set[int] = set()
        self._collect(collected, seen)
        return collected

    def _collect(self, collected: dict[str, Func], seen: set[int]) -> None:
        if id(self) in seen:
            return
        seen.add(id(self))
        for embedded in self.embedded:
            underlying = under(embedded)
            if isinstance(underlying, Interface):
                underlying._collect(collected, seen)
        for method in self.methods:
            collected[method.name] = method

    def type_string(self) -> str:
        return "interface{" + "; ".join(sorted(self.all_methods())) + "}"


@dataclass(eq=False)
class Func:
    """A function or method object."""

    name: str
    pkg_path: str
    node: ast.FunctionDef | ast.AsyncFunctionDef | None
    resolve_signature: Callable[[], Signature] | None = None
    is_property: bool = False
    is_abstract: bool = False
    is_static: bool = False
    docstring: str | None = None
    file_path: str = ""
    _signature: Signature | None = field(default=None, repr=False)

    @property
    def signature(self) -> Signature:
        if self._signature is None:
            self._signature = self.resolve_signature() if self.resolve_signature else Signature([], None)
        return self._signature


class TypeName:
    """A named declaration: class, ``NewType``, type alias or TypeVar."""

    def __init__(self, name: str, pkg_path: str, *, node: ast.AST | None = None, file_path: str = "") -> None:
        self.name = name
        self.pkg_path = pkg_path
        self.node = node
        self.file_path = file_path
        self.type: TypeNode = INVALID

    @property
    def type_id(self) -> str:
        return make_type_id(self.pkg_path, self.name)

    def __repr__(self) -> str:
        return f"<TypeName {self.type_id}>"


class ClassFlavor:
    """How a class definition should be interpreted."""

    STRUCT: Final[str] = "struct"
    INTERFACE: Final[str] = "interface"
    ENUM: Final[str] = "enum"
    CONTAINER: Final[str] = "container"
    NEWTYPE: Final[str] = "newtype"
    OPAQUE: Final[str] = "opaque"


@dataclass(eq=False)
class NamedDefinition:
    """Lazily computed definition of a :class:`Named` type."""

    underlying: TypeNode
    flavor: str
    bases: list[TypeNode] = field(default_factory=list)
    methods: dict[str, Func] = field(default_factory=dict)
    is_exception: bool = False
    newtype_base: TypeNode | None = None
    docs: list[str] = field(default_factory=list)
    docstring: str | None = None


class Named(TypeNode):
    """A nominal type identified by ``(pkg_path, name)``.

    The definition is produced on first access by ``definer``; a definition
    requested while it is being computed (a class whose bases refer back to
    itself) reads as opaque.
    """

    def __init__(self, obj: TypeName, definer: Callable[[], NamedDefinition] | None = None) -> None:
        self.obj = obj
        self._definer = definer
        self._definition: NamedDefinition | None = None
        self._resolving = False

    @property
    def name(self) -> str:
        return self.obj.name

    @property
    def pkg_path(self) -> str:
        return self.obj.pkg_path

    @property
    def type_id(self) -> str:
        return make_type_id(self.pkg_path, self.name)

    def definition(self) -> NamedDefinition:
        if self._definition is not None:
            return self._definition
        with _DEFINITION_LOCK:
            if self._definition is not None:
                return self._definition
            if self._resolving or self._definer is None:
                return _OPAQUE_DEFINITION
            self._resolving = True
            try:
                self._definition = self._definer()
            finally:
                self._resolving = False
        return self._definition

    @property
    def underlying(self) -> TypeNode:
        return self.definition().underlying

    @property
    def flavor(self) -> str:
        return self.definition().flavor

    @property
    def is_exception(self) -> bool:
        return self.definition().is_exception

    @property
    def newtype_base(self) -> TypeNode | None:
        return self.definition().newtype_base

    @property
    def bases(self) -> list[TypeNode]:
        return self.definition().bases

    @property
    def docs(self) -> list[str]:
        return self.definition().docs

    def methods(self) -> dict[str, Func]:
        """Return own and inherited methods, own definitions taking priority."""

        collected: dict[str, Func] = {}
        self._collect_methods(collected, set())
        return collected

    def _collect_methods(self, collected: dict[str, Func], seen: set[int]) -> None:
        node = self
        if id(node) in seen:
            return
        seen.add(id(node))
        definition = node.definition()
        for name, func in definition.methods.items():
            collected.setdefault(name, func)
        for base in definition.bases:
            if isinstance(base, Named):
                base._collect_methods(collected, seen)

    def type_string(self) -> str:
        return self.type_id


class Alias(TypeNode):
    """An explicit or implicit type alias."""

    def __init__(self, obj: TypeName, resolve_rhs: Callable[[], TypeNode]) -> None:
        self.obj = obj
        self._resolve_rhs = resolve_rhs
        self._rhs: TypeNode | None = None
        self._resolving = False

    @property
    def rhs(self) -> TypeNode:
        if self._rhs is not None:
            return self._rhs
        with _DEFINITION_LOCK:
            if self._rhs is None:
                if self._resolving:
                    return INVALID
                self._resolving = True
                try:
                    self._rhs = self._resolve_rhs()
                finally:
                    self._resolving = False
        return self._rhs

    @property
    def type_id(self) -> str:
        return self.obj.type_id

    def type_string(self) -> str:
        return unalias(self).type_string()


_OPAQUE_DEFINITION: Final[NamedDefinition] = NamedDefinition(underlying=Struct([]), flavor=ClassFlavor.OPAQUE)


def opaque_definition() -> NamedDefinition:
    """Return a fresh definition for a type whose source is unavailable."""

    return NamedDefinition(underlying=Struct([]), flavor=ClassFlavor.OPAQUE)


def unalias(node: TypeNode) -> TypeNode:
    """Follow alias chains to the first non-alias node."""

    seen: set[int] = set()
    while isinstance(node, Alias) and id(node) not in seen:
        seen.add(id(node))
        node = node.rhs
    return node


def under(node: TypeNode) -> TypeNode:
    """Return the underlying shape of ``node`` (unaliased and unnamed)."""

    node = unalias(node)
    seen: set[int] = set()
    while isinstance(node, Named) and id(node) not in seen:
        seen.add(id(node))
        node = unalias(node.underlying)
    return node


__all__ = [
    "Alias",
    "Array",
    "Basic",
    "Chan",
    "ClassFlavor",
    "Func",
    "INVALID",
    "Interface",
    "Invalid",
    "Map",
    "NONE",
    "Named",
    "NamedDefinition",
    "NoneNode",
    "Param",
    "ParamKind",
    "Pointer",
    "Signature",
    "Slice",
    "Struct",
    "StructMember",
    "Tuple",
    "TypeName",
    "TypeNode",
    "opaque_definition",
    "under",
    "unalias",
]
