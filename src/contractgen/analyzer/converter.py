# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Convert typed nodes into :class:`~contractgen.model.Type` records.

Conversion is keyed by TypeID. A Type is inserted into the project before
its fields are converted so that recursive references resolve to the entry
being formed; the in-flight set covers the remaining re-entrant paths by
inserting an identity-only skeleton.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

from ..annotations import parse_comment_block, parse_docstring
from ..loader.typesys import (
    INVALID,
    Alias,
    Array,
    Basic,
    Chan,
    ClassFlavor,
    Func,
    Interface,
    Map,
    Named,
    Param,
    ParamKind,
    Pointer,
    Signature,
    Slice,
    Struct,
    StructMember,
    TypeNode,
    unalias,
    under,
)
from ..model import Function, Kind, Project, StructField, Type, TypeRef, Variable, is_builtin

if TYPE_CHECKING:
    from .detector import InterfaceDetector

LOGGER = logging.getLogger(__name__)

BUILTINS_MODULE: Final[str] = "builtins"
ERROR_TYPE_ID: Final[str] = Kind.ERROR.value
ANY_TYPE_ID: Final[str] = Kind.ANY.value


def strip_pointers(node: TypeNode) -> tuple[TypeNode, int]:
    """Return ``node`` without its optional wrappers and their count."""

    count = 0
    while isinstance(node, Pointer):
        count += 1
        node = node.elem
    return node, count


def candidate_type_id(node: TypeNode) -> str:
    """Return the TypeID a node would be registered under.

    Named types and aliases yield ``"<module>:<Name>"``; basic kinds yield
    their kind name; builtin classes collapse to ``error`` or ``any``; every
    other shape is anonymous and yields ``""``.
    """

    if isinstance(node, Alias):
        return node.type_id
    if isinstance(node, Named):
        if node.pkg_path == BUILTINS_MODULE:
            return ERROR_TYPE_ID if node.is_exception else ANY_TYPE_ID
        return node.type_id
    if isinstance(node, Basic):
        return node.kind.value
    return ""


class TypeConverter:
    """Register Types for typed nodes in a :class:`Project`."""

    def __init__(self, project: Project, detector: InterfaceDetector | None = None) -> None:
        self.project = project
        self.detector = detector
        self._in_flight: set[str] = set()

    # -- use sites ---------------------------------------------------------------

    def type_ref(self, node: TypeNode) -> TypeRef:
        """Describe how ``node`` is used at one site, registering named types."""

        ref = TypeRef()
        self.fill_ref(ref, node)
        return ref

    def fill_ref(self, ref: TypeRef, node: TypeNode) -> None:
        """Populate the TypeRef fields of ``ref`` (which may be a subclass)."""

        node, ref.pointer_count = strip_pointers(node)
        if isinstance(node, Slice):
            elem, ref.element_pointers = strip_pointers(node.elem)
            ref.is_slice = True
            ref.type_id = self.element_id(elem)
        elif isinstance(node, Array):
            elem, ref.element_pointers = strip_pointers(node.elem)
            ref.array_len = node.length
            ref.type_id = self.element_id(elem)
        elif isinstance(node, Map):
            ref.map_key = self.type_ref(node.key)
            ref.map_value = self.type_ref(node.value)
            ref.element_pointers = ref.map_value.pointer_count
            ref.type_id = ""
        else:
            ref.type_id = self.element_id(node)

    def element_id(self, node: TypeNode) -> str:
        """Return the TypeID for a non-container node, converting named types."""

        type_id = candidate_type_id(node)
        if not type_id:
            if not isinstance(node, (Struct, Interface, Signature, Chan)) and node is not INVALID:
                LOGGER.debug("anonymous %s used as any", node.type_string())
            return ANY_TYPE_ID
        if not is_builtin(type_id):
            self.convert(node)
        return type_id

    def variable(self, param: Param) -> Variable:
        """Return the Variable for a signature parameter or result."""

        docs, tags = parse_comment_block(param.comments)
        variable = Variable(name=param.name, docs=docs, annotations=tags)
        node = param.type
        if param.kind == ParamKind.VAR_POSITIONAL:
            self.fill_ref(variable, Slice(node))
            variable.is_ellipsis = True
        elif param.kind == ParamKind.VAR_KEYWORD:
            self.fill_ref(variable, Map(Basic(Kind.STRING), node))
        else:
            self.fill_ref(variable, node)
        return variable

    def signature_variables(self, signature: Signature) -> tuple[list[Variable], list[Variable]]:
        """Return ``(args, results)`` Variables of ``signature``."""

        args = [self.variable(param) for param in signature.params]
        results = [self.variable(result) for result in signature.results or []]
        return args, results

    # -- definitions -------------------------------------------------------------

    def convert(self, node: TypeNode) -> Type | None:
        """Return the registered Type for ``node``.

        Anonymous shapes are converted into a Type that is not registered.
        Built-in kinds yield ``None``.
        """

        type_id = candidate_type_id(node)
        if not type_id:
            shape = Type()
            self._fill_shape(shape, node)
            return shape
        if is_builtin(type_id):
            return None
        existing = self.project.types.get(type_id)
        if existing is not None:
            if self.detector is not None and type_id not in self._in_flight:
                self.detector.enrich(existing, node)
            return existing
        if type_id in self._in_flight:
            skeleton = self._identity(node)
            self.project.types[type_id] = skeleton
            return skeleton

        self._in_flight.add(type_id)
        try:
            created = self._identity(node)
            self.project.types[type_id] = created
            if isinstance(node, Alias):
                self._fill_alias(created, node)
            elif isinstance(node, Named):
                self._fill_named(created, node)
        finally:
            self._in_flight.discard(type_id)
        if self.detector is not None:
            self.detector.enrich(created, node)
        return created

    def _identity(self, node: TypeNode) -> Type:
        if isinstance(node, Alias):
            pkg_path, name = node.obj.pkg_path, node.obj.name
            docs: list[str] = []
        elif isinstance(node, Named):
            pkg_path, name = node.pkg_path, node.name
            docs = list(node.docs) if node.flavor != ClassFlavor.OPAQUE else []
        else:
            return Type()
        pkg_name = pkg_path.rpartition(".")[2]
        return Type(type_name=name, import_pkg_path=pkg_path, pkg_name=pkg_name, import_alias=pkg_name, docs=docs)

    def _fill_alias(self, created: Type, node: Alias) -> None:
        base = node.rhs
        stripped, pointers = strip_pointers(base)
        if pointers == 0 and isinstance(stripped, (Named, Alias)) and candidate_type_id(stripped) not in (
            ERROR_TYPE_ID,
            ANY_TYPE_ID,
        ):
            created.kind = Kind.ALIAS
            created.alias_of = self.element_id(stripped)
            self._fill_semantic_base(created, stripped)
            return
        self._fill_shape(created, base)
        self._fill_semantic_base(created, base)

    def _fill_named(self, created: Type, node: Named) -> None:
        flavor = node.flavor
        if flavor == ClassFlavor.OPAQUE:
            created.kind = Kind.STRUCT
            return
        if flavor in (ClassFlavor.NEWTYPE, ClassFlavor.ENUM):
            base = node.newtype_base if flavor == ClassFlavor.NEWTYPE and node.newtype_base is not None else node.underlying
            stripped, _ = strip_pointers(base)
            created.kind = Kind.ALIAS
            if isinstance(stripped, (Named, Alias)) and candidate_type_id(stripped) not in (ERROR_TYPE_ID, ANY_TYPE_ID):
                created.alias_of = self.element_id(stripped)
            self._fill_semantic_base(created, base)
            return
        self._fill_shape(created, node.underlying)

    def _fill_semantic_base(self, created: Type, base: TypeNode) -> None:
        semantic = under(base)
        semantic, _ = strip_pointers(semantic)
        if isinstance(semantic, Basic):
            created.underlying_kind = semantic.kind
            created.underlying_type_id = semantic.kind.value
            return
        last_named = _last_named(base)
        if last_named is not None:
            created.underlying_type_id = candidate_type_id(last_named)
        shape = Type()
        self._fill_shape(shape, semantic)
        created.underlying_kind = shape.kind

    def _fill_shape(self, created: Type, node: TypeNode) -> None:
        node, _ = strip_pointers(unalias(node))
        if isinstance(node, Basic):
            created.kind = node.kind
        elif isinstance(node, Named):
            created.kind = Kind.ERROR if candidate_type_id(node) == ERROR_TYPE_ID else Kind.ANY
        elif isinstance(node, Slice):
            elem, created.element_pointers = strip_pointers(node.elem)
            created.kind = Kind.ARRAY
            created.is_slice = True
            created.array_of_id = self.element_id(elem)
        elif isinstance(node, Array):
            elem, created.element_pointers = strip_pointers(node.elem)
            created.kind = Kind.ARRAY
            created.array_len = node.length
            created.array_of_id = self.element_id(elem)
        elif isinstance(node, Map):
            created.kind = Kind.MAP
            created.map_key = self.type_ref(node.key)
            created.map_value = self.type_ref(node.value)
            created.element_pointers = created.map_value.pointer_count
        elif isinstance(node, Chan):
            created.kind = Kind.CHAN
            created.chan_direction = node.direction
            elem, created.element_pointers = strip_pointers(node.elem)
            created.chan_of_id = self.element_id(elem)
        elif isinstance(node, Struct):
            created.kind = Kind.STRUCT
            created.struct_fields = [self._struct_field(member.name, member) for member in node.fields]
        elif isinstance(node, Interface):
            created.kind = Kind.INTERFACE
            created.interface_methods = [self.function(method) for method in node.methods]
            created.embedded_interfaces = [self._embedded(embedded) for embedded in node.embedded]
        elif isinstance(node, Signature):
            created.kind = Kind.FUNCTION
            created.function_args, created.function_results = self.signature_variables(node)
        else:
            created.kind = Kind.ANY

    def _struct_field(self, name: str, member: StructMember) -> StructField:
        field = StructField(
            name="" if member.embedded else name,
            tags={key: list(values) for key, values in member.tags.items()},
            docs=list(member.docs),
        )
        self.fill_ref(field, member.type)
        return field

    def _embedded(self, node: TypeNode) -> Variable:
        variable = Variable()
        self.fill_ref(variable, node)
        return variable

    def function(self, func: Func) -> Function:
        """Return the interface method description of ``func``."""

        docs, _ = parse_docstring(func.docstring)
        args, results = self.signature_variables(func.signature)
        return Function(name=func.name, args=args, results=results, docs=docs)


def _last_named(node: TypeNode) -> Named | None:
    seen: set[int] = set()
    current = unalias(node)
    found: Named | None = None
    while isinstance(current, Named) and id(current) not in seen:
        seen.add(id(current))
        found = current
        nxt = current.newtype_base if current.flavor == ClassFlavor.NEWTYPE else None
        if nxt is None:
            break
        current = unalias(strip_pointers(nxt)[0])
    return found


__all__ = [
    "ANY_TYPE_ID",
    "ERROR_TYPE_ID",
    "TypeConverter",
    "candidate_type_id",
    "strip_pointers",
]
