# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Collect the types reachable from contracts and emit them as DTOs.

Collection walks method arguments, results, declared errors and the
``defaultError`` annotation. Built-in kinds, well-known pass-through types,
types with their own JSON codec and anonymous interfaces are never emitted;
they are referenced through their original module instead.
"""

from __future__ import annotations

import keyword
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Final

from ..analyzer.collector import is_context
from ..analyzer.detector import ERROR_CAPABILITY, JSON_CAPABILITIES
from ..annotations import TAG_DEFAULT_ERROR, annotation_value
from ..errors import InvalidTypeRefError
from ..model import ANONYMOUS_INTERFACE_MARKER, Contract, Kind, Project, StructField, Type, TypeRef, Variable
from ..model.kinds import is_builtin, split_type_id
from .naming import to_camel
from .source import SourceFile

LOGGER = logging.getLogger(__name__)

TYPES_MODULE: Final[str] = ".types"
SKIP: Final[str] = "skip"

WELL_KNOWN_TYPE_IDS: Final[frozenset[str]] = frozenset(
    {
        "datetime:datetime",
        "datetime:date",
        "datetime:time",
        "datetime:timedelta",
        "uuid:UUID",
        "decimal:Decimal",
        "fractions:Fraction",
        "pathlib:Path",
    }
)
WELL_KNOWN_MODULES: Final[frozenset[str]] = frozenset({"ipaddress"})
WELL_KNOWN_SUFFIXES: Final[tuple[str, ...]] = ("UUID", "Decimal")

BUILTIN_ANNOTATIONS: Final[dict[str, str]] = {
    Kind.STRING.value: "str",
    Kind.INT.value: "int",
    Kind.INT8.value: "int",
    Kind.INT16.value: "int",
    Kind.INT32.value: "int",
    Kind.INT64.value: "int",
    Kind.UINT.value: "int",
    Kind.UINT8.value: "int",
    Kind.UINT16.value: "int",
    Kind.UINT32.value: "int",
    Kind.UINT64.value: "int",
    Kind.BYTE.value: "int",
    Kind.RUNE.value: "int",
    Kind.FLOAT32.value: "float",
    Kind.FLOAT64.value: "float",
    Kind.BOOL.value: "bool",
    Kind.ERROR.value: "str",
    Kind.ANY.value: "Any",
}
ZERO_VALUES: Final[dict[str, str]] = {
    "str": '""',
    "int": "0",
    "float": "0.0",
    "bool": "False",
    "bytes": 'b""',
}
OPAQUE_KINDS: Final[frozenset[Kind]] = frozenset({Kind.INTERFACE, Kind.CHAN, Kind.FUNCTION})
RESERVED_NAMES: Final[frozenset[str]] = frozenset({"Any", "ClassVar", "Field", "Model", "Protocol", "TypeAlias"})

OMIT_EMPTY: Final[str] = "omitempty"
JSON_TAG: Final[str] = "json"


def is_local_package(project: Project, pkg_path: str) -> bool:
    """Return ``True`` when ``pkg_path`` belongs to the analyzed project."""

    module = project.module_path
    return bool(module) and (pkg_path == module or pkg_path.startswith(module + "."))


def is_well_known(type_id: str) -> bool:
    pkg, name = split_type_id(type_id)
    return type_id in WELL_KNOWN_TYPE_IDS or pkg in WELL_KNOWN_MODULES or name.endswith(WELL_KNOWN_SUFFIXES)


def is_error_type(found: Type) -> bool:
    return found.kind == Kind.STRUCT and found.implements(ERROR_CAPABILITY)


def field_name(name: str) -> str:
    """Return a model attribute name for ``name`` usable by pydantic."""

    cleaned = name.lstrip("_") or "field"
    if keyword.iskeyword(cleaned) or cleaned != name:
        cleaned += "_"
    return cleaned


@dataclass(slots=True)
class FieldSpec:
    """One rendered model field."""

    name: str
    annotation: str
    value: str
    comment: list[str]
    omit_empty: bool = False


class TypeRenderer:
    """Own the set of emitted types and render annotations that refer to them."""

    def __init__(self, project: Project, contracts: Iterable[Contract]) -> None:
        self.project = project
        self.contracts = list(contracts)
        self.type_ids: list[str] = []
        self.names: dict[str, str] = {}
        self._seen: set[str] = set()

    # -- collection -----------------------------------------------------------------

    def collect(self) -> list[str]:
        """Return the TypeIDs to emit, in discovery order."""

        for contract in self.contracts:
            for method in contract.methods:
                for variable in (*method.args, *method.results):
                    if not is_context(variable):
                        self._visit_ref(variable)
                for error in method.errors:
                    if error.type_id:
                        self._visit(error.type_id)
            default_error = annotation_value(self.project, contract, None, None, TAG_DEFAULT_ERROR)
            if default_error and default_error != SKIP and ":" in default_error:
                self._visit(default_error)
        self._assign_names()
        return self.type_ids

    def is_excluded(self, type_id: str) -> bool:
        """Return ``True`` for types referenced as-is instead of being emitted."""

        if ANONYMOUS_INTERFACE_MARKER in type_id or is_well_known(type_id):
            return True
        found = self.project.get_type(type_id)
        return found is not None and any(found.implements(capability) for capability in JSON_CAPABILITIES)

    def _visit_ref(self, ref: TypeRef) -> None:
        if ref.map_key is not None:
            self._visit_ref(ref.map_key)
        if ref.map_value is not None:
            self._visit_ref(ref.map_value)
        self._visit(ref.type_id)

    def _visit(self, type_id: str) -> None:
        if not type_id or is_builtin(type_id) or type_id in self._seen:
            return
        self._seen.add(type_id)
        if self.is_excluded(type_id):
            return
        found = self.project.get_type(type_id)
        if found is None:
            LOGGER.debug("type %s is not registered, rendered as Any", type_id)
            return
        if is_error_type(found):
            return
        if is_local_package(self.project, found.import_pkg_path):
            self.type_ids.append(type_id)
        self._visit_children(found)

    def _visit_children(self, found: Type) -> None:
        if found.kind == Kind.ARRAY:
            self._visit(found.array_of_id)
        elif found.kind == Kind.MAP:
            for ref in (found.map_key, found.map_value):
                if ref is not None:
                    self._visit_ref(ref)
        elif found.kind == Kind.ALIAS:
            self._visit(found.alias_of)
            self._visit(found.underlying_type_id)
        elif found.kind == Kind.STRUCT:
            for struct_field in found.struct_fields:
                self._visit_ref(struct_field)
        elif found.kind == Kind.INTERFACE:
            for embedded in found.embedded_interfaces:
                self._visit_ref(embedded)
            for function in found.interface_methods:
                for variable in (*function.args, *function.results):
                    self._visit_ref(variable)

    def _assign_names(self) -> None:
        taken: dict[str, str] = {}
        for type_id in self.type_ids:
            found = self.project.types[type_id]
            name = found.type_name
            if name in RESERVED_NAMES or name in taken:
                name = f"{to_camel(found.pkg_name)}{found.type_name}"
            taken[name] = type_id
            self.names[type_id] = name

    # -- annotations ----------------------------------------------------------------

    def type_expr(self, type_id: str, src: SourceFile, *, local: bool = False) -> str:
        """Return the annotation naming ``type_id`` and register its import."""

        if not type_id:
            src.import_from("typing", "Any")
            return "Any"
        builtin = BUILTIN_ANNOTATIONS.get(type_id)
        if builtin is not None:
            if builtin == "Any":
                src.import_from("typing", "Any")
            return builtin
        if type_id in self.names:
            name = self.names[type_id]
            if not local:
                src.import_from(TYPES_MODULE, name)
            return name
        found = self.project.get_type(type_id)
        if found is None and not is_well_known(type_id):
            src.import_from("typing", "Any")
            return "Any"
        if found is not None and (found.kind in OPAQUE_KINDS or is_error_type(found)):
            src.import_from("typing", "Any")
            return "Any"
        pkg, name = split_type_id(type_id)
        if not pkg:
            src.import_from("typing", "Any")
            return "Any"
        return f"{src.import_module(pkg)}.{name}"

    def ref_expr(self, ref: TypeRef, src: SourceFile, *, local: bool = False) -> str:
        """Return the annotation of a use site, including containers and optionals.

        Raises:
            InvalidTypeRefError: If only one side of a mapping is described.
        """

        if (ref.map_key is None) != (ref.map_value is None):
            raise InvalidTypeRefError(ref.type_id, "map needs both key and value types")
        if ref.map_key is not None and ref.map_value is not None:
            key = self.ref_expr(ref.map_key, src, local=local)
            value = self.ref_expr(ref.map_value, src, local=local)
            expr = f"dict[{key}, {value}]"
        elif ref.is_slice or ref.array_len:
            expr = self._list_expr(ref.type_id, ref.is_slice, ref.element_pointers, src, local)
        else:
            expr = self.type_expr(ref.type_id, src, local=local)
        return _optional(expr, ref.pointer_count)

    def element_expr(self, ref: TypeRef, src: SourceFile, *, local: bool = False) -> str:
        """Return the annotation of one element of a variadic argument."""

        return _optional(self.type_expr(ref.type_id, src, local=local), ref.element_pointers)

    def _list_expr(self, elem_id: str, is_slice: bool, pointers: int, src: SourceFile, local: bool) -> str:
        if is_slice and elem_id == Kind.BYTE.value and pointers == 0:
            return "bytes"
        return f"list[{_optional(self.type_expr(elem_id, src, local=local), pointers)}]"

    def results_expr(self, results: list[Variable], src: SourceFile, *, local: bool = False) -> str:
        """Return the return annotation for ``results``."""

        if not results:
            return "None"
        exprs = [self.ref_expr(result, src, local=local) for result in results]
        if len(exprs) == 1:
            return exprs[0]
        return f"tuple[{', '.join(exprs)}]"

    # -- zero values ----------------------------------------------------------------

    def zero_value(self, ref: TypeRef, annotation: str, owner: str = "") -> tuple[str, str]:
        """Return ``(annotation, default)`` for a field of type ``ref``.

        The default is source text; ``Field(default_factory=...)`` is used for
        mutable values. Types without a zero value become optional.
        """

        if ref.pointer_count:
            return annotation, "None"
        if ref.is_map():
            return annotation, "Field(default_factory=dict)"
        if ref.is_slice or ref.array_len:
            if annotation == "bytes":
                return annotation, ZERO_VALUES["bytes"]
            return annotation, "Field(default_factory=list)"
        zero = self._zero_of(ref.type_id, owner, set())
        if zero is None:
            return _optional(annotation, 1), "None"
        return annotation, zero

    def _zero_of(self, type_id: str, owner: str, seen: set[str]) -> str | None:
        builtin = BUILTIN_ANNOTATIONS.get(type_id)
        if builtin is not None:
            return ZERO_VALUES.get(builtin)
        if type_id in seen or type_id == owner:
            return None
        seen.add(type_id)
        found = self.project.get_type(type_id)
        if found is None or type_id not in self.names:
            return None
        if found.kind == Kind.STRUCT:
            return f"Field(default_factory=lambda: {self.names[type_id]}())"
        if found.kind == Kind.ARRAY:
            if found.is_slice and found.array_of_id == Kind.BYTE.value and not found.element_pointers:
                return ZERO_VALUES["bytes"]
            return "Field(default_factory=list)"
        if found.kind == Kind.MAP:
            return "Field(default_factory=dict)"
        if found.kind == Kind.ALIAS:
            if found.alias_of:
                return self._zero_of(found.alias_of, owner, seen)
            if found.underlying_kind is not None:
                return ZERO_VALUES.get(BUILTIN_ANNOTATIONS.get(found.underlying_kind.value, ""))
            return None
        if found.kind is not None:
            return ZERO_VALUES.get(BUILTIN_ANNOTATIONS.get(found.kind.value, ""))
        return None

    def field_spec(
        self,
        src: SourceFile,
        name: str,
        ref: TypeRef,
        *,
        json_name: str = "",
        omit_empty: bool = False,
        extra_tags: dict[str, str] | None = None,
        exclude: bool = False,
        docs: Iterable[str] = (),
        owner: str = "",
        local: bool = False,
    ) -> FieldSpec:
        """Describe the model field for ``name`` of type ``ref``."""

        attribute = field_name(name)
        annotation, default = self.zero_value(ref, self.ref_expr(ref, src, local=local), owner)
        alias = json_name or name
        kwargs: list[str] = []
        if alias != attribute:
            kwargs.append(f"alias={alias!r}")
        if exclude:
            kwargs.append("exclude=True")
        if extra_tags:
            kwargs.append(f"json_schema_extra={{'tags': {dict(sorted(extra_tags.items()))!r}}}")
        if kwargs:
            src.import_from("pydantic", "Field")
            value = _with_kwargs(default, kwargs)
        else:
            value = default
            if value.startswith("Field("):
                src.import_from("pydantic", "Field")
        return FieldSpec(attribute, annotation, value, [line for line in docs if line.strip()], omit_empty)

    def struct_field_spec(self, src: SourceFile, owner: str, struct_field: StructField) -> FieldSpec:
        """Describe a model field carrying the struct tags of ``struct_field``."""

        json_tag = struct_field.tag(JSON_TAG)
        json_name = json_tag[0] if json_tag and json_tag[0] not in ("", "-") else ""
        extra = {key: ",".join(values) for key, values in struct_field.tags.items() if key != JSON_TAG}
        return self.field_spec(
            src,
            struct_field.name,
            struct_field,
            json_name=json_name,
            omit_empty=OMIT_EMPTY in json_tag[1:],
            extra_tags=extra,
            exclude=bool(json_tag) and json_tag[0] == "-",
            docs=struct_field.docs,
            owner=owner,
            local=True,
        )

    # -- emission -------------------------------------------------------------------

    def render(self, src: SourceFile) -> None:
        """Write the ``Model`` base and every collected type into ``src``."""

        self._model_base(src)
        types = [self.project.types[type_id] for type_id in self.type_ids]
        basics = [found for found in types if self._is_basic_alias(found)]
        interfaces = [found for found in types if found.kind == Kind.INTERFACE]
        structs = [found for found in types if found.kind == Kind.STRUCT]
        others = [found for found in types if found not in basics and found not in interfaces and found not in structs]

        for found in basics:
            self._alias(src, found)
        for found in _ordered(interfaces, lambda item: [ref.type_id for ref in item.embedded_interfaces]):
            self._interface(src, found)
        for found in _ordered(structs, lambda item: [ref.type_id for ref in item.struct_fields if not ref.name]):
            self._struct(src, found)
        for found in _ordered(others, self._alias_dependencies):
            if found.kind in (Kind.CHAN, Kind.FUNCTION):
                src.blank(2)
                src.import_from("typing", "Any", "TypeAlias")
                self._docs(src, found.docs, comment=True)
                src.line(f"{self.names[found.type_id]}: TypeAlias = Any")
            else:
                self._alias(src, found)
        if structs:
            src.blank(2)
            for found in structs:
                src.line(f"{self.names[found.type_id]}.model_rebuild()")

    def _model_base(self, src: SourceFile) -> None:
        src.import_from("typing", "Any", "ClassVar")
        src.import_from("pydantic", "BaseModel", "ConfigDict", "SerializerFunctionWrapHandler", "model_serializer")
        with src.block("class Model(BaseModel):"):
            src.docstring_block("Base of every generated model.\n\nFields listed in ``omit_empty`` are dropped from the output when empty.")
            src.blank()
            src.line("model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)")
            src.blank()
            src.line("omit_empty: ClassVar[frozenset[str]] = frozenset()")
            src.blank()
            src.line('@model_serializer(mode="wrap")')
            with src.block("def serialize_omitting_empty(self, handler: SerializerFunctionWrapHandler) -> Any:"):
                src.line("data = handler(self)")
                with src.block("if not self.omit_empty or not isinstance(data, dict):"):
                    src.line("return data")
                with src.block("for name in self.omit_empty:"):
                    src.line("info = type(self).model_fields.get(name)")
                    with src.block("for key in {name, info.alias if info is not None and info.alias else name}:"):
                        with src.block("if key in data and not data[key]:"):
                            src.line("del data[key]")
                src.line("return data")

    def _is_basic_alias(self, found: Type) -> bool:
        if found.kind == Kind.ALIAS:
            return not found.alias_of
        return found.kind is not None and found.kind.value in BUILTIN_ANNOTATIONS

    def _alias_dependencies(self, found: Type) -> list[str]:
        if found.kind == Kind.ARRAY:
            return [found.array_of_id]
        if found.kind == Kind.MAP:
            return [ref.type_id for ref in (found.map_key, found.map_value) if ref is not None]
        if found.kind == Kind.ALIAS:
            return [found.alias_of]
        return []

    def alias_declaration(self, found: Type) -> str:
        """Return the ``TypeAlias`` declaration of ``found`` as text."""

        src = SourceFile("")
        self._alias(src, found)
        return src.body()

    def _alias(self, src: SourceFile, found: Type) -> None:
        src.blank(2)
        src.import_from("typing", "TypeAlias")
        self._docs(src, found.docs, comment=True)
        name = self.names[found.type_id]
        if found.kind == Kind.ALIAS:
            if found.alias_of:
                target = self.type_expr(found.alias_of, src, local=True)
            else:
                underlying = found.underlying_kind.value if found.underlying_kind is not None else ""
                target = self.type_expr(underlying, src, local=True)
        elif found.kind == Kind.ARRAY:
            target = self._list_expr(found.array_of_id, found.is_slice, found.element_pointers, src, True)
        elif found.kind == Kind.MAP and found.map_key is not None and found.map_value is not None:
            key = self.ref_expr(found.map_key, src, local=True)
            target = f"dict[{key}, {self.ref_expr(found.map_value, src, local=True)}]"
        else:
            target = self.type_expr(found.kind.value if found.kind is not None else "", src, local=True)
        src.line(f"{name}: TypeAlias = {target}")

    def _interface(self, src: SourceFile, found: Type) -> None:
        src.blank(2)
        src.import_from("typing", "Protocol")
        bases = [self.names[ref.type_id] for ref in found.embedded_interfaces if ref.type_id in self.names]
        with src.block(f"class {self.names[found.type_id]}({', '.join([*bases, 'Protocol'])}):"):
            if found.docs:
                src.docstring_block("\n".join(found.docs))
            if not found.interface_methods:
                if not found.docs:
                    src.line("pass")
                return
            for function in found.interface_methods:
                params = ["self"]
                for arg in function.args:
                    if arg.is_ellipsis:
                        params.append(f"*{field_name(arg.name)}: {self.element_expr(arg, src, local=True)}")
                    else:
                        params.append(f"{field_name(arg.name)}: {self.ref_expr(arg, src, local=True)}")
                returns = self.results_expr(function.results, src, local=True)
                src.blank()
                if function.docs:
                    with src.block(f"def {function.name}({', '.join(params)}) -> {returns}:"):
                        src.docstring_block("\n".join(function.docs))
                        src.line("...")
                else:
                    src.line(f"def {function.name}({', '.join(params)}) -> {returns}: ...")

    def _struct(self, src: SourceFile, found: Type) -> None:
        src.blank(2)
        name = self.names[found.type_id]
        bases = [self.names[ref.type_id] for ref in found.struct_fields if not ref.name and ref.type_id in self.names]
        specs = [
            self.struct_field_spec(src, found.type_id, struct_field)
            for struct_field in found.struct_fields
            if struct_field.name
        ]
        with src.block(f"class {name}({', '.join(bases) or 'Model'}):"):
            if found.docs:
                src.docstring_block("\n".join(found.docs))
            write_fields(src, specs, empty_comment=None if found.docs else "")

    def _docs(self, src: SourceFile, docs: list[str], *, comment: bool) -> None:
        if docs and comment:
            src.comment("\n".join(docs))


def write_fields(src: SourceFile, specs: list[FieldSpec], *, empty_comment: str | None) -> None:
    """Write model fields, the ``omit_empty`` set, or a placeholder body."""

    omitted = sorted(spec.name for spec in specs if spec.omit_empty)
    if omitted:
        src.import_from("typing", "ClassVar")
        src.blank()
        src.line(f"omit_empty: ClassVar[frozenset[str]] = frozenset({{{', '.join(repr(name) for name in omitted)}}})")
    if specs:
        src.blank()
    for spec in specs:
        for line in spec.comment:
            src.comment(line)
        src.line(f"{spec.name}: {spec.annotation} = {spec.value}")
    if not specs and empty_comment is not None:
        if empty_comment:
            src.comment(empty_comment)
        src.line("pass")


def _optional(expr: str, pointers: int) -> str:
    if pointers and expr != "Any" and not expr.endswith("| None"):
        return f"{expr} | None"
    return expr


def _with_kwargs(default: str, kwargs: list[str]) -> str:
    if default.startswith("Field(") and default.endswith(")"):
        return f"{default[:-1]}, {', '.join(kwargs)})"
    return f"Field({default}, {', '.join(kwargs)})"


def _ordered(items: list[Type], dependencies: Callable[[Type], list[str]]) -> list[Type]:
    """Return ``items`` so that every item follows the items it depends on."""

    by_id = {item.type_id: item for item in items}
    done: set[str] = set()
    out: list[Type] = []

    def visit(item: Type, trail: set[str]) -> None:
        type_id = item.type_id
        if type_id in done or type_id in trail:
            return
        trail.add(type_id)
        for dependency in dependencies(item):
            if dependency in by_id:
                visit(by_id[dependency], trail)
        done.add(type_id)
        out.append(item)

    for item in items:
        visit(item, set())
    return out


__all__ = [
    "FieldSpec",
    "TypeRenderer",
    "WELL_KNOWN_TYPE_IDS",
    "field_name",
    "is_error_type",
    "is_local_package",
    "is_well_known",
    "write_fields",
]
