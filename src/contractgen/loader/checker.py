# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Bind module scopes and evaluate annotations into typed nodes.

Binding never evaluates anything: classes, ``NewType`` declarations and type
aliases become :class:`~contractgen.loader.typesys.TypeName` objects whose
shape is computed on first use, and imports are recorded as bindings that
are followed only when an annotation names them. Special forms of
``typing``, ``collections.abc``, ``builtins`` and friends are recognised by
qualified name without loading their modules.
"""

from __future__ import annotations

import ast
import builtins
import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import Final, Protocol

from ..annotations import parse_comment_block, parse_docstring
from ..model.kinds import ChanDirection, Kind
from .files import ParsedFile
from .typesys import (
    INVALID,
    NONE,
    Alias,
    Array,
    Basic,
    Chan,
    ClassFlavor,
    Func,
    Interface,
    Map,
    Named,
    NamedDefinition,
    Param,
    ParamKind,
    Pointer,
    Signature,
    Slice,
    Struct,
    StructMember,
    Tuple,
    TypeName,
    TypeNode,
    unalias,
)

LOGGER = logging.getLogger(__name__)

MAX_REEXPORT_DEPTH: Final[int] = 16


class Form:
    """Names of the special forms the evaluator understands."""

    OPTIONAL: Final[str] = "optional"
    UNION: Final[str] = "union"
    LIST: Final[str] = "list"
    TUPLE: Final[str] = "tuple"
    DICT: Final[str] = "dict"
    RECV: Final[str] = "recv"
    GENERATOR: Final[str] = "generator"
    QUEUE: Final[str] = "queue"
    CALLABLE: Final[str] = "callable"
    ANNOTATED: Final[str] = "annotated"
    WRAPPER: Final[str] = "wrapper"
    CLASSVAR: Final[str] = "classvar"
    LITERAL: Final[str] = "literal"
    ANY: Final[str] = "any"
    NEVER: Final[str] = "never"
    PROTOCOL: Final[str] = "protocol"
    GENERIC: Final[str] = "generic"
    ABC: Final[str] = "abc"
    ENUM: Final[str] = "enum"
    NAMEDTUPLE: Final[str] = "namedtuple"
    TYPEDDICT: Final[str] = "typeddict"
    MODEL: Final[str] = "model"
    NEWTYPE: Final[str] = "newtype"
    TYPEVAR: Final[str] = "typevar"
    TYPEALIAS: Final[str] = "typealias"
    FIELD: Final[str] = "field"


def _qualified(modules: Iterable[str], names: Iterable[str], form: str) -> dict[str, str]:
    names = tuple(names)
    return {f"{module}.{name}": form for module in modules for name in names}


_TYPING: Final[tuple[str, ...]] = ("typing", "typing_extensions")
_ABC: Final[tuple[str, ...]] = ("collections.abc", "_collections_abc", "typing")

SPECIAL_FORMS: Final[dict[str, str]] = {
    **_qualified(_TYPING, ("Optional",), Form.OPTIONAL),
    **_qualified(_TYPING, ("Union",), Form.UNION),
    **_qualified(_TYPING, ("List", "Set", "FrozenSet", "Deque"), Form.LIST),
    **_qualified(("builtins",), ("list", "set", "frozenset"), Form.LIST),
    **_qualified(("collections",), ("deque",), Form.LIST),
    **_qualified(
        _ABC,
        ("Sequence", "MutableSequence", "Set", "AbstractSet", "MutableSet", "Iterable", "Collection", "Reversible"),
        Form.LIST,
    ),
    **_qualified(_TYPING, ("Tuple",), Form.TUPLE),
    **_qualified(("builtins",), ("tuple",), Form.TUPLE),
    **_qualified(_TYPING, ("Dict", "DefaultDict", "OrderedDict"), Form.DICT),
    **_qualified(("builtins",), ("dict",), Form.DICT),
    **_qualified(("collections",), ("defaultdict", "OrderedDict"), Form.DICT),
    **_qualified(_ABC, ("Mapping", "MutableMapping"), Form.DICT),
    **_qualified(_ABC, ("Iterator", "AsyncIterator", "AsyncIterable", "AsyncGenerator"), Form.RECV),
    **_qualified(_ABC, ("Generator",), Form.GENERATOR),
    **_qualified(("asyncio", "asyncio.queues", "queue"), ("Queue",), Form.QUEUE),
    **_qualified(_ABC, ("Callable",), Form.CALLABLE),
    **_qualified(_TYPING, ("Annotated",), Form.ANNOTATED),
    **_qualified(_TYPING, ("Final", "Required", "NotRequired", "ReadOnly", "Awaitable"), Form.WRAPPER),
    **_qualified(("collections.abc", "_collections_abc"), ("Awaitable",), Form.WRAPPER),
    **_qualified(_TYPING, ("ClassVar",), Form.CLASSVAR),
    **_qualified(_TYPING, ("Literal",), Form.LITERAL),
    **_qualified(_TYPING, ("Any", "Type", "LiteralString", "Self"), Form.ANY),
    **_qualified(("builtins",), ("object", "type", "complex"), Form.ANY),
    **_qualified(_TYPING, ("NoReturn", "Never"), Form.NEVER),
    **_qualified(_TYPING, ("Protocol",), Form.PROTOCOL),
    **_qualified(_TYPING, ("Generic",), Form.GENERIC),
    **_qualified(("abc",), ("ABC",), Form.ABC),
    **_qualified(("abc",), ("ABCMeta",), Form.ABC),
    **_qualified(("enum",), ("Enum", "IntEnum", "StrEnum", "Flag", "IntFlag", "ReprEnum"), Form.ENUM),
    **_qualified(_TYPING, ("NamedTuple",), Form.NAMEDTUPLE),
    **_qualified(_TYPING, ("TypedDict",), Form.TYPEDDICT),
    **_qualified(("pydantic", "pydantic.main"), ("BaseModel",), Form.MODEL),
    **_qualified(_TYPING, ("NewType",), Form.NEWTYPE),
    **_qualified(_TYPING, ("TypeVar", "ParamSpec", "TypeVarTuple"), Form.TYPEVAR),
    **_qualified(_TYPING, ("TypeAlias",), Form.TYPEALIAS),
    **_qualified(("dataclasses", "attrs", "msgspec"), ("field",), Form.FIELD),
    **_qualified(("attr",), ("ib", "attrib", "field"), Form.FIELD),
    **_qualified(("pydantic", "pydantic.fields"), ("Field",), Form.FIELD),
}

BASIC_TYPES: Final[dict[str, Kind]] = {
    "builtins.str": Kind.STRING,
    "builtins.int": Kind.INT,
    "builtins.float": Kind.FLOAT64,
    "builtins.bool": Kind.BOOL,
    **{f"numpy.{name}": Kind(name) for name in ("int8", "int16", "int32", "int64", "uint8", "uint16", "uint32", "uint64")},
    "numpy.float32": Kind.FLOAT32,
    "numpy.float64": Kind.FLOAT64,
    "numpy.bool_": Kind.BOOL,
    "numpy.str_": Kind.STRING,
    "numpy.byte": Kind.INT8,
    "numpy.ubyte": Kind.UINT8,
    "numpy.intp": Kind.INT64,
    "numpy.uintp": Kind.UINT64,
    **{f"ctypes.c_{name}": Kind(name) for name in ("int8", "int16", "int32", "int64", "uint8", "uint16", "uint32", "uint64")},
    "ctypes.c_byte": Kind.INT8,
    "ctypes.c_ubyte": Kind.UINT8,
    "ctypes.c_short": Kind.INT16,
    "ctypes.c_ushort": Kind.UINT16,
    "ctypes.c_int": Kind.INT32,
    "ctypes.c_uint": Kind.UINT32,
    "ctypes.c_long": Kind.INT64,
    "ctypes.c_ulong": Kind.UINT64,
    "ctypes.c_longlong": Kind.INT64,
    "ctypes.c_ulonglong": Kind.UINT64,
    "ctypes.c_size_t": Kind.UINT,
    "ctypes.c_ssize_t": Kind.INT,
    "ctypes.c_float": Kind.FLOAT32,
    "ctypes.c_double": Kind.FLOAT64,
    "ctypes.c_bool": Kind.BOOL,
    "ctypes.c_char": Kind.BYTE,
    "ctypes.c_wchar": Kind.RUNE,
}

BYTES_TYPES: Final[frozenset[str]] = frozenset({"builtins.bytes", "builtins.bytearray", "builtins.memoryview"})

INT_ENUM_BASES: Final[frozenset[str]] = frozenset({"enum.IntEnum", "enum.IntFlag", "enum.Flag"})
STR_ENUM_BASES: Final[frozenset[str]] = frozenset({"enum.StrEnum"})

# Modules whose members are only ever referenced, never loaded.
OPAQUE_MODULES: Final[frozenset[str]] = frozenset(
    {
        "abc",
        "asyncio",
        "contextvars",
        "ctypes",
        "dataclasses",
        "datetime",
        "decimal",
        "enum",
        "fractions",
        "io",
        "ipaddress",
        "numpy",
        "pathlib",
        "pydantic",
        "pydantic_core",
        "uuid",
    }
)

NON_INTERFACE_METHODS: Final[frozenset[str]] = frozenset(
    {
        "__init__",
        "__new__",
        "__init_subclass__",
        "__class_getitem__",
        "__subclasshook__",
        "__post_init__",
        "__slots__",
    }
)

_ALIAS_VALUE_TYPES: Final[tuple[type[ast.expr], ...]] = (ast.Subscript, ast.BinOp, ast.Name, ast.Attribute)
_DECLARATION_CALLS: Final[frozenset[str]] = frozenset({"NewType", "TypeVar", "ParamSpec", "TypeVarTuple"})
_ELEMENT_FORMS: Final[frozenset[str]] = frozenset(
    {
        Form.OPTIONAL,
        Form.LIST,
        Form.DICT,
        Form.RECV,
        Form.GENERATOR,
        Form.QUEUE,
        Form.ANNOTATED,
        Form.WRAPPER,
        Form.CLASSVAR,
    }
)


@dataclass(frozen=True, slots=True)
class SpecialSymbol:
    """A name recognised by qualified name instead of by loading it."""

    qualname: str

    @property
    def form(self) -> str:
        return SPECIAL_FORMS.get(self.qualname, "")


@dataclass(frozen=True, slots=True)
class ModuleRef:
    """A reference to a module that is followed only on attribute access."""

    path: str


@dataclass(eq=False, slots=True)
class ImportBinding:
    """A name bound by an import statement; ``name`` is ``None`` for modules."""

    module: str
    name: str | None = None


@dataclass(eq=False, slots=True)
class ValueDecl:
    """A module-level variable."""

    name: str
    pkg_path: str
    node: ast.stmt
    value: ast.expr | None = None
    annotation: ast.expr | None = None


class Importer(Protocol):
    """What the checker needs from the loader to follow imports."""

    def module(self, path: str) -> Package | None:
        """Return the fully bound module ``path`` or ``None`` when absent."""

    def exists(self, path: str) -> bool:
        """Return ``True`` when ``path`` resolves to a source file."""

    def opaque(self, module: str, name: str) -> TypeName:
        """Return the shared opaque declaration for ``module.name``."""

    def builtin(self, name: str) -> TypeName | None:
        """Return the declaration for builtin ``name`` when it is a class."""


@dataclass(eq=False)
class Package:
    """A bound module scope.

    Attributes:
        path: Dotted module path.
        files: Parsed source files (one, or none for stubs).
        scope: Names bound at module level.
        order: Declaration order of ``scope``.
        star_imports: Modules imported with ``from x import *``.
        imports: Import alias map (local name to dotted module).
        is_stub: ``True`` for placeholders of modules that were not loaded.
        is_package: ``True`` when bound from an ``__init__`` file.
        soft_errors: Problems found while binding that did not stop it.
    """

    path: str
    importer: Importer | None = None
    files: list[ParsedFile] = field(default_factory=list)
    scope: dict[str, object] = field(default_factory=dict)
    order: list[str] = field(default_factory=list)
    star_imports: list[str] = field(default_factory=list)
    imports: dict[str, str] = field(default_factory=dict)
    is_stub: bool = False
    is_package: bool = False
    soft_errors: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.evaluator = TypeEvaluator(self)

    @property
    def name(self) -> str:
        return self.path.rpartition(".")[2]

    @property
    def docstring(self) -> str | None:
        for parsed in self.files:
            doc = parsed.docstring
            if doc:
                return doc
        return None

    def define(self, name: str, obj: object) -> None:
        if name in self.scope:
            return
        self.scope[name] = obj
        self.order.append(name)

    def lookup(self, name: str, _seen: set[str] | None = None) -> object | None:
        """Return the object bound to ``name`` here or through star imports."""

        found = self.scope.get(name)
        if found is not None or self.importer is None or name.startswith("_"):
            return found
        seen = _seen if _seen is not None else {self.path}
        for module in self.star_imports:
            if module in seen:
                continue
            seen.add(module)
            other = self.importer.module(module)
            if other is None:
                continue
            found = other.lookup(name, seen)
            if found is not None:
                return found
        return None

    def type_names(self) -> list[TypeName]:
        """Return the classes, ``NewType`` declarations and aliases in order."""

        return [obj for name in self.order if isinstance(obj := self.scope[name], TypeName)]

    def classes(self) -> list[TypeName]:
        """Return the classes defined in this module, in source order."""

        return [obj for obj in self.type_names() if isinstance(obj.node, ast.ClassDef)]

    def function(self, name: str) -> Func | None:
        found = self.scope.get(name)
        return found if isinstance(found, Func) else None

    def has_value(self, name: str) -> bool:
        return isinstance(self.scope.get(name), ValueDecl)


def stub_package(path: str, importer: Importer | None = None) -> Package:
    """Return an empty placeholder for a module that was not materialized."""

    return Package(path=path, importer=importer, is_stub=True)


def resolve_member(importer: Importer, module: str, name: str, depth: int = 0) -> object | None:
    """Resolve ``module.name`` following re-exports.

    Returns:
        object | None: A :class:`SpecialSymbol`, :class:`ModuleRef`,
        :class:`TypeName`, :class:`Func` or :class:`ValueDecl`. Members of
        modules that cannot be located resolve to an opaque declaration.
    """

    qualname = f"{module}.{name}"
    if qualname in SPECIAL_FORMS or qualname in BASIC_TYPES or qualname in BYTES_TYPES:
        return SpecialSymbol(qualname)
    if module == "builtins":
        return importer.builtin(name)
    if module.split(".", 1)[0] in OPAQUE_MODULES or depth > MAX_REEXPORT_DEPTH:
        return importer.opaque(module, name)
    package = importer.module(module)
    if package is None:
        if importer.exists(qualname):
            return ModuleRef(qualname)
        return importer.opaque(module, name)
    found = package.lookup(name)
    if found is None:
        if importer.exists(qualname):
            return ModuleRef(qualname)
        LOGGER.debug("%s has no member %s", module, name)
        return importer.opaque(module, name)
    if isinstance(found, ImportBinding):
        if found.name is None:
            return ModuleRef(found.module)
        return resolve_member(importer, found.module, found.name, depth + 1)
    return found


def union_of(members: Sequence[TypeNode]) -> TypeNode:
    """Fold union members: ``T | None`` becomes a pointer, mixed unions ``any``."""

    has_none = False
    distinct: dict[str, TypeNode] = {}
    for member in members:
        if member is NONE:
            has_none = True
            continue
        distinct.setdefault(member.type_string(), member)
    if not distinct:
        return NONE
    core = next(iter(distinct.values())) if len(distinct) == 1 else Basic(Kind.ANY)
    return optional_of(core) if has_none else core


def optional_of(node: TypeNode) -> TypeNode:
    if isinstance(node, Pointer) or node is NONE:
        return node
    return Pointer(node)


def is_ellipsis(expr: ast.expr | None) -> bool:
    return isinstance(expr, ast.Constant) and expr.value is Ellipsis


def subscript_args(expr: ast.Subscript) -> list[ast.expr]:
    inner = expr.slice
    if isinstance(inner, ast.Tuple):
        return list(inner.elts)
    return [inner]


def decorator_names(node: ast.FunctionDef | ast.AsyncFunctionDef | ast.ClassDef) -> set[str]:
    """Return the trailing names of every decorator on ``node``."""

    names: set[str] = set()
    for decorator in node.decorator_list:
        target = decorator.func if isinstance(decorator, ast.Call) else decorator
        if isinstance(target, ast.Name):
            names.add(target.id)
        elif isinstance(target, ast.Attribute):
            names.add(target.attr)
    return names


def referenced_names(nodes: Iterable[ast.AST]) -> set[str]:
    """Return the root names referenced by annotation-like expressions."""

    found: set[str] = set()
    for node in nodes:
        for child in ast.walk(node):
            if isinstance(child, ast.Name):
                found.add(child.id)
            elif isinstance(child, ast.Constant) and isinstance(child.value, str):
                try:
                    parsed = ast.parse(child.value, mode="eval")
                except SyntaxError:
                    continue
                found.update(item.id for item in ast.walk(parsed) if isinstance(item, ast.Name))
    return found


class TypeEvaluator:
    """Evaluate annotation expressions in the scope of one module."""

    def __init__(self, package: Package) -> None:
        self.package = package

    @property
    def importer(self) -> Importer | None:
        return self.package.importer

    def symbol(self, expr: ast.expr | None) -> object | None:
        """Return the object an expression names (the origin for subscripts)."""

        if isinstance(expr, ast.Name):
            return self.lookup_name(expr.id)
        if isinstance(expr, ast.Attribute):
            return self.member(self.symbol(expr.value), expr.attr)
        if isinstance(expr, ast.Subscript):
            return self.symbol(expr.value)
        return None

    def lookup_name(self, name: str) -> object | None:
        local_qualname = f"{self.package.path}.{name}"
        if local_qualname in SPECIAL_FORMS or local_qualname in BASIC_TYPES:
            return SpecialSymbol(local_qualname)
        found = self.package.lookup(name)
        if found is None:
            if hasattr(builtins, name):
                builtin_qualname = f"builtins.{name}"
                if builtin_qualname in SPECIAL_FORMS or builtin_qualname in BASIC_TYPES or builtin_qualname in BYTES_TYPES:
                    return SpecialSymbol(builtin_qualname)
                if self.importer is not None:
                    return self.importer.builtin(name)
            return None
        return self.follow(found)

    def follow(self, found: object) -> object | None:
        if not isinstance(found, ImportBinding):
            return found
        if found.name is None:
            return ModuleRef(found.module)
        if self.importer is None:
            qualname = f"{found.module}.{found.name}"
            return SpecialSymbol(qualname) if qualname in SPECIAL_FORMS or qualname in BASIC_TYPES else None
        return resolve_member(self.importer, found.module, found.name)

    def member(self, base: object | None, attr: str) -> object | None:
        if isinstance(base, (ModuleRef, Package)):
            if self.importer is None:
                qualname = f"{base.path}.{attr}"
                return SpecialSymbol(qualname) if qualname in SPECIAL_FORMS or qualname in BASIC_TYPES else None
            return resolve_member(self.importer, base.path, attr)
        return None

    def symbol_type(self, symbol: object | None) -> TypeNode:
        """Return the type denoted by a bare (unsubscripted) symbol."""

        if isinstance(symbol, TypeName):
            return symbol.type
        if not isinstance(symbol, SpecialSymbol):
            return INVALID
        qualname = symbol.qualname
        if qualname in BASIC_TYPES:
            return Basic(BASIC_TYPES[qualname])
        if qualname in BYTES_TYPES:
            return Slice(Basic(Kind.BYTE))
        form = symbol.form
        if form in (Form.LIST, Form.TUPLE):
            return Slice(Basic(Kind.ANY))
        if form == Form.DICT:
            return Map(Basic(Kind.ANY), Basic(Kind.ANY))
        if form in (Form.RECV, Form.GENERATOR):
            return Chan(Basic(Kind.ANY), ChanDirection.RECV)
        if form == Form.QUEUE:
            return Chan(Basic(Kind.ANY), ChanDirection.BOTH)
        if form == Form.CALLABLE:
            return Signature([Param("args", Basic(Kind.ANY), ParamKind.VAR_POSITIONAL)], None)
        if form == Form.ANY:
            return Basic(Kind.ANY)
        if form == Form.NEVER:
            return NONE
        return INVALID

    def evaluate(self, expr: ast.expr | None) -> TypeNode:
        """Evaluate an annotation expression."""

        if expr is None:
            return INVALID
        if isinstance(expr, ast.Constant):
            if expr.value is None:
                return NONE
            if isinstance(expr.value, str):
                return self.evaluate_string(expr.value)
            return INVALID
        if isinstance(expr, ast.BinOp) and isinstance(expr.op, ast.BitOr):
            return union_of([self.evaluate(expr.left), self.evaluate(expr.right)])
        if isinstance(expr, ast.Subscript):
            return self._apply(self.symbol(expr.value), subscript_args(expr))
        if isinstance(expr, (ast.Name, ast.Attribute)):
            return self.symbol_type(self.symbol(expr))
        return INVALID

    def evaluate_string(self, text: str) -> TypeNode:
        try:
            parsed = ast.parse(text.strip(), mode="eval")
        except SyntaxError:
            return INVALID
        return self.evaluate(parsed.body)

    def _apply(self, origin: object | None, args: list[ast.expr]) -> TypeNode:
        if isinstance(origin, TypeName):
            return origin.type
        if not isinstance(origin, SpecialSymbol):
            return INVALID
        form = origin.form
        if form == Form.TUPLE:
            return self._tuple(args)
        if form == Form.CALLABLE:
            return self._callable(args)
        if form == Form.LITERAL:
            return _literal_type(args)
        if form == Form.UNION:
            return union_of([self.evaluate(arg) for arg in args])
        if form == Form.ANY:
            return Basic(Kind.ANY)
        if form not in _ELEMENT_FORMS:
            return self.symbol_type(origin)
        first = self.evaluate(args[0]) if args else Basic(Kind.ANY)
        if form == Form.OPTIONAL:
            return optional_of(first)
        if form == Form.LIST:
            return Slice(first)
        if form == Form.DICT:
            if len(args) < 2:
                return Map(Basic(Kind.ANY), Basic(Kind.ANY))
            return Map(first, self.evaluate(args[1]))
        if form == Form.RECV:
            return Chan(first, ChanDirection.RECV)
        if form == Form.GENERATOR:
            sent = self.evaluate(args[1]) if len(args) > 1 else NONE
            if first is NONE and sent is not NONE:
                return Chan(sent, ChanDirection.SEND)
            return Chan(first, ChanDirection.RECV)
        if form == Form.QUEUE:
            return Chan(first, ChanDirection.BOTH)
        return first

    def _tuple(self, args: list[ast.expr]) -> TypeNode:
        if not args or (len(args) == 1 and isinstance(args[0], ast.Tuple) and not args[0].elts):
            return Slice(Basic(Kind.ANY))
        if len(args) == 2 and is_ellipsis(args[1]):
            return Slice(self.evaluate(args[0]))
        elems = [self.evaluate(arg) for arg in args]
        strings = {elem.type_string() for elem in elems}
        if len(strings) == 1 and elems[0] is not INVALID:
            return Array(elems[0], len(elems))
        return Tuple(elems)

    def _callable(self, args: list[ast.expr]) -> TypeNode:
        if not args:
            return self.symbol_type(SpecialSymbol("typing.Callable"))
        params_expr = args[0]
        if isinstance(params_expr, ast.List):
            params = [Param(f"arg{index}", self.evaluate(item)) for index, item in enumerate(params_expr.elts)]
        else:
            params = [Param("args", Basic(Kind.ANY), ParamKind.VAR_POSITIONAL)]
        result = self.evaluate(args[1]) if len(args) > 1 else INVALID
        results = [] if result is NONE else [Param("", result)]
        return Signature(params, results)

    def is_form(self, expr: ast.expr | None, form: str) -> bool:
        symbol = self.symbol(expr)
        return isinstance(symbol, SpecialSymbol) and symbol.form == form

    # -- signatures -----------------------------------------------------------------

    def signature_of(
        self,
        node: ast.FunctionDef | ast.AsyncFunctionDef,
        *,
        skip_first: bool,
        parsed: ParsedFile | None = None,
    ) -> Signature:
        """Build the signature of a function definition."""

        arguments = node.args
        positional = [*arguments.posonlyargs, *arguments.args]
        defaults_start = len(positional) - len(arguments.defaults)
        params: list[Param] = []
        for index, arg in enumerate(positional):
            if index == 0 and skip_first:
                continue
            params.append(
                Param(
                    arg.arg,
                    self.evaluate(arg.annotation),
                    ParamKind.POSITIONAL,
                    has_default=index >= defaults_start,
                    comments=_param_comments(arg, node, parsed),
                )
            )
        if arguments.vararg is not None:
            vararg = arguments.vararg
            params.append(
                Param(
                    vararg.arg,
                    self.evaluate(vararg.annotation),
                    ParamKind.VAR_POSITIONAL,
                    comments=_param_comments(vararg, node, parsed),
                )
            )
        for arg, default in zip(arguments.kwonlyargs, arguments.kw_defaults):
            params.append(
                Param(
                    arg.arg,
                    self.evaluate(arg.annotation),
                    ParamKind.KEYWORD,
                    has_default=default is not None,
                    comments=_param_comments(arg, node, parsed),
                )
            )
        if arguments.kwarg is not None:
            params.append(Param(arguments.kwarg.arg, self.evaluate(arguments.kwarg.annotation), ParamKind.VAR_KEYWORD))
        return Signature(params, self.results_of(node.returns), is_async=isinstance(node, ast.AsyncFunctionDef))

    def results_of(self, returns: ast.expr | None) -> list[Param] | None:
        """Split a return annotation into result slots.

        ``None`` (no annotation) means unknown; ``-> None`` means no results;
        a fixed ``tuple[...]`` yields one slot per element.
        """

        if returns is None:
            return None
        expr = returns
        if isinstance(expr, ast.Constant) and isinstance(expr.value, str):
            try:
                expr = ast.parse(expr.value.strip(), mode="eval").body
            except SyntaxError:
                return [Param("", INVALID)]
        if isinstance(expr, ast.Subscript) and self.is_form(expr.value, Form.TUPLE):
            args = subscript_args(expr)
            if len(args) >= 2 and not is_ellipsis(args[1]):
                return [self._result(arg) for arg in args]
        result = self._result(expr)
        if result.type is NONE:
            return []
        return [result]

    def _result(self, expr: ast.expr) -> Param:
        name = ""
        if isinstance(expr, ast.Subscript) and self.is_form(expr.value, Form.ANNOTATED):
            args = subscript_args(expr)
            for extra in args[1:]:
                if isinstance(extra, ast.Constant) and isinstance(extra.value, str) and extra.value.isidentifier():
                    name = extra.value
                    break
        return Param(name, self.evaluate(expr))

    # -- class definitions ----------------------------------------------------------

    def define_class(self, obj: TypeName, node: ast.ClassDef, parsed: ParsedFile | None) -> NamedDefinition:
        """Compute the shape of a class declaration."""

        markers: set[str] = set()
        bases: list[Named] = []
        container: TypeNode | None = None
        mixin: Kind | None = None
        for base_expr in node.bases:
            symbol = self.symbol(base_expr)
            if isinstance(symbol, SpecialSymbol):
                form = symbol.form
                if form in (Form.LIST, Form.DICT, Form.TUPLE):
                    container = self.evaluate(base_expr)
                elif symbol.qualname in BASIC_TYPES:
                    mixin = BASIC_TYPES[symbol.qualname]
                elif form:
                    markers.add(form)
                if symbol.qualname in INT_ENUM_BASES:
                    mixin = Kind.INT
                elif symbol.qualname in STR_ENUM_BASES:
                    mixin = Kind.STRING
                continue
            base = unalias(self.symbol_type(symbol))
            if isinstance(base, Named):
                bases.append(base)
        for keyword in node.keywords:
            if keyword.arg == "metaclass" and self.is_form(keyword.value, Form.ABC):
                markers.add(Form.ABC)

        methods = self._methods(node, parsed)
        fields = self._fields(node, parsed)
        docs, _ = parse_docstring(ast.get_docstring(node))
        is_exception = any(base.is_exception for base in bases)
        definition = NamedDefinition(
            underlying=INVALID,
            flavor=ClassFlavor.STRUCT,
            bases=list(bases),
            methods=methods,
            is_exception=is_exception,
            docs=docs,
            docstring=ast.get_docstring(node),
        )

        base_flavors = [base.flavor for base in bases]
        if Form.ENUM in markers or ClassFlavor.ENUM in base_flavors:
            definition.flavor = ClassFlavor.ENUM
            definition.underlying = Basic(mixin or self._inherited_enum_kind(bases) or _enum_member_kind(node))
        elif Form.PROTOCOL in markers or self._is_abstract_interface(methods, fields, bases, markers, is_exception):
            definition.flavor = ClassFlavor.INTERFACE
            embedded: list[TypeNode] = [base for base in bases if base.flavor == ClassFlavor.INTERFACE]
            own = [method for name, method in methods.items() if name not in NON_INTERFACE_METHODS]
            if Form.PROTOCOL not in markers:
                own = [method for method in own if method.is_abstract]
            definition.underlying = Interface(own, embedded)
        elif container is not None:
            definition.flavor = ClassFlavor.CONTAINER
            definition.underlying = container
        elif mixin is not None and not fields and not is_exception:
            definition.flavor = ClassFlavor.NEWTYPE
            definition.underlying = Basic(mixin)
            definition.newtype_base = definition.underlying
        else:
            members = [
                StructMember("", base, embedded=True) for base in bases if base.flavor == ClassFlavor.STRUCT
            ]
            definition.underlying = Struct([*members, *fields])
        return definition

    def define_newtype(self, base_expr: ast.expr | None) -> NamedDefinition:
        base = self.evaluate(base_expr)
        named = unalias(base)
        return NamedDefinition(
            underlying=base,
            flavor=ClassFlavor.NEWTYPE,
            bases=[named] if isinstance(named, Named) else [],
            is_exception=isinstance(named, Named) and named.is_exception,
            newtype_base=base,
        )

    def _is_abstract_interface(
        self,
        methods: dict[str, Func],
        fields: list[StructMember],
        bases: list[Named],
        markers: set[str],
        is_exception: bool,
    ) -> bool:
        """Return ``True`` for ABC-style classes that only declare behaviour.

        A class qualifies when it has no fields, declares at least one
        abstract method and either uses ``ABC``/``ABCMeta``, declares nothing
        but abstract methods, or extends interfaces only.
        """

        if is_exception or fields:
            return False
        own = [method for name, method in methods.items() if name not in NON_INTERFACE_METHODS]
        if not any(method.is_abstract for method in own):
            return False
        if Form.ABC in markers or all(method.is_abstract for method in own):
            return True
        return bool(bases) and all(base.flavor == ClassFlavor.INTERFACE for base in bases)

    def _inherited_enum_kind(self, bases: list[Named]) -> Kind | None:
        for base in bases:
            underlying = base.underlying
            if base.flavor == ClassFlavor.ENUM and isinstance(underlying, Basic):
                return underlying.kind
        return None

    def _methods(self, node: ast.ClassDef, parsed: ParsedFile | None) -> dict[str, Func]:
        methods: dict[str, Func] = {}
        file_path = str(parsed.path) if parsed is not None else ""
        for stmt in node.body:
            if not isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                continue
            names = decorator_names(stmt)
            if "overload" in names or names & {"setter", "deleter"}:
                continue
            is_static = "staticmethod" in names
            func = Func(
                name=stmt.name,
                pkg_path=self.package.path,
                node=stmt,
                resolve_signature=partial(self.signature_of, stmt, skip_first=not is_static, parsed=parsed),
                is_property=bool(names & {"property", "cached_property"}),
                is_abstract=bool(names & {"abstractmethod", "abstractproperty"}),
                is_static=is_static,
                docstring=ast.get_docstring(stmt),
                file_path=file_path,
            )
            methods[stmt.name] = func
        return methods

    def _fields(self, node: ast.ClassDef, parsed: ParsedFile | None) -> list[StructMember]:
        fields: list[StructMember] = []
        body = node.body
        previous_end = node.lineno
        for index, stmt in enumerate(body):
            if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
                name = stmt.target.id
                if not name.startswith("_") and not self.is_form(stmt.annotation, Form.CLASSVAR):
                    fields.append(
                        StructMember(
                            name=name,
                            type=self.evaluate(stmt.annotation),
                            tags=self._field_tags(stmt.value),
                            docs=_field_docs(stmt, body, index, parsed, previous_end),
                        )
                    )
            previous_end = getattr(stmt, "end_lineno", None) or stmt.lineno
        return fields

    def _field_tags(self, value: ast.expr | None) -> dict[str, list[str]]:
        if not isinstance(value, ast.Call) or not self.is_form(value.func, Form.FIELD):
            return {}
        tags: dict[str, list[str]] = {}
        for keyword in value.keywords:
            if keyword.arg == "metadata" and isinstance(keyword.value, ast.Dict):
                for key, item in zip(keyword.value.keys, keyword.value.values):
                    if _is_str(key) and _is_str(item):
                        tags[key.value] = [part.strip() for part in item.value.split(",")]
            elif keyword.arg in ("alias", "serialization_alias") and _is_str(keyword.value):
                tags["json"] = [keyword.value.value]
            elif keyword.arg == "exclude" and isinstance(keyword.value, ast.Constant) and keyword.value.value is True:
                tags["json"] = ["-"]
        return tags


def _is_str(node: ast.expr | None) -> bool:
    return isinstance(node, ast.Constant) and isinstance(node.value, str)


def _literal_type(args: list[ast.expr]) -> TypeNode:
    for arg in args:
        if isinstance(arg, ast.Constant):
            value = arg.value
            if isinstance(value, bool):
                return Basic(Kind.BOOL)
            if isinstance(value, int):
                return Basic(Kind.INT)
            if isinstance(value, str):
                return Basic(Kind.STRING)
            if isinstance(value, float):
                return Basic(Kind.FLOAT64)
    return Basic(Kind.ANY)


def _enum_member_kind(node: ast.ClassDef) -> Kind:
    for stmt in node.body:
        if not isinstance(stmt, ast.Assign) or len(stmt.targets) != 1:
            continue
        target = stmt.targets[0]
        if not isinstance(target, ast.Name) or target.id.startswith("_"):
            continue
        value = stmt.value
        if isinstance(value, ast.Constant):
            if isinstance(value.value, bool):
                return Kind.BOOL
            if isinstance(value.value, str):
                return Kind.STRING
            if isinstance(value.value, float):
                return Kind.FLOAT64
            return Kind.INT
        return Kind.INT
    return Kind.INT


def _param_comments(
    arg: ast.arg,
    node: ast.FunctionDef | ast.AsyncFunctionDef,
    parsed: ParsedFile | None,
) -> list[str]:
    if parsed is None or arg.lineno == node.lineno:
        return []
    lines = parsed.comment_block_above(arg.lineno, floor=node.lineno)
    inline = parsed.comments.get(arg.lineno)
    if inline is not None and arg.lineno not in parsed.standalone:
        lines.append(inline)
    return lines


def _field_docs(
    stmt: ast.AnnAssign,
    body: list[ast.stmt],
    index: int,
    parsed: ParsedFile | None,
    previous_end: int,
) -> list[str]:
    docs: list[str] = []
    if parsed is not None:
        above, _ = parse_comment_block(parsed.comment_block_above(stmt.lineno, floor=previous_end))
        docs.extend(above)
        inline = parsed.comments.get(stmt.lineno)
        if inline is not None and stmt.lineno not in parsed.standalone:
            docs.extend(parse_comment_block([inline])[0])
    if index + 1 < len(body):
        following = body[index + 1]
        if isinstance(following, ast.Expr) and _is_str(following.value):
            docs.extend(parse_docstring(following.value.value)[0])
    return docs


class ScopeBuilder:
    """Populate a :class:`Package` scope from parsed files."""

    def __init__(self, package: Package) -> None:
        self.package = package
        self.evaluator = package.evaluator

    def bind(self, parsed: ParsedFile) -> None:
        self.package.files.append(parsed)
        if parsed.is_package_init:
            self.package.is_package = True
        self._bind_statements(parsed.tree.body, parsed)

    def _bind_statements(self, statements: Iterable[ast.stmt], parsed: ParsedFile) -> None:
        for stmt in statements:
            try:
                self._bind_statement(stmt, parsed)
            except (RecursionError, ValueError) as exc:
                message = f"{parsed.path}:{getattr(stmt, 'lineno', 0)}: {exc}"
                LOGGER.debug("soft binding failure in %s", message)
                self.package.soft_errors.append(message)

    def _bind_statement(self, stmt: ast.stmt, parsed: ParsedFile) -> None:
        package = self.package
        file_path = str(parsed.path)
        if isinstance(stmt, ast.ClassDef):
            obj = TypeName(stmt.name, package.path, node=stmt, file_path=file_path)
            obj.type = Named(obj, partial(self.evaluator.define_class, obj, stmt, parsed))
            package.define(stmt.name, obj)
        elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            package.define(
                stmt.name,
                Func(
                    name=stmt.name,
                    pkg_path=package.path,
                    node=stmt,
                    resolve_signature=partial(self.evaluator.signature_of, stmt, skip_first=False, parsed=parsed),
                    docstring=ast.get_docstring(stmt),
                    file_path=file_path,
                ),
            )
        elif isinstance(stmt, ast.Import):
            for alias in stmt.names:
                if alias.asname:
                    package.define(alias.asname, ImportBinding(alias.name))
                    package.imports[alias.asname] = alias.name
                else:
                    top = alias.name.split(".", 1)[0]
                    package.define(top, ImportBinding(top))
                    package.imports[alias.name] = alias.name
        elif isinstance(stmt, ast.ImportFrom):
            module = self._absolute_module(stmt)
            for alias in stmt.names:
                if alias.name == "*":
                    if module not in package.star_imports:
                        package.star_imports.append(module)
                    continue
                local = alias.asname or alias.name
                package.define(local, ImportBinding(module, alias.name))
                package.imports[local] = f"{module}.{alias.name}"
        elif isinstance(stmt, ast.Assign):
            if len(stmt.targets) == 1 and isinstance(stmt.targets[0], ast.Name):
                self._bind_assign(stmt.targets[0].id, stmt, stmt.value, None, parsed)
        elif isinstance(stmt, ast.AnnAssign):
            if isinstance(stmt.target, ast.Name):
                self._bind_assign(stmt.target.id, stmt, stmt.value, stmt.annotation, parsed)
        elif _is_type_alias_statement(stmt):
            name = stmt.name.id
            obj = TypeName(name, package.path, node=stmt, file_path=file_path)
            obj.type = Alias(obj, partial(self.evaluator.evaluate, stmt.value))
            package.define(name, obj)
        elif isinstance(stmt, ast.If):
            self._bind_statements(stmt.body, parsed)
            self._bind_statements(stmt.orelse, parsed)
        elif isinstance(stmt, ast.Try) or _is_try_star(stmt):
            self._bind_statements(stmt.body, parsed)
            for handler in stmt.handlers:
                self._bind_statements(handler.body, parsed)
            self._bind_statements(stmt.orelse, parsed)
            self._bind_statements(stmt.finalbody, parsed)

    def _bind_assign(
        self,
        name: str,
        stmt: ast.stmt,
        value: ast.expr | None,
        annotation: ast.expr | None,
        parsed: ParsedFile,
    ) -> None:
        package = self.package
        file_path = str(parsed.path)
        if annotation is not None and value is not None and self.evaluator.is_form(annotation, Form.TYPEALIAS):
            obj = TypeName(name, package.path, node=stmt, file_path=file_path)
            obj.type = Alias(obj, partial(self.evaluator.evaluate, value))
            package.define(name, obj)
            return
        if annotation is None and isinstance(value, ast.Call) and _call_name(value) in _DECLARATION_CALLS:
            if self._bind_declaration_call(name, stmt, value, parsed):
                return
        if annotation is None and isinstance(value, _ALIAS_VALUE_TYPES) and _looks_like_type(value):
            obj = TypeName(name, package.path, node=stmt, file_path=file_path)
            obj.type = Alias(obj, partial(self.evaluator.evaluate, value))
            package.define(name, obj)
            return
        package.define(name, ValueDecl(name, package.path, stmt, value, annotation))

    def _bind_declaration_call(self, name: str, stmt: ast.stmt, value: ast.Call, parsed: ParsedFile) -> bool:
        evaluator = self.evaluator
        obj = TypeName(name, self.package.path, node=stmt, file_path=str(parsed.path))
        if evaluator.is_form(value.func, Form.NEWTYPE):
            base_expr = value.args[1] if len(value.args) > 1 else None
            named = Named(obj, partial(evaluator.define_newtype, base_expr))
            obj.type = named
        elif evaluator.is_form(value.func, Form.TYPEVAR):
            obj.type = Basic(Kind.ANY)
        else:
            return False
        self.package.define(name, obj)
        return True

    def _absolute_module(self, stmt: ast.ImportFrom) -> str:
        if not stmt.level:
            return stmt.module or ""
        path = self.package.path
        base = path if self.package.is_package else path.rpartition(".")[0]
        for _ in range(stmt.level - 1):
            base = base.rpartition(".")[0]
        if stmt.module:
            return f"{base}.{stmt.module}" if base else stmt.module
        return base


def _is_type_alias_statement(stmt: ast.stmt) -> bool:
    alias_type = getattr(ast, "TypeAlias", None)
    return alias_type is not None and isinstance(stmt, alias_type)


def _is_try_star(stmt: ast.stmt) -> bool:
    try_star = getattr(ast, "TryStar", None)
    return try_star is not None and isinstance(stmt, try_star)


def _call_name(call: ast.Call) -> str:
    func = call.func
    if isinstance(func, ast.Name):
        return func.id
    if isinstance(func, ast.Attribute):
        return func.attr
    return ""


def _looks_like_type(value: ast.expr) -> bool:
    """Return ``True`` for right-hand sides that can denote a type."""

    if isinstance(value, ast.BinOp):
        return isinstance(value.op, ast.BitOr)
    if isinstance(value, ast.Subscript):
        return isinstance(value.value, (ast.Name, ast.Attribute))
    if isinstance(value, ast.Name):
        return value.id[:1].isupper() or value.id in ("str", "int", "float", "bool", "bytes")
    if isinstance(value, ast.Attribute):
        return value.attr[:1].isupper()
    return False


def required_names(package: Package) -> set[str]:
    """Return the scope names referenced by public declarations.

    Classes contribute bases, field annotations and method signatures;
    aliases and ``NewType`` declarations contribute their right-hand side.
    """

    nodes: list[ast.AST] = []
    for obj in package.type_names():
        if obj.name.startswith("_") or obj.node is None:
            continue
        node = obj.node
        if isinstance(node, ast.ClassDef):
            nodes.extend(node.bases)
            nodes.extend(keyword.value for keyword in node.keywords)
            nodes.extend(_class_annotations(node))
        elif isinstance(node, ast.Assign):
            nodes.append(node.value)
        elif isinstance(node, ast.AnnAssign) and node.value is not None:
            nodes.append(node.value)
        elif _is_type_alias_statement(node):
            nodes.append(node.value)
    return referenced_names(nodes)


def _class_annotations(node: ast.ClassDef) -> Iterator[ast.AST]:
    for stmt in node.body:
        if isinstance(stmt, ast.AnnAssign):
            yield stmt.annotation
        elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            arguments = stmt.args
            for arg in (*arguments.posonlyargs, *arguments.args, *arguments.kwonlyargs):
                if arg.annotation is not None:
                    yield arg.annotation
            for arg in (arguments.vararg, arguments.kwarg):
                if arg is not None and arg.annotation is not None:
                    yield arg.annotation
            if stmt.returns is not None:
                yield stmt.returns


def required_modules(package: Package, names: Iterable[str] | None = None) -> set[str]:
    """Return the modules that bind the given (or all required) names."""

    wanted = set(names) if names is not None else required_names(package)
    modules: set[str] = set()
    for name in wanted:
        binding = package.scope.get(name)
        if not isinstance(binding, ImportBinding):
            continue
        modules.add(binding.module)
    return modules


__all__ = [
    "BASIC_TYPES",
    "Form",
    "ImportBinding",
    "Importer",
    "ModuleRef",
    "OPAQUE_MODULES",
    "Package",
    "SPECIAL_FORMS",
    "ScopeBuilder",
    "SpecialSymbol",
    "TypeEvaluator",
    "ValueDecl",
    "decorator_names",
    "optional_of",
    "required_modules",
    "required_names",
    "resolve_member",
    "stub_package",
    "union_of",
]
