# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Project model shared by the analyzer and every renderer.

The :class:`Project` owns every :class:`Type`; all other entities refer to
types by TypeID. Models are pydantic so that a finished project can be
persisted as a single JSON document and reloaded to re-drive a renderer.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from ..annotations import DocTags
from .kinds import ChanDirection, Kind, is_builtin, make_type_id


class _ModelBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)


class TypeRef(_ModelBase):
    """Describe how a type is used at a single site."""

    type_id: str = ""
    pointer_count: int = 0
    is_slice: bool = False
    array_len: int = 0
    is_ellipsis: bool = False
    element_pointers: int = 0
    map_key: TypeRef | None = None
    map_value: TypeRef | None = None

    def is_map(self) -> bool:
        """Return ``True`` when this reference describes a mapping."""

        return self.map_key is not None and self.map_value is not None

    def is_container(self) -> bool:
        """Return ``True`` for slices, arrays and maps."""

        return self.is_slice or self.array_len > 0 or self.is_map()

    def ref(self) -> TypeRef:
        """Return a plain :class:`TypeRef` copy stripped of subclass fields."""

        return TypeRef.model_validate(self.model_dump(include=set(TypeRef.model_fields)))


class Variable(TypeRef):
    """A named occurrence of a type: argument, result or embedded interface."""

    name: str = ""
    docs: list[str] = Field(default_factory=list)
    annotations: DocTags = Field(default_factory=DocTags)


class StructField(TypeRef):
    """A struct field; an empty ``name`` marks an embedded base."""

    name: str = ""
    tags: dict[str, list[str]] = Field(default_factory=dict)
    docs: list[str] = Field(default_factory=list)

    def tag(self, key: str) -> list[str]:
        """Return the values of struct tag ``key`` (empty when unset)."""

        return self.tags.get(key, [])


class Function(_ModelBase):
    """A method signature inside an interface type."""

    name: str
    args: list[Variable] = Field(default_factory=list)
    results: list[Variable] = Field(default_factory=list)
    docs: list[str] = Field(default_factory=list)


class Type(_ModelBase):
    """Definition of a named or structural type in the registry."""

    kind: Kind | None = None
    type_name: str = ""
    import_alias: str = ""
    import_pkg_path: str = ""
    pkg_name: str = ""
    alias_of: str = ""
    array_len: int = 0
    is_slice: bool = False
    is_ellipsis: bool = False
    array_of_id: str = ""
    element_pointers: int = 0
    map_key: TypeRef | None = None
    map_value: TypeRef | None = None
    chan_direction: ChanDirection | None = None
    chan_of_id: str = ""
    struct_fields: list[StructField] = Field(default_factory=list)
    interface_methods: list[Function] = Field(default_factory=list)
    embedded_interfaces: list[Variable] = Field(default_factory=list)
    function_args: list[Variable] = Field(default_factory=list)
    function_results: list[Variable] = Field(default_factory=list)
    underlying_type_id: str = ""
    underlying_kind: Kind | None = None
    implements_interfaces: list[str] = Field(default_factory=list)
    docs: list[str] = Field(default_factory=list)

    @property
    def type_id(self) -> str:
        """Return the TypeID of this type (empty for anonymous shapes)."""

        if not self.type_name:
            return ""
        return make_type_id(self.import_pkg_path, self.type_name)

    def add_interface(self, interface_id: str) -> bool:
        """Record ``interface_id`` keeping the list a sorted set.

        Returns:
            bool: ``True`` when the interface was not yet recorded.
        """

        if interface_id in self.implements_interfaces:
            return False
        self.implements_interfaces.append(interface_id)
        self.implements_interfaces.sort()
        return True

    def implements(self, interface_id: str) -> bool:
        """Return ``True`` when the type satisfies ``interface_id``."""

        return interface_id in self.implements_interfaces


class ErrorTypeReference(_ModelBase):
    """An error type discovered in an implementation body."""

    pkg_path: str
    type_name: str
    full_name: str


class ErrorInfo(_ModelBase):
    """An error a method may produce."""

    pkg_path: str
    type_name: str
    full_name: str
    http_code: int = 0
    http_code_text: str = ""
    type_id: str = ""


class HandlerInfo(_ModelBase):
    """A user-written function whose body is scanned for errors."""

    pkg_path: str
    name: str


class ImplementationMethod(_ModelBase):
    """Location and raised error types of one implementing method."""

    name: str = ""
    file_path: str
    error_types: list[ErrorTypeReference] = Field(default_factory=list)


class Implementation(_ModelBase):
    """A concrete class structurally satisfying a contract."""

    pkg_path: str
    struct_name: str
    methods_map: dict[str, ImplementationMethod] = Field(default_factory=dict)

    @property
    def struct_id(self) -> str:
        """Return the TypeID of the implementing class."""

        return make_type_id(self.pkg_path, self.struct_name)


class Method(_ModelBase):
    """A contract method."""

    name: str
    contract_id: str
    args: list[Variable] = Field(default_factory=list)
    results: list[Variable] = Field(default_factory=list)
    docs: list[str] = Field(default_factory=list)
    annotations: DocTags = Field(default_factory=DocTags)
    errors: list[ErrorInfo] = Field(default_factory=list)
    handler: HandlerInfo | None = None


class Contract(_ModelBase):
    """An annotated protocol elevated to an API description."""

    id: str
    name: str
    pkg_path: str
    file_path: str
    docs: list[str] = Field(default_factory=list)
    annotations: DocTags = Field(default_factory=DocTags)
    methods: list[Method] = Field(default_factory=list)
    implementations: list[Implementation] = Field(default_factory=list)

    def method(self, name: str) -> Method | None:
        """Return the method called ``name`` when present."""

        return next((method for method in self.methods if method.name == name), None)


class GitInfo(_ModelBase):
    """Repository metadata read from ``.git``."""

    commit: str = ""
    branch: str = ""
    tag: str = ""
    dirty: bool = False
    user: str = ""
    email: str = ""
    remote: str = ""


class Service(_ModelBase):
    """A runnable module wiring one or more contracts."""

    name: str
    pkg_path: str = ""
    main_path: str
    contract_ids: list[str] = Field(default_factory=list)


class Project(_ModelBase):
    """Root registry of a generation run."""

    version: str = ""
    module_path: str = ""
    contracts_dir: str = ""
    git_info: GitInfo | None = None
    annotations: DocTags = Field(default_factory=DocTags)
    services: list[Service] = Field(default_factory=list)
    contracts: list[Contract] = Field(default_factory=list)
    types: dict[str, Type] = Field(default_factory=dict)
    excluded_dirs: list[str] = Field(default_factory=list)
    project_id: str = ""
    marker: str = ""

    def contract(self, name_or_id: str) -> Contract | None:
        """Return the contract matching ``name_or_id``."""

        for contract in self.contracts:
            if name_or_id in (contract.name, contract.id):
                return contract
        return None

    def get_type(self, type_id: str) -> Type | None:
        """Return the registered type for ``type_id``."""

        return self.types.get(type_id)

    def has_type(self, type_id: str) -> bool:
        """Return ``True`` when ``type_id`` is built-in or registered."""

        return is_builtin(type_id) or type_id in self.types

    def dump_json(self) -> str:
        """Serialise the project into its JSON document form."""

        return self.model_dump_json(exclude_defaults=True, indent=2)

    @classmethod
    def load_json(cls, payload: str | bytes) -> Project:
        """Rebuild a project from :meth:`dump_json` output."""

        return cls.model_validate_json(payload)

    def write(self, path: Path) -> None:
        """Persist the project document to ``path``."""

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.dump_json(), encoding="utf-8")


__all__ = [
    "Contract",
    "ErrorInfo",
    "ErrorTypeReference",
    "Function",
    "GitInfo",
    "HandlerInfo",
    "Implementation",
    "ImplementationMethod",
    "Method",
    "Project",
    "Service",
    "StructField",
    "Type",
    "TypeRef",
    "Variable",
]
