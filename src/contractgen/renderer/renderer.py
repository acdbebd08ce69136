# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Render a complete Python client package from an analyzed project.

The package mirrors the served contracts: one module per contract, its
exchange models, the shared DTOs, the static JSON-RPC and content helpers,
and a Markdown manual.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Final

from ..annotations import TAG_PACKAGE_JSON, annotation_value
from ..errors import GenerateWriteError
from ..model import Contract, ErrorInfo, Project
from .exchange import ExchangeRenderer
from .helpers import client_class_name, contract_module, has_metrics, is_served
from .naming import to_camel
from .readme import ReadmeRenderer, sorted_errors
from .service import ServiceRenderer
from .source import SourceFile
from .templating import json_import, write_template
from .types import RESERVED_NAMES, TypeRenderer

LOGGER = logging.getLogger(__name__)

JSONRPC_TEMPLATES: Final[tuple[str, ...]] = ("__init__", "envelope", "client", "options", "curl")
README: Final[str] = "README.md"
ERROR_BASE: Final[str] = "RPCErrorException"


def select_contracts(project: Project, names: Iterable[str] = ()) -> list[Contract]:
    """Return the served contracts of ``project`` filtered by name or id.

    An empty ``names`` keeps every served contract.
    """

    wanted = {name for name in names if name}
    return [
        contract
        for contract in project.contracts
        if is_served(project, contract) and (not wanted or contract.name in wanted or contract.id in wanted)
    ]


def error_class_names(errors: Sequence[ErrorInfo]) -> dict[str, str]:
    """Map each error key to a unique class name for ``errors.py``."""

    names: dict[str, str] = {}
    taken = set(RESERVED_NAMES) | {ERROR_BASE, "HTTPError", "ProtocolError"}
    for error in errors:
        name = error.type_name
        if name in taken:
            name = f"{to_camel(error.pkg_path.rsplit('.', 1)[-1])}{error.type_name}"
        taken.add(name)
        names[_error_key(error)] = name
    return names


def _error_key(error: ErrorInfo) -> str:
    return error.type_id or error.full_name


class ClientRenderer:
    """Write a client package for ``project`` into ``output_dir``.

    Args:
        project: Analyzed project.
        output_dir: Package directory; its name is the package name.
        contracts: Optional contract names or ids restricting the output.
        metrics: Emit OpenTelemetry instruments for contracts tagged ``@metrics``.
        docs: Write ``README.md``.
    """

    def __init__(
        self,
        project: Project,
        output_dir: Path,
        *,
        contracts: Sequence[str] = (),
        metrics: bool = True,
        docs: bool = True,
    ) -> None:
        self.project = project
        self.output_dir = output_dir
        self.contracts = select_contracts(project, contracts)
        self.types = TypeRenderer(project, self.contracts)
        self.docs = docs
        self.metrics = metrics and any(has_metrics(project, contract) for contract in self.contracts)
        self._written: list[Path] = []

    @property
    def package(self) -> str:
        return self.output_dir.name

    def json_module(self) -> str:
        """Return the ``json`` replacement declared with ``@packageJSON``."""

        value = annotation_value(self.project, None, None, None, TAG_PACKAGE_JSON)
        if value:
            return value
        for contract in self.contracts:
            value = annotation_value(None, contract, None, None, TAG_PACKAGE_JSON)
            if value:
                return value
        return ""

    def render(self) -> list[Path]:
        """Write every module and return the written paths.

        Raises:
            GenerateWriteError: If a directory or file cannot be written.
        """

        self.types.collect()
        try:
            (self.output_dir / "jsonrpc").mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise GenerateWriteError(str(self.output_dir), str(exc)) from exc
        json_line = json_import(self.json_module())

        for name in JSONRPC_TEMPLATES:
            self._template(Path("jsonrpc") / f"{name}.py", f"jsonrpc/{name}.py", json_import=json_line)
        self._template(Path("content.py"), "content.py", json_import=json_line)
        self._template(Path("batch.py"), "batch.py")
        self._client_module()
        self._options_module()
        self._errors_module(json_line)
        if self.metrics:
            self._template(Path("metrics.py"), "metrics.py", package=self.package)
        self._version_module()

        types_src = SourceFile("Types shared by the contracts of the client.")
        self.types.render(types_src)
        self._save(Path("types.py"), types_src)
        for contract in self.contracts:
            module = contract_module(contract)
            self._save(Path(f"{module}_exchange.py"), ExchangeRenderer(self.project, contract, self.types).render())
            tracked = self.metrics and has_metrics(self.project, contract)
            service = ServiceRenderer(self.project, contract, self.types, metrics=tracked)
            self._save(Path(f"{module}.py"), service.render())
        self._init_module()
        if self.docs:
            readme = ReadmeRenderer(self.project, self.contracts, self.types, package=self.package, metrics=self.metrics)
            path = self.output_dir / README
            readme.render().save(path)
            self._written.append(path)
        LOGGER.debug("rendered %d files into %s", len(self._written), self.output_dir)
        return list(self._written)

    # -- modules --------------------------------------------------------------------

    def _client_module(self) -> None:
        imports = "".join(
            f"from .{contract_module(contract)} import {client_class_name(contract)}\n" for contract in self.contracts
        )
        accessors = "".join(
            f"\n    def {contract_module(contract)}(self) -> {client_class_name(contract)}:\n"
            f"        return {client_class_name(contract)}(self)\n"
            for contract in self.contracts
        )
        self._template(Path("client.py"), "client.py", contract_imports=imports, contract_accessors=accessors)

    def _options_module(self) -> None:
        values = {"metrics_import": "", "metrics_typing": "", "with_metrics": "", "metrics_export": ""}
        if self.metrics:
            values = {
                "metrics_import": "from .metrics import Metrics\n",
                "metrics_typing": "    from opentelemetry.metrics import MeterProvider\n",
                "with_metrics": (
                    "\n\ndef with_metrics(meter_provider: MeterProvider | None = None) -> Option:\n"
                    '    """Record call counters and latency through OpenTelemetry."""\n'
                    "\n"
                    "    def apply(client: Client) -> None:\n"
                    "        client.metrics = Metrics(meter_provider)\n"
                    "\n"
                    "    return apply\n"
                ),
                "metrics_export": '\n    "with_metrics",',
            }
        self._template(Path("options.py"), "options.py", **values)

    def collected_errors(self) -> list[ErrorInfo]:
        """Return the distinct errors of the selected contracts, coded first."""

        found: dict[str, ErrorInfo] = {}
        for contract in self.contracts:
            for method in contract.methods:
                for error in method.errors:
                    found.setdefault(_error_key(error), error)
        return sorted_errors(list(found.values()))

    def _errors_module(self, json_line: str) -> None:
        errors = self.collected_errors()
        names = error_class_names(errors)
        blocks: list[str] = []
        by_code: dict[int, str] = {}
        for error in errors:
            name = names[_error_key(error)]
            declared = self.project.get_type(error.type_id) if error.type_id else None
            docs = " ".join(declared.docs).strip() if declared is not None and declared.docs else ""
            docstring = docs.replace('"""', "'''") or f"{error.type_name} raised by the server."
            blocks.append(
                f"class {name}({ERROR_BASE}):\n"
                f'    """{docstring}"""\n'
                f"\n"
                f"    http_code: ClassVar[int] = {error.http_code}\n"
            )
            if error.http_code and error.http_code not in by_code:
                by_code[error.http_code] = name
            elif error.http_code:
                LOGGER.debug("error %s shares code %d with %s", name, error.http_code, by_code[error.http_code])
        error_classes = "".join(f"\n\n{block}" for block in blocks)
        errors_by_code = "".join(f"\n    {code}: {name}," for code, name in sorted(by_code.items()))
        self._template(
            Path("errors.py"),
            "errors.py",
            json_import=json_line,
            error_classes=error_classes,
            errors_by_code=f"{errors_by_code}\n" if errors_by_code else "",
            error_exports="".join(f'\n    "{name}",' for name in sorted(names.values())),
        )

    def _version_module(self) -> None:
        src = SourceFile("Version of the contracts the client was generated from.")
        src.line(f'VersionASTg = "{self.project.version}"')
        self._save(Path("version.py"), src)

    def _init_module(self) -> None:
        src = SourceFile(f"Client of {self.project.module_path or self.package}.")
        src.import_from(".", "options")
        src.import_from(".client", "Client")
        src.import_from(".errors", ERROR_BASE, "HTTPError", "ProtocolError", "default_error_decoder")
        src.import_from(".version", "VersionASTg")
        exports = ["Client", "HTTPError", "ProtocolError", ERROR_BASE, "VersionASTg", "default_error_decoder", "options"]
        for contract in self.contracts:
            src.import_from(f".{contract_module(contract)}", client_class_name(contract))
            exports.append(client_class_name(contract))
        src.line("__all__ = [")
        for name in sorted(exports):
            src.line(f'    "{name}",')
        src.line("]")
        self._save(Path("__init__.py"), src)

    # -- output ---------------------------------------------------------------------

    def _template(self, relative: Path, name: str, **values: str) -> None:
        path = self.output_dir / relative
        write_template(path, name, **values)
        self._written.append(path)

    def _save(self, relative: Path, src: SourceFile) -> None:
        path = self.output_dir / relative
        src.save(path)
        self._written.append(path)


__all__ = ["ClientRenderer", "error_class_names", "select_contracts"]
