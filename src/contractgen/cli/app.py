# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""CLI application entry point wiring the analyze and client commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from ..analyzer import AnalysisOptions, ProjectAnalyzer
from ..config import ConfigError, ContractgenConfig, load_config
from ..errors import ContractgenError
from ..logging import configure_logging
from ..model import Project
from ..renderer import ClientRenderer
from .shared import CLIError, CLILogger, build_cli_logger, split_csv

app = typer.Typer(
    name="contractgen",
    help="Generate Python clients from annotated contract protocols.",
    no_args_is_help=True,
    add_completion=False,
)

RootArgument = Annotated[
    Path,
    typer.Argument(exists=True, file_okay=False, dir_okay=True, resolve_path=True, help="Project root."),
]
ModuleOption = Annotated[str | None, typer.Option("--module", "-m", help="Import path of the project package.")]
ContractsOption = Annotated[
    str | None,
    typer.Option("--contracts", "-c", help="Comma separated contract names or ids to keep."),
]
NoCacheOption = Annotated[bool, typer.Option("--no-cache", help="Ignore and do not update the project cache.")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Emit debug diagnostics.")]
EmojiOption = Annotated[bool, typer.Option("--emoji/--no-emoji", help="Toggle emoji in output.")]


def _configure(root: Path, module: str | None) -> ContractgenConfig:
    config = load_config(root)
    if module:
        config.module = module
    return config


def _analyze(root: Path, config: ContractgenConfig, contracts: list[str], *, use_cache: bool) -> Project:
    analyzer = ProjectAnalyzer(root, config)
    return analyzer.analyze(AnalysisOptions(contracts=tuple(contracts), use_cache=use_cache))


def _exit_on_error(exc: CLIError, logger: CLILogger) -> typer.Exit:
    logger.fail(str(exc))
    return typer.Exit(code=exc.exit_code)


@app.command("analyze")
def analyze_command(
    root: RootArgument = Path("."),
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", dir_okay=False, help="Write the project JSON here instead of stdout."),
    ] = None,
    module: ModuleOption = None,
    contracts: ContractsOption = None,
    no_cache: NoCacheOption = False,
    verbose: VerboseOption = False,
    emoji: EmojiOption = True,
) -> None:
    """Analyze the project and emit its JSON document."""

    configure_logging(verbose=verbose)
    logger = build_cli_logger(emoji=emoji, debug=verbose)
    try:
        config = _configure(root, module)
        project = _analyze(root, config, split_csv(contracts), use_cache=not no_cache)
        if output is not None:
            project.write(output)
    except CLIError as exc:
        raise _exit_on_error(exc, logger) from exc
    except (ContractgenError, ConfigError, OSError) as exc:
        raise _exit_on_error(CLIError(str(exc)), logger) from exc

    logger.debug(f"contracts={len(project.contracts)} types={len(project.types)}")
    if output is None:
        logger.echo(project.dump_json())
    else:
        logger.ok(f"Project written to {output}")


@app.command("client")
def client_command(
    root: RootArgument = Path("."),
    output_dir: Annotated[
        Path | None,
        typer.Option("--output", "-o", file_okay=False, help="Directory of the generated package."),
    ] = None,
    module: ModuleOption = None,
    contracts: ContractsOption = None,
    metrics: Annotated[
        bool | None,
        typer.Option("--metrics/--no-metrics", help="Emit OpenTelemetry instruments for @metrics contracts."),
    ] = None,
    docs: Annotated[bool | None, typer.Option("--docs/--no-docs", help="Write README.md.")] = None,
    no_cache: NoCacheOption = False,
    verbose: VerboseOption = False,
    emoji: EmojiOption = True,
) -> None:
    """Analyze the project and render its Python client."""

    configure_logging(verbose=verbose)
    logger = build_cli_logger(emoji=emoji, debug=verbose)
    try:
        config = _configure(root, module)
        selected = split_csv(contracts) or list(config.client.contracts)
        project = _analyze(root, config, selected, use_cache=not no_cache)
        target = config.resolved(root, output_dir or config.client.output_dir)
        renderer = ClientRenderer(
            project,
            target,
            contracts=selected,
            metrics=config.client.metrics if metrics is None else metrics,
            docs=config.client.docs if docs is None else docs,
        )
        if not renderer.contracts:
            raise CLIError("no served contracts found", exit_code=2)
        written = renderer.render()
    except CLIError as exc:
        raise _exit_on_error(exc, logger) from exc
    except (ContractgenError, ConfigError, OSError) as exc:
        raise _exit_on_error(CLIError(str(exc)), logger) from exc

    logger.ok(f"Generated {len(written)} files for {len(renderer.contracts)} contract(s) in {target}")


def main() -> None:
    """Console-script entry point."""

    app()


__all__ = ["app", "main"]
