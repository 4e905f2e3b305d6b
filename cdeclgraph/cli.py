#!/usr/bin/env python3
"""Command line entry point: extract the declaration graph of a C source."""

from pathlib import Path

import click

from cdeclgraph.config import ExtractConfig, GlobalsSource
from cdeclgraph.console import Console, configure_logging
from cdeclgraph.errors import ExtractError
from cdeclgraph.extract import extract_with_config


def _globals_source(value: str) -> GlobalsSource:
    path, _, prefix = value.partition(":")
    return GlobalsSource(path=Path(path), prefix=prefix)


@click.group()
def cli():
    """cdeclgraph: canonical C declaration graphs for binding generators."""
    pass


@cli.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--config", "config_path", type=click.Path(exists=True, path_type=Path), help="JSON configuration file")
@click.option("-I", "include_dirs", multiple=True, help="Add an include directory")
@click.option("-D", "defines", multiple=True, help="Predefine a macro")
@click.option("--clang-arg", "clang_args", multiple=True, help="Extra argument passed to clang")
@click.option("--load", "load_globals", multiple=True, help="Snapshot to use as builtins, as FILE[:PREFIX]")
@click.option("--save", "save_globals", type=click.Path(dir_okay=False, path_type=Path), help="Write a snapshot of the extracted globals")
@click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON")
@click.option(
    "--log-level",
    type=click.Choice(["fatal", "error", "warn", "warning", "info", "debug"], case_sensitive=False),
    default=None,
    help="Logging level (overrides the configuration)",
)
def extract(
    source: Path,
    config_path: Path | None,
    include_dirs: tuple[str, ...],
    defines: tuple[str, ...],
    clang_args: tuple[str, ...],
    load_globals: tuple[str, ...],
    save_globals: Path | None,
    as_json: bool,
    log_level: str | None,
):
    """Extract the top-level declarations of SOURCE."""
    try:
        if config_path is not None:
            config = ExtractConfig.load_from_file(config_path)
        else:
            config = ExtractConfig.find_config(source.parent) or ExtractConfig()
    except ExtractError as e:
        raise click.ClickException(str(e))

    config.include_dirs += list(include_dirs)
    config.defines += list(defines)
    config.clang_args += list(clang_args)
    config.load_globals += [_globals_source(value) for value in load_globals]
    if save_globals is not None:
        config.save_globals = save_globals
    if log_level is not None:
        config.log_level = log_level.lower()

    configure_logging(config.log_level, config.log_file)

    try:
        result = extract_with_config(source, config)
    except ExtractError as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(result.model_dump_json(indent=2))
        return

    console = Console()
    declarations = result.declarations
    console.print_globals(declarations, title=f"{source.name}: {len(declarations)} declarations")
    Console(stderr=True).print_diagnostics(result.diagnostics)


if __name__ == "__main__":
    cli()
