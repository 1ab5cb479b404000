"""Command line entry points for the project."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import networkx as nx
import typer

from link_order import __version__
from link_order.analysis.catalog import build_catalog
from link_order.analysis.dependency_graph import export_dependency_graph
from link_order.analysis.graph_queries import dependency_path, edge_symbols
from link_order.analysis.resolution import build_symbol_table
from link_order.config import ResolverConfig
from link_order.errors import ResolutionError
from link_order.io.link_directives import FlagStyle, render_flags
from link_order.pipelines.resolve_link_order import LinkOrderResult, analyse_libraries, resolve_link_order

ROOT_ARGUMENT = typer.Argument(..., envvar="LINK_ORDER_ROOT", help="Directory searched recursively for lib*.a archives.")
JOBS_OPTION = typer.Option(
    1, "--jobs", "-j", envvar="LINK_ORDER_JOBS", help="Worker processes for archive parsing (0 = one per CPU)."
)
SYMLINKS_OPTION = typer.Option(False, "--follow-symlinks", help="Follow symlinked archives and directories.")


def _config(root: Path, jobs: int, follow_symlinks: bool) -> ResolverConfig:
    candidate = root.expanduser()
    if not candidate.is_dir():
        raise typer.BadParameter(f"Library root {candidate} is not a directory.")
    return ResolverConfig.from_root(candidate, jobs=jobs, follow_symlinks=follow_symlinks)


def _exit_for(exc: ResolutionError) -> typer.Exit:
    typer.secho(f"error: {exc}", fg=typer.colors.RED, err=True)
    return typer.Exit(code=1)


def _resolve(config: ResolverConfig) -> LinkOrderResult:
    try:
        return resolve_link_order(config)
    except ResolutionError as exc:
        raise _exit_for(exc) from exc


def _analyse(config: ResolverConfig) -> nx.DiGraph:
    try:
        _, _, graph = analyse_libraries(config)
    except ResolutionError as exc:
        raise _exit_for(exc) from exc
    return graph


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


app = typer.Typer(help="Resolve the order in which static libraries must be passed to a single-pass linker.")


@app.callback()
def main(
    display_version: bool = typer.Option(
        False, "--version", "-V", callback=_show_version, is_eager=True, help="Show version and exit."
    ),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Increase log output (-v info, -vv debug)."),
) -> None:
    """Configure logging for the selected command."""

    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@app.command("libraries")
def libraries(
    root: Path = ROOT_ARGUMENT,
    jobs: int = JOBS_OPTION,
    follow_symlinks: bool = SYMLINKS_OPTION,
) -> None:
    """List discovered static libraries and their symbol counts."""

    config = _config(root, jobs, follow_symlinks)
    catalog = build_catalog(config.root, jobs=config.jobs, follow_symlinks=config.follow_symlinks)

    typer.echo(f"Static libraries found: {len(catalog)}")
    for library in catalog.descriptors():
        typer.echo(
            f"  {library.name}: {library.path} "
            f"(defined {len(library.defined)}, undefined {len(library.undefined)})"
        )

    if catalog.shadowed:
        typer.secho("Ignored duplicates:", fg=typer.colors.YELLOW)
        for entry in catalog.shadowed:
            typer.echo(f"  {entry.path} (already provided by {entry.kept})")


@app.command("symbols")
def symbols(
    root: Path = ROOT_ARGUMENT,
    undefined: bool = typer.Option(False, "--undefined", "-u", help="Also list every undefined symbol reference."),
    jobs: int = JOBS_OPTION,
    follow_symlinks: bool = SYMLINKS_OPTION,
) -> None:
    """Dump the defined-symbol table (symbol and owning library)."""

    config = _config(root, jobs, follow_symlinks)
    catalog = build_catalog(config.root, jobs=config.jobs, follow_symlinks=config.follow_symlinks)
    try:
        table = build_symbol_table(catalog.descriptors())
    except ResolutionError as exc:
        raise _exit_for(exc) from exc

    typer.echo(f"Defined symbols: {len(table.defined)}")
    for symbol, library in sorted(table.defined.items(), key=lambda item: item[0].raw):
        typer.echo(f"  {symbol} {library.name}")

    if table.duplicates:
        typer.secho("Tolerated duplicate definitions:", fg=typer.colors.YELLOW)
        for duplicate in table.duplicates:
            typer.echo(f"  {duplicate.symbol} ({duplicate.first.name}, {duplicate.second.name})")

    if undefined:
        typer.echo(f"Undefined references: {len(table.undefined)}")
        for symbol, library in table.undefined:
            typer.echo(f"  {symbol} {library.name}")


@app.command("order")
def order(
    root: Path = ROOT_ARGUMENT,
    jobs: int = JOBS_OPTION,
    follow_symlinks: bool = SYMLINKS_OPTION,
) -> None:
    """Print the resolved link order."""

    result = _resolve(_config(root, jobs, follow_symlinks))
    for idx, library in enumerate(result.ordered, start=1):
        typer.echo(f"{idx:3d}. {library.name} ({library.path})")

    unresolved = result.graph.graph.get("unresolved", [])
    if unresolved:
        typer.secho(f"Symbols left for the linker to resolve elsewhere: {len(unresolved)}", fg=typer.colors.YELLOW)


@app.command("flags")
def flags(
    root: Path = ROOT_ARGUMENT,
    style: FlagStyle = typer.Option(FlagStyle.GNU, "--style", "-s", help="Output format for the directives."),
    jobs: int = JOBS_OPTION,
    follow_symlinks: bool = SYMLINKS_OPTION,
) -> None:
    """Print linker search-path and library directives in link order."""

    result = _resolve(_config(root, jobs, follow_symlinks))
    for line in render_flags(result.directives(), style):
        typer.echo(line)


@app.command("why")
def why(
    root: Path = ROOT_ARGUMENT,
    dependent: str = typer.Argument(..., help="Library that needs the dependency (name without lib/.a)."),
    dependency: str = typer.Argument(..., help="Library that is needed."),
    jobs: int = JOBS_OPTION,
    follow_symlinks: bool = SYMLINKS_OPTION,
) -> None:
    """Explain the chain of symbol references that makes one library depend on another."""

    graph = _analyse(_config(root, jobs, follow_symlinks))
    try:
        path = dependency_path(graph, dependent, dependency)
    except KeyError as exc:
        raise typer.BadParameter(str(exc.args[0])) from exc

    if path is None:
        typer.secho(f"{dependent} does not depend on {dependency}.", fg=typer.colors.YELLOW)
        return

    typer.echo(" -> ".join(path))
    for source, target in zip(path, path[1:]):
        names = edge_symbols(graph, source, target)
        display = ", ".join(names[:5])
        if len(names) > 5:
            display += f", ... (+{len(names) - 5})"
        typer.echo(f"  {source} -> {target}: {display}")


@app.command("graph")
def graph(
    root: Path = ROOT_ARGUMENT,
    output: Path = typer.Option(Path("link_order.graph.json"), "--output", "-o", help="Destination JSON for the graph."),
    plot: Optional[Path] = typer.Option(None, help="Optional PNG rendering of the graph."),
    jobs: int = JOBS_OPTION,
    follow_symlinks: bool = SYMLINKS_OPTION,
) -> None:
    """Export the library dependency graph as JSON and optionally plot it."""

    dependency_graph = _analyse(_config(root, jobs, follow_symlinks))
    output = output.expanduser()
    export_dependency_graph(dependency_graph, output)
    typer.secho(f"Dependency graph written to {output}", fg=typer.colors.GREEN)

    if plot is not None:
        from link_order.analysis.visualization import plot_dependency_graph

        try:
            plot_dependency_graph(dependency_graph, plot.expanduser())
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc
        typer.secho(f"Plot written to {plot}", fg=typer.colors.GREEN)


__all__ = ["app"]
