# === NAVMAP v1 ===
# {
#   "module": "ChannelResolve.cli",
#   "purpose": "Typer CLI for resolving coordinates through declared channels",
#   "sections": [
#     {"id": "main", "name": "main", "anchor": "function-main", "kind": "function"},
#     {"id": "resolve", "name": "resolve", "anchor": "function-resolve", "kind": "function"},
#     {"id": "versions", "name": "versions", "anchor": "function-versions", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Command line entry point (``chanres``).

Example:
    $ chanres resolve channels.yaml org.acme:core org.acme:cli:jar::1.0.0 --manifest pins.yaml
    $ chanres versions channels.yaml org.acme:core
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import build_channels, load_channels_file
from .coordinates import ArtifactCoordinate
from .errors import ChannelResolveError, UnresolvedArtifactError
from .logging_config import setup_logging
from .manifests import write_manifest
from .repositories import RepositoryResolverFactory
from .session import ChannelSession
from .settings import ResolverSettings, get_default_settings

app = typer.Typer(
    name="chanres",
    help="Resolve artifact coordinates to the newest version offered by a set of channels",
    no_args_is_help=True,
)

_console = Console()
_err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"chanres {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Channel-based artifact resolution."""


def _prepare(verbosity: int) -> ResolverSettings:
    settings = get_default_settings()
    logging_settings = settings.logging
    if verbosity >= 2:
        logging_settings = logging_settings.model_copy(update={"level": "DEBUG"})
    elif verbosity == 1:
        logging_settings = logging_settings.model_copy(update={"level": "INFO"})
    else:
        logging_settings = logging_settings.model_copy(update={"level": "WARNING"})
    setup_logging(logging_settings)
    return settings


def _parse_coordinates(values: List[str]) -> List[ArtifactCoordinate]:
    try:
        return [ArtifactCoordinate.parse(value) for value in values]
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _fail(exc: Exception) -> None:
    _err_console.print(f"[red]Error: {exc}[/red]")
    raise typer.Exit(1)


@app.command()
def resolve(
    channels_file: Path = typer.Argument(..., help="YAML file declaring channels in priority order"),
    coordinates: List[str] = typer.Argument(
        ..., help="Coordinates as group:artifact[:extension[:classifier[:base_version]]]"
    ),
    manifest: Optional[Path] = typer.Option(
        None, "--manifest", "-m", help="Write the provenance manifest to this path (.json or .yaml)"
    ),
    output_format: str = typer.Option("table", "--format", "-f", help="Output format: table or json"),
    verbosity: int = typer.Option(0, "--verbose", "-v", count=True, help="-v for INFO, -vv for DEBUG"),
) -> None:
    """Resolve every coordinate through one session and report the winners."""

    if output_format not in {"table", "json"}:
        raise typer.BadParameter("format must be 'table' or 'json'")
    parsed = _parse_coordinates(coordinates)
    settings = _prepare(verbosity)

    try:
        channels = build_channels(load_channels_file(channels_file))
        with ChannelSession(channels, RepositoryResolverFactory(settings)) as session:
            results = session.resolve_artifacts(parsed)
            provenance = session.recorded_manifest()
        if manifest is not None:
            write_manifest(manifest, provenance)
    except (ChannelResolveError, OSError) as exc:
        _fail(exc)
        return

    if output_format == "json":
        typer.echo(json.dumps([result.to_dict() for result in results], indent=2))
    else:
        table = Table(title="Resolved artifacts")
        table.add_column("Coordinate")
        table.add_column("Version")
        table.add_column("Channel")
        table.add_column("Path", overflow="fold")
        for result in results:
            table.add_row(
                f"{result.group_id}:{result.artifact_id}",
                result.version,
                result.channel,
                str(result.path),
            )
        _console.print(table)
    if manifest is not None:
        _console.print(f"[green]Manifest written to {manifest}[/green]")


@app.command()
def versions(
    channels_file: Path = typer.Argument(..., help="YAML file declaring channels in priority order"),
    coordinate: str = typer.Argument(..., help="group:artifact[:extension[:classifier]]"),
    verbosity: int = typer.Option(0, "--verbose", "-v", count=True, help="-v for INFO, -vv for DEBUG"),
) -> None:
    """Show the latest version each channel offers, without downloading."""

    (parsed,) = _parse_coordinates([coordinate])
    settings = _prepare(verbosity)

    try:
        channels = build_channels(load_channels_file(channels_file))
        with ChannelSession(channels, RepositoryResolverFactory(settings)) as session:
            names = [channel.name for channel in session.channels]
            candidates = session.collect_candidates(parsed)
            winner = session.select_latest(candidates)
    except ChannelResolveError as exc:
        _fail(exc)
        return

    offers = {candidate.index: candidate.version for candidate in candidates}
    table = Table(title=f"Versions for {parsed.group_id}:{parsed.artifact_id}")
    table.add_column("Channel")
    table.add_column("Latest")
    for index, name in enumerate(names):
        marker = " *" if winner is not None and index == winner.index else ""
        table.add_row(name, offers.get(index, "-") + marker)
    _console.print(table)
    if winner is None:
        _fail(UnresolvedArtifactError.for_coordinate("No channel offers a version", parsed))
        return
    _console.print(f"Selected [bold]{winner.version}[/bold] from channel [bold]{winner.channel.name}[/bold]")


__all__ = ["app", "main", "resolve", "versions"]
