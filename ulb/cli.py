"""Thin CLI wrapper for ulb.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.

Exit codes for `build`: 0 success, 1 invalid config or workspace,
2 sandbox could not be provisioned, 3 a stage command failed.
"""

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from ulb import __version__
from ulb.config import get_settings, print_settings_json
from ulb.errors import ConfigError, SandboxError, StageError, UlbError
from ulb.manifest import DEFAULT_CONFIG_NAME

app = typer.Typer(
    name="ulb",
    help="Universal Live Builder - build live ISO images in a disposable sandbox",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

EXIT_CONFIG_ERROR = 1
EXIT_SANDBOX_ERROR = 2
EXIT_STAGE_ERROR = 3

ConfigPathArg = Annotated[
    Path,
    typer.Argument(help="Path to the build config (Config.toml)"),
]


def _print_json(text: str) -> None:
    # Record fields may hold brackets; printed verbatim so the output stays parseable
    console.print(text, markup=False, highlight=False, emoji=False, soft_wrap=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"ulb version {__version__}")
        raise typer.Exit()


def _configure_logging(level: str) -> None:
    # Logs go to stderr so structured progress on stdout stays parseable
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def exit_code_for(error: UlbError) -> int:
    """Map an error to the `build` command's exit code."""
    if isinstance(error, ConfigError):
        return EXIT_CONFIG_ERROR
    if isinstance(error, SandboxError):
        return EXIT_SANDBOX_ERROR
    if isinstance(error, StageError):
        return EXIT_STAGE_ERROR
    return 1


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Universal Live Builder - build live ISO images in a disposable sandbox."""
    try:
        settings = get_settings()
    except ValidationError as e:
        err_console.print(f"[red]Invalid settings:[/red] {escape(str(e))}")
        raise typer.Exit(EXIT_CONFIG_ERROR) from None
    _configure_logging("DEBUG" if verbose else settings.log_level)


@app.command()
def build(
    config_path: ConfigPathArg = Path(DEFAULT_CONFIG_NAME),
    release: Annotated[
        bool,
        typer.Option("--release", "-r", help="Build release.iso instead of debug.iso"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json-output", "--json", help="Emit progress as JSON lines on stdout"
        ),
    ] = False,
) -> None:
    """Build an ISO image from the project config."""
    from ulb.db import open_history
    from ulb.pipeline import run_build

    settings = get_settings()
    factory = open_history(settings.db_url)

    try:
        result = run_build(
            config_path,
            release=release,
            json_output=json_output,
            settings=settings,
            session_factory=factory,
        )
    except UlbError as e:
        err_console.print(f"[red]Build failed ({e.code}):[/red] {escape(str(e))}")
        raise typer.Exit(code=exit_code_for(e)) from None

    if not json_output:
        err_console.print(f"[green]✓ Image built:[/green] {result.iso_path}")


@app.command()
def clean(
    config_path: ConfigPathArg = Path(DEFAULT_CONFIG_NAME),
) -> None:
    """Remove the persistent build cache.

    Do not run while a build is using the same project.
    """
    from ulb.workspace import Workspace, clean_cache

    settings = get_settings()
    workspace = Workspace.for_config(config_path, settings.build_dir)
    if clean_cache(workspace):
        console.print(f"[green]Cache cleaned:[/green] {workspace.cache_dir}")
    else:
        console.print(f"[yellow]No cache at {workspace.cache_dir}[/yellow]")


@app.command()
def status(
    config_path: ConfigPathArg = Path(DEFAULT_CONFIG_NAME),
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the project config and container engine availability."""
    from ulb.manifest import load_config
    from ulb.sandbox.podman import podman_available

    settings = get_settings()
    try:
        config = load_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from None

    available = podman_available(settings.podman_binary)

    if json_output:
        output = {
            "version": __version__,
            "config_path": str(config_path),
            "distro": config.distro.value,
            "image_name": config.image_name,
            "installer": config.installer,
            "architecture": config.architecture,
            "podman_available": available,
        }
        _print_json(json.dumps(output, indent=2))
        return

    console.print(f"ULB version: {__version__}")
    console.print(f"Config path: {config_path}")
    console.print(f"Distro: {config.distro.value}")
    console.print(f"Image name: {config.image_name}")
    if config.installer:
        console.print(f"Installer: {config.installer}")
    if config.architecture:
        console.print(f"Architecture: {config.architecture}")
    if available:
        console.print(f"[green]{settings.podman_binary} is available.[/green]")
    else:
        console.print(
            f"[yellow]Warning: {settings.podman_binary} is not available "
            "or not in PATH.[/yellow]"
        )


@app.command()
def init(
    directory: Annotated[
        Path,
        typer.Argument(help="Project directory to initialise"),
    ] = Path("."),
) -> None:
    """Create a project skeleton (config, package list, input directories)."""
    from ulb.workspace import init_project

    settings = get_settings()
    created = init_project(directory, settings.build_dir)
    if not created:
        console.print("[yellow]Project already initialised[/yellow]")
        return
    console.print("[bold]Project initialised:[/bold]")
    for path in created:
        console.print(f"  {path}")


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        _print_json(print_settings_json(settings))
        return

    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Build directory:     {settings.build_dir}")
    console.print(f"  Database URL:        {settings.db_url}")
    console.print()
    console.print("[bold]Operational:[/bold]")
    console.print(f"  Log level:           {settings.log_level}")
    console.print(f"  Container engine:    {settings.podman_binary}")
    console.print(f"  Sandbox suffix:      {settings.sandbox_suffix or '(none)'}")
    console.print()
    console.print("[bold]Sandbox images:[/bold]")
    console.print(f"  Fedora:              {settings.fedora_image}")
    console.print(f"  Debian:              {settings.debian_image}")
    console.print()
    console.print("[bold]Distro sources:[/bold]")
    console.print(
        f"  Fedora release:      {settings.fedora_release or '(sandbox release)'}"
    )
    console.print(f"  Debian suite:        {settings.debian_suite}")
    console.print(f"  Debian mirror:       {settings.debian_mirror}")


@app.command()
def history(
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Maximum number of records to return"),
    ] = 20,
    distro: Annotated[
        str | None,
        typer.Option("--distro", "-d", help="Filter by distro"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List recent builds."""
    from ulb.db import open_history
    from ulb.history import list_builds

    settings = get_settings()
    factory = open_history(settings.db_url)

    with factory() as session:
        records = list_builds(session, distro=distro, limit=limit)

        if not records:
            if json_output:
                _print_json("[]")
            else:
                console.print("[yellow]No builds found[/yellow]")
            return

        if json_output:
            _print_json(json.dumps([r.to_dict() for r in records], indent=2))
            return

        console.print(f"[bold]Found {len(records)} build(s):[/bold]")
        console.print()
        for r in records:
            status_color = {
                "succeeded": "green",
                "failed": "red",
                "running": "blue",
                "pending": "yellow",
            }.get(r.status, "white")
            console.print(f"  [{status_color}]Build #{r.id}[/{status_color}]")
            console.print(f"    Distro: {r.distro}")
            console.print(f"    Image: {r.image_name}")
            console.print(f"    Status: {r.status}")
            console.print(f"    Release: {r.release}")
            if r.iso_path:
                console.print(f"    ISO: {r.iso_path}")
            if r.failed_stage:
                console.print(f"    Failed stage: {r.failed_stage}")
            if r.error_message:
                console.print(f"    Error: {escape(r.error_message)}")
            console.print()


if __name__ == "__main__":
    app()
