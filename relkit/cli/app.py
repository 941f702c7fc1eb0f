from __future__ import annotations

import os
from pathlib import Path

import typer

from relkit import __version__
from relkit.core.config import CONFIG_FILENAME, load_project_config
from relkit.core.errors import ErrorCode
from relkit.core.result import Err
from relkit.output.console import RichConsole
from relkit.output.errors import print_release_error, release_error_exit_code
from relkit.platform.runtime import PlatformRuntime
from relkit.release.beam import BeamError, strip_beam
from relkit.release.descriptor import from_config
from relkit.release.errors import ReleaseError
from relkit.release.pipeline import run_steps

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@app.callback(invoke_without_command=True)
def _main(  # pyright: ignore[reportUnusedFunction]
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))


@app.command()
def assemble(
    name: str | None = typer.Argument(None, help="Release to assemble (default: inferred)"),
    config: Path = typer.Option(Path(CONFIG_FILENAME), "--config", help="Project file"),
    path: Path | None = typer.Option(None, "--path", help="Release root (overrides the project)"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing release"),
    quiet: bool = typer.Option(False, "--quiet", help="Only print warnings and errors"),
) -> None:
    """Assemble a release from the project's components."""
    console = RichConsole()

    project_result = load_project_config(config)
    if isinstance(project_result, Err):
        console.error(project_result.error.message)
        raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))
    project = project_result.value

    platform_result = PlatformRuntime.from_settings(project.platform, os.environ)
    if isinstance(platform_result, Err):
        console.error(platform_result.error.message)
        raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))

    overrides: dict[str, object] = {}
    if path is not None:
        overrides["path"] = str(path)
    if overwrite:
        overrides["overwrite"] = True
    if quiet:
        overrides["quiet"] = True

    try:
        release = from_config(name, project, overrides, platform_result.value)
        release = run_steps(release, console, project.config)
    except (ReleaseError, OSError) as e:
        print_release_error(e, console)
        raise typer.Exit(code=release_error_exit_code(e))

    if not release.options.quiet:
        console.success(f"Release {release.name}-{release.version} assembled at {release.path}")


@app.command()
def strip(
    file: Path = typer.Argument(..., help="Compiled module to strip"),
    keep: list[str] = typer.Option([], "--keep", help="Extra chunk to keep (repeatable)"),
    compress: bool = typer.Option(False, "--compress", help="Gzip the stripped module"),
    out: Path | None = typer.Option(None, "--out", help="Output path (default: in place)"),
) -> None:
    """Strip a compiled module down to the chunks needed to load it."""
    console = RichConsole()
    try:
        stripped = strip_beam(file.read_bytes(), keep, compress=compress)
    except OSError as e:
        print_release_error(e, console)
        raise typer.Exit(code=int(ErrorCode.IO_ERROR))
    except BeamError as e:
        console.error(f"{file}: {e}")
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    target = out or file
    target.write_bytes(stripped)
    console.success(f"{target} ({len(stripped)} bytes)")


def main() -> None:
    app()
