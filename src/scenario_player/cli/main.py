"""
Scenario Player CLI

Main entry point for the scenario-player command-line tool.
"""

import typer
import logging
import sys

from . import commands
from ..extensions import ExtensionRegistry

app = typer.Typer(
    name="scenario-player",
    help="Play HTTP scenarios concurrently and report their results",
    add_completion=False,
)

app.command(name="run", help="Play the scenarios of a file")(commands.run.run)
app.command(name="validate", help="Validate a scenario file")(commands.validate.validate)


def _configure_logging(verbose: bool, quiet: bool) -> None:
    """Configure logging based on verbosity flags."""
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )

    # Reduce noise from third-party libraries
    if not verbose:
        logging.getLogger('aiohttp').setLevel(logging.WARNING)
        logging.getLogger('asyncio').setLevel(logging.WARNING)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-error output"),
):
    """Scenario Player."""
    if verbose and quiet:
        typer.echo("Error: Cannot use both --verbose and --quiet", err=True)
        raise typer.Exit(1)

    _configure_logging(verbose, quiet)


def _get_version() -> str:
    """Get package version."""
    try:
        import importlib.metadata
        return importlib.metadata.version("scenario-player")
    except Exception:
        # Package metadata is missing when running from a source checkout
        return "0.1.0"


@app.command()
def version():
    """Display version information."""
    typer.echo(f"scenario-player version {_get_version()}")

    import importlib.metadata
    typer.echo(f"Python {sys.version}")

    typer.echo("\nKey dependencies:")
    for dep in ['aiohttp', 'typer', 'pyyaml', 'prometheus-client']:
        try:
            typer.echo(f"  {dep}: {importlib.metadata.version(dep)}")
        except importlib.metadata.PackageNotFoundError:
            typer.echo(f"  {dep}: Not found")


@app.command()
def extensions():
    """List the extensions available to --extension."""
    for info in ExtensionRegistry.get_extension_info():
        typer.echo(f"{info['name']:<12} {info['description']}")


if __name__ == "__main__":
    app()
