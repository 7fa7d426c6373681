"""Run command for playing scenarios."""

import typer
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import logging

import rich.console
import rich.table

from ...core import Config, create_session
from ...extensions import ExtensionRegistry, PrometheusExtension, TimingExtension
from ...monitoring import ResultsExporter, ValuesExporter
from ...scenarios import Player, ResultSet, ScenarioLoader, ScenarioLoadError
from ...steps import HttpStepExecutor

logger = logging.getLogger(__name__)
console = rich.console.Console()


def build_extensions(names: List[str], config: Config) -> List[Any]:
    """Instantiate extensions by registered name."""
    extensions = []
    for name in names:
        if name == "prometheus":
            extension = PrometheusExtension(
                pushgateway_url=config.monitoring.prometheus_pushgateway,
                job_name=config.monitoring.job_name,
            )
        else:
            extension = ExtensionRegistry.create_instance(name)
        extensions.append(extension)
    return extensions


async def run_scenarios_async(
    scenario_file: Path,
    config: Config,
    extensions: List[Any],
) -> ResultSet:
    """Load the scenario file and play every scenario in it."""
    scenarios = ScenarioLoader().load_file(scenario_file)

    if config.player.endpoint:
        scenarios = [scenario.with_endpoint(config.player.endpoint) for scenario in scenarios]

    executor = HttpStepExecutor(config.http)
    player = Player.create(
        config.player.concurrency,
        executor,
        client_factory=lambda: create_session(config.http),
        reset_on_release=config.player.reset_cookies,
        extensions=extensions,
    )

    try:
        async with player.pool:
            return await player.run_multi(scenarios)
    finally:
        await executor.close()


def print_results(results: ResultSet) -> None:
    """Print a summary table of a batch."""
    table = rich.table.Table(show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right")
    table.add_column("Scenario")
    table.add_column("Status")
    table.add_column("Steps", justify="right")
    table.add_column("Time (s)", justify="right")
    table.add_column("Error")

    for i, result in enumerate(results):
        if result.is_errored:
            status = "[red]errored[/red]"
            if result.failed_step_index is not None:
                status += f" (step {result.failed_step_index})"
        else:
            status = "[green]completed[/green]"

        table.add_row(
            str(i),
            result.scenario_name,
            status,
            str(result.steps_attempted),
            f"{result.elapsed_seconds:.2f}",
            result.error or "",
        )

    console.print(table)
    console.print(f"{len(results.completed)} completed, {len(results.errored)} errored")


def print_latency(summary: Dict[str, Dict[str, float]]) -> None:
    """Print step latency statistics."""
    if not summary:
        return

    table = rich.table.Table(show_header=True, header_style="bold magenta", title="Step latency (ms)")
    table.add_column("Step")
    for column in ("count", "errors", "mean", "p50", "p95", "p99", "max"):
        table.add_column(column, justify="right")

    for step_name, stats in summary.items():
        table.add_row(
            step_name,
            str(stats["count"]),
            str(stats["errors"]),
            *(f"{stats[key]:.1f}" for key in ("mean", "p50", "p95", "p99", "max")),
        )

    console.print(table)


def _load_config(config_path: Optional[Path], overrides: Dict[str, Any]) -> Config:
    """Load configuration and apply command line overrides."""
    config = Config(config_path=config_path)

    if overrides.get("concurrency") is not None:
        config.player.concurrency = overrides["concurrency"]
    if overrides.get("endpoint"):
        config.player.endpoint = overrides["endpoint"]
    if overrides.get("reset_cookies"):
        config.player.reset_cookies = True
    if overrides.get("pushgateway"):
        config.monitoring.prometheus_pushgateway = overrides["pushgateway"]
    if overrides.get("output"):
        config.output.values_path = overrides["output"]
    if overrides.get("results"):
        config.output.results_path = overrides["results"]
    for name in overrides.get("extensions") or []:
        if name not in config.monitoring.extensions:
            config.monitoring.extensions.append(name)

    # Asking for a pushgateway implies the prometheus extension
    if config.monitoring.prometheus_pushgateway and "prometheus" not in config.monitoring.extensions:
        config.monitoring.extensions.append("prometheus")

    config.validate()
    return config


def _export(results: ResultSet, config: Config, extensions: List[Any]) -> Tuple[Optional[Path], Optional[Path]]:
    latency = None
    for extension in extensions:
        if isinstance(extension, TimingExtension):
            latency = extension.summary()

    values_path = results_path = None
    if config.output.values_path:
        values_path = asyncio.run(ValuesExporter(config.output.values_path).export(results))
    if config.output.results_path:
        results_path = asyncio.run(ResultsExporter(config.output.results_path).export(results, latency))
    return values_path, results_path


def run(
    scenario_file: Path = typer.Argument(..., help="Path to scenario YAML file"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-c", min=1,
                                              help="Number of scenarios played in parallel"),
    endpoint: Optional[str] = typer.Option(None, "--endpoint", help="Override the endpoint of every scenario"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write extracted values as JSON"),
    results_file: Optional[Path] = typer.Option(None, "--results", help="Write a YAML results summary"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="Configuration file"),
    extension: Optional[List[str]] = typer.Option(None, "--extension", "-e",
                                                  help="Enable an extension (repeatable)"),
    pushgateway: Optional[str] = typer.Option(None, "--pushgateway", help="Prometheus pushgateway URL"),
    reset_cookies: bool = typer.Option(False, "--reset-cookies",
                                       help="Clear client cookies between scenarios"),
):
    """Play the scenarios of a file and report their results."""
    if not scenario_file.exists():
        typer.echo(f"Scenario file not found: {scenario_file}", err=True)
        raise typer.Exit(1)

    try:
        config = _load_config(config_file, {
            "concurrency": concurrency,
            "endpoint": endpoint,
            "reset_cookies": reset_cookies,
            "pushgateway": pushgateway,
            "output": output,
            "results": results_file,
            "extensions": extension,
        })
    except (ValueError, FileNotFoundError) as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(1)

    if "log_level" in (config.data.get("output") or {}):
        logging.getLogger("scenario_player").setLevel(config.output.log_level)

    try:
        extensions = build_extensions(config.monitoring.extensions, config)
    except KeyError as e:
        typer.echo(f"Error: {e.args[0]}", err=True)
        raise typer.Exit(1)

    try:
        results = asyncio.run(run_scenarios_async(scenario_file, config, extensions))
    except ScenarioLoadError as e:
        typer.echo(f"Invalid scenario file: {e}", err=True)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        typer.echo("\nScenario execution interrupted by user")
        raise typer.Exit(130)

    print_results(results)
    for extension_instance in extensions:
        if isinstance(extension_instance, TimingExtension):
            print_latency(extension_instance.summary())

    values_path, results_path = _export(results, config, extensions)
    if values_path:
        typer.echo(f"Values written to: {values_path}")
    if results_path:
        typer.echo(f"Results written to: {results_path}")

    raise typer.Exit(results.exit_code)
