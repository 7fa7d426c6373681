"""Scenario file validation command."""

import typer
from pathlib import Path

from ...scenarios.loader import ScenarioLoader, ScenarioLoadError


def validate(
    scenario_file: Path = typer.Argument(..., help="Path to scenario YAML file"),
):
    """Validate a scenario file without playing it."""
    typer.echo(f"Validating scenarios: {scenario_file}")

    if not scenario_file.exists():
        typer.echo(f"❌ Scenario file not found: {scenario_file}", err=True)
        raise typer.Exit(1)

    try:
        scenarios = ScenarioLoader().load_file(scenario_file)
    except ScenarioLoadError as e:
        typer.echo(f"❌ Scenario validation failed: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"✅ {len(scenarios)} scenarios are valid")
    for scenario in scenarios:
        endpoint = scenario.endpoint or "(no endpoint)"
        typer.echo(f"  {scenario.name} -> {endpoint}")
        for i, step in enumerate(scenario.steps):
            details = []
            if step.extract:
                details.append(f"extracts {', '.join(step.extract)}")
            if step.assertions or step.expect_status is not None:
                checks = len(step.assertions) + (1 if step.expect_status is not None else 0)
                details.append(f"{checks} checks")
            suffix = f" ({'; '.join(details)})" if details else ""
            typer.echo(f"    {i}. {step.name}{suffix}")
