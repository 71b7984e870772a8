"""
sensordb Command Line Interface (CLI)

Operational helpers for a sensor table deployment: inspect the resolved
configuration, provision the table ahead of the first message, list the live
columns, and load records from JSON files. Configuration is read the same way
the serverless handler reads it, from the environment.
"""

import dataclasses
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from sensordb.core.errors import SensorDBError
from sensordb.core.settings import SensorDBSettings
from sensordb.runtime import SensorSink, create_sink

app = typer.Typer(rich_markup_mode="markdown")
console = Console()


def output_json(data: Any) -> None:
    """Helper to output data as JSON."""
    print(json.dumps(data, default=str, indent=2))


def get_sink(
    instance: Optional[str] = None, function_name: Optional[str] = None
) -> SensorSink:
    """Build a sink from the environment, with optional instance overrides."""
    settings = SensorDBSettings.from_env()
    overrides: Dict[str, Any] = {}
    if instance is not None:
        overrides["instance"] = instance
    if function_name is not None:
        overrides["function_name"] = function_name
    if overrides:
        settings = dataclasses.replace(settings, **overrides)
    return create_sink(settings=settings)


def _fail(exc: Exception) -> None:
    console.print(f"[red]{type(exc).__name__}: {exc}[/red]")
    raise typer.Exit(1)


def _load_records(path: Path) -> List[Dict[str, Any]]:
    data = json.loads(path.read_text())
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list) and all(isinstance(item, dict) for item in data):
        return data
    raise typer.BadParameter("File must hold a JSON object or a list of objects.")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs."),
) -> None:
    """Ingest device telemetry into a SQL table."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@app.command()
def config(
    instance: Optional[str] = typer.Option(
        None, "--instance", help="Instance suffix appended to every metadata key."
    ),
    function_name: Optional[str] = typer.Option(
        None, "--function-name", help="Derive the instance suffix from this name."
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """
    Shows the resolved database configuration (password redacted).
    """
    with get_sink(instance, function_name) as sink:
        try:
            resolved = sink.get_config().redacted()
        except SensorDBError as exc:
            _fail(exc)
            return

    if json_output:
        output_json(resolved)
        return

    table = Table(title="Resolved Configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    for key, value in resolved.items():
        table.add_row(key, "" if value is None else str(value))
    console.print(table)


@app.command()
def provision(
    instance: Optional[str] = typer.Option(
        None, "--instance", help="Instance suffix appended to every metadata key."
    ),
) -> None:
    """
    Creates the sensor table if it does not exist yet.
    """
    with get_sink(instance) as sink:
        try:
            result = sink.ensure_table()
        except SensorDBError as exc:
            _fail(exc)
            return

    if result.created:
        console.print(f"[green]✓ Created table {result.table}[/green]")
    else:
        console.print(f"[yellow]Table {result.table} already exists[/yellow]")
    if result.skipped_fields:
        console.print(
            f"[red]Skipped fields with unknown types: {', '.join(result.skipped_fields)}[/red]"
        )


@app.command()
def columns(
    instance: Optional[str] = typer.Option(
        None, "--instance", help="Instance suffix appended to every metadata key."
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """
    Lists the live columns of the sensor table.
    """
    with get_sink(instance) as sink:
        try:
            handle = sink.get_connection()
        except SensorDBError as exc:
            _fail(exc)
            return

    if json_output:
        output_json(dict(handle.table_info))
        return
    if not handle.table_exists:
        console.print(
            f"[yellow]Table {handle.config.table} does not exist. "
            "Run `sensordb provision` to create it.[/yellow]"
        )
        return

    table = Table(title=f"Columns of {handle.config.table}")
    table.add_column("Column", style="cyan")
    table.add_column("Type", style="magenta")
    for name, type_name in handle.table_info.items():
        table.add_row(name, type_name)
    console.print(table)


@app.command()
def ingest(
    path: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="JSON file with one record or a list."
    ),
    device: Optional[str] = typer.Option(
        None, "--device", help="Device ID, when records do not carry one."
    ),
    instance: Optional[str] = typer.Option(
        None, "--instance", help="Instance suffix appended to every metadata key."
    ),
) -> None:
    """
    Ingests records from a JSON file. Rows the database rejects are reported
    and skipped.
    """
    records = _load_records(path)
    with get_sink(instance) as sink:
        try:
            for index, record in enumerate(records):
                sink.ingest(record.get("device", device), record, passthrough=index)
        except SensorDBError as exc:
            _fail(exc)
            return
    console.print(f"[green]✓ Processed {len(records)} record(s) from {path}[/green]")


if __name__ == "__main__":
    app()
