"""Typer CLI for the credentials toolbox.

Provides commands: upsert, get, search, ingest, aggregate, worker, preload.
Main entrypoint for the credentials toolbox command-line interface.
"""

from __future__ import annotations

import json
import time
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from credtoolbox import __version__
from credtoolbox.cli.config import ToolboxConfig, ToolboxServices, create_services, setup_logging
from credtoolbox.sdk.errors import Outcome
from credtoolbox.sdk.models import CredentialType, RawUsageSnapshot


app = typer.Typer(
    name="credtoolbox",
    help="Credentials toolbox - Credential type registry + usage statistics",
    add_completion=False,
    rich_markup_mode="rich"
)
console = Console()


def version_callback(show_version: bool) -> None:
    """Show version and exit."""
    if show_version:
        console.print(f"credtoolbox version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True
    )
) -> None:
    """Credentials toolbox CLI."""
    pass


def _open_services() -> tuple[ToolboxConfig, ToolboxServices]:
    """Load configuration, set up logging and connect the core components."""
    config = ToolboxConfig()
    setup_logging(config)
    return config, create_services(config)


def _unwrap(outcome: Outcome):  # type: ignore[no-untyped-def]
    """Return outcome data, raising ValueError with the error message on failure."""
    if outcome.error is not None:
        raise ValueError(f"{outcome.error.message} ({outcome.error.error_type.value})")
    return outcome.data


@app.command()
def upsert(
    payload_file: Path = typer.Argument(..., help="Path to JSON-LD context payload file"),
    context: str = typer.Option(..., "--context", "-c", help="Context URL"),
    short_type: str = typer.Option(..., "--short-type", "-t", help="Short type name inside the context"),
    description: str = typer.Option("", "--description", "-d", help="Credential type description"),
    publisher: str | None = typer.Option(None, "--publisher", "-p", help="Publisher DID")
) -> None:
    """Register a credential type, or publish a new version of it."""
    try:
        payload = _load_json_object(payload_file, "Payload")
        _, services = _open_services()

        credential_type = _unwrap(services.registry.upsert(context, short_type, payload, description, publisher))

        console.print("✅ Credential type saved!")
        console.print(f"Type: [bold]{credential_type.short_type}[/bold]")
        console.print(f"Context: {credential_type.context}")
        console.print(f"Medium: {credential_type.medium.value}")
        console.print(f"Versions: {len(credential_type.context_payloads)}")

    except Exception as e:
        console.print(f"❌ Error saving credential type: {e}")
        raise typer.Exit(1)


@app.command()
def get(
    context: str = typer.Argument(..., help="Context URL"),
    short_type: str | None = typer.Option(None, "--short-type", "-t", help="Short type name")
) -> None:
    """Show a credential type as JSON."""
    try:
        _, services = _open_services()
        credential_type = _unwrap(services.registry.get_by_context_and_type(context, short_type))

        if credential_type is None:
            console.print("❌ Credential type not found")
            raise typer.Exit(1)

        _print_json(credential_type)

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"❌ Error retrieving credential type: {e}")
        raise typer.Exit(1)


@app.command()
def search(
    query: str = typer.Argument("", help="Keyword to search for (empty lists everything)"),
    limit: int | None = typer.Option(None, "--limit", "-l", help="Maximum number of results")
) -> None:
    """Search credential types by keyword, most used first."""
    try:
        config, services = _open_services()
        credential_types = _unwrap(services.registry.search(query, limit or config.search_limit))

        if not credential_types:
            console.print("No credential type found")
            return

        console.print(_build_results_table(credential_types))

    except Exception as e:
        console.print(f"❌ Error searching credential types: {e}")
        raise typer.Exit(1)


def _build_results_table(credential_types: list[CredentialType]) -> Table:
    """Build the search results table."""
    table = Table(title="Credential types")
    table.add_column("Type", style="bold")
    table.add_column("Context")
    table.add_column("Medium")
    table.add_column("Users", justify="right")
    table.add_column("Credentials", justify="right")

    for credential_type in credential_types:
        stats = credential_type.last_month_stats
        table.add_row(
            credential_type.short_type,
            credential_type.context,
            credential_type.medium.value,
            str(stats.total_users) if stats else "-",
            str(stats.total_credentials) if stats else "-",
        )
    return table


@app.command()
def ingest(
    snapshot_file: Path = typer.Argument(..., help="Path to JSON usage snapshot file")
) -> None:
    """Store a user's usage statistics snapshot."""
    try:
        snapshot = _load_snapshot(snapshot_file)
        _, services = _open_services()
        _unwrap(services.ingestion.ingest(snapshot))

        console.print("✅ Usage statistics stored!")
        console.print(f"User: [bold]{snapshot.user_id}[/bold]")
        console.print(f"Owned: {len(snapshot.owned_credentials)}  Used: {len(snapshot.used_credentials)}")

    except Exception as e:
        console.print(f"❌ Error storing usage statistics: {e}")
        raise typer.Exit(1)


def _load_snapshot(snapshot_file: Path) -> RawUsageSnapshot:
    """Load and validate a usage snapshot file."""
    data = _load_json_object(snapshot_file, "Snapshot")
    try:
        return RawUsageSnapshot.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid usage snapshot: {e.error_count()} validation error(s)")


@app.command()
def aggregate() -> None:
    """Run one statistics aggregation pass."""
    try:
        _, services = _open_services()
        report = _unwrap(services.aggregator.run_once())

        console.print("✅ Statistics aggregated!")
        console.print(f"Processed snapshots: {report.processed_snapshots}")
        console.print(f"Updated types: {report.updated_types}")
        if report.skipped_types:
            console.print(f"Skipped unregistered types: {len(report.skipped_types)}")
        if report.failed_types:
            console.print(f"[red]Failed types: {len(report.failed_types)}[/red]")

    except Exception as e:
        console.print(f"❌ Error aggregating statistics: {e}")
        raise typer.Exit(1)


@app.command()
def worker(
    interval: int | None = typer.Option(None, "--interval", "-i", help="Seconds between aggregation passes")
) -> None:
    """Run statistics aggregation in a loop until interrupted."""
    try:
        config, services = _open_services()
        interval_seconds = interval or config.stats_interval_seconds
        services.aggregator.start(interval_seconds)
    except Exception as e:
        console.print(f"❌ Error starting statistics aggregation: {e}")
        raise typer.Exit(1)

    console.print(f"Statistics aggregation running every {interval_seconds}s. Press Ctrl+C to stop.")
    try:
        while services.aggregator.running:
            time.sleep(1)
    except KeyboardInterrupt:
        services.aggregator.stop()
        console.print("Statistics aggregation stopped")


@app.command()
def preload() -> None:
    """Fetch and import the built-in credential types."""
    try:
        _, services = _open_services()
        report = services.registry.preload()

        console.print("✅ Built-in types refreshed!")
        console.print(f"Imported: {len(report.imported)}")
        console.print(f"Unchanged: {len(report.unchanged)}")
        for label in report.failed:
            console.print(f"[red]Failed: {label}[/red]")

    except Exception as e:
        console.print(f"❌ Error preloading credential types: {e}")
        raise typer.Exit(1)


def _load_json_object(path: Path, what: str) -> dict:
    """Load a JSON file that must contain an object."""
    if not path.exists():
        raise ValueError(f"{what} file not found: {path}")

    try:
        with path.open() as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{what} must be a JSON object")
        return data
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {what.lower()} file: {e}")


def _print_json(credential_type: CredentialType) -> None:
    # Use print() to avoid rich formatting issues
    print(json.dumps(credential_type.model_dump(mode="json", by_alias=True, exclude_none=True), indent=2))


if __name__ == "__main__":
    app()
