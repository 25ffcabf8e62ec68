"""Command-line interface for DocDuck.

Commands operate on the settings database named by ``DATABASE_URL``:
``seed`` writes first-run settings from the environment, ``providers``
shows the current snapshot, ``probe`` checks one provider and ``plan``
prints dry-run sync plans.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from docduck.config.environment import EnvironmentSettings, load_environment
from docduck.configuration.snapshot import ConfigurationSnapshot
from docduck.factory import DocDuckFactory
from docduck.indexing.planner import SyncPlanBatch
from docduck.providers.base import ProbeRequest
from docduck.utils import exceptions
from docduck.utils.logging_utils import get_logger, setup_logging

logger = get_logger()


class LogLevel(str, Enum):
    """Log levels for the CLI."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="docduck",
    help="DocDuck provider configuration and incremental sync",
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)


class GlobalState:
    """Global state for the CLI."""

    environment: EnvironmentSettings | None = None


state = GlobalState()

JSON_OUTPUT_OPTION = typer.Option(False, "--json", help="Print machine-readable JSON")


def _fail(message: str) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(1)


def _factory() -> DocDuckFactory:
    environment = state.environment or load_environment()
    return DocDuckFactory(environment=environment)


@app.callback()
def main(
    env_file: Path | None = typer.Option(None, "--env-file", help="Read variables from this .env file"),
    log_level: LogLevel | None = typer.Option(None, "--log-level", "-l", help="Override LOG_LEVEL"),
    log_file: str | None = typer.Option(None, "--log-file", help="Also write JSON logs to this file"),
) -> None:
    """DocDuck command-line interface."""
    environment = load_environment(dotenv_path=env_file)
    state.environment = environment

    logging_config = environment.config.logging
    level_name = log_level.value if log_level is not None else logging_config.level
    setup_logging(
        log_file=log_file or logging_config.log_file,
        log_level=getattr(logging, level_name, logging.INFO),
        json_logs=logging_config.json_logs,
    )


async def _seed(factory: DocDuckFactory) -> tuple[bool, list[str]]:
    openai_written = await factory.openai_seeder.seed_from_environment()
    seeded = await factory.provider_seeder.seed_from_environment()
    return openai_written, [str(key) for key in seeded]


@app.command()
def seed(json_output: bool = JSON_OUTPUT_OPTION) -> None:
    """Write settings from the environment where no record exists yet."""
    factory = _factory()
    try:
        openai_written, seeded = asyncio.run(_seed(factory))
    except exceptions.DocDuckError as e:
        _fail(f"Seeding failed: {e}")
    finally:
        factory.close()

    if json_output:
        print(json.dumps({"openai": openai_written, "providers": seeded}))
        return
    console.print(f"OpenAI settings: {'seeded' if openai_written else 'already present'}")
    if seeded:
        for key in seeded:
            console.print(f"Seeded provider [cyan]{key}[/cyan]")
    else:
        console.print("No provider settings seeded")


def _snapshot_rows(snapshot: ConfigurationSnapshot) -> list[dict[str, Any]]:
    rows = []
    for settings in snapshot.list_settings():
        key = settings.key
        problems = "; ".join(d.message for d in snapshot.diagnostics_for(key))
        if snapshot.is_available(key):
            status = "available"
        elif not settings.enabled:
            status = "disabled"
        else:
            status = "unavailable"
        rows.append(
            {
                "type": key.provider_type,
                "name": settings.name,
                "status": status,
                "extensions": list(settings.file_extensions),
                "diagnostics": problems,
            }
        )
    for diagnostic in snapshot.diagnostics:
        if diagnostic.stage == "parse":
            rows.append(
                {
                    "type": diagnostic.key.provider_type,
                    "name": diagnostic.key.name,
                    "status": "unreadable",
                    "extensions": [],
                    "diagnostics": diagnostic.message,
                }
            )
    return rows


@app.command()
def providers(json_output: bool = JSON_OUTPUT_OPTION) -> None:
    """List configured providers with their availability."""
    factory = _factory()
    try:
        snapshot = asyncio.run(factory.configuration_service.refresh())
        rows = _snapshot_rows(snapshot)
    except exceptions.DocDuckError as e:
        _fail(f"Could not load provider settings: {e}")
    finally:
        factory.close()

    if json_output:
        print(json.dumps({"loaded_at": snapshot.loaded_at.isoformat(), "providers": rows}))
        return

    table = Table(title=f"Providers (loaded {snapshot.loaded_at:%Y-%m-%d %H:%M:%S})")
    for column in ("Type", "Name", "Status", "Extensions", "Diagnostics"):
        table.add_column(column)
    styles = {"available": "green", "disabled": "dim", "unavailable": "red", "unreadable": "red"}
    for row in rows:
        table.add_row(
            row["type"],
            row["name"],
            f"[{styles[row['status']]}]{row['status']}[/]",
            ", ".join(row["extensions"]),
            row["diagnostics"],
        )
    console.print(table)


async def _probe(factory: DocDuckFactory, provider_type: str, name: str, max_documents: int) -> Any:
    await factory.configuration_service.refresh()
    provider = factory.catalog.find_provider(provider_type, name)
    if provider is None:
        reasons = "; ".join(d.message for d in factory.catalog.diagnostics()) or "not configured or disabled"
        raise exceptions.ProviderError(
            f"{provider_type}/{name}", f"Provider is not available: {reasons}", error_code="PROVIDER_UNAVAILABLE"
        )
    return await provider.probe(ProbeRequest(max_documents=max_documents))


@app.command()
def probe(
    provider_type: str = typer.Argument(..., help="Provider type: local, s3 or onedrive"),
    name: str = typer.Argument(..., help="Provider name"),
    max_documents: int = typer.Option(3, "--max-documents", "-n", min=0, help="Documents to sample"),
) -> None:
    """Check that a provider can list and read documents."""
    factory = _factory()
    try:
        result = asyncio.run(_probe(factory, provider_type, name, max_documents))
    except exceptions.DocDuckError as e:
        _fail(str(e))
    finally:
        factory.close()

    style = "green" if result.success else "red"
    console.print(f"[{style}]{result.message}[/{style}]")
    for document in result.documents:
        preview = document.preview.decode("utf-8", errors="replace").replace("\n", " ")[:80]
        console.print(f"  {document.filename} [dim]({document.change_token})[/dim] {preview}")
    if not result.success:
        raise typer.Exit(1)


async def _plan(factory: DocDuckFactory, force: bool, no_cleanup: bool, max_files: int | None) -> SyncPlanBatch:
    snapshot = await factory.configuration_service.refresh()
    planner = factory.create_planner(
        force_full_reindex=True if force else None,
        cleanup_orphaned_documents=False if no_cleanup else None,
        max_files=max_files,
    )
    return await planner.plan_all(snapshot.list_providers(), factory.config.scheduler.max_concurrent_providers)


@app.command()
def plan(
    force: bool = typer.Option(False, "--force", help="Re-embed every listed document"),
    no_cleanup: bool = typer.Option(False, "--no-cleanup", help="Retain index entries of removed documents"),
    max_files: int | None = typer.Option(None, "--max-files", min=1, help="Cap re-embeds per provider"),
    json_output: bool = JSON_OUTPUT_OPTION,
) -> None:
    """Show what the next sync would do, without changing anything."""
    factory = _factory()
    try:
        batch = asyncio.run(_plan(factory, force, no_cleanup, max_files))
    except exceptions.DocDuckError as e:
        _fail(f"Planning failed: {e}")
    finally:
        factory.close()

    if json_output:
        print(
            json.dumps(
                {
                    "plans": [
                        {
                            "provider": str(p.key),
                            "summary": p.summary(),
                            "actions": [{"action": a.action.value, "address": a.address} for a in p.actions],
                        }
                        for p in batch.plans
                    ],
                    "diagnostics": [str(d) for d in batch.diagnostics],
                }
            )
        )
        return

    table = Table(title="Sync plan")
    for column in ("Provider", "Listed", "Re-embed", "Skip", "Delete", "Retain", "Deferred"):
        table.add_column(column)
    for p in batch.plans:
        counts = p.summary()
        table.add_row(
            str(p.key),
            str(counts["listed"]),
            str(counts["reembed"]),
            str(counts["skip"]),
            str(counts["delete"]),
            str(counts["retain"]),
            str(counts["truncated"]),
        )
    console.print(table)
    for diagnostic in batch.diagnostics:
        err_console.print(f"[red]{diagnostic}[/red]")
    if batch.diagnostics:
        sys.exit(1)


def run_cli() -> None:
    app()


if __name__ == "__main__":
    run_cli()
