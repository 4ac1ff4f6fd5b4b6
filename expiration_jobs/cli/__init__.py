"""
Command Line Interface for the Expiration Pending jobs.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import get_settings
from ..errors import DiscoveryError, JobError
from ..jobs.factory import build_runner, create_parameter_provider, create_vault_client
from ..jobs.runner import LocalJobRunner
from ..integrations.documents import VaultQueryService
from ..logs import configure_logging

app = typer.Typer(help="Expiration Pending Jobs - start and cancel Expiration Pending workflows")
console = Console()


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Override LOG_LEVEL"),
    log_format: Optional[str] = typer.Option(None, help="json or console"),
):
    """Configure logging before any command runs."""
    settings = get_settings()
    configure_logging(log_level or settings.log_level, log_format or settings.log_format)


@contextmanager
def _runner(task_size: Optional[int], parallel: Optional[int]) -> Iterator[LocalJobRunner]:
    settings = get_settings()
    client = create_vault_client(settings)
    try:
        runner = build_runner(settings, client)
        if task_size:
            runner.task_size = task_size
        if parallel:
            runner.max_parallel_tasks = parallel
        yield runner
    finally:
        client.close()


@app.command()
def run(
    task_size: Optional[int] = typer.Option(None, min=1, help="Work items per task"),
    parallel: Optional[int] = typer.Option(None, min=1, help="Tasks processed concurrently"),
):
    """Run the Expiration Pending job once."""
    console.print(Panel.fit("Expiration Pending job", style="bold blue"))

    with _runner(task_size, parallel) as runner:
        try:
            outcome = runner.run()
        except DiscoveryError as e:
            console.print(f"[red]Discovery failed:[/red] {e.message}")
            raise typer.Exit(code=1)

    table = Table(title=f"Tasks ({runner.run_id})")
    table.add_column("Task", style="cyan")
    table.add_column("State", style="magenta")
    table.add_column("Items")
    table.add_column("Failed")
    table.add_column("First error")

    for result in outcome.task_results:
        table.add_row(
            result.task_id,
            result.state.value,
            str(result.item_count),
            str(result.failed_item_count),
            result.first_error_message or "",
        )
    console.print(table)

    if outcome.succeeded:
        console.print(f"All {outcome.total_tasks} task(s) completed successfully")
    else:
        console.print(
            f"[red]{outcome.failed_tasks} task(s) failed out of {outcome.total_tasks}[/red]"
        )
        raise typer.Exit(code=1)


@app.command()
def discover():
    """List the work items the next run would process (no changes are made)."""
    with _runner(None, None) as runner:
        try:
            items = runner.job.init()
        except DiscoveryError as e:
            console.print(f"[red]Discovery failed:[/red] {e.message}")
            raise typer.Exit(code=1)

    table = Table(title=f"Work items ({len(items)})")
    table.add_column("Action", style="cyan")
    table.add_column("Document")
    table.add_column("Details")

    for item in items:
        if item.action == "start":
            table.add_row(
                item.action,
                f"{item.document_number} ({item.document_version_id})",
                f"expires {item.expiration_date.isoformat()}",
            )
        else:
            table.add_row(item.action, item.document_id, f"task {item.task_id}")
    console.print(table)


@app.command()
def params():
    """Show the effective Expiration Pending thresholds."""
    settings = get_settings()
    client = create_vault_client(settings)
    try:
        provider = create_parameter_provider(settings, VaultQueryService(client))
        loaded = provider.load()
    except JobError as e:
        console.print(f"[red]Unable to load parameters:[/red] {e}")
        raise typer.Exit(code=1)
    finally:
        client.close()

    table = Table(title=f"Parameters (source: {settings.parameter_source})")
    table.add_column("Name", style="cyan")
    table.add_column("Days")
    for name, value in loaded.model_dump().items():
        table.add_row(name, str(value))
    console.print(table)


@app.command()
def serve(
    port: int = typer.Option(None, help="Port to run the API server on"),
    host: str = typer.Option(None, help="Host to bind the server to"),
):
    """Start the HTTP trigger surface."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "expiration_jobs.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    app()
