"""
Command Line Interface for the build registry.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import typer
import uvicorn
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import get_settings
from ..context import RequestContext
from ..enums import LabelType
from ..errors import RegistryError
from ..logging_config import configure_logging
from ..services import LabelService, ProjectService, PurgeReport, PurgeScheduler, PurgeService
from ..storage import create_blob_store, create_document_store

T = TypeVar("T")

app = typer.Typer(help="Build Registry - Storybook builds, labels and artifacts")
console = Console()


async def _open_context() -> RequestContext:
    settings = get_settings()
    database = create_document_store(settings.database_uri)
    storage = create_blob_store(settings.storage_uri)
    await database.init()
    await storage.init()
    return RequestContext(database=database, storage=storage, user="cli", settings=settings)


def _run(operation: Callable[[RequestContext], Awaitable[T]]) -> T:
    """Run one operation against the configured stores, exiting 1 on domain errors."""
    settings = get_settings()
    configure_logging(settings.log_level, "console", app=settings.app_name)

    async def _main() -> T:
        ctx = await _open_context()
        return await operation(ctx)

    try:
        return asyncio.run(_main())
    except RegistryError as e:
        console.print(f"❌ {e.message}")
        raise typer.Exit(code=1)


def _print_purge_report(report: PurgeReport) -> None:
    table = Table(title="Purge Report", show_header=True, header_style="bold magenta")
    table.add_column("Project", style="cyan")
    table.add_column("Cutoff")
    table.add_column("Builds deleted", style="green")
    table.add_column("Labels deleted", style="green")
    table.add_column("Failures", style="red")

    for result in report.projects:
        failures = result.builds.failure_count + result.labels.failure_count
        table.add_row(
            result.project_id,
            result.cutoff.strftime("%Y-%m-%d %H:%M") if result.cutoff else "-",
            str(len(result.builds.succeeded)),
            str(len(result.labels.succeeded)),
            result.error or str(failures),
        )

    console.print(table)
    status = "✅" if report.ok else "⚠️"
    console.print(
        f"{status} Deleted {report.builds_deleted} build(s) and "
        f"{report.labels_deleted} label(s) across {len(report.projects)} project(s)"
    )


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Start the registry API server."""
    settings = get_settings()
    rprint(Panel.fit("🏗️ Starting Build Registry", style="bold blue"))
    uvicorn.run(
        "build_registry.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
    )


@app.command()
def purge(
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Only purge this project"),
):
    """Delete builds older than each project's retention window."""
    report = _run(lambda ctx: PurgeService(ctx).purge(project))
    _print_purge_report(report)
    if not report.ok:
        raise typer.Exit(code=1)


@app.command()
def projects():
    """List all projects."""
    items = _run(lambda ctx: ProjectService(ctx).list())

    if not items:
        console.print("No projects registered")
        return

    table = Table(title="Projects", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="yellow")
    table.add_column("Name")
    table.add_column("Repository", style="blue")
    table.add_column("Default branch")
    table.add_column("Latest build", style="green")
    table.add_column("Purge after")

    for item in items:
        table.add_row(
            item.id,
            item.name,
            item.github_repository,
            item.github_default_branch,
            item.latest_build_id or "-",
            f"{item.purge_after_days}d",
        )

    console.print(table)


@app.command()
def labels(
    project_id: str = typer.Argument(..., help="Project ID"),
    label_type: Optional[LabelType] = typer.Option(None, "--type", "-t", help="Only this type"),
):
    """List the labels of a project."""
    items = _run(lambda ctx: LabelService(ctx, project_id).list(label_type=label_type))

    if not items:
        console.print(f"No labels in project '{project_id}'")
        return

    table = Table(title=f"Labels of {project_id}", show_header=True, header_style="bold cyan")
    table.add_column("Slug", style="yellow")
    table.add_column("Type", style="magenta")
    table.add_column("Value")
    table.add_column("Latest build", style="green")

    for item in items:
        table.add_row(item.slug, item.type.value, item.value, item.latest_build_id or "-")

    console.print(table)


@app.command()
def delete_label(
    project_id: str = typer.Argument(..., help="Project ID"),
    slug: str = typer.Argument(..., help="Slug of the label to delete"),
):
    """Delete a label and the builds carrying only that label."""
    result = _run(lambda ctx: LabelService(ctx, project_id).delete(slug))
    console.print(
        f"✅ Deleted label '{slug}' of '{project_id}' "
        f"({len(result.succeeded)} build(s) cleaned up)"
    )
    for failure in result.failed:
        console.print(f"⚠️ {failure.item_id}: {failure.message}")


@app.command()
def purge_worker(
    interval: Optional[int] = typer.Option(None, help="Seconds between sweeps"),
    max_runs: Optional[int] = typer.Option(None, help="Stop after this many sweeps"),
):
    """Run the purge sweep periodically."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format, app=settings.app_name)

    async def _main() -> None:
        ctx = await _open_context()
        scheduler = PurgeScheduler(
            lambda: RequestContext(
                database=ctx.database, storage=ctx.storage, user="purge-worker", settings=settings
            ),
            interval_seconds=interval or settings.purge_interval_seconds,
        )
        await scheduler.run_loop(max_runs=max_runs)

    rprint(Panel.fit("🧹 Starting purge worker", style="bold blue"))
    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        console.print("\n🛑 Shutting down...")


@app.command()
def version():
    """Show version information."""
    from .. import __version__

    rprint(Panel.fit(f"Build Registry v{__version__}", style="bold green"))


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
