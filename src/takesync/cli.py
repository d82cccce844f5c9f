"""Command-line interface for takesync."""

import asyncio
import json
from collections.abc import Coroutine
from datetime import datetime
from typing import Any

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from takesync.utils.exceptions import TakesyncError

console = Console()


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run an async coroutine to completion."""
    return asyncio.run(coro)


def load_settings(config_path: str | None = None):
    """Load and validate settings, then configure logging.

    Args:
        config_path: Optional path to .env file.

    Returns:
        Validated Settings object.
    """
    from takesync.config.logging import configure_logging
    from takesync.config.settings import Settings, get_settings

    try:
        if config_path:
            settings = Settings(_env_file=config_path)
        else:
            # Clear cached settings to pick up environment changes
            get_settings.cache_clear()
            settings = get_settings()
    except ValidationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        console.print("\n[yellow]Hint:[/yellow] See .env.example for all available options.")
        raise SystemExit(1) from None

    configure_logging(settings)
    return settings


def _fmt_time(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def _status_style(status: str) -> str:
    colors = {
        "completed": "green",
        "success": "green",
        "in_progress": "cyan",
        "running": "cyan",
        "pending": "yellow",
        "failed": "red",
        "failure": "red",
        "timeout": "red",
        "cancelled": "magenta",
    }
    color = colors.get(status)
    return f"[{color}]{status}[/{color}]" if color else status


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    help="Path to .env configuration file",
)
@click.pass_context
def cli(ctx: click.Context, config: str | None) -> None:
    """takesync - Sync Takealot seller offers and sales to a database."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


@cli.command()
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Initialize the database schema."""
    from takesync.config.logging import get_logger
    from takesync.db.engine import create_engine, create_tables

    settings = load_settings(ctx.obj.get("config_path"))
    logger = get_logger(__name__)

    console.print("[bold]Initializing database...[/bold]")

    try:
        engine = create_engine(settings)
        create_tables(engine)
    except Exception as e:
        console.print(f"[red]Failed to initialize database:[/red] {e}")
        logger.error("Database initialization failed", error=str(e))
        raise SystemExit(1) from None

    console.print("[green]Database initialized successfully![/green]")
    logger.info("Database initialized", url=settings.database_url)


@cli.group()
def integrations() -> None:
    """Manage tenant integrations."""


@integrations.command("add")
@click.argument("tenant_id")
@click.option("--api-key", required=True, help="Takealot Seller API key")
@click.option("--name", "account_name", help="Account display name")
@click.option(
    "--schedule",
    "schedules",
    multiple=True,
    metavar="STRATEGY=SCHEDULE",
    help="Enable a strategy on a schedule, e.g. sls_100=hourly (repeatable)",
)
@click.option("--no-cron", is_flag=True, help="Exclude this tenant from scheduled syncs")
@click.pass_context
def integrations_add(
    ctx: click.Context,
    tenant_id: str,
    api_key: str,
    account_name: str | None,
    schedules: tuple[str, ...],
    no_cron: bool,
) -> None:
    """Add or update the integration for TENANT_ID."""
    from takesync.db.engine import create_engine, create_tables, get_session
    from takesync.db.repositories.integration import IntegrationRepository
    from takesync.sync.presets import PRESETS, SCHEDULES

    settings = load_settings(ctx.obj.get("config_path"))

    preferences: dict[str, str] = {}
    for item in schedules:
        strategy_id, _, schedule = item.partition("=")
        if strategy_id not in PRESETS or schedule not in SCHEDULES:
            raise click.BadParameter(
                f"'{item}': expected STRATEGY=SCHEDULE with strategy in "
                f"{', '.join(PRESETS)} and schedule in {', '.join(SCHEDULES)}",
                param_hint="--schedule",
            )
        preferences[strategy_id] = schedule

    engine = create_engine(settings)
    create_tables(engine)
    with get_session(engine) as session:
        IntegrationRepository(session).upsert(
            {
                "tenant_id": tenant_id,
                "api_key": api_key,
                "account_name": account_name,
                "cron_enabled": not no_cron,
                "sync_preferences": preferences,
            }
        )

    console.print(f"[green]Saved integration for tenant {tenant_id}[/green]")


@integrations.command("list")
@click.pass_context
def integrations_list(ctx: click.Context) -> None:
    """List configured integrations."""
    from takesync.db.engine import create_engine, get_session
    from takesync.db.repositories.integration import IntegrationRepository

    settings = load_settings(ctx.obj.get("config_path"))
    engine = create_engine(settings)

    with get_session(engine) as session:
        rows = IntegrationRepository(session).get_all()

        if not rows:
            console.print("[yellow]No integrations configured. Use 'takesync integrations add'.[/yellow]")
            return

        table = Table(title="Integrations")
        table.add_column("Tenant", style="cyan")
        table.add_column("Account")
        table.add_column("Cron")
        table.add_column("Schedules")
        table.add_column("Last Sync")

        for integration in rows:
            schedules = ", ".join(
                f"{sid}={sched}" for sid, sched in sorted((integration.sync_preferences or {}).items())
            )
            table.add_row(
                integration.tenant_id,
                integration.account_name or "-",
                "yes" if integration.cron_enabled else "no",
                schedules or "-",
                _fmt_time(integration.last_sync_at),
            )

    console.print(table)


@cli.command()
@click.argument("tenant_id")
@click.pass_context
def check_api(ctx: click.Context, tenant_id: str) -> None:
    """Check API connectivity with TENANT_ID's API key."""
    from takesync.api.client import TakealotClient
    from takesync.config.logging import get_logger
    from takesync.db.engine import create_engine, get_session
    from takesync.db.repositories.integration import IntegrationRepository

    settings = load_settings(ctx.obj.get("config_path"))
    logger = get_logger(__name__)

    engine = create_engine(settings)
    with get_session(engine) as session:
        integration = IntegrationRepository(session).get_by_id(tenant_id)
    if integration is None:
        console.print(f"[red]No integration configured for tenant {tenant_id}[/red]")
        raise SystemExit(1)

    console.print("[bold]Checking Takealot Seller API connection...[/bold]")

    async def _check():
        async with TakealotClient(settings) as client:
            return await client.check_api_key(integration.api_key)

    try:
        offers = run_async(_check())
    except TakesyncError as e:
        console.print(f"[red]API check failed:[/red] {e}")
        logger.error("API check failed", tenant_id=tenant_id, error=str(e))
        raise SystemExit(1) from None

    count = str(offers) if offers is not None else "unknown"
    console.print(f"[green]API key works.[/green] Offers on account: {count}")
    logger.info("API check successful", tenant_id=tenant_id, offers=offers)


def _print_outcome_table(outcomes: list) -> None:
    table = Table(title="Sync Results")
    table.add_column("Tenant", style="cyan")
    table.add_column("Strategy")
    table.add_column("Job Status")
    table.add_column("Pages")
    table.add_column("New")
    table.add_column("Updated")
    table.add_column("Skipped")
    table.add_column("Errors")

    for outcome in outcomes:
        table.add_row(
            outcome.tenant_id,
            outcome.strategy_id,
            _status_style(outcome.job_status or "-"),
            str(outcome.pages),
            str(outcome.total_new),
            str(outcome.total_updated),
            str(outcome.total_skipped),
            str(outcome.total_errors),
        )
    console.print(table)


@cli.command()
@click.argument("tenant_id")
@click.argument("strategy")
@click.option("--max-chunks", type=int, help="Stop after this many chunks (resume later)")
@click.pass_context
def sync(ctx: click.Context, tenant_id: str, strategy: str, max_chunks: int | None) -> None:
    """Run sync STRATEGY (e.g. sls_30d) for TENANT_ID."""
    from takesync.api.client import TakealotClient
    from takesync.config.logging import get_logger
    from takesync.db.engine import create_engine, create_tables
    from takesync.sync.execution_logger import DatabaseExecutionLogger
    from takesync.sync.orchestrator import SyncOrchestrator
    from takesync.sync.presets import PRESETS

    settings = load_settings(ctx.obj.get("config_path"))
    logger = get_logger(__name__)

    if strategy not in PRESETS:
        raise click.BadParameter(
            f"unknown strategy, choose from {', '.join(PRESETS)}", param_hint="STRATEGY"
        )

    console.print(f"[bold]Starting {PRESETS[strategy].label} sync for {tenant_id}...[/bold]")

    async def _sync():
        engine = create_engine(settings)
        create_tables(engine)  # Ensure tables exist

        async with TakealotClient(settings) as client:
            orchestrator = SyncOrchestrator(
                client, engine, settings, execution_logger=DatabaseExecutionLogger(engine)
            )
            return await orchestrator.run_strategy(
                tenant_id,
                strategy,
                trigger="manual",
                max_chunks=max_chunks or settings.manual_max_chunks,
            )

    try:
        outcome = run_async(_sync())
    except TakesyncError as e:
        console.print(f"[red]Sync failed:[/red] {e}")
        logger.error("Sync failed", tenant_id=tenant_id, strategy=strategy, error=str(e))
        raise SystemExit(1) from None

    _print_outcome_table([outcome])
    if outcome.error:
        console.print(f"\n[red]Error:[/red] {outcome.error}")
    if outcome.job_status in ("pending", "in_progress"):
        console.print(
            f"\n[yellow]Job {outcome.job_id} paused at page {outcome.current_page}; "
            "run the same command to resume.[/yellow]"
        )
    if not outcome.success:
        raise SystemExit(1)


@cli.command()
@click.argument("schedule")
@click.pass_context
def run_schedule(ctx: click.Context, schedule: str) -> None:
    """Run every strategy enabled for SCHEDULE (e.g. hourly)."""
    from takesync.api.client import TakealotClient
    from takesync.config.logging import get_logger
    from takesync.db.engine import create_engine, create_tables
    from takesync.sync.execution_logger import DatabaseExecutionLogger
    from takesync.sync.orchestrator import SyncOrchestrator
    from takesync.sync.presets import SCHEDULES

    settings = load_settings(ctx.obj.get("config_path"))
    logger = get_logger(__name__)

    if schedule not in SCHEDULES:
        raise click.BadParameter(
            f"unknown schedule, choose from {', '.join(SCHEDULES)}", param_hint="SCHEDULE"
        )

    async def _run():
        engine = create_engine(settings)
        create_tables(engine)

        async with TakealotClient(settings) as client:
            orchestrator = SyncOrchestrator(
                client, engine, settings, execution_logger=DatabaseExecutionLogger(engine)
            )
            return await orchestrator.run_schedule(schedule)

    summary = run_async(_run())

    if not summary.results and not summary.failed_tenants:
        console.print(f"[yellow]No integrations have strategies on the '{schedule}' schedule.[/yellow]")
        return

    _print_outcome_table(summary.results)
    console.print(
        f"\n[bold]Summary:[/bold] {summary.tenants} tenants, {summary.successful} succeeded, "
        f"{summary.failed} failed in {summary.duration_seconds:.1f}s"
    )
    for tenant_id, error in summary.failed_tenants.items():
        console.print(f"  [red]{tenant_id}:[/red] {error}")

    logger.info("Scheduled run complete", schedule=schedule, failed=summary.failed)


@cli.command()
@click.option("--tenant", "tenant_id", help="Filter by tenant")
@click.option("--status", help="Filter by job status")
@click.option("--active", is_flag=True, help="Only pending and in-progress jobs")
@click.option("--limit", default=20, show_default=True, help="Maximum jobs to show")
@click.option("--stats", "show_stats", is_flag=True, help="Show a 24 hour summary instead")
@click.pass_context
def jobs(
    ctx: click.Context,
    tenant_id: str | None,
    status: str | None,
    active: bool,
    limit: int,
    show_stats: bool,
) -> None:
    """Show sync jobs."""
    from takesync.db.engine import create_engine, create_tables
    from takesync.sync.job_store import JobStateStore

    settings = load_settings(ctx.obj.get("config_path"))
    engine = create_engine(settings)
    create_tables(engine)
    store = JobStateStore(engine, settings)

    if show_stats:
        stats = store.stats(tenant_id)
        console.print("[bold]Sync activity[/bold]")
        by_type = ", ".join(f"{k}: {v}" for k, v in stats.active_by_type.items()) or "none"
        console.print(f"  Active jobs: {stats.active_total} ({by_type})")
        console.print(f"  Completed (24h): {stats.completed_last_24h}")
        console.print(f"  Items processed (24h): {stats.items_last_24h}")
        console.print(f"  Error rate (24h): {stats.error_rate:.1%}")
        return

    try:
        rows = store.active_jobs(tenant_id) if active else store.list_jobs(tenant_id, status, limit=limit)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--status") from None

    if not rows:
        console.print("[yellow]No sync jobs found.[/yellow]")
        return

    table = Table(title="Sync Jobs")
    table.add_column("Job ID", style="cyan")
    table.add_column("Tenant")
    table.add_column("Type")
    table.add_column("Strategy")
    table.add_column("Status")
    table.add_column("Page")
    table.add_column("Items")
    table.add_column("Errors")
    table.add_column("Last Processed")

    for job in rows:
        page = f"{job.current_page}/{job.total_pages}" if job.total_pages else str(job.current_page)
        table.add_row(
            job.id,
            job.tenant_id,
            job.data_type,
            job.strategy_id or "-",
            _status_style(job.status),
            page,
            str(job.items_processed),
            str(job.total_errors),
            _fmt_time(job.last_processed_at),
        )

    console.print(table)


@cli.command()
@click.argument("job_id")
@click.pass_context
def cancel(ctx: click.Context, job_id: str) -> None:
    """Cancel sync job JOB_ID."""
    from takesync.db.engine import create_engine
    from takesync.sync.job_store import JobStateStore

    settings = load_settings(ctx.obj.get("config_path"))
    store = JobStateStore(create_engine(settings), settings)

    try:
        job = store.cancel(job_id)
    except TakesyncError as e:
        console.print(f"[red]Cannot cancel job:[/red] {e}")
        raise SystemExit(1) from None

    console.print(f"Job {job.id} is now {_status_style(job.status)}")


@cli.command()
@click.option("--tenant", "tenant_id", help="Filter by tenant")
@click.option("--status", help="Filter by status (running, success, failure, ...)")
@click.option("--job-name", help="Filter by job name")
@click.option("--trigger", "trigger_type", type=click.Choice(["cron", "manual", "api"]))
@click.option("--limit", default=20, show_default=True, help="Maximum logs to show")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
@click.pass_context
def logs(
    ctx: click.Context,
    tenant_id: str | None,
    status: str | None,
    job_name: str | None,
    trigger_type: str | None,
    limit: int,
    as_json: bool,
) -> None:
    """Show execution logs, newest first."""
    from takesync.db.engine import create_engine, create_tables, get_session
    from takesync.db.repositories.execution_log import ExecutionLogRepository

    settings = load_settings(ctx.obj.get("config_path"))
    engine = create_engine(settings)
    create_tables(engine)

    with get_session(engine) as session:
        entries, total, has_more = ExecutionLogRepository(session).query(
            tenant_id=tenant_id,
            status=status,
            job_name=job_name,
            trigger_type=trigger_type,
            limit=limit,
        )

        if as_json:
            data = [
                {
                    "id": e.id,
                    "job_name": e.job_name,
                    "trigger_type": e.trigger_type,
                    "tenant_id": e.tenant_id,
                    "status": e.status,
                    "started_at": e.started_at,
                    "duration_ms": e.duration_ms,
                    "items_processed": e.items_processed,
                    "message": e.message,
                    "error_details": e.error_details,
                }
                for e in entries
            ]
            click.echo(json.dumps(data, indent=2, default=str))
            return

        if not entries:
            console.print("[yellow]No execution logs found.[/yellow]")
            return

        table = Table(title=f"Execution Logs ({len(entries)} of {total})")
        table.add_column("Started")
        table.add_column("Job", style="cyan")
        table.add_column("Trigger")
        table.add_column("Tenant")
        table.add_column("Status")
        table.add_column("Duration")
        table.add_column("Items")
        table.add_column("Message")

        for entry in entries:
            duration = f"{entry.duration_ms / 1000:.1f}s" if entry.duration_ms is not None else "-"
            table.add_row(
                _fmt_time(entry.started_at),
                entry.job_name,
                entry.trigger_type,
                entry.tenant_id or "-",
                _status_style(entry.status),
                duration,
                str(entry.items_processed) if entry.items_processed is not None else "-",
                (entry.error_details or entry.message or "")[:80],
            )

    console.print(table)
    if has_more:
        console.print("[dim]More logs available; raise --limit to see them.[/dim]")


@cli.command()
@click.option("--days", type=int, help="Override both retention periods (days)")
@click.pass_context
def cleanup(ctx: click.Context, days: int | None) -> None:
    """Delete finished jobs and execution logs past retention."""
    from takesync.db.engine import create_engine
    from takesync.sync.execution_logger import DatabaseExecutionLogger
    from takesync.sync.job_store import JobStateStore

    settings = load_settings(ctx.obj.get("config_path"))
    engine = create_engine(settings)

    jobs_deleted = JobStateStore(engine, settings).cleanup_old_jobs(days or settings.job_retention_days)
    logs_deleted = DatabaseExecutionLogger(engine).cleanup(days or settings.log_retention_days)

    console.print(f"[green]Deleted {jobs_deleted} old jobs and {logs_deleted} execution logs[/green]")


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address")
@click.option("--port", default=8000, show_default=True, help="Bind port")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Serve the HTTP trigger API."""
    import uvicorn

    from takesync.web.app import create_app

    settings = load_settings(ctx.obj.get("config_path"))
    app = create_app(settings)
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    cli()
