"""Typer CLI entrypoint for estate-crawler."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Sequence

import structlog
import typer
import uvicorn
from rich import box
from rich.console import Console
from rich.table import Table

from .api import create_app
from .config import ConfigRepository, CrawlMode, ScheduleConfig, ScheduleType, SiteConfig
from .connectors import ConnectorRegistry, build_registry
from .engine import CrawlProgress, Fetcher
from .errors import ConfigurationError, PersistenceError, SiteDisabledError
from .infra import UserAgentPool
from .logging_conf import (
    available_site_logs,
    configure_logging,
    crawler_log_path,
    site_log_path,
    site_logger,
    tail_log,
)
from .link_checker import LinkChecker
from .orchestrator import CrawlOrchestrator, CrawlSummary
from .scheduler import APSchedulerAdapter
from .store import ListingStore, SQLiteListingStore

app = typer.Typer(
    help="estate-crawler command line",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Inspect log files",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    store: ListingStore
    registry: ConnectorRegistry
    orchestrator: CrawlOrchestrator
    scheduler: APSchedulerAdapter
    fetcher: Fetcher
    link_checker: LinkChecker


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    global_config = repository.load_global_config()
    fetcher = Fetcher(global_config.http, UserAgentPool.from_settings(global_config.http))
    registry = build_registry(fetcher)
    store = SQLiteListingStore(repository.database_path())
    orchestrator = CrawlOrchestrator(
        registry,
        store,
        global_config,
        site_configs=repository.site_config,
        site_logger=site_logger,
    )
    return AppState(
        repository=repository,
        store=store,
        registry=registry,
        orchestrator=orchestrator,
        scheduler=APSchedulerAdapter(),
        fetcher=fetcher,
        link_checker=LinkChecker(registry, store, fetcher, global_config),
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _require_site(state: AppState, site: str) -> str:
    connector = state.registry.get(site)
    if connector is None:
        console.print(f"Unknown portal site: {site}", style="red")
        console.print("Known sites: " + ", ".join(state.registry.all_keys()), style="dim")
        raise typer.Exit(code=2)
    return connector.key


def _format_schedule(schedule: ScheduleConfig | None) -> str:
    if schedule is None:
        return "-"
    data = schedule.value
    if data in (None, "", {}):
        return schedule.type.value
    if schedule.type is ScheduleType.CRON:
        return f"cron ({data})"
    return f"{schedule.type.value} ({data})"


def _render_summary(summary: CrawlSummary) -> Table:
    table = Table(title=f"{summary.site} · {summary.mode}", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("processed", str(summary.processed))
    table.add_row("inserted", str(summary.inserted))
    table.add_row("skipped", str(summary.skipped))
    if summary.filtered:
        table.add_row("filtered", str(summary.filtered))
    table.add_row("areas", f"{summary.areas_completed}/{summary.areas_total}")
    table.add_row("completed", "yes" if summary.completed else "no")
    if summary.cancelled:
        table.add_row("cancelled", "yes")
    return table


def _render_progress(rows: Sequence[CrawlProgress]) -> Table:
    table = Table(title=f"Crawl progress · {len(rows)} areas", box=box.SIMPLE_HEAD)
    table.add_column("Site", style="cyan", no_wrap=True)
    table.add_column("Area", style="magenta")
    table.add_column("Status", style="yellow")
    table.add_column("Page", justify="right")
    table.add_column("Inserted", justify="right", style="green")
    table.add_column("Skipped", justify="right")
    table.add_column("Last run", style="dim")
    for row in rows:
        page = str(row.current_page)
        if row.total_pages is not None:
            page = f"{page} ({row.total_pages} total)"
        table.add_row(
            row.site_key,
            row.area_name or row.area_key,
            row.status.value,
            page,
            str(row.inserted_count),
            str(row.skipped_count),
            row.last_run_at.isoformat(timespec="seconds") if row.last_run_at else "-",
        )
    return table


def _render_jobs_table(jobs: Iterable[dict[str, Any]]) -> Table:
    table = Table(title="Scheduled jobs", box=box.SIMPLE_HEAD)
    table.add_column("Job ID", style="cyan", no_wrap=True)
    table.add_column("Next run", style="green")
    table.add_column("Trigger", style="magenta", overflow="fold")
    for job in jobs:
        table.add_row(
            str(job.get("id", "-")),
            str(job.get("next_run_time", "-")),
            str(job.get("trigger", "-")),
        )
    return table


def scheduled_run(state: AppState) -> Callable[[SiteConfig], None]:
    """Job callback for the scheduler: one orchestrator run in the site's configured mode."""

    logger = structlog.get_logger("estate_crawler.scheduler")

    def _run(site: SiteConfig) -> None:
        try:
            summary = state.orchestrator.run(site.site_key, mode=site.mode)
        except SiteDisabledError:
            # Disabled after the scheduler started: stop firing for it.
            logger.info("scheduled_site_disabled", site=site.site_key)
            state.scheduler.remove_site(site.site_key)
            return
        except ConfigurationError as exc:
            logger.warning("scheduled_run_rejected", site=site.site_key, error=str(exc))
            return
        logger.info("scheduled_run_finished", **summary.to_dict())

    return _run


app.add_typer(log_app, name="log", help="Inspect crawler and per-site logs")


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logs", is_flag=True)
) -> None:
    ctx.obj = build_state(verbose)


@app.command("crawl", help="Run one bounded crawl batch for a portal site.")
def crawl(
    ctx: typer.Context,
    site: str = typer.Argument(..., help="Portal site key, e.g. athome."),
    mode: CrawlMode = typer.Option(CrawlMode.INITIAL, "--mode", "-m", help="initial or incremental."),
    reset: bool = typer.Option(False, "--reset", help="Delete stored progress before crawling.", is_flag=True),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    try:
        summary = state.orchestrator.run(site, mode=mode, reset=reset)
    except ConfigurationError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=2)
    if as_json:
        console.print_json(json.dumps(summary.to_dict(), ensure_ascii=False))
        return
    console.print(_render_summary(summary))
    console.print(summary.message, style="bold")
    for note in summary.notes:
        console.print(f"note: {note}", style="dim")
    for error in summary.errors:
        console.print(f"error: {error}", style="red")


@app.command("progress", help="Show stored progress rows.")
def progress(
    ctx: typer.Context,
    site: Optional[str] = typer.Argument(None, help="Portal site key (all sites when omitted)."),
) -> None:
    state = _get_state(ctx)
    site_key = _require_site(state, site) if site else None
    rows = state.store.list_progress(site_key)
    if not rows:
        console.print("No progress recorded yet.", style="dim")
        return
    console.print(_render_progress(rows))


@app.command("cancel", help="Ask running and pending areas of a site to stop.")
def cancel(ctx: typer.Context, site: str = typer.Argument(..., help="Portal site key.")) -> None:
    state = _get_state(ctx)
    site_key = _require_site(state, site)
    try:
        count = state.orchestrator.tracker.request_cancel(site_key)
    except PersistenceError as exc:
        console.print(f"Cancel failed: {exc}", style="red")
        raise typer.Exit(code=1)
    if count:
        console.print(f"Cancel requested for {count} area(s) of {site_key}.", style="green")
    else:
        console.print(f"Nothing to cancel for {site_key}.", style="yellow")


@app.command("sites", help="List registered portal sites and their schedules.")
def sites(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    table = Table(title=f"Portal sites · {len(state.registry)}", box=box.SIMPLE_HEAD)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Name", style="magenta")
    table.add_column("Scope")
    table.add_column("Enabled")
    table.add_column("Schedule", style="yellow", overflow="fold")
    table.add_column("Listings", justify="right", style="green")
    for connector in state.registry:
        config = state.repository.site_config(connector.key)
        table.add_row(
            connector.key,
            connector.name,
            "per area" if connector.supports_area_search else "site-wide",
            "yes" if config.enabled else "no",
            _format_schedule(config.schedule),
            str(state.store.count_listings(connector.key)),
        )
    console.print(table)


def _set_enabled(state: AppState, site: str, enabled: bool) -> None:
    site_key = _require_site(state, site)
    config = state.repository.site_config(site_key)
    path = state.repository.save_site(config.model_copy(update={"enabled": enabled}))
    console.print(f"{site_key} {'enabled' if enabled else 'disabled'} ({path.name})", style="green")


@app.command("enable", help="Enable crawling for a portal site.")
def enable(ctx: typer.Context, site: str = typer.Argument(..., help="Portal site key.")) -> None:
    _set_enabled(_get_state(ctx), site, True)


@app.command("disable", help="Disable crawling for a portal site.")
def disable(ctx: typer.Context, site: str = typer.Argument(..., help="Portal site key.")) -> None:
    _set_enabled(_get_state(ctx), site, False)


@app.command("delete-listings", help="Delete every stored listing of a portal site.")
def delete_listings(
    ctx: typer.Context,
    site: str = typer.Argument(..., help="Portal site key."),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    site_key = _require_site(state, site)
    if not yes:
        confirm = typer.confirm(f"Delete all listings of {site_key}?", default=False)
        if not confirm:
            console.print("Nothing deleted.", style="yellow")
            raise typer.Exit(code=0)
    try:
        count = state.store.delete_listings(site_key)
    except PersistenceError as exc:
        console.print(f"Delete failed: {exc}", style="red")
        raise typer.Exit(code=1)
    console.print(f"Deleted {count} listing(s) of {site_key}.", style="green")


@app.command("check-links", help="Re-check stored listing URLs and delete delisted ones.")
def check_links(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Listings to check (config default when omitted)."),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    summary = state.link_checker.run(limit)
    if as_json:
        console.print_json(json.dumps(summary.to_dict(), ensure_ascii=False))
        return
    console.print(summary.message, style="bold" if summary.completed else "yellow")
    if not summary.completed:
        console.print("Time budget reached; the rest is checked next run.", style="dim")
    for error in summary.errors:
        console.print(f"error: {error}", style="red")


@app.command("serve", help="Serve the HTTP trigger API with uvicorn.")
def serve(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address."),
    port: int = typer.Option(8000, "--port", help="Bind port."),
) -> None:
    state = _get_state(ctx)
    uvicorn.run(create_app(state), host=host, port=port)


@app.command("schedule", help="Run scheduled incremental crawls in the foreground.")
def schedule(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", help="Register jobs, print them and exit.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    callback = scheduled_run(state)
    scheduled = [
        config.site_key
        for config in (state.repository.site_config(key) for key in state.registry.all_keys())
        if state.scheduler.schedule_site(config, callback)
    ]
    if not scheduled:
        console.print("No site has a schedule; add one under data/sites/<key>.yaml.", style="yellow")
        raise typer.Exit(code=0)
    if dry_run:
        console.print(_render_jobs_table(state.scheduler.list_jobs()))
        return
    state.scheduler.start()
    console.print(_render_jobs_table(state.scheduler.list_jobs()))
    console.print("Scheduler running, press Ctrl+C to stop.", style="dim")
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        console.print("Stopping scheduler.", style="dim")
    finally:
        state.scheduler.shutdown()


@log_app.command("list", help="List available per-site log files.")
def log_list() -> None:
    logs = list(available_site_logs())
    if not logs:
        console.print("No site logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("tail", help="Show the last lines of the crawler log or a site log.")
def log_tail(
    site: Optional[str] = typer.Option(None, "--site", help="Site key (global log when omitted)."),
    lines: int = typer.Option(100, "--lines", "-n", help="Number of lines to show."),
) -> None:
    path = site_log_path(site) if site else crawler_log_path()
    content = tail_log(path, lines)
    if not content:
        console.print("No log lines yet.", style="dim")
        return
    console.print(f"{path.name} · last {len(content)} lines", style="cyan")
    console.print("".join(content), markup=False, highlight=False)


def cli() -> None:
    app()


__all__ = ["AppState", "app", "build_state", "cli", "scheduled_run"]


if __name__ == "__main__":  # pragma: no cover
    cli()
