"""Source and sync commands for the regsync CLI."""

import logging
from typing import Optional

import click

from regsync.exceptions import ConfigurationError, NotFoundError
from regsync.sources.models import SourceStatus, SyncRun

logger = logging.getLogger(__name__)

STATUS_COLORS = {"active": "green", "inactive": "red", "testing": "yellow"}


def register_source_commands(cli: click.Group) -> None:
    """Register source/sync commands on the main CLI group."""
    cli.add_command(sources)
    cli.add_command(sync)
    cli.add_command(health)
    cli.add_command(schedule)


def get_service_context(ctx: click.Context):
    """Build the service context once per CLI invocation."""
    root = ctx.find_root()
    if root.obj is None:
        from regsync.services import build_context

        try:
            root.obj = build_context()
        except ConfigurationError as e:
            raise click.ClickException(f"Invalid source configuration: {e}") from e
    return root.obj


def _print_run(run: SyncRun) -> None:
    for outcome in run.outcomes:
        if outcome.cancelled:
            click.echo(click.style(f"  - {outcome.source_id}: cancelled", fg="yellow"))
        elif outcome.success:
            click.echo(
                f"  {click.style('✓', fg='green')} {outcome.source_id}: "
                f"{outcome.records} records ({outcome.stored} new)"
            )
        else:
            click.echo(f"  {click.style('✗', fg='red')} {outcome.source_id}: {outcome.error}")
    click.echo()
    click.echo(click.style(str(run), fg="green" if run.total_errors == 0 else "yellow"))


@click.group()
def sources() -> None:
    """Inspect and manage registered data sources."""
    pass


@sources.command("list")
@click.option("-a", "--all", "show_all", is_flag=True, help="Include inactive/testing sources")
@click.option("-r", "--region", help="Filter by region label")
@click.pass_context
def sources_list(ctx: click.Context, show_all: bool, region: Optional[str]) -> None:
    """List data sources in priority order."""
    registry = get_service_context(ctx).registry
    if region:
        items = registry.list_by_region(region)
    elif show_all:
        items = registry.list_all()
    else:
        items = registry.list_active()

    if not items:
        click.echo(click.style("No matching sources.", fg="yellow"))
        return

    for source in items:
        status = click.style(source.status.value, fg=STATUS_COLORS[source.status.value])
        click.echo(
            f"{source.id:<26} {source.priority.value:<7} {source.kind.value:<13} "
            f"{status:<8} {source.region}"
        )
        if source.error_count:
            click.echo(click.style(f"{'':<26} {source.error_count} consecutive errors", fg="red"))


@sources.command("stats")
@click.pass_context
def sources_stats(ctx: click.Context) -> None:
    """Show counts by kind, status and priority."""
    stats = get_service_context(ctx).registry.statistics()
    click.echo(f"Total sources: {stats['total']}")
    for group in ("by_kind", "by_status", "by_priority"):
        click.echo(f"\n{group.replace('_', ' ').title()}:")
        for key, count in stats[group].items():
            click.echo(f"  {key}: {count}")
    click.echo(f"\nRequire auth: {stats['require_auth']}")
    click.echo(f"With errors: {stats['with_errors']}")


@sources.command("activate")
@click.argument("source_id")
@click.pass_context
def sources_activate(ctx: click.Context, source_id: str) -> None:
    """Reactivate a source after it was deactivated."""
    context = get_service_context(ctx)
    try:
        context.registry.set_status(source_id, SourceStatus.ACTIVE)
    except NotFoundError as e:
        raise click.ClickException(str(e)) from e
    context.rate_limiter.reset(source_id)
    click.echo(click.style(f"Source {source_id} reactivated", fg="green"))


@click.command()
@click.argument("source_id", required=False)
@click.option("--include-inactive", is_flag=True, help="Also sync inactive/testing sources")
@click.pass_context
def sync(ctx: click.Context, source_id: Optional[str], include_inactive: bool) -> None:
    """Sync one source now, or all active sources when SOURCE_ID is omitted."""
    orchestrator = get_service_context(ctx).orchestrator

    if source_id:
        click.echo(f"Syncing {source_id}...")
        try:
            run = orchestrator.sync_one(source_id)
        except NotFoundError as e:
            raise click.ClickException(str(e)) from e
    else:
        click.echo("Syncing all sources..." if include_inactive else "Syncing active sources...")
        run = orchestrator.sync_all(active_only=not include_inactive)

    _print_run(run)
    if run.total_errors:
        ctx.exit(1)


@click.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check every active API source's health endpoint."""
    result = get_service_context(ctx).orchestrator.health_check()
    for detail in result["details"]:
        if detail["status"] == "healthy":
            click.echo(f"  {click.style('✓', fg='green')} {detail['source_id']}")
        elif detail["status"] == "skipped":
            click.echo(click.style(f"  - {detail['source_id']}: skipped", fg="yellow"))
        else:
            click.echo(f"  {click.style('✗', fg='red')} {detail['source_id']}: {detail['error']}")
    click.echo(
        f"\n{result['healthy']} healthy, {result['unhealthy']} unhealthy, "
        f"{result['skipped']} skipped"
    )


@click.command()
@click.pass_context
def schedule(ctx: click.Context) -> None:
    """Show when each scheduled job would first fire if started now."""
    scheduler = get_service_context(ctx).scheduler
    for job_id, first_run in scheduler.plan().items():
        job = scheduler.jobs[job_id]
        alert = "alerts on failure" if job.alert_on_failure else "no failure alert"
        click.echo(f"{job.name:<28} {first_run.strftime('%Y-%m-%d %H:%M UTC')}  ({alert})")
