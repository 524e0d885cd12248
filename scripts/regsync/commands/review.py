"""Record review commands for the regsync CLI."""

from datetime import timedelta
from typing import Tuple

import click

from regsync.commands.sources import get_service_context


def register_review_commands(cli: click.Group) -> None:
    """Register review commands on the main CLI group."""
    cli.add_command(review)


@click.group()
def review() -> None:
    """List records awaiting review and mark them reviewed."""
    pass


@review.command("pending")
@click.option(
    "--older-than", "older_than", default=0.0, type=float, help="Only records older than N hours"
)
@click.pass_context
def review_pending(ctx: click.Context, older_than: float) -> None:
    """List unreviewed records."""
    context = get_service_context(ctx)
    cutoff = context.clock() - timedelta(hours=older_than)
    records = context.store.pending_review(older_than=cutoff)

    if not records:
        click.echo(click.style("Nothing awaiting review.", fg="green"))
        return

    for record in records:
        created = record.created_at.strftime("%Y-%m-%d %H:%M") if record.created_at else "-"
        click.echo(f"{record.id:>6}  {created}  {record.source_id:<22} {record.title[:60]}")
    click.echo(f"\n{len(records)} record(s) awaiting review")


@review.command("mark")
@click.argument("record_ids", nargs=-1, type=int, required=True)
@click.pass_context
def review_mark(ctx: click.Context, record_ids: Tuple[int, ...]) -> None:
    """Mark RECORD_IDS as reviewed."""
    reviewed = get_service_context(ctx).store.mark_reviewed(record_ids)
    click.echo(click.style(f"Marked {reviewed} of {len(record_ids)} record(s) reviewed", fg="green"))
