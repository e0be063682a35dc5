"""Entry listing and deletion commands."""

from datetime import date, timedelta

import click

from ..errors import NotFoundError
from ..models.entry import IDENTITY_METADATA
from ..services.continuity import week_start_for
from .base import (
    async_command,
    echo_error,
    echo_info,
    echo_success,
    ensure_initialized,
    format_table,
    format_timestamp,
    open_context,
)


@click.group()
@click.pass_context
def entries(ctx):
    """Browse and manage logged entries."""
    ensure_initialized(ctx)


@entries.command(name="list")
@click.option("--week", "-w", "week_offset", type=int, default=None,
              help="Only show one week (0 = this week, -1 = last week, ...)")
@click.pass_context
@async_command
async def list_entries(ctx, week_offset):
    """List logged entries, newest first."""
    async with open_context() as app:
        items = sorted(app.store.entries, key=lambda e: e.sort_key, reverse=True)

        if week_offset is not None:
            start = week_start_for(date.today(), app.settings.week_starts_on)
            start += timedelta(weeks=week_offset)
            end = start + timedelta(days=7)
            items = [e for e in items if start <= e.local_day() < end]
            click.echo(f"Week of {start:%b %d} - {end:%b %d}")

        if not items:
            echo_info("No entries found. Log one with 'axiom-log log'")
            return

        plans = {p.id: p.name for p in app.store.plans}
        rows = []
        for entry in items:
            rows.append([
                entry.id[:8],
                format_timestamp(entry.timestamp),
                entry.identity.label,
                str(entry.energy),
                ", ".join(entry.tags),
                plans.get(entry.plan_id, entry.plan_id or ""),
            ])

        click.echo()
        click.echo(format_table(["ID", "When", "Identity", "Energy", "Tags", "Plan"], rows))
        click.echo()
        click.echo(f"Total: {len(items)} entr{'y' if len(items) == 1 else 'ies'}")


def _resolve(app, entry_id: str):
    """Find an entry by full id or unique prefix."""
    entry = app.store.get_entry(entry_id)
    if entry is not None:
        return entry
    matches = [e for e in app.store.entries if e.id.startswith(entry_id)]
    return matches[0] if len(matches) == 1 else None


@entries.command()
@click.argument("entry_id")
@click.pass_context
@async_command
async def show(ctx, entry_id):
    """Show a single entry."""
    async with open_context() as app:
        entry = _resolve(app, entry_id)
        if entry is None:
            echo_error(f"Entry {entry_id} not found")
            ctx.exit(1)

        meta = IDENTITY_METADATA[entry.identity]
        click.echo()
        click.echo(click.style(f"{meta.label} ({meta.duration})", bold=True))
        click.echo(meta.description)
        click.echo()
        click.echo(f"ID:      {entry.id}")
        click.echo(f"When:    {format_timestamp(entry.timestamp)}")
        click.echo(f"Energy:  {entry.energy}/5")
        if entry.tags:
            click.echo(f"Tags:    {', '.join(entry.tags)}")
        if entry.plan_id:
            plan = app.store.get_plan(entry.plan_id)
            click.echo(f"Plan:    {plan.name if plan else entry.plan_id + ' (deleted)'}")
        if entry.notes:
            click.echo(f"Notes:   {entry.notes}")


@entries.command()
@click.argument("entry_id")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
@async_command
async def delete(ctx, entry_id, yes):
    """Delete an entry."""
    async with open_context(sync=True) as app:
        entry = _resolve(app, entry_id)
        if entry is None:
            echo_error(f"Entry {entry_id} not found")
            ctx.exit(1)

        if not yes and not click.confirm(
            f"Delete {entry.identity.label} entry from {format_timestamp(entry.timestamp)}?"
        ):
            echo_info("Cancelled.")
            return

        await app.credentials.touch()
        try:
            await app.store.delete_entry(entry.id)
        except NotFoundError as e:
            echo_error(str(e))
            ctx.exit(1)
        echo_success(f"Deleted entry {entry.id}")
