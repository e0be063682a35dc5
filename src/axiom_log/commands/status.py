"""Continuity status command."""

from datetime import date

import click

from ..models.entry import IDENTITY_METADATA
from ..services.continuity import MAX_RUN_TARGET, entries_by_day, snapshot
from .base import async_command, echo_info, ensure_initialized, open_context


def _bar(value: int, width: int = 20) -> str:
    filled = round(width * value / 100)
    return "#" * filled + "." * (width - filled)


@click.command()
@click.option("--date", "-d", "on_date", default=None,
              help="Reference date (YYYY-MM-DD), defaults to today")
@click.pass_context
@async_command
async def status(ctx, on_date):
    """Show streak, integrity and this week's reward."""
    ensure_initialized(ctx)

    try:
        today = date.fromisoformat(on_date) if on_date else date.today()
    except ValueError:
        raise click.BadParameter(f"Unrecognized date: {on_date}", param_hint="--date") from None

    async with open_context() as app:
        entries = app.store.entries
        snap = snapshot(entries, today, week_starts_on=app.settings.week_starts_on)
        weekly = snap.weekly

        click.echo()
        click.echo(click.style(f"Continuity as of {today:%a %b %d %Y}", bold=True))
        click.echo()
        click.echo(f"Streak:     {snap.streak} day(s)")
        click.echo(f"Integrity:  [{_bar(snap.integrity)}] {snap.integrity}%")
        if snap.days_since_last_log is None:
            echo_info("No entries logged yet.")
            return
        if snap.days_since_last_log > 0:
            click.echo(f"Last log:   {snap.days_since_last_log} day(s) ago")

        today_entry = entries_by_day(entries).get(today)
        if today_entry is not None:
            meta = IDENTITY_METADATA[today_entry.identity]
            click.echo(f"Today:      {meta.label} ({meta.duration})")

        click.echo()
        click.echo(click.style(f"Week of {weekly.week_start:%b %d}", bold=True))
        click.echo(f"  Base points:      {weekly.base_points}")
        if weekly.overdrive_count:
            click.echo(
                f"  Overdrive x{weekly.overdrive_count}:     {weekly.overdrive_points}"
                f" (tier {weekly.overdrive_tier})"
            )
        click.echo(f"  High energy:      {weekly.energy_bonus}")
        click.echo(
            f"  Normal run:       {weekly.max_normal_run}/{MAX_RUN_TARGET}"
            f" (+{weekly.streak_bonus})"
        )
        click.echo(f"  Total:            {weekly.total} XP")
