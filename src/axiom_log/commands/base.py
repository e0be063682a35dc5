"""Shared CLI utilities."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta
from functools import wraps

import click

from ..config import load_settings
from ..context import AppContext, build_context
from ..errors import ConfigError


def async_command(f):
    """Decorator to run async Click commands."""

    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))

    return wrapper


def ensure_initialized(ctx: click.Context) -> None:
    """Ensure the database is initialized."""
    try:
        settings = load_settings()
    except ConfigError as e:
        echo_error(str(e))
        ctx.exit(1)
    if not settings.db_path.exists():
        click.echo(
            click.style("Error: ", fg="red")
            + "Project not initialized. Run 'axiom-log init' first."
        )
        ctx.exit(1)


@asynccontextmanager
async def open_context(sync: bool = False) -> AsyncIterator[AppContext]:
    """Build the app context for one command.

    With ``sync`` the startup import runs first (when linked) and any push
    scheduled by the command is flushed before returning.
    """
    app = await build_context()
    try:
        if sync:
            await app.scheduler.start()
            report_sync_status(app)
        yield app
        if sync:
            await app.scheduler.flush()
            report_sync_status(app)
    finally:
        await app.close()


def report_sync_status(app: AppContext) -> None:
    """Surface sync errors and re-link prompts."""
    status = app.scheduler.status()
    if status.relink_required:
        echo_warning("Sync credential was revoked. Run 'axiom-log sync link' to re-link.")
    elif status.last_error:
        echo_warning(f"Sync: {status.last_error}")


def parse_when(value: str | None, now: datetime | None = None) -> int:
    """Parse a session time into epoch milliseconds.

    Accepts ``today``, ``yesterday``, ``YYYY-MM-DD`` (uses the current time
    of day) or ``YYYY-MM-DDTHH:MM``.
    """
    now = now or datetime.now()
    if value is None or value == "today":
        moment = now
    elif value == "yesterday":
        moment = now - timedelta(days=1)
    else:
        try:
            if "T" in value or " " in value:
                moment = datetime.fromisoformat(value)
            else:
                day = date.fromisoformat(value)
                moment = now.replace(year=day.year, month=day.month, day=day.day)
        except ValueError:
            raise click.BadParameter(f"Unrecognized date: {value}") from None
    return int(moment.timestamp() * 1000)


def format_timestamp(timestamp_ms: int, fmt: str = "%Y-%m-%d %H:%M") -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime(fmt)


def echo_success(message: str) -> None:
    """Print a success message."""
    click.echo(click.style("[OK] ", fg="green") + message)


def echo_error(message: str) -> None:
    """Print an error message."""
    click.echo(click.style("[ERROR] ", fg="red") + message)


def echo_info(message: str) -> None:
    """Print an info message."""
    click.echo(click.style("[INFO] ", fg="blue") + message)


def echo_warning(message: str) -> None:
    """Print a warning message."""
    click.echo(click.style("[WARN] ", fg="yellow") + message)


def format_table(headers: list[str], rows: list[list[str]], padding: int = 2) -> str:
    """Format data as a simple table."""
    if not rows:
        return ""

    # Calculate column widths
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(str(cell)))

    lines = []

    header_line = ""
    for i, h in enumerate(headers):
        header_line += h.ljust(widths[i] + padding)
    lines.append(header_line.rstrip())

    sep_line = ""
    for w in widths:
        sep_line += "-" * w + " " * padding
    lines.append(sep_line.rstrip())

    for row in rows:
        row_line = ""
        for i, cell in enumerate(row):
            row_line += str(cell).ljust(widths[i] + padding)
        lines.append(row_line.rstrip())

    return "\n".join(lines)
