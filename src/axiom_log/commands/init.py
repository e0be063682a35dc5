"""Initialize project command."""

import click

from ..config import load_settings
from ..db import init_db
from .base import async_command, echo_info, echo_success


@click.command()
@async_command
async def init():
    """Initialize the axiom-log data directory and database.

    Creates the SQLite database holding the entry and plan collections
    along with sync bookkeeping.
    """
    settings = load_settings()

    echo_info(f"Initializing axiom-log in {settings.data_dir}")
    settings.data_dir.mkdir(parents=True, exist_ok=True)

    await init_db(settings.db_path)
    echo_success("Database initialized")

    click.echo()
    click.echo("axiom-log is ready to use!")
    click.echo()
    click.echo("Next steps:")
    click.echo("  1. Log today's session:")
    click.echo("     axiom-log log normal --energy 4")
    click.echo()
    click.echo("  2. Check your continuity:")
    click.echo("     axiom-log status")
    click.echo()
    click.echo("  3. (Optional) Link cloud sync:")
    click.echo("     axiom-log sync link --token <access-token>")
