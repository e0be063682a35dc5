"""CLI entry point for axiom-log."""

import click

from . import __version__
from .commands import discover, entries, init, log_entry, plans, serve, status, sync
from .config import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="axiom-log")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose):
    """axiom-log: identity-state training log.

    Log one identity state per day (Overdrive, Normal, Maintenance,
    Survival or Rest), track continuity and sync snapshots to a remote
    folder.

    Example usage:

        # Initialize the project
        axiom-log init

        # Log today's session
        axiom-log log normal --energy 4 --tag energized

        # See streak, integrity and weekly reward
        axiom-log status

        # Link cloud sync
        axiom-log sync link
    """
    configure_logging(verbose)


# Register commands
main.add_command(init)
main.add_command(log_entry)
main.add_command(entries)
main.add_command(plans)
main.add_command(status)
main.add_command(sync)
main.add_command(discover)
main.add_command(serve)


def run():
    """Run the CLI."""
    main()


if __name__ == "__main__":
    run()
