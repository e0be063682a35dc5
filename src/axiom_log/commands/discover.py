"""Pattern discovery command."""

import click

from ..services.discovery import DiscoveryService
from .base import async_command, echo_info, ensure_initialized, open_context


@click.command()
@click.pass_context
@async_command
async def discover(ctx):
    """Ask the analysis model for patterns in the log.

    Needs at least three entries and the API_KEY environment variable.
    """
    ensure_initialized(ctx)

    async with open_context() as app:
        settings = app.settings
        service = DiscoveryService(
            api_key=settings.discovery_api_key,
            model=settings.discovery_model,
            base_url=settings.discovery_api_url,
        )
        echo_info("Analyzing log...")
        text = await service.analyze(app.store.entries)

    click.echo()
    click.echo(text)
