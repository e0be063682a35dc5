"""Remote sync commands: link, unlink, push, import, status."""

from datetime import datetime

import click

from ..auth.credentials import DEFAULT_MAX_SESSION_SECONDS
from ..auth.oauth import fetch_user_profile
from ..errors import AuthorizationError, TransportError
from ..models.manifest import MANIFEST_PATTERN
from .base import (
    async_command,
    echo_error,
    echo_info,
    echo_success,
    echo_warning,
    ensure_initialized,
    format_table,
    format_timestamp,
    open_context,
    report_sync_status,
)


@click.group()
@click.pass_context
def sync(ctx):
    """Sync the log with the remote folder."""
    ensure_initialized(ctx)


@sync.command()
@click.option("--token", prompt=True, hide_input=True,
              help="OAuth access token with drive.file scope")
@click.option("--max-session", type=int, default=DEFAULT_MAX_SESSION_SECONDS,
              show_default=True, help="Seconds the token may be used for")
@click.pass_context
@async_command
async def link(ctx, token, max_session):
    """Link a remote account and import the latest snapshot."""
    async with open_context() as app:
        try:
            profile = await fetch_user_profile(token, url=app.settings.userinfo_url)
        except AuthorizationError:
            await app.credentials.revoke("unauthorized")
            echo_error("Token was rejected. Acquire a fresh token and try again.")
            ctx.exit(1)
        except TransportError as e:
            echo_error(str(e))
            ctx.exit(1)

        await app.credentials.link(token, max_session=max_session, profile=profile)
        app.scheduler.mark_relinked()
        echo_success(f"Linked as {profile.name} <{profile.email}>")

        result = await app.scheduler.start()
        if result is not None and result.manifest_name is None:
            entries, plans = app.store.get_all()
            if entries or plans:
                # Empty remote folder: seed it with the local log
                await app.scheduler.push()
        await app.scheduler.flush()
        report_sync_status(app)
        status = app.scheduler.status()
        if status.last_sync_ts is not None and status.last_error is None:
            echo_info(f"Last sync: {format_timestamp(status.last_sync_ts)}")


@sync.command()
@click.pass_context
@async_command
async def unlink(ctx):
    """Forget the stored credential. Local data is kept."""
    async with open_context() as app:
        if not app.credentials.linked:
            echo_info("Not linked.")
            return
        await app.credentials.revoke("user")
        echo_success("Unlinked. Local entries and plans were kept.")


@sync.command()
@click.pass_context
@async_command
async def push(ctx):
    """Upload the current snapshot now."""
    async with open_context() as app:
        if app.credentials.current_token() is None:
            echo_error("Not linked (or the session expired). Run 'axiom-log sync link'.")
            ctx.exit(1)

        result = await app.scheduler.push()
        if result is None:
            report_sync_status(app)
            ctx.exit(1)
        echo_success(
            f"Pushed {result.manifest_name} "
            f"({result.entries} entries, {result.plans} plans)"
        )
        if result.deleted:
            echo_info(f"Removed {result.deleted} old snapshot(s)")
        report_sync_status(app)


@sync.command(name="import")
@click.pass_context
@async_command
async def import_(ctx):
    """Adopt the newest remote snapshot if it is newer than the last sync."""
    async with open_context() as app:
        if app.credentials.current_token() is None:
            echo_error("Not linked (or the session expired). Run 'axiom-log sync link'.")
            ctx.exit(1)

        result = await app.scheduler.start()
        if result is None:
            report_sync_status(app)
            ctx.exit(1)
        await app.scheduler.flush()

        if result.applied:
            echo_success(
                f"Imported {result.manifest_name} "
                f"({result.entries} entries, {result.plans} plans)"
            )
        elif result.manifest_name is None:
            echo_info("No remote snapshots found.")
        else:
            echo_info("Already up to date.")
        report_sync_status(app)


@sync.command(name="status")
@click.option("--remote", is_flag=True, help="Also list the remote snapshots")
@click.pass_context
@async_command
async def sync_status(ctx, remote):
    """Show link state and the last sync time."""
    async with open_context() as app:
        creds = app.credentials
        last_sync = await app.store.get_meta("last_sync_ts")

        click.echo()
        if creds.linked:
            profile = creds.profile
            who = f"{profile.name} <{profile.email}>" if profile else "unknown account"
            click.echo(f"Linked:     {who}")
            cred = creds.credential
            if creds.current_token() is None:
                echo_warning("Session expired. Run 'axiom-log sync link' for a fresh token.")
            else:
                expires = datetime.fromtimestamp(cred.expires_at)
                click.echo(f"Expires:    {expires:%Y-%m-%d %H:%M}")
        else:
            click.echo("Linked:     no")
            if creds.revoked_reason == "idle":
                echo_warning("Credential was dropped after 30 days of inactivity.")

        click.echo(f"Folder:     {app.settings.sync_folder}")
        click.echo(f"Retention:  {app.settings.sync_retention} snapshot(s)")
        click.echo(
            f"Last sync:  {format_timestamp(last_sync) if last_sync is not None else 'never'}"
        )

        if not remote:
            return
        if creds.current_token() is None:
            echo_error("Cannot list remote snapshots without a valid session.")
            ctx.exit(1)
        try:
            folder_id = await app.transport.locate_or_create_container(
                app.settings.sync_folder
            )
            objects = await app.transport.list_objects(folder_id, MANIFEST_PATTERN)
        except (AuthorizationError, TransportError) as e:
            echo_error(str(e))
            ctx.exit(1)

        click.echo()
        if not objects:
            echo_info("No remote snapshots.")
            return
        rows = [[o.name, o.created_at.strftime("%Y-%m-%d %H:%M:%S")] for o in objects]
        click.echo(format_table(["Snapshot", "Created"], rows))
