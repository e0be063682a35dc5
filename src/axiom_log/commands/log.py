"""Log (or edit) a day's identity state."""

import click
import questionary

from ..errors import ValidationError
from ..models.entry import CONTEXT_TAGS, IDENTITY_METADATA, EntryData, IdentityState
from .base import (
    async_command,
    echo_error,
    echo_success,
    echo_warning,
    ensure_initialized,
    format_timestamp,
    open_context,
    parse_when,
)


async def _prompt_identity() -> IdentityState | None:
    return await questionary.select(
        "Which identity did today's session hold?",
        choices=[
            questionary.Choice(
                f"{meta.label} ({meta.duration}) - {meta.description}", state
            )
            for state, meta in IDENTITY_METADATA.items()
        ],
    ).ask_async()


@click.command(name="log")
@click.argument("identity", required=False)
@click.option("--energy", "-e", type=click.IntRange(1, 5), default=3, show_default=True,
              help="Pre-session energy (1-5)")
@click.option("--tag", "-t", "tags", multiple=True,
              help=f"Context tag (e.g. {', '.join(CONTEXT_TAGS)})")
@click.option("--notes", "-n", default="", help="Free-text notes")
@click.option("--plan", "plan_id", default=None, help="ID of the plan that was followed")
@click.option("--when", "-w", default=None,
              help="Session time: today, yesterday, YYYY-MM-DD or YYYY-MM-DDTHH:MM")
@click.option("--edit", "entry_id", default=None, help="Replace an existing entry by ID")
@click.pass_context
@async_command
async def log_entry(ctx, identity, energy, tags, notes, plan_id, when, entry_id):
    """Log a training session.

    IDENTITY is one of overdrive, normal, maintenance, survival or rest.
    You are prompted for it when omitted. Only one entry per calendar day
    is accepted; use --edit to change an existing one.

    Examples:

        axiom-log log normal --energy 4 --tag energized

        axiom-log log rest --when yesterday
    """
    ensure_initialized(ctx)

    if identity is None:
        state = await _prompt_identity()
        if state is None:
            echo_warning("Cancelled.")
            return
    else:
        try:
            state = IdentityState.parse(identity)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="IDENTITY") from None

    unknown = [t for t in tags if t not in CONTEXT_TAGS]
    if unknown:
        echo_warning(f"Unrecognized tag(s): {', '.join(unknown)}")

    async with open_context(sync=True) as app:
        await app.credentials.touch()

        if plan_id and app.store.get_plan(plan_id) is None:
            echo_warning(f"Plan {plan_id} not found; keeping the reference anyway.")

        timestamp = parse_when(when)
        if entry_id and when is None:
            existing = app.store.get_entry(entry_id)
            if existing is not None:
                timestamp = existing.timestamp

        data = EntryData(
            timestamp=timestamp,
            identity=state,
            energy=energy,
            tags=tuple(tags),
            notes=notes,
            plan_id=plan_id,
        )
        try:
            entry = await app.store.upsert_entry(data, entry_id=entry_id)
        except ValidationError as e:
            echo_error(str(e))
            ctx.exit(1)

        action = "Updated" if entry_id else "Logged"
        echo_success(
            f"{action} {entry.identity.label} for {format_timestamp(entry.timestamp)} "
            f"(ID: {entry.id})"
        )
