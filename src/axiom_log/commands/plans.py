"""Plan (blueprint) management commands."""

import click

from ..errors import ValidationError
from ..models.plan import MUSCLE_GROUPS, Exercise
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
def plans(ctx):
    """Manage workout plans.

    Plans are referenced by entries but never owned by them; deleting a
    plan leaves its entries intact.
    """
    ensure_initialized(ctx)


@plans.command(name="list")
@click.pass_context
@async_command
async def list_plans(ctx):
    """List all plans."""
    async with open_context() as app:
        all_plans = sorted(app.store.plans, key=lambda p: p.created_at)
        if not all_plans:
            echo_info("No plans found. Create one with 'axiom-log plans create'")
            return

        rows = [
            [
                p.id[:8],
                p.name[:30] + "..." if len(p.name) > 30 else p.name,
                str(len(p.exercises)),
                format_timestamp(p.created_at, "%Y-%m-%d") if p.created_at else "N/A",
            ]
            for p in all_plans
        ]
        click.echo()
        click.echo(format_table(["ID", "Name", "Exercises", "Created"], rows))
        click.echo()
        click.echo(f"Total: {len(all_plans)} plan(s)")


def _resolve(app, plan_id: str):
    plan = app.store.get_plan(plan_id)
    if plan is not None:
        return plan
    matches = [p for p in app.store.plans if p.id.startswith(plan_id)]
    return matches[0] if len(matches) == 1 else None


@plans.command()
@click.argument("plan_id")
@click.pass_context
@async_command
async def show(ctx, plan_id):
    """Show a plan and its exercises."""
    async with open_context() as app:
        plan = _resolve(app, plan_id)
        if plan is None:
            echo_error(f"Plan {plan_id} not found")
            ctx.exit(1)

        click.echo()
        click.echo("=" * 60)
        click.echo(f"Plan: {plan.name} (ID: {plan.id})")
        click.echo("=" * 60)
        if plan.description:
            click.echo(plan.description)
        click.echo()

        if not plan.exercises:
            echo_info("No exercises yet. Add one with 'axiom-log plans add-exercise'")
            return

        rows = [
            [ex.name, ex.muscle_type, str(ex.sets), ex.reps, f"{ex.weight:g}", ex.notes or ""]
            for ex in plan.exercises
        ]
        click.echo(format_table(["Exercise", "Muscle", "Sets", "Reps", "Weight", "Notes"], rows))


@plans.command()
@click.argument("name")
@click.option("--description", "-d", default="", help="Plan description")
@click.pass_context
@async_command
async def create(ctx, name, description):
    """Create an empty plan."""
    async with open_context(sync=True) as app:
        await app.credentials.touch()
        try:
            plan = await app.store.upsert_plan({"name": name, "description": description})
        except ValidationError as e:
            echo_error(str(e))
            ctx.exit(1)
        echo_success(f"Created plan '{plan.name}' (ID: {plan.id})")


@plans.command(name="add-exercise")
@click.argument("plan_id")
@click.argument("name")
@click.option("--muscle", "-m", type=click.Choice(MUSCLE_GROUPS), default="Chest",
              show_default=True)
@click.option("--sets", "-s", type=int, default=3, show_default=True)
@click.option("--reps", "-r", default="10", show_default=True, help='Reps, e.g. "8-10"')
@click.option("--weight", type=float, default=0, show_default=True)
@click.option("--notes", "-n", default=None)
@click.pass_context
@async_command
async def add_exercise(ctx, plan_id, name, muscle, sets, reps, weight, notes):
    """Append an exercise to a plan."""
    async with open_context(sync=True) as app:
        plan = _resolve(app, plan_id)
        if plan is None:
            echo_error(f"Plan {plan_id} not found")
            ctx.exit(1)

        await app.credentials.touch()
        exercise = Exercise(
            id="", name=name, muscle_type=muscle, sets=sets, reps=reps,
            weight=weight, notes=notes,
        )
        try:
            plan = await app.store.add_exercise(plan.id, exercise)
        except ValidationError as e:
            echo_error(str(e))
            ctx.exit(1)
        echo_success(f"Added {name} to '{plan.name}' ({len(plan.exercises)} exercises)")


@plans.command()
@click.argument("plan_id")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
@async_command
async def delete(ctx, plan_id, yes):
    """Delete a plan. Entries that reference it are kept."""
    async with open_context(sync=True) as app:
        plan = _resolve(app, plan_id)
        if plan is None:
            echo_error(f"Plan {plan_id} not found")
            ctx.exit(1)

        if not yes and not click.confirm(f"Delete plan '{plan.name}'?"):
            echo_info("Cancelled.")
            return

        await app.credentials.touch()
        await app.store.delete_plan(plan.id)
        echo_success(f"Deleted plan '{plan.name}'")
