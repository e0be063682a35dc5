"""Plan routes."""

from fastapi import APIRouter, Body, Depends

from ...context import AppContext
from ...errors import NotFoundError, ValidationError
from ...models.plan import Exercise
from ..deps import get_context

router = APIRouter(prefix="/plans", tags=["plans"])


@router.get("")
async def list_plans(context: AppContext = Depends(get_context)):
    """List all plans, oldest first."""
    items = sorted(context.store.plans, key=lambda p: p.created_at)
    return {"plans": [p.to_dict() for p in items]}


@router.get("/{plan_id}")
async def get_plan(plan_id: str, context: AppContext = Depends(get_context)):
    """Get a single plan."""
    plan = context.store.get_plan(plan_id)
    if plan is None:
        raise NotFoundError(f"Plan {plan_id} not found")
    return plan.to_dict()


@router.post("", status_code=201)
async def create_plan(
    payload: dict = Body(...),
    context: AppContext = Depends(get_context),
):
    """Create a plan. Missing ids are assigned."""
    await context.credentials.touch()
    payload = {k: v for k, v in payload.items() if k != "id"}
    plan = await context.store.upsert_plan(payload)
    return plan.to_dict()


@router.put("/{plan_id}")
async def replace_plan(
    plan_id: str,
    payload: dict = Body(...),
    context: AppContext = Depends(get_context),
):
    """Replace a plan, keeping its id and creation time."""
    await context.credentials.touch()
    plan = await context.store.upsert_plan(payload, plan_id=plan_id)
    return plan.to_dict()


@router.post("/{plan_id}/exercises", status_code=201)
async def add_exercise(
    plan_id: str,
    payload: dict = Body(...),
    context: AppContext = Depends(get_context),
):
    """Append an exercise to a plan."""
    await context.credentials.touch()
    try:
        exercise = Exercise.from_dict({"id": "", **payload})
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid exercise: {e}") from e
    plan = await context.store.add_exercise(plan_id, exercise)
    return plan.to_dict()


@router.delete("/{plan_id}")
async def delete_plan(plan_id: str, context: AppContext = Depends(get_context)):
    """Delete a plan. Entries that reference it are kept."""
    await context.credentials.touch()
    await context.store.delete_plan(plan_id)
    return {"status": "deleted"}
