"""Entry routes."""

from datetime import date, timedelta

from fastapi import APIRouter, Body, Depends

from ...context import AppContext
from ...errors import NotFoundError
from ..deps import get_context

router = APIRouter(prefix="/entries", tags=["entries"])


@router.get("")
async def list_entries(
    week_start: date | None = None,
    context: AppContext = Depends(get_context),
):
    """List entries newest first, optionally limited to one week."""
    items = sorted(context.store.entries, key=lambda e: e.sort_key, reverse=True)
    if week_start is not None:
        week_end = week_start + timedelta(days=7)
        items = [e for e in items if week_start <= e.local_day(context.store.tz) < week_end]
    return {"entries": [e.to_dict() for e in items]}


@router.get("/{entry_id}")
async def get_entry(entry_id: str, context: AppContext = Depends(get_context)):
    """Get a single entry."""
    entry = context.store.get_entry(entry_id)
    if entry is None:
        raise NotFoundError(f"Entry {entry_id} not found")
    return entry.to_dict()


@router.post("", status_code=201)
async def create_entry(
    payload: dict = Body(...),
    context: AppContext = Depends(get_context),
):
    """Log a new entry. Rejected with 409 if the day already has one."""
    await context.credentials.touch()
    entry = await context.store.upsert_entry(payload)
    return entry.to_dict()


@router.put("/{entry_id}")
async def replace_entry(
    entry_id: str,
    payload: dict = Body(...),
    context: AppContext = Depends(get_context),
):
    """Replace every field of an entry except its id."""
    await context.credentials.touch()
    entry = await context.store.upsert_entry(payload, entry_id=entry_id)
    return entry.to_dict()


@router.delete("/{entry_id}")
async def delete_entry(entry_id: str, context: AppContext = Depends(get_context)):
    """Delete an entry."""
    await context.credentials.touch()
    await context.store.delete_entry(entry_id)
    return {"status": "deleted"}
