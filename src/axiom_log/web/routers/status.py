"""Continuity, identity metadata and discovery routes."""

from datetime import date

from fastapi import APIRouter, Depends

from ...context import AppContext
from ...models.entry import IDENTITY_METADATA
from ...services.continuity import snapshot
from ...services.discovery import DiscoveryService
from ..deps import get_context

router = APIRouter(tags=["status"])


@router.get("/status")
async def continuity_status(
    on: date | None = None,
    week_start: date | None = None,
    context: AppContext = Depends(get_context),
):
    """Streak, integrity and weekly reward for a reference date (default today)."""
    snap = snapshot(
        context.store.entries,
        on or date.today(),
        week_start=week_start,
        tz=context.store.tz,
        week_starts_on=context.settings.week_starts_on,
    )
    return snap.to_dict()


@router.get("/identities")
async def identities():
    """Identity states with their display metadata."""
    return {
        "identities": [
            {
                "value": int(state),
                "label": meta.label,
                "description": meta.description,
                "duration": meta.duration,
            }
            for state, meta in IDENTITY_METADATA.items()
        ]
    }


@router.post("/discover")
async def discover(context: AppContext = Depends(get_context)):
    """Run pattern discovery over the log."""
    settings = context.settings
    service = DiscoveryService(
        api_key=settings.discovery_api_key,
        model=settings.discovery_model,
        base_url=settings.discovery_api_url,
    )
    text = await service.analyze(context.store.entries, context.store.tz)
    return {"insights": text}
