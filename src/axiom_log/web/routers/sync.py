"""Sync routes: status, link, unlink and manual triggers."""

from dataclasses import asdict

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from ...auth.credentials import DEFAULT_MAX_SESSION_SECONDS
from ...auth.oauth import SCOPES, fetch_user_profile
from ...context import AppContext
from ...errors import AuthorizationError, TransportError
from ..deps import get_context

router = APIRouter(prefix="/sync", tags=["sync"])


def _sync_state(context: AppContext) -> dict:
    creds = context.credentials
    return {
        **context.scheduler.status().to_dict(),
        "linked": creds.current_token() is not None,
        "profile": creds.profile.to_dict() if creds.profile else None,
        "revoked_reason": creds.revoked_reason,
        "folder": context.settings.sync_folder,
        "client_id": context.settings.google_client_id,
        "scopes": SCOPES,
    }


@router.get("")
async def sync_status(context: AppContext = Depends(get_context)):
    """Scheduler status and link state."""
    return _sync_state(context)


@router.post("/link")
async def link(
    token: str = Body(..., embed=True),
    max_session: int = Body(DEFAULT_MAX_SESSION_SECONDS, embed=True),
    context: AppContext = Depends(get_context),
):
    """Store a freshly acquired access token and run an import."""
    try:
        profile = await fetch_user_profile(token, url=context.settings.userinfo_url)
    except AuthorizationError as e:
        await context.credentials.revoke("unauthorized")
        return JSONResponse(status_code=401, content={"error": str(e)})
    except TransportError as e:
        return JSONResponse(status_code=502, content={"error": str(e)})

    await context.credentials.link(token, max_session=max_session, profile=profile)
    context.scheduler.mark_relinked()
    await context.scheduler.import_latest()
    return _sync_state(context)


@router.post("/unlink")
async def unlink(context: AppContext = Depends(get_context)):
    """Forget the credential. Local data is kept."""
    await context.credentials.revoke("user")
    return _sync_state(context)


@router.post("/push")
async def push(context: AppContext = Depends(get_context)):
    """Upload the current snapshot now."""
    context.scheduler.cancel_pending()
    result = await context.scheduler.push()
    return {
        "result": asdict(result) if result else None,
        "status": _sync_state(context),
    }


@router.post("/import")
async def import_latest(context: AppContext = Depends(get_context)):
    """Adopt the newest remote snapshot if it is newer than the last sync."""
    result = await context.scheduler.import_latest()
    return {
        "result": asdict(result) if result else None,
        "status": _sync_state(context),
    }
