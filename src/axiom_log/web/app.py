"""FastAPI application for the axiom-log JSON API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import Settings
from ..context import build_context
from ..errors import DateCollisionError, NotFoundError, ValidationError
from ..sync.transport import BlobTransport
from .routers import entries, plans, status, sync

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    transport: BlobTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use (read from the environment if None)
        transport: Remote store override (Drive if None)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build the app context and run the startup import."""
        context = await build_context(settings, transport)
        app.state.context = context
        await context.scheduler.start()
        logger.info("Serving %s", context.settings.db_path)
        yield
        # Push anything still waiting on the debounce timer
        await context.scheduler.flush()
        await context.close()

    app = FastAPI(
        title="axiom-log",
        description="Identity-state training log",
        version=__version__,
        lifespan=lifespan,
    )

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(DateCollisionError)
    async def date_collision(request: Request, exc: DateCollisionError):
        return JSONResponse(
            status_code=409,
            content={
                "error": str(exc),
                "day": exc.day.isoformat(),
                "existing_id": exc.existing_id,
            },
        )

    @app.exception_handler(ValidationError)
    async def invalid(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"error": str(exc)})

    # Include routers
    app.include_router(entries.router)
    app.include_router(plans.router)
    app.include_router(status.router)
    app.include_router(sync.router)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    return app
