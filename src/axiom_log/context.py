"""Per-process wiring of the store, credential holder and sync scheduler."""

import logging
from dataclasses import dataclass

from .auth.credentials import CredentialLifecycle
from .config import Settings, load_settings
from .db.store import EntryLogStore
from .sync.scheduler import SyncScheduler
from .sync.transport import BlobTransport, DriveTransport

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Explicit collaborators shared by the CLI and the HTTP app."""

    settings: Settings
    store: EntryLogStore
    credentials: CredentialLifecycle
    transport: BlobTransport
    scheduler: SyncScheduler

    async def close(self) -> None:
        await self.scheduler.close()
        aclose = getattr(self.transport, "aclose", None)
        if aclose is not None:
            await aclose()


async def build_context(
    settings: Settings | None = None,
    transport: BlobTransport | None = None,
) -> AppContext:
    """Load the store and credential, then construct the scheduler.

    The startup import is not run here; call ``scheduler.start()``.
    """
    settings = settings or load_settings()

    store = EntryLogStore(settings.db_path)
    await store.load()

    credentials = CredentialLifecycle(store.meta)
    await credentials.load()

    if transport is None:
        transport = DriveTransport(credentials.current_token, base_url=settings.drive_api_url)

    scheduler = SyncScheduler(
        store,
        transport,
        credentials,
        folder_name=settings.sync_folder,
        retention=settings.sync_retention,
        debounce_seconds=settings.sync_debounce_seconds,
    )
    return AppContext(
        settings=settings,
        store=store,
        credentials=credentials,
        transport=transport,
        scheduler=scheduler,
    )
