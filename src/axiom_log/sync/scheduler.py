"""Sync scheduler: startup import, debounced push and retention.

State machine::

    IDLE -> IMPORTING -> IDLE
    IDLE -> SYNCING   -> IDLE
    IMPORTING | SYNCING -> ERROR -> IDLE

Conflict policy is last-writer-wins per manifest: a push uploads the whole
local snapshot and an import replaces the whole local snapshot.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from ..auth.credentials import CredentialLifecycle
from ..db.store import EntryLogStore
from ..errors import AuthorizationError, ManifestError, TransportError
from ..models.manifest import MANIFEST_PATTERN, SyncManifest, parse_manifest_name
from .transport import BlobTransport, RemoteObject

logger = logging.getLogger(__name__)

LAST_SYNC_KEY = "last_sync_ts"
DEFAULT_RETENTION = 5
DEFAULT_DEBOUNCE_SECONDS = 2.0


class SyncState(str, Enum):
    """Scheduler state."""

    IDLE = "idle"
    IMPORTING = "importing"
    SYNCING = "syncing"
    ERROR = "error"


@dataclass
class SyncStatus:
    """Observable scheduler status."""

    state: SyncState
    last_sync_ts: int | None = None
    last_error: str | None = None
    relink_required: bool = False
    push_pending: bool = False
    import_attempted: bool = False

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "last_sync_ts": self.last_sync_ts,
            "last_error": self.last_error,
            "relink_required": self.relink_required,
            "push_pending": self.push_pending,
            "import_attempted": self.import_attempted,
        }


@dataclass
class ImportResult:
    """Outcome of an import pass."""

    applied: bool
    manifest_name: str | None = None
    timestamp: int | None = None
    entries: int = 0
    plans: int = 0


@dataclass
class PushResult:
    """Outcome of a successful push."""

    manifest_name: str
    timestamp: int
    entries: int
    plans: int
    deleted: int = 0


StatusListener = Callable[[SyncStatus], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _object_timestamp(obj: RemoteObject) -> int:
    """Timestamp encoded in the object name, else its creation time."""
    parsed = parse_manifest_name(obj.name)
    if parsed is not None:
        return parsed
    return int(obj.created_at.timestamp() * 1000)


class SyncScheduler:
    """Decides when the transport is called and applies its results to the store.

    Pushes never run concurrently: a push requested while one is in flight
    sets a single re-run flag, and the re-run reads the store afresh.
    Change-triggered pushes are held back until an import has completed
    (applied or no-op), so pre-import data never overwrites a newer remote
    snapshot. Until then the debounce timer retries the import, and the push
    follows once an import succeeds. Imports and pushes never overlap: each
    one requested while the other runs is deferred until it finishes.
    """

    def __init__(
        self,
        store: EntryLogStore,
        transport: BlobTransport,
        credentials: CredentialLifecycle,
        folder_name: str = "Axiom",
        retention: int = DEFAULT_RETENTION,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        clock: Callable[[], int] = _now_ms,
    ):
        if retention < 1:
            raise ValueError("retention must be at least 1")
        self.store = store
        self.transport = transport
        self.credentials = credentials
        self.folder_name = folder_name
        self.retention = retention
        self.debounce_seconds = debounce_seconds
        self._clock = clock

        self._state = SyncState.IDLE
        self._last_error: str | None = None
        self._relink_required = False
        self._last_sync_ts: int | None = None
        self._container_id: str | None = None

        self._import_attempted = False
        self._changed_before_import = False
        self._push_after_import = False
        self._import_after_push = False
        self._timer: asyncio.TimerHandle | None = None
        self._push_in_flight = False
        self._rerun_requested = False
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[StatusListener] = []

        self._unsubscribe_store = store.subscribe(self._on_store_change)
        self._unsubscribe_credentials = credentials.subscribe(self._on_credential_revoked)

    # Status

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def import_attempted(self) -> bool:
        return self._import_attempted

    @property
    def push_pending(self) -> bool:
        return self._timer is not None or self._rerun_requested

    def status(self) -> SyncStatus:
        return SyncStatus(
            state=self._state,
            last_sync_ts=self._last_sync_ts,
            last_error=self._last_error,
            relink_required=self._relink_required,
            push_pending=self.push_pending,
            import_attempted=self._import_attempted,
        )

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: SyncState) -> None:
        self._state = state
        snapshot = self.status()
        for listener in list(self._listeners):
            listener(snapshot)

    # Lifecycle

    async def start(self) -> ImportResult | None:
        """Run the startup import if a credential is available."""
        self._last_sync_ts = await self.store.get_meta(LAST_SYNC_KEY)
        return await self.import_latest()

    async def close(self) -> None:
        """Cancel the pending timer and wait for in-flight work."""
        self.cancel_pending()
        await self.wait_idle()
        self._unsubscribe_store()
        self._unsubscribe_credentials()

    async def flush(self) -> PushResult | None:
        """Run a pending debounced cycle now and wait for all pushes to finish."""
        result = None
        if self._timer is not None:
            self.cancel_pending()
            result = await self._run_cycle()
        await self.wait_idle()
        return result

    async def wait_idle(self) -> None:
        """Wait until no scheduled push task is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # Import

    async def import_latest(self) -> ImportResult | None:
        """Adopt the newest remote manifest if it is newer than the last sync.

        Returns None if the pass failed (the error is recorded in the status)
        or was deferred behind an in-flight push.
        """
        if self._state == SyncState.IMPORTING:
            return None
        if self._push_in_flight:
            logger.debug("Push in flight; import deferred")
            self._import_after_push = True
            return None
        if self.credentials.current_token() is None:
            logger.info("Sync not linked; import skipped")
            return None
        await self.credentials.touch()
        self._set_state(SyncState.IMPORTING)
        try:
            result = await self._import_once()
        except AuthorizationError as e:
            await self._authorization_failed(e)
            return None
        except (TransportError, ManifestError) as e:
            self._failed("Import", e)
            return None

        self._import_attempted = True
        self._last_error = None
        self._set_state(SyncState.IDLE)

        # A retry timer armed by pre-import changes must not push adopted data
        self.cancel_pending()
        changed = self._changed_before_import and not result.applied
        self._changed_before_import = False
        if changed or self._push_after_import:
            self._push_after_import = False
            self.schedule_push()
        return result

    async def _import_once(self) -> ImportResult:
        container_id = await self._container()
        objects = await self.transport.list_objects(container_id, MANIFEST_PATTERN)
        if not objects:
            logger.info("No remote manifests found")
            return ImportResult(applied=False)

        newest = objects[0]
        remote_ts = _object_timestamp(newest)
        last = await self.store.get_meta(LAST_SYNC_KEY)
        if last is not None and remote_ts <= last:
            logger.debug("Remote manifest %s is not newer than last sync", newest.name)
            return ImportResult(applied=False, manifest_name=newest.name, timestamp=remote_ts)

        content = await self.transport.fetch_object(newest.id)
        manifest = SyncManifest.from_bytes(content)
        await self.store.replace_all(manifest.entries, manifest.plans)
        await self._record_sync(remote_ts)
        logger.info(
            "Imported %s (%d entries, %d plans)",
            newest.name, len(manifest.entries), len(manifest.plans),
        )
        return ImportResult(
            applied=True,
            manifest_name=newest.name,
            timestamp=remote_ts,
            entries=len(manifest.entries),
            plans=len(manifest.plans),
        )

    # Push

    def _on_store_change(self, collection: str) -> None:
        if not self._import_attempted:
            self._changed_before_import = True
        self.schedule_push()

    def schedule_push(self) -> None:
        """(Re)start the quiescence timer; the cycle fires when it expires."""
        self.cancel_pending()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce_seconds, self._on_timer)

    def cancel_pending(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        task = asyncio.ensure_future(self._run_cycle())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_cycle(self) -> PushResult | None:
        """Push, importing first if no import has succeeded yet."""
        if not self._import_attempted:
            imported = await self.import_latest()
            if imported is None or self._timer is None:
                return None
            self.cancel_pending()
        return await self.push()

    async def push(self) -> PushResult | None:
        """Upload the current snapshot.

        If a push is already in flight this only queues one re-run and
        returns None. Returns None as well when not linked or on failure.
        """
        if self._push_in_flight:
            self._rerun_requested = True
            return None
        if self._state == SyncState.IMPORTING:
            self._push_after_import = True
            return None
        if self.credentials.current_token() is None:
            logger.info("Sync not linked; push skipped")
            return None

        self._push_in_flight = True
        result = None
        try:
            while True:
                self._rerun_requested = False
                result = await self._push_guarded()
                if result is None or not self._rerun_requested:
                    break
                logger.debug("Store changed during push; pushing again")
        finally:
            self._push_in_flight = False

        if self._import_after_push:
            self._import_after_push = False
            await self.import_latest()
        return result

    async def _push_guarded(self) -> PushResult | None:
        self._set_state(SyncState.SYNCING)
        try:
            result = await self._push_once()
        except AuthorizationError as e:
            await self._authorization_failed(e)
            return None
        except TransportError as e:
            self._failed("Push", e)
            return None
        self._set_state(SyncState.IDLE)
        return result

    async def _push_once(self) -> PushResult:
        # Read the store at upload time, never a snapshot captured earlier
        entries, plans = self.store.get_all()
        timestamp = self._clock()
        if self._last_sync_ts is not None and timestamp <= self._last_sync_ts:
            timestamp = self._last_sync_ts + 1
        manifest = SyncManifest(timestamp=timestamp, entries=entries, plans=plans)

        container_id = await self._container()
        await self.transport.upload_object(container_id, manifest.name, manifest.to_bytes())
        await self._record_sync(timestamp)
        self._last_error = None
        logger.info("Pushed %s (%d entries, %d plans)", manifest.name, len(entries), len(plans))

        deleted = 0
        try:
            deleted = await self._apply_retention(container_id)
        except TransportError as e:
            # The upload itself succeeded; cleanup is retried on the next push
            logger.warning("Retention cleanup failed: %s", e)
            self._last_error = f"Retention cleanup failed: {e}"

        return PushResult(
            manifest_name=manifest.name,
            timestamp=timestamp,
            entries=len(entries),
            plans=len(plans),
            deleted=deleted,
        )

    async def _apply_retention(self, container_id: str) -> int:
        """Delete all but the newest ``retention`` manifests."""
        objects = await self.transport.list_objects(container_id, MANIFEST_PATTERN)
        stale = objects[self.retention:]
        for obj in stale:
            await self.transport.delete_object(obj.id)
        if stale:
            logger.debug("Deleted %d old manifest(s)", len(stale))
        return len(stale)

    # Helpers

    async def _container(self) -> str:
        if self._container_id is None:
            self._container_id = await self.transport.locate_or_create_container(
                self.folder_name
            )
        return self._container_id

    async def _record_sync(self, timestamp: int) -> None:
        current = self._last_sync_ts
        if current is None:
            current = await self.store.get_meta(LAST_SYNC_KEY)
        if current is not None and timestamp < current:
            logger.debug("Keeping last sync %d over older %d", current, timestamp)
            self._last_sync_ts = current
            return
        self._last_sync_ts = timestamp
        await self.store.set_meta(LAST_SYNC_KEY, timestamp)

    def _failed(self, operation: str, error: Exception) -> None:
        logger.warning("%s failed: %s", operation, error)
        self._last_error = f"{operation} failed: {error}"
        self._set_state(SyncState.ERROR)
        self._set_state(SyncState.IDLE)

    async def _authorization_failed(self, error: AuthorizationError) -> None:
        logger.warning("Authorization failed: %s", error)
        self._last_error = str(error)
        self._container_id = None
        self.cancel_pending()
        self._set_state(SyncState.ERROR)
        await self.credentials.revoke("unauthorized")
        self._set_state(SyncState.IDLE)

    def _on_credential_revoked(self, reason: str) -> None:
        self._relink_required = True
        self._container_id = None

    def mark_relinked(self) -> None:
        """Clear the re-link prompt after a new credential is linked."""
        self._relink_required = False
        self._last_error = None
