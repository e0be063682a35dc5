"""Tests for the sync scheduler against an in-memory remote store."""

import asyncio
import json

import pytest

from axiom_log.errors import AuthorizationError, TransportError
from axiom_log.models.entry import EntryData, IdentityState
from axiom_log.models.manifest import SyncManifest
from axiom_log.sync.scheduler import LAST_SYNC_KEY, SyncScheduler, SyncState

from conftest import FakeBlobStore, make_entry, ms


class MsClock:
    """Millisecond clock that ticks one second per call."""

    def __init__(self, start: int = ms(2024, 5, 1)):
        self.now = start

    def __call__(self) -> int:
        self.now += 1000
        return self.now


class GatedBlobStore(FakeBlobStore):
    """Blocks the gated operations until ``gate`` is set."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()
        self.gated: set[str] = set()
        self.waiting = False
        self.active_uploads = 0
        self.max_active_uploads = 0

    async def upload_object(self, container_id, name, content):
        self.active_uploads += 1
        self.max_active_uploads = max(self.max_active_uploads, self.active_uploads)
        try:
            if "upload" in self.gated:
                self.waiting = True
                await self.gate.wait()
            return await super().upload_object(container_id, name, content)
        finally:
            self.active_uploads -= 1

    async def fetch_object(self, object_id):
        if "fetch" in self.gated:
            self.waiting = True
            await self.gate.wait()
        return await super().fetch_object(object_id)


async def seed_remote(blob, entries, plans=(), timestamp=ms(2024, 4, 1), folder="Axiom"):
    container_id = await blob.locate_or_create_container(folder)
    manifest = SyncManifest(timestamp=timestamp, entries=list(entries), plans=list(plans))
    blob.put(container_id, manifest.name, manifest.to_bytes())
    return manifest


def newest_manifest(blob) -> dict:
    _, _, content = max(blob.objects.values(), key=lambda item: item[1].created_at)
    return json.loads(content)


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


def entry_data(day, identity=IdentityState.NORMAL):
    return EntryData(timestamp=ms(*day), identity=identity)


@pytest.fixture
async def make_scheduler(store, blob_store, credentials):
    created = []

    def factory(transport=None, **kwargs):
        kwargs.setdefault("debounce_seconds", 10.0)
        kwargs.setdefault("clock", MsClock())
        scheduler = SyncScheduler(store, transport or blob_store, credentials, **kwargs)
        created.append(scheduler)
        return scheduler

    yield factory

    for scheduler in created:
        await scheduler.close()


class TestImport:
    """Tests for the startup import."""

    async def test_not_linked_skips_import(self, store, blob_store, credentials, make_scheduler):
        """Test nothing touches the remote without a credential."""
        await credentials.revoke("user")
        scheduler = make_scheduler()

        assert await scheduler.start() is None
        assert blob_store.calls == []
        assert not scheduler.import_attempted

    async def test_fresh_client_adopts_newest_manifest(self, store, blob_store, make_scheduler):
        """Test the newest remote snapshot replaces local data wholesale."""
        await seed_remote(
            blob_store, [make_entry("old", (2024, 3, 1), IdentityState.REST)],
            timestamp=ms(2024, 4, 1),
        )
        newest = await seed_remote(
            blob_store, [make_entry("new", (2024, 3, 2), IdentityState.NORMAL)],
            timestamp=ms(2024, 4, 2),
        )
        scheduler = make_scheduler()
        await store.upsert_entry(entry_data((2024, 3, 5)))

        result = await scheduler.start()

        assert result.applied
        assert result.manifest_name == newest.name
        assert [e.id for e in store.entries] == ["new"]
        assert await store.get_meta(LAST_SYNC_KEY) == newest.timestamp
        # Adopting a snapshot never schedules a push of it
        assert not scheduler.push_pending
        assert scheduler.state == SyncState.IDLE

    async def test_not_newer_is_a_no_op(self, store, blob_store, make_scheduler):
        """Test a remote snapshot at or before the last sync is ignored."""
        manifest = await seed_remote(
            blob_store, [make_entry("remote", (2024, 3, 1), IdentityState.NORMAL)]
        )
        await store.set_meta(LAST_SYNC_KEY, manifest.timestamp)
        local = await store.upsert_entry(entry_data((2024, 3, 6)))
        scheduler = make_scheduler()

        result = await scheduler.start()

        assert not result.applied
        assert [e.id for e in store.entries] == [local.id]
        assert "fetch" not in blob_store.calls

    async def test_empty_remote(self, store, make_scheduler):
        scheduler = make_scheduler()
        result = await scheduler.start()

        assert not result.applied
        assert result.manifest_name is None
        assert scheduler.import_attempted

    async def test_malformed_manifest_keeps_local_data(self, store, blob_store, make_scheduler):
        """Test a bad manifest is reported and nothing is overwritten."""
        container_id = await blob_store.locate_or_create_container("Axiom")
        blob_store.put(container_id, "sync.2024.04.01.00.00.00.000.json", b"{broken")
        local = await store.upsert_entry(entry_data((2024, 3, 6)))
        scheduler = make_scheduler()

        assert await scheduler.start() is None

        status = scheduler.status()
        assert status.state == SyncState.IDLE
        assert "Import failed" in status.last_error
        assert [e.id for e in store.entries] == [local.id]
        assert not scheduler.import_attempted

    async def test_failed_import_holds_back_pushes(self, store, blob_store, make_scheduler):
        """Test local changes wait for a successful import before being pushed."""
        blob_store.fail_with = TransportError("offline")
        scheduler = make_scheduler()
        await scheduler.start()

        await store.upsert_entry(entry_data((2024, 3, 6)))
        assert "upload" not in blob_store.calls

        # Still offline: the retried import fails and nothing is uploaded
        assert await scheduler.flush() is None
        assert "upload" not in blob_store.calls
        assert not scheduler.import_attempted

        blob_store.fail_with = None
        await store.upsert_entry(entry_data((2024, 3, 7)))
        result = await scheduler.flush()

        assert scheduler.import_attempted
        assert result.entries == 2
        assert blob_store.calls.count("upload") == 1

    async def test_debounced_change_retries_failed_import(
        self, store, blob_store, make_scheduler
    ):
        """Test a change after a failed startup import is pushed once the remote is back."""
        blob_store.fail_with = TransportError("offline")
        scheduler = make_scheduler(debounce_seconds=0.01)
        await scheduler.start()
        blob_store.fail_with = None

        await store.upsert_entry(entry_data((2024, 3, 6)))
        await wait_until(lambda: blob_store.calls.count("upload") == 1)
        await scheduler.wait_idle()

        assert scheduler.import_attempted
        assert blob_store.calls.index("list") < blob_store.calls.index("upload")
        assert len(newest_manifest(blob_store)["data"]["entries"]) == 1

    async def test_changes_before_empty_import_are_pushed(self, store, blob_store, make_scheduler):
        """Test pre-import edits are pushed when the import found nothing newer."""
        scheduler = make_scheduler()
        await store.upsert_entry(entry_data((2024, 3, 6)))

        await scheduler.start()
        assert scheduler.push_pending

        result = await scheduler.flush()
        assert result.entries == 1
        assert len(newest_manifest(blob_store)["data"]["entries"]) == 1


class TestPush:
    """Tests for debounced and manual pushes."""

    async def test_change_after_import_schedules_push(self, store, blob_store, make_scheduler):
        scheduler = make_scheduler()
        await scheduler.start()

        await store.upsert_entry(entry_data((2024, 3, 6)))
        assert scheduler.push_pending

        await scheduler.flush()
        assert blob_store.calls.count("upload") == 1
        assert not scheduler.push_pending

    async def test_debounce_coalesces_bursts(self, store, blob_store, make_scheduler):
        """Test a burst of changes produces a single upload."""
        scheduler = make_scheduler(debounce_seconds=0.3)
        await scheduler.start()

        for day in (4, 5, 6):
            await store.upsert_entry(entry_data((2024, 3, day)))

        await asyncio.sleep(0.8)
        await scheduler.wait_idle()

        assert blob_store.calls.count("upload") == 1
        assert len(newest_manifest(blob_store)["data"]["entries"]) == 3

    async def test_retention(self, store, blob_store, make_scheduler):
        """Test only the newest manifests are kept after each push."""
        scheduler = make_scheduler(retention=2)
        await scheduler.start()

        names = []
        for _ in range(4):
            result = await scheduler.push()
            names.append(result.manifest_name)

        assert blob_store.names() == [names[3], names[2]]
        assert result.deleted == 1

    async def test_timestamps_strictly_increase(self, store, blob_store, make_scheduler):
        """Test a stalled clock never reuses a manifest name."""
        scheduler = make_scheduler(clock=lambda: ms(2024, 5, 1))
        await scheduler.start()

        first = await scheduler.push()
        second = await scheduler.push()

        assert second.timestamp == first.timestamp + 1
        assert first.manifest_name != second.manifest_name

    async def test_concurrent_push_reruns_with_latest_data(self, store, credentials):
        """Test a push requested mid-flight waits and then uploads fresh data."""
        blob = GatedBlobStore()
        scheduler = SyncScheduler(store, blob, credentials, debounce_seconds=10.0, clock=MsClock())
        try:
            await scheduler.start()
            await store.upsert_entry(entry_data((2024, 3, 4)))
            scheduler.cancel_pending()

            blob.gated = {"upload"}
            first = asyncio.create_task(scheduler.push())
            await wait_until(lambda: blob.waiting)

            await store.upsert_entry(entry_data((2024, 3, 5)))
            assert await scheduler.push() is None
            scheduler.cancel_pending()

            blob.gate.set()
            result = await first

            assert blob.calls.count("upload") == 2
            assert blob.max_active_uploads == 1
            assert result.entries == 2
            assert len(newest_manifest(blob)["data"]["entries"]) == 2
        finally:
            await scheduler.close()

    async def test_push_during_import_runs_after(self, store, credentials):
        """Test a manual push during an import is deferred, not dropped."""
        blob = GatedBlobStore()
        await seed_remote(blob, [make_entry("remote", (2024, 3, 1), IdentityState.NORMAL)])
        scheduler = SyncScheduler(store, blob, credentials, debounce_seconds=10.0, clock=MsClock())
        try:
            blob.gated = {"fetch"}
            importing = asyncio.create_task(scheduler.start())
            await wait_until(lambda: blob.waiting)

            assert scheduler.state == SyncState.IMPORTING
            assert await scheduler.push() is None

            blob.gate.set()
            result = await importing
            assert result.applied
            assert scheduler.push_pending

            pushed = await scheduler.flush()
            assert pushed.entries == 1
            assert blob.calls.count("upload") == 1
        finally:
            await scheduler.close()

    async def test_import_during_push_runs_after(self, store, credentials):
        """Test an import requested mid-push waits, so local and remote stay in step."""
        blob = GatedBlobStore()
        scheduler = SyncScheduler(store, blob, credentials, debounce_seconds=10.0, clock=MsClock())
        try:
            await scheduler.start()
            await store.upsert_entry(entry_data((2024, 3, 4)))
            scheduler.cancel_pending()
            states = []
            scheduler.subscribe(lambda status: states.append(status.state))

            blob.gated = {"upload"}
            pushing = asyncio.create_task(scheduler.push())
            await wait_until(lambda: blob.waiting)

            await seed_remote(
                blob, [make_entry("other", (2024, 3, 5), IdentityState.REST)],
                timestamp=ms(2024, 6, 1),
            )
            assert await scheduler.import_latest() is None
            assert scheduler.state == SyncState.SYNCING

            blob.gate.set()
            await pushing

            assert states == [
                SyncState.SYNCING, SyncState.IDLE, SyncState.IMPORTING, SyncState.IDLE,
            ]
            remote_ids = [e["id"] for e in newest_manifest(blob)["data"]["entries"]]
            assert remote_ids == [e.id for e in store.entries]
            assert await store.get_meta(LAST_SYNC_KEY) == newest_manifest(blob)["timestamp"]
            assert not (await scheduler.import_latest()).applied
        finally:
            await scheduler.close()

    async def test_last_sync_never_moves_backwards(self, store, make_scheduler):
        scheduler = make_scheduler()
        await store.set_meta(LAST_SYNC_KEY, ms(2024, 6, 1))

        await scheduler._record_sync(ms(2024, 5, 1))

        assert await store.get_meta(LAST_SYNC_KEY) == ms(2024, 6, 1)
        assert scheduler.status().last_sync_ts == ms(2024, 6, 1)

    async def test_status_listener_sees_transitions(self, store, make_scheduler):
        scheduler = make_scheduler()
        await scheduler.start()
        states = []
        scheduler.subscribe(lambda status: states.append(status.state))

        await scheduler.push()

        assert states == [SyncState.SYNCING, SyncState.IDLE]


class TestFailures:
    """Tests for error handling at the scheduler boundary."""

    async def test_unauthorized_revokes_and_requests_relink(
        self, store, blob_store, credentials, make_scheduler
    ):
        """Test a rejected credential is discarded and the user is prompted."""
        scheduler = make_scheduler()
        await scheduler.start()
        reasons = []
        credentials.subscribe(reasons.append)

        blob_store.fail_with = AuthorizationError("rejected")
        assert await scheduler.push() is None

        status = scheduler.status()
        assert status.relink_required
        assert status.state == SyncState.IDLE
        assert credentials.current_token() is None
        assert reasons == ["unauthorized"]

        await credentials.link("fresh-token")
        scheduler.mark_relinked()
        blob_store.fail_with = None

        assert await scheduler.push() is not None
        assert not scheduler.status().relink_required

    async def test_transport_error_keeps_credential(
        self, store, blob_store, credentials, make_scheduler
    ):
        scheduler = make_scheduler()
        await scheduler.start()

        blob_store.fail_with = TransportError("HTTP 503", status_code=503)
        assert await scheduler.push() is None

        assert "Push failed" in scheduler.status().last_error
        assert credentials.current_token() == "test-token"
        assert await store.get_meta(LAST_SYNC_KEY) is None

    async def test_retention_failure_does_not_fail_push(self, store, blob_store, make_scheduler):
        """Test a failed cleanup is reported but the upload still counts."""
        scheduler = make_scheduler(retention=1)
        await scheduler.start()
        await scheduler.push()

        blob_store.fail_with = TransportError("delete refused")
        blob_store.fail_on = {"delete"}
        result = await scheduler.push()

        assert result is not None
        assert await store.get_meta(LAST_SYNC_KEY) == result.timestamp
        assert "Retention" in scheduler.status().last_error
        assert len(blob_store.names()) == 2

    def test_retention_must_be_positive(self, store, blob_store, credentials):
        with pytest.raises(ValueError):
            SyncScheduler(store, blob_store, credentials, retention=0)
