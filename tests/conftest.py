"""Pytest configuration and fixtures."""

import fnmatch
import itertools
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from axiom_log.auth.credentials import CredentialLifecycle
from axiom_log.db.engine import init_db
from axiom_log.db.store import EntryLogStore
from axiom_log.errors import AuthorizationError, TransportError
from axiom_log.models.entry import Entry, IdentityState
from axiom_log.sync.transport import RemoteObject, sort_newest_first

UTC = timezone.utc


def ms(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> int:
    """Epoch milliseconds for a UTC wall-clock time."""
    return int(datetime(year, month, day, hour, minute, tzinfo=UTC).timestamp() * 1000)


def make_entry(
    entry_id: str,
    day: tuple[int, int, int],
    identity: IdentityState,
    energy: int = 3,
    hour: int = 12,
    tags: tuple[str, ...] = (),
    plan_id: str | None = None,
) -> Entry:
    return Entry(
        id=entry_id,
        timestamp=ms(*day, hour=hour),
        identity=identity,
        energy=energy,
        tags=tags,
        plan_id=plan_id,
    )


class FakeBlobStore:
    """In-memory remote store implementing the transport protocol.

    ``fail_with`` makes every call raise the given error; ``fail_on``
    restricts that to the named operations.
    """

    def __init__(self):
        self.containers: dict[str, str] = {}
        self.objects: dict[str, tuple[str, RemoteObject, bytes]] = {}
        self.calls: list[str] = []
        self.fail_with: Exception | None = None
        self.fail_on: set[str] | None = None
        self._ids = itertools.count(1)
        self._created = datetime(2024, 1, 1, tzinfo=UTC)

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if self.fail_with is None:
            return
        if self.fail_on is None or operation in self.fail_on:
            raise self.fail_with

    def put(self, container_id: str, name: str, content: bytes) -> RemoteObject:
        """Store an object directly, bypassing failure injection."""
        self._created += timedelta(seconds=1)
        obj = RemoteObject(id=f"obj-{next(self._ids)}", name=name, created_at=self._created)
        self.objects[obj.id] = (container_id, obj, content)
        return obj

    def names(self, container_id: str | None = None) -> list[str]:
        """Object names, newest first."""
        objs = [
            obj for cid, obj, _ in self.objects.values()
            if container_id is None or cid == container_id
        ]
        return [o.name for o in sort_newest_first(objs)]

    async def locate_or_create_container(self, name: str) -> str:
        self._check("locate")
        if name not in self.containers:
            self.containers[name] = f"folder-{next(self._ids)}"
        return self.containers[name]

    async def list_objects(self, container_id: str, name_pattern: str) -> list[RemoteObject]:
        self._check("list")
        return sort_newest_first([
            obj for cid, obj, _ in self.objects.values()
            if cid == container_id and fnmatch.fnmatchcase(obj.name, name_pattern)
        ])

    async def upload_object(self, container_id: str, name: str, content: bytes) -> RemoteObject:
        self._check("upload")
        return self.put(container_id, name, content)

    async def fetch_object(self, object_id: str) -> bytes:
        self._check("fetch")
        if object_id not in self.objects:
            raise TransportError(f"No such object {object_id}", status_code=404)
        return self.objects[object_id][2]

    async def delete_object(self, object_id: str) -> None:
        self._check("delete")
        if self.objects.pop(object_id, None) is None:
            raise TransportError(f"No such object {object_id}", status_code=404)


class FakeClock:
    """Settable clock returning epoch seconds."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def temp_db_path():
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
async def store(temp_db_path):
    """A loaded store that buckets days in UTC."""
    await init_db(temp_db_path)
    log_store = EntryLogStore(temp_db_path, tz=UTC)
    await log_store.load()
    return log_store


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def credentials(store, clock):
    """A linked credential persisted in the store's meta table."""
    lifecycle = CredentialLifecycle(store.meta, clock=clock)
    await lifecycle.load()
    await lifecycle.link("test-token", max_session=3600)
    return lifecycle


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def unauthorized():
    return AuthorizationError("Remote store rejected the credential")
