"""Entry log store: in-memory collections with write-through persistence."""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import replace
from datetime import tzinfo
from pathlib import Path
from typing import Any
from uuid import uuid4

from ..errors import (
    DateCollisionError,
    DeserializationError,
    NotFoundError,
    ValidationError,
)
from ..models.entry import Entry, EntryData, day_of
from ..models.manifest import parse_entries, parse_plans
from ..models.plan import Exercise, Plan
from .engine import get_db_path, init_db
from .repositories import CollectionRepository, MetaRepository

logger = logging.getLogger(__name__)

# Listener receives the name of the collection that changed
ChangeListener = Callable[[str], None]


def _new_id() -> str:
    return str(uuid4())


def _now_ms() -> int:
    return int(time.time() * 1000)


def _plan_from_input(data: dict) -> Plan:
    """Build a plan from user input where ids may be absent."""
    payload = {"id": "", "name": "", **data}
    payload["exercises"] = [
        {"id": "", **ex} if isinstance(ex, dict) else ex
        for ex in payload.get("exercises") or []
    ]
    try:
        return Plan.from_dict(payload)
    except DeserializationError as e:
        raise ValidationError(str(e)) from e


class EntryLogStore:
    """Canonical collection of entries and plans for one user.

    Reads are always served from memory. Every mutation updates memory
    before its first ``await`` (so mutations never interleave) and is
    written through to SQLite before the call returns.
    """

    def __init__(
        self,
        db_path: Path | None = None,
        tz: tzinfo | None = None,
        id_factory: Callable[[], str] = _new_id,
        clock: Callable[[], int] = _now_ms,
    ):
        self.db_path = db_path or get_db_path()
        self.tz = tz
        self._new_id = id_factory
        self._clock = clock
        self._collections = CollectionRepository(self.db_path)
        self.meta = MetaRepository(self.db_path)
        self._entries: dict[str, Entry] = {}
        self._plans: dict[str, Plan] = {}
        self._listeners: list[ChangeListener] = []
        self._write_lock = asyncio.Lock()
        self._loaded = False

    async def load(self) -> None:
        """Read both collections from disk.

        A corrupt collection loads as empty without affecting the other.
        """
        await init_db(self.db_path)
        entries = parse_entries(await self._collections.read("entries"), "stored entries")
        plans = parse_plans(await self._collections.read("plans"), "stored plans")
        self._entries = {e.id: e for e in entries}
        self._plans = {p.id: p for p in plans}
        self._loaded = True
        logger.debug("Loaded %d entries and %d plans", len(entries), len(plans))

    @property
    def loaded(self) -> bool:
        return self._loaded

    # Reads

    def get_all(self) -> tuple[list[Entry], list[Plan]]:
        """Snapshot of both collections (copies; safe to hold across awaits)."""
        return list(self._entries.values()), [
            replace(p, exercises=list(p.exercises)) for p in self._plans.values()
        ]

    @property
    def entries(self) -> list[Entry]:
        return list(self._entries.values())

    @property
    def plans(self) -> list[Plan]:
        return list(self._plans.values())

    def get_entry(self, entry_id: str) -> Entry | None:
        return self._entries.get(entry_id)

    def get_plan(self, plan_id: str) -> Plan | None:
        return self._plans.get(plan_id)

    def find_collision(self, timestamp: int, editing_id: str | None = None) -> Entry | None:
        """Return another entry logged on the same calendar day, if any."""
        day = day_of(timestamp, self.tz)
        for entry in self._entries.values():
            if entry.id != editing_id and entry.local_day(self.tz) == day:
                return entry
        return None

    # Listeners

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a mutation listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, collection: str) -> None:
        for listener in list(self._listeners):
            listener(collection)

    # Entry mutations

    async def upsert_entry(
        self,
        data: EntryData | dict,
        entry_id: str | None = None,
        enforce_one_per_day: bool = True,
    ) -> Entry:
        """Create an entry, or replace every field but the id of an existing one.

        Args:
            data: Field values
            entry_id: Existing entry to replace; a new id is assigned if None
            enforce_one_per_day: Reject a second entry on the same calendar day

        Raises:
            ValidationError: If the data is invalid or collides with another day
            NotFoundError: If ``entry_id`` does not exist
        """
        if isinstance(data, dict):
            data = EntryData.from_dict(data)
        data = data.normalized()
        data.validate()

        if entry_id is not None and entry_id not in self._entries:
            raise NotFoundError(f"Entry {entry_id} not found")

        if enforce_one_per_day:
            existing = self.find_collision(data.timestamp, editing_id=entry_id)
            if existing is not None:
                raise DateCollisionError(day_of(data.timestamp, self.tz), existing.id)

        entry = Entry.from_data(entry_id or self._new_id(), data)
        await self._commit("entries", entry.id, entry)
        return entry

    async def delete_entry(self, entry_id: str) -> None:
        """Delete an entry.

        Raises:
            NotFoundError: If the entry does not exist
        """
        if entry_id not in self._entries:
            raise NotFoundError(f"Entry {entry_id} not found")
        await self._commit("entries", entry_id, None)

    # Plan mutations

    async def upsert_plan(self, data: Plan | dict, plan_id: str | None = None) -> Plan:
        """Create a plan, or replace an existing one keeping its id and creation time.

        Raises:
            ValidationError: If the plan is invalid
            NotFoundError: If ``plan_id`` does not exist
        """
        if isinstance(data, dict):
            data = _plan_from_input(data)

        existing = None
        if plan_id is not None:
            existing = self._plans.get(plan_id)
            if existing is None:
                raise NotFoundError(f"Plan {plan_id} not found")

        exercises = [
            replace(ex, id=ex.id or self._new_id()) for ex in data.exercises
        ]
        plan = Plan(
            id=plan_id or self._new_id(),
            name=data.name.strip(),
            exercises=exercises,
            description=data.description,
            created_at=existing.created_at if existing else self._clock(),
        )
        plan.validate()

        await self._commit("plans", plan.id, plan)
        return plan

    async def add_exercise(self, plan_id: str, exercise: Exercise) -> Plan:
        """Append an exercise to a plan (a replace-by-id of the whole plan)."""
        plan = self._plans.get(plan_id)
        if plan is None:
            raise NotFoundError(f"Plan {plan_id} not found")
        updated = replace(plan, exercises=[*plan.exercises, exercise])
        return await self.upsert_plan(updated, plan_id=plan_id)

    async def delete_plan(self, plan_id: str) -> None:
        """Delete a plan. Entries referencing it keep their ``plan_id``.

        Raises:
            NotFoundError: If the plan does not exist
        """
        if plan_id not in self._plans:
            raise NotFoundError(f"Plan {plan_id} not found")
        await self._commit("plans", plan_id, None)

    # Bulk replace (sync import)

    async def replace_all(self, entries: list[Entry], plans: list[Plan]) -> None:
        """Atomically replace both collections.

        Listeners are not notified; adopting a remote snapshot must not
        schedule a push of that same snapshot.
        """
        previous = self._entries, self._plans
        self._entries = {e.id: e for e in entries}
        self._plans = {p.id: p for p in plans}
        try:
            async with self._write_lock:
                await self._collections.write_many({
                    "entries": [e.to_dict() for e in self._entries.values()],
                    "plans": [p.to_dict() for p in self._plans.values()],
                })
        except Exception:
            self._entries, self._plans = previous
            raise

    # Meta

    async def get_meta(self, key: str, default: Any = None) -> Any:
        return await self.meta.get(key, default)

    async def set_meta(self, key: str, value: Any) -> None:
        await self.meta.set(key, value)

    async def _commit(self, collection: str, record_id: str, record) -> None:
        """Set one record (or remove it when ``record`` is None) and write it through.

        The in-memory change is undone if the write fails.
        """
        records = self._entries if collection == "entries" else self._plans
        previous = records.get(record_id)
        if record is None:
            records.pop(record_id, None)
        else:
            records[record_id] = record
        try:
            await self._persist(collection)
        except Exception:
            if previous is None:
                records.pop(record_id, None)
            else:
                records[record_id] = previous
            raise

    async def _persist(self, collection: str) -> None:
        async with self._write_lock:
            # Serialize whatever is current when the lock is acquired
            if collection == "entries":
                records = [e.to_dict() for e in self._entries.values()]
            else:
                records = [p.to_dict() for p in self._plans.values()]
            await self._collections.write(collection, records)
        self._notify(collection)
