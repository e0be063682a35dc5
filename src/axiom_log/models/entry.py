"""Daily identity-state entry model."""

from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from enum import IntEnum

from ..errors import DeserializationError, ValidationError


class IdentityState(IntEnum):
    """Training-intensity category assigned to a day.

    The integer value is the wire form and is only used for stable sorting.
    """

    OVERDRIVE = 0
    NORMAL = 1
    MAINTENANCE = 2
    SURVIVAL = 3
    REST = 4

    @property
    def label(self) -> str:
        return IDENTITY_METADATA[self].label

    @classmethod
    def parse(cls, value: "str | int | IdentityState") -> "IdentityState":
        """Resolve an identity from its ordinal or (case-insensitive) label."""
        if isinstance(value, IdentityState):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Unknown identity state: {value!r}")
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip()
        if text.isdigit():
            return cls(int(text))
        try:
            return cls[text.upper()]
        except KeyError:
            raise ValueError(f"Unknown identity state: {value!r}") from None


@dataclass(frozen=True)
class IdentityMetadata:
    """Display metadata for an identity state."""

    label: str
    description: str
    duration: str


IDENTITY_METADATA: dict[IdentityState, IdentityMetadata] = {
    IdentityState.OVERDRIVE: IdentityMetadata(
        "Overdrive", "High performance peak state. Unlocked post-completion only.", "60m+"
    ),
    IdentityState.NORMAL: IdentityMetadata(
        "Normal", "Standard volume and intensity.", "45-60m"
    ),
    IdentityState.MAINTENANCE: IdentityMetadata(
        "Maintenance", "Preserving baseline capacity.", "30-45m"
    ),
    IdentityState.SURVIVAL: IdentityMetadata(
        "Survival", "Minimum dose. Does not sustain high-performance streaks.", "10-20m"
    ),
    IdentityState.REST: IdentityMetadata(
        "Rest", "Strategic recovery. Sustains continuity with 0 XP load.", "0m"
    ),
}

# Offered by the CLI; not enforced on the model
CONTEXT_TAGS = ["energized", "normal", "tired", "exams", "stress", "injured"]

MIN_ENERGY = 1
MAX_ENERGY = 5


def day_of(timestamp_ms: int, tz: tzinfo | None = None) -> date:
    """Calendar day of an epoch-millisecond instant in the given zone (local if None)."""
    if tz is None:
        return datetime.fromtimestamp(timestamp_ms / 1000).date()
    return datetime.fromtimestamp(timestamp_ms / 1000, tz).date()


@dataclass(frozen=True)
class EntryData:
    """Field values for creating or replacing an entry."""

    timestamp: int
    identity: IdentityState
    energy: int = 3
    tags: tuple[str, ...] = ()
    notes: str = ""
    plan_id: str | None = None

    def validate(self) -> None:
        """Check field-level rules.

        Raises:
            ValidationError: If energy is out of range
        """
        if not MIN_ENERGY <= self.energy <= MAX_ENERGY:
            raise ValidationError(
                f"Energy must be between {MIN_ENERGY} and {MAX_ENERGY}, got {self.energy}"
            )

    def normalized(self) -> "EntryData":
        """Return a copy with deduplicated tags and no plan on rest days."""
        tags = tuple(dict.fromkeys(self.tags))
        plan_id = None if self.identity == IdentityState.REST else self.plan_id
        return EntryData(
            timestamp=int(self.timestamp),
            identity=IdentityState(self.identity),
            energy=self.energy,
            tags=tags,
            notes=self.notes or "",
            plan_id=plan_id,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "EntryData":
        """Create from a camelCase dictionary (id is ignored)."""
        try:
            return cls(
                timestamp=int(data["timestamp"]),
                identity=IdentityState.parse(data["identity"]),
                energy=int(data.get("energy", 3)),
                tags=tuple(data.get("tags") or ()),
                notes=data.get("notes") or "",
                plan_id=data.get("planId"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid entry data: {e}") from e


@dataclass(frozen=True)
class Entry:
    """One logged day.

    Entries are never patched in place; an update replaces every field
    except ``id``.
    """

    id: str
    timestamp: int  # epoch milliseconds
    identity: IdentityState
    energy: int
    tags: tuple[str, ...] = field(default_factory=tuple)
    notes: str = ""
    plan_id: str | None = None  # weak reference to a Plan

    @classmethod
    def from_data(cls, entry_id: str, data: EntryData) -> "Entry":
        return cls(
            id=entry_id,
            timestamp=data.timestamp,
            identity=data.identity,
            energy=data.energy,
            tags=data.tags,
            notes=data.notes,
            plan_id=data.plan_id,
        )

    def local_day(self, tz: tzinfo | None = None) -> date:
        return day_of(self.timestamp, tz)

    @property
    def sort_key(self) -> tuple[int, int, str]:
        return (self.timestamp, int(self.identity), self.id)

    def to_dict(self) -> dict:
        """Convert to the camelCase wire/storage form."""
        data = {
            "id": self.id,
            "timestamp": self.timestamp,
            "identity": int(self.identity),
            "energy": self.energy,
            "tags": list(self.tags),
            "notes": self.notes,
        }
        if self.plan_id is not None:
            data["planId"] = self.plan_id
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Entry":
        """Create from the wire/storage form.

        Raises:
            DeserializationError: If a required field is missing or malformed
        """
        if not isinstance(data, dict):
            raise DeserializationError(f"Entry must be an object, got {type(data).__name__}")
        try:
            entry_id = data["id"]
            timestamp = data["timestamp"]
            if not isinstance(entry_id, str) or not entry_id:
                raise ValueError("id must be a non-empty string")
            if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
                raise ValueError("timestamp must be a number")
            tags = data.get("tags") or []
            if not isinstance(tags, list):
                raise ValueError("tags must be a list")
            plan_id = data.get("planId")
            return cls(
                id=entry_id,
                timestamp=int(timestamp),
                identity=IdentityState(int(data["identity"])),
                energy=int(data.get("energy", 3)),
                tags=tuple(str(t) for t in tags),
                notes=data.get("notes") or "",
                plan_id=str(plan_id) if plan_id is not None else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DeserializationError(f"Malformed entry: {e}") from e
