"""Sync manifest DTO, object naming and collection slice parsing."""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ..errors import DeserializationError, ManifestError
from .entry import Entry
from .plan import Plan

logger = logging.getLogger(__name__)

MANIFEST_VERSION = 1
MANIFEST_PREFIX = "sync."
MANIFEST_PATTERN = "sync.*.json"

# sync.YYYY.MM.DD.HH.MM.SS.fff.json (UTC, fixed width)
_NAME_RE = re.compile(
    r"^sync\.(\d{4})\.(\d{2})\.(\d{2})\.(\d{2})\.(\d{2})\.(\d{2})\.(\d{3})\.json$"
)


def manifest_name(timestamp_ms: int) -> str:
    """Object name for a manifest created at ``timestamp_ms``.

    Lexical order of these names equals chronological order.
    """
    moment = datetime.fromtimestamp(timestamp_ms / 1000, timezone.utc)
    return (
        f"{MANIFEST_PREFIX}{moment:%Y.%m.%d.%H.%M.%S}."
        f"{timestamp_ms % 1000:03d}.json"
    )


def parse_manifest_name(name: str) -> int | None:
    """Recover the epoch-ms timestamp encoded in a manifest name, if any."""
    match = _NAME_RE.match(name)
    if not match:
        return None
    year, month, day, hour, minute, second, millis = (int(g) for g in match.groups())
    try:
        moment = datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
    except ValueError:
        return None
    return int(moment.timestamp()) * 1000 + millis


def parse_entries(raw, source: str = "entries") -> list[Entry]:
    """Parse an entries slice, falling back to an empty list if malformed."""
    if raw is None:
        return []
    try:
        if not isinstance(raw, list):
            raise DeserializationError("expected a list")
        return [Entry.from_dict(item) for item in raw]
    except DeserializationError as e:
        logger.warning("Discarding malformed %s slice: %s", source, e)
        return []


def parse_plans(raw, source: str = "plans") -> list[Plan]:
    """Parse a plans slice, falling back to an empty list if malformed."""
    if raw is None:
        return []
    try:
        if not isinstance(raw, list):
            raise DeserializationError("expected a list")
        return [Plan.from_dict(item) for item in raw]
    except DeserializationError as e:
        logger.warning("Discarding malformed %s slice: %s", source, e)
        return []


@dataclass
class SyncManifest:
    """A full snapshot of entries and plans as pushed to the remote store."""

    timestamp: int
    entries: list[Entry] = field(default_factory=list)
    plans: list[Plan] = field(default_factory=list)
    version: int = MANIFEST_VERSION

    @property
    def name(self) -> str:
        return manifest_name(self.timestamp)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "timestamp": self.timestamp,
            "data": {
                "entries": [e.to_dict() for e in self.entries],
                "plans": [p.to_dict() for p in self.plans],
            },
        }

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")

    @classmethod
    def from_dict(cls, payload) -> "SyncManifest":
        """Validate and narrow a decoded manifest.

        The envelope must be well formed; each data slice is parsed on its
        own and falls back to empty when malformed.

        Raises:
            ManifestError: If the envelope is not a manifest
        """
        if not isinstance(payload, dict):
            raise ManifestError("Manifest must be a JSON object")

        timestamp = payload.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise ManifestError("Manifest timestamp is missing or not a number")

        data = payload.get("data")
        if not isinstance(data, dict):
            raise ManifestError("Manifest data is missing or not an object")

        version = payload.get("version", MANIFEST_VERSION)
        if isinstance(version, bool) or not isinstance(version, (int, float, str)):
            raise ManifestError("Manifest version is malformed")

        return cls(
            timestamp=int(timestamp),
            entries=parse_entries(data.get("entries"), "manifest entries"),
            plans=parse_plans(data.get("plans"), "manifest plans"),
            version=int(version) if str(version).isdigit() else MANIFEST_VERSION,
        )

    @classmethod
    def from_bytes(cls, content: bytes) -> "SyncManifest":
        """Decode manifest JSON.

        Raises:
            ManifestError: If the content is not valid manifest JSON
        """
        try:
            payload = json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ManifestError(f"Manifest is not valid JSON: {e}") from e
        return cls.from_dict(payload)
