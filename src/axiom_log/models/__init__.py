"""Data models for axiom-log."""

from .entry import (
    CONTEXT_TAGS,
    IDENTITY_METADATA,
    Entry,
    EntryData,
    IdentityState,
    day_of,
)
from .manifest import MANIFEST_PATTERN, SyncManifest, manifest_name, parse_manifest_name
from .plan import MUSCLE_GROUPS, Exercise, Plan

__all__ = [
    "CONTEXT_TAGS",
    "day_of",
    "Entry",
    "EntryData",
    "Exercise",
    "IDENTITY_METADATA",
    "IdentityState",
    "MANIFEST_PATTERN",
    "manifest_name",
    "MUSCLE_GROUPS",
    "parse_manifest_name",
    "Plan",
    "SyncManifest",
]
