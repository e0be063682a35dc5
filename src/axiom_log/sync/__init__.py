"""Remote synchronization."""

from .scheduler import ImportResult, PushResult, SyncScheduler, SyncState, SyncStatus
from .transport import BlobTransport, DriveTransport, RemoteObject

__all__ = [
    "BlobTransport",
    "DriveTransport",
    "ImportResult",
    "PushResult",
    "RemoteObject",
    "SyncScheduler",
    "SyncState",
    "SyncStatus",
]
