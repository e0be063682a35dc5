"""CLI commands for axiom-log."""

from .discover import discover
from .entries import entries
from .init import init
from .log import log_entry
from .plans import plans
from .serve import serve
from .status import status
from .sync_cmd import sync

__all__ = [
    "discover",
    "entries",
    "init",
    "log_entry",
    "plans",
    "serve",
    "status",
    "sync",
]
