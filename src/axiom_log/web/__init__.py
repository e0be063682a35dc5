"""JSON HTTP surface for axiom-log."""

from .app import create_app

__all__ = ["create_app"]
