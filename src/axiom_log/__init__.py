"""axiom-log: personal identity-state training log with local-first sync."""

__version__ = "0.1.0"
