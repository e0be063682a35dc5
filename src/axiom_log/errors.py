"""Exception hierarchy for axiom-log."""


class AxiomError(Exception):
    """Base class for all axiom-log errors."""


class ValidationError(AxiomError):
    """A local write was rejected; fix the input and retry."""


class DateCollisionError(ValidationError):
    """An entry already exists for the requested calendar day."""

    def __init__(self, day, existing_id: str):
        self.day = day
        self.existing_id = existing_id
        super().__init__(
            f"A training log already exists for {day.isoformat()}. "
            "Only one primary identity per day is allowed."
        )


class SyncError(AxiomError):
    """Base class for remote sync failures."""


class TransportError(SyncError):
    """The remote store could not be reached or returned an unexpected response."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class AuthorizationError(SyncError):
    """The remote store rejected the credential (expired or revoked)."""


class DeserializationError(AxiomError):
    """Stored or fetched JSON did not have the expected shape."""


class ManifestError(DeserializationError):
    """A sync manifest could not be parsed."""


class ConfigError(AxiomError):
    """Invalid configuration value."""


class NotFoundError(ValidationError):
    """The referenced entry or plan does not exist."""
