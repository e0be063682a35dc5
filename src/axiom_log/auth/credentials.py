"""Remote-access credential lifecycle."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from .oauth import UserProfile

logger = logging.getLogger(__name__)

IDLE_THRESHOLD_SECONDS = 30 * 24 * 60 * 60
DEFAULT_MAX_SESSION_SECONDS = 60 * 60

CREDENTIAL_KEY = "credential"
LAST_ACTIVE_KEY = "last_active_ts"
PROFILE_KEY = "profile"

# Listener receives the revocation reason
RevocationListener = Callable[[str], None]


class MetaBackend(Protocol):
    """Key/value persistence used for the credential record."""

    async def get(self, key: str, default: Any = None) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def delete(self, *keys: str) -> None: ...


@dataclass
class Credential:
    """A bearer token and the window in which it may be used."""

    token: str
    acquired_at: float  # epoch seconds
    max_session: float = DEFAULT_MAX_SESSION_SECONDS

    @property
    def expires_at(self) -> float:
        return self.acquired_at + self.max_session

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "acquired_at": self.acquired_at,
            "max_session": self.max_session,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Credential":
        return cls(
            token=str(data["token"]),
            acquired_at=float(data["acquired_at"]),
            max_session=float(data.get("max_session", DEFAULT_MAX_SESSION_SECONDS)),
        )


class CredentialLifecycle:
    """Holds the sync credential and applies the expiry and idle policies.

    One instance is created per process and handed to the transport and
    scheduler.
    """

    def __init__(
        self,
        meta: MetaBackend | None = None,
        clock: Callable[[], float] = time.time,
        idle_threshold: float = IDLE_THRESHOLD_SECONDS,
    ):
        self._meta = meta
        self._clock = clock
        self.idle_threshold = idle_threshold
        self._credential: Credential | None = None
        self._profile: UserProfile | None = None
        self._last_active: float | None = None
        self._listeners: list[RevocationListener] = []
        self.revoked_reason: str | None = None

    @property
    def credential(self) -> Credential | None:
        return self._credential

    @property
    def profile(self) -> UserProfile | None:
        return self._profile

    @property
    def last_active(self) -> float | None:
        return self._last_active

    @property
    def linked(self) -> bool:
        """True if a credential is held, even if it has expired."""
        return self._credential is not None

    def current_token(self) -> str | None:
        """The bearer token if held and not past its session window."""
        if self._credential is None:
            return None
        if self._credential.is_expired(self._clock()):
            return None
        return self._credential.token

    def subscribe(self, listener: RevocationListener) -> Callable[[], None]:
        """Register a listener called whenever the credential is discarded."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def load(self) -> None:
        """Restore the persisted credential and apply the idle policy.

        If the last user activity is older than the idle threshold the
        credential is discarded even if it has not expired; otherwise the
        activity timestamp is refreshed.
        """
        if self._meta is None:
            return

        raw = await self._meta.get(CREDENTIAL_KEY)
        if raw:
            try:
                self._credential = Credential.from_dict(raw)
            except (KeyError, TypeError, ValueError):
                logger.warning("Discarding malformed stored credential")
                self._credential = None

        profile = await self._meta.get(PROFILE_KEY)
        if isinstance(profile, dict):
            self._profile = UserProfile.from_dict(profile)

        last_active = await self._meta.get(LAST_ACTIVE_KEY)
        if isinstance(last_active, (int, float)):
            self._last_active = float(last_active)

        now = self._clock()
        if self._last_active is not None and now - self._last_active > self.idle_threshold:
            logger.info("Sync credential idle for more than %d days; unlinking",
                        self.idle_threshold // 86400)
            await self.revoke("idle")
            return

        await self.touch()

    async def link(
        self,
        token: str,
        max_session: float = DEFAULT_MAX_SESSION_SECONDS,
        profile: UserProfile | None = None,
    ) -> Credential:
        """Store a freshly acquired token."""
        now = self._clock()
        self._credential = Credential(token=token, acquired_at=now, max_session=max_session)
        self._profile = profile
        self.revoked_reason = None
        if self._meta is not None:
            await self._meta.set(CREDENTIAL_KEY, self._credential.to_dict())
            if profile is not None:
                await self._meta.set(PROFILE_KEY, profile.to_dict())
        await self.touch()
        logger.info("Sync credential linked")
        return self._credential

    async def set_profile(self, profile: UserProfile) -> None:
        self._profile = profile
        if self._meta is not None:
            await self._meta.set(PROFILE_KEY, profile.to_dict())

    async def touch(self) -> None:
        """Record user activity."""
        self._last_active = self._clock()
        if self._meta is not None:
            await self._meta.set(LAST_ACTIVE_KEY, self._last_active)

    async def revoke(self, reason: str) -> None:
        """Discard the credential, profile and activity timestamp."""
        had_credential = self._credential is not None
        self._credential = None
        self._profile = None
        self._last_active = None
        self.revoked_reason = reason
        if self._meta is not None:
            await self._meta.delete(CREDENTIAL_KEY, PROFILE_KEY, LAST_ACTIVE_KEY)
        if had_credential:
            logger.warning("Sync credential revoked (%s)", reason)
        for listener in list(self._listeners):
            listener(reason)
