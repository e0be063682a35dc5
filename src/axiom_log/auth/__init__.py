"""Sync credential handling."""

from .credentials import Credential, CredentialLifecycle
from .oauth import SCOPES, UserProfile, fetch_user_profile

__all__ = [
    "Credential",
    "CredentialLifecycle",
    "fetch_user_profile",
    "SCOPES",
    "UserProfile",
]
