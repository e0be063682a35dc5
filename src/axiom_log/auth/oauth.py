"""OAuth boundary: scopes and the userinfo profile lookup."""

from dataclasses import dataclass

import httpx

from ..config import USERINFO_URL
from ..errors import AuthorizationError, TransportError

SCOPES = [
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
]


@dataclass
class UserProfile:
    """Display identity of the linked account."""

    name: str
    email: str

    def to_dict(self) -> dict:
        return {"name": self.name, "email": self.email}

    @classmethod
    def from_dict(cls, data: dict) -> "UserProfile":
        return cls(name=data.get("name") or "", email=data.get("email") or "")


async def fetch_user_profile(
    token: str,
    client: httpx.AsyncClient | None = None,
    url: str = USERINFO_URL,
) -> UserProfile:
    """Fetch the account profile for a bearer token.

    Raises:
        AuthorizationError: If the token is rejected
        TransportError: On network failure or an unexpected response
    """
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=15.0)
    try:
        response = await client.get(url, headers={"Authorization": f"Bearer {token}"})
    except httpx.HTTPError as e:
        raise TransportError(f"Profile fetch failed: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    if response.status_code == 401:
        raise AuthorizationError("Token rejected by userinfo endpoint")
    if response.status_code >= 400:
        raise TransportError(
            f"Profile fetch returned HTTP {response.status_code}",
            status_code=response.status_code,
        )
    try:
        data = response.json()
    except ValueError as e:
        raise TransportError("Profile response is not JSON") from e
    if not isinstance(data, dict):
        raise TransportError("Profile response is not an object")
    return UserProfile.from_dict(data)
