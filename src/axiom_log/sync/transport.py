"""Remote blob store transport (Google Drive v3)."""

import fnmatch
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable
from uuid import uuid4

import httpx

from ..config import DRIVE_API_URL
from ..errors import AuthorizationError, TransportError

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
DEFAULT_TIMEOUT = 30.0

# Returns the current bearer token, or None if not linked
TokenSource = Callable[[], str | None]


@dataclass(frozen=True)
class RemoteObject:
    """An object stored in the remote container."""

    id: str
    name: str
    created_at: datetime


def sort_newest_first(objects: list[RemoteObject]) -> list[RemoteObject]:
    return sorted(objects, key=lambda o: (o.created_at, o.name), reverse=True)


def _pattern_prefix(pattern: str) -> str:
    """Literal prefix of a glob pattern, used for the server-side query."""
    for i, ch in enumerate(pattern):
        if ch in "*?[":
            return pattern[:i]
    return pattern


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _parse_created(value: str | None) -> datetime:
    if not value:
        return datetime.fromtimestamp(0, timezone.utc)
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.fromtimestamp(0, timezone.utc)


@runtime_checkable
class BlobTransport(Protocol):
    """Operations the sync scheduler needs from a remote store.

    Every call may raise ``TransportError`` (network or unexpected response)
    or ``AuthorizationError`` (credential rejected). Implementations do not
    retry.
    """

    async def locate_or_create_container(self, name: str) -> str:
        """Return the id of the private container named ``name``, creating it if absent."""
        ...

    async def list_objects(self, container_id: str, name_pattern: str) -> list[RemoteObject]:
        """List objects whose name matches the glob ``name_pattern``, newest first."""
        ...

    async def upload_object(self, container_id: str, name: str, content: bytes) -> RemoteObject:
        """Upload a new object."""
        ...

    async def fetch_object(self, object_id: str) -> bytes:
        """Fetch an object's content."""
        ...

    async def delete_object(self, object_id: str) -> None:
        """Delete an object."""
        ...


class DriveTransport:
    """Stateless request wrapper around the Google Drive v3 REST API."""

    def __init__(
        self,
        token_source: TokenSource,
        base_url: str = DRIVE_API_URL,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._token_source = token_source
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "DriveTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _auth_headers(self) -> dict[str, str]:
        token = self._token_source()
        if not token:
            raise AuthorizationError("No sync credential is linked")
        return {"Authorization": f"Bearer {token}"}

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        headers = {**kwargs.pop("headers", {}), **self._auth_headers()}
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        if response.status_code == 401:
            raise AuthorizationError("Remote store rejected the credential")
        if response.status_code >= 400:
            raise TransportError(
                f"{method} {url} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    async def _json(self, method: str, url: str, **kwargs) -> dict:
        response = await self._request(method, url, **kwargs)
        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise TransportError(f"{method} {url} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise TransportError(f"{method} {url} returned an unexpected payload")
        return data

    async def locate_or_create_container(self, name: str) -> str:
        query = (
            f"name = '{_quote(name)}' and mimeType = '{FOLDER_MIME_TYPE}' "
            "and trashed = false"
        )
        data = await self._json(
            "GET",
            f"{self.base_url}/drive/v3/files",
            params={"q": query, "fields": "files(id,name)", "spaces": "drive"},
        )
        files = data.get("files") or []
        if files:
            return files[0]["id"]

        logger.info("Creating sync folder %r", name)
        created = await self._json(
            "POST",
            f"{self.base_url}/drive/v3/files",
            json={"name": name, "mimeType": FOLDER_MIME_TYPE},
            params={"fields": "id"},
        )
        if "id" not in created:
            raise TransportError("Folder creation returned no id")
        return created["id"]

    async def list_objects(self, container_id: str, name_pattern: str) -> list[RemoteObject]:
        query = (
            f"'{_quote(container_id)}' in parents "
            f"and name contains '{_quote(_pattern_prefix(name_pattern))}' "
            "and trashed = false"
        )
        objects: list[RemoteObject] = []
        page_token: str | None = None

        while True:
            params = {
                "q": query,
                "orderBy": "createdTime desc",
                "fields": "nextPageToken, files(id,name,createdTime)",
                "pageSize": "1000",
            }
            if page_token:
                params["pageToken"] = page_token
            data = await self._json("GET", f"{self.base_url}/drive/v3/files", params=params)

            for item in data.get("files") or []:
                name = item.get("name", "")
                if "id" not in item or not fnmatch.fnmatchcase(name, name_pattern):
                    continue
                objects.append(
                    RemoteObject(
                        id=item["id"],
                        name=name,
                        created_at=_parse_created(item.get("createdTime")),
                    )
                )

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        return sort_newest_first(objects)

    async def upload_object(self, container_id: str, name: str, content: bytes) -> RemoteObject:
        boundary = f"axiom-{uuid4().hex}"
        metadata = json.dumps({"name": name, "parents": [container_id]})
        body = b"".join([
            f"--{boundary}\r\n".encode(),
            b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
            metadata.encode("utf-8"),
            f"\r\n--{boundary}\r\n".encode(),
            b"Content-Type: application/json\r\n\r\n",
            content,
            f"\r\n--{boundary}--".encode(),
        ])
        data = await self._json(
            "POST",
            f"{self.base_url}/upload/drive/v3/files",
            params={"uploadType": "multipart", "fields": "id,name,createdTime"},
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            content=body,
        )
        if "id" not in data:
            raise TransportError("Upload returned no id")
        return RemoteObject(
            id=data["id"],
            name=data.get("name", name),
            created_at=_parse_created(data.get("createdTime")),
        )

    async def fetch_object(self, object_id: str) -> bytes:
        response = await self._request(
            "GET",
            f"{self.base_url}/drive/v3/files/{object_id}",
            params={"alt": "media"},
        )
        return response.content

    async def delete_object(self, object_id: str) -> None:
        await self._request("DELETE", f"{self.base_url}/drive/v3/files/{object_id}")
