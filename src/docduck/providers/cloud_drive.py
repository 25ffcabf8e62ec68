"""OneDrive / SharePoint document provider over Microsoft Graph."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from docduck.utils.clock import ClockProtocol, SystemClock
from docduck.utils.exceptions import DocumentNotFoundError, SyncError

from .base import BaseDocumentProvider, ProviderDocument
from .mime_types import get_mime_type
from .settings import CloudDriveProviderSettings

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
LOGIN_BASE_URL = "https://login.microsoftonline.com"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"
# Refresh the token this many seconds before Graph says it expires
TOKEN_EXPIRY_MARGIN = 60.0
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class TransientGraphError(Exception):
    """A throttled or temporarily failing Graph response."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        super().__init__(f"Graph returned {response.status_code} for {response.request.url}")


class CloudDriveDocumentProvider(BaseDocumentProvider):
    """Document provider over one folder of a OneDrive or SharePoint drive.

    Authentication uses the OAuth2 client-credentials flow; the access token
    is cached until shortly before it expires. The drive is resolved from an
    explicit drive id, the signed-in user's drive for personal accounts, or
    the default drive of a SharePoint site. Only the direct children of
    ``folder_path`` are listed.

    The item id is the document address and the item ``eTag`` is the change
    token.
    """

    def __init__(
        self,
        settings: CloudDriveProviderSettings,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: ClockProtocol | None = None,
        registered_at: datetime | None = None,
        timeout: float = 30.0,
        max_attempts: int = 4,
        retry_wait: wait_base | None = None,
    ) -> None:
        super().__init__(settings, registered_at)
        self._transport = transport
        self._clock = clock or SystemClock()
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._retry_wait = retry_wait or wait_exponential(multiplier=0.5, min=0.5, max=8)
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._drive_id: str | None = settings.drive_id or None

    @property
    def drive_settings(self) -> CloudDriveProviderSettings:
        return self._settings  # type: ignore[return-value]

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout, follow_redirects=True)

    async def _request(self, client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> httpx.Response:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type((TransientGraphError, httpx.TransportError)),
            wait=self._retry_wait,
            stop=stop_after_attempt(self._max_attempts),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                response = await client.request(method, url, **kwargs)
                if response.status_code in RETRYABLE_STATUS_CODES:
                    raise TransientGraphError(response)
        return response

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        now = self._clock.time()
        if self._token and now < self._token_expires_at:
            return self._token

        settings = self.drive_settings
        response = await self._request(
            client,
            "POST",
            f"{LOGIN_BASE_URL}/{settings.tenant_id}/oauth2/v2.0/token",
            data={
                "grant_type": "client_credentials",
                "client_id": settings.client_id,
                "client_secret": settings.client_secret,
                "scope": GRAPH_SCOPE,
            },
        )
        response.raise_for_status()
        body = response.json()
        self._token = body["access_token"]
        self._token_expires_at = now + float(body.get("expires_in", 3600)) - TOKEN_EXPIRY_MARGIN
        return self._token

    async def _graph_get(self, client: httpx.AsyncClient, url: str) -> httpx.Response:
        token = await self._access_token(client)
        if not url.startswith("http"):
            url = f"{GRAPH_BASE_URL}{url}"
        return await self._request(client, "GET", url, headers={"Authorization": f"Bearer {token}"})

    async def _resolve_drive_id(self, client: httpx.AsyncClient) -> str:
        if self._drive_id:
            return self._drive_id
        settings = self.drive_settings
        if not settings.is_business:
            path = "/me/drive"
        elif settings.site_id:
            path = f"/sites/{settings.site_id}/drive"
        else:
            raise SyncError(self.key, "No drive id or site id configured")
        response = await self._graph_get(client, path)
        response.raise_for_status()
        self._drive_id = response.json()["id"]
        logger.debug("Resolved drive %s for %s", self._drive_id, self.key)
        return self._drive_id

    def _children_path(self, drive_id: str) -> str:
        folder = self.drive_settings.folder_path.strip().strip("/")
        if not folder:
            return f"/drives/{drive_id}/root/children"
        return f"/drives/{drive_id}/root:/{quote(folder)}:/children"

    def _to_document(self, item: dict[str, Any]) -> ProviderDocument:
        name = item.get("name", "")
        parent_path = item.get("parentReference", {}).get("path", "")
        # parentReference.path looks like "/drive/root:/Shared Documents/Docs"
        folder = parent_path.split(":", 1)[1] if ":" in parent_path else ""
        modified = item.get("lastModifiedDateTime")
        return self._document(
            address=item["id"],
            filename=name,
            change_token=item.get("eTag") or "",
            last_modified=datetime.fromisoformat(modified.replace("Z", "+00:00")) if modified else None,
            size_bytes=item.get("size"),
            mime_type=item.get("file", {}).get("mimeType") or get_mime_type(name),
            relative_path=f"{folder.strip('/')}/{name}".lstrip("/"),
        )

    async def list_documents(self) -> list[ProviderDocument]:
        documents: list[ProviderDocument] = []
        try:
            async with self._client() as client:
                drive_id = await self._resolve_drive_id(client)
                url: str | None = self._children_path(drive_id)
                while url:
                    response = await self._graph_get(client, url)
                    response.raise_for_status()
                    page = response.json()
                    for item in page.get("value", []):
                        if "file" not in item or not self._matches_extension(item.get("name", "")):
                            continue
                        documents.append(self._to_document(item))
                    url = page.get("@odata.nextLink")
        except (httpx.HTTPError, TransientGraphError, KeyError, ValueError) as exc:
            raise SyncError(self.key, "Failed to list drive items", original_error=exc) from exc
        logger.debug("Listed %d item(s) from %s", len(documents), self.key)
        return documents

    async def fetch(self, address: str) -> bytes:
        try:
            async with self._client() as client:
                drive_id = await self._resolve_drive_id(client)
                response = await self._graph_get(client, f"/drives/{drive_id}/items/{quote(address)}/content")
                if response.status_code == 404:
                    raise DocumentNotFoundError(self.key, address)
                response.raise_for_status()
                return response.content
        except (httpx.HTTPError, TransientGraphError, KeyError, ValueError) as exc:
            raise SyncError(self.key, f"Failed to fetch item '{address}'", original_error=exc) from exc

    def _additional_info(self) -> dict[str, str]:
        settings = self.drive_settings
        info = {"account_type": settings.account_type, "folder_path": settings.folder_path}
        if settings.drive_id:
            info["drive_id"] = settings.drive_id
        if settings.site_id:
            info["site_id"] = settings.site_id
        return info
