"""Tests for the Microsoft Graph provider using httpx.MockTransport."""

import dataclasses

import httpx
import pytest
from tenacity import wait_none

from docduck.providers.cloud_drive import GRAPH_BASE_URL, CloudDriveDocumentProvider
from docduck.providers.settings import CloudDriveProviderSettings
from docduck.utils.clock import FakeClock
from docduck.utils.exceptions import DocumentNotFoundError, SyncError

TOKEN_URL = "https://login.microsoftonline.com/tenant-1/oauth2/v2.0/token"
CHILDREN_URL = f"{GRAPH_BASE_URL}/drives/drive-1/root:/Shared%20Documents/Docs:/children"


class GraphStub:
    """Routes requests to canned responses and records what was called."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, url: str, *responses: httpx.Response) -> None:
        self.routes.setdefault((method, url), []).extend(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, str(request.url)))
        if not queue:
            return httpx.Response(404, json={"error": {"code": "itemNotFound"}})
        canned = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(canned.status_code, headers=canned.headers, content=canned.content)

    def count(self, method: str, url: str) -> int:
        return sum(1 for r in self.requests if r.method == method and str(r.url) == url)


def _token_response() -> httpx.Response:
    return httpx.Response(200, json={"access_token": "token-1", "expires_in": 3600})


def _item(item_id: str, name: str, etag: str) -> dict:
    return {
        "id": item_id,
        "name": name,
        "eTag": etag,
        "size": 10,
        "lastModifiedDateTime": "2024-05-01T12:00:00Z",
        "parentReference": {"path": "/drives/drive-1/root:/Shared Documents/Docs"},
        "file": {"mimeType": "text/plain"},
    }


@pytest.fixture
def graph() -> GraphStub:
    stub = GraphStub()
    stub.add("POST", TOKEN_URL, _token_response())
    stub.add("GET", f"{GRAPH_BASE_URL}/sites/site-1/drive", httpx.Response(200, json={"id": "drive-1"}))
    return stub


def _provider(settings: CloudDriveProviderSettings, graph: GraphStub, clock: FakeClock | None = None):
    return CloudDriveDocumentProvider(
        settings.validate(),
        transport=httpx.MockTransport(graph),
        clock=clock or FakeClock(),
        retry_wait=wait_none(),
    )


@pytest.mark.asyncio
async def test_lists_files_across_pages(graph: GraphStub, onedrive_settings: CloudDriveProviderSettings) -> None:
    next_link = f"{GRAPH_BASE_URL}/drives/drive-1/items/page2"
    graph.add(
        "GET",
        CHILDREN_URL,
        httpx.Response(
            200,
            json={
                "value": [
                    _item("item-a", "a.txt", "etag-a"),
                    {"id": "folder-1", "name": "Sub", "folder": {"childCount": 2}},
                    _item("item-x", "x.xlsx", "etag-x"),
                ],
                "@odata.nextLink": next_link,
            },
        ),
    )
    graph.add("GET", next_link, httpx.Response(200, json={"value": [_item("item-b", "b.docx", "etag-b")]}))

    documents = await _provider(onedrive_settings, graph).list_documents()

    assert [d.address for d in documents] == ["item-a", "item-b"]
    first = documents[0]
    assert first.change_token == "etag-a"
    assert first.relative_path == "Shared Documents/Docs/a.txt"
    assert first.mime_type == "text/plain"
    assert first.last_modified is not None and first.last_modified.year == 2024
    assert graph.requests[1].headers["Authorization"] == "Bearer token-1"


@pytest.mark.asyncio
async def test_token_is_cached_until_expiry(graph: GraphStub, onedrive_settings: CloudDriveProviderSettings) -> None:
    graph.add("GET", CHILDREN_URL, httpx.Response(200, json={"value": []}))
    clock = FakeClock()
    provider = _provider(onedrive_settings, graph, clock)

    await provider.list_documents()
    await provider.list_documents()
    assert graph.count("POST", TOKEN_URL) == 1

    clock.advance(3600)
    await provider.list_documents()
    assert graph.count("POST", TOKEN_URL) == 2


@pytest.mark.asyncio
async def test_throttling_is_retried(graph: GraphStub, onedrive_settings: CloudDriveProviderSettings) -> None:
    graph.add(
        "GET",
        CHILDREN_URL,
        httpx.Response(429, headers={"Retry-After": "0"}),
        httpx.Response(200, json={"value": [_item("item-a", "a.txt", "etag-a")]}),
    )

    documents = await _provider(onedrive_settings, graph).list_documents()

    assert len(documents) == 1
    assert graph.count("GET", CHILDREN_URL) == 2


@pytest.mark.asyncio
async def test_persistent_failure_raises_sync_error(
    graph: GraphStub, onedrive_settings: CloudDriveProviderSettings
) -> None:
    graph.add("GET", CHILDREN_URL, httpx.Response(503))

    with pytest.raises(SyncError):
        await _provider(onedrive_settings, graph).list_documents()
    assert graph.count("GET", CHILDREN_URL) == 4


@pytest.mark.asyncio
async def test_explicit_drive_id_skips_site_lookup(
    graph: GraphStub, onedrive_settings: CloudDriveProviderSettings
) -> None:
    settings = dataclasses.replace(onedrive_settings, drive_id="drive-1", site_id=None)
    graph.add("GET", CHILDREN_URL, httpx.Response(200, json={"value": []}))

    await _provider(settings, graph).list_documents()

    assert graph.count("GET", f"{GRAPH_BASE_URL}/sites/site-1/drive") == 0


@pytest.mark.asyncio
async def test_personal_account_uses_me_drive(graph: GraphStub, onedrive_settings: CloudDriveProviderSettings) -> None:
    settings = dataclasses.replace(onedrive_settings, account_type="personal", site_id=None, folder_path="/")
    graph.add("GET", f"{GRAPH_BASE_URL}/me/drive", httpx.Response(200, json={"id": "drive-1"}))
    graph.add("GET", f"{GRAPH_BASE_URL}/drives/drive-1/root/children", httpx.Response(200, json={"value": []}))

    assert await _provider(settings, graph).list_documents() == []
    assert graph.count("GET", f"{GRAPH_BASE_URL}/me/drive") == 1


@pytest.mark.asyncio
async def test_fetch_downloads_content(graph: GraphStub, onedrive_settings: CloudDriveProviderSettings) -> None:
    graph.add("GET", f"{GRAPH_BASE_URL}/drives/drive-1/items/item-a/content", httpx.Response(200, content=b"hello"))

    assert await _provider(onedrive_settings, graph).fetch("item-a") == b"hello"


@pytest.mark.asyncio
async def test_fetch_missing_item(graph: GraphStub, onedrive_settings: CloudDriveProviderSettings) -> None:
    with pytest.raises(DocumentNotFoundError):
        await _provider(onedrive_settings, graph).fetch("missing")


@pytest.mark.asyncio
async def test_failed_authentication_raises_sync_error(onedrive_settings: CloudDriveProviderSettings) -> None:
    stub = GraphStub()
    stub.add("POST", TOKEN_URL, httpx.Response(401, json={"error": "invalid_client"}))

    with pytest.raises(SyncError):
        await _provider(onedrive_settings, stub).list_documents()
