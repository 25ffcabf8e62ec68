"""Tests for the S3-compatible provider using botocore's Stubber."""

import dataclasses
import io
from collections.abc import Generator
from datetime import UTC, datetime

import boto3
import pytest
from botocore.response import StreamingBody
from botocore.stub import Stubber

from docduck.providers.object_storage import ObjectStorageDocumentProvider, build_s3_client
from docduck.providers.settings import ObjectStorageProviderSettings
from docduck.utils.exceptions import DocumentNotFoundError, SyncError

pytestmark = pytest.mark.timeout(10)


@pytest.fixture
def s3_client() -> Generator:
    client = boto3.client(
        "s3",
        region_name="eu-west-1",
        aws_access_key_id="AKIAEXAMPLE",
        aws_secret_access_key="secret",
    )
    yield client
    client.close()


def _body(data: bytes) -> StreamingBody:
    return StreamingBody(io.BytesIO(data), len(data))


@pytest.mark.asyncio
async def test_lists_objects_under_prefix(s3_client, s3_settings: ObjectStorageProviderSettings) -> None:
    modified = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    with Stubber(s3_client) as stubber:
        stubber.add_response(
            "list_objects_v2",
            {
                "IsTruncated": False,
                "Contents": [
                    {"Key": "team/", "ETag": '"dir"', "Size": 0, "LastModified": modified},
                    {"Key": "team/notes/a.txt", "ETag": '"etag-a"', "Size": 5, "LastModified": modified},
                    {"Key": "team/b.pdf", "ETag": '"etag-b"', "Size": 9, "LastModified": modified},
                ],
            },
        )
        provider = ObjectStorageDocumentProvider(s3_settings.validate(), client=s3_client)
        documents = await provider.list_documents()

    assert len(documents) == 1
    document = documents[0]
    assert document.address == "team/notes/a.txt"
    assert document.filename == "a.txt"
    assert document.relative_path == "notes/a.txt"
    assert document.change_token == "etag-a"
    assert document.size_bytes == 5
    assert document.last_modified == modified


@pytest.mark.asyncio
async def test_listing_failure_raises_sync_error(s3_client, s3_settings: ObjectStorageProviderSettings) -> None:
    with Stubber(s3_client) as stubber:
        stubber.add_client_error("list_objects_v2", service_error_code="AccessDenied", http_status_code=403)
        provider = ObjectStorageDocumentProvider(s3_settings.validate(), client=s3_client)
        with pytest.raises(SyncError) as exc_info:
            await provider.list_documents()

    assert "docs-bucket" in str(exc_info.value)


@pytest.mark.asyncio
async def test_fetch_reads_object_body(s3_client, s3_settings: ObjectStorageProviderSettings) -> None:
    with Stubber(s3_client) as stubber:
        stubber.add_response(
            "get_object",
            {"Body": _body(b"hello"), "ContentLength": 5},
            {"Bucket": "docs-bucket", "Key": "team/a.txt"},
        )
        provider = ObjectStorageDocumentProvider(s3_settings.validate(), client=s3_client)
        content = await provider.fetch("team/a.txt")

    assert content == b"hello"


@pytest.mark.asyncio
async def test_fetch_missing_key(s3_client, s3_settings: ObjectStorageProviderSettings) -> None:
    with Stubber(s3_client) as stubber:
        stubber.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)
        provider = ObjectStorageDocumentProvider(s3_settings.validate(), client=s3_client)
        with pytest.raises(DocumentNotFoundError):
            await provider.fetch("team/gone.txt")


@pytest.mark.asyncio
async def test_fetch_other_errors_are_sync_errors(s3_client, s3_settings: ObjectStorageProviderSettings) -> None:
    with Stubber(s3_client) as stubber:
        stubber.add_client_error("get_object", service_error_code="InternalError", http_status_code=500)
        provider = ObjectStorageDocumentProvider(s3_settings.validate(), client=s3_client)
        with pytest.raises(SyncError) as exc_info:
            await provider.fetch("team/a.txt")

    assert not isinstance(exc_info.value, DocumentNotFoundError)


def test_build_client_uses_region_and_endpoint(s3_settings: ObjectStorageProviderSettings) -> None:
    settings = dataclasses.replace(s3_settings, endpoint_url="http://minio.local:9000").validate()
    client = build_s3_client(settings)
    try:
        assert client.meta.region_name == "eu-west-1"
        assert client.meta.endpoint_url == "http://minio.local:9000"
    finally:
        client.close()


@pytest.mark.asyncio
async def test_metadata_reports_bucket(s3_client, s3_settings: ObjectStorageProviderSettings) -> None:
    provider = ObjectStorageDocumentProvider(s3_settings.validate(), client=s3_client)
    metadata = await provider.get_metadata()
    assert metadata.additional_info == {
        "bucket": "docs-bucket",
        "region": "eu-west-1",
        "auth": "access_key",
        "prefix": "team/",
    }
