"""S3-compatible object storage document provider."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from docduck.utils.exceptions import DocumentNotFoundError, SyncError

from .base import BaseDocumentProvider, ProviderDocument
from .mime_types import get_mime_type
from .settings import ObjectStorageProviderSettings

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


def build_s3_client(settings: ObjectStorageProviderSettings) -> Any:
    """Create a boto3 S3 client for *settings*.

    With ``use_instance_profile`` the default credential chain is used
    (environment, shared config, instance or task role); otherwise the
    explicit key pair and optional session token.
    """
    if settings.use_instance_profile:
        session = boto3.session.Session(region_name=settings.region)
    else:
        session = boto3.session.Session(
            aws_access_key_id=settings.access_key_id,
            aws_secret_access_key=settings.secret_access_key,
            aws_session_token=settings.session_token or None,
            region_name=settings.region,
        )
    return session.client("s3", endpoint_url=settings.endpoint_url or None)


class ObjectStorageDocumentProvider(BaseDocumentProvider):
    """Document provider over one bucket and optional key prefix.

    The object key is the document address and the ETag, without its
    surrounding quotes, is the change token.
    """

    def __init__(
        self,
        settings: ObjectStorageProviderSettings,
        client: Any | None = None,
        registered_at: datetime | None = None,
    ) -> None:
        super().__init__(settings, registered_at)
        self._client = client if client is not None else build_s3_client(settings)

    @property
    def bucket_name(self) -> str:
        return self._settings.bucket_name  # type: ignore[union-attr]

    @property
    def prefix(self) -> str:
        return self._settings.prefix or ""  # type: ignore[union-attr]

    @property
    def client(self) -> Any:
        return self._client

    def _list_objects(self) -> list[ProviderDocument]:
        paginator = self._client.get_paginator("list_objects_v2")
        params: dict[str, Any] = {"Bucket": self.bucket_name}
        if self.prefix:
            params["Prefix"] = self.prefix

        documents: list[ProviderDocument] = []
        for page in paginator.paginate(**params):
            for obj in page.get("Contents", []):
                key: str = obj["Key"]
                if key.endswith("/") or not self._matches_extension(key):
                    continue
                filename = key.rsplit("/", 1)[-1]
                relative_path = key[len(self.prefix):].lstrip("/") if self.prefix else key
                documents.append(
                    self._document(
                        address=key,
                        filename=filename,
                        change_token=str(obj.get("ETag", "")).strip('"'),
                        last_modified=obj.get("LastModified"),
                        size_bytes=obj.get("Size"),
                        mime_type=get_mime_type(filename),
                        relative_path=relative_path,
                    )
                )
        return documents

    async def list_documents(self) -> list[ProviderDocument]:
        try:
            documents = await asyncio.to_thread(self._list_objects)
        except (ClientError, BotoCoreError) as exc:
            raise SyncError(self.key, f"Failed to list bucket '{self.bucket_name}'", original_error=exc) from exc
        logger.debug("Listed %d object(s) from %s", len(documents), self.key)
        return documents

    def _get_object(self, address: str) -> bytes:
        response = self._client.get_object(Bucket=self.bucket_name, Key=address)
        body = response["Body"]
        try:
            return body.read()
        finally:
            body.close()

    async def fetch(self, address: str) -> bytes:
        try:
            return await asyncio.to_thread(self._get_object, address)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code in _NOT_FOUND_CODES:
                raise DocumentNotFoundError(self.key, address) from exc
            raise SyncError(self.key, f"Failed to fetch '{address}'", original_error=exc) from exc
        except BotoCoreError as exc:
            raise SyncError(self.key, f"Failed to fetch '{address}'", original_error=exc) from exc

    def _additional_info(self) -> dict[str, str]:
        info = {
            "bucket": self.bucket_name,
            "region": self._settings.region,  # type: ignore[union-attr]
            "auth": "instance_profile" if self._settings.use_instance_profile else "access_key",  # type: ignore[union-attr]
        }
        if self.prefix:
            info["prefix"] = self.prefix
        return info

    def close(self) -> None:
        close = getattr(self._client, "close", None)
        if callable(close):
            close()
