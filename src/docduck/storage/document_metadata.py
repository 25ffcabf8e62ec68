"""Index metadata: which documents were indexed with which change token."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from docduck.providers.base import ProviderDocument
from docduck.providers.settings import ProviderKey
from docduck.utils.clock import ClockProtocol, SystemClock
from docduck.utils.exceptions import StoreError

from .database import Database
from .models import IndexedDocumentRow

logger = logging.getLogger(__name__)


@runtime_checkable
class IndexedDocumentStoreProtocol(Protocol):
    """Protocol for index metadata stores."""

    def get_tokens(self, key: ProviderKey) -> dict[str, str]:
        """Return ``address -> change token`` for every indexed document of *key*."""
        ...

    def record(self, key: ProviderKey, document: ProviderDocument, chunk_count: int) -> None:
        """Remember that *document* was indexed with its current token."""
        ...

    def delete(self, key: ProviderKey, address: str) -> bool:
        ...

    def delete_all(self, key: ProviderKey) -> int:
        ...

    def list_providers(self) -> list[ProviderKey]:
        ...


class IndexedDocumentStore:
    """SQLAlchemy implementation of :class:`IndexedDocumentStoreProtocol`."""

    def __init__(self, database: Database, clock: ClockProtocol | None = None) -> None:
        self._database = database
        self._clock = clock or SystemClock()

    @staticmethod
    def _where_provider(key: ProviderKey) -> tuple:
        return (
            IndexedDocumentRow.provider_type == key.provider_type,
            IndexedDocumentRow.name_key == key.normalized_name,
        )

    def get_tokens(self, key: ProviderKey) -> dict[str, str]:
        try:
            with self._database.session() as session:
                rows = session.execute(
                    select(IndexedDocumentRow.address, IndexedDocumentRow.change_token).where(
                        *self._where_provider(key)
                    )
                ).all()
        except SQLAlchemyError as e:
            raise StoreError("get_tokens", str(key), original_error=e) from e
        return {address: token for address, token in rows}

    def record(self, key: ProviderKey, document: ProviderDocument, chunk_count: int) -> None:
        values = {
            "provider_type": key.provider_type,
            "name_key": key.normalized_name,
            "provider_name": key.name,
            "address": document.address,
            "filename": document.filename,
            "change_token": document.change_token,
            "last_modified": document.last_modified,
            "relative_path": document.relative_path,
            "chunk_count": chunk_count,
            "indexed_at": self._clock.now(),
        }
        try:
            stmt = self._database.insert(IndexedDocumentRow).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[
                    IndexedDocumentRow.provider_type,
                    IndexedDocumentRow.name_key,
                    IndexedDocumentRow.address,
                ],
                set_={
                    column: getattr(stmt.excluded, column)
                    for column in (
                        "provider_name",
                        "filename",
                        "change_token",
                        "last_modified",
                        "relative_path",
                        "chunk_count",
                        "indexed_at",
                    )
                },
            )
            with self._database.session() as session:
                session.execute(stmt)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError("record", f"{key} {document.address}", original_error=e) from e

    def delete(self, key: ProviderKey, address: str) -> bool:
        try:
            with self._database.session() as session:
                result = session.execute(
                    delete(IndexedDocumentRow).where(
                        *self._where_provider(key), IndexedDocumentRow.address == address
                    )
                )
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError("delete", f"{key} {address}", original_error=e) from e
        return result.rowcount > 0

    def delete_all(self, key: ProviderKey) -> int:
        try:
            with self._database.session() as session:
                result = session.execute(delete(IndexedDocumentRow).where(*self._where_provider(key)))
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError("delete_all", str(key), original_error=e) from e
        logger.info("Removed %d indexed document(s) of %s", result.rowcount, key)
        return result.rowcount

    def list_providers(self) -> list[ProviderKey]:
        try:
            with self._database.session() as session:
                rows = session.execute(
                    select(IndexedDocumentRow.provider_type, func.min(IndexedDocumentRow.provider_name))
                    .group_by(IndexedDocumentRow.provider_type, IndexedDocumentRow.name_key)
                    .order_by(IndexedDocumentRow.provider_type, IndexedDocumentRow.name_key)
                ).all()
        except SQLAlchemyError as e:
            raise StoreError("list_providers", original_error=e) from e
        return [ProviderKey(provider_type, name) for provider_type, name in rows]
