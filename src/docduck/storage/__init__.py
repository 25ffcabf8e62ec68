"""Storage module for DocDuck.

This module contains the SQLAlchemy models, the settings stores and the
index metadata store.
"""

from .base import Base
from .database import Database
from .document_metadata import IndexedDocumentStore, IndexedDocumentStoreProtocol
from .fakes import FakeAiProviderSettingsStore, FakeIndexedDocumentStore, FakeProviderSettingsStore
from .models import AiProviderSettingsRow, IndexedDocumentRow, ProviderSettingsRow
from .settings_store import (
    AiProviderSettingsRecord,
    AiProviderSettingsStore,
    ProviderSettingsRecord,
    ProviderSettingsStore,
)

__all__ = [
    "AiProviderSettingsRecord",
    "AiProviderSettingsRow",
    "AiProviderSettingsStore",
    "Base",
    "Database",
    "FakeAiProviderSettingsStore",
    "FakeIndexedDocumentStore",
    "FakeProviderSettingsStore",
    "IndexedDocumentRow",
    "IndexedDocumentStore",
    "IndexedDocumentStoreProtocol",
    "ProviderSettingsRecord",
    "ProviderSettingsRow",
    "ProviderSettingsStore",
]
