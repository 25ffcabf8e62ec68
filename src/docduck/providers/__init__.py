"""Document provider module for DocDuck.

This module provides the provider settings union, the provider capability
protocol and the connectors for each source kind.
"""

from .base import (
    BaseDocumentProvider,
    DocumentProviderProtocol,
    ProbeDocument,
    ProbeRequest,
    ProbeResult,
    ProviderDocument,
    ProviderMetadata,
)
from .cloud_drive import CloudDriveDocumentProvider
from .factory import ProviderFactory, parse_record
from .fakes import FakeDocumentProvider, FakeProviderFactory
from .local import LocalDocumentProvider
from .object_storage import ObjectStorageDocumentProvider
from .settings import (
    CloudDriveProviderSettings,
    LocalProviderSettings,
    ObjectStorageProviderSettings,
    ProviderKey,
    ProviderSettings,
    ProviderType,
    settings_from_payload,
)

__all__ = [
    "BaseDocumentProvider",
    "CloudDriveDocumentProvider",
    "CloudDriveProviderSettings",
    "DocumentProviderProtocol",
    "FakeDocumentProvider",
    "FakeProviderFactory",
    "LocalDocumentProvider",
    "LocalProviderSettings",
    "ObjectStorageDocumentProvider",
    "ObjectStorageProviderSettings",
    "ProbeDocument",
    "ProbeRequest",
    "ProbeResult",
    "ProviderDocument",
    "ProviderFactory",
    "ProviderKey",
    "ProviderMetadata",
    "ProviderSettings",
    "ProviderType",
    "parse_record",
    "settings_from_payload",
]
