"""Provider construction.

:class:`ProviderFactory` is the single place where the settings union is
dispatched to a concrete connector. Adding a source kind means extending the
union in :mod:`.settings` and the ``match`` below.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from docduck.utils.clock import ClockProtocol, SystemClock
from docduck.utils.exceptions import (
    ProviderConstructionError,
    SettingsValidationError,
    UnsupportedSettingsTypeError,
)

from .base import DocumentProviderProtocol
from .cloud_drive import CloudDriveDocumentProvider
from .local import LocalDocumentProvider
from .object_storage import ObjectStorageDocumentProvider
from .settings import (
    CloudDriveProviderSettings,
    LocalProviderSettings,
    ObjectStorageProviderSettings,
    ProviderSettings,
    settings_from_payload,
)

if TYPE_CHECKING:
    from docduck.storage.settings_store import ProviderSettingsRecord

logger = logging.getLogger(__name__)

ProviderConstructor = Callable[[Any], DocumentProviderProtocol]


def parse_record(record: ProviderSettingsRecord) -> ProviderSettings:
    """Turn a persisted record into validated settings.

    Raises:
        UnknownProviderTypeError: If the record's type is not registered
        StoreError: If the payload is malformed
        SettingsValidationError: If the enabled settings are incomplete
    """
    settings = settings_from_payload(record.provider_type, record.payload, name=record.provider_name)
    return settings.validate()  # type: ignore[return-value]


class ProviderFactory:
    """Build live providers from validated settings.

    Each variant's constructor can be replaced, which is how tests and
    embedding applications inject clients or fakes.
    """

    def __init__(
        self,
        local: ProviderConstructor | None = None,
        object_storage: ProviderConstructor | None = None,
        cloud_drive: ProviderConstructor | None = None,
        clock: ClockProtocol | None = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._local = local or self._build_local
        self._object_storage = object_storage or self._build_object_storage
        self._cloud_drive = cloud_drive or self._build_cloud_drive

    def _build_local(self, settings: LocalProviderSettings) -> DocumentProviderProtocol:
        return LocalDocumentProvider(settings, registered_at=self._clock.now())

    def _build_object_storage(self, settings: ObjectStorageProviderSettings) -> DocumentProviderProtocol:
        return ObjectStorageDocumentProvider(settings, registered_at=self._clock.now())

    def _build_cloud_drive(self, settings: CloudDriveProviderSettings) -> DocumentProviderProtocol:
        return CloudDriveDocumentProvider(settings, clock=self._clock, registered_at=self._clock.now())

    def create_provider(self, settings: ProviderSettings) -> DocumentProviderProtocol:
        """Construct the connector matching *settings*.

        Args:
            settings: Enabled settings; they are validated again here

        Returns:
            The live provider

        Raises:
            UnsupportedSettingsTypeError: If *settings* is not a known settings variant
            SettingsValidationError: If the settings are incomplete
            ProviderConstructionError: If the connector cannot be set up
        """
        match settings:
            case LocalProviderSettings():
                constructor = self._local
            case ObjectStorageProviderSettings():
                constructor = self._object_storage
            case CloudDriveProviderSettings():
                constructor = self._cloud_drive
            case _:
                raise UnsupportedSettingsTypeError(type(settings))

        if not settings.enabled:
            raise ProviderConstructionError(settings.key, "Provider is disabled")
        validated = settings.validate()

        try:
            provider = constructor(validated)
        except (ProviderConstructionError, SettingsValidationError):
            raise
        except Exception as exc:
            raise ProviderConstructionError(validated.key, original_error=exc) from exc

        logger.debug("Constructed %r", provider)
        return provider

    __call__ = create_provider

    parse_record = staticmethod(parse_record)
