"""Provider settings.

Each document source kind has its own frozen settings dataclass. The three
classes form a closed union, :data:`ProviderSettings`; the provider factory
is the single place that dispatches on it.

Settings values are never mutated. ``validate()`` returns a normalized copy,
so the same value can be shared by concurrent refreshes without aliasing
surprises. A disabled value is allowed to be incomplete and validates as-is.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, ClassVar, TypeAlias

from docduck.utils.exceptions import SettingsValidationError, StoreError, UnknownProviderTypeError


class ProviderType(StrEnum):
    """Known document source kinds. Values are the persisted identifiers."""

    LOCAL = "local"
    OBJECT_STORAGE = "s3"
    CLOUD_DRIVE = "onedrive"


class CloudDriveAccountType(StrEnum):
    BUSINESS = "business"
    PERSONAL = "personal"


@dataclass(frozen=True)
class ProviderKey:
    """Identity of a configured provider: ``(provider_type, name)``.

    The name compares case-insensitively; the original spelling is kept for
    display.
    """

    provider_type: str
    name: str = field(compare=False)
    normalized_name: str = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "provider_type", str(self.provider_type).strip().lower())
        object.__setattr__(self, "normalized_name", self.name.strip().casefold())

    @property
    def sort_key(self) -> tuple[str, str]:
        return self.provider_type, self.normalized_name

    def __str__(self) -> str:
        return f"{self.provider_type}/{self.name}"


def _to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _normalize_extensions(extensions: tuple[str, ...]) -> tuple[str, ...]:
    normalized: list[str] = []
    for ext in extensions:
        ext = ext.strip().lower()
        if not ext:
            continue
        if ext.startswith("*"):
            ext = ext[1:]
        if not ext.startswith("."):
            ext = f".{ext}"
        if ext not in normalized:
            normalized.append(ext)
    return tuple(normalized)


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


@dataclass(frozen=True, kw_only=True)
class BaseProviderSettings:
    """Fields and behaviour shared by every settings variant."""

    PROVIDER_TYPE: ClassVar[ProviderType]

    enabled: bool = False
    name: str = ""
    file_extensions: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Payloads and callers hand in lists; keep the value hashable and immutable.
        if isinstance(self.file_extensions, str):
            object.__setattr__(self, "file_extensions", tuple(self.file_extensions.split(",")))
        elif not isinstance(self.file_extensions, tuple):
            object.__setattr__(self, "file_extensions", tuple(self.file_extensions))

    @property
    def provider_type(self) -> ProviderType:
        return self.PROVIDER_TYPE

    @property
    def key(self) -> ProviderKey:
        return ProviderKey(self.PROVIDER_TYPE.value, self.name)

    def validate(self) -> BaseProviderSettings:
        """Validate and return a normalized copy of these settings.

        Disabled settings are returned unchanged.

        Raises:
            SettingsValidationError: If an enabled value is incomplete
        """
        if not self.enabled:
            return self
        if _is_blank(self.name):
            self._fail("name", "a provider name is required")
        self._validate_enabled()
        extensions = _normalize_extensions(self.file_extensions)
        if not extensions:
            self._fail("file extensions", "at least one file extension filter is required")
        return dataclasses.replace(self, name=self.name.strip(), file_extensions=extensions)

    def _validate_enabled(self) -> None:
        raise NotImplementedError

    def _fail(self, field_category: str, message: str) -> None:
        raise SettingsValidationError(str(self.key), field_category, message)

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON document stored in the settings column."""
        payload: dict[str, Any] = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, tuple):
                value = list(value)
            payload[_to_camel(f.name)] = value
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], *, name: str | None = None) -> BaseProviderSettings:
        """Build settings from a stored JSON document.

        Keys are matched case-insensitively in camelCase or snake_case; unknown
        keys are ignored and missing keys take their defaults.

        Args:
            payload: Decoded JSON object
            name: Authoritative provider name, overriding the payload

        Raises:
            StoreError: If the payload is not an object or has badly typed values
        """
        if not isinstance(payload, Mapping):
            raise StoreError("deserialize", f"expected a JSON object for {cls.PROVIDER_TYPE} settings")

        lookup: dict[str, str] = {}
        for f in dataclasses.fields(cls):
            lookup[_to_camel(f.name).lower()] = f.name
            lookup[f.name.lower()] = f.name

        kwargs: dict[str, Any] = {}
        for raw_key, value in payload.items():
            field_name = lookup.get(str(raw_key).lower())
            if field_name is not None:
                kwargs[field_name] = value
        if name is not None:
            kwargs["name"] = name

        try:
            settings = cls(**kwargs)
        except TypeError as exc:
            raise StoreError("deserialize", f"malformed {cls.PROVIDER_TYPE} settings", original_error=exc) from exc
        settings._check_types()
        return settings

    def _check_types(self) -> None:
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if isinstance(f.default, bool) and not isinstance(value, bool):
                raise StoreError("deserialize", f"field '{f.name}' of {self.key} must be a boolean")
            if f.name == "file_extensions" and not all(isinstance(ext, str) for ext in value):
                raise StoreError("deserialize", f"field '{f.name}' of {self.key} must be a list of strings")


@dataclass(frozen=True, kw_only=True)
class LocalProviderSettings(BaseProviderSettings):
    """Configuration for a local filesystem source."""

    PROVIDER_TYPE: ClassVar[ProviderType] = ProviderType.LOCAL

    name: str = "LocalFiles"
    root_path: str = "/data/documents"
    file_extensions: tuple[str, ...] = (".docx", ".pdf", ".txt")
    recursive: bool = True
    exclude_patterns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        super().__post_init__()
        if not isinstance(self.exclude_patterns, tuple):
            object.__setattr__(self, "exclude_patterns", tuple(self.exclude_patterns))

    def _validate_enabled(self) -> None:
        if _is_blank(self.root_path):
            self._fail("root path", "a non-empty root path is required")


@dataclass(frozen=True, kw_only=True)
class ObjectStorageProviderSettings(BaseProviderSettings):
    """Configuration for an S3-compatible bucket.

    Authentication uses either an explicit access key pair (optionally with a
    session token) or, when ``use_instance_profile`` is set, the ambient
    credential chain of the host.
    """

    PROVIDER_TYPE: ClassVar[ProviderType] = ProviderType.OBJECT_STORAGE

    name: str = "S3"
    bucket_name: str = ""
    prefix: str | None = None
    region: str = "us-east-1"
    access_key_id: str | None = None
    secret_access_key: str | None = None
    session_token: str | None = None
    use_instance_profile: bool = False
    endpoint_url: str | None = None
    file_extensions: tuple[str, ...] = (".docx", ".pdf", ".txt")

    def _validate_enabled(self) -> None:
        if _is_blank(self.bucket_name):
            self._fail("bucket", "a bucket name is required")
        if _is_blank(self.region):
            self._fail("region", "a region is required")
        has_key_pair = not _is_blank(self.access_key_id) and not _is_blank(self.secret_access_key)
        if not self.use_instance_profile and not has_key_pair:
            self._fail(
                "credentials",
                "access key id and secret access key are required when not using an instance profile",
            )

    @property
    def uses_explicit_credentials(self) -> bool:
        return not self.use_instance_profile


@dataclass(frozen=True, kw_only=True)
class CloudDriveProviderSettings(BaseProviderSettings):
    """Configuration for a OneDrive / SharePoint drive reached through Microsoft Graph.

    Business accounts must name a drive or a site; personal accounts use the
    signed-in user's default drive.
    """

    PROVIDER_TYPE: ClassVar[ProviderType] = ProviderType.CLOUD_DRIVE

    name: str = "OneDrive"
    account_type: str = CloudDriveAccountType.BUSINESS.value
    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    site_id: str | None = None
    drive_id: str | None = None
    folder_path: str = "/Shared Documents/Docs"
    file_extensions: tuple[str, ...] = (".docx",)

    @property
    def is_business(self) -> bool:
        return self.account_type.strip().lower() == CloudDriveAccountType.BUSINESS

    def _validate_enabled(self) -> None:
        if _is_blank(self.tenant_id) or _is_blank(self.client_id) or _is_blank(self.client_secret):
            self._fail("credentials", "tenant id, client id and client secret are required")
        if self.account_type.strip().lower() not in {t.value for t in CloudDriveAccountType}:
            self._fail("account type", f"expected 'business' or 'personal', got '{self.account_type}'")
        if self.is_business and _is_blank(self.drive_id) and _is_blank(self.site_id):
            self._fail("drive", "business accounts require a drive id or a site id")

    def validate(self) -> CloudDriveProviderSettings:
        validated = super().validate()
        if validated is self:
            return self
        return dataclasses.replace(validated, account_type=self.account_type.strip().lower())


ProviderSettings: TypeAlias = LocalProviderSettings | ObjectStorageProviderSettings | CloudDriveProviderSettings

SETTINGS_TYPES: dict[ProviderType, type[BaseProviderSettings]] = {
    ProviderType.LOCAL: LocalProviderSettings,
    ProviderType.OBJECT_STORAGE: ObjectStorageProviderSettings,
    ProviderType.CLOUD_DRIVE: CloudDriveProviderSettings,
}


def resolve_provider_type(provider_type: str) -> ProviderType:
    """Map a persisted provider type string onto :class:`ProviderType`.

    Raises:
        UnknownProviderTypeError: If the type is not registered
    """
    try:
        return ProviderType(provider_type.strip().lower())
    except ValueError:
        raise UnknownProviderTypeError(provider_type) from None


def settings_from_payload(
    provider_type: str,
    payload: Mapping[str, Any],
    *,
    name: str | None = None,
) -> ProviderSettings:
    """Deserialize a stored settings document into the matching variant."""
    settings_type = SETTINGS_TYPES[resolve_provider_type(provider_type)]
    return settings_type.from_payload(payload, name=name)  # type: ignore[return-value]
