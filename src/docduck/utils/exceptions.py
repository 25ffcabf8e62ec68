"""Exceptions for DocDuck.

This module defines the exception hierarchy used by the provider core so that
callers can tell a bad configuration apart from a broken settings store or a
single unreachable document source.
"""

from typing import Any


def _describe_cause(original_error: Exception | None) -> str:
    if original_error is None:
        return ""
    return f" (caused by: {type(original_error).__name__}: {original_error})"


class DocDuckError(Exception):
    """Base exception class for all DocDuck-specific exceptions.

    All DocDuck exceptions inherit from this class so that callers can catch
    everything raised by the provider core in one place.
    """

    def __init__(self, message: str, *, error_code: str | None = None, context: dict[str, Any] | None = None):
        """Initialize the exception.

        Args:
            message: Human-readable error message
            error_code: Optional machine-readable error code
            context: Optional dictionary with additional context information
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}


# Configuration and Validation Errors
class ConfigurationError(DocDuckError):
    """Base class for configuration-related errors."""
    pass


class InvalidConfigurationError(ConfigurationError):
    """Exception raised when configuration values are invalid."""

    def __init__(self, config_key: str, value: Any, expected: str):
        """Initialize the exception.

        Args:
            config_key: The configuration key that is invalid
            value: The invalid value that was provided
            expected: Description of what was expected
        """
        self.config_key = config_key
        self.value = value
        self.expected = expected
        super().__init__(
            f"Invalid configuration for '{config_key}': got {value!r}, expected {expected}",
            error_code="INVALID_CONFIG",
            context={"config_key": config_key, "value": value, "expected": expected}
        )


class MissingConfigurationError(ConfigurationError):
    """Exception raised when required configuration is missing."""

    def __init__(self, config_key: str):
        """Initialize the exception.

        Args:
            config_key: The missing configuration key
        """
        self.config_key = config_key
        super().__init__(
            f"Missing required configuration: '{config_key}'",
            error_code="MISSING_CONFIG",
            context={"config_key": config_key}
        )


class SettingsValidationError(ConfigurationError):
    """Exception raised when a settings value fails validation.

    The message always names the offending provider and the category of the
    field that is missing or inconsistent (for example ``credentials`` or
    ``file extensions``).
    """

    def __init__(self, provider: str, field: str, message: str):
        """Initialize the exception.

        Args:
            provider: Provider identity, usually ``type/name``
            field: Field category that failed validation
            message: Description of the problem
        """
        self.provider = provider
        self.field = field
        super().__init__(
            f"Invalid settings for provider '{provider}' ({field}): {message}",
            error_code="SETTINGS_VALIDATION_ERROR",
            context={"provider": provider, "field": field}
        )


class UnsupportedSettingsTypeError(ConfigurationError, TypeError):
    """Exception raised when no connector is registered for a settings class."""

    def __init__(self, settings_type: type):
        self.settings_type = settings_type
        super().__init__(
            f"Unsupported provider settings type: {settings_type.__name__}",
            error_code="UNSUPPORTED_SETTINGS_TYPE",
            context={"settings_type": settings_type.__name__}
        )


# Settings Store Errors
class StoreError(DocDuckError):
    """Exception raised for connectivity or serialization faults in a store.

    A missing record is never a ``StoreError``; stores return ``None`` for
    that case.
    """

    def __init__(self, operation: str, message: str = "", *, original_error: Exception | None = None):
        """Initialize the exception.

        Args:
            operation: The store operation that failed (get, get_all, upsert, ...)
            message: Additional error message details
            original_error: The original exception that caused this error
        """
        self.operation = operation
        self.original_error = original_error

        error_msg = f"Settings store {operation} failed"
        if message:
            error_msg += f": {message}"
        error_msg += _describe_cause(original_error)

        super().__init__(
            error_msg,
            error_code="STORE_ERROR",
            context={"operation": operation, "original_error": str(original_error) if original_error else None}
        )


class UnknownProviderTypeError(StoreError):
    """Exception raised when a persisted record names an unregistered provider type."""

    def __init__(self, provider_type: str):
        """Initialize the exception.

        Args:
            provider_type: The unrecognised provider type string
        """
        self.provider_type = provider_type
        super().__init__("deserialize", f"no settings type registered for provider type '{provider_type}'")
        self.error_code = "UNKNOWN_PROVIDER_TYPE"


# Provider Errors
class ProviderError(DocDuckError):
    """Base class for errors raised by a single document provider."""

    def __init__(
        self,
        key: Any,
        message: str,
        *,
        error_code: str,
        original_error: Exception | None = None,
    ):
        """Initialize the exception.

        Args:
            key: Identity of the provider (``ProviderKey`` or string)
            message: Error message details
            error_code: Machine-readable error code
            original_error: The original exception that caused this error
        """
        self.key = key
        self.original_error = original_error
        super().__init__(
            f"{message} [provider: {key}]{_describe_cause(original_error)}",
            error_code=error_code,
            context={"provider": str(key), "original_error": str(original_error) if original_error else None}
        )


class ProviderConstructionError(ProviderError):
    """Exception raised when a connector cannot be built from its settings."""

    def __init__(self, key: Any, message: str = "Failed to construct provider", *, original_error: Exception | None = None):
        super().__init__(key, message, error_code="PROVIDER_CONSTRUCTION_ERROR", original_error=original_error)


class SyncError(ProviderError):
    """Exception raised when enumeration or fetch fails during a sync cycle."""

    def __init__(self, key: Any, message: str = "Sync failed", *, original_error: Exception | None = None):
        super().__init__(key, message, error_code="SYNC_ERROR", original_error=original_error)


class DocumentNotFoundError(SyncError):
    """Exception raised when a provider has no document at the requested address."""

    def __init__(self, key: Any, address: str):
        self.address = address
        super().__init__(key, f"Document '{address}' not found")
        self.error_code = "DOCUMENT_NOT_FOUND"
