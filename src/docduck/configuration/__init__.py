"""Runtime provider configuration.

This module provides the immutable configuration snapshot, the service
that refreshes it and the read-only catalog handed to callers.
"""

from .catalog import ProviderCatalog
from .seeder import ProviderSettingsSeeder
from .service import ConfigurationService
from .snapshot import ConfigurationSnapshot, ProviderDiagnostic

__all__ = [
    "ConfigurationService",
    "ConfigurationSnapshot",
    "ProviderCatalog",
    "ProviderDiagnostic",
    "ProviderSettingsSeeder",
]
