"""Language-model provider configuration.

Only the settings value is exported here; the seeder and the configuration
service are imported from their modules.
"""

from .settings import OpenAiProviderSettings, normalize_base_url

__all__ = ["OpenAiProviderSettings", "normalize_base_url"]
