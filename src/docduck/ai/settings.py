"""Language-model provider settings."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar
from urllib.parse import urljoin

from docduck.utils.exceptions import SettingsValidationError, StoreError

DEFAULT_BASE_URL = "https://api.openai.com/v1/"
DEFAULT_EMBED_MODEL = "text-embedding-3-small"
DEFAULT_EMBED_BATCH_SIZE = 16
DEFAULT_CHAT_MODEL = "gpt-4o-mini"
DEFAULT_CHAT_MODEL_SMALL = "gpt-5-nano"
DEFAULT_CHAT_MODEL_LARGE = "gpt-5-mini"
DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.7
DEFAULT_REFINE_SYSTEM_PROMPT = (
    "Produce exactly one concise search phrase (3-8 words) optimized for semantic embedding "
    "similarity. Output ONLY the phrase on a single line with no surrounding quotes, punctuation, "
    "explanation, or additional text. Use lowercased main nouns and essential modifiers (no "
    "pleasantries or stopwords unless essential). Prefer concrete, domain-specific keywords that "
    "capture the user's core intent so that when vectorized the phrase will be nearest to relevant "
    "document vectors."
)

_PAYLOAD_KEYS = {
    "enabled": "enabled",
    "apiKey": "api_key",
    "baseUrl": "base_url",
    "embedModel": "embed_model",
    "embedBatchSize": "embed_batch_size",
    "chatModel": "chat_model",
    "chatModelSmall": "chat_model_small",
    "chatModelLarge": "chat_model_large",
    "maxTokens": "max_tokens",
    "temperature": "temperature",
    "refineSystemPrompt": "refine_system_prompt",
}


def normalize_base_url(base_url: str) -> str:
    """Return *base_url* with a trailing ``/`` so relative paths compose."""
    base_url = base_url.strip()
    if base_url and not base_url.endswith("/"):
        return base_url + "/"
    return base_url


@dataclass(frozen=True, kw_only=True)
class OpenAiProviderSettings:
    """Settings for an OpenAI-compatible embedding and chat API.

    There is one record per provider type. ``chat_model_small`` and
    ``chat_model_large`` let callers pick a cheaper or stronger model per
    request; ``refine_system_prompt`` drives query refinement before
    embedding.
    """

    PROVIDER_TYPE: ClassVar[str] = "openai"

    enabled: bool = True
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    embed_model: str = DEFAULT_EMBED_MODEL
    embed_batch_size: int = DEFAULT_EMBED_BATCH_SIZE
    chat_model: str = DEFAULT_CHAT_MODEL
    chat_model_small: str = DEFAULT_CHAT_MODEL_SMALL
    chat_model_large: str = DEFAULT_CHAT_MODEL_LARGE
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    refine_system_prompt: str = DEFAULT_REFINE_SYSTEM_PROMPT

    @property
    def provider_type(self) -> str:
        return self.PROVIDER_TYPE

    def validate(self) -> OpenAiProviderSettings:
        """Return a validated copy with the base URL normalized.

        The trailing-separator normalization applies whether or not the
        settings are enabled; the remaining checks only run when enabled.

        Raises:
            SettingsValidationError: If an enabled value lacks a key or URL
                or carries out-of-range numbers
        """
        normalized = dataclasses.replace(self, base_url=normalize_base_url(self.base_url))
        if not self.enabled:
            return normalized

        if not self.api_key.strip():
            self._fail("credentials", "an API key is required when enabled")
        if not normalized.base_url:
            self._fail("base url", "a base URL is required when enabled")
        if self.embed_batch_size < 1:
            self._fail("embed batch size", "must be at least 1")
        if self.max_tokens < 1:
            self._fail("max tokens", "must be at least 1")
        if not 0.0 <= self.temperature <= 2.0:
            self._fail("temperature", "must be between 0 and 2")
        return normalized

    def _fail(self, field_category: str, message: str) -> None:
        raise SettingsValidationError(self.PROVIDER_TYPE, field_category, message)

    def endpoint_url(self, path: str) -> str:
        """Compose a relative endpoint path such as ``embeddings`` against the base URL."""
        return urljoin(normalize_base_url(self.base_url), path.lstrip("/"))

    def to_payload(self) -> dict[str, Any]:
        return {camel: getattr(self, attr) for camel, attr in _PAYLOAD_KEYS.items()}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> OpenAiProviderSettings:
        if not isinstance(payload, Mapping):
            raise StoreError("deserialize", "expected a JSON object for openai settings")
        lookup = {camel.lower(): attr for camel, attr in _PAYLOAD_KEYS.items()}
        lookup.update({attr: attr for attr in _PAYLOAD_KEYS.values()})
        kwargs = {}
        for key, value in payload.items():
            attr = lookup.get(str(key).lower())
            if attr is not None and value is not None:
                kwargs[attr] = value
        try:
            settings = cls(**kwargs)
        except TypeError as exc:
            raise StoreError("deserialize", "malformed openai settings", original_error=exc) from exc
        settings._check_types()
        return settings

    def _check_types(self) -> None:
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if isinstance(f.default, bool):
                valid = isinstance(value, bool)
            elif isinstance(f.default, int):
                valid = isinstance(value, int) and not isinstance(value, bool)
            elif isinstance(f.default, float):
                valid = isinstance(value, (int, float)) and not isinstance(value, bool)
            else:
                valid = isinstance(value, str)
            if not valid:
                raise StoreError(
                    "deserialize", f"field '{f.name}' of openai settings must be {type(f.default).__name__}"
                )
