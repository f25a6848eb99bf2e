"""
Shared LLM client for all career features.

Wraps the OpenAI-compatible chat-completions endpoints of the providers
DevsMentor talks to (Gemini, OpenRouter, SambaNova, AIML API, TogetherAI,
OpenAI) behind a single complete() call.

The SDK's own retries are disabled: rate-limit handling belongs to
ResilientDispatcher, and status errors from the SDK propagate to it
unchanged so it can classify them.
"""

import logging
import os
import threading
from typing import Dict, Optional, Tuple

from devsmentor.features.models import CompletionRequest
from devsmentor.utils.errors import ConfigurationError


# Default models per provider
DEFAULT_MODELS: Dict[str, str] = {
    "gemini": "gemini-2.0-flash",
    "openrouter": "google/gemini-2.0-flash-exp:free",
    "sambanova": "DeepSeek-V3-0324",
    "aimlapi": "gpt-4o-mini",
    "togetherai": "meta-llama/Llama-3.3-70B-Instruct-Turbo",
    "openai": "gpt-4o-mini",
}

# Base URLs per provider
PROVIDER_BASE_URLS: Dict[str, Optional[str]] = {
    "gemini": "https://generativelanguage.googleapis.com/v1beta/openai/",
    "openrouter": "https://openrouter.ai/api/v1",
    "sambanova": "https://api.sambanova.ai/v1",
    "aimlapi": "https://api.aimlapi.com/v1",
    "togetherai": "https://api.together.xyz/v1",
    "openai": None,  # OpenAI SDK uses default
}

# Environment variables searched for an API key, in order
API_KEY_ENV_VARS: Dict[str, Tuple[str, ...]] = {
    "gemini": ("GEMINI_API_KEY",),
    "openrouter": ("OPENROUTER_API_KEY",),
    "sambanova": ("SAMBANOVA_API_KEY",),
    "aimlapi": ("AIMLAPI_API_KEY",),
    "togetherai": ("TOGETHER_API_KEY", "TOGETHERAI_API_KEY"),
    "openai": ("OPENAI_API_KEY",),
}

# OpenRouter attributes traffic via these headers
PROVIDER_HEADERS: Dict[str, Dict[str, str]] = {
    "openrouter": {
        "HTTP-Referer": "https://devsmentor.lovable.app",
        "X-Title": "DevsMentor",
    },
}

DEFAULT_TIMEOUT = 30.0


class LLMClient:
    """
    Shared, thread-safe, lazy-initialized OpenAI-compatible LLM client.

    One client instance is shared by every feature handler. Each call is
    bounded by ``timeout`` seconds; the underlying SDK client is created
    on first use with max_retries=0.
    """

    def __init__(
        self,
        provider: str = "gemini",
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        timeout: float = DEFAULT_TIMEOUT,
        base_url: Optional[str] = None,
        http_client=None,
    ):
        """
        Args:
            provider: Key into PROVIDER_BASE_URLS.
            model: Model name (uses the provider default if not specified).
            api_key: Key, "${ENV_VAR}" template, or None to read the
                     provider's environment variables.
            temperature: Default sampling temperature.
            max_tokens: Default completion token cap (None = provider default).
            timeout: Per-attempt timeout in seconds.
            base_url: Override the provider base URL.
            http_client: Optional httpx.Client handed to the SDK.
        """
        self.provider = provider.lower()
        if self.provider not in PROVIDER_BASE_URLS and base_url is None:
            raise ConfigurationError(
                f"Unknown LLM provider '{provider}'. "
                f"Known providers: {', '.join(sorted(PROVIDER_BASE_URLS))}",
                config_key="llm.provider",
            )
        self.model = model or DEFAULT_MODELS.get(self.provider, DEFAULT_MODELS["openai"])
        self.default_temperature = temperature
        self.default_max_tokens = max_tokens
        self.timeout = timeout
        self.base_url = base_url or PROVIDER_BASE_URLS.get(self.provider)
        self._http_client = http_client
        self._api_key = self._resolve_api_key(api_key)
        self._client = None
        self._lock = threading.Lock()
        self.logger = logging.getLogger("features.client")

    @property
    def model_id(self) -> str:
        """Provider/model identifier string."""
        return f"{self.provider}/{self.model}"

    @property
    def client(self):
        """Thread-safe lazy-initialized OpenAI client."""
        if self._client is None:
            with self._lock:
                if self._client is None:
                    self._client = self._create_client()
        return self._client

    def complete(self, request: CompletionRequest) -> str:
        """
        Send one chat completion request.

        Returns:
            The assistant's response text ("" when the provider sent none).

        Raises:
            ConfigurationError: If no API key is configured.
            openai.APIStatusError: On any non-2xx response.
            openai.APIConnectionError: On timeout or connection failure.
        """
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.user_prompt})

        params = {
            "model": self.model,
            "messages": messages,
            "temperature": (
                request.temperature
                if request.temperature is not None
                else self.default_temperature
            ),
        }
        max_tokens = request.max_tokens or self.default_max_tokens
        if max_tokens:
            params["max_tokens"] = max_tokens

        self.logger.debug(f"Requesting completion '{request.label}' from {self.model_id}")
        response = self.client.chat.completions.create(**params)

        # Non-JSON 2xx bodies (gateway pages, proxy text) come back as str
        if isinstance(response, str):
            return response
        choices = getattr(response, "choices", None)
        if not choices:
            return ""
        message = getattr(choices[0], "message", None)
        return getattr(message, "content", None) or ""

    def _resolve_api_key(self, api_key: Optional[str]) -> Optional[str]:
        """Resolve API key from parameter, template, or environment."""
        if api_key:
            if api_key.startswith("${") and api_key.endswith("}"):
                return os.environ.get(api_key[2:-1])
            return api_key

        for var_name in API_KEY_ENV_VARS.get(self.provider, ()):
            value = os.environ.get(var_name)
            if value:
                return value
        return None

    def _create_client(self):
        """Create the OpenAI-compatible client for the configured provider."""
        if not self._api_key:
            env_vars = " or ".join(API_KEY_ENV_VARS.get(self.provider, ("llm.api_key",)))
            raise ConfigurationError(
                f"No API key found for {self.provider}. Set {env_vars}.",
                config_key="llm.api_key",
            )

        from openai import OpenAI

        kwargs = {
            "api_key": self._api_key,
            "timeout": self.timeout,
            "max_retries": 0,
        }
        if self.base_url:
            kwargs["base_url"] = self.base_url
        if self.provider in PROVIDER_HEADERS:
            kwargs["default_headers"] = PROVIDER_HEADERS[self.provider]
        if self._http_client is not None:
            kwargs["http_client"] = self._http_client
        return OpenAI(**kwargs)


def create_llm_client(config: Dict) -> LLMClient:
    """
    Factory function to create LLMClient from config dict.

    Args:
        config: The 'llm' section from config.yaml.
    """
    return LLMClient(
        provider=config.get("provider", "gemini"),
        model=config.get("model"),
        api_key=config.get("api_key"),
        temperature=config.get("temperature", 0.7),
        max_tokens=config.get("max_tokens"),
        timeout=config.get("timeout", DEFAULT_TIMEOUT),
        base_url=config.get("base_url"),
    )
