# Copyright 2025 John Brosnihan
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Application configuration."""

import os
import threading
from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from casegen.models.config_models import GenerationConfig


class Settings(BaseSettings):
    """Application settings with environment variable support (prefix ``APP_``)."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )

    app_name: str = "casegen"
    app_version: str = "0.1.0"
    app_description: str = "Suggests test cases for source files and recovers them from LLM output"
    debug: bool = False

    # Config admin endpoints are off by default
    enable_config_admin_endpoints: bool = False

    # Test generation defaults
    default_framework: str = "jest"
    default_test_type: str = "unit"
    summaries_max_tokens: int = Field(2000, gt=0)
    code_max_tokens: int = Field(2000, gt=0)

    # Bound on raw-text previews in recovery failures
    recovery_preview_chars: int = Field(200, ge=0)

    # CORS settings
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    cors_allow_credentials: bool = True
    cors_allow_methods: str = "*"
    cors_allow_headers: str = "*"

    def get_cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string to list."""
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def get_cors_methods_list(self) -> list[str]:
        """Parse CORS methods, returning ["*"] for the wildcard."""
        if self.cors_allow_methods == "*":
            return ["*"]
        return [method.strip() for method in self.cors_allow_methods.split(",") if method.strip()]

    def get_cors_headers_list(self) -> list[str]:
        """Parse CORS headers, returning ["*"] for the wildcard."""
        if self.cors_allow_headers == "*":
            return ["*"]
        return [header.strip() for header in self.cors_allow_headers.split(",") if header.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()


# ============================================================================
# GLOBAL DEFAULTS FOR GENERATION CONFIG
# ============================================================================


class ConfigValidationError(ValueError):
    """Raised when a provider/model combination is not allowed."""
    pass


class GlobalDefaults:
    """Process-wide default GenerationConfig and allowed models.

    Reads and writes are guarded by a lock. Defaults live only in process
    memory. The default config is always complete (every field set) so a
    partial request override can be merged onto it.

    Built-in allowed models:
        - openai: gpt-5, gpt-5.1, gpt-4o, gpt-4o-mini
        - anthropic: claude-sonnet-4.5, claude-opus-4
        - google: gemini-2.5-flash, gemini-2.5-pro, gemini-2.0-flash
        - dummy: dummy-model, test-model

    APP_ALLOWED_MODELS_OPENAI, APP_ALLOWED_MODELS_ANTHROPIC and
    APP_ALLOWED_MODELS_GOOGLE (comma-separated) replace the built-in lists
    when set.

    Example:
        >>> defaults = GlobalDefaults()
        >>> defaults.get_default_config().provider
        'openai'
    """

    def __init__(self):
        self._lock = threading.Lock()

        self._allowed_models: Dict[str, List[str]] = {
            "openai": ["gpt-5", "gpt-5.1", "gpt-4o", "gpt-4o-mini"],
            "anthropic": ["claude-sonnet-4.5", "claude-opus-4"],
            "google": ["gemini-2.5-flash", "gemini-2.5-pro", "gemini-2.0-flash"],
            "dummy": ["dummy-model", "test-model"],
        }
        self._seed_allowed_models_from_env()

        self._default_config = GenerationConfig(
            provider="openai",
            model="gpt-4o-mini",
            temperature=0.2,
            max_tokens=None,
        )

    def _seed_allowed_models_from_env(self) -> None:
        for provider in ("openai", "anthropic", "google"):
            raw = os.environ.get(f"APP_ALLOWED_MODELS_{provider.upper()}", "").strip()
            models = [m.strip() for m in raw.split(",") if m.strip()]
            if models:
                self._allowed_models[provider] = models

    @property
    def allowed_models(self) -> Dict[str, List[str]]:
        """Return a copy of the provider to allowed-models map."""
        with self._lock:
            return {provider: list(models) for provider, models in self._allowed_models.items()}

    def get_default_config(self) -> GenerationConfig:
        """Return a copy of the default config."""
        with self._lock:
            return self._default_config.model_copy()

    def set_default_config(self, config: GenerationConfig) -> None:
        """Replace the default config after validating it.

        Args:
            config: New default; provider and model are required

        Raises:
            TypeError: If config is not a GenerationConfig
            ConfigValidationError: If provider or model is missing or not allowed
        """
        if not isinstance(config, GenerationConfig):
            raise TypeError(
                f"config must be a GenerationConfig instance, got {type(config).__name__}"
            )
        if config.provider is None or config.model is None:
            raise ConfigValidationError("Default config must set both provider and model")

        with self._lock:
            _check_membership(self._allowed_models, config.provider, config.model)
            self._default_config = config.model_copy()


def _check_membership(allowed: Dict[str, List[str]], provider: str, model: str) -> None:
    if provider not in allowed:
        raise ConfigValidationError(
            f"Unsupported provider '{provider}'. "
            f"Allowed providers: {', '.join(sorted(allowed.keys()))}"
        )

    allowed_for_provider = allowed[provider]
    if not allowed_for_provider:
        raise ConfigValidationError(
            f"Provider '{provider}' has no allowed models configured."
        )

    if model not in allowed_for_provider:
        raise ConfigValidationError(
            f"Model '{model}' is not allowed for provider '{provider}'. "
            f"Allowed models: {', '.join(allowed_for_provider)}"
        )


_global_defaults = GlobalDefaults()


def get_default_config() -> GenerationConfig:
    """Get a copy of the current default GenerationConfig."""
    return _global_defaults.get_default_config()


def set_default_config(config: GenerationConfig) -> None:
    """Replace the default GenerationConfig.

    Raises:
        ConfigValidationError: If validation fails (invalid provider/model)
        TypeError: If config is not a GenerationConfig instance
    """
    _global_defaults.set_default_config(config)


def get_allowed_models() -> Dict[str, List[str]]:
    """Get a copy of the allowed models map."""
    return _global_defaults.allowed_models


def validate_provider_model(provider: str, model: str) -> None:
    """Validate that a provider/model combination is allowed.

    Raises:
        ConfigValidationError: If the provider is unknown or the model is not
            in the provider's allowed list

    Example:
        >>> validate_provider_model("openai", "gpt-4o-mini")  # OK
        >>> validate_provider_model("openai", "invalid-model")  # Raises ConfigValidationError
    """
    _check_membership(_global_defaults.allowed_models, provider, model)


def validate_and_merge_config(request_config: Optional[GenerationConfig]) -> GenerationConfig:
    """Merge a per-request override onto the default config and validate it.

    Fields set on the request win; fields left as None inherit from the
    default. The process-wide default is never mutated.

    Args:
        request_config: Optional override from the request body

    Returns:
        Complete, validated GenerationConfig

    Raises:
        ConfigValidationError: If the merged provider/model combination is invalid
        TypeError: If request_config is not a GenerationConfig or None

    Example:
        >>> config = validate_and_merge_config(GenerationConfig(temperature=0.0))
        >>> config.model
        'gpt-4o-mini'
    """
    if request_config is None:
        merged = get_default_config()
    elif not isinstance(request_config, GenerationConfig):
        raise TypeError(
            f"request_config must be a GenerationConfig instance or None, "
            f"got {type(request_config).__name__}"
        )
    else:
        default = get_default_config()
        overrides = request_config.model_dump(exclude_none=True)
        merged = default.model_copy(update=overrides)

    validate_provider_model(merged.provider, merged.model)
    return merged
