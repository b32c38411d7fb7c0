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
"""Tests for configuration module."""

import threading

import pytest
from pydantic import ValidationError

from casegen.config import (
    ConfigValidationError,
    GlobalDefaults,
    Settings,
    get_allowed_models,
    get_default_config,
    get_settings,
    set_default_config,
    validate_and_merge_config,
    validate_provider_model,
)
from casegen.models.config_models import GenerationConfig


def test_settings_defaults():
    """Test that settings have correct default values."""
    settings = get_settings()

    assert settings.app_name == "casegen"
    assert settings.app_version == "0.1.0"
    assert settings.debug is False
    assert settings.enable_config_admin_endpoints is False
    assert settings.default_framework == "jest"
    assert settings.default_test_type == "unit"
    assert settings.summaries_max_tokens == 2000
    assert settings.code_max_tokens == 2000
    assert settings.recovery_preview_chars == 200
    assert settings.cors_allow_credentials is True
    assert settings.cors_allow_methods == "*"
    assert settings.cors_allow_headers == "*"


def test_settings_from_environment(monkeypatch):
    """Test that settings can be configured from environment variables."""
    monkeypatch.setenv("APP_DEBUG", "true")
    monkeypatch.setenv("APP_SUMMARIES_MAX_TOKENS", "512")
    monkeypatch.setenv("APP_RECOVERY_PREVIEW_CHARS", "40")

    get_settings.cache_clear()
    settings = get_settings()

    assert settings.debug is True
    assert settings.summaries_max_tokens == 512
    assert settings.recovery_preview_chars == 40


def test_settings_reject_invalid_token_limit(monkeypatch):
    """Test that a non-positive token limit is rejected."""
    monkeypatch.setenv("APP_CODE_MAX_TOKENS", "0")

    with pytest.raises(ValidationError):
        Settings()


def test_get_settings_caches_instance():
    """Test that get_settings returns the same cached instance on multiple calls."""
    settings1 = get_settings()
    settings2 = get_settings()

    assert isinstance(settings1, Settings)
    assert settings1 is settings2


def test_cors_origins_defaults():
    """Test that CORS origins default to the local UI dev servers."""
    origins = get_settings().get_cors_origins_list()

    assert "http://localhost:3000" in origins
    assert "http://localhost:5173" in origins
    assert "http://127.0.0.1:5173" in origins


def test_cors_origins_with_spaces(monkeypatch):
    """Test that CORS origins are trimmed of whitespace."""
    monkeypatch.setenv("APP_CORS_ORIGINS", " https://example.com , https://app.example.com ")

    get_settings.cache_clear()
    origins = get_settings().get_cors_origins_list()

    assert origins == ["https://example.com", "https://app.example.com"]


def test_cors_origins_empty_string(monkeypatch):
    """Test that empty CORS origins string returns empty list."""
    monkeypatch.setenv("APP_CORS_ORIGINS", "")

    get_settings.cache_clear()

    assert get_settings().get_cors_origins_list() == []


def test_cors_methods_and_headers(monkeypatch):
    """Test wildcard and explicit CORS method and header lists."""
    assert get_settings().get_cors_methods_list() == ["*"]
    assert get_settings().get_cors_headers_list() == ["*"]

    monkeypatch.setenv("APP_CORS_ALLOW_METHODS", "GET, POST")
    monkeypatch.setenv("APP_CORS_ALLOW_HEADERS", "Content-Type,Authorization")
    get_settings.cache_clear()
    settings = get_settings()

    assert settings.get_cors_methods_list() == ["GET", "POST"]
    assert settings.get_cors_headers_list() == ["Content-Type", "Authorization"]


class TestGlobalDefaults:
    """Tests for the GlobalDefaults class."""

    def test_built_in_defaults(self, monkeypatch):
        """Test the built-in default config and allowed models."""
        monkeypatch.delenv("APP_ALLOWED_MODELS_OPENAI", raising=False)
        monkeypatch.delenv("APP_ALLOWED_MODELS_ANTHROPIC", raising=False)
        monkeypatch.delenv("APP_ALLOWED_MODELS_GOOGLE", raising=False)
        defaults = GlobalDefaults()

        config = defaults.get_default_config()
        assert config.provider == "openai"
        assert config.model == "gpt-4o-mini"
        assert config.temperature == 0.2
        assert config.max_tokens is None

        allowed = defaults.allowed_models
        assert allowed["openai"] == ["gpt-5", "gpt-5.1", "gpt-4o", "gpt-4o-mini"]
        assert allowed["anthropic"] == ["claude-sonnet-4.5", "claude-opus-4"]
        assert allowed["google"] == ["gemini-2.5-flash", "gemini-2.5-pro", "gemini-2.0-flash"]
        assert allowed["dummy"] == ["dummy-model", "test-model"]

    def test_allowed_models_returns_copy(self):
        """Test that modifying the returned map does not change the defaults."""
        defaults = GlobalDefaults()
        defaults.allowed_models["openai"].append("hacked")

        assert "hacked" not in defaults.allowed_models["openai"]

    def test_get_default_config_returns_copy(self):
        """Test that modifying the returned config does not change the defaults."""
        defaults = GlobalDefaults()
        config = defaults.get_default_config()
        config.model = "changed"

        assert defaults.get_default_config().model == "gpt-4o-mini"

    def test_set_default_config_valid(self):
        """Test replacing the default with an allowed combination."""
        defaults = GlobalDefaults()
        defaults.set_default_config(GenerationConfig(provider="anthropic", model="claude-opus-4"))

        assert defaults.get_default_config().model == "claude-opus-4"

    def test_set_default_config_invalid_model(self):
        """Test that a model outside the allowed list is rejected."""
        defaults = GlobalDefaults()

        with pytest.raises(ConfigValidationError, match="not allowed"):
            defaults.set_default_config(GenerationConfig(provider="openai", model="gpt-3.5-turbo"))

    def test_set_default_config_requires_provider_and_model(self):
        """Test that a partial config cannot become the default."""
        defaults = GlobalDefaults()

        with pytest.raises(ConfigValidationError, match="provider and model"):
            defaults.set_default_config(GenerationConfig(model="gpt-4o"))

    def test_set_default_config_wrong_type(self):
        """Test that a non-GenerationConfig is rejected."""
        defaults = GlobalDefaults()

        with pytest.raises(TypeError, match="GenerationConfig"):
            defaults.set_default_config({"provider": "openai", "model": "gpt-4o"})

    def test_environment_variable_seeding(self, monkeypatch):
        """Test that APP_ALLOWED_MODELS_* replaces the built-in lists."""
        monkeypatch.setenv("APP_ALLOWED_MODELS_OPENAI", " gpt-4o , custom-model ")
        monkeypatch.setenv("APP_ALLOWED_MODELS_ANTHROPIC", "claude-3")
        monkeypatch.setenv("APP_ALLOWED_MODELS_GOOGLE", "gemini-2.5-flash-lite")
        defaults = GlobalDefaults()

        assert defaults.allowed_models["openai"] == ["gpt-4o", "custom-model"]
        assert defaults.allowed_models["anthropic"] == ["claude-3"]
        assert defaults.allowed_models["google"] == ["gemini-2.5-flash-lite"]

    def test_environment_variable_empty_string_falls_back(self, monkeypatch):
        """Test that an empty variable keeps the built-in list."""
        monkeypatch.setenv("APP_ALLOWED_MODELS_OPENAI", "  ")
        defaults = GlobalDefaults()

        assert "gpt-4o-mini" in defaults.allowed_models["openai"]

    def test_concurrent_writes(self):
        """Test that concurrent writers always leave a complete, valid default."""
        defaults = GlobalDefaults()
        configs = [
            GenerationConfig(provider="openai", model="gpt-4o"),
            GenerationConfig(provider="dummy", model="test-model"),
        ]

        def write(config):
            for _ in range(50):
                defaults.set_default_config(config)

        threads = [threading.Thread(target=write, args=(c,)) for c in configs * 5]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        final = defaults.get_default_config()
        assert (final.provider, final.model) in {("openai", "gpt-4o"), ("dummy", "test-model")}


class TestConfigHelperFunctions:
    """Tests for the module-level config helpers."""

    def test_set_and_get_default_config(self):
        """Test that the process-wide default can be replaced and read back."""
        set_default_config(GenerationConfig(provider="dummy", model="test-model", temperature=0.5))

        config = get_default_config()
        assert config.model == "test-model"
        assert config.temperature == 0.5

    def test_get_allowed_models(self):
        """Test that every provider has an allowed list."""
        assert set(get_allowed_models()) == {"openai", "anthropic", "google", "dummy"}

    def test_validate_provider_model(self):
        """Test allowed and rejected provider/model combinations."""
        validate_provider_model("dummy", "dummy-model")
        validate_provider_model("google", "gemini-2.5-flash")

        with pytest.raises(ConfigValidationError, match="Unsupported provider 'cohere'"):
            validate_provider_model("cohere", "command-r")
        with pytest.raises(ConfigValidationError, match="not allowed"):
            validate_provider_model("anthropic", "gpt-4o")


class TestValidateAndMergeConfig:
    """Tests for validate_and_merge_config."""

    def test_none_config_returns_default(self):
        """Test that no override gives the current default."""
        merged = validate_and_merge_config(None)

        assert merged.provider == "dummy"
        assert merged.model == "dummy-model"

    def test_partial_config_merges_with_defaults(self):
        """Test that unset fields inherit from the default."""
        merged = validate_and_merge_config(GenerationConfig(temperature=0.9))

        assert merged.provider == "dummy"
        assert merged.model == "dummy-model"
        assert merged.temperature == 0.9

    def test_zero_temperature_overrides_default(self):
        """Test that a falsy but set value still overrides the default."""
        merged = validate_and_merge_config(GenerationConfig(temperature=0.0))
        assert merged.temperature == 0.0

    def test_invalid_merged_combination_raises(self):
        """Test that an override is validated after merging."""
        with pytest.raises(ConfigValidationError):
            validate_and_merge_config(GenerationConfig(model="gpt-4o"))

    def test_default_not_mutated(self):
        """Test that merging never changes the process-wide default."""
        validate_and_merge_config(GenerationConfig(model="test-model", max_tokens=10))

        default = get_default_config()
        assert default.model == "dummy-model"
        assert default.max_tokens is None

    def test_wrong_type_raises_error(self):
        """Test that a non-GenerationConfig override is rejected."""
        with pytest.raises(TypeError):
            validate_and_merge_config({"model": "test-model"})


class TestGenerationConfig:
    """Tests for the GenerationConfig request model."""

    def test_unknown_provider_rejected(self):
        """Test that providers outside the literal set fail validation."""
        with pytest.raises(ValidationError):
            GenerationConfig(provider="cohere")

    def test_extra_fields_rejected(self):
        """Test that unknown keys fail validation."""
        with pytest.raises(ValidationError):
            GenerationConfig(model="gpt-4o", top_p=0.5)

    @pytest.mark.parametrize("field,value", [("temperature", 2.5), ("temperature", -0.1), ("max_tokens", 0)])
    def test_range_checks(self, field, value):
        """Test temperature and max_tokens bounds."""
        with pytest.raises(ValidationError):
            GenerationConfig(**{field: value})
