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
"""Centralized test fixtures for the casegen test suite.

This module provides reusable fixtures for:
- Test clients (FastAPI TestClient with various configurations)
- LLM client mocking (DummyLLMClient with canned completions)
- Configuration management (settings cache, default config reset)
- Metrics reset (clean counters for every test)
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from casegen.config import get_settings, set_default_config
from casegen.main import create_app
from casegen.models.config_models import GenerationConfig
from casegen.models.test_cases import SourceFile
from casegen.services.llm_clients import DummyLLMClient
from casegen.utils.metrics import get_metrics_collector

# Default config every test starts from; the dummy provider needs no API key
TEST_DEFAULT_CONFIG = GenerationConfig(
    provider="dummy",
    model="dummy-model",
    temperature=0.2,
    max_tokens=None,
)


# =============================================================================
# Test Client Fixtures
# =============================================================================


@pytest.fixture
def client():
    """Create a standard FastAPI TestClient."""
    return TestClient(create_app())


@pytest.fixture
def config_admin_client(monkeypatch):
    """Create a TestClient with the config admin endpoints enabled."""
    monkeypatch.setenv("APP_ENABLE_CONFIG_ADMIN_ENDPOINTS", "true")
    get_settings.cache_clear()
    return TestClient(create_app())


@pytest.fixture
def disabled_config_client(monkeypatch):
    """Create a TestClient with the config admin endpoints disabled."""
    monkeypatch.setenv("APP_ENABLE_CONFIG_ADMIN_ENDPOINTS", "false")
    get_settings.cache_clear()
    return TestClient(create_app())


# =============================================================================
# LLM Client Mocking Fixtures
# =============================================================================


@pytest.fixture
def llm_completion():
    """Patch the LLM client factory to return a configurable DummyLLMClient.

    Yields a function that sets the canned completion and returns the dummy
    client, so tests can inspect the prompts it received:

        client = llm_completion('```json\\n[{"id": "a"}]\\n```')
        response = api.post("/v1/tests/summaries", json=...)
        system_prompt, user_prompt, model, kwargs = client.calls[0]
    """
    dummy = DummyLLMClient()

    def set_completion(text: str) -> DummyLLMClient:
        dummy.canned_response = text
        return dummy

    with patch("casegen.services.test_generation.get_llm_client", return_value=dummy):
        yield set_completion


@pytest.fixture
def failing_llm():
    """Patch the LLM client factory to raise a configurable LLMCallError.

    Yields a function taking the LLMCallError subclass to raise.
    """
    dummy = DummyLLMClient()

    def set_failure(failure_type, message: str = "Simulated LLM failure") -> DummyLLMClient:
        dummy.simulate_failure = True
        dummy.failure_type = failure_type
        dummy.failure_message = message
        return dummy

    with patch("casegen.services.test_generation.get_llm_client", return_value=dummy):
        yield set_failure


# =============================================================================
# Configuration Management Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Clear the settings cache before and after each test (autouse)."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def reset_config():
    """Start every test from the dummy-provider default config (autouse)."""
    set_default_config(TEST_DEFAULT_CONFIG)
    yield
    set_default_config(TEST_DEFAULT_CONFIG)


# =============================================================================
# Metrics Management Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_metrics():
    """Reset the metrics collector before and after each test (autouse)."""
    metrics = get_metrics_collector()
    metrics.reset()
    yield
    metrics.reset()


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def sample_files():
    """Two small source files as the UI would send them."""
    return [
        SourceFile(path="src/utils/math.js", content="export const add = (a, b) => a + b;"),
        SourceFile(path="src/utils/strings.js", content="export const upper = (s) => s.toUpperCase();"),
    ]


@pytest.fixture
def summaries_payload():
    """Request body for POST /v1/tests/summaries."""
    return {
        "files": [
            {"path": "src/utils/math.js", "content": "export const add = (a, b) => a + b;"},
        ],
        "framework": "jest",
        "test_type": "unit",
    }
