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
"""LLM client abstractions used to request test cases and test code.

This module provides:
1. LLMClient Protocol - a unified interface for all LLM providers
2. GenerationLLMConfig - resolved configuration for one LLM call
3. LLMCallError - exception hierarchy for handling LLM API failures
4. OpenAIResponsesClient, AnthropicResponsesClient and GoogleGenAIClient -
   provider clients
5. DummyLLMClient - a test implementation for deterministic testing

Provider notes:
    OpenAI: Responses API via the official 'openai' SDK; text is read from
        response.output_text, falling back to the output message blocks.
    Anthropic: Messages API via the official 'anthropic' SDK; text is joined
        from the 'text' blocks of response.content. max_tokens is required.
    Google: Gemini generate_content via the official 'google-genai' SDK; the
        system prompt goes in GenerateContentConfig.system_instruction and
        text is read from response.text. Errors carry the HTTP status as code.

Clients return the raw completion text. They never interpret it; fence
stripping and JSON recovery happen in the recovery pipeline.
"""

import logging
import os
import re
import time
from typing import Any, NoReturn, Protocol

import anthropic
import httpx
import openai
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from pydantic import BaseModel, Field, field_validator

from casegen.utils.logging_helper import log_error, log_info
from casegen.utils.metrics import get_metrics_collector

# Provider constants
PROVIDER_OPENAI = "openai"
PROVIDER_ANTHROPIC = "anthropic"
PROVIDER_GOOGLE = "google"
PROVIDER_DUMMY = "dummy"

SUPPORTED_PROVIDERS = frozenset([PROVIDER_OPENAI, PROVIDER_ANTHROPIC, PROVIDER_GOOGLE])

# Anthropic requires max_tokens on every request
ANTHROPIC_DEFAULT_MAX_TOKENS = 4096

# Error classes shared by the SDK error mapping
_AUTHENTICATION = "authentication"
_RATE_LIMIT = "rate_limit"
_VALIDATION = "validation"
_NETWORK = "network"
_OTHER = "other"

# Canned completion returned by DummyLLMClient when nothing else is configured
DUMMY_COMPLETION = '[{"id": "dummy-1", "description": "returns a value", "type": "unit"}]'


class LLMCallError(Exception):
    """Base exception for LLM API call failures.

    Messages are scrubbed of credentials before they are stored, so the
    exception is always safe to log.

    Attributes:
        message: Sanitized error message safe for logging
        original_error: The original exception (if available)
        provider: The LLM provider that failed (if known)
    """

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        provider: str | None = None
    ):
        sanitized_message = self._sanitize_message(message)
        super().__init__(sanitized_message)
        self.message = sanitized_message
        self.original_error = original_error
        self.provider = provider

    @staticmethod
    def _sanitize_message(message: str) -> str:
        """Remove API keys, bearer tokens and auth headers from a message."""
        patterns = [
            (r'(api[_-]?key["\s:=]+)[^\s\'"]+', r'\1[REDACTED]'),
            (r'(["\']api[_-]?key["\']\s*:\s*["\'])[^"\'\n\r]+?(["\'])', r'\1[REDACTED]\2'),
            (r'(api[_-]?key%3D)[^&\s]+', r'\1[REDACTED]'),
            (r'(bearer\s+)[^\s]+', r'\1[REDACTED]'),
            (r'(token["\s:=]+)[^\s\'"]+', r'\1[REDACTED]'),
            (r'(token%3D)[^&\s]+', r'\1[REDACTED]'),
            (r'(authorization["\s:]+)[^\r\n]+', r'\1[REDACTED]'),
            (r'(x-api-key["\s:]+)[^\r\n]+', r'\1[REDACTED]'),
            (r'(["\'](?:secret|key|password|apikey)["\']\s*:\s*["\'])[^"\'\n\r]+?(["\'])', r'\1[REDACTED]\2'),
            # Raw OpenAI, Anthropic and Google key formats
            (r'sk-(?:ant-)?[A-Za-z0-9_-]{8,}', '[REDACTED]'),
            (r'AIza[0-9A-Za-z_-]{20,}', '[REDACTED]'),
        ]
        for pattern, replacement in patterns:
            message = re.sub(pattern, replacement, message, flags=re.IGNORECASE)
        return message

    def __str__(self) -> str:
        return self.message


class LLMNetworkError(LLMCallError):
    """Exception raised when network/connectivity issues occur."""
    pass


class LLMAuthenticationError(LLMCallError):
    """Exception raised when authentication fails or no API key is configured."""
    pass


class LLMRateLimitError(LLMCallError):
    """Exception raised when rate limits are exceeded."""
    pass


class LLMValidationError(LLMCallError):
    """Exception raised when the provider rejects the request."""
    pass


class GenerationLLMConfig(BaseModel):
    """Resolved configuration for one test-generation LLM call.

    Unlike GenerationConfig, every field here is concrete: it is produced by
    merging a request override with the global defaults.

    Attributes:
        provider: LLM provider identifier (openai, anthropic, google, dummy)
        model: Model identifier specific to the provider
        temperature: Sampling temperature (0.0-2.0)
        max_tokens: Optional maximum tokens to generate in response
    """

    provider: str = Field(..., description="LLM provider identifier (openai, anthropic, google, dummy)")
    model: str = Field(..., description="Model identifier specific to the provider")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        valid_providers = SUPPORTED_PROVIDERS | {PROVIDER_DUMMY}
        if v not in valid_providers:
            raise ValueError(
                f"Invalid provider '{v}'. Must be one of: {', '.join(sorted(valid_providers))}"
            )
        return v

    @field_validator("model")
    @classmethod
    def validate_model(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Model must not be empty or blank")
        return v.strip()

    def call_kwargs(self) -> dict[str, Any]:
        """Return the generation parameters passed to LLMClient.complete()."""
        kwargs: dict[str, Any] = {"temperature": self.temperature}
        if self.max_tokens is not None:
            kwargs["max_tokens"] = self.max_tokens
        return kwargs


class LLMClient(Protocol):
    """Protocol implemented by every provider client and the dummy client."""

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        **kwargs: Any
    ) -> str:
        """Generate a completion from the LLM.

        Args:
            system_prompt: System-level instructions for the LLM
            user_prompt: User's actual request
            model: Model identifier to use for this completion
            **kwargs: Generation parameters (temperature, max_tokens)

        Returns:
            Raw text response, possibly empty

        Raises:
            LLMCallError: When the API call fails
            ValueError: When prompts are empty or invalid
        """
        ...


def _validate_prompts(system_prompt: str, user_prompt: str, model: str) -> None:
    if not system_prompt or not system_prompt.strip():
        raise ValueError("system_prompt must not be empty or blank")
    if not user_prompt or not user_prompt.strip():
        raise ValueError("user_prompt must not be empty or blank")
    if not model or not model.strip():
        raise ValueError("model must not be empty or blank")


def _classify_sdk_error(error: Exception, sdk: Any) -> str:
    """Classify an openai or anthropic SDK error; both expose the same names."""
    if isinstance(error, sdk.AuthenticationError):
        return _AUTHENTICATION
    if isinstance(error, sdk.RateLimitError):
        return _RATE_LIMIT
    if isinstance(error, (sdk.BadRequestError, sdk.UnprocessableEntityError)):
        return _VALIDATION
    if isinstance(error, (sdk.APIConnectionError, sdk.APITimeoutError)):
        return _NETWORK
    return _OTHER


def _classify_google_error(error: Exception) -> str:
    """Classify a google-genai error, which carries the HTTP status as ``code``."""
    if isinstance(error, httpx.TransportError):
        return _NETWORK
    code = getattr(error, "code", None)
    if code in (401, 403):
        return _AUTHENTICATION
    if code == 429:
        return _RATE_LIMIT
    if code in (400, 404, 422):
        return _VALIDATION
    return _OTHER


def _raise_mapped_error(
    logger: logging.Logger,
    provider: str,
    model: str,
    started: float,
    error: Exception,
    kind: str,
) -> NoReturn:
    """Log a provider SDK error and re-raise it as an LLMCallError subclass."""
    elapsed = round(time.perf_counter() - started, 2)
    get_metrics_collector().increment("llm_errors")
    label = provider.capitalize()

    if kind == _AUTHENTICATION:
        event, mapped = "llm_authentication_failed", LLMAuthenticationError(
            f"{label} authentication failed. Please check your API key.",
            original_error=error, provider=provider
        )
    elif kind == _RATE_LIMIT:
        event, mapped = "llm_rate_limit_exceeded", LLMRateLimitError(
            f"{label} rate limit exceeded. Please retry after a delay.",
            original_error=error, provider=provider
        )
    elif kind == _VALIDATION:
        event, mapped = "llm_validation_failed", LLMValidationError(
            f"{label} request validation failed: {error}",
            original_error=error, provider=provider
        )
    elif kind == _NETWORK:
        event, mapped = "llm_network_error", LLMNetworkError(
            f"{label} network error: {type(error).__name__}",
            original_error=error, provider=provider
        )
    else:
        event, mapped = "llm_api_error", LLMCallError(
            f"{label} API error: {error}",
            original_error=error, provider=provider
        )

    log_error(logger, event, provider=provider, model=model, elapsed_seconds=elapsed, error=error)
    raise mapped from error


class DummyLLMClient:
    """Deterministic LLMClient for tests and offline runs.

    It never makes network calls. It can return a canned completion, echo the
    prompts, or raise a configured LLMCallError. Every call is recorded in
    ``calls`` so tests can assert on the prompts that were sent.

    Example:
        >>> client = DummyLLMClient(canned_response='```json\\n[]\\n```')
        >>> client = DummyLLMClient(simulate_failure=True, failure_type=LLMRateLimitError)

    Attributes:
        canned_response: Completion to return
        echo_prompts: If True, return a formatted echo of the prompts
        simulate_failure: If True, raise failure_type on complete()
        failure_message: Message of the simulated failure
        failure_type: LLMCallError subclass to raise
        calls: Recorded (system_prompt, user_prompt, model, kwargs) tuples
    """

    def __init__(
        self,
        canned_response: str | None = None,
        echo_prompts: bool = False,
        simulate_failure: bool = False,
        failure_message: str = "Simulated LLM failure",
        failure_type: type[LLMCallError] = LLMCallError
    ):
        if simulate_failure and not issubclass(failure_type, LLMCallError):
            raise TypeError("failure_type must be a subclass of LLMCallError")

        self.canned_response = canned_response
        self.echo_prompts = echo_prompts
        self.simulate_failure = simulate_failure
        self.failure_message = failure_message
        self.failure_type = failure_type
        self.calls: list[tuple[str, str, str, dict[str, Any]]] = []

        if canned_response is None and not echo_prompts:
            self.canned_response = DUMMY_COMPLETION

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        **kwargs: Any
    ) -> str:
        _validate_prompts(system_prompt, user_prompt, model)
        self.calls.append((system_prompt, user_prompt, model, dict(kwargs)))

        if self.simulate_failure:
            raise self.failure_type(message=self.failure_message, provider=PROVIDER_DUMMY)

        if self.echo_prompts:
            return f"System: {system_prompt}\nUser: {user_prompt}\nModel: {model}"

        return self.canned_response


class OpenAIResponsesClient:
    """OpenAI implementation of LLMClient using the Responses API.

    The AsyncOpenAI client is created lazily on the first call. Only the
    provider, model and duration are logged, never prompts or completions.
    ``max_tokens`` is renamed to ``max_output_tokens`` for the Responses API.
    """

    def __init__(self, api_key: str | None = None):
        self._api_key = api_key
        self._client: openai.AsyncOpenAI | None = None
        self._logger = logging.getLogger(__name__)

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            api_key = self._api_key or os.environ.get("OPENAI_API_KEY")
            if not api_key:
                raise LLMAuthenticationError(
                    "OPENAI_API_KEY environment variable is not set. "
                    "Please set it with a valid OpenAI API key.",
                    provider=PROVIDER_OPENAI
                )
            self._client = openai.AsyncOpenAI(api_key=api_key)
            self._logger.debug("Initialized AsyncOpenAI client")
        return self._client

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        **kwargs: Any
    ) -> str:
        """Generate a completion from OpenAI.

        Raises:
            ValueError: When prompts are empty or invalid
            LLMAuthenticationError: When the API key is missing or invalid
            LLMRateLimitError: When rate limits are exceeded
            LLMValidationError: When request validation fails
            LLMNetworkError: When network/connectivity issues occur
            LLMCallError: For other API errors
        """
        _validate_prompts(system_prompt, user_prompt, model)
        client = self._get_client()

        api_params: dict[str, Any] = {
            "model": model,
            "instructions": system_prompt,
            "input": user_prompt,
        }
        if "max_tokens" in kwargs:
            api_params["max_output_tokens"] = kwargs.pop("max_tokens")
        api_params.update(kwargs)

        start_time = time.perf_counter()
        try:
            response = await client.responses.create(**api_params)
        except openai.APIError as e:
            _raise_mapped_error(
                self._logger, PROVIDER_OPENAI, model, start_time, e, _classify_sdk_error(e, openai)
            )

        text_content = response.output_text
        if not text_content and getattr(response, "output", None):
            text_content = "".join(
                part.text
                for item in response.output
                if getattr(item, "type", None) == "message"
                for part in getattr(item, "content", [])
                if getattr(part, "type", None) == "output_text"
            )

        if not text_content:
            log_error(self._logger, "llm_empty_response", provider=PROVIDER_OPENAI, model=model)

        log_info(
            self._logger,
            "llm_completion_success",
            provider=PROVIDER_OPENAI,
            model=model,
            elapsed_seconds=round(time.perf_counter() - start_time, 2),
            response_length=len(text_content or "")
        )
        return text_content or ""


class AnthropicResponsesClient:
    """Anthropic implementation of LLMClient using the Messages API.

    The AsyncAnthropic client is created lazily on the first call. When the
    caller gives no ``max_tokens``, ``ANTHROPIC_DEFAULT_MAX_TOKENS`` is sent.
    """

    def __init__(self, api_key: str | None = None):
        self._api_key = api_key
        self._client: anthropic.AsyncAnthropic | None = None
        self._logger = logging.getLogger(__name__)

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            api_key = self._api_key or os.environ.get("ANTHROPIC_API_KEY")
            if not api_key:
                raise LLMAuthenticationError(
                    "Anthropic API key is not set. Please provide it via the "
                    "'api_key' argument or set the ANTHROPIC_API_KEY environment variable.",
                    provider=PROVIDER_ANTHROPIC
                )
            self._client = anthropic.AsyncAnthropic(api_key=api_key)
            self._logger.debug("Initialized AsyncAnthropic client")
        return self._client

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        **kwargs: Any
    ) -> str:
        """Generate a completion from Anthropic.

        Raises:
            ValueError: When prompts are empty or invalid
            LLMAuthenticationError: When the API key is missing or invalid
            LLMRateLimitError: When rate limits are exceeded
            LLMValidationError: When request validation fails
            LLMNetworkError: When network/connectivity issues occur
            LLMCallError: For other API errors
        """
        _validate_prompts(system_prompt, user_prompt, model)
        client = self._get_client()

        api_params: dict[str, Any] = {
            "model": model,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
            "max_tokens": kwargs.pop("max_tokens", ANTHROPIC_DEFAULT_MAX_TOKENS),
        }
        api_params.update(kwargs)

        start_time = time.perf_counter()
        try:
            response = await client.messages.create(**api_params)
        except anthropic.APIError as e:
            _raise_mapped_error(
                self._logger, PROVIDER_ANTHROPIC, model, start_time, e, _classify_sdk_error(e, anthropic)
            )

        text_content = "".join(
            block.text
            for block in response.content
            if getattr(block, "type", None) == "text"
        )

        if not text_content:
            log_error(self._logger, "llm_empty_response", provider=PROVIDER_ANTHROPIC, model=model)

        log_info(
            self._logger,
            "llm_completion_success",
            provider=PROVIDER_ANTHROPIC,
            model=model,
            elapsed_seconds=round(time.perf_counter() - start_time, 2),
            response_length=len(text_content)
        )
        return text_content


class GoogleGenAIClient:
    """Google Gemini implementation of LLMClient using generate_content.

    The genai.Client is created lazily on the first call and used through its
    async surface (``client.aio``). ``max_tokens`` is renamed to
    ``max_output_tokens``; the remaining kwargs become GenerateContentConfig
    fields.
    """

    def __init__(self, api_key: str | None = None):
        self._api_key = api_key
        self._client: genai.Client | None = None
        self._logger = logging.getLogger(__name__)

    def _get_client(self) -> genai.Client:
        if self._client is None:
            api_key = self._api_key or os.environ.get("GOOGLE_API_KEY")
            if not api_key:
                raise LLMAuthenticationError(
                    "Google API key is not set. Please provide it via the "
                    "'api_key' argument or set the GOOGLE_API_KEY environment variable.",
                    provider=PROVIDER_GOOGLE
                )
            self._client = genai.Client(api_key=api_key)
            self._logger.debug("Initialized Google GenAI client")
        return self._client

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        **kwargs: Any
    ) -> str:
        """Generate a completion from Google Gemini.

        Raises:
            ValueError: When prompts are empty or invalid
            LLMAuthenticationError: When the API key is missing or invalid
            LLMRateLimitError: When rate limits are exceeded
            LLMValidationError: When request validation fails
            LLMNetworkError: When network/connectivity issues occur
            LLMCallError: For other API errors
        """
        _validate_prompts(system_prompt, user_prompt, model)
        client = self._get_client()

        if "max_tokens" in kwargs:
            kwargs["max_output_tokens"] = kwargs.pop("max_tokens")
        generation_config = genai_types.GenerateContentConfig(
            system_instruction=system_prompt,
            **kwargs
        )

        start_time = time.perf_counter()
        try:
            response = await client.aio.models.generate_content(
                model=model,
                contents=user_prompt,
                config=generation_config,
            )
        except (genai_errors.APIError, httpx.TransportError) as e:
            _raise_mapped_error(
                self._logger, PROVIDER_GOOGLE, model, start_time, e, _classify_google_error(e)
            )

        text_content = response.text or ""

        if not text_content:
            log_error(self._logger, "llm_empty_response", provider=PROVIDER_GOOGLE, model=model)

        log_info(
            self._logger,
            "llm_completion_success",
            provider=PROVIDER_GOOGLE,
            model=model,
            elapsed_seconds=round(time.perf_counter() - start_time, 2),
            response_length=len(text_content)
        )
        return text_content


def get_llm_client(provider: str, config: GenerationLLMConfig | None = None) -> LLMClient:
    """Construct the LLM client for a provider.

    The client is only constructed here; no request is made until
    ``complete()`` is awaited. Model and generation parameters are passed per
    call, so ``config`` is accepted for symmetry with the call site.

    Args:
        provider: 'openai', 'anthropic', 'google' or 'dummy'
        config: Resolved configuration for the upcoming call

    Returns:
        An LLMClient implementation

    Raises:
        ValueError: When provider is blank or unsupported
        LLMAuthenticationError: When the provider's API key is not set
    """
    if not provider or not provider.strip():
        raise ValueError("provider must not be empty or blank")

    provider = provider.strip().lower()

    if provider == PROVIDER_DUMMY:
        return DummyLLMClient()

    if provider == PROVIDER_OPENAI:
        if not os.environ.get("OPENAI_API_KEY"):
            raise LLMAuthenticationError(
                "OPENAI_API_KEY environment variable is required to use the OpenAI provider. "
                "Set it with a valid OpenAI API key or use the dummy provider for testing.",
                provider=PROVIDER_OPENAI
            )
        return OpenAIResponsesClient()

    if provider == PROVIDER_ANTHROPIC:
        if not os.environ.get("ANTHROPIC_API_KEY"):
            raise LLMAuthenticationError(
                "ANTHROPIC_API_KEY environment variable is required to use the Anthropic provider. "
                "Set it with a valid Anthropic API key or use the dummy provider for testing.",
                provider=PROVIDER_ANTHROPIC
            )
        return AnthropicResponsesClient()

    if provider == PROVIDER_GOOGLE:
        if not os.environ.get("GOOGLE_API_KEY"):
            raise LLMAuthenticationError(
                "GOOGLE_API_KEY environment variable is required to use the Google provider. "
                "Set it with a valid Gemini API key or use the dummy provider for testing.",
                provider=PROVIDER_GOOGLE
            )
        return GoogleGenAIClient()

    raise ValueError(
        f"Unsupported provider '{provider}'. "
        f"Supported providers: {', '.join(sorted(SUPPORTED_PROVIDERS))}, dummy"
    )
