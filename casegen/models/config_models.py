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
"""Configuration models for test generation.

This module contains configuration-related Pydantic models that are shared
between the config and request modules to avoid circular dependencies.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class GenerationConfig(BaseModel):
    """Configuration for test-generation LLM calls.

    All fields are optional to support partial overrides. When used in a
    request, missing fields are filled from the global default config during
    validation/merging.

    Attributes:
        provider: LLM provider identifier ('openai', 'anthropic', 'google' or 'dummy')
        model: Model identifier specific to the provider (e.g., 'gpt-5.1')
        temperature: Sampling temperature for response generation (0.0-2.0)
        max_tokens: Optional maximum tokens to generate in response

    Example:
        >>> config = GenerationConfig(provider="openai", model="gpt-5.1", temperature=0.2)
        >>> # Partial config (only override model)
        >>> config = GenerationConfig(model="gpt-4o")
    """

    model_config = ConfigDict(extra="forbid")

    provider: Optional[Literal["openai", "anthropic", "google", "dummy"]] = Field(
        default=None,
        description="LLM provider identifier (must be 'openai', 'anthropic', 'google' or 'dummy')"
    )
    model: Optional[str] = Field(
        default=None,
        min_length=1,
        description="Model identifier specific to the provider"
    )
    temperature: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for response generation"
    )
    max_tokens: Optional[int] = Field(
        default=None,
        gt=0,
        description="Maximum tokens to generate in response"
    )
