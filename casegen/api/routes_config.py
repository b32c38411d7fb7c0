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
"""Admin configuration endpoints for managing the default LLM config."""

import logging
from typing import Dict, List

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from casegen.config import (
    ConfigValidationError,
    get_allowed_models,
    get_default_config,
    get_settings,
    set_default_config,
)
from casegen.models.config_models import GenerationConfig
from casegen.utils.logging_helper import log_info, log_warning

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/config", tags=["Configuration"])

_DISABLED_RESPONSE = {
    "description": "Config admin endpoints are disabled",
    "content": {
        "application/json": {
            "example": {
                "detail": "Config admin endpoints are disabled. Set APP_ENABLE_CONFIG_ADMIN_ENDPOINTS=true to enable."
            }
        }
    },
}


class DefaultsResponse(BaseModel):
    """Current default GenerationConfig and the allowed models per provider."""

    default_config: GenerationConfig = Field(
        description="Config used for fields a request does not override"
    )
    allowed_models: Dict[str, List[str]] = Field(
        description="Provider names mapped to their allowed model names"
    )


def _check_config_admin_enabled() -> None:
    """Raise 403 unless APP_ENABLE_CONFIG_ADMIN_ENDPOINTS is set."""
    if not get_settings().enable_config_admin_endpoints:
        log_warning(logger, "config_admin_endpoint_disabled_access_attempt")
        raise HTTPException(
            status_code=403,
            detail="Config admin endpoints are disabled. Set APP_ENABLE_CONFIG_ADMIN_ENDPOINTS=true to enable."
        )


@router.get(
    "/defaults",
    response_model=DefaultsResponse,
    summary="Get current default configuration (admin-only)",
    description=(
        "ADMIN-ONLY ENDPOINT, for trusted environments only.\n\n"
        "Returns the default GenerationConfig (provider, model, temperature, "
        "max_tokens) and the allowed models per provider. Returns 403 unless "
        "APP_ENABLE_CONFIG_ADMIN_ENDPOINTS=true."
    ),
    responses={403: _DISABLED_RESPONSE},
)
def get_defaults() -> DefaultsResponse:
    """Get the default configuration and allowed models.

    Raises:
        HTTPException: 403 if config admin endpoints are disabled
    """
    _check_config_admin_enabled()
    log_info(logger, "config_admin_get_defaults_accessed")

    return DefaultsResponse(
        default_config=get_default_config(),
        allowed_models=get_allowed_models(),
    )


@router.put(
    "/defaults",
    response_model=DefaultsResponse,
    summary="Update default configuration (admin-only)",
    description=(
        "ADMIN-ONLY ENDPOINT, for trusted environments only.\n\n"
        "Replaces the default GenerationConfig used by test generation and the "
        "completion relay. `provider` and `model` are required and must be in "
        "allowed_models; otherwise 400 is returned. Changes live in process memory "
        "only and reset on restart. Returns 403 unless "
        "APP_ENABLE_CONFIG_ADMIN_ENDPOINTS=true."
    ),
    responses={
        400: {
            "description": "Invalid configuration (validation failed)",
            "content": {
                "application/json": {
                    "example": {
                        "detail": "Model 'gpt-3.5-turbo' is not allowed for provider 'openai'. "
                                  "Allowed models: gpt-5, gpt-5.1, gpt-4o, gpt-4o-mini"
                    }
                }
            },
        },
        403: _DISABLED_RESPONSE,
    },
)
def update_defaults(config: GenerationConfig) -> DefaultsResponse:
    """Replace the default configuration.

    Raises:
        HTTPException: 400 if validation fails, 403 if the endpoints are disabled
    """
    _check_config_admin_enabled()

    try:
        set_default_config(config)
    except ConfigValidationError as e:
        log_warning(logger, "config_validation_failed", error_message=str(e))
        raise HTTPException(status_code=400, detail=str(e))

    log_info(
        logger,
        "config_admin_defaults_updated",
        provider=config.provider,
        model=config.model,
        temperature=config.temperature,
        max_tokens=config.max_tokens
    )

    return DefaultsResponse(
        default_config=config,
        allowed_models=get_allowed_models(),
    )
