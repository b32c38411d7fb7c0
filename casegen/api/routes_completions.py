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
"""Plain prompt relay endpoint."""

import logging

from fastapi import APIRouter, HTTPException

from casegen.api.errors import raise_for_llm_error
from casegen.config import ConfigValidationError
from casegen.models.test_cases import CompletionRequest, CompletionResponse
from casegen.services import test_generation
from casegen.services.llm_clients import LLMCallError
from casegen.utils.logging_helper import get_correlation_id, log_warning

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["Completions"])


@router.post(
    "/completions",
    response_model=CompletionResponse,
    summary="Relay a prompt to the configured LLM",
    description=(
        "Sends `system_prompt` and `prompt` to the configured LLM and returns the "
        "completion with any surrounding markdown code fence removed. The text is "
        "not parsed; use POST /v1/tests/summaries for recovered test cases.\n\n"
        "A blank prompt returns 400."
    ),
    responses={
        400: {"description": "Blank prompt or invalid configuration"},
        429: {"description": "LLM provider rate limit exceeded"},
        502: {"description": "LLM provider call failed"},
        503: {"description": "LLM provider credentials missing or invalid"},
    },
)
async def create_completion(request: CompletionRequest) -> CompletionResponse:
    """Relay a prompt to the LLM.

    Raises:
        HTTPException: 400 for a blank prompt or invalid config, or the mapped
            status of an LLM provider failure
    """
    correlation_id = get_correlation_id()

    try:
        return await test_generation.relay_completion(request, correlation_id=correlation_id)
    except ConfigValidationError as e:
        log_warning(logger, "config_validation_failed", correlation_id=correlation_id, error_message=str(e))
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        log_warning(logger, "completion_request_invalid", correlation_id=correlation_id, error_message=str(e))
        raise HTTPException(status_code=400, detail=str(e))
    except LLMCallError as e:
        raise_for_llm_error(e, correlation_id)
