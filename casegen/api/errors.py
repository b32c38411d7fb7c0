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
"""Translation of service-layer errors into HTTP responses."""

import logging
from typing import NoReturn, Optional

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from casegen.models.test_cases import RecoveryFailure, RecoveryFailureResponse
from casegen.services.llm_clients import (
    LLMAuthenticationError,
    LLMCallError,
    LLMRateLimitError,
    LLMValidationError,
)
from casegen.services.recovery_errors import RecoveryError
from casegen.utils.logging_helper import log_error

logger = logging.getLogger(__name__)

# Status code for a completion that arrived but could not be used
RECOVERY_FAILURE_STATUS = 502


def llm_error_status(error: LLMCallError) -> int:
    """Map an LLMCallError to the HTTP status returned to the client.

    Rate limits are 429, rejected requests are 400, missing or invalid
    credentials are 503 (the service is misconfigured), and network or other
    provider failures are 502.
    """
    if isinstance(error, LLMRateLimitError):
        return 429
    if isinstance(error, LLMValidationError):
        return 400
    if isinstance(error, LLMAuthenticationError):
        return 503
    return 502


def raise_for_llm_error(error: LLMCallError, correlation_id: Optional[str] = None) -> NoReturn:
    """Log an LLM failure and raise the matching HTTPException."""
    status_code = llm_error_status(error)
    log_error(
        logger,
        "llm_call_failed",
        correlation_id=correlation_id,
        provider=error.provider,
        status_code=status_code,
        error=error,
    )
    raise HTTPException(status_code=status_code, detail=error.message) from error


def recovery_failure_response(failure: RecoveryFailure | RecoveryError) -> JSONResponse:
    """Build the 502 body for a completion that could not be recovered."""
    body = RecoveryFailureResponse(
        error=failure.kind,
        message=failure.message,
        preview=failure.preview,
        repair_preview=getattr(failure, "repair_preview", None),
    )
    return JSONResponse(
        status_code=RECOVERY_FAILURE_STATUS,
        content=body.model_dump(mode="json", exclude_none=True),
    )
